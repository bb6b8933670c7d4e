# almoxarifado/usecases/reconciliacao.py
"""
UC: Conciliação de inventário e saúde do estoque.

Fluxo de count_and_reconcile():
1) Lê o saldo do sistema (current_stock)
2) diferença = real - sistema
3) Cria UMA ocorrência 'inventario' já 'resolvido', quantidade max(1, |dif|)
4) Se dif != 0, grava current_stock = real na mesma transação da ocorrência
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from almoxarifado.config import DB_PATH, TENANT_ID
from almoxarifado.adapters.parsers import parse_quantidade
from almoxarifado.domain.errors import ValidationError
from almoxarifado.domain.models import (
    Badge,
    Categoria,
    Produto,
    ResultadoInventario,
    SaudeEstoque,
    StatusAuditoria,
    TipoAuditoria,
)
from almoxarifado.domain.policies import (
    ROTULOS_CATEGORIA,
    badge_estoque as _badge,
    classificar_produto,
    descricao_inventario,
)
from almoxarifado.infra.repositories import AuditoriaRepo, ProdutoRepo, agora_iso
from almoxarifado.infra.logger import (
    log_transaction, log_auditoria, log_system_event
)
from almoxarifado.usecases.catalogo import obter_produto


def count_and_reconcile(
    produto_id: int,
    quantidade_real,
    notas: Optional[str] = None,
    reported_by: Optional[str] = None,
    db_path: str = DB_PATH,
    tenant_id: str = TENANT_ID,
) -> ResultadoInventario:
    """Registra uma contagem física e alinha o saldo do produto.

    Uma contagem sem diferença também gera ocorrência (evidência de
    conferência), com quantidade 1 e sem alterar o estoque.

    Raises:
        ValidationError: quantidade real ausente ou negativa.
        NotFound: produto inexistente.
    """
    log_system_event("inventario_start", {"product_id": produto_id, "real": quantidade_real})
    try:
        real = parse_quantidade(quantidade_real)
        if real is None or real < 0:
            raise ValidationError("A quantidade real deve ser um inteiro maior ou igual a 0",
                                  campo="quantidade_real")

        produto = obter_produto(produto_id, db_path, tenant_id)
        sistema = produto.current_stock
        diferenca = real - sistema

        agora = agora_iso()
        row = {
            "product_id": produto.id,
            "audit_type": TipoAuditoria.INVENTARIO,
            "status": StatusAuditoria.RESOLVIDO,
            "quantity": max(1, abs(diferenca)),
            "description": descricao_inventario(sistema, real, notas),
            "reported_by": reported_by,
            "reported_at": agora,
            "resolved_at": agora,
        }
        novo_saldo = real if diferenca != 0 else None
        auditoria = AuditoriaRepo(db_path, tenant_id).insert_com_saldo(row, novo_saldo)

        log_auditoria("inventario", TipoAuditoria.INVENTARIO.value, produto.id, auditoria.quantity,
                      id=auditoria.id, sistema=sistema, real=real, diferenca=diferenca)
        log_transaction("inventario", {"product_id": produto.id, "sistema": sistema, "real": real},
                        result={"auditoria": auditoria.id, "estoque_atualizado": novo_saldo is not None})
        return ResultadoInventario(auditoria=auditoria, estoque_atualizado=novo_saldo is not None)
    except Exception as e:
        log_transaction("inventario", {"product_id": produto_id}, error=str(e))
        log_system_event("inventario_error", {"error": str(e)}, level="error")
        raise


def classificar_saude(produtos: Iterable[Produto], categoria: Categoria) -> SaudeEstoque:
    """Particiona os produtos da categoria em zerados e abaixo do mínimo."""
    categoria = Categoria(categoria)
    saude = SaudeEstoque(categoria=categoria)
    for p in produtos:
        if p.category != categoria:
            continue
        classe = classificar_produto(p.current_stock, p.min_stock)
        if classe == "zero":
            saude.zerados += 1
        elif classe == "baixo":
            saude.baixos += 1
    return saude


def badge_estoque(saude: SaudeEstoque) -> Badge:
    return _badge(saude.zerados, saude.baixos)


def resumo_saude_por_categoria(
    db_path: str = DB_PATH, tenant_id: str = TENANT_ID
) -> Dict[Categoria, SaudeEstoque]:
    produtos = ProdutoRepo(db_path, tenant_id).get_all()
    return {cat: classificar_saude(produtos, cat) for cat in Categoria}


def alertas_estoque(db_path: str = DB_PATH, tenant_id: str = TENANT_ID) -> List[Dict[str, object]]:
    """Alertas do painel: 'danger' para zerados, 'warning' para abaixo do mínimo.

    No máximo dois alertas por categoria, zerados primeiro.
    """
    alertas: List[Dict[str, object]] = []
    for cat, saude in resumo_saude_por_categoria(db_path, tenant_id).items():
        rotulo = ROTULOS_CATEGORIA[cat]
        if saude.zerados:
            alertas.append({
                "tipo": "danger",
                "categoria": cat.value,
                "contagem": saude.zerados,
                "mensagem": f"{rotulo}: {saude.zerados} produto(s) com estoque zerado",
            })
        if saude.baixos:
            alertas.append({
                "tipo": "warning",
                "categoria": cat.value,
                "contagem": saude.baixos,
                "mensagem": f"{rotulo}: {saude.baixos} produto(s) abaixo do estoque mínimo",
            })
    return alertas
