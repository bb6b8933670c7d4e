# almoxarifado/usecases/relatorios.py
"""
Relatórios do almoxarifado:
- cautelas ativas (itens sob responsabilidade, por técnico ou geral)
- garantias pendentes (enviadas e ainda não recebidas)
- saúde do estoque (produtos zerados / abaixo do mínimo)
- ocorrências (com filtros de tipo e status)
- movimentações de um produto

Todos retornam ``(colunas, linhas, mensagem)`` para exibição tabular na
CLI ou exportação em planilha.
"""

from __future__ import annotations

from typing import Any, List, Optional, Tuple

from almoxarifado.config import DB_PATH, TENANT_ID
from almoxarifado.domain.models import Categoria, StatusAuditoria, TipoAuditoria
from almoxarifado.domain.policies import ROTULOS_CATEGORIA, ROTULOS_TIPO_AUDITORIA
from almoxarifado.infra.db import connect
from almoxarifado.infra.migrations import apply_migrations
from almoxarifado.infra.views import create_views
from almoxarifado.infra.repositories import AuditoriaRepo, MovimentacaoRepo, ProdutoRepo
from almoxarifado.infra.logger import (
    log_system_event, log_database_operation, system_logger
)

Relatorio = Tuple[List[str], List[List[Any]], Optional[str]]


def _preparar(db_path: str) -> None:
    apply_migrations(db_path)
    create_views(db_path)
    log_database_operation("views", "CREATE", 0)


def _rotulo_categoria(valor: Optional[str]) -> str:
    try:
        return ROTULOS_CATEGORIA[Categoria(valor)]
    except ValueError:
        return valor or ""


# ----------------------
# 1) Cautelas ativas
# ----------------------

def relatorio_cautelas_ativas(
    tecnico_id: Optional[str] = None, db_path: str = DB_PATH, tenant_id: str = TENANT_ID
) -> Relatorio:
    """Itens sob responsabilidade, agrupados por técnico e categoria."""
    log_system_event("relatorio_cautelas_ativas_start", {"technician_id": tecnico_id})
    try:
        _preparar(db_path)
        sql = "SELECT * FROM vw_cautelas_ativas WHERE tenant_id = ?"
        args: List[Any] = [tenant_id]
        if tecnico_id:
            sql += " AND technician_id = ?"
            args.append(tecnico_id)
        sql += " ORDER BY technician_id, category, assigned_at"
        with connect(db_path) as c:
            dados = [dict(r) for r in c.execute(sql, args).fetchall()]
        log_database_operation("vw_cautelas_ativas", "SELECT", len(dados))

        columns = ["Cautela", "Técnico", "Categoria", "Código", "Item", "Serial", "Qtd", "Entrega"]
        rows = [
            [
                d["id"],
                d["technician_id"],
                _rotulo_categoria(d["category"]),
                d["product_code"] or "",
                d["product_name"] or "",
                d["serial_number"] or "",
                d["quantity"],
                d["assigned_at"],
            ]
            for d in dados
        ]
        msg = None if rows else "Nenhuma cautela ativa."
        log_system_event("relatorio_cautelas_ativas_success", {"linhas": len(rows)})
        return columns, rows, msg
    except Exception as e:
        log_system_event("relatorio_cautelas_ativas_error", {"error": str(e)}, level="error")
        raise


# ----------------------
# 2) Garantias pendentes
# ----------------------

def relatorio_garantias_pendentes(db_path: str = DB_PATH, tenant_id: str = TENANT_ID) -> Relatorio:
    """Ocorrências de garantia ``enviado`` (aguardando retorno do fornecedor)."""
    _preparar(db_path)
    pendentes = AuditoriaRepo(db_path, tenant_id).get_all(
        audit_type=TipoAuditoria.GARANTIA, status=StatusAuditoria.ENVIADO
    )
    produto_repo = ProdutoRepo(db_path, tenant_id)
    nomes = {}
    columns = ["Auditoria", "Produto", "Serial ID", "Qtd", "Enviado em", "Descrição"]
    rows = []
    for a in pendentes:
        if a.product_id not in nomes:
            p = produto_repo.get(a.product_id)
            nomes[a.product_id] = p.name if p else str(a.product_id)
        rows.append([a.id, nomes[a.product_id], a.serial_number_id or "", a.quantity,
                     a.reported_at, a.description])
    system_logger.info(f"REPORT_GARANTIAS: {len(rows)} garantias pendentes")
    return columns, rows, (None if rows else "Nenhuma garantia pendente.")


# ----------------------
# 3) Saúde do estoque
# ----------------------

def relatorio_saude_estoque(db_path: str = DB_PATH, tenant_id: str = TENANT_ID) -> Relatorio:
    """Produtos ativos zerados ou abaixo do mínimo, zerados primeiro."""
    _preparar(db_path)
    with connect(db_path) as c:
        dados = c.execute(
            """
            SELECT v.saude, v.category, p.code, p.name, v.current_stock, v.min_stock
            FROM vw_saude_estoque v
            JOIN produto p ON p.id = v.product_id
            WHERE v.tenant_id = ? AND v.saude IS NOT NULL
            ORDER BY CASE v.saude WHEN 'zero' THEN 0 ELSE 1 END, v.category, p.code
            """,
            (tenant_id,),
        ).fetchall()
    log_database_operation("vw_saude_estoque", "SELECT", len(dados))

    columns = ["Situação", "Categoria", "Código", "Nome", "Estoque", "Mínimo"]
    rows = [
        ["Zerado" if d["saude"] == "zero" else "Baixo", _rotulo_categoria(d["category"]),
         d["code"], d["name"], d["current_stock"], d["min_stock"]]
        for d in dados
    ]
    return columns, rows, (None if rows else "Nenhum produto zerado ou abaixo do mínimo.")


# ----------------------
# 4) Ocorrências
# ----------------------

def relatorio_auditorias(
    audit_type: Optional[TipoAuditoria] = None,
    status: Optional[StatusAuditoria] = None,
    db_path: str = DB_PATH,
    tenant_id: str = TENANT_ID,
) -> Relatorio:
    _preparar(db_path)
    auditorias = AuditoriaRepo(db_path, tenant_id).get_all(audit_type=audit_type, status=status)
    columns = ["ID", "Tipo", "Status", "Produto", "Serial ID", "Qtd", "Registrado em",
               "Resolvido em", "Origem", "Descrição"]
    rows = [
        [a.id, ROTULOS_TIPO_AUDITORIA[a.audit_type], a.status.value, a.product_id,
         a.serial_number_id or "", a.quantity, a.reported_at, a.resolved_at or "",
         a.parent_audit_id or "", a.description]
        for a in auditorias
    ]
    return columns, rows, (None if rows else "Nenhuma ocorrência encontrada.")


# ----------------------
# 5) Movimentações
# ----------------------

def relatorio_movimentacoes(
    product_id: Optional[int] = None, db_path: str = DB_PATH, tenant_id: str = TENANT_ID
) -> Relatorio:
    _preparar(db_path)
    movs = MovimentacaoRepo(db_path, tenant_id).get_all(product_id=product_id)
    columns = ["ID", "Produto", "Tipo", "Qtd", "Anterior", "Novo", "Motivo", "Data"]
    rows = [
        [m["id"], m["product_id"], m["movement_type"], m["quantity"],
         m["previous_stock"], m["new_stock"], m["reason"], m["created_at"]]
        for m in movs
    ]
    return columns, rows, (None if rows else "Nenhuma movimentação registrada.")
