# almoxarifado/usecases/registro_seriais.py
"""
UC: Registro de números de série.
- registrar_entrada_seriais(): cria unidades ``disponivel`` na entrada de estoque.
- find_available(): lista unidades elegíveis (por padrão ``disponivel``).
- resolve_by_serial_text(): casa o texto lido/digitado com uma unidade.
- transition(): muda o status respeitando o ciclo de vida.
- saldo_produto(): saldo contado (granel) ou derivado das unidades (serializado).

Ciclo de vida:
    disponivel    -> em_uso | em_manutencao | descartado
    em_uso        -> disponivel
    em_manutencao -> disponivel | descartado
    descartado    -> (fim)
"""

from __future__ import annotations

from typing import Iterable, List, Optional

from almoxarifado.config import DB_PATH, TENANT_ID
from almoxarifado.adapters.parsers import normalizar_serial
from almoxarifado.domain.errors import InvalidTransition, NotFound, ValidationError
from almoxarifado.domain.models import (
    Contado,
    DerivadoDeSeriais,
    NumeroSerie,
    Saldo,
    StatusSerial,
    TipoMovimentacao,
)
from almoxarifado.domain.policies import pode_transitar_serial
from almoxarifado.infra.repositories import NumeroSerieRepo, ProdutoRepo
from almoxarifado.infra.logger import (
    log_transaction, log_serial, log_database_operation, log_system_event
)
from almoxarifado.usecases.catalogo import obter_produto


def find_available(
    produto_id: int,
    status: StatusSerial = StatusSerial.DISPONIVEL,
    db_path: str = DB_PATH,
    tenant_id: str = TENANT_ID,
) -> List[NumeroSerie]:
    """Unidades do produto no status pedido.

    O padrão é ``disponivel``; a listagem de itens elegíveis para envio à
    garantia usa ``em_manutencao``.
    """
    return NumeroSerieRepo(db_path, tenant_id).get_all(product_id=produto_id, status=status)


def resolve_by_serial_text(
    texto: str,
    produto_id: Optional[int] = None,
    db_path: str = DB_PATH,
    tenant_id: str = TENANT_ID,
) -> NumeroSerie:
    """Busca exata (sem diferenciar caixa) pelo serial, no produto ou no tenant."""
    serial = normalizar_serial(texto)
    if serial is None:
        raise ValidationError("Digite um número de série", campo="serial_number")
    unidade = NumeroSerieRepo(db_path, tenant_id).find_by_text(serial, product_id=produto_id)
    if unidade is None:
        log_serial("not_found", serial, product_id=produto_id)
        raise NotFound("Número de série", serial)
    return unidade


def transition(
    serial_id: int,
    novo_status: StatusSerial,
    assigned_to: Optional[str] = None,
    db_path: str = DB_PATH,
    tenant_id: str = TENANT_ID,
) -> NumeroSerie:
    """Move a unidade para ``novo_status``.

    Raises:
        NotFound: unidade inexistente.
        InvalidTransition: o passo não existe no ciclo de vida, ou outra
            sessão mudou o status entre a leitura e a escrita.
    """
    novo_status = StatusSerial(novo_status)
    repo = NumeroSerieRepo(db_path, tenant_id)
    unidade = repo.get(serial_id)
    if unidade is None:
        raise NotFound("Número de série", serial_id)

    if not pode_transitar_serial(unidade.status, novo_status):
        log_serial("transition_rejected", unidade.serial_number, unidade.status.value, destino=novo_status.value)
        raise InvalidTransition("Número de série", serial_id, unidade.status, novo_status)

    if not repo.compare_and_set_status(serial_id, unidade.status, novo_status, assigned_to=assigned_to):
        atual = repo.get(serial_id)
        log_serial("transition_conflict", unidade.serial_number, atual.status.value if atual else None,
                   destino=novo_status.value)
        raise InvalidTransition(
            "Número de série", serial_id, atual.status if atual else unidade.status, novo_status
        )

    log_database_operation("numero_serie", "UPDATE", 1, id=serial_id, status=novo_status.value)
    log_serial("transition", unidade.serial_number, novo_status.value, anterior=unidade.status.value)
    return repo.get(serial_id)


def registrar_entrada_seriais(
    produto_id: int,
    seriais: Iterable[str],
    motivo: Optional[str] = None,
    db_path: str = DB_PATH,
    tenant_id: str = TENANT_ID,
) -> List[NumeroSerie]:
    """Registra a entrada de unidades serializadas de um produto.

    Todas as validações acontecem antes de qualquer escrita:
    - o produto existe e é serializado;
    - a lista não é vazia e não tem seriais em branco;
    - não há repetição dentro da própria lista (sem diferenciar caixa);
    - nenhum serial já existe no tenant.
    """
    log_system_event("entrada_seriais_start", {"product_id": produto_id})
    try:
        produto = obter_produto(produto_id, db_path, tenant_id)
        if not produto.is_serialized:
            raise ValidationError(f"Produto {produto.code} não é serializado", campo="product_id")

        lista = [normalizar_serial(s) for s in seriais]
        if not lista:
            raise ValidationError(f"Informe o(s) número(s) de série para {produto.name}", campo="serial_numbers")
        if any(s is None for s in lista):
            raise ValidationError("Número de série em branco", campo="serial_numbers")
        if len({s.lower() for s in lista}) != len(lista):
            raise ValidationError(f"Números de série duplicados na entrada para {produto.name}",
                                  campo="serial_numbers", code="DUPLICATE")

        serie_repo = NumeroSerieRepo(db_path, tenant_id)
        ja_existem = serie_repo.existentes(lista)
        if ja_existem:
            raise ValidationError(f"Número(s) de série já cadastrado(s): {', '.join(ja_existem)}",
                                  campo="serial_numbers", code="DUPLICATE")

        criados = serie_repo.insert_many(produto.id, lista)
        log_database_operation("numero_serie", "INSERT_MANY", len(criados), product_id=produto.id)

        ProdutoRepo(db_path, tenant_id).aplicar_movimento(
            produto.id, len(criados), TipoMovimentacao.ENTRADA,
            motivo or f"Entrada de {len(criados)} unidade(s) serializada(s)",
        )
        for u in criados:
            log_serial("entrada", u.serial_number, u.status.value, product_id=produto.id)

        log_transaction("entrada_seriais", {"product_id": produto.id, "seriais": lista},
                        result={"criados": len(criados)})
        return criados
    except Exception as e:
        log_transaction("entrada_seriais", {"product_id": produto_id}, error=str(e))
        log_system_event("entrada_seriais_error", {"error": str(e)}, level="error")
        raise


def saldo_produto(produto_id: int, db_path: str = DB_PATH, tenant_id: str = TENANT_ID) -> Saldo:
    """Saldo autoritativo do produto.

    Para produtos a granel é o ``current_stock`` gravado; para serializados
    é a contagem das unidades não descartadas, ignorando o contador.
    """
    produto = obter_produto(produto_id, db_path, tenant_id)
    if produto.is_serialized:
        qtd = ProdutoRepo(db_path, tenant_id).saldo_serializado(produto.id)
        return DerivadoDeSeriais(produto_id=produto.id, quantidade=qtd)
    return Contado(quantidade=produto.current_stock)
