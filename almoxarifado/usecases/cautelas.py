# almoxarifado/usecases/cautelas.py
"""
UC: Cautelas (custódia de itens por técnico).

Emissão de unidade serializada:
1) valida assinatura e status 'disponivel'
2) CAS disponivel -> em_uso (falha se outra sessão emitiu antes)
3) grava a cautela; se a gravação falhar, a unidade volta a 'disponivel'

Devolução: grava returned_at (só se ainda ativa), anexa o motivo às notas
e devolve a unidade para 'disponivel'.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Any, Dict, List, Optional

from almoxarifado.config import DB_PATH, TENANT_ID
from almoxarifado.adapters.parsers import (
    anexar_motivo_devolucao, ler_notas, montar_notas, parse_quantidade
)
from almoxarifado.domain.errors import InvalidTransition, NotFound, ValidationError
from almoxarifado.domain.models import (
    Ativo,
    AtivoProduto,
    AtivoSerial,
    Cautela,
    StatusSerial,
    TipoAtivo,
)
from almoxarifado.infra.repositories import CautelaRepo, NumeroSerieRepo, agora_iso
from almoxarifado.infra.logger import log_transaction, log_cautela, log_system_event
from almoxarifado.usecases.catalogo import obter_produto


def issue(
    tecnico_id: str,
    ativo: Ativo,
    quantidade: int = 1,
    assinatura: Optional[str] = None,
    notas: Optional[str] = None,
    assigned_at: Optional[str] = None,
    db_path: str = DB_PATH,
    tenant_id: str = TENANT_ID,
) -> Cautela:
    """Emite uma cautela para o técnico.

    Raises:
        ValidationError: técnico ou assinatura ausentes (``SIGNATURE_REQUIRED``),
            quantidade fora da faixa.
        NotFound: unidade/produto inexistente.
        InvalidTransition: unidade fora de ``disponivel``.
    """
    log_system_event("emitir_cautela_start", {"technician_id": tecnico_id, "ativo": repr(ativo)})
    try:
        tecnico = (tecnico_id or "").strip()
        if not tecnico:
            raise ValidationError("Selecione o colaborador", campo="technician_id")
        if not assinatura or not str(assinatura).strip():
            raise ValidationError("Assinatura obrigatória", campo="signature", code="SIGNATURE_REQUIRED")

        repo = CautelaRepo(db_path, tenant_id)
        row: Dict[str, Any] = {
            "technician_id": tecnico,
            "assigned_at": assigned_at or agora_iso(),
            "notes": montar_notas(assinatura, notas),
        }

        if isinstance(ativo, AtivoSerial):
            serie_repo = NumeroSerieRepo(db_path, tenant_id)
            unidade = serie_repo.get(ativo.serial_id)
            if unidade is None:
                raise NotFound("Número de série", ativo.serial_id)
            if unidade.status != StatusSerial.DISPONIVEL:
                raise InvalidTransition("Número de série", unidade.id, unidade.status, StatusSerial.EM_USO)
            if not serie_repo.compare_and_set_status(
                unidade.id, StatusSerial.DISPONIVEL, StatusSerial.EM_USO, assigned_to=tecnico
            ):
                atual = serie_repo.get(unidade.id)
                raise InvalidTransition("Número de série", unidade.id, atual.status, StatusSerial.EM_USO)

            row.update(asset_type=TipoAtivo.SERIAL, serial_number_id=unidade.id, quantity=1)
            try:
                cautela = repo.insert(row)
            except Exception:
                serie_repo.compare_and_set_status(unidade.id, StatusSerial.EM_USO, StatusSerial.DISPONIVEL)
                raise
            log_cautela("emitida", tecnico, id=cautela.id, serial=unidade.serial_number)

        elif isinstance(ativo, AtivoProduto):
            produto = obter_produto(ativo.produto_id, db_path, tenant_id)
            qtd = parse_quantidade(quantidade)
            if qtd is None or qtd < 1:
                raise ValidationError("A quantidade deve ser maior ou igual a 1", campo="quantity")
            if qtd > produto.current_stock:
                raise ValidationError(
                    f"Quantidade {qtd} maior que o estoque atual ({produto.current_stock})",
                    campo="quantity",
                )
            row.update(asset_type=TipoAtivo.PRODUTO, product_id=produto.id, quantity=qtd)
            cautela = repo.insert(row)
            log_cautela("emitida", tecnico, id=cautela.id, product_id=produto.id, quantidade=qtd)

        else:
            raise ValidationError("Selecione um item", campo="asset")

        log_transaction("emitir_cautela", {"technician_id": tecnico, "ativo": repr(ativo)},
                        result={"id": cautela.id})
        return cautela
    except Exception as e:
        log_transaction("emitir_cautela", {"technician_id": tecnico_id}, error=str(e))
        log_system_event("emitir_cautela_error", {"error": str(e)}, level="error")
        raise


def return_asset(
    cautela_id: int,
    motivo: str,
    db_path: str = DB_PATH,
    tenant_id: str = TENANT_ID,
) -> Cautela:
    """Registra a devolução de uma cautela ativa."""
    texto = (motivo or "").strip()
    if not texto:
        raise ValidationError("Informe o motivo da devolução", campo="reason")

    repo = CautelaRepo(db_path, tenant_id)
    cautela = repo.get(cautela_id)
    if cautela is None:
        raise NotFound("Cautela", cautela_id)
    if not cautela.ativa:
        raise InvalidTransition("Cautela", cautela_id, "devolvida", "devolvida")

    if not repo.registrar_devolucao(cautela_id, agora_iso(), anexar_motivo_devolucao(cautela.notes, texto)):
        raise InvalidTransition("Cautela", cautela_id, "devolvida", "devolvida")

    if cautela.serial_number_id is not None:
        serie_repo = NumeroSerieRepo(db_path, tenant_id)
        if not serie_repo.compare_and_set_status(
            cautela.serial_number_id, StatusSerial.EM_USO, StatusSerial.DISPONIVEL
        ):
            unidade = serie_repo.get(cautela.serial_number_id)
            log_cautela("devolucao_sem_transicao", cautela.technician_id, id=cautela_id,
                        status=unidade.status.value if unidade else None)

    log_cautela("devolvida", cautela.technician_id, id=cautela_id, motivo=texto)
    log_transaction("devolver_cautela", {"id": cautela_id, "motivo": texto}, result="devolvida")
    return repo.get(cautela_id)


def active_assignments(tecnico_id: str, db_path: str = DB_PATH, tenant_id: str = TENANT_ID) -> List[Cautela]:
    return CautelaRepo(db_path, tenant_id).get_all(technician_id=tecnico_id, ativas=True)


def historico_cautelas(tecnico_id: str, db_path: str = DB_PATH, tenant_id: str = TENANT_ID) -> List[Cautela]:
    return CautelaRepo(db_path, tenant_id).get_all(technician_id=tecnico_id)


def itens_sob_responsabilidade(tecnico_id: str, db_path: str = DB_PATH, tenant_id: str = TENANT_ID) -> int:
    """Soma das quantidades em cautelas ativas do técnico."""
    return sum(c.quantity for c in active_assignments(tecnico_id, db_path, tenant_id))


def ficha_cautela(
    tecnico_id: str,
    apenas_ativas: bool = False,
    db_path: str = DB_PATH,
    tenant_id: str = TENANT_ID,
) -> Dict[str, List[Dict[str, Any]]]:
    """Ficha de cautela do técnico agrupada por categoria.

    Uma linha por cautela: item, serial, quantidade, data de entrega, data
    de devolução e motivo da devolução.
    """
    grupos: Dict[str, List[Dict[str, Any]]] = defaultdict(list)
    for r in CautelaRepo(db_path, tenant_id).linhas_ficha(tecnico_id):
        if apenas_ativas and r["returned_at"] is not None:
            continue
        notas = ler_notas(r["notes"])
        grupos[r["category"] or "sem_categoria"].append({
            "item": r["product_name"],
            "codigo": r["product_code"],
            "serial": r["serial_number"],
            "quantidade": r["quantity"],
            "unidade": r["unit"],
            "entrega": r["assigned_at"],
            "devolucao": r["returned_at"],
            "motivo": notas.get("returnReason"),
            "observacao": notas.get("text"),
        })
    return dict(grupos)
