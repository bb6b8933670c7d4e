# almoxarifado/usecases/auditorias.py
"""
UC: Livro de ocorrências (auditorias).
- open_audit(): registra defeito/furto/garantia/inventário/resolução.
- submit_bulk_warranty(): envio em lote para garantia (um registro por unidade).
- receive_bulk_warranty(): retorno em lote da garantia.
- resolve_audit(): encerra uma ocorrência, com desfecho opcional.
- update_audit_status(): movimenta na máquina de status.
- list_audits() / resumo_auditorias(): consultas.

Efeitos colaterais por tipo:
- defeito/furto: saída de estoque (piso zero) e unidade -> em_manutencao
- garantia: unidade disponível -> em_manutencao
- resolucao: entrada de estoque e unidade -> disponivel

Registros nunca são apagados; o encerramento é feito por status.
"""

from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, Iterable, List, Optional, Union

from almoxarifado.config import DB_PATH, TENANT_ID, DEFAULTS
from almoxarifado.adapters.parsers import parse_quantidade
from almoxarifado.domain.errors import (
    AlmoxarifadoError, InvalidTransition, NotFound, ValidationError
)
from almoxarifado.domain.models import (
    Auditoria,
    Desfecho,
    NovaAuditoria,
    NumeroSerie,
    Produto,
    ResultadoLote,
    StatusAuditoria,
    StatusSerial,
    TipoAuditoria,
    TipoMovimentacao,
)
from almoxarifado.domain.policies import (
    STATUS_FINAIS,
    pode_transitar_auditoria,
    pode_transitar_serial,
    status_inicial,
)
from almoxarifado.infra.repositories import (
    AuditoriaRepo, NumeroSerieRepo, ProdutoRepo, agora_iso
)
from almoxarifado.infra.logger import (
    log_transaction, log_auditoria, log_system_event
)
from almoxarifado.usecases.catalogo import obter_produto


# Destino da unidade ao abrir cada tipo de ocorrência
_DESTINO_SERIAL = {
    TipoAuditoria.DEFEITO: StatusSerial.EM_MANUTENCAO,
    TipoAuditoria.FURTO: StatusSerial.EM_MANUTENCAO,
    TipoAuditoria.GARANTIA: StatusSerial.EM_MANUTENCAO,
    TipoAuditoria.INVENTARIO: None,
    TipoAuditoria.RESOLUCAO: StatusSerial.DISPONIVEL,
}

_MOVIMENTO = {
    TipoAuditoria.DEFEITO: TipoMovimentacao.SAIDA,
    TipoAuditoria.FURTO: TipoMovimentacao.SAIDA,
    TipoAuditoria.GARANTIA: None,
    TipoAuditoria.INVENTARIO: None,
    TipoAuditoria.RESOLUCAO: TipoMovimentacao.ENTRADA,
}


# -------------------------
# Helpers
# -------------------------

def _validar_descricao(descricao: Optional[str]) -> str:
    texto = (descricao or "").strip()
    if len(texto) < DEFAULTS.descricao_min_chars:
        raise ValidationError(
            f"A descrição deve ter pelo menos {DEFAULTS.descricao_min_chars} caracteres",
            campo="description",
        )
    return texto


def _unidade_do_produto(serial_id: int, produto: Produto, repo: NumeroSerieRepo) -> NumeroSerie:
    unidade = repo.get(serial_id)
    if unidade is None or unidade.product_id != produto.id:
        raise NotFound("Número de série", serial_id)
    return unidade


def _mover_unidade(
    unidade: NumeroSerie,
    destino: Optional[StatusSerial],
    repo: NumeroSerieRepo,
) -> Optional[StatusSerial]:
    """Aplica ``destino`` à unidade e devolve o status anterior.

    Unidade já no destino não é alterada (devolve ``None``). Unidade em
    custódia só sai de ``em_uso`` pela devolução da cautela.
    """
    if destino is None or unidade.status == destino:
        return None
    if unidade.status == StatusSerial.EM_USO or not pode_transitar_serial(unidade.status, destino):
        raise InvalidTransition("Número de série", unidade.id, unidade.status, destino)
    if not repo.compare_and_set_status(unidade.id, unidade.status, destino):
        atual = repo.get(unidade.id)
        raise InvalidTransition("Número de série", unidade.id, atual.status if atual else unidade.status, destino)
    return unidade.status


def _restaurar_unidade(
    unidade: Optional[NumeroSerie], destino: Optional[StatusSerial],
    anterior: Optional[StatusSerial], repo: NumeroSerieRepo,
) -> None:
    """Desfaz ``_mover_unidade`` quando a escrita seguinte falha."""
    if unidade is not None and anterior is not None:
        repo.compare_and_set_status(unidade.id, destino, anterior)


def _como_nova(dados: Union[NovaAuditoria, Dict[str, Any]]) -> NovaAuditoria:
    if isinstance(dados, NovaAuditoria):
        return dados
    campos = {k: v for k, v in dados.items() if k in NovaAuditoria.__dataclass_fields__}
    return NovaAuditoria(**campos)


def _status_pedido(tipo: TipoAuditoria, pedido: Optional[StatusAuditoria]) -> StatusAuditoria:
    inicial = status_inicial(tipo)
    if pedido is None:
        return inicial
    pedido = StatusAuditoria(pedido)
    if pedido != inicial and not pode_transitar_auditoria(inicial, pedido):
        raise ValidationError(
            f"Status {pedido.value} não é válido para ocorrência do tipo {tipo.value}",
            campo="status",
        )
    return pedido


# -------------------------
# Abertura
# -------------------------

def open_audit(
    dados: Union[NovaAuditoria, Dict[str, Any]],
    db_path: str = DB_PATH,
    tenant_id: str = TENANT_ID,
) -> Auditoria:
    """Registra uma ocorrência.

    Validações (antes de qualquer escrita):
    - descrição com pelo menos 10 caracteres;
    - produto informado e existente;
    - unidade, se informada, pertencente ao produto;
    - com unidade a quantidade é sempre 1; sem unidade, ``quantity >= 1``.

    Se a gravação da ocorrência falhar depois de a unidade ter mudado de
    status, o status anterior é restaurado e o erro é propagado.
    """
    nova = _como_nova(dados)
    log_system_event("abrir_auditoria_start", {"product_id": nova.product_id, "tipo": str(nova.audit_type)})
    try:
        try:
            tipo = TipoAuditoria(nova.audit_type)
        except ValueError:
            raise ValidationError(f"Tipo de ocorrência inválido: {nova.audit_type}", campo="audit_type")

        descricao = _validar_descricao(nova.description)
        produto = obter_produto(nova.product_id, db_path, tenant_id)
        serie_repo = NumeroSerieRepo(db_path, tenant_id)

        unidade = None
        if nova.serial_number_id is not None:
            unidade = _unidade_do_produto(nova.serial_number_id, produto, serie_repo)
            quantidade = 1
        else:
            quantidade = parse_quantidade(nova.quantity)
            if quantidade is None or quantidade < DEFAULTS.quantidade_min:
                raise ValidationError("A quantidade deve ser maior ou igual a 1", campo="quantity")

        status = _status_pedido(tipo, nova.status)

        anterior = None
        if unidade is not None:
            anterior = _mover_unidade(unidade, _DESTINO_SERIAL[tipo], serie_repo)

        row = {
            "product_id": produto.id,
            "serial_number_id": unidade.id if unidade else None,
            "audit_type": tipo,
            "status": status,
            "quantity": quantidade,
            "description": descricao,
            "reported_by": nova.reported_by,
            "parent_audit_id": nova.parent_audit_id,
            "resolved_at": agora_iso() if status in STATUS_FINAIS else None,
        }
        try:
            auditoria = AuditoriaRepo(db_path, tenant_id).insert(row)
        except Exception:
            _restaurar_unidade(unidade, _DESTINO_SERIAL[tipo], anterior, serie_repo)
            raise

        movimento = _MOVIMENTO[tipo]
        if movimento is not None:
            delta = quantidade if movimento == TipoMovimentacao.ENTRADA else -quantidade
            ProdutoRepo(db_path, tenant_id).aplicar_movimento(
                produto.id, delta, movimento,
                f"{tipo.value.capitalize()}: {descricao}",
                serial_number_id=auditoria.serial_number_id,
                piso_zero=True,
            )

        log_auditoria("aberta", tipo.value, produto.id, quantidade,
                      id=auditoria.id, status=status.value, serial_id=auditoria.serial_number_id)
        log_transaction("abrir_auditoria", asdict(nova), result={"id": auditoria.id})
        return auditoria
    except Exception as e:
        log_transaction("abrir_auditoria", {"product_id": nova.product_id}, error=str(e))
        log_system_event("abrir_auditoria_error", {"error": str(e)}, level="error")
        raise


# -------------------------
# Garantia em lote
# -------------------------

def submit_bulk_warranty(
    produto_id: int,
    descricao: str,
    serial_ids: Optional[Iterable[int]] = None,
    quantidade: Optional[int] = None,
    reported_by: Optional[str] = None,
    db_path: str = DB_PATH,
    tenant_id: str = TENANT_ID,
) -> ResultadoLote:
    """Envia itens para garantia.

    Produto serializado: um registro ``garantia/enviado`` com quantidade 1
    para cada unidade selecionada, todas em ``em_manutencao``. Cada unidade
    é uma escrita independente; falhas são acumuladas no resultado e os
    registros já criados permanecem.

    Produto a granel: um único registro com ``quantidade`` limitada ao
    estoque atual, e a saída correspondente do estoque.
    """
    log_system_event("garantia_lote_start", {"product_id": produto_id})
    resultado = ResultadoLote()
    try:
        texto = _validar_descricao(descricao)
        produto = obter_produto(produto_id, db_path, tenant_id)
        audit_repo = AuditoriaRepo(db_path, tenant_id)

        if produto.is_serialized:
            ids = list(serial_ids or [])
            if not ids:
                raise ValidationError("Selecione ao menos um número de série", campo="serial_ids")
            if len(set(ids)) != len(ids):
                raise ValidationError("Número de série repetido na seleção", campo="serial_ids")

            serie_repo = NumeroSerieRepo(db_path, tenant_id)
            for sid in ids:
                try:
                    unidade = _unidade_do_produto(sid, produto, serie_repo)
                    if unidade.status != StatusSerial.EM_MANUTENCAO:
                        raise InvalidTransition(
                            "Número de série", sid, unidade.status, StatusSerial.EM_MANUTENCAO
                        )
                    auditoria = audit_repo.insert({
                        "product_id": produto.id,
                        "serial_number_id": unidade.id,
                        "audit_type": TipoAuditoria.GARANTIA,
                        "status": StatusAuditoria.ENVIADO,
                        "quantity": 1,
                        "description": texto,
                        "reported_by": reported_by,
                    })
                    resultado.sucesso.append(auditoria)
                    log_auditoria("garantia_enviada", TipoAuditoria.GARANTIA.value, produto.id, 1,
                                  id=auditoria.id, serial_id=sid)
                except AlmoxarifadoError as e:
                    resultado.falhas.append({"id": sid, "code": e.code, "erro": e.message})
                    log_auditoria("garantia_falhou", TipoAuditoria.GARANTIA.value, produto.id, 1,
                                  serial_id=sid, erro=e.message)
        else:
            qtd = parse_quantidade(quantidade)
            if qtd is None or qtd < DEFAULTS.quantidade_min:
                raise ValidationError("A quantidade deve ser maior ou igual a 1", campo="quantity")
            if qtd > produto.current_stock:
                raise ValidationError(
                    f"Quantidade {qtd} maior que o estoque atual ({produto.current_stock})",
                    campo="quantity",
                )
            auditoria = audit_repo.insert({
                "product_id": produto.id,
                "audit_type": TipoAuditoria.GARANTIA,
                "status": StatusAuditoria.ENVIADO,
                "quantity": qtd,
                "description": texto,
                "reported_by": reported_by,
            })
            ProdutoRepo(db_path, tenant_id).aplicar_movimento(
                produto.id, -qtd, TipoMovimentacao.SAIDA, f"Garantia: {texto}", piso_zero=True
            )
            resultado.sucesso.append(auditoria)
            log_auditoria("garantia_enviada", TipoAuditoria.GARANTIA.value, produto.id, qtd, id=auditoria.id)

        log_transaction("garantia_lote", {"product_id": produto_id},
                        result={"sucesso": len(resultado.sucesso), "falhas": resultado.ids_falhos()})
        return resultado
    except Exception as e:
        log_transaction("garantia_lote", {"product_id": produto_id}, error=str(e))
        log_system_event("garantia_lote_error", {"error": str(e)}, level="error")
        raise


def receive_bulk_warranty(
    audit_ids: Iterable[int],
    notas: Optional[str] = None,
    db_path: str = DB_PATH,
    tenant_id: str = TENANT_ID,
) -> ResultadoLote:
    """Registra o retorno de garantias enviadas.

    Para cada ocorrência ``enviado``: status -> ``recebido``, unidade (se
    houver) -> ``disponivel`` e entrada da quantidade no estoque.
    """
    ids = list(audit_ids)
    if not ids:
        raise ValidationError("Selecione ao menos uma garantia", campo="audit_ids")

    audit_repo = AuditoriaRepo(db_path, tenant_id)
    serie_repo = NumeroSerieRepo(db_path, tenant_id)
    produto_repo = ProdutoRepo(db_path, tenant_id)
    observacao = (notas or "").strip() or None
    resultado = ResultadoLote()

    for aid in ids:
        try:
            auditoria = audit_repo.get(aid)
            if auditoria is None:
                raise NotFound("Auditoria", aid)
            if auditoria.audit_type != TipoAuditoria.GARANTIA:
                raise ValidationError(f"Auditoria {aid} não é de garantia", campo="audit_ids")
            if auditoria.status != StatusAuditoria.ENVIADO:
                raise InvalidTransition("Auditoria", aid, auditoria.status, StatusAuditoria.RECEBIDO)

            # unidade antes da ocorrência; falha aqui mantém 'enviado'
            unidade = None
            if auditoria.serial_number_id is not None:
                unidade = serie_repo.get(auditoria.serial_number_id)
            anterior = _mover_unidade(unidade, StatusSerial.DISPONIVEL, serie_repo) if unidade else None
            try:
                ok = audit_repo.compare_and_set_status(
                    aid, StatusAuditoria.ENVIADO, StatusAuditoria.RECEBIDO, resolution_notes=observacao
                )
            except Exception:
                _restaurar_unidade(unidade, StatusSerial.DISPONIVEL, anterior, serie_repo)
                raise
            if not ok:
                _restaurar_unidade(unidade, StatusSerial.DISPONIVEL, anterior, serie_repo)
                atual = audit_repo.get(aid)
                raise InvalidTransition("Auditoria", aid, atual.status, StatusAuditoria.RECEBIDO)

            produto_repo.aplicar_movimento(
                auditoria.product_id, auditoria.quantity, TipoMovimentacao.ENTRADA,
                "Retorno de garantia", serial_number_id=auditoria.serial_number_id,
            )
            resultado.sucesso.append(audit_repo.get(aid))
            log_auditoria("garantia_recebida", TipoAuditoria.GARANTIA.value,
                          auditoria.product_id, auditoria.quantity, id=aid)
        except AlmoxarifadoError as e:
            resultado.falhas.append({"id": aid, "code": e.code, "erro": e.message})
            log_auditoria("garantia_retorno_falhou", TipoAuditoria.GARANTIA.value, None, erro=e.message, id=aid)

    log_transaction("receber_garantia", {"ids": ids},
                    result={"sucesso": len(resultado.sucesso), "falhas": resultado.ids_falhos()})
    return resultado


# -------------------------
# Encerramento e status
# -------------------------

def resolve_audit(
    audit_id: int,
    notas: str,
    desfecho: Optional[Desfecho] = None,
    db_path: str = DB_PATH,
    tenant_id: str = TENANT_ID,
) -> Auditoria:
    """Encerra a ocorrência como ``resolvido``.

    Para defeito/furto um ``desfecho`` pode ser informado:
    - ``retorno``: cria a ocorrência filha ``resolucao``, devolve a unidade
      para ``disponivel`` e dá entrada da quantidade no estoque;
    - ``descarte``: cria a ocorrência filha e dá baixa da unidade
      (``descartado``), sem mexer no estoque.

    Se a unidade não puder mudar (ex.: em custódia) nada é gravado e a
    ocorrência continua aberta.
    """
    texto = (notas or "").strip()
    if not texto:
        raise ValidationError("Informe as notas de resolução", campo="resolution_notes")

    audit_repo = AuditoriaRepo(db_path, tenant_id)
    auditoria = audit_repo.get(audit_id)
    if auditoria is None:
        raise NotFound("Auditoria", audit_id)

    if desfecho is not None:
        desfecho = Desfecho(desfecho)
        if auditoria.audit_type not in (TipoAuditoria.DEFEITO, TipoAuditoria.FURTO):
            raise ValidationError("Desfecho só se aplica a defeito ou furto", campo="desfecho")

    if not pode_transitar_auditoria(auditoria.status, StatusAuditoria.RESOLVIDO):
        raise InvalidTransition("Auditoria", audit_id, auditoria.status, StatusAuditoria.RESOLVIDO)

    agora = agora_iso()
    serie_repo = NumeroSerieRepo(db_path, tenant_id)
    unidade = destino = anterior = filha = None
    if desfecho is not None:
        destino = StatusSerial.DISPONIVEL if desfecho == Desfecho.RETORNO else StatusSerial.DESCARTADO
        if auditoria.serial_number_id is not None:
            unidade = serie_repo.get(auditoria.serial_number_id)
        # unidade antes da ocorrência; falha aqui não grava nada
        if unidade is not None:
            anterior = _mover_unidade(unidade, destino, serie_repo)
        filha = {
            "product_id": auditoria.product_id,
            "serial_number_id": auditoria.serial_number_id,
            "audit_type": TipoAuditoria.RESOLUCAO,
            "status": StatusAuditoria.RESOLVIDO,
            "quantity": auditoria.quantity,
            "description": f"Resolução de auditoria: {texto}",
            "resolved_at": agora,
            "resolution_notes": desfecho.value,
            "parent_audit_id": audit_id,
        }

    try:
        ok, filha_id = audit_repo.resolver(audit_id, auditoria.status, agora, texto, filha)
    except Exception:
        _restaurar_unidade(unidade, destino, anterior, serie_repo)
        raise
    if not ok:
        _restaurar_unidade(unidade, destino, anterior, serie_repo)
        atual = audit_repo.get(audit_id)
        raise InvalidTransition("Auditoria", audit_id, atual.status, StatusAuditoria.RESOLVIDO)
    log_auditoria("resolvida", auditoria.audit_type.value, auditoria.product_id, id=audit_id)

    if desfecho is not None:
        if desfecho == Desfecho.RETORNO:
            ProdutoRepo(db_path, tenant_id).aplicar_movimento(
                auditoria.product_id, auditoria.quantity, TipoMovimentacao.ENTRADA,
                f"Resolução: {texto}", serial_number_id=auditoria.serial_number_id,
            )
        log_auditoria("resolucao_criada", TipoAuditoria.RESOLUCAO.value, auditoria.product_id,
                      auditoria.quantity, id=filha_id, parent=audit_id, desfecho=desfecho.value)

    log_transaction("resolver_auditoria", {"id": audit_id, "desfecho": getattr(desfecho, "value", None)},
                    result="resolvido")
    return audit_repo.get(audit_id)


def update_audit_status(
    audit_id: int,
    novo_status: StatusAuditoria,
    notas: Optional[str] = None,
    db_path: str = DB_PATH,
    tenant_id: str = TENANT_ID,
) -> Auditoria:
    """Avança a ocorrência na máquina de status (sem efeitos em estoque)."""
    try:
        novo_status = StatusAuditoria(novo_status)
    except ValueError:
        raise ValidationError(f"Status inválido: {novo_status}", campo="status")

    repo = AuditoriaRepo(db_path, tenant_id)
    auditoria = repo.get(audit_id)
    if auditoria is None:
        raise NotFound("Auditoria", audit_id)
    if not pode_transitar_auditoria(auditoria.status, novo_status):
        raise InvalidTransition("Auditoria", audit_id, auditoria.status, novo_status)

    resolved_at = agora_iso() if novo_status in STATUS_FINAIS else None
    texto = (notas or "").strip() or None
    if not repo.compare_and_set_status(audit_id, auditoria.status, novo_status,
                                       resolved_at=resolved_at, resolution_notes=texto):
        atual = repo.get(audit_id)
        raise InvalidTransition("Auditoria", audit_id, atual.status, novo_status)

    log_auditoria("status", auditoria.audit_type.value, auditoria.product_id,
                  id=audit_id, de=auditoria.status.value, para=novo_status.value)
    return repo.get(audit_id)


# -------------------------
# Consultas
# -------------------------

def list_audits(
    audit_type: Optional[TipoAuditoria] = None,
    status: Optional[StatusAuditoria] = None,
    product_id: Optional[int] = None,
    db_path: str = DB_PATH,
    tenant_id: str = TENANT_ID,
) -> List[Dict[str, Any]]:
    """Lista ocorrências (mais recentes primeiro) com a origem e as resoluções.

    Cada item: ``{"auditoria": Auditoria, "pai": Auditoria | None,
    "resolucoes": [Auditoria, ...]}``.
    """
    repo = AuditoriaRepo(db_path, tenant_id)
    itens = []
    for a in repo.get_all(audit_type=audit_type, status=status, product_id=product_id):
        pai = repo.get(a.parent_audit_id) if a.parent_audit_id else None
        itens.append({"auditoria": a, "pai": pai, "resolucoes": repo.filhas(a.id)})
    return itens


def resumo_auditorias(db_path: str = DB_PATH, tenant_id: str = TENANT_ID) -> Dict[str, int]:
    """Contagem de ocorrências por status (todos os status aparecem)."""
    contagem = AuditoriaRepo(db_path, tenant_id).contagem_por_status()
    return {s.value: contagem.get(s.value, 0) for s in StatusAuditoria}
