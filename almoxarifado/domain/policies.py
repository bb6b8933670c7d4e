"""
Políticas de negócio do almoxarifado.

Este módulo concentra as tabelas finitas do domínio (ciclo de vida dos
números de série, máquina de status das auditorias, status inicial por
tipo de ocorrência) e as regras de classificação de saúde do estoque.
Cada tabela é indexada pela enumeração correspondente e cobre todos os
seus membros; ``verificar_tabelas`` falha se um membro novo ficar sem
entrada.
"""

from __future__ import annotations

from typing import Dict, FrozenSet, Iterable, Mapping, Optional

from almoxarifado.domain.models import (
    Badge,
    Categoria,
    StatusAuditoria,
    StatusSerial,
    TipoAuditoria,
)


TRANSICOES_SERIAL: Dict[StatusSerial, FrozenSet[StatusSerial]] = {
    StatusSerial.DISPONIVEL: frozenset(
        {StatusSerial.EM_USO, StatusSerial.EM_MANUTENCAO, StatusSerial.DESCARTADO}
    ),
    # em custódia: precisa ser devolvido antes de qualquer outra mudança
    StatusSerial.EM_USO: frozenset({StatusSerial.DISPONIVEL}),
    StatusSerial.EM_MANUTENCAO: frozenset({StatusSerial.DISPONIVEL, StatusSerial.DESCARTADO}),
    StatusSerial.DESCARTADO: frozenset(),
}

TRANSICOES_AUDITORIA: Dict[StatusAuditoria, FrozenSet[StatusAuditoria]] = {
    StatusAuditoria.ABERTO: frozenset(
        {StatusAuditoria.EM_ANALISE, StatusAuditoria.RESOLVIDO, StatusAuditoria.CANCELADO}
    ),
    StatusAuditoria.EM_ANALISE: frozenset({StatusAuditoria.RESOLVIDO, StatusAuditoria.CANCELADO}),
    StatusAuditoria.ENVIADO: frozenset(
        {StatusAuditoria.RECEBIDO, StatusAuditoria.RESOLVIDO, StatusAuditoria.CANCELADO}
    ),
    StatusAuditoria.RECEBIDO: frozenset({StatusAuditoria.RESOLVIDO}),
    StatusAuditoria.RESOLVIDO: frozenset(),
    StatusAuditoria.CANCELADO: frozenset(),
}

STATUS_INICIAL: Dict[TipoAuditoria, StatusAuditoria] = {
    TipoAuditoria.DEFEITO: StatusAuditoria.ABERTO,
    TipoAuditoria.FURTO: StatusAuditoria.ABERTO,
    TipoAuditoria.GARANTIA: StatusAuditoria.ENVIADO,
    TipoAuditoria.INVENTARIO: StatusAuditoria.RESOLVIDO,
    TipoAuditoria.RESOLUCAO: StatusAuditoria.ABERTO,
}

# Unidades que ainda fazem parte do patrimônio (entram no saldo derivado)
STATUS_EM_ESTOQUE: FrozenSet[StatusSerial] = frozenset(
    {StatusSerial.DISPONIVEL, StatusSerial.EM_USO, StatusSerial.EM_MANUTENCAO}
)

# Status que encerram uma ocorrência
STATUS_FINAIS: FrozenSet[StatusAuditoria] = frozenset(
    {StatusAuditoria.RESOLVIDO, StatusAuditoria.CANCELADO}
)

ROTULOS_CATEGORIA: Dict[Categoria, str] = {
    Categoria.EPI: "EPI",
    Categoria.EPC: "EPC",
    Categoria.FERRAMENTAS: "Ferramentas",
    Categoria.MATERIAIS: "Materiais",
    Categoria.EQUIPAMENTOS: "Equipamentos",
}

ROTULOS_STATUS_SERIAL: Dict[StatusSerial, str] = {
    StatusSerial.DISPONIVEL: "Disponível",
    StatusSerial.EM_USO: "Em Uso",
    StatusSerial.EM_MANUTENCAO: "Em Manutenção",
    StatusSerial.DESCARTADO: "Descartado",
}

ROTULOS_TIPO_AUDITORIA: Dict[TipoAuditoria, str] = {
    TipoAuditoria.DEFEITO: "Defeito",
    TipoAuditoria.FURTO: "Furto",
    TipoAuditoria.GARANTIA: "Garantia",
    TipoAuditoria.INVENTARIO: "Inventário",
    TipoAuditoria.RESOLUCAO: "Resolução",
}


def _cobre(tabela: Mapping, membros: Iterable) -> bool:
    return set(tabela.keys()) == set(membros)


def verificar_tabelas() -> None:
    """Garante que toda tabela finita cobre todos os membros da sua enumeração.

    Raises:
        AssertionError: se algum membro estiver sem entrada.
    """
    pares = [
        (TRANSICOES_SERIAL, StatusSerial),
        (TRANSICOES_AUDITORIA, StatusAuditoria),
        (STATUS_INICIAL, TipoAuditoria),
        (ROTULOS_CATEGORIA, Categoria),
        (ROTULOS_STATUS_SERIAL, StatusSerial),
        (ROTULOS_TIPO_AUDITORIA, TipoAuditoria),
    ]
    for tabela, enum_cls in pares:
        if not _cobre(tabela, enum_cls):
            faltando = set(enum_cls) - set(tabela.keys())
            raise AssertionError(f"Tabela sem entrada para {enum_cls.__name__}: {faltando}")


def pode_transitar_serial(atual: StatusSerial, destino: StatusSerial) -> bool:
    """Indica se ``atual -> destino`` é um passo válido do ciclo de vida."""
    return StatusSerial(destino) in TRANSICOES_SERIAL[StatusSerial(atual)]


def pode_transitar_auditoria(atual: StatusAuditoria, destino: StatusAuditoria) -> bool:
    return StatusAuditoria(destino) in TRANSICOES_AUDITORIA[StatusAuditoria(atual)]


def status_inicial(tipo: TipoAuditoria) -> StatusAuditoria:
    """Status com que uma ocorrência nasce.

    ``garantia`` nasce ``enviado`` (o item já saiu para o fornecedor),
    ``inventario`` nasce ``resolvido`` (contagem é autoconclusiva) e os
    demais tipos nascem ``aberto``.
    """
    return STATUS_INICIAL[TipoAuditoria(tipo)]


def classificar_produto(current_stock: Optional[int], min_stock: Optional[int]) -> Optional[str]:
    """Classifica a saúde de estoque de um único produto.

    Regras:
        - ``current_stock == 0`` → ``'zero'``
        - ``0 < current_stock < min_stock`` com ``min_stock > 0`` → ``'baixo'``
        - caso contrário → ``None``

    Produtos com ``min_stock <= 0`` nunca são classificados como baixos.
    Valores ausentes contam como zero.
    """
    estoque = int(current_stock or 0)
    minimo = int(min_stock or 0)
    if estoque == 0:
        return "zero"
    if minimo > 0 and 0 < estoque < minimo:
        return "baixo"
    return None


def badge_estoque(zerados: int, baixos: int) -> Badge:
    """Monta o indicador único de um agrupamento.

    A contagem de zerados tem prioridade: quando existe qualquer produto
    zerado o badge mostra esse número com a severidade mais alta, mesmo
    que também existam produtos abaixo do mínimo.
    """
    if zerados > 0:
        return Badge(severidade="zero", contagem=int(zerados))
    if baixos > 0:
        return Badge(severidade="baixo", contagem=int(baixos))
    return Badge(severidade=None, contagem=0)


def descricao_inventario(sistema: int, real: int, notas: Optional[str] = None) -> str:
    """Resumo legível de uma contagem física.

    Exemplo:
        ``descricao_inventario(10, 7)`` → ``'Inventário: Sistema 10 → Real 7 (-3)'``
    """
    diferenca = int(real) - int(sistema)
    sinal = "+" if diferenca >= 0 else ""
    texto = f"Inventário: Sistema {sistema} → Real {real} ({sinal}{diferenca})"
    if notas and notas.strip():
        texto += f". {notas.strip()}"
    return texto
