import pytest

from almoxarifado.domain.models import (
    Categoria, Produto, StatusAuditoria, StatusSerial, TipoAuditoria
)
from almoxarifado.domain.policies import (
    TRANSICOES_SERIAL,
    badge_estoque,
    classificar_produto,
    descricao_inventario,
    pode_transitar_auditoria,
    pode_transitar_serial,
    status_inicial,
    verificar_tabelas,
)
from almoxarifado.usecases.reconciliacao import classificar_saude


def test_tabelas_cobrem_todas_as_enumeracoes():
    verificar_tabelas()


def test_descartado_e_terminal():
    assert TRANSICOES_SERIAL[StatusSerial.DESCARTADO] == frozenset()
    for destino in StatusSerial:
        assert not pode_transitar_serial(StatusSerial.DESCARTADO, destino)


@pytest.mark.parametrize(
    "atual,destino,esperado",
    [
        (StatusSerial.DISPONIVEL, StatusSerial.EM_USO, True),
        (StatusSerial.DISPONIVEL, StatusSerial.EM_MANUTENCAO, True),
        (StatusSerial.EM_USO, StatusSerial.DISPONIVEL, True),
        (StatusSerial.EM_USO, StatusSerial.EM_MANUTENCAO, False),
        (StatusSerial.EM_USO, StatusSerial.EM_USO, False),
        (StatusSerial.EM_MANUTENCAO, StatusSerial.DESCARTADO, True),
        (StatusSerial.EM_MANUTENCAO, StatusSerial.EM_USO, False),
    ],
)
def test_ciclo_de_vida_serial(atual, destino, esperado):
    assert pode_transitar_serial(atual, destino) is esperado


@pytest.mark.parametrize(
    "tipo,status",
    [
        (TipoAuditoria.GARANTIA, StatusAuditoria.ENVIADO),
        (TipoAuditoria.INVENTARIO, StatusAuditoria.RESOLVIDO),
        (TipoAuditoria.DEFEITO, StatusAuditoria.ABERTO),
        (TipoAuditoria.FURTO, StatusAuditoria.ABERTO),
        (TipoAuditoria.RESOLUCAO, StatusAuditoria.ABERTO),
    ],
)
def test_status_inicial(tipo, status):
    assert status_inicial(tipo) == status


def test_maquina_de_status_auditoria():
    assert pode_transitar_auditoria(StatusAuditoria.ENVIADO, StatusAuditoria.RECEBIDO)
    assert pode_transitar_auditoria(StatusAuditoria.RECEBIDO, StatusAuditoria.RESOLVIDO)
    assert not pode_transitar_auditoria(StatusAuditoria.RESOLVIDO, StatusAuditoria.ABERTO)
    assert not pode_transitar_auditoria(StatusAuditoria.CANCELADO, StatusAuditoria.RESOLVIDO)
    assert not pode_transitar_auditoria(StatusAuditoria.ABERTO, StatusAuditoria.RECEBIDO)


@pytest.mark.parametrize(
    "estoque,minimo,esperado",
    [
        (0, 5, "zero"),
        (0, 0, "zero"),
        (3, 5, "baixo"),
        (5, 5, None),
        (3, 0, None),
        (3, -1, None),
        (None, 5, "zero"),
    ],
)
def test_classificar_produto(estoque, minimo, esperado):
    assert classificar_produto(estoque, minimo) == esperado


def test_badge_prioriza_zerados():
    b = badge_estoque(zerados=2, baixos=5)
    assert b.severidade == "zero"
    assert b.contagem == 2


def test_badge_baixo_e_vazio():
    assert badge_estoque(0, 5).severidade == "baixo"
    assert badge_estoque(0, 5).contagem == 5
    assert badge_estoque(0, 0).severidade is None


def test_classificar_saude_filtra_categoria():
    produtos = [
        Produto(code="A", name="A", category=Categoria.EPI, current_stock=0, min_stock=1),
        Produto(code="B", name="B", category=Categoria.EPI, current_stock=0, min_stock=1),
        Produto(code="C", name="C", category=Categoria.EPI, current_stock=1, min_stock=3),
        Produto(code="D", name="D", category=Categoria.EPC, current_stock=0, min_stock=3),
        Produto(code="E", name="E", category=Categoria.EPI, current_stock=1, min_stock=0),
    ]
    saude = classificar_saude(produtos, Categoria.EPI)
    assert (saude.zerados, saude.baixos) == (2, 1)


def test_descricao_inventario():
    assert descricao_inventario(10, 7) == "Inventário: Sistema 10 → Real 7 (-3)"
    assert descricao_inventario(4, 6, "  conferido  ") == "Inventário: Sistema 4 → Real 6 (+2). conferido"
    assert "(+0)" in descricao_inventario(5, 5)
