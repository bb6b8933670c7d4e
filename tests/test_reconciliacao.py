import pytest

from almoxarifado.domain.errors import NotFound, ValidationError
from almoxarifado.domain.models import Categoria, StatusAuditoria, TipoAuditoria
from almoxarifado.infra.repositories import AuditoriaRepo, MovimentacaoRepo
from almoxarifado.usecases.catalogo import cadastrar_produto, obter_produto
from almoxarifado.usecases.reconciliacao import (
    alertas_estoque,
    badge_estoque,
    count_and_reconcile,
    resumo_saude_por_categoria,
)


def test_contagem_com_diferenca(db, luva):
    res = count_and_reconcile(luva.id, 7, db_path=db)

    a = res.auditoria
    assert res.estoque_atualizado is True
    assert a.audit_type == TipoAuditoria.INVENTARIO
    assert a.status == StatusAuditoria.RESOLVIDO
    assert a.resolved_at is not None
    assert a.quantity == 3
    assert "10" in a.description and "7" in a.description and "-3" in a.description
    assert obter_produto(luva.id, db_path=db).current_stock == 7
    # ajuste direto, fora do livro de movimentações
    assert MovimentacaoRepo(db).get_all(product_id=luva.id) == []


def test_contagem_sem_diferenca_nao_altera_estoque(db, luva):
    for _ in range(2):
        res = count_and_reconcile(luva.id, 10, notas="Conferência semanal", db_path=db)
        assert res.estoque_atualizado is False
        assert res.auditoria.quantity == 1
        assert res.auditoria.description.endswith("Conferência semanal")
        assert obter_produto(luva.id, db_path=db).current_stock == 10
    assert len(AuditoriaRepo(db).get_all(audit_type=TipoAuditoria.INVENTARIO)) == 2


def test_contagem_acima_do_sistema(db, luva):
    res = count_and_reconcile(luva.id, "12", db_path=db)
    assert res.auditoria.quantity == 2
    assert "(+2)" in res.auditoria.description
    assert obter_produto(luva.id, db_path=db).current_stock == 12


@pytest.mark.parametrize("real", [-1, "abc", None, "2.5"])
def test_contagem_invalida(db, luva, real):
    with pytest.raises(ValidationError):
        count_and_reconcile(luva.id, real, db_path=db)
    assert AuditoriaRepo(db).get_all() == []


def test_contagem_produto_inexistente(db):
    with pytest.raises(NotFound):
        count_and_reconcile(999, 3, db_path=db)


def test_contagem_para_zero(db, luva):
    res = count_and_reconcile(luva.id, 0, db_path=db)
    assert res.auditoria.quantity == 10
    assert obter_produto(luva.id, db_path=db).current_stock == 0


def _produto(db, code, categoria, estoque, minimo, ativo=True):
    return cadastrar_produto(
        {"code": code, "name": f"Produto {code}", "category": categoria,
         "current_stock": estoque, "min_stock": minimo, "is_active": ativo},
        db_path=db,
    )


def test_saude_por_categoria_e_alertas(db):
    _produto(db, "E1", Categoria.EPI, 0, 5)
    _produto(db, "E2", Categoria.EPI, 0, 0)
    for i in range(5):
        _produto(db, f"E-B{i}", Categoria.EPI, 1, 3)
    _produto(db, "F1", Categoria.FERRAMENTAS, 2, 4)
    _produto(db, "M1", Categoria.MATERIAIS, 8, 4)
    _produto(db, "X1", Categoria.EPC, 0, 1, ativo=False)

    resumo = resumo_saude_por_categoria(db_path=db)
    assert set(resumo) == set(Categoria)
    assert (resumo[Categoria.EPI].zerados, resumo[Categoria.EPI].baixos) == (2, 5)
    assert resumo[Categoria.EPC].zerados == 0

    badge = badge_estoque(resumo[Categoria.EPI])
    assert (badge.severidade, badge.contagem) == ("zero", 2)
    assert badge_estoque(resumo[Categoria.FERRAMENTAS]).severidade == "baixo"
    assert badge_estoque(resumo[Categoria.MATERIAIS]).severidade is None

    alertas = alertas_estoque(db_path=db)
    assert [(a["tipo"], a["categoria"], a["contagem"]) for a in alertas] == [
        ("danger", "epi", 2),
        ("warning", "epi", 5),
        ("warning", "ferramentas", 1),
    ]
