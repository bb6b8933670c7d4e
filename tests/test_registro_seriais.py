import pytest

from almoxarifado.domain.errors import InvalidTransition, NotFound, ValidationError
from almoxarifado.domain.models import (
    Categoria, Contado, DerivadoDeSeriais, StatusSerial, TipoMovimentacao
)
from almoxarifado.infra.db import connect
from almoxarifado.infra.repositories import MovimentacaoRepo, NumeroSerieRepo
from almoxarifado.usecases.catalogo import cadastrar_produto, obter_produto
from almoxarifado.usecases.registro_seriais import (
    find_available,
    registrar_entrada_seriais,
    resolve_by_serial_text,
    saldo_produto,
    transition,
)


def test_entrada_cria_unidades_disponiveis(db, furadeira):
    unidades = find_available(furadeira.id, db_path=db)
    assert sorted(u.serial_number for u in unidades) == ["SN-001", "SN-002", "SN-003", "SN-004"]
    assert all(u.status == StatusSerial.DISPONIVEL for u in unidades)

    movs = MovimentacaoRepo(db).get_all(product_id=furadeira.id)
    assert len(movs) == 1
    assert movs[0]["movement_type"] == TipoMovimentacao.ENTRADA.value
    assert movs[0]["new_stock"] == 4


def test_serial_unico_sem_diferenciar_caixa(db, furadeira):
    with pytest.raises(ValidationError) as exc:
        registrar_entrada_seriais(furadeira.id, ["sn-001"], db_path=db)
    assert exc.value.code == "DUPLICATE"
    assert len(NumeroSerieRepo(db).get_all(product_id=furadeira.id)) == 4


def test_entrada_rejeita_duplicados_na_lista(db, furadeira):
    with pytest.raises(ValidationError) as exc:
        registrar_entrada_seriais(furadeira.id, ["SN-100", "sn-100"], db_path=db)
    assert exc.value.code == "DUPLICATE"
    assert NumeroSerieRepo(db).find_by_text("SN-100") is None


@pytest.mark.parametrize("seriais", [[], ["SN-200", "   "]])
def test_entrada_rejeita_lista_vazia_ou_em_branco(db, furadeira, seriais):
    with pytest.raises(ValidationError):
        registrar_entrada_seriais(furadeira.id, seriais, db_path=db)


def test_entrada_em_produto_granel(db, luva):
    with pytest.raises(ValidationError):
        registrar_entrada_seriais(luva.id, ["X-1"], db_path=db)


def test_serial_unico_por_tenant(db, furadeira):
    outro = cadastrar_produto(
        {"code": "FUR-01", "name": "Furadeira", "category": Categoria.FERRAMENTAS, "is_serialized": True},
        db_path=db, tenant_id="outra-empresa",
    )
    criados = registrar_entrada_seriais(outro.id, ["SN-001"], db_path=db, tenant_id="outra-empresa")
    assert criados[0].tenant_id == "outra-empresa"
    assert resolve_by_serial_text("SN-001", db_path=db).product_id == furadeira.id


def test_resolve_by_serial_text(db, furadeira):
    u = resolve_by_serial_text("  sn-003\r\n", db_path=db)
    assert u.serial_number == "SN-003"
    assert resolve_by_serial_text("SN-003", produto_id=furadeira.id, db_path=db).id == u.id


def test_resolve_by_serial_text_nao_encontrado(db, furadeira, luva):
    with pytest.raises(NotFound):
        resolve_by_serial_text("SN-999", db_path=db)
    with pytest.raises(NotFound):
        resolve_by_serial_text("SN-001", produto_id=luva.id, db_path=db)
    with pytest.raises(ValidationError):
        resolve_by_serial_text("   ", db_path=db)


def test_transition_valida_ciclo(db, furadeira):
    u = resolve_by_serial_text("SN-001", db_path=db)
    u = transition(u.id, StatusSerial.EM_MANUTENCAO, db_path=db)
    assert u.status == StatusSerial.EM_MANUTENCAO
    u = transition(u.id, StatusSerial.DESCARTADO, db_path=db)
    assert u.status == StatusSerial.DESCARTADO

    with pytest.raises(InvalidTransition) as exc:
        transition(u.id, StatusSerial.DISPONIVEL, db_path=db)
    assert exc.value.atual == StatusSerial.DESCARTADO


def test_transition_inexistente(db):
    with pytest.raises(NotFound):
        transition(999, StatusSerial.EM_USO, db_path=db)


def test_compare_and_set_falha_com_status_desatualizado(db, furadeira):
    repo = NumeroSerieRepo(db)
    u = resolve_by_serial_text("SN-002", db_path=db)
    # duas sessões leram 'disponivel'; só a primeira escrita vence
    assert repo.compare_and_set_status(u.id, StatusSerial.DISPONIVEL, StatusSerial.EM_USO, "ana")
    assert not repo.compare_and_set_status(u.id, StatusSerial.DISPONIVEL, StatusSerial.EM_USO, "bruno")
    atual = repo.get(u.id)
    assert atual.status == StatusSerial.EM_USO
    assert atual.assigned_to == "ana"


def test_saldo_derivado_ignora_contador(db, furadeira, luva):
    u = resolve_by_serial_text("SN-004", db_path=db)
    transition(u.id, StatusSerial.DESCARTADO, db_path=db)
    with connect(db) as c:
        c.execute("UPDATE produto SET current_stock = 99 WHERE id = ?", (furadeira.id,))

    saldo = saldo_produto(furadeira.id, db_path=db)
    assert isinstance(saldo, DerivadoDeSeriais)
    assert saldo.quantidade == 3
    assert obter_produto(furadeira.id, db_path=db).current_stock == 99

    assert saldo_produto(luva.id, db_path=db) == Contado(quantidade=10)


def test_cadastro_valida_campos(db):
    with pytest.raises(ValidationError):
        cadastrar_produto({"code": "", "name": "X", "category": "epi"}, db_path=db)
    with pytest.raises(ValidationError):
        cadastrar_produto({"code": "X", "name": "X", "category": "inexistente"}, db_path=db)
    with pytest.raises(NotFound):
        obter_produto(12345, db_path=db)


def test_cadastro_rejeita_codigo_repetido(db, furadeira):
    with pytest.raises(ValidationError) as exc:
        cadastrar_produto({"code": "FUR-01", "name": "Outra furadeira", "category": Categoria.FERRAMENTAS},
                          db_path=db)
    assert exc.value.code == "DUPLICATE"


def test_saldo_derivado_de_produto_sem_unidades(db):
    p = cadastrar_produto(
        {"code": "ESM-01", "name": "Esmerilhadeira", "category": Categoria.FERRAMENTAS, "is_serialized": True},
        db_path=db,
    )
    assert saldo_produto(p.id, db_path=db) == DerivadoDeSeriais(produto_id=p.id, quantidade=0)
