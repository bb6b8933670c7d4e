import pytest

from almoxarifado.domain.errors import InvalidTransition, NotFound, ValidationError
from almoxarifado.domain.models import (
    AtivoProduto, AtivoSerial, Categoria, StatusSerial, TipoAtivo
)
from almoxarifado.adapters.parsers import ler_notas
from almoxarifado.infra.repositories import CautelaRepo, NumeroSerieRepo
from almoxarifado.usecases.cautelas import (
    active_assignments,
    ficha_cautela,
    historico_cautelas,
    issue,
    itens_sob_responsabilidade,
    return_asset,
)
from almoxarifado.usecases.catalogo import obter_produto
from almoxarifado.usecases.registro_seriais import resolve_by_serial_text

ASSINATURA = "data:image/png;base64,iVBORw0KGgo="


def _serial(db, texto):
    return resolve_by_serial_text(texto, db_path=db)


def test_emissao_e_devolucao(db, furadeira):
    u = _serial(db, "SN-001")
    c = issue("tec-x", AtivoSerial(u.id), 1, ASSINATURA, "Obra centro", db_path=db)

    assert c.asset_type == TipoAtivo.SERIAL
    assert c.quantity == 1
    assert c.ativa
    unidade = _serial(db, "SN-001")
    assert unidade.status == StatusSerial.EM_USO
    assert unidade.assigned_to == "tec-x"
    assert [a.id for a in active_assignments("tec-x", db_path=db)] == [c.id]

    devolvida = return_asset(c.id, "defeito", db_path=db)
    assert devolvida.returned_at is not None
    assert ler_notas(devolvida.notes) == {
        "signature": ASSINATURA, "text": "Obra centro", "returnReason": "defeito"
    }
    unidade = _serial(db, "SN-001")
    assert unidade.status == StatusSerial.DISPONIVEL
    assert unidade.assigned_to is None
    assert active_assignments("tec-x", db_path=db) == []
    assert [h.id for h in historico_cautelas("tec-x", db_path=db)] == [c.id]


@pytest.mark.parametrize("assinatura", [None, "", "   "])
def test_assinatura_obrigatoria(db, furadeira, assinatura):
    u = _serial(db, "SN-001")
    with pytest.raises(ValidationError) as exc:
        issue("tec-x", AtivoSerial(u.id), 1, assinatura, db_path=db)
    assert exc.value.code == "SIGNATURE_REQUIRED"
    assert _serial(db, "SN-001").status == StatusSerial.DISPONIVEL
    assert CautelaRepo(db).get_all() == []


def test_custodia_exclusiva(db, furadeira):
    u = _serial(db, "SN-002")
    issue("tec-x", AtivoSerial(u.id), 1, ASSINATURA, db_path=db)
    with pytest.raises(InvalidTransition) as exc:
        issue("tec-y", AtivoSerial(u.id), 1, ASSINATURA, db_path=db)
    assert exc.value.atual == StatusSerial.EM_USO
    assert [c.serial_number_id for c in CautelaRepo(db).get_all(ativas=True)] == [u.id]


def test_emissao_concorrente_com_leitura_desatualizada(db, furadeira, monkeypatch):
    u = _serial(db, "SN-003")
    repo_get = NumeroSerieRepo.get

    # outra sessão emite a unidade entre a leitura e a escrita desta
    def get_desatualizado(self, serial_id):
        atual = repo_get(self, serial_id)
        if atual.status == StatusSerial.EM_USO:
            atual.status = StatusSerial.DISPONIVEL
        return atual

    NumeroSerieRepo(db).compare_and_set_status(u.id, StatusSerial.DISPONIVEL, StatusSerial.EM_USO, "tec-x")
    monkeypatch.setattr(NumeroSerieRepo, "get", get_desatualizado)
    with pytest.raises(InvalidTransition):
        issue("tec-y", AtivoSerial(u.id), 1, ASSINATURA, db_path=db)
    monkeypatch.undo()

    assert CautelaRepo(db).get_all() == []
    assert _serial(db, "SN-003").assigned_to == "tec-x"


def test_falha_na_gravacao_restaura_unidade(db, furadeira, monkeypatch):
    u = _serial(db, "SN-004")

    def falha(self, row):
        raise RuntimeError("falha de gravação")

    monkeypatch.setattr(CautelaRepo, "insert", falha)
    with pytest.raises(RuntimeError):
        issue("tec-x", AtivoSerial(u.id), 1, ASSINATURA, db_path=db)
    assert _serial(db, "SN-004").status == StatusSerial.DISPONIVEL


def test_emissao_de_unidade_indisponivel_ou_inexistente(db, furadeira):
    with pytest.raises(NotFound):
        issue("tec-x", AtivoSerial(999), 1, ASSINATURA, db_path=db)


def test_emissao_granel(db, luva):
    c = issue("tec-x", AtivoProduto(luva.id), 3, ASSINATURA, db_path=db)
    assert c.asset_type == TipoAtivo.PRODUTO
    assert c.product_id == luva.id
    assert c.quantity == 3
    # custódia a granel não baixa estoque
    assert obter_produto(luva.id, db_path=db).current_stock == 10
    assert itens_sob_responsabilidade("tec-x", db_path=db) == 3

    with pytest.raises(ValidationError):
        issue("tec-x", AtivoProduto(luva.id), 11, ASSINATURA, db_path=db)
    with pytest.raises(ValidationError):
        issue("tec-x", AtivoProduto(luva.id), 0, ASSINATURA, db_path=db)

    devolvida = return_asset(c.id, "fim da obra", db_path=db)
    assert devolvida.returned_at is not None
    assert itens_sob_responsabilidade("tec-x", db_path=db) == 0


def test_devolucao_validacoes(db, furadeira):
    u = _serial(db, "SN-001")
    c = issue("tec-x", AtivoSerial(u.id), 1, ASSINATURA, db_path=db)
    with pytest.raises(ValidationError):
        return_asset(c.id, "  ", db_path=db)
    with pytest.raises(NotFound):
        return_asset(999, "motivo", db_path=db)

    return_asset(c.id, "defeito", db_path=db)
    with pytest.raises(InvalidTransition):
        return_asset(c.id, "defeito", db_path=db)


def test_colaborador_obrigatorio(db, luva):
    with pytest.raises(ValidationError):
        issue("  ", AtivoProduto(luva.id), 1, ASSINATURA, db_path=db)


def test_ficha_agrupada_por_categoria(db, furadeira, luva):
    u = _serial(db, "SN-001")
    c1 = issue("tec-x", AtivoSerial(u.id), 1, ASSINATURA, db_path=db)
    issue("tec-x", AtivoProduto(luva.id), 2, ASSINATURA, "tamanho G", db_path=db)
    return_asset(c1.id, "troca por outra", db_path=db)

    ficha = ficha_cautela("tec-x", db_path=db)
    assert set(ficha) == {Categoria.FERRAMENTAS.value, Categoria.EPI.value}
    ferramenta = ficha["ferramentas"][0]
    assert ferramenta["serial"] == "SN-001"
    assert ferramenta["devolucao"] is not None
    assert ferramenta["motivo"] == "troca por outra"
    epi = ficha["epi"][0]
    assert epi["quantidade"] == 2
    assert epi["observacao"] == "tamanho G"
    assert epi["devolucao"] is None

    assert set(ficha_cautela("tec-x", apenas_ativas=True, db_path=db)) == {"epi"}
