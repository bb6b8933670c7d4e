from pathlib import Path

import pandas as pd
from typer.testing import CliRunner

from almoxarifado.adapters.cli import app
from almoxarifado.domain.models import StatusSerial
from almoxarifado.infra.repositories import AuditoriaRepo, CautelaRepo, NumeroSerieRepo, ProdutoRepo

runner = CliRunner()


def _invoke(db_path, *args):
    return runner.invoke(app, [*args, "--db", str(db_path)])


def _setup(tmp_path: Path):
    db_path = tmp_path / "almoxarifado_test.sqlite"
    result = _invoke(db_path, "migrate")
    assert result.exit_code == 0, result.output
    result = _invoke(db_path, "produto", "add", "--code", "FUR-01", "--name", "Furadeira",
                     "--category", "ferramentas", "--serializado", "--minimo", "1")
    assert result.exit_code == 0, result.output
    result = _invoke(db_path, "produto", "add", "--code", "LUV-01", "--name", "Luva",
                     "--category", "epi", "--estoque", "10", "--minimo", "5")
    assert result.exit_code == 0, result.output
    return str(db_path)


def test_cli_migrate(tmp_path: Path):
    db_path = tmp_path / "almoxarifado_test.sqlite"
    result = _invoke(db_path, "migrate")
    assert result.exit_code == 0, result.output
    assert "Migrações aplicadas" in result.stdout


def test_cli_produtos_e_seriais(tmp_path: Path):
    db = _setup(tmp_path)
    result = _invoke(db, "produto", "list")
    assert result.exit_code == 0, result.output

    result = _invoke(db, "serial", "entrada", "1", "SN-001", "SN-002")
    assert result.exit_code == 0, result.output
    assert len(NumeroSerieRepo(db).get_all(product_id=1)) == 2

    result = _invoke(db, "serial", "entrada", "1", "sn-001")
    assert result.exit_code == 1
    assert "DUPLICATE" in result.stdout

    result = _invoke(db, "serial", "buscar", "sn-002")
    assert result.exit_code == 0, result.output

    result = _invoke(db, "produto", "saldo", "1")
    assert result.exit_code == 0
    assert "2 (derivado dos números de série)" in result.stdout


def test_cli_entrada_por_planilha(tmp_path: Path):
    db = _setup(tmp_path)
    planilha = tmp_path / "seriais.xlsx"
    pd.DataFrame({"Serial": ["A-1", "A-2", "A-3"]}).to_excel(planilha, index=False)
    result = _invoke(db, "serial", "entrada", "1", "--arquivo", str(planilha))
    assert result.exit_code == 0, result.output
    assert len(NumeroSerieRepo(db).get_all(product_id=1)) == 3


def test_cli_cautela_fluxo(tmp_path: Path):
    db = _setup(tmp_path)
    _invoke(db, "serial", "entrada", "1", "SN-001")

    result = _invoke(db, "cautela", "emitir", "tec-x", "--serial", "1")
    assert result.exit_code == 1
    assert "SIGNATURE_REQUIRED" in result.stdout

    result = _invoke(db, "cautela", "emitir", "tec-x", "--serial", "1", "--assinatura", "sig")
    assert result.exit_code == 0, result.output
    assert NumeroSerieRepo(db).get(1).status == StatusSerial.EM_USO

    result = _invoke(db, "cautela", "ativas", "tec-x")
    assert result.exit_code == 0, result.output
    assert "1 item(ns) sob responsabilidade de tec-x" in result.stdout

    ficha = tmp_path / "ficha.xlsx"
    result = _invoke(db, "cautela", "ficha", "tec-x", "--exportar", str(ficha))
    assert result.exit_code == 0, result.output
    assert ficha.exists()

    result = _invoke(db, "cautela", "devolver", "1", "--motivo", "defeito")
    assert result.exit_code == 0, result.output
    assert CautelaRepo(db).get(1).returned_at is not None
    assert NumeroSerieRepo(db).get(1).status == StatusSerial.DISPONIVEL

    result = _invoke(db, "cautela", "emitir", "tec-x", "--serial", "1", "--produto", "2")
    assert result.exit_code == 1


def test_cli_auditoria_e_inventario(tmp_path: Path):
    db = _setup(tmp_path)
    result = _invoke(db, "auditoria", "abrir", "--produto", "2", "--tipo", "defeito",
                     "--descricao", "Costura rompida no lote", "--qtd", "2")
    assert result.exit_code == 0, result.output
    assert ProdutoRepo(db).get(2).current_stock == 8

    result = _invoke(db, "auditoria", "abrir", "--produto", "2", "--tipo", "defeito", "--descricao", "curta")
    assert result.exit_code == 1
    assert "VALIDATION_ERROR" in result.stdout

    result = _invoke(db, "auditoria", "resolver", "1", "--notas", "Trocadas pelo fornecedor")
    assert result.exit_code == 0, result.output

    result = _invoke(db, "inventario", "contar", "2", "7", "--notas", "Contagem mensal")
    assert result.exit_code == 0, result.output
    assert "Sistema 8" in result.stdout
    assert ProdutoRepo(db).get(2).current_stock == 7

    result = _invoke(db, "auditoria", "listar", "--tipo", "inventario")
    assert result.exit_code == 0, result.output

    result = _invoke(db, "auditoria", "resumo")
    assert result.exit_code == 0, result.output

    result = _invoke(db, "inventario", "saude")
    assert result.exit_code == 0, result.output
    assert "Ferramentas" in result.stdout

    result = _invoke(db, "inventario", "alertas")
    assert result.exit_code == 0, result.output
    assert "estoque zerado" in result.stdout


def test_cli_garantia_lote_parcial(tmp_path: Path):
    db = _setup(tmp_path)
    _invoke(db, "serial", "entrada", "1", "SN-001", "SN-002")
    result = _invoke(db, "serial", "status", "1", "em_manutencao")
    assert result.exit_code == 0, result.output

    result = _invoke(db, "auditoria", "garantia-lote", "1", "--descricao", "Enviado ao fabricante",
                     "--serial", "1", "--serial", "2")
    assert result.exit_code == 1
    assert "PARTIAL_BATCH_FAILURE" in result.stdout
    assert len(AuditoriaRepo(db).get_all()) == 1

    result = _invoke(db, "auditoria", "garantias")
    assert result.exit_code == 0, result.output

    result = _invoke(db, "auditoria", "receber-garantia", "1")
    assert result.exit_code == 0, result.output
    assert NumeroSerieRepo(db).get(1).status == StatusSerial.DISPONIVEL


def test_cli_importar_produtos_parcial(tmp_path: Path):
    db = _setup(tmp_path)
    planilha = tmp_path / "produtos.csv"
    pd.DataFrame({
        "Código": ["FUR-01", "CAP-01"],
        "Nome": ["Furadeira repetida", "Capacete"],
        "Categoria": ["Ferramentas", "EPI"],
        "Estoque": ["1", "3"],
    }).to_csv(planilha, index=False)

    result = _invoke(db, "produto", "importar", str(planilha))
    assert result.exit_code == 1
    assert "PARTIAL_BATCH_FAILURE" in result.stdout
    assert ProdutoRepo(db).get_by_code("CAP-01").current_stock == 3


def test_cli_logs_desabilitado(monkeypatch):
    from almoxarifado.infra import logger

    monkeypatch.setattr(logger, "ENABLE_LOGGING", False)
    result = runner.invoke(app, ["logs", "auditorias"])
    assert result.exit_code == 0, result.output
    assert "Logging desabilitado" in result.stdout


def test_cli_cautela_ativas_erro_do_banco(tmp_path: Path, monkeypatch):
    from almoxarifado.domain.errors import StoreError
    from almoxarifado.usecases import cautelas

    db = _setup(tmp_path)

    def falha(*args, **kwargs):
        raise StoreError("banco bloqueado")

    monkeypatch.setattr(cautelas, "itens_sob_responsabilidade", falha)
    result = _invoke(db, "cautela", "ativas", "tec-x")
    assert result.exit_code == 1
    assert "STORE_ERROR" in result.stdout
