"""
Testes de importação/exportação de planilhas (pandas + openpyxl).
"""

import pandas as pd
import pytest

from almoxarifado.adapters.planilhas import (
    _normalize_columns,
    exportar_ficha_cautela,
    exportar_relatorio,
    load_produtos,
    load_seriais,
)
from almoxarifado.domain.errors import ValidationError
from almoxarifado.domain.models import Categoria


def test_normalize_columns_sinonimos():
    df = pd.DataFrame({"Número de Série": ["A"], "Código": ["X"], "Estoque Mínimo": ["1"]})
    assert list(_normalize_columns(df).columns) == ["serial_number", "code", "min_stock"]


def test_load_seriais_xlsx(tmp_path):
    path = tmp_path / "seriais.xlsx"
    pd.DataFrame({"Nº Série": [" SN-010 ", None, "SN-011"]}).to_excel(path, index=False)
    assert load_seriais(str(path)) == ["SN-010", "SN-011"]


def test_load_seriais_csv_sem_cabecalho_conhecido(tmp_path):
    path = tmp_path / "seriais.csv"
    path.write_text("etiqueta\nSN-1\nSN-2\n", encoding="utf-8")
    assert load_seriais(str(path)) == ["SN-1", "SN-2"]


def test_formato_nao_suportado(tmp_path):
    path = tmp_path / "seriais.txt"
    path.write_text("SN-1", encoding="utf-8")
    with pytest.raises(ValidationError):
        load_seriais(str(path))


def test_load_produtos(tmp_path):
    path = tmp_path / "produtos.xlsx"
    pd.DataFrame({
        "Código": ["FUR-01", "LUV-01"],
        "Nome": ["Furadeira", "Luva"],
        "Categoria": ["Ferramentas", "epi"],
        "Serializado": ["sim", "não"],
        "Estoque": [None, "10"],
        "Mínimo": ["1", "5"],
    }).to_excel(path, index=False)

    produtos = load_produtos(str(path))
    assert produtos[0]["category"] == Categoria.FERRAMENTAS
    assert produtos[0]["is_serialized"] is True
    assert produtos[0]["current_stock"] == 0
    assert produtos[1]["category"] == Categoria.EPI
    assert produtos[1]["current_stock"] == 10
    assert produtos[1]["min_stock"] == 5
    assert produtos[1]["unit"] == "UN"


def test_load_produtos_categoria_invalida(tmp_path):
    path = tmp_path / "produtos.csv"
    path.write_text("codigo,nome,categoria\nX,Produto X,outra\n", encoding="utf-8")
    with pytest.raises(ValidationError):
        load_produtos(str(path))


FICHA = {
    "epi": [{"item": "Luva", "codigo": "LUV-01", "serial": None, "quantidade": 2, "unidade": "PAR",
             "entrega": "2026-01-10T08:00:00", "devolucao": None, "motivo": None, "observacao": None}],
    "ferramentas": [{"item": "Furadeira", "codigo": "FUR-01", "serial": "SN-001", "quantidade": 1,
                     "unidade": "UN", "entrega": "2026-01-10T08:00:00",
                     "devolucao": "2026-02-01T17:00:00", "motivo": "defeito", "observacao": None}],
}


def test_exportar_ficha_xlsx_uma_aba_por_categoria(tmp_path):
    path = tmp_path / "ficha.xlsx"
    assert exportar_ficha_cautela(FICHA, str(path), "tec-x") == 2
    abas = pd.read_excel(path, sheet_name=None)
    assert set(abas) == {"EPI", "Ferramentas"}
    assert abas["Ferramentas"]["Motivo da Devolução"].tolist() == ["defeito"]


def test_exportar_ficha_csv(tmp_path):
    path = tmp_path / "ficha.csv"
    assert exportar_ficha_cautela(FICHA, str(path), "tec-x") == 2
    df = pd.read_csv(path)
    assert df["tecnico"].tolist() == ["tec-x", "tec-x"]
    assert df["categoria"].tolist() == ["EPI", "Ferramentas"]
    assert "Nº Série" in df.columns


def test_exportar_relatorio(tmp_path):
    path = tmp_path / "sub" / "rel.csv"
    assert exportar_relatorio(["A", "B"], [[1, "x"], [2, "y"]], str(path)) == 2
    assert pd.read_csv(path)["B"].tolist() == ["x", "y"]
