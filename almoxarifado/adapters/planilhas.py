# almoxarifado/adapters/planilhas.py
"""
Importação e exportação de planilhas (XLSX/CSV).

Importação:
- load_seriais(): lista de números de série para entrada de estoque;
- load_produtos(): cadastro de produtos em lote.

Exportação:
- exportar_ficha_cautela(): ficha de cautela do técnico (uma aba por
  categoria no XLSX; coluna ``categoria`` no CSV);
- exportar_relatorio(): qualquer relatório ``(colunas, linhas, msg)``.

Observações:
- Cabeçalhos são normalizados (acentos, variações, sinônimos).
- O formato é escolhido pela extensão do arquivo (.xlsx ou .csv).
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd

from almoxarifado.adapters.parsers import normalizar_serial, parse_quantidade
from almoxarifado.domain.errors import ValidationError
from almoxarifado.domain.models import Categoria
from almoxarifado.domain.policies import ROTULOS_CATEGORIA
from almoxarifado.infra.logger import log_file_operation


# ---------------------------
# utilitários de normalização
# ---------------------------

def _slug(s: Any) -> str:
    """Normaliza cabeçalhos: minúsculas, sem acentos, sem não-alfanumérico."""
    if s is None:
        return ""
    s = str(s).strip().lower()
    acentos = dict(zip("áàâãäéèêëíìîïóòôõöúùûüç", "aaaaaeeeeiiiiooooouuuuc"))
    s = "".join(acentos.get(ch, ch) for ch in s)
    s = re.sub(r"[^a-z0-9]+", " ", s)
    s = re.sub(r"\s+", " ", s).strip()
    return s


def _safe_get(row, key):
    val = row.get(key)
    if val is None or pd.isna(val):
        return None
    return val


def _to_bool(val: Any) -> Optional[bool]:
    if val is None:
        return None
    s = _slug(val)
    if s in {"1", "true", "t", "sim", "s", "y", "yes"}:
        return True
    if s in {"0", "false", "f", "nao", "n", "no"}:
        return False
    return None


_ALIASES = {
    "serial": "serial_number",
    "serie": "serial_number",
    "numero de serie": "serial_number",
    "n serie": "serial_number",
    "ns": "serial_number",
    "serial number": "serial_number",

    "codigo": "code",
    "cod": "code",
    "sku": "code",

    "nome": "name",
    "descricao": "name",
    "produto": "name",

    "categoria": "category",

    "serializado": "is_serialized",
    "controle por serie": "is_serialized",

    "estoque": "current_stock",
    "estoque atual": "current_stock",
    "quantidade": "current_stock",
    "qtd": "current_stock",

    "estoque minimo": "min_stock",
    "minimo": "min_stock",

    "estoque maximo": "max_stock",
    "maximo": "max_stock",

    "unidade": "unit",
    "un": "unit",
}

# rótulo exibido ("Ferramentas") ou valor ("ferramentas") -> Categoria
_CATEGORIAS = {_slug(r): c for c, r in ROTULOS_CATEGORIA.items()}
_CATEGORIAS.update({_slug(c.value): c for c in Categoria})


def _normalize_columns(df: pd.DataFrame) -> pd.DataFrame:
    new_cols = {}
    for col in df.columns:
        key = _slug(col)
        new_cols[col] = _ALIASES.get(key, key)
    return df.rename(columns=new_cols)


def _read(path: str) -> pd.DataFrame:
    ext = Path(path).suffix.lower()
    if ext == ".csv":
        df = pd.read_csv(path, dtype="string")
    elif ext in (".xlsx", ".xls"):
        df = pd.read_excel(path, dtype="string")
    else:
        raise ValidationError(f"Formato de planilha não suportado: {ext}", campo="arquivo")
    return _normalize_columns(df)


# ---------------------------
# loaders públicos
# ---------------------------

def load_seriais(path: str) -> List[str]:
    """Lê a coluna de números de série (linhas em branco são ignoradas).

    Sem cabeçalho reconhecido, usa a primeira coluna.
    """
    df = _read(path)
    coluna = "serial_number" if "serial_number" in df.columns else df.columns[0]
    seriais = [s for s in (normalizar_serial(_safe_get(r, coluna)) for _, r in df.iterrows()) if s]
    log_file_operation("load_seriais", path, len(seriais))
    return seriais


def load_produtos(path: str) -> List[Dict[str, Any]]:
    """Lê o cadastro de produtos.

    Campos de saída (chaves do dict por linha):
      - code, name: str
      - category: Categoria (aceita o valor ou o rótulo, ex.: "Ferramentas")
      - is_serialized: bool (padrão False)
      - current_stock, min_stock: int (padrão 0)
      - max_stock: int | None
      - unit: str (padrão "UN")
    """
    df = _read(path)
    out: List[Dict[str, Any]] = []
    for i, row in df.iterrows():
        cat_raw = _safe_get(row, "category")
        categoria = _CATEGORIAS.get(_slug(cat_raw))
        if categoria is None:
            raise ValidationError(f"Linha {i + 2}: categoria inválida: {cat_raw}", campo="category")
        out.append({
            "code": _safe_get(row, "code"),
            "name": _safe_get(row, "name"),
            "category": categoria,
            "is_serialized": bool(_to_bool(_safe_get(row, "is_serialized"))),
            "current_stock": parse_quantidade(_safe_get(row, "current_stock")) or 0,
            "min_stock": parse_quantidade(_safe_get(row, "min_stock")) or 0,
            "max_stock": parse_quantidade(_safe_get(row, "max_stock")),
            "unit": _safe_get(row, "unit") or "UN",
        })
    log_file_operation("load_produtos", path, len(out))
    return out


# ---------------------------
# exportação
# ---------------------------

_COLUNAS_FICHA = {
    "item": "Item",
    "codigo": "Código",
    "serial": "Nº Série",
    "quantidade": "Qtd",
    "unidade": "Un",
    "entrega": "Data de Entrega",
    "devolucao": "Data de Devolução",
    "motivo": "Motivo da Devolução",
    "observacao": "Observação",
}


def _rotulo(categoria: str) -> str:
    try:
        return ROTULOS_CATEGORIA[Categoria(categoria)]
    except ValueError:
        return categoria


def exportar_ficha_cautela(ficha: Dict[str, List[Dict[str, Any]]], path: str, tecnico_id: str) -> int:
    """Grava a ficha de cautela e devolve o número de linhas exportadas."""
    destino = Path(path)
    destino.parent.mkdir(parents=True, exist_ok=True)
    total = 0
    if destino.suffix.lower() == ".csv":
        frames = []
        for categoria, linhas in ficha.items():
            df = pd.DataFrame(linhas, columns=list(_COLUNAS_FICHA))
            df.insert(0, "categoria", _rotulo(categoria))
            frames.append(df)
            total += len(df)
        df = pd.concat(frames, ignore_index=True) if frames else pd.DataFrame(
            columns=["categoria", *_COLUNAS_FICHA]
        )
        df.insert(0, "tecnico", tecnico_id)
        df.rename(columns=_COLUNAS_FICHA).to_csv(destino, index=False)
    else:
        with pd.ExcelWriter(destino, engine="openpyxl") as writer:
            if not ficha:
                pd.DataFrame(columns=list(_COLUNAS_FICHA.values())).to_excel(
                    writer, sheet_name="Ficha", index=False
                )
            for categoria, linhas in ficha.items():
                df = pd.DataFrame(linhas, columns=list(_COLUNAS_FICHA)).rename(columns=_COLUNAS_FICHA)
                df.to_excel(writer, sheet_name=_rotulo(categoria)[:31], index=False)
                total += len(df)
    log_file_operation("exportar_ficha", str(destino), total, tecnico=tecnico_id)
    return total


def exportar_relatorio(columns: Sequence[str], rows: Sequence[Sequence[Any]], path: str) -> int:
    destino = Path(path)
    destino.parent.mkdir(parents=True, exist_ok=True)
    df = pd.DataFrame(list(rows), columns=list(columns))
    if destino.suffix.lower() == ".csv":
        df.to_csv(destino, index=False)
    else:
        df.to_excel(destino, index=False, engine="openpyxl")
    log_file_operation("exportar_relatorio", str(destino), len(df))
    return len(df)
