"""
Utilidades de parsing para entradas do operador.

Este módulo interpreta os valores que chegam dos colaboradores externos
(leitor de código de barras, campos de formulário, superfície de
assinatura) antes de eles chegarem aos casos de uso:

- texto de serial lido/digitado;
- quantidades vindas como texto;
- o campo ``notes`` das cautelas, que guarda um objeto JSON com a
  assinatura, o texto livre e o motivo da devolução.
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict, Optional

_NUM_RE = re.compile(r"^[-+]?\d+(?:[.,]0+)?$")
_CTRL_RE = re.compile(r"[\x00-\x1f\x7f]")


def normalizar_serial(txt: Any) -> Optional[str]:
    """Limpa o texto de um serial lido pelo scanner ou digitado.

    Remove caracteres de controle (leitores costumam anexar ``\\r\\n``) e
    espaços nas pontas. A caixa é preservada; a comparação sem diferenciar
    maiúsculas é feita pelo banco.

    Exemplos:
        "  SN-001\\r\\n" → "SN-001"
        ""               → None
    """
    if txt is None:
        return None
    s = _CTRL_RE.sub("", str(txt)).strip()
    return s or None


def parse_quantidade(txt: Any) -> Optional[int]:
    """Interpreta uma quantidade inteira.

    Aceita inteiros, floats sem parte fracionária e strings como ``"3"``
    ou ``"3,0"``. Qualquer outro valor resulta em ``None``.
    """
    if txt is None or isinstance(txt, bool):
        return None
    if isinstance(txt, int):
        return txt
    if isinstance(txt, float):
        return int(txt) if txt.is_integer() else None
    s = str(txt).strip()
    if not _NUM_RE.match(s):
        return None
    return int(float(s.replace(",", ".")))


def montar_notas(assinatura: Optional[str], texto: Optional[str] = None) -> str:
    """Serializa o conteúdo do campo ``notes`` de uma cautela."""
    payload: Dict[str, Any] = {"signature": assinatura}
    if texto and texto.strip():
        payload["text"] = texto.strip()
    return json.dumps(payload, ensure_ascii=False)


def ler_notas(notes: Optional[str]) -> Dict[str, Any]:
    """Lê o campo ``notes``.

    Notas antigas que não são JSON (ou são JSON mas não um objeto) são
    preservadas em ``text``.
    """
    if not notes:
        return {}
    try:
        data = json.loads(notes)
    except ValueError:
        return {"text": notes}
    if not isinstance(data, dict):
        return {"text": notes}
    return data


def anexar_motivo_devolucao(notes: Optional[str], motivo: str) -> str:
    """Inclui ``returnReason`` no payload sem perder assinatura e texto."""
    data = ler_notas(notes)
    data["returnReason"] = motivo
    return json.dumps(data, ensure_ascii=False)
