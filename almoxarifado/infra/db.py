# almoxarifado/infra/db.py
"""
Utilidades de conexão SQLite.
"""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from typing import Iterator

from almoxarifado.domain.errors import StoreError, ValidationError


@contextmanager
def connect(db_path: str) -> Iterator[sqlite3.Connection]:
    """
    Context manager para abrir conexão SQLite com:
    - foreign_keys ON
    - row_factory = sqlite3.Row
    - commit ao sair (rollback em caso de exceção)

    Erros do sqlite3 são convertidos: violação de unicidade vira
    ``ValidationError``; o restante vira ``StoreError``. Erros de domínio
    levantados dentro do bloco passam intactos (após o rollback).
    """
    try:
        conn = sqlite3.connect(db_path)
    except sqlite3.Error as e:
        raise StoreError(f"Não foi possível abrir o banco {db_path}: {e}", e) from e
    try:
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON;")
        yield conn
        conn.commit()
    except sqlite3.IntegrityError as e:
        conn.rollback()
        if "UNIQUE" in str(e).upper():
            raise ValidationError(f"Registro duplicado: {e}", code="DUPLICATE") from e
        raise StoreError(f"Violação de integridade: {e}", e) from e
    except sqlite3.Error as e:
        conn.rollback()
        raise StoreError(str(e), e) from e
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()
