# almoxarifado/infra/migrations.py
"""
Migrações de schema usando PRAGMA user_version.

V1: tabelas base (produto, numero_serie, auditoria, cautela)
V2: livro de movimentações e colunas de atribuição/resolução
"""

from __future__ import annotations

from typing import List
from .db import connect


SCHEMA_V1: List[str] = [
    # Cadastro de produtos
    """
    CREATE TABLE IF NOT EXISTS produto (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        tenant_id TEXT NOT NULL,
        code TEXT NOT NULL,
        name TEXT NOT NULL,
        category TEXT NOT NULL, -- 'epi' | 'epc' | 'ferramentas' | 'materiais' | 'equipamentos'
        is_serialized INTEGER NOT NULL DEFAULT 0,
        current_stock INTEGER NOT NULL DEFAULT 0,
        min_stock INTEGER NOT NULL DEFAULT 0,
        max_stock INTEGER,
        unit TEXT DEFAULT 'UN',
        is_active INTEGER NOT NULL DEFAULT 1,
        UNIQUE (tenant_id, code)
    );
    """,
    # Unidades serializadas (serial único por tenant, sem diferenciar caixa)
    """
    CREATE TABLE IF NOT EXISTS numero_serie (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        tenant_id TEXT NOT NULL,
        product_id INTEGER NOT NULL,
        serial_number TEXT NOT NULL COLLATE NOCASE,
        status TEXT NOT NULL DEFAULT 'disponivel',
        location TEXT,
        created_at TEXT NOT NULL,
        UNIQUE (tenant_id, serial_number),
        FOREIGN KEY (product_id) REFERENCES produto(id)
    );
    """,
    # Ocorrências (defeito/furto/garantia/inventario/resolucao)
    """
    CREATE TABLE IF NOT EXISTS auditoria (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        tenant_id TEXT NOT NULL,
        product_id INTEGER NOT NULL,
        serial_number_id INTEGER,
        audit_type TEXT NOT NULL,
        status TEXT NOT NULL,
        quantity INTEGER NOT NULL CHECK (quantity >= 1),
        description TEXT NOT NULL,
        reported_by TEXT,
        reported_at TEXT NOT NULL,
        resolved_at TEXT,
        parent_audit_id INTEGER,
        CHECK (serial_number_id IS NULL OR quantity = 1),
        FOREIGN KEY (product_id) REFERENCES produto(id),
        FOREIGN KEY (serial_number_id) REFERENCES numero_serie(id),
        FOREIGN KEY (parent_audit_id) REFERENCES auditoria(id)
    );
    """,
    # Cautelas (custódia)
    """
    CREATE TABLE IF NOT EXISTS cautela (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        tenant_id TEXT NOT NULL,
        technician_id TEXT NOT NULL,
        asset_type TEXT NOT NULL, -- 'serial_number' | 'product'
        serial_number_id INTEGER,
        product_id INTEGER,
        quantity INTEGER NOT NULL DEFAULT 1,
        assigned_at TEXT NOT NULL,
        returned_at TEXT,
        notes TEXT,
        CHECK (
            (asset_type = 'serial_number' AND serial_number_id IS NOT NULL AND product_id IS NULL)
            OR (asset_type = 'product' AND product_id IS NOT NULL AND serial_number_id IS NULL)
        ),
        FOREIGN KEY (serial_number_id) REFERENCES numero_serie(id),
        FOREIGN KEY (product_id) REFERENCES produto(id)
    );
    """,
]

SCHEMA_V2: List[str] = [
    # Livro de movimentações de estoque
    """
    CREATE TABLE IF NOT EXISTS movimentacao (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        tenant_id TEXT NOT NULL,
        product_id INTEGER NOT NULL,
        serial_number_id INTEGER,
        movement_type TEXT NOT NULL, -- 'entrada' | 'saida' | 'devolucao' | 'ajuste'
        quantity INTEGER NOT NULL,
        previous_stock INTEGER NOT NULL,
        new_stock INTEGER NOT NULL,
        reason TEXT,
        created_at TEXT NOT NULL,
        FOREIGN KEY (product_id) REFERENCES produto(id)
    );
    """,
    # No máximo uma cautela ativa por unidade serializada
    """
    CREATE UNIQUE INDEX IF NOT EXISTS ux_cautela_serial_ativa
        ON cautela(serial_number_id)
        WHERE returned_at IS NULL AND serial_number_id IS NOT NULL;
    """,
]


def _ensure_column(conn, table: str, column: str, ddl: str) -> None:
    """Adiciona coluna se não existir."""
    cur = conn.execute(f"PRAGMA table_info({table});")
    cols = [r[1] for r in cur.fetchall()]  # r[1] é o nome da coluna
    if column not in cols:
        conn.execute(f"ALTER TABLE {table} ADD COLUMN {ddl};")


def _apply_v1(conn) -> None:
    for sql in SCHEMA_V1:
        conn.executescript(sql)


def _apply_v2(conn) -> None:
    for sql in SCHEMA_V2:
        conn.executescript(sql)
    # numero_serie: a quem está atribuída e desde quando
    _ensure_column(conn, "numero_serie", "assigned_to", "assigned_to TEXT")
    _ensure_column(conn, "numero_serie", "assigned_at", "assigned_at TEXT")
    # auditoria: notas de resolução
    _ensure_column(conn, "auditoria", "resolution_notes", "resolution_notes TEXT")


def apply_migrations(db_path: str) -> None:
    """Aplica migrações incrementais de acordo com PRAGMA user_version."""
    with connect(db_path) as conn:
        ver = conn.execute("PRAGMA user_version;").fetchone()[0] or 0

        if ver < 1:
            _apply_v1(conn)
            conn.execute("PRAGMA user_version = 1;")
            ver = 1

        if ver < 2:
            _apply_v2(conn)
            conn.execute("PRAGMA user_version = 2;")
            ver = 2
