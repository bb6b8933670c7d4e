# almoxarifado/infra/views.py
"""
Criação de views auxiliares para consultas frequentes.

Views criadas:
- vw_saldo_serializado: conta, por produto, as unidades ainda no patrimônio
                        (disponivel, em_uso, em_manutencao).
- vw_cautelas_ativas:   cautelas sem devolução, com produto/serial resolvidos.
- vw_saude_estoque:     classifica cada produto ativo em 'zero' / 'baixo'.

Obs.:
- As views assumem que as migrações V1→V2 já foram aplicadas.
- Um conjunto de índices úteis também é criado, caso não existam.
"""

from __future__ import annotations

from .db import connect


def create_views(db_path: str) -> None:
    with connect(db_path) as c:
        # -----------------------
        # Views (drop + create)
        # -----------------------
        c.executescript(
            """
            ---------------------------
            -- Saldo derivado dos números de série
            ---------------------------
            DROP VIEW IF EXISTS vw_saldo_serializado;
            CREATE VIEW vw_saldo_serializado AS
            SELECT
                p.tenant_id,
                p.id AS product_id,
                COUNT(s.id) AS quantidade
            FROM produto p
            LEFT JOIN numero_serie s
                ON s.product_id = p.id
               AND s.status IN ('disponivel', 'em_uso', 'em_manutencao')
            WHERE p.is_serialized = 1
            GROUP BY p.tenant_id, p.id;

            ---------------------------
            -- Cautelas ativas (item sob responsabilidade)
            ---------------------------
            DROP VIEW IF EXISTS vw_cautelas_ativas;
            CREATE VIEW vw_cautelas_ativas AS
            SELECT
                c.id,
                c.tenant_id,
                c.technician_id,
                c.asset_type,
                c.serial_number_id,
                s.serial_number,
                COALESCE(c.product_id, s.product_id) AS product_id,
                p.code     AS product_code,
                p.name     AS product_name,
                p.category AS category,
                c.quantity,
                c.assigned_at
            FROM cautela c
            LEFT JOIN numero_serie s ON s.id = c.serial_number_id
            LEFT JOIN produto p      ON p.id = COALESCE(c.product_id, s.product_id)
            WHERE c.returned_at IS NULL;

            ---------------------------
            -- Saúde de estoque por produto ativo
            ---------------------------
            DROP VIEW IF EXISTS vw_saude_estoque;
            CREATE VIEW vw_saude_estoque AS
            SELECT
                tenant_id,
                id AS product_id,
                category,
                current_stock,
                min_stock,
                CASE
                    WHEN COALESCE(current_stock, 0) = 0 THEN 'zero'
                    WHEN COALESCE(min_stock, 0) > 0 AND current_stock > 0 AND current_stock < min_stock THEN 'baixo'
                    ELSE NULL
                END AS saude
            FROM produto
            WHERE is_active = 1;
            """
        )

        # --------------------------------
        # Índices úteis (IF NOT EXISTS)
        # --------------------------------
        c.executescript(
            """
            CREATE INDEX IF NOT EXISTS idx_produto_categoria  ON produto(tenant_id, category);
            CREATE INDEX IF NOT EXISTS idx_serie_produto      ON numero_serie(product_id, status);
            CREATE INDEX IF NOT EXISTS idx_auditoria_produto  ON auditoria(product_id);
            CREATE INDEX IF NOT EXISTS idx_auditoria_parent   ON auditoria(parent_audit_id);
            CREATE INDEX IF NOT EXISTS idx_auditoria_tipo     ON auditoria(tenant_id, audit_type, status);
            CREATE INDEX IF NOT EXISTS idx_cautela_tecnico    ON cautela(tenant_id, technician_id);
            CREATE INDEX IF NOT EXISTS idx_movimentacao_prod  ON movimentacao(product_id, created_at);
            """
        )
