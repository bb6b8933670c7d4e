# almoxarifado/infra/repositories.py
"""
Repositórios (DAO) para acesso e manipulação de dados no SQLite.

Classes:
- ProdutoRepo
- NumeroSerieRepo
- AuditoriaRepo
- CautelaRepo
- MovimentacaoRepo

Cada método abre a própria conexão (uma ida e volta ao banco) e todos os
acessos são filtrados pelo tenant informado na construção do repositório.
Atualizações de status são feitas como compare-and-set: o UPDATE só afeta
a linha se o status ainda for o lido pelo chamador, e o método devolve
``False`` quando outra sessão chegou antes.
"""

from __future__ import annotations

from dataclasses import asdict, is_dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .db import connect
from almoxarifado.config import TENANT_ID
from almoxarifado.domain.models import (
    Auditoria,
    Cautela,
    Categoria,
    NumeroSerie,
    Produto,
    StatusAuditoria,
    StatusSerial,
    TipoAtivo,
    TipoAuditoria,
    TipoMovimentacao,
)


# -------------------------
# Helpers
# -------------------------

def agora_iso() -> str:
    return datetime.now().isoformat(timespec="seconds")


def _as_dict(row: Any) -> Dict[str, Any]:
    if isinstance(row, dict):
        return dict(row)
    if is_dataclass(row):
        return asdict(row)
    raise TypeError("row must be dict or dataclass")


def _valor(v: Any) -> Any:
    """Desembrulha enums antes de gravar."""
    return getattr(v, "value", v)


def _limpa(row: Dict[str, Any]) -> Dict[str, Any]:
    return {k: _valor(v) for k, v in row.items()}


def _produto(r) -> Produto:
    return Produto(
        id=r["id"],
        tenant_id=r["tenant_id"],
        code=r["code"],
        name=r["name"],
        category=Categoria(r["category"]),
        is_serialized=bool(r["is_serialized"]),
        current_stock=int(r["current_stock"] or 0),
        min_stock=int(r["min_stock"] or 0),
        max_stock=r["max_stock"],
        unit=r["unit"],
        is_active=bool(r["is_active"]),
    )


def _serie(r) -> NumeroSerie:
    return NumeroSerie(
        id=r["id"],
        tenant_id=r["tenant_id"],
        product_id=r["product_id"],
        serial_number=r["serial_number"],
        status=StatusSerial(r["status"]),
        assigned_to=r["assigned_to"],
        assigned_at=r["assigned_at"],
        location=r["location"],
        created_at=r["created_at"],
    )


def _auditoria(r) -> Auditoria:
    return Auditoria(
        id=r["id"],
        tenant_id=r["tenant_id"],
        product_id=r["product_id"],
        serial_number_id=r["serial_number_id"],
        audit_type=TipoAuditoria(r["audit_type"]),
        status=StatusAuditoria(r["status"]),
        quantity=int(r["quantity"]),
        description=r["description"],
        reported_by=r["reported_by"],
        reported_at=r["reported_at"],
        resolved_at=r["resolved_at"],
        resolution_notes=r["resolution_notes"],
        parent_audit_id=r["parent_audit_id"],
    )


def _cautela(r) -> Cautela:
    return Cautela(
        id=r["id"],
        tenant_id=r["tenant_id"],
        technician_id=r["technician_id"],
        asset_type=TipoAtivo(r["asset_type"]),
        serial_number_id=r["serial_number_id"],
        product_id=r["product_id"],
        quantity=int(r["quantity"]),
        assigned_at=r["assigned_at"],
        returned_at=r["returned_at"],
        notes=r["notes"] or "",
    )


class _TenantRepo:
    def __init__(self, db_path: str, tenant_id: str = TENANT_ID):
        self.db_path = db_path
        self.tenant_id = tenant_id


# -------------------------
# Produto
# -------------------------

class ProdutoRepo(_TenantRepo):
    _COLS = ("code", "name", "category", "is_serialized", "current_stock",
             "min_stock", "max_stock", "unit", "is_active")

    def insert(self, row: Any) -> Produto:
        r = _limpa(_as_dict(row))
        payload = {k: r.get(k) for k in self._COLS}
        payload["is_serialized"] = 1 if payload.get("is_serialized") else 0
        payload["is_active"] = 0 if payload.get("is_active") is False else 1
        payload["current_stock"] = int(payload.get("current_stock") or 0)
        payload["min_stock"] = int(payload.get("min_stock") or 0)
        payload["unit"] = payload.get("unit") or "UN"
        payload["tenant_id"] = self.tenant_id
        with connect(self.db_path) as c:
            cur = c.execute(
                """
                INSERT INTO produto
                    (tenant_id, code, name, category, is_serialized, current_stock,
                     min_stock, max_stock, unit, is_active)
                VALUES
                    (:tenant_id, :code, :name, :category, :is_serialized, :current_stock,
                     :min_stock, :max_stock, :unit, :is_active)
                """,
                payload,
            )
            new_id = cur.lastrowid
        return self.get(new_id)

    def get(self, product_id: int) -> Optional[Produto]:
        with connect(self.db_path) as c:
            r = c.execute(
                "SELECT * FROM produto WHERE id = ? AND tenant_id = ?",
                (product_id, self.tenant_id),
            ).fetchone()
            return _produto(r) if r else None

    def get_by_code(self, code: str) -> Optional[Produto]:
        with connect(self.db_path) as c:
            r = c.execute(
                "SELECT * FROM produto WHERE code = ? AND tenant_id = ?",
                (code, self.tenant_id),
            ).fetchone()
            return _produto(r) if r else None

    def get_all(self, categoria: Optional[Categoria] = None, apenas_ativos: bool = True) -> List[Produto]:
        sql = "SELECT * FROM produto WHERE tenant_id = ?"
        args: List[Any] = [self.tenant_id]
        if categoria is not None:
            sql += " AND category = ?"
            args.append(_valor(categoria))
        if apenas_ativos:
            sql += " AND is_active = 1"
        sql += " ORDER BY code"
        with connect(self.db_path) as c:
            return [_produto(r) for r in c.execute(sql, args).fetchall()]

    def aplicar_movimento(
        self,
        product_id: int,
        delta: int,
        tipo: TipoMovimentacao,
        reason: str,
        serial_number_id: Optional[int] = None,
        piso_zero: bool = False,
    ) -> Tuple[int, int]:
        """Grava a movimentação e o novo saldo na mesma transação.

        Returns:
            ``(saldo_anterior, saldo_novo)``.
        """
        with connect(self.db_path) as c:
            r = c.execute(
                "SELECT current_stock FROM produto WHERE id = ? AND tenant_id = ?",
                (product_id, self.tenant_id),
            ).fetchone()
            anterior = int(r["current_stock"] or 0) if r else 0
            novo = anterior + int(delta)
            if piso_zero:
                novo = max(0, novo)
            c.execute(
                """
                INSERT INTO movimentacao
                    (tenant_id, product_id, serial_number_id, movement_type, quantity,
                     previous_stock, new_stock, reason, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (self.tenant_id, product_id, serial_number_id, _valor(tipo), abs(int(delta)),
                 anterior, novo, reason, agora_iso()),
            )
            c.execute(
                "UPDATE produto SET current_stock = ? WHERE id = ? AND tenant_id = ?",
                (novo, product_id, self.tenant_id),
            )
        return anterior, novo

    def saldo_serializado(self, product_id: int) -> int:
        """Quantidade de unidades ainda no patrimônio (não descartadas)."""
        with connect(self.db_path) as c:
            r = c.execute(
                "SELECT quantidade FROM vw_saldo_serializado WHERE product_id = ? AND tenant_id = ?",
                (product_id, self.tenant_id),
            ).fetchone()
            return int(r["quantidade"]) if r else 0


# -------------------------
# Números de série
# -------------------------

class NumeroSerieRepo(_TenantRepo):
    def insert_many(self, product_id: int, seriais: Iterable[str]) -> List[NumeroSerie]:
        """Cadastra as unidades (status ``disponivel``) em uma única transação."""
        criados: List[int] = []
        agora = agora_iso()
        with connect(self.db_path) as c:
            for serial in seriais:
                cur = c.execute(
                    """
                    INSERT INTO numero_serie
                        (tenant_id, product_id, serial_number, status, created_at)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (self.tenant_id, product_id, serial, StatusSerial.DISPONIVEL.value, agora),
                )
                criados.append(cur.lastrowid)
        return [self.get(i) for i in criados]

    def get(self, serial_id: int) -> Optional[NumeroSerie]:
        with connect(self.db_path) as c:
            r = c.execute(
                "SELECT * FROM numero_serie WHERE id = ? AND tenant_id = ?",
                (serial_id, self.tenant_id),
            ).fetchone()
            return _serie(r) if r else None

    def find_by_text(self, texto: str, product_id: Optional[int] = None) -> Optional[NumeroSerie]:
        # serial_number é COLLATE NOCASE: '=' já ignora caixa
        sql = "SELECT * FROM numero_serie WHERE tenant_id = ? AND serial_number = ?"
        args: List[Any] = [self.tenant_id, texto]
        if product_id is not None:
            sql += " AND product_id = ?"
            args.append(product_id)
        with connect(self.db_path) as c:
            r = c.execute(sql, args).fetchone()
            return _serie(r) if r else None

    def existentes(self, seriais: Iterable[str]) -> List[str]:
        """Retorna quais dos seriais informados já existem no tenant."""
        achados: List[str] = []
        with connect(self.db_path) as c:
            for s in seriais:
                r = c.execute(
                    "SELECT serial_number FROM numero_serie WHERE tenant_id = ? AND serial_number = ?",
                    (self.tenant_id, s),
                ).fetchone()
                if r:
                    achados.append(s)
        return achados

    def get_all(
        self,
        product_id: Optional[int] = None,
        status: Optional[StatusSerial] = None,
    ) -> List[NumeroSerie]:
        sql = "SELECT * FROM numero_serie WHERE tenant_id = ?"
        args: List[Any] = [self.tenant_id]
        if product_id is not None:
            sql += " AND product_id = ?"
            args.append(product_id)
        if status is not None:
            sql += " AND status = ?"
            args.append(_valor(status))
        sql += " ORDER BY created_at DESC, id DESC"
        with connect(self.db_path) as c:
            return [_serie(r) for r in c.execute(sql, args).fetchall()]

    def compare_and_set_status(
        self,
        serial_id: int,
        atual: StatusSerial,
        novo: StatusSerial,
        assigned_to: Optional[str] = None,
    ) -> bool:
        """Muda o status somente se ainda for ``atual``.

        ``assigned_to`` é gravado junto com ``assigned_at``; sem ele os dois
        campos são limpos.
        """
        assigned_at = agora_iso() if assigned_to else None
        with connect(self.db_path) as c:
            cur = c.execute(
                """
                UPDATE numero_serie
                   SET status = ?, assigned_to = ?, assigned_at = ?
                 WHERE id = ? AND tenant_id = ? AND status = ?
                """,
                (_valor(novo), assigned_to, assigned_at, serial_id, self.tenant_id, _valor(atual)),
            )
            return cur.rowcount == 1


# -------------------------
# Auditorias
# -------------------------

class AuditoriaRepo(_TenantRepo):
    _INSERT = """
        INSERT INTO auditoria
            (tenant_id, product_id, serial_number_id, audit_type, status, quantity,
             description, reported_by, reported_at, resolved_at, resolution_notes,
             parent_audit_id)
        VALUES
            (:tenant_id, :product_id, :serial_number_id, :audit_type, :status, :quantity,
             :description, :reported_by, :reported_at, :resolved_at, :resolution_notes,
             :parent_audit_id)
    """

    def _payload(self, row: Any) -> Dict[str, Any]:
        r = _limpa(_as_dict(row))
        return {
            "tenant_id": self.tenant_id,
            "product_id": r["product_id"],
            "serial_number_id": r.get("serial_number_id"),
            "audit_type": r["audit_type"],
            "status": r["status"],
            "quantity": int(r["quantity"]),
            "description": r["description"],
            "reported_by": r.get("reported_by"),
            "reported_at": r.get("reported_at") or agora_iso(),
            "resolved_at": r.get("resolved_at"),
            "resolution_notes": r.get("resolution_notes"),
            "parent_audit_id": r.get("parent_audit_id"),
        }

    def insert(self, row: Any) -> Auditoria:
        with connect(self.db_path) as c:
            cur = c.execute(self._INSERT, self._payload(row))
            new_id = cur.lastrowid
        return self.get(new_id)

    def insert_com_saldo(self, row: Any, novo_saldo: Optional[int]) -> Auditoria:
        """Grava a auditoria e, se ``novo_saldo`` vier, o saldo do produto.

        As duas escritas ficam na mesma transação: ou ambas persistem ou
        nenhuma.
        """
        payload = self._payload(row)
        with connect(self.db_path) as c:
            cur = c.execute(self._INSERT, payload)
            new_id = cur.lastrowid
            if novo_saldo is not None:
                c.execute(
                    "UPDATE produto SET current_stock = ? WHERE id = ? AND tenant_id = ?",
                    (int(novo_saldo), payload["product_id"], self.tenant_id),
                )
        return self.get(new_id)

    def get(self, audit_id: int) -> Optional[Auditoria]:
        with connect(self.db_path) as c:
            r = c.execute(
                "SELECT * FROM auditoria WHERE id = ? AND tenant_id = ?",
                (audit_id, self.tenant_id),
            ).fetchone()
            return _auditoria(r) if r else None

    def get_all(
        self,
        audit_type: Optional[TipoAuditoria] = None,
        status: Optional[StatusAuditoria] = None,
        product_id: Optional[int] = None,
    ) -> List[Auditoria]:
        sql = "SELECT * FROM auditoria WHERE tenant_id = ?"
        args: List[Any] = [self.tenant_id]
        if audit_type is not None:
            sql += " AND audit_type = ?"
            args.append(_valor(audit_type))
        if status is not None:
            sql += " AND status = ?"
            args.append(_valor(status))
        if product_id is not None:
            sql += " AND product_id = ?"
            args.append(product_id)
        sql += " ORDER BY reported_at DESC, id DESC"
        with connect(self.db_path) as c:
            return [_auditoria(r) for r in c.execute(sql, args).fetchall()]

    def filhas(self, parent_id: int) -> List[Auditoria]:
        with connect(self.db_path) as c:
            rows = c.execute(
                "SELECT * FROM auditoria WHERE parent_audit_id = ? AND tenant_id = ? ORDER BY id",
                (parent_id, self.tenant_id),
            ).fetchall()
            return [_auditoria(r) for r in rows]

    def compare_and_set_status(
        self,
        audit_id: int,
        atual: StatusAuditoria,
        novo: StatusAuditoria,
        resolved_at: Optional[str] = None,
        resolution_notes: Optional[str] = None,
    ) -> bool:
        with connect(self.db_path) as c:
            cur = c.execute(
                """
                UPDATE auditoria
                   SET status = ?,
                       resolved_at = COALESCE(?, resolved_at),
                       resolution_notes = COALESCE(?, resolution_notes)
                 WHERE id = ? AND tenant_id = ? AND status = ?
                """,
                (_valor(novo), resolved_at, resolution_notes, audit_id, self.tenant_id, _valor(atual)),
            )
            return cur.rowcount == 1

    def resolver(
        self,
        audit_id: int,
        atual: StatusAuditoria,
        resolved_at: str,
        resolution_notes: str,
        filha: Optional[Any] = None,
    ) -> Tuple[bool, Optional[int]]:
        """CAS ``atual -> resolvido`` e, se vier ``filha``, a ocorrência filha.

        Mesma transação: se o CAS não casar nada é gravado.

        Returns:
            ``(ok, id_da_filha)``.
        """
        with connect(self.db_path) as c:
            cur = c.execute(
                """
                UPDATE auditoria
                   SET status = ?, resolved_at = ?, resolution_notes = ?
                 WHERE id = ? AND tenant_id = ? AND status = ?
                """,
                (StatusAuditoria.RESOLVIDO.value, resolved_at, resolution_notes,
                 audit_id, self.tenant_id, _valor(atual)),
            )
            if cur.rowcount != 1:
                return False, None
            filha_id = None
            if filha is not None:
                filha_id = c.execute(self._INSERT, self._payload(filha)).lastrowid
        return True, filha_id

    def contagem_por_status(self) -> Dict[str, int]:
        with connect(self.db_path) as c:
            rows = c.execute(
                "SELECT status, COUNT(*) FROM auditoria WHERE tenant_id = ? GROUP BY status",
                (self.tenant_id,),
            ).fetchall()
            return {r[0]: int(r[1]) for r in rows}


# -------------------------
# Cautelas
# -------------------------

class CautelaRepo(_TenantRepo):
    def insert(self, row: Any) -> Cautela:
        r = _limpa(_as_dict(row))
        payload = {
            "tenant_id": self.tenant_id,
            "technician_id": r["technician_id"],
            "asset_type": r["asset_type"],
            "serial_number_id": r.get("serial_number_id"),
            "product_id": r.get("product_id"),
            "quantity": int(r.get("quantity") or 1),
            "assigned_at": r.get("assigned_at") or agora_iso(),
            "notes": r.get("notes"),
        }
        with connect(self.db_path) as c:
            cur = c.execute(
                """
                INSERT INTO cautela
                    (tenant_id, technician_id, asset_type, serial_number_id, product_id,
                     quantity, assigned_at, notes)
                VALUES
                    (:tenant_id, :technician_id, :asset_type, :serial_number_id, :product_id,
                     :quantity, :assigned_at, :notes)
                """,
                payload,
            )
            new_id = cur.lastrowid
        return self.get(new_id)

    def get(self, cautela_id: int) -> Optional[Cautela]:
        with connect(self.db_path) as c:
            r = c.execute(
                "SELECT * FROM cautela WHERE id = ? AND tenant_id = ?",
                (cautela_id, self.tenant_id),
            ).fetchone()
            return _cautela(r) if r else None

    def get_all(self, technician_id: Optional[str] = None, ativas: Optional[bool] = None) -> List[Cautela]:
        sql = "SELECT * FROM cautela WHERE tenant_id = ?"
        args: List[Any] = [self.tenant_id]
        if technician_id is not None:
            sql += " AND technician_id = ?"
            args.append(technician_id)
        if ativas is True:
            sql += " AND returned_at IS NULL"
        elif ativas is False:
            sql += " AND returned_at IS NOT NULL"
        sql += " ORDER BY assigned_at DESC, id DESC"
        with connect(self.db_path) as c:
            return [_cautela(r) for r in c.execute(sql, args).fetchall()]

    def registrar_devolucao(self, cautela_id: int, returned_at: str, notes: str) -> bool:
        """Fecha a cautela; ``False`` se ela já estava devolvida."""
        with connect(self.db_path) as c:
            cur = c.execute(
                """
                UPDATE cautela SET returned_at = ?, notes = ?
                 WHERE id = ? AND tenant_id = ? AND returned_at IS NULL
                """,
                (returned_at, notes, cautela_id, self.tenant_id),
            )
            return cur.rowcount == 1

    def linhas_ficha(self, technician_id: str) -> List[Dict[str, Any]]:
        """Linhas detalhadas (produto, serial, categoria) de todas as cautelas do técnico."""
        with connect(self.db_path) as c:
            cur = c.execute(
                """
                SELECT
                    c.id, c.asset_type, c.quantity, c.assigned_at, c.returned_at, c.notes,
                    s.serial_number,
                    p.code AS product_code, p.name AS product_name, p.category, p.unit
                FROM cautela c
                LEFT JOIN numero_serie s ON s.id = c.serial_number_id
                LEFT JOIN produto p      ON p.id = COALESCE(c.product_id, s.product_id)
                WHERE c.tenant_id = ? AND c.technician_id = ?
                ORDER BY p.category, c.assigned_at, c.id
                """,
                (self.tenant_id, technician_id),
            )
            cols = [d[0] for d in cur.description]
            return [dict(zip(cols, row)) for row in cur.fetchall()]


# -------------------------
# Movimentações
# -------------------------

class MovimentacaoRepo(_TenantRepo):
    def get_all(self, product_id: Optional[int] = None) -> List[Dict[str, Any]]:
        sql = "SELECT * FROM movimentacao WHERE tenant_id = ?"
        args: List[Any] = [self.tenant_id]
        if product_id is not None:
            sql += " AND product_id = ?"
            args.append(product_id)
        sql += " ORDER BY id"
        with connect(self.db_path) as c:
            cur = c.execute(sql, args)
            cols = [d[0] for d in cur.description]
            return [dict(zip(cols, row)) for row in cur.fetchall()]
