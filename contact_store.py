"""sqlite3-backed access to the Contact table.

Filters follow the shape Prisma uses: ``{"email": "a@x"}`` is an equality
match, several keys in one dict are ANDed, and ``{"AND": [...]}`` /
``{"OR": [...]}`` combine nested filters.
"""
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

PRIMARY = "primary"
SECONDARY = "secondary"

COLUMNS = ("id", "phoneNumber", "email", "linkedId", "linkPrecedence", "createdAt", "updatedAt", "deletedAt")
WRITABLE_COLUMNS = ("phoneNumber", "email", "linkedId", "linkPrecedence", "deletedAt")

Filter = Dict[str, Any]


@dataclass(frozen=True)
class Contact:
    id: int
    phoneNumber: Optional[str]
    email: Optional[str]
    linkedId: Optional[int]
    linkPrecedence: str
    createdAt: str
    updatedAt: str
    deletedAt: Optional[str] = None

    @classmethod
    def from_row(cls, row) -> "Contact":
        return cls(**{column: row[column] for column in COLUMNS})

    @property
    def is_primary(self) -> bool:
        return self.linkPrecedence == PRIMARY

    @property
    def primary_id(self) -> Optional[int]:
        return self.id if self.is_primary else self.linkedId

    @property
    def seniority(self) -> Tuple[str, int]:
        return (self.createdAt, self.id)


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


def compile_filter(where: Optional[Filter]) -> Tuple[str, List[Any]]:
    if not where:
        return "1 = 1", []

    clauses = []
    params: List[Any] = []
    for key, value in where.items():
        if key in ("AND", "OR"):
            parts = [compile_filter(sub) for sub in value]
            if not parts:
                clauses.append("1 = 1" if key == "AND" else "1 = 0")
                continue
            clauses.append("(" + f" {key} ".join(f"({sql})" for sql, _ in parts) + ")")
            for _, sub_params in parts:
                params.extend(sub_params)
        elif key in COLUMNS:
            if value is None:
                clauses.append(f"{key} IS NULL")
            else:
                clauses.append(f"{key} = ?")
                params.append(value)
        else:
            raise ValueError(f"Unknown contact field: {key}")

    return " AND ".join(clauses), params


def _order_clause(order_by: Iterable[str]) -> str:
    fields = []
    for field in order_by:
        if field not in COLUMNS:
            raise ValueError(f"Unknown contact field: {field}")
        fields.append(f"{field} ASC")
    if "id ASC" not in fields:
        fields.append("id ASC")
    return ", ".join(fields)


def _check_writable(fields: Dict[str, Any]) -> None:
    unknown = set(fields) - set(WRITABLE_COLUMNS)
    if unknown:
        raise ValueError(f"Cannot write contact fields: {', '.join(sorted(unknown))}")


class ContactStore:
    """Contact table operations over a single sqlite3 connection."""

    def __init__(self, conn):
        self.conn = conn

    @contextmanager
    def transaction(self):
        self.conn.execute("BEGIN IMMEDIATE")
        try:
            yield self
        except BaseException:
            self.conn.execute("ROLLBACK")
            raise
        else:
            self.conn.execute("COMMIT")

    def find_one(self, where: Filter) -> Optional[Contact]:
        contacts = self.find_many(where, limit=1)
        return contacts[0] if contacts else None

    def find_unique(self, contact_id: int) -> Optional[Contact]:
        return self.find_one({"id": contact_id})

    def find_many(self, where: Optional[Filter] = None, order_by: Iterable[str] = ("createdAt",),
                  limit: Optional[int] = None) -> List[Contact]:
        sql, params = compile_filter(where)
        query = f"SELECT * FROM Contact WHERE {sql} ORDER BY {_order_clause(order_by)}"
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)
        rows = self.conn.execute(query, params).fetchall()
        return [Contact.from_row(row) for row in rows]

    def create(self, **fields) -> Contact:
        _check_writable(fields)
        now = utc_now()
        columns = list(fields) + ["createdAt", "updatedAt"]
        values = list(fields.values()) + [now, now]
        placeholders = ", ".join("?" for _ in columns)
        cursor = self.conn.execute(
            f"INSERT INTO Contact ({', '.join(columns)}) VALUES ({placeholders})",
            values,
        )
        return self.find_unique(cursor.lastrowid)

    def update(self, contact_id: int, **fields) -> Optional[Contact]:
        self.update_many({"id": contact_id}, **fields)
        return self.find_unique(contact_id)

    def update_many(self, where: Filter, **fields) -> int:
        _check_writable(fields)
        if not fields:
            return 0
        assignments = ", ".join(f"{column} = ?" for column in fields) + ", updatedAt = ?"
        sql, params = compile_filter(where)
        cursor = self.conn.execute(
            f"UPDATE Contact SET {assignments} WHERE {sql}",
            list(fields.values()) + [utc_now()] + params,
        )
        return cursor.rowcount

    def delete_many(self, where: Optional[Filter] = None) -> int:
        sql, params = compile_filter(where)
        cursor = self.conn.execute(f"DELETE FROM Contact WHERE {sql}", params)
        return cursor.rowcount
