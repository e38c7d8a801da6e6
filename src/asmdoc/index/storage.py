"""SQLite catalog store."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator, List, Optional

from asmdoc.models import DocComment, DocumentationRecord, MemberInfo, ModuleInfo, TypeInfo


def _casefold(value: Optional[str]) -> Optional[str]:
    return value.casefold() if value is not None else None


def _timestamp(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


class SQLiteCatalogStore:
    """Persistence layer for modules, entities and their documentation."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)
        self._conn = sqlite3.connect(self.db_path)
        self._conn.row_factory = sqlite3.Row
        self._conn.create_function("casefold", 1, _casefold, deterministic=True)
        self._conn.execute("PRAGMA journal_mode=WAL;")
        self._conn.execute("PRAGMA synchronous=NORMAL;")
        self._ensure_schema()

    @property
    def connection(self) -> sqlite3.Connection:
        return self._conn

    def close(self) -> None:
        self._conn.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        try:
            yield self._conn
            self._conn.commit()
        except Exception:
            self._conn.rollback()
            raise

    def _ensure_schema(self) -> None:
        with self.transaction() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS modules (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    has_documentation INTEGER NOT NULL,
                    origin_path TEXT,
                    indexed_at TEXT
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS types (
                    id TEXT PRIMARY KEY,
                    module_id TEXT NOT NULL,
                    namespace TEXT NOT NULL,
                    name TEXT NOT NULL,
                    full_name TEXT NOT NULL,
                    kind TEXT NOT NULL,
                    signature TEXT NOT NULL,
                    base_type TEXT,
                    FOREIGN KEY(module_id) REFERENCES modules(id)
                )
                """
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_types_module ON types(module_id, full_name)"
            )
            conn.execute("CREATE INDEX IF NOT EXISTS idx_types_namespace ON types(namespace)")
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS members (
                    id TEXT PRIMARY KEY,
                    type_id TEXT NOT NULL,
                    name TEXT NOT NULL,
                    kind TEXT NOT NULL,
                    signature TEXT NOT NULL,
                    FOREIGN KEY(type_id) REFERENCES types(id)
                )
                """
            )
            conn.execute("CREATE INDEX IF NOT EXISTS idx_members_type ON members(type_id)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_members_name ON members(name)")
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS documentation (
                    entity_id TEXT PRIMARY KEY,
                    xml_summary TEXT,
                    xml_remarks TEXT,
                    xml_returns TEXT,
                    xml_example TEXT,
                    xml_params TEXT,
                    xml_exceptions TEXT,
                    ai_summary TEXT,
                    ai_example TEXT,
                    last_updated TEXT NOT NULL
                )
                """
            )

    # -- writes (call inside ``transaction()``) ---------------------------

    def replace_module(self, module: ModuleInfo) -> List[str]:
        """Insert ``module``, dropping earlier modules indexed from the same origin.

        Returns the ids of the replaced modules.
        """
        conn = self._conn
        replaced: List[str] = []
        if module.origin_path is not None:
            rows = conn.execute(
                "SELECT id FROM modules WHERE origin_path = ? AND id != ?",
                (module.origin_path, module.id),
            ).fetchall()
            replaced = [row["id"] for row in rows]
        for old_id in replaced:
            self.delete_module(old_id)
        self.save_module(module)
        return replaced

    def save_module(self, module: ModuleInfo) -> None:
        self._conn.execute(
            """
            INSERT OR REPLACE INTO modules(id, name, has_documentation, origin_path, indexed_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                module.id,
                module.name,
                int(module.has_documentation),
                module.origin_path,
                _timestamp(module.indexed_at),
            ),
        )

    def delete_module(self, module_id: str) -> None:
        """Remove a module with its types and members; documentation rows stay."""
        conn = self._conn
        conn.execute(
            "DELETE FROM members WHERE type_id IN (SELECT id FROM types WHERE module_id = ?)",
            (module_id,),
        )
        conn.execute("DELETE FROM types WHERE module_id = ?", (module_id,))
        conn.execute("DELETE FROM modules WHERE id = ?", (module_id,))

    def save_type(self, type_info: TypeInfo) -> None:
        self._conn.execute(
            """
            INSERT OR REPLACE INTO types
                (id, module_id, namespace, name, full_name, kind, signature, base_type)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                type_info.id,
                type_info.module_id,
                type_info.namespace,
                type_info.name,
                type_info.full_name,
                type_info.kind,
                type_info.signature,
                type_info.base_type,
            ),
        )

    def save_member(self, member: MemberInfo) -> None:
        self._conn.execute(
            """
            INSERT OR REPLACE INTO members(id, type_id, name, kind, signature)
            VALUES (?, ?, ?, ?, ?)
            """,
            (member.id, member.type_id, member.name, member.kind, member.signature),
        )

    def save_documentation(
        self, entity_id: str, comment: DocComment, *, updated_at: datetime
    ) -> None:
        """Write the authored layer, leaving any synthetic text untouched."""
        self._conn.execute(
            """
            INSERT INTO documentation
                (entity_id, xml_summary, xml_remarks, xml_returns, xml_example,
                 xml_params, xml_exceptions, last_updated)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(entity_id) DO UPDATE SET
                xml_summary = excluded.xml_summary,
                xml_remarks = excluded.xml_remarks,
                xml_returns = excluded.xml_returns,
                xml_example = excluded.xml_example,
                xml_params = excluded.xml_params,
                xml_exceptions = excluded.xml_exceptions,
                last_updated = excluded.last_updated
            """,
            (
                entity_id,
                comment.summary,
                comment.remarks,
                comment.returns,
                comment.example,
                comment.parameters_json,
                comment.exceptions_json,
                _timestamp(updated_at),
            ),
        )

    def clear_documentation(self, entity_id: str, *, updated_at: datetime) -> None:
        """Drop the authored layer of an existing record, if any."""
        self._conn.execute(
            """
            UPDATE documentation SET
                xml_summary = NULL, xml_remarks = NULL, xml_returns = NULL,
                xml_example = NULL, xml_params = NULL, xml_exceptions = NULL,
                last_updated = ?
            WHERE entity_id = ? AND (
                xml_summary IS NOT NULL OR xml_remarks IS NOT NULL OR xml_returns IS NOT NULL
                OR xml_example IS NOT NULL OR xml_params IS NOT NULL OR xml_exceptions IS NOT NULL
            )
            """,
            (_timestamp(updated_at), entity_id),
        )

    def save_synthetic(
        self,
        entity_id: str,
        *,
        summary: Optional[str],
        example: Optional[str],
        updated_at: datetime,
    ) -> None:
        """Write the synthetic layer; ``None`` keeps the stored value."""
        self._conn.execute(
            """
            INSERT INTO documentation(entity_id, ai_summary, ai_example, last_updated)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(entity_id) DO UPDATE SET
                ai_summary = COALESCE(excluded.ai_summary, documentation.ai_summary),
                ai_example = COALESCE(excluded.ai_example, documentation.ai_example),
                last_updated = excluded.last_updated
            """,
            (entity_id, summary, example, _timestamp(updated_at)),
        )

    # -- reads ------------------------------------------------------------

    def get_module(self, module_id: str) -> Optional[ModuleInfo]:
        row = self._conn.execute("SELECT * FROM modules WHERE id = ?", (module_id,)).fetchone()
        return _row_to_module(row) if row is not None else None

    def list_modules(self) -> List[ModuleInfo]:
        rows = self._conn.execute("SELECT * FROM modules ORDER BY rowid").fetchall()
        return [_row_to_module(row) for row in rows]

    def get_type(self, type_id: str) -> Optional[TypeInfo]:
        row = self._conn.execute("SELECT * FROM types WHERE id = ?", (type_id,)).fetchone()
        return _row_to_type(row) if row is not None else None

    def get_member(self, member_id: str) -> Optional[MemberInfo]:
        row = self._conn.execute("SELECT * FROM members WHERE id = ?", (member_id,)).fetchone()
        return _row_to_member(row) if row is not None else None

    def list_members(self, type_id: str) -> List[MemberInfo]:
        rows = self._conn.execute(
            "SELECT * FROM members WHERE type_id = ? ORDER BY kind, name, id", (type_id,)
        ).fetchall()
        return [_row_to_member(row) for row in rows]

    def get_documentation(self, entity_id: str) -> Optional[DocumentationRecord]:
        row = self._conn.execute(
            "SELECT * FROM documentation WHERE entity_id = ?", (entity_id,)
        ).fetchone()
        if row is None:
            return None
        return DocumentationRecord(
            entity_id=row["entity_id"],
            authored=DocComment.from_columns(
                row["xml_summary"],
                row["xml_remarks"],
                row["xml_returns"],
                row["xml_example"],
                row["xml_params"],
                row["xml_exceptions"],
            ),
            synthetic_summary=row["ai_summary"],
            synthetic_example=row["ai_example"],
            last_updated=_parse_timestamp(row["last_updated"]),
        )

    def module_for_entity(self, entity_id: str) -> Optional[ModuleInfo]:
        row = self._conn.execute(
            """
            SELECT m.* FROM modules m
            JOIN types t ON t.module_id = m.id
            LEFT JOIN members mb ON mb.type_id = t.id
            WHERE t.id = ? OR mb.id = ?
            LIMIT 1
            """,
            (entity_id, entity_id),
        ).fetchone()
        return _row_to_module(row) if row is not None else None

    def _type_filter(self, module_id: str, search: Optional[str]) -> tuple[str, list]:
        clause = "module_id = ?"
        params: list = [module_id]
        if search:
            needle = search.casefold()
            clause += (
                " AND (instr(casefold(full_name), ?) > 0"
                " OR instr(casefold(name), ?) > 0"
                " OR instr(casefold(namespace), ?) > 0)"
            )
            params.extend([needle, needle, needle])
        return clause, params

    def find_types(
        self, module_id: str, search: Optional[str], *, limit: int, offset: int
    ) -> List[TypeInfo]:
        clause, params = self._type_filter(module_id, search)
        rows = self._conn.execute(
            f"SELECT * FROM types WHERE {clause} ORDER BY full_name, id LIMIT ? OFFSET ?",
            (*params, limit, offset),
        ).fetchall()
        return [_row_to_type(row) for row in rows]

    def count_types(self, module_id: str, search: Optional[str] = None) -> int:
        clause, params = self._type_filter(module_id, search)
        return self._conn.execute(
            f"SELECT COUNT(*) FROM types WHERE {clause}", params
        ).fetchone()[0]

    def count_members(self, module_id: str) -> int:
        return self._conn.execute(
            """
            SELECT COUNT(*) FROM members
            WHERE type_id IN (SELECT id FROM types WHERE module_id = ?)
            """,
            (module_id,),
        ).fetchone()[0]


def _row_to_module(row: sqlite3.Row) -> ModuleInfo:
    return ModuleInfo(
        id=row["id"],
        name=row["name"],
        has_documentation=bool(row["has_documentation"]),
        origin_path=row["origin_path"],
        indexed_at=_parse_timestamp(row["indexed_at"]),
    )


def _row_to_type(row: sqlite3.Row) -> TypeInfo:
    return TypeInfo(
        id=row["id"],
        module_id=row["module_id"],
        namespace=row["namespace"],
        name=row["name"],
        full_name=row["full_name"],
        kind=row["kind"],
        signature=row["signature"],
        base_type=row["base_type"],
    )


def _row_to_member(row: sqlite3.Row) -> MemberInfo:
    return MemberInfo(
        id=row["id"],
        type_id=row["type_id"],
        name=row["name"],
        kind=row["kind"],
        signature=row["signature"],
    )
