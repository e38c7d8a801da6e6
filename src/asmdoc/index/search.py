"""Catalog query interface."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from asmdoc.decompiler import Decompiler, NullDecompiler
from asmdoc.errors import InvalidQuery
from asmdoc.index.storage import SQLiteCatalogStore
from asmdoc.models import (
    DocumentationRecord,
    DocumentationView,
    Entity,
    MemberInfo,
    ModuleInfo,
    TypeInfo,
)

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class EntityDetail:
    entity: Entity
    documentation: Optional[DocumentationRecord] = None

    def view(self) -> DocumentationView:
        if self.documentation is None:
            return DocumentationView()
        return self.documentation.view()


@dataclass(slots=True)
class SourceCode:
    available: bool
    language: str = "csharp"
    content: Optional[str] = None


@dataclass(slots=True)
class MemberDetail:
    id: str
    name: str
    kind: str
    signature: str
    documentation: DocumentationView = field(default_factory=DocumentationView)
    source_code: Optional[SourceCode] = None


@dataclass(slots=True)
class TypePage:
    items: List[TypeInfo]
    page: int
    page_size: int
    total: int


# Largest value SQLite accepts as an INTEGER bind parameter.
_SQLITE_MAX_INTEGER = 2**63 - 1


def _validate_paging(page: int, page_size: int) -> None:
    if page < 1:
        raise InvalidQuery(f"page must be >= 1, got {page}")
    if page_size <= 0:
        raise InvalidQuery(f"page_size must be > 0, got {page_size}")


class CatalogQuery:
    """High-level read API over the catalog store."""

    def __init__(
        self, store: SQLiteCatalogStore, decompiler: Optional[Decompiler] = None
    ) -> None:
        self.store = store
        self.decompiler = decompiler or NullDecompiler()

    def list_types(
        self,
        module_id: str,
        search: Optional[str] = None,
        *,
        page: int = 1,
        page_size: int = 20,
    ) -> List[TypeInfo]:
        """Return one page of the module's types ordered by full name.

        ``search`` matches case-insensitively against full name, simple name
        or namespace. Pages past the end are empty.
        """
        _validate_paging(page, page_size)
        offset = (page - 1) * page_size
        if offset > _SQLITE_MAX_INTEGER:
            return []
        limit = min(page_size, _SQLITE_MAX_INTEGER)
        return self.store.find_types(module_id, search or None, limit=limit, offset=offset)

    def page_types(
        self,
        module_id: str,
        search: Optional[str] = None,
        *,
        page: int = 1,
        page_size: int = 20,
    ) -> TypePage:
        items = self.list_types(module_id, search, page=page, page_size=page_size)
        total = self.store.count_types(module_id, search or None)
        return TypePage(items=items, page=page, page_size=page_size, total=total)

    def get_entity(self, entity_id: str) -> Optional[EntityDetail]:
        entity: Optional[Entity]
        if entity_id.startswith("T:"):
            entity = self.store.get_type(entity_id)
        else:
            entity = self.store.get_member(entity_id)
        if entity is None:
            return None
        return EntityDetail(entity=entity, documentation=self.store.get_documentation(entity_id))

    def documentation(self, entity_id: str) -> DocumentationView:
        record = self.store.get_documentation(entity_id)
        return record.view() if record is not None else DocumentationView()

    def get_module(self, module_id: str) -> Optional[ModuleInfo]:
        return self.store.get_module(module_id)

    def list_modules(self) -> List[ModuleInfo]:
        return self.store.list_modules()

    def list_members(self, type_id: str) -> List[MemberInfo]:
        return self.store.list_members(type_id)

    def member_details(
        self, entity_id: str, *, include_source: bool = False
    ) -> Optional[MemberDetail]:
        detail = self.get_entity(entity_id)
        if detail is None:
            return None
        entity = detail.entity
        kind = entity.kind
        result = MemberDetail(
            id=entity.id,
            name=entity.name,
            kind=kind,
            signature=entity.signature,
            documentation=detail.view(),
        )
        if include_source:
            result.source_code = self._source_for(entity_id)
        return result

    def _source_for(self, entity_id: str) -> SourceCode:
        module = self.store.module_for_entity(entity_id)
        if module is None or not module.origin_path or not Path(module.origin_path).is_file():
            LOGGER.debug("No module file available for %s", entity_id)
            return SourceCode(available=False)
        content = self.decompiler.decompile(module.origin_path, entity_id)
        return SourceCode(available=content is not None, content=content)

    def annotate(
        self,
        entity_id: str,
        *,
        summary: Optional[str] = None,
        example: Optional[str] = None,
    ) -> bool:
        """Store synthetic documentation for an existing entity.

        Returns ``False`` when the entity is not catalogued.
        """
        if self.get_entity(entity_id) is None:
            return False
        with self.store.transaction():
            self.store.save_synthetic(
                entity_id,
                summary=summary,
                example=example,
                updated_at=datetime.now(timezone.utc),
            )
        return True
