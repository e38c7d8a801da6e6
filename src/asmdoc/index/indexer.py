"""Assembly indexing pipeline."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from functools import partial
from pathlib import Path
from typing import Callable, List, Optional, Union

from asmdoc.errors import MalformedDocumentation
from asmdoc.index.ids import entity_id, qualified_name
from asmdoc.index.storage import SQLiteCatalogStore
from asmdoc.ingestion.xmldoc import XmlDocumentation
from asmdoc.metadata.descriptors import ModuleImage, TypeDescriptor
from asmdoc.metadata.loader import DEFAULT_RUNTIME, load_module
from asmdoc.metadata.walker import EntityWalker, classify, member_kind, signature
from asmdoc.models import DocComment, MemberInfo, ModuleInfo, TypeInfo

LOGGER = logging.getLogger(__name__)

ModuleLoader = Callable[[Path], ModuleImage]


@dataclass(slots=True)
class IndexReport:
    module_id: str
    module_name: str
    has_documentation: bool = False
    types: int = 0
    members: int = 0
    documented: int = 0
    skipped: int = 0
    replaced: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


@dataclass(slots=True)
class _Pending:
    record: Union[TypeInfo, MemberInfo]
    comment: Optional[DocComment]


class Indexer:
    """Coordinates module loading, identifier correlation and persistence."""

    def __init__(
        self,
        store: SQLiteCatalogStore,
        *,
        loader: Optional[ModuleLoader] = None,
        runtime: str = DEFAULT_RUNTIME,
    ) -> None:
        self.store = store
        self.loader = loader or partial(load_module, runtime=runtime)

    def index(self, module_path: Path, doc_path: Optional[Path] = None) -> str:
        """Index one assembly and return its fresh catalog id."""
        return self.index_module(module_path, doc_path).module_id

    def index_module(
        self,
        module_path: Path,
        doc_path: Optional[Path] = None,
        *,
        origin_path: Optional[Path] = None,
    ) -> IndexReport:
        """Index one assembly and describe what was written.

        ``ModuleLoadFailure`` propagates before anything is written. All
        rows are computed first and written in a single transaction.
        """
        module_path = Path(module_path)
        LOGGER.info("Processing: %s", module_path)
        image = self.loader(module_path)

        documentation: Optional[XmlDocumentation] = None
        warnings: List[str] = []
        if doc_path is not None:
            documentation, warning = self._load_documentation(Path(doc_path))
            if warning:
                warnings.append(warning)

        now = datetime.now(timezone.utc)
        origin = Path(origin_path) if origin_path is not None else module_path
        module = ModuleInfo(
            id=uuid.uuid4().hex,
            name=image.name,
            has_documentation=documentation is not None,
            origin_path=str(origin.resolve()),
            indexed_at=now,
        )
        report = IndexReport(
            module_id=module.id,
            module_name=module.name,
            has_documentation=module.has_documentation,
            warnings=warnings,
        )
        pending = self._collect(image, module.id, documentation, report)

        with self.store.transaction():
            report.replaced = self.store.replace_module(module)
            for entry in pending:
                record = entry.record
                if isinstance(record, TypeInfo):
                    self.store.save_type(record)
                else:
                    self.store.save_member(record)
                if entry.comment is not None:
                    self.store.save_documentation(record.id, entry.comment, updated_at=now)
                else:
                    self.store.clear_documentation(record.id, updated_at=now)

        LOGGER.info(
            "Indexed %s as %s: %d types, %d members, %d documented",
            module.name,
            module.id,
            report.types,
            report.members,
            report.documented,
        )
        return report

    def _load_documentation(self, doc_path: Path) -> tuple[Optional[XmlDocumentation], Optional[str]]:
        documentation = XmlDocumentation()
        try:
            loaded = documentation.load(doc_path)
        except MalformedDocumentation as exc:
            LOGGER.warning("Ignoring documentation: %s", exc)
            return None, str(exc)
        if not loaded:
            return None, None
        return documentation, None

    def _collect(
        self,
        image: ModuleImage,
        module_id: str,
        documentation: Optional[XmlDocumentation],
        report: IndexReport,
    ) -> List[_Pending]:
        walker = EntityWalker(image)
        seen: set[str] = set()
        pending: List[_Pending] = []

        def lookup(identifier: str) -> Optional[DocComment]:
            comment = documentation.lookup(identifier) if documentation is not None else None
            if comment is not None:
                report.documented += 1
            return comment

        def claim(identifier: str) -> bool:
            if identifier in seen:
                LOGGER.warning("Identifier collision in %s: %s", image.name, identifier)
                report.skipped += 1
                return False
            seen.add(identifier)
            return True

        for descriptor in walker.iter_types():
            type_id = entity_id(descriptor)
            if not claim(type_id):
                continue
            pending.append(_Pending(self._type_record(descriptor, type_id, module_id), lookup(type_id)))
            report.types += 1

            for member in walker.iter_members(descriptor):
                member_id = entity_id(member)
                if not claim(member_id):
                    continue
                record = MemberInfo(
                    id=member_id,
                    type_id=type_id,
                    name=member.name,
                    kind=member_kind(member).value,
                    signature=signature(member),
                )
                LOGGER.debug("Member %s", member_id)
                pending.append(_Pending(record, lookup(member_id)))
                report.members += 1
        return pending

    @staticmethod
    def _type_record(descriptor: TypeDescriptor, type_id: str, module_id: str) -> TypeInfo:
        base = descriptor.base_type
        return TypeInfo(
            id=type_id,
            module_id=module_id,
            namespace=descriptor.namespace,
            name=descriptor.name,
            full_name=type_id[2:],
            kind=classify(descriptor).value,
            signature=signature(descriptor),
            base_type=qualified_name(base) if base is not None else None,
        )
