"""Core asmdoc data models."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, Optional, Union


class EntityKind(str, Enum):
    INTERFACE = "Interface"
    ENUM = "Enum"
    STRUCT = "Struct"
    STATIC_CLASS = "StaticClass"
    CLASS = "Class"
    METHOD = "Method"
    PROPERTY = "Property"
    FIELD = "Field"
    EVENT = "Event"


def _compact_json(mapping: Dict[str, str]) -> Optional[str]:
    if not mapping:
        return None
    return json.dumps(mapping, ensure_ascii=False, separators=(",", ":"))


def _load_mapping(text: Optional[str]) -> Dict[str, str]:
    if not text:
        return {}
    return dict(json.loads(text))


@dataclass(slots=True)
class DocComment:
    """Authored documentation parsed from a sidecar XML file."""

    summary: Optional[str] = None
    remarks: Optional[str] = None
    returns: Optional[str] = None
    example: Optional[str] = None
    parameters: Dict[str, str] = field(default_factory=dict)
    exceptions: Dict[str, str] = field(default_factory=dict)

    @property
    def parameters_json(self) -> Optional[str]:
        return _compact_json(self.parameters)

    @property
    def exceptions_json(self) -> Optional[str]:
        return _compact_json(self.exceptions)

    @classmethod
    def from_columns(
        cls,
        summary: Optional[str],
        remarks: Optional[str],
        returns: Optional[str],
        example: Optional[str],
        parameters_json: Optional[str],
        exceptions_json: Optional[str],
    ) -> "DocComment":
        return cls(
            summary=summary,
            remarks=remarks,
            returns=returns,
            example=example,
            parameters=_load_mapping(parameters_json),
            exceptions=_load_mapping(exceptions_json),
        )


@dataclass(slots=True)
class ModuleInfo:
    """One indexed assembly."""

    id: str
    name: str
    has_documentation: bool
    origin_path: Optional[str] = None
    indexed_at: Optional[datetime] = None


@dataclass(slots=True)
class TypeInfo:
    id: str
    module_id: str
    namespace: str
    name: str
    full_name: str
    kind: str
    signature: str
    base_type: Optional[str] = None


@dataclass(slots=True)
class MemberInfo:
    id: str
    type_id: str
    name: str
    kind: str
    signature: str


Entity = Union[TypeInfo, MemberInfo]


def _first_present(*values: Optional[str]) -> Optional[str]:
    for value in values:
        if value:
            return value
    return None


@dataclass(slots=True)
class DocumentationView:
    """Documentation as presented to readers.

    Authored text wins over synthetic text whenever it is non-empty. The view
    is derived on every read and never persisted.
    """

    source: str = "none"
    summary: Optional[str] = None
    remarks: Optional[str] = None
    returns: Optional[str] = None
    example: Optional[str] = None
    parameters: Dict[str, str] = field(default_factory=dict)
    exceptions: Dict[str, str] = field(default_factory=dict)


@dataclass(slots=True)
class DocumentationRecord:
    """Authored and synthetic documentation layers attached to one entity."""

    entity_id: str
    authored: DocComment = field(default_factory=DocComment)
    synthetic_summary: Optional[str] = None
    synthetic_example: Optional[str] = None
    last_updated: Optional[datetime] = None

    def view(self) -> DocumentationView:
        authored = self.authored
        if authored.summary:
            source = "xml"
        elif self.synthetic_summary:
            source = "ai"
        else:
            source = "none"
        return DocumentationView(
            source=source,
            summary=_first_present(authored.summary, self.synthetic_summary),
            remarks=authored.remarks or None,
            returns=authored.returns or None,
            example=_first_present(authored.example, self.synthetic_example),
            parameters=dict(authored.parameters),
            exceptions=dict(authored.exceptions),
        )
