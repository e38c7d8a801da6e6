"""Traversal of the exported surface of a module image."""

from __future__ import annotations

import logging
from typing import Iterator, Sequence

from asmdoc.errors import UnsupportedEntityKind
from asmdoc.metadata.descriptors import (
    EntityDescriptor,
    EventDescriptor,
    FieldDescriptor,
    MemberDescriptor,
    MethodDescriptor,
    ModuleImage,
    ParameterDescriptor,
    PropertyDescriptor,
    TypeDescriptor,
    TypeRef,
    TypeShape,
)
from asmdoc.models import EntityKind

LOGGER = logging.getLogger(__name__)

_ALIASES = {
    "System.Void": "void",
    "System.Boolean": "bool",
    "System.Byte": "byte",
    "System.SByte": "sbyte",
    "System.Char": "char",
    "System.Decimal": "decimal",
    "System.Double": "double",
    "System.Single": "float",
    "System.Int16": "short",
    "System.UInt16": "ushort",
    "System.Int32": "int",
    "System.UInt32": "uint",
    "System.Int64": "long",
    "System.UInt64": "ulong",
    "System.Object": "object",
    "System.String": "string",
}

# Base types implied by the type's keyword and left out of signatures.
_IMPLICIT_BASES = frozenset({"System.Object", "System.ValueType", "System.Enum"})


class EntityWalker:
    """Enumerate exported types and their declared public members.

    Both sequences are lazy and can be restarted any number of times; the
    image itself is immutable.
    """

    def __init__(self, image: ModuleImage) -> None:
        self.image = image
        self._by_name = {descriptor.full_name: descriptor for descriptor in image.types}

    def iter_types(self) -> Iterator[TypeDescriptor]:
        for descriptor in self.image.types:
            if self.is_exported(descriptor):
                yield descriptor

    def is_exported(self, descriptor: TypeDescriptor) -> bool:
        """Public top-level types and nested-public types of exported types."""
        current: TypeDescriptor | None = descriptor
        while current is not None:
            if not current.is_public:
                return False
            if current.declaring_type is None:
                return True
            current = self._by_name.get(current.declaring_type)
        return False

    def iter_members(self, descriptor: TypeDescriptor) -> Iterator[MemberDescriptor]:
        accessors = {name for prop in descriptor.properties for name in prop.accessors}
        accessors.update(name for event in descriptor.events for name in event.accessors)

        for method in descriptor.methods:
            if method.inherited or not method.is_public:
                continue
            if method.is_constructor and method.is_static:
                continue
            if method.is_special_name and method.name in accessors:
                LOGGER.debug("Skipping accessor %s.%s", descriptor.full_name, method.name)
                continue
            yield method
        for prop in descriptor.properties:
            if prop.is_public and not prop.inherited:
                yield prop
        for field in descriptor.fields:
            # enums carry a public special field "value__"
            if field.is_public and not field.inherited and not field.is_special_name:
                yield field
        for event in descriptor.events:
            if event.is_public and not event.inherited:
                yield event


def classify(descriptor: TypeDescriptor) -> EntityKind:
    if descriptor.is_interface:
        return EntityKind.INTERFACE
    if descriptor.is_enum:
        return EntityKind.ENUM
    if descriptor.is_value_type:
        return EntityKind.STRUCT
    if descriptor.is_class and descriptor.is_abstract and descriptor.is_sealed:
        return EntityKind.STATIC_CLASS
    if descriptor.is_class:
        return EntityKind.CLASS
    raise UnsupportedEntityKind(f"Type {descriptor.full_name} matches no type kind")


def member_kind(member: MemberDescriptor) -> EntityKind:
    if isinstance(member, MethodDescriptor):
        return EntityKind.METHOD
    if isinstance(member, PropertyDescriptor):
        return EntityKind.PROPERTY
    if isinstance(member, FieldDescriptor):
        return EntityKind.FIELD
    if isinstance(member, EventDescriptor):
        return EntityKind.EVENT
    raise UnsupportedEntityKind(f"No member kind for {type(member).__name__}")


def display_name(ref: TypeRef) -> str:
    """C#-flavoured rendering of a type reference, for display only."""
    if ref.shape is TypeShape.GENERIC_PARAMETER:
        return ref.full_name
    if ref.shape is TypeShape.ARRAY:
        assert ref.element is not None
        return display_name(ref.element) + "[" + "," * (ref.rank - 1) + "]"
    if ref.shape is TypeShape.BYREF:
        assert ref.element is not None
        return "ref " + display_name(ref.element)
    if ref.shape is TypeShape.POINTER:
        assert ref.element is not None
        return display_name(ref.element) + "*"
    if ref.full_name in _ALIASES:
        return _ALIASES[ref.full_name]
    base = ref.name.split("`", 1)[0]
    if ref.generic_args:
        return base + "<" + ", ".join(display_name(arg) for arg in ref.generic_args) + ">"
    return base


def _parameters(parameters: Sequence[ParameterDescriptor]) -> str:
    return ", ".join(f"{display_name(p.type)} {p.name}" for p in parameters)


def _type_signature(descriptor: TypeDescriptor) -> str:
    kind = classify(descriptor)
    if kind is EntityKind.STATIC_CLASS:
        keyword = "static class"
    elif kind is EntityKind.CLASS and descriptor.is_abstract:
        keyword = "abstract class"
    elif kind is EntityKind.CLASS and descriptor.is_sealed:
        keyword = "sealed class"
    else:
        keyword = kind.value.lower()

    name = descriptor.name.split("`", 1)[0]
    if descriptor.generic_parameters:
        name += "<" + ", ".join(descriptor.generic_parameters) + ">"
    text = f"public {keyword} {name}"
    base = descriptor.base_type
    if base is not None and base.full_name not in _IMPLICIT_BASES:
        text += " : " + display_name(base)
    return text


def _method_signature(method: MethodDescriptor) -> str:
    prefix = "static " if method.is_static else ""
    if method.is_constructor:
        name = method.declaring_type.name.split("`", 1)[0]
        return f"{prefix}{name}({_parameters(method.parameters)})"
    returns = display_name(method.return_type) if method.return_type is not None else "void"
    return f"{prefix}{returns} {method.name}({_parameters(method.parameters)})"


def _property_signature(prop: PropertyDescriptor) -> str:
    prefix = "static " if prop.is_static else ""
    accessors = []
    if prop.can_read:
        accessors.append("get;")
    if prop.can_write:
        accessors.append("set;")
    name = f"this[{_parameters(prop.index_parameters)}]" if prop.index_parameters else prop.name
    return f"{prefix}{display_name(prop.type)} {name} {{ {' '.join(accessors)} }}"


def _field_signature(field: FieldDescriptor) -> str:
    if field.is_literal:
        prefix = "const "
    elif field.is_static and field.is_readonly:
        prefix = "static readonly "
    elif field.is_static:
        prefix = "static "
    elif field.is_readonly:
        prefix = "readonly "
    else:
        prefix = ""
    return f"{prefix}{display_name(field.type)} {field.name}"


def _event_signature(event: EventDescriptor) -> str:
    prefix = "static " if event.is_static else ""
    handler = display_name(event.handler_type) if event.handler_type is not None else "EventHandler"
    return f"{prefix}event {handler} {event.name}"


def signature(entity: EntityDescriptor) -> str:
    """Best-effort human-readable declaration; never used for identifiers."""
    if isinstance(entity, TypeDescriptor):
        return _type_signature(entity)
    if isinstance(entity, MethodDescriptor):
        return _method_signature(entity)
    if isinstance(entity, PropertyDescriptor):
        return _property_signature(entity)
    if isinstance(entity, FieldDescriptor):
        return _field_signature(entity)
    if isinstance(entity, EventDescriptor):
        return _event_signature(entity)
    raise UnsupportedEntityKind(f"No signature rule for {type(entity).__name__}")
