"""ECMA-335 documentation identifiers for catalogued entities.

Identifiers are what C# and VB compilers write into the ``name`` attribute of
``<member>`` elements, e.g. ``T:N.Calculator``,
``M:N.Calculator.Add(System.Int32,System.Int32)`` or
``P:N.Calculator.CurrentValue``. Everything here is a pure function of the
descriptor it is given.
"""

from __future__ import annotations

import re
from typing import Sequence

from asmdoc.errors import UnsupportedEntityKind
from asmdoc.metadata.descriptors import (
    EntityDescriptor,
    EventDescriptor,
    FieldDescriptor,
    MethodDescriptor,
    ParameterDescriptor,
    PropertyDescriptor,
    TypeDescriptor,
    TypeRef,
    TypeShape,
)

_ARITY = re.compile(r"`(\d+)$")
_CONVERSION_OPERATORS = frozenset({"op_Implicit", "op_Explicit"})


def qualified_name(ref: TypeRef) -> str:
    """Render a type reference the way documentation identifiers spell it."""
    if ref.shape is TypeShape.GENERIC_PARAMETER:
        marker = "``" if ref.method_parameter else "`"
        return f"{marker}{ref.position}"
    if ref.shape is TypeShape.ARRAY:
        assert ref.element is not None
        if ref.rank == 1:
            return qualified_name(ref.element) + "[]"
        return qualified_name(ref.element) + "[" + ",".join(["0:"] * ref.rank) + "]"
    if ref.shape is TypeShape.BYREF:
        assert ref.element is not None
        return qualified_name(ref.element) + "@"
    if ref.shape is TypeShape.POINTER:
        assert ref.element is not None
        return qualified_name(ref.element) + "*"
    if not ref.generic_args:
        return ref.full_name.replace("+", ".")
    return _constructed_name(ref)


def _constructed_name(ref: TypeRef) -> str:
    # Arguments are flattened across nesting levels; each level consumes as
    # many as its own arity marker declares.
    remaining = [qualified_name(arg) for arg in ref.generic_args]
    segments: list[str] = []
    for segment in ref.full_name.split("+"):
        match = _ARITY.search(segment)
        if match is None:
            segments.append(segment)
            continue
        arity = int(match.group(1))
        taken, remaining = remaining[:arity], remaining[arity:]
        base = segment[: match.start()]
        segments.append(base + "{" + ",".join(taken) + "}" if taken else base)
    if remaining:
        segments[-1] += "{" + ",".join(remaining) + "}"
    return ".".join(segments)


def _parameter_list(parameters: Sequence[ParameterDescriptor]) -> str:
    if not parameters:
        return ""
    return "(" + ",".join(qualified_name(parameter.type) for parameter in parameters) + ")"


def type_id(entity: TypeDescriptor | TypeRef) -> str:
    ref = entity.ref if isinstance(entity, TypeDescriptor) else entity
    return "T:" + qualified_name(ref)


def method_id(method: MethodDescriptor) -> str:
    # ".ctor" -> "#ctor"; explicit implementations "I.M" -> "I#M"
    name = method.name.replace(".", "#")
    if method.generic_arity:
        name += f"``{method.generic_arity}"
    text = f"M:{qualified_name(method.declaring_type)}.{name}{_parameter_list(method.parameters)}"
    if method.name in _CONVERSION_OPERATORS and method.return_type is not None:
        text += "~" + qualified_name(method.return_type)
    return text


def property_id(prop: PropertyDescriptor) -> str:
    return (
        f"P:{qualified_name(prop.declaring_type)}.{prop.name.replace('.', '#')}"
        f"{_parameter_list(prop.index_parameters)}"
    )


def field_id(field: FieldDescriptor) -> str:
    return f"F:{qualified_name(field.declaring_type)}.{field.name}"


def event_id(event: EventDescriptor) -> str:
    return f"E:{qualified_name(event.declaring_type)}.{event.name.replace('.', '#')}"


def entity_id(entity: EntityDescriptor) -> str:
    """Return the documentation identifier of any catalogued entity."""
    if isinstance(entity, TypeDescriptor):
        return type_id(entity)
    if isinstance(entity, MethodDescriptor):
        return method_id(entity)
    if isinstance(entity, PropertyDescriptor):
        return property_id(entity)
    if isinstance(entity, FieldDescriptor):
        return field_id(entity)
    if isinstance(entity, EventDescriptor):
        return event_id(entity)
    raise UnsupportedEntityKind(f"No identifier rule for {type(entity).__name__}")
