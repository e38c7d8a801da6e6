"""Immutable structural description of a loaded assembly.

The module loader converts live reflection objects into these descriptors so
that the walker and the identifier generator never touch the CLR. Tests build
the same trees by hand.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterator, Union


class TypeShape(str, Enum):
    NAMED = "named"
    ARRAY = "array"
    BYREF = "byref"
    POINTER = "pointer"
    GENERIC_PARAMETER = "generic_parameter"


@dataclass(frozen=True, slots=True)
class TypeRef:
    """A type as it appears in a signature.

    ``full_name`` of a named type is its metadata name: the namespace, ``+``
    between nesting levels and a backtick arity marker on generic types, e.g.
    ``System.Collections.Generic.Dictionary`2+KeyCollection``. Constructed
    generics carry their arguments in ``generic_args``; generic type
    definitions carry none.
    """

    full_name: str
    shape: TypeShape = TypeShape.NAMED
    generic_args: tuple["TypeRef", ...] = ()
    element: "TypeRef | None" = None
    rank: int = 1
    position: int = 0
    method_parameter: bool = False

    @classmethod
    def named(cls, full_name: str, *generic_args: "TypeRef") -> "TypeRef":
        return cls(full_name, generic_args=tuple(generic_args))

    @classmethod
    def array_of(cls, element: "TypeRef", rank: int = 1) -> "TypeRef":
        return cls(element.full_name, TypeShape.ARRAY, element=element, rank=rank)

    @classmethod
    def by_ref(cls, element: "TypeRef") -> "TypeRef":
        return cls(element.full_name, TypeShape.BYREF, element=element)

    @classmethod
    def pointer_to(cls, element: "TypeRef") -> "TypeRef":
        return cls(element.full_name, TypeShape.POINTER, element=element)

    @classmethod
    def generic_parameter(cls, name: str, position: int, *, method: bool = False) -> "TypeRef":
        return cls(
            name,
            TypeShape.GENERIC_PARAMETER,
            position=position,
            method_parameter=method,
        )

    @property
    def name(self) -> str:
        """Simple metadata name (``List`1`` for ``System.Collections.Generic.List`1``)."""
        if self.shape is TypeShape.GENERIC_PARAMETER:
            return self.full_name
        innermost = self.full_name.rsplit("+", 1)[-1]
        if "+" in self.full_name:
            return innermost
        return innermost.rsplit(".", 1)[-1]

    @property
    def namespace(self) -> str:
        if self.shape is not TypeShape.NAMED:
            return ""
        outermost = self.full_name.split("+", 1)[0]
        return outermost.rpartition(".")[0]


@dataclass(frozen=True, slots=True)
class ParameterDescriptor:
    name: str
    type: TypeRef


@dataclass(frozen=True, slots=True)
class MethodDescriptor:
    name: str
    declaring_type: TypeRef
    parameters: tuple[ParameterDescriptor, ...] = ()
    return_type: TypeRef | None = None
    is_public: bool = True
    is_static: bool = False
    is_special_name: bool = False
    is_constructor: bool = False
    generic_arity: int = 0
    inherited: bool = False


@dataclass(frozen=True, slots=True)
class PropertyDescriptor:
    name: str
    declaring_type: TypeRef
    type: TypeRef
    index_parameters: tuple[ParameterDescriptor, ...] = ()
    is_public: bool = True
    is_static: bool = False
    accessors: tuple[str, ...] = ()
    can_read: bool = True
    can_write: bool = False
    inherited: bool = False


@dataclass(frozen=True, slots=True)
class FieldDescriptor:
    name: str
    declaring_type: TypeRef
    type: TypeRef
    is_public: bool = True
    is_static: bool = False
    is_literal: bool = False
    is_readonly: bool = False
    is_special_name: bool = False
    inherited: bool = False


@dataclass(frozen=True, slots=True)
class EventDescriptor:
    name: str
    declaring_type: TypeRef
    handler_type: TypeRef | None = None
    is_public: bool = True
    is_static: bool = False
    accessors: tuple[str, ...] = ()
    inherited: bool = False


MemberDescriptor = Union[MethodDescriptor, PropertyDescriptor, FieldDescriptor, EventDescriptor]


@dataclass(frozen=True, slots=True)
class TypeDescriptor:
    """A type definition together with every member declared on it.

    ``is_public`` is the visibility at the type's own nesting level (public
    for top-level types, nested-public for nested ones); ``declaring_type``
    is the metadata full name of the enclosing type.
    """

    ref: TypeRef
    is_public: bool = True
    declaring_type: str | None = None
    is_interface: bool = False
    is_enum: bool = False
    is_value_type: bool = False
    is_abstract: bool = False
    is_sealed: bool = False
    is_class: bool = True
    base_type: TypeRef | None = None
    generic_parameters: tuple[str, ...] = ()
    methods: tuple[MethodDescriptor, ...] = ()
    properties: tuple[PropertyDescriptor, ...] = ()
    fields: tuple[FieldDescriptor, ...] = ()
    events: tuple[EventDescriptor, ...] = ()

    @property
    def name(self) -> str:
        return self.ref.name

    @property
    def namespace(self) -> str:
        return self.ref.namespace

    @property
    def full_name(self) -> str:
        return self.ref.full_name

    def members(self) -> Iterator[MemberDescriptor]:
        yield from self.methods
        yield from self.properties
        yield from self.fields
        yield from self.events


EntityDescriptor = Union[TypeDescriptor, MemberDescriptor]


@dataclass(frozen=True, slots=True)
class ModuleImage:
    """Snapshot of one assembly's metadata, detached from the runtime."""

    name: str
    types: tuple[TypeDescriptor, ...] = ()
    path: Path | None = None

    def find_type(self, full_name: str) -> TypeDescriptor | None:
        for descriptor in self.types:
            if descriptor.full_name == full_name:
                return descriptor
        return None
