"""Reflection-only loading of .NET assemblies through pythonnet.

The assembly is loaded into a collectible ``AssemblyLoadContext``, every type
is converted into immutable descriptors and the context is unloaded before
the snapshot is returned. Nothing from the assembly is ever invoked and no
loaded module outlives the call.
"""

from __future__ import annotations

import logging
import uuid
from pathlib import Path
from typing import Any

from asmdoc.errors import ModuleLoadFailure
from asmdoc.metadata.descriptors import (
    EventDescriptor,
    FieldDescriptor,
    MethodDescriptor,
    ModuleImage,
    ParameterDescriptor,
    PropertyDescriptor,
    TypeDescriptor,
    TypeRef,
)

LOGGER = logging.getLogger(__name__)

DEFAULT_RUNTIME = "coreclr"


def ensure_runtime(runtime: str = DEFAULT_RUNTIME) -> None:
    """Load the CLR into this process once."""
    import pythonnet

    if pythonnet.get_runtime_info() is None:
        LOGGER.debug("Loading %s runtime", runtime)
        pythonnet.load(runtime)
    import clr  # noqa: F401


def _binding_flags() -> Any:
    from System.Reflection import BindingFlags

    return (
        BindingFlags.Public
        | BindingFlags.NonPublic
        | BindingFlags.Instance
        | BindingFlags.Static
        | BindingFlags.DeclaredOnly
    )


def _metadata_name(clr_type: Any) -> str:
    if clr_type.IsNested:
        return f"{_metadata_name(clr_type.DeclaringType)}+{clr_type.Name}"
    namespace = clr_type.Namespace
    return f"{namespace}.{clr_type.Name}" if namespace else str(clr_type.Name)


def _type_ref(clr_type: Any) -> TypeRef:
    if clr_type.IsByRef:
        return TypeRef.by_ref(_type_ref(clr_type.GetElementType()))
    if clr_type.IsPointer:
        return TypeRef.pointer_to(_type_ref(clr_type.GetElementType()))
    if clr_type.IsArray:
        return TypeRef.array_of(_type_ref(clr_type.GetElementType()), int(clr_type.GetArrayRank()))
    if clr_type.IsGenericParameter:
        return TypeRef.generic_parameter(
            str(clr_type.Name),
            int(clr_type.GenericParameterPosition),
            method=clr_type.DeclaringMethod is not None,
        )
    name = _metadata_name(clr_type)
    if clr_type.IsGenericType:
        # Also covers self-references inside a generic definition (Node<T>).
        return TypeRef.named(name, *(_type_ref(arg) for arg in clr_type.GetGenericArguments()))
    return TypeRef.named(name)


def _parameters(clr_parameters: Any) -> tuple[ParameterDescriptor, ...]:
    return tuple(
        ParameterDescriptor(str(p.Name or f"arg{p.Position}"), _type_ref(p.ParameterType))
        for p in clr_parameters
    )


def _describe_constructor(ctor: Any, owner: TypeRef) -> MethodDescriptor:
    return MethodDescriptor(
        name=str(ctor.Name),
        declaring_type=owner,
        parameters=_parameters(ctor.GetParameters()),
        is_public=bool(ctor.IsPublic),
        is_static=bool(ctor.IsStatic),
        is_special_name=True,
        is_constructor=True,
    )


def _describe_method(method: Any, owner: TypeRef) -> MethodDescriptor:
    arity = len(method.GetGenericArguments()) if method.IsGenericMethodDefinition else 0
    return MethodDescriptor(
        name=str(method.Name),
        declaring_type=owner,
        parameters=_parameters(method.GetParameters()),
        return_type=_type_ref(method.ReturnType),
        is_public=bool(method.IsPublic),
        is_static=bool(method.IsStatic),
        is_special_name=bool(method.IsSpecialName),
        generic_arity=arity,
    )


def _describe_property(prop: Any, owner: TypeRef) -> PropertyDescriptor:
    getter = prop.GetGetMethod(True)
    setter = prop.GetSetMethod(True)
    accessors = [accessor for accessor in (getter, setter) if accessor is not None]
    return PropertyDescriptor(
        name=str(prop.Name),
        declaring_type=owner,
        type=_type_ref(prop.PropertyType),
        index_parameters=_parameters(prop.GetIndexParameters()),
        is_public=any(accessor.IsPublic for accessor in accessors),
        is_static=any(accessor.IsStatic for accessor in accessors),
        accessors=tuple(str(accessor.Name) for accessor in accessors),
        can_read=getter is not None and bool(getter.IsPublic),
        can_write=setter is not None and bool(setter.IsPublic),
    )


def _describe_field(field: Any, owner: TypeRef) -> FieldDescriptor:
    return FieldDescriptor(
        name=str(field.Name),
        declaring_type=owner,
        type=_type_ref(field.FieldType),
        is_public=bool(field.IsPublic),
        is_static=bool(field.IsStatic),
        is_literal=bool(field.IsLiteral),
        is_readonly=bool(field.IsInitOnly),
        is_special_name=bool(field.IsSpecialName),
    )


def _describe_event(event: Any, owner: TypeRef) -> EventDescriptor:
    accessors = [
        accessor
        for accessor in (event.GetAddMethod(True), event.GetRemoveMethod(True), event.GetRaiseMethod(True))
        if accessor is not None
    ]
    handler = event.EventHandlerType
    return EventDescriptor(
        name=str(event.Name),
        declaring_type=owner,
        handler_type=_type_ref(handler) if handler is not None else None,
        is_public=any(accessor.IsPublic for accessor in accessors),
        is_static=any(accessor.IsStatic for accessor in accessors),
        accessors=tuple(str(accessor.Name) for accessor in accessors),
    )


def describe_type(clr_type: Any) -> TypeDescriptor:
    """Convert one ``System.Type`` definition into a descriptor."""
    flags = _binding_flags()
    ref = TypeRef.named(_metadata_name(clr_type))
    base = clr_type.BaseType
    declaring = clr_type.DeclaringType
    generic_parameters: tuple[str, ...] = ()
    if clr_type.IsGenericTypeDefinition:
        generic_parameters = tuple(str(arg.Name) for arg in clr_type.GetGenericArguments())

    return TypeDescriptor(
        ref=ref,
        is_public=bool(clr_type.IsNestedPublic if clr_type.IsNested else clr_type.IsPublic),
        declaring_type=_metadata_name(declaring) if declaring is not None else None,
        is_interface=bool(clr_type.IsInterface),
        is_enum=bool(clr_type.IsEnum),
        is_value_type=bool(clr_type.IsValueType),
        is_abstract=bool(clr_type.IsAbstract),
        is_sealed=bool(clr_type.IsSealed),
        is_class=bool(clr_type.IsClass),
        base_type=_type_ref(base) if base is not None else None,
        generic_parameters=generic_parameters,
        methods=tuple(_describe_constructor(c, ref) for c in clr_type.GetConstructors(flags))
        + tuple(_describe_method(m, ref) for m in clr_type.GetMethods(flags)),
        properties=tuple(_describe_property(p, ref) for p in clr_type.GetProperties(flags)),
        fields=tuple(_describe_field(f, ref) for f in clr_type.GetFields(flags)),
        events=tuple(_describe_event(e, ref) for e in clr_type.GetEvents(flags)),
    )


def _describe_error(exc: Exception) -> str:
    message = str(exc)
    loader_exceptions = getattr(exc, "LoaderExceptions", None)
    if loader_exceptions:
        details = [str(inner.Message) for inner in loader_exceptions if inner is not None]
        if details:
            message += " (" + "; ".join(details[:3]) + ")"
    return message


def load_module(path: Path | str, *, runtime: str = DEFAULT_RUNTIME) -> ModuleImage:
    """Snapshot the metadata of the assembly at ``path``.

    Raises ``ModuleLoadFailure`` when the file is missing, is not a valid
    assembly, references dependencies that cannot be resolved, or when no CLR
    is available.
    """
    path = Path(path)
    if not path.is_file():
        raise ModuleLoadFailure(path, "file not found")

    try:
        ensure_runtime(runtime)
    except Exception as exc:
        raise ModuleLoadFailure(path, f"CLR runtime unavailable: {exc}") from exc

    from System.Runtime.Loader import AssemblyLoadContext

    directory = path.resolve().parent

    def _resolve_sibling(context: Any, assembly_name: Any) -> Any:
        candidate = directory / f"{assembly_name.Name}.dll"
        if candidate.is_file():
            return context.LoadFromAssemblyPath(str(candidate))
        return None

    context = AssemblyLoadContext(f"asmdoc_{uuid.uuid4().hex}", True)
    context.Resolving += _resolve_sibling
    try:
        assembly = context.LoadFromAssemblyPath(str(path.resolve()))
        clr_types = sorted(assembly.GetTypes(), key=lambda t: int(t.MetadataToken))
        image = ModuleImage(
            name=str(assembly.GetName().Name),
            types=tuple(describe_type(t) for t in clr_types),
            path=path,
        )
    except Exception as exc:
        raise ModuleLoadFailure(path, _describe_error(exc)) from exc
    finally:
        context.Unload()

    LOGGER.debug("Loaded %s with %d types", image.name, len(image.types))
    return image
