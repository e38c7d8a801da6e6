"""Best-effort source reconstruction through ICSharpCode.Decompiler.

The decompiler is an optional collaborator: when it is not configured, or
fails for any reason, callers simply get ``None`` back.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, Callable, Iterable, Iterator, Optional, Protocol

from asmdoc.metadata.loader import DEFAULT_RUNTIME, ensure_runtime

LOGGER = logging.getLogger(__name__)

_METHOD_ARITY = re.compile(r"``\d+$")


class Decompiler(Protocol):
    def decompile(self, module_path: str, entity_id: str) -> Optional[str]:
        ...


class NullDecompiler:
    """Used when no decompiler assembly is configured."""

    def decompile(self, module_path: str, entity_id: str) -> Optional[str]:
        return None


def split_identifier(entity_id: str) -> tuple[str, str, Optional[str]]:
    """Split ``M:N.Type.Member(args)`` into ``("M", "N.Type", "Member")``.

    Type identifiers yield ``None`` as member name. Raises ``ValueError`` for
    strings that are not documentation identifiers.
    """
    if len(entity_id) < 3 or entity_id[1] != ":":
        raise ValueError(f"Not a documentation identifier: {entity_id!r}")
    prefix, body = entity_id[0], entity_id[2:]
    if prefix == "T":
        return prefix, body, None
    body = body.split("(", 1)[0].split("~", 1)[0]
    type_name, _, member = body.rpartition(".")
    if not type_name or not member:
        raise ValueError(f"Identifier has no declaring type: {entity_id!r}")
    member = _METHOD_ARITY.sub("", member).replace("#", ".")
    return prefix, type_name, member


def type_name_candidates(type_name: str) -> Iterator[str]:
    """Yield metadata names a dotted identifier may stand for.

    Identifiers join nested types with ``.`` where metadata uses ``+``, so
    each trailing dot is tried as a nesting separator in turn.
    """
    yield type_name
    head = type_name
    tail = ""
    while "." in head:
        head, _, last = head.rpartition(".")
        tail = f"+{last}{tail}"
        yield head + tail


def parameter_count(entity_id: str) -> int:
    """Number of entries in an identifier's parenthesised parameter list."""
    start = entity_id.find("(")
    if start < 0:
        return 0
    depth = 0
    count = 1
    for char in entity_id[start + 1 :]:
        if char in "{[":
            depth += 1
        elif char in "}]":
            depth -= 1
        elif char == ")" and depth == 0:
            break
        elif char == "," and depth == 0:
            count += 1
    return count


def select_member(
    members: Iterable[Any],
    entity_id: str,
    member_name: str,
    id_of: Callable[[Any], str],
) -> Optional[Any]:
    """Pick the decompiler member an identifier refers to.

    An exact identifier match wins; otherwise the first member with the
    right name and parameter count. Members without parameters (fields)
    match on name alone.
    """
    candidates = [member for member in members if member.Name == member_name]
    for member in candidates:
        if id_of(member) == entity_id:
            return member
    expected = parameter_count(entity_id)
    for member in candidates:
        parameters = getattr(member, "Parameters", None)
        if parameters is None or len(list(parameters)) == expected:
            return member
    return None


class IlSpyDecompiler:
    """Drive ``ICSharpCode.Decompiler.dll`` through pythonnet."""

    def __init__(self, assembly_path: Path, *, runtime: str = DEFAULT_RUNTIME) -> None:
        self.assembly_path = Path(assembly_path)
        self.runtime = runtime
        self._loaded = False

    def _ensure_loaded(self) -> None:
        if self._loaded:
            return
        ensure_runtime(self.runtime)
        import clr

        clr.AddReference(str(self.assembly_path))
        self._loaded = True

    def decompile(self, module_path: str, entity_id: str) -> Optional[str]:
        try:
            _, type_name, member_name = split_identifier(entity_id)
        except ValueError as exc:
            LOGGER.debug("Cannot decompile %s: %s", entity_id, exc)
            return None

        try:
            self._ensure_loaded()
            from ICSharpCode.Decompiler import DecompilerSettings
            from ICSharpCode.Decompiler.CSharp import CSharpDecompiler
            from ICSharpCode.Decompiler.Documentation import IdStringProvider
            from ICSharpCode.Decompiler.TypeSystem import FullTypeName

            settings = DecompilerSettings()
            settings.ThrowOnAssemblyResolveErrors = False
            decompiler = CSharpDecompiler(str(module_path), settings)

            for candidate in type_name_candidates(type_name):
                full_name = FullTypeName(candidate)
                definition = decompiler.TypeSystem.FindType(full_name).GetDefinition()
                if definition is None:
                    continue
                if member_name is None:
                    return str(decompiler.DecompileTypeAsString(full_name))
                member = select_member(
                    definition.Members,
                    entity_id,
                    member_name,
                    lambda entity: str(IdStringProvider.GetIdString(entity)),
                )
                if member is None:
                    return None
                return str(decompiler.DecompileAsString(member.MetadataToken))
        except Exception as exc:
            LOGGER.debug("Decompilation of %s failed: %s", entity_id, exc)
            return None

        LOGGER.debug("Type %s not found in %s", type_name, module_path)
        return None


def build_decompiler(
    assembly_path: Optional[Path], *, runtime: str = DEFAULT_RUNTIME
) -> Decompiler:
    if assembly_path is None:
        return NullDecompiler()
    return IlSpyDecompiler(assembly_path, runtime=runtime)
