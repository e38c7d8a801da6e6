"""Exception taxonomy shared by the indexing core and its front ends."""

from __future__ import annotations


class AsmdocError(Exception):
    """Base class for all asmdoc failures."""


class ModuleLoadFailure(AsmdocError):
    """The binary module could not be read, resolved or reflected over."""

    def __init__(self, path: object, reason: str) -> None:
        super().__init__(f"Unable to load module {path}: {reason}")
        self.path = path
        self.reason = reason


class MalformedDocumentation(AsmdocError):
    """A sidecar documentation file exists but is not well-formed XML."""

    def __init__(self, path: object, reason: str) -> None:
        super().__init__(f"Malformed documentation file {path}: {reason}")
        self.path = path
        self.reason = reason


class UnsupportedEntityKind(AsmdocError):
    """An entity descriptor has no identifier or classification rule."""


class InvalidQuery(AsmdocError, ValueError):
    """Catalog query parameters are out of their valid range."""
