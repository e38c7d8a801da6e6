"""Utility helpers for locating assemblies and their documentation."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Iterator, Optional

ASSEMBLY_SUFFIXES = (".dll", ".exe")


def iter_assembly_paths(inputs: Iterable[Path]) -> Iterator[Path]:
    """Yield assembly paths from input paths, descending into directories."""
    for item in inputs:
        if item.is_dir():
            yield from iter_assembly_paths(
                sorted(
                    child
                    for child in item.rglob("*")
                    if child.is_file() and child.suffix.lower() in ASSEMBLY_SUFFIXES
                )
            )
        elif item.is_file() and item.suffix.lower() in ASSEMBLY_SUFFIXES:
            yield item


def find_sidecar_documentation(module_path: Path) -> Optional[Path]:
    """Return the ``<stem>.xml`` file the compiler writes next to an assembly."""
    for suffix in (".xml", ".XML"):
        candidate = module_path.with_suffix(suffix)
        if candidate.is_file():
            return candidate
    return None
