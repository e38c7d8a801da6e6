"""Application configuration defaults."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from asmdoc.metadata.loader import DEFAULT_RUNTIME


def _get_default_db_path() -> Path:
    """Prefer a local ``data/`` catalog when running from a checkout."""
    local_db = Path("data/asmdoc.db")
    if local_db.exists():
        return local_db
    return Path.home() / ".asmdoc" / "asmdoc.db"


@dataclass(slots=True)
class AppConfig:
    db_path: Path | None = None
    runtime: str = DEFAULT_RUNTIME
    decompiler_assembly: Path | None = None
    assembly_dir: Path | None = None
    page_size: int = 20

    def __post_init__(self) -> None:
        if self.db_path is None:
            self.db_path = _get_default_db_path()
        if self.page_size <= 0:
            raise ValueError("page_size must be positive")

    def resolve_db_path(self, base_dir: Path | None = None) -> Path:
        if self.db_path is None:
            self.db_path = _get_default_db_path()
        if Path(self.db_path).is_absolute() or base_dir is None:
            return Path(self.db_path)
        return base_dir / self.db_path

    def resolve_assembly_dir(self, base_dir: Path | None = None) -> Path:
        """Directory where uploaded assemblies are kept for decompilation."""
        if self.assembly_dir is not None:
            if Path(self.assembly_dir).is_absolute() or base_dir is None:
                return Path(self.assembly_dir)
            return base_dir / self.assembly_dir
        return self.resolve_db_path(base_dir).parent / "assemblies"
