from __future__ import annotations

import shutil
from dataclasses import dataclass
from pathlib import Path


class WorkspaceViolation(ValueError):
    pass


@dataclass(frozen=True)
class Workspace:
    """A staging directory; every write is confined under ``root``."""

    root: Path

    @classmethod
    def from_path(cls, root: str | Path) -> "Workspace":
        p = Path(root).expanduser()
        try:
            p = p.resolve()
        except OSError:
            p = p.absolute()
        return cls(root=p)

    def resolve_rel(self, rel: str | Path) -> Path:
        """Resolve a relative path within the workspace."""
        rp = Path(rel)
        if rp.is_absolute():
            raise WorkspaceViolation(f"Absolute paths are not allowed: {rel}")

        candidate = (self.root / rp).resolve()
        try:
            candidate.relative_to(self.root)
        except ValueError as e:
            raise WorkspaceViolation(f"Path escapes workspace: {rel}") from e
        return candidate

    def ensure_parent_dirs(self, rel: str | Path) -> Path:
        p = self.resolve_rel(rel)
        p.parent.mkdir(parents=True, exist_ok=True)
        return p

    def write_bytes(self, rel: str | Path, content: bytes) -> Path:
        p = self.ensure_parent_dirs(rel)
        p.write_bytes(content)
        return p

    def reset(self) -> None:
        if self.root.exists():
            shutil.rmtree(self.root)
        self.root.mkdir(parents=True, exist_ok=True)

    def files(self) -> list[str]:
        if not self.root.exists():
            return []
        return sorted(p.relative_to(self.root).as_posix() for p in self.root.rglob("*") if p.is_file())
