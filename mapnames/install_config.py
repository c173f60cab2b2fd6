from __future__ import annotations

import re
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

SHARED_CONFIG_MARKER = "Game_LowViolence\tcsgo_lv // Perfect World content override"


@dataclass(frozen=True)
class PackageNaming:
    """``<prefix>_<externalID>[_<suffix>].<ext>``"""

    prefix: str = "mapnames"
    suffix: str = "dir"
    ext: str = "vpk"

    @classmethod
    def from_config(cls, raw: Optional[Dict[str, Any]]) -> "PackageNaming":
        raw = raw or {}
        defaults = cls()
        return cls(
            prefix=str(raw.get("prefix") or defaults.prefix),
            suffix=str(raw["suffix"]) if raw.get("suffix") is not None else defaults.suffix,
            ext=str(raw.get("ext") or defaults.ext),
        )

    def file_name(self, external_id: str) -> str:
        return f"{self.stem(external_id)}.{self.ext}"

    def stem(self, external_id: str) -> str:
        base = f"{self.prefix}_{external_id}"
        return f"{base}_{self.suffix}" if self.suffix else base

    @property
    def pattern(self) -> re.Pattern[str]:
        suffix = f"(?:_{re.escape(self.suffix)})?" if self.suffix else ""
        return re.compile(rf"^{re.escape(self.prefix)}_(\d+){suffix}\.{re.escape(self.ext)}$")

    def matches(self, file_name: str) -> bool:
        return bool(self.pattern.match(file_name))

    def external_id_of(self, file_name: str) -> Optional[str]:
        m = self.pattern.match(file_name)
        return m.group(1) if m else None


@dataclass(frozen=True)
class InstallConfig:
    shared_config: str = "game/csgo/gameinfo.gi"
    target_dir: str = "game/csgo"
    marker: str = SHARED_CONFIG_MARKER
    # Reproduced byte for byte; it is also how "already installed" is detected.
    reference_template: str = "\t\t\tGame\tcsgo/{package_file}"
    backup_suffix: str = ".bak"
    newline: str = "\r\n"
    naming: PackageNaming = field(default_factory=PackageNaming)

    def reference_line(self, package_file: str) -> str:
        return self.reference_template.format(package_file=package_file)

    @property
    def reference_pattern(self) -> re.Pattern[str]:
        """Matches the reference line of any package following the naming convention."""
        head, _, tail = self.reference_template.partition("{package_file}")
        name = self.naming.pattern.pattern.lstrip("^").rstrip("$")
        return re.compile(rf"^{re.escape(head)}{name}{re.escape(tail)}$")


def load_install_config(path: Optional[str]) -> InstallConfig:
    if not path:
        return InstallConfig()

    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(path)

    raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"{p.name} must contain a mapping/object")

    section: Dict[str, Any] = dict(raw.get("install") or raw)
    known = {f.name for f in fields(InstallConfig)} - {"naming"}
    kwargs: Dict[str, Any] = {k: str(v) for k, v in section.items() if k in known and v is not None}

    if raw.get("package"):
        kwargs["naming"] = PackageNaming.from_config(raw["package"])
    return InstallConfig(**kwargs)
