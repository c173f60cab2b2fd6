from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .install_config import PackageNaming
from .patcher import MarkerSpec

DEFAULT_PREFIXES = ["de_", "aim_", "cs_", "ar_"]
DEFAULT_EXCLUDED_SUFFIXES = ["skybox", "lighting", "props", "nav", "radar", "vanity", "3dsky"]
DEFAULT_LOCALES = ["english"]

DEFAULT_TOOLS: Dict[str, List[str]] = {
    "extract": ["Source2Viewer-CLI", "-i", "{package}", "-f", "{entry}", "-o", "{out_dir}"],
    "list": ["Source2Viewer-CLI", "-i", "{package}", "--vpk_list"],
    "compile": [],
    "archive": ["vpk", "{src}"],
}

DEFAULT_MARKERS: Dict[str, Any] = {
    # Only the top-level block; every mapgroup nests its own "maps".
    "registry_block": {"pattern": r'^\t"maps"\s*$'},
    "registry_boundary": {"pattern": r"^\s*//", "first": True},
    "locale": {"pattern": r"^\s*//\s*Map\s+Names\b"},
    "server": {"literal": "// workshop maps end"},
}


@dataclass(frozen=True)
class BuildConfig:
    raw: Dict[str, Any]

    def _section(self, name: str) -> Dict[str, Any]:
        return dict(self.raw.get(name) or {})

    @property
    def collection_id(self) -> Optional[str]:
        v = self.raw.get("collection_id")
        return str(v).strip() if v not in (None, "") else None

    @property
    def asset_ids(self) -> List[str]:
        return [str(a).strip() for a in (self.raw.get("assets") or []) if str(a).strip()]

    # steam
    @property
    def api_base(self) -> str:
        return str(self._section("steam").get("api_base") or "https://api.steampowered.com")

    @property
    def api_key(self) -> Optional[str]:
        return self._section("steam").get("api_key") or None

    @property
    def timeout_s(self) -> float:
        return float(self._section("steam").get("timeout_s") or 30)

    @property
    def retries(self) -> int:
        return int(self._section("steam").get("retries") or 3)

    @property
    def backoff_s(self) -> float:
        v = self._section("steam").get("backoff_s")
        return float(2.0 if v is None else v)

    # paths
    @property
    def work_dir(self) -> str:
        return str(self._section("paths").get("work_dir") or "build/work")

    @property
    def output_dir(self) -> str:
        return str(self._section("paths").get("output_dir") or "output")

    @property
    def cache_file(self) -> str:
        return str(self._section("paths").get("cache_file") or "build/identity_cache.json")

    @property
    def log_path(self) -> str:
        return str(self._section("paths").get("log") or "logs/mapnames-build.log")

    @property
    def workshop_content_root(self) -> Optional[str]:
        return self._section("paths").get("workshop_content_root") or None

    # game
    @property
    def base_package(self) -> str:
        return str(self._section("game").get("base_package") or "game/csgo/pak01_dir.vpk")

    @property
    def locales(self) -> List[str]:
        return list(self._section("game").get("locales") or DEFAULT_LOCALES)

    @property
    def registry_entry_path(self) -> str:
        return str(self._section("game").get("registry_entry") or "scripts/gamemodes.txt")

    @property
    def locale_entry_template(self) -> str:
        return str(self._section("game").get("locale_entry") or "resource/csgo_{locale}.txt")

    # tools
    def tool(self, name: str) -> List[str]:
        tools = self._section("tools")
        argv = tools[name] if name in tools else DEFAULT_TOOLS.get(name, [])
        return [str(a) for a in (argv or [])]

    # package
    @property
    def package_naming(self) -> PackageNaming:
        return PackageNaming.from_config(self._section("package"))

    # resolver
    @property
    def prefixes(self) -> List[str]:
        return [str(p) for p in (self._section("resolver").get("prefixes") or DEFAULT_PREFIXES)]

    @property
    def excluded_suffixes(self) -> List[str]:
        values = self._section("resolver").get("excluded_suffixes") or DEFAULT_EXCLUDED_SUFFIXES
        return [str(s) for s in values]

    @property
    def workers(self) -> int:
        return max(1, int(self._section("resolver").get("workers") or 1))

    # markers
    def marker(self, name: str) -> MarkerSpec:
        markers = self._section("markers")
        raw = markers[name] if name in markers else DEFAULT_MARKERS[name]
        return MarkerSpec.from_config(raw)

    # thumbnails
    @property
    def thumbnail_size(self) -> tuple[int, int]:
        t = self._section("thumbnails")
        return int(t.get("width") or 640), int(t.get("height") or 360)

    @property
    def thumbnail_dir(self) -> str:
        return str(self._section("thumbnails").get("dir") or "panorama/images/map_icons/screenshots/360p")

    # server
    @property
    def server_enabled(self) -> bool:
        return bool(self._section("server").get("enabled", False))

    @property
    def include_official(self) -> bool:
        return bool(self._section("server").get("include_official", False))

    @property
    def vanity_suffixes(self) -> List[str]:
        return [str(s) for s in (self._section("server").get("vanity_suffixes") or ["vanity"])]

    def with_overrides(self, **overrides: Any) -> "BuildConfig":
        """Return a copy with top-level or dotted (``section.key``) overrides applied."""
        raw = {k: (dict(v) if isinstance(v, dict) else v) for k, v in self.raw.items()}
        for key, value in overrides.items():
            if value is None:
                continue
            if "." in key:
                section, sub = key.split(".", 1)
                raw.setdefault(section, {})[sub] = value
            else:
                raw[key] = value
        return BuildConfig(raw=raw)


def load_build_config(path: str) -> BuildConfig:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(path)

    if p.suffix.lower() not in {".yaml", ".yml"}:
        raise ValueError("build config must be YAML")

    raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"{p.name} must contain a mapping/object")

    return BuildConfig(raw=raw)
