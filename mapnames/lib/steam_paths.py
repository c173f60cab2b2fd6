from __future__ import annotations

import logging
import os
import re
import sys
from pathlib import Path
from typing import Iterable, List, Optional

from ..errors import Outcome

logger = logging.getLogger(__name__)

GAME_FOLDER = "Counter-Strike Global Offensive"
RE_LIBRARY_PATH = re.compile(r'^\s*"path"\s*"(.+)"\s*$')


def default_steam_roots() -> List[Path]:
    roots: List[Path] = []
    env = os.environ.get("STEAM_DIR", "").strip()
    if env:
        roots.append(Path(env))
    if sys.platform.startswith("win"):
        for var in ("ProgramFiles(x86)", "ProgramFiles"):
            base = os.environ.get(var)
            if base:
                roots.append(Path(base) / "Steam")
    else:
        home = Path.home()
        roots += [home / ".steam/steam", home / ".local/share/Steam", home / "Library/Application Support/Steam"]
    return roots


def library_folders(steam_root: Path) -> List[Path]:
    """Library roots listed in ``steamapps/libraryfolders.vdf`` (plus the Steam root)."""

    out = [steam_root]
    vdf = steam_root / "steamapps" / "libraryfolders.vdf"
    if not vdf.is_file():
        return out
    try:
        text = vdf.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        logger.warning("Cannot read %s: %s", vdf, e)
        return out
    for line in text.splitlines():
        m = RE_LIBRARY_PATH.match(line)
        if m:
            p = Path(m.group(1).replace("\\\\", "\\"))
            if p not in out:
                out.append(p)
    return out


def is_game_dir(path: Path, shared_config: str) -> bool:
    return (path / shared_config).is_file()


def find_game_dir(
    shared_config: str,
    *,
    explicit: Optional[Path] = None,
    start: Optional[Path] = None,
    steam_roots: Optional[Iterable[Path]] = None,
) -> Outcome[Path]:
    """Locate the game install that holds *shared_config* (relative path)."""

    if explicit is not None:
        if is_game_dir(explicit, shared_config):
            return Outcome.success(explicit)
        return Outcome.failure("not_found", f"{explicit} has no {shared_config}", context=str(explicit))

    if start is not None:
        for candidate in [start, *start.parents]:
            if is_game_dir(candidate, shared_config):
                return Outcome.success(candidate)

    for root in steam_roots if steam_roots is not None else default_steam_roots():
        for lib in library_folders(root):
            candidate = lib / "steamapps" / "common" / GAME_FOLDER
            if is_game_dir(candidate, shared_config):
                logger.info("Found game install in Steam library %s", lib)
                return Outcome.success(candidate)

    return Outcome.failure("not_found", f"no game install containing {shared_config} found")
