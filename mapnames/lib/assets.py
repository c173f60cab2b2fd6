from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import List

logger = logging.getLogger(__name__)


def copy_tree(src: str, dst: str, *, pattern: str = "*") -> List[Path]:
    """Copy files under *src* matching *pattern* into *dst*; returns the copies."""

    s = Path(src)
    d = Path(dst)
    if not s.exists():
        raise FileNotFoundError(src)

    copied: List[Path] = []
    d.mkdir(parents=True, exist_ok=True)
    for item in sorted(s.rglob(pattern)):
        if item.is_dir() or item.name.startswith(("__", ".")):
            continue
        out = d / item.relative_to(s)
        out.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(item, out)
        copied.append(out)
    logger.info("Copied %d file(s) %s -> %s", len(copied), s, d)
    return copied
