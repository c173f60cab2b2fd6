"""Internal-name candidate policy and friendly-title derivation.

Both are pure functions of their inputs so the same listing or title always
yields the same answer.
"""

from __future__ import annotations

import re
from pathlib import PurePosixPath
from typing import Iterable, List, Optional, Sequence

MAX_TITLE_CHARS = 15
MAX_TITLE_WORDS = 3

# Container-internal map files: maps/<name>.vpk
MAP_ENTRY = re.compile(r"^maps/([^/]+)\.vpk$", re.IGNORECASE)


def _shortest(names: Iterable[str]) -> Optional[str]:
    ordered = sorted(names, key=lambda n: (len(n), n))
    return ordered[0] if ordered else None


def is_auxiliary(name: str, excluded_suffixes: Sequence[str]) -> bool:
    """True for sky/lighting/prop/nav/radar style sub-resources of a map."""
    return any(name.endswith("_" + s.lower()) for s in excluded_suffixes)


def candidate_names(entries: Iterable[str], excluded_suffixes: Sequence[str]) -> List[str]:
    out: List[str] = []
    for entry in entries:
        m = MAP_ENTRY.match(entry.strip().replace("\\", "/"))
        if not m:
            continue
        name = m.group(1).lower()
        if not name or is_auxiliary(name, excluded_suffixes):
            continue
        if name not in out:
            out.append(name)
    return out


def select_internal_name(
    entries: Iterable[str],
    prefixes: Sequence[str],
    excluded_suffixes: Sequence[str],
) -> Optional[str]:
    """Pick the map name out of a container listing.

    Prefixes are tried in priority order and the shortest name wins within a
    prefix (``de_bank`` over ``de_bank_night``). Without a prefix match, the
    shortest name containing an underscore wins, then the shortest of all.
    """

    names = candidate_names(entries, excluded_suffixes)
    if not names:
        return None

    for prefix in prefixes:
        hit = _shortest(n for n in names if n.startswith(prefix.lower()))
        if hit:
            return hit

    return _shortest(n for n in names if "_" in n) or _shortest(names)


def name_from_filename(filename: str) -> Optional[str]:
    """Internal name from an authoritative upstream filename field."""
    stem = PurePosixPath(filename.strip().replace("\\", "/")).stem
    return stem.lower() or None


def clean_title(title: Optional[str]) -> Optional[str]:
    """Return *title* if it is short enough to display, else None."""

    if not title:
        return None
    cleaned = title.split("(", 1)[0].strip()
    if not cleaned:
        return None
    if not any(c.isupper() for c in cleaned):
        return None
    if len(cleaned.split()) > MAX_TITLE_WORDS:
        return None
    if len(cleaned) > MAX_TITLE_CHARS:
        return None
    return cleaned


def title_from_internal_name(internal_name: str, excluded_suffixes: Sequence[str]) -> str:
    parts = internal_name.split("_")
    excluded = {s.lower() for s in excluded_suffixes}
    segment = parts[1] if len(parts) > 1 and parts[1] and parts[1] not in excluded else parts[0]
    segment = segment or internal_name
    return (segment[:1].upper() + segment[1:])[:MAX_TITLE_CHARS]


def friendly_title(
    original_title: Optional[str],
    internal_name: str,
    excluded_suffixes: Sequence[str],
) -> str:
    return clean_title(original_title) or title_from_internal_name(internal_name, excluded_suffixes)


def is_vanity(name: str, vanity_suffixes: Sequence[str]) -> bool:
    return is_auxiliary(name, vanity_suffixes)


def select_official_names(
    entries: Iterable[str],
    prefixes: Sequence[str],
    excluded_suffixes: Sequence[str],
    vanity_suffixes: Sequence[str],
) -> List[str]:
    """Built-in maps worth listing on a server, in prefix priority order."""

    names = [n for n in candidate_names(entries, excluded_suffixes) if not is_vanity(n, vanity_suffixes)]
    out: List[str] = []
    for prefix in prefixes:
        out.extend(sorted(n for n in names if n.startswith(prefix.lower()) and n not in out))
    return out
