"""Line templates and splice routines for the game's text formats.

Each patch routine first drops entries the document already carries, so
re-running a build against the same extracted documents adds nothing twice.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Sequence, Tuple

from .patcher import MarkerDocument, MarkerSpec, insert_before_boundary, insert_before_marker
from .records import AssetRecord

logger = logging.getLogger(__name__)

REGISTRY_ENTRY = '\t\t"{name}"\t\t{{ "nameID" "#SFUI_Map_{name}" "name" "{name}" }}'
LOCALE_ENTRY = '\t\t"SFUI_Map_{name}"\t\t"{title}"'
SERVER_ENTRY = '\t\t\t\t"{name}"\t\t""'


def _kv_escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def registry_line(name: str) -> str:
    return REGISTRY_ENTRY.format(name=name)


def locale_line(record: AssetRecord) -> str:
    return LOCALE_ENTRY.format(name=record.internal_name, title=_kv_escape(record.friendly_title))


def server_line(name: str) -> str:
    return SERVER_ENTRY.format(name=name)


def _new_lines(doc: MarkerDocument, candidates: Iterable[str]) -> List[str]:
    out: List[str] = []
    for line in candidates:
        if doc.contains(line) or line in out:
            logger.info("Entry already present: %s", line.strip())
            continue
        out.append(line)
    return out


def patch_map_registry(
    doc: MarkerDocument,
    records: Sequence[AssetRecord],
    block: MarkerSpec,
    boundary: MarkerSpec,
) -> Tuple[MarkerDocument, int]:
    """One registry entry per map, spliced before the comment closing the custom block.

    Raises MarkerNotFound when the block or its boundary is missing, even
    if every entry is already present.
    """

    lines = _new_lines(doc, (registry_line(r.internal_name) for r in records))
    return insert_before_boundary(doc, block, boundary, lines), len(lines)


def patch_locale(
    doc: MarkerDocument,
    records: Sequence[AssetRecord],
    marker: MarkerSpec,
) -> Tuple[MarkerDocument, int]:
    lines = _new_lines(doc, (locale_line(r) for r in records))
    return insert_before_marker(doc, marker, lines), len(lines)


def patch_server_listing(
    doc: MarkerDocument,
    names: Sequence[str],
    marker: MarkerSpec,
) -> Tuple[MarkerDocument, int]:
    lines = _new_lines(doc, (server_line(n) for n in names))
    return insert_before_marker(doc, marker, lines), len(lines)
