"""Pytest configuration and shared fakes for mapnames tests."""

from __future__ import annotations

import io
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional

import pytest
from PIL import Image

# Ensure the package is importable without requiring an editable install.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from mapnames.errors import NotFound  # noqa: E402
from mapnames.records import WorkshopItem  # noqa: E402


def make_png(size=(800, 450), color=(200, 40, 40)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format="PNG")
    return buf.getvalue()


class FakeClient:
    """In-memory stand-in for ``WorkshopClient``."""

    def __init__(
        self,
        *,
        children: Optional[Dict[str, List[str]]] = None,
        items: Optional[Dict[str, WorkshopItem]] = None,
        blobs: Optional[Dict[str, bytes]] = None,
        failures: Optional[Dict[str, Exception]] = None,
    ) -> None:
        self.children = children or {}
        self.items = items or {}
        self.blobs = blobs or {}
        self.failures = failures or {}
        self.downloads: List[str] = []

    def collection_children(self, collection_id: str) -> List[str]:
        if collection_id not in self.children:
            raise NotFound(f"collection {collection_id} not available", context=collection_id)
        return list(self.children[collection_id])

    def published_file_details(self, external_ids):
        return {eid: self.items[eid] for eid in external_ids if eid in self.items}

    def download_file(self, url: str, destination: Path) -> Path:
        self.downloads.append(url)
        if url in self.failures:
            raise self.failures[url]
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_bytes(self.blobs.get(url, b"VPK"))
        return destination

    def download_bytes(self, url: str) -> bytes:
        self.downloads.append(url)
        if url not in self.blobs:
            raise NotFound(f"GET {url}: HTTP 404", context=url)
        return self.blobs[url]


class FakeToolchain:
    """Stand-in for ``Toolchain`` that never spawns processes.

    ``listings`` maps a container file name to the entries it lists;
    ``documents`` maps an entry path to the text extraction produces.
    """

    def __init__(
        self,
        *,
        listings: Optional[Dict[str, List[str]]] = None,
        documents: Optional[Dict[str, bytes]] = None,
        tools=("extract", "list", "archive"),
    ) -> None:
        self.listings = listings or {}
        self.documents = documents or {}
        self.tools = set(tools)
        self.listed: List[str] = []
        self.checked: List[str] = []

    def has(self, name: str) -> bool:
        return name in self.tools

    def check(self, names) -> None:
        self.checked.extend(names)

    def extract(self, package: Path, entry: str, out_dir: Path) -> Path:
        if entry not in self.documents:
            raise NotFound(f"extraction produced no file for {entry}", context=str(package))
        out = out_dir / entry
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_bytes(self.documents[entry])
        return out

    def list_entries(self, package: Path) -> List[str]:
        assert package.exists(), package
        self.listed.append(package.name)
        return list(self.listings.get(package.name, []))

    def compile(self, src: Path, dst: Path) -> Path:
        dst.write_bytes(b"VTEX" + src.read_bytes()[:16])
        return dst

    def archive(self, src_dir: Path, expected: Path) -> Path:
        names = sorted(p.relative_to(src_dir).as_posix() for p in src_dir.rglob("*") if p.is_file())
        expected.write_text("\n".join(names), encoding="utf-8")
        return expected


@pytest.fixture()
def png_bytes() -> bytes:
    return make_png()


@pytest.fixture(autouse=True)
def reset_root_logger():
    """Undo handlers installed by ``configure_logging`` during CLI tests."""

    root = logging.getLogger()
    before = list(root.handlers)
    level = root.level
    yield
    for h in list(root.handlers):
        if h not in before:
            root.removeHandler(h)
            h.close()
    root.setLevel(level)
    for attr in ("_mapnames_configured", "_mapnames_log_path"):
        if hasattr(root, attr):
            delattr(root, attr)
