from __future__ import annotations

import json
import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from .build_config import BuildConfig
from .dialects import patch_locale, patch_map_registry, patch_server_listing
from .errors import MapNamesError, MarkerNotFound, NotFound, Outcome, TransientIOFailure
from .lib.assets import copy_tree
from .lib.thumbnails import ThumbnailError, fetch_thumbnail
from .lib.workspace import Workspace
from .naming import select_official_names
from .patcher import MarkerDocument, read_document, write_document
from .records import AssetRecord, WorkshopItem
from .report import RunSummary

logger = logging.getLogger(__name__)

PACKAGE_DIR = Path(__file__).resolve().parent
INSTALLER_SCRIPTS = PACKAGE_DIR / "installer_scripts"
SERVER_TEMPLATE = PACKAGE_DIR / "templates" / "gamemodes_server.txt"


@dataclass(frozen=True)
class BuildCtx:
    cfg: BuildConfig
    client: Any
    toolchain: Any
    resolver: Any
    with_server: bool = False
    include_official: bool = False

    @property
    def package_id(self) -> str:
        pid = (self.cfg.raw.get("package") or {}).get("id") or self.cfg.collection_id
        if not pid:
            raise RuntimeError("No package id: set collection_id or package.id")
        return str(pid)

    @property
    def package_file(self) -> str:
        return self.cfg.package_naming.file_name(self.package_id)

    @property
    def work_dir(self) -> Path:
        return Path(self.cfg.work_dir)

    @property
    def extract_dir(self) -> Path:
        return self.work_dir / "extract"

    @property
    def staging(self) -> Workspace:
        return Workspace.from_path(self.work_dir / "package" / self.cfg.package_naming.stem(self.package_id))

    @property
    def client_out_dir(self) -> Path:
        return Path(self.cfg.output_dir) / "client"

    @property
    def server_out_dir(self) -> Path:
        return Path(self.cfg.output_dir) / "server"


@dataclass
class BuildState:
    summary: RunSummary
    external_ids: List[str] = field(default_factory=list)
    items: Dict[str, WorkshopItem] = field(default_factory=dict)
    records: List[AssetRecord] = field(default_factory=list)
    registry_doc: Optional[Path] = None
    locale_docs: Dict[str, Path] = field(default_factory=dict)
    staged_locales: List[str] = field(default_factory=list)
    thumbnails: List[str] = field(default_factory=list)
    package_path: Optional[Path] = None
    server_listing: Optional[Path] = None


def step_00_initialize(*, ctx: BuildCtx, state: BuildState) -> None:
    ctx.work_dir.mkdir(parents=True, exist_ok=True)
    if ctx.extract_dir.exists():
        shutil.rmtree(ctx.extract_dir)
    ctx.staging.reset()
    ctx.client_out_dir.mkdir(parents=True, exist_ok=True)

    required = ["extract", "list", "archive"]
    if ctx.toolchain.has("compile"):
        required.append("compile")
    ctx.toolchain.check(required)

    base = Path(ctx.cfg.base_package)
    if not base.is_file():
        raise NotFound(f"base game package missing: {base}", context=str(base))
    logger.info("Building %s from %s", ctx.package_file, base)


def step_01_collect_assets(*, ctx: BuildCtx, state: BuildState) -> None:
    ids: List[str] = []
    if ctx.cfg.collection_id:
        ids.extend(ctx.client.collection_children(ctx.cfg.collection_id))
    for eid in ctx.cfg.asset_ids:
        if eid not in ids:
            ids.append(eid)
    if not ids:
        raise RuntimeError("No assets: collection is empty and no explicit assets configured")
    state.external_ids = ids

    try:
        state.items = ctx.client.published_file_details(ids)
    except (TransientIOFailure, NotFound) as e:
        # Resolution still works from the cache and the container listing.
        logger.warning("Metadata unavailable, continuing with ids only: %s", e)
        state.items = {}

    missing = [eid for eid in ids if eid not in state.items]
    if missing:
        logger.warning("No metadata for %d asset(s): %s", len(missing), ", ".join(missing))
    logger.info("Collected %d asset(s)", len(ids))


def step_02_resolve_identities(*, ctx: BuildCtx, state: BuildState) -> None:
    items = [state.items.get(eid) or WorkshopItem(external_id=eid) for eid in state.external_ids]
    for item, outcome in zip(items, ctx.resolver.resolve_all(items)):
        state.summary.add(item.external_id, outcome)
        if outcome.ok:
            state.records.append(outcome.unwrap())

    if not state.records:
        raise RuntimeError("No asset could be resolved; nothing to package")
    logger.info("Resolved %d/%d asset(s)", len(state.records), len(items))


def step_03_extract_documents(*, ctx: BuildCtx, state: BuildState) -> None:
    base = Path(ctx.cfg.base_package)
    state.registry_doc = ctx.toolchain.extract(base, ctx.cfg.registry_entry_path, ctx.extract_dir)
    for locale in ctx.cfg.locales:
        entry = ctx.cfg.locale_entry_template.format(locale=locale)
        state.locale_docs[locale] = ctx.toolchain.extract(base, entry, ctx.extract_dir)


def step_04_patch_map_registry(*, ctx: BuildCtx, state: BuildState) -> None:
    if state.registry_doc is None:
        raise RuntimeError("map registry document was not extracted")
    doc = read_document(state.registry_doc)
    try:
        doc, added = patch_map_registry(
            doc, state.records, ctx.cfg.marker("registry_block"), ctx.cfg.marker("registry_boundary")
        )
    except MarkerNotFound as e:
        raise MarkerNotFound(
            f"{e.message}; the game update may have changed {ctx.cfg.registry_entry_path}, "
            "adjust markers.registry_block / markers.registry_boundary",
            context=str(state.registry_doc),
        ) from e
    _stage_document(ctx, ctx.cfg.registry_entry_path, doc)
    logger.info("Map registry: %d entr(y/ies) added", added)


def step_05_patch_locales(*, ctx: BuildCtx, state: BuildState) -> None:
    marker = ctx.cfg.marker("locale")
    for locale, path in state.locale_docs.items():
        doc = read_document(path)
        try:
            doc, added = patch_locale(doc, state.records, marker)
        except MarkerNotFound as e:
            logger.warning("Locale %s skipped (%s): %s", locale, path, e)
            continue
        _stage_document(ctx, ctx.cfg.locale_entry_template.format(locale=locale), doc)
        state.staged_locales.append(locale)
        logger.info("Locale %s: %d entr(y/ies) added", locale, added)

    if not state.staged_locales:
        logger.warning("No locale file could be patched; titles will show as raw map names")


def step_06_stage_thumbnails(*, ctx: BuildCtx, state: BuildState) -> None:
    staging = ctx.staging
    for record in state.records:
        if not record.thumbnail_ref:
            logger.info("%s: no preview image", record.external_id)
            continue
        rel = f"{ctx.cfg.thumbnail_dir}/{record.internal_name}.png"
        try:
            dst = staging.ensure_parent_dirs(rel)
            png = fetch_thumbnail(ctx.client, record.thumbnail_ref, dst, ctx.cfg.thumbnail_size)
            if ctx.toolchain.has("compile"):
                ctx.toolchain.compile(png, png.with_suffix(".vtex_c"))
                png.unlink()
        except (MapNamesError, ThumbnailError, OSError) as e:
            logger.warning("%s: thumbnail failed: %s", record.external_id, e)
            state.summary.add(
                f"{record.external_id} thumbnail",
                Outcome.failure("transient_io", str(e), context=record.external_id),
            )
            continue
        state.thumbnails.append(record.internal_name)


def step_07_create_package(*, ctx: BuildCtx, state: BuildState) -> None:
    staging = ctx.staging
    if not staging.files():
        raise RuntimeError(f"Nothing staged in {staging.root}")

    built = ctx.toolchain.archive(staging.root, staging.root.parent / ctx.package_file)
    dst = ctx.client_out_dir / ctx.package_file
    dst.parent.mkdir(parents=True, exist_ok=True)
    shutil.move(str(built), str(dst))
    state.package_path = dst
    logger.info("Package ready: %s", dst)


def step_08_server_listing(*, ctx: BuildCtx, state: BuildState) -> None:
    if not ctx.with_server:
        return

    names = [r.internal_name for r in state.records]
    if ctx.include_official:
        entries = ctx.toolchain.list_entries(Path(ctx.cfg.base_package))
        official = select_official_names(
            entries, ctx.cfg.prefixes, ctx.cfg.excluded_suffixes, ctx.cfg.vanity_suffixes
        )
        names += [n for n in official if n not in names]
        logger.info("Server listing includes %d official map(s)", len(official))

    doc = read_document(SERVER_TEMPLATE, default_newline="\n")
    doc, added = patch_server_listing(doc, names, ctx.cfg.marker("server"))
    out = ctx.server_out_dir / SERVER_TEMPLATE.name
    write_document(out, doc)
    state.server_listing = out
    logger.info("Server listing: %d map(s) -> %s", added, out)


def step_09_distribute(*, ctx: BuildCtx, state: BuildState) -> None:
    copy_tree(str(INSTALLER_SCRIPTS), str(ctx.client_out_dir))

    report = {
        "package": ctx.package_file,
        "assets": [r.to_dict() for r in state.records],
        "locales": state.staged_locales,
        "thumbnails": state.thumbnails,
        "failed": [{"id": label, "reason": reason} for label, reason in state.summary.failed],
    }
    out = Path(ctx.cfg.output_dir) / "build_report.json"
    out.write_text(json.dumps(report, indent=2) + "\n", encoding="utf-8")


def _stage_document(ctx: BuildCtx, rel: str, doc: MarkerDocument) -> None:
    ctx.staging.write_bytes(rel, doc.to_bytes())


ALL_STEPS = [
    step_00_initialize,
    step_01_collect_assets,
    step_02_resolve_identities,
    step_03_extract_documents,
    step_04_patch_map_registry,
    step_05_patch_locales,
    step_06_stage_thumbnails,
    step_07_create_package,
    step_08_server_listing,
    step_09_distribute,
]


def assemble(ctx: BuildCtx, summary: Optional[RunSummary] = None) -> BuildState:
    """Run every build step in order; any exception aborts the build."""

    state = BuildState(summary=summary or RunSummary(title="mapnames build"))
    for fn in ALL_STEPS:
        logger.info("Running step %s", fn.__name__)
        fn(ctx=ctx, state=state)
    return state
