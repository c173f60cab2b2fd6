from __future__ import annotations

import argparse
import logging
import os
import shutil
from pathlib import Path
from typing import List, Optional

from .assembler import BuildCtx, assemble
from .build_config import BuildConfig, load_build_config
from .errors import MapNamesError
from .identity_cache import IdentityCache
from .lib.vpk_tools import Toolchain
from .lib.workshop_api import WorkshopClient
from .logging_utils import configure_logging
from .report import RunSummary
from .resolver import MapIdentityResolver

logger = logging.getLogger(__name__)


DEFAULT_BUILD_CONFIG = "mapnames.yaml"


def clean_outputs(cfg: BuildConfig) -> None:
    for d in (Path(cfg.work_dir), Path(cfg.output_dir)):
        if d.exists():
            logger.info("Removing %s", d)
            shutil.rmtree(d)


def run_build(
    cfg: BuildConfig,
    *,
    with_server: bool = False,
    include_official: bool = False,
    force: bool = False,
) -> RunSummary:
    """Resolve every asset of the configured collection and build the package."""

    if force and Path(cfg.work_dir).exists():
        logger.info("Clearing work dir %s", cfg.work_dir)
        shutil.rmtree(cfg.work_dir)

    client = WorkshopClient(
        cfg.api_base,
        api_key=cfg.api_key,
        timeout_s=cfg.timeout_s,
        retries=cfg.retries,
        backoff_s=cfg.backoff_s,
    )
    toolchain = Toolchain({name: cfg.tool(name) for name in ("extract", "list", "compile", "archive")})
    resolver = MapIdentityResolver.from_config(
        cfg, cache=IdentityCache(cfg.cache_file), client=client, toolchain=toolchain
    )
    ctx = BuildCtx(
        cfg=cfg,
        client=client,
        toolchain=toolchain,
        resolver=resolver,
        with_server=with_server or cfg.server_enabled,
        include_official=include_official or cfg.include_official,
    )

    summary = RunSummary(title="mapnames build")
    state = assemble(ctx, summary)
    logger.info("Build finished: %s", state.package_path)
    return summary


def main(argv: Optional[List[str]] = None) -> int:
    p = argparse.ArgumentParser(prog="mapnames-build")
    p.add_argument("--config", default=DEFAULT_BUILD_CONFIG, help="Build config (YAML)")
    p.add_argument("--collection", default=None, help="Workshop collection id (overrides config)")
    p.add_argument("--asset", action="append", default=[], help="Extra workshop item id (repeatable)")
    p.add_argument("--server", action="store_true", help="Also generate the server map listing")
    p.add_argument("--official", action="store_true", help="Include built-in maps in the server listing")
    p.add_argument("--force", action="store_true", help="Clear the work dir before building")
    p.add_argument("--clean", action="store_true", help="Remove work and output dirs, then exit")
    p.add_argument("--working-dir", default=None, help="Base directory for relative paths")
    p.add_argument("--jobs", type=int, default=None, help="Parallel identity resolution workers")
    p.add_argument("--log", default=None, help="Path to build log")

    args = p.parse_args(argv)

    if args.working_dir:
        os.chdir(args.working_dir)

    cfg = load_build_config(args.config) if Path(args.config).exists() else BuildConfig(raw={})
    cfg = cfg.with_overrides(
        collection_id=args.collection,
        assets=(cfg.asset_ids + args.asset) if args.asset else None,
        **{"resolver.workers": args.jobs},
    )

    configure_logging(log_path=args.log or cfg.log_path)
    if not Path(args.config).exists():
        logger.warning("Config %s not found; using defaults", args.config)

    if args.clean:
        clean_outputs(cfg)
        return 0

    try:
        summary = run_build(cfg, with_server=args.server, include_official=args.official, force=args.force)
    except (MapNamesError, RuntimeError, OSError) as e:
        logger.error("Build aborted: %s", e)
        summary = RunSummary(title="mapnames build")
        summary.fail("build", str(e))
        summary.emit()
        return 1

    summary.emit()
    return summary.exit_code


if __name__ == "__main__":
    raise SystemExit(main())
