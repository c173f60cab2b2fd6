from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Callable, List, Optional

from .install_config import InstallConfig, load_install_config
from .install_state import InstallStateMachine, InstallTarget
from .lib.steam_paths import find_game_dir, is_game_dir
from .logging_utils import DEFAULT_INSTALL_LOG, configure_logging
from .report import RunSummary

logger = logging.getLogger(__name__)


def find_packages(directory: Path, cfg: InstallConfig) -> List[Path]:
    """Distributable packages sitting next to the installer."""
    if not directory.is_dir():
        return []
    found = sorted(p for p in directory.iterdir() if p.is_file() and cfg.naming.matches(p.name))
    for p in found:
        logger.info("Found package %s (workshop id %s)", p.name, cfg.naming.external_id_of(p.name))
    return found


def locate_game_dir(
    cfg: InstallConfig,
    *,
    explicit: Optional[Path],
    working_dir: Path,
    ask: Optional[Callable[[str], str]] = None,
) -> Optional[Path]:
    found = find_game_dir(cfg.shared_config, explicit=explicit, start=working_dir)
    if found.ok:
        return found.unwrap()
    logger.warning("%s", found.message)

    if explicit is not None or ask is None:
        return None

    answer = ask("Game folder (the one containing 'game'): ").strip().strip('"')
    if not answer:
        return None
    candidate = Path(answer).expanduser()
    if not is_game_dir(candidate, cfg.shared_config):
        logger.error("%s has no %s", candidate, cfg.shared_config)
        return None
    return candidate


def run_install(
    machine: InstallStateMachine,
    packages: List[Path],
    *,
    force: bool = False,
    skip_backup: bool = False,
) -> RunSummary:
    summary = RunSummary(title="mapnames install")
    for package in packages:
        summary.add(package.name, machine.install(package, force=force, skip_backup=skip_backup))
    return summary


def run_uninstall(machine: InstallStateMachine) -> RunSummary:
    summary = RunSummary(title="mapnames uninstall")
    summary.add(str(machine.target.shared_config), machine.uninstall())
    return summary


def main(argv: Optional[List[str]] = None) -> int:
    p = argparse.ArgumentParser(prog="mapnames-install")
    p.add_argument("--force", action="store_true", help="Re-register even if already installed")
    p.add_argument("--skip-backup", action="store_true", help="Do not back up the shared config")
    p.add_argument("--clean", action="store_true", help="Uninstall: restore the config and remove packages")
    p.add_argument("--working-dir", default=None, help="Directory holding the packages (default: cwd)")
    p.add_argument("--game-dir", default=None, help="Game install folder")
    p.add_argument("--config", default=None, help="Install config (YAML)")
    p.add_argument("--log", default=None, help="Path to install log")

    args = p.parse_args(argv)

    working_dir = Path(args.working_dir or ".").resolve()
    configure_logging(log_path=args.log or str(working_dir / DEFAULT_INSTALL_LOG))

    try:
        cfg = load_install_config(args.config)
    except (OSError, ValueError) as e:
        logger.error("Invalid install config %s: %s", args.config, e)
        return 1

    ask = input if sys.stdin is not None and sys.stdin.isatty() else None
    game_dir = locate_game_dir(
        cfg,
        explicit=Path(args.game_dir) if args.game_dir else None,
        working_dir=working_dir,
        ask=ask,
    )
    if game_dir is None:
        logger.error("Game folder not found; pass --game-dir")
        return 1
    logger.info("Game folder: %s", game_dir)

    machine = InstallStateMachine(InstallTarget(game_dir=game_dir, config=cfg))

    if args.clean:
        summary = run_uninstall(machine)
    else:
        packages = find_packages(working_dir, cfg)
        if not packages:
            logger.error("No %s packages found in %s", cfg.naming.file_name("<id>"), working_dir)
            return 1
        summary = run_install(machine, packages, force=args.force, skip_backup=args.skip_backup)

    summary.emit()
    return summary.exit_code


if __name__ == "__main__":
    raise SystemExit(main())
