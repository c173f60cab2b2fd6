from __future__ import annotations

import logging
import re
import shutil
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Literal, Optional

from .errors import MapNamesError, Outcome
from .install_config import InstallConfig
from .patcher import (
    MarkerSpec,
    insert_before_marker,
    line_pattern,
    read_document,
    remove_matching,
    write_document,
)

logger = logging.getLogger(__name__)

InstallationState = Literal["pristine", "patched"]


@dataclass(frozen=True)
class InstallTarget:
    game_dir: Path
    config: InstallConfig

    @property
    def shared_config(self) -> Path:
        return self.game_dir / self.config.shared_config

    @property
    def target_dir(self) -> Path:
        return self.game_dir / self.config.target_dir


class InstallStateMachine:
    """Register/deregister packages in the shared client config.

    Nothing is remembered between calls: whether the config is pristine or
    patched, and which payloads are present, is read from disk every time.
    Every mutation of the shared config is preceded by a timestamped backup
    (unless skipped) and undone when a later step of the same install fails.
    """

    def __init__(self, target: InstallTarget, *, now: Optional[Callable[[], datetime]] = None) -> None:
        self.target = target
        self.cfg = target.config
        self._now = now or datetime.now

    # -- inspection -------------------------------------------------------

    def state(self) -> InstallationState:
        doc = read_document(self.target.shared_config, default_newline=self.cfg.newline)
        pattern = self.cfg.reference_pattern
        return "patched" if any(pattern.match(ln) for ln in doc.lines) else "pristine"

    def installed_payloads(self) -> List[Path]:
        d = self.target.target_dir
        if not d.is_dir():
            return []
        return sorted(p for p in d.iterdir() if p.is_file() and self.cfg.naming.matches(p.name))

    # -- backups ----------------------------------------------------------

    def _backup_re(self) -> re.Pattern[str]:
        name = re.escape(self.target.shared_config.name)
        return re.compile(rf"^{name}\.\d{{8}}-\d{{6}}-\d{{6}}{re.escape(self.cfg.backup_suffix)}(?:\.\d+)?$")

    def backups(self) -> List[Path]:
        """Backups of the shared config, oldest first (by modification time)."""

        src = self.target.shared_config
        rx = self._backup_re()
        found = [p for p in src.parent.glob(f"{src.name}.*") if p.is_file() and rx.match(p.name)]
        return sorted(found, key=lambda p: (p.stat().st_mtime_ns, p.name))

    def latest_backup(self) -> Optional[Path]:
        found = self.backups()
        return found[-1] if found else None

    def create_backup(self) -> Path:
        src = self.target.shared_config
        stamp = self._now().strftime("%Y%m%d-%H%M%S-%f")
        dst = src.with_name(f"{src.name}.{stamp}{self.cfg.backup_suffix}")
        n = 1
        while dst.exists():
            dst = src.with_name(f"{src.name}.{stamp}{self.cfg.backup_suffix}.{n}")
            n += 1
        # copyfile, not copy2: the backup's mtime must be the time it was taken.
        shutil.copyfile(src, dst)
        logger.info("Backed up %s -> %s", src, dst.name)
        return dst

    def restore(self, backup: Path) -> None:
        shutil.copyfile(backup, self.target.shared_config)
        logger.info("Restored %s from %s", self.target.shared_config, backup.name)

    def _recover(self, backup: Optional[Path], snapshot: bytes, partial: Path) -> None:
        """Best effort rollback; never raises."""

        try:
            partial.unlink(missing_ok=True)
        except OSError as e:
            logger.error("Could not remove partial payload %s: %s", partial, e)
        try:
            if backup is not None:
                self.restore(backup)
            else:
                self.target.shared_config.write_bytes(snapshot)
                logger.info("Restored %s from in-memory snapshot", self.target.shared_config)
        except OSError as e:
            logger.error("ROLLBACK FAILED for %s: %s (backup=%s)", self.target.shared_config, e, backup)

    # -- transitions ------------------------------------------------------

    def install(self, package: Path, *, force: bool = False, skip_backup: bool = False) -> Outcome[str]:
        name = package.name
        shared = self.target.shared_config
        line = self.cfg.reference_line(name)

        try:
            snapshot = shared.read_bytes()
            doc = read_document(shared, default_newline=self.cfg.newline)
        except OSError as e:
            return Outcome.failure("not_found", f"cannot read {shared}: {e}", context=name)

        if doc.contains(line) and not force:
            if not (self.target.target_dir / name).is_file():
                logger.warning("%s is referenced but its payload is missing; use --force to reinstall", name)
            logger.info("%s already installed; nothing to do", name)
            return Outcome.success("unchanged")

        backup: Optional[Path] = None
        if not skip_backup:
            try:
                backup = self.create_backup()
            except OSError as e:
                return Outcome.failure("not_found", f"backup of {shared} failed: {e}", context=name)

        payload = self.target.target_dir / name
        partial = payload.with_name(name + ".partial")
        try:
            doc, _ = remove_matching(doc, line_pattern([line]))
            doc = insert_before_marker(doc, MarkerSpec(literal=self.cfg.marker), [line])
            write_document(shared, doc)
            self.target.target_dir.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(package, partial)
            # A half-copied file never takes the place of a working payload.
            partial.replace(payload)
        except MapNamesError as e:
            logger.error("Install of %s failed: %s", name, e)
            self._recover(backup, snapshot, partial)
            return Outcome.failure(e.kind, f"{shared}: {e.message}", context=name)
        except OSError as e:
            logger.error("Install of %s failed: %s", name, e)
            self._recover(backup, snapshot, partial)
            return Outcome.failure("transient_io", str(e), context=name)

        logger.info("Installed %s", name)
        return Outcome.success("installed")

    def uninstall(self) -> Outcome[str]:
        shared = self.target.shared_config
        config_ok = True
        try:
            latest = self.latest_backup()
            if latest is not None:
                self.restore(latest)
            else:
                logger.info("No backup of %s; stripping package references", shared)
            self._strip_references()
            logger.info("%s is now %s", shared, self.state())
        except (OSError, MapNamesError) as e:
            logger.error("Could not restore %s: %s", shared, e)
            config_ok = False

        removed = 0
        failed = 0
        for p in self.installed_payloads():
            try:
                p.unlink()
                removed += 1
                logger.info("Removed %s", p)
            except OSError as e:
                failed += 1
                logger.error("Could not remove %s: %s", p, e)

        summary = f"config {'restored' if config_ok else 'NOT restored'}, removed {removed} file(s), {failed} failed"
        if config_ok and failed == 0:
            return Outcome.success(summary)
        return Outcome.failure("transient_io", summary, context=str(shared))

    def _strip_references(self) -> int:
        shared = self.target.shared_config
        doc = read_document(shared, default_newline=self.cfg.newline)
        doc, removed = remove_matching(doc, self.cfg.reference_pattern)
        if removed:
            write_document(shared, doc)
            logger.info("Stripped %d package reference(s) from %s", removed, shared)
        return removed
