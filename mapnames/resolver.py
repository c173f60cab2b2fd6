from __future__ import annotations

import logging
import tempfile
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from .build_config import BuildConfig
from .errors import MapNamesError, Outcome, ToolMissing, UnresolvedIdentity
from .identity_cache import IdentityCache
from .naming import friendly_title, name_from_filename, select_internal_name
from .records import AssetRecord, WorkshopItem, is_internal_name

logger = logging.getLogger(__name__)


class MapIdentityResolver:
    """Resolve workshop items to internal map names and display titles.

    Tiers, each tried only when the previous one yields nothing:
    1. the upstream ``filename`` field
    2. the identity cache
    3. the map listing inside the downloaded container (written through to the cache)
    The display title comes from the upstream title when it is short enough,
    otherwise from the internal name.
    """

    def __init__(
        self,
        *,
        cache: IdentityCache,
        client,
        toolchain,
        prefixes: Sequence[str],
        excluded_suffixes: Sequence[str],
        work_dir: Path,
        content_root: Optional[Path] = None,
        workers: int = 1,
    ) -> None:
        self.cache = cache
        self.client = client
        self.toolchain = toolchain
        self.prefixes = list(prefixes)
        self.excluded_suffixes = list(excluded_suffixes)
        self.work_dir = Path(work_dir)
        self.content_root = content_root
        self.workers = max(1, workers)
        self.extractions = 0
        self._count_lock = threading.Lock()

    @classmethod
    def from_config(cls, cfg: BuildConfig, *, cache: IdentityCache, client, toolchain) -> "MapIdentityResolver":
        return cls(
            cache=cache,
            client=client,
            toolchain=toolchain,
            prefixes=cfg.prefixes,
            excluded_suffixes=cfg.excluded_suffixes,
            work_dir=Path(cfg.work_dir),
            content_root=Path(cfg.workshop_content_root) if cfg.workshop_content_root else None,
            workers=cfg.workers,
        )

    def resolve(self, item: WorkshopItem) -> Outcome[AssetRecord]:
        eid = item.external_id
        try:
            internal = self._internal_name(item)
            record = AssetRecord(
                external_id=eid,
                internal_name=internal,
                friendly_title=friendly_title(item.title, internal, self.excluded_suffixes),
                thumbnail_ref=item.preview_url,
            )
        except ToolMissing:
            raise
        except MapNamesError as e:
            logger.error("Could not resolve %s: %s", eid, e)
            return Outcome.failure("unresolved_identity", e.message, context=eid)
        except (ValueError, OSError) as e:
            logger.error("Could not resolve %s: %s", eid, e)
            return Outcome.failure("unresolved_identity", str(e), context=eid)

        logger.info("Resolved %s -> %s (%s)", eid, record.internal_name, record.friendly_title)
        return Outcome.success(record)

    def resolve_all(self, items: Sequence[WorkshopItem]) -> List[Outcome[AssetRecord]]:
        """Resolve every item; results keep input order and names stay unique."""

        if self.workers > 1 and len(items) > 1:
            with ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="resolve") as pool:
                outcomes = list(pool.map(self.resolve, items))
        else:
            outcomes = [self.resolve(item) for item in items]

        seen: Dict[str, str] = {}
        unique: List[Outcome[AssetRecord]] = []
        for outcome in outcomes:
            if outcome.ok:
                record = outcome.unwrap()
                owner = seen.get(record.internal_name)
                if owner is not None:
                    msg = f"internal name {record.internal_name} already used by {owner}"
                    logger.error("Skipping %s: %s", record.external_id, msg)
                    unique.append(Outcome.failure("duplicate_identity", msg, context=record.external_id))
                    continue
                seen[record.internal_name] = record.external_id
            unique.append(outcome)
        return unique

    def _internal_name(self, item: WorkshopItem) -> str:
        eid = item.external_id

        if item.filename:
            name = name_from_filename(item.filename)
            if name:
                logger.info("%s: internal name from upstream filename %s", eid, item.filename)
                return name

        cached = self.cache.get(eid)
        if cached and is_internal_name(cached):
            logger.info("%s: internal name from cache", eid)
            return cached
        if cached:
            logger.warning("%s: ignoring unusable cache entry %r", eid, cached)

        name = self._extract_name(item)
        self.cache.put(eid, name)
        return name

    def _extract_name(self, item: WorkshopItem) -> str:
        eid = item.external_id
        with self._count_lock:
            self.extractions += 1

        self.work_dir.mkdir(parents=True, exist_ok=True)
        with tempfile.TemporaryDirectory(prefix=f"extract-{eid}-", dir=self.work_dir) as tmp:
            container = self._container(item, Path(tmp))
            entries = self.toolchain.list_entries(container)
            name = select_internal_name(entries, self.prefixes, self.excluded_suffixes)

        if not name:
            raise UnresolvedIdentity(f"no plausible map entry among {len(entries)} container entries", context=eid)
        logger.info("%s: internal name %s from container listing", eid, name)
        return name

    def _container(self, item: WorkshopItem, tmp: Path) -> Path:
        eid = item.external_id
        if self.content_root is not None:
            local = sorted((self.content_root / eid).glob("*.vpk"))
            if local:
                logger.info("%s: using downloaded container %s", eid, local[0])
                return local[0]

        if not item.file_url:
            raise UnresolvedIdentity("no container download available", context=eid)
        return self.client.download_file(item.file_url, tmp / f"{eid}.vpk")
