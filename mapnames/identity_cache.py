from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Dict, Optional

import yaml

logger = logging.getLogger(__name__)


def _detect_format(path: Path) -> str:
    ext = path.suffix.lower().lstrip(".")
    if ext in {"json", "yaml", "yml"}:
        return ext
    # Default to JSON for unknown extensions.
    return "json"


class IdentityCache:
    """Persistent ``external id -> internal name`` map.

    The document is the whole truth: every ``put`` re-reads it, sets one key
    and rewrites it. Entries never expire. A lock serializes that cycle within
    one process; two processes writing the same file are last-writer-wins.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()

    def load(self) -> Dict[str, str]:
        """Return the cached map; any read or parse failure reads as empty."""

        p = self.path
        if not p.exists():
            return {}

        try:
            text = p.read_text(encoding="utf-8")
            if _detect_format(p) == "json":
                data = json.loads(text) if text.strip() else {}
            else:
                data = yaml.safe_load(text) or {}
        except (OSError, ValueError, yaml.YAMLError) as e:
            logger.warning("Identity cache %s unreadable (%s); treating as empty", p, e)
            return {}

        if not isinstance(data, dict):
            logger.warning("Identity cache %s is not a mapping; treating as empty", p)
            return {}

        return {str(k): str(v) for k, v in data.items() if isinstance(v, (str, int)) and str(v).strip()}

    def get(self, external_id: str) -> Optional[str]:
        return self.load().get(str(external_id))

    def put(self, external_id: str, internal_name: str) -> bool:
        """Record one entry. Failures are logged and reported, never raised."""

        with self._lock:
            data = self.load()
            data[str(external_id)] = internal_name
            try:
                self._save(data)
            except (OSError, yaml.YAMLError, TypeError) as e:
                logger.warning("Could not write identity cache %s: %s", self.path, e)
                return False
        logger.info("Cached %s -> %s", external_id, internal_name)
        return True

    def _save(self, data: Dict[str, str]) -> None:
        p = self.path
        p.parent.mkdir(parents=True, exist_ok=True)
        tmp = p.with_suffix(p.suffix + ".tmp")
        if _detect_format(p) == "json":
            tmp.write_text(json.dumps(data, indent=2, sort_keys=True) + "\n", encoding="utf-8")
        else:
            tmp.write_text(yaml.safe_dump(data, sort_keys=True), encoding="utf-8")
        tmp.replace(p)
