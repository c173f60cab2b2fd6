from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from ..errors import NotFound
from .command import require_tool, run_cmd

logger = logging.getLogger(__name__)


def render_argv(template: Sequence[str], **values: str) -> List[str]:
    return [part.format(**values) for part in template]


class Toolchain:
    """External extractor / lister / compiler / archiver driven by argv templates.

    Templates use ``{package}``, ``{entry}``, ``{out_dir}``, ``{src}`` and
    ``{dst}`` placeholders. Every call blocks until the tool exits.
    """

    def __init__(
        self,
        tools: Mapping[str, Sequence[str]],
        *,
        timeout_s: Optional[float] = 600.0,
    ) -> None:
        self.tools: Dict[str, List[str]] = {k: list(v) for k, v in tools.items()}
        self.timeout_s = timeout_s

    def has(self, name: str) -> bool:
        return bool(self.tools.get(name))

    def check(self, names: Iterable[str]) -> None:
        for name in names:
            argv = self.tools.get(name)
            if not argv:
                continue
            require_tool(argv[0])

    def _run(self, name: str, context: str, **values: str) -> str:
        argv = render_argv(self.tools[name], **values)
        return run_cmd(argv, timeout_s=self.timeout_s, context=context).stdout

    def extract(self, package: Path, entry: str, out_dir: Path) -> Path:
        """Extract one entry from *package*; NotFound if the tool produced nothing."""

        out_dir.mkdir(parents=True, exist_ok=True)
        self._run("extract", entry, package=str(package), entry=entry, out_dir=str(out_dir))

        direct = out_dir / entry
        if direct.is_file():
            return direct
        name = Path(entry).name
        matches = sorted(p for p in out_dir.rglob(name) if p.is_file())
        if not matches:
            raise NotFound(f"extraction produced no file for {entry}", context=str(package))
        return matches[0]

    def list_entries(self, package: Path) -> List[str]:
        stdout = self._run("list", str(package), package=str(package))
        entries: List[str] = []
        for line in stdout.splitlines():
            line = line.strip()
            if not line:
                continue
            # Listing lines may carry trailing columns (CRC, size).
            entries.append(line.split()[0].replace("\\", "/"))
        return entries

    def compile(self, src: Path, dst: Path) -> Path:
        self._run("compile", str(src), src=str(src), dst=str(dst))
        if not dst.is_file():
            raise NotFound(f"compiler produced no output {dst}", context=str(src))
        return dst

    def archive(self, src_dir: Path, expected: Path) -> Path:
        self._run("archive", str(src_dir), src=str(src_dir), dst=str(expected))
        if not expected.is_file():
            raise NotFound(f"archiver did not produce {expected}", context=str(src_dir))
        logger.info("Archived %s -> %s", src_dir, expected)
        return expected
