from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Tuple

from .errors import Outcome

logger = logging.getLogger(__name__)


@dataclass
class RunSummary:
    title: str
    succeeded: List[str] = field(default_factory=list)
    failed: List[Tuple[str, str]] = field(default_factory=list)

    def add(self, label: str, outcome: Outcome) -> None:
        if outcome.ok:
            self.succeeded.append(label)
        else:
            self.failed.append((label, f"{outcome.kind}: {outcome.message}"))

    def fail(self, label: str, reason: str) -> None:
        self.failed.append((label, reason))

    @property
    def total(self) -> int:
        return len(self.succeeded) + len(self.failed)

    @property
    def exit_code(self) -> int:
        return 1 if self.failed else 0

    def render(self) -> str:
        rows = [("Total", self.total), ("Succeeded", len(self.succeeded)), ("Failed", len(self.failed))]
        width = max(len(k) for k, _ in rows)
        out = [f"== {self.title} =="]
        out += [f"  {k.ljust(width)}  {v:>5}" for k, v in rows]
        for label, reason in self.failed:
            out.append(f"  ! {label}: {reason}")
        return "\n".join(out)

    def emit(self) -> None:
        logger.info(
            "%s: total=%d succeeded=%d failed=%d", self.title, self.total, len(self.succeeded), len(self.failed)
        )
        print(self.render())
