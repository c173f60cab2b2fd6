from __future__ import annotations

import codecs
import logging
import re
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

from .errors import AmbiguousMarker, MarkerNotFound

logger = logging.getLogger(__name__)

_BOMS: List[Tuple[bytes, str]] = [
    (codecs.BOM_UTF8, "utf-8-sig"),
    (codecs.BOM_UTF16_LE, "utf-16-le"),
    (codecs.BOM_UTF16_BE, "utf-16-be"),
]


@dataclass(frozen=True)
class MarkerSpec:
    """A literal line or a line pattern used as a splice anchor.

    Literal markers compare against the line with surrounding whitespace
    trimmed, so indentation changes in the host document do not move them.
    A marker matching more than one line is an error unless ``first`` is set.
    """

    literal: Optional[str] = None
    pattern: Optional[str] = None
    first: bool = False

    def __post_init__(self) -> None:
        if (self.literal is None) == (self.pattern is None):
            raise ValueError("MarkerSpec needs exactly one of literal/pattern")

    @classmethod
    def from_config(cls, raw: Union[str, dict, "MarkerSpec"]) -> "MarkerSpec":
        if isinstance(raw, MarkerSpec):
            return raw
        if isinstance(raw, str):
            return cls(literal=raw)
        if not isinstance(raw, dict):
            raise ValueError(f"marker must be a string or mapping, got {type(raw)}")
        return cls(
            literal=raw.get("literal"),
            pattern=raw.get("pattern"),
            first=bool(raw.get("first", False)),
        )

    @property
    def description(self) -> str:
        if self.literal is not None:
            return f"line {self.literal.strip()!r}"
        return f"pattern /{self.pattern}/"

    def matches(self, line: str) -> bool:
        if self.pattern is not None:
            return re.search(self.pattern, line) is not None
        return line.strip() == str(self.literal).strip()


@dataclass
class MarkerDocument:
    """A line-oriented text document that renders back byte for byte."""

    lines: List[str] = field(default_factory=list)
    newline: str = "\r\n"
    trailing_newline: bool = True
    encoding: str = "utf-8"
    bom: bytes = b""

    @classmethod
    def parse(cls, text: str, *, default_newline: str = "\r\n") -> "MarkerDocument":
        if "\r\n" in text:
            newline = "\r\n"
        elif "\n" in text:
            newline = "\n"
        else:
            newline = default_newline

        if not text:
            return cls(lines=[], newline=newline, trailing_newline=False)

        parts = text.split(newline)
        trailing = parts[-1] == ""
        if trailing:
            parts.pop()
        return cls(lines=parts, newline=newline, trailing_newline=trailing)

    @classmethod
    def from_bytes(cls, data: bytes, *, default_newline: str = "\r\n") -> "MarkerDocument":
        bom = b""
        encoding = "utf-8"
        for marker, enc in _BOMS:
            if data.startswith(marker):
                bom = marker
                encoding = "utf-8" if enc == "utf-8-sig" else enc
                break
        text = data[len(bom):].decode(encoding)
        doc = cls.parse(text, default_newline=default_newline)
        doc.encoding = encoding
        doc.bom = bom
        return doc

    def render(self) -> str:
        if not self.lines:
            return ""
        body = self.newline.join(self.lines)
        return body + self.newline if self.trailing_newline else body

    def to_bytes(self) -> bytes:
        return self.bom + self.render().encode(self.encoding)

    def contains(self, line: str) -> bool:
        return line in self.lines


def read_document(path: Path, *, default_newline: str = "\r\n") -> MarkerDocument:
    return MarkerDocument.from_bytes(Path(path).read_bytes(), default_newline=default_newline)


def write_document(path: Path, doc: MarkerDocument) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_bytes(doc.to_bytes())


def find_marker(
    doc: MarkerDocument,
    spec: MarkerSpec,
    *,
    start: int = 0,
    stop: Optional[int] = None,
) -> int:
    """Return the index of the single line matching *spec* in ``lines[start:stop]``."""

    end = len(doc.lines) if stop is None else stop
    hits = [i for i in range(start, end) if spec.matches(doc.lines[i])]
    if not hits:
        raise MarkerNotFound(f"marker not found: {spec.description}")
    if len(hits) > 1 and not spec.first:
        raise AmbiguousMarker(
            f"marker matched {len(hits)} lines ({', '.join(str(h + 1) for h in hits)}): {spec.description}"
        )
    return hits[0]


def _splice(doc: MarkerDocument, at: int, new_lines: Sequence[str]) -> MarkerDocument:
    lines = doc.lines[:at] + list(new_lines) + doc.lines[at:]
    return replace(doc, lines=lines)


def insert_after_marker(doc: MarkerDocument, spec: MarkerSpec, new_lines: Sequence[str]) -> MarkerDocument:
    idx = find_marker(doc, spec)
    return _splice(doc, idx + 1, new_lines)


def insert_before_marker(doc: MarkerDocument, spec: MarkerSpec, new_lines: Sequence[str]) -> MarkerDocument:
    idx = find_marker(doc, spec)
    return _splice(doc, idx, new_lines)


def insert_before_boundary(
    doc: MarkerDocument,
    block: MarkerSpec,
    boundary: MarkerSpec,
    new_lines: Sequence[str],
) -> MarkerDocument:
    """Splice *new_lines* before the first *boundary* line following *block*."""

    start = find_marker(doc, block)
    try:
        idx = find_marker(doc, boundary, start=start + 1)
    except MarkerNotFound as e:
        if isinstance(e, AmbiguousMarker):
            raise
        raise MarkerNotFound(f"boundary {boundary.description} not found after {block.description}") from e
    return _splice(doc, idx, new_lines)


def remove_matching(doc: MarkerDocument, pattern: Union[str, re.Pattern[str]]) -> Tuple[MarkerDocument, int]:
    """Drop every line matching *pattern*; a second call removes nothing."""

    rx = re.compile(pattern) if isinstance(pattern, str) else pattern
    kept: List[str] = []
    removed = 0
    for n, line in enumerate(doc.lines, start=1):
        if rx.search(line):
            logger.info("Removing line %d: %s", n, line.strip())
            removed += 1
            continue
        kept.append(line)
    return replace(doc, lines=kept), removed


def line_pattern(lines: Sequence[str]) -> re.Pattern[str]:
    """Exact-match pattern for any of *lines*."""
    return re.compile("^(?:" + "|".join(re.escape(ln) for ln in lines) + ")$")
