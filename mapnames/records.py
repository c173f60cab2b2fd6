from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

_NUMERIC_ID = re.compile(r"^\d+$")
_INTERNAL_NAME = re.compile(r"^[a-z0-9][a-z0-9_\-]*$")


def normalize_external_id(value: Any) -> str:
    s = str(value).strip()
    if not _NUMERIC_ID.match(s):
        raise ValueError(f"external id must be numeric, got {value!r}")
    return s


def is_internal_name(value: Any) -> bool:
    return isinstance(value, str) and bool(_INTERNAL_NAME.match(value))


def _opt_str(raw: Mapping[str, Any], key: str) -> Optional[str]:
    v = raw.get(key)
    if v is None:
        return None
    s = str(v).strip()
    return s or None


@dataclass(frozen=True)
class WorkshopItem:
    """Upstream metadata for one workshop asset.

    Every field except the id may be missing; the resolver copes with partial
    metadata by falling through its tiers.
    """

    external_id: str
    title: Optional[str] = None
    filename: Optional[str] = None
    file_url: Optional[str] = None
    preview_url: Optional[str] = None

    @classmethod
    def from_api(cls, raw: Mapping[str, Any]) -> "WorkshopItem":
        if not isinstance(raw, Mapping):
            raise ValueError(f"published file details must be an object, got {type(raw)}")
        if "publishedfileid" not in raw:
            raise ValueError("published file details missing publishedfileid")
        return cls(
            external_id=normalize_external_id(raw["publishedfileid"]),
            title=_opt_str(raw, "title"),
            filename=_opt_str(raw, "filename"),
            file_url=_opt_str(raw, "file_url"),
            preview_url=_opt_str(raw, "preview_url"),
        )


@dataclass(frozen=True)
class AssetRecord:
    external_id: str
    internal_name: str
    friendly_title: str
    thumbnail_ref: Optional[str] = None

    def __post_init__(self) -> None:
        normalize_external_id(self.external_id)
        if not is_internal_name(self.internal_name):
            raise ValueError(f"invalid internal name {self.internal_name!r} for {self.external_id}")
        if not self.friendly_title:
            raise ValueError(f"empty friendly title for {self.external_id}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "externalID": self.external_id,
            "internalName": self.internal_name,
            "friendlyTitle": self.friendly_title,
            "thumbnailRef": self.thumbnail_ref,
        }
