"""Steam Web API client for workshop collections and published files."""

from __future__ import annotations

import logging
import urllib.parse
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import requests

from ..errors import NotFound, TransientIOFailure
from ..records import WorkshopItem, normalize_external_id
from .retry import with_retries

logger = logging.getLogger(__name__)

COLLECTION_DETAILS = "ISteamRemoteStorage/GetCollectionDetails/v1/"
PUBLISHED_FILE_DETAILS = "ISteamRemoteStorage/GetPublishedFileDetails/v1/"


class WorkshopClient:
    def __init__(
        self,
        base_url: str = "https://api.steampowered.com",
        *,
        api_key: Optional[str] = None,
        timeout_s: float = 30.0,
        retries: int = 3,
        backoff_s: float = 2.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/") + "/"
        self.api_key = api_key
        self.timeout_s = timeout_s
        self.retries = retries
        self.backoff_s = backoff_s
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": "workshop-mapnames"})

    def _request(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        """One HTTP call; connection problems and 5xx are transient, 4xx is not."""

        try:
            response = self.session.request(method, url, timeout=self.timeout_s, **kwargs)
        except (requests.ConnectionError, requests.Timeout) as e:
            raise TransientIOFailure(f"{method} {url}: {e}", context=url) from e
        if response.status_code >= 500 or response.status_code == 429:
            raise TransientIOFailure(f"{method} {url}: HTTP {response.status_code}", context=url)
        if response.status_code >= 400:
            # 403/410 are what expired CDN links return.
            raise NotFound(f"{method} {url}: HTTP {response.status_code}", context=url)
        return response

    def _post_api(self, endpoint: str, form: Dict[str, Any]) -> Dict[str, Any]:
        url = urllib.parse.urljoin(self.base_url, endpoint)
        if self.api_key:
            form = dict(form, key=self.api_key)

        def call() -> Dict[str, Any]:
            payload = self._request("POST", url, data=form).json()
            if not isinstance(payload, dict) or not isinstance(payload.get("response"), dict):
                raise TransientIOFailure(f"malformed response from {endpoint}", context=url)
            return payload["response"]

        return with_retries(call, attempts=self.retries, backoff_s=self.backoff_s, what=f"POST {endpoint}")

    def collection_children(self, collection_id: str) -> List[str]:
        """External ids of every item in a workshop collection, in collection order."""

        cid = normalize_external_id(collection_id)
        resp = self._post_api(COLLECTION_DETAILS, {"collectioncount": 1, "publishedfileids[0]": cid})
        details = resp.get("collectiondetails") or []
        if not details or int(details[0].get("result", 0)) != 1:
            raise NotFound(f"collection {cid} not available", context=cid)

        children = details[0].get("children") or []
        ordered = sorted(children, key=lambda c: int(c.get("sortorder", 0)))
        ids = [normalize_external_id(c["publishedfileid"]) for c in ordered if c.get("publishedfileid")]
        logger.info("Collection %s has %d items", cid, len(ids))
        return ids

    def published_file_details(self, external_ids: Sequence[str]) -> Dict[str, WorkshopItem]:
        """Metadata per id; ids the platform does not return are simply absent."""

        ids = [normalize_external_id(i) for i in external_ids]
        if not ids:
            return {}
        form: Dict[str, Any] = {"itemcount": len(ids)}
        for n, eid in enumerate(ids):
            form[f"publishedfileids[{n}]"] = eid

        resp = self._post_api(PUBLISHED_FILE_DETAILS, form)
        out: Dict[str, WorkshopItem] = {}
        for raw in resp.get("publishedfiledetails") or []:
            if int(raw.get("result", 0)) != 1:
                logger.warning("No details for %s (result=%s)", raw.get("publishedfileid"), raw.get("result"))
                continue
            try:
                item = WorkshopItem.from_api(raw)
            except ValueError as e:
                logger.warning("Skipping malformed details record: %s", e)
                continue
            out[item.external_id] = item
        return out

    def download_file(self, url: str, destination: Path) -> Path:
        """Stream *url* to *destination* (retried; a partial file is overwritten)."""

        def call() -> Path:
            response = self._request("GET", url, stream=True)
            destination.parent.mkdir(parents=True, exist_ok=True)
            try:
                with open(destination, "wb") as f:
                    for chunk in response.iter_content(chunk_size=65536):
                        f.write(chunk)
            except requests.RequestException as e:
                raise TransientIOFailure(f"download interrupted: {url}: {e}", context=url) from e
            return destination

        return with_retries(call, attempts=self.retries, backoff_s=self.backoff_s, what=f"GET {url}")

    def download_bytes(self, url: str) -> bytes:
        return with_retries(
            lambda: self._request("GET", url).content,
            attempts=self.retries,
            backoff_s=self.backoff_s,
            what=f"GET {url}",
        )
