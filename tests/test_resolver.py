from __future__ import annotations

from pathlib import Path

import pytest
import requests

from conftest import FakeClient, FakeToolchain
from mapnames.errors import ToolMissing
from mapnames.identity_cache import IdentityCache
from mapnames.records import WorkshopItem
from mapnames.resolver import MapIdentityResolver

PREFIXES = ["de_", "aim_", "cs_", "ar_"]
EXCLUDED = ["skybox", "lighting", "props", "nav", "radar", "vanity", "3dsky"]


def make_resolver(tmp_path: Path, *, listings=None, workers=1, content_root=None, toolchain=None, client=None):
    client = client or FakeClient()
    toolchain = toolchain or FakeToolchain(listings=listings or {})
    resolver = MapIdentityResolver(
        cache=IdentityCache(tmp_path / "cache.json"),
        client=client,
        toolchain=toolchain,
        prefixes=PREFIXES,
        excluded_suffixes=EXCLUDED,
        work_dir=tmp_path / "work",
        content_root=content_root,
        workers=workers,
    )
    return resolver, client, toolchain


def item(eid: str, **kwargs) -> WorkshopItem:
    kwargs.setdefault("file_url", f"https://cdn.example/{eid}")
    return WorkshopItem(external_id=eid, **kwargs)


def test_container_listing_resolves_and_caches(tmp_path: Path) -> None:
    listing = ["maps/de_bank.vpk", "maps/de_bank_skybox.vpk", "maps/aim_map.vpk"]
    resolver, client, toolchain = make_resolver(tmp_path, listings={"100.vpk": listing})

    outcome = resolver.resolve(item("100", title="Bank (Remake)", preview_url="https://img/100"))

    assert outcome.ok
    record = outcome.unwrap()
    assert record.internal_name == "de_bank"
    assert record.friendly_title == "Bank"
    assert record.thumbnail_ref == "https://img/100"
    assert resolver.cache.get("100") == "de_bank"
    assert client.downloads == ["https://cdn.example/100"]


def test_second_resolution_does_not_extract_again(tmp_path: Path) -> None:
    resolver, client, toolchain = make_resolver(tmp_path, listings={"100.vpk": ["maps/de_bank.vpk"]})

    first = resolver.resolve(item("100"))
    second = resolver.resolve(item("100"))

    assert first.unwrap() == second.unwrap()
    assert resolver.extractions == 1
    assert toolchain.listed == ["100.vpk"]
    assert len(client.downloads) == 1


def test_filename_tier_skips_cache_and_extraction(tmp_path: Path) -> None:
    resolver, client, toolchain = make_resolver(tmp_path)
    resolver.cache.put("7", "de_stale")

    record = resolver.resolve(item("7", filename="aim_redline.vpk", title="redline")).unwrap()

    assert record.internal_name == "aim_redline"
    assert record.friendly_title == "Redline"
    assert resolver.extractions == 0
    assert client.downloads == []


def test_unresolvable_asset_is_a_failure_outcome(tmp_path: Path) -> None:
    resolver, _, _ = make_resolver(tmp_path, listings={"9.vpk": ["materials/x.vmat_c"]})

    outcome = resolver.resolve(item("9"))

    assert not outcome.ok
    assert outcome.kind == "unresolved_identity"
    assert outcome.context == "9"
    assert resolver.cache.get("9") is None


def test_no_download_url_is_unresolved(tmp_path: Path) -> None:
    resolver, _, _ = make_resolver(tmp_path)

    outcome = resolver.resolve(WorkshopItem(external_id="9"))

    assert outcome.kind == "unresolved_identity"


def test_temporary_extraction_dir_is_removed(tmp_path: Path) -> None:
    resolver, _, _ = make_resolver(tmp_path, listings={"100.vpk": ["maps/de_bank.vpk"]})

    resolver.resolve(item("100"))
    resolver.resolve(WorkshopItem(external_id="101"))

    assert list((tmp_path / "work").iterdir()) == []


def test_local_container_is_reused(tmp_path: Path) -> None:
    content = tmp_path / "content"
    (content / "55").mkdir(parents=True)
    (content / "55" / "local.vpk").write_bytes(b"VPK")
    resolver, client, _ = make_resolver(
        tmp_path, listings={"local.vpk": ["maps/cs_local.vpk"]}, content_root=content
    )

    record = resolver.resolve(item("55")).unwrap()

    assert record.internal_name == "cs_local"
    assert client.downloads == []


def test_missing_tool_aborts(tmp_path: Path) -> None:
    class NoLister(FakeToolchain):
        def list_entries(self, package):
            raise ToolMissing("required tool not found on PATH: Source2Viewer-CLI")

    resolver, _, _ = make_resolver(tmp_path, toolchain=NoLister())

    with pytest.raises(ToolMissing):
        resolver.resolve(item("1"))


def test_duplicate_internal_names_are_reported(tmp_path: Path) -> None:
    resolver, _, _ = make_resolver(tmp_path)

    outcomes = resolver.resolve_all(
        [item("1", filename="de_bank.vpk"), item("2", filename="de_bank.vpk"), item("3", filename="de_vault.vpk")]
    )

    assert [o.ok for o in outcomes] == [True, False, True]
    assert outcomes[1].kind == "duplicate_identity"
    assert outcomes[1].context == "2"


@pytest.mark.parametrize("workers", [1, 4])
def test_resolve_all_keeps_input_order(tmp_path: Path, workers: int) -> None:
    listings = {f"{n}.vpk": [f"maps/de_map{n}.vpk"] for n in range(1, 9)}
    resolver, _, _ = make_resolver(tmp_path, listings=listings, workers=workers)

    outcomes = resolver.resolve_all([item(str(n)) for n in range(1, 9)])

    assert [o.unwrap().internal_name for o in outcomes] == [f"de_map{n}" for n in range(1, 9)]
    assert resolver.extractions == 8
    assert len(resolver.cache.load()) == 8


def test_unusable_cache_entry_is_rederived(tmp_path: Path) -> None:
    resolver, client, _ = make_resolver(tmp_path, listings={"5.vpk": ["maps/de_bank.vpk"]})
    resolver.cache.put("5", "De Bank")

    outcome = resolver.resolve(item("5"))

    assert outcome.unwrap().internal_name == "de_bank"
    assert resolver.extractions == 1
    assert resolver.cache.get("5") == "de_bank"


@pytest.mark.parametrize(
    "error",
    [requests.HTTPError("403 Client Error: Forbidden"), PermissionError("disk is read-only")],
)
def test_failed_download_only_fails_that_asset(tmp_path: Path, error: Exception) -> None:
    client = FakeClient(failures={"https://cdn.example/1": error})
    resolver, _, _ = make_resolver(tmp_path, listings={"2.vpk": ["maps/de_vault.vpk"]}, client=client)

    outcomes = resolver.resolve_all([item("1"), item("2")])

    assert outcomes[0].kind == "unresolved_identity"
    assert outcomes[0].context == "1"
    assert outcomes[1].unwrap().internal_name == "de_vault"
