from __future__ import annotations

import pytest

from mapnames.build_config import BuildConfig
from mapnames.dialects import (
    locale_line,
    patch_locale,
    patch_map_registry,
    patch_server_listing,
    registry_line,
    server_line,
)
from mapnames.errors import AmbiguousMarker, MarkerNotFound
from mapnames.patcher import MarkerDocument, MarkerSpec
from mapnames.records import AssetRecord

REGISTRY = (
    '"GameModes.txt"\r\n'
    "{\r\n"
    '\t"maps"\r\n'
    "\t{\r\n"
    '\t\t"de_dust2"\t\t{ "nameID" "#SFUI_Map_de_dust2" "name" "de_dust2" }\r\n'
    "\t\t// community maps\r\n"
    "\t}\r\n"
    "\t// tail comment\r\n"
    "}\r\n"
)

REGISTRY_WITH_MAPGROUPS = (
    '"GameModes.txt"\r\n'
    "{\r\n"
    '\t"mapgroups"\r\n'
    "\t{\r\n"
    '\t\t"mg_active"\r\n'
    "\t\t{\r\n"
    '\t\t\t"maps"\r\n'
    "\t\t\t{\r\n"
    '\t\t\t\t"de_dust2"\t\t""\r\n'
    "\t\t\t}\r\n"
    "\t\t}\r\n"
    "\t}\r\n"
    '\t"maps"\r\n'
    "\t{\r\n"
    '\t\t"de_dust2"\t\t{ "nameID" "#SFUI_Map_de_dust2" "name" "de_dust2" }\r\n'
    "\t\t// community maps\r\n"
    "\t}\r\n"
    "}\r\n"
)

LOCALE = '"lang"\r\n{\r\n\t"Tokens"\r\n\t{\r\n\t\t"SFUI_Map_de_dust2"\t\t"Dust II"\r\n\t\t// Map Names\r\n\t}\r\n}\r\n'

BLOCK = MarkerSpec(literal='"maps"')
BOUNDARY = MarkerSpec(pattern=r"^\s*//", first=True)
LOCALE_MARKER = MarkerSpec(pattern=r"^\s*//\s*Map\s+Names\b")


@pytest.fixture()
def records():
    return [
        AssetRecord(external_id="1", internal_name="de_bank", friendly_title="Bank"),
        AssetRecord(external_id="2", internal_name="aim_redline", friendly_title='Red "Line"'),
    ]


def test_registry_entries_land_inside_maps_block(records) -> None:
    doc, added = patch_map_registry(MarkerDocument.parse(REGISTRY), records, BLOCK, BOUNDARY)

    assert added == 2
    assert doc.lines[5] == registry_line("de_bank")
    assert doc.lines[6] == registry_line("aim_redline")
    assert doc.lines[7] == "\t\t// community maps"
    assert doc.newline == "\r\n"


def test_registry_patch_is_idempotent(records) -> None:
    once, _ = patch_map_registry(MarkerDocument.parse(REGISTRY), records, BLOCK, BOUNDARY)
    twice, added = patch_map_registry(once, records, BLOCK, BOUNDARY)

    assert added == 0
    assert twice.render() == once.render()


def test_default_registry_marker_skips_mapgroup_blocks(records) -> None:
    cfg = BuildConfig({})
    doc = MarkerDocument.parse(REGISTRY_WITH_MAPGROUPS)

    patched, added = patch_map_registry(doc, records, cfg.marker("registry_block"), cfg.marker("registry_boundary"))

    assert added == 2
    assert patched.lines[8] == '\t\t\t\t"de_dust2"\t\t""'
    assert patched.lines[15] == registry_line("de_bank")
    assert patched.lines[16] == registry_line("aim_redline")
    assert patched.lines[17] == "\t\t// community maps"
    with pytest.raises(AmbiguousMarker):
        patch_map_registry(doc, records, BLOCK, BOUNDARY)


def test_registry_without_boundary_is_fatal(records) -> None:
    doc = MarkerDocument.parse('"maps"\r\n{\r\n}\r\n')

    with pytest.raises(MarkerNotFound):
        patch_map_registry(doc, records, BLOCK, BOUNDARY)


def test_locale_lines_escape_quotes(records) -> None:
    doc, added = patch_locale(MarkerDocument.parse(LOCALE), records, LOCALE_MARKER)

    assert added == 2
    assert locale_line(records[1]) == '\t\t"SFUI_Map_aim_redline"\t\t"Red \\"Line\\""'
    assert doc.lines[5] == '\t\t"SFUI_Map_de_bank"\t\t"Bank"'
    assert doc.lines[7] == "\t\t// Map Names"


def test_locale_marker_checked_even_with_nothing_to_add() -> None:
    with pytest.raises(MarkerNotFound):
        patch_locale(MarkerDocument.parse('"lang"\r\n{\r\n}\r\n'), [], LOCALE_MARKER)


def test_server_listing_skips_duplicates() -> None:
    doc = MarkerDocument.parse('\t\t\t{\n\t\t\t\t// workshop maps end\n\t\t\t}\n')

    out, added = patch_server_listing(doc, ["de_bank", "de_bank", "cs_office"], MarkerSpec(literal="// workshop maps end"))

    assert added == 2
    assert out.lines[1:3] == [server_line("de_bank"), server_line("cs_office")]
