from __future__ import annotations

from pathlib import Path

from mapnames.lib.steam_paths import GAME_FOLDER, find_game_dir, library_folders

SHARED = "game/csgo/gameinfo.gi"


def make_game(root: Path) -> Path:
    (root / "game" / "csgo").mkdir(parents=True)
    (root / SHARED).write_text("GameInfo\n", encoding="utf-8")
    return root


def test_explicit_dir(tmp_path: Path) -> None:
    game = make_game(tmp_path / "cs2")

    assert find_game_dir(SHARED, explicit=game).unwrap() == game
    miss = find_game_dir(SHARED, explicit=tmp_path)
    assert miss.kind == "not_found"


def test_working_dir_ancestry(tmp_path: Path) -> None:
    game = make_game(tmp_path / "cs2")
    start = game / "game" / "csgo" / "maps"
    start.mkdir()

    assert find_game_dir(SHARED, start=start, steam_roots=[]).unwrap() == game


def test_steam_library_folders(tmp_path: Path) -> None:
    steam = tmp_path / "Steam"
    library = tmp_path / "Games" / "SteamLibrary"
    (steam / "steamapps").mkdir(parents=True)
    (steam / "steamapps" / "libraryfolders.vdf").write_text(
        '"libraryfolders"\n{\n\t"0"\n\t{\n\t\t"path"\t\t"%s"\n\t}\n\t"1"\n\t{\n\t\t"path"\t\t"%s"\n\t}\n}\n'
        % (steam, library),
        encoding="utf-8",
    )
    game = make_game(library / "steamapps" / "common" / GAME_FOLDER)

    assert library_folders(steam) == [steam, library]
    assert find_game_dir(SHARED, steam_roots=[steam]).unwrap() == game


def test_nothing_found(tmp_path: Path) -> None:
    outcome = find_game_dir(SHARED, start=tmp_path, steam_roots=[tmp_path / "NoSteam"])

    assert not outcome.ok
    assert outcome.kind == "not_found"
