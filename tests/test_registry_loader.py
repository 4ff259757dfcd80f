"""Loading and validating the JSON registries."""
from __future__ import annotations

import json
import threading
from pathlib import Path

import pytest

from plantag.config import get_settings
from plantag.errors import ConfigurationError, RegistryValidationError
from plantag.registry import (
    CodificationType,
    RegistryStore,
    TokenKind,
    load_snapshot,
    parse_codification_map,
    parse_discipline_hierarchy_map,
    parse_entity_map,
    parse_token_regex_map,
    read_registry_document,
)

from conftest import CODIFICATION, write_registries


def test_codification_map_is_flattened() -> None:
    registry = parse_codification_map(CODIFICATION)

    assert registry.is_known_plant("agl")
    assert registry.is_known_plant_unit("PU0")
    assert registry.is_known_plant_section("PS0")
    assert registry.is_known_equipment("EQ1")
    assert registry.get("EQ0").parent_code == "PS0"
    assert registry.get_codification_type("nope") is CodificationType.UNDEFINED
    assert registry.known_plants() == ["AGL"]
    assert registry.known_children("AGL", CodificationType.PLANT_UNIT) == ["PU0", "PU1"]
    assert registry.lookup("PS0", CodificationType.PLANT_UNIT) is None
    assert registry.counts()["Equipment"] == 2


def test_token_regex_map_injects_names_and_lowercases_types() -> None:
    registry = parse_token_regex_map(
        {"tokenregex": {"Plant": {"Pattern": "[A-Z]{3}\\d{2}", "Type": "BASE", "Position": 0}}}
    )

    pattern = registry.get("Plant")
    assert pattern.name == "Plant"
    assert pattern.kind is TokenKind.BASE
    assert registry.full_match("Plant", "agl01")
    assert not registry.full_match("Plant", "AGL011")


def test_invalid_regexes_are_reported_together() -> None:
    with pytest.raises(RegistryValidationError) as excinfo:
        parse_token_regex_map(
            {
                "TokenRegex": {
                    "Plant": {"Pattern": "[A-Z", "Position": 0},
                    "PlantUnit": {"Pattern": "(", "Position": 1},
                    "Equipment": {"Pattern": "EQ\\d+", "Position": 3},
                }
            }
        )

    error = excinfo.value
    assert error.registry == "token_regex_map"
    assert {entry["name"] for entry in error.errors} == {"Plant", "PlantUnit"}


def test_empty_mandatory_registries_raise() -> None:
    with pytest.raises(ConfigurationError):
        parse_token_regex_map({"TokenRegex": {}})
    with pytest.raises(ConfigurationError):
        parse_entity_map({})
    with pytest.raises(ConfigurationError):
        parse_discipline_hierarchy_map({})


def test_hierarchy_role_lookup_is_case_insensitive() -> None:
    registry = parse_discipline_hierarchy_map(
        {"me": {"Hierarchy": ["WORL", " EQUI "], "Tokens": {"equi": {"Base": ["Plant", ""]}}}}
    )

    definition = registry.get("ME")
    assert definition.hierarchy == ["WORL", "EQUI"]
    assert definition.role_spec("EQUI").base == ["Plant"]
    assert registry.default is None


def test_read_registry_document_errors(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError):
        read_registry_document(tmp_path / "missing.json")

    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        read_registry_document(broken)


def test_load_snapshot_from_directory(registry_dir: Path) -> None:
    snapshot = load_snapshot(get_settings().with_registry_dir(registry_dir))

    summary = snapshot.summary()
    assert summary["token_patterns"] == 9
    assert summary["entities"] == 1
    assert summary["hierarchy_disciplines"] == 3
    assert summary["source"] == str(registry_dir.resolve())
    assert "ME" in snapshot.disciplines
    assert snapshot.entities.label("sde") == "SMS Germany"


def test_store_swaps_snapshots_on_reload(tmp_path: Path) -> None:
    directory = write_registries(tmp_path / "registries")
    paths = get_settings().with_registry_dir(directory)
    store = RegistryStore(lambda: load_snapshot(paths))

    first = store.snapshot()
    assert store.snapshot() is first

    (directory / "entity_map.json").write_text(
        json.dumps({"SDE": {"Name": "SMS Germany"}, "SIT": {"Name": "SMS Italy"}}), encoding="utf-8"
    )
    reloaded = store.reload()

    assert reloaded is not first
    assert store.snapshot() is reloaded
    assert "SIT" in reloaded.entities
    assert "SIT" not in first.entities


def test_concurrent_readers_see_complete_snapshots(registry_dir: Path) -> None:
    paths = get_settings().with_registry_dir(registry_dir)
    store = RegistryStore(lambda: load_snapshot(paths))
    seen = []

    def reader() -> None:
        for _ in range(5):
            snapshot = store.snapshot()
            seen.append(len(snapshot.token_patterns))

    threads = [threading.Thread(target=reader) for _ in range(4)]
    for thread in threads:
        thread.start()
    store.reload()
    for thread in threads:
        thread.join()

    assert seen and set(seen) == {9}
