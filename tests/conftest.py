"""Shared registry fixtures written to and loaded from ``tmp_path``."""
from __future__ import annotations

import copy
import io
import json
import logging
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List

import pytest

from plantag.config import reset_settings
from plantag.registry import RegistrySnapshot, build_snapshot
from plantag.utils.logging import configure_json_logger

CODIFICATION: Dict[str, Any] = {
    "AGL": {"PU0": {"PS0": ["EQ0", "EQ1"]}, "PU1": {"PS1": []}},
}

TOKEN_REGEX: Dict[str, Any] = {
    "TokenRegex": {
        "Plant": {"Pattern": "[A-Z]{3}\\d{2}", "Example": "AGL01", "Type": "Base", "Position": 0},
        "PlantUnit": {"Pattern": "[A-Z]{2,3}\\d{2}", "Example": "PU02", "Type": "Base", "Position": 1},
        "PlantSection": {"Pattern": "[A-Z]{2,3}\\d{2}", "Example": "PS03", "Type": "Base", "Position": 2},
        "Equipment": {"Pattern": "[A-Z]{2,3}\\d{2}", "Example": "EQ04", "Type": "Base", "Position": 3},
        "Component": {"Pattern": "[A-Z]\\d{3}", "Example": "C001", "Type": "Base", "Position": 4},
        "PlantLayoutWalkways": {"Pattern": "WALKWAYS?", "Example": "WALKWAYS", "Type": "Suffix", "Position": 2},
        "TagIncremental": {"Pattern": "\\d{3}", "Example": "001", "Type": "Suffix", "Position": 2},
        "Discipline": {"Pattern": "[A-Z]{2}", "Example": "ME", "Type": "Suffix", "Position": 5},
        "Entity": {"Pattern": "[A-Z]{3}", "Example": "SDE", "Type": "Suffix", "Position": 6},
    }
}

DISCIPLINES: Dict[str, Any] = {
    "ME": {"Name": "Mechanical"},
    "EL": {"Name": "Electrical"},
    "ST": {"Name": "Steel structure"},
}

ENTITIES: Dict[str, Any] = {"SDE": {"Name": "SMS Germany", "Location": "Duesseldorf"}}

_FULL_BASE = ["Plant", "PlantUnit", "PlantSection", "Equipment", "Component"]

HIERARCHY: Dict[str, Any] = {
    "DEFAULT": {
        "Hierarchy": ["WORL", "SITE", "SUB_SITE", "ZONE", "EQUI"],
        "Tokens": {
            "WORL": {"Base": ["Plant"]},
            "SITE": {"Base": ["Plant", "PlantUnit"], "Suffix": ["Entity"]},
            "SUB_SITE": {"Base": ["Plant", "PlantUnit", "PlantSection"], "Suffix": ["Entity"]},
            "ZONE": {"Base": _FULL_BASE[:4], "Suffix": ["Discipline", "Entity"]},
            "EQUI": {"Base": _FULL_BASE, "Suffix": ["Discipline", "Entity"]},
        },
    },
    "ME": {
        "Hierarchy": ["WORL", "SITE", "SUB_SITE", "ZONE", "EQUI"],
        "Tokens": {
            "EQUI": {"Base": _FULL_BASE, "Suffix": ["Discipline", "Entity"]},
        },
    },
    "ST": {
        "Hierarchy": ["WORL", "SITE", "STRU"],
        "Tokens": {},
    },
}

REGISTRY_FILES = {
    "codification_map.json": CODIFICATION,
    "token_regex_map.json": TOKEN_REGEX,
    "discipline_map.json": DISCIPLINES,
    "entity_map.json": ENTITIES,
    "discipline_hierarchy_map.json": HIERARCHY,
}


def write_registries(directory: Path, **overrides: Any) -> Path:
    """Write the fixture registries into ``directory``.

    Keyword overrides replace a whole document, keyed by file stem
    (``token_regex_map=...``).
    """

    directory.mkdir(parents=True, exist_ok=True)
    for filename, payload in REGISTRY_FILES.items():
        document = overrides.get(filename[: -len(".json")], payload)
        (directory / filename).write_text(json.dumps(document, indent=2), encoding="utf-8")
    return directory


@pytest.fixture(autouse=True)
def _clean_settings(monkeypatch: pytest.MonkeyPatch):
    for name in (
        "PLANTAG_CONFIG_FILE",
        "PLANTAG_RESOURCES_DIR",
        "PLANTAG_REGISTRY_DIR",
        "PLANTAG_STRUCTURAL_SEPARATOR",
        "PLANTAG_SUFFIX_SEPARATOR",
        "PLANTAG_DEFAULT_DISCIPLINE",
        "PLANTAG_DEFAULT_ENTITY",
    ):
        monkeypatch.delenv(name, raising=False)
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def registry_dir(tmp_path: Path) -> Path:
    return write_registries(tmp_path / "registries")


@pytest.fixture
def make_registries() -> Callable[..., RegistrySnapshot]:
    def factory(**overrides: Any) -> RegistrySnapshot:
        return build_snapshot(
            codification=copy.deepcopy(overrides.get("codification", CODIFICATION)),
            token_regex=copy.deepcopy(overrides.get("token_regex", TOKEN_REGEX)),
            disciplines=copy.deepcopy(overrides.get("disciplines", DISCIPLINES)),
            entities=copy.deepcopy(overrides.get("entities", ENTITIES)),
            hierarchy=copy.deepcopy(overrides.get("hierarchy", HIERARCHY)),
        )

    return factory


@pytest.fixture
def registries(make_registries) -> RegistrySnapshot:
    return make_registries()


@pytest.fixture
def component_at_equipment_position() -> Dict[str, Any]:
    """Token regex map where Component competes with Equipment for position 3."""

    document = copy.deepcopy(TOKEN_REGEX)
    document["TokenRegex"]["Component"]["Position"] = 3
    return document


@pytest.fixture
def log_stream() -> Iterator[io.StringIO]:
    """Route the ``plantag`` logger to an in-memory JSONL stream."""

    stream = io.StringIO()
    configure_json_logger(None, level=logging.DEBUG, stream=stream)
    yield stream
    logger = configure_json_logger(None)
    logger.propagate = True


def read_events(stream: io.StringIO) -> List[Dict[str, Any]]:
    return [json.loads(line) for line in stream.getvalue().splitlines() if line.strip()]
