"""Parse the JSON registry documents into lookup registries."""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from pydantic import ValidationError

from ..config import ResourcePaths, get_settings
from ..errors import ConfigurationError, RegistryValidationError
from .maps import CodeRegistry, CodificationRegistry, DisciplineHierarchyRegistry, TokenPatternRegistry
from .schemas import (
    CodificationEntry,
    CodificationType,
    DisciplineDefinition,
    DisciplineEntry,
    EntityEntry,
    TokenPattern,
    normalize_code,
)
from .snapshot import RegistrySnapshot, RegistryStore

__all__ = [
    "read_registry_document",
    "parse_codification_map",
    "parse_token_regex_map",
    "parse_discipline_map",
    "parse_entity_map",
    "parse_discipline_hierarchy_map",
    "build_snapshot",
    "load_snapshot",
    "registry_store_for",
]


def read_registry_document(path: Path) -> Any:
    """Read a registry JSON file, turning I/O problems into configuration errors."""

    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"Registry file '{path}' does not exist")
    text = path.read_text(encoding="utf-8").strip()
    if not text:
        raise ConfigurationError(f"Registry file '{path}' is empty")
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"Registry file '{path}' is not valid JSON: {exc}") from exc


def _require_mapping(name: str, payload: Any) -> Mapping[str, Any]:
    if payload is None:
        return {}
    if not isinstance(payload, Mapping):
        raise ConfigurationError(f"{name} must be a JSON object, got {type(payload).__name__}")
    return payload


# ---------------------------------------------------------------------------
# Codification map: {plant: {unit: {section: [equipment, ...]}}}
# ---------------------------------------------------------------------------


def parse_codification_map(payload: Any) -> CodificationRegistry:
    """Flatten the nested codification tree into typed entries."""

    root = _require_mapping("codification_map", payload)
    types: Dict[str, CodificationType] = {}
    parents: Dict[str, str] = {}
    children: Dict[str, List[str]] = {}

    def add(code: str, kind: CodificationType, parent: str = "") -> Optional[str]:
        normalized = normalize_code(code)
        if not normalized:
            return None
        if normalized not in types:
            types[normalized] = kind
            parents[normalized] = normalize_code(parent)
            children[normalized] = []
            if parent:
                siblings = children.setdefault(normalize_code(parent), [])
                if normalized not in siblings:
                    siblings.append(normalized)
        return normalized

    for plant, units in root.items():
        plant_code = add(plant, CodificationType.PLANT)
        if plant_code is None or not isinstance(units, Mapping):
            continue
        for unit, sections in units.items():
            unit_code = add(unit, CodificationType.PLANT_UNIT, plant_code)
            if unit_code is None or not isinstance(sections, Mapping):
                continue
            for section, equipment in sections.items():
                section_code = add(section, CodificationType.PLANT_SECTION, unit_code)
                if section_code is None or not isinstance(equipment, list):
                    continue
                for item in equipment:
                    if isinstance(item, str):
                        add(item, CodificationType.EQUIPMENT, section_code)

    entries = [
        CodificationEntry(
            code=code,
            codification_type=kind,
            parent_code=parents[code],
            children=tuple(children.get(code, ())),
        )
        for code, kind in types.items()
    ]
    return CodificationRegistry(entries)


# ---------------------------------------------------------------------------
# Token regex map: {"TokenRegex": {name: {Pattern, Example, Type, Position}}}
# ---------------------------------------------------------------------------


def _lookup_ci(mapping: Mapping[str, Any], key: str) -> Any:
    for candidate, value in mapping.items():
        if isinstance(candidate, str) and candidate.lower() == key.lower():
            return value
    return None


def parse_token_regex_map(payload: Any) -> TokenPatternRegistry:
    """Build the token pattern registry, injecting each name from its key."""

    root = _require_mapping("token_regex_map", payload)
    body = _lookup_ci(root, "TokenRegex")
    definitions = _require_mapping("token_regex_map.TokenRegex", body if body is not None else root)
    if not definitions:
        raise ConfigurationError("token_regex_map contains no token definitions")

    patterns: List[TokenPattern] = []
    errors: List[Dict[str, Any]] = []
    for name, raw in definitions.items():
        if not isinstance(raw, Mapping):
            errors.append({"name": name, "error": "definition must be an object"})
            continue
        data = {key: value for key, value in raw.items() if value is not None}
        data["Name"] = str(name).strip()
        data.pop("name", None)
        try:
            patterns.append(TokenPattern.model_validate(data))
        except ValidationError as exc:
            errors.append({"name": name, "error": str(exc)})
    if errors:
        raise RegistryValidationError("token_regex_map", errors)
    return TokenPatternRegistry(patterns)


# ---------------------------------------------------------------------------
# Discipline / entity maps: {code: {Name, ...}}
# ---------------------------------------------------------------------------


def _parse_code_map(name: str, payload: Any, model: type, *, required: bool) -> CodeRegistry:
    root = _require_mapping(name, payload)
    codes: List[str] = []
    labels: Dict[str, str] = {}
    errors: List[Dict[str, Any]] = []
    for key, raw in root.items():
        if not isinstance(key, str) or not key.strip():
            continue
        data = {k: v for k, v in (raw or {}).items() if v is not None} if isinstance(raw, Mapping) else {}
        try:
            entry = model.model_validate(data)
        except ValidationError as exc:
            errors.append({"name": key, "error": str(exc)})
            continue
        code = normalize_code(entry.code) or normalize_code(key)
        for candidate in {normalize_code(key), code}:
            codes.append(candidate)
            labels[candidate] = entry.name.strip()
    if errors:
        raise RegistryValidationError(name, errors)
    if required and not codes:
        raise ConfigurationError(f"{name} contains no entries")
    return CodeRegistry(name, codes, labels=labels)


def parse_discipline_map(payload: Any) -> CodeRegistry:
    return _parse_code_map("discipline_map", payload, DisciplineEntry, required=False)


def parse_entity_map(payload: Any) -> CodeRegistry:
    return _parse_code_map("entity_map", payload, EntityEntry, required=True)


# ---------------------------------------------------------------------------
# Discipline hierarchy map: {discipline: {Hierarchy: [...], Tokens: {...}}}
# ---------------------------------------------------------------------------


def parse_discipline_hierarchy_map(payload: Any) -> DisciplineHierarchyRegistry:
    root = _require_mapping("discipline_hierarchy_map", payload)
    if not root:
        raise ConfigurationError("discipline_hierarchy_map contains no disciplines")
    definitions: Dict[str, DisciplineDefinition] = {}
    errors: List[Dict[str, Any]] = []
    for name, raw in root.items():
        if not isinstance(name, str) or not name.strip():
            continue
        try:
            definitions[name.strip()] = DisciplineDefinition.model_validate(raw or {})
        except ValidationError as exc:
            errors.append({"name": name, "error": str(exc)})
    if errors:
        raise RegistryValidationError("discipline_hierarchy_map", errors)
    return DisciplineHierarchyRegistry(definitions)


# ---------------------------------------------------------------------------
# Snapshot assembly
# ---------------------------------------------------------------------------


def build_snapshot(
    *,
    codification: Any,
    token_regex: Any,
    disciplines: Any,
    entities: Any,
    hierarchy: Any,
    source: Optional[Path] = None,
) -> RegistrySnapshot:
    """Assemble a :class:`RegistrySnapshot` from already parsed JSON payloads."""

    return RegistrySnapshot(
        codification=parse_codification_map(codification),
        token_patterns=parse_token_regex_map(token_regex),
        disciplines=parse_discipline_map(disciplines),
        entities=parse_entity_map(entities),
        hierarchy=parse_discipline_hierarchy_map(hierarchy),
        source=source,
    )


def load_snapshot(paths: ResourcePaths | None = None) -> RegistrySnapshot:
    """Read every registry file named by ``paths`` (defaults to :func:`get_settings`)."""

    settings = paths or get_settings()
    files = settings.registry_files()
    return build_snapshot(
        codification=read_registry_document(files["codification_map"]),
        token_regex=read_registry_document(files["token_regex_map"]),
        disciplines=read_registry_document(files["discipline_map"]),
        entities=read_registry_document(files["entity_map"]),
        hierarchy=read_registry_document(files["discipline_hierarchy_map"]),
        source=settings.registry_dir,
    )


def registry_store_for(paths: ResourcePaths | None = None) -> RegistryStore:
    """Return a :class:`RegistryStore` that (re)loads from ``paths``."""

    return RegistryStore(lambda: load_snapshot(paths))
