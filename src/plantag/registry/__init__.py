"""Registry management utilities."""
from __future__ import annotations

from .loader import (
    build_snapshot,
    load_snapshot,
    parse_codification_map,
    parse_discipline_hierarchy_map,
    parse_discipline_map,
    parse_entity_map,
    parse_token_regex_map,
    read_registry_document,
    registry_store_for,
)
from .maps import (
    BASE_KEY_ORDER,
    DEFAULT_DISCIPLINE_KEY,
    CodeRegistry,
    CodificationRegistry,
    DisciplineHierarchyRegistry,
    TokenPatternRegistry,
)
from .schemas import (
    CodificationEntry,
    CodificationType,
    DisciplineDefinition,
    RoleTokens,
    TokenKind,
    TokenPattern,
    normalize_code,
)
from .snapshot import RegistrySnapshot, RegistryStore

__all__ = [
    "BASE_KEY_ORDER",
    "DEFAULT_DISCIPLINE_KEY",
    "CodeRegistry",
    "CodificationEntry",
    "CodificationRegistry",
    "CodificationType",
    "DisciplineDefinition",
    "DisciplineHierarchyRegistry",
    "RegistrySnapshot",
    "RegistryStore",
    "RoleTokens",
    "TokenKind",
    "TokenPattern",
    "TokenPatternRegistry",
    "build_snapshot",
    "load_snapshot",
    "normalize_code",
    "parse_codification_map",
    "parse_discipline_hierarchy_map",
    "parse_discipline_map",
    "parse_entity_map",
    "parse_token_regex_map",
    "read_registry_document",
    "registry_store_for",
]
