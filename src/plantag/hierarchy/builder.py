"""Build the placement chain of one item from its tokens."""

from __future__ import annotations

import logging
from typing import List, Optional, Tuple, Union

from ..config import TagFormat, get_tag_format
from ..errors import ConfigurationError
from ..registry.maps import DEFAULT_DISCIPLINE_KEY
from ..registry.schemas import DisciplineDefinition, RoleTokens, normalize_code
from ..registry.snapshot import RegistrySnapshot, RegistryStore
from ..tokenization.tokens import TokenizationResult, missing_value
from .nodes import LEAF_ROLE, HierarchyBuildResult, HierarchyNode

__all__ = ["HierarchyChainBuilder", "synthesized_role_spec"]

LOGGER = logging.getLogger(__name__)

_LEGACY_LEAF_ROLE = "STRU"

_SYNTHESIZED_BASES = {
    "WORL": ["Plant"],
    "SITE": ["Plant", "PlantUnit"],
    "SUB_SITE": ["Plant", "PlantUnit", "PlantSection"],
    "ZONE": ["Plant", "PlantUnit", "PlantSection", "Equipment"],
}
_FULL_BASE = ["Plant", "PlantUnit", "PlantSection", "Equipment", "Component"]


def synthesized_role_spec(role: str) -> RoleTokens:
    """Minimal template for a role that neither the discipline nor DEFAULT declares."""

    return RoleTokens(base=list(_SYNTHESIZED_BASES.get(role.strip().upper(), _FULL_BASE)))


def _normalize_roles(roles: List[str]) -> List[str]:
    return [LEAF_ROLE if role.strip().upper() == _LEGACY_LEAF_ROLE else role for role in roles]


class HierarchyChainBuilder:
    """Resolve the role list of a discipline and render one tag per role.

    Parameters
    ----------
    registries:
        Snapshot (or store) holding the discipline hierarchy registry.
    tag_format:
        Separators and suffix defaults; defaults to :func:`get_tag_format`.
    """

    def __init__(
        self,
        registries: Union[RegistrySnapshot, RegistryStore],
        tag_format: Optional[TagFormat] = None,
    ) -> None:
        self._registries = registries
        self._format = tag_format or get_tag_format()

    @property
    def tag_format(self) -> TagFormat:
        return self._format

    def _snapshot(self) -> RegistrySnapshot:
        if isinstance(self._registries, RegistryStore):
            return self._registries.snapshot()
        return self._registries

    def resolve_discipline(self, token_result: TokenizationResult, discipline: Optional[str] = None) -> str:
        """Explicit argument first, then the Discipline token, then the configured default."""

        explicit = normalize_code(discipline)
        if explicit:
            return explicit
        token = token_result.tokens.get("Discipline")
        if token is not None and token.value.strip():
            return normalize_code(token.value)
        return normalize_code(self._format.default_discipline)

    def build(
        self,
        token_result: TokenizationResult,
        *,
        item_id: Optional[str] = None,
        discipline: Optional[str] = None,
    ) -> HierarchyBuildResult:
        result = HierarchyBuildResult(item_id=item_id or "")
        if token_result is None or not token_result.tokens:
            result.add_error("No tokens available, cannot build hierarchy.")
            return result

        registry = self._snapshot().hierarchy
        if registry.is_empty():
            raise ConfigurationError("discipline_hierarchy_map is empty")

        code = self.resolve_discipline(token_result, discipline)
        result.discipline = code
        definition = registry.get(code)
        default = registry.default
        if definition is None:
            if default is None:
                raise ConfigurationError(f"Discipline '{code}' and {DEFAULT_DISCIPLINE_KEY} not found in hierarchy map")
            result.add_warning(f"Discipline '{code}' not found in hierarchy map, using {DEFAULT_DISCIPLINE_KEY}.")
            definition = default

        roles = _normalize_roles(definition.hierarchy)
        leaf_count = sum(1 for role in roles if role.strip().upper() == LEAF_ROLE)
        if leaf_count != 1:
            raise ConfigurationError(
                f"Hierarchy of discipline '{code}' must contain exactly one {LEAF_ROLE} role, found {leaf_count}"
            )
        parent_tag = ""
        for depth, role in enumerate(roles):
            spec, from_default = self._role_spec(definition, default, role)
            tag, notes = self._render(spec, token_result, role)
            if notes:
                result.add_message(" ".join(notes) + (" (role spec from DEFAULT)" if from_default else ""))
            is_leaf = role.strip().upper() == LEAF_ROLE
            result.chain.append(
                HierarchyNode(
                    role_label=role,
                    tag=tag,
                    parent_tag=parent_tag,
                    depth=depth,
                    is_virtual=not is_leaf,
                    id=(item_id or "") if is_leaf else "",
                )
            )
            parent_tag = tag

        result.is_valid = True
        result.add_message(f"Hierarchy built for discipline '{code}' with {len(result.chain)} levels.")
        LOGGER.debug(
            "hierarchy.built",
            extra={"extra_fields": {"item_id": result.item_id, "discipline": code, "levels": len(result.chain)}},
        )
        return result

    @staticmethod
    def _role_spec(
        definition: DisciplineDefinition,
        default: Optional[DisciplineDefinition],
        role: str,
    ) -> Tuple[RoleTokens, bool]:
        own = definition.role_spec(role)
        if own is not None:
            return own, False
        if default is not None and default is not definition:
            inherited = default.role_spec(role)
            if inherited is not None:
                return inherited, True
        return synthesized_role_spec(role), False

    def _render(self, spec: RoleTokens, token_result: TokenizationResult, role: str) -> Tuple[str, List[str]]:
        notes: List[str] = []
        parts: List[str] = [value for value in (token_result.value_of(key) for key in spec.affix) if value]

        for key in spec.base:
            value = token_result.value_of(key)
            if not value:
                value = missing_value(key)
                notes.append(f"'{role}' missing base '{key}', using '{value}'.")
            parts.append(value)

        tag = self._format.structural_separator.join(parts)
        for key in spec.suffix:
            value = token_result.value_of(key).strip().upper()
            if not value:
                value = self._suffix_default(key)
                if value:
                    notes.append(f"'{role}' missing suffix '{key}', defaulting to '{value}'.")
            if value:
                tag = f"{tag}{self._format.suffix_separator}{value}" if tag else value
        return "/" + tag, notes

    def _suffix_default(self, key: str) -> str:
        lowered = key.lower()
        if lowered == "discipline":
            return self._format.default_discipline
        if lowered == "entity":
            return self._format.default_entity
        return ""
