"""In-memory lookup registries consumed by the tokenization core."""
from __future__ import annotations

import re
from typing import Dict, FrozenSet, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple

from ..errors import RegistryValidationError
from .schemas import (
    CodificationEntry,
    CodificationType,
    DisciplineDefinition,
    TokenKind,
    TokenPattern,
    normalize_code,
)

__all__ = [
    "BASE_KEY_ORDER",
    "DEFAULT_DISCIPLINE_KEY",
    "CodificationRegistry",
    "TokenPatternRegistry",
    "CodeRegistry",
    "DisciplineHierarchyRegistry",
]

# Canonical structural slots, in the order the plant breakdown nests them.
BASE_KEY_ORDER: Tuple[str, ...] = ("Plant", "PlantUnit", "PlantSection", "Equipment", "Component")

DEFAULT_DISCIPLINE_KEY = "DEFAULT"


class CodificationRegistry:
    """Registered Plant → Unit → Section → Equipment codes keyed by code."""

    def __init__(self, entries: Iterable[CodificationEntry] = ()) -> None:
        self._entries: Dict[str, CodificationEntry] = {}
        for entry in entries:
            self._entries.setdefault(entry.code, entry)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, code: object) -> bool:
        return isinstance(code, str) and normalize_code(code) in self._entries

    def __iter__(self) -> Iterator[CodificationEntry]:
        return iter(self._entries.values())

    def is_empty(self) -> bool:
        return not self._entries

    def get(self, code: Optional[str]) -> Optional[CodificationEntry]:
        return self._entries.get(normalize_code(code))

    def lookup(self, code: Optional[str], expected: CodificationType) -> Optional[CodificationEntry]:
        """Return the entry for ``code`` if its type is ``expected`` or undefined."""

        entry = self.get(code)
        if entry is None:
            return None
        if entry.codification_type not in (CodificationType.UNDEFINED, expected):
            return None
        return entry

    def get_codification_type(self, code: Optional[str]) -> CodificationType:
        entry = self.get(code)
        return entry.codification_type if entry is not None else CodificationType.UNDEFINED

    def _is_known(self, code: Optional[str], expected: CodificationType) -> bool:
        entry = self.get(code)
        return entry is not None and entry.codification_type is expected

    def is_known_plant(self, code: Optional[str]) -> bool:
        return self._is_known(code, CodificationType.PLANT)

    def is_known_plant_unit(self, code: Optional[str]) -> bool:
        return self._is_known(code, CodificationType.PLANT_UNIT)

    def is_known_plant_section(self, code: Optional[str]) -> bool:
        return self._is_known(code, CodificationType.PLANT_SECTION)

    def is_known_equipment(self, code: Optional[str]) -> bool:
        return self._is_known(code, CodificationType.EQUIPMENT)

    def known_plants(self) -> List[str]:
        return sorted(code for code, entry in self._entries.items() if entry.codification_type is CodificationType.PLANT)

    def known_children(self, parent_code: Optional[str], child_type: CodificationType) -> List[str]:
        """Return the sorted children of ``parent_code`` having ``child_type``."""

        parent = self.get(parent_code)
        if parent is None:
            return []
        children = []
        for child in parent.children:
            entry = self._entries.get(child)
            if entry is not None and entry.codification_type is child_type:
                children.append(child)
        return sorted(children)

    def counts(self) -> Dict[str, int]:
        counts: Dict[str, int] = {kind.value: 0 for kind in CodificationType}
        for entry in self._entries.values():
            counts[entry.codification_type.value] += 1
        return counts


class TokenPatternRegistry:
    """Token regex definitions with eagerly compiled full-match expressions."""

    def __init__(self, patterns: Iterable[TokenPattern] = ()) -> None:
        self._patterns: Dict[str, TokenPattern] = {}
        self._compiled: Dict[str, re.Pattern[str]] = {}
        errors: List[Dict[str, str]] = []
        for pattern in patterns:
            self._patterns[pattern.name] = pattern
            if not pattern.pattern:
                continue
            try:
                self._compiled[pattern.name] = re.compile(pattern.pattern, flags=re.IGNORECASE)
            except re.error as exc:
                errors.append({"name": pattern.name, "regex": pattern.pattern, "error": str(exc)})
        if errors:
            raise RegistryValidationError("token_regex_map", errors)

    def __len__(self) -> int:
        return len(self._patterns)

    def __contains__(self, name: object) -> bool:
        return name in self._patterns

    def __iter__(self) -> Iterator[TokenPattern]:
        return iter(self._patterns.values())

    def is_empty(self) -> bool:
        return not self._patterns

    def get(self, name: str) -> Optional[TokenPattern]:
        return self._patterns.get(name)

    def position_of(self, name: str) -> int:
        pattern = self._patterns.get(name)
        return pattern.position if pattern is not None else -1

    def full_match(self, name: str, value: str) -> bool:
        """Whether ``value`` matches the whole regex declared for ``name``."""

        compiled = self._compiled.get(name)
        if compiled is None or not value:
            return False
        return compiled.fullmatch(value) is not None

    def of_kind(self, kind: TokenKind) -> List[TokenPattern]:
        return [pattern for pattern in self._patterns.values() if pattern.kind is kind]

    def base_by_position(self) -> Dict[int, List[TokenPattern]]:
        """Group positional base patterns by their canonical position."""

        grouped: Dict[int, List[TokenPattern]] = {}
        for pattern in self.of_kind(TokenKind.BASE):
            if pattern.position < 0:
                continue
            grouped.setdefault(pattern.position, []).append(pattern)
        return dict(sorted(grouped.items()))

    def expected_base_key(self, position: int) -> Optional[str]:
        """Return the slot a segment at ``position`` is expected to fill."""

        candidates = self.base_by_position().get(position)
        if not candidates:
            return None
        names = {candidate.name for candidate in candidates}
        for key in BASE_KEY_ORDER:
            if key in names:
                return key
        return candidates[0].name

    def canonical_order(self) -> List[str]:
        """Keys of every positional pattern sorted by declared position."""

        positional = [pattern for pattern in self._patterns.values() if pattern.position >= 0]
        return [pattern.name for pattern in sorted(positional, key=lambda item: item.position)]


class CodeRegistry:
    """Case-insensitive set of codes (disciplines or entities)."""

    def __init__(self, name: str, codes: Iterable[str] = (), *, labels: Mapping[str, str] | None = None) -> None:
        self.name = name
        self._codes: FrozenSet[str] = frozenset(normalize_code(code) for code in codes if normalize_code(code))
        self._labels: Dict[str, str] = {normalize_code(key): value for key, value in (labels or {}).items()}

    def __len__(self) -> int:
        return len(self._codes)

    def __contains__(self, code: object) -> bool:
        return isinstance(code, str) and normalize_code(code) in self._codes

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._codes))

    def is_empty(self) -> bool:
        return not self._codes

    def label(self, code: str) -> str:
        return self._labels.get(normalize_code(code), "")

    def find_last(self, segments: Sequence[str]) -> Optional[str]:
        """Return the last segment that is a registered code."""

        for segment in reversed(segments):
            if segment in self:
                return segment
        return None


class DisciplineHierarchyRegistry:
    """Role lists and role tag templates per discipline."""

    def __init__(self, disciplines: Mapping[str, DisciplineDefinition] | None = None) -> None:
        self._disciplines: Dict[str, DisciplineDefinition] = {
            normalize_code(name): definition for name, definition in (disciplines or {}).items() if normalize_code(name)
        }

    def __len__(self) -> int:
        return len(self._disciplines)

    def __contains__(self, discipline: object) -> bool:
        return isinstance(discipline, str) and normalize_code(discipline) in self._disciplines

    def is_empty(self) -> bool:
        return not self._disciplines

    def disciplines(self) -> List[str]:
        return sorted(self._disciplines)

    def get(self, discipline: Optional[str]) -> Optional[DisciplineDefinition]:
        return self._disciplines.get(normalize_code(discipline))

    @property
    def default(self) -> Optional[DisciplineDefinition]:
        return self._disciplines.get(DEFAULT_DISCIPLINE_KEY)
