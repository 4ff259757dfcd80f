"""Token and tokenization result data structures."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..registry.schemas import TokenKind

__all__ = [
    "MISSING_PREFIX",
    "TRAILING_POSITION",
    "Token",
    "TokenizationResult",
    "missing_value",
    "is_placeholder",
    "position_sort_key",
]

MISSING_PREFIX = "MISSING_"

# Position given to Discipline/Entity tokens so they sort after every base slot.
TRAILING_POSITION = 1_000_000


def missing_value(key: str) -> str:
    """Return the placeholder value marking ``key`` as unresolved."""

    return f"{MISSING_PREFIX}{key.upper()}"


def is_placeholder(value: Optional[str]) -> bool:
    return bool(value) and value.upper().startswith(MISSING_PREFIX)


def position_sort_key(key: str, position: int) -> tuple[int, int, str]:
    """Order by canonical position (negative positions last), then key."""

    return (1 if position < 0 else 0, position, key.lower())


@dataclass
class Token:
    """A classified value assigned to one canonical slot."""

    key: str
    value: str
    position: int = -1
    kind: TokenKind = TokenKind.BASE
    is_match: bool = False
    is_missing: bool = False
    is_replacement: bool = False
    is_fallback: bool = False
    replaces_key: str = ""
    replaced_by: str = ""
    source_registry_key: str = ""
    note: str = ""

    @property
    def is_processable(self) -> bool:
        return (self.is_match or self.is_replacement) and not is_placeholder(self.value)

    @property
    def is_resolved(self) -> bool:
        """Whether the token holds a real (non missing, non placeholder) value."""

        return not self.is_missing and bool(self.value.strip()) and not is_placeholder(self.value)

    @property
    def mapping_summary(self) -> str:
        if not self.is_replacement:
            return f"{self.key}:{self.key}:{self.value}"
        if self.key.lower() == self.replaces_key.lower():
            return f"{self.replaces_key}:{self.replaced_by}:{self.value}"
        return f"{self.replaces_key}:{self.key}:{self.replaced_by}:{self.value}"

    def as_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "key": self.key,
            "value": self.value,
            "position": self.position,
            "kind": self.kind.value,
            "is_match": self.is_match,
            "is_missing": self.is_missing,
            "is_replacement": self.is_replacement,
            "is_fallback": self.is_fallback,
            "is_processable": self.is_processable,
        }
        if self.replaces_key:
            payload["replaces_key"] = self.replaces_key
        if self.replaced_by:
            payload["replaced_by"] = self.replaced_by
        if self.source_registry_key:
            payload["source_registry_key"] = self.source_registry_key
        if self.note:
            payload["note"] = self.note
        return payload

    def __str__(self) -> str:
        return self.mapping_summary


@dataclass
class TokenizationResult:
    """Outcome of the tokenization pipeline for one raw tag."""

    raw_input: str = ""
    normalized_input: str = ""
    segments: List[str] = field(default_factory=list)
    tokens: Dict[str, Token] = field(default_factory=dict)
    excluded_tokens: Dict[str, Token] = field(default_factory=dict)
    token_scores: Dict[str, int] = field(default_factory=dict)
    total_score: int = 0
    score_0_to_100: int = 0
    messages: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    is_valid: bool = False
    is_consistency_checked: bool = False

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------
    def add_message(self, text: str) -> None:
        if text and text.strip():
            self.messages.append(text)

    def add_warning(self, text: str) -> None:
        if text and text.strip():
            self.warnings.append(text)

    def add_error(self, text: str) -> None:
        if text and text.strip():
            self.errors.append(text)

    def add_score(self, key: str, delta: int) -> None:
        if not key:
            return
        self.token_scores[key] = self.token_scores.get(key, 0) + delta
        self.total_score += delta

    # ------------------------------------------------------------------
    # Token access
    # ------------------------------------------------------------------
    def get(self, key: str) -> Optional[Token]:
        return self.tokens.get(key)

    def is_resolved(self, key: str) -> bool:
        token = self.tokens.get(key)
        return token is not None and token.is_resolved

    def processable(self, key: str) -> Optional[Token]:
        """Return the token stored under ``key`` when it is processable."""

        token = self.tokens.get(key)
        if token is None or not token.is_processable:
            return None
        return token

    def value_of(self, key: str) -> str:
        token = self.processable(key)
        return token.value if token is not None else ""

    def ordered_tokens(self) -> List[Token]:
        return sorted(self.tokens.values(), key=lambda token: position_sort_key(token.key, token.position))

    def has_token(self, key: str) -> bool:
        return key in self.tokens

    # ------------------------------------------------------------------
    # Structure flags
    # ------------------------------------------------------------------
    @property
    def has_plant_section_token(self) -> bool:
        return self.has_token("PlantSection")

    @property
    def has_any_structure_token(self) -> bool:
        return any(self.has_token(key) for key in ("Plant", "PlantUnit", "PlantSection", "Equipment", "Component"))

    @property
    def has_minimal_structure(self) -> bool:
        """Plant + PlantUnit + (Discipline or Entity)."""

        return (
            self.has_token("Plant")
            and self.has_token("PlantUnit")
            and (self.has_token("Discipline") or self.has_token("Entity"))
        )

    @property
    def has_full_structure(self) -> bool:
        """Plant + PlantUnit + PlantSection + (Equipment or Component) + Discipline + Entity."""

        return (
            self.has_token("Plant")
            and self.has_token("PlantUnit")
            and self.has_token("PlantSection")
            and (self.has_token("Equipment") or self.has_token("Component"))
            and self.has_token("Discipline")
            and self.has_token("Entity")
        )

    @property
    def is_success(self) -> bool:
        return (
            self.is_valid
            and self.is_consistency_checked
            and bool(self.raw_input)
            and bool(self.normalized_input)
            and bool(self.tokens)
        )

    def disposition_hint(self) -> str:
        if self.has_full_structure:
            return "Disposition candidate: Final import (full structure detected)."
        if self.has_minimal_structure:
            return "Disposition candidate: DB Limbo (partial but usable structure)."
        if self.has_any_structure_token:
            return "Disposition candidate: MDB Limbo (structure hints but not sufficient)."
        return "Disposition candidate: MDB Limbo (no usable structure detected)."

    def as_dict(self) -> Dict[str, Any]:
        return {
            "raw_input": self.raw_input,
            "normalized_input": self.normalized_input,
            "segments": list(self.segments),
            "tokens": {token.key: token.as_dict() for token in self.ordered_tokens()},
            "excluded_tokens": {key: token.as_dict() for key, token in self.excluded_tokens.items()},
            "token_scores": dict(self.token_scores),
            "total_score": self.total_score,
            "score_0_to_100": self.score_0_to_100,
            "messages": list(self.messages),
            "warnings": list(self.warnings),
            "errors": list(self.errors),
            "is_valid": self.is_valid,
            "is_consistency_checked": self.is_consistency_checked,
            "disposition_hint": self.disposition_hint(),
        }
