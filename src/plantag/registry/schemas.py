"""Pydantic models describing the entries of the lookup registries."""
from __future__ import annotations

from enum import Enum
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

__all__ = [
    "CodificationType",
    "TokenKind",
    "CodificationEntry",
    "TokenPattern",
    "RoleTokens",
    "DisciplineDefinition",
    "DisciplineEntry",
    "EntityEntry",
    "normalize_code",
]


def normalize_code(value: Optional[str]) -> str:
    """Return the canonical (trimmed, upper-case) form of a registry code."""

    return (value or "").strip().upper()


class CodificationType(str, Enum):
    """Level of a code inside the plant breakdown structure."""

    PLANT = "Plant"
    PLANT_UNIT = "PlantUnit"
    PLANT_SECTION = "PlantSection"
    EQUIPMENT = "Equipment"
    UNDEFINED = "Undefined"


class TokenKind(str, Enum):
    """Positional classification of a token."""

    AFFIX = "affix"
    BASE = "base"
    SUFFIX = "suffix"
    CODIFICATION = "codification"


class CodificationEntry(BaseModel):
    """A registered code of the plant breakdown structure."""

    code: str
    codification_type: CodificationType = CodificationType.UNDEFINED
    parent_code: str = ""
    children: Tuple[str, ...] = ()

    model_config = ConfigDict(frozen=True)

    @field_validator("code", "parent_code")
    @classmethod
    def _normalize(cls, value: str) -> str:
        return normalize_code(value)


class TokenPattern(BaseModel):
    """Regex description of one token slot."""

    name: str = Field(default="", alias="Name")
    pattern: str = Field(default="", alias="Pattern")
    example: str = Field(default="", alias="Example")
    kind: TokenKind = Field(default=TokenKind.BASE, alias="Type")
    position: int = Field(default=-1, alias="Position")
    description: str = Field(default="", alias="Description")

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    @field_validator("kind", mode="before")
    @classmethod
    def _lower_kind(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().lower() or TokenKind.BASE.value
        return value


class RoleTokens(BaseModel):
    """Token keys composing the tag of one hierarchy role."""

    affix: List[str] = Field(default_factory=list, alias="Affix")
    base: List[str] = Field(default_factory=list, alias="Base")
    suffix: List[str] = Field(default_factory=list, alias="Suffix")

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    @field_validator("affix", "base", "suffix", mode="before")
    @classmethod
    def _strip_blank(cls, value: object) -> object:
        if value is None:
            return []
        if isinstance(value, list):
            return [str(item).strip() for item in value if isinstance(item, str) and item.strip()]
        return value


class DisciplineDefinition(BaseModel):
    """Ordered role list and per-role tag templates of one discipline."""

    hierarchy: List[str] = Field(default_factory=list, alias="Hierarchy")
    tokens: Dict[str, RoleTokens] = Field(default_factory=dict, alias="Tokens")

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    @field_validator("hierarchy", mode="before")
    @classmethod
    def _strip_roles(cls, value: object) -> object:
        if value is None:
            return []
        if isinstance(value, list):
            return [str(item).strip() for item in value if isinstance(item, str) and item.strip()]
        return value

    def role_spec(self, role: str) -> Optional[RoleTokens]:
        """Return the template declared for ``role`` (case-insensitive)."""

        wanted = role.strip().upper()
        for name, spec in self.tokens.items():
            if name.strip().upper() == wanted:
                return spec
        return None


class DisciplineEntry(BaseModel):
    """A discipline code recognised as a tag suffix."""

    code: str = Field(default="", alias="Code")
    name: str = Field(default="", alias="Name")
    description: str = Field(default="", alias="Description")

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="allow")


class EntityEntry(BaseModel):
    """An entity (target server) code recognised as a tag suffix."""

    code: str = Field(default="", alias="Code")
    name: str = Field(default="", alias="Name")
    location: str = Field(default="", alias="Location")

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="allow")
