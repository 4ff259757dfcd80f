"""Mutable state shared by the tokenization stages of one item."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from ..registry.snapshot import RegistrySnapshot
from .tokens import TokenizationResult

__all__ = ["TokenizationStageId", "TokenizationContext"]


class TokenizationStageId(str, Enum):
    """Identifiers of the tokenization stages, in execution order."""

    PRE_PROCESSING = "pre_processing"
    STRUCTURAL_CODIFICATION = "structural_codification"
    REGEX_BASE_FALLBACK = "regex_base_fallback"
    SUFFIX_RECOGNITION = "suffix_recognition"
    CODIFICATION_VALIDATION = "codification_validation"
    SCORING = "scoring"
    POST_PROCESSING = "post_processing"


@dataclass
class TokenizationContext:
    """Wraps the result under construction together with the registry snapshot."""

    result: TokenizationResult
    registries: RegistrySnapshot
    trace_id: Optional[str] = None
    executed_stages: List[TokenizationStageId] = field(default_factory=list)

    def mark_executed(self, stage_id: TokenizationStageId) -> None:
        self.executed_stages.append(stage_id)
