"""Tag tokenization: segmentation, registry lookups, fallbacks and scoring."""
from __future__ import annotations

from .context import TokenizationContext, TokenizationStageId
from .engine import TokenizationEngine
from .stages import (
    CodificationValidationStage,
    PostProcessingStage,
    PreProcessingStage,
    RegexBaseFallbackStage,
    ScoringStage,
    StructuralCodificationStage,
    SuffixRecognitionStage,
    TokenizationStage,
    default_stages,
    normalize_tag,
    split_segments,
)
from .tokens import MISSING_PREFIX, TRAILING_POSITION, Token, TokenizationResult, is_placeholder, missing_value

__all__ = [
    "MISSING_PREFIX",
    "TRAILING_POSITION",
    "CodificationValidationStage",
    "PostProcessingStage",
    "PreProcessingStage",
    "RegexBaseFallbackStage",
    "ScoringStage",
    "StructuralCodificationStage",
    "SuffixRecognitionStage",
    "Token",
    "TokenizationContext",
    "TokenizationEngine",
    "TokenizationResult",
    "TokenizationStage",
    "TokenizationStageId",
    "default_stages",
    "is_placeholder",
    "missing_value",
    "normalize_tag",
    "split_segments",
]
