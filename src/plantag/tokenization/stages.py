"""Stages of the tokenization pipeline.

Each stage mutates the shared :class:`~plantag.tokenization.context.TokenizationContext`
and records its findings as messages, warnings or errors on the result. Only
:class:`~plantag.errors.HardInputError` is raised, by :class:`PreProcessingStage`,
when the tag is empty.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Set

from ..errors import HardInputError
from ..registry.schemas import CodificationEntry, CodificationType, TokenKind, TokenPattern
from .context import TokenizationContext, TokenizationStageId
from .tokens import (
    TRAILING_POSITION,
    Token,
    TokenizationResult,
    is_placeholder,
    missing_value,
    position_sort_key,
)

__all__ = [
    "CODE_PREFIX_LENGTH",
    "SCORE_RANGE",
    "TokenizationStage",
    "PreProcessingStage",
    "StructuralCodificationStage",
    "RegexBaseFallbackStage",
    "SuffixRecognitionStage",
    "CodificationValidationStage",
    "ScoringStage",
    "PostProcessingStage",
    "default_stages",
    "normalize_tag",
    "split_segments",
]

CODE_PREFIX_LENGTH = 3
SCORE_RANGE = (-40, 120)

_SEPARATOR_RE = re.compile(r"[\s\-\./\\:;_]+")

_SLOT_BY_TYPE: Dict[CodificationType, str] = {
    CodificationType.PLANT: "Plant",
    CodificationType.PLANT_UNIT: "PlantUnit",
    CodificationType.PLANT_SECTION: "PlantSection",
    CodificationType.EQUIPMENT: "Equipment",
}

_EXCEPTION_SUFFIXES = frozenset({"MANDUMMY", "LIFTCAR"})
_INCREMENTAL_SUFFIX = "TagIncremental"


def normalize_tag(raw: str) -> str:
    """Upper-case ``raw`` and collapse every separator run into ``_``."""

    return _SEPARATOR_RE.sub("_", raw.strip().upper()).strip("_")


def split_segments(normalized: str) -> List[str]:
    return [segment for segment in normalized.split("_") if segment]


def code_prefix(segment: str) -> str:
    return segment[:CODE_PREFIX_LENGTH]


class TokenizationStage(ABC):
    """Base class of the tokenization stages."""

    stage_id: TokenizationStageId

    @property
    def name(self) -> str:
        return type(self).__name__

    @abstractmethod
    def run(self, context: TokenizationContext) -> None:
        """Apply the stage to ``context``."""


# ---------------------------------------------------------------------------
# 1. Pre-processing
# ---------------------------------------------------------------------------


class PreProcessingStage(TokenizationStage):
    stage_id = TokenizationStageId.PRE_PROCESSING

    def run(self, context: TokenizationContext) -> None:
        result = context.result
        raw = result.raw_input or ""
        if not raw.strip():
            raise HardInputError("PreProcessing: empty tag, tokenization aborted.")

        result.normalized_input = normalize_tag(raw)
        result.segments = split_segments(result.normalized_input)
        result.add_message(
            f"PreProcessing: normalized input '{result.normalized_input}' into {len(result.segments)} segment(s)."
        )
        if not result.segments:
            result.add_warning("PreProcessing: normalization produced no segments.")


# ---------------------------------------------------------------------------
# 2. Structural codification
# ---------------------------------------------------------------------------


class StructuralCodificationStage(TokenizationStage):
    """Resolve Plant/Unit/Section/Equipment from the codification registry."""

    stage_id = TokenizationStageId.STRUCTURAL_CODIFICATION

    def run(self, context: TokenizationContext) -> None:
        result = context.result
        codification = context.registries.codification
        if codification.is_empty():
            result.add_message("StructuralCodification: codification map is empty, skipping structural detection.")
            return

        for index, segment in enumerate(result.segments):
            prefix = code_prefix(segment)
            entry = codification.get(prefix)
            if entry is None:
                continue
            key = _SLOT_BY_TYPE.get(entry.codification_type)
            if key is None or key in result.tokens:
                continue
            result.tokens[key] = Token(
                key=key,
                value=segment,
                position=index,
                kind=TokenKind.CODIFICATION,
                is_match=True,
                source_registry_key=prefix,
                note=f"{key} resolved from codification map.",
            )
            result.add_message(f"StructuralCodification: {key} '{segment}' recognized from code '{prefix}'.")

        self._summarize(result)

    @staticmethod
    def _summarize(result: TokenizationResult) -> None:
        found = [key for key in _SLOT_BY_TYPE.values() if key in result.tokens]
        if not found:
            result.add_message(
                "StructuralCodification: no segments resolved from codification, "
                "regex fallback will handle structural detection."
            )
            return
        if len(found) == len(_SLOT_BY_TYPE):
            result.add_message("StructuralCodification: full Plant/Unit/Section/Equipment chain resolved from codification.")
            return
        if found == ["Plant", "PlantUnit", "PlantSection"]:
            section = result.tokens["PlantSection"]
            if 0 <= section.position < len(result.segments) - 1:
                result.add_message(
                    "StructuralCodification: Plant/Unit/Section resolved from codification but no codified "
                    "Equipment segment; later stages treat the next segment as a component candidate."
                )
            else:
                result.add_message(
                    "StructuralCodification: Plant/Unit/Section resolved from codification and no segment "
                    "follows the section."
                )
            return
        result.add_message(f"StructuralCodification: partially resolved from codification ({', '.join(found)}).")


# ---------------------------------------------------------------------------
# 3. Regex base fallback
# ---------------------------------------------------------------------------


class RegexBaseFallbackStage(TokenizationStage):
    """Resolve still unresolved base slots from the token regex registry."""

    stage_id = TokenizationStageId.REGEX_BASE_FALLBACK

    def run(self, context: TokenizationContext) -> None:
        result = context.result
        patterns = context.registries.token_patterns
        by_position = patterns.base_by_position()
        if not by_position:
            result.add_message("RegexBaseFallback: no base definitions in token regex map, skipping stage.")
            return

        max_position = max(by_position)
        for index, value in enumerate(result.segments):
            if index > max_position:
                break
            expected = patterns.expected_base_key(index)
            if expected is None or result.is_resolved(expected):
                continue

            if patterns.full_match(expected, value):
                result.tokens[expected] = Token(
                    key=expected,
                    value=value,
                    position=index,
                    kind=TokenKind.BASE,
                    is_match=True,
                    is_fallback=True,
                    source_registry_key=expected,
                    note=f"RegexBaseFallback: matched base '{expected}' = '{value}' at position {index}.",
                )
                result.add_score(expected, 15)
                result.add_message(f"RegexBaseFallback: resolved base '{expected}' as '{value}' (position {index}).")
                continue

            alternative = self._alternative(context, by_position[index], expected, value)
            if alternative is not None:
                result.tokens[alternative.name] = Token(
                    key=alternative.name,
                    value=value,
                    position=index,
                    kind=TokenKind.BASE,
                    is_match=True,
                    is_replacement=True,
                    is_fallback=True,
                    replaces_key=expected,
                    source_registry_key=alternative.name,
                    note=(
                        f"RegexBaseFallback: fallback base '{alternative.name}' matched '{value}' "
                        f"at position {index}, replacing expected '{expected}'."
                    ),
                )
                self._mark_missing(result, expected, index, f"replaced by '{alternative.name}'")
                result.add_score(alternative.name, 12)
                result.add_message(
                    f"RegexBaseFallback: used fallback base '{alternative.name}' for '{value}' "
                    f"(replaces {expected} at position {index})."
                )
                continue

            self._mark_missing(result, expected, index, f"no regex match for value '{value}'")
            result.add_score(expected, -10)
            result.add_warning(f"RegexBaseFallback: could not map '{value}' to base '{expected}' at position {index}.")

        for group in by_position.values():
            for pattern in group:
                if pattern.name in result.tokens:
                    continue
                self._mark_missing(result, pattern.name, pattern.position, "no segment resolved this slot")
                result.add_message(
                    f"RegexBaseFallback: base '{pattern.name}' left unresolved (marked {missing_value(pattern.name)})."
                )

        result.add_message(f"RegexBaseFallback: completed base regex evaluation. Tokens now: {len(result.tokens)}.")

    @staticmethod
    def _alternative(
        context: TokenizationContext,
        candidates: List[TokenPattern],
        expected: str,
        value: str,
    ) -> Optional[TokenPattern]:
        patterns = context.registries.token_patterns
        for candidate in candidates:
            if candidate.name == expected or context.result.is_resolved(candidate.name):
                continue
            if patterns.full_match(candidate.name, value):
                return candidate
        return None

    @staticmethod
    def _mark_missing(result: TokenizationResult, key: str, position: int, reason: str) -> None:
        existing = result.tokens.get(key)
        if existing is not None and existing.is_missing:
            return
        result.tokens[key] = Token(
            key=key,
            value=missing_value(key),
            position=position,
            kind=TokenKind.BASE,
            is_missing=True,
            source_registry_key=key,
            note=f"RegexBaseFallback: {reason} for base '{key}' at position {position}.",
        )


# ---------------------------------------------------------------------------
# 4. Suffix recognition
# ---------------------------------------------------------------------------


def is_exception_suffix(suffix_key: str) -> bool:
    """Section level overrides (layout, walkway, building, ...) apply only to PlantSection."""

    if suffix_key.lower().startswith("plantlayout"):
        return True
    return suffix_key.upper() in _EXCEPTION_SUFFIXES


class SuffixRecognitionStage(TokenizationStage):
    """Detect Discipline/Entity suffixes and apply suffix-driven slot replacements."""

    stage_id = TokenizationStageId.SUFFIX_RECOGNITION

    def run(self, context: TokenizationContext) -> None:
        result = context.result
        if not result.segments:
            result.add_warning("SuffixRecognition: no segments available for suffix processing.")
            return

        self._detect_code(context, "Discipline", context.registries.disciplines)
        self._detect_code(context, "Entity", context.registries.entities)

        patterns = context.registries.token_patterns
        suffixes = [
            pattern
            for pattern in patterns.of_kind(TokenKind.SUFFIX)
            if pattern.pattern and pattern.name not in ("Discipline", "Entity")
        ]
        consumed: Set[str] = {
            token.value.upper() for token in result.tokens.values() if token.is_resolved
        }
        for suffix in suffixes:
            for segment in result.segments:
                if segment.upper() in consumed or not patterns.full_match(suffix.name, segment):
                    continue
                if self._apply(context, suffix, segment):
                    consumed.add(segment.upper())
                    break

        result.add_message(f"SuffixRecognition: completed suffix/exception detection. Tokens now: {len(result.tokens)}.")

    @staticmethod
    def _detect_code(context: TokenizationContext, key: str, registry) -> None:
        result = context.result
        if key in result.tokens or registry.is_empty():
            return
        value = registry.find_last(result.segments)
        if value is None:
            return
        label = registry.label(value)
        result.tokens[key] = Token(
            key=key,
            value=value,
            position=TRAILING_POSITION,
            kind=TokenKind.SUFFIX,
            is_match=True,
            source_registry_key=key,
            note=f"Matched {key.lower()} code '{value}'." + (f" ({label})" if label else ""),
        )
        result.add_score(key, 20)
        result.add_message(f"SuffixRecognition: detected {key.lower()} '{value}'.")

    def _apply(self, context: TokenizationContext, suffix: TokenPattern, segment: str) -> bool:
        result = context.result
        patterns = context.registries.token_patterns

        replaces_base = self._base_at_or_before(context, suffix.position)
        if replaces_base is None:
            return False
        exception = is_exception_suffix(suffix.name)
        if exception and result.is_resolved("PlantSection"):
            return False

        target = replaces_base
        if suffix.name == _INCREMENTAL_SUFFIX:
            target = patterns.expected_base_key(suffix.position + 1) or replaces_base
        if result.is_resolved(target):
            return False

        if suffix.name != target:
            result.tokens.pop(suffix.name, None)
        result.tokens[target] = Token(
            key=target,
            value=segment,
            position=patterns.position_of(target),
            kind=TokenKind.SUFFIX,
            is_match=True,
            is_replacement=True,
            is_fallback=exception,
            replaces_key=replaces_base,
            replaced_by=suffix.name,
            source_registry_key=suffix.name,
            note=self._note(suffix.name, replaces_base, target, segment, exception),
        )

        if exception:
            result.add_score(target, 15)
            result.add_message(
                f"SuffixRecognition: exception '{suffix.name}' with value '{segment}' used as fallback "
                f"for missing {replaces_base} -> {target}."
            )
        elif suffix.name == _INCREMENTAL_SUFFIX:
            result.add_score(target, 10)
            result.add_message(
                f"SuffixRecognition: {_INCREMENTAL_SUFFIX} '{segment}' attached to '{target}' (replaces {replaces_base})."
            )
        else:
            result.add_score(target, 8)
            result.add_message(f"SuffixRecognition: suffix '{suffix.name}' matched '{segment}' -> {target}.")
        return True

    @staticmethod
    def _base_at_or_before(context: TokenizationContext, position: int) -> Optional[str]:
        patterns = context.registries.token_patterns
        eligible = [pos for pos in patterns.base_by_position() if pos <= position]
        if not eligible:
            return None
        return patterns.expected_base_key(max(eligible))

    @staticmethod
    def _note(suffix_key: str, replaces_base: str, target: str, value: str, exception: bool) -> str:
        if exception:
            return f"Exception suffix '{suffix_key}' matched '{value}' -> {target} (fallback for missing {replaces_base})."
        if suffix_key == _INCREMENTAL_SUFFIX:
            return f"Suffix '{suffix_key}' matched '{value}' -> {target} (incremental, replaces {replaces_base})."
        return f"Suffix '{suffix_key}' matched '{value}' -> {target} (replaces {replaces_base})."


# ---------------------------------------------------------------------------
# 5. Codification validation
# ---------------------------------------------------------------------------


class CodificationValidationStage(TokenizationStage):
    """Score parent/child consistency of the resolved structural chain."""

    stage_id = TokenizationStageId.CODIFICATION_VALIDATION

    def run(self, context: TokenizationContext) -> None:
        result = context.result
        codification = context.registries.codification
        if codification.is_empty():
            result.add_message("CodificationValidation: codification map is empty, skipping structural validation.")
            return

        plant = self._solid(result, "Plant")
        unit = self._solid(result, "PlantUnit")
        section = self._solid(result, "PlantSection")
        equipment = self._solid(result, "Equipment")
        component = self._solid(result, "Component")

        if plant is None and unit is None and section is None:
            result.add_warning("CodificationValidation: no structural tokens (Plant/Unit/Section) found to validate.")
            return

        plant_cod = self._lookup(context, plant, CodificationType.PLANT)
        unit_cod = self._lookup(context, unit, CodificationType.PLANT_UNIT)
        section_cod = self._lookup(context, section, CodificationType.PLANT_SECTION)
        equipment_cod = self._lookup(context, equipment, CodificationType.EQUIPMENT)

        if plant is not None:
            if plant_cod is not None:
                result.add_score("Plant", 8)
                result.add_message(f"CodificationValidation: Plant '{plant.value}' recognized as code '{plant_cod.code}'.")
            else:
                result.add_score("Plant", -4)
                result.add_warning(
                    f"CodificationValidation: Plant '{plant.value}' (code '{code_prefix(plant.value)}') is not present "
                    "in codification map, treating as uncodified plant."
                )

        self._validate_child(result, "PlantUnit", unit, unit_cod, "Plant", plant_cod, uncodified_delta=-4)
        self._validate_child(result, "PlantSection", section, section_cod, "PlantUnit", unit_cod, uncodified_delta=-4)

        if equipment is not None:
            self._validate_child(
                result, "Equipment", equipment, equipment_cod, "PlantSection", section_cod, uncodified_delta=-3
            )
        elif component is not None:
            result.add_score("Component", 2)
            result.add_message(
                f"CodificationValidation: no Equipment token, but Component '{component.value}' is present; "
                "Plant-Unit-Section-Component accepted as structural tip."
            )

        if (
            plant_cod is not None
            and unit_cod is not None
            and section_cod is not None
            and unit_cod.parent_code == plant_cod.code
            and section_cod.parent_code == unit_cod.code
        ):
            if equipment is not None:
                tip = f"Equipment '{equipment.value}'"
            elif component is not None:
                tip = f"Component '{component.value}'"
            else:
                tip = "no Equipment/Component"
            result.add_message(
                f"CodificationValidation: structural chain Plant '{plant.value}' -> Unit '{unit.value}' -> "
                f"Section '{section.value}' -> {tip} is codification-consistent."
            )

    @staticmethod
    def _solid(result: TokenizationResult, key: str) -> Optional[Token]:
        token = result.tokens.get(key)
        if token is None or not token.is_resolved:
            return None
        return token

    @staticmethod
    def _lookup(
        context: TokenizationContext, token: Optional[Token], expected: CodificationType
    ) -> Optional[CodificationEntry]:
        if token is None:
            return None
        return context.registries.codification.lookup(code_prefix(token.value), expected)

    @staticmethod
    def _validate_child(
        result: TokenizationResult,
        key: str,
        token: Optional[Token],
        entry: Optional[CodificationEntry],
        parent_key: str,
        parent_entry: Optional[CodificationEntry],
        *,
        uncodified_delta: int,
    ) -> None:
        if token is None:
            return
        if entry is None:
            result.add_score(key, uncodified_delta)
            result.add_warning(
                f"CodificationValidation: {key} '{token.value}' (code '{code_prefix(token.value)}') "
                "is not present in codification map."
            )
            return
        if parent_entry is None:
            result.add_score(key, 3)
            result.add_message(
                f"CodificationValidation: {key} '{token.value}' (code '{entry.code}') is known, "
                f"but {parent_key} is uncodified."
            )
            return
        if entry.parent_code == parent_entry.code:
            result.add_score(key, 8)
            result.add_message(
                f"CodificationValidation: {key} '{token.value}' (code '{entry.code}') is correctly registered "
                f"under {parent_key} '{parent_entry.code}'."
            )
            return
        result.add_score(key, -10)
        result.add_warning(
            f"CodificationValidation: {key} '{token.value}' (code '{entry.code}') is not registered under "
            f"{parent_key} '{parent_entry.code}' (parent in codification: '{entry.parent_code or '<none>'}')."
        )


# ---------------------------------------------------------------------------
# 6. Scoring
# ---------------------------------------------------------------------------


class ScoringStage(TokenizationStage):
    stage_id = TokenizationStageId.SCORING

    def run(self, context: TokenizationContext) -> None:
        result = context.result
        if not result.token_scores and not result.tokens:
            result.score_0_to_100 = 0
            result.add_warning("Scoring: no tokens and no scores available, quality set to 0.")
            return

        raw = result.total_score
        if result.token_scores:
            per_token = sum(result.token_scores.values())
            if per_token == result.total_score:
                raw = per_token
            else:
                result.add_message(
                    f"Scoring: per-token scores ({per_token}) drifted from total score ({result.total_score}), "
                    "using total score."
                )

        low, high = SCORE_RANGE
        clamped = min(max(raw, low), high)
        score = int(round((clamped - low) / (high - low) * 100.0))
        score = min(max(score, 0), 100)

        if result.errors:
            score = min(score, 20)
        elif result.warnings:
            score = min(score, 80)

        result.score_0_to_100 = score
        result.add_message(f"Scoring: tokenization quality score = {score}/100 (raw={raw}).")


# ---------------------------------------------------------------------------
# 7. Post-processing
# ---------------------------------------------------------------------------


class PostProcessingStage(TokenizationStage):
    """Split valid/excluded tokens, order them and verify the canonical order."""

    stage_id = TokenizationStageId.POST_PROCESSING

    def run(self, context: TokenizationContext) -> None:
        result = context.result
        if not result.tokens:
            result.add_warning("PostProcessing: no tokens found to post-process.")
            result.is_valid = False
            result.is_consistency_checked = False
            return

        valid: Dict[str, Token] = {}
        excluded: Dict[str, Token] = {}
        for key, token in result.tokens.items():
            if self._is_excluded(token):
                excluded[key] = token
            else:
                valid[key] = token

        ordered = sorted(valid.items(), key=lambda item: position_sort_key(item[0], item[1].position))
        result.tokens = dict(ordered)
        result.excluded_tokens = excluded

        self._check_order(context)

        result.is_valid = bool(result.tokens) and all(
            not token.is_missing and token.value.strip() for token in result.tokens.values()
        )
        if not result.errors and result.is_valid:
            result.add_message(f"PostProcessing: {len(result.tokens)} token(s) ready for downstream processing.")
        elif not result.is_valid:
            result.add_warning("PostProcessing: detected invalid or missing tokens.")
        if excluded:
            result.add_message(f"PostProcessing: {len(excluded)} token(s) moved to excluded tokens.")

    @staticmethod
    def _is_excluded(token: Token) -> bool:
        return (
            token.is_missing
            or (token.is_replacement and not token.is_match)
            or not token.value.strip()
            or is_placeholder(token.value)
            or not token.is_processable
        )

    @staticmethod
    def _check_order(context: TokenizationContext) -> None:
        result = context.result
        result.is_consistency_checked = True
        expected_order = context.registries.token_patterns.canonical_order()
        if not expected_order:
            result.add_warning("PostProcessing: token regex map has no positional entries, skipping consistency check.")
            return
        expected_index = {key: index for index, key in enumerate(expected_order)}
        last_index = -1
        for key in result.tokens:
            index = expected_index.get(key)
            if index is None:
                continue
            if index < last_index:
                result.add_warning(f"PostProcessing: token order inconsistency near '{key}'.")
                return
            last_index = index
        result.add_message("PostProcessing: token order consistency verified.")


def default_stages() -> List[TokenizationStage]:
    """Return the tokenization stages in execution order."""

    return [
        PreProcessingStage(),
        StructuralCodificationStage(),
        RegexBaseFallbackStage(),
        SuffixRecognitionStage(),
        CodificationValidationStage(),
        ScoringStage(),
        PostProcessingStage(),
    ]
