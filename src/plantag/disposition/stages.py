"""Disposition stages: from a tokenization result to a routing decision."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List
from uuid import uuid4

from ..errors import HardInputError
from ..tokenization.tokens import TokenizationResult
from .models import ROUTE_BY_BUCKET, DispositionContext, DispositionStageId, QualityBucket, QualityLevel

__all__ = [
    "DispositionStage",
    "DispositionPreProcessingStage",
    "TokenSnapshotStage",
    "QualityAssessmentStage",
    "BucketAssignmentStage",
    "RouteResolutionStage",
    "DispositionScoringStage",
    "default_stages",
    "fallback_name",
]

UNNAMED_PREFIX = "UNNAMED_"


def _flag(value: bool) -> str:
    return "Y" if value else "N"


def fallback_name(item_id: str | None) -> str:
    """Return the placeholder name given to items without a tag."""

    return f"{UNNAMED_PREFIX}{item_id or uuid4().hex[:12]}"


def _require_tokens(context: DispositionContext) -> TokenizationResult:
    if context.token_result is None:
        raise HardInputError("Disposition requires a tokenization result for the item.")
    return context.token_result


class DispositionStage(ABC):
    stage_id: DispositionStageId

    @property
    def name(self) -> str:
        return type(self).__name__

    @abstractmethod
    def run(self, context: DispositionContext) -> None:
        """Apply the stage to ``context``."""


class DispositionPreProcessingStage(DispositionStage):
    """Sync tag information and assign a fallback name to empty tags."""

    stage_id = DispositionStageId.PRE_PROCESSING

    def run(self, context: DispositionContext) -> None:
        token_result = _require_tokens(context)
        context.raw_input = token_result.raw_input or ""
        context.normalized_input = token_result.normalized_input or ""
        context.is_tag_empty_or_whitespace = not context.raw_input.strip()

        if context.is_tag_empty_or_whitespace:
            name = fallback_name(context.item_id)
            context.add_warning(
                f"Tag is empty or whitespace. Assigning fallback name '{name}' and treating the item as low quality."
            )
            context.raw_input = name
            if not context.normalized_input:
                context.normalized_input = name

        context.has_any_tokens = any(token.is_processable for token in token_result.tokens.values())
        if not context.has_any_tokens:
            context.add_warning("Tokenization produced no processable tokens for this item.")


class TokenSnapshotStage(DispositionStage):
    """Derive the structural and functional presence flags from the tokens."""

    stage_id = DispositionStageId.TOKEN_SNAPSHOT

    def run(self, context: DispositionContext) -> None:
        tokens = _require_tokens(context)

        context.has_plant = tokens.processable("Plant") is not None
        context.has_plant_unit = tokens.processable("PlantUnit") is not None
        context.has_plant_section = tokens.processable("PlantSection") is not None or tokens.has_plant_section_token

        equipment = tokens.processable("Equipment")
        component = tokens.processable("Component")
        context.has_equipment = equipment is not None
        context.has_component = component is not None
        context.equipment_replaced_by_component = (
            equipment is None
            and component is not None
            and component.is_replacement
            and component.replaces_key.lower() == "equipment"
        )
        if context.equipment_replaced_by_component:
            context.add_message(
                "Component token is replacing Equipment; treating Equipment as present via replacement semantics."
            )
            context.has_equipment = True

        context.has_effective_discipline = tokens.processable("Discipline") is not None or tokens.has_token("Discipline")
        context.has_effective_entity = tokens.processable("Entity") is not None or tokens.has_token("Entity")

        parts = [
            f"Plant={_flag(context.has_plant)}",
            f"Unit={_flag(context.has_plant_unit)}",
            f"Section={_flag(context.has_plant_section)}",
            f"Equip={_flag(context.has_equipment)}",
            f"Comp={_flag(context.has_component)}",
            f"EquipByComp={_flag(context.equipment_replaced_by_component)}",
        ]
        context.add_message("Disposition structural snapshot: " + ", ".join(parts))


class QualityAssessmentStage(DispositionStage):
    """Compute the final-import and DB-limbo eligibility flags."""

    stage_id = DispositionStageId.QUALITY_ASSESSMENT

    def run(self, context: DispositionContext) -> None:
        _require_tokens(context)
        self._final_import(context)
        self._db_limbo(context)

        parts = [
            f"FinalEligible={_flag(context.is_final_import_eligible)}",
            f"DbLimboEligible={_flag(context.is_db_limbo_eligible)}",
            f"TagEmpty={_flag(context.is_tag_empty_or_whitespace)}",
            f"HasTokens={_flag(context.has_any_tokens)}",
            f"EffDisc={_flag(context.has_effective_discipline)}",
            f"EffEnt={_flag(context.has_effective_entity)}",
        ]
        context.add_message("Disposition quality assessment: " + ", ".join(parts))
        if not context.errors:
            context.is_valid = True

    @staticmethod
    def _final_import(context: DispositionContext) -> None:
        structure = (
            context.has_plant
            and context.has_plant_unit
            and context.has_plant_section
            and context.has_component
            and (context.has_equipment or context.equipment_replaced_by_component)
        )
        functional = context.has_effective_discipline and context.has_effective_entity
        guards = not context.is_tag_empty_or_whitespace and context.has_any_tokens
        context.is_final_import_eligible = structure and functional and guards

        if not structure:
            missing = [
                label
                for label, present in (
                    ("Plant", context.has_plant),
                    ("PlantUnit", context.has_plant_unit),
                    ("PlantSection", context.has_plant_section),
                    ("Component", context.has_component),
                )
                if not present
            ]
            if not context.has_equipment and not context.equipment_replaced_by_component:
                missing.append("Equipment (or Component replacing Equipment)")
            context.add_message("Final import structural check: missing parts -> " + (", ".join(missing) or "none"))
        if not functional:
            missing = [
                label
                for label, present in (
                    ("Discipline", context.has_effective_discipline),
                    ("Entity", context.has_effective_entity),
                )
                if not present
            ]
            context.add_message("Final import functional check: missing -> " + ", ".join(missing))
        if context.is_tag_empty_or_whitespace:
            context.add_message("Final import guard: tag was originally empty, the item cannot be imported directly.")
        if not context.has_any_tokens:
            context.add_message("Final import guard: no processable tokens, the item cannot be imported directly.")

    @staticmethod
    def _db_limbo(context: DispositionContext) -> None:
        if context.is_final_import_eligible:
            context.is_db_limbo_eligible = False
            return
        structure = context.has_plant and context.has_plant_unit and context.has_component
        context.is_db_limbo_eligible = structure and context.has_effective_entity
        if not structure:
            missing = [
                label
                for label, present in (
                    ("Plant", context.has_plant),
                    ("PlantUnit", context.has_plant_unit),
                    ("Component", context.has_component),
                )
                if not present
            ]
            context.add_message("DB limbo structural check: missing parts -> " + ", ".join(missing))
        if not context.has_effective_entity:
            context.add_message("DB limbo functional check: missing Entity.")


class BucketAssignmentStage(DispositionStage):
    stage_id = DispositionStageId.BUCKET_ASSIGNMENT

    def run(self, context: DispositionContext) -> None:
        _require_tokens(context)
        if context.is_final_import_eligible:
            context.quality_bucket = QualityBucket.FINAL_IMPORT
            context.add_message("Disposition bucket assignment: FinalImport (meets full structural and functional criteria).")
        elif context.is_db_limbo_eligible:
            context.quality_bucket = QualityBucket.DB_LIMBO
            context.add_message(
                "Disposition bucket assignment: DbLimbo (has Plant, PlantUnit, Component and Entity, "
                "but not enough for final import)."
            )
        else:
            context.quality_bucket = QualityBucket.MDB_LIMBO
            if context.is_tag_empty_or_whitespace:
                reason = "tag originally empty"
            elif not context.has_any_tokens:
                reason = "no processable tokens"
            else:
                reason = "does not meet criteria for FinalImport or DbLimbo"
            context.add_message(f"Disposition bucket assignment: MdbLimbo ({reason}).")

        context.is_valid = not context.errors and context.quality_bucket is not QualityBucket.UNKNOWN
        context.add_message(
            f"Disposition bucket summary: Bucket={context.quality_bucket.value}, "
            f"FinalEligible={_flag(context.is_final_import_eligible)}, "
            f"DbLimboEligible={_flag(context.is_db_limbo_eligible)}, "
            f"IsValid={_flag(context.is_valid)}"
        )


class RouteResolutionStage(DispositionStage):
    """Map the bucket to a route and pick the target server and MDB keys."""

    stage_id = DispositionStageId.ROUTE_RESOLUTION

    def run(self, context: DispositionContext) -> None:
        tokens = _require_tokens(context)
        if context.quality_bucket is QualityBucket.UNKNOWN:
            context.add_warning("Route resolution: quality bucket is Unknown, no route assigned.")
        context.route = ROUTE_BY_BUCKET[context.quality_bucket]
        if context.route:
            context.add_message(f"Route resolution: route '{context.route}' for bucket {context.quality_bucket.value}.")

        context.target_server_key = tokens.value_of("Entity")
        if context.target_server_key:
            context.add_message(f"Route resolution: target server key '{context.target_server_key}' from Entity.")
        else:
            context.add_message("Route resolution: no Entity token, target server key left empty.")

        context.target_mdb_key = tokens.value_of("Plant")
        if context.target_mdb_key:
            context.add_message(f"Route resolution: target MDB key '{context.target_mdb_key}' from Plant.")
        else:
            context.add_message("Route resolution: no Plant token, target MDB key left empty.")


_LEVEL_BY_BUCKET = {
    QualityBucket.FINAL_IMPORT: QualityLevel.HIGH,
    QualityBucket.DB_LIMBO: QualityLevel.MEDIUM,
    QualityBucket.MDB_LIMBO: QualityLevel.LOW,
    QualityBucket.UNKNOWN: QualityLevel.UNDEFINED,
}


class DispositionScoringStage(DispositionStage):
    """Cross-check the bucket against the eligibility flags."""

    stage_id = DispositionStageId.SCORING

    def run(self, context: DispositionContext) -> None:
        _require_tokens(context)
        bucket = context.quality_bucket
        if bucket is QualityBucket.FINAL_IMPORT and not context.is_final_import_eligible:
            context.add_error("Consistency error: bucket FinalImport assigned but the item is not final-import eligible.")
            context.is_valid = False
        elif bucket is QualityBucket.DB_LIMBO and not context.is_db_limbo_eligible:
            context.add_error("Consistency error: bucket DbLimbo assigned but the item is not DB-limbo eligible.")
            context.is_valid = False
        elif bucket is QualityBucket.MDB_LIMBO and (context.is_final_import_eligible or context.is_db_limbo_eligible):
            context.add_error("Consistency error: bucket MdbLimbo assigned although a higher bucket is eligible.")
            context.is_valid = False
        elif bucket is QualityBucket.UNKNOWN:
            context.add_error("Consistency error: quality bucket is Unknown.")
            context.is_valid = False

        context.quality_level = _LEVEL_BY_BUCKET[bucket]
        context.add_message(
            f"Disposition scoring: Bucket={bucket.value}, Quality={context.quality_level.value}, "
            f"IsValid={_flag(context.is_valid)}"
        )
        context.is_consistency_checked = True


def default_stages() -> List[DispositionStage]:
    return [
        DispositionPreProcessingStage(),
        TokenSnapshotStage(),
        QualityAssessmentStage(),
        BucketAssignmentStage(),
        RouteResolutionStage(),
        DispositionScoringStage(),
    ]
