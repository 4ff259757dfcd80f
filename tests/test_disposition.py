from __future__ import annotations

import pytest

from plantag.disposition import DispositionEngine, QualityBucket, QualityLevel
from plantag.disposition.models import DispositionContext, DispositionStageId
from plantag.disposition.stages import BucketAssignmentStage, DispositionScoringStage, DispositionStage
from plantag.errors import HardInputError
from plantag.tokenization import TokenizationEngine

from conftest import read_events


def _dispose(registries, tag: str, **kwargs):
    tokens = TokenizationEngine(registries).tokenize(tag)
    return tokens, DispositionEngine().dispose(tokens, **kwargs)


def test_complete_tag_goes_to_final_import(registries) -> None:
    _, result = _dispose(registries, "AGL01_PU02_PS03_EQ04_C001_ME_SDE", item_id="item-1", discipline="ME")

    assert result.is_final_import_eligible
    assert not result.is_db_limbo_eligible
    assert result.quality_bucket is QualityBucket.FINAL_IMPORT
    assert result.route == "ProductionHierarchy"
    assert result.target_server_key == "SDE"
    assert result.target_mdb_key == "AGL01"
    assert result.quality_level is QualityLevel.HIGH
    assert result.is_valid
    assert result.is_consistency_checked
    assert result.errors == []
    assert result.item_id == "item-1"


def test_tag_without_component_is_not_final_import(registries) -> None:
    _, result = _dispose(registries, "AGL01_PU02_PS03_EQ04_ME_SDE")

    assert result.has_equipment
    assert not result.has_component
    assert not result.is_final_import_eligible
    assert result.quality_bucket is QualityBucket.MDB_LIMBO
    assert any("missing parts -> Component" in message for message in result.messages)


def test_empty_tag_gets_fallback_name_and_mdb_limbo(registries) -> None:
    tokens, result = _dispose(registries, "", item_id="42")

    assert tokens.errors
    assert result.is_tag_empty_or_whitespace
    assert result.raw_input == "UNNAMED_42"
    assert result.normalized_input == "UNNAMED_42"
    assert not result.has_any_tokens
    assert result.quality_bucket is QualityBucket.MDB_LIMBO
    assert result.route == "MdbLimboHierarchy"
    assert any("Assigning fallback name 'UNNAMED_42'" in warning for warning in result.warnings)


def test_empty_tag_without_item_id_gets_generated_name(registries) -> None:
    _, result = _dispose(registries, "   ")
    assert result.raw_input.startswith("UNNAMED_")
    assert len(result.raw_input) > len("UNNAMED_")


def test_component_replacing_equipment_counts_as_equipment(make_registries, component_at_equipment_position) -> None:
    registries = make_registries(token_regex=component_at_equipment_position)
    _, result = _dispose(registries, "AGL01_PU02_PS03_C001_ME_SDE")

    assert result.equipment_replaced_by_component
    assert result.has_equipment
    assert result.has_component
    assert result.is_final_import_eligible
    assert result.quality_bucket is QualityBucket.FINAL_IMPORT


def test_db_limbo_without_section(registries) -> None:
    _, result = _dispose(registries, "AGL01_PU02_XX_YY_C001_SDE")

    assert result.has_component
    assert not result.has_plant_section
    assert result.has_effective_entity
    assert result.is_db_limbo_eligible
    assert result.quality_bucket is QualityBucket.DB_LIMBO
    assert result.route == "DbLimboHierarchy"
    assert result.quality_level is QualityLevel.MEDIUM


def test_missing_token_result_raises() -> None:
    with pytest.raises(HardInputError):
        DispositionEngine().dispose(None)


@pytest.mark.parametrize(
    "tag",
    [
        "AGL01_PU02_PS03_EQ04_C001_ME_SDE",
        "AGL01_PU02_PS03_EQ04_ME_SDE",
        "AGL01_PU02_C001_SDE",
        "AGL01",
        "nonsense tag",
        "",
    ],
)
def test_bucket_matches_eligibility(registries, tag: str) -> None:
    _, result = _dispose(registries, tag)

    if result.quality_bucket is QualityBucket.FINAL_IMPORT:
        assert result.is_final_import_eligible
    elif result.quality_bucket is QualityBucket.DB_LIMBO:
        assert result.is_db_limbo_eligible
    else:
        assert result.quality_bucket is QualityBucket.MDB_LIMBO
        assert not result.is_final_import_eligible
        assert not result.is_db_limbo_eligible
    assert result.errors == []


def test_inconsistent_bucket_is_reported(registries) -> None:
    tokens = TokenizationEngine(registries).tokenize("AGL01")
    context = DispositionContext(token_result=tokens)
    context.quality_bucket = QualityBucket.FINAL_IMPORT
    context.is_valid = True

    DispositionScoringStage().run(context)

    assert not context.is_valid
    assert context.is_consistency_checked
    assert any("FinalImport" in error for error in context.errors)


def test_unknown_bucket_is_always_an_error(registries) -> None:
    context = DispositionContext(token_result=TokenizationEngine(registries).tokenize("AGL01"))

    DispositionScoringStage().run(context)

    assert context.quality_bucket is QualityBucket.UNKNOWN
    assert context.quality_level is QualityLevel.UNDEFINED
    assert not context.is_valid
    assert context.errors


@pytest.mark.parametrize("stage", [BucketAssignmentStage(), DispositionScoringStage()])
def test_stages_require_a_token_result(stage) -> None:
    context = DispositionContext()

    with pytest.raises(HardInputError):
        stage.run(context)
    assert context.quality_bucket is QualityBucket.UNKNOWN


def test_bucket_assignment_falls_back_to_mdb_limbo(registries) -> None:
    context = DispositionContext(token_result=TokenizationEngine(registries).tokenize("AGL01"))
    BucketAssignmentStage().run(context)

    assert context.quality_bucket is QualityBucket.MDB_LIMBO
    assert context.is_valid


def test_result_serialises_enums(registries) -> None:
    _, result = _dispose(registries, "AGL01_PU02_PS03_EQ04_C001_ME_SDE")
    payload = result.as_dict()

    assert payload["quality_bucket"] == "FinalImport"
    assert payload["quality_level"] == "High"
    assert payload["route"] == "ProductionHierarchy"


def test_consistency_errors_are_logged_with_their_category(registries, log_stream) -> None:
    class ForceFinalImport(DispositionStage):
        stage_id = DispositionStageId.BUCKET_ASSIGNMENT

        def run(self, context: DispositionContext) -> None:
            context.quality_bucket = QualityBucket.FINAL_IMPORT

    engine = DispositionEngine(stages=[ForceFinalImport(), DispositionScoringStage()])
    result = engine.dispose(TokenizationEngine(registries).tokenize("AGL01"), item_id="7", trace_id="t-7")

    assert not result.is_valid
    (event,) = [event for event in read_events(log_stream) if event["event"] == "disposition.inconsistent"]
    assert event["category"] == "consistency_error"
    assert event["item_id"] == "7"
    assert event["bucket"] == "FinalImport"
