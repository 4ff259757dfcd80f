"""Data structures of the disposition pipeline."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from ..tokenization.tokens import TokenizationResult

__all__ = [
    "QualityBucket",
    "QualityLevel",
    "DispositionStageId",
    "DispositionContext",
    "DispositionResult",
    "ROUTE_BY_BUCKET",
]


class QualityBucket(str, Enum):
    """Routing class of an item."""

    UNKNOWN = "Unknown"
    FINAL_IMPORT = "FinalImport"
    DB_LIMBO = "DbLimbo"
    MDB_LIMBO = "MdbLimbo"


class QualityLevel(str, Enum):
    """Coarse label derived from the bucket, for logging only."""

    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"
    UNDEFINED = "Undefined"


class DispositionStageId(str, Enum):
    PRE_PROCESSING = "pre_processing"
    TOKEN_SNAPSHOT = "token_snapshot"
    QUALITY_ASSESSMENT = "quality_assessment"
    BUCKET_ASSIGNMENT = "bucket_assignment"
    ROUTE_RESOLUTION = "route_resolution"
    SCORING = "scoring"


ROUTE_BY_BUCKET: Dict[QualityBucket, str] = {
    QualityBucket.FINAL_IMPORT: "ProductionHierarchy",
    QualityBucket.DB_LIMBO: "DbLimboHierarchy",
    QualityBucket.MDB_LIMBO: "MdbLimboHierarchy",
    QualityBucket.UNKNOWN: "",
}


@dataclass
class _DispositionState:
    raw_input: str = ""
    normalized_input: str = ""
    has_plant: bool = False
    has_plant_unit: bool = False
    has_plant_section: bool = False
    has_equipment: bool = False
    has_component: bool = False
    equipment_replaced_by_component: bool = False
    has_effective_discipline: bool = False
    has_effective_entity: bool = False
    is_tag_empty_or_whitespace: bool = False
    has_any_tokens: bool = False
    is_final_import_eligible: bool = False
    is_db_limbo_eligible: bool = False
    quality_bucket: QualityBucket = QualityBucket.UNKNOWN
    quality_level: QualityLevel = QualityLevel.UNDEFINED
    route: str = ""
    target_server_key: str = ""
    target_mdb_key: str = ""
    is_valid: bool = False
    is_consistency_checked: bool = False
    messages: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)


@dataclass
class DispositionContext(_DispositionState):
    """Working state of one item while the disposition stages run."""

    token_result: Optional[TokenizationResult] = None
    item_id: Optional[str] = None
    discipline: Optional[str] = None
    executed_stages: List[DispositionStageId] = field(default_factory=list)

    def add_message(self, text: str) -> None:
        if text and text.strip():
            self.messages.append(text)

    def add_warning(self, text: str) -> None:
        if text and text.strip():
            self.warnings.append(text)

    def add_error(self, text: str) -> None:
        if text and text.strip():
            self.errors.append(text)

    def to_result(self) -> "DispositionResult":
        state = {name: getattr(self, name) for name in _DispositionState.__dataclass_fields__}
        state["messages"] = list(self.messages)
        state["warnings"] = list(self.warnings)
        state["errors"] = list(self.errors)
        return DispositionResult(item_id=self.item_id or "", discipline=self.discipline or "", **state)


@dataclass
class DispositionResult(_DispositionState):
    """Outcome of the disposition pipeline for one item."""

    item_id: str = ""
    discipline: str = ""

    @property
    def is_success(self) -> bool:
        return self.is_valid and self.is_consistency_checked and not self.errors

    def as_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["quality_bucket"] = self.quality_bucket.value
        payload["quality_level"] = self.quality_level.value
        return payload
