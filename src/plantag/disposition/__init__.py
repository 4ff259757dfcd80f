"""Quality bucket and route decisions for tokenized items."""
from __future__ import annotations

from .engine import DispositionEngine
from .models import (
    ROUTE_BY_BUCKET,
    DispositionContext,
    DispositionResult,
    DispositionStageId,
    QualityBucket,
    QualityLevel,
)
from .stages import (
    BucketAssignmentStage,
    DispositionPreProcessingStage,
    DispositionScoringStage,
    DispositionStage,
    QualityAssessmentStage,
    RouteResolutionStage,
    TokenSnapshotStage,
    default_stages,
    fallback_name,
)

__all__ = [
    "ROUTE_BY_BUCKET",
    "BucketAssignmentStage",
    "DispositionContext",
    "DispositionEngine",
    "DispositionPreProcessingStage",
    "DispositionResult",
    "DispositionScoringStage",
    "DispositionStage",
    "DispositionStageId",
    "QualityAssessmentStage",
    "QualityBucket",
    "QualityLevel",
    "RouteResolutionStage",
    "TokenSnapshotStage",
    "default_stages",
    "fallback_name",
]
