"""Run the disposition stages for one tokenized item."""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from ..errors import CONSISTENCY_ERROR, ConfigurationError, HardInputError
from ..tokenization.tokens import TokenizationResult
from .models import DispositionContext, DispositionResult
from .stages import DispositionStage, default_stages

__all__ = ["DispositionEngine"]

LOGGER = logging.getLogger(__name__)


class DispositionEngine:
    """Classify a :class:`TokenizationResult` into a quality bucket and route."""

    def __init__(self, stages: Optional[Sequence[DispositionStage]] = None) -> None:
        self._stages: List[DispositionStage] = list(stages) if stages is not None else default_stages()

    @property
    def stages(self) -> List[DispositionStage]:
        return list(self._stages)

    def dispose(
        self,
        token_result: Optional[TokenizationResult],
        *,
        item_id: Optional[str] = None,
        discipline: Optional[str] = None,
        trace_id: Optional[str] = None,
    ) -> DispositionResult:
        """Run every stage and return the frozen outcome.

        Raises
        ------
        HardInputError
            If ``token_result`` is ``None``.
        """

        if token_result is None:
            raise HardInputError("Disposition requires a tokenization result for the item.")

        context = DispositionContext(token_result=token_result, item_id=item_id, discipline=discipline)
        for stage in self._stages:
            try:
                stage.run(context)
            except (HardInputError, ConfigurationError):
                raise
            except Exception as exc:  # noqa: BLE001 - recorded on the item instead
                context.add_warning(f"{stage.name}: stage failed: {exc}")
                LOGGER.warning(
                    "disposition.stage_failed",
                    exc_info=True,
                    extra={"trace_id": trace_id, "extra_fields": {"stage": stage.stage_id.value}},
                )
                continue
            context.executed_stages.append(stage.stage_id)

        result = context.to_result()
        if result.errors:
            LOGGER.warning(
                "disposition.inconsistent",
                extra={
                    "trace_id": trace_id,
                    "extra_fields": {
                        "category": CONSISTENCY_ERROR,
                        "item_id": result.item_id,
                        "bucket": result.quality_bucket.value,
                        "errors": list(result.errors),
                    },
                },
            )
        LOGGER.debug(
            "disposition.completed",
            extra={
                "trace_id": trace_id,
                "extra_fields": {
                    "item_id": result.item_id,
                    "bucket": result.quality_bucket.value,
                    "route": result.route,
                    "is_valid": result.is_valid,
                },
            },
        )
        return result
