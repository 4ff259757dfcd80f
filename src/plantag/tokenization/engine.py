"""Run the tokenization stages over a raw tag."""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Union

from ..errors import STRUCTURAL_WARNING, ConfigurationError, HardInputError
from ..registry.snapshot import RegistrySnapshot, RegistryStore
from ..utils.logging import log_event
from .context import TokenizationContext
from .stages import TokenizationStage, default_stages
from .tokens import TokenizationResult

__all__ = ["TokenizationEngine"]

LOGGER = logging.getLogger(__name__)


class TokenizationEngine:
    """Turn raw tags into :class:`TokenizationResult` objects.

    Parameters
    ----------
    registries:
        Either a fixed :class:`RegistrySnapshot` or a :class:`RegistryStore`;
        with a store the current snapshot is read once per call so a reload
        never affects a tag that is already being processed.
    stages:
        Optional custom stage list, defaults to :func:`default_stages`.
    """

    def __init__(
        self,
        registries: Union[RegistrySnapshot, RegistryStore],
        stages: Optional[Sequence[TokenizationStage]] = None,
    ) -> None:
        self._registries = registries
        self._stages: List[TokenizationStage] = list(stages) if stages is not None else default_stages()

    @property
    def stages(self) -> List[TokenizationStage]:
        return list(self._stages)

    def _snapshot(self) -> RegistrySnapshot:
        if isinstance(self._registries, RegistryStore):
            return self._registries.snapshot()
        return self._registries

    def tokenize(self, raw_tag: Optional[str], *, trace_id: Optional[str] = None) -> TokenizationResult:
        result = TokenizationResult(raw_input=raw_tag or "")
        context = TokenizationContext(result=result, registries=self._snapshot(), trace_id=trace_id)

        for stage in self._stages:
            try:
                stage.run(context)
            except HardInputError as exc:
                result.add_error(str(exc))
                result.is_valid = False
                log_event(
                    LOGGER,
                    "tokenization.aborted",
                    trace_id=trace_id,
                    level=logging.WARNING,
                    stage=stage.stage_id.value,
                    error=str(exc),
                )
                return result
            except ConfigurationError:
                raise
            except Exception as exc:  # noqa: BLE001 - a faulty stage must not sink the item
                result.add_warning(f"{stage.name}: stage failed: {exc}")
                LOGGER.warning(
                    "tokenization.stage_failed",
                    exc_info=True,
                    extra={"trace_id": trace_id, "extra_fields": {"stage": stage.stage_id.value}},
                )
            context.mark_executed(stage.stage_id)

        if result.warnings:
            LOGGER.debug(
                "tokenization.structural_warnings",
                extra={
                    "trace_id": trace_id,
                    "extra_fields": {
                        "category": STRUCTURAL_WARNING,
                        "raw_input": result.raw_input,
                        "warnings": list(result.warnings),
                    },
                },
            )
        LOGGER.debug(
            "tokenization.completed",
            extra={
                "trace_id": trace_id,
                "extra_fields": {
                    "raw_input": result.raw_input,
                    "tokens": len(result.tokens),
                    "score": result.score_0_to_100,
                    "warnings": len(result.warnings),
                    "stages": [stage_id.value for stage_id in context.executed_stages],
                },
            },
        )
        return result
