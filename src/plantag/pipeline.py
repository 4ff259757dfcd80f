"""Per-item orchestration: tokenization, disposition and hierarchy placement."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .config import TagFormat
from .disposition import DispositionEngine, DispositionResult
from .errors import HardInputError
from .hierarchy import HierarchyBuildResult, HierarchyChainBuilder, HierarchyTree, consolidate
from .registry.snapshot import RegistrySnapshot, RegistryStore
from .tokenization import TokenizationEngine, TokenizationResult
from .utils.logging import generate_trace_id, log_event

__all__ = ["PlantItem", "ResultKind", "ItemResults", "TagProcessor", "process_batch"]

LOGGER = logging.getLogger(__name__)


class PlantItem(BaseModel):
    """Input record: an item id, its raw tag and an optional discipline."""

    id: str = Field(default_factory=lambda: uuid4().hex)
    tag: str = ""
    discipline: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value: object) -> object:
        if value is None or (isinstance(value, str) and not value.strip()):
            return uuid4().hex
        return str(value)

    @field_validator("tag", mode="before")
    @classmethod
    def _none_tag(cls, value: object) -> object:
        return "" if value is None else value

    @field_validator("discipline", mode="before")
    @classmethod
    def _blank_discipline(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value


class ResultKind(str, Enum):
    TOKENIZATION = "tokenization"
    DISPOSITION = "disposition"
    HIERARCHY = "hierarchy"


@dataclass
class ItemResults:
    """Results produced for one item, one field per result kind."""

    item: PlantItem
    tokenization: Optional[TokenizationResult] = None
    disposition: Optional[DispositionResult] = None
    hierarchy: Optional[HierarchyBuildResult] = None

    def get(self, kind: ResultKind) -> Any:
        return getattr(self, ResultKind(kind).value)

    def as_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"id": self.item.id, "tag": self.item.tag, "discipline": self.item.discipline}
        for kind in ResultKind:
            value = self.get(kind)
            payload[kind.value] = value.as_dict() if value is not None else None
        return payload


class TagProcessor:
    """Run the three engines for one item against a single registry snapshot."""

    def __init__(
        self,
        registries: Union[RegistrySnapshot, RegistryStore],
        *,
        tag_format: Optional[TagFormat] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._registries = registries
        self._tag_format = tag_format
        self._logger = logger or LOGGER
        self._disposition = DispositionEngine()

    def _snapshot(self) -> RegistrySnapshot:
        if isinstance(self._registries, RegistryStore):
            return self._registries.snapshot()
        return self._registries

    def process(self, item: PlantItem, *, trace_id: Optional[str] = None) -> ItemResults:
        trace_id = trace_id or generate_trace_id()
        snapshot = self._snapshot()
        tokenization = TokenizationEngine(snapshot).tokenize(item.tag, trace_id=trace_id)

        results = ItemResults(item=item, tokenization=tokenization)
        try:
            results.disposition = self._disposition.dispose(
                tokenization, item_id=item.id, discipline=item.discipline, trace_id=trace_id
            )
        except HardInputError as exc:
            tokenization.add_error(str(exc))

        builder = HierarchyChainBuilder(snapshot, self._tag_format)
        results.hierarchy = builder.build(tokenization, item_id=item.id, discipline=item.discipline)

        disposition = results.disposition
        log_event(
            self._logger,
            "item.processed",
            trace_id=trace_id,
            item_id=item.id,
            tag=item.tag,
            score=tokenization.score_0_to_100,
            warnings=len(tokenization.warnings),
            errors=len(tokenization.errors),
            bucket=disposition.quality_bucket.value if disposition is not None else None,
            route=disposition.route if disposition is not None else None,
            leaf_tag=results.hierarchy.leaf_tag,
        )
        return results


def process_batch(
    items: Iterable[Union[PlantItem, Dict[str, Any]]],
    registries: Union[RegistrySnapshot, RegistryStore],
    *,
    tag_format: Optional[TagFormat] = None,
    logger: Optional[logging.Logger] = None,
    progress: Optional[Callable[[Iterable[Any]], Iterable[Any]]] = None,
) -> Tuple[List[ItemResults], HierarchyTree]:
    """Process ``items`` and consolidate their chains into one tree.

    The registry snapshot is read once, so a concurrent reload does not mix
    two registry versions inside one batch. ``progress`` may wrap the item
    iterable (for example with :func:`tqdm.tqdm`).
    """

    snapshot = registries.snapshot() if isinstance(registries, RegistryStore) else registries
    processor = TagProcessor(snapshot, tag_format=tag_format, logger=logger)
    iterable: Iterable[Any] = progress(items) if progress is not None else items

    results: List[ItemResults] = []
    for raw in iterable:
        item = raw if isinstance(raw, PlantItem) else PlantItem.model_validate(raw)
        results.append(processor.process(item))

    tree = consolidate(result.hierarchy for result in results if result.hierarchy is not None)
    return results, tree
