"""Immutable registry snapshots and the store that swaps them on reload."""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, Optional

from .maps import CodeRegistry, CodificationRegistry, DisciplineHierarchyRegistry, TokenPatternRegistry

__all__ = ["RegistrySnapshot", "RegistryStore"]

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class RegistrySnapshot:
    """A consistent view over the five lookup registries."""

    codification: CodificationRegistry
    token_patterns: TokenPatternRegistry
    disciplines: CodeRegistry
    entities: CodeRegistry
    hierarchy: DisciplineHierarchyRegistry
    source: Optional[Path] = None
    loaded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def summary(self) -> Dict[str, object]:
        return {
            "source": str(self.source) if self.source is not None else None,
            "loaded_at": self.loaded_at.isoformat(timespec="seconds"),
            "codification": len(self.codification),
            "token_patterns": len(self.token_patterns),
            "disciplines": len(self.disciplines),
            "entities": len(self.entities),
            "hierarchy_disciplines": len(self.hierarchy),
        }


class RegistryStore:
    """Hold the current :class:`RegistrySnapshot` and replace it atomically.

    Readers call :meth:`snapshot` once per item (or batch) and keep the returned
    object; a concurrent :meth:`reload` builds a complete new snapshot before
    publishing it, so a reader never sees a partially rebuilt registry.
    """

    def __init__(self, loader: Callable[[], RegistrySnapshot]) -> None:
        self._loader = loader
        self._lock = threading.Lock()
        self._snapshot: Optional[RegistrySnapshot] = None

    def snapshot(self) -> RegistrySnapshot:
        current = self._snapshot
        if current is not None:
            return current
        with self._lock:
            if self._snapshot is None:
                self._snapshot = self._loader()
            return self._snapshot

    def reload(self) -> RegistrySnapshot:
        with self._lock:
            fresh = self._loader()
            self._snapshot = fresh
        LOGGER.info("registry.reloaded", extra={"extra_fields": fresh.summary()})
        return fresh
