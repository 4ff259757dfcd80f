"""Exception hierarchy shared by the plantag pipelines.

Only two error families ever leave a pipeline: :class:`HardInputError` aborts
the current item, :class:`ConfigurationError` aborts the run. Structural
warnings and disposition consistency errors are data-quality findings and are
recorded as messages on the item result instead of being raised.
"""
from __future__ import annotations

from typing import Any, Dict, List, Sequence

__all__ = [
    "PlantagError",
    "HardInputError",
    "ConfigurationError",
    "RegistryValidationError",
    "STRUCTURAL_WARNING",
    "CONSISTENCY_ERROR",
]

# Labels used in log records for the recorded (non raised) categories.
STRUCTURAL_WARNING = "structural_warning"
CONSISTENCY_ERROR = "consistency_error"


class PlantagError(Exception):
    """Base class for errors raised by plantag."""


class HardInputError(PlantagError, ValueError):
    """Raised when an item cannot be processed at all (empty tag, missing input)."""


class ConfigurationError(PlantagError, RuntimeError):
    """Raised when a mandatory registry is absent, empty or inconsistent."""


class RegistryValidationError(ConfigurationError):
    """Raised when one or more registry entries cannot be loaded."""

    def __init__(self, registry: str, errors: Sequence[Dict[str, Any]]):
        self.registry = registry
        self.errors: List[Dict[str, Any]] = list(errors)
        summary = ", ".join(f"{err.get('name')}: {err.get('error')}" for err in self.errors)
        super().__init__(f"Invalid entries in {registry}: {summary}")
