"""Hierarchy placement: per-item chains and their consolidation."""
from __future__ import annotations

from .builder import HierarchyChainBuilder, synthesized_role_spec
from .consolidation import consolidate
from .nodes import LEAF_ROLE, HierarchyBuildResult, HierarchyNode, HierarchyTree

__all__ = [
    "LEAF_ROLE",
    "HierarchyBuildResult",
    "HierarchyChainBuilder",
    "HierarchyNode",
    "HierarchyTree",
    "consolidate",
    "synthesized_role_spec",
]
