"""Merge per-item chains into one shared tree.

Virtual nodes are shared by tag (case-insensitive): the first chain that
introduces a tag decides where that node hangs. Real nodes are never merged,
two items with the same leaf tag give two sibling leaves. Children keep the
order in which they were first seen and depths are recomputed from the roots.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Sequence, Union

from .nodes import HierarchyBuildResult, HierarchyNode, HierarchyTree

__all__ = ["consolidate"]

LOGGER = logging.getLogger(__name__)

ChainLike = Union[HierarchyBuildResult, Sequence[HierarchyNode]]


def _chain_of(item: ChainLike) -> Sequence[HierarchyNode]:
    if isinstance(item, HierarchyBuildResult):
        return item.chain if item.is_valid else ()
    return item


def _attach(parent: Optional[HierarchyNode], node: HierarchyNode, roots: List[HierarchyNode]) -> None:
    if parent is None:
        node.parent_tag = ""
        node.parent_id = None
        roots.append(node)
        return
    node.parent_tag = parent.tag
    node.parent_id = parent.id or None
    parent.children.append(node)


def _renumber(roots: List[HierarchyNode]) -> None:
    stack = [(root, 0) for root in reversed(roots)]
    while stack:
        node, depth = stack.pop()
        node.depth = depth
        stack.extend((child, depth + 1) for child in reversed(node.children))


def consolidate(chains: Iterable[ChainLike]) -> HierarchyTree:
    """Build a :class:`HierarchyTree` from chains or build results.

    Invalid build results and empty chains are skipped.
    """

    roots: List[HierarchyNode] = []
    shared: Dict[str, HierarchyNode] = {}
    merged = 0
    leaves = 0

    for item in chains:
        parent: Optional[HierarchyNode] = None
        for node in _chain_of(item):
            if node.is_virtual:
                key = node.tag.strip().upper()
                existing = shared.get(key)
                if existing is not None:
                    merged += 1
                    parent = existing
                    continue
                copy = node.copy_shallow()
                shared[key] = copy
            else:
                copy = node.copy_shallow()
                leaves += 1
            _attach(parent, copy, roots)
            parent = copy

    _renumber(roots)
    LOGGER.debug(
        "hierarchy.consolidated",
        extra={"extra_fields": {"roots": len(roots), "virtual_nodes": len(shared), "leaves": leaves, "merged": merged}},
    )
    return HierarchyTree(roots=roots)
