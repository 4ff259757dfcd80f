"""Hierarchy nodes, per-item chains and the consolidated tree."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional

__all__ = ["LEAF_ROLE", "HierarchyNode", "HierarchyBuildResult", "HierarchyTree"]

LEAF_ROLE = "EQUI"


@dataclass
class HierarchyNode:
    """One level of a placement chain.

    Only the ``EQUI`` node of a chain is real and carries the item id; the
    levels above it are virtual containers identified by their tag.
    """

    role_label: str
    tag: str
    parent_tag: str = ""
    depth: int = 0
    is_virtual: bool = True
    id: str = ""
    parent_id: Optional[str] = None
    children: List["HierarchyNode"] = field(default_factory=list)

    def copy_shallow(self) -> "HierarchyNode":
        """Return a detached copy without children."""

        return HierarchyNode(
            role_label=self.role_label,
            tag=self.tag,
            parent_tag=self.parent_tag,
            depth=self.depth,
            is_virtual=self.is_virtual,
            id=self.id,
            parent_id=self.parent_id,
        )

    def as_dict(self, *, recursive: bool = True) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "id": self.id,
            "role_label": self.role_label,
            "tag": self.tag,
            "parent_tag": self.parent_tag,
            "parent_id": self.parent_id,
            "depth": self.depth,
            "is_virtual": self.is_virtual,
        }
        if recursive:
            payload["children"] = [child.as_dict() for child in self.children]
        return payload


@dataclass
class HierarchyBuildResult:
    """Chain built for one item, with diagnostics."""

    item_id: str = ""
    discipline: str = ""
    chain: List[HierarchyNode] = field(default_factory=list)
    messages: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    is_valid: bool = False

    def add_message(self, text: str) -> None:
        if text and text.strip():
            self.messages.append(text)

    def add_warning(self, text: str) -> None:
        if text and text.strip():
            self.warnings.append(text)

    def add_error(self, text: str) -> None:
        if text and text.strip():
            self.errors.append(text)

    @property
    def leaf(self) -> Optional[HierarchyNode]:
        return self.chain[-1] if self.chain else None

    @property
    def leaf_tag(self) -> str:
        leaf = self.leaf
        return leaf.tag if leaf is not None else ""

    def as_dict(self) -> Dict[str, Any]:
        return {
            "item_id": self.item_id,
            "discipline": self.discipline,
            "leaf_tag": self.leaf_tag,
            "chain": [node.as_dict(recursive=False) for node in self.chain],
            "messages": list(self.messages),
            "warnings": list(self.warnings),
            "errors": list(self.errors),
            "is_valid": self.is_valid,
        }


@dataclass
class HierarchyTree:
    """Forest of consolidated nodes (usually a single root per plant)."""

    roots: List[HierarchyNode] = field(default_factory=list)

    def walk(self) -> Iterator[HierarchyNode]:
        """Depth-first, pre-order traversal."""

        stack = list(reversed(self.roots))
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def find(self, tag: str) -> Optional[HierarchyNode]:
        wanted = tag.strip().upper()
        for node in self.walk():
            if node.tag.upper() == wanted:
                return node
        return None

    def leaves(self) -> List[HierarchyNode]:
        return [node for node in self.walk() if not node.is_virtual]

    def __len__(self) -> int:
        return sum(1 for _ in self.walk())

    def as_dict(self) -> Dict[str, Any]:
        return {"roots": [root.as_dict() for root in self.roots]}
