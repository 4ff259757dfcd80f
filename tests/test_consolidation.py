from __future__ import annotations

from plantag.config import TagFormat
from plantag.hierarchy import HierarchyBuildResult, HierarchyChainBuilder, HierarchyNode, consolidate
from plantag.tokenization import TokenizationEngine


def _chain(registries, tag: str, item_id: str) -> HierarchyBuildResult:
    tokens = TokenizationEngine(registries).tokenize(tag)
    return HierarchyChainBuilder(registries, TagFormat()).build(tokens, item_id=item_id)


def test_shared_ancestors_are_merged(registries) -> None:
    chains = [
        _chain(registries, "AGL01_PU02_PS03_EQ04_C001_ME_SDE", "a"),
        _chain(registries, "AGL01_PU02_PS03_EQ04_C002_ME_SDE", "b"),
        _chain(registries, "AGL01_PU02_PS04_EQ11_C003_ME_SDE", "c"),
    ]
    tree = consolidate(chains)

    assert len(tree.roots) == 1
    root = tree.roots[0]
    assert root.tag == "/AGL01"
    assert root.parent_tag == ""
    assert len(root.children) == 1
    site = root.children[0]
    assert [child.tag for child in site.children] == ["/AGL01_PU02_PS03.SDE", "/AGL01_PU02_PS04.SDE"]
    assert sorted(leaf.id for leaf in tree.leaves()) == ["a", "b", "c"]
    zone = tree.find("/agl01_pu02_ps03_eq04.me.sde")
    assert zone is not None
    assert [child.id for child in zone.children] == ["a", "b"]


def test_real_leaves_with_the_same_tag_stay_distinct(registries) -> None:
    tree = consolidate(
        [
            _chain(registries, "AGL01_PU02_PS03_EQ04_C001_ME_SDE", "first"),
            _chain(registries, "AGL01_PU02_PS03_EQ04_C001_ME_SDE", "second"),
        ]
    )

    leaves = tree.leaves()
    assert [leaf.id for leaf in leaves] == ["first", "second"]
    assert leaves[0].tag == leaves[1].tag
    assert len(tree) == 6


def test_depth_is_recomputed_from_the_roots() -> None:
    shallow = [
        HierarchyNode(role_label="WORL", tag="/A", depth=0),
        HierarchyNode(role_label="EQUI", tag="/A_X", parent_tag="/A", depth=1, is_virtual=False, id="1"),
    ]
    deep = [
        HierarchyNode(role_label="WORL", tag="/A", depth=0),
        HierarchyNode(role_label="SITE", tag="/A_B", parent_tag="/A", depth=1),
        HierarchyNode(role_label="EQUI", tag="/A_B_Y", parent_tag="/A_B", depth=7, is_virtual=False, id="2"),
    ]
    tree = consolidate([shallow, deep])

    depths = {node.tag: node.depth for node in tree.walk()}
    assert depths == {"/A": 0, "/A_X": 1, "/A_B": 1, "/A_B_Y": 2}
    assert tree.find("/A_B_Y").parent_tag == "/A_B"
    assert deep[-1].depth == 7


def test_invalid_results_are_skipped(registries) -> None:
    invalid = HierarchyBuildResult(item_id="broken")
    tree = consolidate([invalid, _chain(registries, "AGL01_PU02_PS03_EQ04_C001_ME_SDE", "ok")])

    assert [leaf.id for leaf in tree.leaves()] == ["ok"]


def test_tree_serialises_nested_children(registries) -> None:
    tree = consolidate([_chain(registries, "AGL01_PU02_PS03_EQ04_C001_ME_SDE", "a")])
    payload = tree.as_dict()

    node = payload["roots"][0]
    depth = 0
    while node["children"]:
        node = node["children"][0]
        depth += 1
    assert depth == 4
    assert node["id"] == "a"
    assert node["is_virtual"] is False
