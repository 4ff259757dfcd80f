from __future__ import annotations

import pytest

from plantag.config import TagFormat
from plantag.errors import ConfigurationError
from plantag.hierarchy import HierarchyChainBuilder
from plantag.tokenization import TokenizationEngine, TokenizationResult

FULL_TAG = "AGL01_PU02_PS03_EQ04_C001_ME_SDE"


def _build(registries, tag: str, *, tag_format: TagFormat | None = None, **kwargs):
    tokens = TokenizationEngine(registries).tokenize(tag)
    builder = HierarchyChainBuilder(registries, tag_format or TagFormat())
    return builder.build(tokens, **kwargs)


def test_chain_for_complete_tag(registries) -> None:
    result = _build(registries, FULL_TAG, item_id="item-1")

    assert result.is_valid
    assert result.discipline == "ME"
    assert [node.role_label for node in result.chain] == ["WORL", "SITE", "SUB_SITE", "ZONE", "EQUI"]
    assert [node.tag for node in result.chain] == [
        "/AGL01",
        "/AGL01_PU02.SDE",
        "/AGL01_PU02_PS03.SDE",
        "/AGL01_PU02_PS03_EQ04.ME.SDE",
        "/AGL01_PU02_PS03_EQ04_C001.ME.SDE",
    ]
    assert result.leaf_tag == "/AGL01_PU02_PS03_EQ04_C001.ME.SDE"
    assert result.messages[-1] == "Hierarchy built for discipline 'ME' with 5 levels."


def test_chain_shape(registries) -> None:
    chain = _build(registries, FULL_TAG, item_id="item-1").chain

    assert [node.is_virtual for node in chain] == [True, True, True, True, False]
    assert [node.depth for node in chain] == list(range(len(chain)))
    assert chain[0].parent_tag == ""
    for parent, child in zip(chain, chain[1:]):
        assert child.parent_tag == parent.tag
    assert chain[-1].id == "item-1"
    assert all(node.id == "" for node in chain[:-1])


def test_missing_base_is_rendered_inline(registries) -> None:
    result = _build(registries, "AGL01_PU02_PS03_EQ04_ME_SDE", item_id="x")

    assert result.leaf_tag == "/AGL01_PU02_PS03_EQ04_MISSING_COMPONENT.ME.SDE"
    assert "'EQUI' missing base 'Component', using 'MISSING_COMPONENT'." in result.messages


def test_missing_suffix_uses_defaults(registries) -> None:
    result = _build(registries, "AGL01_PU02", item_id="x")

    assert result.discipline == "ME"
    assert result.chain[1].tag == "/AGL01_PU02.SDE"
    assert any(
        "'SITE' missing suffix 'Entity', defaulting to 'SDE'." in message and "(role spec from DEFAULT)" in message
        for message in result.messages
    )


def test_explicit_discipline_takes_precedence(registries) -> None:
    result = _build(registries, FULL_TAG, item_id="x", discipline="st")

    assert result.discipline == "ST"
    assert [node.role_label for node in result.chain] == ["WORL", "SITE", "EQUI"]
    assert result.chain[-1].is_virtual is False


def test_unknown_discipline_falls_back_to_default(registries) -> None:
    result = _build(registries, FULL_TAG, item_id="x", discipline="XY")

    assert result.is_valid
    assert any("Discipline 'XY' not found" in warning for warning in result.warnings)
    assert len(result.chain) == 5


def test_missing_discipline_and_default_raise(make_registries) -> None:
    registries = make_registries(hierarchy={"ME": {"Hierarchy": ["WORL", "EQUI"], "Tokens": {}}})

    with pytest.raises(ConfigurationError):
        _build(registries, FULL_TAG, item_id="x", discipline="EL")


def test_synthesized_templates_when_no_role_spec(make_registries) -> None:
    registries = make_registries(
        hierarchy={"DEFAULT": {"Hierarchy": ["WORL", "SITE", "SUB_SITE", "ZONE", "EQUI"], "Tokens": {}}}
    )
    result = _build(registries, FULL_TAG, item_id="x")

    assert [node.tag for node in result.chain] == [
        "/AGL01",
        "/AGL01_PU02",
        "/AGL01_PU02_PS03",
        "/AGL01_PU02_PS03_EQ04",
        "/AGL01_PU02_PS03_EQ04_C001",
    ]


def test_separators_come_from_tag_format(registries) -> None:
    tag_format = TagFormat(structural_separator="-", suffix_separator="_")
    result = _build(registries, FULL_TAG, tag_format=tag_format, item_id="x")

    assert result.leaf_tag == "/AGL01-PU02-PS03-EQ04-C001_ME_SDE"


def test_no_tokens_is_an_error_on_the_result(registries) -> None:
    result = HierarchyChainBuilder(registries, TagFormat()).build(TokenizationResult(), item_id="x")

    assert not result.is_valid
    assert result.errors
    assert result.chain == []


@pytest.mark.parametrize(
    "roles",
    [
        ["WORL", "SITE", "ZONE"],
        ["WORL", "STRU", "EQUI"],
    ],
)
def test_role_list_needs_exactly_one_leaf(make_registries, roles) -> None:
    registries = make_registries(hierarchy={"DEFAULT": {"Hierarchy": roles, "Tokens": {}}})

    with pytest.raises(ConfigurationError, match="exactly one EQUI role"):
        _build(registries, FULL_TAG, item_id="x")


def test_legacy_leaf_role_is_the_single_real_node(make_registries) -> None:
    registries = make_registries(hierarchy={"DEFAULT": {"Hierarchy": ["WORL", "STRU"], "Tokens": {}}})
    result = _build(registries, FULL_TAG, item_id="x")

    assert [node.role_label for node in result.chain] == ["WORL", "EQUI"]
    assert [node.is_virtual for node in result.chain] == [True, False]
