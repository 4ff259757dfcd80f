from pathlib import Path

from plantag.config import get_settings
from plantag.disposition import QualityBucket
from plantag.pipeline import ItemResults, PlantItem, ResultKind, TagProcessor, process_batch
from plantag.registry import registry_store_for

from conftest import read_events


def test_plant_item_normalises_blank_fields() -> None:
    item = PlantItem.model_validate({"id": 7, "tag": None, "discipline": "  ", "other": "ignored"})

    assert item.id == "7"
    assert item.tag == ""
    assert item.discipline is None
    assert PlantItem(id="").id


def test_processor_fills_every_result_kind(registries) -> None:
    item = PlantItem(id="item-1", tag="AGL01_PU02_PS03_EQ04_C001_ME_SDE", discipline="ME")

    results = TagProcessor(registries).process(item)

    assert isinstance(results, ItemResults)
    assert results.get(ResultKind.TOKENIZATION).score_0_to_100 == 79
    assert results.get("disposition").quality_bucket is QualityBucket.FINAL_IMPORT
    assert results.hierarchy.leaf_tag == "/AGL01_PU02_PS03_EQ04_C001.ME.SDE"
    payload = results.as_dict()
    assert payload["id"] == "item-1"
    assert payload["disposition"]["route"] == "ProductionHierarchy"


def test_processor_logs_one_event_per_item(registries, log_stream) -> None:
    TagProcessor(registries).process(PlantItem(id="a", tag="AGL01_PU02"), trace_id="trace-1")

    events = [event for event in read_events(log_stream) if event["event"] == "item.processed"]
    assert len(events) == 1
    event = events[0]
    assert event["trace_id"] == "trace-1"
    assert event["item_id"] == "a"
    assert event["bucket"] == "MdbLimbo"
    assert event["leaf_tag"]


def test_empty_tag_still_gets_a_disposition(registries) -> None:
    results = TagProcessor(registries).process(PlantItem(id="9", tag=""))

    assert results.tokenization.errors
    assert results.disposition.raw_input == "UNNAMED_9"
    assert results.disposition.quality_bucket is QualityBucket.MDB_LIMBO
    assert not results.hierarchy.is_valid


def test_batch_returns_results_and_tree(registries) -> None:
    items = [
        {"id": "a", "tag": "AGL01_PU02_PS03_EQ04_C001_ME_SDE"},
        PlantItem(id="b", tag="AGL01_PU02_PS03_EQ04_C002_ME_SDE"),
        {"id": "c", "tag": ""},
    ]
    seen = []

    def progress(iterable):
        for item in iterable:
            seen.append(item)
            yield item

    results, tree = process_batch(items, registries, progress=progress)

    assert [result.item.id for result in results] == ["a", "b", "c"]
    assert len(seen) == 3
    assert sorted(leaf.id for leaf in tree.leaves()) == ["a", "b"]
    assert len(tree.roots) == 1


def test_batch_reads_from_a_registry_store(registry_dir: Path) -> None:
    store = registry_store_for(get_settings().with_registry_dir(registry_dir))

    results, tree = process_batch([{"id": "x", "tag": "AGL01_PU02_PS03_EQ04_C001_ME_SDE"}], store)

    assert results[0].disposition.quality_bucket is QualityBucket.FINAL_IMPORT
    assert [leaf.id for leaf in tree.leaves()] == ["x"]
