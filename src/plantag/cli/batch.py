"""Batch processing of JSONL item files."""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

import typer
from pydantic import ValidationError
from tqdm import tqdm

from ..errors import ConfigurationError
from ..pipeline import PlantItem, process_batch
from ..utils.logging import configure_json_logger, flush_handlers, generate_trace_id, log_event
from .common import CONFIG_FILE_OPTION, REGISTRY_DIR_OPTION, echo_json, load_registries

__all__ = ["batch_command", "read_items"]


def read_items(path: Path) -> Iterator[PlantItem]:
    """Yield the items of a JSONL file, skipping blank lines."""

    with path.open("r", encoding="utf-8") as handle:
        for line_number, line in enumerate(handle, start=1):
            if not line.strip():
                continue
            try:
                record = json.loads(line)
                yield PlantItem.model_validate(record)
            except (json.JSONDecodeError, ValidationError) as exc:
                raise typer.BadParameter(f"Invalid record at line {line_number} of {path}: {exc}") from exc


def batch_command(
    input_path: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSONL with {id, tag, discipline} records"),
    output_path: Path = typer.Option(..., "--output", dir_okay=False, help="Destination JSONL, one result per item"),
    tree_path: Optional[Path] = typer.Option(
        None, "--tree", dir_okay=False, help="Optional JSON file receiving the consolidated hierarchy tree"
    ),
    log_file: Optional[Path] = typer.Option(
        None, "--log-file", dir_okay=False, help="Write structured JSONL events (one item.processed per item)"
    ),
    progress: bool = typer.Option(True, "--progress/--no-progress", help="Show a progress bar on stderr"),
    registry_dir: Optional[Path] = REGISTRY_DIR_OPTION,
    config_file: Optional[Path] = CONFIG_FILE_OPTION,
) -> None:
    """Tokenize, classify and place every item of INPUT_PATH."""

    snapshot, tag_format = load_registries(registry_dir, config_file)
    items: List[PlantItem] = list(read_items(input_path))

    logger = configure_json_logger(log_file)
    trace_id = generate_trace_id()
    log_event(logger, "batch.start", trace_id=trace_id, input=str(input_path), items=len(items))

    def _progress(iterable: Any) -> Any:
        return tqdm(iterable, total=len(items), desc="Processing tags", unit="item", disable=not progress)

    try:
        results, tree = process_batch(
            items,
            snapshot,
            tag_format=tag_format,
            logger=logger.getChild("batch"),
            progress=_progress,
        )
    except ConfigurationError as exc:
        log_event(logger, "batch.failed", trace_id=trace_id, level=logging.ERROR, error=str(exc))
        flush_handlers(logger)
        typer.echo(f"Configuration error: {exc}", err=True)
        raise typer.Exit(code=2) from exc

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with output_path.open("w", encoding="utf-8") as handle:
        for result in results:
            handle.write(json.dumps(result.as_dict(), ensure_ascii=False) + "\n")

    if tree_path is not None:
        tree_path.parent.mkdir(parents=True, exist_ok=True)
        tree_path.write_text(json.dumps(tree.as_dict(), indent=2, ensure_ascii=False) + "\n", encoding="utf-8")

    buckets: Dict[str, int] = {}
    for result in results:
        if result.disposition is not None:
            key = result.disposition.quality_bucket.value
            buckets[key] = buckets.get(key, 0) + 1

    summary = {
        "output": str(output_path),
        "tree": str(tree_path) if tree_path is not None else None,
        "items": len(results),
        "buckets": buckets,
        "tree_nodes": len(tree),
    }
    log_event(logger, "batch.completed", trace_id=trace_id, **summary)
    flush_handlers(logger)
    echo_json(summary)
