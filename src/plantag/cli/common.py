"""Helpers shared by the command modules."""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional, Tuple

import typer

from ..config import ResourcePaths, TagFormat, get_settings, get_tag_format
from ..errors import ConfigurationError
from ..registry import RegistrySnapshot, load_snapshot

__all__ = ["REGISTRY_DIR_OPTION", "CONFIG_FILE_OPTION", "echo_json", "resolve_paths", "load_registries"]

REGISTRY_DIR_OPTION = typer.Option(
    None,
    "--registry-dir",
    exists=True,
    file_okay=False,
    help="Directory holding the five registry JSON files (overrides configuration).",
)
CONFIG_FILE_OPTION = typer.Option(
    None,
    "--config-file",
    exists=True,
    dir_okay=False,
    readable=True,
    help="Alternative TOML/YAML configuration instead of environment variables.",
)


def echo_json(payload: Any) -> None:
    typer.echo(json.dumps(payload, indent=2, ensure_ascii=False))


def resolve_paths(registry_dir: Optional[Path], config_file: Optional[Path]) -> ResourcePaths:
    settings = get_settings(config_file=config_file) if config_file else get_settings()
    if registry_dir is not None:
        settings = settings.with_registry_dir(registry_dir)
    return settings


def load_registries(
    registry_dir: Optional[Path], config_file: Optional[Path]
) -> Tuple[RegistrySnapshot, TagFormat]:
    """Load the registry snapshot and tag format, exiting with code 2 on bad configuration."""

    try:
        snapshot = load_snapshot(resolve_paths(registry_dir, config_file))
    except ConfigurationError as exc:
        typer.echo(f"Configuration error: {exc}", err=True)
        raise typer.Exit(code=2) from exc
    tag_format = get_tag_format(config_file=config_file) if config_file else get_tag_format()
    return snapshot, tag_format
