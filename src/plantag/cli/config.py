"""Utility commands to inspect and validate plantag resource paths."""
from __future__ import annotations

from pathlib import Path
from typing import Dict, Optional, Tuple

import typer

from ..config import ResourcePaths, get_tag_format
from ..errors import ConfigurationError, RegistryValidationError
from ..registry import load_snapshot
from .common import CONFIG_FILE_OPTION, REGISTRY_DIR_OPTION, echo_json, resolve_paths

__all__ = ["app"]

app = typer.Typer(
    help="Diagnostics for the registry configuration.",
    add_completion=False,
)


def _inventory(paths: ResourcePaths) -> Dict[str, Dict[str, str | bool]]:
    def describe(path_str: str) -> Tuple[str, bool, str]:
        path = Path(path_str)
        if path.is_dir():
            kind = "directory"
        elif path.is_file():
            kind = "file"
        else:
            kind = "missing"
        return str(path), path.exists(), kind

    inventory: Dict[str, Dict[str, str | bool]] = {}
    for key, value in paths.as_dict().items():
        resolved, exists, kind = describe(value)
        inventory[key] = {"path": resolved, "exists": exists, "kind": kind}
    return inventory


@app.command("paths")
def show_paths(
    config_file: Optional[Path] = CONFIG_FILE_OPTION,
    registry_dir: Optional[Path] = REGISTRY_DIR_OPTION,
) -> None:
    """Print the resolved resource paths and tag format as JSON."""

    settings = resolve_paths(registry_dir, config_file)
    tag_format = get_tag_format(config_file=config_file) if config_file else get_tag_format()
    echo_json(
        {
            "config_source": str(config_file) if config_file else "environment",
            "paths": _inventory(settings),
            "tag_format": tag_format.as_dict(),
        }
    )


@app.command("check")
def check_registries(
    config_file: Optional[Path] = CONFIG_FILE_OPTION,
    registry_dir: Optional[Path] = REGISTRY_DIR_OPTION,
) -> None:
    """Load every registry and report entry counts, exiting with code 1 on failure."""

    settings = resolve_paths(registry_dir, config_file)
    try:
        snapshot = load_snapshot(settings)
    except RegistryValidationError as exc:
        echo_json({"status": "invalid", "registry": exc.registry, "errors": exc.errors})
        raise typer.Exit(code=1) from exc
    except ConfigurationError as exc:
        echo_json({"status": "error", "error": str(exc)})
        raise typer.Exit(code=1) from exc

    payload = {"status": "ok", **snapshot.summary()}
    payload["codification_types"] = snapshot.codification.counts()
    payload["hierarchy_disciplines_list"] = snapshot.hierarchy.disciplines()
    echo_json(payload)
