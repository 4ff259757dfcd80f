"""Centralized configuration and resource resolution for plantag.

:func:`get_settings` returns the locations of the registry files consumed by
the tokenization core and :func:`get_tag_format` the separators and defaults
used when hierarchy tags are assembled. Both can be customized through
``PLANTAG_*`` environment variables or by pointing ``PLANTAG_CONFIG_FILE`` to a
TOML/YAML document with ``[paths]`` and ``[tag_format]`` sections.
"""
from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

__all__ = [
    "ResourcePaths",
    "TagFormat",
    "get_settings",
    "get_tag_format",
    "load_config_document",
    "reset_settings",
]

_PROJECT_ROOT = Path(__file__).resolve().parents[2]
_CONFIG_CACHE: Optional["ResourcePaths"] = None
_FORMAT_CACHE: Optional["TagFormat"] = None
_CONFIG_SOURCE: Optional[Path] = None
_FORMAT_SOURCE: Optional[Path] = None

_REGISTRY_FILES = {
    "codification_map": ("PLANTAG_CODIFICATION_MAP", "codification_map.json"),
    "token_regex_map": ("PLANTAG_TOKEN_REGEX_MAP", "token_regex_map.json"),
    "discipline_map": ("PLANTAG_DISCIPLINE_MAP", "discipline_map.json"),
    "entity_map": ("PLANTAG_ENTITY_MAP", "entity_map.json"),
    "discipline_hierarchy_map": ("PLANTAG_DISCIPLINE_HIERARCHY_MAP", "discipline_hierarchy_map.json"),
}


@dataclass(frozen=True)
class ResourcePaths:
    """Resolved filesystem locations for the registry files."""

    project_root: Path
    resources_dir: Path
    registry_dir: Path
    codification_map: Path
    token_regex_map: Path
    discipline_map: Path
    entity_map: Path
    discipline_hierarchy_map: Path

    def as_dict(self) -> Dict[str, str]:
        """Expose the resolved paths as plain strings (useful for logging)."""

        return {
            "project_root": str(self.project_root),
            "resources_dir": str(self.resources_dir),
            "registry_dir": str(self.registry_dir),
            "codification_map": str(self.codification_map),
            "token_regex_map": str(self.token_regex_map),
            "discipline_map": str(self.discipline_map),
            "entity_map": str(self.entity_map),
            "discipline_hierarchy_map": str(self.discipline_hierarchy_map),
        }

    def with_registry_dir(self, registry_dir: str | Path) -> "ResourcePaths":
        """Return a copy reading every registry file from ``registry_dir``."""

        directory = Path(registry_dir).expanduser().resolve()
        files = {name: directory / default_name for name, (_, default_name) in _REGISTRY_FILES.items()}
        return replace(self, registry_dir=directory, **files)

    def registry_files(self) -> Dict[str, Path]:
        return {
            "codification_map": self.codification_map,
            "token_regex_map": self.token_regex_map,
            "discipline_map": self.discipline_map,
            "entity_map": self.entity_map,
            "discipline_hierarchy_map": self.discipline_hierarchy_map,
        }


@dataclass(frozen=True)
class TagFormat:
    """Separators and defaults applied when hierarchy tags are assembled."""

    structural_separator: str = "_"
    suffix_separator: str = "."
    default_discipline: str = "ME"
    default_entity: str = "SDE"

    def as_dict(self) -> Dict[str, str]:
        return {
            "structural_separator": self.structural_separator,
            "suffix_separator": self.suffix_separator,
            "default_discipline": self.default_discipline,
            "default_entity": self.default_entity,
        }


def _normalize_path(value: Optional[str | Path], *, base: Optional[Path]) -> Optional[Path]:
    if value is None or value == "":
        return None
    candidate = Path(value).expanduser()
    if not candidate.is_absolute():
        if base is not None:
            candidate = base / candidate
        if not candidate.is_absolute():
            candidate = _PROJECT_ROOT / candidate
    return candidate.resolve()


def load_config_document(path: Path) -> Mapping[str, Any]:
    """Parse a TOML or YAML configuration document."""

    if not path.exists():
        raise FileNotFoundError(f"Config file '{path}' does not exist")
    suffix = path.suffix.lower()
    if suffix == ".toml":
        with path.open("rb") as handle:
            return tomllib.load(handle)
    if suffix in {".yaml", ".yml"}:
        with path.open("r", encoding="utf-8") as handle:
            loaded = yaml.safe_load(handle)
            return loaded or {}
    raise ValueError(f"Unsupported config file format: '{suffix}'")


def _coalesce_mapping(source: Any) -> Mapping[str, Any]:
    if not isinstance(source, Mapping):
        return {}
    return source


def _read_config(config_file: Optional[Path]) -> tuple[Mapping[str, Any], Optional[Path]]:
    if config_file is None:
        return {}, None
    resolved = _normalize_path(config_file, base=_PROJECT_ROOT)
    if resolved is None:
        return {}, None
    return load_config_document(resolved), resolved.parent


def _build_paths(config_file: Optional[Path]) -> ResourcePaths:
    config_data, config_dir = _read_config(config_file)
    paths_section = _coalesce_mapping(config_data.get("paths"))
    env = os.environ

    resources_dir = _normalize_path(
        env.get("PLANTAG_RESOURCES_DIR") or paths_section.get("resources"),
        base=config_dir,
    ) or (_PROJECT_ROOT / "resources").resolve()

    registry_dir = _normalize_path(
        env.get("PLANTAG_REGISTRY_DIR") or paths_section.get("registries"),
        base=config_dir,
    ) or (resources_dir / "registries").resolve()

    files: Dict[str, Path] = {}
    for field_name, (env_name, default_name) in _REGISTRY_FILES.items():
        files[field_name] = _normalize_path(
            env.get(env_name) or paths_section.get(field_name),
            base=config_dir,
        ) or (registry_dir / default_name).resolve()

    return ResourcePaths(
        project_root=_PROJECT_ROOT.resolve(),
        resources_dir=resources_dir,
        registry_dir=registry_dir,
        **files,
    )


def _build_tag_format(config_file: Optional[Path]) -> TagFormat:
    config_data, _ = _read_config(config_file)
    section = _coalesce_mapping(config_data.get("tag_format"))
    env = os.environ
    defaults = TagFormat()

    def pick(env_name: str, key: str, default: str) -> str:
        value = env.get(env_name)
        if value is None:
            value = section.get(key)
        if value is None:
            return default
        return str(value)

    return TagFormat(
        structural_separator=pick("PLANTAG_STRUCTURAL_SEPARATOR", "structural_separator", defaults.structural_separator),
        suffix_separator=pick("PLANTAG_SUFFIX_SEPARATOR", "suffix_separator", defaults.suffix_separator),
        default_discipline=pick("PLANTAG_DEFAULT_DISCIPLINE", "default_discipline", defaults.default_discipline).upper(),
        default_entity=pick("PLANTAG_DEFAULT_ENTITY", "default_entity", defaults.default_entity).upper(),
    )


def _env_config_file() -> Optional[Path]:
    env_path = os.getenv("PLANTAG_CONFIG_FILE")
    return Path(env_path).expanduser() if env_path else None


def get_settings(*, refresh: bool = False, config_file: str | Path | None = None) -> ResourcePaths:
    """Return the cached :class:`ResourcePaths` configuration.

    Parameters
    ----------
    refresh:
        When ``True`` the cached configuration is discarded and recomputed.
    config_file:
        Optional explicit path to the configuration document. When provided the
        returned instance is not cached globally, allowing callers (e.g. tests)
        to override settings temporarily.
    """

    global _CONFIG_CACHE, _CONFIG_SOURCE

    if config_file is not None:
        return _build_paths(Path(config_file).expanduser())

    source_path = _env_config_file()
    if refresh or _CONFIG_CACHE is None or _CONFIG_SOURCE != source_path:
        _CONFIG_CACHE = _build_paths(source_path)
        _CONFIG_SOURCE = source_path
    return _CONFIG_CACHE


def get_tag_format(*, refresh: bool = False, config_file: str | Path | None = None) -> TagFormat:
    """Return the cached :class:`TagFormat`, resolved like :func:`get_settings`."""

    global _FORMAT_CACHE, _FORMAT_SOURCE

    if config_file is not None:
        return _build_tag_format(Path(config_file).expanduser())

    source_path = _env_config_file()
    if refresh or _FORMAT_CACHE is None or _FORMAT_SOURCE != source_path:
        _FORMAT_CACHE = _build_tag_format(source_path)
        _FORMAT_SOURCE = source_path
    return _FORMAT_CACHE


def reset_settings() -> None:
    """Clear the cached configuration (mainly useful for tests)."""

    global _CONFIG_CACHE, _CONFIG_SOURCE, _FORMAT_CACHE, _FORMAT_SOURCE
    _CONFIG_CACHE = None
    _CONFIG_SOURCE = None
    _FORMAT_CACHE = None
    _FORMAT_SOURCE = None
