"""
Desired-state loader — reads config.toml (or YAML) into domain models.

This is the single entry point for loading the desired-state document.
It parses TOML or YAML, validates against Pydantic schemas, and returns
a typed DesiredState. Relative store paths in the ``system`` table are
resolved against the document's directory.
"""

from __future__ import annotations

import logging
import tomllib
from pathlib import Path

import yaml

from declarative_alpine.core.errors import DeserializationError
from declarative_alpine.core.models.desired import DesiredState, SystemConfig

logger = logging.getLogger(__name__)

# Default config filename
DEFAULT_CONFIG_FILE = "config.toml"

_YAML_SUFFIXES = (".yml", ".yaml")
_PATH_FIELDS = ("world_file", "passwd_file", "shadow_file", "group_file", "lock_file", "audit_log")


def _parse(path: Path, raw: str) -> object:
    if path.suffix in _YAML_SUFFIXES:
        try:
            return yaml.safe_load(raw)
        except yaml.YAMLError as e:
            raise DeserializationError(f"Invalid YAML in {path}: {e}") from e
    try:
        return tomllib.loads(raw)
    except tomllib.TOMLDecodeError as e:
        raise DeserializationError(f"Invalid TOML in {path}: {e}") from e


def _resolve_paths(system: SystemConfig, base: Path) -> SystemConfig:
    updates = {}
    for name in _PATH_FIELDS:
        value = getattr(system, name)
        if value is not None and not value.is_absolute():
            updates[name] = base / value
    return system.model_copy(update=updates) if updates else system


def load_desired_state(path: Path | None = None) -> DesiredState:
    """Load and validate the desired-state document.

    Args:
        path: Path to the document (default: ./config.toml).

    Returns:
        Validated DesiredState model.

    Raises:
        DeserializationError: If the file is missing, unreadable or invalid.
    """
    if path is None:
        path = Path(DEFAULT_CONFIG_FILE)

    if not path.is_file():
        raise DeserializationError(f"Config file not found: {path}")

    logger.debug("Loading desired state from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise DeserializationError(f"Cannot read {path}: {e}") from e

    data = _parse(path, raw)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise DeserializationError(f"Expected a mapping in {path}, got {type(data).__name__}")

    try:
        desired = DesiredState.model_validate(data)
    except Exception as e:
        raise DeserializationError(f"Invalid desired state in {path}: {e}") from e

    desired.system = _resolve_paths(desired.system, path.parent.resolve())

    logger.info(
        "Loaded desired state: %s",
        ", ".join(desired.managed_domains) or "no managed domains",
    )
    return desired
