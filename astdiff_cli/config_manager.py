"""Configuration manager for astdiff using a TOML file."""

from __future__ import annotations

import copy
import logging
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple

import toml

from . import config
from .parser import SOURCE_TYPES, ParseOptions, normalize_ecma_version

logger = logging.getLogger(__name__)


DEFAULT_CONFIG: Dict[str, Dict[str, Any]] = {
    "parser": {
        "ecma_version": 2020,
        "source_type": "module",
    },
    "watch": {
        "debounce": 1.0,
    },
}


def _coerce_ecma_version(value: Any) -> Any:
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value)
    normalize_ecma_version(value)
    return value


def _coerce_source_type(value: Any) -> str:
    value = str(value).strip().lower()
    if value not in SOURCE_TYPES:
        raise ValueError(f"source_type must be one of {', '.join(SOURCE_TYPES)}")
    return value


def _coerce_debounce(value: Any) -> float:
    seconds = float(value)
    if seconds <= 0:
        raise ValueError("debounce must be a positive number of seconds")
    return seconds


# (section, key) -> validator returning the value to store
SETTINGS: Dict[Tuple[str, str], Callable[[Any], Any]] = {
    ("parser", "ecma_version"): _coerce_ecma_version,
    ("parser", "source_type"): _coerce_source_type,
    ("watch", "debounce"): _coerce_debounce,
}


def _config_file(path: Optional[Path]) -> Path:
    return path if path is not None else config.CONFIG_FILE


def load_full_config(path: Optional[Path] = None) -> Dict[str, Any]:
    """Load the entire TOML config (all sections), without defaults."""
    config_file = _config_file(path)
    if not config_file.exists():
        return {}
    try:
        with open(config_file, "r", encoding="utf-8") as f:
            return toml.load(f)
    except toml.TomlDecodeError as exc:
        logger.warning("Ignoring unreadable config file %s: %s", config_file, exc)
        return {}


def load_section(section: str, path: Optional[Path] = None) -> Dict[str, Any]:
    """Return one section merged over its defaults."""
    merged = copy.deepcopy(DEFAULT_CONFIG.get(section, {}))
    merged.update(load_full_config(path).get(section, {}))
    return merged


def effective_config(path: Optional[Path] = None) -> Dict[str, Dict[str, Any]]:
    """All known sections with defaults filled in."""
    return {section: load_section(section, path) for section in DEFAULT_CONFIG}


def save_setting(section: str, key: str, value: Any, path: Optional[Path] = None) -> Any:
    """Validate and persist one setting, preserving the other sections.

    Returns:
        The value as stored.

    Raises:
        KeyError: for an unknown ``section.key``.
        ValueError: if *value* is not valid for the setting.
    """
    validator = SETTINGS.get((section, key))
    if validator is None:
        known = ", ".join(f"{s}.{k}" for s, k in SETTINGS)
        raise KeyError(f"Unknown setting '{section}.{key}'. Known settings: {known}")
    stored = validator(value)

    config_file = _config_file(path)
    full = load_full_config(config_file)
    full.setdefault(section, {})[key] = stored
    config_file.parent.mkdir(parents=True, exist_ok=True)
    with open(config_file, "w", encoding="utf-8") as f:
        toml.dump(full, f)
    return stored


def parser_options(
    ecma_version: Optional[str] = None,
    source_type: Optional[str] = None,
    path: Optional[Path] = None,
) -> ParseOptions:
    """Build parser options from the config file, with explicit overrides."""
    section = load_section("parser", path)
    return ParseOptions(
        ecma_version=_coerce_ecma_version(ecma_version if ecma_version is not None else section["ecma_version"]),
        source_type=_coerce_source_type(source_type if source_type is not None else section["source_type"]),
    )


def watch_debounce(path: Optional[Path] = None) -> float:
    return _coerce_debounce(load_section("watch", path)["debounce"])
