"""Configuration loading and input source helpers."""
from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Iterator, Mapping, Optional

import yaml
from pydantic import ValidationError

from .common.config_validator import RepricerConfig, load_and_validate_config
from .errors import ConfigurationError


# Environment variable -> (section, key)
ENV_OVERRIDES = {
    "REPRICER_IN_FILE": ("paths", "input_file"),
    "REPRICER_OUT_DIR": ("paths", "output_dir"),
    "REPRICER_LOGS_DIR": ("paths", "logs_dir"),
    "REPRICER_TEST_SIZE": ("run", "sample_size"),
    "REPRICER_EMIT_FULL": ("run", "emit_full"),
    "REPRICER_VAT_RATE": ("vat", "rate"),
}

_NULL_WORDS = {"", "none", "null", "off", "false", "0"}


def load_config(path: str | Path) -> Dict:
    """Load a YAML configuration file."""

    with open(path, "r", encoding="utf-8") as stream:
        return yaml.safe_load(stream) or {}


def ensure_directory(directory: str | Path) -> Path:
    """Ensure that the directory exists."""

    path = Path(directory)
    path.mkdir(parents=True, exist_ok=True)
    return path


def apply_env_overrides(config: Dict[str, Any], environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """Overlay ``REPRICER_*`` environment variables on a raw config mapping.

    Values stay strings except ``REPRICER_VAT_RATE`` where an empty/none/off
    value disables VAT handling; pydantic performs the remaining coercion.
    """

    env = os.environ if environ is None else environ
    merged = {section: dict(values or {}) for section, values in (config or {}).items()}
    for var, (section, key) in ENV_OVERRIDES.items():
        if var not in env:
            continue
        value: Any = env[var].strip()
        if var == "REPRICER_VAT_RATE" and value.lower() in _NULL_WORDS:
            value = None
        merged.setdefault(section, {})[key] = value
    return merged


def resolve_config(
    config_path: Optional[str | Path] = None,
    overrides: Optional[Dict[str, Dict[str, Any]]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> RepricerConfig:
    """Build the validated run configuration: YAML file, then env, then explicit overrides."""

    raw: Dict[str, Any] = {}
    if config_path is not None:
        path = Path(config_path)
        if not path.exists():
            raise ConfigurationError(f"Config file not found: {path}")
        raw = load_config(path)
    raw = apply_env_overrides(raw, environ)
    for section, values in (overrides or {}).items():
        for key, value in values.items():
            if value is not None:
                raw.setdefault(section, {})[key] = value
    try:
        return load_and_validate_config(raw)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid configuration: {exc}") from exc


def open_local_source(path: str | Path) -> Iterator[str]:
    """Yield the physical lines of a local export file.

    Line endings are kept; the assembler normalizes them. ``newline=""``
    keeps carriage returns embedded in quoted fields intact.
    """

    file_path = Path(path)
    if not file_path.is_file():
        raise ConfigurationError(f"Input not found: {file_path}")
    return _read_lines(file_path)


def _read_lines(file_path: Path) -> Iterator[str]:
    with file_path.open("r", encoding="utf-8", newline="") as stream:
        try:
            for line in stream:
                yield line
        except UnicodeDecodeError as exc:
            raise ConfigurationError(f"Input is not valid UTF-8: {file_path} ({exc})") from exc
