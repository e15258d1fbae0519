"""Logging setup and phase timing for repricer runs.

A run writes three artifacts into ``paths.logs_dir``:
  - the system log (``logging.file_name``, timestamped records)
  - user_readable.log (plain progress and stats lines)
  - timing.log (seconds spent per phase)

File handlers are optional: when a log file cannot be opened the logger keeps
its console handler. Must not import pipeline modules.
"""
from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, Optional

from .common.config_validator import RepricerConfig


SYSTEM_FMT = "[%(asctime)s] [%(levelname)s] %(message)s"
HUMAN_FMT = "%(message)s"
USER_LOGGER_NAME = "repricer.user"
USER_LOG_FILE = "user_readable.log"
TIMING_LOG_FILE = "timing.log"

# Reported first, in this order; any other timed phase follows
PHASE_KEYS = ("Assembly", "Reconciliation", "Output")


def _logs_dir(config: RepricerConfig) -> Path:
    path = Path(config.paths.logs_dir).expanduser().resolve()
    path.mkdir(parents=True, exist_ok=True)
    return path


def _build_logger(name: str, level: int, fmt: str, log_file: Path, propagate: bool = True) -> logging.Logger:
    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.propagate = propagate
    # Repeated runs in one process must not stack handlers
    for old in list(logger.handlers):
        logger.removeHandler(old)
        old.close()

    formatter = logging.Formatter(fmt)
    console = logging.StreamHandler()
    console.setLevel(level)
    console.setFormatter(formatter)
    logger.addHandler(console)

    try:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
    except OSError as exc:
        logger.warning("[WARNING] Failed to attach file handler %s (%s)", str(log_file), exc)
        return logger
    file_handler.setLevel(level)
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)
    return logger


def get_logger(name: str, config: RepricerConfig) -> logging.Logger:
    """System logger (console + ``logging.file_name``) at ``logging.level``."""
    level = getattr(logging, config.logging.level, logging.INFO)
    return _build_logger(name, level, SYSTEM_FMT, _logs_dir(config) / config.logging.file_name)


def get_user_logger(config: RepricerConfig) -> logging.Logger:
    return _build_logger(USER_LOGGER_NAME, logging.INFO, HUMAN_FMT, _logs_dir(config) / USER_LOG_FILE, propagate=False)


@contextmanager
def phase_timer(phase_name: str, timings: Dict[str, float], user_logger: logging.Logger) -> Iterator[None]:
    """Time the enclosed block; only a phase that completes is recorded."""
    started = time.perf_counter()
    yield
    elapsed = time.perf_counter() - started
    timings[phase_name] = elapsed
    user_logger.info(f"Phase {phase_name} completed in {elapsed:.2f} seconds")


def write_timing_report(timings: Dict[str, float], config: RepricerConfig) -> Optional[Path]:
    """Write ``timing.log``; returns its path, or None when it cannot be written."""
    out_path = _logs_dir(config) / TIMING_LOG_FILE
    ordered = [k for k in PHASE_KEYS if k in timings] + [k for k in timings if k not in PHASE_KEYS]
    lines = ["---- REPRICER RUN TIMING REPORT ----"]
    lines += [f"{key}: {timings[key]:.2f} seconds" for key in ordered]
    lines.append(f"Total Duration: {sum(timings[k] for k in ordered):.2f} seconds")
    try:
        out_path.write_text("\n".join(lines), encoding="utf-8")
    except OSError as exc:
        logging.getLogger("repricer").warning("[WARNING] Failed to write timing report (%s): %s", str(out_path), exc)
        return None
    return out_path


def log_system_event(logger: logging.Logger, message: str):
    logger.info("[SYSTEM] %s", message)


def log_warning(logger: logging.Logger, message: str):
    logger.warning("[WARNING] %s", message)


def log_error(logger: logging.Logger, message: str):
    logger.error("[ERROR] %s", message)
