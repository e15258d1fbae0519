"""End-to-end reconciliation run.

Responsibilities:
- Resolve configuration (YAML file, REPRICER_* environment, CLI flags)
- Assemble the Matrixify export into products (structural validation pass)
- Reconcile every product (computation pass)
- Build preview reports, import files and the review sample in memory
- Check output invariants, then stage and commit all files together

A failed run leaves no new output behind. Only a failure during the final
renames can leave earlier outputs of the same name replaced or removed.
"""
from __future__ import annotations

import argparse
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from ..common.config_validator import RepricerConfig
from ..errors import ConfigurationError, RepricerError
from ..ingestion.records import assemble_products
from ..ingestion_utils import ensure_directory, open_local_source, resolve_config
from ..logging_utils import (
    get_logger,
    get_user_logger,
    log_error,
    log_system_event,
    phase_timer,
    write_timing_report,
)
from ..output.sampling import select_sample
from ..output.writers import (
    build_preview_frame,
    build_rows_frame,
    commit_staged,
    stage_csv,
    stage_id_list,
    stage_json,
    summarize_run,
)
from ..path_utils import cleanup_tmp_files
from ..reconcile.engine import reconcile_catalog
from ..reconcile.instructions import (
    build_change_rows,
    build_full_rows,
    check_variant_price_invariant,
    import_headers,
)
from ..standards.schemas import validate_instructions, validate_preview


LOGGER_NAME = "repricer.pipeline"

PREVIEW_FULL = "preview.full.csv"
PREVIEW_CHANGES = "preview.only-changes.csv"
IMPORT_CHANGES = "matrixify.only-changes.csv"
IMPORT_FULL = "matrixify.full-fixed.csv"
SAMPLE_LIST = "test-products.csv"
RUN_SUMMARY = "run_summary.json"
DEFAULT_CONFIG = "config.yaml"


def sample_file_name(size: int) -> str:
    return f"matrixify.test-{size}.csv"


@dataclass
class RunResult:
    """Summary returned by :func:`run_reconcile`."""

    output_dir: Path
    outputs: Dict[str, Path] = field(default_factory=dict)
    summary: Dict[str, object] = field(default_factory=dict)
    sample_ids: List[str] = field(default_factory=list)


def run_reconcile(config: RepricerConfig, lines: Optional[Iterable[str]] = None) -> RunResult:
    """Run the engine once.

    ``lines`` lets a caller supply an already fetched export (``run.source:
    remote``); otherwise ``paths.input_file`` is read from disk.
    """

    logger = get_logger(LOGGER_NAME, config)
    user_logger = get_user_logger(config)
    timings: Dict[str, float] = {}

    if lines is None:
        if config.run.source == "remote":
            raise ConfigurationError("run.source is 'remote' but no pre-fetched export was supplied")
        lines = open_local_source(config.paths.input_file)
        log_system_event(logger, f"Reading: {config.paths.input_file}")

    with phase_timer("Assembly", timings, user_logger):
        snapshot = assemble_products(lines, advertised_prefix=config.catalog.advertised_prefix, logger=logger)
    products = snapshot.products
    advertised_column = snapshot.advertised_column or config.catalog.advertised_column
    draft_status = config.catalog.draft_status

    with phase_timer("Reconciliation", timings, user_logger):
        results = reconcile_catalog(products, config, logger=logger)

    with phase_timer("Output", timings, user_logger):
        headers = import_headers(advertised_column)
        change_rows: List[Dict[str, str]] = []
        full_rows: List[Dict[str, str]] = []
        changed = []
        for product, result in zip(products, results):
            if result.needs_change:
                change_rows.extend(build_change_rows(result, advertised_column, draft_status))
                changed.append((product.product_id, result.regime))
            if config.run.emit_full:
                full_rows.extend(build_full_rows(product, result, advertised_column, draft_status))

        check_variant_price_invariant(change_rows)
        check_variant_price_invariant(full_rows)

        size = config.run.sample_size
        sample_ids = select_sample(changed, size, quota=config.run.sample_quota)
        picked = set(sample_ids)
        sample_rows = [row for row in change_rows if row["ID"] in picked]

        preview_full = build_preview_frame(products, results)
        preview_changes = preview_full[preview_full["needs_change"] == "true"]
        changes_df = build_rows_frame(change_rows, headers)
        full_df = build_rows_frame(full_rows, headers)
        sample_df = build_rows_frame(sample_rows, headers)
        validate_preview(preview_full)
        for frame in (changes_df, full_df, sample_df):
            validate_instructions(frame, headers)

        out_dir = ensure_directory(config.paths.output_dir)
        outputs: Dict[str, Path] = {
            "preview_full": out_dir / PREVIEW_FULL,
            "preview_changes": out_dir / PREVIEW_CHANGES,
            "import_changes": out_dir / IMPORT_CHANGES,
            "sample": out_dir / sample_file_name(size),
            "sample_list": out_dir / SAMPLE_LIST,
            "summary": out_dir / RUN_SUMMARY,
        }
        if config.run.emit_full:
            outputs["import_full"] = out_dir / IMPORT_FULL

        row_counts = {
            "import_changes": len(change_rows),
            "import_full": len(full_rows),
            "sample": len(sample_rows),
        }
        summary = summarize_run(
            results,
            row_counts=row_counts,
            outputs={k: str(v) for k, v in outputs.items()},
            config_snapshot=config.model_dump(),
        )

        try:
            stage_csv(preview_full, outputs["preview_full"])
            stage_csv(preview_changes, outputs["preview_changes"])
            stage_csv(changes_df, outputs["import_changes"])
            if config.run.emit_full:
                stage_csv(full_df, outputs["import_full"])
            stage_csv(sample_df, outputs["sample"])
            stage_id_list(sample_ids, outputs["sample_list"])
            stage_json(summary, outputs["summary"])
            commit_staged(outputs.values())
        except Exception:
            cleanup_tmp_files(outputs.values())
            raise

    user_logger.info(
        "Stats: totalProducts=%d, needChange=%d, drafted=%d",
        summary["total_products"],
        summary["total_changed"],
        summary["drafted"],
    )
    user_logger.info("ByType: %s", summary["by_regime"])
    user_logger.info("Import written: %s (rows=%d)", outputs["import_changes"], len(change_rows))
    if config.run.emit_full:
        user_logger.info("Import written: %s (rows=%d)", outputs["import_full"], len(full_rows))
    user_logger.info("Test import written: %s (%d products)", outputs["sample"], len(sample_ids))
    write_timing_report(timings, config)

    return RunResult(output_dir=out_dir, outputs=outputs, summary=summary, sample_ids=sample_ids)


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Reconcile catalog prices, tags and status against a Matrixify export")
    p.add_argument("--config", default=None, help="Path to a YAML config (default: ./config.yaml when present)")
    p.add_argument("--input", default=None, help="Matrixify product export (overrides paths.input_file)")
    p.add_argument("--out-dir", default=None, help="Output directory (overrides paths.output_dir)")
    p.add_argument("--sample-size", type=int, default=None, help="Products in the review sample")
    full = p.add_mutually_exclusive_group()
    full.add_argument("--emit-full", dest="emit_full", action="store_true", default=None, help="Write matrixify.full-fixed.csv")
    full.add_argument("--no-emit-full", dest="emit_full", action="store_false", help="Skip matrixify.full-fixed.csv")
    return p


def main(argv: Optional[List[str]] = None) -> int:
    args = build_arg_parser().parse_args(argv)
    overrides = {
        "paths": {"input_file": args.input, "output_dir": args.out_dir},
        "run": {"sample_size": args.sample_size, "emit_full": args.emit_full},
    }
    config_path = args.config
    if config_path is None and Path(DEFAULT_CONFIG).is_file():
        config_path = DEFAULT_CONFIG
    try:
        config = resolve_config(config_path, overrides=overrides)
    except ConfigurationError as exc:
        log_error(_console_logger(), str(exc))
        return 1
    try:
        run_reconcile(config)
    except RepricerError as exc:
        log_error(get_logger(LOGGER_NAME, config), str(exc))
        return 1
    return 0


def _console_logger() -> logging.Logger:
    logger = logging.getLogger(LOGGER_NAME)
    if not logger.handlers:
        logging.basicConfig(level=logging.INFO, format="[%(asctime)s] [%(levelname)s] %(message)s")
    return logger


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
