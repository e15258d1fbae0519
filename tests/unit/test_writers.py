from pathlib import Path

import pandas as pd
import pytest

from repricer.errors import InvariantViolationError
from repricer.models import Product, Variant
from repricer.output.writers import (
    build_preview_frame,
    build_rows_frame,
    commit_staged,
    stage_csv,
    stage_id_list,
    summarize_run,
)
from repricer.path_utils import cleanup_tmp_files, tmp_path_for
from repricer.reconcile.engine import reconcile_catalog
from repricer.standards.schemas import PREVIEW, validate_instructions, validate_preview


def make_catalog():
    return [
        Product(product_id="1", variants=(Variant("v1", 1, price=1000.0, compare_at=1000.0, cost=300.0),), status="Active"),
        Product(product_id="2", variants=(Variant("v2", 1, price=10.0),), status="Active"),
    ]


def test_preview_frame_matches_schema(config):
    products = make_catalog()
    frame = build_preview_frame(products, reconcile_catalog(products, config))
    assert list(frame.columns) == PREVIEW.required
    validate_preview(frame)
    assert frame["regime"].tolist() == ["standard", "skip"]
    assert frame["status_desired"].tolist() == ["Active", "Draft"]
    assert frame.loc[0, "as_low_as_new"] == "490.00"


def test_preview_validation_rejects_bad_flags():
    frame = pd.DataFrame({col: ["x"] for col in PREVIEW.required})
    with pytest.raises(InvariantViolationError):
        validate_preview(frame)


def test_instruction_validation_requires_numeric_ids():
    headers = ["ID", "Command"]
    validate_instructions(build_rows_frame([{"ID": "12", "Command": "UPDATE"}], headers), headers)
    with pytest.raises(InvariantViolationError):
        validate_instructions(build_rows_frame([{"ID": "abc", "Command": "UPDATE"}], headers), headers)


def test_staged_files_only_appear_on_commit(tmp_path: Path):
    final_csv = tmp_path / "out.csv"
    final_ids = tmp_path / "ids.csv"
    stage_csv(pd.DataFrame({"ID": ["1"], "Tags": ["a, b"]}), final_csv)
    stage_id_list(["1", "2"], final_ids)
    assert not final_csv.exists() and tmp_path_for(final_csv).exists()

    commit_staged([final_csv, final_ids])
    assert final_csv.read_text(encoding="utf-8") == 'ID,Tags\n1,"a, b"\n'
    assert final_ids.read_text(encoding="utf-8") == "productId\n1\n2"
    assert not tmp_path_for(final_csv).exists()


def test_failed_commit_backs_out_earlier_renames(tmp_path: Path):
    first = tmp_path / "first.csv"
    second = tmp_path / "second.csv"
    stage_csv(pd.DataFrame({"ID": ["1"]}), first)
    stage_csv(pd.DataFrame({"ID": ["2"]}), second)
    tmp_path_for(second).unlink()

    with pytest.raises(FileNotFoundError):
        commit_staged([first, second])
    assert not first.exists()
    assert not second.exists()


def test_cleanup_removes_staged_files(tmp_path: Path):
    final_csv = tmp_path / "out.csv"
    stage_csv(pd.DataFrame({"ID": ["1"]}), final_csv)
    cleanup_tmp_files([final_csv, tmp_path / "never-staged.csv"])
    assert not any(tmp_path.iterdir())


def test_summary_counts(config):
    products = make_catalog()
    summary = summarize_run(reconcile_catalog(products, config), row_counts={"import_changes": 2}, outputs={})
    assert summary["total_products"] == 2
    assert summary["total_changed"] == 2
    assert summary["drafted"] == 1
    assert summary["by_regime"]["standard"] == 1
    assert summary["changed_by_regime"] == {"used": 0, "standard": 1, "low-margin": 0}
