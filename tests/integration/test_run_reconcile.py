import json
from pathlib import Path

import pandas as pd
import pytest

from repricer.errors import StructuralIntegrityError
from repricer.pipeline.run_reconcile import main, run_reconcile


ADV = "Metafield: spotted.as_low_as [number_decimal]"

EXPORT = (
    "ID,Handle,Title,Body HTML,Tags,Status,Variant ID,Variant Position,Variant Price,"
    f"Variant Compare At Price,Variant Cost,{ADV}\n"
    '1001,std-boot,Standard Boot,"<p>Warm\n'
    'boots</p>",Sale,Active,5001,1,1000,1000,300,\n'
    '1002,used-bag,Used Bag,,"preloved, standard",Active,5002,1,700,1000,300,\n'
    "1003,cheap-cap,Cheap Cap,,low-margin,Active,5003,1,100,100,90,\n"
    "1003,,,,,,5004,2,95,100,90,\n"
    "1004,no-cost,No Cost,,,Active,5005,1,50,,,\n"
    "1005,done,Done,,standard,Active,5006,1,1000,1000,300,490.00\n"
)


def write_export(config, text: str = EXPORT) -> Path:
    path = Path(config.paths.input_file)
    path.write_text(text, encoding="utf-8")
    return path


def read_csv(path: Path) -> pd.DataFrame:
    return pd.read_csv(path, dtype=str, keep_default_na=False)


def run_with_sample(config, size: int):
    cfg = config.model_copy(update={"run": config.run.model_copy(update={"sample_size": size})})
    return run_reconcile(cfg)


def test_end_to_end_outputs(config):
    write_export(config)
    result = run_with_sample(config, 2)
    out = result.output_dir

    changes = read_csv(out / "matrixify.only-changes.csv")
    assert list(changes.columns) == [
        "ID", "Command", "Tags", "Tags Command", "Status", "Variant ID", "Variant Command", "Variant Price", ADV,
    ]
    assert changes["ID"].tolist() == ["1001", "1002", "1003", "1003", "1004"]

    std = changes.iloc[0]
    assert std["Tags"] == "Sale, standard"
    assert std["Tags Command"] == "REPLACE"
    assert std[ADV] == "490.00"
    assert std["Variant ID"] == ""

    used = changes.iloc[1]
    assert used["Tags"] == "preloved, used"
    assert used["Variant ID"] == "5002"
    assert used["Variant Price"] == "599.32"

    assert changes.iloc[2]["Variant ID"] == ""
    assert changes.iloc[3]["Variant ID"] == "5004"
    assert changes.iloc[3]["Variant Price"] == "100.00"
    assert changes.iloc[4]["Status"] == "Draft"

    full = read_csv(out / "matrixify.full-fixed.csv")
    assert full["ID"].tolist() == ["1001", "1002", "1003", "1003", "1004", "1005"]
    assert full.loc[full["ID"] == "1005", ADV].tolist() == ["490.00"]

    preview = read_csv(out / "preview.full.csv")
    assert preview["regime"].tolist() == ["standard", "used", "low-margin", "skip", "standard"]
    assert preview["needs_change"].tolist() == ["true", "true", "true", "true", "false"]
    only = read_csv(out / "preview.only-changes.csv")
    assert only["product_id"].tolist() == ["1001", "1002", "1003", "1004"]

    sample = read_csv(out / "matrixify.test-2.csv")
    assert sample["ID"].tolist() == ["1001", "1003", "1003"]
    assert (out / "test-products.csv").read_text(encoding="utf-8").splitlines() == ["productId", "1001", "1003"]

    summary = json.loads((out / "run_summary.json").read_text(encoding="utf-8"))
    assert summary["total_products"] == 5
    assert summary["total_changed"] == 4
    assert summary["drafted"] == 1
    assert summary["by_regime"] == {"skip": 1, "used": 1, "standard": 2, "low-margin": 1}
    assert summary["row_counts"]["import_changes"] == 5

    assert not list(out.glob("*.tmp"))
    assert (Path(config.paths.logs_dir) / "timing.log").exists()


def test_full_file_is_optional(config):
    write_export(config)
    cfg = config.model_copy(update={"run": config.run.model_copy(update={"emit_full": False})})
    result = run_reconcile(cfg)
    assert not (result.output_dir / "matrixify.full-fixed.csv").exists()
    assert (result.output_dir / "matrixify.only-changes.csv").exists()


def test_prefetched_lines_replace_local_file(config):
    cfg = config.model_copy(update={"run": config.run.model_copy(update={"source": "remote"})})
    result = run_reconcile(cfg, lines=EXPORT.splitlines(keepends=True))
    assert result.summary["total_products"] == 5


def test_broken_record_writes_nothing(config):
    write_export(config, EXPORT + "Body continues here,,,,,,,,,,,\n")
    with pytest.raises(StructuralIntegrityError):
        run_reconcile(config)
    out = Path(config.paths.output_dir)
    assert not out.exists() or not any(out.iterdir())


def test_cli_exit_codes(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    for var in ("REPRICER_IN_FILE", "REPRICER_OUT_DIR", "REPRICER_LOGS_DIR", "REPRICER_TEST_SIZE", "REPRICER_EMIT_FULL", "REPRICER_VAT_RATE"):
        monkeypatch.delenv(var, raising=False)

    assert main(["--input", str(tmp_path / "missing.csv"), "--out-dir", str(tmp_path / "out")]) == 1

    export = tmp_path / "Products.csv"
    export.write_text(EXPORT, encoding="utf-8")
    assert main(["--input", str(export), "--out-dir", str(tmp_path / "out"), "--sample-size", "3", "--no-emit-full"]) == 0
    assert (tmp_path / "out" / "matrixify.test-3.csv").exists()
    assert not (tmp_path / "out" / "matrixify.full-fixed.csv").exists()
    # 1004 only needs a draft and stays out of the review sample
    sample_ids = (tmp_path / "out" / "test-products.csv").read_text(encoding="utf-8").splitlines()
    assert sample_ids == ["productId", "1001", "1003", "1002"]

    latin1 = tmp_path / "latin1.csv"
    latin1.write_bytes(EXPORT.replace("Warm", "W\xe4rm").encode("latin-1"))
    assert main(["--input", str(latin1), "--out-dir", str(tmp_path / "out2")]) == 1
    assert not (tmp_path / "out2").exists()
