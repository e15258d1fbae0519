import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from repricer.common.config_validator import RepricerConfig  # noqa: E402


@pytest.fixture
def config(tmp_path: Path) -> RepricerConfig:
    """Default configuration (worked-scenario constants, no VAT) rooted in tmp_path."""
    return RepricerConfig(
        paths={
            "input_file": str(tmp_path / "Products.csv"),
            "output_dir": str(tmp_path / "out"),
            "logs_dir": str(tmp_path / "logs"),
        }
    )
