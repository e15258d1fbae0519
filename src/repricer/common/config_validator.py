"""Configuration validation models using Pydantic."""
from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


class PathsConfig(BaseModel):
    """Input and output locations."""

    input_file: str = Field("data/Products.csv", description="Matrixify product export")
    output_dir: str = Field("out", description="Directory receiving reports and import files")
    logs_dir: str = Field("logs", description="Directory receiving run logs")


class RunConfig(BaseModel):
    """Run mode switches."""

    source: Literal["local", "remote"] = Field(
        "local",
        description="Where the export comes from; remote exports are fetched by the caller",
    )
    emit_full: bool = Field(True, description="Also write the full-fixed import covering every product")
    sample_size: int = Field(20, ge=0, description="Products in the manual-review sample")
    sample_quota: Optional[int] = Field(None, ge=0, description="Per-regime sample quota")


class VatConfig(BaseModel):
    """Optional VAT normalization of gross export figures."""

    rate: Optional[float] = Field(None, ge=0, description="VAT rate, e.g. 0.20; null disables VAT handling")
    net_reference: bool = Field(True, description="Divide the compare-at price by (1 + rate)")
    net_cost: bool = Field(False, description="Divide the variant cost by (1 + rate)")
    scale_other_fee: bool = Field(True, description="Apply (1 + rate) to the other-fee base when classifying")

    @property
    def enabled(self) -> bool:
        return self.rate is not None and self.rate > 0


class ClassifierConfig(BaseModel):
    """Worst-case sale simulation used to split standard from low-margin."""

    d_max: float = Field(0.51, ge=0, lt=1, description="Maximum discount simulated")
    ship_cost: float = Field(12.9, ge=0)
    cust_ship: float = Field(8.5, ge=0)
    aff_rate: float = Field(0.12, ge=0, le=1)
    other_rate: float = Field(0.0455, ge=0, le=1)
    used_tags: List[str] = Field(default_factory=lambda: ["preowned / defect", "preloved"])
    exclusion_tags: List[str] = Field(default_factory=list)

    @field_validator("used_tags", "exclusion_tags")
    @classmethod
    def normalize_tags(cls, v):
        """Tags are matched case-insensitively on trimmed text."""
        return [str(t).strip().lower() for t in v if str(t).strip()]


class CostPlusParams(BaseModel):
    """Cost-plus pricing with a logistic size adjustment (used / low-margin)."""

    alpha: float
    beta: float
    gamma: float
    N: float
    K0: float
    k: float = Field(..., gt=0)


class StandardParams(BaseModel):
    """Discount-depth hidden-price model (standard)."""

    d_max: float = Field(0.51, ge=0, lt=1)
    mu0: float = 0.75
    beta_disc: float = 0.0
    gamma_M: float = 0.23
    rho: float = Field(0.40, ge=0, le=1)
    d_ref: float = Field(0.91, ge=0, lt=1)
    M_ref: float = Field(25000.0, gt=0)


class PricingConfig(BaseModel):
    standard: StandardParams = Field(default_factory=StandardParams)
    used: CostPlusParams = Field(
        default_factory=lambda: CostPlusParams(alpha=0.25, beta=1.20, gamma=0.20, N=35.0, K0=200.0, k=200.0)
    )
    low_margin: CostPlusParams = Field(
        default_factory=lambda: CostPlusParams(alpha=0.40, beta=0.90, gamma=0.0, N=35.0, K0=500.0, k=300.0)
    )


class CatalogConfig(BaseModel):
    """Names of catalog-side markers and columns."""

    draft_status: str = "Draft"
    advertised_prefix: str = "Metafield: spotted.as_low_as"
    advertised_column: str = "Metafield: spotted.as_low_as [number_decimal]"

    @model_validator(mode="after")
    def validate_column_prefix(self):
        if not self.advertised_column.startswith(self.advertised_prefix):
            raise ValueError("advertised_column must start with advertised_prefix")
        return self


class LoggingConfig(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    file_name: str = "repricer.log"


class RepricerConfig(BaseModel):
    """Complete run configuration."""

    paths: PathsConfig = Field(default_factory=PathsConfig)
    run: RunConfig = Field(default_factory=RunConfig)
    vat: VatConfig = Field(default_factory=VatConfig)
    classifier: ClassifierConfig = Field(default_factory=ClassifierConfig)
    pricing: PricingConfig = Field(default_factory=PricingConfig)
    catalog: CatalogConfig = Field(default_factory=CatalogConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_and_validate_config(config_dict: Optional[dict]) -> RepricerConfig:
    """
    Validate a raw configuration mapping.

    Args:
        config_dict: Mapping as read from YAML (may be None or partial)

    Returns:
        Validated RepricerConfig object

    Raises:
        ValidationError: If configuration is invalid
    """
    return RepricerConfig(**(config_dict or {}))
