import numpy as np
import pytest

from repricer.common.config_validator import ClassifierConfig, PricingConfig, VatConfig
from repricer.models import Regime
from repricer.pricing.classifier import classify, is_excluded, projected_margin
from repricer.pricing.model import cap_money, cost_plus_price, price, round_money


CLS = ClassifierConfig()
PRICING = PricingConfig()


def test_standard_scenario():
    assert classify(1000, 300, [], CLS) is Regime.STANDARD
    quote = price(1000, 300, Regime.STANDARD, PRICING)
    assert quote.price_new == 1000.00
    assert quote.as_low_as == 490.00


def test_used_gateway_overrides_margin():
    assert classify(1000, 300, ["preloved"], CLS) is Regime.USED
    assert classify(1000, 300, ["PreOwned / Defect"], CLS) is Regime.USED
    quote = price(1000, 300, Regime.USED, PRICING)
    assert quote.price_new == 599.32
    assert quote.as_low_as == 0


def test_low_margin_scenario_is_clamped_to_reference():
    G = projected_margin(100, 90, CLS)
    assert np.isclose(G, -62.40, atol=0.01)
    assert classify(100, 90, [], CLS) is Regime.LOW_MARGIN
    assert cost_plus_price(100, 90, PRICING.low_margin) == 100
    assert np.isclose(cost_plus_price(1e6, 90, PRICING.low_margin) - 35, 90 * (1.40 + 0.90 * np.log10(1e6 / 90)))
    assert price(100, 90, Regime.LOW_MARGIN, PRICING).price_new == 100.00


def test_standard_below_ceiling_sets_hidden_price():
    quote = price(25000, 1000, Regime.STANDARD, PRICING)
    assert quote.price_new == 5357.14
    assert quote.as_low_as == 2625.00


@pytest.mark.parametrize("M, C", [(0, 10), (10, 0), (-5, 3), (None, 3), (10, None)])
def test_missing_inputs_skip(M, C):
    assert classify(M, C, [], CLS) is Regime.SKIP
    for regime in Regime:
        assert price(M, C, regime, PRICING) is None


def test_skip_regime_is_not_priceable():
    assert price(100, 50, Regime.SKIP, PRICING) is None


def test_regime_monotone_in_reference_price():
    C = 120.0
    seen_standard = False
    for M in np.linspace(10, 5000, 400):
        regime = classify(float(M), C, [], CLS)
        if seen_standard:
            assert regime is Regime.STANDARD
        seen_standard = seen_standard or regime is Regime.STANDARD
    assert seen_standard


def test_vat_scaling_lowers_margin():
    vat = VatConfig(rate=0.2, scale_other_fee=True)
    assert projected_margin(1000, 300, CLS, vat) < projected_margin(1000, 300, CLS)
    no_scaling = VatConfig(rate=0.2, scale_other_fee=False)
    assert projected_margin(1000, 300, CLS, no_scaling) == projected_margin(1000, 300, CLS)


def test_exclusion_tags():
    cfg = ClassifierConfig(exclusion_tags=["No-Reprice"])
    assert is_excluded(["Sale", "no-reprice"], cfg)
    assert not is_excluded(["Sale"], cfg)
    assert not is_excluded(["no-reprice"], CLS)


@pytest.mark.parametrize("M", [1.0, 5.0, 20.0, 99.996, 250.0, 1000.0, 40000.0])
@pytest.mark.parametrize("ratio", [0.01, 0.3, 0.9, 1.5])
def test_price_never_exceeds_reference(M, ratio):
    for regime in (Regime.USED, Regime.STANDARD, Regime.LOW_MARGIN):
        quote = price(M, M * ratio, regime, PRICING)
        assert quote.price_new <= M


def test_rounding_is_half_up():
    assert round_money(0.125) == 0.13
    assert round_money(490.00000000000006) == 490.0
    assert cap_money(99.996, 99.996) == 99.99
