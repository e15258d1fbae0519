import pytest

from repricer.models import TYPE_TAGS, Regime
from repricer.pricing.tags import join_tags, reconcile_tags, split_tags


def test_switch_type_tag_keeps_other_tags():
    ops = reconcile_tags(["Sale", "standard"], Regime.LOW_MARGIN)
    assert ops.to_add == ["low-margin"]
    assert ops.to_remove == ["standard"]
    assert ops.desired_tags == ["Sale", "low-margin"]
    assert ops.changed


def test_skip_passes_tags_through():
    ops = reconcile_tags(["Sale", "used"], Regime.SKIP)
    assert ops.desired_tags == ["Sale", "used"]
    assert not ops.changed


def test_matching_tag_in_other_case_is_not_a_change():
    ops = reconcile_tags(["Standard", "Winter"], Regime.STANDARD)
    assert ops.to_add == []
    assert ops.to_remove == []
    assert not ops.changed


def test_removes_every_conflicting_type_tag():
    ops = reconcile_tags(["used", "Gift", "LOW-MARGIN", "standard"], Regime.STANDARD)
    assert ops.to_add == []
    assert ops.to_remove == ["used", "low-margin"]
    assert ops.desired_tags == ["Gift", "standard"]


@pytest.mark.parametrize("regime", [Regime.USED, Regime.STANDARD, Regime.LOW_MARGIN])
@pytest.mark.parametrize(
    "current",
    [[], ["used"], ["standard", "low-margin"], ["A", "Used", "b", "STANDARD"], ["used", "standard", "low-margin"]],
)
def test_at_most_one_type_tag_after_reconciliation(regime, current):
    ops = reconcile_tags(current, regime)
    type_tags = [t for t in ops.desired_tags if t.lower() in TYPE_TAGS]
    assert type_tags == [regime.value]


def test_split_and_join_tags():
    assert split_tags("Sale, sale,  New ,,") == ["Sale", "New"]
    assert split_tags("") == []
    assert join_tags(["Sale", "New"]) == "Sale, New"
