"""Tests for the amount ledger."""

import math

import pytest

from carbonflow.amounts import AmountLedger, Element


def test_missing_elements_read_as_zero():
    ledger = AmountLedger(carbon=2.0)
    assert ledger.carbon == 2.0
    assert ledger.volume == 0.0
    assert ledger[Element.NITROGEN] == 0.0


def test_keys_by_value_or_name():
    ledger = AmountLedger({"Carbon": 1.0, "biomass": 2.0, Element.VOLUME: 3.0})
    assert ledger.carbon == 1.0
    assert ledger.biomass == 2.0
    assert ledger["volume"] == 3.0
    with pytest.raises(ValueError):
        AmountLedger({"Lignin": 1.0})


def test_negative_amounts_rejected_except_emissions():
    with pytest.raises(ValueError):
        AmountLedger(carbon=-1.0)
    ledger = AmountLedger(emissions_co2_eq=-0.5)
    assert ledger[Element.EMISSIONS_CO2_EQ] == -0.5


def test_scale_returns_new_ledger():
    ledger = AmountLedger(carbon=4.0, volume=8.0)
    half = ledger.scale(0.5)
    assert math.isclose(half.carbon, 2.0)
    assert math.isclose(half.volume, 4.0)
    assert ledger.carbon == 4.0
    with pytest.raises(ValueError):
        ledger.scale(-1.0)


def test_merge_adds_in_place():
    ledger = AmountLedger(carbon=1.0)
    ledger.merge(AmountLedger(carbon=2.0, biomass=3.0))
    assert math.isclose(ledger.carbon, 3.0)
    assert math.isclose(ledger.biomass, 3.0)
    assert ledger.to_dict() == {"Carbon": 3.0, "Biomass": 3.0}


def test_membership_only_for_stored_elements():
    ledger = AmountLedger(carbon=1.0)
    assert Element.CARBON in ledger
    assert "Carbon" in ledger
    assert Element.NITROGEN not in ledger
    assert Element.NITROGEN not in AmountLedger()
    assert "Lignin" not in ledger
    assert ledger[Element.NITROGEN] == 0.0
