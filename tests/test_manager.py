"""End-to-end tests for the production processor manager.

These tests build small production lines, validate them, inject harvested
material and advance the simulation, checking the graph validation
errors, the carbon balance, end-of-life disposal, woody debris entries,
batch cancellation and the yearly DataFrames.
"""

import logging
import math

import pandas as pd
import pytest

from carbonflow.aggregate import RECORD_COLUMNS, annual_summary, stock_by_status
from carbonflow.amounts import AmountLedger
from carbonflow.carbon_units import CarbonUnitStatus, UnitMetadata
from carbonflow.decay import DecayFunction
from carbonflow.errors import NegativeReleaseError, ProcessorGraphError, UnknownEntryError
from carbonflow.manager import ProductionProcessorManager, WoodyDebrisCategory
from carbonflow.params import (
    BiomassType,
    DecayFunctionType,
    DistributionType,
    LifetimeMode,
    SensitivitySettings,
    VariabilitySource,
)
from carbonflow.sensitivity import SensitivityContext

FIR = UnitMetadata(species_name="Fir", species_type="Coniferous", sample_unit_id="plot-1")


def half_life(years):
    return DecayFunction(LifetimeMode.HALF_LIFE, DecayFunctionType.EXPONENTIAL, years)


def total_carbon(manager):
    return sum(units.total_remaining_c for units in manager.carbon_units.values())


def test_entry_without_sub_processors():
    manager = ProductionProcessorManager()
    manager.bind_entry("Sawlog", manager.add_end_use_product("Building"))
    with pytest.raises(ProcessorGraphError) as err:
        manager.validate()
    assert err.value.processor_name == "Building"


def test_intakes_must_sum_to_100():
    manager = ProductionProcessorManager()
    sawmill = manager.add_processor("Sawmill")
    sawmill.add_sub_processor(manager.add_end_use_product("Building"), 90.0)
    manager.bind_entry("Sawlog", sawmill)
    with pytest.raises(ProcessorGraphError) as err:
        manager.validate()
    assert err.value.processor_name == "Sawmill"


def test_terminal_processor_needs_feature():
    manager = ProductionProcessorManager()
    sawmill = manager.add_processor("Sawmill")
    sawmill.add_sub_processor(manager.add_processor("Dead end"), 100.0)
    manager.bind_entry("Sawlog", sawmill)
    with pytest.raises(ProcessorGraphError, match="Dead end"):
        manager.validate()


def test_cycle_detected():
    manager = ProductionProcessorManager()
    a, b = manager.add_processor("A"), manager.add_processor("B")
    a.add_sub_processor(b, 100.0)
    b.add_sub_processor(a, 100.0)
    manager.bind_entry("Sawlog", a)
    with pytest.raises(ProcessorGraphError, match="endless loop"):
        manager.validate()


def test_end_of_life_cycle_detected():
    manager = ProductionProcessorManager()
    sawmill = manager.add_processor("Sawmill")
    building = manager.add_end_use_product("Building", half_life(35.0))
    sawmill.add_sub_processor(building, 100.0)
    building.feature.disposed_to = sawmill
    manager.bind_entry("Sawlog", sawmill)
    with pytest.raises(ProcessorGraphError, match="endless loop"):
        manager.validate()


def test_routing_requires_validation(sawmill_manager, log_amounts):
    sawmill_manager.get_processor("Sawmill").remove_sub_processor(sawmill_manager.get_processor("Landfill"))
    with pytest.raises(ProcessorGraphError):
        sawmill_manager.inject_material("Sawlog", log_amounts, 0)
    with pytest.raises(ProcessorGraphError):
        sawmill_manager.advance_year(1)


def test_unknown_entry(sawmill_manager, log_amounts):
    with pytest.raises(UnknownEntryError):
        sawmill_manager.inject_material("Pulpwood", log_amounts, 0)
    with pytest.raises(KeyError):
        sawmill_manager.inject_material("Pulpwood", log_amounts, 0)


def test_injection_splits_and_merges(sawmill_manager, log_amounts):
    sawmill_manager.inject_material("Sawlog", log_amounts, 0, FIR)
    sawmill_manager.inject_material("Sawlog", log_amounts, 0, FIR)
    end_use = sawmill_manager.get_carbon_units(CarbonUnitStatus.END_USE_PRODUCT)
    degradable = sawmill_manager.get_carbon_units(CarbonUnitStatus.LANDFILL_DEGRADABLE)
    inert = sawmill_manager.get_carbon_units(CarbonUnitStatus.LANDFILL_NON_DEGRADABLE)
    assert len(end_use) == len(degradable) == len(inert) == 1
    assert math.isclose(end_use.total_remaining_c, 6.0)
    assert math.isclose(degradable.total_remaining_c, 1.6)
    assert math.isclose(inert.total_remaining_c, 2.4)
    assert end_use[0].provenance == ["plot-1", "plot-1"]
    assert math.isclose(total_carbon(sawmill_manager), 10.0)


def test_half_life_end_to_end(building_manager):
    building_manager.inject_material("Sawlog", AmountLedger(carbon=10.0), 0)
    frame = building_manager.advance_year(35)
    assert list(frame.columns) == RECORD_COLUMNS
    assert len(frame) == 1
    assert math.isclose(frame["remaining_c"].iloc[0], 5.0)
    assert math.isclose(frame["released_c"].iloc[0], 5.0)
    assert math.isclose(building_manager.get_carbon_units(CarbonUnitStatus.END_USE_PRODUCT).total_remaining_c, 5.0)


def test_run_conserves_carbon(sawmill_manager, log_amounts):
    sawmill_manager.inject_material("Sawlog", log_amounts, 0)
    frame = sawmill_manager.run(range(0, 40))
    assert set(frame["year"]) == set(range(0, 40))
    assert math.isclose(frame["released_c"].sum() + total_carbon(sawmill_manager), 5.0)
    # the non-degradable landfill share never shows up in the yearly records
    assert CarbonUnitStatus.LANDFILL_NON_DEGRADABLE.value not in set(frame["status"])


def test_end_of_life_disposal_same_year():
    manager = ProductionProcessorManager()
    sawmill = manager.add_processor("Sawmill")
    landfill = manager.add_landfill("Landfill")
    building = manager.add_end_use_product("Building", half_life(35.0), disposed_to=landfill)
    sawmill.add_sub_processor(building, 100.0)
    manager.bind_entry("Sawlog", sawmill)
    manager.validate()
    manager.inject_material("Sawlog", AmountLedger(carbon=10.0), 0)

    frame = manager.advance_year(35)
    degradable = manager.get_carbon_units(CarbonUnitStatus.LANDFILL_DEGRADABLE)
    inert = manager.get_carbon_units(CarbonUnitStatus.LANDFILL_NON_DEGRADABLE)
    assert math.isclose(degradable.total_remaining_c, 2.0)
    assert math.isclose(inert.total_remaining_c, 3.0)
    assert degradable[0].created_at == 35
    assert math.isclose(total_carbon(manager), 10.0)

    rows = frame.set_index("status")
    assert math.isclose(rows.loc[CarbonUnitStatus.END_USE_PRODUCT.value, "disposed_c"], 5.0)
    assert rows.loc[CarbonUnitStatus.END_USE_PRODUCT.value, "co2_emissions"] == 0.0
    # the disposed carbon is actualized in the same call, at elapsed year 0
    assert rows.loc[CarbonUnitStatus.LANDFILL_DEGRADABLE.value, "elapsed"] == 0
    assert rows.loc[CarbonUnitStatus.LANDFILL_DEGRADABLE.value, "released_c"] == 0.0


def test_recycling_into_end_use_product():
    manager = ProductionProcessorManager()
    mill = manager.add_processor("Paper mill")
    recycled_paper = manager.add_end_use_product("Recycled paper", half_life(2.0))
    paper = manager.add_end_use_product("Paper", half_life(2.0), disposed_to=recycled_paper)
    mill.add_sub_processor(paper, 100.0)
    manager.bind_entry("Pulpwood", mill)
    manager.validate()
    manager.inject_material("Pulpwood", AmountLedger(carbon=8.0), 0)
    manager.advance_year(2)
    recycled = manager.get_carbon_units(CarbonUnitStatus.RECYCLED)
    assert len(recycled) == 1
    assert recycled[0].feature.name == "Recycled paper"
    assert math.isclose(recycled.total_remaining_c, 4.0)
    assert recycled[0].last_actualized == 2


def test_biomass_types_and_bark_extraction():
    manager = ProductionProcessorManager()
    debarker = manager.add_processor("Debarker")
    debarker.set_extraction(manager.add_end_use_product("Bark boiler"), BiomassType.BARK)
    debarker.add_sub_processor(manager.add_end_use_product("Building", half_life(35.0)), 100.0)
    manager.bind_entry("Sawlog", debarker)
    manager.validate()
    units = manager.inject_material(
        "Sawlog",
        {BiomassType.WOOD: AmountLedger(carbon=9.0), BiomassType.BARK: AmountLedger(carbon=1.0)},
        0,
    )
    assert {u.feature.name: u.initial_c for u in units} == {"Building": 9.0, "Bark boiler": 1.0}


def test_woody_debris_fallback(caplog):
    manager = ProductionProcessorManager()
    debris = manager.add_processor("Coarse debris")
    debris.add_sub_processor(manager.add_left_in_forest("Forest floor"), 100.0)
    manager.bind_entry(WoodyDebrisCategory.COARSE, debris)
    manager.validate()
    with caplog.at_level(logging.WARNING, logger="carbonflow.manager"):
        manager.process_woody_debris(WoodyDebrisCategory.COMMERCIAL, AmountLedger(carbon=2.0), 0)
    assert "CoarseWoodyDebris" in caplog.text
    assert math.isclose(manager.get_carbon_units(CarbonUnitStatus.DEAD_WOOD).total_remaining_c, 2.0)
    with pytest.raises(UnknownEntryError):
        manager.process_woody_debris(WoodyDebrisCategory.FINE, AmountLedger(carbon=2.0), 0)


def test_batch_cancellation(building_manager):
    flags = iter([False, False, True])
    items = [("Sawlog", AmountLedger(carbon=1.0), 0, FIR) for _ in range(5)]
    result = building_manager.inject_batch(items, should_cancel=lambda: next(flags))
    assert result.cancelled
    assert result.processed == 2
    assert math.isclose(total_carbon(building_manager), 2.0)


def test_batch_without_cancellation(building_manager):
    items = [("Sawlog", AmountLedger(carbon=1.0), year, FIR) for year in range(3)]
    result = building_manager.inject_batch(items)
    assert not result.cancelled
    assert result.processed == 3
    assert len(result.units) == 3


def test_negative_release_aborts_actualization(building_manager, caplog):
    building_manager.inject_material("Sawlog", AmountLedger(carbon=10.0), 0)
    building_manager.get_carbon_units(CarbonUnitStatus.END_USE_PRODUCT)[0].remaining_c = 1.0
    with caplog.at_level(logging.ERROR, logger="carbonflow.manager"):
        with pytest.raises(NegativeReleaseError):
            building_manager.advance_year(1)
    assert "EndUseWoodProduct" in caplog.text


def test_reset(sawmill_manager, log_amounts):
    sawmill_manager.inject_material("Sawlog", log_amounts, 0)
    sawmill_manager.reset()
    assert total_carbon(sawmill_manager) == 0.0
    assert sawmill_manager.advance_year(1).empty


def test_realizations_are_reproducible():
    def run(realization):
        settings = SensitivitySettings(seed=42).enable(VariabilitySource.LIFETIME, DistributionType.GAUSSIAN, 0.4)
        manager = ProductionProcessorManager(sensitivity=SensitivityContext(settings), realization=realization)
        sawmill = manager.add_processor("Sawmill")
        sawmill.add_sub_processor(manager.add_end_use_product("Building", half_life(35.0)), 100.0)
        manager.bind_entry("Sawlog", sawmill)
        manager.validate()
        manager.inject_material("Sawlog", AmountLedger(carbon=10.0), 0)
        return manager.advance_year(35)["remaining_c"].iloc[0]

    assert math.isclose(run(None), 5.0)
    assert run(3) == run(3)
    assert run(3) != run(4)


def test_annual_summary_and_stock(sawmill_manager, log_amounts):
    sawmill_manager.inject_material("Sawlog", log_amounts, 0)
    frames = [sawmill_manager.advance_year(year) for year in range(1, 4)]
    summary = annual_summary(frames)
    building = summary[summary["status"] == CarbonUnitStatus.END_USE_PRODUCT.value]
    assert list(building["year"]) == [1, 2, 3]
    pd.testing.assert_series_equal(
        building["cum_released_c"].reset_index(drop=True),
        building["released_c"].cumsum().reset_index(drop=True),
        check_names=False,
    )
    assert annual_summary([]).empty

    stock = stock_by_status(sawmill_manager).set_index("status")
    assert stock.loc[CarbonUnitStatus.LANDFILL_NON_DEGRADABLE.value, "n_units"] == 1
    assert math.isclose(stock["initial_c"].sum(), 5.0)
