"""Shared fixtures for the carbon flow tests."""

import pytest

from carbonflow.amounts import AmountLedger
from carbonflow.decay import DecayFunction
from carbonflow.manager import ProductionProcessorManager
from carbonflow.params import DecayFunctionType, LifetimeMode


def half_life(years):
    return DecayFunction(LifetimeMode.HALF_LIFE, DecayFunctionType.EXPONENTIAL, years)


@pytest.fixture
def log_amounts():
    return AmountLedger(volume=20.0, biomass=10.0, carbon=5.0)


@pytest.fixture
def sawmill_manager():
    """Sawlogs split 60/40 between buildings (half-life 35) and a landfill."""
    manager = ProductionProcessorManager()
    sawmill = manager.add_processor("Sawmill")
    building = manager.add_end_use_product("Building", half_life(35.0))
    landfill = manager.add_landfill("Landfill")
    sawmill.add_sub_processor(building, 60.0)
    sawmill.add_sub_processor(landfill, 40.0)
    manager.bind_entry("Sawlog", sawmill)
    manager.validate()
    return manager


@pytest.fixture
def building_manager():
    """Every sawlog ends up in buildings with a 35 year half-life."""
    manager = ProductionProcessorManager()
    sawmill = manager.add_processor("Sawmill")
    sawmill.add_sub_processor(manager.add_end_use_product("Building", half_life(35.0)), 100.0)
    manager.bind_entry("Sawlog", sawmill)
    manager.validate()
    return manager
