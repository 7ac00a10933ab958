"""Core package for harvested wood product carbon modelling.

This package routes harvested material through a graph of production
processors, turns what reaches the terminal processors (end-use products,
landfill sites, dead wood left in the forest) into carbon units, and
decays those units year after year.  Released carbon is reported as CO2,
CH4 (landfills), substitution credits and recycled material.

The :class:`ProductionProcessorManager` in `manager.py` is the entry
point.  Graphs can be built in code or from the pydantic models of
`params.py`, and the yearly release records come back as pandas
DataFrames that `aggregate.py` summarises.
"""

from .amounts import AmountLedger, Element
from .params import (
    BiomassType,
    DecayFunctionType,
    DistributionType,
    EngineSettings,
    GlobalWarmingPotential,
    LandfillType,
    LifetimeMode,
    ProductionLineConfig,
    SensitivitySettings,
    UseClass,
    VariabilitySource,
)
from .decay import DecayFunction
from .sensitivity import SensitivityContext
from .features import EndUseProductFeature, LandfillFeature, LeftInForestFeature
from .carbon_units import CarbonUnit, CarbonUnitList, CarbonUnitStatus, UnitMetadata
from .processors import Processor
from .manager import BatchResult, ProductionProcessorManager, WoodyDebrisCategory, build_manager
from .aggregate import annual_summary, stock_by_status
from .errors import NegativeReleaseError, ProcessorGraphError, UnknownEntryError

__all__ = [
    "AmountLedger",
    "Element",
    "BiomassType",
    "DecayFunctionType",
    "DistributionType",
    "EngineSettings",
    "GlobalWarmingPotential",
    "LandfillType",
    "LifetimeMode",
    "ProductionLineConfig",
    "SensitivitySettings",
    "UseClass",
    "VariabilitySource",
    "DecayFunction",
    "SensitivityContext",
    "EndUseProductFeature",
    "LandfillFeature",
    "LeftInForestFeature",
    "CarbonUnit",
    "CarbonUnitList",
    "CarbonUnitStatus",
    "UnitMetadata",
    "Processor",
    "BatchResult",
    "ProductionProcessorManager",
    "WoodyDebrisCategory",
    "build_manager",
    "annual_summary",
    "stock_by_status",
    "NegativeReleaseError",
    "ProcessorGraphError",
    "UnknownEntryError",
]
