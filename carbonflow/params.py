# MIT License
"""Configuration models for the carbon flow engine.

All configuration objects are defined using [`pydantic.BaseModel`](https://docs.pydantic.dev/)
to provide type checking, validation and JSON serialisation.  The
enumerations shared between the models and the engine live here as well
so that a configuration can be written and validated without building
any processor.

The top‑level :class:`ProductionLineConfig` describes a complete
processor graph.  It can be dumped to and restored from JSON and turned
into a working manager with
:meth:`carbonflow.manager.ProductionProcessorManager.from_config`.
"""
from __future__ import annotations
from enum import Enum
from typing import Dict, List, Optional
from pydantic import BaseModel, Field
from pydantic import field_validator, model_validator


class DistributionType(str, Enum):
    GAUSSIAN = "GAUSSIAN"
    UNIFORM = "UNIFORM"


class VariabilitySource(str, Enum):
    LIFETIME = "Lifetime"
    BASIC_DENSITY = "BasicDensity"
    CARBON_CONTENT = "CarbonContent"
    BIOMASS_EXPANSION_FACTOR = "BiomassExpansionFactor"


class GlobalWarmingPotential(str, Enum):
    """IPCC assessment report used for the CH4 warming potential."""

    AR4 = "AR4"
    AR5 = "AR5"

    @property
    def ch4_factor(self) -> float:
        return {"AR4": 25.0, "AR5": 28.0}[self.value]


class DecayFunctionType(str, Enum):
    EXPONENTIAL = "Exponential"
    WEIBULL = "Weibull"


class LifetimeMode(str, Enum):
    HALF_LIFE = "HalfLife"
    AVERAGE = "AverageLifetime"


class LandfillType(str, Enum):
    """Landfill site categories of the IPCC (2006, Waste, p.3.14)."""

    MANAGED_ANAEROBIC = "MANAGED_ANAEROBIC"
    MANAGED_SEMIANAEROBIC = "MANAGED_SEMIANAEROBIC"
    UNMANAGED_DEEP = "UNMANAGED_DEEP"
    UNMANAGED_SHALLOW = "UNMANAGED_SHALLOW"
    UNCATEGORISED = "UNCATEGORISED"

    @property
    def methane_correction_factor(self) -> float:
        return _METHANE_CORRECTION_FACTORS[self.value]


_METHANE_CORRECTION_FACTORS = {
    "MANAGED_ANAEROBIC": 1.0,
    "MANAGED_SEMIANAEROBIC": 0.5,
    "UNMANAGED_DEEP": 0.8,
    "UNMANAGED_SHALLOW": 0.4,
    "UNCATEGORISED": 0.6,
}


class UseClass(str, Enum):
    NONE = "NONE"
    BUILDING = "BUILDING"
    FURNITURE = "FURNITURE"
    PAPER = "PAPER"
    WRAPPING = "WRAPPING"
    ENERGY = "ENERGY"
    FIREWOOD = "FIREWOOD"
    BARREL = "BARREL"


class BiomassType(str, Enum):
    WOOD = "Wood"
    BARK = "Bark"


class ProcessorKind(str, Enum):
    PRODUCTION = "production"
    END_USE_PRODUCT = "end_use_product"
    LANDFILL = "landfill"
    LEFT_IN_FOREST = "left_in_forest"


class SensitivitySourceParams(BaseModel):
    """Stochastic settings for one variability source."""

    distribution: DistributionType = Field(DistributionType.GAUSSIAN, description="Distribution of the modifier")
    enabled: bool = Field(False, description="Whether the source is stochastic")
    coefficient_of_variation: float = Field(0.1, gt=0.0, le=2.0, description="Half-width of the 95% interval of the modifier")

    @field_validator("coefficient_of_variation", mode="after")
    @classmethod
    def _uniform_stays_positive(cls, v, info):
        if info.data.get("distribution") == DistributionType.UNIFORM and v >= 1.0:
            raise ValueError("A uniform modifier needs a coefficient of variation below 1")
        return v


class SensitivitySettings(BaseModel):
    """Which variability sources are stochastic and how.

    The seed makes every realization reproducible: the same seed,
    realization and subject group always yield the same modifier.
    """

    seed: int = Field(20120531, ge=0)
    sources: Dict[VariabilitySource, SensitivitySourceParams] = Field(default_factory=dict)

    def enable(self, source: VariabilitySource, distribution: DistributionType = DistributionType.GAUSSIAN,
               coefficient_of_variation: float = 0.1) -> "SensitivitySettings":
        self.sources[source] = SensitivitySourceParams(
            distribution=distribution, enabled=True, coefficient_of_variation=coefficient_of_variation
        )
        return self


class EngineSettings(BaseModel):
    """Global constants used while routing and decaying carbon."""

    global_warming_potential: GlobalWarmingPotential = Field(GlobalWarmingPotential.AR5)
    very_small: float = Field(1e-12, gt=0.0, le=1e-3, description="Carbon amount below which material is dropped")
    intake_tolerance: float = Field(1e-6, gt=0.0, le=1.0, description="Tolerance on the 100% intake rule")


class DecayConfig(BaseModel):
    function_type: DecayFunctionType = Field(DecayFunctionType.EXPONENTIAL)
    lifetime_mode: LifetimeMode = Field(LifetimeMode.HALF_LIFE)
    lifetime_yr: float = Field(..., gt=0.0, le=10_000.0, description="Half-life or average lifetime (years)")


class ExtractionConfig(BaseModel):
    target: str = Field(..., description="Processor receiving the extracted material")
    biomass_type: BiomassType = Field(BiomassType.BARK)


class ProcessorConfig(BaseModel):
    """One node of the processor graph.

    Attributes
    ----------
    children:
        Sub-processor name to intake percentage.  Must sum to 100.
    pass_through_to:
        Processor receiving the whole material when `children` is empty.
    end_of_life_to:
        For end-use products, the processor receiving the carbon released
        every year (recycling, landfill, energy...).
    """

    name: str = Field(..., min_length=1)
    kind: ProcessorKind = Field(ProcessorKind.PRODUCTION)
    children: Dict[str, float] = Field(default_factory=dict)
    extraction: Optional[ExtractionConfig] = None
    pass_through_to: Optional[str] = None
    end_of_life_to: Optional[str] = None
    functional_unit_biomass_mg: float = Field(0.0, ge=0.0, description="Biomass of one functional unit (Mg)")
    emissions_per_functional_unit_mg: float = Field(0.0, ge=0.0, description="Emissions (Mg CO2 eq. per FU)")
    decay: Optional[DecayConfig] = None
    use_class: Optional[UseClass] = None
    substitution_ratio: float = Field(0.0, ge=0.0, le=100.0, description="Mg CO2 eq. avoided per Mg C released")
    landfill_type: LandfillType = Field(LandfillType.MANAGED_SEMIANAEROBIC)
    doc_fraction: float = Field(0.4, ge=0.0, le=1.0, description="Degradable organic carbon fraction")

    @field_validator("children")
    def percentages_in_range(cls, v):
        for child, pct in v.items():
            if not (0.0 <= pct <= 100.0):
                raise ValueError(f"intake of {child} must lie within [0, 100], got {pct}")
        return v


class EntryConfig(BaseModel):
    key: str = Field(..., min_length=1, description="Log category or woody debris category id")
    processor: str


class ProductionLineConfig(BaseModel):
    """A complete, JSON-serialisable processor graph."""

    processors: List[ProcessorConfig] = Field(default_factory=list)
    entries: List[EntryConfig] = Field(default_factory=list)
    settings: EngineSettings = Field(default_factory=lambda: EngineSettings())

    @model_validator(mode="after")
    def references_exist(self):
        names = [p.name for p in self.processors]
        if len(set(names)) != len(names):
            raise ValueError("processor names must be unique")
        known = set(names)
        for p in self.processors:
            refs = list(p.children)
            refs += [r for r in (p.pass_through_to, p.end_of_life_to) if r is not None]
            if p.extraction is not None:
                refs.append(p.extraction.target)
            for ref in refs:
                if ref not in known:
                    raise ValueError(f"processor {p.name} refers to unknown processor {ref}")
        for entry in self.entries:
            if entry.processor not in known:
                raise ValueError(f"entry {entry.key} refers to unknown processor {entry.processor}")
        return self
