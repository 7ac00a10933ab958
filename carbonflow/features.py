# MIT License
"""Terminal features: what happens to carbon at the leaves of the graph.

A terminal feature is bound to a terminal processor.  It owns the
:class:`~carbonflow.decay.DecayFunction` of the carbon units created
there and decides what the carbon released each year turns into:

* :class:`EndUseProductFeature` credits substitution and either emits
  the released carbon or disposes of it into another processor;
* :class:`LandfillFeature` splits the incoming carbon by the degradable
  organic carbon fraction and converts the degradable releases into CO2
  and CH4;
* :class:`LeftInForestFeature` simply emits the released carbon.

The three classes form a closed set; the router and the carbon units
dispatch on them with ``match`` statements rather than virtual methods.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, Optional, Union

from .decay import DecayFunction
from .params import (
    DecayFunctionType,
    GlobalWarmingPotential,
    LandfillType,
    LifetimeMode,
    UseClass,
)
from .sensitivity import SensitivityContext
from .utils import C_TO_CH4

if TYPE_CHECKING:
    from .processors import Processor

# share of the landfill gas that is methane (IPCC 2006, Waste, Eq. 3.1)
CH4_FRACTION_OF_LANDFILL_GAS = 0.5

DEFAULT_LANDFILL_HALF_LIFE_YR = 33.0
DEFAULT_LANDFILL_DOC_FRACTION = 0.4
DEFAULT_LEFT_IN_FOREST_AVERAGE_LIFETIME_YR = 10.0


@dataclass(frozen=True)
class EndUseProductDefault:
    """Default decay settings of an end-use product class.

    The first three come from Table 12.3 of the 2019 Refinement to the
    2006 IPCC Guidelines, the others from Fortin et al. (2012, Forest
    Ecology and Management 279: 176-188).
    """

    use_class: UseClass
    function_type: DecayFunctionType
    lifetime_mode: LifetimeMode
    lifetime_yr: float


_DEFAULTS: Dict[UseClass, EndUseProductDefault] = {
    d.use_class: d
    for d in (
        EndUseProductDefault(UseClass.BUILDING, DecayFunctionType.EXPONENTIAL, LifetimeMode.HALF_LIFE, 35.0),
        EndUseProductDefault(UseClass.FURNITURE, DecayFunctionType.EXPONENTIAL, LifetimeMode.HALF_LIFE, 25.0),
        EndUseProductDefault(UseClass.PAPER, DecayFunctionType.EXPONENTIAL, LifetimeMode.HALF_LIFE, 2.0),
        EndUseProductDefault(UseClass.WRAPPING, DecayFunctionType.EXPONENTIAL, LifetimeMode.AVERAGE, 6.3),
        EndUseProductDefault(UseClass.ENERGY, DecayFunctionType.EXPONENTIAL, LifetimeMode.AVERAGE, 2.8),
        EndUseProductDefault(UseClass.FIREWOOD, DecayFunctionType.EXPONENTIAL, LifetimeMode.AVERAGE, 2.8),
        EndUseProductDefault(UseClass.BARREL, DecayFunctionType.EXPONENTIAL, LifetimeMode.AVERAGE, 4.0),
    )
}


def default_features() -> Dict[UseClass, EndUseProductDefault]:
    """Return a copy of the table of default end-use product features."""
    return dict(_DEFAULTS)


class _TerminalFeature:
    """Attributes shared by every terminal feature."""

    def __init__(self, name: str, decay_function: DecayFunction):
        self.name = name
        self.decay_function = decay_function
        if decay_function.subject_group is None:
            decay_function.subject_group = name

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"


class EndUseProductFeature(_TerminalFeature):
    """Feature of an end-use wood product.

    Parameters
    ----------
    substitution_ratio:
        Mg CO2 eq. of avoided emissions credited per Mg of carbon released.
    disposed_to:
        Processor receiving the released carbon at the end of life.  When
        None, the released carbon is emitted as CO2.
    functional_unit_biomass_mg, emissions_per_functional_unit_mg:
        Manufacturing emissions charged when a unit is created.
    """

    def __init__(
        self,
        name: str,
        decay_function: Optional[DecayFunction] = None,
        use_class: UseClass = UseClass.NONE,
        substitution_ratio: float = 0.0,
        disposed_to: Optional["Processor"] = None,
        functional_unit_biomass_mg: float = 0.0,
        emissions_per_functional_unit_mg: float = 0.0,
    ):
        if substitution_ratio < 0.0:
            raise ValueError("The substitution ratio must be non-negative")
        super().__init__(name, decay_function or DecayFunction(LifetimeMode.HALF_LIFE, DecayFunctionType.EXPONENTIAL, 0.0))
        self.use_class = UseClass(use_class)
        self.substitution_ratio = float(substitution_ratio)
        self.disposed_to = disposed_to
        self.functional_unit_biomass_mg = float(functional_unit_biomass_mg)
        self.emissions_per_functional_unit_mg = float(emissions_per_functional_unit_mg)

    def update_from_default(self, use_class: UseClass) -> None:
        """Apply the default decay settings of `use_class`."""
        default = _DEFAULTS.get(UseClass(use_class))
        if default is None:
            raise ValueError(f"No default feature for use class {use_class}")
        self.use_class = default.use_class
        df = self.decay_function
        df.lifetime_mode = default.lifetime_mode
        df.function_type = default.function_type
        df.set_lifetime_yr(default.lifetime_yr)


class LandfillFeature(_TerminalFeature):
    """Feature of a landfill site.

    Only the degradable share of the incoming carbon decays; its
    releases are split between CO2 and CH4 according to the methane
    correction factor of the landfill type.
    """

    def __init__(
        self,
        name: str,
        decay_function: Optional[DecayFunction] = None,
        doc_fraction: float = DEFAULT_LANDFILL_DOC_FRACTION,
        landfill_type: LandfillType = LandfillType.MANAGED_SEMIANAEROBIC,
        global_warming_potential: GlobalWarmingPotential = GlobalWarmingPotential.AR5,
    ):
        super().__init__(
            name,
            decay_function or DecayFunction(LifetimeMode.HALF_LIFE, DecayFunctionType.EXPONENTIAL,
                                            DEFAULT_LANDFILL_HALF_LIFE_YR),
        )
        self.doc_fraction = doc_fraction
        self.landfill_type = LandfillType(landfill_type)
        self.global_warming_potential = GlobalWarmingPotential(global_warming_potential)

    @property
    def doc_fraction(self) -> float:
        return self._doc_fraction

    @doc_fraction.setter
    def doc_fraction(self, value: float) -> None:
        if not (0.0 <= value <= 1.0):
            raise ValueError(f"The DOC fraction must lie within [0, 1], got {value}")
        self._doc_fraction = float(value)

    @property
    def methane_correction_factor(self) -> float:
        return self.landfill_type.methane_correction_factor

    def methane_co2eq(self, carbon_mg: float) -> float:
        """CH4 emissions, in CO2 eq. carbon, for `carbon_mg` of degraded carbon.

        The value is negative: it is an emission with respect to the
        carbon balance.
        """
        return (
            -carbon_mg
            * self.methane_correction_factor
            * CH4_FRACTION_OF_LANDFILL_GAS
            * C_TO_CH4
            * (self.global_warming_potential.ch4_factor - 1.0)
        )


class LeftInForestFeature(_TerminalFeature):
    """Dead wood left on site; decays with no further accounting."""

    def __init__(self, name: str, decay_function: Optional[DecayFunction] = None):
        super().__init__(
            name,
            decay_function or DecayFunction(LifetimeMode.AVERAGE, DecayFunctionType.EXPONENTIAL,
                                            DEFAULT_LEFT_IN_FOREST_AVERAGE_LIFETIME_YR),
        )


TerminalFeature = Union[EndUseProductFeature, LandfillFeature, LeftInForestFeature]


def attach_sensitivity(feature: TerminalFeature, sensitivity: Optional[SensitivityContext]) -> None:
    feature.decay_function.sensitivity = sensitivity
