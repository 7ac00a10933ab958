# MIT License
"""Carbon units and the ledgers that hold them.

A :class:`CarbonUnit` is a quantity of carbon, biomass and volume created
at a given time slot at a terminal processor.  It decays year after year
according to the decay function of its terminal feature and keeps the
history of the carbon it released.

A :class:`CarbonUnitList` merges every new unit into an equivalent one
when there is one, so that the memory footprint grows with the number of
distinct (species, time slot, destination) combinations rather than with
the number of wood pieces.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Hashable, Iterable, Iterator, List, Optional, Tuple

from .amounts import AmountLedger, Element
from .errors import NegativeReleaseError
from .features import EndUseProductFeature, LandfillFeature, LeftInForestFeature, TerminalFeature
from .params import BiomassType
from .utils import carbon_to_co2

logger = logging.getLogger(__name__)


class CarbonUnitStatus(str, Enum):
    END_USE_PRODUCT = "EndUseWoodProduct"
    RECYCLED = "Recycled"
    DEAD_WOOD = "DeadWood"
    LANDFILL_DEGRADABLE = "LandFillDegradable"
    LANDFILL_NON_DEGRADABLE = "LandFillNonDegradable"


# order in which the ledgers are actualized every year
ACTUALIZATION_ORDER: Tuple[CarbonUnitStatus, ...] = (
    CarbonUnitStatus.END_USE_PRODUCT,
    CarbonUnitStatus.RECYCLED,
    CarbonUnitStatus.DEAD_WOOD,
    CarbonUnitStatus.LANDFILL_DEGRADABLE,
)


@dataclass(frozen=True)
class UnitMetadata:
    """Opaque descriptors carried from the injected material to the units."""

    species_name: str = ""
    species_type: str = ""
    status_class: str = "cut"
    sample_unit_id: Optional[str] = None


@dataclass
class ReleaseRecord:
    """What one carbon unit released during one actualization."""

    unit: "CarbonUnit"
    elapsed: int
    released_c: float
    remaining_c: float
    co2_emissions: float = 0.0
    methane_co2eq: float = 0.0
    substitution_co2eq: float = 0.0
    disposed: Optional[AmountLedger] = None

    @property
    def disposed_c(self) -> float:
        return 0.0 if self.disposed is None else self.disposed.carbon


class CarbonUnit:
    """A tracked quantity of carbon subject to decay.

    Parameters
    ----------
    created_at:
        Time slot (relative year index) of creation.
    amounts:
        Initial amounts.  Copied, never mutated afterwards except by merge.
    feature:
        The terminal feature of the processor that created the unit.
    status:
        Ledger the unit belongs to.
    metadata:
        Species and status descriptors from the caller.
    biomass_type:
        Wood or bark.
    """

    def __init__(
        self,
        created_at: int,
        amounts: AmountLedger,
        feature: Optional[TerminalFeature],
        status: CarbonUnitStatus,
        metadata: UnitMetadata = UnitMetadata(),
        biomass_type: BiomassType = BiomassType.WOOD,
    ):
        self.created_at = int(created_at)
        self.amounts = amounts.copy()
        self.feature = feature
        self.status = CarbonUnitStatus(status)
        self.metadata = metadata
        self.biomass_type = BiomassType(biomass_type)
        self.provenance: List[Optional[str]] = [metadata.sample_unit_id]
        self.remaining_c = self.amounts.carbon
        self.released_c: List[float] = []
        self.emissions = AmountLedger()
        self.last_actualized: Optional[int] = None

    @property
    def species_name(self) -> str:
        return self.metadata.species_name

    @property
    def species_type(self) -> str:
        return self.metadata.species_type

    @property
    def status_class(self) -> str:
        return self.metadata.status_class

    @property
    def initial_c(self) -> float:
        return self.amounts.carbon

    @property
    def merge_key(self) -> Tuple[Hashable, ...]:
        """Two units with the same key are equivalent and can be merged."""
        return (
            self.metadata.species_name,
            self.metadata.species_type,
            self.metadata.status_class,
            self.created_at,
            self.biomass_type,
            self.status,
            id(self.feature),
        )

    def is_equivalent(self, other: "CarbonUnit") -> bool:
        return self.feature is other.feature and self.merge_key == other.merge_key

    def absorb(self, other: "CarbonUnit") -> None:
        """Merge an equivalent unit into this one, keeping every Mg of carbon."""
        if not self.is_equivalent(other):
            raise ValueError("Only equivalent carbon units can be merged")
        self.amounts.merge(other.amounts)
        self.remaining_c += other.remaining_c
        self.emissions.merge(other.emissions)
        if len(other.released_c) > len(self.released_c):
            self.released_c.extend([0.0] * (len(other.released_c) - len(self.released_c)))
        for i, value in enumerate(other.released_c):
            self.released_c[i] += value
        self.provenance.extend(other.provenance)
        if self.last_actualized is None:
            self.last_actualized = other.last_actualized
        elif other.last_actualized is not None:
            self.last_actualized = max(self.last_actualized, other.last_actualized)

    def actualize_carbon(self, current_year: int, realization: Optional[int] = None) -> Optional[ReleaseRecord]:
        """Decay the unit up to `current_year`.

        Returns None when the unit was already actualized for this year,
        was created later, or has no decay (non-degradable landfill share).

        Raises
        ------
        NegativeReleaseError
            If the carbon left would exceed the carbon left last time.
        """
        if self.feature is None or self.status == CarbonUnitStatus.LANDFILL_NON_DEGRADABLE:
            return None
        if self.last_actualized is not None and self.last_actualized >= current_year:
            return None
        elapsed = int(current_year) - self.created_at
        if elapsed < 0:
            return None
        remaining = self.initial_c * self.feature.decay_function.remaining_fraction(elapsed, realization)
        released = self.remaining_c - remaining
        if released < 0.0:
            raise NegativeReleaseError(released, elapsed, f"in {self!r}")
        if len(self.released_c) <= elapsed:
            self.released_c.extend([0.0] * (elapsed + 1 - len(self.released_c)))
        self.released_c[elapsed] = released
        self.remaining_c = remaining
        self.last_actualized = int(current_year)
        record = ReleaseRecord(unit=self, elapsed=elapsed, released_c=released, remaining_c=remaining)
        match self.feature:
            case EndUseProductFeature(disposed_to=None) as feature:
                record.co2_emissions = carbon_to_co2(released)
                record.substitution_co2eq = released * feature.substitution_ratio
            case EndUseProductFeature() as feature:
                record.disposed = self._released_share(released)
                record.substitution_co2eq = released * feature.substitution_ratio
            case LandfillFeature() as feature:
                record.co2_emissions = carbon_to_co2(released)
                record.methane_co2eq = feature.methane_co2eq(released)
            case LeftInForestFeature():
                record.co2_emissions = carbon_to_co2(released)
        self.emissions.add(Element.EMISSIONS_CO2_EQ, record.co2_emissions)
        return record

    def _released_share(self, released: float) -> AmountLedger:
        if self.initial_c <= 0.0:
            return AmountLedger()
        share = self.amounts.scale(released / self.initial_c)
        return AmountLedger({k: v for k, v in share.items() if k is not Element.EMISSIONS_CO2_EQ})

    def __repr__(self) -> str:
        feature = self.feature.name if self.feature is not None else None
        return (f"CarbonUnit({self.status.value}, {self.species_name!r}, t={self.created_at}, "
                f"C={self.initial_c:g}, feature={feature!r})")


class LandfillCarbonUnit(CarbonUnit):
    """Carbon unit stored in a landfill, degradable or not."""

    feature: LandfillFeature

    def methane_emissions_co2eq(self) -> List[float]:
        """CH4 emissions (CO2 eq.) for every year of the release history."""
        return [self.feature.methane_co2eq(c) for c in self.released_c]

    def total_methane_emissions_co2eq(self) -> float:
        """CH4 emissions (CO2 eq.) over the whole lifetime of the unit."""
        return self.feature.methane_co2eq(self.initial_c)


class CarbonUnitList:
    """A list of carbon units that merges equivalent units on insertion.

    Units are indexed by species and then by creation time slot, so that
    looking for an equivalent unit only scans a handful of candidates.
    """

    def __init__(self, units: Iterable[CarbonUnit] = ()):
        self._units: List[CarbonUnit] = []
        self._index: Dict[str, Dict[int, List[CarbonUnit]]] = {}
        self.extend(units)

    def add(self, unit: CarbonUnit) -> CarbonUnit:
        """Add `unit`, merging it into an equivalent entry if one exists.

        Returns the entry that now holds the carbon of `unit`.
        """
        candidates = self._index.setdefault(unit.species_name, {}).setdefault(unit.created_at, [])
        for existing in candidates:
            if existing.is_equivalent(unit):
                existing.absorb(unit)
                return existing
        candidates.append(unit)
        self._units.append(unit)
        return unit

    def extend(self, units: Iterable[CarbonUnit]) -> None:
        for unit in units:
            self.add(unit)

    def clear(self) -> None:
        self._units.clear()
        self._index.clear()

    def filter(self, **attrs) -> "CarbonUnitList":
        """Return a new list with the units whose attributes equal `attrs`."""
        missing = [k for k in attrs if self._units and not hasattr(self._units[0], k)]
        if missing:
            raise ValueError(f"Unable to filter carbon units on attribute(s): {missing}")
        return CarbonUnitList(u for u in self._units if all(getattr(u, k) == v for k, v in attrs.items()))

    @property
    def total_volume(self) -> float:
        return sum(u.amounts.volume for u in self._units)

    @property
    def total_remaining_c(self) -> float:
        return sum(u.remaining_c for u in self._units)

    def __iter__(self) -> Iterator[CarbonUnit]:
        return iter(self._units)

    def __len__(self) -> int:
        return len(self._units)

    def __getitem__(self, i: int) -> CarbonUnit:
        return self._units[i]

    def __str__(self) -> str:
        return f"Volume = {self.total_volume}"


class CarbonUnitMap(dict):
    """One :class:`CarbonUnitList` per carbon unit status."""

    def __init__(self):
        super().__init__((status, CarbonUnitList()) for status in CarbonUnitStatus)

    def add(self, unit: CarbonUnit) -> CarbonUnit:
        return self[unit.status].add(unit)

    def clear_units(self) -> None:
        for units in self.values():
            units.clear()
