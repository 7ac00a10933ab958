# MIT License
"""Processor graph and routing algorithm.

Processors are the nodes of a directed graph.  A processor either

* splits the incoming material among its sub-processors according to
  intake percentages;
* passes the whole material on to another processor (``disposed_to``)
  when it has no sub-processors;
* or is terminal, in which case its terminal feature turns the material
  into carbon units.

An optional extraction step runs before any of this and diverts the
material of one biomass type (typically the bark) to another processor.

:func:`route` walks the graph recursively.  It trusts the graph: intake
sums and cycles are checked once by the manager's validation pass.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass, replace
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from .amounts import AmountLedger, Element
from .carbon_units import CarbonUnit, CarbonUnitStatus, LandfillCarbonUnit, UnitMetadata
from .errors import ProcessorGraphError
from .features import EndUseProductFeature, LandfillFeature, LeftInForestFeature, TerminalFeature
from .params import BiomassType

logger = logging.getLogger(__name__)

VERY_SMALL = 1e-12


@dataclass(frozen=True)
class Material:
    """A ledger in transit through the graph, with the metadata of its source."""

    amounts: AmountLedger
    created_at: int
    metadata: UnitMetadata = UnitMetadata()
    biomass_type: BiomassType = BiomassType.WOOD
    recycled: bool = False

    @property
    def carbon(self) -> float:
        return self.amounts.carbon

    def scaled(self, factor: float) -> "Material":
        return replace(self, amounts=self.amounts.scale(factor))


@dataclass
class ExtractionStep:
    """Diverts the material of one biomass type to `target`."""

    target: "Processor"
    biomass_type: BiomassType = BiomassType.BARK

    def split(self, material: Material) -> Tuple[Optional[Material], Optional[Material]]:
        """Return the (extracted, residual) parts of `material`."""
        if material.biomass_type == self.biomass_type:
            return material, None
        return None, material


class Processor:
    """A node of the processor graph.

    Parameters
    ----------
    name:
        Unique, human-readable name.
    feature:
        Terminal feature; required when the processor ends up terminal.
    functional_unit_biomass_mg, emissions_per_functional_unit_mg:
        Processing emissions: every Mg of biomass passing through a
        non-terminal processor adds
        ``emissions_per_functional_unit_mg / functional_unit_biomass_mg``
        Mg CO2 eq. to the material.
    """

    def __init__(
        self,
        name: str,
        feature: Optional[TerminalFeature] = None,
        functional_unit_biomass_mg: float = 0.0,
        emissions_per_functional_unit_mg: float = 0.0,
    ):
        if not name:
            raise ValueError("A processor needs a name")
        if functional_unit_biomass_mg < 0.0 or emissions_per_functional_unit_mg < 0.0:
            raise ValueError("Functional unit biomass and emissions must be non-negative")
        self.name = name
        self.feature = feature
        self.functional_unit_biomass_mg = float(functional_unit_biomass_mg)
        self.emissions_per_functional_unit_mg = float(emissions_per_functional_unit_mg)
        self.sub_processors: Dict[Processor, float] = {}
        self.extraction: Optional[ExtractionStep] = None
        self.disposed_to: Optional[Processor] = None

    def add_sub_processor(self, processor: "Processor", intake: float) -> "Processor":
        """Send `intake` percent of the incoming material to `processor`."""
        if processor is self:
            raise ValueError(f"{self.name} cannot be its own sub-processor")
        if not (0.0 <= intake <= 100.0):
            raise ValueError(f"Intake must lie within [0, 100], got {intake}")
        self.sub_processors[processor] = float(intake)
        return processor

    def remove_sub_processor(self, processor: "Processor") -> None:
        self.sub_processors.pop(processor, None)

    def set_extraction(self, target: "Processor", biomass_type: BiomassType = BiomassType.BARK) -> None:
        self.extraction = ExtractionStep(target, BiomassType(biomass_type))

    def set_disposed_to(self, processor: Optional["Processor"]) -> None:
        self.disposed_to = processor

    @property
    def has_sub_processors(self) -> bool:
        return bool(self.sub_processors)

    @property
    def is_terminal(self) -> bool:
        return not self.sub_processors and self.disposed_to is None

    @property
    def intake_sum(self) -> float:
        return sum(self.sub_processors.values())

    def successors(self) -> Iterator["Processor"]:
        """Every processor this one can send material to, end-of-life links included."""
        yield from self.sub_processors
        if self.extraction is not None:
            yield self.extraction.target
        if self.disposed_to is not None:
            yield self.disposed_to
        if isinstance(self.feature, EndUseProductFeature) and self.feature.disposed_to is not None:
            yield self.feature.disposed_to

    def processing_emissions(self, amounts: AmountLedger) -> float:
        return functional_unit_emissions(amounts, self.functional_unit_biomass_mg,
                                         self.emissions_per_functional_unit_mg)

    def __repr__(self) -> str:
        return f"Processor({self.name!r})"


def functional_unit_emissions(amounts: AmountLedger, fu_biomass_mg: float, emissions_per_fu_mg: float) -> float:
    if fu_biomass_mg <= 0.0:
        return 0.0
    return amounts.biomass / fu_biomass_mg * emissions_per_fu_mg


def route(processor: Processor, material: Material, very_small: float = VERY_SMALL) -> List[CarbonUnit]:
    """Route `material` through the graph starting at `processor`.

    Returns the carbon units created at the terminal processors reached,
    unmerged and in traversal order.
    """
    units: List[CarbonUnit] = []
    if processor.extraction is not None:
        extracted, material = processor.extraction.split(material)
        if extracted is not None:
            units.extend(route(processor.extraction.target, extracted, very_small))
        if material is None:
            return units
    # avoids endless fan-out on numerical dust
    if material.carbon < very_small:
        return units
    if processor.is_terminal:
        units.extend(_create_terminal_units(processor, material, very_small))
        return units
    emissions = processor.processing_emissions(material.amounts)
    if emissions > 0.0:
        amounts = material.amounts.copy()
        amounts.add(Element.EMISSIONS_CO2_EQ, emissions)
        material = replace(material, amounts=amounts)
    if processor.has_sub_processors:
        for sub_processor, intake in processor.sub_processors.items():
            units.extend(route(sub_processor, material.scaled(intake * 0.01), very_small))
    else:
        units.extend(route(processor.disposed_to, material, very_small))
    return units


def _create_terminal_units(processor: Processor, material: Material, very_small: float) -> List[CarbonUnit]:
    logger.debug("Material with C=%g reached terminal processor %s", material.carbon, processor.name)
    match processor.feature:
        case EndUseProductFeature() as feature:
            amounts = material.amounts.copy()
            emissions = functional_unit_emissions(amounts, feature.functional_unit_biomass_mg,
                                                  feature.emissions_per_functional_unit_mg)
            if emissions > 0.0:
                amounts.add(Element.EMISSIONS_CO2_EQ, emissions)
            status = CarbonUnitStatus.RECYCLED if material.recycled else CarbonUnitStatus.END_USE_PRODUCT
            return [CarbonUnit(material.created_at, amounts, feature, status, material.metadata, material.biomass_type)]
        case LandfillFeature() as feature:
            units = []
            for share, status in ((feature.doc_fraction, CarbonUnitStatus.LANDFILL_DEGRADABLE),
                                  (1.0 - feature.doc_fraction, CarbonUnitStatus.LANDFILL_NON_DEGRADABLE)):
                part = material.amounts.scale(share)
                if part.carbon >= very_small:
                    units.append(LandfillCarbonUnit(material.created_at, part, feature, status,
                                                    material.metadata, material.biomass_type))
            return units
        case LeftInForestFeature() as feature:
            return [CarbonUnit(material.created_at, material.amounts, feature, CarbonUnitStatus.DEAD_WOOD,
                               material.metadata, material.biomass_type)]
        case _:
            raise ProcessorGraphError("Terminal processor without a terminal feature", processor.name)


def find_cycle(entries: Iterable[Processor]) -> Optional[List[Processor]]:
    """Return the processors of a cycle reachable from `entries`, or None.

    Depth-first traversal with in-progress and done marker sets.
    """
    in_progress: Dict[Processor, int] = {}
    done = set()
    path: List[Processor] = []

    def visit(processor: Processor) -> Optional[List[Processor]]:
        in_progress[processor] = len(path)
        path.append(processor)
        for nxt in processor.successors():
            if nxt in in_progress:
                return path[in_progress[nxt]:] + [nxt]
            if nxt not in done:
                cycle = visit(nxt)
                if cycle is not None:
                    return cycle
        path.pop()
        del in_progress[processor]
        done.add(processor)
        return None

    for entry in entries:
        if entry not in done:
            cycle = visit(entry)
            if cycle is not None:
                return cycle
    return None


def reachable(entries: Iterable[Processor]) -> List[Processor]:
    """Every processor reachable from `entries`, in discovery order."""
    seen: Dict[Processor, None] = {}
    stack = list(entries)[::-1]
    while stack:
        processor = stack.pop()
        if processor in seen:
            continue
        seen[processor] = None
        stack.extend(list(processor.successors())[::-1])
    return list(seen)
