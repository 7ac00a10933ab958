# MIT License
"""Production processor manager: the entry point of the engine.

The manager owns the processor graph and one carbon unit ledger per
status.  The surrounding application

1. builds the graph (directly or from a :class:`ProductionLineConfig`),
2. calls :meth:`ProductionProcessorManager.validate`,
3. injects harvested material with :meth:`inject_material`,
   :meth:`process_woody_debris` or :meth:`inject_batch`,
4. calls :meth:`advance_year` for every simulated year.

One manager holds the state of one simulation run.  Parallel Monte Carlo
realizations each need their own manager and sensitivity context.
"""

from __future__ import annotations
import logging
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Hashable, Iterable, List, Mapping, Optional, Tuple, Union

import pandas as pd

from .aggregate import RECORD_COLUMNS, records_to_frame
from .amounts import AmountLedger
from .carbon_units import ACTUALIZATION_ORDER, CarbonUnit, CarbonUnitList, CarbonUnitMap, CarbonUnitStatus, UnitMetadata
from .decay import DecayFunction
from .errors import NegativeReleaseError, ProcessorGraphError, UnknownEntryError
from .features import EndUseProductFeature, LandfillFeature, LeftInForestFeature, attach_sensitivity
from .params import BiomassType, EngineSettings, ProcessorConfig, ProcessorKind, ProductionLineConfig, UseClass
from .processors import Material, Processor, find_cycle, reachable, route
from .sensitivity import SensitivityContext

logger = logging.getLogger(__name__)


class WoodyDebrisCategory(str, Enum):
    FINE = "FineWoodyDebris"
    COMMERCIAL = "CommercialWoodyDebris"
    COARSE = "CoarseWoodyDebris"


BatchItem = Tuple[Hashable, Union[AmountLedger, Mapping[BiomassType, AmountLedger]], int, UnitMetadata]


@dataclass
class BatchResult:
    units: List[CarbonUnit] = field(default_factory=list)
    processed: int = 0
    cancelled: bool = False


class ProductionProcessorManager:
    """Owns the processor graph and the carbon unit ledgers of one run.

    Parameters
    ----------
    settings:
        Engine constants (GWP, very-small threshold, intake tolerance).
    sensitivity:
        Sensitivity context shared by every decay function of the graph.
    realization:
        Monte Carlo realization id; None runs the deterministic model.
    """

    def __init__(
        self,
        settings: Optional[EngineSettings] = None,
        sensitivity: Optional[SensitivityContext] = None,
        realization: Optional[int] = None,
    ):
        self.settings = settings or EngineSettings()
        self.sensitivity = sensitivity or SensitivityContext()
        self.realization = realization
        self.carbon_units = CarbonUnitMap()
        self._processors: Dict[str, Processor] = {}
        self._entries: Dict[Hashable, Processor] = {}
        self._validated_signature: Optional[tuple] = None

    # graph building

    def register(self, processor: Processor) -> Processor:
        existing = self._processors.get(processor.name)
        if existing is not None and existing is not processor:
            raise ValueError(f"A processor named {processor.name!r} is already registered")
        self._processors[processor.name] = processor
        if processor.feature is not None:
            attach_sensitivity(processor.feature, self.sensitivity)
        return processor

    def add_processor(self, name: str, functional_unit_biomass_mg: float = 0.0,
                      emissions_per_functional_unit_mg: float = 0.0) -> Processor:
        return self.register(Processor(name, None, functional_unit_biomass_mg, emissions_per_functional_unit_mg))

    def add_end_use_product(self, name: str, decay_function: Optional[DecayFunction] = None, **kwargs) -> Processor:
        return self.register(Processor(name, EndUseProductFeature(name, decay_function, **kwargs)))

    def add_landfill(self, name: str, decay_function: Optional[DecayFunction] = None, **kwargs) -> Processor:
        kwargs.setdefault("global_warming_potential", self.settings.global_warming_potential)
        return self.register(Processor(name, LandfillFeature(name, decay_function, **kwargs)))

    def add_left_in_forest(self, name: str, decay_function: Optional[DecayFunction] = None) -> Processor:
        return self.register(Processor(name, LeftInForestFeature(name, decay_function)))

    def bind_entry(self, key: Hashable, processor: Processor) -> None:
        """Bind an entry lookup key (log category, woody debris category) to a processor."""
        if key is None:
            raise ValueError("The entry key must not be None")
        self.register(processor)
        self._entries[_entry_key(key)] = processor

    def get_processor(self, name: str) -> Processor:
        try:
            return self._processors[name]
        except KeyError:
            raise ValueError(f"Unknown processor: {name}") from None

    @property
    def processors(self) -> List[Processor]:
        return list(self._processors.values())

    @property
    def entries(self) -> Dict[Hashable, Processor]:
        return dict(self._entries)

    @classmethod
    def from_config(cls, config: ProductionLineConfig, sensitivity: Optional[SensitivityContext] = None,
                    realization: Optional[int] = None) -> "ProductionProcessorManager":
        """Build a manager from a validated configuration model.

        The returned manager still has to be validated.
        """
        manager = cls(config.settings, sensitivity, realization)
        for pc in config.processors:
            manager.register(Processor(pc.name, _feature_from_config(pc, config.settings),
                                       pc.functional_unit_biomass_mg, pc.emissions_per_functional_unit_mg))
        for pc in config.processors:
            processor = manager.get_processor(pc.name)
            for child, intake in pc.children.items():
                processor.add_sub_processor(manager.get_processor(child), intake)
            if pc.extraction is not None:
                processor.set_extraction(manager.get_processor(pc.extraction.target), pc.extraction.biomass_type)
            if pc.pass_through_to is not None:
                processor.set_disposed_to(manager.get_processor(pc.pass_through_to))
            if pc.end_of_life_to is not None:
                if not isinstance(processor.feature, EndUseProductFeature):
                    raise ProcessorGraphError("Only end-use products have an end-of-life destination", pc.name)
                processor.feature.disposed_to = manager.get_processor(pc.end_of_life_to)
        for entry in config.entries:
            manager.bind_entry(entry.key, manager.get_processor(entry.processor))
        return manager

    # validation

    def validate(self) -> None:
        """Check the graph before any material is routed.

        Raises
        ------
        ProcessorGraphError
            If an entry processor has no sub-processors, intakes do not sum
            to 100, a terminal processor has no terminal feature (or has an
            extraction step), or a cycle is reachable from an entry.
        """
        for processor in self._entries.values():
            if not processor.has_sub_processors:
                raise ProcessorGraphError("This processor should be linked to sub processors", processor.name)
        graph = reachable(list(self._entries.values()) + list(self._processors.values()))
        tolerance = self.settings.intake_tolerance
        for processor in graph:
            if processor.has_sub_processors and abs(processor.intake_sum - 100.0) > tolerance:
                raise ProcessorGraphError(
                    f"The intakes of this processor sum to {processor.intake_sum:g}% instead of 100%", processor.name
                )
            if processor.is_terminal:
                if processor.feature is None:
                    raise ProcessorGraphError("This terminal processor has no terminal feature", processor.name)
                if processor.extraction is not None:
                    raise ProcessorGraphError("An extraction step cannot be defined on a terminal processor",
                                              processor.name)
            elif processor.feature is not None:
                raise ProcessorGraphError("A terminal feature is defined on a non-terminal processor", processor.name)
        cycle = find_cycle(graph)
        if cycle is not None:
            path = " -> ".join(p.name for p in cycle)
            raise ProcessorGraphError(f"This processor is part of an endless loop ({path})", cycle[0].name)
        for processor in graph:
            if processor.feature is not None:
                attach_sensitivity(processor.feature, self.sensitivity)
        self._validated_signature = self._graph_signature()
        logger.info("Processor graph validated: %d processors, %d entries", len(graph), len(self._entries))

    @property
    def is_validated(self) -> bool:
        return self._validated_signature is not None and self._validated_signature == self._graph_signature()

    def _graph_signature(self) -> tuple:
        signature = []
        for processor in reachable(list(self._entries.values()) + list(self._processors.values())):
            eol = processor.feature.disposed_to if isinstance(processor.feature, EndUseProductFeature) else None
            signature.append((
                id(processor),
                tuple((id(p), pct) for p, pct in processor.sub_processors.items()),
                id(processor.extraction.target) if processor.extraction is not None else None,
                id(processor.disposed_to) if processor.disposed_to is not None else None,
                id(eol) if eol is not None else None,
                id(processor.feature),
            ))
        return tuple(signature)

    def _check_validated(self) -> None:
        if not self.is_validated:
            raise ProcessorGraphError("The processor graph must be validated before routing any material")

    # material injection

    def find_entry(self, key: Hashable) -> Processor:
        try:
            return self._entries[_entry_key(key)]
        except KeyError:
            raise UnknownEntryError(f"The entry key {key!r} is not recognized by the manager") from None

    def inject_material(
        self,
        entry_key: Hashable,
        amounts: Union[AmountLedger, Mapping[BiomassType, AmountLedger]],
        created_at: int,
        metadata: UnitMetadata = UnitMetadata(),
    ) -> List[CarbonUnit]:
        """Route harvested material from an entry processor into the ledgers.

        Parameters
        ----------
        entry_key:
            Lookup key bound with :meth:`bind_entry`.
        amounts:
            One ledger (wood) or a mapping of biomass type to ledger.
        created_at:
            Time slot of the harvest.
        metadata:
            Species and status descriptors carried by the units.

        Returns
        -------
        list of CarbonUnit
            The ledger entries that received carbon (new or merged into).
        """
        self._check_validated()
        processor = self.find_entry(entry_key)
        return self._store(self._route_all(processor, amounts, created_at, metadata))

    def process_woody_debris(
        self,
        category: WoodyDebrisCategory,
        amounts: Union[AmountLedger, Mapping[BiomassType, AmountLedger]],
        created_at: int,
        metadata: UnitMetadata = UnitMetadata(),
    ) -> List[CarbonUnit]:
        """Inject woody debris; commercial debris falls back on coarse debris."""
        category = WoodyDebrisCategory(category)
        if _entry_key(category) not in self._entries and category == WoodyDebrisCategory.COMMERCIAL:
            logger.warning("No entry for %s, using %s instead", category.value, WoodyDebrisCategory.COARSE.value)
            category = WoodyDebrisCategory.COARSE
        return self.inject_material(category, amounts, created_at, metadata)

    def inject_batch(self, items: Iterable[BatchItem], should_cancel: Optional[Callable[[], bool]] = None) -> BatchResult:
        """Inject many pieces, polling `should_cancel` between pieces.

        A piece is always routed and merged completely; cancellation only
        stops before the next one.
        """
        self._check_validated()
        result = BatchResult()
        for entry_key, amounts, created_at, metadata in items:
            if should_cancel is not None and should_cancel():
                result.cancelled = True
                logger.warning("Batch injection cancelled after %d pieces", result.processed)
                break
            processor = self.find_entry(entry_key)
            units = self._route_all(processor, amounts, created_at, metadata)
            result.units.extend(self._store(units))
            result.processed += 1
        else:
            logger.info("Batch injection finished: %d pieces", result.processed)
        return result

    def _route_all(self, processor: Processor, amounts, created_at: int, metadata: UnitMetadata) -> List[CarbonUnit]:
        if isinstance(amounts, AmountLedger):
            amounts = {BiomassType.WOOD: amounts}
        units: List[CarbonUnit] = []
        for biomass_type, ledger in amounts.items():
            material = Material(ledger, int(created_at), metadata, BiomassType(biomass_type))
            units.extend(route(processor, material, self.settings.very_small))
        return units

    def _store(self, units: Iterable[CarbonUnit]) -> List[CarbonUnit]:
        stored: Dict[int, CarbonUnit] = {}
        for unit in units:
            entry = self.carbon_units.add(unit)
            stored.setdefault(id(entry), entry)
        return list(stored.values())

    # time

    def get_carbon_units(self, status: CarbonUnitStatus) -> CarbonUnitList:
        return self.carbon_units[CarbonUnitStatus(status)]

    def advance_year(self, current_year: int) -> pd.DataFrame:
        """Actualize every carbon unit up to `current_year`.

        The ledgers are processed in :data:`ACTUALIZATION_ORDER`.  Units
        appended to a ledger while it is processed (end-of-life disposal)
        are queued and actualized in the same call.

        Returns
        -------
        pandas.DataFrame
            One row per actualized unit, see :func:`records_to_frame`.

        Raises
        ------
        NegativeReleaseError
            On a decay defect; ledgers already processed stay updated.
        """
        self._check_validated()
        records = []
        for status in ACTUALIZATION_ORDER:
            units = self.carbon_units[status]
            logger.debug("Carbon units of type %s. Before actualization, %s", status.value, units)
            queue = deque(units)
            queued = len(units)
            while queue:
                unit = queue.popleft()
                try:
                    record = unit.actualize_carbon(current_year, self.realization)
                except NegativeReleaseError:
                    logger.error("Numerical defect while actualizing carbon units of type %s", status.value)
                    raise
                if record is not None:
                    records.append(record)
                    if record.disposed is not None:
                        self._dispose(unit, record.disposed, current_year)
                if len(units) > queued:
                    queue.extend(units[i] for i in range(queued, len(units)))
                    queued = len(units)
            logger.debug("Carbon units of type %s actualized. After actualization, %s", status.value, units)
        return records_to_frame(records, current_year)

    def _dispose(self, unit: CarbonUnit, amounts: AmountLedger, current_year: int) -> None:
        target = unit.feature.disposed_to
        material = Material(amounts, current_year, unit.metadata, unit.biomass_type, recycled=True)
        self._store(route(target, material, self.settings.very_small))

    def run(self, years: Iterable[int]) -> pd.DataFrame:
        """Advance every year of `years` and concatenate the results."""
        frames = [self.advance_year(year) for year in years]
        frames = [f for f in frames if not f.empty]
        if not frames:
            return pd.DataFrame(columns=RECORD_COLUMNS)
        return pd.concat(frames, ignore_index=True)

    def reset(self) -> None:
        """Drop every carbon unit, for instance before a new realization."""
        self.carbon_units.clear_units()
        logger.info("Carbon unit ledgers reset")


def build_manager(config: ProductionLineConfig, sensitivity: Optional[SensitivityContext] = None,
                  realization: Optional[int] = None) -> ProductionProcessorManager:
    """Build and validate a manager from `config`."""
    manager = ProductionProcessorManager.from_config(config, sensitivity, realization)
    manager.validate()
    return manager

def _feature_from_config(pc: ProcessorConfig, settings: EngineSettings):
    decay = DecayFunction.from_config(pc.decay) if pc.decay is not None else None
    match pc.kind:
        case ProcessorKind.PRODUCTION:
            return None
        case ProcessorKind.END_USE_PRODUCT:
            feature = EndUseProductFeature(pc.name, decay, substitution_ratio=pc.substitution_ratio,
                                           functional_unit_biomass_mg=pc.functional_unit_biomass_mg,
                                           emissions_per_functional_unit_mg=pc.emissions_per_functional_unit_mg)
            if pc.use_class not in (None, UseClass.NONE) and decay is None:
                feature.update_from_default(pc.use_class)
            elif pc.use_class is not None:
                feature.use_class = pc.use_class
            return feature
        case ProcessorKind.LANDFILL:
            return LandfillFeature(pc.name, decay, pc.doc_fraction, pc.landfill_type,
                                   settings.global_warming_potential)
        case ProcessorKind.LEFT_IN_FOREST:
            return LeftInForestFeature(pc.name, decay)


def _entry_key(key: Hashable) -> Hashable:
    # str enums hash by member name, so they are stored by value
    return key.value if isinstance(key, Enum) else key
