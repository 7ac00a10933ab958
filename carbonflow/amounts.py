# MIT License
"""Amount ledger: named quantities carried by one unit of material.

The ledger is a thin mapping from :class:`Element` keys to floats.  It is
oblivious to units: the conversion between volume, biomass and carbon is
done upstream and the ledger only supports scaling and additive merge.
"""

from __future__ import annotations
from enum import Enum
from typing import Dict, Iterator, Mapping, Optional


class Element(str, Enum):
    VOLUME = "Volume"
    BIOMASS = "Biomass"
    CARBON = "Carbon"
    EMISSIONS_CO2_EQ = "EmissionsCO2Eq"
    NITROGEN = "N"
    PHOSPHORUS = "P"
    POTASSIUM = "K"


class AmountLedger(Mapping[Element, float]):
    """Mapping of elements to amounts with scale and merge operations.

    Missing keys read as 0.  Instances are not mutated by :meth:`scale`,
    which returns a new ledger; :meth:`merge` adds in place.
    """

    __slots__ = ("_amounts",)

    def __init__(self, amounts: Optional[Mapping] = None, **kwargs: float):
        self._amounts: Dict[Element, float] = {}
        items = dict(amounts or {})
        items.update(kwargs)
        for key, value in items.items():
            element = key if isinstance(key, Element) else _element_from_key(key)
            value = float(value)
            if element is not Element.EMISSIONS_CO2_EQ and value < 0.0:
                raise ValueError(f"{element.value} amount must be non-negative, got {value}")
            self._amounts[element] = value

    def __getitem__(self, key) -> float:
        element = key if isinstance(key, Element) else _element_from_key(key)
        return self._amounts.get(element, 0.0)

    def __contains__(self, key) -> bool:
        try:
            element = key if isinstance(key, Element) else _element_from_key(key)
        except ValueError:
            return False
        return element in self._amounts

    def __iter__(self) -> Iterator[Element]:
        return iter(self._amounts)

    def __len__(self) -> int:
        return len(self._amounts)

    def __repr__(self) -> str:
        body = ", ".join(f"{k.value}={v:g}" for k, v in self._amounts.items())
        return f"AmountLedger({body})"

    @property
    def carbon(self) -> float:
        return self[Element.CARBON]

    @property
    def volume(self) -> float:
        return self[Element.VOLUME]

    @property
    def biomass(self) -> float:
        return self[Element.BIOMASS]

    def scale(self, factor: float) -> "AmountLedger":
        """Return a new ledger with every amount multiplied by `factor`."""
        if factor < 0.0:
            raise ValueError(f"Scaling factor must be non-negative, got {factor}")
        return AmountLedger({k: v * factor for k, v in self._amounts.items()})

    def merge(self, other: Mapping) -> "AmountLedger":
        """Add the amounts of `other` into this ledger, element-wise."""
        for key, value in other.items():
            element = key if isinstance(key, Element) else _element_from_key(key)
            self._amounts[element] = self._amounts.get(element, 0.0) + float(value)
        return self

    def add(self, element: Element, value: float) -> None:
        self._amounts[element] = self._amounts.get(element, 0.0) + float(value)

    def copy(self) -> "AmountLedger":
        return AmountLedger(self._amounts)

    def to_dict(self) -> Dict[str, float]:
        return {k.value: v for k, v in self._amounts.items()}


def _element_from_key(key) -> Element:
    try:
        return Element(key)
    except ValueError:
        try:
            return Element[str(key).upper()]
        except KeyError:
            raise ValueError(f"Unknown element: {key!r}") from None
