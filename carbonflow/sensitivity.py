# MIT License
"""Monte Carlo sensitivity context.

A :class:`SensitivityContext` replaces a process-wide settings singleton:
it is passed explicitly to whoever needs a stochastic modifier and owns
the realization-scoped cache of drawn values.  One context belongs to one
simulation run; it is not meant to be shared between threads.
"""

from __future__ import annotations
import logging
import zlib
from typing import Dict, Hashable, Optional, Tuple

import numpy as np

from .params import DistributionType, SensitivitySettings, VariabilitySource

logger = logging.getLogger(__name__)

_MAX_REDRAWS = 1000
_Z_95 = 1.96


class SensitivityContext:
    """Draws and caches multiplicative modifiers per realization.

    Parameters
    ----------
    settings:
        The sensitivity settings.  When omitted, every source is disabled
        and :meth:`get_modifier` always returns 1.

    Notes
    -----
    Modifiers are keyed by ``(source, realization, subject_group)``.  Each
    key gets its own generator seeded from the settings seed, the
    realization id, the source and a CRC32 of the subject group, so a
    value does not depend on the order in which keys are first requested.

    The coefficient of variation `cv` of a source bounds its modifiers:
    a Gaussian modifier falls within ``1 +/- cv`` with 95% probability
    (standard deviation ``cv / 1.96``, redrawn until positive) and a
    uniform modifier is drawn on ``[1 - cv, 1 + cv]``.
    """

    def __init__(self, settings: Optional[SensitivitySettings] = None):
        self.settings = settings or SensitivitySettings()
        self._cache: Dict[Tuple[VariabilitySource, int, Hashable], float] = {}

    def is_enabled(self, source: VariabilitySource) -> bool:
        params = self.settings.sources.get(source)
        return params is not None and params.enabled

    def get_modifier(self, source: VariabilitySource, realization: Optional[int], subject_group: Hashable) -> float:
        """Return the modifier of `source` for one realization and subject group.

        Returns 1.0 when `realization` is None or the source is disabled.
        """
        if realization is None or not self.is_enabled(source):
            return 1.0
        if realization < 0:
            raise ValueError(f"The realization id must be non-negative, got {realization}")
        key = (source, int(realization), subject_group)
        if key not in self._cache:
            self._cache[key] = self._draw(source, int(realization), subject_group)
        return self._cache[key]

    def clear(self) -> None:
        self._cache.clear()

    def _draw(self, source: VariabilitySource, realization: int, subject_group: Hashable) -> float:
        params = self.settings.sources[source]
        group_key = zlib.crc32(str(subject_group).encode("utf-8"))
        source_key = zlib.crc32(source.value.encode("utf-8"))
        rng = np.random.default_rng([self.settings.seed, realization, source_key, group_key])
        cv = params.coefficient_of_variation
        if params.distribution == DistributionType.UNIFORM:
            return float(rng.uniform(1.0 - cv, 1.0 + cv))
        sd = cv / _Z_95
        for _ in range(_MAX_REDRAWS):
            value = 1.0 + sd * float(rng.standard_normal())
            if value > 0.0:
                return value
        raise RuntimeError(f"Unable to draw a positive modifier for {source.value} with cv={cv}")
