# MIT License
"""Closed-form decay functions for carbon pools.

A :class:`DecayFunction` returns the fraction of the initial carbon that
is still present after a given number of years.  Two shapes are
available:

* exponential, ``exp(-t / average_lifetime)``;
* Weibull, ``exp(-(t / scale) ** k)`` with the fixed shape
  :data:`WEIBULL_SHAPE`.  The scale is derived from the average
  lifetime through the Weibull mean, ``mean = scale * Gamma(1 + 1/k)``.

The lifetime can be entered either as a half-life or as an average
lifetime.  Both representations are kept consistent through
``half_life = average_lifetime * ln(2)``; the average lifetime is the
quantity carried over when the shape changes.
"""

from __future__ import annotations
import math
from typing import Hashable, Optional

from .params import DecayConfig, DecayFunctionType, LifetimeMode, VariabilitySource
from .sensitivity import SensitivityContext

WEIBULL_SHAPE = 5.0
LN2 = math.log(2.0)


class DecayFunction:
    """Fraction of carbon remaining as a function of elapsed time.

    Parameters
    ----------
    lifetime_mode:
        Whether `lifetime_yr` is a half-life or an average lifetime.
    function_type:
        Exponential or Weibull.
    lifetime_yr:
        The lifetime value in years.
    sensitivity:
        Optional sensitivity context used to perturb the lifetime in
        Monte Carlo realizations.
    subject_group:
        Key over which a lifetime modifier is shared within a realization.
    """

    def __init__(
        self,
        lifetime_mode: LifetimeMode = LifetimeMode.HALF_LIFE,
        function_type: DecayFunctionType = DecayFunctionType.EXPONENTIAL,
        lifetime_yr: float = 0.0,
        sensitivity: Optional[SensitivityContext] = None,
        subject_group: Hashable = None,
    ):
        self.lifetime_mode = LifetimeMode(lifetime_mode)
        self._function_type = DecayFunctionType(function_type)
        self.sensitivity = sensitivity
        self.subject_group = subject_group
        self.average_lifetime_yr = 0.0
        self.half_life_yr = 0.0
        self.weibull_scale = 0.0
        if self.lifetime_mode == LifetimeMode.HALF_LIFE:
            self.set_half_life_yr(lifetime_yr)
        else:
            self.set_average_lifetime_yr(lifetime_yr)

    @classmethod
    def from_config(cls, config: DecayConfig, **kwargs) -> "DecayFunction":
        return cls(config.lifetime_mode, config.function_type, config.lifetime_yr, **kwargs)

    @property
    def function_type(self) -> DecayFunctionType:
        return self._function_type

    @function_type.setter
    def function_type(self, value: DecayFunctionType) -> None:
        self._function_type = DecayFunctionType(value)
        self.set_average_lifetime_yr(self.average_lifetime_yr)

    @property
    def lifetime_yr(self) -> float:
        """The lifetime in the representation selected by `lifetime_mode`."""
        if self.lifetime_mode == LifetimeMode.HALF_LIFE:
            return self.half_life_yr
        return self.average_lifetime_yr

    def set_half_life_yr(self, half_life_yr: float) -> None:
        _check_lifetime(half_life_yr)
        self.half_life_yr = float(half_life_yr)
        self.average_lifetime_yr = self.half_life_yr / LN2
        self._update_scale()

    def set_average_lifetime_yr(self, average_lifetime_yr: float) -> None:
        _check_lifetime(average_lifetime_yr)
        self.average_lifetime_yr = float(average_lifetime_yr)
        self.half_life_yr = self.average_lifetime_yr * LN2
        self._update_scale()

    def set_lifetime_yr(self, lifetime_yr: float) -> None:
        if self.lifetime_mode == LifetimeMode.HALF_LIFE:
            self.set_half_life_yr(lifetime_yr)
        else:
            self.set_average_lifetime_yr(lifetime_yr)

    def _update_scale(self) -> None:
        self.weibull_scale = weibull_scale_from_mean(self.average_lifetime_yr)

    def lifetime_modifier(self, realization: Optional[int]) -> float:
        if self.sensitivity is None:
            return 1.0
        return self.sensitivity.get_modifier(VariabilitySource.LIFETIME, realization, self.subject_group)

    def remaining_fraction(self, elapsed_yr: float, realization: Optional[int] = None) -> float:
        """Return the fraction of the initial carbon left after `elapsed_yr` years.

        A zero lifetime stands for immediate oxidation: everything is
        released in the first year.
        """
        if elapsed_yr < 0:
            raise ValueError(f"Elapsed time must be non-negative, got {elapsed_yr}")
        if elapsed_yr == 0:
            return 1.0
        average = self.average_lifetime_yr * self.lifetime_modifier(realization)
        if average <= 0.0:
            return 0.0
        if self._function_type == DecayFunctionType.EXPONENTIAL:
            return math.exp(-elapsed_yr / average)
        scale = weibull_scale_from_mean(average)
        return math.exp(-((elapsed_yr / scale) ** WEIBULL_SHAPE))

    def __repr__(self) -> str:
        return (f"DecayFunction({self._function_type.value}, {self.lifetime_mode.value}, "
                f"average={self.average_lifetime_yr:g} yr, half-life={self.half_life_yr:g} yr)")


def weibull_scale_from_mean(mean_yr: float, shape: float = WEIBULL_SHAPE) -> float:
    """Scale parameter of a Weibull distribution with the given mean."""
    return mean_yr / math.gamma(1.0 + 1.0 / shape)


def _check_lifetime(value: float) -> None:
    if value is None or value < 0.0 or math.isnan(value):
        raise ValueError(f"Lifetime must be a non-negative number of years, got {value}")
