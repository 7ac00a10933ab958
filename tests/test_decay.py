"""Tests for the decay functions.

They check the conversion between half-life and average lifetime, the
Weibull scale derived from the mean, and the boundaries of the remaining
fraction.
"""

import math

import pytest

from carbonflow.decay import WEIBULL_SHAPE, DecayFunction, weibull_scale_from_mean
from carbonflow.params import DecayFunctionType, LifetimeMode


def test_average_lifetime_to_half_life():
    df = DecayFunction(LifetimeMode.AVERAGE, DecayFunctionType.EXPONENTIAL, 10.0)
    assert math.isclose(df.half_life_yr, 10.0 * math.log(2.0))
    df.set_half_life_yr(df.half_life_yr)
    assert math.isclose(df.average_lifetime_yr, 10.0)


def test_weibull_scale_from_mean():
    df = DecayFunction(LifetimeMode.AVERAGE, DecayFunctionType.WEIBULL, 10.0)
    assert WEIBULL_SHAPE == 5.0
    assert math.isclose(df.weibull_scale, 10.89124421058335, rel_tol=1e-10)
    assert math.isclose(weibull_scale_from_mean(10.0), df.weibull_scale)


def test_exponential_half_life():
    df = DecayFunction(LifetimeMode.HALF_LIFE, DecayFunctionType.EXPONENTIAL, 35.0)
    assert math.isclose(df.remaining_fraction(35), 0.5)
    assert math.isclose(df.remaining_fraction(70), 0.25)


def test_remaining_fraction_boundaries():
    df = DecayFunction(LifetimeMode.HALF_LIFE, DecayFunctionType.WEIBULL, 20.0)
    assert df.remaining_fraction(0) == 1.0
    with pytest.raises(ValueError):
        df.remaining_fraction(-1)
    values = [df.remaining_fraction(t) for t in range(0, 100)]
    assert all(0.0 <= v <= 1.0 for v in values)
    assert all(a >= b for a, b in zip(values, values[1:]))


def test_zero_lifetime_releases_everything_after_one_year():
    df = DecayFunction(LifetimeMode.HALF_LIFE, DecayFunctionType.EXPONENTIAL, 0.0)
    assert df.remaining_fraction(0) == 1.0
    assert df.remaining_fraction(1) == 0.0


def test_invalid_lifetime():
    with pytest.raises(ValueError):
        DecayFunction(LifetimeMode.HALF_LIFE, DecayFunctionType.EXPONENTIAL, -1.0)
    with pytest.raises(ValueError):
        DecayFunction(LifetimeMode.AVERAGE, DecayFunctionType.EXPONENTIAL, float("nan"))


def test_switching_function_type_keeps_average_lifetime():
    df = DecayFunction(LifetimeMode.AVERAGE, DecayFunctionType.EXPONENTIAL, 10.0)
    df.function_type = DecayFunctionType.WEIBULL
    assert math.isclose(df.average_lifetime_yr, 10.0)
    assert math.isclose(df.weibull_scale, 10.89124421058335, rel_tol=1e-10)
    assert df.lifetime_yr == 10.0
