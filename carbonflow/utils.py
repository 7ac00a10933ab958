# MIT License
from __future__ import annotations
import hashlib, json
from pydantic import BaseModel


C_TO_CO2 = 44.0 / 12.0
C_TO_CH4 = 16.0 / 12.0


def config_hash(config: BaseModel) -> str:
    """Fingerprint a production line graph or engine settings.

    Two configurations that would build the same processor network get
    the same digest, so Monte Carlo runs can be grouped by the line they
    simulated. Unset optional fields are left out before hashing.

    Parameters
    ----------
    config:
        Any pydantic model, typically a :class:`ProductionLineConfig`.

    Returns
    -------
    str
        Hexadecimal string representation of the hash.
    """
    canonical = json.dumps(config.model_dump(mode="json", exclude_none=True), sort_keys=True)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def carbon_to_co2(carbon_mg: float) -> float:
    """Convert a mass of carbon into a mass of CO2."""
    return carbon_mg * C_TO_CO2


def co2_to_carbon(co2_mg: float) -> float:
    """Convert a mass of CO2 into a mass of carbon."""
    return co2_mg / C_TO_CO2
