# MIT License
"""Aggregation utilities for the carbon flow engine.

Functions in this module turn the release records produced while
actualizing carbon units into pandas DataFrames, summarise them per year
and status, and report the carbon still stored in each ledger.  The
transformations are kept simple and transparent; additional metrics can
be added as extra columns.
"""

from __future__ import annotations
from typing import TYPE_CHECKING, Iterable, List
import pandas as pd

if TYPE_CHECKING:
    from .carbon_units import ReleaseRecord
    from .manager import ProductionProcessorManager

RECORD_COLUMNS = [
    "year",
    "status",
    "feature",
    "species_name",
    "species_type",
    "status_class",
    "biomass_type",
    "created_at",
    "elapsed",
    "released_c",
    "remaining_c",
    "co2_emissions",
    "methane_co2eq",
    "substitution_co2eq",
    "disposed_c",
]

FLOW_COLUMNS = ["released_c", "co2_emissions", "methane_co2eq", "substitution_co2eq", "disposed_c"]


def records_to_frame(records: Iterable["ReleaseRecord"], year: int) -> pd.DataFrame:
    """Build one row per release record.

    Parameters
    ----------
    records:
        Records returned by :meth:`CarbonUnit.actualize_carbon`.
    year:
        The year index the records belong to.

    Returns
    -------
    pandas.DataFrame
        A dataframe with the columns listed in :data:`RECORD_COLUMNS`.
    """
    rows = []
    for r in records:
        unit = r.unit
        rows.append(
            dict(
                year=year,
                status=unit.status.value,
                feature=unit.feature.name if unit.feature is not None else None,
                species_name=unit.species_name,
                species_type=unit.species_type,
                status_class=unit.status_class,
                biomass_type=unit.biomass_type.value,
                created_at=unit.created_at,
                elapsed=r.elapsed,
                released_c=r.released_c,
                remaining_c=r.remaining_c,
                co2_emissions=r.co2_emissions,
                methane_co2eq=r.methane_co2eq,
                substitution_co2eq=r.substitution_co2eq,
                disposed_c=r.disposed_c,
            )
        )
    return pd.DataFrame(rows, columns=RECORD_COLUMNS)


def annual_summary(frames: Iterable[pd.DataFrame]) -> pd.DataFrame:
    """Sum the release records per year and status and add cumulative columns.

    Parameters
    ----------
    frames:
        Dataframes returned by :meth:`ProductionProcessorManager.advance_year`.

    Returns
    -------
    pandas.DataFrame
        One row per (year, status) with the summed flows of
        :data:`FLOW_COLUMNS`, the remaining carbon and a `cum_` column for
        every flow.
    """
    frames: List[pd.DataFrame] = [f for f in frames if not f.empty]
    summary_columns = ["year", "status", *FLOW_COLUMNS, "remaining_c"]
    if not frames:
        return pd.DataFrame(columns=summary_columns + [f"cum_{c}" for c in FLOW_COLUMNS])
    df = pd.concat(frames, ignore_index=True)
    df = df.groupby(["year", "status"], as_index=False, sort=True)[[*FLOW_COLUMNS, "remaining_c"]].sum()
    for col in FLOW_COLUMNS:
        df[f"cum_{col}"] = df.groupby("status")[col].cumsum()
    return df


def stock_by_status(manager: "ProductionProcessorManager") -> pd.DataFrame:
    """Report what each carbon unit ledger currently holds."""
    rows = []
    for status, units in manager.carbon_units.items():
        rows.append(
            dict(
                status=status.value,
                n_units=len(units),
                volume=units.total_volume,
                initial_c=sum(u.initial_c for u in units),
                remaining_c=units.total_remaining_c,
            )
        )
    return pd.DataFrame(rows)
