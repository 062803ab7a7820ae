import logging

import pandas as pd

from src.admissions_data.schema import FACTOR_LEVELS
from src.admissions_data.validate_input import DataValidationError

logger = logging.getLogger(__name__)


def _as_key_list(keys):
    if isinstance(keys, str):
        return [keys]
    keys = list(keys)
    if not keys:
        raise ValueError("At least one grouping key is required")
    return keys


def with_ordered_levels(df, keys):
    """
    Return a copy of ``df`` whose known factor columns are ordered categoricals.

    Parameters
    ----------
    df : pd.DataFrame
        Observations.
    keys : str or list of str
        Columns to order. Columns without a declared level order are left as is.

    Returns
    -------
    pd.DataFrame
        Copy of ``df``.

    Raises
    ------
    DataValidationError
        If a column holds values outside its declared levels.
    """
    keys = _as_key_list(keys)
    out = df.copy()

    for key in keys:
        if key not in out.columns:
            raise ValueError(f"Unknown grouping column: {key}")
        levels = FACTOR_LEVELS.get(key)
        if levels is None:
            continue
        dtype = out[key].dtype
        if (
            isinstance(dtype, pd.CategoricalDtype)
            and dtype.ordered
            and list(dtype.categories) == levels
        ):
            continue

        values = out[key].astype(str)
        unknown = sorted(set(values[~values.isin(levels)]))
        if unknown:
            raise DataValidationError(f"Unrecognized {key} value(s): {', '.join(unknown)}")
        out[key] = pd.Categorical(values, categories=levels, ordered=True)

    return out


def group_by(df, keys):
    """
    Partition observations by one or more factors.

    Groups are returned in declared level order (Moon: Before, During, After;
    Season: Winter to Fall; Month: Jan to Dec), never alphabetically. Only
    combinations that actually occur are returned.

    Parameters
    ----------
    df : pd.DataFrame
        Observations.
    keys : str or list of str
        Grouping column(s).

    Returns
    -------
    dict
        {tuple of level labels: pd.DataFrame of the group's observations}
    """
    keys = _as_key_list(keys)
    data = with_ordered_levels(df, keys)

    groups = {}
    for key, sub in data.groupby(keys, observed=True, sort=True):
        key = key if isinstance(key, tuple) else (key,)
        groups[tuple(str(k) for k in key)] = sub

    return groups


def contingency_table(
    df,
    rows: str = "Season",
    columns: str = "Moon",
    values: str = "Admission",
    aggfunc: str = "sum",
):
    """
    Two-way table of aggregated admissions (Season x Moon by default).

    All declared levels appear in canonical order; empty cells hold 0 for sums.
    """
    data = with_ordered_levels(df, [rows, columns])
    table = pd.pivot_table(
        data,
        index=rows,
        columns=columns,
        values=values,
        aggfunc=aggfunc,
        observed=False,
        dropna=False,
        fill_value=0,
    )
    table.index = table.index.astype(str)
    table.columns = table.columns.astype(str)
    table.index.name = rows
    table.columns.name = columns
    return table


def group_summary(df, keys, response: str = "Admission"):
    """Count, mean, standard deviation and median of ``response`` per group."""
    keys = _as_key_list(keys)
    data = with_ordered_levels(df, keys)
    summary = (
        data.groupby(keys, observed=True, sort=True)[response]
        .agg(["count", "mean", "std", "median"])
        .reset_index()
    )
    for key in keys:
        summary[key] = summary[key].astype(str)
    return summary
