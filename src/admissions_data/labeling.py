import pandas as pd

from src.admissions_data.schema import MONTHS, SEASONS
from src.admissions_data.validate_input import DataValidationError

_MONTH_TO_SEASON = {
    "Dec": "Winter",
    "Jan": "Winter",
    "Feb": "Winter",
    "Mar": "Spring",
    "Apr": "Spring",
    "May": "Spring",
    "Jun": "Summer",
    "Jul": "Summer",
    "Aug": "Summer",
    "Sep": "Fall",
    "Oct": "Fall",
    "Nov": "Fall",
}


def season_of(month: str) -> str:
    """Return the meteorological season for a three-letter month label."""
    try:
        return _MONTH_TO_SEASON[month]
    except (KeyError, TypeError):
        raise DataValidationError(
            f"Unrecognized month label {month!r}; expected one of {', '.join(MONTHS)}"
        ) from None


def add_season(df: pd.DataFrame) -> pd.DataFrame:
    """
    Derive the ``Season`` column from ``Month``.

    Parameters
    ----------
    df : pd.DataFrame
        Observations with a ``Month`` column.

    Returns
    -------
    pd.DataFrame
        Copy of ``df`` with an ordered categorical ``Season`` column.

    Raises
    ------
    DataValidationError
        If any month label is not recognized.
    """
    out = df.copy()
    seasons = [season_of(str(m)) for m in out["Month"]]
    out["Season"] = pd.Categorical(seasons, categories=SEASONS, ordered=True)
    return out
