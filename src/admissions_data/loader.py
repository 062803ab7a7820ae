import logging
import pathlib

import pandas as pd

from src.admissions_data.config import DATA_PATH, EXPECTED_ROWS
from src.admissions_data.labeling import add_season
from src.admissions_data.schema import MONTHS, MOON_PHASES, REQUIRED_COLUMNS
from src.admissions_data.validate_input import DataValidationError, validate_observations

logger = logging.getLogger(__name__)


def read_admissions_table(path: str | pathlib.Path) -> pd.DataFrame:
    """
    Read the raw admissions table from a delimited text file.

    The delimiter is sniffed, so comma, semicolon and tab separated files are
    all accepted. String cells are stripped of surrounding whitespace.

    Parameters
    ----------
    path : str or pathlib.Path
        Path to the input file.

    Returns
    -------
    pd.DataFrame
        Raw table, not yet validated.

    Raises
    ------
    DataValidationError
        If the file does not exist or cannot be parsed.
    """
    path = pathlib.Path(path)
    if not path.is_file():
        raise DataValidationError(f"Input file does not exist: {path}")

    try:
        df = pd.read_csv(path, sep=None, engine="python")
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
        raise DataValidationError(f"Could not parse {path}: {e}") from e

    df.columns = [str(c).strip() for c in df.columns]
    for col in df.select_dtypes(include=["object", "string"]).columns:
        df[col] = df[col].str.strip()

    logger.debug(f"Read {len(df)} rows with columns {list(df.columns)} from {path}")
    return df


def to_observation_frame(df: pd.DataFrame, expected_rows: int = EXPECTED_ROWS) -> pd.DataFrame:
    """
    Validate a raw table and convert it to the typed observation frame.

    ``Month`` and ``Moon`` become ordered categoricals in calendar and lunar
    order, ``Admission`` becomes float and ``Season`` is derived from ``Month``.
    Rows are sorted by month and moon phase.
    """
    validate_observations(df, expected_rows=expected_rows)

    obs = df[REQUIRED_COLUMNS].copy()
    obs["Month"] = pd.Categorical(obs["Month"], categories=MONTHS, ordered=True)
    obs["Moon"] = pd.Categorical(obs["Moon"], categories=MOON_PHASES, ordered=True)
    obs["Admission"] = obs["Admission"].astype(float)
    obs = add_season(obs)

    return obs.sort_values(["Month", "Moon"]).reset_index(drop=True)


def load_observations(path: str | pathlib.Path | None = None) -> pd.DataFrame:
    """
    Load, validate and label the admissions dataset.

    Parameters
    ----------
    path : str or pathlib.Path, optional
        Input file. Defaults to ``DATA_PATH`` (overridable through the
        LUNAR_ADMISSIONS_DATA_PATH environment variable).

    Returns
    -------
    pd.DataFrame
        Columns ``Month``, ``Moon``, ``Admission``, ``Season``.

    Raises
    ------
    DataValidationError
        If the file is missing, unparsable or violates the expected layout.
    """
    path = pathlib.Path(path) if path is not None else DATA_PATH
    df = read_admissions_table(path)
    obs = to_observation_frame(df)
    logger.info(f"Loaded {len(obs)} observations from {path}")
    return obs
