import logging

import pandas as pd
from pydantic import ValidationError as PydanticValidationError

from src.admissions_data.config import EXPECTED_ROWS, OBSERVATIONS_PER_MONTH
from src.admissions_data.schema import MONTHS, MOON_PHASES, REQUIRED_COLUMNS, Observation

logger = logging.getLogger(__name__)


class DataValidationError(ValueError):
    pass


def validate_observations(df: pd.DataFrame, expected_rows: int = EXPECTED_ROWS) -> None:
    """
    Validate the raw admissions table before any statistics are computed.

    Expected layout: one row per (Month, Moon) cell with columns
    ``Month`` (Jan..Dec), ``Moon`` (Before/During/After) and ``Admission``
    (non-negative number).

    Args:
        df: Raw table as read from disk
        expected_rows: Number of rows the table must contain

    Returns:
        None on successful validation

    Raises:
        DataValidationError: If validation fails, with all error messages concatenated
    """
    if not isinstance(df, pd.DataFrame):
        raise DataValidationError("Input must be a pandas DataFrame.")

    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise DataValidationError(f"Missing required column(s): {', '.join(missing)}.")

    errors = []

    # ─────────────────────────────
    # Row count
    # ─────────────────────────────
    if len(df) != expected_rows:
        errors.append(f"Expected {expected_rows} rows, found {len(df)}.")

    # ─────────────────────────────
    # Per-row schema
    # ─────────────────────────────
    for idx, record in enumerate(df[REQUIRED_COLUMNS].to_dict(orient="records")):
        try:
            Observation.model_validate(record)
        except PydanticValidationError as e:
            for err in e.errors():
                field = ".".join(str(loc) for loc in err["loc"])
                errors.append(f"Row {idx}: {field}: {err['msg']} (got {err.get('input')!r}).")

    # ─────────────────────────────
    # Design completeness
    # ─────────────────────────────
    cells = df.groupby(["Month", "Moon"], observed=True).size()
    duplicated = cells[cells > 1]
    for (month, moon), count in duplicated.items():
        errors.append(f"Cell ({month}, {moon}) occurs {count} times.")

    present = set(cells.index)
    for month in MONTHS:
        for moon in MOON_PHASES:
            if (month, moon) not in present:
                errors.append(f"Cell ({month}, {moon}) is missing.")

    per_month = df["Month"].value_counts()
    for month, count in per_month.items():
        if month in MONTHS and count != OBSERVATIONS_PER_MONTH:
            errors.append(
                f"Month {month} has {count} observations, expected {OBSERVATIONS_PER_MONTH}."
            )

    if errors:
        logger.error(f"Input validation failed with {len(errors)} error(s)")
        raise DataValidationError("\n".join(errors))
