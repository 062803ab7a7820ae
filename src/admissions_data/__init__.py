"""Loading, validation and labelling of the lunar-phase admissions dataset."""

from src.admissions_data.labeling import add_season, season_of
from src.admissions_data.loader import (
    load_observations,
    read_admissions_table,
    to_observation_frame,
)
from src.admissions_data.schema import MONTHS, MOON_PHASES, SEASONS, Observation
from src.admissions_data.validate_input import DataValidationError, validate_observations

__all__ = [
    # Loading
    "load_observations",
    "read_admissions_table",
    "to_observation_frame",
    # Validation
    "DataValidationError",
    "validate_observations",
    # Labelling
    "add_season",
    "season_of",
    # Schema
    "Observation",
    "MONTHS",
    "MOON_PHASES",
    "SEASONS",
]
