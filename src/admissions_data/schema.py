from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

# ---------- Factor levels (canonical order) ----------

MONTHS = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]
MOON_PHASES = ["Before", "During", "After"]
SEASONS = ["Winter", "Spring", "Summer", "Fall"]

FACTOR_LEVELS = {
    "Month": MONTHS,
    "Moon": MOON_PHASES,
    "Season": SEASONS,
}

REQUIRED_COLUMNS = ["Month", "Moon", "Admission"]


# ---------- Observation ----------


class Observation(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    month: Literal[
        "Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"
    ] = Field(alias="Month")
    moon: Literal["Before", "During", "After"] = Field(alias="Moon")
    admission: float = Field(alias="Admission", ge=0, allow_inf_nan=False)
