import os
import pathlib

_default_root_dir = pathlib.Path(__file__).parent.parent.parent

DATA_PATH = pathlib.Path(
    os.getenv(
        "LUNAR_ADMISSIONS_DATA_PATH",
        str(_default_root_dir / "data" / "moon_admissions.csv"),
    )
)
REPORT_DIR = pathlib.Path(
    os.getenv("LUNAR_ADMISSIONS_REPORT_DIR", str(_default_root_dir / "reports"))
)
ALPHA = float(os.getenv("LUNAR_ADMISSIONS_ALPHA", "0.05"))

# Expected shape of the input table
EXPECTED_ROWS = 36
OBSERVATIONS_PER_MONTH = 3

# Pairs re-tested with a two-sample t-test after Tukey HSD: (factor, level_1, level_2)
DEFAULT_T_TEST_PAIRS = [
    ("Season", "Fall", "Spring"),
    ("Season", "Winter", "Spring"),
]
