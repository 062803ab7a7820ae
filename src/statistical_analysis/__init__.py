"""Statistical analysis of mental health admissions by lunar phase and season."""

from src.statistical_analysis.anova import (
    AnovaResult,
    TukeyResult,
    one_way_anova,
    significant_pairs,
    tukey_hsd,
    two_way_anova,
)
from src.statistical_analysis.pipeline import run_analysis_pipeline
from src.statistical_analysis.report import (
    AnalysisSummary,
    generate_markdown_report,
    summarize_findings,
)
from src.statistical_analysis.statistical_tests import (
    DegenerateDesignError,
    InsufficientSampleError,
    levene_test,
    pooled_t_test,
    shapiro_test,
)
from src.statistical_analysis.utils import contingency_table, group_by, group_summary

__all__ = [
    # Main pipeline
    "run_analysis_pipeline",
    # Report generation
    "AnalysisSummary",
    "generate_markdown_report",
    "summarize_findings",
    # Model fitting and post-hoc comparisons
    "AnovaResult",
    "TukeyResult",
    "one_way_anova",
    "two_way_anova",
    "tukey_hsd",
    "significant_pairs",
    # Statistical tests
    "DegenerateDesignError",
    "InsufficientSampleError",
    "levene_test",
    "pooled_t_test",
    "shapiro_test",
    # Utilities
    "contingency_table",
    "group_by",
    "group_summary",
]
