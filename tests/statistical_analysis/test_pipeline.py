"""Tests for pipeline module."""

import pandas as pd
import pytest

from src.admissions_data.loader import load_observations
from src.statistical_analysis.anova import AnovaResult, TukeyResult
from src.statistical_analysis.pipeline import run_analysis_pipeline
from src.statistical_analysis.statistical_tests import TTestResult
from tests.statistical_analysis.generate_synthetic_data import generate_synthetic_observations


@pytest.fixture(scope="module")
def observations():
    return load_observations()


@pytest.fixture(scope="module")
def output(observations):
    return run_analysis_pipeline(observations)


class TestRunAnalysisPipeline:
    """End-to-end runs on the bundled dataset."""

    def test_expected_keys(self, output):
        for key in (
            "contingency_table",
            "group_summary-Moon",
            "group_summary-Season",
            "group_summary-Moon:Season",
            "levene",
            "anova",
            "shapiro",
            "one_way-Moon",
            "one_way-Season",
            "tukey-Moon",
            "tukey-Season",
            "tukey-Moon:Season",
            "t_test-Season-Fall-Spring",
            "t_test-Season-Winter-Spring",
        ):
            assert key in output, key

    def test_result_types(self, output):
        assert isinstance(output["anova"]["result"], AnovaResult)
        assert isinstance(output["tukey-Season"]["result"], TukeyResult)
        assert isinstance(output["t_test-Season-Fall-Spring"]["result"], TTestResult)

    def test_pvalues_valid(self, output):
        for key in ("levene", "shapiro"):
            assert 0 <= output[key]["p_value"] <= 1

    def test_anova_conclusions(self, output):
        anova = output["anova"]["result"]
        assert anova.term("Season").p_value < 0.01
        assert anova.term("Moon").p_value > 0.05

    def test_contingency_cell(self, output):
        assert output["contingency_table"].loc["Spring", "During"] == pytest.approx(54.0)

    def test_default_t_tests_significant(self, output):
        for key in ("t_test-Season-Fall-Spring", "t_test-Season-Winter-Spring"):
            assert output[key]["result"].p_value < 0.05

    def test_no_failures(self, output):
        assert not [k for k, v in output.items() if isinstance(v, dict) and "error" in v]

    def test_derives_season_when_missing(self, observations):
        out = run_analysis_pipeline(observations.drop(columns=["Season"]), t_test_pairs=[])
        assert "anova" in out and "result" in out["anova"]


class TestPipelineOptions:
    """Pair selection, alpha and failure handling."""

    def test_auto_pairs_from_tukey(self, observations):
        out = run_analysis_pipeline(observations, auto_pairs=True)
        t_keys = sorted(k for k in out if k.startswith("t_test-"))
        assert t_keys == ["t_test-Season-Spring-Fall", "t_test-Season-Winter-Spring"]

    def test_custom_pairs(self, observations):
        out = run_analysis_pipeline(observations, t_test_pairs=[("Moon", "Before", "During")])
        assert [k for k in out if k.startswith("t_test-")] == ["t_test-Moon-Before-During"]

    @pytest.mark.parametrize("alpha", [0, 1, -0.1, 1.5])
    def test_invalid_alpha_raises(self, observations, alpha):
        with pytest.raises(ValueError, match="alpha"):
            run_analysis_pipeline(observations, alpha=alpha)

    def test_missing_column_raises(self, observations):
        with pytest.raises(ValueError, match="Admission"):
            run_analysis_pipeline(observations.drop(columns=["Admission"]))

    def test_assumption_warnings_are_advisory(self, observations):
        out = run_analysis_pipeline(observations, alpha=0.999)
        assert out["assumption_warnings"]
        assert "result" in out["anova"]

    def test_insufficient_sample_recorded_as_failure(self, observations):
        out = run_analysis_pipeline(observations, t_test_pairs=[("Season", "Autumn", "Spring")])
        assert "observation" in out["t_test-Season-Autumn-Spring"]["error"]

    def test_degenerate_anova_recorded_and_propagated(self):
        data = generate_synthetic_observations(seed=0)
        one_per_cell = data.groupby(["Moon", "Season"], observed=True).head(1)
        out = run_analysis_pipeline(one_per_cell, t_test_pairs=[])

        assert "Residual degrees of freedom" in out["anova"]["error"]
        assert "ANOVA" in out["shapiro"]["error"]
        assert all("error" in out[f"tukey-{t}"] for t in ("Moon", "Season", "Moon:Season"))
        assert isinstance(out["contingency_table"], pd.DataFrame)
