"""Unit tests for src.statistical_analysis.anova."""

import numpy as np
import pandas as pd
import pytest
from scipy.stats import f_oneway

from src.admissions_data.loader import load_observations
from src.statistical_analysis.anova import (
    one_way_anova,
    significant_pairs,
    tukey_hsd,
    two_way_anova,
)
from src.statistical_analysis.statistical_tests import DegenerateDesignError
from tests.statistical_analysis.generate_synthetic_data import generate_synthetic_observations

ALPHA = 0.05


@pytest.fixture(scope="module")
def observations():
    return load_observations()


@pytest.fixture(scope="module")
def anova(observations):
    return two_way_anova(observations)


@pytest.fixture(scope="module")
def tukey_season(observations, anova):
    return tukey_hsd(observations, anova, "Season")


# ─────────────────────────────────────────────────────────────────────────────
# Tests for two_way_anova - decomposition properties
# ─────────────────────────────────────────────────────────────────────────────


class TestTwoWayAnovaDecomposition:
    """The sum-of-squares decomposition is complete and consistent."""

    def test_terms_in_order(self, anova):
        assert [t.term for t in anova.terms] == ["Moon", "Season", "Moon:Season", "Residuals"]

    def test_degrees_of_freedom(self, anova):
        assert anova.term("Moon").df == 2
        assert anova.term("Season").df == 3
        assert anova.term("Moon:Season").df == 6
        assert anova.df_residual == 24
        assert sum(t.df for t in anova.terms) == anova.n_obs - 1

    def test_sums_of_squares_add_up(self, anova):
        assert sum(t.sum_sq for t in anova.terms) == pytest.approx(anova.ss_total, rel=1e-9)

    @pytest.mark.parametrize("seed", range(5))
    def test_sums_of_squares_add_up_on_random_balanced_designs(self, seed):
        data = generate_synthetic_observations(seed=seed, season_effect={"Summer": 3.0})
        result = two_way_anova(data)
        assert sum(t.sum_sq for t in result.terms) == pytest.approx(result.ss_total, rel=1e-9)
        assert sum(t.df for t in result.terms) == len(data) - 1

    def test_mean_squares_and_f(self, anova):
        for t in anova.terms[:-1]:
            assert t.mean_sq == pytest.approx(t.sum_sq / t.df)
            assert t.f_value == pytest.approx(t.mean_sq / anova.mse)
            assert 0 <= t.p_value <= 1

    def test_residual_row_has_no_test(self, anova):
        residual = anova.term("Residuals")
        assert residual.f_value is None
        assert residual.p_value is None

    def test_residuals_are_observed_minus_cell_mean(self, observations, anova):
        cell_means = observations.groupby(["Moon", "Season"], observed=True)["Admission"].transform("mean")
        np.testing.assert_allclose(anova.fitted, cell_means.to_numpy())
        np.testing.assert_allclose(anova.residuals, observations["Admission"].to_numpy() - anova.fitted)
        assert anova.residuals.sum() == pytest.approx(0.0, abs=1e-9)

    def test_row_order_does_not_change_result(self, observations, anova):
        shuffled = observations.sample(frac=1, random_state=1)
        result = two_way_anova(shuffled)
        for a, b in zip(anova.terms, result.terms):
            assert a.sum_sq == pytest.approx(b.sum_sq, rel=1e-12)

    def test_to_frame(self, anova):
        frame = anova.to_frame()
        assert list(frame.index) == ["Moon", "Season", "Moon:Season", "Residuals"]
        assert list(frame.columns) == ["Df", "Sum Sq", "Mean Sq", "F value", "Pr(>F)"]
        assert np.isnan(frame.loc["Residuals", "F value"])

    def test_unknown_term_raises(self, anova):
        with pytest.raises(KeyError, match="Month"):
            anova.term("Month")


# ─────────────────────────────────────────────────────────────────────────────
# Tests for two_way_anova - the admissions dataset
# ─────────────────────────────────────────────────────────────────────────────


class TestTwoWayAnovaAdmissions:
    """Fitted results on the bundled dataset sit on the documented side of alpha."""

    def test_season_significant(self, anova):
        assert anova.term("Season").p_value < 0.01

    def test_moon_not_significant(self, anova):
        assert anova.term("Moon").p_value > ALPHA

    def test_interaction_not_significant(self, anova):
        assert anova.term("Moon:Season").p_value > ALPHA

    def test_known_sums_of_squares(self, anova):
        assert anova.ss_total == pytest.approx(621.7497, abs=1e-3)
        assert anova.term("Season").sum_sq == pytest.approx(193.2564, abs=1e-3)
        assert anova.term("Moon").sum_sq == pytest.approx(38.5972, abs=1e-3)
        assert anova.term("Residuals").sum_sq == pytest.approx(325.32, abs=1e-3)


# ─────────────────────────────────────────────────────────────────────────────
# Tests for two_way_anova / one_way_anova - degenerate designs
# ─────────────────────────────────────────────────────────────────────────────


class TestAnovaDegenerateDesigns:
    """Degenerate designs fail with DegenerateDesignError, never NaN."""

    def test_empty_cell_raises(self, observations):
        mask = (observations["Moon"] == "During") & (observations["Season"] == "Winter")
        with pytest.raises(DegenerateDesignError, match="During:Winter"):
            two_way_anova(observations[~mask])

    def test_no_residual_df_raises(self, observations):
        one_per_cell = observations.groupby(["Moon", "Season"], observed=True).head(1)
        with pytest.raises(DegenerateDesignError, match="Residual degrees of freedom"):
            two_way_anova(one_per_cell)

    def test_single_level_raises(self, observations):
        with pytest.raises(DegenerateDesignError, match="at least 2 observed levels"):
            two_way_anova(observations[observations["Moon"] == "Before"])

    def test_zero_residual_variance_raises(self):
        df = pd.DataFrame(
            {
                "Moon": ["Before", "Before", "During", "During"] * 2,
                "Season": ["Winter"] * 4 + ["Spring"] * 4,
                "Admission": [1.0, 1.0, 2.0, 2.0, 3.0, 3.0, 5.0, 5.0],
            }
        )
        with pytest.raises(DegenerateDesignError, match="Residual mean square is zero"):
            two_way_anova(df)

    def test_empty_dataset_raises(self, observations):
        with pytest.raises(DegenerateDesignError, match="empty"):
            two_way_anova(observations.iloc[:0])

    def test_missing_column_raises(self, observations):
        with pytest.raises(ValueError, match="Missing column"):
            two_way_anova(observations.drop(columns=["Season"]))


class TestOneWayAnova:
    """Tests for one_way_anova."""

    @pytest.mark.parametrize("factor", ["Moon", "Season"])
    def test_matches_scipy(self, observations, factor):
        samples = [g["Admission"].to_numpy() for _, g in observations.groupby(factor, observed=True)]
        expected = f_oneway(*samples)

        result = one_way_anova(observations, factor)

        assert result.term(factor).f_value == pytest.approx(expected.statistic)
        assert result.term(factor).p_value == pytest.approx(expected.pvalue)

    def test_single_level_raises(self, observations):
        with pytest.raises(DegenerateDesignError):
            one_way_anova(observations[observations["Season"] == "Fall"], "Season")


# ─────────────────────────────────────────────────────────────────────────────
# Tests for tukey_hsd
# ─────────────────────────────────────────────────────────────────────────────


class TestTukeyHsd:
    """Tests for Tukey HSD comparisons."""

    def test_all_pairs_in_canonical_order(self, tukey_season):
        assert [c.label for c in tukey_season.comparisons] == [
            "Winter-Spring",
            "Winter-Summer",
            "Winter-Fall",
            "Spring-Summer",
            "Spring-Fall",
            "Summer-Fall",
        ]

    def test_diff_is_first_minus_second(self, observations, tukey_season):
        means = observations.groupby("Season", observed=True)["Admission"].mean()
        c = tukey_season.comparison("Winter", "Spring")
        assert c.diff == pytest.approx(means["Winter"] - means["Spring"])

    def test_standard_error(self, anova, tukey_season):
        for c in tukey_season.comparisons:
            assert c.se == pytest.approx(np.sqrt(anova.mse / 2 * (1 / 9 + 1 / 9)))

    def test_confidence_intervals_symmetric(self, tukey_season):
        for c in tukey_season.comparisons:
            assert c.diff - c.ci_lower == pytest.approx(c.ci_upper - c.diff)
            assert c.ci_upper - c.diff == pytest.approx(tukey_season.q_critical * c.se)

    def test_interval_excludes_zero_iff_significant(self, tukey_season):
        for c in tukey_season.comparisons:
            excludes_zero = c.ci_lower > 0 or c.ci_upper < 0
            assert excludes_zero == (c.p_adj < ALPHA)

    def test_season_significant_pairs(self, tukey_season):
        assert tukey_season.comparison("Spring", "Fall").p_adj < ALPHA
        assert tukey_season.comparison("Winter", "Spring").p_adj < ALPHA
        assert tukey_season.comparison("Spring", "Summer").p_adj > ALPHA

    def test_moon_pairs_not_significant(self, observations, anova):
        tukey = tukey_hsd(observations, anova, "Moon")
        assert len(tukey.comparisons) == 3
        assert all(c.p_adj > ALPHA for c in tukey.comparisons)

    def test_interaction_pairs_not_significant(self, observations, anova):
        tukey = tukey_hsd(observations, anova, "Moon:Season")
        assert len(tukey.comparisons) == 66
        assert tukey.comparisons[0].label == "Before:Winter-Before:Spring"
        assert all(c.p_adj > ALPHA for c in tukey.comparisons)

    def test_uses_model_error_variance(self, anova, tukey_season):
        assert tukey_season.mse == anova.mse
        assert tukey_season.df_residual == anova.df_residual == 24

    def test_comparison_lookup_is_order_free(self, tukey_season):
        assert tukey_season.comparison("Fall", "Spring") is tukey_season.comparison("Spring", "Fall")

    def test_to_frame(self, tukey_season):
        frame = tukey_season.to_frame()
        assert list(frame.columns) == ["diff", "lwr", "upr", "p adj"]
        assert frame.index.name == "Season"

    def test_unknown_factor_raises(self, observations, anova):
        with pytest.raises(ValueError, match="not a term"):
            tukey_hsd(observations, anova, "Month")

    def test_invalid_conf_level_raises(self, observations, anova):
        with pytest.raises(ValueError, match="conf_level"):
            tukey_hsd(observations, anova, "Season", conf_level=95)


class TestSignificantPairs:
    """Tests for significant_pairs."""

    def test_season_pairs(self, tukey_season):
        pairs = significant_pairs(tukey_season, ALPHA)
        assert ("Season", "Spring", "Fall") in pairs
        assert ("Season", "Winter", "Spring") in pairs
        assert ("Season", "Spring", "Summer") not in pairs

    def test_interaction_family_skipped(self, observations, anova):
        tukey = tukey_hsd(observations, anova, "Moon:Season")
        assert significant_pairs(tukey, alpha=0.99) == []
