"""Tests for plotting module."""

import numpy as np
import pytest

from src.admissions_data.loader import load_observations
from src.statistical_analysis.plotting import (
    plot_boxplot,
    plot_report_figures,
    plot_residual_qq,
    plot_season_histograms,
)


@pytest.fixture(scope="module")
def observations():
    return load_observations()


@pytest.mark.parametrize("factor", ["Moon", "Month", "Season"])
def test_plot_boxplot_saves_figure(tmp_path, observations, factor):
    """Test that plot_boxplot saves a valid figure to disk."""
    save_path = tmp_path / f"boxplot_{factor}.png"
    plot_boxplot(observations, factor, save_path=str(save_path))

    assert save_path.exists()
    assert save_path.stat().st_size > 0


def test_plot_season_histograms_saves_figure(tmp_path, observations):
    save_path = tmp_path / "hist.png"
    plot_season_histograms(observations, save_path=str(save_path))

    assert save_path.exists()
    assert save_path.stat().st_size > 0


def test_plot_residual_qq_rejects_empty():
    with pytest.raises(RuntimeError, match="No residuals"):
        plot_residual_qq(np.array([]))


def test_plot_report_figures(tmp_path, observations):
    from src.statistical_analysis.anova import two_way_anova

    test_output = {"anova": {"result": two_way_anova(observations)}}
    paths = plot_report_figures(observations, test_output, tmp_path / "figures")

    assert set(paths) == {
        "boxplot_moon",
        "boxplot_month",
        "boxplot_season",
        "histogram_season",
        "residual_qq",
    }
    for path in paths.values():
        assert (tmp_path / "figures").joinpath(path.split("/")[-1]).exists()


def test_plot_report_figures_without_model(tmp_path, observations):
    paths = plot_report_figures(observations, {"anova": {"error": "failed"}}, tmp_path)
    assert "residual_qq" not in paths
