"""Tests for report module."""

from pathlib import Path

import pytest

from src.admissions_data.loader import load_observations
from src.statistical_analysis.pipeline import run_analysis_pipeline
from src.statistical_analysis.report import generate_markdown_report, summarize_findings


@pytest.fixture(scope="module")
def output():
    return run_analysis_pipeline(load_observations())


def test_generate_markdown_report_creates_valid_report(tmp_path, output):
    """Test that generate_markdown_report creates a valid Markdown file."""
    report_path = tmp_path / "report.md"
    result = generate_markdown_report(output, str(report_path), data_source="moon_admissions.csv")

    assert Path(result).exists()
    content = report_path.read_text()
    assert "# Lunar Phase and Mental Health Admissions" in content
    assert "moon_admissions.csv" in content
    for section in (
        "## Descriptive Summary",
        "## Assumption Checks",
        "## Two-Factor ANOVA (Moon x Season)",
        "## Tukey HSD Post-hoc Comparisons",
        "## Two-Sample t-Tests",
        "## Interpretation",
    ):
        assert section in content
    assert "| Spring | 44.9 | 54.0 | 42.2 | 141.1 |" in content


def test_report_links_figures_relative_to_report(tmp_path, output):
    figures = tmp_path / "figures"
    figures.mkdir()
    (figures / "boxplot_moon.png").write_bytes(b"")

    report_path = tmp_path / "report.md"
    generate_markdown_report(
        output, str(report_path), figure_paths={"boxplot_moon": str(figures / "boxplot_moon.png")}
    )

    assert "![boxplot moon](figures/boxplot_moon.png)" in report_path.read_text()


def test_failed_tests_are_labelled(tmp_path, output):
    failed = dict(output)
    failed["shapiro"] = {"error": "Shapiro-Wilk test needs at least 3 residuals"}

    report_path = tmp_path / "report.md"
    generate_markdown_report(failed, str(report_path))
    content = report_path.read_text()

    assert "**Failed:** Shapiro-Wilk test needs at least 3 residuals" in content
    assert "nan" not in content


def test_summarize_findings(output):
    summary = summarize_findings(output)

    assert summary.n_obs == 36
    assert summary.significant_terms == ["Season"]
    assert "Moon" in summary.nonsignificant_terms
    assert set(summary.significant_pairs["Season"]) == {"Winter-Spring", "Spring-Fall"}
    assert summary.significant_pairs["Moon"] == []
    assert summary.significant_pairs["Moon:Season"] == []
    assert summary.failed_tests == {}
