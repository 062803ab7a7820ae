"""
Report generation for the lunar-phase admissions analysis.

This module condenses the pipeline output into a summary of findings and
renders the full analysis (tables, figures, test results and narrative
interpretation) as a Markdown document.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

import numpy as np

logger = logging.getLogger(__name__)


@dataclass
class AnalysisSummary:
    """Headline findings of one analysis run."""

    alpha: float
    n_obs: int
    significant_terms: list = field(default_factory=list)
    nonsignificant_terms: list = field(default_factory=list)
    significant_pairs: dict = field(default_factory=dict)
    significant_t_tests: list = field(default_factory=list)
    assumption_warnings: list = field(default_factory=list)
    failed_tests: dict = field(default_factory=dict)


def summarize_findings(test_output: dict) -> AnalysisSummary:
    """
    Extract the headline findings from the pipeline output.

    Parameters
    ----------
    test_output : dict
        Output of run_analysis_pipeline().

    Returns
    -------
    AnalysisSummary
    """
    alpha = test_output["alpha"]
    summary = AnalysisSummary(
        alpha=alpha,
        n_obs=test_output["n_obs"],
        assumption_warnings=list(test_output.get("assumption_warnings", [])),
    )

    for key, value in test_output.items():
        if isinstance(value, dict) and "error" in value:
            summary.failed_tests[key] = value["error"]

    anova = test_output.get("anova", {}).get("result")
    if anova is not None:
        for term in anova.terms[:-1]:
            target = summary.significant_terms if term.p_value < alpha else summary.nonsignificant_terms
            target.append(term.term)

    for key, value in test_output.items():
        if key.startswith("tukey-") and "result" in value:
            tukey = value["result"]
            summary.significant_pairs[tukey.factor] = [
                c.label for c in tukey.comparisons if c.p_adj < alpha
            ]
        elif key.startswith("t_test-") and "result" in value:
            res = value["result"]
            if res.p_value < alpha:
                summary.significant_t_tests.append(f"{res.level_1} vs {res.level_2}")

    return summary


def _format_p(p_value) -> str:
    if p_value is None or np.isnan(p_value):
        return "-"
    if p_value < 1e-4:
        return "< 0.0001"
    return f"{p_value:.4f}"


def _format_num(value, digits=3) -> str:
    if value is None or (isinstance(value, float) and np.isnan(value)):
        return "-"
    return f"{value:.{digits}f}"


def _markdown_table(headers, rows, align=None):
    align = align or [":---"] + ["---:"] * (len(headers) - 1)
    lines = ["| " + " | ".join(headers) + " |", "|" + "|".join(align) + "|"]
    for row in rows:
        lines.append("| " + " | ".join(str(c) for c in row) + " |")
    return lines


def _failure_lines(entry):
    return [f"**Failed:** {entry['error']}", ""]


def _contingency_section(table):
    headers = [f"{table.index.name} \\ {table.columns.name}", *table.columns, "Total"]
    rows = [
        [idx, *(_format_num(v, 1) for v in row), _format_num(row.sum(), 1)]
        for idx, row in zip(table.index, table.to_numpy(dtype=float))
    ]
    totals = table.to_numpy(dtype=float).sum(axis=0)
    rows.append(["Total", *(_format_num(v, 1) for v in totals), _format_num(totals.sum(), 1)])
    return _markdown_table(headers, rows)


def _summary_section(summary_df, keys):
    headers = [*keys, "n", "Mean", "SD", "Median"]
    rows = [
        [*(r[k] for k in keys), int(r["count"]), _format_num(r["mean"], 2),
         _format_num(r["std"], 2), _format_num(r["median"], 2)]
        for _, r in summary_df.iterrows()
    ]
    return _markdown_table(headers, rows, align=[":---"] * len(keys) + ["---:"] * 4)


def _anova_section(anova):
    headers = ["Term", "Df", "Sum Sq", "Mean Sq", "F value", "Pr(>F)"]
    rows = [
        [t.term, t.df, _format_num(t.sum_sq), _format_num(t.mean_sq),
         _format_num(t.f_value), _format_p(t.p_value)]
        for t in anova.terms
    ]
    return _markdown_table(headers, rows)


def _tukey_section(tukey, alpha):
    headers = ["Comparison", "Difference", "Lower", "Upper", "Adjusted p", ""]
    rows = [
        [c.label, _format_num(c.diff), _format_num(c.ci_lower), _format_num(c.ci_upper),
         _format_p(c.p_adj), "*" if c.p_adj < alpha else ""]
        for c in tukey.comparisons
    ]
    return _markdown_table(headers, rows)


def _interpretation_lines(summary: AnalysisSummary):
    lines = []
    alpha = summary.alpha

    if summary.significant_terms:
        lines.append(
            f"- At alpha = {alpha}, the ANOVA finds a significant effect of "
            f"{', '.join(summary.significant_terms)} on admissions."
        )
    if summary.nonsignificant_terms:
        lines.append(
            f"- No significant effect was found for {', '.join(summary.nonsignificant_terms)}."
        )

    for factor, pairs in summary.significant_pairs.items():
        if pairs:
            lines.append(f"- Tukey HSD on {factor}: {', '.join(pairs)} differ significantly.")
        else:
            lines.append(f"- Tukey HSD on {factor}: no pair of levels differs significantly.")

    if summary.significant_t_tests:
        lines.append(
            f"- Two-sample t-tests confirm a difference for {', '.join(summary.significant_t_tests)}."
        )

    if summary.assumption_warnings:
        lines.append("- Assumption checks raised concerns (advisory only):")
        lines.extend(f"  - {w}" for w in summary.assumption_warnings)
    else:
        lines.append("- Assumption checks raised no concerns at this significance level.")

    if summary.failed_tests:
        lines.append(f"- {len(summary.failed_tests)} test(s) could not be computed; see above.")

    return lines


def generate_markdown_report(
    test_output: dict,
    output_path: str,
    figure_paths: dict = None,
    data_source: str = None,
) -> str:
    """
    Generate a Markdown report from the analysis results.

    Parameters
    ----------
    test_output : dict
        Output of run_analysis_pipeline().
    output_path : str
        Path to save the Markdown report.
    figure_paths : dict, optional
        {figure name: image path} as returned by plot_report_figures().
        Images are linked relative to the report location.
    data_source : str, optional
        Input file name shown in the header.

    Returns
    -------
    str
        Path to the generated report.
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    summary = summarize_findings(test_output)
    alpha = summary.alpha
    timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    figure_paths = figure_paths or {}

    lines = []

    # Header
    lines.append("# Lunar Phase and Mental Health Admissions")
    lines.append("")
    lines.append(f"**Generated:** {timestamp}")
    lines.append("")
    if data_source:
        lines.append(f"**Data:** {data_source}")
        lines.append("")
    lines.append(f"**Observations:** {summary.n_obs}")
    lines.append("")
    lines.append(f"**Significance level:** {alpha}")
    lines.append("")

    # Descriptive section
    lines.append("## Descriptive Summary")
    lines.append("")
    lines.append("### Admissions by Season and Moon Phase (sum)")
    lines.append("")
    lines.extend(_contingency_section(test_output["contingency_table"]))
    lines.append("")

    for keys in (["Moon"], ["Season"]):
        summary_df = test_output.get(f"group_summary-{':'.join(keys)}")
        if summary_df is not None:
            lines.append(f"### Admissions by {' x '.join(keys)}")
            lines.append("")
            lines.extend(_summary_section(summary_df, keys))
            lines.append("")

    # Figures
    if figure_paths:
        lines.append("## Figures")
        lines.append("")
        for name, path in figure_paths.items():
            rel_path = Path(path)
            try:
                rel_path = rel_path.resolve().relative_to(output_path.parent.resolve())
            except ValueError:
                pass
            lines.append(f"![{name.replace('_', ' ')}]({rel_path.as_posix()})")
            lines.append("")

    # Assumption checks
    lines.append("## Assumption Checks")
    lines.append("")
    lines.append("### Levene's Test (homogeneity of variance, Moon x Season)")
    lines.append("")
    levene = test_output.get("levene", {})
    if "error" in levene:
        lines.extend(_failure_lines(levene))
    else:
        lines.append(f"- Statistic: {_format_num(levene['test_statistic'], 4)}")
        lines.append(f"- p-value: {_format_p(levene['p_value'])}")
        lines.append("")

    lines.append("### Shapiro-Wilk Test (normality of residuals)")
    lines.append("")
    shapiro = test_output.get("shapiro", {})
    if "error" in shapiro:
        lines.extend(_failure_lines(shapiro))
    else:
        lines.append(f"- W: {_format_num(shapiro['test_statistic'], 4)}")
        lines.append(f"- p-value: {_format_p(shapiro['p_value'])}")
        lines.append("")

    # ANOVA
    lines.append("## Two-Factor ANOVA (Moon x Season)")
    lines.append("")
    anova_entry = test_output.get("anova", {})
    if "error" in anova_entry:
        lines.extend(_failure_lines(anova_entry))
    else:
        lines.extend(_anova_section(anova_entry["result"]))
        lines.append("")

    for factor in ("Moon", "Season"):
        entry = test_output.get(f"one_way-{factor}")
        if entry is None:
            continue
        lines.append(f"### One-Way ANOVA on {factor}")
        lines.append("")
        if "error" in entry:
            lines.extend(_failure_lines(entry))
        else:
            lines.extend(_anova_section(entry["result"]))
            lines.append("")

    # Tukey HSD
    lines.append("## Tukey HSD Post-hoc Comparisons")
    lines.append("")
    for key in [k for k in test_output if k.startswith("tukey-")]:
        entry = test_output[key]
        lines.append(f"### {key.split('-', 1)[1]}")
        lines.append("")
        if "error" in entry:
            lines.extend(_failure_lines(entry))
        else:
            lines.extend(_tukey_section(entry["result"], alpha))
            lines.append("")

    # t-tests
    t_keys = [k for k in test_output if k.startswith("t_test-")]
    if t_keys:
        lines.append("## Two-Sample t-Tests")
        lines.append("")
        for key in t_keys:
            entry = test_output[key]
            if "error" in entry:
                lines.append(f"### {key.split('-', 1)[1]}")
                lines.append("")
                lines.extend(_failure_lines(entry))
                continue
            res = entry["result"]
            kind = "pooled variance" if res.equal_var else "Welch"
            lines.append(f"### {res.factor}: {res.level_1} vs {res.level_2} ({kind})")
            lines.append("")
            lines.append(
                f"- Means: {_format_num(res.mean_1, 2)} (n={res.n_1}) vs "
                f"{_format_num(res.mean_2, 2)} (n={res.n_2})"
            )
            lines.append(f"- Mean difference: {_format_num(res.mean_diff)}")
            lines.append(f"- t = {_format_num(res.test_statistic)}, df = {_format_num(res.df, 2)}")
            lines.append(f"- p-value: {_format_p(res.p_value)}")
            lines.append("")

    # Interpretation
    lines.append("## Interpretation")
    lines.append("")
    lines.extend(_interpretation_lines(summary))
    lines.append("")

    report_content = "\n".join(lines)
    output_path.write_text(report_content)

    logger.info(f"Report generated: {output_path}")
    return str(output_path)
