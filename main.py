import argparse
import logging
import pathlib
import sys
from datetime import datetime

from dotenv import load_dotenv

load_dotenv()

from src.admissions_data import DataValidationError, load_observations
from src.admissions_data.config import ALPHA, DATA_PATH, REPORT_DIR
from src.statistical_analysis.pipeline import run_analysis_pipeline
from src.statistical_analysis.plotting import plot_report_figures
from src.statistical_analysis.report import generate_markdown_report, summarize_findings
from src.statistical_analysis.utils import contingency_table


def configure_logging(log_level: str):
    """Configure logging with the specified level."""
    logging.basicConfig(
        level=getattr(logging, log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        force=True,
    )
    return logging.getLogger(__name__)


def _load(args, logger):
    """Load observations from --data, exiting with a message on malformed input."""
    data_path = pathlib.Path(args.data)
    try:
        return load_observations(data_path)
    except DataValidationError as e:
        logger.error(f"Invalid input data in {data_path}:\n{e}")
        raise SystemExit(1)


def _alpha(value: str) -> float:
    """Parse --alpha, accepting only values strictly between 0 and 1."""
    try:
        alpha = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid alpha: {value!r}") from None
    if not 0 < alpha < 1:
        raise argparse.ArgumentTypeError(f"alpha must be between 0 and 1, got {value}")
    return alpha


def _run(args, obs):
    return run_analysis_pipeline(obs, auto_pairs=args.auto_pairs, alpha=args.alpha)


def cmd_table(args):
    """Print the Season x Moon table of summed admissions."""
    logger = configure_logging(args.log_level)
    obs = _load(args, logger)

    table = contingency_table(obs)
    table["Total"] = table.sum(axis=1)
    print(table.to_string(float_format=lambda v: f"{v:.1f}"))


def cmd_analyze(args):
    """Run the analysis pipeline and print the results."""
    logger = configure_logging(args.log_level)
    obs = _load(args, logger)
    output = _run(args, obs)

    for key in ("levene", "shapiro"):
        entry = output[key]
        if "error" in entry:
            print(f"\n{key}: FAILED ({entry['error']})")
        else:
            print(f"\n{key}: statistic={entry['test_statistic']:.4f}, p-value={entry['p_value']:.4f}")

    if "error" in output["anova"]:
        print(f"\nTwo-factor ANOVA: FAILED ({output['anova']['error']})")
    else:
        print("\nTwo-factor ANOVA")
        print(output["anova"]["result"].to_frame().to_string(float_format=lambda v: f"{v:.4f}"))

    for key in [k for k in output if k.startswith("tukey-")]:
        if "error" in output[key]:
            print(f"\nTukey HSD: {key.split('-', 1)[1]}: FAILED ({output[key]['error']})")
        else:
            print(f"\nTukey HSD: {key.split('-', 1)[1]}")
            print(output[key]["result"].to_frame().to_string(float_format=lambda v: f"{v:.4f}"))

    for key in [k for k in output if k.startswith("t_test-")]:
        entry = output[key]
        if "error" in entry:
            print(f"\n{key}: FAILED ({entry['error']})")
            continue
        res = entry["result"]
        print(
            f"\nt-test {res.factor} {res.level_1} vs {res.level_2}: "
            f"t={res.test_statistic:.4f}, df={res.df:g}, p-value={res.p_value:.4f}"
        )

    summary = summarize_findings(output)
    if summary.failed_tests:
        logger.warning(f"{len(summary.failed_tests)} test(s) failed: {', '.join(summary.failed_tests)}")


def cmd_report(args):
    """Render the full Markdown report with figures."""
    logger = configure_logging(args.log_level)
    obs = _load(args, logger)
    output = _run(args, obs)

    if args.output:
        report_path = pathlib.Path(args.output)
    else:
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        report_path = REPORT_DIR / f"moon_admissions_report_{timestamp}.md"

    figure_paths = None
    if not args.no_plots:
        try:
            figure_paths = plot_report_figures(obs, output, report_path.parent / "figures")
        except Exception as e:
            logger.error(f"Plotting failed: {str(e)}")

    generate_markdown_report(
        output,
        str(report_path),
        figure_paths=figure_paths,
        data_source=pathlib.Path(args.data).name,
    )
    print(report_path)


def _add_common_arguments(parser, with_analysis=True):
    parser.add_argument(
        "--data",
        default=str(DATA_PATH),
        help=f"Path to the admissions table (default: {DATA_PATH})",
    )
    if with_analysis:
        parser.add_argument(
            "--alpha",
            type=_alpha,
            default=ALPHA,
            help=f"Significance level (default: {ALPHA})",
        )
        parser.add_argument(
            "--auto-pairs",
            action="store_true",
            help="Re-test every significant Tukey pair with a t-test instead of the default pairs",
        )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Set logging level (default: INFO)",
    )


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Moon Admissions - lunar phase and mental health admissions analysis",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Table command
    table_parser = subparsers.add_parser(
        "table", help="Print the Season x Moon table of summed admissions"
    )
    _add_common_arguments(table_parser, with_analysis=False)
    table_parser.set_defaults(func=cmd_table)

    # Analyze command
    analyze_parser = subparsers.add_parser("analyze", help="Run the statistical analysis")
    _add_common_arguments(analyze_parser)
    analyze_parser.set_defaults(func=cmd_analyze)

    # Report command
    report_parser = subparsers.add_parser("report", help="Generate the Markdown report")
    _add_common_arguments(report_parser)
    report_parser.add_argument(
        "--output",
        metavar="PATH",
        help="Output path (default: reports/moon_admissions_report_<timestamp>.md)",
    )
    report_parser.add_argument(
        "--no-plots",
        action="store_true",
        help="Do not generate figures",
    )
    report_parser.set_defaults(func=cmd_report)

    args = parser.parse_args(sys.argv[1:] if argv is None else argv)

    if args.command is None:
        parser.print_help()
        return

    args.func(args)


if __name__ == "__main__":
    main()
