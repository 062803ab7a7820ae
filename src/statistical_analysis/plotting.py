import logging
import pathlib

import matplotlib.pyplot as plt
import numpy as np
from scipy.stats import probplot

from src.statistical_analysis.utils import group_by

logger = logging.getLogger(__name__)


def _finish(fig, save_path):
    plt.tight_layout()
    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches="tight")
        plt.close(fig)
        logger.info(f"Plot saved to {save_path}")
    else:
        plt.show()


def _plot_boxplot_by(ax, df, factor, response="Admission"):
    """
    Draw one box per level of ``factor`` in canonical level order.

    Parameters
    ----------
    ax : matplotlib.axes.Axes
        Axes object to plot on.
    df : pd.DataFrame
        Observations.
    factor : str
        Grouping column.
    response : str
        Column plotted on the y axis.
    """
    groups = group_by(df, [factor])
    labels = [key[0] for key in groups]
    values = [g[response].to_numpy(dtype=float) for g in groups.values()]

    ax.boxplot(values)
    ax.set_xticks(range(1, len(labels) + 1), labels)
    ax.set_xlabel(factor)
    ax.set_ylabel(response)
    ax.set_title(f"{response} by {factor}")
    ax.grid(True, axis="y", alpha=0.3)


def _plot_residual_qq(ax, residuals):
    probplot(residuals, dist="norm", plot=ax)
    ax.set_title("Q-Q Plot for ANOVA residuals")
    ax.grid(True, alpha=0.3)


def plot_boxplot(df, factor: str, save_path: str = None):
    """Boxplot of admissions grouped by ``factor`` (Moon, Month or Season)."""
    fig, ax = plt.subplots(1, 1, figsize=(max(5, 0.6 * df[factor].nunique() + 3), 5))
    _plot_boxplot_by(ax, df, factor)
    _finish(fig, save_path)


def plot_season_histograms(df, save_path: str = None, bins: int = 6):
    """
    Histogram of admissions for each season on a shared x axis.

    Parameters
    ----------
    df : pd.DataFrame
        Observations with a ``Season`` column.
    save_path : str, optional
        Path to save the plot image. If None, displays the plot interactively.
    bins : int, optional
        Number of histogram bins shared by all panels. Defaults to 6.
    """
    groups = group_by(df, ["Season"])
    edges = np.histogram_bin_edges(df["Admission"].to_numpy(dtype=float), bins=bins)

    fig, axes = plt.subplots(2, 2, figsize=(10, 8), sharex=True, sharey=True)
    for ax, ((season,), sub) in zip(axes.flatten(), groups.items()):
        ax.hist(sub["Admission"], bins=edges, alpha=0.7, edgecolor="black")
        ax.set_title(season)
        ax.set_xlabel("Admission")
        ax.set_ylabel("Count")

    for ax in axes.flatten()[len(groups) :]:
        ax.set_visible(False)

    _finish(fig, save_path)


def plot_residual_qq(residuals, save_path: str = None):
    """Normal Q-Q plot of ANOVA residuals."""
    if residuals is None or len(residuals) == 0:
        raise RuntimeError("No residuals to plot")
    fig, ax = plt.subplots(1, 1, figsize=(5, 5))
    _plot_residual_qq(ax, residuals)
    _finish(fig, save_path)


def plot_report_figures(df, test_output: dict, figures_dir) -> dict:
    """
    Save every report figure into ``figures_dir``.

    Boxplots by Moon, Month and Season, per-season histograms and, when the
    ANOVA model was fitted, a Q-Q plot of its residuals.

    Parameters
    ----------
    df : pd.DataFrame
        Observations.
    test_output : dict
        Output of run_analysis_pipeline.
    figures_dir : str or pathlib.Path
        Directory to write PNG files to; created if missing.

    Returns
    -------
    dict
        {figure name: path of saved PNG}
    """
    figures_dir = pathlib.Path(figures_dir)
    figures_dir.mkdir(parents=True, exist_ok=True)

    paths = {}
    for factor in ("Moon", "Month", "Season"):
        path = figures_dir / f"boxplot_{factor.lower()}.png"
        plot_boxplot(df, factor, save_path=str(path))
        paths[f"boxplot_{factor.lower()}"] = str(path)

    path = figures_dir / "histogram_season.png"
    plot_season_histograms(df, save_path=str(path))
    paths["histogram_season"] = str(path)

    anova = test_output.get("anova", {}).get("result")
    if anova is not None:
        path = figures_dir / "residual_qq.png"
        plot_residual_qq(anova.residuals, save_path=str(path))
        paths["residual_qq"] = str(path)
    else:
        logger.warning("ANOVA model not available, skipping residual Q-Q plot")

    return paths
