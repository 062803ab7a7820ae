"""
Fixed-effects ANOVA and Tukey HSD post-hoc comparisons.

The two-factor model is fitted with the classical sum-of-squares
decomposition (main effects from marginal means, interaction from the
between-cells sum of squares). For balanced designs this matches the usual
sequential ANOVA table.
"""

import logging
from dataclasses import dataclass

import numpy as np
import pandas as pd
from scipy.stats import f, studentized_range

from src.statistical_analysis.statistical_tests import DegenerateDesignError
from src.statistical_analysis.utils import group_by, with_ordered_levels

logger = logging.getLogger(__name__)

RESIDUAL_TERM = "Residuals"


@dataclass(frozen=True)
class AnovaTerm:
    """One row of an ANOVA table. F and p are None for the residual row."""

    term: str
    df: int
    sum_sq: float
    mean_sq: float
    f_value: float | None = None
    p_value: float | None = None


@dataclass(frozen=True)
class AnovaResult:
    """Fitted ANOVA model: table rows plus fitted values and residuals."""

    factors: tuple
    response: str
    n_obs: int
    ss_total: float
    terms: tuple
    fitted: np.ndarray
    residuals: np.ndarray

    def term(self, name: str) -> AnovaTerm:
        for t in self.terms:
            if t.term == name:
                return t
        raise KeyError(f"No term {name!r} in ANOVA table; terms are {[t.term for t in self.terms]}")

    @property
    def mse(self) -> float:
        return self.term(RESIDUAL_TERM).mean_sq

    @property
    def df_residual(self) -> int:
        return self.term(RESIDUAL_TERM).df

    def to_frame(self) -> pd.DataFrame:
        """ANOVA table laid out as Df / Sum Sq / Mean Sq / F value / Pr(>F)."""
        return pd.DataFrame(
            {
                "Df": [t.df for t in self.terms],
                "Sum Sq": [t.sum_sq for t in self.terms],
                "Mean Sq": [t.mean_sq for t in self.terms],
                "F value": [np.nan if t.f_value is None else t.f_value for t in self.terms],
                "Pr(>F)": [np.nan if t.p_value is None else t.p_value for t in self.terms],
            },
            index=pd.Index([t.term for t in self.terms], name="Term"),
        )


@dataclass(frozen=True)
class PairwiseComparison:
    """Tukey comparison of two levels: diff = mean(group_1) - mean(group_2)."""

    group_1: str
    group_2: str
    diff: float
    ci_lower: float
    ci_upper: float
    p_adj: float
    q_value: float
    se: float

    @property
    def label(self) -> str:
        return f"{self.group_1}-{self.group_2}"


@dataclass(frozen=True)
class TukeyResult:
    """One Tukey HSD comparison family (all pairs of levels of one term)."""

    factor: str
    comparisons: tuple
    conf_level: float
    q_critical: float
    mse: float
    df_residual: int

    def comparison(self, level_1: str, level_2: str) -> PairwiseComparison:
        """Look up a pair regardless of order; the difference keeps its stored sign."""
        for c in self.comparisons:
            if {c.group_1, c.group_2} == {level_1, level_2}:
                return c
        raise KeyError(f"No comparison {level_1}-{level_2} for {self.factor}")

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            {
                "diff": [c.diff for c in self.comparisons],
                "lwr": [c.ci_lower for c in self.comparisons],
                "upr": [c.ci_upper for c in self.comparisons],
                "p adj": [c.p_adj for c in self.comparisons],
            },
            index=pd.Index([c.label for c in self.comparisons], name=self.factor),
        )


def _check_inputs(df, factors, response):
    missing = [c for c in [*factors, response] if c not in df.columns]
    if missing:
        raise ValueError(f"Missing column(s) for ANOVA: {', '.join(missing)}")
    if len(df) == 0:
        raise DegenerateDesignError("Cannot fit ANOVA to an empty dataset")


def _between_ss(groups, response, grand_mean):
    """Sum over groups of n_group * (group mean - grand mean)^2."""
    return float(
        sum(len(g) * (g[response].mean() - grand_mean) ** 2 for g in groups.values())
    )


def _f_test(ss, dof, mse, df_residual):
    ms = ss / dof
    f_value = ms / mse
    return ms, float(f_value), float(f.sf(f_value, dof, df_residual))


def _residual_row(ss_residual, df_residual, ss_total):
    if df_residual <= 0:
        raise DegenerateDesignError(
            f"Residual degrees of freedom must be positive, got {df_residual}"
        )
    # residual SS at rounding level means a perfect fit
    if ss_residual <= 1e-12 * ss_total:
        raise DegenerateDesignError("Residual mean square is zero; F statistics are undefined")
    return ss_residual / df_residual


def one_way_anova(df, factor: str, response: str = "Admission") -> AnovaResult:
    """
    Single-factor ANOVA of ``response`` on ``factor``.

    Raises
    ------
    DegenerateDesignError
        If fewer than two levels are observed, or there are no residual
        degrees of freedom, or the residual variance is zero.
    """
    _check_inputs(df, [factor], response)
    data = with_ordered_levels(df, [factor])
    y = data[response].to_numpy(dtype=float)
    grand_mean = y.mean()

    groups = group_by(data, [factor])
    k = len(groups)
    if k < 2:
        raise DegenerateDesignError(f"{factor} needs at least 2 observed levels, found {k}")

    ss_total = float(np.sum((y - grand_mean) ** 2))
    ss_between = _between_ss(groups, response, grand_mean)
    ss_residual = ss_total - ss_between
    df_between = k - 1
    df_residual = len(y) - k
    mse = _residual_row(ss_residual, df_residual, ss_total)

    ms, f_value, p_value = _f_test(ss_between, df_between, mse, df_residual)
    fitted = data.groupby(factor, observed=True)[response].transform("mean").to_numpy(dtype=float)

    return AnovaResult(
        factors=(factor,),
        response=response,
        n_obs=len(y),
        ss_total=ss_total,
        terms=(
            AnovaTerm(factor, df_between, ss_between, ms, f_value, p_value),
            AnovaTerm(RESIDUAL_TERM, df_residual, ss_residual, mse),
        ),
        fitted=fitted,
        residuals=y - fitted,
    )


def two_way_anova(
    df,
    factor_a: str = "Moon",
    factor_b: str = "Season",
    response: str = "Admission",
) -> AnovaResult:
    """
    Two-factor ANOVA with interaction.

    Parameters
    ----------
    df : pd.DataFrame
        Observations.
    factor_a, factor_b : str
        Factor columns. The interaction term is named ``"{factor_a}:{factor_b}"``.
    response : str
        Response column.

    Returns
    -------
    AnovaResult
        Terms ``factor_a``, ``factor_b``, ``factor_a:factor_b`` and
        ``Residuals``. Fitted values are the cell means; residuals are
        observed minus fitted, in the row order of ``df``.

    Raises
    ------
    DegenerateDesignError
        If any (factor_a, factor_b) cell is empty, a factor has fewer than two
        levels, there are no residual degrees of freedom, or the residual
        variance is zero.
    """
    _check_inputs(df, [factor_a, factor_b], response)
    data = with_ordered_levels(df, [factor_a, factor_b])
    y = data[response].to_numpy(dtype=float)
    n = len(y)
    grand_mean = y.mean()

    groups_a = group_by(data, [factor_a])
    groups_b = group_by(data, [factor_b])
    cells = group_by(data, [factor_a, factor_b])
    levels_a, levels_b = len(groups_a), len(groups_b)

    for name, levels in ((factor_a, levels_a), (factor_b, levels_b)):
        if levels < 2:
            raise DegenerateDesignError(f"{name} needs at least 2 observed levels, found {levels}")

    if len(cells) < levels_a * levels_b:
        present = set(cells)
        empty = [
            f"{a}:{b}"
            for (a,) in groups_a
            for (b,) in groups_b
            if (a, b) not in present
        ]
        raise DegenerateDesignError(f"Empty cell(s) in {factor_a} x {factor_b}: {', '.join(empty)}")

    ss_total = float(np.sum((y - grand_mean) ** 2))
    ss_a = _between_ss(groups_a, response, grand_mean)
    ss_b = _between_ss(groups_b, response, grand_mean)
    ss_cells = _between_ss(cells, response, grand_mean)
    ss_ab = ss_cells - ss_a - ss_b
    ss_residual = ss_total - ss_a - ss_b - ss_ab

    df_a = levels_a - 1
    df_b = levels_b - 1
    df_ab = df_a * df_b
    df_residual = n - levels_a * levels_b
    mse = _residual_row(ss_residual, df_residual, ss_total)

    interaction = f"{factor_a}:{factor_b}"
    terms = []
    for term, ss, dof in ((factor_a, ss_a, df_a), (factor_b, ss_b, df_b), (interaction, ss_ab, df_ab)):
        ms, f_value, p_value = _f_test(ss, dof, mse, df_residual)
        terms.append(AnovaTerm(term, dof, ss, ms, f_value, p_value))
        logger.debug(f"ANOVA {term}: df={dof}, SS={ss:.4f}, F={f_value:.4f}, p={p_value:.4g}")
    terms.append(AnovaTerm(RESIDUAL_TERM, df_residual, ss_residual, mse))

    fitted = (
        data.groupby([factor_a, factor_b], observed=True)[response]
        .transform("mean")
        .to_numpy(dtype=float)
    )

    return AnovaResult(
        factors=(factor_a, factor_b),
        response=response,
        n_obs=n,
        ss_total=ss_total,
        terms=tuple(terms),
        fitted=fitted,
        residuals=y - fitted,
    )


def tukey_hsd(df, anova: AnovaResult, factor: str, conf_level: float = 0.95) -> TukeyResult:
    """
    Tukey's honestly significant difference for all pairs of levels of ``factor``.

    The error variance and its degrees of freedom come from the fitted model.
    ``factor`` is either one of the model's factors or the interaction term
    (e.g. ``"Moon:Season"``), in which case every cell is compared with every
    other cell. Pairs are ordered by the canonical level order; for a pair
    (i, j) with i first, diff = mean_i - mean_j.

    Parameters
    ----------
    df : pd.DataFrame
        Observations the model was fitted to.
    anova : AnovaResult
        Fitted model providing MS_residual and df_residual.
    factor : str
        Factor or interaction term name.
    conf_level : float, optional
        Family-wise confidence level for the intervals. Defaults to 0.95.

    Returns
    -------
    TukeyResult
    """
    keys = factor.split(":")
    if any(k not in anova.factors for k in keys):
        raise ValueError(f"{factor!r} is not a term of the fitted model {anova.factors}")
    if not 0 < conf_level < 1:
        raise ValueError("conf_level must be between 0 and 1")

    groups = group_by(df, keys)
    k = len(groups)
    if k < 2:
        raise DegenerateDesignError(f"Tukey HSD on {factor} needs at least 2 levels, found {k}")

    labels = [":".join(key) for key in groups]
    means = [float(g[anova.response].mean()) for g in groups.values()]
    sizes = [len(g) for g in groups.values()]

    mse, df_residual = anova.mse, anova.df_residual
    q_crit = float(studentized_range.ppf(conf_level, k, df_residual))

    comparisons = []
    for i in range(k):
        for j in range(i + 1, k):
            diff = means[i] - means[j]
            se = float(np.sqrt(mse / 2.0 * (1.0 / sizes[i] + 1.0 / sizes[j])))
            q_value = abs(diff) / se
            p_adj = min(float(studentized_range.sf(q_value, k, df_residual)), 1.0)
            margin = q_crit * se
            comparisons.append(
                PairwiseComparison(
                    group_1=labels[i],
                    group_2=labels[j],
                    diff=diff,
                    ci_lower=diff - margin,
                    ci_upper=diff + margin,
                    p_adj=p_adj,
                    q_value=q_value,
                    se=se,
                )
            )

    return TukeyResult(
        factor=factor,
        comparisons=tuple(comparisons),
        conf_level=conf_level,
        q_critical=q_crit,
        mse=mse,
        df_residual=df_residual,
    )


def significant_pairs(tukey: TukeyResult, alpha: float = 0.05) -> list[tuple[str, str, str]]:
    """
    Pairs with adjusted p-value below ``alpha``, as (factor, level_1, level_2).

    Interaction families are skipped since their levels span two factors.
    """
    if ":" in tukey.factor:
        logger.debug(f"Skipping interaction family {tukey.factor} when selecting pairs")
        return []
    return [
        (tukey.factor, c.group_1, c.group_2) for c in tukey.comparisons if c.p_adj < alpha
    ]
