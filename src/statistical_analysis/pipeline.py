import logging

from src.admissions_data.config import ALPHA, DEFAULT_T_TEST_PAIRS
from src.admissions_data.labeling import add_season
from src.statistical_analysis.anova import (
    one_way_anova,
    significant_pairs,
    tukey_hsd,
    two_way_anova,
)
from src.statistical_analysis.statistical_tests import (
    DegenerateDesignError,
    InsufficientSampleError,
    levene_test,
    pooled_t_test,
    shapiro_test,
)
from src.statistical_analysis.utils import contingency_table, group_summary

logger = logging.getLogger(__name__)

FACTOR_A = "Moon"
FACTOR_B = "Season"
RESPONSE = "Admission"
INTERACTION = f"{FACTOR_A}:{FACTOR_B}"

STATISTICAL_FAILURES = (DegenerateDesignError, InsufficientSampleError)


def _failure(key, error):
    logger.error(f"{key} failed: {error}")
    return {"error": str(error)}


def run_analysis_pipeline(
    observations,
    t_test_pairs=None,
    auto_pairs=False,
    alpha=ALPHA,
    equal_var=True,
):
    """
    Run the full lunar-phase admissions analysis on validated observations.

    Builds descriptive summaries, checks ANOVA assumptions (Levene on the
    Moon x Season cross, Shapiro-Wilk on residuals), fits the two-factor
    ANOVA with interaction, runs Tukey HSD per factor and for the interaction,
    and re-tests chosen pairs with two-sample t-tests.

    Parameters
    ----------
    observations : pd.DataFrame
        Output of ``load_observations`` (``Month``, ``Moon``, ``Admission``;
        ``Season`` is derived if absent).
    t_test_pairs : list of tuple, optional
        (factor, level_1, level_2) pairs to re-test. Defaults to
        ``DEFAULT_T_TEST_PAIRS``.
    auto_pairs : bool, optional
        If True, re-test every single-factor Tukey pair with adjusted p-value
        below ``alpha`` instead of ``t_test_pairs``. Defaults to False.
    alpha : float, optional
        Significance level used for advisory warnings and pair selection.
        Defaults to 0.05.
    equal_var : bool, optional
        Use the pooled-variance t-test. Defaults to True.

    Returns
    -------
    dict
        Dictionary containing results with keys:
        - "contingency_table": Season x Moon summed admissions
        - "group_summary-{factor}": descriptive summaries
        - "levene", "anova", "shapiro": assumption checks and model fit
        - "one_way-{factor}": single-factor ANOVA per factor
        - "tukey-{term}": Tukey HSD family per term
        - "t_test-{factor}-{level_1}-{level_2}": pairwise t-tests
        - "assumption_warnings": advisory messages
        Statistical failures are stored as {"error": message} under the
        test's key instead of raising.

    Raises
    ------
    ValueError
        If ``alpha`` is not in (0, 1) or required columns are missing.
    """
    if not 0 < alpha < 1:
        raise ValueError("alpha must be between 0 and 1")

    missing = [c for c in ("Month", FACTOR_A, RESPONSE) if c not in observations.columns]
    if missing:
        raise ValueError(f"Observations are missing column(s): {', '.join(missing)}")

    obs = observations if FACTOR_B in observations.columns else add_season(observations)

    out = {"alpha": alpha, "n_obs": len(obs), "assumption_warnings": []}

    ##############################
    # Descriptive summaries
    ##############################

    out["contingency_table"] = contingency_table(obs, rows=FACTOR_B, columns=FACTOR_A)
    for keys in (["Month"], [FACTOR_A], [FACTOR_B], [FACTOR_A, FACTOR_B]):
        out[f"group_summary-{':'.join(keys)}"] = group_summary(obs, keys, response=RESPONSE)

    logger.info(f"Computed descriptive summaries for {len(obs)} observations")

    ##############################
    # Homogeneity of variance
    ##############################

    try:
        p_value, test_stat = levene_test(obs, keys=(FACTOR_A, FACTOR_B), response=RESPONSE)
        out["levene"] = {
            "p_value": p_value,
            "test_statistic": test_stat,
            "groups": INTERACTION,
            "center": "median",
        }
        logger.debug(f"Levene's test: statistic={test_stat:.4f}, pvalue={p_value:.4f}")
        if p_value < alpha:
            msg = f"Levene's test rejects equal variances across {INTERACTION} (p={p_value:.4f})"
            logger.warning(msg)
            out["assumption_warnings"].append(msg)
    except STATISTICAL_FAILURES as e:
        out["levene"] = _failure("Levene's test", e)

    ##############################
    # Two-factor ANOVA
    ##############################

    try:
        anova = two_way_anova(obs, factor_a=FACTOR_A, factor_b=FACTOR_B, response=RESPONSE)
        out["anova"] = {"result": anova}
        for term in anova.terms[:-1]:
            logger.info(f"ANOVA {term.term}: F={term.f_value:.4f}, pvalue={term.p_value:.4f}")
    except STATISTICAL_FAILURES as e:
        anova = None
        out["anova"] = _failure("Two-factor ANOVA", e)

    for factor in (FACTOR_A, FACTOR_B):
        try:
            out[f"one_way-{factor}"] = {"result": one_way_anova(obs, factor, response=RESPONSE)}
        except STATISTICAL_FAILURES as e:
            out[f"one_way-{factor}"] = _failure(f"One-way ANOVA on {factor}", e)

    ##############################
    # Normality of residuals
    ##############################

    if anova is None:
        out["shapiro"] = {"error": "ANOVA model could not be fitted; no residuals to test"}
    else:
        try:
            p_value, w_stat = shapiro_test(anova.residuals)
            out["shapiro"] = {"p_value": p_value, "test_statistic": w_stat}
            logger.debug(f"Shapiro-Wilk test: W={w_stat:.4f}, pvalue={p_value:.4f}")
            if p_value < alpha:
                msg = f"Shapiro-Wilk test rejects normality of residuals (p={p_value:.4f})"
                logger.warning(msg)
                out["assumption_warnings"].append(msg)
        except STATISTICAL_FAILURES as e:
            out["shapiro"] = _failure("Shapiro-Wilk test", e)

    ##############################
    # Tukey HSD
    ##############################

    tukey_results = []
    for term in (FACTOR_A, FACTOR_B, INTERACTION):
        key = f"tukey-{term}"
        if anova is None:
            out[key] = {"error": "ANOVA model could not be fitted; no error variance available"}
            continue
        try:
            tukey = tukey_hsd(obs, anova, term)
            tukey_results.append(tukey)
            out[key] = {"result": tukey}
            n_sig = sum(c.p_adj < alpha for c in tukey.comparisons)
            logger.info(f"Tukey HSD {term}: {n_sig}/{len(tukey.comparisons)} pairs with p < {alpha}")
        except STATISTICAL_FAILURES as e:
            out[key] = _failure(f"Tukey HSD on {term}", e)

    ##############################
    # Two-sample t-tests
    ##############################

    if auto_pairs:
        pairs = [p for tukey in tukey_results for p in significant_pairs(tukey, alpha)]
        logger.info(f"Selected {len(pairs)} pair(s) from Tukey HSD for t-tests")
    else:
        pairs = DEFAULT_T_TEST_PAIRS if t_test_pairs is None else t_test_pairs

    for factor, level_1, level_2 in pairs:
        key = f"t_test-{factor}-{level_1}-{level_2}"
        try:
            res = pooled_t_test(obs, factor, level_1, level_2, response=RESPONSE, equal_var=equal_var)
            out[key] = {"result": res}
            logger.debug(f"t-test {factor} {level_1} vs {level_2}: pvalue={res.p_value:.4f}")
        except STATISTICAL_FAILURES as e:
            out[key] = _failure(f"t-test {factor} {level_1} vs {level_2}", e)

    return out
