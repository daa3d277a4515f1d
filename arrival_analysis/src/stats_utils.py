"""
Statistical Models for the Arrival Order Analysis
==================================================

Thin collaborator layer over statsmodels and pymc exposing two operations:

    fit_model(spec, data)               -> FittedModel
    predict_probabilities(fitted, new)  -> wide probability matrix

Model kinds:
- 'clm'       Cumulative link model (ordered logit/probit) for arrival_order
- 'glmm'      Binomial mixed model for arrival_bin (first to arrive or not)
- 'lmm'       Linear mixed model for arrival_order_relative
- 'bayes_clm' Bayesian cumulative logit/probit with random intercepts (NUTS)

METHODOLOGICAL NOTES:
- Arrival order is ordinal -> cumulative link models preferred over OLS
- Individuals are nested within groups -> random intercepts where available
- statsmodels has no random effects for ordinal models; the frequentist
  CLM is fixed-effects only and the Bayesian CLM carries the group structure
"""

import logging
import re
import warnings
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd
from pandas.api.types import CategoricalDtype, is_numeric_dtype
from scipy import stats
from scipy.special import expit

from .constants import (
    ORDINAL_OUTCOME, BINARY_OUTCOME, RELATIVE_OUTCOME,
    DEFAULT_PREDICTORS, DEFAULT_GROUPS_COL, CLM_LINKS,
    MCMC_DRAWS, MCMC_TUNE, MCMC_CHAINS, MCMC_TARGET_ACCEPT,
    MAX_DIVERGENCE_RATE, RANDOM_SEED, MIN_SAMPLE_SIZE, ALPHA
)
from .errors import ConvergenceError, SingularityError, ModelFitError

logger = logging.getLogger(__name__)

MODEL_KINDS = ('clm', 'glmm', 'lmm', 'bayes_clm')

DEFAULT_OUTCOMES = {
    'clm': ORDINAL_OUTCOME,
    'glmm': BINARY_OUTCOME,
    'lmm': RELATIVE_OUTCOME,
    'bayes_clm': ORDINAL_OUTCOME
}


@dataclass
class ModelSpec:
    """
    What to fit.

    kind : one of MODEL_KINDS
    predictors : fixed-effect columns (categorical columns are dummy coded)
    groups : random-intercept columns, outermost first (e.g. group, individual)
    link : 'logit' or 'probit' for the cumulative models
    options : backend keyword overrides (maxiter, draws, tune, ...)
    """
    kind: str
    outcome: Optional[str] = None
    predictors: List[str] = field(default_factory=lambda: list(DEFAULT_PREDICTORS))
    groups: List[str] = field(default_factory=lambda: [DEFAULT_GROUPS_COL])
    link: str = 'logit'
    options: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.kind not in MODEL_KINDS:
            raise ValueError(f"Unknown model kind {self.kind!r}; expected one of {MODEL_KINDS}")
        if self.link not in CLM_LINKS:
            raise ValueError(f"Unknown link {self.link!r}; expected one of {CLM_LINKS}")
        if self.outcome is None:
            self.outcome = DEFAULT_OUTCOMES[self.kind]
        self.predictors = list(self.predictors)
        self.groups = list(self.groups)


@dataclass
class FittedModel:
    """A fitted backend result plus what is needed to predict on new data."""
    spec: ModelSpec
    result: Any
    levels: List[Any]
    design_columns: List[str]
    categories: Dict[str, List[Any]]
    nobs: int


# =============================================================================
# DESIGN MATRICES
# =============================================================================

def _sanitize(name):
    return re.sub(r'\W', '_', str(name))


def design_matrix(data, predictors, categories=None):
    """
    Fixed-effects design matrix without intercept.

    Categorical (or non-numeric) predictors are treatment coded against
    their first level; numeric predictors pass through as floats.

    Parameters
    ----------
    data : DataFrame
    predictors : list of str
    categories : dict, optional
        {column: levels} recorded at fit time; reused for new data so the
        columns line up

    Returns
    -------
    X : DataFrame
    categories : dict
    """
    categories = dict(categories or {})
    blocks = []
    for col in predictors:
        series = data[col]
        is_categorical = isinstance(series.dtype, CategoricalDtype)
        if col in categories or is_categorical or not is_numeric_dtype(series):
            levels = categories.get(col)
            if levels is None:
                levels = (list(series.cat.categories) if is_categorical
                          else sorted(series.dropna().unique().tolist()))
                categories[col] = levels
            coded = pd.Categorical(np.asarray(series, dtype=object), categories=levels)
            dummies = pd.get_dummies(coded, prefix=col, drop_first=True, dtype=float)
            dummies.index = data.index
            blocks.append(dummies)
        else:
            blocks.append(series.astype(float).rename(col).to_frame())

    X = pd.concat(blocks, axis=1)
    X.columns = [_sanitize(c) for c in X.columns]
    return X, categories


def _complete_cases(data, spec, with_outcome=True):
    cols = list(spec.predictors) + list(spec.groups)
    if with_outcome:
        cols = [spec.outcome] + cols
    missing = [c for c in cols if c not in data.columns]
    if missing:
        raise KeyError(f"Columns not found in data: {missing}")

    clean = data.dropna(subset=cols)
    if with_outcome and len(clean) < MIN_SAMPLE_SIZE:
        warnings.warn(f"Small sample size ({len(clean)})")
    return clean


def _ordinal_outcome(series):
    """Ordered categorical outcome with unobserved levels removed."""
    if isinstance(series.dtype, CategoricalDtype):
        if not series.cat.ordered:
            series = series.cat.as_ordered()
        return series.cat.remove_unused_categories()
    levels = sorted(series.unique().tolist())
    return pd.Series(pd.Categorical(series, categories=levels, ordered=True),
                     index=series.index, name=series.name)


def _check_finite(result_values, label):
    values = np.asarray(result_values, dtype=float)
    if not np.all(np.isfinite(values)):
        raise SingularityError(f"{label}: non-finite standard errors (singular Hessian)")


# =============================================================================
# FREQUENTIST MODELS (statsmodels)
# =============================================================================

def _fit_clm(spec, data):
    from statsmodels.miscmodels.ordinal_model import OrderedModel

    if spec.groups:
        logger.warning(
            f"Random intercepts for {spec.groups} are not supported by "
            f"OrderedModel; fitting fixed effects only"
        )

    clean = _complete_cases(data, spec)
    y = _ordinal_outcome(clean[spec.outcome])
    X, categories = design_matrix(clean, spec.predictors)

    model = OrderedModel(y, X, distr=spec.link)
    try:
        result = model.fit(method=spec.options.get('method', 'bfgs'),
                           maxiter=spec.options.get('maxiter', 1000),
                           disp=False)
    except np.linalg.LinAlgError as e:
        raise SingularityError(f"clm: {e}") from e

    if not result.mle_retvals.get('converged', True):
        raise ConvergenceError("clm: optimizer did not converge")
    _check_finite(result.bse, 'clm')

    return FittedModel(spec, result, list(y.cat.categories), list(X.columns),
                       categories, int(result.nobs))


def _group_indicators(data, groups):
    """Random-intercept indicator matrix and variance-component ids."""
    blocks, ident = [], []
    for i, col in enumerate(groups):
        dummies = pd.get_dummies(np.asarray(data[col], dtype=object),
                                 prefix=col, dtype=float)
        blocks.append(dummies.to_numpy())
        ident.extend([i] * dummies.shape[1])
    return np.hstack(blocks), np.asarray(ident, dtype=int)


def _fit_glmm(spec, data):
    from statsmodels.genmod.bayes_mixed_glm import BinomialBayesMixedGLM

    if not spec.groups:
        raise ValueError("glmm requires at least one grouping column")

    clean = _complete_cases(data, spec)
    X, categories = design_matrix(clean, spec.predictors)
    exog = np.column_stack([np.ones(len(X)), X.to_numpy(dtype=float)])
    exog_vc, ident = _group_indicators(clean, spec.groups)
    y = pd.to_numeric(np.asarray(clean[spec.outcome], dtype=object)).astype(float)

    model = BinomialBayesMixedGLM(
        y, exog, exog_vc, ident,
        vcp_p=spec.options.get('vcp_p', 1.0),
        fe_p=spec.options.get('fe_p', 2.0),
        fep_names=['Intercept'] + list(X.columns),
        vcp_names=list(spec.groups)
    )
    try:
        result = model.fit_vb()
    except np.linalg.LinAlgError as e:
        raise SingularityError(f"glmm: {e}") from e

    if not np.all(np.isfinite(result.params)):
        raise ConvergenceError("glmm: variational fit produced non-finite parameters")
    _check_finite(result.fe_sd, 'glmm')

    return FittedModel(spec, result, [0, 1], list(X.columns), categories, len(clean))


def _fit_lmm(spec, data):
    import statsmodels.formula.api as smf

    if not spec.groups:
        raise ValueError("lmm requires at least one grouping column")

    clean = _complete_cases(data, spec)
    X, categories = design_matrix(clean, spec.predictors)

    frame = X.copy()
    frame['_outcome'] = pd.to_numeric(np.asarray(clean[spec.outcome], dtype=object))
    for col in spec.groups:
        frame[col] = np.asarray(clean[col], dtype=object)

    formula = '_outcome ~ ' + (' + '.join(X.columns) if len(X.columns) else '1')
    vc_formula = {col: f'0 + C({col})' for col in spec.groups[1:]} or None

    model = smf.mixedlm(formula, frame, groups=frame[spec.groups[0]],
                        vc_formula=vc_formula)
    try:
        with warnings.catch_warnings():
            warnings.simplefilter('ignore')
            result = model.fit(reml=spec.options.get('reml', True))
    except np.linalg.LinAlgError as e:
        raise SingularityError(f"lmm: {e}") from e

    if not result.converged:
        raise ConvergenceError("lmm: optimizer did not converge")

    return FittedModel(spec, result, ['expected'], list(X.columns),
                       categories, int(result.nobs))


# =============================================================================
# BAYESIAN CUMULATIVE MODEL (pymc)
# =============================================================================

def _fit_bayes_clm(spec, data):
    import pymc as pm

    clean = _complete_cases(data, spec)
    y = _ordinal_outcome(clean[spec.outcome])
    X, categories = design_matrix(clean, spec.predictors)
    K = len(y.cat.categories)
    if K < 2:
        raise ModelFitError("bayes_clm: outcome needs at least two observed levels")

    coords = {'predictor': list(X.columns), 'cutpoint': list(range(K - 1))}
    group_codes = {}
    for col in spec.groups:
        codes, uniques = pd.factorize(np.asarray(clean[col], dtype=object))
        group_codes[col] = codes
        coords[col] = list(uniques)

    prior_sd = spec.options.get('prior_sd', 1.5)

    with pm.Model(coords=coords) as model:
        X_data = pm.Data('X', X.to_numpy())
        beta = pm.Normal('beta', 0, prior_sd, dims='predictor')
        eta = pm.math.dot(X_data, beta)
        for col, codes in group_codes.items():
            sigma = pm.HalfNormal(f'sigma_{col}', 1.0)
            alpha = pm.Normal(f'alpha_{col}', 0, sigma, dims=col)
            eta = eta + alpha[codes]
        cutpoints = pm.Normal(
            'cutpoints', 0, prior_sd, dims='cutpoint',
            transform=pm.distributions.transforms.ordered,
            initval=np.linspace(-2, 2, K - 1)
        )
        if spec.link == 'logit':
            pm.OrderedLogistic('y', eta=eta, cutpoints=cutpoints,
                               observed=y.cat.codes.to_numpy())
        else:
            pm.OrderedProbit('y', eta=eta, cutpoints=cutpoints, sigma=1.0,
                             observed=y.cat.codes.to_numpy())

        idata = pm.sample(
            draws=spec.options.get('draws', MCMC_DRAWS),
            tune=spec.options.get('tune', MCMC_TUNE),
            chains=spec.options.get('chains', MCMC_CHAINS),
            target_accept=spec.options.get('target_accept', MCMC_TARGET_ACCEPT),
            random_seed=spec.options.get('random_seed', RANDOM_SEED),
            progressbar=False
        )

    diverging = idata.sample_stats['diverging'].values
    rate = float(diverging.mean())
    max_rate = spec.options.get('max_divergence_rate', MAX_DIVERGENCE_RATE)
    if rate > max_rate:
        raise ConvergenceError(
            f"bayes_clm: {int(diverging.sum())} divergent transitions "
            f"({rate:.1%} > {max_rate:.1%})"
        )

    return FittedModel(spec, idata, list(y.cat.categories), list(X.columns),
                       categories, len(clean))


# =============================================================================
# FIT / PREDICT
# =============================================================================

_FITTERS = {
    'clm': _fit_clm,
    'glmm': _fit_glmm,
    'lmm': _fit_lmm,
    'bayes_clm': _fit_bayes_clm
}


def fit_model(spec, data):
    """
    Fit the model described by `spec` to `data`.

    Parameters
    ----------
    spec : ModelSpec
    data : DataFrame (from normalize_schema / add_relative_position)

    Returns
    -------
    FittedModel

    Raises
    ------
    ConvergenceError, SingularityError
    """
    fitted = _FITTERS[spec.kind](spec, data)
    logger.info(
        f"Fitted {spec.kind}: {spec.outcome} ~ {' + '.join(spec.predictors)} "
        f"on {fitted.nobs} rows"
    )
    return fitted


def _cumulative_probabilities(cutpoints, eta, link):
    """
    Category probabilities from cutpoints (..., K-1) and linear predictor (..., n).
    Returns (..., n, K).
    """
    cdf = expit if link == 'logit' else stats.norm.cdf
    cum = cdf(cutpoints[..., None, :] - eta[..., :, None])
    lower = np.zeros(cum.shape[:-1] + (1,))
    upper = np.ones(cum.shape[:-1] + (1,))
    return np.diff(np.concatenate([lower, cum, upper], axis=-1), axis=-1)


def predict_probabilities(fitted, newdata):
    """
    Predicted probability of each outcome level for each row of newdata.

    Random effects are set to zero (population-level predictions).

    Returns
    -------
    ndarray, shape (len(newdata), len(fitted.levels))
        clm / bayes_clm: P(Y = level); glmm: [P(0), P(1)];
        lmm: single column of expected values
    """
    spec = fitted.spec
    X, _ = design_matrix(newdata, spec.predictors, fitted.categories)
    X = X.reindex(columns=fitted.design_columns, fill_value=0.0)

    if spec.kind == 'clm':
        probs = fitted.result.model.predict(fitted.result.params, exog=X.to_numpy())
        return np.asarray(probs, dtype=float)

    if spec.kind == 'glmm':
        exog = np.column_stack([np.ones(len(X)), X.to_numpy(dtype=float)])
        p = np.asarray(fitted.result.predict(exog=exog), dtype=float)
        return np.column_stack([1.0 - p, p])

    if spec.kind == 'lmm':
        expected = fitted.result.predict(exog=X)
        return np.asarray(expected, dtype=float).reshape(-1, 1)

    posterior = fitted.result.posterior
    beta = posterior['beta'].stack(sample=('chain', 'draw')).transpose('sample', ...).values
    cutpoints = posterior['cutpoints'].stack(sample=('chain', 'draw')).transpose('sample', ...).values
    eta = beta @ X.to_numpy().T
    probs = _cumulative_probabilities(cutpoints, eta, spec.link)
    return probs.mean(axis=0)


# =============================================================================
# SUMMARIES
# =============================================================================

def summarize_fit(fitted, alpha=ALPHA):
    """
    Coefficient table for the fixed effects.

    Returns
    -------
    DataFrame indexed by term with estimate, se, p_value (frequentist) or
    hdi bounds (Bayesian), plus odds_ratio for logit links
    """
    spec = fitted.spec
    terms = fitted.design_columns

    if spec.kind == 'bayes_clm':
        import arviz as az
        table = az.summary(fitted.result, var_names=['beta'], hdi_prob=1 - alpha)
        table.index = terms
        table = table.rename(columns={'mean': 'estimate', 'sd': 'se'})
        table['odds_ratio'] = np.exp(table['estimate']) if spec.link == 'logit' else np.nan
        return table

    if spec.kind == 'clm':
        res = fitted.result
        estimate = res.params[terms]
        se = res.bse[terms]
        p_values = res.pvalues[terms]
    elif spec.kind == 'glmm':
        res = fitted.result
        # fe_mean[0] is the intercept; design_columns holds the rest
        k = len(terms) + 1
        estimate = pd.Series(res.fe_mean[1:k], index=terms)
        se = pd.Series(res.fe_sd[1:k], index=terms)
        p_values = pd.Series(2 * stats.norm.sf(np.abs(estimate / se)), index=terms)
    else:
        res = fitted.result
        estimate = res.fe_params[terms]
        se = res.bse_fe[terms]
        p_values = res.pvalues[terms]

    table = pd.DataFrame({
        'estimate': np.asarray(estimate, dtype=float),
        'se': np.asarray(se, dtype=float),
        'p_value': np.asarray(p_values, dtype=float)
    }, index=terms)

    z = stats.norm.ppf(1 - alpha / 2)
    table['ci_lower'] = table['estimate'] - z * table['se']
    table['ci_upper'] = table['estimate'] + z * table['se']
    if spec.kind == 'glmm' or (spec.kind == 'clm' and spec.link == 'logit'):
        table['odds_ratio'] = np.exp(table['estimate'])
    return table


def compare_outcomes(df, predictors=None, groups=None, link='logit'):
    """
    Fit the ordinal, binary and relative-position models on the same
    predictors and line their coefficients up side by side.

    Note on signs: a positive CLM coefficient shifts mass toward LATER
    arrival; a positive GLMM coefficient raises the odds of arriving FIRST.

    Parameters
    ----------
    df : DataFrame (from add_relative_position)
    predictors : list of str, optional
    groups : list of str, optional

    Returns
    -------
    dict with fitted models, per-model summaries, and a combined table
    """
    predictors = list(predictors or DEFAULT_PREDICTORS)
    groups = list(groups or [DEFAULT_GROUPS_COL])

    specs = {
        'ordinal': ModelSpec('clm', predictors=predictors, groups=[], link=link),
        'binary': ModelSpec('glmm', predictors=predictors, groups=groups),
        'relative': ModelSpec('lmm', predictors=predictors, groups=groups)
    }

    results = {'models': {}, 'summaries': {}}
    for name, spec in specs.items():
        fitted = fit_model(spec, df)
        results['models'][name] = fitted
        results['summaries'][name] = summarize_fit(fitted)

    results['table'] = pd.concat(
        {name: s[['estimate', 'se', 'p_value']] for name, s in results['summaries'].items()},
        axis=1
    )
    return results


def format_results_table(summary, precision=3):
    """
    Format a summarize_fit table as readable strings.
    """
    rows = []
    for term, row in summary.iterrows():
        est = f"{row['estimate']:+.{precision}f}"
        se = f"({row['se']:.{precision}f})"
        if 'p_value' in summary.columns:
            extra = f"p={row['p_value']:.{precision}f}"
        else:
            extra = ''
        rows.append((term, est, se, extra))
    return pd.DataFrame(rows, columns=['Term', 'Estimate', 'SE', 'Test'])
