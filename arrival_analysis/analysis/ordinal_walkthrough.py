"""
Ordinal Walkthrough: Who Arrives First?
=======================================

Describes and models arrival order at the food patch as an ORDINAL outcome.

Research Questions:
1. Do dominant individuals arrive earlier than subordinates?
2. Is earlier arrival associated with higher foraging success?

Statistical Methods:
- Observed stacked proportions by status and by foraging-success bucket
- Cumulative link model (ordered logit) fitted with statsmodels
- Optional Bayesian cumulative model with group random intercepts (pymc)
- Predicted level probabilities over a status x foraging-success grid

METHODOLOGICAL NOTES:
- Proportions use the full table as denominator, so each bar's height is
  that bucket's share of the data
- Random intercepts are only carried by the Bayesian model
"""

import os
from pathlib import Path
from typing import Dict, Optional

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt

from ..src.data_loading import load_data, normalize_schema, compute_sample_summary
from ..src.aggregation import aggregate_proportions, bucket_shares
from ..src.reshaping import reshape_predictions, cumulative_from_category
from ..src.stats_utils import (
    ModelSpec, fit_model, predict_probabilities, summarize_fit, format_results_table
)
from ..src.plotting import (
    setup_style, save_figure, plot_stacked_proportions,
    plot_predicted_probabilities, plot_cumulative_probabilities
)
from ..src.constants import (
    ORDINAL_OUTCOME, DEFAULT_BUCKET_WIDTH, DEFAULT_PREDICTORS, DEFAULT_GROUPS_COL,
    STATUS_LEVELS
)


def prepare_data(data_or_path):
    """Load from a path, or normalize an in-memory table."""
    if isinstance(data_or_path, (str, os.PathLike)):
        return load_data(data_or_path)
    return normalize_schema(data_or_path, check_permutation=True)


def prediction_grid(df, n_points=11):
    """
    Every status level crossed with evenly spaced foraging-success values.
    """
    statuses = list(df['status'].cat.categories) if hasattr(df['status'], 'cat') else STATUS_LEVELS
    success = np.linspace(0.0, 1.0, n_points).round(4)
    return pd.DataFrame(
        [(s, x) for s in statuses for x in success],
        columns=['status', 'foraging_success']
    )


def describe_arrivals(df: pd.DataFrame, bucket_width=DEFAULT_BUCKET_WIDTH,
                      verbose=True) -> Dict:
    """
    Observed arrival-order proportions by status and by foraging success.
    """
    summary = compute_sample_summary(df)
    by_status = aggregate_proportions(df, 'status', target=ORDINAL_OUTCOME)
    by_success = aggregate_proportions(df, 'foraging_success', target=ORDINAL_OUTCOME,
                                       bucket_width=bucket_width)

    results = {
        'summary': summary,
        'by_status': by_status,
        'by_success': by_success,
        'status_shares': bucket_shares(by_status, 'status'),
        'success_shares': bucket_shares(by_success, 'foraging_success')
    }

    if verbose:
        print("\n" + "="*70)
        print("OBSERVED ARRIVAL ORDER")
        print("="*70)
        print(f"\nSample: {summary['n_observations']:,} observations, "
              f"{summary['n_groups']} groups, {summary['n_individuals']} individuals")
        print(f"Status split: {summary['status_counts']}")

        table = by_status.pivot(index='status', columns=ORDINAL_OUTCOME, values='proportion')
        print("\nProportion of all observations (status x arrival order):")
        print(table.round(3).to_string())
        print("\nShare of data per foraging-success bucket:")
        print(results['success_shares'].round(3).to_string())

    return results


def fit_ordinal_models(df: pd.DataFrame, predictors=None, groups=None,
                       include_bayesian=False, mcmc_options: Optional[Dict] = None,
                       link='logit', verbose=True) -> Dict:
    """
    Fit the cumulative link model (and optionally its Bayesian counterpart).
    """
    predictors = list(predictors or DEFAULT_PREDICTORS)
    groups = list(groups or [DEFAULT_GROUPS_COL])

    specs = {'clm': ModelSpec('clm', predictors=predictors, groups=[], link=link)}
    if include_bayesian:
        specs['bayes_clm'] = ModelSpec('bayes_clm', predictors=predictors, groups=groups,
                                       link=link, options=dict(mcmc_options or {}))

    results = {'models': {}, 'summaries': {}}
    for name, spec in specs.items():
        fitted = fit_model(spec, df)
        results['models'][name] = fitted
        results['summaries'][name] = summarize_fit(fitted)

        if verbose:
            print(f"\n{name.upper()} ({link}): {spec.outcome} ~ {' + '.join(predictors)}"
                  f"  [n={fitted.nobs}]")
            print(results['summaries'][name].round(3).to_string())

    return results


def predict_grid(fitted, grid: pd.DataFrame) -> pd.DataFrame:
    """Long-form predicted probabilities with cumulative P(Y <= k)."""
    matrix = predict_probabilities(fitted, grid)
    long_df = reshape_predictions(matrix, grid, fitted.levels,
                                  level_name=fitted.spec.outcome)
    return cumulative_from_category(long_df, level_name=fitted.spec.outcome)


def run_ordinal_walkthrough(data_or_path, output_dir='output',
                            bucket_width=DEFAULT_BUCKET_WIDTH,
                            include_bayesian=False, mcmc_options=None,
                            n_grid=11, save_figures=True, verbose=True) -> Dict:
    """
    Full ordinal walkthrough: describe, fit, predict, plot.

    Parameters
    ----------
    data_or_path : DataFrame or path to a delimited text table
    output_dir : str
        Directory for figures
    bucket_width : float
        Width of the foraging-success buckets
    include_bayesian : bool
        Also sample the Bayesian cumulative model (slow)
    mcmc_options : dict, optional
        draws / tune / chains / target_accept / random_seed overrides

    Returns
    -------
    dict with data, descriptive tables, fitted models and predictions
    """
    df = prepare_data(data_or_path)

    results = {'data': df}
    results['descriptive'] = describe_arrivals(df, bucket_width=bucket_width, verbose=verbose)
    results['fits'] = fit_ordinal_models(df, include_bayesian=include_bayesian,
                                         mcmc_options=mcmc_options, verbose=verbose)

    grid = prediction_grid(df, n_points=n_grid)
    results['predictions'] = {
        name: predict_grid(fitted, grid)
        for name, fitted in results['fits']['models'].items()
    }

    if verbose:
        print("\nCLM coefficients:")
        print(format_results_table(results['fits']['summaries']['clm']).to_string(index=False))

    if save_figures:
        setup_style()
        fig_dir = Path(output_dir) / 'figures'

        fig, axes = plt.subplots(1, 2, figsize=(16, 6))
        plot_stacked_proportions(results['descriptive']['by_status'], 'status', ax=axes[0],
                                 title='Arrival order by status', legend_title='Arrival order')
        plot_stacked_proportions(results['descriptive']['by_success'], 'foraging_success',
                                 ax=axes[1], title='Arrival order by foraging success',
                                 xlabel='Foraging success (bucket lower bound)',
                                 legend_title='Arrival order')
        save_figure(fig, fig_dir / 'fig_observed_arrival_order.png')

        for name, long_df in results['predictions'].items():
            fig = plot_predicted_probabilities(
                long_df, 'foraging_success', level=ORDINAL_OUTCOME, hue='status',
                title=f'Predicted arrival order ({name})'
            )
            save_figure(fig, fig_dir / f'fig_predicted_{name}.png')

            fig, ax = plt.subplots(figsize=(10, 6))
            plot_cumulative_probabilities(long_df, 'foraging_success', hue='status', ax=ax,
                                          title=f'Cumulative arrival probabilities ({name})')
            save_figure(fig, fig_dir / f'fig_cumulative_{name}.png')

    return results


if __name__ == "__main__":
    import sys
    if len(sys.argv) >= 2:
        run_ordinal_walkthrough(sys.argv[1], sys.argv[2] if len(sys.argv) > 2 else 'output')
