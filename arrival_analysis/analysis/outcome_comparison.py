"""
Outcome Comparison: Ordinal vs Binary vs Relative Position
==========================================================
Fits the same predictors to three codings of arrival:

- arrival_order           (ordinal, cumulative link model)
- arrival_bin             (first to arrive or not, binomial GLMM)
- arrival_order_relative  (rank / group size, linear mixed model)

and shows how much information the binary coding throws away.
"""

from pathlib import Path
from typing import Dict

import pandas as pd
import matplotlib.pyplot as plt

from ..src.data_loading import add_relative_position
from ..src.aggregation import aggregate_proportions, aggregate_by_two
from ..src.stats_utils import compare_outcomes
from ..src.plotting import setup_style, save_figure, plot_stacked_proportions
from ..src.constants import (
    BINARY_OUTCOME, PERCENTILE_OUTCOME, DEFAULT_BUCKET_WIDTH,
    DEFAULT_PREDICTORS, DEFAULT_GROUPS_COL
)
from .ordinal_walkthrough import prepare_data


def describe_codings(df: pd.DataFrame, bucket_width=DEFAULT_BUCKET_WIDTH) -> Dict:
    """
    Observed proportions for the binary and percentile-bin codings.
    """
    return {
        'binary_by_status': aggregate_proportions(df, 'status', target=BINARY_OUTCOME,
                                                  levels=[0, 1]),
        'percentile_by_status': aggregate_proportions(df, 'status', target=PERCENTILE_OUTCOME),
        'percentile_by_status_success': aggregate_by_two(
            df, ['status', 'foraging_success'], target=PERCENTILE_OUTCOME,
            bucket_widths={'foraging_success': bucket_width}
        )
    }


def run_outcome_comparison(data_or_path, output_dir='output',
                           bucket_width=DEFAULT_BUCKET_WIDTH, predictors=None,
                           groups=None, save_figures=True, verbose=True) -> Dict:
    """
    Compare the three outcome codings on the same predictors.

    Returns
    -------
    dict with data, descriptive tables, fitted models and the combined
    coefficient table
    """
    df = add_relative_position(prepare_data(data_or_path), bucket_width=bucket_width)
    predictors = list(predictors or DEFAULT_PREDICTORS)
    groups = list(groups or [DEFAULT_GROUPS_COL])

    if verbose:
        print("\n" + "="*70)
        print("OUTCOME COMPARISON: ordinal vs binary vs relative position")
        print("="*70)

    results = {'data': df}
    results['descriptive'] = describe_codings(df, bucket_width=bucket_width)
    results['comparison'] = compare_outcomes(df, predictors=predictors, groups=groups)

    if verbose:
        print("\nFirst arrivals by status (share of all observations):")
        print(results['descriptive']['binary_by_status']
              .pivot(index='status', columns=BINARY_OUTCOME, values='proportion')
              .round(3).to_string())
        print("\nCoefficients (CLM: + = later; GLMM: + = more often first; LMM: + = later):")
        print(results['comparison']['table'].round(3).to_string())

    if save_figures:
        setup_style()
        fig_dir = Path(output_dir) / 'figures'

        fig, axes = plt.subplots(1, 2, figsize=(16, 6))
        plot_stacked_proportions(results['descriptive']['binary_by_status'], 'status',
                                 level=BINARY_OUTCOME, ax=axes[0],
                                 title='First to arrive, by status',
                                 colors=['#bdbdbd', '#d62728'], legend_title='First')
        plot_stacked_proportions(results['descriptive']['percentile_by_status'], 'status',
                                 level=PERCENTILE_OUTCOME, ax=axes[1],
                                 title='Relative arrival position, by status',
                                 legend_title='Relative position bin')
        save_figure(fig, fig_dir / 'fig_outcome_codings.png')

    return results


if __name__ == "__main__":
    import sys
    if len(sys.argv) >= 2:
        run_outcome_comparison(sys.argv[1], sys.argv[2] if len(sys.argv) > 2 else 'output')
