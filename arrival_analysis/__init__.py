"""
Arrival Order Analysis.
=======================
Ordinal regression walkthrough for arrival order at a food patch, with
binary and relative-position alternatives.

Usage:
    from arrival_analysis import load_data, aggregate_proportions, plot_stacked_proportions

    df = load_data("arrivals.csv")   # typed, validated observation table

    # Observed proportions (denominator = all rows of the table)
    by_status = aggregate_proportions(df, 'status')
    by_success = aggregate_proportions(df, 'foraging_success', bucket_width=0.1)
    plot_stacked_proportions(by_success, 'foraging_success')

    # Cumulative link model and its predictions in long form
    from arrival_analysis import ModelSpec, fit_model, predict_probabilities, reshape_predictions

    fitted = fit_model(ModelSpec('clm', predictors=['status', 'foraging_success']), df)
    grid = prediction_grid(df)
    long_df = reshape_predictions(predict_probabilities(fitted, grid), grid, fitted.levels)

    # Or run everything
    from arrival_analysis import run_all
    results = run_all("arrivals.csv", output_dir="output")
"""

from .src.errors import (
    ArrivalAnalysisError,
    SchemaError,
    BucketingError,
    ReshapeError,
    ModelFitError,
    ConvergenceError,
    SingularityError
)
from .src.data_loading import (
    load_data,
    normalize_schema,
    validate_arrival_permutation,
    add_relative_position,
    compute_sample_summary
)
from .src.aggregation import (
    bucket_values,
    aggregate_proportions,
    aggregate_by_two,
    bucket_shares
)
from .src.reshaping import (
    reshape_predictions,
    widen_predictions,
    cumulative_from_category
)
from .src.stats_utils import (
    ModelSpec,
    FittedModel,
    fit_model,
    predict_probabilities,
    summarize_fit,
    compare_outcomes
)
from .src.plotting import (
    setup_style,
    save_figure,
    plot_stacked_proportions,
    plot_predicted_probabilities,
    plot_cumulative_probabilities
)
from .analysis import (
    run_all,
    run_ordinal_walkthrough,
    run_outcome_comparison,
    prediction_grid
)

__all__ = [
    # Errors
    'ArrivalAnalysisError',
    'SchemaError',
    'BucketingError',
    'ReshapeError',
    'ModelFitError',
    'ConvergenceError',
    'SingularityError',

    # Schema normalizer
    'load_data',
    'normalize_schema',
    'validate_arrival_permutation',
    'add_relative_position',
    'compute_sample_summary',

    # Binned aggregator
    'bucket_values',
    'aggregate_proportions',
    'aggregate_by_two',
    'bucket_shares',

    # Prediction reshaper
    'reshape_predictions',
    'widen_predictions',
    'cumulative_from_category',

    # Models
    'ModelSpec',
    'FittedModel',
    'fit_model',
    'predict_probabilities',
    'summarize_fit',
    'compare_outcomes',

    # Plotting
    'setup_style',
    'save_figure',
    'plot_stacked_proportions',
    'plot_predicted_probabilities',
    'plot_cumulative_probabilities',

    # Runners
    'run_all',
    'run_ordinal_walkthrough',
    'run_outcome_comparison',
    'prediction_grid',
]

__version__ = '1.0.0'
