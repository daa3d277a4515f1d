"""
Arrival Order Analysis - Source Utilities
=========================================

Typed loading, binned aggregation, prediction reshaping, model fitting
and plotting for ordinal arrival-order data.

Usage:
------
from arrival_analysis.src import load_data, aggregate_proportions, reshape_predictions
from arrival_analysis.src.constants import DEFAULT_BUCKET_WIDTH
"""

from .constants import *
from .errors import (
    ArrivalAnalysisError,
    SchemaError,
    BucketingError,
    ReshapeError,
    ModelFitError,
    ConvergenceError,
    SingularityError
)
from .aggregation import (
    bucket_values,
    bucket_domain,
    aggregate_proportions,
    aggregate_by_two,
    bucket_shares
)
from .data_loading import (
    load_data,
    normalize_schema,
    validate_arrival_permutation,
    add_relative_position,
    compute_sample_summary
)
from .reshaping import (
    reshape_predictions,
    widen_predictions,
    cumulative_from_category
)
from .stats_utils import (
    ModelSpec,
    FittedModel,
    design_matrix,
    fit_model,
    predict_probabilities,
    summarize_fit,
    compare_outcomes,
    format_results_table
)
from .plotting import (
    setup_style,
    save_figure,
    to_wide,
    plot_stacked_proportions,
    plot_predicted_probabilities,
    plot_cumulative_probabilities
)
