"""Arrival Order Analysis Modules"""
from .ordinal_walkthrough import (
    run_ordinal_walkthrough,
    describe_arrivals,
    fit_ordinal_models,
    prediction_grid,
    predict_grid
)
from .outcome_comparison import run_outcome_comparison, describe_codings
from .run_all import run_all
