"""
Data Loading Utilities for the Arrival Order Analysis.
======================================================
Handles loading, type normalization, validation and derived outcomes.
"""

import logging
from pathlib import Path

import numpy as np
import pandas as pd
from pandas.api.types import CategoricalDtype

from .aggregation import bucket_domain, bucket_values
from .constants import (
    REQUIRED_COLUMNS, CATEGORICAL_COLUMNS, STATUS_LEVELS,
    ORDINAL_OUTCOME, BINARY_OUTCOME, RELATIVE_OUTCOME, PERCENTILE_OUTCOME,
    DEFAULT_BUCKET_WIDTH
)
from .errors import SchemaError

logger = logging.getLogger(__name__)

DELIMITERS = {
    '.csv': ',',
    '.tsv': '\t',
    '.txt': '\t'
}


def _as_numeric(series):
    """Numeric view of a column that may already be categorical."""
    if isinstance(series.dtype, CategoricalDtype):
        series = series.astype(object)
    return pd.to_numeric(series, errors='coerce')


def _first_bad_row(mask):
    return mask[mask].index[0]


def check_required_columns(df, columns=None):
    """
    Raise SchemaError naming the first required column missing from df.
    """
    if columns is None:
        columns = REQUIRED_COLUMNS
    for col in columns:
        if col not in df.columns:
            raise SchemaError("Missing required column", column=col)


def normalize_schema(df, check_permutation=False):
    """
    Coerce a raw observation table into typed categorical/ordinal fields.

    arrival_order becomes an ordered categorical whose levels are
    1..max(group_size) across the whole table. group_id, test_id,
    individual_id and status become unordered categoricals. arrival_bin
    (1 iff arrival_order == 1) is derived.

    Parameters
    ----------
    df : DataFrame
        Raw table with the REQUIRED_COLUMNS
    check_permutation : bool
        Also verify that arrival orders form 1..group_size in every
        (group_id, test_id) pair

    Returns
    -------
    New DataFrame; the input is not modified.

    Raises
    ------
    SchemaError
        Missing column, invalid group size, group size varying within a
        group, arrival_order outside [1, group_size], a missing identifier
        or status, or a status outside STATUS_LEVELS.
    """
    check_required_columns(df)
    out = df.copy()

    group_size = _as_numeric(out['group_size'])
    bad_size = group_size.isna() | (group_size < 1) | (group_size % 1 != 0)
    if bad_size.any():
        raise SchemaError("group_size must be a positive integer",
                          row=_first_bad_row(bad_size), column='group_size')
    group_size = group_size.astype('int64')

    sizes_per_group = group_size.groupby(
        np.asarray(out['group_id'], dtype=object)
    ).nunique()
    varying = sizes_per_group[sizes_per_group > 1]
    if len(varying) > 0:
        raise SchemaError("group_size is not constant across tests",
                          column='group_size', group=varying.index[0])

    arrival = _as_numeric(out[ORDINAL_OUTCOME])
    bad_order = (arrival.isna() | (arrival % 1 != 0) |
                 (arrival < 1) | (arrival > group_size))
    if bad_order.any():
        raise SchemaError("arrival_order outside [1, group_size]",
                          row=_first_bad_row(bad_order), column=ORDINAL_OUTCOME)
    arrival = arrival.astype('int64')

    levels = list(range(1, int(group_size.max()) + 1))
    out['group_size'] = group_size
    out[ORDINAL_OUTCOME] = pd.Categorical(arrival, categories=levels, ordered=True)

    for col in CATEGORICAL_COLUMNS:
        missing = out[col].isna()
        if missing.any():
            raise SchemaError(f"{col} has missing values",
                              row=_first_bad_row(missing), column=col)

    unknown = ~out['status'].astype(object).isin(STATUS_LEVELS)
    if unknown.any():
        raise SchemaError(f"status must be one of {STATUS_LEVELS}",
                          row=_first_bad_row(unknown), column='status')

    for col in CATEGORICAL_COLUMNS:
        if isinstance(out[col].dtype, CategoricalDtype) and not out[col].cat.ordered:
            continue
        if col == 'status':
            out[col] = pd.Categorical(out[col], categories=STATUS_LEVELS)
        else:
            out[col] = pd.Categorical(out[col])

    out['foraging_success'] = _as_numeric(out['foraging_success']).astype(float)
    out[BINARY_OUTCOME] = (arrival == 1).astype('int64')

    if check_permutation:
        validate_arrival_permutation(out)

    return out


def validate_arrival_permutation(df):
    """
    Check that arrival orders within each (group_id, test_id) pair are
    exactly {1, ..., group_size} with no ties or gaps.

    Raises
    ------
    SchemaError naming the first offending pair.
    """
    check_required_columns(df, ['group_id', 'test_id', ORDINAL_OUTCOME, 'group_size'])

    frame = pd.DataFrame({
        'group_id': np.asarray(df['group_id'], dtype=object),
        'test_id': np.asarray(df['test_id'], dtype=object),
        'order': _as_numeric(df[ORDINAL_OUTCOME]).to_numpy(),
        'size': _as_numeric(df['group_size']).to_numpy()
    }, index=df.index)

    for (group, test), sub in frame.groupby(['group_id', 'test_id'], sort=False):
        size = int(sub['size'].iloc[0])
        observed = sorted(sub['order'].astype(int).tolist())
        if observed != list(range(1, size + 1)):
            raise SchemaError(
                f"arrival orders {observed} in test {test!r} are not a "
                f"permutation of 1..{size}",
                row=sub.index[0], group=group
            )


def add_relative_position(df, bucket_width=DEFAULT_BUCKET_WIDTH):
    """
    Derive relative arrival position and its percentile bin.

    arrival_order_relative = arrival_order / group_size, in (0, 1].
    arrival_order_percentile_bin is the lower bound of its fixed-width
    bucket, stored as an ordered categorical over the buckets covering (0, 1].

    Parameters
    ----------
    df : DataFrame (from normalize_schema)
    bucket_width : float

    Returns
    -------
    New DataFrame with the two derived columns
    """
    out = df.copy()
    relative = _as_numeric(out[ORDINAL_OUTCOME]) / _as_numeric(out['group_size'])
    out[RELATIVE_OUTCOME] = relative.astype(float)

    bins = bucket_values(out[RELATIVE_OUTCOME], bucket_width, upper=1.0)
    out[PERCENTILE_OUTCOME] = pd.Categorical(
        bins, categories=bucket_domain(bucket_width, 1.0), ordered=True
    )
    return out


def load_data(path, sep=None, normalize=True, check_permutation=True, **read_kwargs):
    """
    Load an observation table from delimited text.

    Parameters
    ----------
    path : str or Path
        .csv (comma) or .tsv/.txt (tab) file with a header row
    sep : str, optional
        Override the delimiter inferred from the extension
    normalize : bool
        Run normalize_schema on the loaded table (default: True)
    check_permutation : bool
        Passed to normalize_schema
    **read_kwargs
        Forwarded to pandas.read_csv

    Returns
    -------
    DataFrame
    """
    path = Path(path)
    suffix = path.suffix.lower()
    if sep is None:
        if suffix not in DELIMITERS:
            raise SchemaError(
                f"Unsupported file format {suffix or '(none)'!r}; "
                f"expected one of {sorted(DELIMITERS)}"
            )
        sep = DELIMITERS[suffix]

    df = pd.read_csv(path, sep=sep, **read_kwargs)
    logger.info(f"Loaded {len(df):,} observations from {path.name}")

    if normalize:
        df = normalize_schema(df, check_permutation=check_permutation)
    return df


def compute_sample_summary(df):
    """
    Compute summary statistics for an observation table.

    Parameters
    ----------
    df : DataFrame (from normalize_schema)

    Returns
    -------
    dict with summary statistics
    """
    group_sizes = df.groupby(np.asarray(df['group_id'], dtype=object))['group_size'].first()

    summary = {
        'n_observations': len(df),
        'n_groups': df['group_id'].nunique(),
        'n_tests': df[['group_id', 'test_id']].drop_duplicates().shape[0],
        'n_individuals': df[['group_id', 'individual_id']].drop_duplicates().shape[0],
        'mean_group_size': float(group_sizes.mean()),
        'status_counts': df['status'].value_counts(sort=False).to_dict(),
    }

    if BINARY_OUTCOME in df.columns:
        summary['first_arrival_rate'] = float(df[BINARY_OUTCOME].mean())

    if 'foraging_success' in df.columns:
        success = df['foraging_success'].dropna()
        summary['foraging_success_mean'] = float(success.mean())
        summary['foraging_success_std'] = float(success.std())

    return summary
