"""
Binned Aggregation for Stacked Probability Charts.
==================================================
Groups observations by one or two explanatory dimensions (categorical, or
continuous bucketed into fixed-width intervals) and computes the empirical
proportion of each ordinal level in each group.

NOTE ON THE DENOMINATOR:
Proportions are count / (rows in the FULL table), a fixed global denominator
shared by every bucket. Within a bucket they therefore sum to that bucket's
share of the data, not to 1.0; over all buckets and levels they sum to 1.0.
"""

import logging

import numpy as np
import pandas as pd
from pandas.api.types import CategoricalDtype

from .constants import BUCKET_PRECISION, BUCKET_SNAP_ULPS, ORDINAL_OUTCOME
from .errors import BucketingError, SchemaError

logger = logging.getLogger(__name__)


# =============================================================================
# FIXED-WIDTH BUCKETS
# =============================================================================

def _check_width(width):
    try:
        width = float(width)
    except (TypeError, ValueError):
        raise BucketingError(f"Bucket width must be a number, got {width!r}")
    if not np.isfinite(width) or width <= 0:
        raise BucketingError(f"Bucket width must be positive and finite, got {width}")
    return width


def _snap(quotient):
    """
    Snap x / w to the nearest integer when it is within a few ulps of it,
    so 0.3 / 0.1 = 2.9999999999999996 counts as boundary 3. Values further
    than that below a boundary (0.29999999999) stay in the lower bucket.
    """
    quotient = np.asarray(quotient, dtype=float)
    nearest = np.round(quotient)
    tol = BUCKET_SNAP_ULPS * np.finfo(float).eps * np.maximum(np.abs(quotient), 1.0)
    return np.where(np.abs(quotient - nearest) <= tol, nearest, quotient)


def _last_bucket_index(width, upper):
    """Index of the final bucket, the one that covers `upper` (inclusive)."""
    k = int(np.ceil(_snap(upper / width))) - 1
    return max(k, 0)


def bucket_domain(width, upper):
    """
    Lower bounds of every bucket from 0 up to the one covering `upper`.

    >>> bucket_domain(0.1, 1.0)[-1]
    0.9
    """
    width = _check_width(width)
    n = _last_bucket_index(width, upper) + 1
    return [float(np.round(k * width, BUCKET_PRECISION)) for k in range(n)]


def bucket_values(values, width, upper=None):
    """
    Assign each value to the half-open bucket [k*w, (k+1)*w) starting at 0,
    labelled by its lower bound.

    A value equal to `upper` (default: the maximum of `values`) that sits
    exactly on a boundary is folded into the final bucket, so the last
    bucket is closed on the right.

    A value whose quotient x / w lies within BUCKET_SNAP_ULPS ulps of an
    integer boundary is treated as sitting on it (0.3 with width 0.1 goes
    to bucket 0.3). Anything further below a boundary stays in the lower
    bucket.

    Parameters
    ----------
    values : array-like or Series
        Non-negative finite values
    width : float
        Bucket width, > 0
    upper : float, optional
        Upper end of the domain

    Returns
    -------
    Series of bucket lower bounds (index preserved for Series input)

    Raises
    ------
    BucketingError
        Non-positive width, or non-finite / negative values.
    """
    width = _check_width(width)

    if isinstance(values, pd.Series):
        index, name = values.index, values.name
        series = values
    else:
        series = pd.Series(values)
        index, name = series.index, None

    if isinstance(series.dtype, CategoricalDtype):
        series = series.astype(object)
    numeric = pd.to_numeric(series, errors='coerce').to_numpy(dtype=float)

    bad = ~np.isfinite(numeric)
    if bad.any():
        raise BucketingError(
            f"Cannot bucket non-finite value at row {index[np.argmax(bad)]!r}"
        )
    if (numeric < 0).any():
        raise BucketingError(
            f"Cannot bucket negative value at row {index[np.argmax(numeric < 0)]!r}"
        )

    if len(numeric) == 0:
        return pd.Series([], index=index, name=name, dtype=float)

    if upper is None:
        upper = numeric.max()

    k = np.floor(_snap(numeric / width))
    k = np.minimum(k, _last_bucket_index(width, upper))
    labels = np.round(k * width, BUCKET_PRECISION)

    logger.debug(f"Bucketed {len(numeric)} values into width-{width} buckets up to {upper}")
    return pd.Series(labels, index=index, name=name)


# =============================================================================
# PROPORTIONS WITH A GLOBAL DENOMINATOR
# =============================================================================

def _domain(series):
    if isinstance(series.dtype, CategoricalDtype):
        return list(series.cat.categories)
    return sorted(series.dropna().unique().tolist())


def aggregate_by_two(df, dimensions, target=ORDINAL_OUTCOME, bucket_widths=None,
                     levels=None):
    """
    Proportion of each target level for every combination of explanatory
    buckets, over the full domain of buckets and levels.

    Parameters
    ----------
    df : DataFrame (from normalize_schema)
    dimensions : list of str
        One or two explanatory columns
    target : str
        Ordinal column whose levels are counted
    bucket_widths : dict, optional
        {column: width} for continuous dimensions
    levels : list, optional
        Domain of target levels (default: its categories, or observed values)

    Returns
    -------
    DataFrame with columns [*dimensions, target, 'count', 'proportion']
    """
    if isinstance(dimensions, str):
        dimensions = [dimensions]
    bucket_widths = bucket_widths or {}

    for col in list(dimensions) + [target]:
        if col not in df.columns:
            raise SchemaError("Column not found for aggregation", column=col)

    total = len(df)
    if total == 0:
        raise SchemaError("Cannot aggregate an empty table")

    keys = {}
    domains = []
    for dim in dimensions:
        if dim in bucket_widths:
            width = bucket_widths[dim]
            keys[dim] = bucket_values(df[dim], width).to_numpy(dtype=object)
            upper = float(pd.to_numeric(df[dim]).max())
            domains.append(bucket_domain(width, upper))
        else:
            keys[dim] = np.asarray(df[dim], dtype=object)
            domains.append(_domain(df[dim]))

    keys[target] = np.asarray(df[target], dtype=object)
    domains.append(list(levels) if levels is not None else _domain(df[target]))

    frame = pd.DataFrame(keys)
    names = list(dimensions) + [target]
    counts = frame.groupby(names, sort=False).size()
    full_index = pd.MultiIndex.from_product(domains, names=names)
    counts = counts.reindex(full_index, fill_value=0).astype('int64')

    result = counts.rename('count').reset_index()
    result['proportion'] = result['count'] / total

    logger.debug(f"Aggregated {total} rows into {len(result)} cells over {names}")
    return result


def aggregate_proportions(df, dimension, target=ORDINAL_OUTCOME, bucket_width=None,
                          levels=None):
    """
    Proportion of each ordinal level within each explanatory bucket.

    Parameters
    ----------
    df : DataFrame (from normalize_schema)
    dimension : str
        Categorical column, or continuous column when bucket_width is given
    target : str
        Ordinal column (default: arrival_order)
    bucket_width : float, optional
        Width of the fixed-width buckets for a continuous dimension
    levels : list, optional
        Domain of target levels

    Returns
    -------
    DataFrame with columns [dimension, target, 'count', 'proportion'];
    proportion = count / len(df)
    """
    widths = {dimension: bucket_width} if bucket_width is not None else None
    return aggregate_by_two(df, [dimension], target=target,
                            bucket_widths=widths, levels=levels)


def bucket_shares(aggregated, dimension):
    """Sum of proportions per bucket, i.e. each bucket's share of the data."""
    return aggregated.groupby(dimension, sort=False)['proportion'].sum()
