"""
Prediction Matrix Reshaping.
============================
Turns the wide (combinations x levels) probability matrix returned by a
fitted model into long form for stacked charts, and back.

Long form is combination-major: all levels of the first combination, then
all levels of the second, and so on. Probabilities are never modified.
"""

import numpy as np
import pandas as pd
from pandas.api.types import CategoricalDtype
from typing import List, Optional, Sequence

from .constants import ORDINAL_OUTCOME
from .errors import ReshapeError


def reshape_predictions(matrix, combinations, level_labels: Sequence,
                        level_name: str = ORDINAL_OUTCOME,
                        value_name: str = 'probability') -> pd.DataFrame:
    """
    Reshape a wide prediction matrix into one row per (combination, level).

    Parameters
    ----------
    matrix : array-like, shape (n_combinations, n_levels)
        Predicted probabilities, one column per ordinal level
    combinations : DataFrame or list of dict
        Explanatory values, one row per matrix row
    level_labels : sequence
        Label of each matrix column, in column order
    level_name, value_name : str
        Names of the added level and probability columns

    Returns
    -------
    DataFrame with the explanatory columns unchanged, followed by
    level_name (ordered categorical in label order) and value_name

    Raises
    ------
    ReshapeError
        Matrix shape does not match the combinations or level labels.
    """
    values = np.asarray(matrix, dtype=float)
    if values.ndim != 2:
        raise ReshapeError(f"Prediction matrix must be 2-D, got shape {values.shape}")

    combos = pd.DataFrame(combinations).reset_index(drop=True)
    labels = list(level_labels)
    n_rows, n_levels = values.shape

    if n_levels != len(labels):
        raise ReshapeError(
            f"Prediction matrix has {n_levels} columns but {len(labels)} level labels"
        )
    if n_rows != len(combos):
        raise ReshapeError(
            f"Prediction matrix has {n_rows} rows but {len(combos)} combinations"
        )
    if len(set(labels)) != len(labels):
        raise ReshapeError(f"Duplicate level labels: {labels}")
    for name in (level_name, value_name):
        if name in combos.columns:
            raise ReshapeError(f"Column {name!r} already present in combinations")

    long_df = combos.loc[combos.index.repeat(n_levels)].reset_index(drop=True)
    long_df[level_name] = pd.Categorical(
        np.tile(np.asarray(labels, dtype=object), n_rows),
        categories=labels, ordered=True
    )
    long_df[value_name] = values.reshape(-1)
    return long_df


def _level_order(long_df, level_name):
    column = long_df[level_name]
    if isinstance(column.dtype, CategoricalDtype):
        return list(column.cat.categories)
    return list(pd.unique(column))


def _blocks(long_df, level_name, value_name, levels):
    """Values as an (n_combinations, n_levels) array, checking the layout."""
    n_levels = len(levels)
    if n_levels == 0 or len(long_df) % n_levels != 0:
        raise ReshapeError(
            f"{len(long_df)} rows cannot be split into blocks of {n_levels} levels"
        )
    n_rows = len(long_df) // n_levels

    observed = np.asarray(long_df[level_name], dtype=object)
    expected = np.tile(np.asarray(levels, dtype=object), n_rows)
    if not np.array_equal(observed, expected):
        raise ReshapeError("Long table is not in combination-major level order")

    return long_df[value_name].to_numpy(dtype=float).reshape(n_rows, n_levels)


def widen_predictions(long_df: pd.DataFrame, explanatory: List[str],
                      level_name: str = ORDINAL_OUTCOME,
                      value_name: str = 'probability',
                      levels: Optional[Sequence] = None) -> pd.DataFrame:
    """
    Inverse of reshape_predictions.

    Returns
    -------
    DataFrame with the explanatory columns followed by one column per
    level (in level order); its level columns reproduce the original matrix.
    """
    if levels is None:
        levels = _level_order(long_df, level_name)
    levels = list(levels)

    values = _blocks(long_df, level_name, value_name, levels)
    combos = long_df[list(explanatory)].iloc[::len(levels)].reset_index(drop=True)
    wide = pd.DataFrame(values, columns=levels)
    return pd.concat([combos, wide], axis=1)


def cumulative_from_category(long_df: pd.DataFrame,
                             level_name: str = ORDINAL_OUTCOME,
                             value_name: str = 'probability',
                             cumulative_name: str = 'cumulative_probability') -> pd.DataFrame:
    """
    Add P(Y <= level) for each combination of a long prediction table.
    """
    levels = _level_order(long_df, level_name)
    values = _blocks(long_df, level_name, value_name, levels)

    out = long_df.copy()
    out[cumulative_name] = np.cumsum(values, axis=1).reshape(-1)
    return out
