"""Unit tests for prediction matrix reshaping."""

from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from arrival_analysis.src.errors import ReshapeError
from arrival_analysis.src.reshaping import (
    cumulative_from_category,
    reshape_predictions,
    widen_predictions,
)


@pytest.fixture
def combos() -> pd.DataFrame:
    return pd.DataFrame({
        "status": pd.Categorical(["Dom", "Dom", "Sub"], categories=["Dom", "Sub"]),
        "foraging_success": [0.0, 0.5, 0.5],
    })


@pytest.fixture
def matrix() -> np.ndarray:
    return np.array([
        [0.6, 0.3, 0.1],
        [0.5, 0.3, 0.2],
        [0.1, 0.2, 0.7],
    ])


def test_long_form_is_combination_major(combos, matrix):
    long_df = reshape_predictions(matrix, combos, [1, 2, 3])
    assert len(long_df) == 9
    assert list(long_df.columns) == ["status", "foraging_success", "arrival_order", "probability"]
    assert list(long_df["arrival_order"]) == [1, 2, 3] * 3
    assert list(long_df["status"]) == ["Dom"] * 6 + ["Sub"] * 3
    assert list(long_df["foraging_success"]) == [0.0] * 3 + [0.5] * 6


def test_probabilities_pass_through_unchanged(combos, matrix):
    long_df = reshape_predictions(matrix, combos, [1, 2, 3])
    assert np.array_equal(long_df["probability"].to_numpy(), matrix.reshape(-1))


def test_explanatory_dtypes_preserved(combos, matrix):
    long_df = reshape_predictions(matrix, combos, [1, 2, 3])
    assert long_df["status"].dtype == combos["status"].dtype
    assert long_df["arrival_order"].cat.ordered
    assert list(long_df["arrival_order"].cat.categories) == [1, 2, 3]


@pytest.mark.parametrize("n_levels", [2, 5])
def test_level_count_varies_between_calls(combos, n_levels):
    m = np.full((3, n_levels), 1 / n_levels)
    labels = [f"L{k}" for k in range(n_levels)]
    long_df = reshape_predictions(m, combos, labels, level_name="level", value_name="p")
    assert len(long_df) == 3 * n_levels
    assert list(long_df["level"].cat.categories) == labels


def test_accepts_list_of_dicts():
    long_df = reshape_predictions([[0.4, 0.6]], [{"status": "Sub"}], [0, 1])
    assert list(long_df["status"]) == ["Sub", "Sub"]


def test_widen_reconstructs_matrix_exactly(combos, matrix):
    long_df = reshape_predictions(matrix, combos, [1, 2, 3])
    wide = widen_predictions(long_df, ["status", "foraging_success"])
    assert np.array_equal(wide[[1, 2, 3]].to_numpy(), matrix)
    assert list(wide.columns) == ["status", "foraging_success", 1, 2, 3]
    pd.testing.assert_frame_equal(
        wide[["status", "foraging_success"]], combos, check_column_type=False
    )


def test_widen_rejects_shuffled_rows(combos, matrix):
    long_df = reshape_predictions(matrix, combos, [1, 2, 3])
    shuffled = long_df.iloc[[1, 0, 2, 3, 4, 5, 6, 7, 8]].reset_index(drop=True)
    with pytest.raises(ReshapeError):
        widen_predictions(shuffled, ["status", "foraging_success"])


def test_cumulative_probabilities(combos, matrix):
    long_df = cumulative_from_category(reshape_predictions(matrix, combos, [1, 2, 3]))
    cum = long_df["cumulative_probability"].to_numpy().reshape(3, 3)
    assert cum[:, 0] == pytest.approx(matrix[:, 0])
    assert cum[:, -1] == pytest.approx(matrix.sum(axis=1))
    assert (np.diff(cum, axis=1) >= 0).all()


def test_column_count_mismatch(combos, matrix):
    with pytest.raises(ReshapeError, match="3 columns but 4 level labels"):
        reshape_predictions(matrix, combos, [1, 2, 3, 4])


def test_row_count_mismatch(combos, matrix):
    with pytest.raises(ReshapeError, match="3 rows but 2 combinations"):
        reshape_predictions(matrix, combos.iloc[:2], [1, 2, 3])


def test_one_dimensional_matrix_rejected(combos):
    with pytest.raises(ReshapeError):
        reshape_predictions([0.2, 0.8], combos, [1, 2])


def test_duplicate_labels_rejected(combos, matrix):
    with pytest.raises(ReshapeError):
        reshape_predictions(matrix, combos, [1, 1, 2])


def test_level_name_collision_rejected(combos, matrix):
    with pytest.raises(ReshapeError):
        reshape_predictions(matrix, combos, [1, 2, 3], level_name="status")
