"""Unit tests for fixed-width bucketing and global-denominator aggregation."""

from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from arrival_analysis.src.aggregation import (
    aggregate_by_two,
    aggregate_proportions,
    bucket_domain,
    bucket_shares,
    bucket_values,
)
from arrival_analysis.src.data_loading import normalize_schema
from arrival_analysis.src.errors import BucketingError, SchemaError


# =============================================================================
# bucket_values
# =============================================================================

def test_bucket_labels_with_maximum_folded_into_last_bucket():
    """1.0 is the maximum and lands in the final bucket, labelled 0.9."""
    result = bucket_values([0.05, 0.15, 0.95, 1.0], 0.1)
    assert list(result) == pytest.approx([0.0, 0.1, 0.9, 0.9])


def test_interior_boundary_belongs_to_bucket_starting_there():
    result = bucket_values([0.30, 0.75], 0.1)
    assert result.iloc[0] == pytest.approx(0.3)


def test_boundary_values_across_the_range():
    values = [round(k * 0.1, 1) for k in range(10)] + [0.95]
    result = bucket_values(values, 0.1)
    assert list(result[:10]) == pytest.approx(values[:10])


def test_lower_bound_inclusive_upper_bound_exclusive():
    result = bucket_values([0.2, 0.2999, 0.55], 0.1)
    assert list(result) == pytest.approx([0.2, 0.2, 0.5])


def test_value_just_below_boundary_stays_in_lower_bucket():
    result = bucket_values([0.29999999999, 0.9], 0.1)
    assert result.iloc[0] == pytest.approx(0.2)


def test_explicit_upper_controls_last_bucket():
    # 0.5 is only folded when it is the domain maximum
    assert bucket_values([0.5], 0.1).iloc[0] == pytest.approx(0.4)
    assert bucket_values([0.5], 0.1, upper=1.0).iloc[0] == pytest.approx(0.5)


def test_bucket_values_preserves_series_index_and_name():
    series = pd.Series([0.12, 0.47], index=[10, 20], name="foraging_success")
    result = bucket_values(series, 0.25)
    assert list(result.index) == [10, 20]
    assert result.name == "foraging_success"
    assert list(result) == pytest.approx([0.0, 0.25])


@pytest.mark.parametrize("width", [0, -0.1, np.nan, np.inf, "wide"])
def test_invalid_width_raises(width):
    with pytest.raises(BucketingError):
        bucket_values([0.1, 0.2], width)


@pytest.mark.parametrize("bad", [np.nan, np.inf, -0.2])
def test_invalid_values_raise(bad):
    with pytest.raises(BucketingError) as excinfo:
        bucket_values(pd.Series([0.1, bad, 0.3], index=["a", "b", "c"]), 0.1)
    assert "'b'" in str(excinfo.value)


def test_bucket_domain_covers_up_to_maximum():
    assert bucket_domain(0.1, 1.0) == pytest.approx([k / 10 for k in range(10)])
    assert bucket_domain(0.1, 0.95) == pytest.approx([k / 10 for k in range(10)])
    assert bucket_domain(0.25, 0.0) == [0.0]


# =============================================================================
# aggregate_proportions
# =============================================================================

def test_six_row_scenario(six_rows):
    df = normalize_schema(six_rows)
    result = aggregate_proportions(df, "status")
    cell = result.set_index(["status", "arrival_order"])["proportion"]

    assert cell[("Dom", 1)] == pytest.approx(1 / 6)
    assert cell[("Dom", 2)] == pytest.approx(1 / 6)
    assert cell[("Dom", 3)] == 0
    assert cell[("Sub", 3)] == pytest.approx(2 / 6)
    assert result["proportion"].sum() == pytest.approx(1.0)


def test_dom_level_one_is_zero_without_a_dom_first_arrival(six_rows):
    df = six_rows.copy()
    df["arrival_order"] = [2, 3, 1, 1, 2, 3]
    result = aggregate_proportions(normalize_schema(df), "status")
    cell = result.set_index(["status", "arrival_order"])["proportion"]
    assert cell[("Dom", 1)] == 0
    assert result["proportion"].sum() == pytest.approx(1.0)


def test_denominator_is_the_full_table_not_the_bucket(six_rows):
    """Within a bucket proportions sum to the bucket's share, not to 1."""
    result = aggregate_proportions(normalize_schema(six_rows), "status")
    shares = bucket_shares(result, "status")
    assert shares["Dom"] == pytest.approx(2 / 6)
    assert shares["Sub"] == pytest.approx(4 / 6)
    assert shares["Dom"] != pytest.approx(1.0)


def test_bucket_sums_match_bucket_share_on_simulated_data(observations):
    n = len(observations)
    for dimension, width in [("status", None), ("foraging_success", 0.1)]:
        result = aggregate_proportions(observations, dimension, bucket_width=width)
        shares = bucket_shares(result, dimension)
        if width is None:
            counts = observations[dimension].value_counts()
        else:
            counts = pd.Series(bucket_values(observations[dimension], width)).value_counts()
        for bucket, share in shares.items():
            assert share == pytest.approx(counts.get(bucket, 0) / n)
        assert result["proportion"].sum() == pytest.approx(1.0)


def test_full_domain_of_cells_is_present(observations):
    result = aggregate_proportions(observations, "foraging_success", bucket_width=0.1)
    buckets = bucket_domain(0.1, observations["foraging_success"].max())
    assert len(result) == len(buckets) * 5
    assert set(result["arrival_order"]) == {1, 2, 3, 4, 5}
    assert (result["count"] >= 0).all()
    assert result["count"].sum() == len(observations)


def test_unobserved_levels_are_zero(six_rows):
    result = aggregate_proportions(normalize_schema(six_rows), "status",
                                   levels=[1, 2, 3, 4])
    level_four = result[result["arrival_order"] == 4]
    assert len(level_four) == 2
    assert (level_four["proportion"] == 0).all()


def test_output_columns(six_rows):
    result = aggregate_proportions(normalize_schema(six_rows), "status")
    assert list(result.columns) == ["status", "arrival_order", "count", "proportion"]


def test_missing_dimension_raises(six_rows):
    with pytest.raises(SchemaError) as excinfo:
        aggregate_proportions(normalize_schema(six_rows), "habitat")
    assert excinfo.value.column == "habitat"


def test_non_finite_continuous_dimension_raises(six_rows):
    df = normalize_schema(six_rows)
    df.loc[3, "foraging_success"] = np.nan
    with pytest.raises(BucketingError):
        aggregate_proportions(df, "foraging_success", bucket_width=0.1)


def test_aggregate_by_two_dimensions(observations):
    result = aggregate_by_two(observations, ["status", "foraging_success"],
                              bucket_widths={"foraging_success": 0.2})
    n_buckets = len(bucket_domain(0.2, observations["foraging_success"].max()))
    assert len(result) == 2 * n_buckets * 5
    assert result["proportion"].sum() == pytest.approx(1.0)

    dom = result[result["status"] == "Dom"]["proportion"].sum()
    assert dom == pytest.approx((observations["status"] == "Dom").mean())
