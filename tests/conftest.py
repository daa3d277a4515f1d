"""Pytest configuration and shared fixtures for arrival_analysis tests."""
from __future__ import annotations

import matplotlib

matplotlib.use("Agg")

import numpy as np
import pandas as pd
import pytest


def _simulate(n_groups=20, sizes=(3, 4, 5), n_tests=4, seed=1):
    """Groups with a dominance effect on arrival order."""
    rng = np.random.default_rng(seed)
    rows = []
    for g in range(n_groups):
        size = sizes[g % len(sizes)]
        n_dom = max(1, size // 3)
        boldness = rng.normal(0, 0.5, size)
        boldness[:n_dom] += 1.5
        for t in range(n_tests):
            score = boldness + rng.normal(0, 1, size)
            order = np.empty(size, dtype=int)
            order[np.argsort(-score)] = np.arange(1, size + 1)
            for i in range(size):
                position = (order[i] - 1) / (size - 1)
                success = np.clip(0.65 - 0.3 * position + rng.normal(0, 0.2), 0, 1)
                rows.append({
                    "group_id": f"G{g + 1:02d}",
                    "test_id": f"T{t + 1}",
                    "individual_id": f"G{g + 1:02d}_I{i + 1}",
                    "status": "Dom" if i < n_dom else "Sub",
                    "arrival_order": int(order[i]),
                    "foraging_success": round(float(success), 2),
                    "group_size": size,
                })
    return pd.DataFrame(rows)


@pytest.fixture
def simulate():
    """Factory for simulated observation tables."""
    return _simulate


@pytest.fixture
def raw_observations() -> pd.DataFrame:
    return _simulate()


@pytest.fixture
def observations(raw_observations) -> pd.DataFrame:
    from arrival_analysis.src.data_loading import normalize_schema

    return normalize_schema(raw_observations, check_permutation=True)


@pytest.fixture
def six_rows() -> pd.DataFrame:
    """Two groups of three, one test each; one Dom row arrives first."""
    return pd.DataFrame({
        "group_id": ["A", "A", "A", "B", "B", "B"],
        "test_id": ["T1"] * 6,
        "individual_id": ["A1", "A2", "A3", "B1", "B2", "B3"],
        "status": ["Dom", "Dom", "Sub", "Sub", "Sub", "Sub"],
        "arrival_order": [1, 2, 3, 1, 2, 3],
        "foraging_success": [0.9, 0.6, 0.2, 0.8, 0.5, 0.1],
        "group_size": [3, 3, 3, 3, 3, 3],
    })
