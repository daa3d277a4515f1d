"""
Constants and configuration for the Arrival Order Analysis.
===========================================================
Centralized definitions for columns, levels, bin widths, and defaults.

IMPORTANT - ARRIVAL ORDER NOTATION:
-----------------------------------
Arrival order is a RANK within a single group test:
  - arrival_order = 1 means the individual reached the patch first
  - arrival_order = group_size means it arrived last

Relative position rescales the rank by group size:
  - arrival_order_relative = arrival_order / group_size, in (0, 1]
  - the last arriver always has arrival_order_relative = 1.0

Foraging success is a PROPORTION on the [0, 1] scale, not a percentage.
"""

# =============================================================================
# INPUT SCHEMA
# =============================================================================

REQUIRED_COLUMNS = [
    'group_id',
    'test_id',
    'individual_id',
    'status',
    'arrival_order',
    'foraging_success',
    'group_size'
]

CATEGORICAL_COLUMNS = ['group_id', 'test_id', 'individual_id', 'status']

STATUS_LEVELS = ['Dom', 'Sub']

# =============================================================================
# DERIVED OUTCOMES
# =============================================================================

ORDINAL_OUTCOME = 'arrival_order'
BINARY_OUTCOME = 'arrival_bin'
RELATIVE_OUTCOME = 'arrival_order_relative'
PERCENTILE_OUTCOME = 'arrival_order_percentile_bin'

DEFAULT_BUCKET_WIDTH = 0.1

# Decimal places used to snap bucket labels (0.30000000000000004 -> 0.3)
BUCKET_PRECISION = 10

# x / w within this many ulps of an integer is treated as on the boundary
BUCKET_SNAP_ULPS = 4

# =============================================================================
# MODEL DEFAULTS
# =============================================================================

DEFAULT_PREDICTORS = ['status', 'foraging_success']

# Random intercepts per individual (repeated tests). A group-level intercept
# is degenerate for rank outcomes: every group's mean rank is fixed by its size.
DEFAULT_GROUPS_COL = 'individual_id'

CLM_LINKS = ('logit', 'probit')

MCMC_DRAWS = 1000
MCMC_TUNE = 1000
MCMC_CHAINS = 4
MCMC_TARGET_ACCEPT = 0.9
MAX_DIVERGENCE_RATE = 0.01
RANDOM_SEED = 42

ALPHA = 0.05
MIN_SAMPLE_SIZE = 30

# =============================================================================
# PLOTTING
# =============================================================================

FIGURE_DPI = 300
FIGURE_STYLE = 'seaborn-v0_8-whitegrid'

# Sequential palette for ordinal levels (first arrivals darkest)
ORDINAL_CMAP = 'viridis'
