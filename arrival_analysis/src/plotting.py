"""
Plotting Utilities for the Arrival Order Analysis.
==================================================
Stacked-probability charts for observed proportions and model predictions.
All functions consume long-form tables (dimension value(s), level, value).
"""

import logging
from pathlib import Path

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
import seaborn as sns
from pandas.api.types import CategoricalDtype

from .constants import FIGURE_DPI, FIGURE_STYLE, ORDINAL_CMAP, ORDINAL_OUTCOME

logger = logging.getLogger(__name__)


def setup_style():
    """Set up matplotlib style for consistent plots."""
    plt.style.use(FIGURE_STYLE)
    plt.rcParams['figure.dpi'] = 100
    plt.rcParams['savefig.dpi'] = FIGURE_DPI
    plt.rcParams['font.size'] = 11
    plt.rcParams['axes.labelsize'] = 12
    plt.rcParams['axes.titlesize'] = 13
    plt.rcParams['figure.figsize'] = (10, 6)


def save_figure(fig, path, dpi=FIGURE_DPI, tight=True):
    """
    Save figure with standard settings and close it.

    Parameters
    ----------
    fig : Figure
    path : str or Path
        Output path (can be .png, .pdf, .svg); parent directories are created
    dpi : int
    tight : bool
        Use tight_layout
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    if tight:
        fig.tight_layout()

    fig.savefig(path, dpi=dpi, bbox_inches='tight', facecolor='white')
    plt.close(fig)
    logger.info(f"Saved: {path}")


def _ordered_unique(series):
    if isinstance(series.dtype, CategoricalDtype):
        return [c for c in series.cat.categories if c in set(series)]
    return list(pd.unique(series))


def _format_label(value):
    if isinstance(value, float):
        return f"{value:g}"
    return str(value)


def _level_colors(n_levels, colors=None):
    if colors is not None:
        return colors
    return sns.color_palette(ORDINAL_CMAP, n_levels)


def to_wide(long_df, index, level=ORDINAL_OUTCOME, value='proportion'):
    """
    Pivot a long table to (index value x level), keeping first-seen order
    of the index and category order of the levels.
    """
    rows = _ordered_unique(long_df[index])
    levels = _ordered_unique(long_df[level])

    frame = pd.DataFrame({
        index: np.asarray(long_df[index], dtype=object),
        level: np.asarray(long_df[level], dtype=object),
        value: long_df[value].to_numpy(dtype=float)
    })
    wide = frame.groupby([index, level], sort=False)[value].sum().unstack(level)
    return wide.reindex(index=rows, columns=levels).fillna(0.0)


def plot_stacked_proportions(long_df, dimension, level=ORDINAL_OUTCOME,
                             value='proportion', ax=None, title='',
                             xlabel=None, ylabel='Proportion of all observations',
                             colors=None, legend_title=None):
    """
    Stacked bar chart of level proportions per explanatory bucket.

    Parameters
    ----------
    long_df : DataFrame
        Output of aggregate_proportions (or any long table)
    dimension : str
        Column on the x axis
    level : str
        Column whose levels are stacked (legend in level order)
    value : str
        Column with the bar heights
    """
    if ax is None:
        fig, ax = plt.subplots(figsize=(10, 6))

    wide = to_wide(long_df, dimension, level, value)
    wide.index = [_format_label(v) for v in wide.index]
    wide.columns = [_format_label(c) for c in wide.columns]

    wide.plot(kind='bar', stacked=True, ax=ax, width=0.85,
              color=_level_colors(wide.shape[1], colors), edgecolor='white')

    ax.set_xlabel(xlabel if xlabel is not None else dimension)
    ax.set_ylabel(ylabel)
    ax.set_title(title)
    ax.tick_params(axis='x', rotation=0)
    ax.legend(title=legend_title or level, bbox_to_anchor=(1.02, 1), loc='upper left')
    ax.grid(True, axis='y', alpha=0.3)

    return ax


def plot_predicted_probabilities(long_df, x, level=ORDINAL_OUTCOME,
                                 value='probability', hue=None, title='',
                                 xlabel=None, colors=None):
    """
    Stacked area chart of predicted level probabilities along a continuous
    predictor, one panel per value of `hue`.

    Returns
    -------
    Figure
    """
    panels = _ordered_unique(long_df[hue]) if hue is not None else [None]
    fig, axes = plt.subplots(1, len(panels), figsize=(6 * len(panels), 5),
                             sharey=True, squeeze=False)

    for ax, panel in zip(axes[0], panels):
        subset = long_df if panel is None else long_df[long_df[hue] == panel]
        wide = to_wide(subset, x, level, value).sort_index()
        colors_ = _level_colors(wide.shape[1], colors)

        ax.stackplot(wide.index.to_numpy(dtype=float), wide.to_numpy().T,
                     labels=[_format_label(c) for c in wide.columns],
                     colors=colors_, alpha=0.9)
        ax.set_xlim(wide.index.min(), wide.index.max())
        ax.set_ylim(0, 1)
        ax.set_xlabel(xlabel if xlabel is not None else x)
        ax.set_title(f"{hue} = {panel}" if panel is not None else title)

    axes[0][0].set_ylabel('Predicted probability')
    axes[0][-1].legend(title=level, bbox_to_anchor=(1.02, 1), loc='upper left')
    if title and hue is not None:
        fig.suptitle(title)

    return fig


def plot_cumulative_probabilities(long_df, x, level=ORDINAL_OUTCOME,
                                  value='cumulative_probability', hue=None,
                                  ax=None, title=''):
    """
    Lines of P(Y <= level) along a continuous predictor.
    """
    if ax is None:
        fig, ax = plt.subplots(figsize=(10, 6))

    frame = long_df.copy()
    frame[level] = frame[level].astype(str)
    # top level is identically 1
    top = _format_label(_ordered_unique(long_df[level])[-1])
    frame = frame[frame[level] != top]

    sns.lineplot(data=frame, x=x, y=value, hue=level, style=hue, ax=ax,
                 palette=ORDINAL_CMAP, linewidth=2)

    ax.set_ylim(0, 1)
    ax.set_ylabel(f'P({level} ≤ k)')
    ax.set_title(title)
    ax.grid(True, alpha=0.3)

    return ax
