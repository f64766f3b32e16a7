#!/usr/bin/env python3
"""
Motor Voter Charts

Two exploratory charts of Oregon Motor Voter registrations:

- County bars: counties ordered by the share of active registrations that
  came through Motor Voter, each bar stacked by party category and labelled
  with the county total.
- County size scatter: registered voters (log scale) against the county's
  motor voter share, one labelled point per county.
"""

from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt  # noqa: E402
import matplotlib.ticker as mticker  # noqa: E402
import pandas as pd  # noqa: E402
import seaborn as sns  # noqa: E402
from loguru import logger  # noqa: E402

from processing.data_utils import ensure_output_directory  # noqa: E402
from processing.party_recode import CATEGORY_ORDER  # noqa: E402

BAR_CHART_FILENAME = "omv_county_party_bars.png"
SCATTER_CHART_FILENAME = "omv_county_size_scatter.png"

UNKNOWN_LABEL = "Unknown"

# Palette slots for the known categories; other labels take the remaining slots
CATEGORY_SLOTS = {"Democrat": 0, "Republican": 3, "NonAffiliated": 7, "Other": 8}


def party_colors(categories: Sequence[str], palette: str = "colorblind") -> Dict[str, tuple]:
    """Stable color per party category."""
    colors = sns.color_palette(palette, 10)
    spare = [i for i in range(len(colors)) if i not in CATEGORY_SLOTS.values()]
    mapping = {}
    extras = sorted(c for c in categories if c not in CATEGORY_SLOTS)
    for category in categories:
        if category in CATEGORY_SLOTS:
            mapping[category] = colors[CATEGORY_SLOTS[category]]
        else:
            mapping[category] = colors[spare[extras.index(category) % len(spare)]]
    return mapping


def _ordered_categories(present: Sequence[str]) -> List[str]:
    known = [c for c in CATEGORY_ORDER if c in present]
    return known + sorted(c for c in present if c not in CATEGORY_ORDER)


def plot_county_party_bars(
    agg: pd.DataFrame,
    figsize: Sequence[float] = (10, 12),
    palette: str = "colorblind",
    title: Optional[str] = "Motor Voter Share of Active Registrations by County",
) -> plt.Figure:
    """Horizontal bars of county motor voter share, stacked by party category."""
    logger.info("📊 Creating county motor voter bar chart...")

    data = agg.assign(
        county=agg["county"].astype("object").fillna(UNKNOWN_LABEL),
        party=agg["party"].astype("object").fillna(UNKNOWN_LABEL),
    )
    shares = data.pivot_table(
        index="county", columns="party", values="omv_prop", aggfunc="sum", fill_value=0.0
    )
    totals = data.groupby("county")["county_omv_prop"].first()

    # barh draws from the bottom up: ascending order puts the highest share on top
    order = totals.sort_values(ascending=True, kind="mergesort").index
    shares = shares.loc[order, _ordered_categories(list(shares.columns))]
    totals = totals.loc[order]

    sns.set_theme(style="whitegrid", context="notebook")
    colors = party_colors(list(shares.columns), palette)

    fig, ax = plt.subplots(figsize=tuple(figsize))
    left = pd.Series(0.0, index=shares.index)
    for category in shares.columns:
        ax.barh(
            shares.index,
            shares[category],
            left=left,
            color=colors[category],
            label=category,
            edgecolor="white",
            linewidth=0.5,
        )
        left = left + shares[category]

    for county, total in totals.items():
        ax.text(total, county, f" {total * 100:.1f}%", va="center", ha="left", fontsize=9)

    max_total = float(totals.max()) if len(totals) else 0.0
    ax.set_xlim(0, max(max_total * 1.15, 0.01))
    ax.xaxis.set_major_formatter(mticker.PercentFormatter(xmax=1))
    ax.set_xlabel("Motor voter share of active registrations")
    ax.set_ylabel("County")
    ax.legend(title="Party", loc="lower right", frameon=False)
    if title:
        ax.set_title(title)
    sns.despine(ax=ax, left=True)
    fig.tight_layout()

    logger.success(f"  ✅ Bar chart covers {len(shares):,} counties, {len(shares.columns)} party categories")
    return fig


def plot_county_size_scatter(
    summary: pd.DataFrame,
    figsize: Sequence[float] = (10, 8),
    palette: str = "colorblind",
    title: Optional[str] = "County Size vs. Motor Voter Share",
) -> plt.Figure:
    """Scatter of registered voters (log scale) against motor voter share per county."""
    logger.info("📈 Creating county size scatter plot...")

    sns.set_theme(style="whitegrid", context="notebook")
    color = sns.color_palette(palette, 1)[0]

    fig, ax = plt.subplots(figsize=tuple(figsize))
    ax.scatter(summary["county_total"], summary["mean_omv_prop"], color=color, s=40, zorder=3)

    for row in summary.itertuples(index=False):
        label = UNKNOWN_LABEL if pd.isna(row.county) else str(row.county)
        ax.annotate(
            label,
            (row.county_total, row.mean_omv_prop),
            xytext=(4, 3),
            textcoords="offset points",
            fontsize=8,
        )

    ax.set_xscale("log")
    ax.yaxis.set_major_formatter(mticker.PercentFormatter(xmax=1))
    ax.set_xlabel("Active registered voters (log scale)")
    ax.set_ylabel("Motor voter share")
    if title:
        ax.set_title(title)
    fig.tight_layout()

    logger.success(f"  ✅ Scatter plot covers {len(summary):,} counties")
    return fig


def save_figure(fig: plt.Figure, path: Union[str, Path], dpi: int = 300) -> Path:
    """Save a figure as an image and close it."""
    path = ensure_output_directory(path)
    fig.savefig(path, dpi=dpi, bbox_inches="tight", facecolor="white", edgecolor="none")
    plt.close(fig)  # Close to free memory
    logger.info(f"  💾 Chart saved: {path}")
    return path


def render_motor_voter_charts(
    agg: pd.DataFrame,
    summary: pd.DataFrame,
    output_dir: Union[str, Path],
    dpi: int = 300,
    bar_figsize: Sequence[float] = (10, 12),
    scatter_figsize: Sequence[float] = (10, 8),
    palette: str = "colorblind",
) -> Dict[str, Path]:
    """Render both charts and write them to ``output_dir``.

    Both figures are built before anything is written, so a plotting failure
    leaves no partial output.
    """
    output_dir = Path(output_dir)
    bars = plot_county_party_bars(agg, figsize=bar_figsize, palette=palette)
    try:
        scatter = plot_county_size_scatter(summary, figsize=scatter_figsize, palette=palette)
    except Exception:
        plt.close(bars)
        raise

    return {
        "county_party_bars": save_figure(bars, output_dir / BAR_CHART_FILENAME, dpi),
        "county_size_scatter": save_figure(scatter, output_dir / SCATTER_CHART_FILENAME, dpi),
    }
