import matplotlib.pyplot as plt
import pandas as pd
import pytest

from analysis.plot_motor_voter import (
    BAR_CHART_FILENAME,
    SCATTER_CHART_FILENAME,
    party_colors,
    plot_county_party_bars,
    plot_county_size_scatter,
    render_motor_voter_charts,
)
from processing.aggregate_motor_voter import summarize_counties


@pytest.fixture
def aggregates() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "county": ["Lane", "Lane", "Lane", "Wheeler", "Wheeler"],
            "party": ["Democrat", "Republican", "Other", "Republican", "NonAffiliated"],
            "n_voters": [50, 30, 20, 8, 2],
            "n_omv": [10, 6, 4, 2, 1],
            "county_total": [100, 100, 100, 10, 10],
            "omv_prop": [0.10, 0.06, 0.04, 0.20, 0.10],
            "county_omv_prop": [0.20, 0.20, 0.20, 0.30, 0.30],
        }
    )


@pytest.fixture(autouse=True)
def close_figures():
    yield
    plt.close("all")


def test_bars_stack_every_category(aggregates):
    fig = plot_county_party_bars(aggregates, figsize=(6, 4))
    ax = fig.axes[0]

    # One bar segment per county and category, zero-width segments included
    assert len(ax.patches) == 2 * 4
    assert [t.get_text() for t in ax.get_legend().get_texts()] == [
        "Democrat",
        "Republican",
        "NonAffiliated",
        "Other",
    ]


def test_bars_labelled_with_county_share_highest_on_top(aggregates):
    fig = plot_county_party_bars(aggregates, figsize=(6, 4))
    ax = fig.axes[0]

    # Drawn bottom-up, so the last label belongs to the top bar
    assert [t.get_text().strip() for t in ax.texts] == ["20.0%", "30.0%"]


def test_bars_with_unknown_county():
    agg = pd.DataFrame(
        {
            "county": [None],
            "party": ["Democrat"],
            "n_voters": [3],
            "n_omv": [1],
            "county_total": [3],
            "omv_prop": [1 / 3],
            "county_omv_prop": [1 / 3],
        }
    )
    fig = plot_county_party_bars(agg, figsize=(6, 4))
    assert len(fig.axes[0].patches) == 1


def test_scatter_uses_log_scale_and_labels_counties(aggregates):
    fig = plot_county_size_scatter(summarize_counties(aggregates), figsize=(6, 4))
    ax = fig.axes[0]

    assert ax.get_xscale() == "log"
    assert len(ax.collections[0].get_offsets()) == 2
    assert sorted(t.get_text() for t in ax.texts) == ["Lane", "Wheeler"]


def test_party_colors_are_stable():
    first = party_colors(["Democrat", "Republican", "ZZZ"])
    second = party_colors(["ZZZ", "Republican", "Democrat"])

    assert first["Democrat"] == second["Democrat"]
    assert first["Republican"] == second["Republican"]
    assert len(set(first.values())) == 3


def test_render_writes_both_charts(tmp_path, aggregates):
    charts = render_motor_voter_charts(
        aggregates,
        summarize_counties(aggregates),
        tmp_path / "figures",
        dpi=40,
        bar_figsize=(6, 4),
        scatter_figsize=(6, 4),
    )

    assert charts["county_party_bars"] == tmp_path / "figures" / BAR_CHART_FILENAME
    assert charts["county_size_scatter"] == tmp_path / "figures" / SCATTER_CHART_FILENAME
    for path in charts.values():
        assert path.exists()
        assert path.stat().st_size > 0
