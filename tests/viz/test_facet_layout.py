from __future__ import annotations

import pandas as pd
import pytest

from hospcast.config import ChartSettings
from hospcast.viz.layout import (
    build_grid_layout,
    columns_for_width,
    facet_value_domain,
    order_locations,
    shared_time_domain,
    time_tick_policy,
)
from hospcast.viz.scales import ColorScale, LinearScale, TimeScale

SETTINGS = ChartSettings()


def _dated(dates: list[str]) -> pd.DataFrame:
    return pd.DataFrame({"date": pd.to_datetime(dates)})


def test_locations_put_aggregate_first_and_territory_last() -> None:
    ordered = order_locations(["Ohio", "US", "Texas", "Puerto Rico", "Ohio"])

    assert ordered == ["US", "Ohio", "Texas", "Puerto Rico"]


def test_column_count_never_drops_below_one() -> None:
    assert columns_for_width(1200, SETTINGS) == 2
    assert columns_for_width(1640, SETTINGS) == 3
    assert columns_for_width(200, SETTINGS) == 1
    assert columns_for_width(0, SETTINGS) == 1


def test_shared_time_domain_pads_both_ends() -> None:
    truth = _dated(["2024-07-06", "2024-12-14"])
    forecasts = _dated(["2025-01-11"])

    assert shared_time_domain(truth, forecasts, padding_days=14) == (
        pd.Timestamp("2024-06-22"),
        pd.Timestamp("2025-01-25"),
    )


def test_shared_time_domain_without_dates_is_none() -> None:
    assert shared_time_domain(_dated([]), _dated([])) is None


def test_value_domain_ignores_missing_values() -> None:
    assert facet_value_domain([10.0, float("nan"), 40.0]) == (0.0, pytest.approx(44.0))
    assert facet_value_domain([float("nan")]) == (0.0, 1.0)
    assert facet_value_domain([0.0, 0.0]) == (0.0, 1.0)


def test_long_spans_tick_every_two_months() -> None:
    long_span = time_tick_policy((pd.Timestamp("2024-06-22"), pd.Timestamp("2025-01-25")))
    short_span = time_tick_policy((pd.Timestamp("2024-11-01"), pd.Timestamp("2025-01-25")))

    assert (long_span.dtick, long_span.tickangle) == ("M2", -45)
    assert short_span.tickangle == 0
    assert short_span.dtick == 28 * 24 * 60 * 60 * 1000
    assert short_span.tickformat == "%b %d"


def test_grid_wraps_rows_and_shares_time_scale() -> None:
    domain = (pd.Timestamp("2024-06-22"), pd.Timestamp("2025-01-25"))
    locations = ["US", "Ohio", "Texas"]
    grid = build_grid_layout(
        locations,
        {"US": (0.0, 1100.0), "Ohio": (0.0, 44.0)},
        time_domain=domain,
        total_width=1200,
        settings=SETTINGS,
    )

    assert (grid.columns, grid.rows) == (2, 2)
    assert grid.canvas_height == 2 * (300 + 40) + 40 + 40
    texas = grid.facet("Texas")
    assert texas is not None
    assert (texas.row, texas.col, texas.left, texas.top) == (1, 0, 0.0, 340.0)
    assert {facet.x_scale for facet in grid.facets} == {grid.facets[0].x_scale}
    assert texas.y_scale.domain == (0.0, 1.0)
    assert grid.facet("Ohio").y_scale.domain == (0.0, 44.0)  # type: ignore[union-attr]
    assert grid.facet("Guam") is None


def test_scales_map_and_invert() -> None:
    time_scale = TimeScale(
        domain=(pd.Timestamp("2024-12-01"), pd.Timestamp("2024-12-11")),
        range=(0.0, 100.0),
    )
    value_scale = LinearScale(domain=(0.0, 50.0), range=(260.0, 0.0))

    assert time_scale(pd.Timestamp("2024-12-06")) == pytest.approx(50.0)
    assert time_scale.invert(50.0) == pd.Timestamp("2024-12-06")
    assert time_scale.contains_pixel(100.0)
    assert not time_scale.contains_pixel(-1.0)
    assert value_scale(25.0) == pytest.approx(130.0)
    assert value_scale.invert(0.0) == pytest.approx(50.0)


def test_color_scale_assigns_in_first_seen_order_and_remembers() -> None:
    scale = ColorScale(["#111111", "#222222"])

    assert scale("ARIMA") == "#111111"
    assert scale("ARGO") == "#222222"
    assert scale("LGB") == "#111111"
    assert scale("ARIMA") == "#111111"
    assert list(scale.assignments) == ["ARIMA", "ARGO", "LGB"]
