from __future__ import annotations

import pandas as pd

from hospcast.viz.hover import (
    build_hover_summary,
    find_closest_point,
    format_display_date,
    round_half_up,
    summarize_hover_targets,
)

DAY = pd.Timestamp("2024-12-21")


def _points(offsets: list[int], values: list[float]) -> pd.DataFrame:
    return pd.DataFrame(
        {
            "date": [DAY + pd.Timedelta(days=offset) for offset in offsets],
            "value": values,
        }
    )


def _forecasts(rows: list[tuple[str, int, float]]) -> pd.DataFrame:
    return pd.DataFrame(
        {
            "model": [row[0] for row in rows],
            "date": [DAY + pd.Timedelta(days=row[1]) for row in rows],
            "value": [row[2] for row in rows],
        }
    )


EMPTY_FORECASTS = _forecasts([])
EMPTY_TRUTH = _points([], [])


def test_closest_point_picks_nearest_date() -> None:
    point = find_closest_point(_points([-5, -1, 3], [1.0, 2.0, 3.0]), DAY)

    assert point is not None
    assert point["value"] == 2.0


def test_closest_point_tie_goes_to_first_row() -> None:
    point = find_closest_point(_points([-2, 2], [1.0, 2.0]), DAY)

    assert point is not None
    assert point["value"] == 1.0


def test_closest_point_of_nothing_is_none() -> None:
    assert find_closest_point(EMPTY_TRUTH, DAY) is None


def test_observed_value_shown_within_truth_window() -> None:
    summary = build_hover_summary(
        "Ohio",
        _points([-7, 2], [30.0, 40.4]),
        _forecasts([("ARIMA", 0, 41.5), ("ARGO", 7, 55.0), ("ARGO", -1, 39.2)]),
        DAY,
    )

    assert summary is not None
    assert summary.date == DAY
    assert summary.observed == 40.4
    assert summary.forecasts == (("ARIMA", 41.5), ("ARGO", 39.2))
    assert summary.lines() == [
        "Ohio",
        "Date: Dec 21, 2024",
        "Observed: 40",
        "ARIMA: 42",
        "ARGO: 39",
    ]


def test_observed_value_hidden_outside_truth_window() -> None:
    summary = build_hover_summary(
        "Ohio",
        _points([-7], [30.0]),
        _forecasts([("ARIMA", 0, 41.0)]),
        DAY,
    )

    assert summary is not None
    assert summary.observed is None
    assert "Observed" not in summary.to_html()


def test_truth_alone_still_produces_a_summary() -> None:
    summary = build_hover_summary("US", _points([-7, 0], [900.0, 950.0]), EMPTY_FORECASTS, DAY)

    assert summary is not None
    assert summary.observed == 950.0
    assert summary.forecasts == ()
    assert summary.to_html() == "<b>US</b><br>Date: Dec 21, 2024<br>Observed: 950"


def test_nothing_to_show_returns_none() -> None:
    assert build_hover_summary("US", EMPTY_TRUTH, EMPTY_FORECASTS, DAY) is None


def test_display_helpers() -> None:
    assert round_half_up(2.5) == 3
    assert round_half_up(3.49) == 3
    assert format_display_date(pd.Timestamp("2024-12-08")) == "Dec 8, 2024"


def test_model_tie_keeps_earlier_forecast_date() -> None:
    summary = build_hover_summary(
        "US",
        EMPTY_TRUTH,
        _forecasts([("ARIMA", -3, 900.0), ("ARIMA", 3, 1100.0)]),
        DAY,
    )

    assert summary is not None
    assert summary.date == DAY - pd.Timedelta(days=3)
    assert summary.forecasts == (("ARIMA", 900.0),)


def test_summaries_for_many_dates_follow_each_target() -> None:
    targets = [DAY - pd.Timedelta(days=10), DAY, DAY + pd.Timedelta(days=6)]
    summaries = summarize_hover_targets(
        "US",
        _points([-9, 1], [800.0, 1000.0]),
        _forecasts([("ARIMA", 0, 1010.0), ("ARIMA", 7, 1200.0)]),
        targets,
    )

    assert [summary.date for summary in summaries] == [
        DAY,
        DAY,
        DAY + pd.Timedelta(days=7),
    ]
    assert [summary.observed for summary in summaries] == [None, 1000.0, None]
    assert summaries == [
        build_hover_summary(
            "US",
            _points([-9, 1], [800.0, 1000.0]),
            _forecasts([("ARIMA", 0, 1010.0), ("ARIMA", 7, 1200.0)]),
            target,
        )
        for target in targets
    ]


def test_summaries_for_truth_only_facet_use_observation_dates() -> None:
    summaries = summarize_hover_targets(
        "Ohio",
        _points([-7, 0], [30.0, 40.0]),
        EMPTY_FORECASTS,
        [DAY - pd.Timedelta(days=6), DAY],
    )

    assert [(s.date, s.observed, s.forecasts) for s in summaries] == [
        (DAY - pd.Timedelta(days=7), 30.0, ()),
        (DAY, 40.0, ()),
    ]
