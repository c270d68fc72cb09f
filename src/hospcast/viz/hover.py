"""Closest-point lookup and hover summaries for a single facet.

The same lookup serves the interactive ``FacetChart.hover`` call and the
precomputed per-day hover text embedded in exported figures.
"""

from __future__ import annotations

from dataclasses import dataclass
import math
from typing import Iterable, Optional

import numpy as np
import pandas as pd


def round_half_up(value: float) -> int:
    return int(math.floor(float(value) + 0.5))


def format_display_date(value: pd.Timestamp) -> str:
    ts = pd.Timestamp(value)
    return f"{ts:%b} {ts.day}, {ts.year}"


def _as_ns(values: Iterable[object]) -> np.ndarray:
    series = pd.to_datetime(pd.Series(list(values), dtype="object"))
    return series.to_numpy(dtype="datetime64[ns]").astype("int64")


def nearest_indices(dates_ns: np.ndarray, targets_ns: np.ndarray) -> np.ndarray:
    """For each target, the position of the nearest date.

    Exact ties resolve to the earliest position, never the latest;
    ``np.argmin`` returns the first minimum.
    """

    distance = np.abs(dates_ns[np.newaxis, :] - targets_ns[:, np.newaxis])
    return np.argmin(distance, axis=1)


def find_closest_point(points: pd.DataFrame, target: object) -> Optional[pd.Series]:
    """Row of ``points`` whose ``date`` is nearest ``target`` (earliest row on ties)."""

    if points.empty:
        return None
    index = nearest_indices(_as_ns(points["date"]), _as_ns([target]))[0]
    return points.iloc[int(index)]


@dataclass(frozen=True)
class HoverSummary:
    location: str
    date: Optional[pd.Timestamp]
    observed: Optional[float]
    forecasts: tuple[tuple[str, float], ...]

    def lines(self) -> list[str]:
        lines = [self.location]
        if self.date is not None:
            lines.append(f"Date: {format_display_date(self.date)}")
        if self.observed is not None:
            lines.append(f"Observed: {round_half_up(self.observed)}")
        for model, value in self.forecasts:
            lines.append(f"{model}: {round_half_up(value)}")
        return lines

    def to_html(self) -> str:
        lines = self.lines()
        return "<br>".join([f"<b>{lines[0]}</b>", *lines[1:]])


@dataclass(frozen=True)
class _Track:
    name: str
    dates_ns: np.ndarray
    values: np.ndarray
    nearest: np.ndarray


def _track(name: str, points: pd.DataFrame, targets_ns: np.ndarray) -> _Track:
    dates_ns = _as_ns(points["date"])
    return _Track(
        name=name,
        dates_ns=dates_ns,
        values=points["value"].to_numpy(dtype=float),
        nearest=nearest_indices(dates_ns, targets_ns),
    )


def summarize_hover_targets(
    location: str,
    truth_points: pd.DataFrame,
    forecasts: pd.DataFrame,
    targets: Iterable[object],
    *,
    truth_window_days: int = 3,
) -> list[Optional[HoverSummary]]:
    """Hover summary for every date in ``targets``, in order.

    ``truth_points`` must already exclude missing observations. Each model's
    nearest point is found independently; models keep first-seen order. The
    display date is the first model's nearest forecast date, and the observed
    value is shown only within ``truth_window_days`` of it. A facet with no
    forecasts shows the nearest observation on its own.
    """

    targets_ns = _as_ns(targets)
    truth = None if truth_points.empty else _track("", truth_points, targets_ns)
    models: list[_Track] = []
    if not forecasts.empty:
        for model in pd.unique(forecasts["model"]):
            subset = forecasts[forecasts["model"] == model]
            models.append(_track(str(model), subset, targets_ns))
    lead = models[0] if models else truth
    if lead is None:
        return [None] * len(targets_ns)

    window_ns = pd.Timedelta(days=int(truth_window_days)).value
    summaries: list[Optional[HoverSummary]] = []
    for pos in range(len(targets_ns)):
        lead_idx = lead.nearest[pos]
        display_ns = int(lead.dates_ns[lead_idx])
        observed: Optional[float] = None
        if lead is truth:
            observed = float(lead.values[lead_idx])
        elif truth is not None:
            truth_idx = truth.nearest[pos]
            if abs(int(truth.dates_ns[truth_idx]) - display_ns) <= window_ns:
                observed = float(truth.values[truth_idx])
        summaries.append(
            HoverSummary(
                location=location,
                date=pd.Timestamp(display_ns),
                observed=observed,
                forecasts=tuple(
                    (track.name, float(track.values[track.nearest[pos]]))
                    for track in models
                ),
            )
        )
    return summaries


def build_hover_summary(
    location: str,
    truth_points: pd.DataFrame,
    forecasts: pd.DataFrame,
    target: object,
    *,
    truth_window_days: int = 3,
) -> Optional[HoverSummary]:
    """Summarize the facet at a single ``target`` date."""

    return summarize_hover_targets(
        location,
        truth_points,
        forecasts,
        [target],
        truth_window_days=truth_window_days,
    )[0]
