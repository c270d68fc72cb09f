"""Facet ordering, grid placement, and shared/per-facet axis domains."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

import numpy as np
import pandas as pd

from hospcast.config import ChartSettings
from hospcast.viz.scales import LinearScale, TimeScale

_EMPTY_VALUE_DOMAIN = (0.0, 1.0)


def order_locations(
    locations: Iterable[str],
    *,
    aggregate: str = "US",
    territory: str = "Puerto Rico",
) -> list[str]:
    """Sort distinct locations with ``aggregate`` first and ``territory`` last."""

    def _rank(name: str) -> tuple[int, str]:
        if name == aggregate:
            return (0, name)
        if name == territory:
            return (2, name)
        return (1, name)

    return sorted(set(locations), key=_rank)


def columns_for_width(total_width: float, settings: ChartSettings) -> int:
    """Number of facets that fit side by side, never fewer than one."""

    available = float(total_width) - settings.margin_left - settings.margin_right
    return max(1, int(available // settings.facet_width))


def shared_time_domain(
    truth: pd.DataFrame,
    forecasts: pd.DataFrame,
    *,
    padding_days: int = 14,
) -> Optional[tuple[pd.Timestamp, pd.Timestamp]]:
    """Padded ``[min, max]`` over every truth and forecast date, or ``None``."""

    dates = pd.concat([truth["date"], forecasts["date"]], ignore_index=True).dropna()
    if dates.empty:
        return None
    pad = pd.Timedelta(days=int(padding_days))
    return pd.Timestamp(dates.min()) - pad, pd.Timestamp(dates.max()) + pad


def facet_value_domain(
    values: Iterable[float],
    *,
    headroom: float = 1.1,
) -> tuple[float, float]:
    """``[0, max * headroom]`` over finite values; ``[0, 1]`` when nothing is positive."""

    array = np.asarray(list(values), dtype=float)
    array = array[np.isfinite(array)]
    if array.size == 0:
        return _EMPTY_VALUE_DOMAIN
    peak = float(array.max())
    if peak <= 0:
        return _EMPTY_VALUE_DOMAIN
    return 0.0, peak * float(headroom)


@dataclass(frozen=True)
class TickPolicy:
    dtick: object
    tickangle: int
    tickformat: str = "%b %d"


_FOUR_WEEKS_MS = 4 * 7 * 24 * 60 * 60 * 1000


def time_tick_policy(domain: tuple[pd.Timestamp, pd.Timestamp]) -> TickPolicy:
    """Every two months (slanted labels) past six months of span, else every four weeks."""

    months = (domain[1] - domain[0]) / pd.Timedelta(days=30)
    if months > 6:
        return TickPolicy(dtick="M2", tickangle=-45)
    return TickPolicy(dtick=_FOUR_WEEKS_MS, tickangle=0)


@dataclass(frozen=True)
class FacetLayout:
    """Placement and scales of one location's subplot, in canvas pixels."""

    location: str
    index: int
    row: int
    col: int
    left: float
    top: float
    x_scale: TimeScale
    y_scale: LinearScale

    @property
    def plot_width(self) -> float:
        return float(self.x_scale.range[1] - self.x_scale.range[0])

    @property
    def plot_height(self) -> float:
        return float(self.y_scale.range[0] - self.y_scale.range[1])


@dataclass(frozen=True)
class GridLayout:
    columns: int
    rows: int
    canvas_width: float
    canvas_height: float
    time_domain: tuple[pd.Timestamp, pd.Timestamp]
    facets: tuple[FacetLayout, ...]

    def facet(self, location: str) -> Optional[FacetLayout]:
        for facet in self.facets:
            if facet.location == location:
                return facet
        return None


def build_grid_layout(
    locations: list[str],
    value_domains: dict[str, tuple[float, float]],
    *,
    time_domain: tuple[pd.Timestamp, pd.Timestamp],
    total_width: float,
    settings: ChartSettings,
) -> GridLayout:
    """Tile facets left to right, wrapping rows, with one shared time scale."""

    columns = columns_for_width(total_width, settings)
    rows = (len(locations) + columns - 1) // columns
    plot_width = float(settings.facet_width - settings.margin_right)
    plot_height = float(settings.facet_height - settings.margin_bottom)
    x_scale = TimeScale(domain=time_domain, range=(0.0, plot_width))

    facets: list[FacetLayout] = []
    for idx, location in enumerate(locations):
        row, col = divmod(idx, columns)
        facets.append(
            FacetLayout(
                location=location,
                index=idx,
                row=row,
                col=col,
                left=float(col * settings.facet_width),
                top=float(row * (settings.facet_height + settings.facet_padding)),
                x_scale=x_scale,
                y_scale=LinearScale(
                    domain=value_domains.get(location, _EMPTY_VALUE_DOMAIN),
                    range=(plot_height, 0.0),
                ),
            )
        )

    canvas_height = (
        rows * (settings.facet_height + settings.facet_padding)
        + settings.margin_top
        + settings.margin_bottom
    )
    canvas_width = max(
        float(total_width),
        float(
            settings.margin_left
            + columns * settings.facet_width
            + settings.margin_right
        ),
    )
    return GridLayout(
        columns=columns,
        rows=rows,
        canvas_width=canvas_width,
        canvas_height=float(canvas_height),
        time_domain=time_domain,
        facets=tuple(facets),
    )
