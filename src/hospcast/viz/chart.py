"""Small-multiple forecast chart: one Plotly subplot per location."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from pathlib import Path
from typing import Any, Optional, Sequence

import pandas as pd
import plotly.graph_objects as go  # type: ignore[import-untyped]

from hospcast.config import ChartSettings
from hospcast.utils.debounce import Debouncer
from hospcast.viz.hover import (
    HoverSummary,
    build_hover_summary,
    summarize_hover_targets,
)
from hospcast.viz.layout import (
    FacetLayout,
    GridLayout,
    build_grid_layout,
    columns_for_width,
    facet_value_domain,
    order_locations,
    shared_time_domain,
    time_tick_policy,
)
from hospcast.viz.scales import ColorScale

logger = logging.getLogger(__name__)

TRUTH_LABEL = "Observed"
_HOVER_LINE_COLOR = "#999999"
_GRID_COLOR = "#e5e7eb"
HOVER_TRACE_NAME = "hover"


@dataclass(frozen=True)
class FacetData:
    """Frozen per-location inputs kept for hover queries."""

    truth_points: pd.DataFrame
    forecasts: pd.DataFrame


@dataclass(frozen=True)
class HoverState:
    location: str
    date: pd.Timestamp
    summary: Optional[HoverSummary]


def _axis_refs(index: int) -> tuple[str, str, str, str]:
    suffix = "" if index == 0 else str(index + 1)
    return f"x{suffix}", f"y{suffix}", f"xaxis{suffix}", f"yaxis{suffix}"


def _snapshot_truth(truth: pd.DataFrame) -> pd.DataFrame:
    frame = truth[["location_name", "date", "value"]].copy()
    frame["date"] = pd.to_datetime(frame["date"]).dt.normalize()
    frame["value"] = pd.to_numeric(frame["value"], errors="coerce").astype("float64")
    return frame.reset_index(drop=True)


def _snapshot_forecasts(forecasts: pd.DataFrame) -> pd.DataFrame:
    frame = forecasts[["location_name", "date", "horizon", "value", "model"]].copy()
    frame["date"] = pd.to_datetime(frame["date"]).dt.normalize()
    frame["value"] = pd.to_numeric(frame["value"], errors="coerce").astype("float64")
    frame = frame[frame["value"].notna()]
    return frame.reset_index(drop=True)


class FacetChart:
    """Render truth and model forecasts as location facets sharing one time axis.

    ``update`` rebuilds the whole figure from its two input frames. A failing
    render is logged and the previously rendered figure stays in place.
    Exported figures carry the same hover summaries as ``hover``, precomputed
    for every day of the time axis.
    """

    def __init__(
        self,
        *,
        width: float = 1200,
        settings: Optional[ChartSettings] = None,
        palette: Optional[Sequence[str]] = None,
    ) -> None:
        self.settings = settings or ChartSettings()
        self.width = float(width)
        self.columns = columns_for_width(self.width, self.settings)
        self.color_scale = ColorScale(palette, palette_name=self.settings.palette)
        self.figure: go.Figure = self._message_figure("No data loaded")
        self.layout: Optional[GridLayout] = None
        self.hover_state: Optional[HoverState] = None
        self.last_truth: Optional[pd.DataFrame] = None
        self.last_forecasts: Optional[pd.DataFrame] = None
        self._facet_data: dict[str, FacetData] = {}
        self._resize = Debouncer(
            self._on_resize, delay_seconds=self.settings.resize_debounce_seconds
        )

    # -- layout -----------------------------------------------------------

    def update_layout(self, width: Optional[float] = None) -> None:
        """Recompute the column count and re-render the last inputs."""

        if width is not None:
            self.width = float(width)
        self.columns = columns_for_width(self.width, self.settings)
        logger.debug("layout width=%s columns=%d", self.width, self.columns)
        if self.last_truth is not None and self.last_forecasts is not None:
            self.update(self.last_truth, self.last_forecasts)

    def notify_resize(self, width: float) -> None:
        """Schedule a debounced relayout; requires a running event loop."""

        self._resize.trigger(width)

    def _on_resize(self, width: float) -> None:
        self.update_layout(width)

    # -- rendering --------------------------------------------------------

    def update(self, truth: pd.DataFrame, forecasts: pd.DataFrame) -> bool:
        """Re-render from scratch; returns ``False`` when the render failed."""

        logger.debug(
            "chart update: %d truth records, %d forecast records",
            len(truth),
            len(forecasts),
        )
        try:
            truth_snapshot = _snapshot_truth(truth)
            forecast_snapshot = _snapshot_forecasts(forecasts)
            figure, layout, facet_data = self._render(truth_snapshot, forecast_snapshot)
        except Exception:
            logger.exception("error updating chart; keeping previous render")
            return False

        self.figure = figure
        self.layout = layout
        self._facet_data = facet_data
        self.hover_state = None
        self.last_truth = truth
        self.last_forecasts = forecasts
        return True

    def show_error(self, message: str) -> None:
        """Replace the chart with a visible error message."""

        self.figure = self._message_figure(
            f"Error loading data: {message}", color="#cc0000"
        )
        self.layout = None
        self._facet_data = {}
        self.hover_state = None

    def _message_figure(self, text: str, *, color: str = "#333333") -> go.Figure:
        fig = go.Figure()
        fig.add_annotation(
            text=text,
            xref="paper",
            yref="paper",
            x=0.5,
            y=0.5,
            showarrow=False,
            font={"size": 16, "color": color},
        )
        fig.update_layout(
            template="plotly_white",
            width=self.width,
            height=self.settings.facet_height,
            xaxis={"visible": False},
            yaxis={"visible": False},
        )
        return fig

    def _render(
        self, truth: pd.DataFrame, forecasts: pd.DataFrame
    ) -> tuple[go.Figure, Optional[GridLayout], dict[str, FacetData]]:
        settings = self.settings
        time_domain = shared_time_domain(
            truth, forecasts, padding_days=settings.x_padding_days
        )
        if time_domain is None:
            return self._message_figure("No data available"), None, {}

        locations = order_locations(
            [*truth["location_name"].tolist(), *forecasts["location_name"].tolist()],
            aggregate=settings.aggregate_location,
            territory=settings.territory_location,
        )
        facet_data: dict[str, FacetData] = {}
        value_domains: dict[str, tuple[float, float]] = {}
        for location in locations:
            location_truth = truth[truth["location_name"] == location]
            data = FacetData(
                truth_points=location_truth[location_truth["value"].notna()].reset_index(
                    drop=True
                ),
                forecasts=forecasts[forecasts["location_name"] == location].reset_index(
                    drop=True
                ),
            )
            facet_data[location] = data
            value_domains[location] = facet_value_domain(
                [*data.truth_points["value"], *data.forecasts["value"]],
                headroom=settings.y_headroom,
            )
            logger.debug(
                "%s: %d truth points, %d forecast points",
                location,
                len(data.truth_points),
                len(data.forecasts),
            )

        layout = build_grid_layout(
            locations,
            value_domains,
            time_domain=time_domain,
            total_width=self.width,
            settings=settings,
        )

        fig = go.Figure()
        paper_width = layout.canvas_width - settings.margin_left
        paper_height = layout.canvas_height - settings.margin_top - settings.margin_bottom
        ticks = time_tick_policy(time_domain)
        axes: dict[str, Any] = {}
        for facet in layout.facets:
            self._draw_facet(
                fig,
                facet,
                truth[truth["location_name"] == facet.location],
                facet_data[facet.location].forecasts,
            )
            x_ref, y_ref, x_axis, y_axis = _axis_refs(facet.index)
            x0 = facet.left / paper_width
            x1 = (facet.left + facet.plot_width) / paper_width
            y_top = 1.0 - facet.top / paper_height
            y_bottom = 1.0 - (facet.top + facet.plot_height) / paper_height
            axes[x_axis] = {
                "domain": [x0, x1],
                "range": [time_domain[0], time_domain[1]],
                "type": "date",
                "anchor": y_ref,
                "dtick": ticks.dtick,
                "tickangle": ticks.tickangle,
                "tickformat": ticks.tickformat,
                "showgrid": True,
                "gridcolor": _GRID_COLOR,
                "showspikes": True,
                "spikemode": "across",
                "spikesnap": "data",
                "spikecolor": _HOVER_LINE_COLOR,
                "spikethickness": 1,
                "spikedash": "solid",
            }
            axes[y_axis] = {
                "domain": [max(0.0, y_bottom), y_top],
                "range": list(facet.y_scale.domain),
                "anchor": x_ref,
                "nticks": 5,
                "tickformat": ",d",
                "showgrid": True,
                "gridcolor": _GRID_COLOR,
            }
            fig.add_annotation(
                text=f"<b>{facet.location}</b>",
                xref="paper",
                yref="paper",
                x=(x0 + x1) / 2,
                y=y_top,
                yanchor="bottom",
                showarrow=False,
                font={"size": 14},
            )

        self._add_legend(fig, forecasts)
        legend_x = layout.columns * settings.facet_width / paper_width
        fig.update_layout(
            template="plotly_white",
            width=layout.canvas_width,
            height=layout.canvas_height,
            margin={
                "l": settings.margin_left,
                "r": 0,
                "t": settings.margin_top,
                "b": settings.margin_bottom,
            },
            hovermode="x",
            hoverdistance=-1,
            legend={
                "orientation": "v",
                "x": min(1.0, legend_x),
                "xanchor": "left",
                "y": 1.0,
                "yanchor": "top",
                "traceorder": "normal",
                "tracegroupgap": 0,
                "itemsizing": "constant",
            },
            **axes,
        )
        return fig, layout, facet_data

    def _draw_facet(
        self,
        fig: go.Figure,
        facet: FacetLayout,
        truth: pd.DataFrame,
        forecasts: pd.DataFrame,
    ) -> None:
        x_ref, y_ref, _, _ = _axis_refs(facet.index)
        if truth["value"].notna().any():
            # NaN values stay in the series so the line breaks at missing weeks.
            ordered = truth.sort_values("date", kind="mergesort")
            fig.add_trace(
                go.Scatter(
                    x=ordered["date"],
                    y=ordered["value"],
                    mode="lines",
                    name=TRUTH_LABEL,
                    legendgroup=TRUTH_LABEL,
                    showlegend=False,
                    connectgaps=False,
                    line={"color": self.settings.truth_color, "width": 1.5},
                    xaxis=x_ref,
                    yaxis=y_ref,
                    hoverinfo="skip",
                )
            )

        for model in pd.unique(forecasts["model"]):
            # Connected in horizon order, not date order.
            points = forecasts[forecasts["model"] == model].sort_values(
                "horizon", kind="mergesort"
            )
            color = self.color_scale(str(model))
            fig.add_trace(
                go.Scatter(
                    x=points["date"],
                    y=points["value"],
                    mode="lines+markers",
                    name=str(model),
                    legendgroup=str(model),
                    showlegend=False,
                    line={"color": color, "width": 1},
                    marker={"color": color, "size": 6},
                    xaxis=x_ref,
                    yaxis=y_ref,
                    hoverinfo="skip",
                )
            )

        self._add_hover_grid(fig, facet, truth[truth["value"].notna()], forecasts)

    def _add_hover_grid(
        self,
        fig: go.Figure,
        facet: FacetLayout,
        truth_points: pd.DataFrame,
        forecasts: pd.DataFrame,
    ) -> None:
        """Embed one precomputed hover summary per day as an invisible trace."""

        start, end = facet.x_scale.domain
        days = pd.date_range(start.normalize(), end.normalize(), freq="D")
        summaries = summarize_hover_targets(
            facet.location,
            truth_points,
            forecasts,
            days,
            truth_window_days=self.settings.hover_truth_window_days,
        )
        kept = [
            (day, summary)
            for day, summary in zip(days, summaries)
            if summary is not None
        ]
        if not kept:
            return
        x_ref, y_ref, _, _ = _axis_refs(facet.index)
        low, high = facet.y_scale.domain
        fig.add_trace(
            go.Scatter(
                x=[day for day, _ in kept],
                y=[(low + high) / 2] * len(kept),
                mode="markers",
                name=HOVER_TRACE_NAME,
                showlegend=False,
                marker={"opacity": 0, "size": 1},
                hovertext=[summary.to_html() for _, summary in kept],
                hoverinfo="text",
                hoverlabel={"align": "left", "bgcolor": "white"},
                xaxis=x_ref,
                yaxis=y_ref,
            )
        )

    def _add_legend(self, fig: go.Figure, forecasts: pd.DataFrame) -> None:
        entries = [(TRUTH_LABEL, self.settings.truth_color)]
        for model in sorted(pd.unique(forecasts["model"]).tolist()):
            entries.append((str(model), self.color_scale(str(model))))
        for name, color in entries:
            fig.add_trace(
                go.Scatter(
                    x=[None],
                    y=[None],
                    mode="lines",
                    name=name,
                    legendgroup=name,
                    showlegend=True,
                    line={"color": color, "width": 2},
                    hoverinfo="skip",
                )
            )

    def legend_entries(self) -> list[tuple[str, str]]:
        """``(name, color)`` pairs in legend order for the current figure."""

        return [
            (str(trace.name), str(trace.line.color))
            for trace in self.figure.data
            if trace.showlegend
        ]

    # -- hover ------------------------------------------------------------

    def hover(
        self,
        location: str,
        pointer_x: float,
        pointer_y: Optional[float] = None,
    ) -> Optional[HoverSummary]:
        """Resolve a pointer position inside a facet's plotting area.

        Coordinates are pixels relative to the facet's plotting origin. A
        pointer outside the plotting area hides the hover line and summary.
        """

        facet = self.layout.facet(location) if self.layout is not None else None
        if facet is None:
            self.leave()
            return None
        outside_x = not facet.x_scale.contains_pixel(pointer_x)
        outside_y = pointer_y is not None and not (0 <= pointer_y <= facet.plot_height)
        if outside_x or outside_y:
            self.leave()
            return None

        date = facet.x_scale.invert(pointer_x)
        data = self._facet_data[location]
        summary = build_hover_summary(
            location,
            data.truth_points,
            data.forecasts,
            date,
            truth_window_days=self.settings.hover_truth_window_days,
        )
        self.hover_state = HoverState(location=location, date=date, summary=summary)
        x_ref, y_ref, _, _ = _axis_refs(facet.index)
        self.figure.layout.shapes = (
            {
                "type": "line",
                "xref": x_ref,
                "yref": f"{y_ref} domain",
                "x0": date,
                "x1": date,
                "y0": 0,
                "y1": 1,
                "line": {"color": _HOVER_LINE_COLOR, "width": 1},
            },
        )
        return summary

    def leave(self) -> None:
        """Hide the hover line and summary."""

        self.hover_state = None
        self.figure.layout.shapes = ()

    # -- export -----------------------------------------------------------

    def to_html(self, *, div_id: str = "forecast-chart") -> str:
        return self.figure.to_html(include_plotlyjs="cdn", full_html=True, div_id=div_id)

    def write_html(self, path: str | Path) -> Path:
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        self.figure.write_html(
            target, include_plotlyjs="cdn", full_html=True, div_id=target.stem
        )
        return target

    def write_image(self, path: str | Path, *, scale: int = 2) -> Path:
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        self.figure.write_image(target, format=target.suffix.lstrip(".") or "png", scale=scale)
        return target
