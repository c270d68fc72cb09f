"""Async orchestration between loaders, session state, and the chart."""

from __future__ import annotations

import logging
from typing import Any, Optional, Sequence

from hospcast.app.state import (
    AppState,
    apply_forecasts,
    apply_truth,
    available_dates,
    fail,
    request_forecasts,
    request_truth,
    set_model_visible,
    visible_forecasts,
)
from hospcast.config import DashboardConfig, ModelDescriptor
from hospcast.ingest.aggregator import ForecastAggregator, ForecastLoadReport
from hospcast.ingest.ground_truth import DataUnavailable, GroundTruthLoader
from hospcast.ingest.transport import Transport
from hospcast.viz.chart import FacetChart

logger = logging.getLogger(__name__)


class DashboardController:
    """Drive one dashboard session: load data, track selections, re-render."""

    def __init__(
        self,
        transport: Transport,
        *,
        config: Optional[DashboardConfig] = None,
        catalog: Optional[Sequence[ModelDescriptor]] = None,
        chart: Optional[FacetChart] = None,
        width: float = 1200,
    ) -> None:
        self.config = config or DashboardConfig()
        self.truth_loader = GroundTruthLoader(transport, config=self.config)
        self.aggregator = ForecastAggregator(
            transport, catalog=catalog, config=self.config
        )
        self.chart = chart or FacetChart(width=width, settings=self.config.chart)
        self.state = AppState()
        self.last_report: Optional[ForecastLoadReport] = None

    def available_dates(self) -> list[str]:
        return available_dates(self.config)

    async def _load_truth(self, include_retrospective: bool) -> bool:
        self.state, generation = request_truth(self.state)
        try:
            ground_truth = await self.truth_loader.load(include_retrospective)
        except DataUnavailable as exc:
            if generation != self.state.truth_generation:
                logger.info("discarding stale ground truth failure: %s", exc)
                return False
            logger.error("error loading ground truth: %s", exc)
            self.state = fail(self.state, exc.user_message)
            self.chart.show_error(exc.user_message)
            return False
        if generation != self.state.truth_generation:
            logger.info("discarding stale ground truth response")
            return False
        self.state = apply_truth(
            self.state,
            generation,
            ground_truth.records,
            include_retrospective=include_retrospective,
            latest_forecast_date=ground_truth.latest_forecast_date,
        )
        return True

    async def _load_forecasts(self, selected_date: str, *, select_all: bool) -> bool:
        self.state, generation = request_forecasts(self.state, selected_date)
        logger.info("loading forecasts for date %s", selected_date)
        report = await self.aggregator.load_forecasts_report(selected_date)
        if generation != self.state.generation:
            logger.info("discarding stale forecasts for %s", selected_date)
            return False
        self.last_report = report
        self.state = apply_forecasts(
            self.state, generation, report.records, select_all=select_all
        )
        return True

    async def initialize(self) -> AppState:
        """Load recent truth, then forecasts for the derived latest date."""

        if not await self._load_truth(False):
            return self.state
        latest = self.state.latest_forecast_date
        if latest is None:
            self.state = fail(
                self.state, "Failed to determine latest forecast date from truth data"
            )
            self.chart.show_error(self.state.error_message or "")
            return self.state
        await self._load_forecasts(latest, select_all=True)
        self.render()
        return self.state

    async def change_date(self, selected_date: str) -> bool:
        if not await self._load_forecasts(selected_date, select_all=False):
            return False
        self.render()
        return True

    async def set_retrospective(self, include_retrospective: bool) -> bool:
        logger.info("retrospective changed: %s", include_retrospective)
        if not await self._load_truth(include_retrospective):
            return False
        self.render()
        return True

    def set_model_visible(self, model: str, visible: bool) -> bool:
        self.state = set_model_visible(self.state, model, visible)
        logger.debug("selected models: %s", sorted(self.state.selected_models))
        return self.render()

    def render(self) -> bool:
        if self.state.error_message is not None:
            return False
        return self.chart.update(self.state.truth, visible_forecasts(self.state))

    def summary(self) -> dict[str, Any]:
        state = self.state
        visible = visible_forecasts(state)
        return {
            "selected_date": state.selected_date,
            "latest_forecast_date": state.latest_forecast_date,
            "include_retrospective": state.include_retrospective,
            "truth_records": int(len(state.truth)),
            "forecast_records": int(len(state.forecasts)),
            "visible_forecast_records": int(len(visible)),
            "selected_models": sorted(state.selected_models),
            "available_models": state.available_models(),
            "error": state.error_message,
            "load_report": None if self.last_report is None else self.last_report.as_dict(),
        }
