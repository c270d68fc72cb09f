"""Dashboard session state and the pure functions that advance it."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Optional

import pandas as pd

from hospcast.config import DashboardConfig
from hospcast.ingest.aggregator import MODEL_FORECAST_COLUMNS
from hospcast.ingest.formats import empty_truth_frame


def _empty_forecasts() -> pd.DataFrame:
    return pd.DataFrame(columns=MODEL_FORECAST_COLUMNS)


@dataclass(frozen=True)
class AppState:
    """Everything the dashboard needs to render one view.

    ``generation`` increases on every forecast request; a response carrying an
    older generation is stale and is discarded by :func:`apply_forecasts`.
    """

    selected_date: Optional[str] = None
    include_retrospective: bool = False
    selected_models: frozenset[str] = frozenset()
    truth: pd.DataFrame = field(default_factory=empty_truth_frame)
    forecasts: pd.DataFrame = field(default_factory=_empty_forecasts)
    latest_forecast_date: Optional[str] = None
    error_message: Optional[str] = None
    generation: int = 0
    truth_generation: int = 0

    def available_models(self) -> list[str]:
        return sorted(pd.unique(self.forecasts["model"]).tolist())


def available_dates(config: DashboardConfig) -> list[str]:
    """Selectable as-of dates, newest first."""

    return sorted(set(config.known_dates), reverse=True)


def request_forecasts(state: AppState, selected_date: str) -> tuple[AppState, int]:
    """Select a date and open a new forecast request generation."""

    generation = state.generation + 1
    return replace(state, selected_date=selected_date, generation=generation), generation


def apply_forecasts(
    state: AppState,
    generation: int,
    forecasts: pd.DataFrame,
    *,
    select_all: bool = False,
) -> AppState:
    """Install a forecast response unless a newer request has been issued."""

    if generation != state.generation:
        return state
    selected = state.selected_models
    if select_all:
        selected = frozenset(pd.unique(forecasts["model"]).tolist())
    return replace(state, forecasts=forecasts, selected_models=selected, error_message=None)


def request_truth(state: AppState) -> tuple[AppState, int]:
    """Open a new ground-truth request generation."""

    generation = state.truth_generation + 1
    return replace(state, truth_generation=generation), generation


def apply_truth(
    state: AppState,
    generation: int,
    truth: pd.DataFrame,
    *,
    include_retrospective: bool,
    latest_forecast_date: Optional[str] = None,
) -> AppState:
    if generation != state.truth_generation:
        return state
    return replace(
        state,
        truth=truth,
        include_retrospective=include_retrospective,
        latest_forecast_date=latest_forecast_date or state.latest_forecast_date,
        error_message=None,
    )


def set_model_visible(state: AppState, model: str, visible: bool) -> AppState:
    models = set(state.selected_models)
    if visible:
        models.add(model)
    else:
        models.discard(model)
    return replace(state, selected_models=frozenset(models))


def fail(state: AppState, message: str) -> AppState:
    return replace(state, error_message=message)


def visible_forecasts(state: AppState) -> pd.DataFrame:
    """Forecast rows whose model is currently selected."""

    mask = state.forecasts["model"].isin(state.selected_models)
    return state.forecasts[mask].reset_index(drop=True)
