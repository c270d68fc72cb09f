"""Observed hospitalization loader and default forecast-date derivation."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Optional

import pandas as pd

from hospcast.config import DashboardConfig
from hospcast.errors import ContractViolation
from hospcast.ingest.formats import parse_truth
from hospcast.ingest.transport import FetchFailed, Transport, fetch_required_text
from hospcast.utils.calendar import iso_day, parse_day, shift_days

logger = logging.getLogger(__name__)


class DataUnavailable(ContractViolation):
    """Observed data cannot be produced; the dashboard shows this instead of a chart."""


@dataclass(frozen=True)
class GroundTruth:
    """Observed records in the selected window plus the derived default as-of date."""

    records: pd.DataFrame
    latest_forecast_date: str
    start_date: str
    last_observed_date: str


def latest_forecast_date(
    truth: pd.DataFrame,
    *,
    cutoff_date: object,
    lead_days: int = 7,
) -> tuple[str, str]:
    """Return ``(last_observed_date, last_observed_date + lead_days)``.

    Only rows on or after ``cutoff_date`` are considered; rows with a missing
    value still count as an observation date.
    """

    cutoff = parse_day(cutoff_date, key="cutoff_date")
    recent = truth.loc[truth["date"] >= cutoff, "date"]
    if recent.empty:
        raise DataUnavailable(
            "no_truth_after_cutoff",
            asof=cutoff.date(),
            key="ground_truth",
            detail=f"no dates found on or after {iso_day(cutoff)}",
        )
    last = pd.Timestamp(recent.max())
    return iso_day(last), iso_day(shift_days(last, days=lead_days))


class GroundTruthLoader:
    """Fetch, parse, and window the observed-data file."""

    def __init__(
        self,
        transport: Transport,
        *,
        config: Optional[DashboardConfig] = None,
    ) -> None:
        self.transport = transport
        self.config = config or DashboardConfig()

    async def load(self, include_retrospective: bool = False) -> GroundTruth:
        path = self.config.truth_path
        logger.info("loading ground truth from %s", path)
        try:
            text = await fetch_required_text(self.transport, path)
        except FetchFailed as exc:
            logger.error("error loading ground truth: %s", exc)
            raise DataUnavailable(
                "truth_fetch_failed", key=path, detail=exc.context.detail
            ) from exc

        parsed = parse_truth(text)
        last_observed, forecast_date = latest_forecast_date(
            parsed,
            cutoff_date=self.config.cutoff_date,
            lead_days=self.config.forecast_lead_days,
        )
        logger.info(
            "last truth date %s; latest forecast date %s", last_observed, forecast_date
        )

        start_date = self.config.truth_start(include_retrospective)
        window = parsed[parsed["date"] >= parse_day(start_date)].reset_index(drop=True)
        logger.info(
            "filtered ground truth to %d records starting from %s",
            len(window),
            start_date,
        )
        return GroundTruth(
            records=window,
            latest_forecast_date=forecast_date,
            start_date=start_date,
            last_observed_date=last_observed,
        )
