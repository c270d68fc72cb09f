"""Fetch, normalize, and merge every configured model's forecast files."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import logging
from typing import Any, Optional, Sequence

import pandas as pd

from hospcast.config import (
    CONSOLIDATED_REPLICATES,
    INDIVIDUAL_HORIZONS,
    INDIVIDUAL_REPLICATES,
    DashboardConfig,
    FileLayout,
    ModelDescriptor,
    default_model_catalog,
)
from hospcast.ingest.formats import (
    FORECAST_COLUMNS,
    empty_forecast_frame,
    parse_forecasts,
)
from hospcast.ingest.transport import Transport, fetch_text
from hospcast.utils.calendar import file_date_for, iso_day

logger = logging.getLogger(__name__)

MODEL_FORECAST_COLUMNS = [*FORECAST_COLUMNS, "model"]
_GROUP_KEYS = ["location_name", "date", "horizon"]


@dataclass(frozen=True)
class ModelLoadOutcome:
    """How one model fared during a forecast load."""

    model: str
    status: str
    records: int
    files_requested: int
    files_loaded: int
    file_date: str

    def as_dict(self) -> dict[str, Any]:
        return {
            "model": self.model,
            "status": self.status,
            "records": self.records,
            "files_requested": self.files_requested,
            "files_loaded": self.files_loaded,
            "file_date": self.file_date,
        }


@dataclass(frozen=True)
class ForecastLoadReport:
    """Merged forecast frame plus per-model outcomes for one as-of date."""

    asof: str
    records: pd.DataFrame
    outcomes: tuple[ModelLoadOutcome, ...]

    def loaded_models(self) -> list[str]:
        return [item.model for item in self.outcomes if item.status == "loaded"]

    def as_dict(self) -> dict[str, Any]:
        return {
            "asof": self.asof,
            "record_count": int(len(self.records)),
            "models": [item.as_dict() for item in self.outcomes],
        }


def forecast_file_paths(
    descriptor: ModelDescriptor,
    *,
    file_date: str,
    forecast_root: str,
) -> list[str]:
    """Return every file path a model's submission is spread across."""

    root = forecast_root.rstrip("/")
    if descriptor.layout is FileLayout.SINGLE:
        return [f"{root}/{descriptor.path}_{file_date}.csv"]
    base = f"{root}/{descriptor.path}/{descriptor.prefix}"
    if descriptor.layout is FileLayout.INDIVIDUAL:
        return [
            f"{base}_h{horizon}_{replicate}_{file_date}.csv"
            for horizon in INDIVIDUAL_HORIZONS
            for replicate in INDIVIDUAL_REPLICATES
        ]
    if descriptor.layout is FileLayout.CONSOLIDATED:
        return [f"{base}_{replicate}_{file_date}.csv" for replicate in CONSOLIDATED_REPLICATES]
    raise ValueError(f"unsupported file layout: {descriptor.layout!r}")


def average_replicates(frames: Sequence[pd.DataFrame]) -> pd.DataFrame:
    """Average replicate values per ``(location_name, date, horizon)``.

    The mean is taken over whichever replicates produced a value for the key,
    so missing files shrink the denominator instead of failing the group.
    """

    populated = [frame for frame in frames if not frame.empty]
    if not populated:
        return empty_forecast_frame()
    stacked = pd.concat(populated, ignore_index=True)
    averaged = (
        stacked.groupby(_GROUP_KEYS, sort=True)["value"]
        .mean()
        .reset_index()
    )
    averaged["horizon"] = averaged["horizon"].astype("int64")
    return averaged[FORECAST_COLUMNS]


class ForecastAggregator:
    """Load all models for an as-of date into one flat forecast frame."""

    def __init__(
        self,
        transport: Transport,
        *,
        catalog: Optional[Sequence[ModelDescriptor]] = None,
        config: Optional[DashboardConfig] = None,
    ) -> None:
        self.transport = transport
        self.catalog = tuple(catalog) if catalog is not None else default_model_catalog()
        self.config = config or DashboardConfig()

    def file_date(self, descriptor: ModelDescriptor, asof: object) -> str:
        return file_date_for(
            asof,
            use_requested_date=descriptor.use_requested_date,
            offset_days=self.config.arrears_offset_days,
        )

    async def _load_model(
        self, descriptor: ModelDescriptor, asof: object
    ) -> tuple[pd.DataFrame, ModelLoadOutcome]:
        file_date = self.file_date(descriptor, asof)
        paths = forecast_file_paths(
            descriptor,
            file_date=file_date,
            forecast_root=self.config.forecast_root,
        )
        logger.info(
            "loading %s for %s using file date %s (%d files)",
            descriptor.name,
            iso_day(asof),
            file_date,
            len(paths),
        )
        texts = await asyncio.gather(*(fetch_text(self.transport, path) for path in paths))

        parsed: list[pd.DataFrame] = []
        for path, text in zip(paths, texts):
            if text is None:
                continue
            frame = parse_forecasts(text, descriptor.format)
            logger.debug("loaded %d forecasts from %s", len(frame), path)
            parsed.append(frame)

        if descriptor.layout is FileLayout.SINGLE:
            merged = (
                pd.concat(parsed, ignore_index=True) if parsed else empty_forecast_frame()
            )
        else:
            merged = average_replicates(parsed)

        merged = merged.assign(model=descriptor.name)[MODEL_FORECAST_COLUMNS]
        outcome = ModelLoadOutcome(
            model=descriptor.name,
            status="loaded" if len(merged) else "empty",
            records=int(len(merged)),
            files_requested=len(paths),
            files_loaded=len(parsed),
            file_date=file_date,
        )
        return merged, outcome

    async def load_forecasts_report(self, asof: object) -> ForecastLoadReport:
        """Load every model concurrently; failed models are logged and skipped."""

        asof_iso = iso_day(asof)
        results = await asyncio.gather(
            *(self._load_model(descriptor, asof_iso) for descriptor in self.catalog),
            return_exceptions=True,
        )

        frames: list[pd.DataFrame] = []
        outcomes: list[ModelLoadOutcome] = []
        for descriptor, result in zip(self.catalog, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                logger.warning("error loading %s: %s", descriptor.name, result)
                outcomes.append(
                    ModelLoadOutcome(
                        model=descriptor.name,
                        status="failed",
                        records=0,
                        files_requested=0,
                        files_loaded=0,
                        file_date=self.file_date(descriptor, asof_iso),
                    )
                )
                continue
            frame, outcome = result
            outcomes.append(outcome)
            if outcome.status == "loaded":
                logger.info("loaded %s (%d records)", descriptor.name, outcome.records)
                frames.append(frame)
            else:
                logger.warning("no forecasts for %s on %s", descriptor.name, asof_iso)

        if frames:
            records = pd.concat(frames, ignore_index=True)
        else:
            records = empty_forecast_frame().assign(model=pd.Series(dtype="object"))
        logger.info("total forecasts loaded: %d", len(records))
        return ForecastLoadReport(asof=asof_iso, records=records, outcomes=tuple(outcomes))

    async def load_forecasts(self, asof: object) -> pd.DataFrame:
        """Return the merged ``location_name, date, horizon, value, model`` frame."""

        report = await self.load_forecasts_report(asof)
        return report.records
