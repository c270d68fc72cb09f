"""Parsers that normalize team-specific CSV payloads into canonical frames.

Three forecast layouts are in circulation. ARIMA and LGB files are
header-indexed (same column vocabulary, produced by different pipelines); the
ARGO team's files are positional and store horizons zero-based. Every layout is
described by a :class:`ColumnMapping` and parsed by the same routine, so adding
a team means adding a mapping rather than a parser.

Parsers never raise on individual rows. A row that cannot be normalized is
dropped; an empty payload or a header without the required columns yields an
empty frame.
"""

from __future__ import annotations

import csv
from dataclasses import dataclass
from enum import Enum
import logging
from typing import Union

import numpy as np
import pandas as pd

from hospcast.errors import ContractViolation

logger = logging.getLogger(__name__)

FORECAST_COLUMNS = ["location_name", "date", "horizon", "value"]
TRUTH_COLUMNS = ["location_name", "date", "value"]
MIN_HORIZON = 1
MAX_HORIZON = 4
MISSING_TOKEN = "NA"
_DATE_FORMAT = "%Y-%m-%d"

Column = Union[str, int]


class ForecastFormat(str, Enum):
    """Row layouts used by the contributing modeling teams."""

    ARIMA = "arima"
    LGB = "lgb"
    SHIHAO = "shihao"


@dataclass(frozen=True)
class ColumnMapping:
    """Where each canonical field lives in a source row.

    String columns are looked up by header name; integer columns are fixed
    positions and the header row is ignored.
    """

    location: Column
    horizon: Column
    date: Column
    value: Column
    horizon_offset: int = 0
    location_aliases: tuple[tuple[str, str], ...] = ()
    strip_quotes: bool = False

    @property
    def positional(self) -> bool:
        return isinstance(self.location, int)

    def columns(self) -> tuple[Column, Column, Column, Column]:
        return (self.location, self.date, self.horizon, self.value)


_NATIONAL_ALIAS = (("National", "US"),)

FORMAT_MAPPINGS: dict[ForecastFormat, ColumnMapping] = {
    ForecastFormat.ARIMA: ColumnMapping(
        location="location_name",
        horizon="horizon",
        date="date",
        value="value",
        location_aliases=_NATIONAL_ALIAS,
    ),
    ForecastFormat.LGB: ColumnMapping(
        location="location_name",
        horizon="horizon",
        date="date",
        value="value",
        location_aliases=_NATIONAL_ALIAS,
    ),
    # reference_date, location, horizon (0-based), target, target_end_date,
    # output_type, output_type_id, value
    ForecastFormat.SHIHAO: ColumnMapping(
        location=1,
        horizon=2,
        date=4,
        value=7,
        horizon_offset=1,
        strip_quotes=True,
    ),
}


def empty_forecast_frame() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "location_name": pd.Series(dtype="object"),
            "date": pd.Series(dtype="datetime64[ns]"),
            "horizon": pd.Series(dtype="int64"),
            "value": pd.Series(dtype="float64"),
        }
    )


def empty_truth_frame() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "location_name": pd.Series(dtype="object"),
            "date": pd.Series(dtype="datetime64[ns]"),
            "value": pd.Series(dtype="float64"),
        }
    )


def _split_rows(text: str, *, strip_quotes: bool = False) -> list[list[str]]:
    lines = [line for line in str(text or "").splitlines() if line.strip()]
    if not lines:
        return []
    rows: list[list[str]] = []
    try:
        for fields in csv.reader(lines):
            cleaned = [field.strip() for field in fields]
            if strip_quotes:
                cleaned = [field.replace('"', "") for field in cleaned]
            rows.append(cleaned)
    except csv.Error as exc:
        logger.warning("unreadable delimited payload: %s", exc)
        return []
    return rows


def _parse_dates(values: pd.Series) -> pd.Series:
    return pd.to_datetime(values, format=_DATE_FORMAT, errors="coerce")


def _extract_header_indexed(
    rows: list[list[str]], mapping: ColumnMapping
) -> list[list[str]] | None:
    header = rows[0]
    index = {name: pos for pos, name in enumerate(header)}
    wanted = mapping.columns()
    missing = [str(name) for name in wanted if name not in index]
    if missing:
        logger.warning("forecast header missing columns: %s", ", ".join(missing))
        return None
    positions = [index[name] for name in wanted]  # type: ignore[index]
    extracted: list[list[str]] = []
    for row in rows[1:]:
        if len(row) != len(header):
            continue
        extracted.append([row[pos] for pos in positions])
    return extracted


def _extract_positional(
    rows: list[list[str]], mapping: ColumnMapping
) -> list[list[str]]:
    positions = [int(pos) for pos in mapping.columns()]
    width = max(positions) + 1
    return [
        [row[pos] for pos in positions] for row in rows[1:] if len(row) >= width
    ]


def _log_horizon_counts(label: str, frame: pd.DataFrame) -> None:
    counts = frame["horizon"].value_counts().sort_index()
    logger.debug(
        "parsed %d %s records; horizons=%s",
        len(frame),
        label,
        {int(horizon): int(count) for horizon, count in counts.items()},
    )


def parse_forecasts(text: str, fmt: ForecastFormat | str) -> pd.DataFrame:
    """Parse one forecast payload into ``location_name, date, horizon, value``."""

    try:
        resolved = ForecastFormat(fmt)
        mapping = FORMAT_MAPPINGS[resolved]
    except (ValueError, KeyError) as exc:
        raise ContractViolation(
            "unknown_forecast_format",
            key=str(fmt),
            detail=f"format must be one of {sorted(item.value for item in ForecastFormat)}",
        ) from exc

    rows = _split_rows(text, strip_quotes=mapping.strip_quotes)
    if not rows:
        logger.warning("empty %s payload", resolved.value)
        return empty_forecast_frame()

    if mapping.positional:
        extracted = _extract_positional(rows, mapping)
    else:
        header_rows = _extract_header_indexed(rows, mapping)
        if header_rows is None:
            return empty_forecast_frame()
        extracted = header_rows
    if not extracted:
        return empty_forecast_frame()

    raw = pd.DataFrame(extracted, columns=FORECAST_COLUMNS)
    horizon = pd.to_numeric(raw["horizon"], errors="coerce")
    value = pd.to_numeric(raw["value"], errors="coerce")
    date = _parse_dates(raw["date"])
    location = raw["location_name"].replace(dict(mapping.location_aliases))

    integral = horizon.notna() & ((horizon % 1) == 0)
    horizon = horizon.where(integral) + mapping.horizon_offset
    keep = (
        integral
        & horizon.between(MIN_HORIZON, MAX_HORIZON)
        & pd.Series(np.isfinite(value.to_numpy(dtype=float)), index=raw.index)
        & date.notna()
        & (location.str.len() > 0)
    )
    if not keep.any():
        logger.debug("no valid %s rows", resolved.value)
        return empty_forecast_frame()

    frame = pd.DataFrame(
        {
            "location_name": location[keep].astype(str),
            "date": date[keep],
            "horizon": horizon[keep].astype("int64"),
            "value": value[keep].astype("float64"),
        }
    ).reset_index(drop=True)
    _log_horizon_counts(resolved.value, frame)
    return frame


def parse_truth(text: str) -> pd.DataFrame:
    """Parse the observed hospitalization file into ``location_name, date, value``.

    ``NA`` in ``total_hosp`` is kept as a NaN value (an explicitly missing
    observation); any other non-numeric value drops the row.
    """

    rows = _split_rows(text)
    if not rows:
        logger.warning("empty ground truth payload")
        return empty_truth_frame()

    header = rows[0]
    required = ("location_name", "date", "total_hosp")
    missing = [name for name in required if name not in header]
    if missing:
        logger.warning("ground truth header missing columns: %s", ", ".join(missing))
        return empty_truth_frame()
    positions = [header.index(name) for name in required]
    width = max(positions) + 1
    extracted = [[row[pos] for pos in positions] for row in rows[1:] if len(row) >= width]
    if not extracted:
        return empty_truth_frame()

    raw = pd.DataFrame(extracted, columns=["location_name", "date", "total_hosp"])
    is_missing = raw["total_hosp"] == MISSING_TOKEN
    value = pd.to_numeric(raw["total_hosp"].where(~is_missing), errors="coerce")
    date = _parse_dates(raw["date"])
    finite = pd.Series(np.isfinite(value.to_numpy(dtype=float)), index=raw.index)
    keep = (is_missing | finite) & date.notna() & (raw["location_name"].str.len() > 0)

    frame = pd.DataFrame(
        {
            "location_name": raw.loc[keep, "location_name"].astype(str),
            "date": date[keep],
            "value": value[keep].astype("float64"),
        }
    ).reset_index(drop=True)
    logger.debug(
        "parsed %d ground truth records (%d missing observations)",
        len(frame),
        int(frame["value"].isna().sum()),
    )
    return frame
