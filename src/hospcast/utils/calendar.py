"""Calendar helpers for weekly forecast dates."""

from __future__ import annotations

import pandas as pd

from hospcast.errors import ContractViolation

ISO_DATE_FORMAT = "%Y-%m-%d"


def parse_day(value: object, *, key: str = "date") -> pd.Timestamp:
    """Parse value into a midnight-normalized timestamp."""

    try:
        ts = pd.Timestamp(value)
    except (TypeError, ValueError) as exc:
        raise ContractViolation(
            "invalid_timestamp",
            key=key,
            detail=f"{key} could not be parsed",
        ) from exc
    if pd.isna(ts):
        raise ContractViolation(
            "invalid_timestamp",
            key=key,
            detail=f"{key} could not be parsed",
        )
    return ts.normalize()


def iso_day(value: object) -> str:
    """Render a date-like value as ``YYYY-MM-DD``."""

    return parse_day(value).strftime(ISO_DATE_FORMAT)


def shift_days(value: object, *, days: int) -> pd.Timestamp:
    """Shift a date-like value by whole days."""

    return parse_day(value) + pd.Timedelta(days=int(days))


def file_date_for(asof: object, *, use_requested_date: bool, offset_days: int) -> str:
    """Return the date token used in a model's forecast file name.

    Teams that submit one week in arrears name their files by the as-of date
    minus ``offset_days``; the rest use the as-of date directly.
    """

    if use_requested_date:
        return iso_day(asof)
    return iso_day(shift_days(asof, days=-int(offset_days)))
