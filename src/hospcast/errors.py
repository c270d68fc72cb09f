"""Base error for rejected configuration and unusable data files."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional


def _as_day(value: date | datetime | None) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    return value


@dataclass(frozen=True)
class LoadContext:
    """What failed to load, for which as-of day, and why."""

    reason_code: str
    key: str
    detail: str
    asof: Optional[date] = None

    def render(self) -> str:
        asof = "<none>" if self.asof is None else self.asof.isoformat()
        return (
            f"reason_code={self.reason_code}; asof={asof}; "
            f"key={self.key}; detail={self.detail}"
        )


class ContractViolation(ValueError):
    """A settings document, model catalog, or input file broke its contract.

    Subclasses for the fetch path live beside the code that raises them
    (``ingest.transport.FetchFailed``, ``ingest.ground_truth.DataUnavailable``).
    """

    def __init__(
        self,
        reason_code: str,
        *,
        asof: date | datetime | None = None,
        key: str = "<none>",
        detail: str = "",
    ) -> None:
        self.context = LoadContext(
            reason_code=reason_code,
            key=key,
            detail=detail,
            asof=_as_day(asof),
        )
        super().__init__(self.context.render())

    @property
    def reason_code(self) -> str:
        return self.context.reason_code

    @property
    def user_message(self) -> str:
        """Short text suitable for display in place of the chart."""

        return self.context.detail or self.context.reason_code
