"""Dashboard settings and model catalog contracts."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Mapping

import pandas as pd
import yaml

from hospcast.errors import ContractViolation
from hospcast.ingest.formats import ForecastFormat

DEFAULT_SETTINGS_PATH = "configs/dashboard.yaml"
DEFAULT_CATALOG_PATH = "configs/models.yaml"


class FileLayout(str, Enum):
    """How a model's submission is split across files."""

    SINGLE = "single"
    INDIVIDUAL = "individual"
    CONSOLIDATED = "consolidated"


# (horizons, replicates) fetched for each replicate layout.
INDIVIDUAL_HORIZONS = (1, 2, 3, 4)
INDIVIDUAL_REPLICATES = (1, 2, 3)
CONSOLIDATED_REPLICATES = (1, 2, 3, 4, 5)


@dataclass(frozen=True)
class ModelDescriptor:
    """Single model entry from ``configs/models.yaml``."""

    path: str
    format: ForecastFormat
    name: str
    use_requested_date: bool
    prefix: str
    layout: FileLayout = FileLayout.SINGLE


@dataclass(frozen=True)
class ChartSettings:
    facet_width: int = 500
    facet_height: int = 300
    facet_padding: int = 40
    margin_top: int = 40
    margin_right: int = 80
    margin_bottom: int = 40
    margin_left: int = 60
    x_padding_days: int = 14
    y_headroom: float = 1.1
    hover_truth_window_days: int = 3
    resize_debounce_seconds: float = 0.25
    palette: str = "Tableau_10"
    aggregate_location: str = "US"
    territory_location: str = "Puerto Rico"
    truth_color: str = "#2c3e50"


@dataclass(frozen=True)
class DashboardConfig:
    """Validated dashboard settings; defaults match the published dashboard."""

    forecast_root: str = "data/forecasts"
    truth_root: str = "data/truth"
    truth_filename: str = "imputed_and_stitched_hosp_2024-12-21.csv"
    cutoff_date: str = "2023-11-15"
    retrospective_start: str = "2023-07-01"
    recent_start: str = "2024-07-01"
    forecast_lead_days: int = 7
    arrears_offset_days: int = 7
    known_dates: tuple[str, ...] = (
        "2024-12-28",
        "2024-12-21",
        "2024-12-14",
        "2024-12-07",
        "2024-11-30",
    )
    chart: ChartSettings = field(default_factory=ChartSettings)

    @property
    def truth_path(self) -> str:
        return f"{self.truth_root}/{self.truth_filename}"

    def truth_start(self, include_retrospective: bool) -> str:
        return self.retrospective_start if include_retrospective else self.recent_start


# path, format, layout, display name, use requested date, file prefix
_DEFAULT_CATALOG_ROWS: tuple[tuple[str, str, str, str, bool, str], ...] = (
    ("arima/arima", "arima", "single", "ARIMA", False, "arima"),
    ("ensemble/Nsemble", "lgb", "single", "MIGHTE-Nsemble", True, "Nsemble"),
    ("ensemble/Joint", "lgb", "single", "MIGHTE-Joint", True, "Joint"),
    (
        "lgb_mod2023_consolidated",
        "lgb",
        "consolidated",
        "LGB-2023-C",
        False,
        "lgb_mod2023",
    ),
    ("lgb_mod2023_individual", "lgb", "individual", "LGB-2023-I", False, "lgb_mod2023"),
    (
        "lgb_mod2024_consolidated",
        "lgb",
        "consolidated",
        "LGB-2024-C",
        False,
        "lgb_mod2024",
    ),
    ("lgb_mod2024_individual", "lgb", "individual", "LGB-2024-I", False, "lgb_mod2024"),
    ("shihao_team/argo_raw", "shihao", "single", "ARGO", True, "argo_raw"),
    ("shihao_team/argo2_raw", "shihao", "single", "ARGO2", True, "argo2_raw"),
)


def load_yaml(path: str | Path) -> dict[str, Any]:
    """Load a YAML document as a dictionary."""

    with Path(path).open("r", encoding="utf-8") as handle:
        payload = yaml.safe_load(handle) or {}
    if not isinstance(payload, dict):
        raise ContractViolation(
            "invalid_yaml_root",
            key=str(path),
            detail="top-level YAML payload must be a mapping",
        )
    return dict(payload)


def _as_positive_int(value: object, *, key: str, reason: str) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise ContractViolation(reason, key=key, detail="value must be an integer")
    try:
        parsed = int(str(value).strip())
    except ValueError as exc:
        raise ContractViolation(
            reason, key=key, detail="value must be an integer"
        ) from exc
    if parsed < 1:
        raise ContractViolation(reason, key=key, detail="value must be >= 1")
    return parsed


def _as_positive_float(value: object, *, key: str, reason: str) -> float:
    if isinstance(value, bool):
        raise ContractViolation(reason, key=key, detail="value must be a number")
    try:
        parsed = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise ContractViolation(
            reason, key=key, detail="value must be a number"
        ) from exc
    if parsed < 0:
        raise ContractViolation(reason, key=key, detail="value must be >= 0")
    return parsed


def _as_non_empty_string(value: object, *, key: str, reason: str) -> str:
    parsed = str(value).strip() if value is not None else ""
    if not parsed:
        raise ContractViolation(
            reason, key=key, detail="value must be a non-empty string"
        )
    return parsed


def _as_iso_date(value: object, *, key: str) -> str:
    ts = pd.to_datetime(str(value), format="%Y-%m-%d", errors="coerce")
    if pd.isna(ts):
        raise ContractViolation(
            "invalid_dashboard_config",
            key=key,
            detail="value must be a YYYY-MM-DD date",
        )
    return pd.Timestamp(ts).strftime("%Y-%m-%d")


def _section(raw: Mapping[str, Any], name: str) -> dict[str, Any]:
    section = raw.get(name, {})
    if not isinstance(section, Mapping):
        raise ContractViolation(
            "invalid_dashboard_config",
            key=name,
            detail=f"{name} must be a mapping",
        )
    return dict(section)


def _validate_chart(payload: Mapping[str, Any]) -> ChartSettings:
    reason = "invalid_dashboard_config"
    defaults = ChartSettings()
    margin = payload.get("margin", {})
    if not isinstance(margin, Mapping):
        raise ContractViolation(reason, key="chart.margin", detail="margin must be a mapping")

    def _int(name: str, raw: object) -> int:
        return _as_positive_int(raw, key=f"chart.{name}", reason=reason)

    headroom = _as_positive_float(
        payload.get("y_headroom", defaults.y_headroom), key="chart.y_headroom", reason=reason
    )
    if headroom < 1.0:
        raise ContractViolation(
            reason, key="chart.y_headroom", detail="y_headroom must be >= 1.0"
        )
    return ChartSettings(
        facet_width=_int("facet_width", payload.get("facet_width", defaults.facet_width)),
        facet_height=_int("facet_height", payload.get("facet_height", defaults.facet_height)),
        facet_padding=_int("facet_padding", payload.get("facet_padding", defaults.facet_padding)),
        margin_top=_int("margin.top", margin.get("top", defaults.margin_top)),
        margin_right=_int("margin.right", margin.get("right", defaults.margin_right)),
        margin_bottom=_int("margin.bottom", margin.get("bottom", defaults.margin_bottom)),
        margin_left=_int("margin.left", margin.get("left", defaults.margin_left)),
        x_padding_days=_int(
            "x_padding_days", payload.get("x_padding_days", defaults.x_padding_days)
        ),
        y_headroom=headroom,
        hover_truth_window_days=_int(
            "hover_truth_window_days",
            payload.get("hover_truth_window_days", defaults.hover_truth_window_days),
        ),
        resize_debounce_seconds=_as_positive_float(
            payload.get("resize_debounce_seconds", defaults.resize_debounce_seconds),
            key="chart.resize_debounce_seconds",
            reason=reason,
        ),
        palette=_as_non_empty_string(
            payload.get("palette", defaults.palette), key="chart.palette", reason=reason
        ),
        aggregate_location=_as_non_empty_string(
            payload.get("aggregate_location", defaults.aggregate_location),
            key="chart.aggregate_location",
            reason=reason,
        ),
        territory_location=_as_non_empty_string(
            payload.get("territory_location", defaults.territory_location),
            key="chart.territory_location",
            reason=reason,
        ),
        truth_color=_as_non_empty_string(
            payload.get("truth_color", defaults.truth_color),
            key="chart.truth_color",
            reason=reason,
        ),
    )


def validate_dashboard_config(payload: Mapping[str, Any] | None) -> DashboardConfig:
    """Validate dashboard settings and fill defaults for omitted keys."""

    reason = "invalid_dashboard_config"
    raw = dict(payload or {})
    defaults = DashboardConfig()
    data = _section(raw, "data")
    truth = _section(raw, "truth")
    forecasts = _section(raw, "forecasts")
    chart = _section(raw, "chart")

    known_raw = forecasts.get("known_dates", list(defaults.known_dates))
    if not isinstance(known_raw, (list, tuple)) or not known_raw:
        raise ContractViolation(
            reason,
            key="forecasts.known_dates",
            detail="known_dates must be a non-empty list",
        )
    known_dates = tuple(
        _as_iso_date(item, key=f"forecasts.known_dates[{idx}]")
        for idx, item in enumerate(known_raw)
    )

    retrospective_start = _as_iso_date(
        truth.get("retrospective_start", defaults.retrospective_start),
        key="truth.retrospective_start",
    )
    recent_start = _as_iso_date(
        truth.get("recent_start", defaults.recent_start), key="truth.recent_start"
    )
    if retrospective_start > recent_start:
        raise ContractViolation(
            reason,
            key="truth.retrospective_start",
            detail="retrospective window must start on or before the recent window",
        )

    return DashboardConfig(
        forecast_root=_as_non_empty_string(
            data.get("forecast_root", defaults.forecast_root),
            key="data.forecast_root",
            reason=reason,
        ).rstrip("/"),
        truth_root=_as_non_empty_string(
            data.get("truth_root", defaults.truth_root), key="data.truth_root", reason=reason
        ).rstrip("/"),
        truth_filename=_as_non_empty_string(
            data.get("truth_filename", defaults.truth_filename),
            key="data.truth_filename",
            reason=reason,
        ),
        cutoff_date=_as_iso_date(
            truth.get("cutoff_date", defaults.cutoff_date), key="truth.cutoff_date"
        ),
        retrospective_start=retrospective_start,
        recent_start=recent_start,
        forecast_lead_days=_as_positive_int(
            truth.get("forecast_lead_days", defaults.forecast_lead_days),
            key="truth.forecast_lead_days",
            reason=reason,
        ),
        arrears_offset_days=_as_positive_int(
            forecasts.get("arrears_offset_days", defaults.arrears_offset_days),
            key="forecasts.arrears_offset_days",
            reason=reason,
        ),
        known_dates=known_dates,
        chart=_validate_chart(chart),
    )


def validate_model_catalog(payload: Any) -> tuple[ModelDescriptor, ...]:
    """Validate model descriptors and return them in declaration order."""

    reason = "invalid_model_catalog"
    entries = payload.get("models") if isinstance(payload, Mapping) else payload
    if not isinstance(entries, (list, tuple)) or not entries:
        raise ContractViolation(
            reason, key="models", detail="models must be a non-empty list"
        )

    descriptors: list[ModelDescriptor] = []
    seen_names: set[str] = set()
    for idx, entry in enumerate(entries):
        key = f"models[{idx}]"
        if not isinstance(entry, Mapping):
            raise ContractViolation(reason, key=key, detail="entry must be a mapping")
        fmt_raw = _as_non_empty_string(entry.get("format"), key=f"{key}.format", reason=reason)
        layout_raw = str(entry.get("layout", FileLayout.SINGLE.value)).strip().lower()
        try:
            fmt = ForecastFormat(fmt_raw.lower())
        except ValueError as exc:
            raise ContractViolation(
                reason,
                key=f"{key}.format",
                detail=f"format must be one of {sorted(item.value for item in ForecastFormat)}",
            ) from exc
        try:
            layout = FileLayout(layout_raw)
        except ValueError as exc:
            raise ContractViolation(
                reason,
                key=f"{key}.layout",
                detail=f"layout must be one of {sorted(item.value for item in FileLayout)}",
            ) from exc

        name = _as_non_empty_string(entry.get("name"), key=f"{key}.name", reason=reason)
        if name in seen_names:
            raise ContractViolation(
                reason, key=f"{key}.name", detail=f"duplicate model name {name!r}"
            )
        seen_names.add(name)

        use_requested = entry.get("use_requested_date", False)
        if not isinstance(use_requested, bool):
            raise ContractViolation(
                reason,
                key=f"{key}.use_requested_date",
                detail="use_requested_date must be a boolean",
            )
        descriptors.append(
            ModelDescriptor(
                path=_as_non_empty_string(entry.get("path"), key=f"{key}.path", reason=reason),
                format=fmt,
                name=name,
                use_requested_date=use_requested,
                prefix=_as_non_empty_string(
                    entry.get("prefix"), key=f"{key}.prefix", reason=reason
                ),
                layout=layout,
            )
        )
    return tuple(descriptors)


def default_model_catalog() -> tuple[ModelDescriptor, ...]:
    """Return the built-in nine-model catalog."""

    return validate_model_catalog(
        [
            {
                "path": path,
                "format": fmt,
                "layout": layout,
                "name": name,
                "use_requested_date": use_requested_date,
                "prefix": prefix,
            }
            for path, fmt, layout, name, use_requested_date, prefix in _DEFAULT_CATALOG_ROWS
        ]
    )


def load_dashboard_config(path: str | Path = DEFAULT_SETTINGS_PATH) -> DashboardConfig:
    """Load settings from YAML, falling back to defaults when the file is absent."""

    source = Path(path)
    if not source.exists():
        return DashboardConfig()
    return validate_dashboard_config(load_yaml(source))


def load_model_catalog(path: str | Path = DEFAULT_CATALOG_PATH) -> tuple[ModelDescriptor, ...]:
    """Load model descriptors from YAML, falling back to the built-in catalog."""

    source = Path(path)
    if not source.exists():
        return default_model_catalog()
    return validate_model_catalog(load_yaml(source))
