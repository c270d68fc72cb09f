from __future__ import annotations

import pandas as pd
import pytest

from hospcast.errors import ContractViolation
from hospcast.ingest.formats import (
    FORECAST_COLUMNS,
    ForecastFormat,
    parse_forecasts,
    parse_truth,
)

ARIMA_TEXT = """location_name,date,horizon,value
National,2024-12-21,1,4100.5
National,2024-12-28,2,4250
Ohio,2024-12-21,0,120
Ohio,2024-12-28,5,130
Ohio,2025-01-04,3,not-a-number
Ohio,2025-01-04,3
Ohio,2025-01-11,4,140,extra
Ohio,2025-13-40,4,141
Ohio,2025-01-11,1.5,142
Texas,2025-01-11,4,inf
Texas, 2025-01-11 , 4 , 310.25
"""

SHIHAO_TEXT = '''"reference_date","location","horizon","target","target_end_date","output_type","output_type_id","value"
"2024-12-21","Ohio","0","wk inc flu hosp","2024-12-21","quantile","0.5","101.4"
"2024-12-21","Ohio","3","wk inc flu hosp","2025-01-11","quantile","0.5","99"
"2024-12-21","Ohio","4","wk inc flu hosp","2025-01-18","quantile","0.5","98"
"2024-12-21","National","1","wk inc flu hosp","2024-12-28","quantile","0.5","5000"
"2024-12-21","Ohio","2"
'''


def test_arima_format_rewrites_national_and_filters_rows() -> None:
    frame = parse_forecasts(ARIMA_TEXT, ForecastFormat.ARIMA)

    assert list(frame.columns) == FORECAST_COLUMNS
    assert frame["location_name"].tolist() == ["US", "US", "Texas"]
    assert frame["horizon"].tolist() == [1, 2, 4]
    assert frame["value"].tolist() == [4100.5, 4250.0, 310.25]
    assert frame["date"].tolist() == [
        pd.Timestamp("2024-12-21"),
        pd.Timestamp("2024-12-28"),
        pd.Timestamp("2025-01-11"),
    ]


def test_lgb_format_reads_columns_by_header_name() -> None:
    text = (
        "horizon,value,location_name,date,model_run\n"
        "1,55.5,National,2024-12-21,a\n"
        "4,60,Utah,2025-01-11,a\n"
        "5,61,Utah,2025-01-18,a\n"
    )
    frame = parse_forecasts(text, "lgb")

    assert frame["location_name"].tolist() == ["US", "Utah"]
    assert frame["horizon"].tolist() == [1, 4]
    assert frame["value"].tolist() == [55.5, 60.0]


def test_shihao_format_is_positional_and_shifts_horizon() -> None:
    frame = parse_forecasts(SHIHAO_TEXT, ForecastFormat.SHIHAO)

    assert frame["horizon"].tolist() == [1, 4, 2]
    assert frame["location_name"].tolist() == ["Ohio", "Ohio", "National"]
    assert frame["date"].tolist() == [
        pd.Timestamp("2024-12-21"),
        pd.Timestamp("2025-01-11"),
        pd.Timestamp("2024-12-28"),
    ]
    assert frame["value"].tolist() == [101.4, 99.0, 5000.0]


@pytest.mark.parametrize("fmt", list(ForecastFormat))
def test_every_format_keeps_horizons_in_canonical_range(fmt: ForecastFormat) -> None:
    text = SHIHAO_TEXT if fmt is ForecastFormat.SHIHAO else ARIMA_TEXT
    frame = parse_forecasts(text, fmt)

    assert not frame.empty
    assert frame["horizon"].between(1, 4).all()
    assert frame["horizon"].dtype == "int64"


@pytest.mark.parametrize("text", ["", "\n\n  \n"])
def test_empty_payload_yields_empty_frame(text: str) -> None:
    frame = parse_forecasts(text, ForecastFormat.ARIMA)

    assert frame.empty
    assert list(frame.columns) == FORECAST_COLUMNS


def test_header_without_required_columns_yields_empty_frame() -> None:
    text = "region,week,step,estimate\nOhio,2024-12-21,1,10\n"

    assert parse_forecasts(text, ForecastFormat.LGB).empty


def test_unknown_format_is_a_contract_violation() -> None:
    with pytest.raises(ContractViolation, match="reason_code=unknown_forecast_format"):
        parse_forecasts("a,b\n1,2\n", "prophet")


def test_truth_maps_na_to_missing_and_drops_other_non_numeric() -> None:
    text = (
        "date,location_name,total_hosp,extra\n"
        "2024-12-07,Ohio,120,x\n"
        "2024-12-14,Ohio,NA,x\n"
        "2024-12-21,Ohio,pending,x\n"
        "bad-date,Ohio,99,x\n"
        "2024-12-21,Texas,310.5,x\n"
    )
    frame = parse_truth(text)

    assert frame["location_name"].tolist() == ["Ohio", "Ohio", "Texas"]
    assert frame["value"].isna().tolist() == [False, True, False]
    assert frame.loc[0, "value"] == 120.0
    assert frame.loc[1, "date"] == pd.Timestamp("2024-12-14")


def test_truth_without_value_column_yields_empty_frame() -> None:
    frame = parse_truth("date,location_name\n2024-12-07,Ohio\n")

    assert frame.empty
    assert list(frame.columns) == ["location_name", "date", "value"]
