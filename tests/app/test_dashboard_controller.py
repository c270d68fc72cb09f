from __future__ import annotations

import asyncio

from hospcast.app.controller import DashboardController
from hospcast.config import DashboardConfig, ModelDescriptor
from hospcast.ingest.formats import ForecastFormat
from hospcast.ingest.transport import FetchResponse
from hospcast.viz.chart import FacetChart
from tests.helpers.fake_transport import FakeTransport, lgb_csv, truth_csv

CONFIG = DashboardConfig()
PALETTE = ["#4e79a7", "#f28e2b", "#e15759"]
CATALOG = (
    ModelDescriptor(
        path="team/joint",
        format=ForecastFormat.LGB,
        name="Joint",
        use_requested_date=True,
        prefix="joint",
    ),
    ModelDescriptor(
        path="arima/arima",
        format=ForecastFormat.ARIMA,
        name="ARIMA",
        use_requested_date=False,
        prefix="arima",
    ),
)
TRUTH = truth_csv(
    [
        ("2024-11-30", "US", "900"),
        ("2024-12-07", "US", "950"),
        ("2024-12-14", "US", "1000"),
        ("2024-12-14", "Ohio", "44"),
    ]
)


def _files() -> dict[str, object]:
    return {
        CONFIG.truth_path: TRUTH,
        "data/forecasts/team/joint_2024-12-21.csv": lgb_csv(
            [("US", "2024-12-28", 1, 1100.0), ("Ohio", "2024-12-28", 1, 50.0)]
        ),
        "data/forecasts/team/joint_2024-12-14.csv": lgb_csv(
            [("US", "2024-12-21", 1, 990.0)]
        ),
        "data/forecasts/arima/arima_2024-12-14.csv": lgb_csv(
            [("National", "2024-12-28", 1, 1040.0)]
        ),
    }


def _controller(transport: FakeTransport) -> DashboardController:
    return DashboardController(
        transport,
        config=CONFIG,
        catalog=CATALOG,
        chart=FacetChart(width=1200, settings=CONFIG.chart, palette=PALETTE),
    )


def test_initialize_loads_latest_date_and_selects_every_model() -> None:
    controller = _controller(FakeTransport(_files()))  # type: ignore[arg-type]

    state = asyncio.run(controller.initialize())

    assert state.latest_forecast_date == "2024-12-21"
    assert state.selected_date == "2024-12-21"
    assert state.selected_models == frozenset({"Joint", "ARIMA"})
    assert set(state.forecasts["location_name"]) == {"US", "Ohio"}
    assert controller.chart.layout is not None
    summary = controller.summary()
    assert summary["error"] is None
    assert summary["forecast_records"] == 3
    assert [item["status"] for item in summary["load_report"]["models"]] == [
        "loaded",
        "loaded",
    ]


def test_missing_truth_blocks_and_shows_error() -> None:
    files = _files()
    del files[CONFIG.truth_path]
    controller = _controller(FakeTransport(files))  # type: ignore[arg-type]

    state = asyncio.run(controller.initialize())

    assert state.error_message is not None
    assert state.selected_date is None
    assert controller.chart.layout is None
    assert "Error loading data" in controller.chart.figure.layout.annotations[0].text
    assert controller.render() is False


def test_model_toggle_rerenders_without_refetching() -> None:
    transport = FakeTransport(_files())  # type: ignore[arg-type]
    controller = _controller(transport)
    asyncio.run(controller.initialize())
    calls = len(transport.calls)

    assert controller.set_model_visible("ARIMA", False)

    assert len(transport.calls) == calls
    assert [name for name, _ in controller.chart.legend_entries()] == ["Observed", "Joint"]


def test_slow_earlier_date_response_is_discarded() -> None:
    transport = FakeTransport(
        _files(), delays={"joint_2024-12-14": 0.05}  # type: ignore[arg-type]
    )
    controller = _controller(transport)

    async def _scenario() -> list[bool]:
        await controller.initialize()
        return list(
            await asyncio.gather(
                controller.change_date("2024-12-14"),
                controller.change_date("2024-12-21"),
            )
        )

    outcomes = asyncio.run(_scenario())

    assert outcomes == [False, True]
    assert controller.state.selected_date == "2024-12-21"
    assert 990.0 not in controller.state.forecasts["value"].tolist()


def test_retrospective_toggle_reloads_truth_window() -> None:
    controller = _controller(FakeTransport(_files()))  # type: ignore[arg-type]

    async def _scenario() -> bool:
        await controller.initialize()
        return await controller.set_retrospective(True)

    assert asyncio.run(_scenario())
    assert controller.state.include_retrospective is True
    assert controller.available_dates()[0] == "2024-12-28"


class _SlowFailingTruthTransport(FakeTransport):
    """Serve truth normally except for one slow 503 on the ``fail_on``-th request."""

    def __init__(self, files: dict[str, object], *, fail_on: int) -> None:
        super().__init__(files)  # type: ignore[arg-type]
        self.fail_on = fail_on
        self.truth_requests = 0

    async def fetch(self, path: str) -> FetchResponse:
        if path == CONFIG.truth_path:
            self.truth_requests += 1
            if self.truth_requests == self.fail_on:
                await asyncio.sleep(0.05)
                return FetchResponse(path=path, status=503)
        return await super().fetch(path)


def test_slow_truth_failure_does_not_override_newer_success() -> None:
    controller = _controller(_SlowFailingTruthTransport(_files(), fail_on=2))

    async def _scenario() -> list[bool]:
        await controller.initialize()
        return list(
            await asyncio.gather(
                controller.set_retrospective(True),
                controller.set_retrospective(False),
            )
        )

    outcomes = asyncio.run(_scenario())

    assert outcomes == [False, True]
    assert controller.state.error_message is None
    assert controller.state.include_retrospective is False
    assert controller.chart.layout is not None
    assert controller.render() is True
