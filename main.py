#!/usr/bin/env python3
"""Render the hospitalization forecast dashboard to a standalone HTML file."""

# ruff: noqa: E402

from __future__ import annotations

import argparse
import asyncio
import json
from pathlib import Path
import sys
from typing import Any

ROOT = Path(__file__).resolve().parent
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from hospcast.app.controller import DashboardController
from hospcast.config import load_dashboard_config, load_model_catalog
from hospcast.ingest.transport import HttpTransport, LocalFileTransport, Transport
from hospcast.utils.logs import configure_logging


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--data-root",
        default=".",
        help="Directory that contains data/forecasts and data/truth.",
    )
    parser.add_argument(
        "--base-url",
        default=None,
        help="Fetch files over HTTP from this base URL instead of --data-root.",
    )
    parser.add_argument("--config", default="configs/dashboard.yaml")
    parser.add_argument("--models", default="configs/models.yaml")
    parser.add_argument(
        "--date",
        default=None,
        help="As-of date to display instead of the latest forecast date.",
    )
    parser.add_argument(
        "--retrospective",
        action="store_true",
        help="Include the longer ground-truth history.",
    )
    parser.add_argument("--width", type=float, default=1200.0)
    parser.add_argument("--output", default="output/dashboard.html")
    parser.add_argument(
        "--png",
        action="store_true",
        help="Also write a PNG next to the HTML output.",
    )
    parser.add_argument("--log-level", default="INFO")
    return parser


async def _run(args: argparse.Namespace, transport: Transport) -> dict[str, Any]:
    controller = DashboardController(
        transport,
        config=load_dashboard_config(args.config),
        catalog=load_model_catalog(args.models),
        width=args.width,
    )
    await controller.initialize()
    if controller.state.error_message is None:
        if args.retrospective:
            await controller.set_retrospective(True)
        if args.date:
            await controller.change_date(args.date)

    output = controller.chart.write_html(args.output)
    if args.png and controller.state.error_message is None:
        controller.chart.write_image(Path(args.output).with_suffix(".png"))
    summary = controller.summary()
    summary["output"] = str(output)
    return summary


async def _main_async(args: argparse.Namespace) -> dict[str, Any]:
    if args.base_url:
        async with HttpTransport(args.base_url) as transport:
            return await _run(args, transport)
    return await _run(args, LocalFileTransport(args.data_root))


def main() -> int:
    args = _build_parser().parse_args()
    configure_logging(args.log_level.upper())
    summary = asyncio.run(_main_async(args))
    print(json.dumps(summary, sort_keys=True, indent=2, default=str))
    if summary["error"] is not None:
        print(f"FAIL: {summary['error']}")
        return 2
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
