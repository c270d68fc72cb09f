"""Pixel scales and the categorical model palette."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

import pandas as pd
import pypalettes  # type: ignore[import-untyped]


@dataclass(frozen=True)
class TimeScale:
    """Map timestamps in ``domain`` linearly onto pixels in ``range``."""

    domain: tuple[pd.Timestamp, pd.Timestamp]
    range: tuple[float, float]

    def _span(self) -> int:
        return int(self.domain[1].value - self.domain[0].value)

    def __call__(self, value: object) -> float:
        span = self._span()
        if span == 0:
            return float(self.range[0])
        offset = pd.Timestamp(value).value - self.domain[0].value
        return self.range[0] + (self.range[1] - self.range[0]) * offset / span

    def invert(self, pixel: float) -> pd.Timestamp:
        width = self.range[1] - self.range[0]
        if width == 0:
            return self.domain[0]
        fraction = (float(pixel) - self.range[0]) / width
        return pd.Timestamp(int(self.domain[0].value + fraction * self._span()))

    def contains_pixel(self, pixel: float) -> bool:
        low, high = sorted(self.range)
        return low <= pixel <= high


@dataclass(frozen=True)
class LinearScale:
    """Map values in ``domain`` linearly onto pixels in ``range``."""

    domain: tuple[float, float]
    range: tuple[float, float]

    def __call__(self, value: float) -> float:
        span = self.domain[1] - self.domain[0]
        if span == 0:
            return float(self.range[0])
        fraction = (float(value) - self.domain[0]) / span
        return self.range[0] + (self.range[1] - self.range[0]) * fraction

    def invert(self, pixel: float) -> float:
        width = self.range[1] - self.range[0]
        if width == 0:
            return float(self.domain[0])
        fraction = (float(pixel) - self.range[0]) / width
        return self.domain[0] + (self.domain[1] - self.domain[0]) * fraction


def load_palette_colors(name: str, *, min_len: int = 10) -> list[str]:
    """Load a named ``pypalettes`` palette as ``#rrggbb`` strings."""

    raw = pypalettes.load_palette(name)
    base = [str(color)[:7] for color in raw]
    if not base:
        raise ValueError(f"palette {name!r} has no colors")
    if len(base) >= min_len:
        return base
    repeats = (min_len + len(base) - 1) // len(base)
    return (base * repeats)[:min_len]


class ColorScale:
    """Ordinal color assignment: each new key takes the next palette color.

    Assignments persist for the lifetime of the scale, so a model keeps its
    color across re-renders as long as keys are first seen in the same order.
    """

    def __init__(
        self,
        palette: Optional[Sequence[str]] = None,
        *,
        palette_name: str = "Tableau_10",
    ) -> None:
        colors = list(palette) if palette is not None else load_palette_colors(palette_name)
        if not colors:
            raise ValueError("palette must contain at least one color")
        self._colors = colors
        self._assigned: dict[str, str] = {}

    def __call__(self, key: str) -> str:
        color = self._assigned.get(key)
        if color is None:
            color = self._colors[len(self._assigned) % len(self._colors)]
            self._assigned[key] = color
        return color

    @property
    def assignments(self) -> dict[str, str]:
        return dict(self._assigned)
