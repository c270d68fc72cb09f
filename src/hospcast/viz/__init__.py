"""Faceted forecast chart rendering."""

from hospcast.viz.chart import FacetChart
from hospcast.viz.hover import HoverSummary

__all__ = ["FacetChart", "HoverSummary"]
