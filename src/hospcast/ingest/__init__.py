"""Forecast and ground-truth ingestion."""
