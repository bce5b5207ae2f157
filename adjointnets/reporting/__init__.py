"""Reporting utilities for adjointnets."""

from .artifacts import write_manifest
from .metrics import CsvSink, HistoryCapture, JsonlSink

__all__ = ["write_manifest", "JsonlSink", "CsvSink", "HistoryCapture"]
