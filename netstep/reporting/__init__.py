"""Reporting utilities for netstep runs."""

from .artifacts import resolve_run_dir, write_manifest
from .metrics import CsvSink, JsonlSink
from .plots import PlotAdapter
from .summary import write_summary

__all__ = [
    "CsvSink",
    "JsonlSink",
    "PlotAdapter",
    "resolve_run_dir",
    "write_manifest",
    "write_summary",
]
