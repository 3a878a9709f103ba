"""Chunked daily aggregation of PM sensor CSV files."""

__version__ = "0.1.0"
