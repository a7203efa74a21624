"""Slack Archive - incremental workspace archiver with a static HTML viewer."""

__version__ = "0.1.0"
