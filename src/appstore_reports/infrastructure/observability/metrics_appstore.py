# src/appstore_reports/infrastructure/observability/metrics_appstore.py
# Copyright (c) Arche.
# SPDX-License-Identifier: MIT
"""App Store Connect metrics.

Purpose:
    Provide Prometheus metrics for App Store Connect calls and report items:
      * Latency histograms per endpoint.
      * HTTP status distribution.
      * Error counters by reason.
      * Processed items by family, operation and outcome.

Design:
    Functions return lazily created singleton metric instances so importing
    this module never registers collectors twice.
"""

from __future__ import annotations

from typing import Any

from prometheus_client import Counter, Histogram

_appstore_http_latency_seconds: Any | None = None
_appstore_http_status_total: Any | None = None
_appstore_errors_total: Any | None = None
_appstore_items_total: Any | None = None


def get_appstore_http_latency_seconds() -> Any:
    """Return (and lazily create) the App Store HTTP latency histogram."""
    global _appstore_http_latency_seconds
    if _appstore_http_latency_seconds is None:
        _appstore_http_latency_seconds = Histogram(
            "appstore_http_latency_seconds",
            "Latency of App Store Connect HTTP calls in seconds.",
            ["endpoint", "outcome"],
        )
    return _appstore_http_latency_seconds


def get_appstore_http_status_total() -> Any:
    """Return (and lazily create) the App Store HTTP status counter."""
    global _appstore_http_status_total
    if _appstore_http_status_total is None:
        _appstore_http_status_total = Counter(
            "appstore_http_status_total",
            "App Store Connect HTTP responses by status code.",
            ["endpoint", "status"],
        )
    return _appstore_http_status_total


def get_appstore_errors_total() -> Any:
    """Return (and lazily create) the App Store error counter."""
    global _appstore_errors_total
    if _appstore_errors_total is None:
        _appstore_errors_total = Counter(
            "appstore_errors_total",
            "Total number of App Store report errors.",
            ["stage", "reason"],
        )
    return _appstore_errors_total


def get_appstore_items_total() -> Any:
    """Return (and lazily create) the processed-items counter."""
    global _appstore_items_total
    if _appstore_items_total is None:
        _appstore_items_total = Counter(
            "appstore_items_total",
            "Report items processed, by family, operation and outcome.",
            ["family", "operation", "outcome"],
        )
    return _appstore_items_total
