# src/appstore_reports/__init__.py
# Copyright (c) Arche.
# SPDX-License-Identifier: MIT
"""App Store Connect report retrieval.

Resolve, download and parse Analytics, Sales and Finance reports from the
App Store Connect API.
"""

from __future__ import annotations

__version__ = "0.1.0"
