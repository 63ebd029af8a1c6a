# src/appstore_reports/infrastructure/external_apis/appstore/types.py
# Copyright (c) Arche.
# SPDX-License-Identifier: MIT
"""
App Store Connect Types.

Purpose:
    Typed JSON:API fragments returned by the endpoints this package reads.

Layer:
    infrastructure

Notes:
    Partial by intent; only members read during resolution and error mapping
    are typed. Payloads are checked at runtime before these shapes are trusted.
"""

from __future__ import annotations

from typing import Any, NotRequired, TypedDict


class Resource(TypedDict):
    """A single JSON:API resource object."""

    id: str
    type: str
    attributes: NotRequired[dict[str, Any]]


class ResourceDocument(TypedDict, total=False):
    """A JSON:API document; ``data`` is a list for collections."""

    data: list[Resource] | Resource
    links: dict[str, str]
    meta: dict[str, Any]


class ErrorObject(TypedDict, total=False):
    """A JSON:API error object as returned with 4xx/5xx responses."""

    status: str
    code: str
    title: str
    detail: str


class ErrorDocument(TypedDict, total=False):
    """Body of a failed App Store Connect response."""

    errors: list[ErrorObject]
