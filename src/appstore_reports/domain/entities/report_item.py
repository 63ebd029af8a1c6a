# src/appstore_reports/domain/entities/report_item.py
# Copyright (c) Arche.
# SPDX-License-Identifier: MIT
"""Output item entities.

Purpose:
    Shape what the orchestrator hands back to its host for each input item:
    a JSON body, optional binary attachments, and the index of the input
    item it was produced from.

Layer:
    domain
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

_MIME_TYPES: dict[str, str] = {
    "csv": "text/csv",
    "tsv": "text/tab-separated-values",
}


@dataclass(frozen=True)
class BinaryAttachment:
    """Named binary payload, e.g. a decompressed report file."""

    data: bytes = field(repr=False)
    file_name: str
    mime_type: str = "application/octet-stream"

    @classmethod
    def for_file(cls, data: bytes, file_name: str) -> BinaryAttachment:
        """Build an attachment whose mime type follows the file extension."""
        extension = file_name.rsplit(".", 1)[-1].lower() if "." in file_name else ""
        return cls(
            data=data,
            file_name=file_name,
            mime_type=_MIME_TYPES.get(extension, "application/octet-stream"),
        )

    @property
    def size(self) -> int:
        """Return the payload size in bytes."""
        return len(self.data)


@dataclass(frozen=True)
class ReportItem:
    """One output item.

    Attributes:
        json: Structured body. In parse mode this is the input body plus the
            parsed sections; in download mode it is empty.
        binary: Attachments keyed by name (``report`` in download mode).
        paired_item: Index of the input item this output belongs to.
        error: Failure message when the item failed and the run continued.
    """

    json: dict[str, Any] = field(default_factory=dict)
    binary: dict[str, BinaryAttachment] = field(default_factory=dict)
    paired_item: int = 0
    error: str | None = None

    @property
    def failed(self) -> bool:
        """Return True when this item records a failure."""
        return self.error is not None
