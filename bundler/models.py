"""
Data model for a bundling run: source files, the three document groups,
assembly options and the merged result.
"""

from __future__ import annotations

import datetime as dt
import uuid
from dataclasses import dataclass, field
from typing import List, Optional

import fitz  # PyMuPDF

from bundler.config import (
    DEFAULT_FONT_SIZE,
    DEFAULT_LABELS,
    GROUP_ORDER,
    MAIN,
    MAX_FONT_SIZE,
    MIN_FONT_SIZE,
)
from bundler.errors import AssemblyError, ErrorReason

# Failures raised by PyMuPDF and the MuPDF bindings underneath it
MUPDF_ERRORS = (RuntimeError, ValueError, fitz.mupdf.FzErrorBase)


def open_pdf(data: bytes, name: str = "") -> fitz.Document:
    """Open *data* as a PDF, raising MALFORMED_SOURCE if it is not a usable document."""
    try:
        doc = fitz.open(stream=data, filetype="pdf")
    except MUPDF_ERRORS as exc:
        raise AssemblyError(
            ErrorReason.MALFORMED_SOURCE, f"無法讀取檔案 {name}: {exc}", source=name
        ) from exc

    if doc.needs_pass or doc.page_count == 0:
        problem = "檔案已加密" if doc.needs_pass else "檔案沒有任何頁面"
        doc.close()
        raise AssemblyError(
            ErrorReason.MALFORMED_SOURCE, f"無法讀取檔案 {name}: {problem}", source=name
        )
    return doc


@dataclass
class SourceFile:
    data: bytes
    name: str
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    _page_count: Optional[int] = field(default=None, init=False, repr=False, compare=False)

    @property
    def page_count(self) -> int:
        if self._page_count is None:
            with open_pdf(self.data, self.name) as doc:
                self._page_count = doc.page_count
        return self._page_count


@dataclass
class DocumentGroup:
    """
    One of the three document categories. Only labeled groups
    (attachment, evidence) carry a prefix and start index.
    """

    kind: str
    files: List[SourceFile] = field(default_factory=list)
    label_prefix: str = ""
    start_index: int = 1

    def __post_init__(self):
        if self.kind not in GROUP_ORDER:
            raise ValueError(f"Unknown group: {self.kind}")
        if self.kind != MAIN and not self.label_prefix:
            self.label_prefix = DEFAULT_LABELS[self.kind]
        if self.start_index < 1:
            raise ValueError("start_index must be at least 1")

    @property
    def is_labeled(self) -> bool:
        return self.kind != MAIN

    def label_for(self, position: int) -> Optional[str]:
        """Label of the file at 0-based *position*, e.g. 附件3."""
        if not self.is_labeled:
            return None
        return f"{self.label_prefix}{self.start_index + position}"

    def add(self, source: SourceFile) -> None:
        if self.kind == MAIN:
            self.files = [source]
        else:
            self.files.append(source)

    def remove(self, file_id: str) -> bool:
        remaining = [f for f in self.files if f.id != file_id]
        removed = len(remaining) != len(self.files)
        self.files = remaining
        return removed


@dataclass(frozen=True)
class AssemblyOptions:
    font_size: float = DEFAULT_FONT_SIZE
    pad_odd_pages: bool = True
    require_embedded_font: bool = False

    def __post_init__(self):
        if not MIN_FONT_SIZE <= self.font_size <= MAX_FONT_SIZE:
            raise ValueError(
                f"font_size must be between {MIN_FONT_SIZE} and {MAX_FONT_SIZE}, got {self.font_size}"
            )


@dataclass(frozen=True)
class MergedDocument:
    data: bytes
    page_count: int
    created_at: dt.datetime = field(default_factory=dt.datetime.now)
