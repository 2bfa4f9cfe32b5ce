"""
Bundle assembly: copy the main document, stamp every attachment and
evidence file with its label and page captions, pad odd-paged files for
duplex printing and concatenate everything into one PDF.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Sequence

import fitz  # PyMuPDF

from bundler.config import (
    CAPTION_FONT_SIZE,
    CAPTION_OFFSET_X,
    CAPTION_OFFSET_Y,
    CAPTION_TEMPLATE,
    EMBEDDED_FONT_NAME,
    FALLBACK_FONT,
    GROUP_ORDER,
    LABEL_OFFSET_X,
    LABEL_OFFSET_Y,
)
from bundler.errors import AssemblyError, ErrorReason
from bundler.models import MUPDF_ERRORS, AssemblyOptions, DocumentGroup, MergedDocument, SourceFile, open_pdf

logger = logging.getLogger(__name__)


def caption_text(page_number: int, total: int) -> str:
    """Running caption for 1-based *page_number* of a *total*-page file."""
    return CAPTION_TEMPLATE.format(page=page_number, total=total)


def _insert_text(page: fitz.Page, point: fitz.Point, text: str, fontsize: float, fontname: str) -> None:
    # point is in visible (rotated) page space
    page.insert_text(
        point * page.derotation_matrix,
        text,
        fontsize=fontsize,
        fontname=fontname,
        color=(0, 0, 0),
        rotate=page.rotation,
    )


def _select_font(page: fitz.Page, font: Optional[bytes], fallback_font: str) -> str:
    if font:
        try:
            page.insert_font(fontname=EMBEDDED_FONT_NAME, fontbuffer=font)
        except MUPDF_ERRORS as exc:
            raise AssemblyError(ErrorReason.FONT_UNAVAILABLE, f"字體無法嵌入: {exc}") from exc
        return EMBEDDED_FONT_NAME
    return fallback_font


def stamp_pages(
    pages: Sequence[fitz.Page],
    label: str,
    font: Optional[bytes],
    font_size: float,
    fallback_font: str = FALLBACK_FONT,
) -> None:
    """
    Label the first of *pages* and caption all of them. *pages* are the
    pages of one source file; the caption counts within that file only.

    Pages must already belong to the output document. MuPDF reuses a font
    resource within one document, so the embedded font is stored once.
    """
    total = len(pages)
    for index, page in enumerate(pages):
        fontname = _select_font(page, font, fallback_font)
        rect = page.rect
        if index == 0:
            _insert_text(
                page,
                fitz.Point(rect.width - LABEL_OFFSET_X, LABEL_OFFSET_Y),
                label,
                font_size,
                fontname,
            )
        _insert_text(
            page,
            fitz.Point(rect.width - CAPTION_OFFSET_X, rect.height - CAPTION_OFFSET_Y),
            caption_text(index + 1, total),
            CAPTION_FONT_SIZE,
            fontname,
        )


def _pad(out: fitz.Document, src: fitz.Document) -> int:
    """Add a blank page sized like the last page of *src* if *src* has an odd page count."""
    if src.page_count % 2 == 0:
        return 0
    last = src[-1].rect
    out.new_page(-1, width=last.width, height=last.height)
    return 1


def _ordered(groups: Iterable[DocumentGroup]) -> List[DocumentGroup]:
    return sorted(groups, key=lambda g: GROUP_ORDER.index(g.kind))


def assemble(
    groups: Iterable[DocumentGroup],
    font: Optional[bytes],
    options: AssemblyOptions,
    fallback_font: str = FALLBACK_FONT,
) -> MergedDocument:
    """
    Merge *groups* into a single PDF.

    Groups are emitted main, attachments, evidence. Every file of a labeled
    group is stamped; the main file is copied untouched. Any unreadable
    source aborts the whole run.
    """
    groups = _ordered(groups)
    if not any(group.files for group in groups):
        raise AssemblyError(ErrorReason.EMPTY_INPUT, "請至少上傳一個檔案")

    stamping = any(group.files for group in groups if group.is_labeled)
    if font is None and stamping:
        if options.require_embedded_font:
            raise AssemblyError(ErrorReason.FONT_UNAVAILABLE, "字體載入中，請稍後再試")
        logger.info("No embeddable font, stamping with built-in %s", fallback_font)

    out = fitz.open()
    try:
        for group in groups:
            for position, source in enumerate(group.files):
                added = _add_source(out, group, position, source, font, options, fallback_font)
                logger.debug("Added %s (%d pages) from %s", source.name, added, group.kind)

        data = out.tobytes(garbage=3, deflate=True)
        page_count = out.page_count
    finally:
        out.close()

    logger.info("Assembled %d pages from %d files", page_count, sum(len(g.files) for g in groups))
    return MergedDocument(data=data, page_count=page_count)


def _add_source(
    out: fitz.Document,
    group: DocumentGroup,
    position: int,
    source: SourceFile,
    font: Optional[bytes],
    options: AssemblyOptions,
    fallback_font: str,
) -> int:
    try:
        src = open_pdf(source.data, source.name)
    except AssemblyError:
        logger.warning("Malformed source in %s group: %s", group.kind, source.name)
        raise

    with src:
        first = out.page_count
        out.insert_pdf(src)
        if group.is_labeled:
            pages = [out[n] for n in range(first, first + src.page_count)]
            stamp_pages(pages, group.label_for(position), font, options.font_size, fallback_font)
        added = src.page_count
        if options.pad_odd_pages:
            added += _pad(out, src)
        return added
