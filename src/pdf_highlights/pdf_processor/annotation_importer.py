"""
Annotation importer

Reads Highlight and Square annotations (and level-1 outline entries) back
out of a PDF. Geometry is returned in base space where the base size is
the page's own size in PDF points, so re-exporting an imported highlight
reproduces the original coordinates up to rounding.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

import fitz  # PyMuPDF

from ..config import CONFIG
from ..core.coordinate_transform import from_pdf_points
from ..core.models import Bookmark, Highlight, HighlightKind, new_highlight_id
from ..core.palette import nearest_palette_color
from .pdf_annotator import PdfSource, open_document, page_point_size, page_rect_to_pdf

logger = logging.getLogger(__name__)

SUPPORTED_TYPES = (fitz.PDF_ANNOT_HIGHLIGHT, fitz.PDF_ANNOT_SQUARE)


@dataclass
class ImportResult:
    highlights: List[Highlight] = field(default_factory=list)
    bookmarks: List[Bookmark] = field(default_factory=list)
    skipped: int = 0


def _quad_rects(annot: fitz.Annot) -> List[fitz.Rect]:
    """One page-space rect per QuadPoints quad, or the annotation Rect when there are none"""
    vertices = annot.vertices or []
    rects = []
    for i in range(0, len(vertices) - 3, 4):
        quad = [fitz.Point(p) for p in vertices[i:i + 4]]
        xs = [p.x for p in quad]
        ys = [p.y for p in quad]
        rects.append(fitz.Rect(min(xs), min(ys), max(xs), max(ys)))
    return rects or [annot.rect]


def _annotation_color(annot: fitz.Annot) -> Optional[str]:
    colors = annot.colors or {}
    rgb = colors.get("fill") or colors.get("stroke")
    if not rgb or len(rgb) < 3:
        return None
    return nearest_palette_color(rgb).value


def _read_annotation(page: fitz.Page, annot: fitz.Annot, owner_key: str, title: str) -> Highlight:
    """Convert a single annotation; raises ValueError on unusable geometry"""
    page_size = page_point_size(page)
    if annot.type[0] == fitz.PDF_ANNOT_HIGHLIGHT:
        kind = HighlightKind.TEXT
        page_rects = _quad_rects(annot)
    else:
        kind = HighlightKind.AREA
        page_rects = [annot.rect]

    rects = []
    for r in page_rects:
        if r.is_empty or r.is_infinite:
            continue
        pdf_rect = page_rect_to_pdf(page, r)
        rects.append(from_pdf_points(pdf_rect, page_size, page_size))
    if not rects:
        raise ValueError("annotation has no usable geometry")

    info = annot.info or {}
    # /NM is only a highlight id on annotations this package wrote
    highlight_id = info.get("id") if info.get("title") == title else None
    highlight_id = highlight_id or new_highlight_id()
    return Highlight(
        id=highlight_id,
        owner_key=owner_key,
        page=page.number + 1,
        kind=kind,
        rects=rects,
        color=_annotation_color(annot) or "",
        base_size=page_size,
        text=info.get("content") or "",
    )


def parse_annotated_pdf(source: PdfSource, owner_key: str, title: Optional[str] = None) -> ImportResult:
    """
    Recover highlights and bookmarks from a PDF

    Args:
        source: PDF path or bytes
        owner_key: Owner assigned to the recovered entities
        title: Author field marking annotations written by this package;
            their /NM is kept as the highlight id

    Returns:
        ImportResult; annotations of other subtypes are ignored and
        malformed ones are counted in ``skipped``

    Raises:
        AnnotationCodecError: If the PDF cannot be opened
    """
    title = title or CONFIG.annotation_title
    result = ImportResult()
    doc = open_document(source)
    try:
        for page in doc:
            for annot in page.annots(types=SUPPORTED_TYPES):
                try:
                    result.highlights.append(_read_annotation(page, annot, owner_key, title))
                except (RuntimeError, ValueError) as e:
                    result.skipped += 1
                    logger.warning(f"Skipping annotation on page {page.number + 1}: {e}")

        for level, entry_title, page_number, *_ in doc.get_toc():
            if level != 1 or page_number < 1:
                continue
            result.bookmarks.append(Bookmark.create(owner_key, page_number, entry_title))
    finally:
        doc.close()

    logger.info(f"Read {len(result.highlights)} highlight(s) and {len(result.bookmarks)} "
                f"bookmark(s), skipped {result.skipped}")
    return result


def import_into_repository(repository, owner_key: str, source: PdfSource,
                           bookmark_repository=None, title: Optional[str] = None) -> ImportResult:
    """
    Parse a PDF and store what it holds.

    Highlights whose id is already stored, or that duplicate a stored
    highlight, are not added again.

    Returns:
        ImportResult listing only the entities that were actually stored
    """
    parsed = parse_annotated_pdf(source, owner_key, title)
    stored = ImportResult(skipped=parsed.skipped)

    for highlight in parsed.highlights:
        if repository.get(highlight.id) is not None:
            continue
        if repository.add(highlight) is not None:
            stored.highlights.append(highlight)

    if bookmark_repository is not None:
        existing = {(b.page, b.title) for b in bookmark_repository.list_by_owner(owner_key)}
        for bookmark in parsed.bookmarks:
            if (bookmark.page, bookmark.title) in existing:
                continue
            stored.bookmarks.append(bookmark_repository.add(bookmark))
            existing.add((bookmark.page, bookmark.title))

    logger.info(f"Imported {len(stored.highlights)} highlight(s) into {owner_key}")
    return stored
