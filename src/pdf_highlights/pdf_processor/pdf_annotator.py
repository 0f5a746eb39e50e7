"""
PDF Annotator - Bake highlights into PDF files
This module uses PyMuPDF (fitz) to write stored highlights as native PDF
annotations: text highlights become Highlight annotations with QuadPoints,
area highlights become borderless Square annotations. Bookmarks become
level-1 outline entries.
"""

import fitz  # PyMuPDF
from collections import defaultdict
from pathlib import Path
from typing import Dict, List, Optional, Union
import logging

from ..config import CONFIG
from ..core.coordinate_transform import normalize_base_size, to_pdf_points
from ..core.models import Bookmark, Highlight, HighlightKind, Rect, Size
from ..core.palette import hex_to_rgb01, opacity_for
from ..errors import AnnotationCodecError

logger = logging.getLogger(__name__)

PdfSource = Union[str, Path, bytes]


def open_document(source: PdfSource) -> fitz.Document:
    """
    Open a PDF from a path or from raw bytes

    Raises:
        AnnotationCodecError: If the document cannot be opened
    """
    try:
        if isinstance(source, (bytes, bytearray)):
            doc = fitz.open(stream=bytes(source), filetype="pdf")
        else:
            doc = fitz.open(str(source))
    except Exception as e:
        raise AnnotationCodecError(f"Cannot open PDF: {e}") from e
    if not doc.is_pdf or doc.page_count == 0:
        doc.close()
        raise AnnotationCodecError("Source document is not a PDF with pages")
    return doc


def page_point_size(page: fitz.Page) -> Size:
    """Unrotated page size in PDF points"""
    box = page.mediabox
    return Size(box.width, box.height)


def pdf_rect_to_page(page: fitz.Page, rect: Rect) -> fitz.Rect:
    """Map a rect in PDF space (origin bottom-left of the mediabox) to PyMuPDF page coordinates"""
    box = page.mediabox
    pdf = fitz.Rect(rect.x + box.x0, rect.y + box.y0,
                    rect.right + box.x0, rect.bottom + box.y0)
    return pdf * page.transformation_matrix


def page_rect_to_pdf(page: fitz.Page, rect: fitz.Rect) -> Rect:
    """Inverse of :func:`pdf_rect_to_page`"""
    box = page.mediabox
    pdf = fitz.Rect(rect) * ~page.transformation_matrix
    pdf.normalize()
    return Rect(pdf.x0 - box.x0, pdf.y0 - box.y0, pdf.width, pdf.height)


class HighlightAnnotator:
    """Class to handle embedding highlights into PDF files"""

    def __init__(self, source: PdfSource, title: Optional[str] = None):
        self.source = source
        self.title = title or CONFIG.annotation_title
        self.doc: Optional[fitz.Document] = None

    def open_pdf(self) -> None:
        """Open the PDF document for processing"""
        self.doc = open_document(self.source)

    def close_pdf(self):
        """Close the PDF document"""
        if self.doc:
            self.doc.close()
            self.doc = None

    def add_highlights(self, highlights: List[Highlight]) -> int:
        """
        Add highlights to the PDF, grouped by page

        Args:
            highlights: Highlights in base space

        Returns:
            Number of annotations successfully added
        """
        if not self.doc:
            raise AnnotationCodecError("PDF document not opened")

        by_page: Dict[int, List[Highlight]] = defaultdict(list)
        for h in highlights:
            by_page[h.page].append(h)

        added_count = 0
        for page_number in sorted(by_page):
            if page_number < 1 or page_number > len(self.doc):
                logger.warning(f"Skipping {len(by_page[page_number])} highlight(s) "
                               f"on missing page {page_number}")
                continue
            page = self.doc[page_number - 1]
            for highlight in by_page[page_number]:
                try:
                    self._add_single_highlight(page, highlight)
                    added_count += 1
                except (RuntimeError, ValueError) as e:
                    logger.warning(f"Failed to add highlight {highlight.id} on page {page_number}: {e}")

        logger.info(f"Added {added_count} of {len(highlights)} highlights")
        return added_count

    def _page_rects(self, page: fitz.Page, highlight: Highlight) -> List[fitz.Rect]:
        """Highlight rects converted to PDF points, then to PyMuPDF page coordinates"""
        page_size = page_point_size(page)
        highlight = normalize_base_size(highlight, page_size, CONFIG.legacy_ratio_threshold)
        return [
            pdf_rect_to_page(page, to_pdf_points(r, highlight.base_size, page_size))
            for r in highlight.rects
        ]

    def _add_single_highlight(self, page: fitz.Page, highlight: Highlight) -> fitz.Annot:
        """
        Write one highlight as a native annotation.

        Opacity is the palette opacity of the highlight's color (0.3 or 0.4),
        not one fixed value; colors outside the palette use the configured
        default opacity.
        """
        rects = self._page_rects(page, highlight)
        rgb = list(hex_to_rgb01(highlight.color))

        if highlight.kind is HighlightKind.TEXT:
            # one quad per line rect: top-left, top-right, bottom-left, bottom-right
            annot = page.add_highlight_annot(quads=[r.quad for r in rects])
            annot.set_colors(stroke=rgb)
        else:
            annot = page.add_rect_annot(rects[0])
            annot.set_colors(stroke=rgb, fill=rgb)
            annot.set_border(width=0)

        annot.set_info(title=self.title, content=highlight.text or "")
        annot.set_opacity(opacity_for(highlight.color, CONFIG.default_opacity))
        annot.update()
        if highlight.kind is HighlightKind.AREA:
            # update() grows /Rect by the border width; keep the exact area
            annot.set_rect(rects[0])
        # /NM carries the highlight id for round-trip identification
        self.doc.xref_set_key(annot.xref, "NM", fitz.get_pdf_str(highlight.id))
        return annot

    def add_bookmarks(self, bookmarks: List[Bookmark]) -> int:
        """Append bookmarks as level-1 outline entries"""
        if not self.doc:
            raise AnnotationCodecError("PDF document not opened")
        if not bookmarks:
            return 0

        toc = self.doc.get_toc()
        added = 0
        for bookmark in sorted(bookmarks, key=lambda b: (b.page, b.created_at)):
            if bookmark.page < 1 or bookmark.page > len(self.doc):
                logger.warning(f"Skipping bookmark '{bookmark.title}' on missing page {bookmark.page}")
                continue
            toc.append([1, bookmark.title, bookmark.page])
            added += 1
        self.doc.set_toc(toc)
        logger.info(f"Added {added} bookmark(s) to the outline")
        return added

    def to_bytes(self) -> bytes:
        if not self.doc:
            raise AnnotationCodecError("No document to write")
        return self.doc.tobytes(garbage=4, deflate=True, clean=True)

    def save_pdf(self, output_path: Optional[str] = None) -> Path:
        if not self.doc:
            raise AnnotationCodecError("No document to save")

        if output_path:
            save_path = Path(output_path)
        elif isinstance(self.source, (str, Path)):
            source = Path(self.source)
            save_path = source.with_name(f"{source.stem}_highlighted.pdf")
        else:
            raise AnnotationCodecError("An output path is required for in-memory documents")

        self.doc.save(str(save_path), garbage=4, deflate=True, clean=True)
        logger.info(f"PDF saved to {save_path}")
        return save_path


def export_highlights(source: PdfSource, highlights: List[Highlight],
                      bookmarks: Optional[List[Bookmark]] = None,
                      title: Optional[str] = None) -> bytes:
    """
    Bake highlights (and optionally bookmarks) into a copy of a PDF.

    The source is left untouched; the annotated document is returned as bytes.
    """
    annotator = HighlightAnnotator(source, title=title)
    annotator.open_pdf()
    try:
        annotator.add_highlights(highlights)
        annotator.add_bookmarks(bookmarks or [])
        return annotator.to_bytes()
    finally:
        annotator.close_pdf()


def export_owner_highlights(repository, owner_key: str, source: PdfSource,
                            bookmark_repository=None, title: Optional[str] = None) -> bytes:
    """
    Export everything stored for a document.

    Args:
        repository: HighlightRepository to read from (duplicates resolved)
        owner_key: Document whose highlights are exported
        source: Original PDF as a path or bytes
        bookmark_repository: Optional BookmarkRepository; its entries go to the outline
        title: Annotation author field, defaults to the configured title

    Returns:
        The annotated PDF
    """
    highlights = repository.list_deduplicated(owner_key)
    bookmarks = bookmark_repository.list_by_owner(owner_key) if bookmark_repository else []
    logger.info(f"Exporting {len(highlights)} highlight(s) and {len(bookmarks)} bookmark(s) "
                f"for {owner_key}")
    return export_highlights(source, highlights, bookmarks, title=title)


def annotate_pdf_file(pdf_path: str, highlights: List[Highlight], output_path: Optional[str] = None,
                      bookmarks: Optional[List[Bookmark]] = None) -> bool:
    """
    Convenience wrapper to annotate a PDF file on disk.

    Args:
        pdf_path: Path to the input PDF file.
        highlights: Highlights to bake in.
        output_path: Optional path to write the annotated PDF. If None, writes next to input.
        bookmarks: Optional bookmarks for the outline.

    Returns:
        True if the annotated PDF was saved and at least one highlight was added; False otherwise.
    """
    annotator = HighlightAnnotator(pdf_path)
    annotator.open_pdf()
    try:
        added = annotator.add_highlights(highlights or [])
        annotator.add_bookmarks(bookmarks or [])
        if added <= 0:
            logger.warning("No highlights were added to the PDF; not saving output.")
            return False
        annotator.save_pdf(output_path)
        return True
    finally:
        annotator.close_pdf()
