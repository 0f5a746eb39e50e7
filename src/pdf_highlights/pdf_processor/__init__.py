"""PDF annotation codec: export of highlights to native annotations and import back"""

from .annotation_importer import ImportResult, import_into_repository, parse_annotated_pdf
from .pdf_annotator import (
    HighlightAnnotator,
    annotate_pdf_file,
    export_highlights,
    export_owner_highlights,
)

__all__ = [
    "HighlightAnnotator",
    "ImportResult",
    "annotate_pdf_file",
    "export_highlights",
    "export_owner_highlights",
    "import_into_repository",
    "parse_annotated_pdf",
]
