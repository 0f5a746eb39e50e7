"""
PDF Highlights

Draw text/area highlights over rendered PDF pages, keep them in an
offline-first local store, synchronize them with a remote annotation
service, and bake them into (or recover them from) the PDF file itself as
native Highlight/Square annotations.
"""

__version__ = "1.0.0"
__license__ = "GPL-3.0-or-later"

# Package metadata
__all__ = [
    "__version__",
    "__license__",
]
