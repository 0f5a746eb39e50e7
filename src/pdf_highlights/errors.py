"""Exceptions raised by pdf_highlights"""

from typing import Optional


class HighlightError(Exception):
    """Base class for all pdf_highlights errors"""


class LocalStoreError(HighlightError):
    """The local store could not complete an operation"""


class RemoteSyncError(HighlightError):
    """A call to the remote annotation service failed"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class AnnotationCodecError(HighlightError):
    """A PDF could not be read or written as a whole"""
