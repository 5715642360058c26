"""
Error taxonomy for the Drive import core.

Every failure that can end an import call is one of four kinds, so callers
can tell retryable transport problems from fatal ones.
"""

from typing import Optional

from models import FailureKind


class ImportFailure(Exception):
    """Base class for classified import failures."""

    kind: FailureKind = FailureKind.TRANSPORT

    @property
    def retryable(self) -> bool:
        return False


class MissingParentMappingError(ImportFailure):
    """A container's parent folder has no mapping in the job store."""

    kind = FailureKind.PRECONDITION

    def __init__(self, job_id: str, source_id: str, name: str = ''):
        self.job_id = job_id
        self.source_id = source_id
        self.name = name
        super().__init__(
            f"No folder mapping found for '{source_id}' ({name or 'unnamed'}) in job {job_id}"
        )


class DriveApiError(ImportFailure):
    """The destination API or the transport under it failed."""

    kind = FailureKind.TRANSPORT

    def __init__(self, message: str, status_code: Optional[int] = None, response_text: str = ''):
        """
        Initialize API error.

        Args:
            message: Human-readable error message
            status_code: HTTP status code, None for connection failures
            response_text: Raw response body, if any
        """
        self.message = message
        self.status_code = status_code
        self.response_text = response_text
        super().__init__(message)

    @property
    def retryable(self) -> bool:
        if self.status_code is None:
            return True
        return self.status_code == 429 or self.status_code >= 500

    def __str__(self) -> str:
        return f"DriveApiError(status={self.status_code}, message={self.message})"


class MetadataTranslationError(ImportFailure):
    """A document's metadata could not be translated (e.g. bad timestamp)."""

    kind = FailureKind.TRANSLATION


class ContentStreamError(ImportFailure):
    """A file's cached content could not be opened or read."""

    kind = FailureKind.CONTENT


__all__ = [
    'ImportFailure',
    'MissingParentMappingError',
    'DriveApiError',
    'MetadataTranslationError',
    'ContentStreamError'
]
