"""
File importer for Drive imports.

Uploads one exported document under a resolved Drive folder, streaming its
cached content and translating the document metadata Drive understands.
"""

import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jobstore.base import JobStore
from models import DigitalDocument, DocumentWrapper
from .drive_client import DriveClient
from .errors import MetadataTranslationError

# Only Drive-native formats are passed through; Drive infers everything else
NATIVE_MIME_PREFIX = "application/vnd.google-apps."

RFC3339_PATTERN = re.compile(
    r'^(\d{4})-(\d{2})-(\d{2})'
    r'(?:[Tt ](\d{2}):(\d{2}):(\d{2})(?:\.(\d+))?)?'
    r'([Zz]|[+-]\d{2}:\d{2})?$'
)


def parse_rfc3339(value: str) -> datetime:
    """
    Parse an RFC 3339 timestamp into an aware UTC datetime.

    A bare date means midnight; a missing offset means UTC.

    Raises:
        MetadataTranslationError: If the value is not a valid timestamp
    """
    match = RFC3339_PATTERN.match(value.strip())
    if not match:
        raise MetadataTranslationError(f"Invalid RFC 3339 timestamp: '{value}'")

    year, month, day, hour, minute, second, fraction, offset = match.groups()

    try:
        parsed = datetime(
            int(year), int(month), int(day),
            int(hour or 0), int(minute or 0), int(second or 0),
            int((fraction or '0')[:6].ljust(6, '0')),
            tzinfo=timezone.utc
        )
    except ValueError as e:
        raise MetadataTranslationError(f"Invalid RFC 3339 timestamp: '{value}' ({e})") from e

    if offset and offset not in ('Z', 'z'):
        sign = 1 if offset[0] == '+' else -1
        offset_hours, offset_minutes = int(offset[1:3]), int(offset[4:6])
        parsed -= sign * timedelta(hours=offset_hours, minutes=offset_minutes)

    return parsed


def format_rfc3339(value: datetime) -> str:
    """Format a UTC datetime the way Drive reports modifiedTime."""
    value = value.astimezone(timezone.utc)
    if value.microsecond:
        return value.strftime('%Y-%m-%dT%H:%M:%S.') + f"{value.microsecond // 1000:03d}Z"
    return value.strftime('%Y-%m-%dT%H:%M:%SZ')


def build_file_metadata(
    document: DigitalDocument,
    parent_id: Optional[str],
    original_encoding_format: Optional[str] = None
) -> Dict[str, Any]:
    """
    Translate an exported document into a Drive file resource.

    Args:
        document: Exported document metadata
        parent_id: Drive folder to place the file in
        original_encoding_format: Mime type the document had at the source

    Returns:
        Drive file metadata dictionary
    """
    metadata: Dict[str, Any] = {'name': document.name}

    if parent_id:
        metadata['parents'] = [parent_id]

    if document.date_modified:
        metadata['modifiedTime'] = format_rfc3339(parse_rfc3339(document.date_modified))

    if original_encoding_format and original_encoding_format.startswith(NATIVE_MIME_PREFIX):
        metadata['mimeType'] = original_encoding_format

    return metadata


class FileImporter:
    """Uploads single documents with their content."""

    def __init__(self, job_store: JobStore, logger: Optional[logging.Logger] = None):
        self.job_store = job_store
        self.logger = logger or logging.getLogger('drive_content_importer.importers.file_importer')

    def import_file(
        self,
        client: DriveClient,
        job_id: str,
        wrapper: DocumentWrapper,
        parent_id: Optional[str]
    ) -> None:
        """
        Upload one document under ``parent_id``.

        The content stream is opened right before the upload and closed on
        every exit path. Nothing is recorded for files.

        Raises:
            ContentStreamError: If the cached content cannot be opened or read
            MetadataTranslationError: If the modification time is malformed
            DriveApiError: If the upload fails
        """
        metadata = build_file_metadata(
            wrapper.document,
            parent_id,
            wrapper.original_encoding_format
        )

        with self.job_store.get_stream(job_id, wrapper.cached_content_id) as stream:
            file_id = client.create_file(metadata, stream)

        self.logger.info(f"Uploaded file '{wrapper.name}' ({file_id}) under {parent_id or 'root'}")


__all__ = [
    'FileImporter',
    'build_file_metadata',
    'parse_rfc3339',
    'format_rfc3339',
    'NATIVE_MIME_PREFIX'
]
