"""Import package for exported content trees into Google Drive.

This package recreates an exported folder/document tree in Drive, keeping a
per-job mapping from source folder ids to the Drive folders created for them.

Package Structure:
- drive_client: REST client for the Drive v3 API (folders, resumable uploads)
- credential_factory: Builds authenticated Drive clients from job auth data
- id_mapping_tracker: Reads/writes source -> Drive folder id mappings
- folder_importer: Creates (or reuses) one Drive folder and records its mapping
- file_importer: Uploads one document with translated metadata
- drive_importer: Imports one container node (folders first, then files)
- errors: Classified failures (precondition, transport, translation, content)

Configuration Referenced:
- drive.*: API endpoints, root folder name, upload chunk size
- import.*: Worker count and per-file error isolation
- advanced.*: Timeouts, retries and rate limiting
"""

from .drive_client import DriveClient, FOLDER_MIME_TYPE
from .credential_factory import DriveCredentialFactory
from .id_mapping_tracker import IdMappingTracker
from .folder_importer import FolderImporter
from .file_importer import FileImporter, build_file_metadata
from .drive_importer import DriveImporter
from .errors import (
    ImportFailure,
    MissingParentMappingError,
    DriveApiError,
    MetadataTranslationError,
    ContentStreamError
)

__all__ = [
    'DriveClient',
    'FOLDER_MIME_TYPE',
    'DriveCredentialFactory',
    'IdMappingTracker',
    'FolderImporter',
    'FileImporter',
    'build_file_metadata',
    'DriveImporter',
    # Errors
    'ImportFailure',
    'MissingParentMappingError',
    'DriveApiError',
    'MetadataTranslationError',
    'ContentStreamError'
]
