"""
Drive importer for exported content trees.

This module provides the per-container import entry point: it resolves the
Drive folder a container maps to, creates the container's sub-folders and
uploads its files into that folder.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional

from jobstore.base import JobStore
from models import ROOT_ID, ContainerResource, DocumentWrapper, ImportResult, TokensAndUrlAuthData, new_counts
from .credential_factory import DriveCredentialFactory
from .drive_client import DriveClient
from .errors import ImportFailure, MissingParentMappingError
from .file_importer import FileImporter
from .folder_importer import FolderImporter
from .id_mapping_tracker import IdMappingTracker

DEFAULT_ROOT_FOLDER_NAME = "MigratedContent"


class DriveImporter:
    """Imports one container (folder node) of an exported tree into Drive."""

    def __init__(
        self,
        config: Dict[str, Any],
        job_store: JobStore,
        credential_factory: Optional[DriveCredentialFactory] = None,
        client: Optional[DriveClient] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize Drive importer.

        Args:
            config: Configuration dictionary
            job_store: Store holding folder mappings and cached content
            credential_factory: Builds the Drive client on first use
            client: Ready-made Drive client; skips lazy construction
            logger: Optional logger instance
        """
        if job_store is None:
            raise ValueError("Job store can't be None")

        self.config = config
        self.job_store = job_store
        self.credential_factory = credential_factory or DriveCredentialFactory(config)
        self.logger = logger or logging.getLogger('drive_content_importer.importers.drive_importer')

        self._client = client
        self._client_lock = threading.Lock()

        self.id_mapper = IdMappingTracker(job_store, self.logger)
        self.folder_importer = FolderImporter(self.id_mapper, self.logger)
        self.file_importer = FileImporter(job_store, self.logger)

        drive_config = config.get('drive', {})
        import_config = config.get('import', {})
        self.root_folder_name = drive_config.get('root_folder_name', DEFAULT_ROOT_FOLDER_NAME)
        self.max_workers = import_config.get('max_workers', 1)
        self.continue_on_file_error = import_config.get('continue_on_file_error', False)

    def get_client(self, auth_data: TokensAndUrlAuthData) -> DriveClient:
        """Return the Drive client, building it once on first use."""
        with self._client_lock:
            if self._client is None:
                self._client = self.credential_factory.create_client(auth_data)
                self.logger.debug("Drive client created")
            return self._client

    def import_item(
        self,
        job_id: str,
        auth_data: TokensAndUrlAuthData,
        resource: ContainerResource
    ) -> ImportResult:
        """
        Import one container: its sub-folders first, then its files.

        Args:
            job_id: Import job identifier
            auth_data: Destination credentials
            resource: Container whose direct children are imported

        Returns:
            ImportResult; on failure it carries the first classified error
        """
        counts = new_counts()
        failed_items: List[Dict[str, str]] = []

        try:
            parent_id = self._resolve_parent(job_id, auth_data, resource, counts)
            client = self.get_client(auth_data)

            for folder in resource.folders:
                _, created = self.folder_importer.import_folder(
                    client, job_id, folder.name, folder.id, parent_id
                )
                self._count_folder(counts, created)

            first_error = self._import_files(client, job_id, resource.files, parent_id, counts, failed_items)
            if first_error is not None:
                return ImportResult.from_error(first_error, counts, failed_items)

        except ImportFailure as e:
            self.logger.error(f"Import of '{resource.name or resource.id}' failed: {e}")
            return ImportResult.from_error(e, counts, failed_items)

        return ImportResult.ok(counts)

    def _resolve_parent(
        self,
        job_id: str,
        auth_data: TokensAndUrlAuthData,
        resource: ContainerResource,
        counts: Dict[str, int]
    ) -> str:
        """Find (or, for the tree root, create) the Drive folder for a container."""
        if resource.is_root():
            client = self.get_client(auth_data)
            parent_id, created = self.folder_importer.import_folder(
                client, job_id, self.root_folder_name, ROOT_ID, None
            )
            self._count_folder(counts, created)
            return parent_id

        parent_id = self.id_mapper.get_destination_id(job_id, resource.id)
        if parent_id is None:
            raise MissingParentMappingError(job_id, resource.id, resource.name)

        self.logger.info(f"Got parent id {parent_id} for old id {resource.id} named: {resource.name}")
        return parent_id

    @staticmethod
    def _count_folder(counts: Dict[str, int], created: bool) -> None:
        if created:
            counts['folders_created'] += 1
        else:
            counts['folders_reused'] += 1

    def _import_files(
        self,
        client: DriveClient,
        job_id: str,
        files: List[DocumentWrapper],
        parent_id: str,
        counts: Dict[str, int],
        failed_items: List[Dict[str, str]]
    ) -> Optional[ImportFailure]:
        """
        Upload the container's files.

        Returns:
            The first failure when continue_on_file_error is set, else None;
            without it the first failure is raised
        """
        if not files:
            return None

        if self.max_workers > 1 and len(files) > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                futures = [
                    executor.submit(self.file_importer.import_file, client, job_id, wrapper, parent_id)
                    for wrapper in files
                ]
                outcomes = [(wrapper, future.exception()) for wrapper, future in zip(files, futures)]
        else:
            outcomes = self._import_files_sequentially(client, job_id, files, parent_id)

        first_error: Optional[BaseException] = None
        for wrapper, error in outcomes:
            if error is None:
                counts['files_uploaded'] += 1
                continue

            counts['files_failed'] += 1
            failed_items.append({'name': wrapper.name, 'error': str(error)})
            if first_error is None:
                first_error = error
                if not self._isolates(error):
                    # import_item reports the error it re-raises
                    continue
            self.logger.error(f"Failed to upload file '{wrapper.name}': {error}")

        if first_error is None:
            return None
        if not self._isolates(first_error):
            raise first_error
        return first_error

    def _isolates(self, error: BaseException) -> bool:
        """Whether a file failure is recorded and the remaining files still tried."""
        return self.continue_on_file_error and isinstance(error, ImportFailure)

    def _import_files_sequentially(
        self,
        client: DriveClient,
        job_id: str,
        files: List[DocumentWrapper],
        parent_id: str
    ):
        outcomes = []
        for wrapper in files:
            try:
                self.file_importer.import_file(client, job_id, wrapper, parent_id)
            except ImportFailure as e:
                outcomes.append((wrapper, e))
                if not self.continue_on_file_error:
                    break
                continue
            outcomes.append((wrapper, None))
        return outcomes


__all__ = ['DriveImporter', 'DEFAULT_ROOT_FOLDER_NAME']
