"""Creates one Drive folder per source folder and records its mapping."""

import logging
from typing import Optional, Tuple

from .drive_client import DriveClient
from .id_mapping_tracker import IdMappingTracker


class FolderImporter:
    """
    Imports single folders.

    A folder already mapped for the job is reused instead of created again,
    so re-running an interrupted job never duplicates folders.
    """

    def __init__(self, id_mapper: IdMappingTracker, logger: Optional[logging.Logger] = None):
        self.id_mapper = id_mapper
        self.logger = logger or logging.getLogger('drive_content_importer.importers.folder_importer')

    def import_folder(
        self,
        client: DriveClient,
        job_id: str,
        name: str,
        source_id: str,
        parent_id: Optional[str]
    ) -> Tuple[str, bool]:
        """
        Create (or reuse) the Drive folder for a source folder.

        Args:
            client: Drive client to create the folder with
            job_id: Import job identifier
            name: Folder display name
            source_id: Folder id from the export
            parent_id: Drive parent id, root level when empty

        Returns:
            Tuple of (Drive id of the folder, True if it was created by this call)

        Raises:
            DriveApiError: If the folder cannot be created; no mapping is written
        """
        existing_id = self.id_mapper.get_destination_id(job_id, source_id)
        if existing_id:
            self.logger.info(f"Reusing folder '{name}' ({source_id} -> {existing_id})")
            return existing_id, False

        new_id = client.create_folder(name, parent_id)
        self.id_mapper.add_folder_mapping(job_id, source_id, new_id)

        self.logger.info(f"Created folder '{name}' ({source_id} -> {new_id}) under {parent_id or 'root'}")
        return new_id, True


__all__ = ['FolderImporter']
