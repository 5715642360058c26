"""
ID mapping tracker for Drive imports.

This module reads and writes the mapping between source folder ids and
the Drive folder ids created for them, scoped by job.
"""

import logging
from typing import Optional

from jobstore.base import JobStore
from models import FolderMapping


class IdMappingTracker:
    """Tracks source to destination folder id mappings in the job store."""

    def __init__(self, job_store: JobStore, logger: Optional[logging.Logger] = None):
        """
        Initialize ID mapping tracker.

        Args:
            job_store: Durable store holding the mappings
            logger: Optional logger instance (defaults to module logger)
        """
        self.job_store = job_store
        self.logger = logger or logging.getLogger('drive_content_importer.importers.id_mapping_tracker')

    def add_folder_mapping(self, job_id: str, source_id: str, destination_id: str) -> FolderMapping:
        """
        Store mapping for a source folder to its Drive folder.

        Args:
            job_id: Import job identifier
            source_id: Folder id from the export
            destination_id: Id of the folder created in Drive

        Returns:
            The stored mapping
        """
        mapping = FolderMapping(old_id=source_id, new_id=destination_id)
        self.job_store.update(job_id, source_id, mapping)

        self.logger.debug(f"Folder mapping added: {source_id} -> {destination_id} (job {job_id})")
        return mapping

    def get_destination_id(self, job_id: str, source_id: str) -> Optional[str]:
        """
        Get the Drive folder id for a source folder id.

        Returns:
            Destination id or None if the folder was never imported
        """
        mapping = self.job_store.find_data(job_id, source_id, FolderMapping)
        return mapping.new_id if mapping else None

    def folder_exists(self, job_id: str, source_id: str) -> bool:
        """Check if a source folder has been mapped."""
        return self.get_destination_id(job_id, source_id) is not None


__all__ = ['IdMappingTracker']
