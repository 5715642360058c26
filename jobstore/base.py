"""Contract for the durable job store used by the importers."""

from abc import ABC, abstractmethod
from typing import Any, BinaryIO, Optional, Type, TypeVar

T = TypeVar('T')


class JobStore(ABC):
    """
    Durable keyed storage scoped by job.

    Records are plain objects exposing ``to_dict()`` and a ``from_dict()``
    classmethod; the store persists them under ``(job_id, key)``.
    """

    @abstractmethod
    def find_data(self, job_id: str, key: str, data_type: Type[T]) -> Optional[T]:
        """
        Look up a record previously stored under ``(job_id, key)``.

        Args:
            job_id: Import job identifier
            key: Record key (source item id)
            data_type: Record class used to rebuild the stored value

        Returns:
            The record, or None if nothing is stored under the key
        """

    @abstractmethod
    def update(self, job_id: str, key: str, data: Any) -> None:
        """Store ``data`` under ``(job_id, key)``, replacing any prior record."""

    @abstractmethod
    def get_stream(self, job_id: str, content_id: str) -> BinaryIO:
        """
        Open the cached content blob for reading.

        Raises:
            ContentStreamError: If the blob does not exist or cannot be opened
        """

    @abstractmethod
    def create_stream(self, job_id: str, content_id: str, stream: BinaryIO) -> None:
        """Cache a content blob for later upload."""

    @abstractmethod
    def remove_job(self, job_id: str) -> None:
        """Delete every record and blob belonging to the job."""
