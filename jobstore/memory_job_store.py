"""In-process job store."""

import io
import logging
import threading
from typing import Any, BinaryIO, Dict, Optional, Type, TypeVar

from importers.errors import ContentStreamError
from .base import JobStore

logger = logging.getLogger('drive_content_importer.jobstore.memory')

T = TypeVar('T')


class InMemoryJobStore(JobStore):
    """Keeps records and blobs in dictionaries; state dies with the process."""

    def __init__(self):
        self._records: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._blobs: Dict[str, Dict[str, bytes]] = {}
        self._lock = threading.Lock()

    def find_data(self, job_id: str, key: str, data_type: Type[T]) -> Optional[T]:
        with self._lock:
            entry = self._records.get(job_id, {}).get(data_type.__name__, {}).get(key)
        return data_type.from_dict(entry) if entry is not None else None

    def update(self, job_id: str, key: str, data: Any) -> None:
        with self._lock:
            job_records = self._records.setdefault(job_id, {})
            job_records.setdefault(type(data).__name__, {})[key] = data.to_dict()

    def get_stream(self, job_id: str, content_id: str) -> BinaryIO:
        with self._lock:
            content = self._blobs.get(job_id, {}).get(content_id)
        if content is None:
            raise ContentStreamError(f"No content '{content_id}' cached for job {job_id}")
        return io.BytesIO(content)

    def create_stream(self, job_id: str, content_id: str, stream: BinaryIO) -> None:
        content = stream.read()
        with self._lock:
            self._blobs.setdefault(job_id, {})[content_id] = content

    def remove_job(self, job_id: str) -> None:
        with self._lock:
            self._records.pop(job_id, None)
            self._blobs.pop(job_id, None)
        logger.debug(f"Removed job state for {job_id}")


__all__ = ['InMemoryJobStore']
