"""Filesystem-backed job store with atomic mapping writes."""

import hashlib
import json
import logging
import os
import shutil
import tempfile
import threading
from typing import Any, BinaryIO, Dict, Optional, Type, TypeVar

from importers.errors import ContentStreamError
from .base import JobStore

logger = logging.getLogger('drive_content_importer.jobstore.local')

T = TypeVar('T')

MAPPINGS_FILE = 'mappings.json'
BLOBS_DIR = 'blobs'
COPY_BUFFER_SIZE = 1024 * 1024


class LocalJobStore(JobStore):
    """
    Stores job state under ``<directory>/<job_id>/``.

    Records live in ``mappings.json`` grouped by record type; content blobs
    live in ``blobs/`` under the SHA-256 of their content id.
    """

    def __init__(self, directory: str):
        self.directory = os.path.abspath(directory)
        self._lock = threading.Lock()
        os.makedirs(self.directory, exist_ok=True)
        logger.debug(f"Job store directory: {self.directory}")

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> 'LocalJobStore':
        """Create a store from the 'job_store' config section."""
        directory = config.get('job_store', {}).get('directory', './.job-store')
        return cls(directory)

    def find_data(self, job_id: str, key: str, data_type: Type[T]) -> Optional[T]:
        with self._lock:
            records = self._read_records(job_id)
        entry = records.get(data_type.__name__, {}).get(key)
        if entry is None:
            return None
        return data_type.from_dict(entry)

    def update(self, job_id: str, key: str, data: Any) -> None:
        with self._lock:
            records = self._read_records(job_id)
            records.setdefault(type(data).__name__, {})[key] = data.to_dict()
            self._write_records(job_id, records)
        logger.debug(f"Stored {type(data).__name__} for {job_id}/{key}")

    def get_stream(self, job_id: str, content_id: str) -> BinaryIO:
        blob_path = self._blob_path(job_id, content_id)
        try:
            return open(blob_path, 'rb')
        except OSError as e:
            raise ContentStreamError(
                f"Cannot open content '{content_id}' for job {job_id}: {e}"
            ) from e

    def create_stream(self, job_id: str, content_id: str, stream: BinaryIO) -> None:
        blob_path = self._blob_path(job_id, content_id)
        os.makedirs(os.path.dirname(blob_path), exist_ok=True)
        with open(blob_path, 'wb') as f:
            shutil.copyfileobj(stream, f, COPY_BUFFER_SIZE)
        logger.debug(f"Cached content '{content_id}' for job {job_id}")

    def remove_job(self, job_id: str) -> None:
        with self._lock:
            shutil.rmtree(self._job_dir(job_id), ignore_errors=True)
        logger.info(f"Removed job state for {job_id}")

    def _job_dir(self, job_id: str) -> str:
        return os.path.join(self.directory, str(job_id))

    def _blob_path(self, job_id: str, content_id: str) -> str:
        digest = hashlib.sha256(content_id.encode('utf-8')).hexdigest()
        return os.path.join(self._job_dir(job_id), BLOBS_DIR, digest)

    def _read_records(self, job_id: str) -> Dict[str, Dict[str, Any]]:
        path = os.path.join(self._job_dir(job_id), MAPPINGS_FILE)
        if not os.path.exists(path):
            return {}
        with open(path, 'r', encoding='utf-8') as f:
            return json.load(f)

    def _write_records(self, job_id: str, records: Dict[str, Dict[str, Any]]) -> None:
        """Write records via a temp file so readers never see a torn file."""
        job_dir = self._job_dir(job_id)
        os.makedirs(job_dir, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=job_dir, prefix='.mappings-', suffix='.tmp')
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(records, f, ensure_ascii=False, indent=2)
            os.replace(tmp_path, os.path.join(job_dir, MAPPINGS_FILE))
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise


__all__ = ['LocalJobStore']
