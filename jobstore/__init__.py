"""Job store package for durable per-job import state.

The job store is the single owner of identifier mappings and cached content
blobs for an import job.

Package Structure:
- base: JobStore contract consumed by the importers
- local_job_store: Filesystem-backed store (mappings.json + blobs/ per job)
- memory_job_store: In-process store for tests and single-run imports
"""

from .base import JobStore
from .local_job_store import LocalJobStore
from .memory_job_store import InMemoryJobStore

__all__ = [
    'JobStore',
    'LocalJobStore',
    'InMemoryJobStore'
]
