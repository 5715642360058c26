"""Shared fixtures for importer tests."""

import io
import threading

import pytest

from importers import DriveApiError, DriveImporter
from jobstore import InMemoryJobStore
from models import ContainerResource, DigitalDocument, DocumentWrapper, TokensAndUrlAuthData


class FakeDriveClient:
    """Records folder and file creation instead of calling Drive."""

    def __init__(self):
        self.folders = []
        self.files = []
        self.failing_files = {}
        self.fail_folders = False
        self._counter = 0
        self._lock = threading.Lock()

    @property
    def call_count(self):
        return len(self.folders) + len(self.files)

    def _next_id(self, prefix):
        with self._lock:
            self._counter += 1
            return f"{prefix}-{self._counter}"

    def create_folder(self, name, parent_id=None):
        if self.fail_folders:
            raise DriveApiError("folder quota exceeded", status_code=403)
        folder_id = self._next_id("folder")
        with self._lock:
            self.folders.append({
                'id': folder_id,
                'name': name,
                'parents': [parent_id] if parent_id else []
            })
        return folder_id

    def create_file(self, metadata, stream=None):
        if metadata['name'] in self.failing_files:
            raise self.failing_files[metadata['name']]
        content = stream.read() if stream is not None else None
        file_id = self._next_id("file")
        with self._lock:
            self.files.append({'id': file_id, 'metadata': dict(metadata), 'content': content})
        return file_id

    def folder_named(self, name):
        return next(folder for folder in self.folders if folder['name'] == name)

    def file_named(self, name):
        return next(f for f in self.files if f['metadata']['name'] == name)


def make_file(job_store, job_id, name, content=b"", date_modified=None, original_encoding_format=None):
    """Build a DocumentWrapper and cache its content in the job store."""
    content_id = f"content-{name}"
    job_store.create_stream(job_id, content_id, io.BytesIO(content))
    return DocumentWrapper(
        cached_content_id=content_id,
        document=DigitalDocument(name=name, date_modified=date_modified),
        original_encoding_format=original_encoding_format
    )


@pytest.fixture
def job_id():
    return "job-123"


@pytest.fixture
def job_store():
    return InMemoryJobStore()


@pytest.fixture
def fake_client():
    return FakeDriveClient()


@pytest.fixture
def auth_data():
    return TokensAndUrlAuthData(access_token="token-abc")


@pytest.fixture
def config():
    return {
        'drive': {'root_folder_name': 'MigratedContent'},
        'import': {'max_workers': 1, 'continue_on_file_error': False, 'show_progress': False}
    }


@pytest.fixture
def importer(config, job_store, fake_client):
    return DriveImporter(config, job_store, client=fake_client)


@pytest.fixture
def root_resource():
    return ContainerResource(id="", name="export")
