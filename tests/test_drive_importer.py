"""Tests for the per-container Drive importer."""

import logging
import threading
import time

import pytest

from conftest import FakeDriveClient, make_file
from importers import DriveApiError, DriveImporter, MissingParentMappingError
from models import (
    ContainerResource,
    DigitalDocument,
    DocumentWrapper,
    FailureKind,
    FolderMapping,
    ImportStatus
)


class TestRootResolution:
    """Root containers map to a single MigratedContent folder."""

    @pytest.mark.parametrize("root_id", ["", "root"])
    def test_root_creates_migrated_content_folder(self, importer, fake_client, job_store, job_id, auth_data, root_id):
        result = importer.import_item(job_id, auth_data, ContainerResource(id=root_id, name="export"))

        assert result.status == ImportStatus.OK
        assert [f['name'] for f in fake_client.folders] == ["MigratedContent"]
        assert fake_client.folders[0]['parents'] == []

        mapping = job_store.find_data(job_id, "root", FolderMapping)
        assert mapping.new_id == fake_client.folders[0]['id']

    def test_root_reimport_reuses_folder(self, importer, fake_client, job_id, auth_data, root_resource):
        first = importer.import_item(job_id, auth_data, root_resource)
        second = importer.import_item(job_id, auth_data, root_resource)

        assert first.is_ok and second.is_ok
        assert len(fake_client.folders) == 1
        assert first.counts['folders_created'] == 1
        assert second.counts['folders_reused'] == 1

    def test_root_folder_name_from_config(self, job_store, fake_client, job_id, auth_data, root_resource):
        importer = DriveImporter({'drive': {'root_folder_name': 'Imported'}}, job_store, client=fake_client)

        importer.import_item(job_id, auth_data, root_resource)

        assert fake_client.folders[0]['name'] == "Imported"


class TestNonRootResolution:
    """Non-root containers need an existing parent mapping."""

    def test_missing_mapping_is_precondition_failure(self, importer, fake_client, job_id, auth_data):
        resource = ContainerResource(id="f1", name="Trip")
        resource.add_folder(ContainerResource(id="f2", name="Day 1"))

        result = importer.import_item(job_id, auth_data, resource)

        assert result.status == ImportStatus.ERROR
        assert result.failure_kind == FailureKind.PRECONDITION
        assert isinstance(result.error, MissingParentMappingError)
        assert not result.retryable
        assert fake_client.call_count == 0

    def test_missing_mapping_does_not_build_client(self, job_store, job_id, auth_data):
        class ExplodingFactory:
            def create_client(self, auth_data):
                raise AssertionError("client must not be built")

        importer = DriveImporter({}, job_store, credential_factory=ExplodingFactory())

        result = importer.import_item(job_id, auth_data, ContainerResource(id="f1", name="Trip"))

        assert result.failure_kind == FailureKind.PRECONDITION

    def test_existing_mapping_is_used_as_parent(self, importer, fake_client, job_store, job_id, auth_data):
        job_store.update(job_id, "f1", FolderMapping(old_id="f1", new_id="drive-f1"))
        resource = ContainerResource(id="f1", name="Trip")
        resource.add_folder(ContainerResource(id="f2", name="Day 1"))
        resource.add_file(make_file(job_store, job_id, "photo.txt", b"x"))

        result = importer.import_item(job_id, auth_data, resource)

        assert result.is_ok
        assert fake_client.folder_named("Day 1")['parents'] == ["drive-f1"]
        assert fake_client.file_named("photo.txt")['metadata']['parents'] == ["drive-f1"]

    def test_raise_for_status_reraises_original_error(self, importer, job_id, auth_data):
        result = importer.import_item(job_id, auth_data, ContainerResource(id="nope", name="x"))

        with pytest.raises(MissingParentMappingError):
            result.raise_for_status()


class TestChildImport:
    """Folders and files of a container go under the resolved parent."""

    def test_children_are_parented_under_resolved_folder(self, importer, fake_client, job_store, job_id, auth_data, root_resource):
        root_resource.add_folder(ContainerResource(id="a", name="A"))
        root_resource.add_folder(ContainerResource(id="b", name="B"))
        root_resource.add_file(make_file(job_store, job_id, "one.txt", b"1"))
        root_resource.add_file(make_file(job_store, job_id, "two.txt", b"2"))

        result = importer.import_item(job_id, auth_data, root_resource)

        parent = fake_client.folder_named("MigratedContent")['id']
        assert result.is_ok
        assert [f['name'] for f in fake_client.folders] == ["MigratedContent", "A", "B"]
        assert all(f['parents'] == [parent] for f in fake_client.folders[1:])
        assert all(f['metadata']['parents'] == [parent] for f in fake_client.files)
        assert result.counts == {
            'folders_created': 3,
            'folders_reused': 0,
            'files_uploaded': 2,
            'files_failed': 0
        }

    def test_end_to_end_trip_scenario(self, importer, fake_client, job_store, job_id, auth_data, root_resource):
        root_resource.add_folder(ContainerResource(id="f1", name="Trip"))
        root_resource.add_file(make_file(job_store, job_id, "a.txt", b"hello"))

        result = importer.import_item(job_id, auth_data, root_resource)

        root_folder = fake_client.folder_named("MigratedContent")
        trip = fake_client.folder_named("Trip")
        uploaded = fake_client.file_named("a.txt")

        assert result.status == ImportStatus.OK
        assert trip['parents'] == [root_folder['id']]
        assert job_store.find_data(job_id, "f1", FolderMapping).new_id == trip['id']
        assert uploaded['metadata']['parents'] == [root_folder['id']]
        assert uploaded['content'] == b"hello"

    def test_folder_failure_stops_before_files(self, importer, fake_client, job_store, job_id, auth_data):
        job_store.update(job_id, "f1", FolderMapping(old_id="f1", new_id="drive-f1"))
        resource = ContainerResource(id="f1", name="Trip")
        resource.add_folder(ContainerResource(id="f2", name="Day 1"))
        resource.add_file(make_file(job_store, job_id, "a.txt", b"a"))
        fake_client.fail_folders = True

        result = importer.import_item(job_id, auth_data, resource)

        assert result.failure_kind == FailureKind.TRANSPORT
        assert not result.retryable
        assert fake_client.files == []
        assert job_store.find_data(job_id, "f2", FolderMapping) is None


class TestFileFailures:
    """File errors are classified; isolation is opt-in."""

    def _resource(self, job_store, job_id):
        resource = ContainerResource(id="", name="export")
        for name in ("a.txt", "b.txt", "c.txt"):
            resource.add_file(make_file(job_store, job_id, name, name.encode()))
        return resource

    def test_first_failure_aborts_remaining_siblings(self, importer, fake_client, job_store, job_id, auth_data):
        fake_client.failing_files["b.txt"] = DriveApiError("backend error", status_code=503)

        result = importer.import_item(job_id, auth_data, self._resource(job_store, job_id))

        assert result.failure_kind == FailureKind.TRANSPORT
        assert result.retryable
        assert [f['metadata']['name'] for f in fake_client.files] == ["a.txt"]
        assert result.counts['files_uploaded'] == 1
        assert result.counts['files_failed'] == 1

    def test_continue_on_file_error_uploads_remaining_siblings(self, job_store, fake_client, job_id, auth_data):
        config = {'import': {'continue_on_file_error': True}}
        importer = DriveImporter(config, job_store, client=fake_client)
        fake_client.failing_files["b.txt"] = DriveApiError("backend error", status_code=503)

        result = importer.import_item(job_id, auth_data, self._resource(job_store, job_id))

        assert result.status == ImportStatus.ERROR
        assert [f['metadata']['name'] for f in fake_client.files] == ["a.txt", "c.txt"]
        assert result.failed_items[0]['name'] == "b.txt"
        assert result.counts['files_uploaded'] == 2

    def test_bad_timestamp_is_translation_failure(self, importer, job_store, job_id, auth_data, root_resource):
        root_resource.add_file(make_file(job_store, job_id, "a.txt", b"a", date_modified="yesterday"))

        result = importer.import_item(job_id, auth_data, root_resource)

        assert result.failure_kind == FailureKind.TRANSLATION

    def test_missing_content_is_content_failure(self, importer, job_id, auth_data, root_resource):
        root_resource.add_file(DocumentWrapper("missing", DigitalDocument(name="ghost.txt")))

        result = importer.import_item(job_id, auth_data, root_resource)

        assert result.failure_kind == FailureKind.CONTENT


class TestFailureLogging:

    def test_aborting_file_failure_is_logged_once(self, importer, fake_client, job_store, job_id, auth_data, root_resource, caplog):
        root_resource.add_file(make_file(job_store, job_id, "a.txt", b"a"))
        fake_client.failing_files["a.txt"] = DriveApiError("backend error", status_code=503)

        with caplog.at_level(logging.ERROR):
            importer.import_item(job_id, auth_data, root_resource)

        assert sum("backend error" in record.getMessage() for record in caplog.records) == 1

    def test_isolated_file_failure_is_logged_once(self, job_store, fake_client, job_id, auth_data, root_resource, caplog):
        importer = DriveImporter({'import': {'continue_on_file_error': True}}, job_store, client=fake_client)
        root_resource.add_file(make_file(job_store, job_id, "a.txt", b"a"))
        root_resource.add_file(make_file(job_store, job_id, "b.txt", b"b"))
        fake_client.failing_files["a.txt"] = DriveApiError("backend error", status_code=503)

        with caplog.at_level(logging.ERROR):
            result = importer.import_item(job_id, auth_data, root_resource)

        assert result.counts['files_uploaded'] == 1
        assert sum("backend error" in record.getMessage() for record in caplog.records) == 1


class TestParallelUploads:
    """Files may upload concurrently once sibling folders exist."""

    def test_folders_created_before_parallel_file_uploads(self, job_store, job_id, auth_data, root_resource):
        folder_count_at_upload = []

        class RecordingClient(FakeDriveClient):
            def create_file(self, metadata, stream=None):
                folder_count_at_upload.append(len(self.folders))
                return super().create_file(metadata, stream)

        client = RecordingClient()
        importer = DriveImporter({'import': {'max_workers': 4}}, job_store, client=client)
        for index in range(3):
            root_resource.add_folder(ContainerResource(id=f"f{index}", name=f"Folder {index}"))
        for index in range(6):
            root_resource.add_file(make_file(job_store, job_id, f"file{index}.txt", b"data"))

        result = importer.import_item(job_id, auth_data, root_resource)

        assert result.is_ok
        assert result.counts['files_uploaded'] == 6
        assert folder_count_at_upload == [4] * 6


class TestLazyClient:
    """The Drive client is built once, even under concurrent first use."""

    def test_client_built_exactly_once(self, job_store, auth_data):
        built = []

        class SlowFactory:
            def create_client(self, auth_data):
                time.sleep(0.05)
                client = FakeDriveClient()
                built.append(client)
                return client

        importer = DriveImporter({}, job_store, credential_factory=SlowFactory())
        clients = []
        threads = [
            threading.Thread(target=lambda: clients.append(importer.get_client(auth_data)))
            for _ in range(8)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(built) == 1
        assert all(client is built[0] for client in clients)

    def test_explicit_client_is_used(self, importer, fake_client, auth_data):
        assert importer.get_client(auth_data) is fake_client

    def test_job_store_is_required(self):
        with pytest.raises(ValueError):
            DriveImporter({}, None)


class TestConcurrentContainers:
    """Disjoint containers of one job may be imported at the same time."""

    def test_counts_stay_with_their_call(self, job_store, job_id, auth_data):
        client = FakeDriveClient()
        creator_held = threading.Event()
        reuse_done = threading.Event()

        def hold_after_create(record):
            # Keep the creating call parked until the reusing call has finished
            if record.getMessage().startswith("Created folder 'New'"):
                creator_held.set()
                reuse_done.wait(timeout=5)
            return True

        gate_logger = logging.getLogger('drive_content_importer.tests.concurrent_containers')
        gate_logger.setLevel(logging.INFO)
        gate_logger.addFilter(hold_after_create)
        importer = DriveImporter({}, job_store, client=client, logger=gate_logger)

        job_store.update(job_id, "cA", FolderMapping(old_id="cA", new_id="drive-cA"))
        job_store.update(job_id, "cB", FolderMapping(old_id="cB", new_id="drive-cB"))
        job_store.update(job_id, "cB-child", FolderMapping(old_id="cB-child", new_id="drive-cB-child"))
        creating = ContainerResource(id="cA", name="A")
        creating.add_folder(ContainerResource(id="cA-child", name="New"))
        reusing = ContainerResource(id="cB", name="B")
        reusing.add_folder(ContainerResource(id="cB-child", name="Old"))

        results = {}
        thread = threading.Thread(
            target=lambda: results.__setitem__('A', importer.import_item(job_id, auth_data, creating))
        )
        try:
            thread.start()
            assert creator_held.wait(timeout=5)
            results['B'] = importer.import_item(job_id, auth_data, reusing)
        finally:
            reuse_done.set()
            thread.join()
            gate_logger.removeFilter(hold_after_create)

        assert results['A'].is_ok and results['B'].is_ok
        assert results['A'].counts['folders_created'] == 1
        assert results['A'].counts['folders_reused'] == 0
        assert results['B'].counts['folders_created'] == 0
        assert results['B'].counts['folders_reused'] == 1
        assert [f['name'] for f in client.folders] == ["New"]
        assert job_store.find_data(job_id, "cA-child", FolderMapping).new_id == client.folder_named("New")['id']
        assert job_store.find_data(job_id, "cB-child", FolderMapping).new_id == "drive-cB-child"
