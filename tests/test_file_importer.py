"""Tests for file metadata translation and single-file uploads."""

import io

import pytest

from conftest import make_file
from importers import FileImporter, MetadataTranslationError, build_file_metadata
from importers.errors import ContentStreamError
from importers.file_importer import format_rfc3339, parse_rfc3339
from models import DigitalDocument, DocumentWrapper


class TestBuildFileMetadata:
    """Translation of exported document metadata into Drive fields."""

    def test_name_and_parent(self):
        metadata = build_file_metadata(DigitalDocument(name="a.txt"), "parent-1")

        assert metadata == {'name': "a.txt", 'parents': ["parent-1"]}

    def test_no_parent_when_empty(self):
        metadata = build_file_metadata(DigitalDocument(name="a.txt"), "")

        assert 'parents' not in metadata

    def test_modified_time_is_preserved(self):
        document = DigitalDocument(name="a.txt", date_modified="2023-01-01T00:00:00Z")

        metadata = build_file_metadata(document, "p")

        assert metadata['modifiedTime'] == "2023-01-01T00:00:00Z"

    def test_empty_modified_time_is_omitted(self):
        metadata = build_file_metadata(DigitalDocument(name="a.txt", date_modified=""), "p")

        assert 'modifiedTime' not in metadata

    def test_malformed_modified_time_raises(self):
        document = DigitalDocument(name="a.txt", date_modified="01/02/2023")

        with pytest.raises(MetadataTranslationError):
            build_file_metadata(document, "p")

    def test_native_mime_type_is_kept(self):
        metadata = build_file_metadata(
            DigitalDocument(name="doc"), "p", "application/vnd.google-apps.document"
        )

        assert metadata['mimeType'] == "application/vnd.google-apps.document"

    def test_content_mime_type_is_dropped(self):
        metadata = build_file_metadata(DigitalDocument(name="pic.jpg"), "p", "image/jpeg")

        assert 'mimeType' not in metadata


class TestRfc3339:

    def test_offset_is_normalized_to_utc(self):
        assert format_rfc3339(parse_rfc3339("2023-01-01T02:30:00+02:00")) == "2023-01-01T00:30:00Z"

    def test_fraction_keeps_milliseconds(self):
        assert format_rfc3339(parse_rfc3339("2023-06-15T10:20:30.123456Z")) == "2023-06-15T10:20:30.123Z"

    def test_date_only_means_midnight(self):
        assert format_rfc3339(parse_rfc3339("2023-06-15")) == "2023-06-15T00:00:00Z"

    @pytest.mark.parametrize("value", ["2023-13-01T00:00:00Z", "2023-01-01T25:00:00Z", "not a date"])
    def test_invalid_values_raise(self, value):
        with pytest.raises(MetadataTranslationError):
            parse_rfc3339(value)


class TestFileImporter:
    """Uploading one document through the Drive client."""

    def test_uploads_content_and_metadata(self, fake_client, job_store, job_id):
        wrapper = make_file(
            job_store, job_id, "notes.txt", b"hello",
            date_modified="2023-01-01T00:00:00Z",
            original_encoding_format="text/plain"
        )

        FileImporter(job_store).import_file(fake_client, job_id, wrapper, "parent-1")

        uploaded = fake_client.file_named("notes.txt")
        assert uploaded['content'] == b"hello"
        assert uploaded['metadata'] == {
            'name': "notes.txt",
            'parents': ["parent-1"],
            'modifiedTime': "2023-01-01T00:00:00Z"
        }

    def test_stream_closed_after_success_and_failure(self, fake_client, job_store, job_id):
        opened = []

        class TrackingStore(type(job_store)):
            def get_stream(self, job_id, content_id):
                stream = super().get_stream(job_id, content_id)
                opened.append(stream)
                return stream

        store = TrackingStore()
        store.create_stream(job_id, "c1", io.BytesIO(b"ok"))
        store.create_stream(job_id, "c2", io.BytesIO(b"boom"))
        importer = FileImporter(store)
        fake_client.failing_files["bad.txt"] = ContentStreamError("read failed")

        importer.import_file(fake_client, job_id, DocumentWrapper("c1", DigitalDocument("good.txt")), "p")
        with pytest.raises(ContentStreamError):
            importer.import_file(fake_client, job_id, DocumentWrapper("c2", DigitalDocument("bad.txt")), "p")

        assert len(opened) == 2
        assert all(stream.closed for stream in opened)

    def test_missing_content_raises(self, fake_client, job_store, job_id):
        wrapper = DocumentWrapper("absent", DigitalDocument("a.txt"))

        with pytest.raises(ContentStreamError):
            FileImporter(job_store).import_file(fake_client, job_id, wrapper, "p")

        assert fake_client.files == []
