import pytest
from fastapi import HTTPException, UploadFile
from io import BytesIO

from dms import crud, models
from dms.exceptions import IOFailure, NotFoundError
from dms.tags import TagStore


class TestParseTagsString:
    """Tests for parse_tags_string function."""

    def test_pairs(self):
        """Test parsing category:value pairs."""
        assert crud.parse_tags_string("fruit:banana, dept : finance") == [
            ("fruit", "banana"),
            ("dept", "finance"),
        ]

    def test_empty(self):
        """Test empty input gives no tags."""
        assert crud.parse_tags_string(None) == []
        assert crud.parse_tags_string("  ,  ,  ") == []

    def test_value_may_contain_colon(self):
        """Test a value may contain a colon."""
        assert crud.parse_tags_string("time:10:30") == [("time", "10:30")]

    def test_missing_category_rejected(self):
        """Test a tag without category is rejected."""
        with pytest.raises(HTTPException) as exc_info:
            crud.parse_tags_string("banana")

        assert exc_info.value.status_code == 400


class TestCreateDocument:
    """Tests for create_document function."""

    def test_creates_empty_record(self, db_session):
        """Test creating a record without a file."""
        document = crud.create_document(db_session, title="Annual report", description="2011")

        assert document.id is not None
        assert document.title == "Annual report"
        assert document.filename == ""
        assert document.folder == ""
        assert document.last_changed is None

    def test_title_optional(self, db_session):
        """Test the title is optional."""
        document = crud.create_document(db_session)

        assert document.title == ""


class TestGetDocuments:
    """Tests for document lookups."""

    def test_get_by_id(self, db_session, sample_document):
        """Test getting a document by id."""
        assert crud.get_document_by_id(db_session, sample_document.id).id == sample_document.id
        assert crud.get_document_by_id(db_session, 99999) is None
        assert crud.get_document_by_id(db_session, 2 ** 64) is None

    def test_require_document(self, db_session):
        """Test require_document raises for a missing document."""
        with pytest.raises(NotFoundError):
            crud.require_document(db_session, 99999)

    def test_pagination(self, db_session):
        """Test paging through documents."""
        for i in range(5):
            crud.create_document(db_session, title=f"Document {i}")

        documents = crud.get_documents(db_session, skip=2, limit=2)

        assert [d.title for d in documents] == ["Document 2", "Document 3"]


class TestUpdateDocument:
    """Tests for update_document function."""

    def test_update_metadata(self, db_session, sample_document):
        """Test updating title and description."""
        document = crud.update_document(db_session, sample_document.id, title="New", description="")

        assert document.title == "New"
        assert document.description == ""

    def test_metadata_change_keeps_last_changed(self, db_session, stored_document):
        """Test metadata updates do not touch last_changed."""
        last_changed = stored_document.last_changed

        document = crud.update_document(db_session, stored_document.id, title="Renamed")

        assert document.last_changed == last_changed

    def test_missing_document(self, db_session):
        """Test updating a missing document."""
        with pytest.raises(NotFoundError):
            crud.update_document(db_session, 99999, title="x")


class TestUploadDocument:
    """Tests for upload_document function."""

    def test_upload_stores_file(self, db_session, engine, upload_file_pdf):
        """Test uploading stores the file."""
        document = crud.upload_document(db_session, engine, upload_file_pdf)

        assert document.filename == f"{document.id}~report.pdf"
        assert document.title == "report.pdf"
        assert engine.full_path(document).read_bytes().startswith(b"%PDF-1.4")

    def test_upload_with_title_and_tags(self, db_session, engine, upload_file_pdf):
        """Test uploading with a title and tags."""
        document = crud.upload_document(
            db_session, engine, upload_file_pdf,
            title="Energy report", tags_string="dept:finance, year:2011"
        )

        assert document.title == "Energy report"
        store = TagStore(db_session, document)
        assert store.list_values("dept") == ["finance"]
        assert store.list_values("year") == ["2011"]

    def test_upload_strips_directories_from_name(self, db_session, engine):
        """Test directories are stripped from the upload name."""
        upload = UploadFile(file=BytesIO(b"data"), filename="../../etc/report.txt")

        document = crud.upload_document(db_session, engine, upload)

        assert document.filename == f"{document.id}~report.txt"
        assert engine.full_path(document).parent == engine.config.root / document.folder

    def test_upload_without_filename(self, db_session, engine):
        """Test an upload without a file name is rejected."""
        upload = UploadFile(file=BytesIO(b"data"), filename="")

        with pytest.raises(HTTPException) as exc_info:
            crud.upload_document(db_session, engine, upload)

        assert exc_info.value.status_code == 400
        assert db_session.query(models.Document).count() == 0

    def test_failed_receive_creates_no_record(self, db_session, engine, monkeypatch):
        """Test a failure while receiving the upload leaves no document behind."""
        def failing_copy(src, dst):
            raise OSError("disk full")

        monkeypatch.setattr(crud.shutil, "copyfileobj", failing_copy)
        upload = UploadFile(file=BytesIO(b"data"), filename="report.pdf")

        with pytest.raises(IOFailure):
            crud.upload_document(db_session, engine, upload)

        assert db_session.query(models.Document).count() == 0

    def test_dot_dot_name_rejected(self, db_session, engine):
        """Test a parent-directory file name is rejected."""
        upload = UploadFile(file=BytesIO(b"data"), filename="..")

        with pytest.raises(HTTPException) as exc_info:
            crud.upload_document(db_session, engine, upload)

        assert exc_info.value.status_code == 400

    def test_bad_tags_rejected_before_anything_is_stored(self, db_session, engine, upload_file_pdf):
        """Test bad tags are rejected before anything is stored."""
        with pytest.raises(HTTPException):
            crud.upload_document(db_session, engine, upload_file_pdf, tags_string="nocategory")

        assert db_session.query(models.Document).count() == 0


class TestReplaceDocumentFile:
    """Tests for replace_document_file function."""

    def test_replace(self, db_session, engine, stored_document):
        """Test replacing the file of a document."""
        upload = UploadFile(file=BytesIO(b"version two"), filename="report-v2.pdf")

        document = crud.replace_document_file(db_session, engine, stored_document.id, upload)

        assert document.filename == f"{stored_document.id}~report-v2.pdf"
        assert engine.full_path(document).read_bytes() == b"version two"

    def test_replace_missing_document(self, db_session, engine, upload_file_pdf):
        """Test replacing the file of a missing document."""
        with pytest.raises(NotFoundError):
            crud.replace_document_file(db_session, engine, 99999, upload_file_pdf)


class TestDeleteDocument:
    """Tests for delete_document function."""

    def test_delete(self, db_session, engine, stored_document):
        """Test deleting a document."""
        document_id = stored_document.id

        assert crud.delete_document(db_session, engine, document_id) is True
        assert crud.get_document_by_id(db_session, document_id) is None

    def test_delete_missing_document(self, db_session, engine):
        """Test deleting a missing document."""
        with pytest.raises(NotFoundError):
            crud.delete_document(db_session, engine, 99999)
