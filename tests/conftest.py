import os
import shutil
import tempfile
from io import BytesIO
from pathlib import Path
from typing import Generator

# Test database setup - use temporary file database for reliability
_test_db_file = None

def get_test_db_url():
    """Get test database URL, creating temp file if needed."""
    global _test_db_file
    if _test_db_file is None:
        fd, _test_db_file = tempfile.mkstemp(suffix='.db')
        os.close(fd)  # Close file descriptor, we'll use the path
    return f"sqlite:///{_test_db_file}"

# Settings are read when dms.db is first imported, so point them at the test
# database and a throwaway storage root before importing the app
os.environ["DMS_DATABASE_URL"] = get_test_db_url()
os.environ["DMS_STORAGE_ROOT"] = tempfile.mkdtemp(prefix="dms-storage-")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from dms import models
from dms.config import StorageConfig, get_storage_config
from dms.db import Base, get_db
from dms.main import app
from dms.mime import ContentTypeDetector, ExtensionDetector
from dms.pages import DenyAllPages, StaticPageVisibility
from dms.storage import StorageEngine


test_engine = create_engine(
    get_test_db_url(),
    connect_args={"check_same_thread": False}
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)

PDF_CONTENT = b"%PDF-1.4\n1 0 obj\n<<\n/Type /Catalog\n>>\nendobj\nxref\n0 0\ntrailer\n<<\n/Root 1 0 R\n>>\n%%EOF"


@pytest.fixture(scope="function")
def db_session() -> Generator:
    """
    Create a fresh database session for each test.
    Creates tables, yields session, then drops tables.
    """
    # Drop all tables first to ensure clean state
    Base.metadata.drop_all(bind=test_engine)
    # Create tables
    Base.metadata.create_all(bind=test_engine)

    # Create session
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        # Clean up: drop tables and recreate for next test
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture(scope="function")
def temp_storage() -> Generator:
    """
    Create a temporary storage directory for each test and point the app at it.
    """
    temp_dir = tempfile.mkdtemp()
    root = Path(temp_dir) / "docs"
    root.mkdir(parents=True, exist_ok=True)

    app.dependency_overrides[get_storage_config] = lambda: StorageConfig(root=root)

    yield Path(temp_dir)

    app.dependency_overrides.pop(get_storage_config, None)
    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
def storage_config(temp_storage) -> StorageConfig:
    return StorageConfig(root=temp_storage / "docs")


@pytest.fixture
def engine(db_session, storage_config) -> StorageEngine:
    return StorageEngine(db_session, storage_config)


@pytest.fixture(scope="function")
def client(db_session) -> Generator:
    """
    Create a test client with database override.
    """
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
    app.state.page_visibility = DenyAllPages()


@pytest.fixture
def visible_pages():
    """
    Install a page visibility on the app; returns the set of viewable page ids.
    """
    visibility = StaticPageVisibility()
    app.state.page_visibility = visibility
    yield visibility.visible_page_ids
    app.state.page_visibility = DenyAllPages()


@pytest.fixture
def extension_detector() -> ContentTypeDetector:
    """
    Content-type detection with neither libmagic nor the file command.
    """
    return ContentTypeDetector([ExtensionDetector()])


@pytest.fixture
def make_source(tmp_path):
    """
    Factory writing a source file to upload from.
    """
    uploads = tmp_path / "uploads"
    uploads.mkdir()

    def _make(name: str, content: bytes = b"content") -> Path:
        path = uploads / name
        path.write_bytes(content)
        return path

    return _make


@pytest.fixture
def sample_pdf_file():
    """
    Create a mock PDF file for testing.
    """
    file = BytesIO(PDF_CONTENT)
    file.name = "report.pdf"
    return file


@pytest.fixture
def upload_file_pdf(sample_pdf_file):
    """
    Create an UploadFile object for PDF.
    """
    from fastapi import UploadFile
    sample_pdf_file.seek(0)
    return UploadFile(file=sample_pdf_file, filename="report.pdf")


@pytest.fixture
def sample_document(db_session):
    """
    Create an empty document record in the database.
    """
    document = models.Document(
        title="Test Document",
        description="This is a test document"
    )
    db_session.add(document)
    db_session.commit()
    db_session.refresh(document)

    return document


@pytest.fixture
def stored_document(engine, sample_document, make_source):
    """
    A document with report.pdf stored.
    """
    return engine.store(sample_document.id, make_source("report.pdf", PDF_CONTENT))
