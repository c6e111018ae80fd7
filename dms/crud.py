import logging
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional, Tuple

from fastapi import HTTPException, UploadFile
from sqlalchemy.orm import Session

from dms import models
from dms.exceptions import IOFailure, NotFoundError
from dms.storage import StorageEngine
from dms.tags import TagStore

logger = logging.getLogger(__name__)


def parse_tags_string(tags_string: Optional[str]) -> List[Tuple[str, str]]:
    """
    Parses comma-separated ``category:value`` pairs.

    Args:
        tags_string: eg. "fruit:banana, fruit:apple, dept:finance"

    Returns:
        List of (category, value) tuples

    Raises:
        HTTPException if a pair has no category
    """
    pairs = []
    if not tags_string:
        return pairs
    for item in tags_string.split(','):
        item = item.strip()
        if not item:
            continue
        category, sep, value = item.partition(':')
        if not sep or not category.strip():
            raise HTTPException(
                status_code=400,
                detail=f"Invalid tag '{item}'. Tags must look like category:value"
            )
        pairs.append((category.strip(), value.strip()))
    return pairs


def create_document(
    db: Session,
    title: Optional[str] = None,
    description: Optional[str] = None
) -> models.Document:
    """
    Creates an empty document record. A file can be stored once it exists.

    Args:
        db: Database session
        title: Document title (defaults to the stored file's name)
        description: Document description

    Returns:
        Document model
    """
    document = models.Document(title=title or "", description=description)
    db.add(document)
    db.commit()
    db.refresh(document)
    return document


def get_documents(db: Session, skip: int = 0, limit: int = 100) -> List[models.Document]:
    """
    Gets a page of documents, oldest first.
    """
    return db.query(models.Document).order_by(models.Document.id).offset(skip).limit(limit).all()


def get_document_by_id(db: Session, document_id: int) -> Optional[models.Document]:
    """
    Gets a document by ID.

    Returns:
        Document model or None
    """
    if not 1 <= document_id <= models.MAX_ID:
        return None
    return db.get(models.Document, document_id)


def require_document(db: Session, document_id: int) -> models.Document:
    """
    Gets a document by ID.

    Raises:
        NotFoundError if the document does not exist
    """
    document = get_document_by_id(db, document_id)
    if document is None:
        raise NotFoundError(f"Document {document_id} not found")
    return document


def update_document(
    db: Session,
    document_id: int,
    title: Optional[str] = None,
    description: Optional[str] = None
) -> models.Document:
    """
    Updates title and description. Does not touch last_changed.
    """
    document = require_document(db, document_id)
    if title:
        document.title = title
    if description is not None:  # Allow empty string to clear description
        document.description = description
    db.commit()
    db.refresh(document)
    return document


def _upload_basename(file: UploadFile) -> str:
    name = Path(file.filename or "").name
    if not name:
        raise HTTPException(status_code=400, detail="No file provided")
    if name in (".", ".."):
        raise HTTPException(status_code=400, detail=f"Invalid file name '{name}'")
    return name


@contextmanager
def spooled_upload(file: UploadFile) -> Iterator[Path]:
    """
    Receives an upload into a temporary directory, keeping the uploaded file name.

    Yields:
        Path of the received file; the directory is removed on exit
    """
    name = _upload_basename(file)
    with tempfile.TemporaryDirectory(prefix="dms-upload-") as tmp:
        spooled = Path(tmp) / name
        try:
            with open(spooled, "wb") as f:
                shutil.copyfileobj(file.file, f)
        except OSError as e:
            raise IOFailure(f"Failed to receive upload {name}: {e}") from e
        yield spooled


def store_upload(engine: StorageEngine, document_id: int, file: UploadFile) -> models.Document:
    """
    Stores an uploaded file for a document, keeping the uploaded file name.
    """
    with spooled_upload(file) as spooled:
        return engine.ingest(document_id, spooled)


def upload_document(
    db: Session,
    engine: StorageEngine,
    file: UploadFile,
    title: Optional[str] = None,
    description: Optional[str] = None,
    tags_string: Optional[str] = None
) -> models.Document:
    """
    Creates a document from an uploaded file.

    Args:
        db: Database session
        engine: Storage engine
        file: Uploaded file
        title: Document title (optional, defaults to the file name)
        description: Document description
        tags_string: Comma-separated category:value tags

    Returns:
        The stored Document
    """
    tag_pairs = parse_tags_string(tags_string)

    # the record is only created once the upload has been received
    with spooled_upload(file) as spooled:
        document = create_document(db, title=title, description=description)
        document = engine.ingest(document.id, spooled)

    if tag_pairs:
        store = TagStore(db, document, copy_on_write=engine.copy_on_write_tags)
        for category, value in tag_pairs:
            store.add_tag(category, value)
        db.refresh(document)

    logger.info("Uploaded document %s", document.id, extra={"document_id": document.id})
    return document


def replace_document_file(
    db: Session,
    engine: StorageEngine,
    document_id: int,
    file: UploadFile
) -> models.Document:
    """
    Replaces the stored file of an existing document.

    Raises:
        NotFoundError if document not found
    """
    require_document(db, document_id)
    return store_upload(engine, document_id, file)


def delete_document(db: Session, engine: StorageEngine, document_id: int) -> bool:
    """
    Deletes a document together with its tags, page links and file.

    Raises:
        NotFoundError if document not found
    """
    document = require_document(db, document_id)
    engine.delete(document)
    return True
