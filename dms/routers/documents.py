from fastapi import APIRouter, Depends, UploadFile, File, Form, Query
from sqlalchemy.orm import Session
from typing import Optional, List

from dms import crud, models, schemas
from dms.config import Settings, get_settings
from dms.db import get_db
from dms.dependencies import get_storage_engine
from dms.mime import get_file_extension, get_file_type
from dms.pages import PageLinkRegistry
from dms.paths import filename_without_id
from dms.retrieval import download_link
from dms.storage import StorageEngine
from dms.tags import TagStore

router = APIRouter(prefix="/documents", tags=["documents"])


def document_response(
    db: Session,
    engine: StorageEngine,
    document: models.Document,
    settings: Settings
) -> schemas.DocumentResponse:
    """
    Builds the API representation of a document.
    """
    original = filename_without_id(document.filename) if document.filename else None
    tags = TagStore(db, document).tags()
    return schemas.DocumentResponse(
        id=document.id,
        title=document.title,
        description=document.description,
        filename=document.filename,
        folder=document.folder,
        original_filename=original,
        file_type=get_file_type(get_file_extension(original)) if original else None,
        file_size=engine.file_size(document),
        last_changed=document.last_changed,
        created_at=document.created_at,
        download_link=download_link(document.id, settings.base_url),
        tags=[schemas.TagResponse.model_validate(tag) for tag in tags],
        page_ids=PageLinkRegistry(db).list_for_document(document.id),
    )


@router.post("", response_model=schemas.DocumentResponse, status_code=201)
def create_document(
    payload: schemas.DocumentCreate,
    db: Session = Depends(get_db),
    engine: StorageEngine = Depends(get_storage_engine),
    settings: Settings = Depends(get_settings)
):
    """
    Create an empty document record. Store a file with PUT /documents/{document_id}/file.
    """
    document = crud.create_document(db=db, title=payload.title, description=payload.description)
    return document_response(db, engine, document, settings)


@router.post("/upload", response_model=schemas.DocumentUploadResponse)
def upload_document(
    file: UploadFile = File(...),
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    tags: Optional[str] = Form(None),
    db: Session = Depends(get_db),
    engine: StorageEngine = Depends(get_storage_engine)
):
    """
    Upload a new document.

    - **file**: Document file (required)
    - **title**: Document title (optional, defaults to the file name)
    - **description**: Document description (optional)
    - **tags**: Comma-separated category:value tags (optional)
    """
    document = crud.upload_document(
        db=db,
        engine=engine,
        file=file,
        title=title,
        description=description,
        tags_string=tags
    )
    return schemas.DocumentUploadResponse(
        document_id=document.id,
        filename=document.filename,
        message="Document uploaded successfully"
    )


@router.put("/{document_id}/file", response_model=schemas.DocumentResponse)
def replace_document_file(
    document_id: int,
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    engine: StorageEngine = Depends(get_storage_engine),
    settings: Settings = Depends(get_settings)
):
    """
    Replace the stored file, keeping the document's identity and metadata.
    """
    document = crud.replace_document_file(db=db, engine=engine, document_id=document_id, file=file)
    return document_response(db, engine, document, settings)


@router.get("", response_model=List[schemas.DocumentResponse])
def list_documents(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    db: Session = Depends(get_db),
    engine: StorageEngine = Depends(get_storage_engine),
    settings: Settings = Depends(get_settings)
):
    """
    List documents with their tags and page links.

    - **skip**: Number of records to skip (pagination)
    - **limit**: Maximum number of records to return
    """
    documents = crud.get_documents(db=db, skip=skip, limit=limit)
    return [document_response(db, engine, doc, settings) for doc in documents]


@router.get("/{document_id}", response_model=schemas.DocumentResponse)
def get_document(
    document_id: int,
    db: Session = Depends(get_db),
    engine: StorageEngine = Depends(get_storage_engine),
    settings: Settings = Depends(get_settings)
):
    document = crud.require_document(db=db, document_id=document_id)
    return document_response(db, engine, document, settings)


@router.patch("/{document_id}", response_model=schemas.DocumentResponse)
def update_document(
    document_id: int,
    payload: schemas.DocumentUpdate,
    db: Session = Depends(get_db),
    engine: StorageEngine = Depends(get_storage_engine),
    settings: Settings = Depends(get_settings)
):
    """
    Update title and/or description.
    """
    document = crud.update_document(
        db=db,
        document_id=document_id,
        title=payload.title,
        description=payload.description
    )
    return document_response(db, engine, document, settings)


@router.delete("/{document_id}", response_model=schemas.MessageResponse)
def delete_document(
    document_id: int,
    db: Session = Depends(get_db),
    engine: StorageEngine = Depends(get_storage_engine)
):
    """
    Delete a document, its tags, its page links and its file.
    """
    crud.delete_document(db=db, engine=engine, document_id=document_id)
    return {"message": f"Document {document_id} deleted successfully"}
