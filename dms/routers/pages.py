from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List

from dms import crud, schemas
from dms.config import Settings, get_settings
from dms.db import get_db
from dms.dependencies import get_storage_engine
from dms.pages import PageLinkRegistry
from dms.routers.documents import document_response
from dms.storage import StorageEngine

router = APIRouter(tags=["pages"])


def _links_response(registry: PageLinkRegistry, document_id: int) -> schemas.PageLinksResponse:
    page_ids = registry.list_for_document(document_id)
    count = len(page_ids)
    return schemas.PageLinksResponse(
        document_id=document_id,
        page_ids=page_ids,
        published_on=f"{count} page" if count == 1 else f"{count} pages",
    )


@router.get("/documents/{document_id}/pages", response_model=schemas.PageLinksResponse)
def list_pages(document_id: int, db: Session = Depends(get_db)):
    """
    Pages this document is published on.
    """
    crud.require_document(db=db, document_id=document_id)
    return _links_response(PageLinkRegistry(db), document_id)


@router.post("/documents/{document_id}/pages", response_model=schemas.PageLinksResponse)
def add_pages(
    document_id: int,
    payload: schemas.PageLinkRequest,
    db: Session = Depends(get_db)
):
    """
    Link the document to pages. Existing links are left as they are.
    """
    crud.require_document(db=db, document_id=document_id)
    registry = PageLinkRegistry(db)
    registry.add_pages(document_id, payload.page_ids)
    return _links_response(registry, document_id)


@router.delete("/documents/{document_id}/pages/{page_id}", response_model=schemas.PageLinksResponse)
def remove_page(document_id: int, page_id: int, db: Session = Depends(get_db)):
    crud.require_document(db=db, document_id=document_id)
    registry = PageLinkRegistry(db)
    registry.remove(document_id, page_id)
    return _links_response(registry, document_id)


@router.delete("/documents/{document_id}/pages", response_model=schemas.PageLinksResponse)
def remove_all_pages(document_id: int, db: Session = Depends(get_db)):
    crud.require_document(db=db, document_id=document_id)
    registry = PageLinkRegistry(db)
    registry.remove_all(document_id)
    return _links_response(registry, document_id)


@router.get("/pages/{page_id}/documents", response_model=List[schemas.DocumentResponse])
def documents_for_page(
    page_id: int,
    db: Session = Depends(get_db),
    engine: StorageEngine = Depends(get_storage_engine),
    settings: Settings = Depends(get_settings)
):
    """
    Documents linked to a page.
    """
    documents = PageLinkRegistry(db).documents_for_page(page_id)
    return [document_response(db, engine, doc, settings) for doc in documents]
