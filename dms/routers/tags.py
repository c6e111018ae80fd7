from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional, List

from dms import crud, schemas
from dms.config import Settings, get_settings
from dms.db import get_db
from dms.tags import TagStore

router = APIRouter(prefix="/documents", tags=["tags"])


def _tag_store(db: Session, document_id: int, settings: Settings) -> TagStore:
    document = crud.require_document(db=db, document_id=document_id)
    return TagStore(db, document, copy_on_write=settings.tags_copy_on_write)


@router.get("/{document_id}/tags", response_model=List[schemas.TagResponse])
def list_tags(
    document_id: int,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings)
):
    """
    List every tag of a document.
    """
    store = _tag_store(db, document_id, settings)
    return [schemas.TagResponse.model_validate(tag) for tag in store.tags()]


@router.get("/{document_id}/tags/{category}", response_model=schemas.TagValuesResponse)
def list_tag_values(
    document_id: int,
    category: str,
    value: Optional[str] = Query(None, description="Only match this value"),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings)
):
    """
    Values of a category. `values` is null when the category has no matching tag.
    """
    store = _tag_store(db, document_id, settings)
    return schemas.TagValuesResponse(category=category, values=store.list_values(category, value))


@router.post("/{document_id}/tags", response_model=schemas.TagResponse, status_code=201)
def add_tag(
    document_id: int,
    payload: schemas.TagCreate,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings)
):
    """
    Add a tag.

    - **multi_value**: true appends a value to the category, false replaces its value

    Examples:
    - `{"category": "fruit", "value": "banana"}` then `{"category": "fruit", "value": "apple"}` keeps both
    - with `"multi_value": false` only `fruit:apple` remains
    """
    store = _tag_store(db, document_id, settings)
    tag = store.add_tag(payload.category, payload.value, payload.multi_value)
    return schemas.TagResponse.model_validate(tag)


@router.delete("/{document_id}/tags/{category}", response_model=schemas.MessageResponse)
def remove_tag(
    document_id: int,
    category: str,
    value: Optional[str] = Query(None, description="Only remove this value"),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings)
):
    """
    Remove a category, or one category/value pair. Removing a missing tag is not an error.
    """
    store = _tag_store(db, document_id, settings)
    store.remove_tag(category, value)
    return {"message": f"Tag {category} removed"}


@router.delete("/{document_id}/tags", response_model=schemas.MessageResponse)
def remove_all_tags(
    document_id: int,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings)
):
    store = _tag_store(db, document_id, settings)
    store.remove_all_tags()
    return {"message": f"All tags of document {document_id} removed"}
