from fastapi import Depends, Request
from sqlalchemy.orm import Session

from dms.config import Settings, StorageConfig, get_settings, get_storage_config
from dms.db import get_db
from dms.pages import DenyAllPages, PageVisibility
from dms.retrieval import RetrievalGateway
from dms.storage import StorageEngine


def get_page_visibility(request: Request) -> PageVisibility:
    """
    Returns the page visibility installed on ``app.state.page_visibility``.
    """
    return getattr(request.app.state, "page_visibility", None) or DenyAllPages()


def get_storage_engine(
    db: Session = Depends(get_db),
    config: StorageConfig = Depends(get_storage_config),
    settings: Settings = Depends(get_settings),
) -> StorageEngine:
    return StorageEngine(db, config, copy_on_write_tags=settings.tags_copy_on_write)


def get_retrieval_gateway(
    db: Session = Depends(get_db),
    config: StorageConfig = Depends(get_storage_config),
    visibility: PageVisibility = Depends(get_page_visibility),
    settings: Settings = Depends(get_settings),
) -> RetrievalGateway:
    return RetrievalGateway(
        db,
        config,
        visibility,
        deny_unlinked=settings.deny_unlinked,
        chunk_size=settings.chunk_size,
    )
