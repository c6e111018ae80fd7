import logging
from typing import Any, Callable, Iterable, List, Optional, Protocol, runtime_checkable

from sqlalchemy import delete, func, insert, select
from sqlalchemy.orm import Session

from dms import models

logger = logging.getLogger(__name__)


@runtime_checkable
class PageVisibility(Protocol):
    """Decides whether the requester may view a page of the hosting site."""

    def can_view(self, page_id: int, request_context: Any) -> bool:
        ...


class DenyAllPages:
    """Treats every page as private. Documents linked to any page stay hidden."""

    def can_view(self, page_id: int, request_context: Any) -> bool:
        return False


class StaticPageVisibility:
    """Visibility from a fixed set of viewable page ids."""

    def __init__(self, visible_page_ids: Iterable[int] = ()):
        self.visible_page_ids = set(visible_page_ids)

    def can_view(self, page_id: int, request_context: Any) -> bool:
        return page_id in self.visible_page_ids


class PageLinkRegistry:
    """
    Links between documents and the pages that reference them.
    """

    def __init__(self, db: Session):
        self.db = db

    def _link(self, document_id: int, page_id: int):
        table = models.document_pages
        return (table.c.document_id == document_id) & (table.c.page_id == page_id)

    def add(self, document_id: int, page_id: int) -> None:
        """
        Links a document to a page. Does nothing if the link already exists.
        """
        exists = self.db.execute(
            select(models.document_pages.c.page_id).where(self._link(document_id, page_id))
        ).first()
        if exists is None:
            self.db.execute(insert(models.document_pages).values(document_id=document_id, page_id=page_id))
        self.db.commit()

    def add_pages(
        self,
        document_id: int,
        page_ids: Iterable[int],
        exists: Optional[Callable[[int], bool]] = None,
    ) -> List[int]:
        """
        Links a document to several pages.

        Args:
            document_id: Document ID
            page_ids: Page IDs to link
            exists: Optional predicate; pages for which it returns False are skipped

        Returns:
            Page IDs that were linked
        """
        linked = []
        for page_id in page_ids:
            if exists is not None and not exists(page_id):
                logger.info("Skipping unknown page %s", page_id, extra={"document_id": document_id})
                continue
            self.add(document_id, page_id)
            linked.append(page_id)
        return linked

    def remove(self, document_id: int, page_id: int) -> None:
        """
        Unlinks a document from a page. Does nothing if the link does not exist.
        """
        self.db.execute(delete(models.document_pages).where(self._link(document_id, page_id)))
        self.db.commit()

    def remove_all(self, document_id: int) -> None:
        self.db.execute(
            delete(models.document_pages).where(models.document_pages.c.document_id == document_id)
        )
        self.db.commit()

    def list_for_document(self, document_id: int) -> List[int]:
        rows = self.db.execute(
            select(models.document_pages.c.page_id)
            .where(models.document_pages.c.document_id == document_id)
            .order_by(models.document_pages.c.page_id)
        )
        return [row.page_id for row in rows]

    def count_for_document(self, document_id: int) -> int:
        return self.db.execute(
            select(func.count())
            .select_from(models.document_pages)
            .where(models.document_pages.c.document_id == document_id)
        ).scalar_one()

    def documents_for_page(self, page_id: int) -> List[models.Document]:
        return (
            self.db.query(models.Document)
            .join(models.document_pages, models.document_pages.c.document_id == models.Document.id)
            .filter(models.document_pages.c.page_id == page_id)
            .order_by(models.Document.id)
            .all()
        )
