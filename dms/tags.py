import logging
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Query, Session

from dms import models

logger = logging.getLogger(__name__)


class TagStore:
    """
    Category/value metadata of one document.

    A category is multi-value by default: ``add_tag("fruit", "banana")`` and
    ``add_tag("fruit", "apple")`` keep both values. With ``multi_value=False``
    the category holds a single value that each add overwrites.

    Tag rows are shared by every document tagged with the same multi-value
    pair and are deleted as soon as no document references them. Overwriting
    a single-value tag that other documents also reference changes it for all
    of them unless ``copy_on_write`` is set.
    """

    def __init__(self, db: Session, document: models.Document, copy_on_write: bool = False):
        self.db = db
        self.document = document
        self.copy_on_write = copy_on_write

    def _query(self, category: str, value: Optional[str] = None) -> Query:
        query = self.db.query(models.Tag).join(
            models.document_tags, models.document_tags.c.tag_id == models.Tag.id
        ).filter(
            models.document_tags.c.document_id == self.document.id,
            models.Tag.category == category,
        )
        if value is not None:
            query = query.filter(models.Tag.value == value)
        return query.order_by(models.Tag.id)

    def _usage_count(self, tag: models.Tag) -> int:
        return self.db.query(func.count()).select_from(models.document_tags).filter(
            models.document_tags.c.tag_id == tag.id
        ).scalar()

    def _attach(self, tag: models.Tag) -> None:
        if tag not in self.document.tags:
            self.document.tags.append(tag)

    def _detach(self, tag: models.Tag) -> None:
        if tag in self.document.tags:
            self.document.tags.remove(tag)
        self.db.flush()

        # delete the entire tag if it has no relations left
        if self._usage_count(tag) == 0:
            logger.info(
                "Deleting orphaned tag %s=%s", tag.category, tag.value,
                extra={"document_id": self.document.id},
            )
            self.db.delete(tag)
            self.db.flush()

    def _new_tag(self, category: str, value: str, multi_value: bool) -> models.Tag:
        tag = models.Tag(category=category, value=value, multi_value=multi_value)
        self.db.add(tag)
        self.db.flush()
        return tag

    def add_tag(self, category: str, value: str, multi_value: bool = True) -> models.Tag:
        """
        Adds a tag to the document.

        Args:
            category: Metadata category (required)
            value: Metadata value (required)
            multi_value: False makes the category hold a single value

        Returns:
            The Tag now attached to the document
        """
        if multi_value:
            # check for a duplicate tag, don't add the duplicate
            current = self._query(category, value).first()
            if current is not None:
                tag = current
            else:
                tag = self.db.query(models.Tag).filter(
                    models.Tag.category == category,
                    models.Tag.value == value,
                    models.Tag.multi_value.is_(True),
                ).order_by(models.Tag.id).first()
                if tag is None:
                    tag = self._new_tag(category, value, True)
            self._attach(tag)
        else:
            current = self._query(category).with_for_update().all()
            if not current:
                tag = self._new_tag(category, value, False)
            else:
                tag = current[0]
                for extra in current[1:]:
                    self._detach(extra)
                if self.copy_on_write and self._usage_count(tag) > 1:
                    self.document.tags.remove(tag)
                    tag = self._new_tag(category, value, False)
                else:
                    tag.value = value
                    tag.multi_value = False
            self._attach(tag)

        self.db.commit()
        return tag

    def list_values(self, category: str, value: Optional[str] = None) -> Optional[List[str]]:
        """
        Returns the values of the document's tags in a category.

        If a value is given only that tag is matched.

        Returns:
            List of values, or None when no tag matches
        """
        tags = self._query(category, value).all()
        if not tags:
            return None
        return [tag.value for tag in tags]

    def remove_tag(self, category: str, value: Optional[str] = None) -> None:
        """
        Removes every tag in a category, or the single category/value pair when
        a value is given. Nothing happens if nothing matches.
        """
        for tag in self._query(category, value).all():
            self._detach(tag)
        self.db.commit()

    def remove_all_tags(self) -> None:
        for tag in list(self.document.tags):
            self._detach(tag)
        self.db.commit()

    def tags(self) -> List[models.Tag]:
        return sorted(self.document.tags, key=lambda t: (t.category, t.id))
