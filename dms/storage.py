import logging
import shutil
import warnings
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

from sqlalchemy.orm import Session

from dms import models
from dms.config import StorageConfig
from dms.exceptions import DataConsistencyWarning, IOFailure, PreconditionFailed
from dms.pages import PageLinkRegistry
from dms.paths import allocate, create_storage_folder
from dms.tags import TagStore

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def _consistency_warning(message: str, document_id: Optional[int]) -> None:
    logger.warning(message, extra={"document_id": document_id})
    warnings.warn(message, DataConsistencyWarning, stacklevel=3)


class StorageEngine:
    """
    Keeps document files on disk in step with their records.

    Files live at ``<root>/<folder>/<id>~<basename>``. Steps are committed one
    at a time; a failure stops the remaining steps without undoing earlier
    ones. Callers must serialize mutations of the same document.
    """

    def __init__(self, db: Session, config: StorageConfig, copy_on_write_tags: bool = False):
        self.db = db
        self.config = config
        self.copy_on_write_tags = copy_on_write_tags

    def full_path(self, document: models.Document) -> Path:
        """
        Returns the full path of the file stored for a document.
        """
        return self.config.root / document.folder / document.filename

    def file_size(self, document: models.Document) -> Optional[int]:
        """
        Returns the size of the stored file in bytes, or None if there is none.
        """
        if not document.filename:
            return None
        try:
            return self.full_path(document).stat().st_size
        except FileNotFoundError:
            return None

    def _persisted(self, document_id: Optional[int]) -> models.Document:
        document = self.db.get(models.Document, document_id) if document_id is not None else None
        if document is None:
            raise PreconditionFailed(
                f"Document {document_id} must exist before it can store a file"
            )
        return document

    def store(self, document_id: int, source_path: PathLike) -> models.Document:
        """
        Copies a file into storage for an existing document record.

        Any file already at the target path is overwritten. The title is set to
        the source basename only if the document has no title yet.

        Args:
            document_id: ID of a persisted document
            source_path: File to copy in

        Returns:
            The updated Document

        Raises:
            PreconditionFailed if the document record does not exist
            IOFailure if the file cannot be copied into place
        """
        document = self._persisted(document_id)
        source = Path(source_path)
        previous = self.full_path(document) if document.filename else None

        # calculate the path to copy the file to
        folder, filename = allocate(document.id, source.name, self.config.shard_fn)
        target = create_storage_folder(self.config.root / folder) / filename

        try:
            shutil.copyfile(source, target)
        except OSError as e:
            raise IOFailure(f"Failed to copy {source} to {target}: {e}") from e

        document.filename = filename
        document.folder = folder
        if not document.title:
            document.title = source.name  # don't overwrite existing document titles
        document.last_changed = datetime.now(timezone.utc)
        self.db.commit()
        self.db.refresh(document)
        logger.info("Stored %s as %s", source.name, target, extra={"document_id": document.id})

        if previous is not None and previous != target:
            self._remove_superseded(previous, document.id)

        return document

    def replace(self, document_id: int, new_source_path: PathLike) -> models.Document:
        """
        Swaps the stored file of a document, keeping its identity and metadata.
        """
        return self.store(document_id, new_source_path)

    def ingest(self, document_id: int, source_path: PathLike) -> models.Document:
        """
        Replaces the stored file with ``source_path`` and then deletes the source.
        """
        document = self.replace(document_id, source_path)
        try:
            Path(source_path).unlink()
        except OSError as e:
            raise IOFailure(f"Failed to remove ingested file {source_path}: {e}") from e
        return document

    def _remove_superseded(self, path: Path, document_id: int) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            _consistency_warning(f"Could not remove superseded file {path}: {e}", document_id)
        else:
            logger.info("Removed superseded file %s", path, extra={"document_id": document_id})

    def delete(self, document: models.Document) -> None:
        """
        Deletes a document: its tags, its page links, its file, then its record.

        A file that is already missing is reported as a DataConsistencyWarning
        and the delete carries on.

        Raises:
            IOFailure if the file exists but cannot be removed
        """
        document_id = document.id

        TagStore(self.db, document, copy_on_write=self.copy_on_write_tags).remove_all_tags()
        PageLinkRegistry(self.db).remove_all(document_id)

        if document.filename:
            path = self.full_path(document)
            try:
                path.unlink()
            except FileNotFoundError:
                _consistency_warning(
                    f"File {path} of document {document_id} was already missing", document_id
                )
            except OSError as e:
                raise IOFailure(f"Failed to delete {path}: {e}") from e

        self.db.delete(document)
        self.db.commit()
        logger.info("Deleted document %s", document_id, extra={"document_id": document_id})
