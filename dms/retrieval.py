import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterator, Optional
from urllib.parse import quote

from sqlalchemy.orm import Session

from dms import models
from dms.config import StorageConfig
from dms.exceptions import IOFailure
from dms.mime import ContentTypeDetector
from dms.pages import PageLinkRegistry, PageVisibility
from dms.paths import filename_without_id
from dms.storage import StorageEngine

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


class RetrievalState(str, Enum):
    RESOLVING = "resolving"
    AUTHORIZING = "authorizing"
    STREAMING = "streaming"
    DONE = "done"
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"


@dataclass
class Retrieval:
    """Outcome of resolving and authorizing one download request."""

    state: RetrievalState
    document: Optional[models.Document] = None
    path: Optional[Path] = None
    media_type: Optional[str] = None
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def found(self) -> bool:
        return self.state in (RetrievalState.STREAMING, RetrievalState.DONE)


def download_link(document_id: int, base_url: str = "/") -> str:
    """
    Returns the link that downloads a document through the access check.
    """
    return f"{base_url.rstrip('/')}/dmsdocument/{document_id}"


def content_disposition(filename: str) -> str:
    """
    Attachment header with a quoted ASCII ``filename`` and, for names that need
    encoding, an RFC 5987 ``filename*`` as well.
    """
    fallback = filename.encode("ascii", "replace").decode("ascii")
    fallback = fallback.replace("\\", "\\\\").replace('"', '\\"')
    value = f'attachment; filename="{fallback}"'
    quoted = quote(filename)
    if quoted != filename:
        value += f"; filename*=utf-8''{quoted}"
    return value


class RetrievalGateway:
    """
    Serves stored files only to requesters allowed to see them.

    A document linked to pages is viewable if the requester can view at least
    one of them. A document linked to no page is viewable unless
    ``deny_unlinked`` is set.
    """

    def __init__(
        self,
        db: Session,
        config: StorageConfig,
        visibility: PageVisibility,
        detector: Optional[ContentTypeDetector] = None,
        deny_unlinked: bool = False,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ):
        self.db = db
        self.config = config
        self.visibility = visibility
        self.detector = detector or ContentTypeDetector()
        self.deny_unlinked = deny_unlinked
        self.chunk_size = chunk_size

    def resolve(self, raw_id: Any) -> Optional[models.Document]:
        """
        Looks up a document from a request parameter. Malformed ids resolve to None.
        """
        try:
            document_id = int(str(raw_id).strip())
        except (TypeError, ValueError):
            return None
        if not 1 <= document_id <= models.MAX_ID:
            return None
        return self.db.get(models.Document, document_id)

    def authorize(self, document: models.Document, request_context: Any = None) -> bool:
        page_ids = PageLinkRegistry(self.db).list_for_document(document.id)
        if not page_ids:
            # nothing to restrict against
            return not self.deny_unlinked
        # one viewable page is enough
        return any(self.visibility.can_view(page_id, request_context) for page_id in page_ids)

    def fetch(self, raw_id: Any, request_context: Any = None) -> Retrieval:
        """
        Resolves, authorizes and prepares a document for streaming.

        Returns:
            Retrieval in state STREAMING with headers set, or in a terminal
            NOT_FOUND / FORBIDDEN state
        """
        document = self.resolve(raw_id)
        if document is None:
            logger.info("Retrieval of %r: no such document", raw_id)
            return Retrieval(RetrievalState.NOT_FOUND)

        if not self.authorize(document, request_context):
            logger.info("Retrieval of document %s forbidden", document.id, extra={"document_id": document.id})
            return Retrieval(RetrievalState.FORBIDDEN, document=document)

        path = StorageEngine(self.db, self.config).full_path(document) if document.filename else None
        if path is None or not path.is_file():
            logger.warning("Retrieval of document %s: file %s missing", document.id, path,
                           extra={"document_id": document.id})
            return Retrieval(RetrievalState.NOT_FOUND, document=document)

        media_type = self.detector.detect(path)
        try:
            size = path.stat().st_size
        except OSError as e:
            raise IOFailure(f"Failed to stat {path}: {e}") from e

        headers = {"Content-Type": media_type, "Content-Length": str(size)}
        if media_type != "text/html":
            headers["Content-Disposition"] = content_disposition(filename_without_id(document.filename))
        headers.update(NO_CACHE_HEADERS)

        return Retrieval(RetrievalState.STREAMING, document=document, path=path,
                         media_type=media_type, headers=headers)

    def stream(self, retrieval: Retrieval) -> Iterator[bytes]:
        """
        Yields the file bytes verbatim.

        Closing the iterator early (client gone) closes the file.

        Raises:
            IOFailure if the file cannot be read
        """
        if retrieval.state is not RetrievalState.STREAMING:
            raise ValueError(f"Cannot stream a retrieval in state {retrieval.state.value}")
        try:
            with open(retrieval.path, "rb") as f:
                while True:
                    chunk = f.read(self.chunk_size)
                    if not chunk:
                        break
                    yield chunk
        except OSError as e:
            logger.error("Failed reading %s: %s", retrieval.path, e, extra={"document_id": retrieval.document.id})
            raise IOFailure(f"Failed to read {retrieval.path}: {e}") from e
        retrieval.state = RetrievalState.DONE
