from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from dms.config import Settings, get_settings
from dms.exceptions import ForbiddenError, NotFoundError
from dms.retrieval import RetrievalGateway, RetrievalState
from dms.dependencies import get_retrieval_gateway

router = APIRouter(tags=["download"])

NOT_FOUND_MESSAGE = "This asset does not exist."


@router.get("/dmsdocument/{document_id}")
def download_document(
    document_id: str,
    request: Request,
    gateway: RetrievalGateway = Depends(get_retrieval_gateway),
    settings: Settings = Depends(get_settings)
):
    """
    Download a document if the requester may view one of the pages it is published on.

    Documents not published on any page are public. Unknown and forbidden
    documents get the same 404 unless `DMS_HIDE_FORBIDDEN` is off.
    """
    retrieval = gateway.fetch(document_id, request)

    if retrieval.state is RetrievalState.FORBIDDEN:
        if settings.hide_forbidden:
            raise NotFoundError(NOT_FOUND_MESSAGE)
        raise ForbiddenError("You are not allowed to view this asset.")
    if not retrieval.found:
        raise NotFoundError(NOT_FOUND_MESSAGE)

    return StreamingResponse(gateway.stream(retrieval), headers=retrieval.headers)
