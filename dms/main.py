import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from dms import logs
from dms.config import get_settings
from dms.db import init_db
from dms.exceptions import ForbiddenError, IOFailure, NotFoundError, PreconditionFailed
from dms.pages import DenyAllPages
from dms.routers import documents, download, pages, tags

logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Document Management Store",
    description="Stores uploaded documents with category/value tags and serves them gated by page visibility",
    version="1.0.0"
)

# CORS middleware (allow all origins for development)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Until the hosting site installs its own visibility, linked documents stay private
app.state.page_visibility = DenyAllPages()


@app.on_event("startup")
async def startup_event():
    settings = get_settings()
    logs.configure(settings.log_level, settings.log_json)
    init_db()
    logger.info("Database initialized")


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(ForbiddenError)
async def forbidden_handler(request: Request, exc: ForbiddenError):
    return JSONResponse(status_code=403, content={"detail": str(exc)})


@app.exception_handler(PreconditionFailed)
async def precondition_failed_handler(request: Request, exc: PreconditionFailed):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(IOFailure)
async def io_failure_handler(request: Request, exc: IOFailure):
    logger.error(f"{type(exc).__name__} on {request.url.path} (500): {exc}", exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "Storage failure"})


# Include routers
app.include_router(documents.router)
app.include_router(tags.router)
app.include_router(pages.router)
app.include_router(download.router)


@app.get("/")
def root():
    """
    Root endpoint - API information.
    """
    return {
        "message": "Document Management Store API",
        "version": "1.0.0",
        "docs": "/docs",
        "endpoints": {
            "create": "POST /documents",
            "upload": "POST /documents/upload",
            "replace": "PUT /documents/{document_id}/file",
            "list": "GET /documents",
            "tags": "GET /documents/{document_id}/tags",
            "pages": "GET /documents/{document_id}/pages",
            "download": "GET /dmsdocument/{document_id}"
        }
    }
