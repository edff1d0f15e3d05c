"""
FastAPI application for the claims ingestion API.

Provides:
- CSV upload endpoint for bulk claim ingestion
- Claim lookup by ID and filtered claim listing
- Health check and status endpoints
"""

import logging

# Reduce noise from verbose libraries
logging.getLogger("python_multipart").setLevel(logging.WARNING)
logging.getLogger("python_multipart.multipart").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)

from contextlib import asynccontextmanager
from datetime import date, datetime, timezone
from typing import Optional

from fastapi import FastAPI, File, Query, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ..claims.errors import ClaimsError
from ..claims.queries import get_claim_by_id, get_claims
from ..ingestion.pipeline import IngestionPipeline
from ..storage.claim_store import ClaimStore, create_claim_store
from ..utils.config import settings

logging.basicConfig(
    level=logging.DEBUG if settings.debug else getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

ALLOWED_CONTENT_TYPES = {"text/csv", "application/csv", "text/plain"}

# Request validation message by parameter location
_VALIDATION_MESSAGES = {
    "query": "Invalid query parameters",
    "path": "Invalid route parameters",
}


def _bad_upload(message: str) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={"error": "File upload error", "message": message},
    )


def create_app(store: Optional[ClaimStore] = None) -> FastAPI:
    """
    Build the API application.

    Args:
        store: Claim store to serve; when omitted one is built from
               settings at startup and owned by the application.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager."""
        logger.info("Starting Healthcare Claims Ingestion API...")
        if getattr(app.state, "store", None) is None:
            app.state.store = create_claim_store(settings)
        yield
        logger.info("Shutting down Healthcare Claims Ingestion API...")

    app = FastAPI(
        title="Healthcare Claims Ingestion API",
        description="Bulk CSV ingestion and retrieval of healthcare claims",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.store = store

    # =========================================================================
    # Error Handlers
    # =========================================================================

    @app.exception_handler(ClaimsError)
    async def claims_error_handler(request: Request, exc: ClaimsError):
        logger.info(f"{request.method} {request.url.path}: {exc.name}: {exc}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        locations = {error["loc"][0] for error in errors if error.get("loc")}
        logger.info(f"{request.method} {request.url.path}: invalid request {errors}")
        return JSONResponse(
            status_code=400,
            content={
                "error": "Validation Error",
                "message": _VALIDATION_MESSAGES.get(
                    next(iter(locations)) if len(locations) == 1 else None,
                    "Invalid input data",
                ),
                "details": [
                    {
                        "field": ".".join(str(part) for part in error.get("loc", ())[1:]),
                        "message": error.get("msg", ""),
                    }
                    for error in errors
                ],
            },
        )

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.error(f"{request.method} {request.url.path} failed: {exc}", exc_info=exc)
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal Server Error",
                "message": str(exc) or "An unexpected error occurred",
            },
        )

    # =========================================================================
    # Health Check Endpoints
    # =========================================================================

    @app.get("/")
    async def root():
        """Root endpoint - service banner."""
        return {
            "message": "Healthcare Claims Ingestion API",
            "version": "1.0.0",
            "endpoints": {
                "health": "/health",
                "claims": "/claims",
            },
        }

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "OK",
            "message": "Healthcare Claims Ingestion API is running",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    # =========================================================================
    # Claims Endpoints
    # =========================================================================

    @app.post("/claims")
    async def ingest_claims(request: Request, file: Optional[UploadFile] = File(None)):
        """
        Ingest a CSV file of claims.

        Returns the ingestion summary; row-level problems are reported in
        the body, not as an error status.
        """
        if file is None:
            return _bad_upload("Please upload a CSV file")

        content_type = (file.content_type or "").split(";")[0].strip()
        if content_type not in ALLOWED_CONTENT_TYPES:
            return _bad_upload("Only CSV files are allowed")

        limit = settings.max_upload_bytes
        too_large = f"File too large (limit {limit} bytes)"
        if file.size is not None and file.size > limit:
            return _bad_upload(too_large)

        # Never hold more than limit + 1 bytes
        content = await file.read(limit + 1)
        if len(content) > limit:
            return _bad_upload(too_large)

        try:
            file_content = content.decode("utf-8")
        except UnicodeDecodeError:
            return _bad_upload("File must be UTF-8 encoded text")

        logger.info(f"Ingesting {file.filename} ({len(content)} bytes)")
        pipeline = IngestionPipeline(request.app.state.store)
        outcome = await pipeline.ingest(file_content)
        return outcome.to_dict()

    @app.get("/claims")
    async def list_claims(
        request: Request,
        member_id: Optional[str] = Query(None, alias="memberId"),
        start_date: Optional[date] = Query(None, alias="startDate"),
        end_date: Optional[date] = Query(None, alias="endDate"),
    ):
        """List claims filtered by member and/or service date range."""
        result = await get_claims(
            request.app.state.store,
            member_id=member_id,
            start_date=start_date,
            end_date=end_date,
        )
        return result.to_dict()

    @app.get("/claims/{claim_id}")
    async def get_claim(request: Request, claim_id: str):
        """Get a single claim by ID."""
        claim = await get_claim_by_id(request.app.state.store, claim_id)
        return claim.serialize()

    return app


app = create_app()
