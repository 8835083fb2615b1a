"""
FastAPI Application — Entry Point

Document Synthesis API

  POST /api/v1/process/stream    documents → SSE progress → analysis
  POST /api/v1/process           same run, one JSON body at the end
  GET  /api/v1/prompts/default   built-in analysis prompt
  POST /api/v1/prompts/generate  AI-assisted prompt authoring
  POST /api/v1/prompts/structure
  GET  /health

Every response carries X-Request-ID (echoed or minted). Failures outside
the pipeline use the ErrorResponse envelope; pipeline failures travel as
progress events or in ProcessResponse.error instead.
"""

from __future__ import annotations

import logging
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from docsynth.api.v1.process import router as process_router
from docsynth.api.v1.prompts import router as prompts_router
from docsynth.core.config import get_settings, missing_required_settings
from docsynth.schemas.api import ErrorDetail, ErrorResponse

logger = logging.getLogger(__name__)

settings = get_settings()

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)

REQUEST_ID_HEADER = "X-Request-ID"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Credentials are not required to boot; runs re-check them before starting."""
    missing = missing_required_settings(settings)
    logger.info(
        "DocSynth | starting env=%s layout_model=%s missing_config=%s",
        settings.app_env, settings.document_intelligence_model, ",".join(missing) or "-",
    )
    if missing:
        logger.warning("DocSynth | processing requests will be rejected until configured: %s", ", ".join(missing))
    yield
    logger.info("DocSynth | stopped")


# ---------------------------------------------------------------------------
# Request context + error envelopes
# ---------------------------------------------------------------------------

def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())


async def tag_and_time_request(request: Request, call_next):
    request.state.request_id = _request_id(request)
    started = time.perf_counter()

    response = await call_next(request)

    response.headers[REQUEST_ID_HEADER] = request.state.request_id
    logger.info(
        "Request | %s %s status=%d ms=%.1f request_id=%s",
        request.method, request.url.path, response.status_code,
        (time.perf_counter() - started) * 1000, request.state.request_id,
    )
    return response


async def invalid_request_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed form or JSON body (e.g. prompt request without userInput)."""
    body = ErrorResponse(
        error_code="INVALID_REQUEST",
        message="The request body does not match the expected form or JSON fields.",
        details=[
            ErrorDetail(field=".".join(str(part) for part in err["loc"]), message=err["msg"], code=err["type"])
            for err in exc.errors()
        ],
        request_id=_request_id(request),
    )
    return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content=body.model_dump(mode="json"))


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    request_id = _request_id(request)
    logger.exception("Request | unhandled error path=%s request_id=%s", request.url.path, request_id)
    body = ErrorResponse(
        error_code="INTERNAL_ERROR",
        message="Document synthesis service failed to handle the request.",
        request_id=request_id,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=body.model_dump(mode="json"),
        headers={REQUEST_ID_HEADER: request_id},
    )


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------

def create_app() -> FastAPI:
    docs_enabled = not settings.is_production
    app = FastAPI(
        title="Document Synthesis API",
        description=(
            "Extracts text and tables from uploaded documents with Azure AI Document "
            "Intelligence and synthesizes them with Azure OpenAI, streaming progress over SSE."
        ),
        version="1.0.0",
        docs_url="/api/docs" if docs_enabled else None,
        redoc_url=None,
        openapi_url="/api/openapi.json" if docs_enabled else None,
        lifespan=lifespan,
    )

    # Browser uploads come from a separate front-end origin.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type", REQUEST_ID_HEADER],
        expose_headers=[REQUEST_ID_HEADER],
    )
    app.middleware("http")(tag_and_time_request)

    app.add_exception_handler(RequestValidationError, invalid_request_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    app.include_router(process_router, prefix="/api/v1")
    app.include_router(prompts_router, prefix="/api/v1")

    @app.get("/health", tags=["Operations"], summary="Liveness probe plus unset credentials")
    async def health() -> dict:
        return {
            "status":         "ok",
            "service":        "docsynth-api",
            "missing_config": missing_required_settings(get_settings()),
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("docsynth.main:app", host="0.0.0.0", port=8000, reload=not settings.is_production)
