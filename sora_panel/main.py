from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from sora_panel.api.router import api_router
from sora_panel.api.videos import InvalidJSONPayload
from sora_panel.config import get_settings
from sora_panel.core.exceptions import SoraPanelError, UpstreamAPIError
from sora_panel.core.logging import get_logger, setup_logging

# Static control panel page
UI_DIR = Path(__file__).parent.parent / "public"

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    # Fails fast when OPENAI_API_KEY is missing
    settings = get_settings()
    setup_logging(debug=settings.debug)
    logger.bind(
        model=settings.sora_default_model,
        size=settings.sora_default_size,
        base_url=settings.openai_api_base_url,
    ).info("sora_panel_started")
    yield


app = FastAPI(
    title="Sora Panel",
    description="Control panel for the OpenAI Sora video API",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url=None,
)


@app.exception_handler(UpstreamAPIError)
async def upstream_error_handler(request: Request, exc: UpstreamAPIError) -> JSONResponse:
    """Mirror the OpenAI status code and error body."""
    logger.bind(path=request.url.path, status=exc.status_code).warning("upstream_api_error")
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc), "details": exc.details},
    )


@app.exception_handler(InvalidJSONPayload)
async def invalid_json_handler(request: Request, exc: InvalidJSONPayload) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": "Invalid JSON payload."})


@app.exception_handler(SoraPanelError)
async def sora_panel_error_handler(request: Request, exc: SoraPanelError) -> JSONResponse:
    logger.bind(path=request.url.path, error=str(exc)).warning("request_failed")
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc)})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.bind(path=request.url.path).exception("unhandled_error")
    return JSONResponse(status_code=500, content={"error": str(exc) or "Unknown server error."})


# Include API routes
app.include_router(api_router)

# Serve the static control panel (only if it exists)
if UI_DIR.exists():
    app.mount("/", StaticFiles(directory=UI_DIR, html=True), name="ui")
