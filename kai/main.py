"""FastAPI application entry point."""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from kai.api import router as api_router
from kai.core.errors import KaiError
from kai.core.logging import get_logger

logger = get_logger(__name__)

app = FastAPI(
    title="Kai Journal",
    description="Journal capture, keyword tagging and journal-grounded chat",
    version="0.1.0",
)


@app.exception_handler(KaiError)
async def kai_error_handler(request: Request, exc: KaiError) -> JSONResponse:
    """Render service errors as ``{"detail": ...}`` with the kind's status."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.kind.value}: {exc.message}")
    return JSONResponse(content={"detail": exc.message}, status_code=exc.status_code)


@app.get("/health")
async def health_check() -> JSONResponse:
    """Health check endpoint."""
    return JSONResponse(content={"status": "ok"}, status_code=200)


app.include_router(api_router)
