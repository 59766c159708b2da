"""FastAPI application main module.

This module defines the FastAPI application instance and core API endpoints
for the SeedRec recommendation service.
"""

from typing import Any, Dict

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from seedrec import __version__
from seedrec.api.logging_config import RequestLoggingMiddleware, setup_logging
from seedrec.api.metrics import metrics_service
from seedrec.api.routes import recommend
from seedrec.exceptions import SeedRecException

# Create FastAPI application instance
app = FastAPI(
    title="SeedRec API",
    description="Seed-based recommendation candidate service",
    version=__version__,
)

app.add_middleware(RequestLoggingMiddleware)

# Include routers
app.include_router(recommend.router)


@app.exception_handler(SeedRecException)
async def seedrec_exception_handler(request: Request, exc: SeedRecException) -> JSONResponse:
    """Render SeedRec errors as JSON with their status code."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": type(exc).__name__,
            "message": exc.message,
            "details": exc.details,
        },
    )


@app.get("/ping")
def ping() -> Dict[str, str]:
    """Health check endpoint.

    Example:
        >>> response = client.get("/ping")
        >>> assert response.json() == {"status": "ok"}
    """
    return {"status": "ok"}


@app.get("/status")
def status() -> Dict[str, Any]:
    """Report whether a model is loaded and what it covers."""
    return recommend.get_model_status()


@app.get("/metrics")
def metrics() -> Dict[str, Any]:
    """Recommendation call counters and latency."""
    return metrics_service.get_metrics()


if __name__ == "__main__":
    import uvicorn

    setup_logging()
    uvicorn.run(
        "seedrec.api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
