"""
Main application file for the Prerender Service API.

This file initializes the FastAPI application, sets up logging, starts the
shared browser for the lifetime of the application, registers global
exception handlers, and includes the render routes.
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder

from prerender_service.api.routes import render_routes
from prerender_service.components.renderer.browser_manager import BrowserManager
from prerender_service.components.renderer.url_policy import UrlPolicy
from prerender_service.core.exceptions import (
    PrerenderError,
    ScreenshotError,
    ScreenshotErrorType,
    ScreenshotOptionsError,
)
from prerender_service.core.logger import setup_logging, get_logger
from prerender_service.core.config import config_manager

# --- Logging Setup ---
setup_logging(config_manager)
logger = get_logger(__name__)

# HTTP status for each screenshot failure kind.
SCREENSHOT_ERROR_STATUS = {
    ScreenshotErrorType.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ScreenshotErrorType.NO_RESPONSE: status.HTTP_400_BAD_REQUEST,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Keeps one browser running while the application serves requests."""
    async with BrowserManager(config=config_manager) as browser_manager:
        app.state.renderer = browser_manager.renderer()
        app.state.url_policy = UrlPolicy.from_config(config_manager)
        logger.info("Prerender Service ready.")
        yield
        app.state.renderer = None
    logger.info("Prerender Service shut down.")


app = FastAPI(
    title="Prerender Service API",
    description="Renders pages in a headless browser and returns the serialized HTML "
                "or a JPEG screenshot, for serving crawlers and low-capability clients.",
    version="0.1.0",
    lifespan=lifespan,
)

# --- Global Exception Handlers ---

@app.exception_handler(ScreenshotError)
async def screenshot_exception_handler(request: Request, exc: ScreenshotError):
    """
    Maps `ScreenshotError` to an HTTP status by its `type`:
    Forbidden becomes 403 and NoResponse becomes 400.
    """
    status_code = SCREENSHOT_ERROR_STATUS[exc.type]
    logger.warning(f"ScreenshotError ({exc.type.value}) for request: {request.method} {request.url}")
    return JSONResponse(
        status_code=status_code,
        content={"detail": exc.message, "error_type": exc.type.value},
    )

@app.exception_handler(ScreenshotOptionsError)
async def screenshot_options_exception_handler(request: Request, exc: ScreenshotOptionsError):
    """
    Rejects screenshot options the browser does not understand with HTTP 400.
    """
    logger.warning(f"Rejected screenshot options {exc.invalid_keys} for request: {request.method} {request.url}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": exc.message, "invalid_options": exc.invalid_keys},
    )

@app.exception_handler(PrerenderError)
async def prerender_exception_handler(request: Request, exc: PrerenderError):
    """
    Handles all other custom exceptions derived from `PrerenderError` with HTTP 500.
    """
    logger.error(
        f"PrerenderError caught: {exc.__class__.__name__} - {exc.message} "
        f"for request: {request.method} {request.url}",
        exc_info=True
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": f"An application error occurred: {exc.message}"},
    )

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Handles request validation failures (e.g. an out-of-range screenshot width) with HTTP 422.
    """
    logger.warning(f"RequestValidationError caught for: {request.method} {request.url}. Errors: {exc.errors()}")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": "Request validation failed", "errors": jsonable_errors(exc)},
    )

@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    """
    Catch-all so the API always answers with JSON, even for unexpected server errors.
    """
    logger.critical(
        f"Generic unhandled exception caught: {exc.__class__.__name__} - {str(exc)} "
        f"for request: {request.method} {request.url}",
        exc_info=True
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "An unexpected server error occurred."},
    )


def jsonable_errors(exc: RequestValidationError):
    # Pydantic error entries may hold exception objects under "ctx".
    return jsonable_encoder(exc.errors(), custom_encoder={Exception: str})


# --- API Router Inclusion ---
app.include_router(render_routes.router, tags=["Rendering"])


if __name__ == "__main__":
    import uvicorn

    host = config_manager.get("server.host", "0.0.0.0")
    port = int(config_manager.get("server.port", 3000))
    logger.info(f"Starting Uvicorn server on {host}:{port}...")
    uvicorn.run(app, host=host, port=port)
