"""
API routes for rendering pages and taking screenshots.

The target URL is taken verbatim from the path, e.g.
`GET /render/https://example.com/page`. A query string that belongs to the
target URL must be percent-encoded, since the query string of the request
itself carries this API's own parameters (`mobile`, `width`, `height`).
"""
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request, status
from fastapi.responses import HTMLResponse, Response

from prerender_service.api.models import ErrorResponse, HealthResponse
from prerender_service.components.renderer.models import ViewportDimensions
from prerender_service.components.renderer.renderer import Renderer
from prerender_service.components.renderer.url_policy import UrlPolicy
from prerender_service.core.config import config_manager
from prerender_service.core.logger import get_logger

logger = get_logger(__name__)

MAX_SCREENSHOT_DIMENSION = 2000

router = APIRouter()


def get_renderer(request: Request) -> Renderer:
    """Dependency provider for the `Renderer` created at application startup."""
    renderer = getattr(request.app.state, "renderer", None)
    if renderer is None:
        logger.error("Render request received but no browser is running.")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Rendering service unavailable: browser is not running.",
        )
    return renderer


def get_url_policy(request: Request) -> UrlPolicy:
    policy = getattr(request.app.state, "url_policy", None)
    if policy is None:
        policy = UrlPolicy.from_config(config_manager)
        request.app.state.url_policy = policy
    return policy


@router.get(
    "/render/{url:path}",
    response_class=HTMLResponse,
    summary="Render a page and return its serialized HTML",
    responses={403: {"model": ErrorResponse}},
)
async def render_endpoint(
    url: str,
    mobile: bool = Query(False, description="Emulate a mobile device."),
    renderer: Renderer = Depends(get_renderer),
    url_policy: UrlPolicy = Depends(get_url_policy),
):
    """
    Renders `url` and returns the DOM after JavaScript has run.

    The response status is the page's own status, after 304 is mapped to 200
    and a `render:status_code` meta tag has been honoured. If the page could
    not be loaded at all the status is 400 with an empty body.
    """
    url_policy.check(url)
    result = await renderer.serialize(url, mobile)
    logger.info(f"Rendered '{url}' with status {result.status} ({len(result.content)} chars).")
    return HTMLResponse(content=result.content, status_code=result.status)


@router.api_route(
    "/screenshot/{url:path}",
    methods=["GET", "POST"],
    response_class=Response,
    summary="Render a page and return a JPEG screenshot",
    responses={
        200: {"content": {"image/jpeg": {}}},
        400: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
    },
)
async def screenshot_endpoint(
    url: str,
    mobile: bool = Query(False, description="Emulate a mobile device."),
    width: Optional[int] = Query(None, gt=0, le=MAX_SCREENSHOT_DIMENSION),
    height: Optional[int] = Query(None, gt=0, le=MAX_SCREENSHOT_DIMENSION),
    options: Optional[Dict[str, Any]] = Body(None, description="Extra Playwright screenshot options (POST only)."),
    renderer: Renderer = Depends(get_renderer),
    url_policy: UrlPolicy = Depends(get_url_policy),
):
    """
    Captures `url` as a JPEG at the requested size.

    `width` and `height` default to the configured renderer viewport.
    """
    url_policy.check(url)
    dimensions = ViewportDimensions(
        width=width or renderer.width,
        height=height or renderer.height,
    )
    image = await renderer.screenshot(url, mobile, dimensions, options)
    logger.info(f"Screenshot of '{url}' taken ({len(image)} bytes).")
    return Response(content=image, media_type="image/jpeg")


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health_endpoint(request: Request):
    browser_running = getattr(request.app.state, "renderer", None) is not None
    return HealthResponse(status="ok", browser_running=browser_running)
