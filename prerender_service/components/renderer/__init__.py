"""
Renderer component for the Prerender Service.

This sub-package renders web pages in a headless browser and returns either
the serialized DOM (after JavaScript has run) or a JPEG screenshot.
"""
from .models import (
    DeviceClass,
    MOBILE_USERAGENT,
    RenderRequest,
    SerializedResponse,
    USER_AGENTS,
    Viewport,
    ViewportDimensions,
)
from .renderer import Renderer
from .browser_manager import BrowserManager
from .url_policy import UrlPolicy

__all__ = [
    "BrowserManager",
    "DeviceClass",
    "MOBILE_USERAGENT",
    "Renderer",
    "RenderRequest",
    "SerializedResponse",
    "USER_AGENTS",
    "UrlPolicy",
    "Viewport",
    "ViewportDimensions",
]
