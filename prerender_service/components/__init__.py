"""
Components sub-package for the Prerender Service.

Currently a single component lives here:
- `renderer`: headless-browser rendering, serialization and screenshots.
"""
from .renderer import BrowserManager, Renderer, UrlPolicy

__all__ = [
    "BrowserManager",
    "Renderer",
    "UrlPolicy",
]
