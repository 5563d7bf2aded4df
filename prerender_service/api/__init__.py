"""
API sub-package for the Prerender Service.

This package contains the FastAPI application (`api.main`), its routes and
Pydantic response models. Import `prerender_service.api.main:app` to serve it.
"""

__all__ = []
