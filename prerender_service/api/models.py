from typing import Optional
from pydantic import BaseModel


class HealthResponse(BaseModel):
    """
    Response model for the health check endpoint.
    """
    status: str
    browser_running: bool


class ErrorResponse(BaseModel):
    """
    Body returned for application errors that carry no rendered content.
    """
    detail: str
    error_type: Optional[str] = None
