"""
Custom exception classes for the Prerender Service.
"""
from enum import Enum
from typing import List


class PrerenderError(Exception):
    """
    Base class for all custom exceptions in the Prerender Service.

    Attributes:
        message (str): A human-readable description of the error.
    """
    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)

    def __str__(self) -> str:
        return f"{self.__class__.__name__}: {self.message}"


# --- Configuration Related Exceptions ---
class ConfigurationError(PrerenderError):
    """
    Raised for errors related to application configuration, such as a value
    of the wrong type or outside its allowed range.
    """
    def __init__(self, message: str):
        super().__init__(message)


# --- Component Related Exceptions ---
class ComponentError(PrerenderError):
    """
    A general base class for errors originating from within a specific component.

    Attributes:
        component_name (str): Name of the component where the error originated.
    """
    def __init__(self, component_name: str, message: str):
        full_message = f"Error in component '{component_name}': {message}"
        super().__init__(full_message)
        self.component_name = component_name


class RendererError(ComponentError):
    """Raised for errors specific to the Renderer component (browser launch, page handling)."""
    def __init__(self, message: str):
        super().__init__(component_name="Renderer", message=message)


class ScreenshotOptionsError(RendererError):
    """
    Raised when caller-supplied screenshot options cannot be passed to the browser.

    Attributes:
        invalid_keys (List[str]): The option names that were not recognised.
    """
    def __init__(self, invalid_keys: List[str]):
        self.invalid_keys = sorted(invalid_keys)
        super().__init__(f"Unsupported screenshot options: {', '.join(self.invalid_keys)}")


class ScreenshotErrorType(str, Enum):
    """Closed set of reasons a screenshot can be refused or fail."""
    FORBIDDEN = "Forbidden"
    NO_RESPONSE = "NoResponse"


class ScreenshotError(RendererError):
    """
    Raised when a screenshot cannot be produced.

    Callers should branch on `type` rather than on the message text.

    Attributes:
        type (ScreenshotErrorType): Why the screenshot was not produced.
    """
    def __init__(self, type: ScreenshotErrorType):
        self.type = ScreenshotErrorType(type)
        super().__init__(self.type.value)
