"""
Value types shared by the renderer component.

Everything here is transient: built for one render call and discarded
once the result is handed back to the caller.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from playwright.async_api import Response


class DeviceClass(str, Enum):
    """Emulation profile used for a render: affects viewport flags and user agent."""
    MOBILE = "mobile"
    DESKTOP = "desktop"

    @classmethod
    def from_flag(cls, is_mobile: bool) -> 'DeviceClass':
        return cls.MOBILE if is_mobile else cls.DESKTOP


MOBILE_USERAGENT = (
    'Mozilla/5.0 (Linux; Android 8.0.0; Pixel 2 XL Build/OPD1.170816.004) '
    'AppleWebKit/537.36 (KHTML, like Gecko) Chrome/68.0.3440.75 Mobile Safari/537.36'
)

# User agent override per device class. None keeps the browser's own user agent.
USER_AGENTS: Dict[DeviceClass, Optional[str]] = {
    DeviceClass.MOBILE: MOBILE_USERAGENT,
    DeviceClass.DESKTOP: None,
}


@dataclass(frozen=True)
class ViewportDimensions:
    """Explicit width/height pair, e.g. the size requested for a screenshot."""
    width: int
    height: int

    def __post_init__(self):
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Viewport dimensions must be positive, got {self.width}x{self.height}")


@dataclass(frozen=True)
class Viewport:
    width: int
    height: int
    is_mobile: bool = False

    def __post_init__(self):
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Viewport dimensions must be positive, got {self.width}x{self.height}")

    @classmethod
    def from_dimensions(cls, dimensions: ViewportDimensions, is_mobile: bool) -> 'Viewport':
        return cls(width=dimensions.width, height=dimensions.height, is_mobile=is_mobile)

    def as_playwright(self) -> Dict[str, int]:
        """Returns the `viewport` mapping expected by Playwright's `new_page`."""
        return {"width": self.width, "height": self.height}


@dataclass
class RenderRequest:
    """
    A single render job as constructed by a caller.

    When `dimensions` is set the request asks for a screenshot, otherwise
    for serialized HTML.
    """
    url: str
    device_class: DeviceClass = DeviceClass.DESKTOP
    dimensions: Optional[ViewportDimensions] = None
    screenshot_options: Optional[Dict[str, Any]] = None

    def __post_init__(self):
        if not self.url:
            raise ValueError("RenderRequest.url must be a non-empty string")

    @property
    def is_mobile(self) -> bool:
        return self.device_class is DeviceClass.MOBILE


@dataclass(frozen=True)
class SerializedResponse:
    status: int
    content: str


@dataclass
class NavigationOutcome:
    """
    Result of one navigation attempt.

    `response` is the response to use for status resolution: the navigation's
    own response when it produced one, otherwise the first response observed
    on the page. `error` holds the navigation exception, if any.
    """
    response: Optional['Response'] = None
    error: Optional[Exception] = field(default=None, repr=False)

    @property
    def has_response(self) -> bool:
        return self.response is not None
