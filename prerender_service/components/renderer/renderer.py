"""
Page rendering and serialization on top of a Playwright browser.

The `Renderer` drives one fresh page per call: it navigates, waits for the
network to go idle, and hands back either the serialized DOM together with a
resolved HTTP status, or a JPEG screenshot. It owns no browser lifecycle;
see `BrowserManager` for that.
"""
import re
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional, TYPE_CHECKING, Union

from prerender_service.components.renderer.models import (
    USER_AGENTS,
    DeviceClass,
    NavigationOutcome,
    RenderRequest,
    SerializedResponse,
    Viewport,
    ViewportDimensions,
)
from prerender_service.core.exceptions import (
    ConfigurationError,
    ScreenshotError,
    ScreenshotErrorType,
    ScreenshotOptionsError,
)
from prerender_service.core.logger import get_logger

if TYPE_CHECKING:
    from playwright.async_api import Browser, Page, Response
    from prerender_service.core.config import ConfigurationManager

logger = get_logger(__name__)

STATUS_CODE_META_SELECTOR = 'meta[name="render:status_code"]'
NETWORK_IDLE = "networkidle"
SCREENSHOT_TIMEOUT = 10000  # Milliseconds, independent of renderer.timeout
NO_RESPONSE_STATUS = 400
MIN_HTTP_STATUS = 100
MAX_HTTP_STATUS = 599

# Keyword arguments accepted by playwright's Page.screenshot.
SCREENSHOT_OPTION_KEYS = frozenset({
    "timeout", "type", "path", "quality", "omit_background", "full_page",
    "clip", "animations", "caret", "scale", "mask", "mask_color", "style",
})
# Puppeteer spellings still sent by older clients.
SCREENSHOT_OPTION_ALIASES = {
    "fullPage": "full_page",
    "omitBackground": "omit_background",
    "maskColor": "mask_color",
}
# Controlled by the renderer: output is always an in-memory JPEG.
IGNORED_SCREENSHOT_OPTIONS = frozenset({"path", "encoding"})

_LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")


def parse_status_override(raw: Optional[str]) -> Optional[int]:
    """
    Parses the `content` attribute of the status meta tag.

    Leading digits are honoured ("404 Not Found" gives 404). Missing,
    non-numeric values and values outside 100..599 yield None, meaning
    "no override".
    """
    if raw is None:
        return None
    match = _LEADING_INT_RE.match(raw)
    if not match:
        return None
    value = int(match.group(1))
    if not MIN_HTTP_STATUS <= value <= MAX_HTTP_STATUS:
        return None
    return value


def normalize_screenshot_options(options: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Turns caller-supplied options into keyword arguments for `Page.screenshot`.

    Puppeteer camelCase names are mapped to their playwright equivalents,
    `path` and `encoding` are dropped and `type` is forced to jpeg.

    Raises:
        ScreenshotOptionsError: If any option is not understood by playwright.
    """
    normalized: Dict[str, Any] = {}
    invalid = []
    for key, value in (options or {}).items():
        if key in IGNORED_SCREENSHOT_OPTIONS:
            continue
        name = SCREENSHOT_OPTION_ALIASES.get(key, key)
        if name not in SCREENSHOT_OPTION_KEYS:
            invalid.append(key)
            continue
        normalized[name] = value
    if invalid:
        raise ScreenshotOptionsError(invalid)
    normalized["type"] = "jpeg"
    return normalized


def resolve_status(raw_status: int, override: Optional[int]) -> int:
    """
    Resolves the status reported for a rendered page.

    304 is treated as 200 first; the document may then replace a 200 with
    its own status, but never a non-200 one.
    """
    status = 200 if raw_status == 304 else raw_status
    if status == 200 and override:
        return override
    return status


class Renderer:
    """
    Renders pages in a shared Playwright browser.

    Every call opens exactly one page and closes it again before returning,
    whichever way the call ends. Calls share no state, so several may run
    concurrently against the same browser; no limit is imposed here.

    Attributes:
        browser (Browser): The launched browser new pages are opened from.
        width (int): Default viewport width for `serialize`.
        height (int): Default viewport height for `serialize`.
        timeout (int): Navigation timeout for `serialize`, in milliseconds.
    """
    DEFAULT_WIDTH = 1000
    DEFAULT_HEIGHT = 1000
    DEFAULT_TIMEOUT = 10000  # Milliseconds

    def __init__(self, browser: 'Browser', config: Optional['ConfigurationManager'] = None):
        """
        Args:
            browser (Browser): A launched Playwright browser (or anything with an
                async `new_page(**options)`).
            config (Optional[ConfigurationManager]): Source of `renderer.width`,
                `renderer.height` and `renderer.timeout`. Defaults apply if None.

        Raises:
            ConfigurationError: If one of the values is not a positive integer.
        """
        self.browser = browser
        if config:
            self.width = self._positive_int(config.get('renderer.width', self.DEFAULT_WIDTH), 'renderer.width')
            self.height = self._positive_int(config.get('renderer.height', self.DEFAULT_HEIGHT), 'renderer.height')
            self.timeout = self._positive_int(config.get('renderer.timeout', self.DEFAULT_TIMEOUT), 'renderer.timeout')
        else:
            self.width = self.DEFAULT_WIDTH
            self.height = self.DEFAULT_HEIGHT
            self.timeout = self.DEFAULT_TIMEOUT
        logger.debug(f"Renderer configured: viewport {self.width}x{self.height}, timeout {self.timeout}ms.")

    @staticmethod
    def _positive_int(value: Any, key: str) -> int:
        try:
            number = int(value)
        except (TypeError, ValueError):
            raise ConfigurationError(f"'{key}' must be an integer, got {value!r}")
        if number <= 0:
            raise ConfigurationError(f"'{key}' must be positive, got {number}")
        return number

    @asynccontextmanager
    async def _open_page(self, viewport: Viewport) -> AsyncIterator['Page']:
        """Opens a page emulating `viewport` and closes it on exit, success or error."""
        device_class = DeviceClass.from_flag(viewport.is_mobile)
        page_options: Dict[str, Any] = {
            "viewport": viewport.as_playwright(),
            "is_mobile": viewport.is_mobile,
        }
        user_agent = USER_AGENTS.get(device_class)
        if user_agent:
            page_options["user_agent"] = user_agent

        page = await self.browser.new_page(**page_options)
        try:
            yield page
        finally:
            try:
                await page.close()
            except Exception as e:
                logger.error(f"Error closing page: {e}", exc_info=True)

    async def _navigate(
        self,
        page: 'Page',
        url: str,
        timeout: int,
        capture_first_response: bool = False,
    ) -> NavigationOutcome:
        """
        Navigates `page` to `url` and waits for network idle.

        Navigation errors are logged and recorded on the outcome, never raised.
        With `capture_first_response`, the first response seen on the page is
        used when the navigation itself returns none.
        """
        first_seen: List['Response'] = []

        if capture_first_response:
            def _record(response: 'Response') -> None:
                if not first_seen:
                    first_seen.append(response)
            page.on("response", _record)

        outcome = NavigationOutcome()
        try:
            outcome.response = await page.goto(url, timeout=timeout, wait_until=NETWORK_IDLE)
        except Exception as e:
            logger.error(f"Error navigating to page '{url}': {e}")
            outcome.error = e

        if outcome.response is None and first_seen:
            logger.debug(f"Navigation to '{url}' returned no response; using first observed response.")
            outcome.response = first_seen[0]
        return outcome

    async def _status_override(self, page: 'Page') -> Optional[int]:
        try:
            element = await page.query_selector(STATUS_CODE_META_SELECTOR)
            if element is None:
                return None
            raw = await element.get_attribute("content")
        except Exception as e:
            logger.debug(f"Status code meta tag lookup failed: {e}")
            return None
        return parse_status_override(raw)

    async def serialize(self, url: str, is_mobile: bool) -> SerializedResponse:
        """
        Renders `url` and returns the serialized document with its resolved status.

        Never raises for navigation problems: when no response at all was
        obtained, the result is `SerializedResponse(400, '')`.

        Args:
            url (str): Page to render.
            is_mobile (bool): Emulate a mobile device (viewport flag and user agent).

        Returns:
            SerializedResponse: Final status code and `documentElement.outerHTML`.
        """
        viewport = Viewport(width=self.width, height=self.height, is_mobile=is_mobile)
        logger.info(f"Serializing '{url}' (mobile={is_mobile}).")

        async with self._open_page(viewport) as page:
            outcome = await self._navigate(page, url, self.timeout, capture_first_response=True)

            if not outcome.has_response:
                logger.error(f"No response received for '{url}'.")
                return SerializedResponse(status=NO_RESPONSE_STATUS, content='')

            raw_status = outcome.response.status
            override = await self._status_override(page)
            status = resolve_status(raw_status, override)
            if status != raw_status:
                logger.debug(f"Status for '{url}' resolved from {raw_status} to {status}.")

            content = await page.evaluate("() => document.documentElement.outerHTML")

        return SerializedResponse(status=status, content=content)

    async def screenshot(
        self,
        url: str,
        is_mobile: bool,
        dimensions: ViewportDimensions,
        options: Optional[Dict[str, Any]] = None,
    ) -> bytes:
        """
        Renders `url` at `dimensions` and captures it as a JPEG.

        Args:
            url (str): Page to capture.
            is_mobile (bool): Emulate a mobile device.
            dimensions (ViewportDimensions): Viewport size for this capture.
            options (Optional[Dict[str, Any]]): Extra Playwright screenshot options
                (e.g. `clip`, `quality`, `full_page`; Puppeteer `fullPage` style names
                are accepted). `type` is always forced to jpeg; `path` and `encoding`
                are ignored.

        Returns:
            bytes: The JPEG image.

        Raises:
            ScreenshotError: With type `NO_RESPONSE` if navigation produced no response.
            ScreenshotOptionsError: If `options` holds a key playwright does not accept.
        """
        viewport = Viewport.from_dimensions(dimensions, is_mobile)
        logger.info(f"Taking screenshot of '{url}' at {dimensions.width}x{dimensions.height} (mobile={is_mobile}).")

        screenshot_options = normalize_screenshot_options(options)

        async with self._open_page(viewport) as page:
            outcome = await self._navigate(page, url, SCREENSHOT_TIMEOUT)
            if not outcome.has_response:
                logger.error(f"No response received for screenshot of '{url}'.")
                raise ScreenshotError(ScreenshotErrorType.NO_RESPONSE)

            return await page.screenshot(**screenshot_options)

    async def render(self, request: RenderRequest) -> Union[SerializedResponse, bytes]:
        """Runs `request` as a screenshot if it carries dimensions, otherwise as a serialization."""
        if request.dimensions is not None:
            return await self.screenshot(
                request.url,
                request.is_mobile,
                request.dimensions,
                request.screenshot_options,
            )
        return await self.serialize(request.url, request.is_mobile)
