"""
Decides which URLs the service is willing to open in its browser.
"""
import re
from typing import Optional, Pattern, TYPE_CHECKING
from urllib.parse import urlparse

from prerender_service.core.exceptions import ConfigurationError, ScreenshotError, ScreenshotErrorType
from prerender_service.core.logger import get_logger

if TYPE_CHECKING:
    from prerender_service.core.config import ConfigurationManager

logger = get_logger(__name__)

ALLOWED_SCHEMES = ("http", "https")
# Cloud metadata endpoints (e.g. metadata.google.internal).
INTERNAL_HOST_SUFFIX = ".internal"


class UrlPolicy:
    """
    Rejects URLs that should never be rendered.

    A URL is restricted when its scheme is not http(s), it has no host, its
    host is an `.internal` name, or it matches the configured
    `security.restricted_url_pattern` regex.
    """

    def __init__(self, restricted_pattern: Optional[str] = None):
        self.restricted_pattern: Optional[Pattern[str]] = None
        if restricted_pattern:
            try:
                self.restricted_pattern = re.compile(restricted_pattern)
            except re.error as e:
                raise ConfigurationError(f"Invalid security.restricted_url_pattern {restricted_pattern!r}: {e}")

    @classmethod
    def from_config(cls, config: Optional['ConfigurationManager']) -> 'UrlPolicy':
        pattern = config.get('security.restricted_url_pattern') if config else None
        return cls(restricted_pattern=pattern)

    def is_restricted(self, url: str) -> bool:
        parsed = urlparse(url)
        if parsed.scheme not in ALLOWED_SCHEMES:
            return True
        hostname = parsed.hostname
        if not hostname:
            return True
        if hostname.endswith(INTERNAL_HOST_SUFFIX):
            return True
        if self.restricted_pattern and self.restricted_pattern.search(url):
            return True
        return False

    def check(self, url: str) -> None:
        """
        Raises:
            ScreenshotError: With type `FORBIDDEN` if `url` is restricted.
        """
        if self.is_restricted(url):
            logger.warning(f"Refusing restricted URL '{url}'.")
            raise ScreenshotError(ScreenshotErrorType.FORBIDDEN)
