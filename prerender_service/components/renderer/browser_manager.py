"""
Manages the Playwright browser instance shared by all render calls.

This module provides the `BrowserManager` class, an asynchronous context manager
that starts Playwright, launches one browser and shuts both down again. The
`Renderer` handed out by `renderer()` opens its pages from that browser.
"""
from playwright.async_api import async_playwright, Playwright, Browser
from typing import Optional, TYPE_CHECKING

from prerender_service.components.renderer.renderer import Renderer
from prerender_service.core.exceptions import ConfigurationError, RendererError
from prerender_service.core.logger import get_logger

if TYPE_CHECKING:
    from prerender_service.core.config import ConfigurationManager

logger = get_logger(__name__)

TRUE_STRINGS = ("true", "yes", "on", "1")
FALSE_STRINGS = ("false", "no", "off", "0")


class BrowserManager:
    """
    Asynchronous context manager for the service's Playwright browser.

    Attributes:
        browser_type (str): The type of browser to launch (e.g., 'chromium').
        headless (bool): Whether the browser runs without a window.
        playwright (Optional[Playwright]): The Playwright engine instance.
        browser (Optional[Browser]): The launched Playwright browser instance.
    """
    DEFAULT_BROWSER_TYPE = 'chromium'
    SUPPORTED_BROWSER_TYPES = ('chromium', 'firefox', 'webkit')

    def __init__(self, config: Optional['ConfigurationManager'] = None):
        """
        Initializes the BrowserManager.

        Args:
            config (Optional[ConfigurationManager]): Source of `browser.browser_type`
                and `browser.headless`, and of the renderer settings passed on to
                `Renderer`. If None, defaults will be used.

        Raises:
            RendererError: If an unsupported browser type is configured.
            ConfigurationError: If `browser.headless` is not a boolean.
        """
        self.config = config
        if config:
            self.browser_type = config.get('browser.browser_type', self.DEFAULT_BROWSER_TYPE)
            self.headless = self._parse_headless(config.get('browser.headless', True))
        else:
            self.browser_type = self.DEFAULT_BROWSER_TYPE
            self.headless = True

        logger.info(f"BrowserManager configured to use browser: {self.browser_type} (headless={self.headless})")

        if self.browser_type not in self.SUPPORTED_BROWSER_TYPES:
            logger.error(f"Unsupported browser type configured: {self.browser_type}")
            raise RendererError(f"Unsupported browser type: {self.browser_type}. Must be 'chromium', 'firefox', or 'webkit'.")

        self.playwright: Optional[Playwright] = None
        self.browser: Optional[Browser] = None

    @staticmethod
    def _parse_headless(value) -> bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered in TRUE_STRINGS:
                return True
            if lowered in FALSE_STRINGS:
                return False
        raise ConfigurationError(f"'browser.headless' must be a boolean, got {value!r}")

    async def __aenter__(self) -> 'BrowserManager':
        """
        Starts Playwright and launches the configured browser.

        Raises:
            RendererError: If Playwright fails to start or the browser fails to launch,
                           typically because browser binaries are not installed.
        """
        logger.debug(f"Starting Playwright and launching {self.browser_type} browser.")
        try:
            self.playwright = await async_playwright().start()
            browser_launcher = getattr(self.playwright, self.browser_type)
            self.browser = await browser_launcher.launch(headless=self.headless)
            logger.info(f"{self.browser_type} browser launched successfully.")
        except Exception as e:
            logger.error(f"Failed to initialize Playwright or launch browser {self.browser_type}: {e}", exc_info=True)
            if self.playwright:
                try:
                    await self.playwright.stop()
                except Exception as stop_e:
                    logger.error(f"Error stopping Playwright during startup cleanup: {stop_e}", exc_info=True)
                self.playwright = None
            raise RendererError(f"Failed to initialize Playwright or launch browser {self.browser_type}: {e}")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Closes the browser and stops the Playwright engine."""
        logger.debug("Closing browser and stopping Playwright.")
        if self.browser:
            try:
                await self.browser.close()
                logger.info("Browser closed successfully.")
            except Exception as e:
                logger.error(f"Error closing browser: {e}", exc_info=True)
        if self.playwright:
            try:
                await self.playwright.stop()
                logger.info("Playwright stopped successfully.")
            except Exception as e:
                logger.error(f"Error stopping Playwright: {e}", exc_info=True)

        self.browser = None
        self.playwright = None

    def renderer(self) -> Renderer:
        """
        Returns a `Renderer` bound to the running browser.

        Raises:
            RendererError: If the browser is not running (manager not entered).
        """
        if not self.browser:
            logger.error("renderer() called but browser is not initialized.")
            raise RendererError("Browser is not initialized. Ensure BrowserManager is used within an 'async with' statement.")
        return Renderer(self.browser, config=self.config)
