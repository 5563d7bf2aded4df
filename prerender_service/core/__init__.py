from .config import get_config, config_manager, ConfigurationManager, ConfigError, ConfigFileNotFoundError, InvalidYamlError
from .exceptions import (
    PrerenderError,
    ConfigurationError,
    ComponentError,
    RendererError,
    ScreenshotError,
    ScreenshotErrorType,
    ScreenshotOptionsError,
)
from .logger import setup_logging, get_logger

__all__ = [
    # Config
    "get_config",
    "config_manager",
    "ConfigurationManager",
    "ConfigError",
    "ConfigFileNotFoundError",
    "InvalidYamlError",
    # Logger
    "setup_logging",
    "get_logger",
    # Exceptions
    "PrerenderError",
    "ConfigurationError",
    "ComponentError",
    "RendererError",
    "ScreenshotError",
    "ScreenshotErrorType",
    "ScreenshotOptionsError",
]
