import pytest
from unittest.mock import AsyncMock, MagicMock

from prerender_service.components.renderer.models import (
    MOBILE_USERAGENT,
    DeviceClass,
    RenderRequest,
    SerializedResponse,
    ViewportDimensions,
)
from prerender_service.components.renderer.renderer import (
    Renderer,
    SCREENSHOT_TIMEOUT,
    normalize_screenshot_options,
    parse_status_override,
    resolve_status,
)
from prerender_service.core.exceptions import (
    ConfigurationError,
    ScreenshotError,
    ScreenshotErrorType,
    ScreenshotOptionsError,
)

HTML = "<html><head></head><body><h1>Rendered</h1></body></html>"
JPEG = b"\xff\xd8\xff\xe0fake-jpeg"


class MockConfigurationManager:
    def __init__(self, settings=None):
        self.settings = settings if settings is not None else {}

    def get(self, key, default=None):
        try:
            value = self.settings
            for k_part in key.split('.'):
                value = value[k_part]
            return value
        except (KeyError, TypeError):
            return default


class FakeResponse:
    """Stands in for playwright's Response; only `status` is read."""
    def __init__(self, status):
        self.status = status


def make_page(goto_response=None, goto_error=None, observed=(), meta_content=None, meta_error=None):
    """
    Builds a mock Playwright page.

    `observed` responses are delivered to registered "response" listeners
    while goto runs, before it returns `goto_response` or raises `goto_error`.
    """
    page = MagicMock()
    listeners = []
    page.on = MagicMock(side_effect=lambda event, handler: listeners.append(handler))

    async def goto(url, **kwargs):
        for response in observed:
            for listener in listeners:
                listener(response)
        if goto_error is not None:
            raise goto_error
        return goto_response

    page.goto = AsyncMock(side_effect=goto)

    if meta_error is not None:
        page.query_selector = AsyncMock(side_effect=meta_error)
    elif meta_content is None:
        page.query_selector = AsyncMock(return_value=None)
    else:
        element = MagicMock()
        element.get_attribute = AsyncMock(return_value=meta_content)
        page.query_selector = AsyncMock(return_value=element)

    page.evaluate = AsyncMock(return_value=HTML)
    page.screenshot = AsyncMock(return_value=JPEG)
    page.close = AsyncMock()
    return page


def make_browser(page):
    browser = MagicMock()
    browser.new_page = AsyncMock(return_value=page)
    return browser


# --- Status helpers ---

@pytest.mark.parametrize("raw, expected", [
    ("404", 404),
    (" 503 ", 503),
    ("410 Gone", 410),
    ("", None),
    ("abc", None),
    ("0", None),
    ("-7", None),
    ("99", None),
    ("600", None),
    ("599", 599),
    ("100", 100),
    (None, None),
])
def test_parse_status_override(raw, expected):
    assert parse_status_override(raw) == expected


@pytest.mark.parametrize("raw_status, override, expected", [
    (200, None, 200),
    (304, None, 200),
    (200, 404, 404),
    (304, 404, 404),
    (500, 404, 500),
    (301, 200, 301),
    (404, None, 404),
])
def test_resolve_status(raw_status, override, expected):
    assert resolve_status(raw_status, override) == expected


# --- Configuration ---

def test_renderer_defaults_without_config():
    renderer = Renderer(make_browser(make_page()))
    assert (renderer.width, renderer.height, renderer.timeout) == (1000, 1000, 10000)


def test_renderer_reads_config():
    config = MockConfigurationManager({"renderer": {"width": 1280, "height": 720, "timeout": 5000}})
    renderer = Renderer(make_browser(make_page()), config=config)
    assert (renderer.width, renderer.height, renderer.timeout) == (1280, 720, 5000)


@pytest.mark.parametrize("settings", [
    {"renderer": {"width": 0}},
    {"renderer": {"height": -5}},
    {"renderer": {"timeout": "soon"}},
])
def test_renderer_rejects_invalid_config(settings):
    with pytest.raises(ConfigurationError):
        Renderer(make_browser(make_page()), config=MockConfigurationManager(settings))


# --- serialize ---

@pytest.mark.asyncio
async def test_serialize_200_without_override_keeps_status():
    page = make_page(goto_response=FakeResponse(200))
    renderer = Renderer(make_browser(page))

    result = await renderer.serialize("http://example.com", False)

    assert result == SerializedResponse(status=200, content=HTML)
    page.evaluate.assert_awaited_once_with("() => document.documentElement.outerHTML")
    page.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_serialize_304_is_reported_as_200():
    page = make_page(goto_response=FakeResponse(304))
    result = await Renderer(make_browser(page)).serialize("http://example.com", False)
    assert result.status == 200


@pytest.mark.asyncio
async def test_serialize_meta_tag_overrides_200():
    """A 200 page carrying <meta name="render:status_code" content="404"> is reported as 404."""
    page = make_page(goto_response=FakeResponse(200), meta_content="404")
    result = await Renderer(make_browser(page)).serialize("http://example.com/missing", False)

    assert result == SerializedResponse(status=404, content=HTML)
    page.query_selector.assert_awaited_once_with('meta[name="render:status_code"]')


@pytest.mark.asyncio
async def test_serialize_meta_tag_overrides_304():
    page = make_page(goto_response=FakeResponse(304), meta_content="404")
    result = await Renderer(make_browser(page)).serialize("http://example.com", False)
    assert result.status == 404


@pytest.mark.asyncio
async def test_serialize_meta_tag_ignored_for_non_200():
    page = make_page(goto_response=FakeResponse(500), meta_content="200")
    result = await Renderer(make_browser(page)).serialize("http://example.com", False)
    assert result.status == 500


@pytest.mark.asyncio
async def test_serialize_unparsable_meta_tag_is_ignored():
    page = make_page(goto_response=FakeResponse(200), meta_content="not-a-number")
    result = await Renderer(make_browser(page)).serialize("http://example.com", False)
    assert result.status == 200


@pytest.mark.asyncio
async def test_serialize_out_of_range_meta_tag_is_ignored():
    """A document cannot turn its status into something an HTTP server cannot send."""
    page = make_page(goto_response=FakeResponse(200), meta_content="-7")
    result = await Renderer(make_browser(page)).serialize("http://example.com", False)
    assert result.status == 200


@pytest.mark.asyncio
async def test_serialize_meta_lookup_failure_is_ignored():
    page = make_page(goto_response=FakeResponse(200), meta_error=Exception("Execution context was destroyed"))
    result = await Renderer(make_browser(page)).serialize("http://example.com", False)
    assert result == SerializedResponse(status=200, content=HTML)


@pytest.mark.asyncio
async def test_serialize_timeout_without_any_response_returns_400():
    page = make_page(goto_error=TimeoutError("Timeout 10000ms exceeded."))
    result = await Renderer(make_browser(page)).serialize("http://slow.example.com", False)

    assert result == SerializedResponse(status=400, content='')
    page.evaluate.assert_not_awaited()
    page.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_serialize_navigation_returning_none_returns_400():
    page = make_page(goto_response=None)
    result = await Renderer(make_browser(page)).serialize("http://example.com", False)
    assert result == SerializedResponse(status=400, content='')
    page.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_serialize_falls_back_to_first_observed_response():
    """When navigation fails, the first response seen on the page is used."""
    page = make_page(
        goto_error=TimeoutError("Timeout exceeded"),
        observed=[FakeResponse(200), FakeResponse(404)],
    )
    result = await Renderer(make_browser(page)).serialize("http://example.com", False)

    assert result == SerializedResponse(status=200, content=HTML)
    page.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_serialize_prefers_navigation_response_over_observed():
    page = make_page(goto_response=FakeResponse(200), observed=[FakeResponse(301)])
    result = await Renderer(make_browser(page)).serialize("http://example.com", False)
    assert result.status == 200


@pytest.mark.asyncio
async def test_serialize_closes_page_when_serialization_fails():
    page = make_page(goto_response=FakeResponse(200))
    page.evaluate = AsyncMock(side_effect=Exception("Target closed"))

    with pytest.raises(Exception, match="Target closed"):
        await Renderer(make_browser(page)).serialize("http://example.com", False)
    page.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_serialize_navigates_with_configured_timeout_and_network_idle():
    page = make_page(goto_response=FakeResponse(200))
    config = MockConfigurationManager({"renderer": {"timeout": 4321}})
    await Renderer(make_browser(page), config=config).serialize("http://example.com", False)
    page.goto.assert_awaited_once_with("http://example.com", timeout=4321, wait_until="networkidle")


@pytest.mark.asyncio
async def test_serialize_mobile_sets_user_agent_and_mobile_viewport():
    page = make_page(goto_response=FakeResponse(200))
    browser = make_browser(page)
    config = MockConfigurationManager({"renderer": {"width": 400, "height": 800}})

    await Renderer(browser, config=config).serialize("http://example.com", True)

    browser.new_page.assert_awaited_once_with(
        viewport={"width": 400, "height": 800},
        is_mobile=True,
        user_agent=MOBILE_USERAGENT,
    )


@pytest.mark.asyncio
async def test_serialize_desktop_keeps_browser_user_agent():
    page = make_page(goto_response=FakeResponse(200))
    browser = make_browser(page)

    await Renderer(browser).serialize("http://example.com", False)

    kwargs = browser.new_page.await_args.kwargs
    assert kwargs["is_mobile"] is False
    assert "user_agent" not in kwargs
    assert kwargs["viewport"] == {"width": 1000, "height": 1000}


# --- screenshot ---

@pytest.mark.asyncio
async def test_screenshot_returns_jpeg_bytes():
    page = make_page(goto_response=FakeResponse(200))
    browser = make_browser(page)

    image = await Renderer(browser).screenshot("http://example.com", False, ViewportDimensions(640, 480))

    assert image == JPEG
    page.screenshot.assert_awaited_once_with(type="jpeg")
    page.goto.assert_awaited_once_with("http://example.com", timeout=SCREENSHOT_TIMEOUT, wait_until="networkidle")
    browser.new_page.assert_awaited_once_with(viewport={"width": 640, "height": 480}, is_mobile=False)
    page.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_screenshot_timeout_ignores_configured_timeout():
    page = make_page(goto_response=FakeResponse(200))
    config = MockConfigurationManager({"renderer": {"timeout": 60000}})
    await Renderer(make_browser(page), config=config).screenshot("http://example.com", False, ViewportDimensions(10, 10))
    assert page.goto.await_args.kwargs["timeout"] == 10000


@pytest.mark.asyncio
async def test_screenshot_merges_options_and_forces_jpeg():
    page = make_page(goto_response=FakeResponse(200))
    options = {
        "type": "png",
        "encoding": "base64",
        "path": "/tmp/out.png",
        "quality": 80,
        "clip": {"x": 0, "y": 0, "width": 100, "height": 100},
    }

    await Renderer(make_browser(page)).screenshot("http://example.com", False, ViewportDimensions(800, 600), options)

    page.screenshot.assert_awaited_once_with(
        type="jpeg",
        quality=80,
        clip={"x": 0, "y": 0, "width": 100, "height": 100},
    )
    assert options["type"] == "png"  # caller's dict is left untouched


def test_normalize_screenshot_options_maps_puppeteer_names():
    options = {"fullPage": True, "omitBackground": False, "quality": 60}
    assert normalize_screenshot_options(options) == {
        "full_page": True,
        "omit_background": False,
        "quality": 60,
        "type": "jpeg",
    }


def test_normalize_screenshot_options_without_options():
    assert normalize_screenshot_options(None) == {"type": "jpeg"}


def test_normalize_screenshot_options_rejects_unknown_keys():
    with pytest.raises(ScreenshotOptionsError) as excinfo:
        normalize_screenshot_options({"quality": 50, "zoom": 2, "captureBeyondViewport": True})
    assert excinfo.value.invalid_keys == ["captureBeyondViewport", "zoom"]


@pytest.mark.asyncio
async def test_screenshot_accepts_puppeteer_option_names():
    page = make_page(goto_response=FakeResponse(200))
    await Renderer(make_browser(page)).screenshot(
        "http://example.com", False, ViewportDimensions(800, 600), {"fullPage": True}
    )
    page.screenshot.assert_awaited_once_with(full_page=True, type="jpeg")


@pytest.mark.asyncio
async def test_screenshot_unknown_option_fails_before_opening_page():
    page = make_page(goto_response=FakeResponse(200))
    browser = make_browser(page)

    with pytest.raises(ScreenshotOptionsError) as excinfo:
        await Renderer(browser).screenshot("http://example.com", False, ViewportDimensions(800, 600), {"zoom": 2})

    assert excinfo.value.invalid_keys == ["zoom"]
    browser.new_page.assert_not_awaited()
    page.screenshot.assert_not_awaited()


@pytest.mark.asyncio
async def test_screenshot_mobile_sets_user_agent():
    page = make_page(goto_response=FakeResponse(200))
    browser = make_browser(page)
    await Renderer(browser).screenshot("http://example.com", True, ViewportDimensions(375, 667))
    browser.new_page.assert_awaited_once_with(
        viewport={"width": 375, "height": 667},
        is_mobile=True,
        user_agent=MOBILE_USERAGENT,
    )


@pytest.mark.asyncio
async def test_screenshot_without_response_raises_no_response_and_closes_page():
    page = make_page(goto_error=TimeoutError("Timeout 10000ms exceeded."))

    with pytest.raises(ScreenshotError) as excinfo:
        await Renderer(make_browser(page)).screenshot("http://slow.example.com", False, ViewportDimensions(800, 600))

    assert excinfo.value.type is ScreenshotErrorType.NO_RESPONSE
    page.screenshot.assert_not_awaited()
    page.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_screenshot_does_not_use_observed_responses():
    page = make_page(goto_error=TimeoutError("Timeout"), observed=[FakeResponse(200)])
    with pytest.raises(ScreenshotError) as excinfo:
        await Renderer(make_browser(page)).screenshot("http://example.com", False, ViewportDimensions(800, 600))
    assert excinfo.value.type is ScreenshotErrorType.NO_RESPONSE


@pytest.mark.asyncio
async def test_page_close_failure_does_not_mask_result():
    page = make_page(goto_response=FakeResponse(200))
    page.close = AsyncMock(side_effect=Exception("Browser has been closed"))
    result = await Renderer(make_browser(page)).serialize("http://example.com", False)
    assert result.status == 200


# --- render ---

@pytest.mark.asyncio
async def test_render_dispatches_to_serialize():
    page = make_page(goto_response=FakeResponse(200))
    request = RenderRequest(url="http://example.com", device_class=DeviceClass.MOBILE)
    result = await Renderer(make_browser(page)).render(request)
    assert result == SerializedResponse(status=200, content=HTML)


@pytest.mark.asyncio
async def test_render_dispatches_to_screenshot_when_dimensions_given():
    page = make_page(goto_response=FakeResponse(200))
    request = RenderRequest(
        url="http://example.com",
        dimensions=ViewportDimensions(320, 240),
        screenshot_options={"full_page": True},
    )
    result = await Renderer(make_browser(page)).render(request)
    assert result == JPEG
    page.screenshot.assert_awaited_once_with(full_page=True, type="jpeg")
