from contextlib import asynccontextmanager

import pytest

from listings_finder import config as config_module

ENV_KEYS = (
    "API_TOKENS", "LOG_LEVEL", "PORT", "BROWSER_HEADLESS", "STEALTH_LEVEL",
    "CLOSE_INACTIVE_BROWSER_AFTER_SECS", "MIN_DELAY_MS", "MAX_DELAY_MS",
    "INCLUDE_CATEGORY_RATINGS", "AMENITY_DESCRIPTIONS",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("LOG_ROOT", str(tmp_path / "logs"))
    config_module.reset_config()
    yield
    config_module.reset_config()


@pytest.fixture(autouse=True)
def sleeps(monkeypatch):
    """Make every page pause instant and record the requested durations in seconds."""
    recorded = []

    async def instant(seconds):
        recorded.append(seconds)

    monkeypatch.setattr("listings_finder.delays.sleep", instant)
    return recorded


def by_arg(mapping, default=None):
    """Script result keyed on the argument passed to ``page.evaluate``."""
    return lambda arg: mapping.get(arg, default)


class FakeElement:
    def __init__(self, href=None, *, disabled=False, click_error=None):
        self.attrs = {"href": href}
        self.disabled = disabled
        self.click_error = click_error
        self.clicks = 0

    async def scroll_into_view_if_needed(self):
        pass

    async def click(self, timeout=None):
        if self.click_error is not None:
            raise self.click_error
        self.clicks += 1

    async def get_attribute(self, name):
        return self.attrs.get(name)

    async def evaluate(self, script, arg=None):
        return self.disabled


class FakeKeyboard:
    def __init__(self):
        self.pressed = []

    async def press(self, key):
        self.pressed.append(key)


class FakePage:
    """Playwright page stand-in.

    ``scripts`` maps a JS snippet to its result, or to a callable taking the
    evaluate argument. ``goto_errors`` is consumed one entry per ``goto``
    (``None`` means success); ``goto_error`` fails every ``goto``.
    """

    def __init__(self, scripts=None, elements=None, *, goto_errors=None, goto_error=None,
                 missing_selectors=(), url="about:blank"):
        self.scripts = dict(scripts or {})
        self.elements = dict(elements or {})
        self.goto_errors = list(goto_errors or [])
        self.goto_error = goto_error
        self.missing_selectors = set(missing_selectors)
        self.url = url
        self.visited = []
        self.clicked = []
        self.keyboard = FakeKeyboard()
        self.closed = False

    async def goto(self, url, wait_until=None, timeout=None):
        self.visited.append((url, wait_until))
        if self.goto_error is not None:
            raise self.goto_error
        if self.goto_errors:
            error = self.goto_errors.pop(0)
            if error is not None:
                raise error
        self.url = url

    async def evaluate(self, script, arg=None):
        value = self.scripts.get(script)
        if callable(value):
            return value(arg)
        return value

    async def query_selector(self, selector):
        return self.elements.get(selector)

    async def click(self, selector, timeout=None):
        self.clicked.append(selector)

    async def wait_for_selector(self, selector, timeout=None):
        if selector in self.missing_selectors:
            raise TimeoutError(f"Timeout waiting for {selector}")

    async def wait_for_load_state(self, state=None, timeout=None):
        pass

    async def close(self):
        self.closed = True

    def visited_urls(self):
        return [url for url, _ in self.visited]


class FakeSession:
    """Render session handing out FakePages from ``page_factory``."""

    def __init__(self, page_factory=FakePage, page_error=None):
        self.page_factory = page_factory
        self.page_error = page_error
        self.pages = []

    @asynccontextmanager
    async def page(self):
        if self.page_error is not None:
            raise self.page_error
        page = self.page_factory()
        self.pages.append(page)
        try:
            yield page
        finally:
            page.closed = True


@pytest.fixture
def fake_session():
    return FakeSession()


def session_factory_for(session, calls):
    """Stand-in for ``runtime.acquire`` that records each launch."""

    @asynccontextmanager
    async def factory(config, logger):
        calls.append(config)
        yield session

    return factory
