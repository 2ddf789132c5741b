import pytest

from conftest import FakeElement, FakePage
from listings_finder.errors import InteractionError
from listings_finder.scrapers.dom import click_if_present, extractor


@extractor("flaky", default=list)
async def flaky(page, *, logger):
    raise RuntimeError("selector vanished")


@extractor("steady", default=list)
async def steady(page, value, *, logger):
    logger.debug("steady extractor called")
    return [value]


async def test_extractor_degrades_to_default():
    assert await flaky(FakePage()) == []


async def test_extractor_passes_arguments_through():
    assert await steady(FakePage(), "x") == ["x"]


async def test_click_if_present():
    button = FakeElement()
    page = FakePage(elements={"button": button})
    assert await click_if_present(page, "button") is True
    assert button.clicks == 1
    assert await click_if_present(page, "missing") is False


async def test_click_failure_raises_interaction_error():
    page = FakePage(elements={"button": FakeElement(click_error=RuntimeError("detached"))})
    with pytest.raises(InteractionError):
        await click_if_present(page, "button")
