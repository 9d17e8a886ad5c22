import asyncio

import pytest
from playwright.async_api import Error as PlaywrightError

from adlib_scraper.consent import ConsentCache
from adlib_scraper.snapshot import scrape_profile, scrape_snapshot

SNAPSHOT_URL = "https://www.facebook.com/ads/archive/render_ad/?id=1&access_token=t"


class FakeKeyboard:
    def __init__(self):
        self.pressed = []

    async def press(self, key):
        self.pressed.append(key)


class FakeLocator:
    def __init__(self, page):
        self.page = page

    @property
    def first(self):
        return self

    async def click(self, timeout=None):
        self.page.overlay_clicks += 1
        raise PlaywrightError("no overlay")


class FakePage:
    """Serves canned links, button texts and body text per visited URL."""

    def __init__(self, hrefs=(), texts=(), bodies=None, goto_error=None):
        self.hrefs = list(hrefs)
        self.texts = list(texts)
        self.bodies = bodies or {}
        self.goto_error = goto_error
        self.visited = []
        self.evaluated = 0
        self.overlay_clicks = 0
        self.keyboard = FakeKeyboard()
        self.url = "about:blank"
        self.main_frame = "main"
        self.frames = ["main"]

    async def goto(self, url, wait_until=None, timeout=None):
        self.visited.append(url)
        if self.goto_error:
            raise self.goto_error
        self.url = url

    async def wait_for_selector(self, selector, timeout=None):
        raise PlaywrightError("Timeout exceeded")

    async def evaluate(self, script, arg=None):
        self.evaluated += 1
        if "document.body" in script:
            for marker, body in self.bodies.items():
                if marker in self.url:
                    return body
            return ""
        if "href" in script:
            return self.hrefs
        return self.texts

    def locator(self, selector):
        return FakeLocator(self)


def _consent():
    cache = ConsentCache()
    cache.add("facebook.com")
    cache.add("mbasic.facebook.com")
    return cache


def test_snapshot_reads_product_link_and_cta():
    page = FakePage(
        hrefs=[
            "https://www.facebook.com/SneakerShop",
            "https://l.facebook.com/l.php?u=https%3A%2F%2Fshop.example%2Fx&h=AT0",
            "https://other.example/y",
        ],
        texts=["Sponsored", "Like", "Shop now"],
    )
    bits = asyncio.run(scrape_snapshot(page, SNAPSHOT_URL, locale="nl_NL", consent=_consent()))

    assert bits.product_url == "https://shop.example/x"
    assert bits.cta_text == "Shop Now"
    assert page.visited == [SNAPSHOT_URL + "&locale=nl_NL"]


def test_snapshot_keeps_existing_locale_and_skips_platform_only_links():
    url = "https://www.facebook.com/ads/archive/render_ad/?id=2&locale=en_US"
    page = FakePage(
        hrefs=["https://www.instagram.com/shop", "mailto:info@shop.example"],
        texts=["Meer informatie over deze adverteerder", "Shop nu"],
    )
    bits = asyncio.run(scrape_snapshot(page, url, locale="nl_NL", consent=_consent()))

    assert page.visited == [url]
    assert bits.product_url is None
    assert bits.cta_text == "Shop Nu"


def test_snapshot_without_cta_text():
    page = FakePage(hrefs=["https://shop.example/z"], texts=["Learn more"])
    bits = asyncio.run(scrape_snapshot(page, SNAPSHOT_URL, locale="nl_NL", consent=_consent()))

    assert bits.product_url == "https://shop.example/z"
    assert bits.cta_text is None


def test_failed_navigation_yields_empty_bits_without_reading_the_page():
    page = FakePage(hrefs=["https://shop.example/stale"], texts=["Shop Now"], goto_error=PlaywrightError("net::ERR_TIMED_OUT"))
    bits = asyncio.run(scrape_snapshot(page, SNAPSHOT_URL, locale="nl_NL", consent=_consent()))

    assert bits.product_url is None
    assert bits.cta_text is None
    assert page.evaluated == 0


def test_profile_uses_desktop_view_when_it_has_data():
    page = FakePage(bodies={"www.facebook.com": "Sneaker Shop\nPage · Shoe store\n1,2K likes • 1,5K followers"})
    profile = asyncio.run(scrape_profile(page, "123", locale="nl_NL", consent=_consent()))

    assert page.visited == ["https://www.facebook.com/profile.php?id=123&locale=nl_NL"]
    assert profile.category == "Shoe store"
    assert profile.likes_text == "1,2K"
    assert profile.followers_text == "1,5K"
    assert profile.profile_url == page.visited[0]
    assert page.overlay_clicks == 1
    assert page.keyboard.pressed == ["Escape"]


def test_profile_falls_back_to_basic_view():
    page = FakePage(
        bodies={
            "www.facebook.com": "Log in or sign up to see more",
            "mbasic.facebook.com": "Winkel\nPagina · Kleding · Retail\n500 vind-ik-leuks",
        }
    )
    profile = asyncio.run(scrape_profile(page, "123", locale="nl_NL", consent=_consent()))

    assert page.visited == [
        "https://www.facebook.com/profile.php?id=123&locale=nl_NL",
        "https://mbasic.facebook.com/profile.php?id=123&refid=17&locale=nl_NL",
    ]
    assert profile.categories == ("Kleding", "Retail")
    assert profile.category == "Kleding · Retail"
    assert profile.likes_text == "500"
    assert profile.profile_url == page.visited[1]
    assert page.keyboard.pressed == ["Escape"]


def test_profile_navigation_errors_propagate():
    page = FakePage(goto_error=PlaywrightError("net::ERR_CONNECTION_RESET"))
    with pytest.raises(PlaywrightError):
        asyncio.run(scrape_profile(page, "123", locale="nl_NL", consent=_consent()))
