"""Playwright helpers for the region refresh job: resource blocking and read-only guardrails."""

from playwright.async_api import Page, Route

from src.dtek.logging import get_logger

log = get_logger(__name__)

BLOCKED_RESOURCE_TYPES: frozenset[str] = frozenset(
    {"image", "stylesheet", "font", "media"}
)

# The refresh job only reads; nothing it loads should change server state.
_BLOCKED_METHODS: frozenset[str] = frozenset({"POST", "PUT", "DELETE", "PATCH"})


class RawHtmlCapture:
    """Keeps the body of the document response as served, before page scripts run.

    DTEK's own scripts consume the DisconSchedule blocks once the page loads,
    so the parser must see the network response rather than page.content().
    """

    def __init__(self, url_pattern: str = "**/ua/shutdowns") -> None:
        self.url_pattern = url_pattern
        self.html: str | None = None

    async def handle(self, route: Route) -> None:
        response = await route.fetch()
        self.html = await response.text()
        await route.fulfill(response=response, body=self.html)

    async def attach(self, page: Page) -> None:
        await page.route(self.url_pattern, self.handle)

    async def detach(self, page: Page) -> None:
        await page.unroute(self.url_pattern, self.handle)


async def configure_page_for_scraping(page: Page, *, read_only: bool = True) -> None:
    """Set up a Playwright page for loading a shutdowns page.

    Blocks images, stylesheets, fonts and media. Scripts stay allowed because
    the bot-protection check needs them to hand out session cookies.

    Args:
        page: Playwright Page instance.
        read_only: If True, also abort POST/PUT/DELETE/PATCH requests.
    """

    async def _block_resources(route: Route) -> None:
        request = route.request

        if read_only and request.method in _BLOCKED_METHODS:
            log.warning(
                "blocked_mutating_request",
                method=request.method,
                url=request.url,
            )
            await route.abort("blockedbyclient")
            return

        if request.resource_type in BLOCKED_RESOURCE_TYPES:
            await route.abort()
        else:
            await route.fallback()

    await page.route("**/*", _block_resources)
    page.set_default_timeout(30000)
    page.set_default_navigation_timeout(30000)
