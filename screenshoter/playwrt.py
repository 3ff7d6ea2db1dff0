from typing import Any, Mapping, Optional

from playwright.async_api import (
    Browser,
    BrowserContext,
    ElementHandle,
    Page,
    Playwright,
    async_playwright,
    Error as PlaywrightError,
    TimeoutError as PlaywrightTimeoutError,
)

from common.logger import get_logger

_BROWSER_LAUNCH_ARGS = [
    "--no-sandbox",                 # required in Docker
    "--disable-dev-shm-usage",      # /dev/shm is tiny in containers
    "--disable-gpu",
    "--disable-setuid-sandbox",
    "--disable-extensions",
    "--mute-audio",
]

_DEFAULT_WIDTH = 1920
_DEFAULT_HEIGHT = 1080

# ms
_PAGE_LOAD_TIMEOUT_MS    = 30_000
_SELECTOR_WAIT_TIMEOUT_MS = 10_000
_SCREENSHOT_TIMEOUT_MS   = 20_000


class ScreenshotCapture:
    def __init__(self) -> None:
        self._logger = get_logger(__name__)
        self._playwright: Optional[Playwright] = None
        self._browser:    Optional[Browser]    = None

    @property
    def started(self) -> bool:
        return self._browser is not None

    async def start(self) -> None:
        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(
            headless=True,
            args=_BROWSER_LAUNCH_ARGS,
        )

        self._logger.info("Headless browser launched")

    async def stop(self) -> None:
        if self._browser:
            await self._browser.close()
            self._browser = None
        if self._playwright:
            await self._playwright.stop()
            self._playwright = None

        self._logger.info("Headless browser stopped")

    def _ensure_started(self) -> None:
        if self._browser is None:
            self._logger.error("The browser instance is not initialized")
            raise RuntimeError(
                "ScreenshotCapture is not running."
            )

    async def take(
        self,
        url: str,
        options: Optional[Mapping[str, Any]] = None,
    ) -> bytes:
        """Capture `url` as PNG.

        Recognised options: `selector` (capture one element), `width`,
        `height` (viewport) and `full_page` (default True).
        """
        self._ensure_started()
        options = options or {}

        context = await self._new_context(
            width=int(options.get("width") or _DEFAULT_WIDTH),
            height=int(options.get("height") or _DEFAULT_HEIGHT),
        )
        try:
            page = await context.new_page()
            await self._navigate(page, url)

            selector = options.get("selector")
            if selector:
                self._logger.info("Taking screenshot of %s for %s", selector, url)
                return await self._screenshot_element(page, selector)

            self._logger.info("Taking screenshot of %s", url)
            return await self._screenshot_page(page, full_page=bool(options.get("full_page", True)))

        finally:
            await context.close()

    async def _new_context(self, width: int, height: int) -> BrowserContext:
        return await self._browser.new_context(
            viewport={"width": width, "height": height},
            java_script_enabled=True,
            ignore_https_errors=True,
            accept_downloads=False,
        )

    @staticmethod
    async def _navigate(page: Page, url: str) -> None:
        page.set_default_timeout(_PAGE_LOAD_TIMEOUT_MS)
        try:
            await page.goto(url, wait_until="networkidle")
        except PlaywrightTimeoutError:
            await page.goto(url, wait_until="domcontentloaded")

    @staticmethod
    async def _screenshot_page(page: Page, full_page: bool) -> bytes:
        return await page.screenshot(
            full_page=full_page,
            type="png",
            timeout=_SCREENSHOT_TIMEOUT_MS,
        )

    @staticmethod
    async def _screenshot_element(page: Page, selector: str) -> bytes:
        element: Optional[ElementHandle] = await page.wait_for_selector(
            selector,
            state="visible",
            timeout=_SELECTOR_WAIT_TIMEOUT_MS,
        )

        if element is None:
            raise PlaywrightError(f"Element not found: '{selector}'")

        await element.scroll_into_view_if_needed()

        return await element.screenshot(
            type="png",
            timeout=_SCREENSHOT_TIMEOUT_MS,
        )

    async def __aenter__(self) -> "ScreenshotCapture":
        await self.start()
        return self

    async def __aexit__(self, *_) -> None:
        await self.stop()
