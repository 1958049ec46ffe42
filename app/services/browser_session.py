"""
Browser Session Manager - owns one lazily-launched headless Chromium for the process.

Pages are isolated per render; the browser itself is shared across concurrent
renders and closed once during application shutdown.
"""

import asyncio
import logging
from typing import Optional

from playwright.async_api import Browser, Playwright, async_playwright

logger = logging.getLogger(__name__)


# Sandboxing is unavailable in most container runtimes
CHROMIUM_ARGS = ["--no-sandbox", "--disable-setuid-sandbox"]


class BrowserSessionManager:
    """
    Lazy singleton-style holder for a shared headless browser.

    `acquire()` returns the live browser, relaunching if the previous one
    disconnected. Launch failures propagate; there is no retry here.
    """

    def __init__(self, launch_args: Optional[list[str]] = None):
        self.launch_args = launch_args if launch_args is not None else CHROMIUM_ARGS
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._launch_lock = asyncio.Lock()

    @property
    def is_connected(self) -> bool:
        return self._browser is not None and self._browser.is_connected()

    async def acquire(self) -> Browser:
        """Return the shared browser, launching it on first use or after a disconnect."""
        if self.is_connected:
            return self._browser

        async with self._launch_lock:
            # Another caller may have launched while we waited
            if self.is_connected:
                return self._browser

            if self._playwright is None:
                self._playwright = await async_playwright().start()

            logger.info("Launching headless Chromium...")
            self._browser = await self._playwright.chromium.launch(
                headless=True,
                args=self.launch_args,
            )
            logger.info(f"Headless Chromium ready (version {self._browser.version})")
            return self._browser

    async def shutdown(self) -> None:
        """Close the browser and the Playwright driver. Safe to call more than once."""
        browser, self._browser = self._browser, None
        playwright, self._playwright = self._playwright, None

        if browser is not None:
            try:
                await browser.close()
                logger.info("Headless Chromium closed")
            except Exception as e:
                logger.warning(f"Failed to close browser: {e}")

        if playwright is not None:
            try:
                await playwright.stop()
            except Exception as e:
                logger.warning(f"Failed to stop Playwright driver: {e}")
