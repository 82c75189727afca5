# rumlab/services/browser_session.py
"""
Browser session lifecycle for synthetic analysis.

Every analysis gets its own Chromium process, browsing context, page and
DevTools (CDP) channel. Sessions are never pooled: ``acquire`` spawns the
browser and ``release`` terminates it, and the two are always paired.
"""
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, List, Optional

from playwright.async_api import (
    Browser,
    BrowserContext,
    CDPSession,
    Error as PlaywrightError,
    Page,
    Playwright,
    TimeoutError as PlaywrightTimeoutError,
    async_playwright,
)

from rumlab.core.errors import NavigationError, SessionAcquisitionError
from rumlab.services.device_profiles import DeviceProfile

logger = logging.getLogger(__name__)

# Flags needed to run Chromium inside containers and CI sandboxes
LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
]

DEFAULT_NAVIGATION_TIMEOUT_MS = 60_000

@dataclass
class BrowserSession:
    """Handles owned by exactly one in-flight analysis."""
    playwright: Playwright
    browser: Browser
    context: BrowserContext
    page: Page
    cdp: CDPSession
    profile: DeviceProfile
    closed: bool = False
    # Long-task durations reported by the in-page observer, in arrival order
    long_tasks: List[float] = field(default_factory=list)


class BrowserSessionManager:
    """Launches, configures, navigates and tears down isolated browser sessions."""

    def __init__(self, headless: bool = True):
        self.headless = headless

    async def acquire(self, profile: DeviceProfile) -> BrowserSession:
        """
        Launches a headless browser emulating ``profile``.

        Args:
            profile: The device to emulate (viewport, user agent, network, CPU).

        Returns:
            A fully configured BrowserSession.

        Raises:
            SessionAcquisitionError: If any launch or configuration step fails.
                Whatever was already started is shut down before raising.
        """
        playwright: Optional[Playwright] = None
        browser: Optional[Browser] = None
        try:
            playwright = await async_playwright().start()
            browser = await playwright.chromium.launch(headless=self.headless, args=LAUNCH_ARGS)
            width, height = profile.viewport
            context = await browser.new_context(
                viewport={"width": width, "height": height},
                user_agent=profile.user_agent,
                is_mobile=profile.is_mobile,
                has_touch=profile.is_mobile,
            )
            page = await context.new_page()
            cdp = await context.new_cdp_session(page)
            await cdp.send("Network.enable")
            await cdp.send(
                "Network.emulateNetworkConditions",
                {
                    "offline": False,
                    "latency": profile.network_latency_ms,
                    "downloadThroughput": profile.download_bps,
                    "uploadThroughput": profile.upload_bps,
                },
            )
            await cdp.send("Emulation.setCPUThrottlingRate", {"rate": profile.cpu_throttle_factor})
        except Exception as e:
            await self._shutdown(browser, playwright)
            raise SessionAcquisitionError(f"Could not start browser session: {e}", cause=e) from e

        logger.debug("Browser session acquired for profile %s", profile.name)
        return BrowserSession(
            playwright=playwright,
            browser=browser,
            context=context,
            page=page,
            cdp=cdp,
            profile=profile,
        )

    async def navigate(self, session: BrowserSession, url: str, timeout_ms: int = DEFAULT_NAVIGATION_TIMEOUT_MS) -> None:
        """
        Loads ``url`` and waits for the ``load`` event.

        Raises:
            NavigationError: On timeout or network failure. Never retried.
        """
        try:
            await session.page.goto(url, wait_until="load", timeout=timeout_ms)
        except PlaywrightTimeoutError as e:
            raise NavigationError(f"Timed out after {timeout_ms}ms loading {url}", cause=e) from e
        except PlaywrightError as e:
            raise NavigationError(f"Failed to load {url}: {e.message}", cause=e) from e

    async def release(self, session: BrowserSession) -> None:
        """
        Closes the browser and stops the driver.

        Teardown problems are logged and swallowed so they never mask the
        result or the error of the analysis that owned the session.
        """
        if session.closed:
            return
        session.closed = True
        try:
            await session.context.close()
        except Exception:
            logger.warning("Failed to close browser context", exc_info=True)
        await self._shutdown(session.browser, session.playwright)
        logger.debug("Browser session released for profile %s", session.profile.name)

    @asynccontextmanager
    async def open_session(self, profile: DeviceProfile) -> AsyncIterator[BrowserSession]:
        """Scoped acquire/release pair."""
        session = await self.acquire(profile)
        try:
            yield session
        finally:
            await self.release(session)

    @staticmethod
    async def _shutdown(browser: Optional[Browser], playwright: Optional[Playwright]) -> None:
        if browser is not None:
            try:
                await browser.close()
            except Exception:
                logger.warning("Failed to close browser", exc_info=True)
        if playwright is not None:
            try:
                await playwright.stop()
            except Exception:
                logger.warning("Failed to stop playwright driver", exc_info=True)
