"""
Browser Session - Own the Playwright browser and the single portal page.

The session reuses an operator's persistent browser profile when one is
configured and present, so an already signed-in portal session carries
over between runs. Profile paths are passed in, never looked up here.
"""

from pathlib import Path
from typing import Any, Optional, TYPE_CHECKING
import logging

from playwright.async_api import Error as PlaywrightError

from portal_approver.exceptions import (
    BrowserError,
    BrowserLaunchError,
    NavigationError,
    PageUnreachableError,
    RunCancelledError,
)
from portal_approver.utils.retry import RetryConfig, retry_async
from portal_approver.utils.waiting import CancelToken

if TYPE_CHECKING:
    from playwright.async_api import Page
    from portal_approver.config.settings import BrowserSettings

logger = logging.getLogger(__name__)


class BrowserSession:
    """
    One browser, one context, one page for the whole run.

    Example:
        >>> session = BrowserSession(settings.browser)
        >>> page = await session.start()
        >>> await session.goto("https://portal.example.com/approvals")
        >>> await session.close()
    """

    def __init__(self, settings: "BrowserSettings"):
        """
        Initialize the session (not started yet).

        Args:
            settings: Browser settings, including the optional profile path
        """
        self._settings = settings
        self._playwright: Any = None
        self._browser: Any = None
        self._context: Any = None
        self._page: Optional["Page"] = None
        self.persistent = False
        self.detached = False

    @property
    def is_started(self) -> bool:
        return self._page is not None

    @property
    def page(self) -> "Page":
        if self._page is None:
            raise BrowserError("Browser session not started. Call start() first.")
        return self._page

    async def start(self) -> "Page":
        """
        Launch the browser and open the portal page.

        Uses a persistent context when ``user_data_dir`` exists, and falls
        back to a fresh context if that profile cannot be opened.

        Raises:
            BrowserLaunchError: If no browser could be started
        """
        if self._page is not None:
            return self._page

        try:
            from playwright.async_api import async_playwright

            self._playwright = await async_playwright().start()
            launcher = getattr(self._playwright, self._settings.browser_type)

            profile = self._profile_dir()
            if profile is not None:
                try:
                    self._context = await launcher.launch_persistent_context(
                        str(profile),
                        **self._launch_options(),
                        **self._context_options(),
                    )
                    self.persistent = True
                    logger.info(f"Using persistent profile at {profile}")
                except Exception as e:
                    logger.warning(f"Persistent profile unavailable ({e}); using a fresh context")

            if self._context is None:
                self._browser = await launcher.launch(**self._launch_options())
                self._context = await self._browser.new_context(**self._context_options())

            self._context.set_default_timeout(self._settings.timeout_ms)
            pages = self._context.pages
            self._page = pages[0] if pages else await self._context.new_page()

        except Exception as e:
            await self._stop_quietly()
            raise BrowserLaunchError(f"Failed to launch browser: {e}")

        logger.info(
            f"Launched {self._settings.browser_type}"
            + (f" ({self._settings.channel})" if self._settings.channel else "")
            + f" (headless={self._settings.headless})"
        )
        return self._page

    async def goto(self, url: str, retries: int = 3, cancel: Optional[CancelToken] = None) -> None:
        """
        Navigate the portal page, retrying Playwright errors and timeouts.

        Raises:
            NavigationError: If every attempt failed or the error is not retryable
            RunCancelledError: If the run is cancelled between attempts
        """
        if not url:
            raise NavigationError("No portal URL configured", url=url)

        page = self.page

        async def _go() -> None:
            await page.goto(url, wait_until="domcontentloaded")

        config = RetryConfig(
            max_attempts=retries,
            retry_on=(PlaywrightError, TimeoutError),
        )
        try:
            await retry_async(_go, config, label=f"Opening {url}", cancel=cancel)
        except (RunCancelledError, PageUnreachableError):
            raise
        except Exception as e:
            raise NavigationError(f"Failed to open {url}: {e}", url=url)

        try:
            await page.wait_for_load_state("networkidle", timeout=self._settings.timeout_ms)
        except Exception as e:
            logger.debug(f"Network idle wait ended: {e}")
        logger.info(f"Opened {url}")

    def detach(self) -> None:
        """Leave the browser running for manual inspection."""
        self.detached = True
        logger.warning("Browser left open for inspection")

    async def close(self) -> None:
        """Close the browser and stop Playwright."""
        if self._context is not None:
            try:
                await self._context.close()
            except Exception as e:
                logger.debug(f"Context close failed: {e}")
            self._context = None

        if self._browser is not None:
            await self._browser.close()
            self._browser = None

        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None

        self._page = None
        logger.info("Browser closed")

    def _profile_dir(self) -> Optional[Path]:
        if not self._settings.user_data_dir:
            return None
        path = Path(self._settings.user_data_dir).expanduser()
        if not path.is_dir():
            logger.warning(f"Profile directory {path} not found; using a fresh context")
            return None
        return path

    def _launch_options(self) -> dict:
        options: dict = {
            "headless": self._settings.headless,
            "slow_mo": self._settings.slow_mo,
        }
        if self._settings.channel and self._settings.browser_type == "chromium":
            options["channel"] = self._settings.channel
        return options

    def _context_options(self) -> dict:
        return {
            "viewport": {
                "width": self._settings.viewport_width,
                "height": self._settings.viewport_height,
            },
        }

    async def _stop_quietly(self) -> None:
        try:
            await self.close()
        except Exception as e:
            logger.debug(f"Cleanup after failed launch: {e}")
