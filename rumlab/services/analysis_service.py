# rumlab/services/analysis_service.py
import asyncio
import logging
from contextlib import AsyncExitStack
from datetime import datetime, timezone
from typing import Awaitable, Callable, List, Optional
from urllib.parse import urlparse

from rumlab.core.errors import AnalysisError, ValidationError
from rumlab.models import AnalysisReport, LongTaskSample
from rumlab.services import interaction_service, processing_service, signal_collector
from rumlab.services.browser_session import (
    DEFAULT_NAVIGATION_TIMEOUT_MS,
    BrowserSession,
    BrowserSessionManager,
)
from rumlab.services.device_profiles import CONSTRAINED_MOBILE, DeviceProfile

logger = logging.getLogger(__name__)

Installer = Callable[[BrowserSession], Awaitable[None]]
Simulator = Callable[..., Awaitable[object]]
Extractor = Callable[[BrowserSession], Awaitable[List[LongTaskSample]]]


def validate_target_url(target_url: Optional[str]) -> str:
    """
    Checks that the analysis target is a non-empty absolute http(s) URL.

    Raises:
        ValidationError: If the URL is missing, blank or not absolute.
    """
    if target_url is None or not target_url.strip():
        raise ValidationError("URL is required")
    target_url = target_url.strip()
    parsed = urlparse(target_url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValidationError(f"URL must be an absolute http(s) URL: {target_url}")
    return target_url


class SyntheticAnalyzer:
    """
    Runs one lab analysis per call: acquire a session, arm the long-task
    observer, navigate, simulate interaction, drain samples, derive metrics
    and release the session.

    Every call owns its own browser session. ``max_concurrent`` caps how many
    sessions may be alive at once; 0 means no cap.
    """

    def __init__(
        self,
        profile: DeviceProfile = CONSTRAINED_MOBILE,
        session_manager: Optional[BrowserSessionManager] = None,
        navigation_timeout_ms: int = DEFAULT_NAVIGATION_TIMEOUT_MS,
        simulation_budget_ms: int = interaction_service.DEFAULT_BUDGET_MS,
        max_concurrent: int = 0,
        install: Installer = signal_collector.install_instrumentation,
        simulate: Simulator = interaction_service.simulate,
        extract: Extractor = signal_collector.extract,
    ):
        self.profile = profile
        self.session_manager = session_manager or BrowserSessionManager()
        self.navigation_timeout_ms = navigation_timeout_ms
        self.simulation_budget_ms = simulation_budget_ms
        self._limiter = asyncio.Semaphore(max_concurrent) if max_concurrent > 0 else None
        self._install = install
        self._simulate = simulate
        self._extract = extract

    async def analyze(self, target_url: Optional[str]) -> AnalysisReport:
        """
        Produces a lab metrics report for ``target_url``.

        Raises:
            ValidationError: If the URL is missing or malformed. No browser is launched.
            AnalysisError: If the session, instrumentation or navigation fails.
                The session is released before this propagates.
        """
        url = validate_target_url(target_url)

        async with AsyncExitStack() as stack:
            if self._limiter is not None:
                await stack.enter_async_context(self._limiter)
            logger.info("Starting synthetic analysis of %s on %s", url, self.profile.name)
            try:
                samples = await self._run(url)
            except AnalysisError:
                logger.exception("Synthetic analysis of %s failed", url)
                raise
            except Exception as e:
                logger.exception("Synthetic analysis of %s failed", url)
                raise AnalysisError(f"Analysis of {url} failed: {e}", cause=e) from e

        metrics = processing_service.derive_metrics(samples)
        logger.info("Finished synthetic analysis of %s: %d long tasks", url, len(samples))
        return AnalysisReport(
            url=url,
            test_run=datetime.now(timezone.utc),
            device=self.profile.describe(),
            metrics=metrics,
        )

    async def _run(self, url: str) -> List[LongTaskSample]:
        async with self.session_manager.open_session(self.profile) as session:
            await self._install(session)
            await self.session_manager.navigate(session, url, self.navigation_timeout_ms)
            summary = await self._simulate(session, self.simulation_budget_ms)
            logger.debug("Simulation for %s: %s", url, summary)
            return await self._extract(session)
