# rumlab/services/interaction_service.py
"""
Synthetic user behaviour for lab interaction metrics.

Long tasks and INP only show up when the main thread is busy while the user
interacts, so each round clicks, types, scrolls and then blocks the main
thread for a short while. Individual interaction failures are expected
(detached nodes, covered elements, navigation side effects) and are counted
rather than raised.
"""
import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Optional

from rumlab.services.browser_session import BrowserSession

logger = logging.getLogger(__name__)

DEFAULT_BUDGET_MS = 5_000

CLICKABLE_SELECTOR = 'button, a, [role="button"], input[type="checkbox"]'
TEXT_INPUT_SELECTOR = 'input[type="text"], input[type="search"], input[type="email"], input:not([type]), textarea'
PROBE_TEXT = "test"

INTERACTION_TIMEOUT_MS = 1_000
SCROLL_RANGE_PX = (100, 400)
BUSY_WAIT_RANGE_MS = (50, 100)
PAUSE_RANGE_MS = (200, 500)

SCROLL_SCRIPT = "(dy) => window.scrollBy(0, dy)"
BUSY_WAIT_SCRIPT = """
(ms) => {
    const end = performance.now() + ms;
    while (performance.now() < end) {}
}
"""

@dataclass
class SimulationSummary:
    iterations: int = 0
    clicks: int = 0
    inputs_typed: int = 0
    scrolls: int = 0
    failures: int = 0


async def simulate(
    session: BrowserSession,
    budget_ms: int = DEFAULT_BUDGET_MS,
    rng: Optional[random.Random] = None,
) -> SimulationSummary:
    """
    Drives clicks, typing, scrolling and main-thread contention until the
    wall-clock budget is spent.

    Args:
        session: A session whose page has already been navigated.
        budget_ms: Wall-clock budget for the whole loop.
        rng: Source of randomness for offsets and pauses.

    Returns:
        Counts of what was attempted and how much of it failed.
    """
    rng = rng or random.Random()
    loop = asyncio.get_running_loop()
    deadline = loop.time() + budget_ms / 1000
    page = session.page
    summary = SimulationSummary()

    def expired() -> bool:
        return loop.time() >= deadline

    while not expired():
        summary.iterations += 1

        for element in await _visible_elements(page, CLICKABLE_SELECTOR, summary):
            if expired():
                break
            try:
                await element.click(timeout=INTERACTION_TIMEOUT_MS)
                summary.clicks += 1
            except Exception as e:
                _record_failure(summary, "click", e)

        for element in await _visible_elements(page, TEXT_INPUT_SELECTOR, summary):
            if expired():
                break
            try:
                await element.press_sequentially(PROBE_TEXT, timeout=INTERACTION_TIMEOUT_MS)
                summary.inputs_typed += 1
            except Exception as e:
                _record_failure(summary, "type", e)

        if expired():
            break

        try:
            await page.evaluate(SCROLL_SCRIPT, rng.randint(*SCROLL_RANGE_PX))
            summary.scrolls += 1
            await page.evaluate(BUSY_WAIT_SCRIPT, rng.randint(*BUSY_WAIT_RANGE_MS))
        except Exception as e:
            _record_failure(summary, "scroll", e)

        remaining = deadline - loop.time()
        if remaining <= 0:
            break
        await asyncio.sleep(min(rng.randint(*PAUSE_RANGE_MS) / 1000, remaining))

    logger.debug("Interaction simulation finished: %s", summary)
    return summary


async def _visible_elements(page, selector: str, summary: SimulationSummary) -> list:
    locator = page.locator(selector)
    try:
        count = await locator.count()
    except Exception as e:
        _record_failure(summary, "query", e)
        return []
    visible = []
    for index in range(count):
        element = locator.nth(index)
        try:
            if await element.is_visible():
                visible.append(element)
        except Exception as e:
            _record_failure(summary, "visibility check", e)
    return visible


def _record_failure(summary: SimulationSummary, action: str, error: Exception) -> None:
    summary.failures += 1
    logger.debug("Ignoring failed %s interaction: %s", action, error)
