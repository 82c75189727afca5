# rumlab/services/signal_collector.py
"""
In-page long-task instrumentation.

Two phases: ``install_instrumentation`` arms a buffered ``longtask``
PerformanceObserver as an init script, so it must run before the page is
navigated; ``extract`` drains what the observer reported once the
interaction window has closed.

The observer pushes every duration out of the page through an exposed
binding as soon as it is seen. Samples therefore live on the session, not
in the document, and survive a simulated click that navigates away.
"""
from typing import Any, List

from rumlab.core.errors import InstrumentationError
from rumlab.models import LongTaskSample
from rumlab.services.browser_session import BrowserSession

REPORT_BINDING = "__rumlabReportLongTask"

LONG_TASK_OBSERVER_SCRIPT = """
(() => {
    if (window.__rumlabObserverArmed || typeof window.%(binding)s !== 'function') return;
    window.__rumlabObserverArmed = true;
    try {
        new PerformanceObserver((list) => {
            for (const entry of list.getEntries()) {
                window.%(binding)s(entry.duration).catch(() => {});
            }
        }).observe({ type: 'longtask', buffered: true });
    } catch (e) {}
})();
""" % {"binding": REPORT_BINDING}


async def install_instrumentation(session: BrowserSession) -> None:
    """
    Exposes the reporting binding and registers the long-task observer for
    every document the page loads.

    Raises:
        InstrumentationError: If the binding or init script cannot be registered.
    """
    def report(duration: Any) -> None:
        session.long_tasks.append(duration)

    try:
        await session.page.expose_function(REPORT_BINDING, report)
        await session.page.add_init_script(LONG_TASK_OBSERVER_SCRIPT)
    except Exception as e:
        raise InstrumentationError(f"Could not install long-task observer: {e}", cause=e) from e


async def extract(session: BrowserSession) -> List[LongTaskSample]:
    """
    Returns the long-task durations reported so far, in observation order.

    Raises:
        InstrumentationError: If the page reported something other than
            non-negative durations.
    """
    return parse_samples(list(session.long_tasks))


def parse_samples(raw: Any) -> List[LongTaskSample]:
    if not isinstance(raw, list):
        raise InstrumentationError(f"Expected a list of long-task durations, got {type(raw).__name__}")
    samples = []
    for value in raw:
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
            raise InstrumentationError(f"Invalid long-task duration: {value!r}")
        samples.append(LongTaskSample(duration_ms=value))
    return samples
