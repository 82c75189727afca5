import asyncio

import pytest

from rumlab.core.errors import (
    AnalysisError,
    InstrumentationError,
    NavigationError,
    SessionAcquisitionError,
    ValidationError,
)
from rumlab.models import MetricStatus
from rumlab.services.analysis_service import SyntheticAnalyzer, validate_target_url

from conftest import FakeSessionManager, FakeSignals


def _analyzer(manager, signals, profile, **kwargs):
    return SyntheticAnalyzer(
        profile=profile,
        session_manager=manager,
        install=signals.install,
        simulate=signals.simulate,
        extract=signals.extract,
        **kwargs,
    )


@pytest.mark.parametrize("url", [None, "", "   "])
def test_validate_rejects_missing_url(url):
    with pytest.raises(ValidationError, match="URL is required"):
        validate_target_url(url)


@pytest.mark.parametrize("url", ["example.com", "/relative/path", "ftp://example.com", "https://"])
def test_validate_rejects_non_absolute_urls(url):
    with pytest.raises(ValidationError):
        validate_target_url(url)


def test_validate_strips_whitespace():
    assert validate_target_url("  https://example.com/a  ") == "https://example.com/a"


@pytest.mark.asyncio
@pytest.mark.parametrize("url", [None, ""])
async def test_invalid_url_never_launches_browser(url, profile):
    manager = FakeSessionManager()
    analyzer = _analyzer(manager, FakeSignals(), profile)

    with pytest.raises(ValidationError):
        await analyzer.analyze(url)

    assert manager.calls == []


@pytest.mark.asyncio
async def test_successful_analysis_runs_steps_in_order(profile):
    manager = FakeSessionManager()
    signals = FakeSignals({"https://example.com": [50, 75, 400]}, calls=manager.calls)
    analyzer = _analyzer(manager, signals, profile)

    report = await analyzer.analyze("https://example.com")

    assert manager.calls == ["acquire", "install", "navigate", "simulate", "extract", "release"]
    assert report.url == "https://example.com"
    assert report.device == "Desktop (Chromium, 4G, 1920x1080)"
    assert report.test_run.tzinfo is not None
    metrics = {m.name: m for m in report.metrics}
    assert metrics["TBT"].value == 525
    assert metrics["TBT"].status == MetricStatus.NEEDS_IMPROVEMENT
    assert metrics["INP (lab)"].value == 400
    assert metrics["Long tasks count"].value == 3


@pytest.mark.asyncio
async def test_page_without_long_tasks_is_a_valid_report(profile):
    manager = FakeSessionManager()
    analyzer = _analyzer(manager, FakeSignals(), profile)

    report = await analyzer.analyze("https://quiet.example")

    assert [m.value for m in report.metrics] == [0, 0, 0, 0]
    assert manager.released == 1


@pytest.mark.asyncio
async def test_navigation_failure_releases_session_once(profile):
    cause = TimeoutError("load timed out")
    manager = FakeSessionManager(navigate_error=NavigationError("Timed out", cause=cause))
    signals = FakeSignals(calls=manager.calls)
    analyzer = _analyzer(manager, signals, profile)

    with pytest.raises(AnalysisError) as excinfo:
        await analyzer.analyze("https://slow.example")

    assert isinstance(excinfo.value, NavigationError)
    assert excinfo.value.cause is cause
    assert manager.released == 1
    assert "simulate" not in manager.calls
    assert manager.calls[-1] == "release"


@pytest.mark.asyncio
async def test_instrumentation_failure_releases_session(profile):
    manager = FakeSessionManager()
    signals = FakeSignals()

    async def broken_install(session):
        raise InstrumentationError("init script rejected")

    analyzer = SyntheticAnalyzer(
        profile=profile,
        session_manager=manager,
        install=broken_install,
        simulate=signals.simulate,
        extract=signals.extract,
    )

    with pytest.raises(InstrumentationError):
        await analyzer.analyze("https://example.com")

    assert manager.calls == ["acquire", "release"]


@pytest.mark.asyncio
async def test_acquisition_failure_is_surfaced(profile):
    manager = FakeSessionManager(acquire_error=SessionAcquisitionError("no chromium"))
    analyzer = _analyzer(manager, FakeSignals(), profile)

    with pytest.raises(SessionAcquisitionError):
        await analyzer.analyze("https://example.com")

    assert manager.released == 0


@pytest.mark.asyncio
async def test_unexpected_failure_is_wrapped(profile):
    manager = FakeSessionManager()
    signals = FakeSignals()

    async def exploding_extract(session):
        raise RuntimeError("page crashed")

    analyzer = SyntheticAnalyzer(
        profile=profile,
        session_manager=manager,
        install=signals.install,
        simulate=signals.simulate,
        extract=exploding_extract,
    )

    with pytest.raises(AnalysisError) as excinfo:
        await analyzer.analyze("https://example.com")

    assert isinstance(excinfo.value.cause, RuntimeError)
    assert excinfo.value.__cause__ is excinfo.value.cause
    assert excinfo.value.details == "page crashed"
    assert manager.released == 1


@pytest.mark.asyncio
async def test_concurrent_analyses_do_not_share_samples(profile):
    manager = FakeSessionManager(navigate_delay=0.01)
    signals = FakeSignals({
        "https://a.example": [300, 300, 300],
        "https://b.example": [60],
    })
    analyzer = _analyzer(manager, signals, profile)

    report_a, report_b = await asyncio.gather(
        analyzer.analyze("https://a.example"),
        analyzer.analyze("https://b.example"),
    )

    a = {m.name: m.value for m in report_a.metrics}
    b = {m.name: m.value for m in report_b.metrics}
    assert a["TBT"] == 900 and a["Long tasks count"] == 3
    assert b["TBT"] == 60 and b["Long tasks count"] == 1
    assert manager.acquired == 2
    assert manager.released == 2
    assert manager.max_live == 2


@pytest.mark.asyncio
async def test_max_concurrent_bounds_live_sessions(profile):
    manager = FakeSessionManager(navigate_delay=0.01)
    analyzer = _analyzer(manager, FakeSignals(), profile, max_concurrent=1)

    await asyncio.gather(*(analyzer.analyze(f"https://{i}.example") for i in range(3)))

    assert manager.acquired == 3
    assert manager.max_live == 1
