"""Tests for the single job tracker."""
import asyncio

import pytest

from conftest import FakeScreenshotApi, TickingClock
from tracking.settings import TrackerSettings
from tracking.tracker import JobTracker

URL = "https://example.com/"


def _tracker(api, timeout=60, interval=0, clock=None):
    settings = TrackerSettings(timeout=timeout, interval=interval)
    return JobTracker(api, settings, clock or TickingClock())


@pytest.mark.asyncio
async def test_finished_immediately_emits_only_finished(recorder):
    api = FakeScreenshotApi({URL: ["finished"]})

    stream = _tracker(api).create({"url": URL})
    stream.on_any(recorder)
    name, record = await asyncio.wait_for(stream.wait(), 1)

    assert name == "finished"
    assert recorder.names == ["finished"]
    assert record.original_url == URL
    assert api.polls == []
    assert stream.closed
    assert stream.listener_count("finished") == 0


@pytest.mark.asyncio
async def test_queued_then_error_emits_queued_then_failed(recorder):
    api = FakeScreenshotApi({URL: ["queued", "error"]})

    stream = _tracker(api).create({"url": URL})
    stream.on_any(recorder)
    failed = []
    stream.on("failed", failed.append)
    name, record = await asyncio.wait_for(stream.wait(), 1)

    assert name == "failed"
    assert recorder.names == ["queued", "failed"]
    assert failed == [record]
    assert record.status == "error"
    assert stream.listener_count("failed") == 0
    assert len(api.polls) == 1


@pytest.mark.asyncio
async def test_provider_statuses_are_passed_through(recorder):
    api = FakeScreenshotApi({URL: ["in_queue", "processing", "processing", "finished"]})

    stream = _tracker(api).create({"url": URL})
    stream.on_any(recorder)
    await asyncio.wait_for(stream.wait(), 1)

    assert recorder.names == ["in_queue", "processing", "processing", "finished"]


@pytest.mark.asyncio
async def test_timeout_is_emitted_once_with_last_record(recorder):
    api = FakeScreenshotApi({URL: ["processing"]})
    clock = TickingClock(step=4)

    stream = _tracker(api, timeout=10, clock=clock).create({"url": URL})
    stream.on_any(recorder)
    name, record = await asyncio.wait_for(stream.wait(), 1)
    polls = len(api.polls)
    await asyncio.sleep(0.01)

    assert name == "timeout"
    assert record.status == "processing"
    assert recorder.names == ["processing", "processing", "processing", "timeout"]
    assert len(api.polls) == polls


@pytest.mark.asyncio
async def test_polls_use_request_detail_level():
    api = FakeScreenshotApi({URL: ["queued", "processing", "finished"]})

    stream = _tracker(api).create({"url": URL, "details": 2})
    await asyncio.wait_for(stream.wait(), 1)

    assert api.polls == [(1, 2), (1, 2)]


@pytest.mark.asyncio
async def test_correlation_tag_survives_polls(recorder):
    api = FakeScreenshotApi({URL: ["queued", "finished"]})

    stream = _tracker(api).create({"url": URL, "original_url": "my-tag"})
    stream.on_any(recorder)
    await asyncio.wait_for(stream.wait(), 1)

    assert [record.original_url for _, record in recorder.events] == ["my-tag", "my-tag"]
    # fields of the creation response are kept too
    assert recorder.events[-1][1].url == URL


@pytest.mark.asyncio
async def test_cancel_stops_polling_silently(recorder):
    api = FakeScreenshotApi({URL: ["processing"]})

    stream = _tracker(api, interval=0.01).create({"url": URL})
    stream.on_any(recorder)
    await asyncio.sleep(0.03)
    stream.cancel()
    seen, polls = len(recorder.events), len(api.polls)
    await asyncio.sleep(0.05)

    assert await stream.wait() is None
    assert len(recorder.events) == seen
    assert len(api.polls) <= polls + 1


@pytest.mark.asyncio
async def test_failing_listener_does_not_break_session(recorder):
    api = FakeScreenshotApi({URL: ["queued", "finished"]})

    def _broken(record):
        raise ValueError("boom")

    stream = _tracker(api).create({"url": URL})
    stream.on("queued", _broken)
    stream.on_any(recorder)
    name, _ = await asyncio.wait_for(stream.wait(), 1)

    assert name == "finished"
    assert recorder.names == ["queued", "finished"]


@pytest.mark.asyncio
async def test_once_listener_fires_a_single_time():
    api = FakeScreenshotApi({URL: ["processing", "processing", "finished"]})
    seen = []

    stream = _tracker(api).create({"url": URL})
    stream.once("processing", seen.append)
    await asyncio.wait_for(stream.wait(), 1)

    assert len(seen) == 1


def test_create_outside_event_loop_raises():
    api = FakeScreenshotApi({URL: ["finished"]})

    with pytest.raises(RuntimeError):
        _tracker(api).create({"url": URL})


class BrokenPollApi(FakeScreenshotApi):
    async def get_job_status(self, job_id, details=0):
        raise ConnectionError("provider unreachable")


@pytest.mark.asyncio
async def test_collaborator_error_closes_the_session(recorder):
    api = BrokenPollApi({URL: ["queued"]})

    stream = _tracker(api, timeout=0.01).create({"url": URL})
    stream.on_any(recorder)

    assert await asyncio.wait_for(stream.wait(), 1) is None
    assert recorder.names == ["queued"]
    assert stream.closed
