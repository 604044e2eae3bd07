from __future__ import annotations

import asyncio

import pytest

from siteaudit.services import streaming
from siteaudit.services.status_channel import StatusBroadcaster


@pytest.mark.asyncio
async def test_subscriber_receives_events_until_terminal():
    broadcaster = StatusBroadcaster()
    channel = streaming.job_channel("job-1")
    subscription = broadcaster.subscribe(channel)

    broadcaster.publish(channel, streaming.status_update("Crawling website...", "job-1"))
    broadcaster.publish(channel, streaming.audit_completed("job-1", 88))
    broadcaster.publish(channel, streaming.status_update("after the end", "job-1"))

    received = [event async for event in subscription]

    assert [event.message for event in received] == ["Crawling website...", "Audit completed!"]
    assert received[-1].payload() == {
        "message": "Audit completed!",
        "status": "completed",
        "id": "job-1",
        "score": 88,
        "degraded": False,
    }
    assert broadcaster.subscriber_count(channel) == 0


@pytest.mark.asyncio
async def test_channels_are_isolated_and_late_joiners_miss_history():
    broadcaster = StatusBroadcaster()
    a = streaming.job_channel("a")
    b = streaming.job_channel("b")

    assert broadcaster.publish(a, streaming.status_update("nobody listening", "a")) == 0

    sub_a = broadcaster.subscribe(a)
    sub_b = broadcaster.subscribe(b)
    assert broadcaster.publish(a, streaming.audit_failed("a", "x" * 300)) == 1

    event = await asyncio.wait_for(sub_a.__anext__(), timeout=1)
    assert event.message == "Failed: " + "x" * 100
    assert event.status.value == "failed"

    sub_b.close()
    assert broadcaster.subscriber_count(b) == 0


def test_search_events_carry_count():
    event = streaming.search_completed("s-1", 7)
    assert streaming.search_channel("s-1") == "search-status-s-1"
    assert event.payload() == {"message": "Search complete!", "status": "completed", "id": "s-1", "count": 7}
    assert event.format().startswith("event: status_update\ndata: ")
