"""
Wiring for a live capture session: one SubmissionProcessor per session, the
httpx transport on the running asyncio loop, the Redis identifier store and
the RQ completion sink.
"""
from __future__ import annotations

import asyncio
from typing import Optional

from scansubmit.processing.contracts import CompletionSink, EnrollmentIdentifiers
from scansubmit.processing.processor import SubmissionProcessor
from scansubmit.queue.sink import QueueCompletionSink
from scansubmit.store.enrollment_ids import RedisEnrollmentIdentifiers
from scansubmit.transport import HttpxTransportFactory


def build_processor(
    *,
    transport_factory: Optional[HttpxTransportFactory] = None,
    completion_sink: Optional[CompletionSink] = None,
    enrollment_ids: Optional[EnrollmentIdentifiers] = None,
    loop: Optional[asyncio.AbstractEventLoop] = None,
    stall_warning_sec: Optional[float] = None,
) -> SubmissionProcessor:
    """Must be called from inside the event loop that will drive the session."""
    loop = loop or asyncio.get_running_loop()
    return SubmissionProcessor(
        transport_factory=transport_factory or HttpxTransportFactory(loop=loop),
        scheduler=loop,
        completion_sink=completion_sink or QueueCompletionSink(),
        enrollment_ids=enrollment_ids or RedisEnrollmentIdentifiers(),
        stall_warning_sec=stall_warning_sec,
    )
