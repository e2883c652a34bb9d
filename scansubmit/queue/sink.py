from scansubmit.observability.logging import log
from scansubmit.processing.models import CompletionReport
from scansubmit.queue.jobs import record_completion_job
from scansubmit.queue.rq_conn import get_queue


class QueueCompletionSink:
    """Completion sink that hands each report to an RQ worker."""

    def __init__(self, queue=None):
        self._queue = queue

    def on_complete(self, report: CompletionReport) -> None:
        q = self._queue or get_queue()
        job = q.enqueue(record_completion_job, report.to_dict())
        log(
            event="completion_enqueued",
            sessionId=report.session_id,
            job="record_completion_job",
            rq_job_id=getattr(job, "id", "") or "",
            success=bool(report.success),
        )
