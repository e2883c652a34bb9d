import json

from scansubmit.observability.logging import log
from scansubmit.settings import settings
from scansubmit.store.redis_conn import get_redis

LAST_REPORT_KEY = "submission:{session_id}:last_report"


def last_report_key(session_id: str) -> str:
    return LAST_REPORT_KEY.format(session_id=session_id)


def record_completion_job(report: dict):
    """
    Background job: persist the completion report of a finished submission.
    """
    session_id = str(report.get("sessionId") or "")
    try:
        log(event="completion_job_start", sessionId=session_id,
            success=bool(report.get("success")), transportStatus=report.get("transportStatus"))
        if settings.STORE_LAST_COMPLETION_REPORT and session_id:
            r = get_redis()
            r.set(last_report_key(session_id), json.dumps(report), ex=int(settings.COMPLETION_REPORT_TTL_SEC))
    except Exception as e:
        log(event="completion_job_exception", sessionId=session_id, error=str(e))
        raise
