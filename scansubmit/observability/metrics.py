"""
Observability Metrics & SLO Snapshot
------------------------------------
Lightweight Redis counters/timers for scan submissions and a single SLO
snapshot consumed by /admin/slo. Missing keys (first boot) read as zero.
"""
from __future__ import annotations
import time
from typing import List, Tuple
from scansubmit.store.redis_conn import get_redis
from scansubmit.settings import settings

K_SUB_ATT   = "metrics:submission:attempts"        # INCR
K_SUB_ADV   = "metrics:submission:advanced"        # INCR
K_SUB_CANCEL = "metrics:submission:cancelled:"     # INCR per failure kind
K_SUB_STALL = "metrics:submission:stall_warnings"  # INCR
K_SUB_LAT   = "metrics:submission:latencies"       # LPUSH ms
K_SUB_FAIL_RECENT = "metrics:submission:failed_recent"  # LPUSH sessionId (trim window)

FAILURE_KINDS = ("session_incomplete", "transport_failure", "server_rejection", "malformed_response")

_MAX_SAMPLES = 500

def _percentile(data: List[float], p: float) -> float:
    """Deterministic percentile (nearest-rank on sorted data)."""
    if not data:
        return 0.0
    d = sorted(data)
    k = max(1, int(round(p * len(d))))
    return float(d[k - 1])

def _now_s() -> int:
    return int(time.time())

def increment_submission_attempt() -> None:
    r = get_redis()
    r.incr(K_SUB_ATT, 1)

def increment_submission_advanced() -> None:
    r = get_redis()
    r.incr(K_SUB_ADV, 1)

def increment_submission_cancelled(kind: str) -> None:
    r = get_redis()
    r.incr(K_SUB_CANCEL + kind, 1)

def increment_stall_warning() -> None:
    r = get_redis()
    r.incr(K_SUB_STALL, 1)

def record_upload_latency(ms: int) -> None:
    try:
        ms = int(ms)
    except Exception:
        return
    r = get_redis()
    r.lpush(K_SUB_LAT, ms)
    r.ltrim(K_SUB_LAT, 0, _MAX_SAMPLES - 1)

def record_failed_submission(session_id: str) -> None:
    """Track recent failures for incident attachments."""
    if not session_id:
        return
    r = get_redis()
    r.lpush(K_SUB_FAIL_RECENT, session_id)
    r.ltrim(K_SUB_FAIL_RECENT, 0, 49)

def _read_latency_list(key: str) -> List[float]:
    r = get_redis()
    raw = r.lrange(key, 0, _MAX_SAMPLES - 1) or []
    out: List[float] = []
    for x in raw:
        try:
            out.append(float(x) / 1000.0)  # seconds
        except (TypeError, ValueError):
            continue
    return out

def _p50_p95(latencies_s: List[float]) -> Tuple[float, float]:
    if not latencies_s:
        return 0.0, 0.0
    return _percentile(latencies_s, 0.50), _percentile(latencies_s, 0.95)

def get_slo_snapshot() -> dict:
    """
    Return a dict shaped for /admin/slo consumers.
    Fields:
      - submission_attempts, advance_rate, cancellations (per failure kind)
      - p50_upload_latency, p95_upload_latency, target_upload_latency
      - stall_warnings, recent_failed_submissions
    """
    r = get_redis()

    attempts = int(r.get(K_SUB_ATT) or 0)
    advanced = int(r.get(K_SUB_ADV) or 0)
    advance_rate = (advanced / attempts) * 100.0 if attempts > 0 else 0.0

    cancellations = {kind: int(r.get(K_SUB_CANCEL + kind) or 0) for kind in FAILURE_KINDS}

    p50, p95 = _p50_p95(_read_latency_list(K_SUB_LAT))

    recent_failed = [str(x) for x in (r.lrange(K_SUB_FAIL_RECENT, 0, 19) or [])]

    return {
        "submission_attempts": attempts,
        "advance_rate": round(advance_rate, 3),
        "cancellations": cancellations,
        "p50_upload_latency": round(p50, 3),
        "p95_upload_latency": round(p95, 3),
        "target_upload_latency": float(settings.STALL_WARNING_SEC),
        "stall_warnings": int(r.get(K_SUB_STALL) or 0),
        "recent_failed_submissions": recent_failed,
        "snapshot_at": _now_s(),
    }
