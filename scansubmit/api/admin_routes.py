import json

from fastapi import APIRouter, Depends, HTTPException, Header
from scansubmit.settings import settings
from scansubmit.store.redis_conn import get_redis
from scansubmit.queue.jobs import last_report_key
import scansubmit.observability.metrics as metrics

router = APIRouter(prefix="/admin", tags=["admin"])

def require_admin(x_admin_key: str = Header(default="", alias="x-admin-key")):
    if not settings.ADMIN_RBAC_ENABLED:
        return
    # Secure default: if enabled but no key configured, reject all.
    if not settings.ADMIN_API_KEY:
        raise HTTPException(status_code=403, detail="Admin access disabled (no key configured)")
    if x_admin_key != settings.ADMIN_API_KEY:
        raise HTTPException(status_code=403, detail="Invalid admin key")

@router.get("/submissions/{session_id}")
def get_last_report(session_id: str, _=Depends(require_admin)):
    """Last completion report recorded for a capture session."""
    if not settings.STORE_LAST_COMPLETION_REPORT:
        return {"enabled": False}
    raw = get_redis().get(last_report_key(session_id))
    if not raw:
        raise HTTPException(status_code=404, detail="No completion report for session")
    return {"sessionId": session_id, "report": json.loads(raw)}

@router.get("/slo")
def get_slo(_=Depends(require_admin)):
    """
    Observability snapshot backed by Redis counters.
    """
    return metrics.get_slo_snapshot()
