"""
Enrollment Submission Processor
-------------------------------
Single-flight processor for one capture session:

1) on_scan_produced: build the payload, POST it once, report progress,
   interpret the response and either advance or cancel the capture session.
2) on_session_fully_done: emit exactly one CompletionReport.

INVARIANTS:
- callback.cancel() fires at most once per processor (CancellationGuard),
  no matter how many failure sources race (error, reject, malformed, re-entry).
- The stall warning consults the processor's own state for the same attempt,
  never the transport's internals. It is advisory and never aborts the upload.
- Reactions from an aborted or superseded attempt are ignored.
- After FINALIZED every entry point is a no-op.
"""

from __future__ import annotations

import json
import time
from typing import Any, Dict, Optional

from scansubmit.settings import settings
from scansubmit.observability.logging import log
import scansubmit.observability.metrics as metrics
from scansubmit.processing.contracts import (
    CompletionSink,
    EnrollmentIdentifiers,
    ScanResultCallback,
    Scheduler,
    TimerHandle,
)
from scansubmit.processing.interpreter import interpret_response
from scansubmit.processing.models import (
    Advance,
    CancellationGuard,
    CompletionReport,
    Decision,
    Malformed,
    ProcessorState,
    Reject,
    SessionResultSnapshot,
    SessionStatus,
    SubmissionPayload,
)
from scansubmit.transport import TransportFactory, TransportHandle

TRANSPORT_ERROR = "Network request failed, cancelling."
SESSION_INCOMPLETE = "Session was not completed successfully, cancelling."


def build_user_agent(session_id: str) -> str:
    return f"{settings.USER_AGENT_PREFIX}/{settings.CLIENT_VERSION}|session:{session_id}"


def build_request_headers(session_id: str) -> Dict[str, str]:
    return {
        "Content-Type": "application/json",
        "X-Device-Key": settings.DEVICE_KEY_IDENTIFIER,
        "X-User-Agent": build_user_agent(session_id),
    }


def _now_ms() -> int:
    return int(time.monotonic() * 1000)


def _safe_metric(fn, *args) -> None:
    # Metrics are best-effort; a Redis outage must not break the capture flow.
    try:
        if settings.ENABLE_METRICS:
            fn(*args)
    except Exception:
        pass


class SubmissionProcessor:
    def __init__(
        self,
        *,
        transport_factory: TransportFactory,
        scheduler: Scheduler,
        completion_sink: CompletionSink,
        enrollment_ids: EnrollmentIdentifiers,
        stall_warning_sec: Optional[float] = None,
        stall_message: Optional[str] = None,
        success_message: Optional[str] = None,
    ):
        self._transport_factory = transport_factory
        self._scheduler = scheduler
        self._sink = completion_sink
        self._enrollment_ids = enrollment_ids
        self._stall_warning_sec = float(settings.STALL_WARNING_SEC if stall_warning_sec is None else stall_warning_sec)
        self._stall_message = settings.STALL_MESSAGE if stall_message is None else stall_message
        self._success_message = settings.SUCCESS_MESSAGE if success_message is None else success_message

        self.state = ProcessorState.IDLE
        self.cancel_reason: Optional[str] = None
        self.latest_snapshot: Optional[SessionResultSnapshot] = None
        self.call_data: Any = None
        self.transport_status: int = 0
        self.success = False

        self._guard = CancellationGuard()
        self._callback: Optional[ScanResultCallback] = None
        self._handle: Optional[TransportHandle] = None
        self._stall_timer: Optional[TimerHandle] = None
        self._stall_warned = False
        self._attempt = 0
        self._sent_at_ms = 0

    # ------------------------------------------------------------------
    # Public entry points
    # ------------------------------------------------------------------
    def on_scan_produced(self, snapshot: SessionResultSnapshot, callback: ScanResultCallback) -> None:
        if self.state is ProcessorState.FINALIZED:
            log(event="scan_ignored_after_finalize", sessionId=snapshot.sessionId)
            return

        if self._handle is not None:
            # A processor should only ever see one scan; re-entry must not leak the old request.
            log(event="scan_reentry_abort_previous", sessionId=snapshot.sessionId, attempt=self._attempt)
            self._release_attempt()

        self._attempt += 1
        self.latest_snapshot = snapshot
        self._callback = callback

        if snapshot.status is not SessionStatus.COMPLETED_SUCCESSFULLY:
            log(event="scan_session_incomplete", sessionId=snapshot.sessionId, status=str(snapshot.status.value))
            self._cancel_once(SESSION_INCOMPLETE, kind="session_incomplete")
            return

        try:
            payload = SubmissionPayload.from_snapshot(snapshot, self._enrollment_ids.get_current_identifier())
            self._upload(payload)
        except Exception as e:
            log(event="scan_upload_start_failed", sessionId=snapshot.sessionId,
                errorType=type(e).__name__, error=str(e)[:300])
            self.cancel_due_to_network_error(TRANSPORT_ERROR, kind="transport_failure")

    def on_session_fully_done(self) -> None:
        if self.state is ProcessorState.FINALIZED:
            log(event="session_done_ignored_already_finalized",
                sessionId=getattr(self.latest_snapshot, "sessionId", ""))
            return

        self._release_attempt()
        self.state = ProcessorState.FINALIZED

        snapshot = self.latest_snapshot
        self.success = bool(snapshot is not None and snapshot.isCompletelyDone)
        session_id = snapshot.sessionId if snapshot is not None else ""

        if self.success:
            log(event="enrollment_completed", sessionId=session_id)
        else:
            try:
                self._enrollment_ids.clear_current_identifier()
            except Exception as e:
                log(event="enrollment_id_clear_exception", sessionId=session_id, error=str(e)[:300])
            log(event="enrollment_not_completed", sessionId=session_id, reason=self.cancel_reason or "")

        report = CompletionReport(
            success=self.success,
            continuation_data=self.call_data,
            transport_status=self.transport_status,
            session_id=session_id,
        )
        self._sink.on_complete(report)

    def cancel_due_to_network_error(self, message: str, *, kind: str = "transport_failure") -> None:
        self._cancel_once(message, kind=kind)

    def is_success(self) -> bool:
        return self.success

    # ------------------------------------------------------------------
    # Upload lifecycle
    # ------------------------------------------------------------------
    def _upload(self, payload: SubmissionPayload) -> None:
        attempt = self._attempt
        body = json.dumps(payload.to_wire()).encode("utf-8")

        self.state = ProcessorState.UPLOADING
        self._stall_warned = False
        self._handle = self._transport_factory(build_request_headers(payload.sessionId))
        self._sent_at_ms = _now_ms()
        _safe_metric(metrics.increment_submission_attempt)
        log(event="scan_upload_start", sessionId=payload.sessionId, attempt=attempt, bytes=len(body))

        self._handle.send(
            body,
            on_progress=lambda loaded, total: self._on_progress(attempt, loaded, total),
            on_complete=lambda raw, status: self._on_complete(attempt, raw, status),
            on_error=lambda exc: self._on_transport_error(attempt, exc),
        )
        if self._live(attempt, ProcessorState.UPLOADING):
            self._stall_timer = self._scheduler.call_later(self._stall_warning_sec, self._on_stall_timer, attempt)

    def _live(self, attempt: int, *states: ProcessorState) -> bool:
        return attempt == self._attempt and self.state in states

    def _on_progress(self, attempt: int, loaded: int, total: int) -> None:
        if not self._live(attempt, ProcessorState.UPLOADING):
            return
        fraction = (float(loaded) / float(total)) if total else 1.0
        self._callback.upload_progress(min(1.0, max(0.0, fraction)))

    def _on_transport_error(self, attempt: int, exc: BaseException) -> None:
        if not self._live(attempt, ProcessorState.UPLOADING, ProcessorState.CANCELLING):
            return
        log(event="scan_upload_transport_error",
            sessionId=self._session_id(), errorType=type(exc).__name__, error=str(exc)[:300])
        self._handle = None
        self.cancel_due_to_network_error(TRANSPORT_ERROR, kind="transport_failure")

    def _on_complete(self, attempt: int, raw: bytes, status: int) -> None:
        if not self._live(attempt, ProcessorState.UPLOADING):
            return
        self.state = ProcessorState.AWAITING_DECISION
        self.transport_status = int(status or 0)
        self._handle = None
        self._cancel_stall_timer()
        _safe_metric(metrics.record_upload_latency, _now_ms() - self._sent_at_ms)

        decision = interpret_response(raw)
        log(event="scan_decision", sessionId=self._session_id(),
            statusCode=self.transport_status, decision=type(decision).__name__)
        self._apply_decision(decision)

    def _apply_decision(self, decision: Decision) -> None:
        if isinstance(decision, Advance):
            hook = getattr(self._callback, "override_success_message", None)
            if callable(hook) and self._success_message:
                hook(self._success_message)
            self.call_data = decision.call_data
            _safe_metric(metrics.increment_submission_advanced)
            self._callback.proceed_to_next_step(decision.token)
        elif isinstance(decision, Reject):
            self.cancel_due_to_network_error(decision.reason, kind="server_rejection")
        elif isinstance(decision, Malformed):
            self.cancel_due_to_network_error(decision.reason, kind="malformed_response")
        else:
            raise TypeError(f"Unknown decision: {decision!r}")

    def _on_stall_timer(self, attempt: int) -> None:
        self._stall_timer = None
        if self._stall_warned or not self._live(attempt, ProcessorState.UPLOADING):
            return
        self._stall_warned = True
        _safe_metric(metrics.increment_stall_warning)
        log(event="scan_upload_stalled", sessionId=self._session_id(), afterSec=self._stall_warning_sec)
        self._callback.upload_message_override(self._stall_message)

    # ------------------------------------------------------------------
    # Cancellation / teardown
    # ------------------------------------------------------------------
    def _cancel_once(self, message: str, *, kind: str) -> None:
        if self.state is ProcessorState.FINALIZED:
            log(event="scan_cancel_ignored_after_finalize", sessionId=self._session_id(), reason=message)
            return
        if not self._guard.trip():
            log(event="scan_cancel_duplicate_ignored", sessionId=self._session_id(), reason=message, failureKind=kind)
            return
        self.cancel_reason = message
        log(event="scan_cancelled", sessionId=self._session_id(), reason=message, failureKind=kind)
        self.state = ProcessorState.CANCELLING
        self._release_attempt()
        _safe_metric(metrics.increment_submission_cancelled, kind)
        _safe_metric(metrics.record_failed_submission, self._session_id())
        if self._callback is not None:
            self._callback.cancel()

    def _cancel_stall_timer(self) -> None:
        if self._stall_timer is not None:
            self._stall_timer.cancel()
            self._stall_timer = None

    def _release_attempt(self) -> None:
        self._cancel_stall_timer()
        if self._handle is not None:
            handle, self._handle = self._handle, None
            handle.abort()

    def _session_id(self) -> str:
        return getattr(self.latest_snapshot, "sessionId", "") or ""
