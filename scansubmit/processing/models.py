from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union


class SessionStatus(str, Enum):
    # Only this status means a scan exists; it does NOT mean the enrollment succeeded
    COMPLETED_SUCCESSFULLY = "SessionCompletedSuccessfully"
    USER_CANCELLED = "UserCancelled"
    TIMEOUT = "Timeout"
    CONTEXT_SWITCH = "ContextSwitch"
    CAMERA_PERMISSION_DENIED = "CameraPermissionDenied"
    CAMERA_INITIALIZATION_ISSUE = "CameraInitializationIssue"
    LOCKED_OUT = "LockedOut"
    INVALID_SESSION_TOKEN = "InvalidSessionToken"
    UNKNOWN_INTERNAL_ERROR = "UnknownInternalError"


class ProcessorState(str, Enum):
    IDLE = "IDLE"
    UPLOADING = "UPLOADING"
    AWAITING_DECISION = "AWAITING_DECISION"
    CANCELLING = "CANCELLING"
    FINALIZED = "FINALIZED"


@dataclass
class SessionResultSnapshot:
    status: SessionStatus
    sessionId: str = ""
    faceScan: Optional[str] = None
    auditTrail: List[str] = field(default_factory=list)
    lowQualityAuditTrail: List[str] = field(default_factory=list)
    # Set by the capture session once the whole flow (including proceed_to_next_step) succeeded
    isCompletelyDone: bool = False


@dataclass(frozen=True)
class SubmissionPayload:
    faceScan: str
    auditTrail: Tuple[str, ...]
    lowQualityAuditTrail: Tuple[str, ...]
    sessionId: str
    externalDatabaseRefID: str

    @classmethod
    def from_snapshot(cls, snapshot: SessionResultSnapshot, enrollment_ref_id: str) -> "SubmissionPayload":
        return cls(
            faceScan=snapshot.faceScan or "",
            auditTrail=tuple(snapshot.auditTrail or ()),
            lowQualityAuditTrail=tuple(snapshot.lowQualityAuditTrail or ()),
            sessionId=snapshot.sessionId,
            externalDatabaseRefID=enrollment_ref_id,
        )

    def to_wire(self) -> Dict[str, Any]:
        """JSON body for the enrollment endpoint (first image of each audit trail only)."""
        return {
            "faceScan": self.faceScan,
            "auditTrailImage": self.auditTrail[0] if self.auditTrail else None,
            "lowQualityAuditTrailImage": self.lowQualityAuditTrail[0] if self.lowQualityAuditTrail else None,
            "sessionId": self.sessionId,
            "externalDatabaseRefID": self.externalDatabaseRefID,
        }


@dataclass(frozen=True)
class Advance:
    token: str
    call_data: Any = None


@dataclass(frozen=True)
class Reject:
    reason: str


@dataclass(frozen=True)
class Malformed:
    reason: str


Decision = Union[Advance, Reject, Malformed]


class CancellationGuard:
    """Set-once latch. Only the first trip() returns True."""

    def __init__(self) -> None:
        self._tripped = False

    @property
    def tripped(self) -> bool:
        return self._tripped

    def trip(self) -> bool:
        if self._tripped:
            return False
        self._tripped = True
        return True


@dataclass(frozen=True)
class CompletionReport:
    success: bool
    continuation_data: Any = None
    # 0 when no response was received (no send, transport error, abort)
    transport_status: int = 0
    session_id: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sessionId": self.session_id,
            "success": bool(self.success),
            "continuationData": self.continuation_data,
            "transportStatus": int(self.transport_status),
        }
