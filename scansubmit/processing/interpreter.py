"""
Enrollment Response Interpreter
-------------------------------
Turns the raw body returned by the verification service into a Decision.

Contract keys on the root object:
- wasProcessed (older servers send `processed`) must be exactly true
- error must be exactly false
- scanResultBlob is the continuation token, passed through untouched
- callData is optional and handed to the completion report as-is

Never raises; anything that cannot be read becomes Malformed.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Union

from scansubmit.processing.models import Advance, Decision, Malformed, Reject

UNEXPECTED_RESPONSE = "Unexpected API response, cancelling out."
MALFORMED_RESPONSE = "Exception while handling API response, cancelling out."
MISSING_BLOB = "API response is missing scanResultBlob, cancelling out."


def _processed_flag(body: Dict[str, Any]) -> Any:
    if "wasProcessed" in body:
        return body.get("wasProcessed")
    return body.get("processed")


def interpret_response(raw: Union[bytes, bytearray, str, None]) -> Decision:
    try:
        if isinstance(raw, (bytes, bytearray)):
            raw = bytes(raw).decode("utf-8")
        body = json.loads(raw or "")
    except (TypeError, ValueError, RecursionError):
        # ValueError covers JSONDecodeError and UnicodeDecodeError
        return Malformed(MALFORMED_RESPONSE)

    if not isinstance(body, dict):
        return Malformed(MALFORMED_RESPONSE)

    if _processed_flag(body) is True and body.get("error") is False:
        blob = body.get("scanResultBlob")
        if not isinstance(blob, str):
            return Malformed(MISSING_BLOB)
        return Advance(token=blob, call_data=body.get("callData"))

    message = body.get("errorMessage")
    if body.get("error") is True and message is not None:
        return Reject(str(message))

    return Reject(UNEXPECTED_RESPONSE)
