import json
import pytest

from scansubmit.processing.interpreter import (
    MALFORMED_RESPONSE,
    MISSING_BLOB,
    UNEXPECTED_RESPONSE,
    interpret_response,
)
from scansubmit.processing.models import Advance, Malformed, Reject


def _raw(obj) -> bytes:
    return json.dumps(obj).encode("utf-8")


def test_advance_passes_token_and_call_data_through():
    d = interpret_response(_raw({"wasProcessed": True, "error": False, "scanResultBlob": "T1", "callData": {"x": [1]}}))
    assert d == Advance(token="T1", call_data={"x": [1]})


def test_processed_alias_is_accepted():
    d = interpret_response(_raw({"processed": True, "error": False, "scanResultBlob": "T2"}))
    assert isinstance(d, Advance)
    assert d.token == "T2"
    assert d.call_data is None


def test_was_processed_takes_precedence_over_alias():
    d = interpret_response(_raw({"wasProcessed": False, "processed": True, "error": False, "scanResultBlob": "T"}))
    assert d == Reject(UNEXPECTED_RESPONSE)


def test_error_message_becomes_reject_reason():
    d = interpret_response(_raw({"wasProcessed": False, "error": True, "errorMessage": "bad scan"}))
    assert d == Reject("bad scan")


def test_error_without_message_is_unexpected():
    d = interpret_response(_raw({"wasProcessed": False, "error": True, "errorMessage": None}))
    assert d == Reject(UNEXPECTED_RESPONSE)


def test_missing_processed_flag_is_unexpected():
    assert interpret_response(_raw({"error": False})) == Reject(UNEXPECTED_RESPONSE)


def test_processed_but_error_true_is_rejected():
    d = interpret_response(_raw({"wasProcessed": True, "error": True, "errorMessage": "liveness"}))
    assert d == Reject("liveness")


@pytest.mark.parametrize("flag", ["true", 1, "yes"])
def test_truthy_non_bool_flags_do_not_advance(flag):
    d = interpret_response(_raw({"wasProcessed": flag, "error": False, "scanResultBlob": "T"}))
    assert isinstance(d, Reject)


def test_missing_error_flag_does_not_advance():
    d = interpret_response(_raw({"wasProcessed": True, "scanResultBlob": "T"}))
    assert d == Reject(UNEXPECTED_RESPONSE)


def test_missing_blob_is_malformed():
    d = interpret_response(_raw({"wasProcessed": True, "error": False}))
    assert d == Malformed(MISSING_BLOB)


@pytest.mark.parametrize("raw", [b"", b"{", b"<html>502</html>", b"\x80\x81", b'"just a string"', b"42", None])
def test_unreadable_bodies_are_malformed(raw):
    assert interpret_response(raw) == Malformed(MALFORMED_RESPONSE)


def test_deeply_nested_body_does_not_raise():
    raw = b"[" * 100000 + b"]" * 100000
    assert isinstance(interpret_response(raw), Malformed)


def test_str_input_is_accepted():
    d = interpret_response('{"wasProcessed": true, "error": false, "scanResultBlob": "S"}')
    assert d == Advance(token="S")
