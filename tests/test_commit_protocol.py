import pytest

from commit_protocol import (
    DISPATCH_FAILED,
    TIMED_OUT,
    CommitInProgressError,
    CommitProtocol,
    CommitRequest,
    CommitResult,
)


def test_request_payload_uses_wire_field_names():
    request = CommitRequest("purchase", {"supplier": "Abdul Traders", "amount_primary": 5000, "amount_paid": 0})
    payload = request.to_payload()
    assert payload["requestId"] == request.request_id
    assert payload["entityType"] == "purchase"
    assert payload["fields"] == {"supplier": "Abdul Traders", "amountPrimary": 5000, "amountPaid": 0}


def test_request_ids_are_unique():
    assert CommitRequest("loan", {}).request_id != CommitRequest("loan", {}).request_id


def test_result_from_payload():
    result = CommitResult.from_payload("abc", {"success": False, "error": "locked"})
    assert result == CommitResult("abc", False, "locked")
    assert CommitResult.from_payload("abc", {"success": True}).error is None


def test_first_matching_result_resolves_once():
    sent = []
    protocol = CommitProtocol(sent.append)
    pending = protocol.commit("loan", {"name": "Ravi", "amount_primary": 500, "amount_paid": 0})
    assert sent == [pending.request]
    assert pending.resolved is False

    outcome = protocol.receive(CommitResult(pending.request.request_id, True))
    assert outcome.success is True
    assert pending.resolved is True
    assert protocol.pending is None
    assert protocol.receive(CommitResult(pending.request.request_id, False, "again")) is None


def test_unrelated_result_is_ignored():
    protocol = CommitProtocol(lambda request: None)
    pending = protocol.commit("loan", {})
    assert protocol.receive(CommitResult("someone-else", True)) is None
    assert protocol.pending is pending


def test_second_commit_while_pending_is_rejected():
    sent = []
    protocol = CommitProtocol(sent.append)
    protocol.commit("loan", {})
    with pytest.raises(CommitInProgressError):
        protocol.commit("loan", {})
    assert len(sent) == 1


def test_dispatch_error_resolves_to_failure():
    def _broken(_request):
        raise RuntimeError("no consumer")

    protocol = CommitProtocol(_broken)
    pending = protocol.commit("purchase", {})
    assert pending.outcome.success is False
    assert pending.outcome.reason == DISPATCH_FAILED
    assert protocol.pending is None


def test_failure_without_reason_gets_generic_reason():
    protocol = CommitProtocol(lambda request: None)
    pending = protocol.commit("loan", {})
    outcome = protocol.receive(CommitResult(pending.request.request_id, False))
    assert outcome.reason == "save failed"


def test_expire_only_after_deadline():
    now = [10.0]
    protocol = CommitProtocol(lambda request: None, timeout=5, clock=lambda: now[0])
    pending = protocol.commit("loan", {})
    assert protocol.expire() is None
    assert protocol.expire(now=14.9) is None
    now[0] = 15.0
    outcome = protocol.expire()
    assert outcome.reason == TIMED_OUT
    assert pending.outcome is outcome
    assert protocol.receive(CommitResult(pending.request.request_id, True)) is None


def test_abandon_drops_pending_save():
    protocol = CommitProtocol(lambda request: None)
    pending = protocol.commit("loan", {})
    protocol.abandon()
    assert protocol.pending is None
    assert protocol.receive(CommitResult(pending.request.request_id, True)) is None
    protocol.commit("loan", {})
