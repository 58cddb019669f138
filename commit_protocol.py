"""Single outstanding save per engine, correlated with exactly one result.

A commit hands a ``CommitRequest`` to a dispatcher (usually ``queue.Queue.put``)
and returns a ``PendingSave``. The persistence side answers later with a
``CommitResult`` carrying the same request id; the first matching result
resolves the save, anything after that is ignored.
"""

from __future__ import annotations
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from config import COMMIT_TIMEOUT_SECONDS
from logger import log_error, log_info, log_warning

DISPATCH_FAILED = "dispatch failed"
TIMED_OUT = "timed out"


class CommitInProgressError(RuntimeError):
    """Raised when a second commit is attempted while one is pending."""


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


@dataclass
class CommitRequest:
    entity_type: str
    fields: Dict[str, Any]
    request_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "requestId": self.request_id,
            "entityType": self.entity_type,
            "fields": {_camel(key): value for key, value in self.fields.items()},
        }


@dataclass
class CommitResult:
    request_id: str
    success: bool
    error: Optional[str] = None

    @classmethod
    def from_payload(cls, request_id: str, payload: Dict[str, Any]) -> "CommitResult":
        return cls(request_id=request_id, success=bool(payload.get("success")), error=payload.get("error"))


@dataclass
class CommitOutcome:
    success: bool
    reason: Optional[str] = None

    @classmethod
    def succeeded(cls) -> "CommitOutcome":
        return cls(success=True)

    @classmethod
    def failed(cls, reason: str) -> "CommitOutcome":
        return cls(success=False, reason=reason)


@dataclass
class PendingSave:
    request: CommitRequest
    deadline: float
    outcome: Optional[CommitOutcome] = None

    @property
    def resolved(self) -> bool:
        return self.outcome is not None


class CommitProtocol:
    def __init__(
        self,
        dispatcher: Callable[[CommitRequest], Any],
        timeout: float = COMMIT_TIMEOUT_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._dispatcher = dispatcher
        self._timeout = timeout
        self._clock = clock
        self._pending: Optional[PendingSave] = None

    @property
    def pending(self) -> Optional[PendingSave]:
        return self._pending

    def commit(self, entity_type: str, fields: Dict[str, Any]) -> PendingSave:
        """Dispatch one save request.

        The returned ``PendingSave`` is already resolved when the dispatcher
        raised; otherwise it resolves through ``receive`` or ``expire``.
        """
        if self._pending is not None:
            raise CommitInProgressError(
                f"Save {self._pending.request.request_id} is still waiting for its result"
            )
        request = CommitRequest(entity_type=entity_type, fields=dict(fields))
        pending = PendingSave(request=request, deadline=self._clock() + self._timeout)
        self._pending = pending
        try:
            self._dispatcher(request)
        except Exception as exc:
            log_error("Dispatch of %s request %s failed: %s", entity_type, request.request_id, exc)
            self._resolve(CommitOutcome.failed(DISPATCH_FAILED))
            return pending
        log_info("Dispatched %s request %s", entity_type, request.request_id)
        return pending

    def receive(self, result: CommitResult) -> Optional[CommitOutcome]:
        pending = self._pending
        if pending is None or pending.request.request_id != result.request_id:
            log_warning("Ignoring result for request %s with no matching pending save", result.request_id)
            return None
        if result.success:
            outcome = CommitOutcome.succeeded()
        else:
            outcome = CommitOutcome.failed(result.error or "save failed")
        self._resolve(outcome)
        log_info("Request %s resolved: success=%s", result.request_id, outcome.success)
        return outcome

    def expire(self, now: Optional[float] = None) -> Optional[CommitOutcome]:
        pending = self._pending
        if pending is None:
            return None
        current = self._clock() if now is None else now
        if current < pending.deadline:
            return None
        log_warning("Request %s timed out after %.1fs", pending.request.request_id, self._timeout)
        outcome = CommitOutcome.failed(TIMED_OUT)
        self._resolve(outcome)
        return outcome

    def abandon(self) -> None:
        if self._pending is not None:
            log_info("Abandoned pending request %s", self._pending.request.request_id)
            self._pending = None

    def _resolve(self, outcome: CommitOutcome) -> None:
        if self._pending is not None:
            self._pending.outcome = outcome
        self._pending = None
