import queue
import sqlite3
import threading
from typing import Optional

import database
from commit_protocol import CommitRequest, CommitResult
from logger import log_error, log_info


class LedgerWorker:
    """Stores commit requests taken from ``requests``.

    Every request yields exactly one ``CommitResult`` on ``results``, whether
    the insert worked or not.
    """

    def __init__(self, requests: "queue.Queue[Optional[CommitRequest]]", results: "queue.Queue[CommitResult]"):
        self.requests = requests
        self.results = results
        self._thread: Optional[threading.Thread] = None

    def handle(self, request: CommitRequest) -> CommitResult:
        fields = request.fields
        try:
            if request.entity_type == "loan":
                record_id = database.add_loan(
                    fields["name"], int(fields["amount_primary"]), int(fields.get("amount_paid") or 0)
                )
            elif request.entity_type == "purchase":
                record_id = database.add_purchase(
                    fields["supplier"], int(fields["amount_primary"]), int(fields.get("amount_paid") or 0)
                )
            else:
                log_error("Request %s has unknown entity type %s", request.request_id, request.entity_type)
                return CommitResult(request.request_id, False, f"unknown entity type {request.entity_type}")
        except KeyError as exc:
            log_error("Request %s is missing field %s", request.request_id, exc)
            return CommitResult(request.request_id, False, f"missing field {exc}")
        except (TypeError, ValueError) as exc:
            log_error("Request %s has an invalid amount: %s", request.request_id, exc)
            return CommitResult(request.request_id, False, "invalid amount")
        except sqlite3.Error as exc:
            return CommitResult(request.request_id, False, str(exc))

        log_info("Request %s stored as %s #%s", request.request_id, request.entity_type, record_id)
        return CommitResult(request.request_id, True)

    def process_available(self) -> int:
        processed = 0
        while True:
            try:
                request = self.requests.get_nowait()
            except queue.Empty:
                return processed
            if request is not None:
                self.results.put(self.handle(request))
                processed += 1
            self.requests.task_done()

    def _run(self) -> None:
        while True:
            request = self.requests.get()
            try:
                if request is None:
                    return
                self.results.put(self.handle(request))
            finally:
                self.requests.task_done()

    def start(self) -> threading.Thread:
        if self._thread is None or not self._thread.is_alive():
            self._thread = threading.Thread(target=self._run, name="ledger-worker", daemon=True)
            self._thread.start()
            log_info("Ledger worker started")
        return self._thread

    def stop(self, timeout: Optional[float] = None) -> None:
        if self._thread is None:
            return
        self.requests.put(None)
        self._thread.join(timeout)
        self._thread = None
        log_info("Ledger worker stopped")
