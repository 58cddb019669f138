import queue
import sqlite3
import threading
import time
from typing import Any, Dict, List, Optional
from flask import Flask, jsonify, request
from flask_cors import CORS

from assistant import AssistantSession
from commit_protocol import CommitInProgressError, CommitResult
from config import DEFAULT_LANGUAGE, SESSION_IDLE_SECONDS
from conversation_engine import EngineReply, FlowStateError
from database import create_tables, get_recent_loans, get_recent_purchases
from ledger_worker import LedgerWorker
from logger import log_error, log_info
from vocabulary import VocabularyError

app = Flask(__name__)
CORS(app)  # allow frontend dev server to reach the API
# False: the client stores each record itself and posts the result back
app.config.setdefault("STORE_COMMITS", True)

_sessions: Dict[str, AssistantSession] = {}
_last_seen: Dict[str, float] = {}
_sessions_lock = threading.Lock()


def _safe_limit(value: Optional[str], default: int = 5) -> int:
    try:
        limit = int(value) if value is not None else default
    except (TypeError, ValueError):
        limit = default
    return max(1, min(limit, 50))


def _sweep_sessions(now: Optional[float] = None) -> int:
    """Drop sessions idle for longer than SESSION_IDLE_SECONDS."""
    now = time.monotonic() if now is None else now
    with _sessions_lock:
        stale = [sid for sid, seen in _last_seen.items() if now - seen > SESSION_IDLE_SECONDS]
        for sid in stale:
            _sessions.pop(sid, None)
            _last_seen.pop(sid, None)
    for sid in stale:
        log_info("Assistant session %s expired after %.0fs idle", sid, SESSION_IDLE_SECONDS)
    return len(stale)


def _get_session(session_id: str) -> Optional[AssistantSession]:
    _sweep_sessions()
    with _sessions_lock:
        session = _sessions.get(session_id)
        if session is not None:
            _last_seen[session_id] = time.monotonic()
        return session


def _pump(session: AssistantSession) -> List[EngineReply]:
    """Store queued saves for this session and apply their results."""
    if app.config["STORE_COMMITS"]:
        LedgerWorker(session.outbox, session.inbox).process_available()
    else:
        # requests stay visible as pending_request in the session state
        while True:
            try:
                session.outbox.get_nowait()
            except queue.Empty:
                break
    return session.drain()


def _respond(session: AssistantSession, replies: List[EngineReply], **extra: Any):
    replies = list(replies) + _pump(session)
    payload = {"replies": [reply.to_dict() for reply in replies], "state": session.snapshot()}
    payload.update(extra)
    return jsonify(payload)


def _not_found(session_id: str):
    return jsonify({"error": f"Unknown session {session_id}."}), 404


@app.route("/api/assistant/sessions", methods=["POST"])
def api_create_session():
    data = request.get_json(silent=True) or {}
    language = str(data.get("language") or DEFAULT_LANGUAGE).strip().lower()
    try:
        session = AssistantSession(language)
    except VocabularyError as exc:
        return jsonify({"error": str(exc)}), 400
    _sweep_sessions()
    with _sessions_lock:
        _sessions[session.session_id] = session
        _last_seen[session.session_id] = time.monotonic()
    log_info("Assistant session %s created via API", session.session_id)
    greeting = session.say("greeting")
    return jsonify({"session_id": session.session_id, "replies": [greeting.to_dict()], "state": session.snapshot()}), 201


@app.route("/api/assistant/<session_id>", methods=["GET"])
def api_session_state(session_id: str):
    session = _get_session(session_id)
    if session is None:
        return _not_found(session_id)
    return _respond(session, [])


@app.route("/api/assistant/<session_id>", methods=["DELETE"])
def api_close_session(session_id: str):
    with _sessions_lock:
        session = _sessions.pop(session_id, None)
        _last_seen.pop(session_id, None)
    if session is None:
        return _not_found(session_id)
    log_info("Assistant session %s closed", session_id)
    return jsonify({"status": "closed", "session_id": session_id})


@app.route("/api/assistant/<session_id>/transcript", methods=["POST"])
def api_transcript(session_id: str):
    session = _get_session(session_id)
    if session is None:
        return _not_found(session_id)
    data = request.get_json(silent=True) or {}
    transcript = str(data.get("transcript") or "").strip()
    if not transcript:
        return jsonify({"error": "Transcript text required."}), 400
    return _respond(session, [session.hear(transcript)])


@app.route("/api/assistant/<session_id>/capture-error", methods=["POST"])
def api_capture_error(session_id: str):
    session = _get_session(session_id)
    if session is None:
        return _not_found(session_id)
    data = request.get_json(silent=True) or {}
    code = str(data.get("error") or "").strip()
    if not code:
        return jsonify({"error": "Error code required."}), 400
    return _respond(session, [session.capture_error(code)])


@app.route("/api/assistant/<session_id>/edit", methods=["POST"])
def api_edit(session_id: str):
    session = _get_session(session_id)
    if session is None:
        return _not_found(session_id)
    data = request.get_json(silent=True) or {}
    entity = str(data.get("entity") or "").strip()
    field_name = str(data.get("field") or "").strip()
    if not entity or not field_name:
        return jsonify({"error": "Entity and field required."}), 400
    try:
        buffer = session.edit(entity, field_name, data.get("value"))
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400
    except FlowStateError as exc:
        return jsonify({"error": str(exc)}), 409
    return _respond(session, [], edit_buffer=buffer)


@app.route("/api/assistant/<session_id>/save", methods=["POST"])
def api_save(session_id: str):
    session = _get_session(session_id)
    if session is None:
        return _not_found(session_id)
    data = request.get_json(silent=True) or {}
    entity = str(data.get("entity") or "").strip()
    if not entity:
        return jsonify({"error": "Entity required."}), 400
    try:
        reply = session.save(entity)
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400
    except (FlowStateError, CommitInProgressError) as exc:
        return jsonify({"error": str(exc)}), 409
    return _respond(session, [reply])


@app.route("/api/assistant/<session_id>/results/<request_id>", methods=["POST"])
def api_commit_result(session_id: str, request_id: str):
    session = _get_session(session_id)
    if session is None:
        return _not_found(session_id)
    data = request.get_json(silent=True) or {}
    if "success" not in data:
        return jsonify({"error": "Success flag required."}), 400
    session.inbox.put(CommitResult.from_payload(request_id, data))
    return _respond(session, [])


@app.route("/api/loans/recent")
def api_recent_loans():
    limit = _safe_limit(request.args.get("limit"))
    try:
        return jsonify(get_recent_loans(limit))
    except sqlite3.Error as exc:
        log_error("Recent loans API failed: %s", exc)
        return jsonify({"error": "Failed to load loans."}), 500


@app.route("/api/purchases/recent")
def api_recent_purchases():
    limit = _safe_limit(request.args.get("limit"))
    try:
        return jsonify(get_recent_purchases(limit))
    except sqlite3.Error as exc:
        log_error("Recent purchases API failed: %s", exc)
        return jsonify({"error": "Failed to load purchases."}), 500


if __name__ == "__main__":
    create_tables()
    app.run(debug=True)
