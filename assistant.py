from __future__ import annotations
import queue
import time
import uuid
from typing import Any, Callable, Dict, List, Optional

from commit_protocol import CommitProtocol, CommitRequest, CommitResult
from config import COMMIT_TIMEOUT_SECONDS, DEFAULT_LANGUAGE
from conversation_engine import LOAN_FLOW, PURCHASE_FLOW, ConversationEngine, EngineReply, Step
from intent_router import Fallback, IntentRouter
from logger import log_debug, log_info, log_warning
from messages import get_message
from vocabulary import Vocabulary, load_vocabulary

CAPTURE_MESSAGES = {
    "no-speech": "capture_no_speech",
    "audio-capture": "capture_audio",
    "not-allowed": "capture_audio",
    "network": "capture_network",
}


class AssistantSession:
    """One user's conversation: both flows, the router and the save channels.

    ``outbox`` carries ``CommitRequest`` objects to the persistence side and
    ``inbox`` carries the matching ``CommitResult`` objects back.
    """

    def __init__(
        self,
        language: str = DEFAULT_LANGUAGE,
        session_id: Optional[str] = None,
        vocabulary: Optional[Vocabulary] = None,
        fallback: Optional[Fallback] = None,
        timeout: float = COMMIT_TIMEOUT_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.vocabulary = vocabulary or load_vocabulary(language)
        self.language = self.vocabulary.language
        self.session_id = session_id or uuid.uuid4().hex
        self.outbox: "queue.Queue[Optional[CommitRequest]]" = queue.Queue()
        self.inbox: "queue.Queue[CommitResult]" = queue.Queue()
        self.engines: Dict[str, ConversationEngine] = {
            flow.entity_type: ConversationEngine(
                flow, self.vocabulary, CommitProtocol(self.outbox.put, timeout=timeout, clock=clock)
            )
            for flow in (PURCHASE_FLOW, LOAN_FLOW)
        }
        self.router = IntentRouter(self.engines, self.vocabulary, fallback)
        log_info("Session %s opened in %s", self.session_id, self.language)

    def say(self, key: str, listen: bool = True, **values: Any) -> EngineReply:
        return EngineReply(get_message(self.language, key, **values), Step.IDLE, listen)

    @property
    def active_entity(self) -> Optional[str]:
        engine = self.router.active_engine()
        return engine.entity_type if engine is not None else None

    @property
    def save_pending(self) -> bool:
        return any(engine.save_pending for engine in self.engines.values())

    def engine(self, entity_type: str) -> ConversationEngine:
        try:
            return self.engines[entity_type]
        except KeyError:
            raise ValueError(f"Unknown flow: {entity_type}") from None

    def hear(self, transcript: str) -> EngineReply:
        text = (transcript or "").strip()
        log_debug("Session %s heard %r", self.session_id, text)
        if not text:
            return self.say("capture_no_speech")
        result = self.router.route(text)
        if result.handled and result.reply is not None:
            return result.reply
        return self.say("not_understood")

    def capture_error(self, code: str) -> EngineReply:
        log_warning("Session %s speech capture error: %s", self.session_id, code)
        key = CAPTURE_MESSAGES.get(code)
        if key is None:
            return self.say("capture_other", error=code)
        return self.say(key)

    def edit(self, entity_type: str, field_name: str, value: Any) -> Dict[str, Any]:
        return self.engine(entity_type).handle_edit(field_name, value)

    def save(self, entity_type: str) -> EngineReply:
        return self.engine(entity_type).save()

    def _deliver(self, result: CommitResult) -> Optional[EngineReply]:
        for engine in self.engines.values():
            pending = engine.protocol.pending
            if pending is not None and pending.request.request_id == result.request_id:
                return engine.receive_result(result)
        log_warning("Session %s dropped late result for request %s", self.session_id, result.request_id)
        return None

    def drain(self, timeout: Optional[float] = None) -> List[EngineReply]:
        """Apply every result waiting in the inbox, then the commit timeouts.

        With ``timeout`` set and a save outstanding, wait up to that long for
        the first result.
        """
        replies: List[EngineReply] = []
        wait = timeout if timeout is not None and self.save_pending else None
        while True:
            try:
                result = self.inbox.get(timeout=wait) if wait is not None else self.inbox.get_nowait()
            except queue.Empty:
                break
            wait = None
            reply = self._deliver(result)
            if reply is not None:
                replies.append(reply)
        for engine in self.engines.values():
            reply = engine.expire_pending()
            if reply is not None:
                replies.append(reply)
        return replies

    def snapshot(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "language": self.language,
            "active": self.active_entity,
            "flows": {name: engine.snapshot() for name, engine in self.engines.items()},
        }
