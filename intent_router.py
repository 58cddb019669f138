from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from conversation_engine import ConversationEngine, EngineReply
from logger import log_debug, log_info
from vocabulary import Vocabulary

# An utterance goes to the first active engine in this order
ROUTING_PRIORITY = ("purchase", "loan")

Fallback = Callable[[str, str], Optional[EngineReply]]


@dataclass
class RouteResult:
    handled: bool
    reply: Optional[EngineReply] = None
    entity_type: Optional[str] = None


class IntentRouter:
    def __init__(
        self,
        engines: Dict[str, ConversationEngine],
        vocabulary: Vocabulary,
        fallback: Optional[Fallback] = None,
        priority: tuple = ROUTING_PRIORITY,
    ):
        self.engines = engines
        self.vocabulary = vocabulary
        self.fallback = fallback
        self.priority = tuple(name for name in priority if name in engines)

    def active_engine(self) -> Optional[ConversationEngine]:
        for name in self.priority:
            engine = self.engines[name]
            if engine.is_active:
                return engine
        return None

    def _start_keyword(self, utterance: str) -> Optional[str]:
        starts = {
            "purchase": self.vocabulary.starts_purchase,
            "loan": self.vocabulary.starts_loan,
        }
        for name in self.priority:
            matcher = starts.get(name)
            if matcher is not None and matcher(utterance):
                return name
        return None

    def route(self, utterance: str) -> RouteResult:
        engine = self.active_engine()
        if engine is not None:
            log_debug("Routing reply to active %s flow", engine.entity_type)
            return RouteResult(True, engine.handle_reply(utterance), engine.entity_type)

        entity_type = self._start_keyword(utterance)
        if entity_type is not None:
            log_info("Starting %s flow", entity_type)
            return RouteResult(True, self.engines[entity_type].start(), entity_type)

        if self.fallback is not None:
            reply = self.fallback(utterance, self.vocabulary.language)
            if reply is not None:
                return RouteResult(True, reply, reply.entity_type)

        log_info("No flow matched the utterance")
        return RouteResult(False)
