from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from commit_protocol import CommitOutcome, CommitProtocol, CommitResult
from logger import log_debug, log_info, log_warning
from messages import get_message
from quantity_parser import parse_quantity
from vocabulary import Vocabulary

TEXT = "text"
QUANTITY = "quantity"


class FlowStateError(RuntimeError):
    """An edit or save arrived while the flow was not confirming."""


class Step(str, Enum):
    IDLE = "idle"
    ASKING_SLOT = "asking_slot"
    CONFIRMING = "confirming"
    DONE = "done"


@dataclass(frozen=True)
class SlotSpec:
    name: str
    kind: str
    minimum: int = 0
    default: Optional[int] = None


@dataclass
class FlowSpec:
    entity_type: str
    slots: Tuple[SlotSpec, ...]
    primary_slot: str
    amount_slot_index: int
    # slot name -> field name in the commit request
    request_fields: Dict[str, str]

    def slot(self, name: str) -> Optional[SlotSpec]:
        for spec in self.slots:
            if spec.name == name:
                return spec
        return None


LOAN_FLOW = FlowSpec(
    entity_type="loan",
    slots=(
        SlotSpec("counterparty", TEXT),
        SlotSpec("amount_given", QUANTITY, minimum=1),
        SlotSpec("amount_paid", QUANTITY, default=0),
    ),
    primary_slot="amount_given",
    amount_slot_index=1,
    request_fields={"counterparty": "name", "amount_given": "amount_primary", "amount_paid": "amount_paid"},
)

PURCHASE_FLOW = FlowSpec(
    entity_type="purchase",
    slots=(
        SlotSpec("supplier", TEXT),
        SlotSpec("amount_total", QUANTITY, minimum=1),
        SlotSpec("amount_paid", QUANTITY, default=0),
    ),
    primary_slot="amount_total",
    amount_slot_index=1,
    request_fields={"supplier": "supplier", "amount_total": "amount_primary", "amount_paid": "amount_paid"},
)


@dataclass
class ConversationState:
    step: Step = Step.IDLE
    slot_index: int = 0
    slots: Dict[str, Any] = field(default_factory=dict)
    edit_buffer: Optional[Dict[str, Any]] = None


@dataclass
class EngineReply:
    text: str
    step: Step
    listen: bool = True
    entity_type: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"text": self.text, "step": self.step.value, "listen": self.listen, "entity": self.entity_type}


class ConversationEngine:
    """Collects one record slot by slot, confirms it and commits it once.

    The engine only returns prompt text. Speaking, listening and storing the
    record belong to the caller and to the commit protocol's dispatcher.
    """

    def __init__(self, flow: FlowSpec, vocabulary: Vocabulary, protocol: CommitProtocol):
        self.flow = flow
        self.vocabulary = vocabulary
        self.protocol = protocol
        self.state = ConversationState()

    @property
    def language(self) -> str:
        return self.vocabulary.language

    @property
    def entity_type(self) -> str:
        return self.flow.entity_type

    @property
    def is_active(self) -> bool:
        return self.state.step in (Step.ASKING_SLOT, Step.CONFIRMING)

    @property
    def save_pending(self) -> bool:
        return self.protocol.pending is not None

    def _say(self, key: str, listen: bool = True, **values: Any) -> EngineReply:
        text = get_message(self.language, key, **values)
        return EngineReply(text=text, step=self.state.step, listen=listen, entity_type=self.entity_type)

    def _key(self, suffix: str) -> str:
        return f"{self.entity_type}.{suffix}"

    def _move(self, step: Step, slot_index: int = 0) -> None:
        log_info(
            "%s flow: %s(%d) -> %s(%d)",
            self.entity_type, self.state.step.value, self.state.slot_index, step.value, slot_index,
        )
        self.state.step = step
        self.state.slot_index = slot_index

    def _ask_current(self) -> EngineReply:
        index = self.state.slot_index
        if index == 0:
            return self._say(self._key("start"))
        return self._say(self._key(f"ask.{self.flow.slots[index].name}"), **self.state.slots)

    def start(self) -> EngineReply:
        if self.is_active:
            log_warning("%s flow restarted while %s", self.entity_type, self.state.step.value)
        self.protocol.abandon()
        self._move(Step.ASKING_SLOT, 0)
        self.state.slots = {}
        self.state.edit_buffer = None
        return self._ask_current()

    def reset(self) -> EngineReply:
        self.protocol.abandon()
        self._move(Step.ASKING_SLOT, 0)
        self.state.slots = {}
        self.state.edit_buffer = None
        return self._say(self._key("reset"))

    def cancel(self) -> EngineReply:
        self.protocol.abandon()
        self._move(Step.IDLE, 0)
        self.state.slots = {}
        self.state.edit_buffer = None
        return self._say("cancelled", listen=False)

    def handle_quick_command(self, text: str) -> Optional[EngineReply]:
        if self.state.step == Step.DONE:
            return None
        if self.vocabulary.is_reset(text):
            return self.reset()
        if self.vocabulary.is_cancel(text):
            return self.cancel()
        return None

    def handle_reply(self, text: str) -> EngineReply:
        log_debug("%s flow heard %r", self.entity_type, text)
        step = self.state.step
        if step == Step.IDLE:
            raise FlowStateError(f"{self.entity_type} flow has not been started")
        if step == Step.DONE:
            return self._say("flow_finished", listen=False)

        quick = self.handle_quick_command(text)
        if quick is not None:
            return quick
        if self.save_pending:
            return self._say("save_in_progress")
        if step == Step.ASKING_SLOT:
            return self._handle_slot_reply(text)
        return self._handle_confirm_reply(text)

    def _handle_slot_reply(self, text: str) -> EngineReply:
        slot = self.flow.slots[self.state.slot_index]
        if slot.kind == TEXT:
            value: Any = (text or "").strip()
            if not value:
                return self._ask_current()
        else:
            value = parse_quantity(text, self.language, self.vocabulary.lexicon)
            if value is None or value < slot.minimum:
                if slot.default is None:
                    log_info("%s flow could not read %s from %r", self.entity_type, slot.name, text)
                    error = get_message(self.language, "amount_not_understood", utterance=(text or "").strip())
                    prompt = self._ask_current()
                    prompt.text = f"{error} {prompt.text}"
                    return prompt
                log_info("%s flow defaulted %s to %s", self.entity_type, slot.name, slot.default)
                value = slot.default

        self.state.slots[slot.name] = value
        next_index = self.state.slot_index + 1
        if next_index < len(self.flow.slots):
            self._move(Step.ASKING_SLOT, next_index)
            return self._ask_current()

        self._move(Step.CONFIRMING, self.state.slot_index)
        self.state.edit_buffer = dict(self.state.slots)
        return self._say(self._key("confirm"), **self.state.slots)

    def _handle_confirm_reply(self, text: str) -> EngineReply:
        if self.vocabulary.is_affirmative(text):
            return self._commit()
        if self.vocabulary.is_negative(text):
            index = self.flow.amount_slot_index
            for slot in self.flow.slots[index:]:
                self.state.slots.pop(slot.name, None)
            self.state.edit_buffer = None
            self._move(Step.ASKING_SLOT, index)
            return self._say(self._key("change_amount"))
        return self._say("yes_no")

    def handle_edit(self, field_name: str, value: Any) -> Dict[str, Any]:
        """Apply a manual edit from the confirmation form to the edit buffer."""
        if self.state.step != Step.CONFIRMING or self.state.edit_buffer is None:
            raise FlowStateError(f"{self.entity_type} flow is not confirming")
        if self.save_pending:
            raise FlowStateError(f"{self.entity_type} record is being saved")
        slot = self.flow.slot(field_name)
        if slot is None:
            raise FlowStateError(f"Unknown {self.entity_type} field: {field_name}")

        if slot.kind == TEXT:
            new_value: Any = str(value if value is not None else "").strip()
        elif isinstance(value, int) and not isinstance(value, bool):
            new_value = value if value >= 0 else None
        elif value is None or not str(value).strip():
            new_value = None
        else:
            new_value = parse_quantity(str(value), self.language, self.vocabulary.lexicon)

        self.state.edit_buffer[field_name] = new_value
        log_info("%s flow edited %s", self.entity_type, field_name)
        return dict(self.state.edit_buffer)

    def _buffer_complete(self) -> bool:
        buffer = self.state.edit_buffer
        if buffer is None:
            return False
        for slot in self.flow.slots:
            value = buffer.get(slot.name)
            if slot.kind == TEXT:
                if not value or self.vocabulary.is_placeholder_name(value):
                    return False
            elif value is None or value < slot.minimum:
                return False
        return True

    def can_save(self) -> bool:
        return self.state.step == Step.CONFIRMING and not self.save_pending and self._buffer_complete()

    def save(self) -> EngineReply:
        if self.state.step != Step.CONFIRMING:
            raise FlowStateError(f"{self.entity_type} flow is not confirming")
        if self.save_pending:
            return self._say("save_in_progress")
        return self._commit()

    def _commit(self) -> EngineReply:
        if not self._buffer_complete():
            log_info("%s flow blocked save with incomplete fields", self.entity_type)
            return self._say(self._key("missing"))
        fields = {
            self.flow.request_fields[name]: value
            for name, value in self.state.edit_buffer.items()
            if name in self.flow.request_fields
        }
        pending = self.protocol.commit(self.entity_type, fields)
        if pending.outcome is not None:
            return self._apply_outcome(pending.outcome)
        return self._say("saving")

    def receive_result(self, result: CommitResult) -> Optional[EngineReply]:
        outcome = self.protocol.receive(result)
        if outcome is None:
            return None
        if self.state.step != Step.CONFIRMING:
            log_warning("%s flow ignored result %s while %s", self.entity_type, result.request_id, self.state.step.value)
            return None
        return self._apply_outcome(outcome)

    def expire_pending(self, now: Optional[float] = None) -> Optional[EngineReply]:
        outcome = self.protocol.expire(now)
        if outcome is None:
            return None
        return self._apply_outcome(outcome)

    def _apply_outcome(self, outcome: CommitOutcome) -> EngineReply:
        if outcome.success:
            self._move(Step.DONE, self.state.slot_index)
            self.state.edit_buffer = None
            return self._say(self._key("saved"), listen=False)
        log_warning("%s flow save failed: %s", self.entity_type, outcome.reason)
        return self._say("save_failed", reason=outcome.reason)

    def snapshot(self) -> Dict[str, Any]:
        slot_name = None
        if self.state.step == Step.ASKING_SLOT:
            slot_name = self.flow.slots[self.state.slot_index].name
        return {
            "entity": self.entity_type,
            "step": self.state.step.value,
            "slot": slot_name,
            "slots": dict(self.state.slots),
            "edit_buffer": dict(self.state.edit_buffer) if self.state.edit_buffer is not None else None,
            "save_pending": self.save_pending,
            "pending_request": self.protocol.pending.request.to_payload() if self.save_pending else None,
            "can_save": self.can_save(),
        }
