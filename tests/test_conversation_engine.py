import pytest

from commit_protocol import CommitProtocol, CommitResult
from conversation_engine import LOAN_FLOW, PURCHASE_FLOW, ConversationEngine, FlowStateError, Step
from messages import get_message


class FakeClock:
    def __init__(self, now: float = 100.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sent():
    return []


@pytest.fixture
def loan(english, sent, clock):
    protocol = CommitProtocol(sent.append, timeout=15, clock=clock)
    return ConversationEngine(LOAN_FLOW, english, protocol)


def _confirming(engine, name="Ravi", given="five hundred", paid="two hundred"):
    engine.start()
    engine.handle_reply(name)
    engine.handle_reply(given)
    return engine.handle_reply(paid)


def test_start_asks_first_slot(loan):
    reply = loan.start()
    assert loan.state.step == Step.ASKING_SLOT
    assert loan.state.slot_index == 0
    assert reply.text == get_message("english", "loan.start")
    assert reply.listen is True


def test_three_replies_reach_confirming(loan):
    reply = _confirming(loan)
    expected = {"counterparty": "Ravi", "amount_given": 500, "amount_paid": 200}
    assert loan.state.step == Step.CONFIRMING
    assert loan.state.slots == expected
    assert loan.state.edit_buffer == expected
    assert "₹500" in reply.text and "Ravi" in reply.text


def test_affirmative_commits_once_and_finishes(loan, sent):
    _confirming(loan)
    reply = loan.handle_reply("yes")
    assert reply.text == get_message("english", "saving")
    assert len(sent) == 1
    request = sent[0]
    assert request.entity_type == "loan"
    assert request.fields == {"name": "Ravi", "amount_primary": 500, "amount_paid": 200}

    done = loan.receive_result(CommitResult(request.request_id, True))
    assert done.text == get_message("english", "loan.saved")
    assert done.listen is False
    assert loan.state.step == Step.DONE
    assert loan.state.edit_buffer is None

    assert loan.receive_result(CommitResult(request.request_id, True)) is None
    assert loan.state.step == Step.DONE


def test_unparseable_amount_reprompts(loan):
    loan.start()
    loan.handle_reply("Ravi")
    reply = loan.handle_reply("not sure")
    assert loan.state.step == Step.ASKING_SLOT
    assert loan.state.slot_index == 1
    assert "amount_given" not in loan.state.slots
    assert reply.text.startswith("I couldn't understand the amount")


def test_zero_primary_amount_reprompts(loan):
    loan.start()
    loan.handle_reply("Ravi")
    loan.handle_reply("zero")
    assert loan.state.slot_index == 1


def test_unparseable_paid_amount_defaults_to_zero(loan):
    _confirming(loan, paid="nothing yet")
    assert loan.state.step == Step.CONFIRMING
    assert loan.state.slots["amount_paid"] == 0


def test_edit_never_touches_slots(loan):
    _confirming(loan)
    buffer = loan.handle_edit("amount_given", "1,500")
    assert buffer["amount_given"] == 1500
    assert loan.state.slots["amount_given"] == 500
    assert loan.state.step == Step.CONFIRMING

    loan.handle_edit("counterparty", "  Ravi Kumar ")
    assert loan.state.edit_buffer["counterparty"] == "Ravi Kumar"
    assert loan.state.slots["counterparty"] == "Ravi"


def test_negative_discards_edits_and_asks_amount_again(loan):
    _confirming(loan)
    loan.handle_edit("amount_given", 900)
    reply = loan.handle_reply("no")
    assert loan.state.step == Step.ASKING_SLOT
    assert loan.state.slot_index == 1
    assert loan.state.edit_buffer is None
    assert loan.state.slots == {"counterparty": "Ravi"}
    assert reply.text == get_message("english", "loan.change_amount")


def test_other_reply_in_confirming_asks_yes_or_no(loan, sent):
    _confirming(loan)
    reply = loan.handle_reply("maybe later")
    assert reply.text == get_message("english", "yes_no")
    assert loan.state.step == Step.CONFIRMING
    assert sent == []


def test_reset_at_last_slot_clears_everything(loan):
    loan.start()
    loan.handle_reply("Ravi")
    loan.handle_reply("five hundred")
    assert loan.state.slot_index == 2
    reply = loan.handle_reply("clear")
    assert loan.state.step == Step.ASKING_SLOT
    assert loan.state.slot_index == 0
    assert loan.state.slots == {}
    assert reply.text == get_message("english", "loan.reset")


def test_cancel_returns_to_idle(loan):
    loan.start()
    loan.handle_reply("Ravi")
    reply = loan.handle_reply("cancel")
    assert loan.state.step == Step.IDLE
    assert loan.state.slots == {}
    assert reply.listen is False


def test_save_guard_blocks_placeholder_name(loan, sent):
    _confirming(loan)
    loan.handle_edit("counterparty", "unknown")
    assert loan.can_save() is False
    reply = loan.save()
    assert reply.text == get_message("english", "loan.missing")
    assert sent == []


def test_save_guard_blocks_zero_or_unreadable_amount(loan, sent):
    _confirming(loan)
    loan.handle_edit("amount_given", "0")
    assert loan.can_save() is False
    loan.handle_edit("amount_given", "lots")
    assert loan.state.edit_buffer["amount_given"] is None
    loan.handle_reply("yes")
    assert sent == []
    loan.handle_edit("amount_given", "seven hundred")
    assert loan.can_save() is True


def test_manual_save_uses_edited_values(loan, sent):
    _confirming(loan)
    loan.handle_edit("amount_paid", "100")
    loan.save()
    assert sent[0].fields["amount_paid"] == 100


def test_edit_outside_confirming_is_rejected(loan):
    loan.start()
    with pytest.raises(FlowStateError):
        loan.handle_edit("amount_given", "500")
    with pytest.raises(FlowStateError):
        loan.save()


def test_edit_unknown_field_is_rejected(loan):
    _confirming(loan)
    with pytest.raises(FlowStateError):
        loan.handle_edit("interest", "5")


def test_reply_while_saving_is_held(loan, sent):
    _confirming(loan)
    loan.handle_reply("yes")
    reply = loan.handle_reply("yes")
    assert reply.text == get_message("english", "save_in_progress")
    assert len(sent) == 1
    assert loan.can_save() is False


def test_edit_while_saving_is_rejected(loan, sent):
    _confirming(loan)
    loan.handle_reply("yes")
    with pytest.raises(FlowStateError):
        loan.handle_edit("amount_given", 900)
    assert loan.state.edit_buffer["amount_given"] == 500

    loan.receive_result(CommitResult(sent[0].request_id, False, "disk full"))
    assert loan.handle_edit("amount_given", 900)["amount_given"] == 900


def test_malayalam_not_right_is_a_negative(malayalam):
    sent = []
    engine = ConversationEngine(LOAN_FLOW, malayalam, CommitProtocol(sent.append))
    _confirming(engine, name="രവി", given="അഞ്ഞൂറ്", paid="ഇരുന്നൂറ്")
    assert engine.state.step == Step.CONFIRMING
    engine.handle_reply("ശരിയല്ല")
    assert sent == []
    assert engine.state.step == Step.ASKING_SLOT
    assert engine.state.slot_index == 1


def test_failed_save_keeps_buffer_for_retry(loan, sent):
    _confirming(loan)
    loan.handle_reply("yes")
    reply = loan.receive_result(CommitResult(sent[0].request_id, False, "disk full"))
    assert reply.text == get_message("english", "save_failed", reason="disk full")
    assert loan.state.step == Step.CONFIRMING
    assert loan.state.edit_buffer["amount_given"] == 500

    loan.handle_reply("yes")
    assert len(sent) == 2
    assert sent[1].request_id != sent[0].request_id


def test_dispatch_failure_resolves_immediately(english):
    def _broken(_request):
        raise OSError("queue closed")

    engine = ConversationEngine(LOAN_FLOW, english, CommitProtocol(_broken))
    _confirming(engine)
    reply = engine.handle_reply("yes")
    assert reply.text == get_message("english", "save_failed", reason="dispatch failed")
    assert engine.state.step == Step.CONFIRMING
    assert engine.save_pending is False


def test_pending_save_times_out(loan, clock):
    _confirming(loan)
    loan.handle_reply("yes")
    assert loan.expire_pending() is None
    clock.now += 16
    reply = loan.expire_pending()
    assert reply.text == get_message("english", "save_failed", reason="timed out")
    assert loan.state.step == Step.CONFIRMING
    assert loan.save_pending is False


def test_late_result_after_cancel_is_ignored(loan, sent):
    _confirming(loan)
    loan.handle_reply("yes")
    loan.handle_reply("cancel")
    assert loan.receive_result(CommitResult(sent[0].request_id, True)) is None
    assert loan.state.step == Step.IDLE


def test_done_accepts_no_replies_until_restarted(loan, sent):
    _confirming(loan)
    loan.handle_reply("yes")
    loan.receive_result(CommitResult(sent[0].request_id, True))
    reply = loan.handle_reply("clear")
    assert reply.text == get_message("english", "flow_finished")
    assert loan.state.step == Step.DONE

    loan.start()
    assert loan.state.step == Step.ASKING_SLOT
    assert loan.state.slots == {}


def test_idle_engine_rejects_replies(loan):
    with pytest.raises(FlowStateError):
        loan.handle_reply("Ravi")


def test_malayalam_purchase_flow(malayalam):
    sent = []
    engine = ConversationEngine(PURCHASE_FLOW, malayalam, CommitProtocol(sent.append))
    engine.start()
    engine.handle_reply("ഷാജി")
    engine.handle_reply("അയ്യായിരം")
    reply = engine.handle_reply("ആയിരം")
    assert engine.state.slots == {"supplier": "ഷാജി", "amount_total": 5000, "amount_paid": 1000}
    assert "₹5000" in reply.text

    engine.handle_reply("വേണ്ട")
    assert engine.state.step == Step.ASKING_SLOT
    assert engine.state.slot_index == 1

    engine.handle_reply("ആറായിരം")
    engine.handle_reply("ആയിരം")
    engine.handle_reply("ശരി")
    assert sent[0].fields == {"supplier": "ഷാജി", "amount_primary": 6000, "amount_paid": 1000}


def test_snapshot_reports_save_state(loan):
    _confirming(loan)
    snapshot = loan.snapshot()
    assert snapshot["entity"] == "loan"
    assert snapshot["step"] == "confirming"
    assert snapshot["can_save"] is True
    assert snapshot["save_pending"] is False
