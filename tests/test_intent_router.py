import pytest

from commit_protocol import CommitProtocol, CommitResult
from conversation_engine import LOAN_FLOW, PURCHASE_FLOW, ConversationEngine, EngineReply, Step
from intent_router import ROUTING_PRIORITY, IntentRouter


@pytest.fixture
def engines(english):
    return {
        "purchase": ConversationEngine(PURCHASE_FLOW, english, CommitProtocol(lambda request: None)),
        "loan": ConversationEngine(LOAN_FLOW, english, CommitProtocol(lambda request: None)),
    }


@pytest.fixture
def router(engines, english):
    return IntentRouter(engines, english)


def test_purchase_checked_before_loan():
    assert ROUTING_PRIORITY == ("purchase", "loan")


def test_start_keyword_opens_purchase_flow(router, engines):
    result = router.route("I want to add a purchase")
    assert result.handled is True
    assert result.entity_type == "purchase"
    assert engines["purchase"].state.step == Step.ASKING_SLOT
    assert engines["loan"].state.step == Step.IDLE


def test_start_keyword_opens_loan_flow(router, engines):
    result = router.route("I lent some money")
    assert result.entity_type == "loan"
    assert engines["loan"].is_active


def test_both_keywords_prefer_purchase(router):
    assert router.route("bought it on loan").entity_type == "purchase"


def test_active_flow_receives_reply(router, engines):
    router.route("loan")
    result = router.route("Ravi")
    assert result.entity_type == "loan"
    assert engines["loan"].state.slots == {"counterparty": "Ravi"}


def test_reply_goes_to_purchase_when_both_are_active(router, engines):
    engines["loan"].start()
    engines["purchase"].start()
    result = router.route("Abdul")
    assert result.entity_type == "purchase"
    assert engines["purchase"].state.slots == {"supplier": "Abdul"}
    assert engines["loan"].state.slots == {}


def test_quick_command_reaches_active_flow(router, engines):
    router.route("purchase")
    result = router.route("cancel")
    assert result.handled is True
    assert engines["purchase"].state.step == Step.IDLE


def test_finished_flow_lets_a_new_one_start(engines, english):
    sent = []
    engines["loan"] = ConversationEngine(LOAN_FLOW, english, CommitProtocol(sent.append))
    router = IntentRouter(engines, english)
    for utterance in ("loan", "Ravi", "500", "0", "yes"):
        router.route(utterance)
    engines["loan"].receive_result(CommitResult(sent[0].request_id, True))
    assert engines["loan"].state.step == Step.DONE

    result = router.route("new loan")
    assert result.entity_type == "loan"
    assert engines["loan"].state.step == Step.ASKING_SLOT


def test_unmatched_utterance_is_unhandled(router):
    result = router.route("what is the weather")
    assert result.handled is False
    assert result.reply is None


def test_fallback_interpreter_is_consulted(engines, english):
    calls = []

    def _fallback(utterance, language):
        calls.append((utterance, language))
        return EngineReply("Balance is zero.", Step.IDLE)

    router = IntentRouter(engines, english, fallback=_fallback)
    result = router.route("what is my balance")
    assert result.handled is True
    assert result.reply.text == "Balance is zero."
    assert calls == [("what is my balance", "english")]
