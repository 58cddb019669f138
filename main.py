import re
import threading
import time
from typing import List

from assistant import AssistantSession
from config import DEFAULT_LANGUAGE, LISTEN_COOLDOWN_SECONDS, MAX_IDLE_ATTEMPTS
from conversation_engine import EngineReply
from database import create_tables
from ledger_worker import LedgerWorker
from logger import log_info
from voice_module import CaptureError, listen, speak

_EXIT_PATTERN = re.compile(r"\b(?:stop|exit|quit)\b", re.IGNORECASE)

# How long to wait for the save result after a commit before listening again
RESULT_WAIT_SECONDS = 2.0


def _speak_and_wait(text: str, language: str) -> None:
    finished = threading.Event()
    speak(text, language=language, on_done=finished.set)
    finished.wait()
    time.sleep(LISTEN_COOLDOWN_SECONDS)


def _say_all(replies: List[EngineReply], language: str) -> None:
    for reply in replies:
        print(reply.text)
        _speak_and_wait(reply.text, language)


def main(language: str = DEFAULT_LANGUAGE) -> None:
    create_tables()

    session = AssistantSession(language)
    worker = LedgerWorker(session.outbox, session.inbox)
    worker.start()

    greeting = session.say("greeting")
    _say_all([greeting], session.language)

    attempts = 0
    while attempts < MAX_IDLE_ATTEMPTS:
        try:
            transcript = listen(session.language)
        except CaptureError as exc:
            if exc.code == "no-speech":
                attempts += 1
                print(f"No input. Attempt {attempts}/{MAX_IDLE_ATTEMPTS}.")
                continue
            _say_all([session.capture_error(exc.code)], session.language)
            continue

        attempts = 0
        print("Heard:", transcript)
        if session.active_entity is None and _EXIT_PATTERN.search(transcript):
            break

        replies = [session.hear(transcript)]
        wait = RESULT_WAIT_SECONDS if session.save_pending else None
        replies.extend(session.drain(timeout=wait))
        _say_all(replies, session.language)

    if attempts >= MAX_IDLE_ATTEMPTS:
        log_info("No speech detected %d times in a row, stopping", attempts)
    _say_all([session.say("goodbye")], session.language)
    worker.stop(timeout=1.0)


if __name__ == "__main__":
    main()
