import os
import tempfile
from typing import Any, Callable, Dict, Optional

import numpy as np
import pyttsx3
import sounddevice as sd
import speech_recognition as sr
from scipy.io.wavfile import write

from config import LISTEN_DURATION_SECONDS, SAMPLE_RATE, SPEECH_LOCALES
from logger import log_debug, log_error, log_info, log_warning

# Peak amplitude below which a recording is treated as silence
SILENCE_THRESHOLD = 300

_VOICE_HINTS = {
    "english": ("zira", "female", "english"),
    "malayalam": ("malayalam", "ml"),
}

_recognizer: Optional[sr.Recognizer] = None
_engine: Optional[Any] = None
_engine_voices: Dict[str, Optional[str]] = {}


class CaptureError(Exception):
    """Speech capture failed; ``code`` is no-speech, audio-capture or network."""

    def __init__(self, code: str, message: str = ""):
        super().__init__(message or code)
        self.code = code


def _get_recognizer() -> sr.Recognizer:
    global _recognizer
    if _recognizer is None:
        _recognizer = sr.Recognizer()
    return _recognizer


def _get_engine() -> Any:
    global _engine
    if _engine is None:
        _engine = pyttsx3.init()
        _engine.setProperty("rate", 170)
        _engine.setProperty("volume", 1.0)
    return _engine


def _voice_for(engine: Any, language: str) -> Optional[str]:
    if language in _engine_voices:
        return _engine_voices[language]
    hints = _VOICE_HINTS.get(language, ())
    locale = SPEECH_LOCALES.get(language, "").lower()
    chosen = None
    for voice in engine.getProperty("voices"):
        name = (voice.name or "").lower()
        languages = " ".join(
            item.decode("utf-8", "ignore") if isinstance(item, bytes) else str(item)
            for item in (getattr(voice, "languages", None) or [])
        ).lower()
        if locale and locale.split("-")[0] in languages.split():
            chosen = voice.id
            break
        if any(hint in name for hint in hints):
            chosen = voice.id
            break
    if chosen is None:
        log_warning("No installed %s voice, using the default voice", language)
    _engine_voices[language] = chosen
    return chosen


def speak(text: str, language: str = "english", on_done: Optional[Callable[[], None]] = None) -> None:
    """Say ``text`` and call ``on_done`` once playback has finished."""
    if text:
        engine = _get_engine()
        voice_id = _voice_for(engine, language)
        if voice_id:
            engine.setProperty("voice", voice_id)
        log_info("Speaking: %s", text)
        engine.say(text)
        engine.runAndWait()
    if on_done is not None:
        on_done()


def _record_audio(duration: float, fs: int) -> np.ndarray:
    recording = sd.rec(int(duration * fs), samplerate=fs, channels=1, dtype="int16")
    sd.wait()
    recording = np.asarray(recording)
    if recording.ndim > 1:
        recording = recording.squeeze(axis=1)
    return recording.astype(np.int16)


def listen(
    language: str = "english",
    duration: float = LISTEN_DURATION_SECONDS,
    fs: int = SAMPLE_RATE,
) -> str:
    """Record one utterance and return its transcript.

    Raises ``CaptureError`` when nothing usable was heard.
    """
    locale = SPEECH_LOCALES.get(language, "en-IN")
    tmp_filename = None
    try:
        print(f"Recording for {duration} seconds…")
        recording = _record_audio(duration, fs)
        if recording.size == 0 or int(np.abs(recording.astype(np.int32)).max()) < SILENCE_THRESHOLD:
            raise CaptureError("no-speech", "recording was silent")
        with tempfile.NamedTemporaryFile(suffix=".wav", delete=False) as tmp:
            tmp_filename = tmp.name
        write(tmp_filename, fs, recording)

        recognizer = _get_recognizer()
        with sr.AudioFile(tmp_filename) as source:
            audio = recognizer.record(source)
        transcript = recognizer.recognize_google(audio, language=locale).strip()
        log_debug("Heard: %s", transcript)
        return transcript
    except sr.UnknownValueError as exc:
        raise CaptureError("no-speech", "speech was not recognised") from exc
    except sr.RequestError as exc:
        log_error("Speech service error: %s", exc)
        raise CaptureError("network", str(exc)) from exc
    except sd.PortAudioError as exc:
        log_error("Microphone error: %s", exc)
        raise CaptureError("audio-capture", str(exc)) from exc
    finally:
        if tmp_filename and os.path.exists(tmp_filename):
            try:
                os.remove(tmp_filename)
            except OSError:
                pass
