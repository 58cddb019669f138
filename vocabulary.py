from __future__ import annotations
import json
import os
import re
import unicodedata
from typing import Any, Dict, List, Optional, Pattern

from config import SUPPORTED_LANGUAGES, VOCABULARY_FILE
from logger import log_error, log_info


class VocabularyError(ValueError):
    """Unknown language or malformed vocabulary table."""


_KEYWORD_TABLES = (
    "affirmative",
    "negative",
    "reset",
    "cancel",
    "start_purchase",
    "start_loan",
    "placeholder_names",
)
_NUMBER_TABLES = ("number_words", "scale_words")

DEFAULT_VOCABULARIES: Dict[str, Dict[str, Any]] = {
    "english": {
        "affirmative": [r"\byes\b", r"\byeah\b", r"\bsave\b", r"\bok(?:ay)?\b", r"\bconfirm\b", r"\bsure\b"],
        "negative": [r"\bno\b", r"\bnope\b", r"\bchange\b", r"\bback\b", r"\bedit\b"],
        "reset": [r"\bclear\b", r"\breset\b", r"\bstart over\b"],
        "cancel": [r"\bcancel\b", r"\bexit\b", r"\bstop\b"],
        "start_purchase": [r"\bpurchase[sd]?\b", r"\bbuy\b", r"\bbought\b"],
        "start_loan": [r"\bborrow(?:ed)?\b", r"\bloan\b", r"\blend\b", r"\blent\b"],
        "placeholder_names": [r"^(?:unknown|blank|supplier|person|someone)$"],
        "number_words": {
            "zero": 0, "one": 1, "two": 2, "three": 3, "four": 4,
            "five": 5, "six": 6, "seven": 7, "eight": 8, "nine": 9,
            "ten": 10, "eleven": 11, "twelve": 12, "thirteen": 13, "fourteen": 14,
            "fifteen": 15, "sixteen": 16, "seventeen": 17, "eighteen": 18, "nineteen": 19,
            "twenty": 20, "thirty": 30, "forty": 40, "fifty": 50,
            "sixty": 60, "seventy": 70, "eighty": 80, "ninety": 90,
        },
        "scale_words": {
            "hundred": 100,
            "thousand": 1000,
            "lakh": 100000, "lakhs": 100000, "lac": 100000,
            "million": 1000000,
            "crore": 10000000, "crores": 10000000,
        },
    },
    "malayalam": {
        "affirmative": ["ശരി(?!യല്ല)", "സേവ്", "ഉണ്ട്", "അതെ"],
        "negative": ["വേണ്ട", "ശരിയല്ല", "അല്ല", "മാറ്റം", "മാറ്റുക", "തിരിച്ച്", "ഇല്ല"],
        "reset": ["വ്യക്തം", "റീസെറ്റ്", "ക്ലിയർ"],
        "cancel": ["റദ്ദാക്ക", "പുറത്ത്", "നിർത്ത്"],
        "start_purchase": ["വാങ്ങൽ", "വാങ്ങി", "പർച്ചേസ്"],
        "start_loan": ["കടം", "ലോൺ"],
        "placeholder_names": ["^അജ്ഞാത"],
        "number_words": {
            "പൂജ്യം": 0,
            "ഒന്ന്": 1, "ഒന്നു": 1, "ഒരു": 1,
            "രണ്ട്": 2, "രണ്ടു": 2,
            "മൂന്ന്": 3, "മൂന്നു": 3,
            "നാല്": 4, "നാലു": 4,
            "അഞ്ച്": 5, "അഞ്ചു": 5,
            "ആറ്": 6, "ആറു": 6,
            "ഏഴ്": 7, "ഏഴു": 7,
            "എട്ട്": 8, "എട്ടു": 8,
            "ഒമ്പത്": 9, "ഒൻപത്": 9,
            "പത്ത്": 10, "പത്തു": 10,
            "ഇരുപത്": 20, "ഇരുപത്തി": 20,
            "മുപ്പത്": 30, "മുപ്പത്തി": 30,
            "നാൽപത്": 40, "നാല്പത്": 40, "നാൽപ്പത്": 40, "നാൽപത്തി": 40,
            "അമ്പത്": 50, "അൻപത്": 50, "അമ്പത്തി": 50,
            "അറുപത്": 60, "അറുപത്തി": 60,
            "എഴുപത്": 70, "എഴുപത്തി": 70,
            "എൺപത്": 80, "എൺപത്തി": 80,
            "തൊണ്ണൂറ്": 90, "തൊണ്ണൂറ്റി": 90,
            "ഇരുന്നൂറ്": 200, "ഇരുന്നൂറ്റി": 200,
            "മുന്നൂറ്": 300, "മുന്നൂറ്റി": 300,
            "നാനൂറ്": 400, "നാനൂറ്റി": 400,
            "അഞ്ഞൂറ്": 500, "അഞ്ഞൂറ്റി": 500,
            "അറുന്നൂറ്": 600, "അറുന്നൂറ്റി": 600,
            "എഴുന്നൂറ്": 700, "എഴുന്നൂറ്റി": 700,
            "എണ്ണൂറ്": 800, "എണ്ണൂറ്റി": 800,
            "തൊള്ളായിരം": 900, "തൊള്ളായിരത്തി": 900,
            "രണ്ടായിരം": 2000, "രണ്ടായിരത്തി": 2000,
            "മൂവായിരം": 3000, "മൂവായിരത്തി": 3000,
            "നാലായിരം": 4000, "നാലായിരത്തി": 4000,
            "അയ്യായിരം": 5000, "അയ്യായിരത്തി": 5000,
            "ആറായിരം": 6000,
            "ഏഴായിരം": 7000,
            "എണ്ണായിരം": 8000,
            "ഒമ്പതിനായിരം": 9000,
            "പതിനായിരം": 10000,
        },
        "scale_words": {
            "നൂറ്": 100, "നൂറു": 100, "നൂറ്റി": 100,
            "ആയിരം": 1000, "ആയിരത്തി": 1000,
            "ലക്ഷം": 100000, "ലക്ഷത്തി": 100000,
            "കോടി": 10000000,
        },
    },
}

_JOINERS = dict.fromkeys((0x200C, 0x200D))


def normalize_text(text: str) -> str:
    """NFC-normalize, drop zero-width joiners, collapse whitespace and lowercase."""
    cleaned = unicodedata.normalize("NFC", text or "").translate(_JOINERS)
    return re.sub(r"\s+", " ", cleaned.strip().lower())


def _compile(fragments: List[str]) -> Optional[Pattern[str]]:
    if not fragments:
        return None
    joined = "|".join(f"(?:{fragment})" for fragment in fragments)
    return re.compile(joined, re.IGNORECASE)


class Vocabulary:
    """Compiled keyword patterns and number lexicon for one language."""

    def __init__(self, language: str, tables: Dict[str, Any]):
        self.language = language
        self.tables = tables
        try:
            self._patterns = {name: _compile(list(tables.get(name, []))) for name in _KEYWORD_TABLES}
        except re.error as exc:
            raise VocabularyError(f"Invalid pattern in {language} vocabulary: {exc}") from exc
        self.number_words: Dict[str, int] = {
            normalize_text(word): int(value) for word, value in tables.get("number_words", {}).items()
        }
        self.scale_words: Dict[str, int] = {
            normalize_text(word): int(value) for word, value in tables.get("scale_words", {}).items()
        }

    def _matches(self, table: str, text: str) -> bool:
        pattern = self._patterns.get(table)
        if pattern is None:
            return False
        return pattern.search(normalize_text(text)) is not None

    def is_affirmative(self, text: str) -> bool:
        return self._matches("affirmative", text)

    def is_negative(self, text: str) -> bool:
        return self._matches("negative", text)

    def is_reset(self, text: str) -> bool:
        return self._matches("reset", text)

    def is_cancel(self, text: str) -> bool:
        return self._matches("cancel", text)

    def starts_purchase(self, text: str) -> bool:
        return self._matches("start_purchase", text)

    def starts_loan(self, text: str) -> bool:
        return self._matches("start_loan", text)

    def is_placeholder_name(self, text: str) -> bool:
        return self._matches("placeholder_names", text)

    @property
    def lexicon(self) -> Dict[str, Dict[str, int]]:
        return {"number_words": self.number_words, "scale_words": self.scale_words}


def _load_overrides(path: str) -> Dict[str, Dict[str, Any]]:
    if not path or not os.path.exists(path):
        return {}
    try:
        with open(path, "r", encoding="utf-8") as handle:
            overrides = json.load(handle)
    except (OSError, json.JSONDecodeError) as exc:
        log_error("Vocabulary file %s unreadable, using defaults: %s", path, exc)
        return {}
    if not isinstance(overrides, dict):
        log_error("Vocabulary file %s must hold an object keyed by language", path)
        return {}
    return overrides


def load_vocabulary(language: str, path: Optional[str] = None) -> Vocabulary:
    """Build the vocabulary for ``language``.

    Tables found in the optional JSON file replace the built-in table of the
    same name for that language; other tables keep their defaults.
    """
    if language not in SUPPORTED_LANGUAGES:
        raise VocabularyError(f"Unsupported language: {language}")

    tables: Dict[str, Any] = dict(DEFAULT_VOCABULARIES[language])
    target = VOCABULARY_FILE if path is None else path
    language_overrides = _load_overrides(target).get(language) or {}
    for name, table in language_overrides.items():
        if name in _NUMBER_TABLES and not isinstance(table, dict):
            raise VocabularyError(f"{language}.{name} must map words to numbers")
        if name not in _NUMBER_TABLES and not isinstance(table, list):
            raise VocabularyError(f"{language}.{name} must be a list")
        tables[name] = table
    if language_overrides:
        log_info("Loaded %s vocabulary overrides from %s: %s", language, target, sorted(language_overrides))
    return Vocabulary(language, tables)
