"""Turn a spoken amount into an integer.

Two strategies, first success wins:

1. number words from the language lexicon ("two thousand five hundred",
   "രണ്ടായിരം അഞ്ഞൂറ്"), composed with short-scale rules;
2. the first run of digits in the utterance ("around 750 only").

Words outside the lexicon are skipped, so "rupees" or "only" never spoil a
parse. A digit run takes part in word parsing only as the multiplier of the
scale word right after it ("5 thousand", "2.5 lakh"). The module does no I/O.
"""

from __future__ import annotations
import re
from fractions import Fraction
from functools import lru_cache
from typing import Dict, List, Optional, Tuple

from vocabulary import DEFAULT_VOCABULARIES, Vocabulary, VocabularyError, normalize_text

Lexicon = Dict[str, Dict[str, int]]

# Digit runs become their own tokens so "₹750" and "750rs" still yield 750
_TOKEN_PATTERN = re.compile(r"\d+(?:[.,]\d+)*|[^\s\d.,!?;:()\"'₹$/-]+")
_DIGIT_RUN_PATTERN = re.compile(r"\d+(?:,\d{2,3})*(?!\d)")
# Amounts at or above this are treated as misheard
MAX_AMOUNT = 10 ** 15


class _NotWholeAmount(ValueError):
    pass


class _AmountTooLarge(ValueError):
    pass


@lru_cache(maxsize=None)
def _default_lexicon(language: str) -> Lexicon:
    if language not in DEFAULT_VOCABULARIES:
        raise VocabularyError(f"Unsupported language: {language}")
    return Vocabulary(language, DEFAULT_VOCABULARIES[language]).lexicon


def _tokenize(text: str) -> List[str]:
    return _TOKEN_PATTERN.findall(normalize_text(text))


def _place_value(number: int) -> int:
    place = 1
    while number and number % (place * 10) == 0:
        place *= 10
    return place


def _combine(current: int, value: int) -> int:
    if current == 0:
        return value
    if current >= MAX_AMOUNT:
        raise _AmountTooLarge(f"{current} is too large")
    # twenty + five, two thousand + five hundred
    if value != 0 and value < _place_value(current):
        return current + value
    # digit-by-digit dictation: "five zero zero"
    return int(f"{current}{value}")


def _apply_scale(scale: int, total: int, current: int) -> Tuple[int, int]:
    if scale < 1000:
        return total, (current or 1) * scale
    return total + (current or 1) * scale, 0


def _apply_scaled_digits(token: str, scale: int, total: int, current: int) -> Tuple[int, int]:
    amount = Fraction(token.replace(",", "")) * scale
    if amount.denominator != 1:
        raise _NotWholeAmount(f"{token} x {scale} is not a whole amount")
    if scale < 1000:
        return total, _combine(current, amount.numerator)
    return total + amount.numerator, current


def _parse_number_words(tokens: List[str], lexicon: Lexicon) -> Optional[int]:
    number_words = lexicon.get("number_words", {})
    scale_words = lexicon.get("scale_words", {})
    if not any(token in number_words or token in scale_words for token in tokens):
        return None

    total = 0
    current = 0
    index = 0
    while index < len(tokens):
        token = tokens[index]
        following = tokens[index + 1] if index + 1 < len(tokens) else None
        if token in number_words:
            current = _combine(current, number_words[token])
        elif token[0].isdigit():
            if following in scale_words:
                total, current = _apply_scaled_digits(token, scale_words[following], total, current)
                index += 1
        elif token in scale_words:
            total, current = _apply_scale(scale_words[token], total, current)
        index += 1
    return total + current


def _first_digit_run(text: str) -> Optional[int]:
    match = _DIGIT_RUN_PATTERN.search(text)
    if not match:
        return None
    return int(match.group(0).replace(",", ""))


def parse_quantity(utterance: str, language: str = "english", lexicon: Optional[Lexicon] = None) -> Optional[int]:
    """Return the non-negative integer spoken in ``utterance``, or None."""
    if not utterance or not utterance.strip():
        return None
    words = lexicon if lexicon is not None else _default_lexicon(language)
    try:
        value = _parse_number_words(_tokenize(utterance), words)
        if value is None:
            value = _first_digit_run(normalize_text(utterance))
    except ValueError:
        # fractional amounts, and numbers past the int/str conversion limit
        return None
    if value is not None and value >= MAX_AMOUNT:
        return None
    return value
