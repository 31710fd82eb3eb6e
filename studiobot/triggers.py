from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from typing import Optional, Pattern, Tuple, Union

PATTERN_DELIMITER = "/"

LITERAL_HIT_SCORE = 2
PARTIAL_WORDS_SCORE = 1
PATTERN_HIT_SCORE = 3
PARTIAL_WORDS_RATIO = 0.7

# Pattern flags as written in the KB (`/gift\s*card/i`). `y` anchors at the
# start of the message; `g`, `u`, `d` and `v` do not change a yes/no match.
_FLAG_BITS = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
    "g": 0,
    "u": 0,
    "d": 0,
    "v": 0,
    "y": 0,
}

_WS_RE = re.compile(r"\s+")


def normalize(text: str) -> str:
    return _WS_RE.sub(" ", str(text or "").casefold()).strip()


def is_pattern_trigger(text: str) -> bool:
    return (
        isinstance(text, str)
        and text.startswith(PATTERN_DELIMITER)
        and text.rfind(PATTERN_DELIMITER) > 0
    )


@dataclass(frozen=True)
class LiteralTrigger:
    text: str
    normalized: str
    words: Tuple[str, ...]

    def score(self, normalized_message: str) -> int:
        if not self.normalized:
            return 0
        score = 0
        if self.normalized in normalized_message:
            score += LITERAL_HIT_SCORE
        if len(self.words) >= 2:
            hits = sum(1 for w in self.words if w in normalized_message)
            if hits >= math.ceil(len(self.words) * PARTIAL_WORDS_RATIO):
                score += PARTIAL_WORDS_SCORE
        return score


@dataclass(frozen=True)
class PatternTrigger:
    source: str
    pattern: str
    flags: str
    compiled: Optional[Pattern[str]] = field(default=None, compare=False)
    anchored: bool = False

    @property
    def valid(self) -> bool:
        return self.compiled is not None

    def matches(self, message: str) -> bool:
        if self.compiled is None:
            return False
        if self.anchored:
            return self.compiled.match(message) is not None
        return self.compiled.search(message) is not None

    def score(self, message: str) -> int:
        return PATTERN_HIT_SCORE if self.matches(message) else 0


Trigger = Union[LiteralTrigger, PatternTrigger]


def _compile(pattern: str, flags: str) -> Optional[Pattern[str]]:
    if len(set(flags)) != len(flags) or any(f not in _FLAG_BITS for f in flags):
        return None
    bits = 0
    for f in flags:
        bits |= _FLAG_BITS[f]
    try:
        return re.compile(pattern, bits)
    except re.error:
        return None


def parse_trigger(raw: str) -> Trigger:
    """Decide once whether a KB trigger is a literal phrase or a `/pattern/flags`."""
    text = str(raw)
    if is_pattern_trigger(text):
        last = text.rfind(PATTERN_DELIMITER)
        pattern = text[1:last]
        flags = text[last + 1:]
        return PatternTrigger(
            source=text,
            pattern=pattern,
            flags=flags,
            compiled=_compile(pattern, flags),
            anchored="y" in flags,
        )
    normalized = normalize(text)
    return LiteralTrigger(text=text, normalized=normalized, words=tuple(normalized.split()))


def score_trigger(message: str, trigger: Trigger, normalized_message: Optional[str] = None) -> int:
    """Score one trigger against a message.

    Patterns test the raw message; literals compare normalized text.
    """
    if isinstance(trigger, PatternTrigger):
        return trigger.score(message)
    if normalized_message is None:
        normalized_message = normalize(message)
    return trigger.score(normalized_message)
