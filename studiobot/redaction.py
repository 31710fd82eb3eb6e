from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, Optional, Pattern, Sequence, Tuple

DEFAULT_STREET_NUMBER = "109"
DEFAULT_STREET_NAME = "Abbey"
DEFAULT_STREET_SUFFIX = "road"
DEFAULT_SAFE_PHRASE = "Studio in Suffolk, VA"

# suffix -> regex accepting the long and the abbreviated spelling
STREET_SUFFIXES = {
    "road": r"R(?:oa)?d",
    "street": r"St(?:reet)?",
    "avenue": r"Ave?(?:nue)?",
    "drive": r"Dr(?:ive)?",
    "lane": r"L(?:a)?n(?:e)?",
    "boulevard": r"Bl(?:v)?d|Boulevard",
    "court": r"C(?:our)?t",
    "place": r"Pl(?:ace)?",
}
_SUFFIX_ALIASES = {
    "rd": "road", "road": "road",
    "st": "street", "street": "street",
    "ave": "avenue", "av": "avenue", "avenue": "avenue",
    "dr": "drive", "drive": "drive",
    "ln": "lane", "lane": "lane",
    "blvd": "boulevard", "boulevard": "boulevard",
    "ct": "court", "court": "court",
    "pl": "place", "place": "place",
}
_ADDRESS_RE = re.compile(r"^\s*(\d+)\s+(.+?)\s+([A-Za-z]+)\.?(?:\s*,|\s*$)")
# "Rd." keeps its dot in the output unless a comma follows
_ABBREV_DOT = r"(?:\.(?=\s*,))?"


def _street_patterns(number: str, name: str, suffix: str) -> Tuple[Pattern[str], ...]:
    name_re = r"\s+".join(re.escape(part) for part in name.split())
    suffix_re = STREET_SUFFIXES[suffix]
    return (
        # exact street number, plus a unit or suite up to the next comma or sentence end
        re.compile(
            rf"(?<!\d){re.escape(number)}\s*{name_re}\s*(?:{suffix_re})\b{_ABBREV_DOT}[^,.\n]*",
            re.IGNORECASE,
        ),
        # any street number on the same street
        re.compile(rf"\d+\s+{name_re}\s+(?:{suffix_re})\b{_ABBREV_DOT}", re.IGNORECASE),
    )


@dataclass(frozen=True)
class AddressRedactor:
    """Replaces the protected street address with a safe location phrase."""

    patterns: Sequence[Pattern[str]]
    safe_phrase: str = DEFAULT_SAFE_PHRASE

    def scrub(self, text: Optional[str]) -> str:
        if not text:
            return text or ""
        for pattern in self.patterns:
            text = pattern.sub(self.safe_phrase, text)
        return text


def default_redactor() -> AddressRedactor:
    return AddressRedactor(
        patterns=_street_patterns(DEFAULT_STREET_NUMBER, DEFAULT_STREET_NAME, DEFAULT_STREET_SUFFIX),
        safe_phrase=DEFAULT_SAFE_PHRASE,
    )


def parse_street_address(address: Optional[str]) -> Optional[Tuple[str, str, str]]:
    """Split "109 Abbey Rd, Suffolk, VA" into ("109", "Abbey", "road")."""
    m = _ADDRESS_RE.match(address or "")
    if not m:
        return None
    suffix = _SUFFIX_ALIASES.get(m.group(3).lower())
    if not suffix:
        return None
    return m.group(1), m.group(2), suffix


def redactor_for(business: Any) -> AddressRedactor:
    """Redactor for the studio address named in the KB, or the built-in one."""
    studio = getattr(business, "studio", None)
    parsed = parse_street_address(getattr(studio, "address", None))
    if not parsed:
        return default_redactor()
    city = getattr(studio, "city", None)
    state = getattr(studio, "state", None)
    safe_phrase = f"Studio in {city}, {state}" if city and state else DEFAULT_SAFE_PHRASE
    return AddressRedactor(patterns=_street_patterns(*parsed), safe_phrase=safe_phrase)


def _scrub_tree(node: Any, redactor: AddressRedactor) -> Any:
    if isinstance(node, str):
        return redactor.scrub(node)
    if isinstance(node, list):
        return [_scrub_tree(x, redactor) for x in node]
    if isinstance(node, dict):
        return {k: _scrub_tree(v, redactor) for k, v in node.items()}
    return node


def redact_kb_for_model(raw_kb: Dict[str, Any], redactor: AddressRedactor) -> Dict[str, Any]:
    """Copy of the KB JSON with the studio address removed before it leaves the process.

    Every string is scrubbed (answers mention the street too) and the address
    field itself becomes an instruction to use the safe phrase.
    """
    sanitized = _scrub_tree(raw_kb or {}, redactor)
    studio = (sanitized.get("business") or {}).get("studio")
    if isinstance(studio, dict) and studio.get("address"):
        studio["address"] = f"[REDACTED - Say '{redactor.safe_phrase}']"
    return sanitized
