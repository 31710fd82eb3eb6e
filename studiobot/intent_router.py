from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from .kb_models import (
    DEFAULT_ROUTE_MODE,
    Business,
    ChatResult,
    Intent,
    KnowledgeBase,
    PackageRoute,
    Route,
    UrlRoute,
)
from .triggers import normalize, score_trigger

# Below this an overlap is treated as coincidence, not a match.
MIN_MATCH_SCORE = 2

DEFAULT_PHONE = "+1-757-759-8454"
DEFAULT_WEBSITE = "https://motiontography.com"
DEFAULT_OWNER = "Roger"
CONTACT_PATH = "/contact.html"
ESCALATION_TEMPLATE = (
    "I don't want to guess and give you the wrong info. "
    "Please contact {owner} directly at {phone} (call/text), "
    "or use the contact page: {contact_url}"
)

REASON_NO_MATCH = "No intent match"
REASON_EMPTY_ANSWER = "Matched intent but empty answer"

_DOUBLE_SLASH_RE = re.compile(r"([^:]/)/+")


# ============================================================
# Scoring and selection
# ============================================================
def score_intent(message: str, intent: Intent) -> int:
    normalized_message = normalize(message)
    return sum(score_trigger(message, t, normalized_message) for t in intent.triggers)


@dataclass
class IntentMatch:
    intent: Optional[Intent]
    score: int


def find_best_intent(message: str, intents: Sequence[Intent]) -> IntentMatch:
    """Highest-scoring intent; the earliest one keeps a tied score."""
    best: Optional[Intent] = None
    best_score = 0
    for intent in intents:
        s = score_intent(message, intent)
        if s > best_score:
            best_score = s
            best = intent
    if best is None or best_score < MIN_MATCH_SCORE:
        return IntentMatch(intent=None, score=best_score)
    return IntentMatch(intent=best, score=best_score)


# ============================================================
# Routes and replies
# ============================================================
def normalize_url(url: Optional[str]) -> str:
    # collapse "//" runs but keep the one after "scheme:"
    return _DOUBLE_SLASH_RE.sub(r"\1", str(url or ""))


def resolve_route_url(route: Optional[Route], link_table: Optional[Dict[str, Any]]) -> Optional[str]:
    if route is None:
        return None
    if isinstance(route, UrlRoute):
        return route.url or None
    if not isinstance(route, PackageRoute) or not route.package_id:
        return None

    entry = (link_table or {}).get(route.package_id)
    if not entry:
        return None
    if isinstance(entry, str):
        return entry
    if not isinstance(entry, dict):
        return None

    by_mode = entry.get(route.mode or DEFAULT_ROUTE_MODE)
    if isinstance(by_mode, str) and by_mode:
        return by_mode
    first = next((v for v in entry.values() if isinstance(v, str)), None)
    return first or None


@dataclass
class FormattedAnswer:
    reply: str
    followups: List[str] = field(default_factory=list)
    route_url: Optional[str] = None


def format_intent_answer(intent: Intent, link_table: Optional[Dict[str, Any]]) -> FormattedAnswer:
    answer = intent.answer
    if isinstance(answer, list):
        reply = "\n\n".join(str(a) for a in answer if a)
    else:
        reply = str(answer or "").strip()
    return FormattedAnswer(
        reply=reply,
        followups=list(intent.followups or []),
        route_url=resolve_route_url(intent.route, link_table),
    )


def build_escalation_reply(business: Optional[Business]) -> str:
    phone = (business.primary_phone if business else None) or DEFAULT_PHONE
    site = (business.website if business else None) or DEFAULT_WEBSITE
    owner_names = ((business.owner if business else None) or "").split()
    return ESCALATION_TEMPLATE.format(
        owner=owner_names[0] if owner_names else DEFAULT_OWNER,
        phone=phone,
        contact_url=normalize_url(f"{site}{CONTACT_PATH}"),
    )


def escalation_result(
    kb: KnowledgeBase,
    score: float = 0,
    reason: str = REASON_NO_MATCH,
    matched_intent_id: Optional[str] = None,
    used_model: bool = False,
    evidence: Optional[List[str]] = None,
) -> ChatResult:
    """The one place every path builds its "contact us" fallback."""
    return ChatResult(
        reply=build_escalation_reply(kb.business),
        followups=[],
        route_url=None,
        matched_intent_id=matched_intent_id,
        match_score=score,
        used_model=used_model,
        escalated=True,
        evidence=list(evidence or []),
        source="escalation",
        escalation_reason=reason,
    )


def answer(message: str, kb: KnowledgeBase) -> ChatResult:
    """Heuristic path: best KB intent, or the escalation reply.

    The reply is not redacted here; the orchestrator scrubs every outbound reply.
    """
    match = find_best_intent(message, kb.intents)
    if match.intent is None:
        return escalation_result(kb, score=match.score, reason=REASON_NO_MATCH)

    formatted = format_intent_answer(match.intent, kb.link_table)
    if not formatted.reply.strip():
        return escalation_result(
            kb,
            score=match.score,
            reason=REASON_EMPTY_ANSWER,
            matched_intent_id=match.intent.id,
        )
    return ChatResult(
        reply=formatted.reply,
        followups=formatted.followups,
        route_url=formatted.route_url,
        matched_intent_id=match.intent.id,
        match_score=match.score,
        source="intent",
    )
