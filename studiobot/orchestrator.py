from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from . import intent_router as IR
from .kb_models import ChatResult, KnowledgeBase, ModelReply
from .llm_router import ModelInvoker, route_and_answer
from .redaction import AddressRedactor, redactor_for

logger = logging.getLogger(__name__)

REASON_MODEL_ESCALATED = "Model escalated"
REASON_MODEL_EMPTY = "Model returned empty reply"


def _from_model(reply: ModelReply, kb: KnowledgeBase) -> ChatResult:
    if not reply.reply.strip():
        return IR.escalation_result(
            kb,
            score=reply.confidence,
            reason=REASON_MODEL_EMPTY,
            matched_intent_id=reply.intent_id,
            used_model=True,
            evidence=reply.kb_evidence,
        )
    return ChatResult(
        reply=reply.reply,
        followups=reply.followups,
        route_url=None,
        matched_intent_id=reply.intent_id,
        match_score=reply.confidence,
        used_model=True,
        escalated=reply.escalated,
        evidence=reply.kb_evidence,
        links_shared=reply.links_shared,
        source="model",
        escalation_reason=REASON_MODEL_ESCALATED if reply.escalated else None,
    )


def handle_chat(
    message: str,
    kb: KnowledgeBase,
    invoker: Optional[ModelInvoker] = None,
    redactor: Optional[AddressRedactor] = None,
) -> ChatResult:
    """Answer one message from one KB snapshot.

    With an invoker the model is asked once; any failure there falls through
    to the trigger matcher. The caller has already checked that `message` is
    non-empty text. Never raises for matching or model problems.
    """
    redactor = redactor or redactor_for(kb.business)
    result: Optional[ChatResult] = None

    if invoker is not None:
        try:
            model_reply = route_and_answer(message, kb, invoker, redactor)
        except Exception as e:
            logger.warning(f"Model routing failed, falling back to trigger matching: {e}")
        else:
            result = _from_model(model_reply, kb)

    if result is None:
        result = IR.answer(message, kb)

    return result.model_copy(update={"reply": redactor.scrub(result.reply)})


# ============================================================
# Audit records
# ============================================================
def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def build_transcript_record(
    message: str,
    result: ChatResult,
    session_id: Optional[str],
    client: Any = None,
    ts: Optional[str] = None,
) -> Dict[str, Any]:
    return {
        "ts": ts or _now_iso(),
        "session_id": session_id,
        "client": client if client is not None else {},
        "user_message": message,
        "bot_reply": result.reply,
        "bot_followups": list(result.followups),
        "route_url": result.route_url,
        "matched_intent_id": result.matched_intent_id,
        "match_score": result.match_score,
        "used_model": result.used_model,
        "escalated": result.escalated,
        "kb_evidence": list(result.evidence),
        "links_shared": list(result.links_shared),
    }


def build_candidate_record(
    message: str,
    result: ChatResult,
    session_id: Optional[str],
    client: Any = None,
    ts: Optional[str] = None,
) -> Dict[str, Any]:
    """Narrower record for questions a human should turn into KB intents."""
    return {
        "ts": ts or _now_iso(),
        "session_id": session_id,
        "client": client if client is not None else {},
        "question": message,
        "reason": result.escalation_reason or IR.REASON_NO_MATCH,
        "score": result.match_score,
        "used_model": result.used_model,
    }
