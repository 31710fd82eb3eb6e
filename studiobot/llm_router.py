"""Model routing: prompt construction, the OpenAI call, and decoding of its reply.

The model only ever sees the KB with the studio address pre-redacted, and its
reply is decoded field by field with defaults so a malformed field can never
leak through as-is. A reply that is not a JSON object at all is an error the
orchestrator turns into a heuristic fallback.
"""
from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass
from typing import Any, Callable, Iterable, List, Optional

from openai import OpenAI

from .errors import ModelInvocationError, ModelResponseError
from .intent_router import build_escalation_reply
from .kb_models import KnowledgeBase, ModelReply
from .redaction import AddressRedactor, default_redactor, redact_kb_for_model, redactor_for

logger = logging.getLogger(__name__)

# (system_prompt, user_message) -> raw model text
ModelInvoker = Callable[[str, str], str]

REASONING_MODEL_PREFIXES = ("gpt-5", "o1", "o3", "o4")
DEFAULT_BUSINESS_NAME = "Motiontography LLC"
DEFAULT_BUSINESS_KIND = "photography studio"


@dataclass
class ModelConfig:
    api_key: Optional[str]
    model: str = "gpt-4o"
    api: str = "responses"  # responses | chat
    reasoning_effort: str = "high"
    text_verbosity: Optional[str] = "low"
    max_output_tokens: int = 500
    timeout_secs: float = 20.0


def supports_reasoning(model: str) -> bool:
    return (model or "").lower().startswith(REASONING_MODEL_PREFIXES)


class OpenAIInvoker:
    """Sends system + user text to OpenAI and returns the raw output text."""

    def __init__(self, config: ModelConfig, client: Any = None):
        if not config.api_key and client is None:
            raise ModelInvocationError("OPENAI_API_KEY is not set")
        self.config = config
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = OpenAI(api_key=self.config.api_key)
        return self._client

    def __call__(self, system: str, user: str) -> str:
        cfg = self.config
        logger.debug(f"LLM call: model={cfg.model} api={cfg.api}")
        if cfg.api == "chat":
            resp = self.client.chat.completions.create(
                model=cfg.model,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": user},
                ],
                max_tokens=cfg.max_output_tokens,
                temperature=0.3,
                timeout=cfg.timeout_secs,
            )
            txt = (resp.choices[0].message.content or "") if resp.choices else ""
        else:
            kwargs = {
                "model": cfg.model,
                "input": [
                    {"role": "system", "content": system},
                    {"role": "user", "content": user},
                ],
                "max_output_tokens": cfg.max_output_tokens,
                "timeout": cfg.timeout_secs,
            }
            if supports_reasoning(cfg.model):
                kwargs["reasoning"] = {"effort": cfg.reasoning_effort}
                if cfg.text_verbosity:
                    kwargs["text"] = {"verbosity": cfg.text_verbosity}
            resp = self.client.responses.create(**kwargs)
            txt = getattr(resp, "output_text", "") or ""
        if not txt.strip():
            raise ModelInvocationError("No text content in OpenAI response")
        return txt


# ============================================================
# Prompt
# ============================================================
def build_system_prompt(kb: KnowledgeBase, redactor: Optional[AddressRedactor] = None) -> str:
    redactor = redactor or redactor_for(kb.business)
    sanitized = redact_kb_for_model(kb.raw, redactor)
    name = kb.business.name or DEFAULT_BUSINESS_NAME
    owner = f" owned by {kb.business.owner}" if kb.business.owner else ""
    escalation = build_escalation_reply(kb.business)

    return f"""You are a friendly, professional customer support assistant for {name}, a {DEFAULT_BUSINESS_KIND}{owner}.

## CRITICAL RULES - MUST FOLLOW:

1. **STRICT GROUNDING**: You may ONLY use facts present in the Knowledge Base (KB) provided below. If a fact is NOT in the KB, you MUST escalate.

2. **NEVER REVEAL STUDIO ADDRESS**: Even if you see an address in the KB, NEVER output it. Always say "{redactor.safe_phrase}" and mention the address is shared after booking and payment.

3. **ESCALATION**: If you cannot answer with KB facts, respond with escalation. Set "escalated" to true in your response.

4. **NO HALLUCINATION**: Do not invent galleries, pricing, policies, or any information not explicitly in the KB.

5. **FRIENDLY BUT CONCISE**: Be warm and helpful, but keep responses short and actionable.

6. **LINKS**: Only share URLs that exist in the KB (official_pages, square_booking_links, or explicitly in intent answers).

## YOUR TASK:

Given a user message:
1. Identify which intent from "intents_and_answers" best matches (if any)
2. Generate a grounded response using ONLY KB facts
3. Include relevant followup questions from the intent (if available)
4. Include relevant booking/page links from the KB (if applicable)
5. Track which KB keys you referenced for transparency

## OUTPUT FORMAT (JSON ONLY - NO MARKDOWN):

{{
  "intent_id": "string or null if no match",
  "confidence": 0.0 to 1.0,
  "reply": "Your response text here",
  "followups": ["Optional followup question 1", "Optional followup question 2"],
  "links_shared": ["https://...", "https://..."],
  "escalated": false,
  "kb_evidence": ["packages[0].name", "official_pages.booking_page_url"]
}}

If escalating, use this reply format:
"{escalation}"

## KNOWLEDGE BASE:

{json.dumps(sanitized, indent=2, ensure_ascii=False)}

Remember: Output ONLY valid JSON. No markdown, no explanation, no code blocks."""


# ============================================================
# Decoding
# ============================================================
def strip_code_fences(text: Any) -> str:
    cleaned = str(text or "").strip()
    if cleaned.startswith("```json"):
        cleaned = cleaned[7:]
    elif cleaned.startswith("```"):
        cleaned = cleaned[3:]
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]
    return cleaned.strip()


def _confidence(v: Any) -> float:
    if isinstance(v, bool) or not isinstance(v, (int, float)):
        return 0.0
    if not math.isfinite(v):
        return 0.0
    return min(max(float(v), 0.0), 1.0)


def _text_list(v: Any) -> List[str]:
    if not isinstance(v, list):
        return []
    return [x for x in v if isinstance(x, str)]


def _intent_id(v: Any, known: Optional[Iterable[str]]) -> Optional[str]:
    if not isinstance(v, str) or not v.strip():
        return None
    if known is not None and v not in set(known):
        return None
    return v


def parse_model_response(
    raw: Any,
    known_intent_ids: Optional[Iterable[str]] = None,
    redactor: Optional[AddressRedactor] = None,
) -> ModelReply:
    cleaned = strip_code_fences(raw)
    try:
        parsed = json.loads(cleaned)
    except ValueError as e:
        raise ModelResponseError(f"Failed to parse model JSON: {e}") from e
    if not isinstance(parsed, dict):
        raise ModelResponseError(f"Model JSON is not an object: {type(parsed).__name__}")

    reply = parsed.get("reply")
    reply = reply if isinstance(reply, str) else ""
    redactor = redactor or default_redactor()
    return ModelReply(
        intent_id=_intent_id(parsed.get("intent_id"), known_intent_ids),
        confidence=_confidence(parsed.get("confidence")),
        reply=redactor.scrub(reply),
        followups=_text_list(parsed.get("followups")),
        links_shared=_text_list(parsed.get("links_shared")),
        escalated=parsed.get("escalated") is True,
        kb_evidence=_text_list(parsed.get("kb_evidence")),
    )


def route_and_answer(
    message: str,
    kb: KnowledgeBase,
    invoker: ModelInvoker,
    redactor: Optional[AddressRedactor] = None,
) -> ModelReply:
    redactor = redactor or redactor_for(kb.business)
    raw = invoker(build_system_prompt(kb, redactor), message)
    return parse_model_response(raw, known_intent_ids=kb.intent_ids(), redactor=redactor)
