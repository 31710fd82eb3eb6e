# studiobot/app.py
from __future__ import annotations

import logging
import uuid
from typing import Any, List, Optional, Union

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from . import config
from .errors import KnowledgeBaseError
from .kb_repository import get_kb_repository
from .llm_router import OpenAIInvoker
from .orchestrator import build_candidate_record, build_transcript_record, handle_chat
from .routers.admin import router as admin_router
from .transcripts import get_transcript_log

logger = logging.getLogger("uvicorn")

# Optional LLM (OpenAI) routing; absent key or LLM_ENABLED=false keeps the matcher only
MODEL_CONFIG = config.model_config_from_env()
MODEL_INVOKER = OpenAIInvoker(MODEL_CONFIG) if MODEL_CONFIG else None

# ============================================================
# FastAPI
# ============================================================
app = FastAPI(title="Motiontography KB-only bot")
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "x-admin-token"],
)


# ============================================================
# Models
# ============================================================
class ChatRequest(BaseModel):
    # checked by hand so a missing or non-text message is a 400, not a 422
    message: Any = None
    session_id: Any = None
    client: Any = None  # opaque client identifiers, logged verbatim


class ChatResponse(BaseModel):
    ok: bool = True
    session_id: str
    matched_intent_id: Optional[str] = None
    match_score: Union[int, float] = 0
    used_openai: bool = False
    escalated: bool = False
    reply: str
    followups: List[str] = Field(default_factory=list)
    route_url: Optional[str] = None
    links_shared: List[str] = Field(default_factory=list)
    kb_evidence: List[str] = Field(default_factory=list)


@app.exception_handler(RequestValidationError)
def invalid_body(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"ok": False, "detail": "Invalid JSON body"})


# ============================================================
# API routes
# ============================================================
@app.get("/api/health")
def health():
    try:
        kb = get_kb_repository().current()
    except KnowledgeBaseError as e:
        raise HTTPException(status_code=503, detail=str(e))
    return {
        "ok": True,
        "kb_version": kb.kb_version,
        "last_updated_local": kb.last_updated_local,
        "intents": len(kb.intents),
        "openai_enabled": MODEL_INVOKER is not None,
        "llm_model": MODEL_CONFIG.model if MODEL_CONFIG else None,
    }


@app.post("/api/chat", response_model=ChatResponse)
def chat(req: ChatRequest):
    message = req.message
    if not isinstance(message, str) or not message:
        raise HTTPException(status_code=400, detail="message (string) is required")
    session_id = str(req.session_id) if req.session_id else uuid.uuid4().hex
    client = req.client if req.client is not None else {}

    try:
        kb = get_kb_repository().current()
    except KnowledgeBaseError as e:
        # no KB, no answers: refusing beats guessing
        logger.error(f"KB unavailable: {e}")
        raise HTTPException(status_code=503, detail="Knowledge base unavailable")

    result = handle_chat(message, kb, MODEL_INVOKER)

    transcript = build_transcript_record(message, result, session_id, client)
    candidate = build_candidate_record(message, result, session_id, client, ts=transcript["ts"]) if result.escalated else None
    get_transcript_log().record(transcript, candidate)

    return ChatResponse(
        session_id=session_id,
        matched_intent_id=result.matched_intent_id,
        match_score=result.match_score,
        used_openai=result.used_model,
        escalated=result.escalated,
        reply=result.reply,
        followups=result.followups,
        route_url=result.route_url,
        links_shared=result.links_shared,
        kb_evidence=result.evidence,
    )


app.include_router(admin_router)


# ============================================================
# Startup: load the KB once so a broken KB fails the boot
# ============================================================
@app.on_event("startup")
def startup_event():
    logger.info("=== App startup: loading KB ===")
    kb = get_kb_repository().current()
    logger.info(
        f"KB v{kb.kb_version} ({kb.last_updated_local}); "
        f"openai={'on' if MODEL_INVOKER else 'off'}"
    )


# ============================================================
# Local dev entrypoint
# ============================================================
if __name__ == "__main__":
    import uvicorn
    uvicorn.run("studiobot.app:app", host=config.HOST, port=config.PORT, reload=True)
