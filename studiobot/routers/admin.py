from __future__ import annotations

import hmac
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from .. import config
from ..errors import KnowledgeBaseError
from ..kb_repository import get_kb_repository
from ..transcripts import get_transcript_log

router = APIRouter(prefix="/api", tags=["admin"])


def require_admin(request: Request, token: Optional[str] = Query(None)) -> None:
    supplied = request.headers.get("x-admin-token") or token or ""
    if not config.ADMIN_TOKEN or not hmac.compare_digest(supplied.encode(), config.ADMIN_TOKEN.encode()):
        raise HTTPException(status_code=401, detail="Unauthorized")


@router.post("/reload-kb", dependencies=[Depends(require_admin)])
def reload_kb() -> dict:
    try:
        kb = get_kb_repository().reload()
    except KnowledgeBaseError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return {"ok": True, "kb_version": kb.kb_version, "last_updated_local": kb.last_updated_local}


@router.get("/faq-candidates", dependencies=[Depends(require_admin)])
def faq_candidates(
    day: Optional[str] = Query(None, description="UTC day YYYY-MM-DD, defaults to today"),
) -> dict:
    try:
        wanted = date.fromisoformat(day) if day else None
    except ValueError:
        raise HTTPException(status_code=400, detail="day must be YYYY-MM-DD")
    log = get_transcript_log()
    items = log.read_candidates(wanted)
    return {"day": wanted.isoformat() if wanted else None, "items": items}
