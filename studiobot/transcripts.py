from __future__ import annotations

import json
import logging
from datetime import date, datetime, timezone
from functools import lru_cache
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    Float,
    Integer,
    MetaData,
    Table,
    Text,
    create_engine,
)

from . import config

logger = logging.getLogger(__name__)


def _utc_today() -> date:
    return datetime.now(timezone.utc).date()


class JsonlTranscriptLog:
    """Append-only JSON lines, one file per UTC day."""

    def __init__(self, log_dir: Path, today: Callable[[], date] = _utc_today) -> None:
        self.log_dir = Path(log_dir)
        self.today = today

    def transcripts_path(self, day: Optional[date] = None) -> Path:
        return self.log_dir / f"transcripts_{(day or self.today()).isoformat()}.jsonl"

    def candidates_path(self, day: Optional[date] = None) -> Path:
        return self.log_dir / f"NEW_FAQ_CANDIDATES_{(day or self.today()).isoformat()}.jsonl"

    def _append(self, path: Path, obj: Dict[str, Any]) -> None:
        self.log_dir.mkdir(parents=True, exist_ok=True)
        with path.open("a", encoding="utf-8") as f:
            f.write(json.dumps(obj, ensure_ascii=False) + "\n")

    def record_transcript(self, record: Dict[str, Any]) -> None:
        self._append(self.transcripts_path(), record)

    def record_candidate(self, record: Dict[str, Any]) -> None:
        self._append(self.candidates_path(), record)

    def read_candidates(self, day: Optional[date] = None) -> List[Dict[str, Any]]:
        path = self.candidates_path(day)
        if not path.exists():
            return []
        out: List[Dict[str, Any]] = []
        for line in path.read_text(encoding="utf-8").splitlines():
            line = line.strip()
            if not line:
                continue
            try:
                out.append(json.loads(line))
            except ValueError:
                logger.warning(f"Skipping unreadable candidate line in {path.name}")
        return out


# ============================================================
# Database (optional; e.g., Railway Postgres)
# ============================================================
_metadata = MetaData()
_id_type = BigInteger().with_variant(Integer, "sqlite")

chat_transcripts = Table(
    "chat_transcripts",
    _metadata,
    Column("id", _id_type, primary_key=True, autoincrement=True),
    Column("ts", Text),
    Column("session_id", Text),
    Column("user_message", Text, nullable=False),
    Column("bot_reply", Text, nullable=False),
    Column("matched_intent_id", Text),
    Column("match_score", Float),
    Column("used_model", Boolean, default=False),
    Column("escalated", Boolean, default=False),
    Column("payload", Text),
)

faq_candidates = Table(
    "faq_candidates",
    _metadata,
    Column("id", _id_type, primary_key=True, autoincrement=True),
    Column("ts", Text),
    Column("session_id", Text),
    Column("question", Text, nullable=False),
    Column("reason", Text),
    Column("score", Float),
    Column("status", Text, default="pending"),
    Column("payload", Text),
)


class DatabaseTranscriptLog:
    """Mirrors transcripts into SQL tables created on first use."""

    def __init__(self, url: str) -> None:
        self.url = url
        self.engine = None
        self._failed = False

    def _ready(self) -> bool:
        if self.engine is not None:
            return True
        if self._failed:
            return False
        try:
            engine = create_engine(self.url, pool_pre_ping=True)
            _metadata.create_all(engine)
        except Exception as e:
            logger.exception(f"DB init failed: {e}")
            self._failed = True
            return False
        self.engine = engine
        logger.info("DB initialized: chat_transcripts and faq_candidates tables ready")
        return True

    def record_transcript(self, record: Dict[str, Any]) -> None:
        if not self._ready():
            return
        with self.engine.begin() as conn:
            conn.execute(chat_transcripts.insert().values(
                ts=record.get("ts"),
                session_id=record.get("session_id"),
                user_message=record.get("user_message") or "",
                bot_reply=record.get("bot_reply") or "",
                matched_intent_id=record.get("matched_intent_id"),
                match_score=record.get("match_score"),
                used_model=bool(record.get("used_model")),
                escalated=bool(record.get("escalated")),
                payload=json.dumps(record, ensure_ascii=False),
            ))

    def record_candidate(self, record: Dict[str, Any]) -> None:
        if not self._ready():
            return
        with self.engine.begin() as conn:
            conn.execute(faq_candidates.insert().values(
                ts=record.get("ts"),
                session_id=record.get("session_id"),
                question=record.get("question") or "",
                reason=record.get("reason"),
                score=record.get("score"),
                payload=json.dumps(record, ensure_ascii=False),
            ))


class TranscriptLog:
    """Writes each record to every sink; a failing sink never breaks a reply."""

    def __init__(self, sinks: Iterable[Any]) -> None:
        self.sinks = list(sinks)

    def record(self, transcript: Dict[str, Any], candidate: Optional[Dict[str, Any]] = None) -> None:
        for sink in self.sinks:
            try:
                sink.record_transcript(transcript)
            except Exception as e:
                logger.warning(f"Transcript write failed ({type(sink).__name__}): {e}")
            if candidate is None:
                continue
            try:
                sink.record_candidate(candidate)
            except Exception as e:
                logger.warning(f"FAQ candidate write failed ({type(sink).__name__}): {e}")

    def read_candidates(self, day: Optional[date] = None) -> List[Dict[str, Any]]:
        for sink in self.sinks:
            if isinstance(sink, JsonlTranscriptLog):
                return sink.read_candidates(day)
        return []


@lru_cache(maxsize=1)
def get_transcript_log() -> TranscriptLog:
    sinks: List[Any] = [JsonlTranscriptLog(config.LOG_DIR)]
    if config.DB_URL:
        sinks.append(DatabaseTranscriptLog(config.DB_URL))
    return TranscriptLog(sinks)
