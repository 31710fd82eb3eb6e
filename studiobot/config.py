from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .llm_router import ModelConfig

# Load .env before reading any environment variables
load_dotenv()

HERE = Path(__file__).resolve().parent           # repo/studiobot/
REPO_ROOT = HERE.parent                          # repo/
KB_DIR = HERE / "knowledgebase"

KB_PATH = Path(os.getenv("KB_PATH", (KB_DIR / "motiontography_kb.json").as_posix()))
KB_URL = os.getenv("KB_URL") or None             # remote KB wins over the file when set
KB_CACHE_TTL_SECS = float(os.getenv("KB_CACHE_TTL_SECS", "300"))

LOG_DIR = Path(os.getenv("LOG_DIR", (REPO_ROOT / "logs").as_posix()))

DB_URL = os.getenv("DATABASE_URL") or os.getenv("DB_URL")
# SQLAlchemy requires the "postgresql://" scheme (not legacy "postgres://").
if DB_URL and DB_URL.startswith("postgres://"):
    DB_URL = "postgresql://" + DB_URL[len("postgres://"):]

ADMIN_TOKEN = os.getenv("ADMIN_TOKEN") or None

OPENAI_API_KEY = os.getenv("OPENAI_API_KEY") or None
LLM_ENABLED = os.getenv("LLM_ENABLED", "true").lower() in {"1", "true", "yes", "on"}
LLM_MODEL = os.getenv("LLM_MODEL", "gpt-4o")
LLM_API = os.getenv("LLM_API", "responses")      # responses | chat
LLM_REASONING_EFFORT = os.getenv("LLM_REASONING_EFFORT", "high")
LLM_TEXT_VERBOSITY = os.getenv("LLM_TEXT_VERBOSITY", "low")
LLM_MAX_OUTPUT_TOKENS = int(os.getenv("LLM_MAX_OUTPUT_TOKENS", "500"))
LLM_TIMEOUT_SECS = float(os.getenv("LLM_TIMEOUT_SECS", "20"))

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "5050"))


def model_config_from_env() -> Optional[ModelConfig]:
    if not (OPENAI_API_KEY and LLM_ENABLED):
        return None
    return ModelConfig(
        api_key=OPENAI_API_KEY,
        model=LLM_MODEL,
        api=LLM_API if LLM_API in {"responses", "chat"} else "responses",
        reasoning_effort=LLM_REASONING_EFFORT,
        text_verbosity=LLM_TEXT_VERBOSITY or None,
        max_output_tokens=LLM_MAX_OUTPUT_TOKENS,
        timeout_secs=LLM_TIMEOUT_SECS,
    )
