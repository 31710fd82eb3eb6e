from __future__ import annotations

import json
import logging
import threading
import time
from dataclasses import dataclass, replace
from functools import lru_cache
from pathlib import Path
from typing import Any, Callable, Optional

import httpx

from . import config
from .errors import KnowledgeBaseError
from .kb_models import KnowledgeBase

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


class FileKnowledgeSource:
    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def describe(self) -> str:
        return self.path.as_posix()

    def stamp(self) -> float:
        return self.path.stat().st_mtime if self.path.exists() else 0.0

    def load(self) -> Any:
        if not self.path.exists():
            raise KnowledgeBaseError(f"KB file not found: {self.path}")
        try:
            return json.loads(self.path.read_text(encoding="utf-8"))
        except ValueError as e:
            raise KnowledgeBaseError(f"KB file is not valid JSON: {e}") from e


class RemoteKnowledgeSource:
    def __init__(self, url: str, timeout: float = 10.0, transport: Optional[httpx.BaseTransport] = None) -> None:
        self.url = url
        self.timeout = timeout
        self.transport = transport

    def describe(self) -> str:
        return self.url

    def stamp(self) -> float:
        return 0.0

    def load(self) -> Any:
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                r = client.get(self.url)
        except httpx.HTTPError as e:
            raise KnowledgeBaseError(f"Failed to fetch KB: {e}") from e
        if r.status_code >= 400:
            raise KnowledgeBaseError(f"Failed to fetch KB: {r.status_code}")
        try:
            return r.json()
        except ValueError as e:
            raise KnowledgeBaseError(f"Fetched KB is not valid JSON: {e}") from e


@dataclass
class CachedKnowledge:
    kb: KnowledgeBase
    loaded_at: float
    stamp: float = 0.0


class KnowledgeCache:
    """Holds the current KB snapshot and when it was loaded.

    `ttl_seconds=None` keeps an entry until the source stamp changes.
    """

    def __init__(self, ttl_seconds: Optional[float] = None, clock: Clock = time.monotonic) -> None:
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self.entry: Optional[CachedKnowledge] = None

    def is_fresh(self) -> bool:
        if self.entry is None:
            return False
        if self.ttl_seconds is None:
            return True
        return (self.clock() - self.entry.loaded_at) < self.ttl_seconds

    def store(self, kb: KnowledgeBase, stamp: float = 0.0) -> CachedKnowledge:
        self.entry = CachedKnowledge(kb=kb, loaded_at=self.clock(), stamp=stamp)
        return self.entry

    def touch(self, stamp: Optional[float] = None) -> None:
        """Restart the TTL window for the current entry without replacing its KB."""
        if self.entry is None:
            return
        self.entry = replace(
            self.entry,
            loaded_at=self.clock(),
            stamp=self.entry.stamp if stamp is None else stamp,
        )


class KnowledgeRepository:
    def __init__(self, source: Any, cache: Optional[KnowledgeCache] = None) -> None:
        self.source = source
        self.cache = cache or KnowledgeCache()
        self._lock = threading.Lock()

    def current(self) -> KnowledgeBase:
        """The KB to answer from; refreshed when stale, never mutated in place."""
        with self._lock:
            entry = self.cache.entry
            stamp = self.source.stamp()
            if entry is not None and self.cache.is_fresh() and stamp == entry.stamp:
                return entry.kb
            try:
                return self._load()
            except KnowledgeBaseError as e:
                if entry is None:
                    raise
                logger.warning(f"KB refresh failed, serving v{entry.kb.kb_version}: {e}")
                # next attempt waits for the next TTL window or source change
                self.cache.touch(stamp)
                return entry.kb

    def reload(self) -> KnowledgeBase:
        # a failed reload leaves the previous snapshot in place
        with self._lock:
            return self._load()

    def _load(self) -> KnowledgeBase:
        stamp = self.source.stamp()
        kb = KnowledgeBase.from_json(self.source.load())
        self.cache.store(kb, stamp)
        logger.info(
            f"KB loaded from {self.source.describe()}: "
            f"v{kb.kb_version} ({kb.last_updated_local}), {len(kb.intents)} intents"
        )
        return kb


def build_repository(
    kb_path: Optional[Path] = None,
    kb_url: Optional[str] = None,
    ttl_seconds: Optional[float] = None,
    clock: Clock = time.monotonic,
) -> KnowledgeRepository:
    if kb_url:
        return KnowledgeRepository(RemoteKnowledgeSource(kb_url), KnowledgeCache(ttl_seconds, clock))
    return KnowledgeRepository(FileKnowledgeSource(kb_path or config.KB_PATH), KnowledgeCache(None, clock))


@lru_cache(maxsize=1)
def get_kb_repository() -> KnowledgeRepository:
    return build_repository(
        kb_path=config.KB_PATH,
        kb_url=config.KB_URL,
        ttl_seconds=config.KB_CACHE_TTL_SECS,
    )
