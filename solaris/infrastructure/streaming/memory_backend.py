from typing import Dict, Any, List, Optional
import asyncio
from datetime import datetime, timedelta, timezone

from solaris.domain.streaming.backend import StreamBackend
from solaris.domain.streaming.stream_parts import StreamPart


def _now() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryStreamBackend(StreamBackend):
    """In-process stream store with TTL support.

    Survives subscriber reconnects but not a process restart.
    """

    def __init__(self, default_ttl: int = 3600):
        self.default_ttl = default_ttl
        self.streams: Dict[str, Dict[str, Any]] = {}
        self.chat_streams: Dict[str, List[str]] = {}
        self._lock = asyncio.Lock()

    def _entry(self, stream_id: str) -> Optional[Dict[str, Any]]:
        entry = self.streams.get(stream_id)
        if entry is None:
            return None
        if _now() > entry["expires_at"]:
            del self.streams[stream_id]
            return None
        return entry

    async def register(self, chat_id: str, stream_id: str) -> None:
        async with self._lock:
            self.streams.setdefault(stream_id, {
                "parts": [],
                "status": "streaming",
                "expires_at": _now() + timedelta(seconds=self.default_ttl)
            })
            self.chat_streams.setdefault(chat_id, []).append(stream_id)

    async def latest_stream(self, chat_id: str) -> Optional[str]:
        async with self._lock:
            for stream_id in reversed(self.chat_streams.get(chat_id, [])):
                if self._entry(stream_id) is not None:
                    return stream_id
            return None

    async def append(self, stream_id: str, part: StreamPart) -> None:
        async with self._lock:
            entry = self._entry(stream_id)
            if entry is None:
                entry = self.streams[stream_id] = {
                    "parts": [],
                    "status": "streaming",
                    "expires_at": _now() + timedelta(seconds=self.default_ttl)
                }
            entry["parts"].append(part)

    async def read(self, stream_id: str) -> Optional[List[StreamPart]]:
        async with self._lock:
            entry = self._entry(stream_id)
            return list(entry["parts"]) if entry else None

    async def set_status(self, stream_id: str, status: str) -> None:
        async with self._lock:
            entry = self._entry(stream_id)
            if entry is not None:
                entry["status"] = status

    async def get_status(self, stream_id: str) -> Optional[str]:
        async with self._lock:
            entry = self._entry(stream_id)
            return entry["status"] if entry else None

    async def expire(self, stream_id: str, ttl: int) -> None:
        async with self._lock:
            entry = self._entry(stream_id)
            if entry is not None:
                entry["expires_at"] = _now() + timedelta(seconds=ttl)

    async def clear_expired(self) -> int:
        """Clear expired entries and return count"""

        async with self._lock:
            now = _now()
            expired = [key for key, entry in self.streams.items() if now > entry["expires_at"]]
            for key in expired:
                del self.streams[key]
            for chat_id, stream_ids in list(self.chat_streams.items()):
                live = [s for s in stream_ids if s in self.streams]
                if live:
                    self.chat_streams[chat_id] = live
                else:
                    del self.chat_streams[chat_id]
            return len(expired)
