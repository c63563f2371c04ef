from typing import Dict, List, Optional, NamedTuple, Callable, Union
import asyncio
import uuid
from collections import deque
from datetime import datetime, timezone
from enum import Enum
import structlog

from solaris.domain.errors import StreamTransportError
from solaris.domain.models.document import DocumentKind
from solaris.infrastructure.observability.logging import agent_logger
from .backend import StreamBackend
from .stream_parts import StreamPart, StreamPartType

logger = structlog.get_logger(__name__)

_END = object()


class StreamStatus(str, Enum):
    """Stream session status"""
    STREAMING = "streaming"
    DONE = "done"
    ABORTED = "aborted"


class StreamKey(NamedTuple):
    document_id: str
    generation_id: str

    @property
    def stream_id(self) -> str:
        return f"{self.document_id}:{self.generation_id}"

    @classmethod
    def parse(cls, stream_id: str) -> "StreamKey":
        document_id, _, generation_id = stream_id.rpartition(":")
        if not document_id or not generation_id:
            raise ValueError(f"Malformed stream id: {stream_id!r}")
        return cls(document_id, generation_id)


class Subscription:
    """Async iterator over a stream: buffered parts first, then live ones.

    Live parts go through a bounded queue. When the queue overflows the
    subscription is detached; the consumer drains what it already has and
    the iteration ends without a ``data-finish`` part.
    """

    def __init__(
        self,
        backlog: List[StreamPart],
        maxsize: int,
        on_release: Optional[Callable[["Subscription"], None]] = None
    ):
        self._backlog = deque(backlog)
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._on_release = on_release
        self._ended = False
        self._released = False
        self.detached = False

    def offer(self, part: StreamPart) -> bool:
        """Enqueue a live part without blocking; False if the consumer is too slow"""

        if self._ended or self.detached:
            return False
        try:
            self._queue.put_nowait(part)
            return True
        except asyncio.QueueFull:
            self.detached = True
            return False

    def end(self):
        """Signal that no more parts will arrive"""

        if self._ended:
            return
        self._ended = True
        try:
            self._queue.put_nowait(_END)
        except asyncio.QueueFull:
            self.detached = True

    def close(self):
        """Stop consuming and release the subscription"""

        self.end()
        self._release()

    @property
    def pending(self) -> int:
        """Parts received but not yet consumed"""
        return len(self._backlog) + self._queue.qsize()

    def _release(self):
        if not self._released:
            self._released = True
            if self._on_release is not None:
                self._on_release(self)

    def __aiter__(self):
        return self

    async def __anext__(self) -> StreamPart:
        if self._backlog:
            return self._backlog.popleft()

        if self._queue.empty() and (self.detached or self._released):
            self._release()
            raise StopAsyncIteration

        item = await self._queue.get()
        if item is _END:
            self._release()
            raise StopAsyncIteration
        return item

    async def collect(self) -> List[StreamPart]:
        return [part async for part in self]


class StreamSession:
    """Ephemeral broadcast state of one generation"""

    def __init__(self, key: StreamKey, chat_id: Optional[str] = None):
        self.key = key
        self.chat_id = chat_id
        self.parts: List[StreamPart] = []
        self.status = StreamStatus.STREAMING
        self.subscribers: List[Subscription] = []
        self.created_at = datetime.now(timezone.utc)

    @property
    def is_terminal(self) -> bool:
        return self.status != StreamStatus.STREAMING


class StreamSink:
    """Producer handle for one stream session"""

    def __init__(self, channel: "DeltaChannel", key: StreamKey):
        self.channel = channel
        self.key = key

    @property
    def document_id(self) -> str:
        return self.key.document_id

    @property
    def generation_id(self) -> str:
        return self.key.generation_id

    @property
    def stream_id(self) -> str:
        return self.key.stream_id

    @property
    def closed(self) -> bool:
        session = self.channel.sessions.get(self.key)
        return session is None or session.is_terminal

    async def write(self, part: StreamPart):
        await self.channel.publish(self.key, part)

    async def write_delta(self, kind: DocumentKind, text: str):
        await self.write(StreamPart.delta(kind, text))

    async def finish(self):
        """Emit the terminal marker and close the session"""

        await self.write(StreamPart(type=StreamPartType.FINISH))
        await self.channel.close(self.key, StreamStatus.DONE)

    async def abort(self, reason: str = ""):
        """Close the session without a terminal marker"""

        if not self.closed:
            await self.channel.close(self.key, StreamStatus.ABORTED, reason=reason)


class DeltaChannel:
    """Per-generation broadcaster of transient document deltas.

    Parts are buffered per active session so late subscribers get the full
    sequence in emission order. With a backend configured, streams can be
    resumed after a disconnect and finished sessions stay in memory for
    ``grace_period`` seconds; without one a finished session is dropped
    as soon as no subscriber remains.
    """

    def __init__(
        self,
        backend: Optional[StreamBackend] = None,
        subscriber_buffer: int = 256,
        grace_period: float = 30.0,
        backend_ttl: int = 3600
    ):
        self.backend = backend
        self.subscriber_buffer = subscriber_buffer
        self.grace_period = grace_period
        self.backend_ttl = backend_ttl
        self.sessions: Dict[StreamKey, StreamSession] = {}
        self.latest_by_document: Dict[str, StreamKey] = {}
        self.watchers: Dict[str, List[Subscription]] = {}

    @property
    def durable(self) -> bool:
        return self.backend is not None

    async def open(
        self,
        document_id: str,
        generation_id: Optional[str] = None,
        chat_id: Optional[str] = None
    ) -> StreamSink:
        """Start a stream session for a generation of ``document_id``"""

        key = StreamKey(document_id, generation_id or uuid.uuid4().hex)
        if key in self.sessions:
            raise StreamTransportError("Stream session already open", {"stream_id": key.stream_id})

        session = StreamSession(key, chat_id)
        self.sessions[key] = session
        self.latest_by_document[document_id] = key

        if self.backend is not None and chat_id is not None:
            await self._backend_call("register", self.backend.register(chat_id, key.stream_id), key)

        agent_logger.log_stream_event(document_id, key.generation_id, "open", {"chat_id": chat_id})
        return StreamSink(self, key)

    async def publish(self, key: StreamKey, part: StreamPart):
        """Buffer a part and fan it out to subscribers"""

        session = self.sessions.get(key)
        if session is None or session.is_terminal:
            raise StreamTransportError("Stream session is closed", {"stream_id": key.stream_id})

        session.parts.append(part)

        for subscription in list(session.subscribers):
            if not subscription.offer(part):
                self._detach(session.subscribers, subscription, key)

        if session.chat_id is not None:
            watchers = self.watchers.get(session.chat_id, [])
            for subscription in list(watchers):
                if not subscription.offer(part):
                    self._detach(watchers, subscription, key)

        if self.backend is not None:
            await self._backend_call("append", self.backend.append(key.stream_id, part), key)

        # Let consumers drain before the next part; only a consumer that
        # falls a full buffer behind is detached
        await asyncio.sleep(0)

    async def close(self, key: StreamKey, status: StreamStatus, reason: str = ""):
        """Move a session to a terminal status"""

        session = self.sessions.get(key)
        if session is None or session.is_terminal:
            return

        session.status = status
        agent_logger.log_stream_event(
            key.document_id, key.generation_id, status.value,
            {"parts": len(session.parts), "reason": reason}
        )

        if self.backend is not None:
            await self._backend_call("set_status", self.backend.set_status(key.stream_id, status.value), key)
            await self._backend_call("expire", self.backend.expire(key.stream_id, self.backend_ttl), key)

        for subscription in list(session.subscribers):
            subscription.end()

        self._schedule_discard(session)

    def subscribe(self, target: Union[StreamKey, str]) -> Optional[Subscription]:
        """Attach to a live or recently finished session.

        ``target`` is a stream key or a document id (its latest session).
        Returns None when no session is held in memory.
        """

        key = target if isinstance(target, StreamKey) else self.latest_by_document.get(target)
        session = self.sessions.get(key) if key is not None else None
        if session is None:
            return None

        subscription = Subscription(
            list(session.parts),
            self.subscriber_buffer,
            on_release=lambda sub: self._release(key, sub)
        )
        if session.is_terminal:
            subscription.end()
        else:
            session.subscribers.append(subscription)
        return subscription

    def watch(self, chat_id: str) -> Subscription:
        """Receive the live parts of every session opened for a conversation"""

        watchers = self.watchers.setdefault(chat_id, [])
        subscription = Subscription([], self.subscriber_buffer, on_release=lambda sub: self._unwatch(chat_id, sub))
        watchers.append(subscription)
        return subscription

    async def resume(self, stream_id: str) -> Optional[Subscription]:
        """Recover an in-progress or finished stream after a disconnect"""

        if self.backend is None:
            return None

        key = StreamKey.parse(stream_id)
        if key in self.sessions:
            return self.subscribe(key)

        try:
            parts = await self.backend.read(stream_id)
        except Exception as e:
            logger.warning("Stream backend read failed", stream_id=stream_id, error=str(e))
            return None
        if parts is None:
            return None

        subscription = Subscription(parts, self.subscriber_buffer)
        subscription.end()
        return subscription

    async def get_active_stream(self, chat_id: str) -> Optional[str]:
        """Most recent resumable stream of a conversation, if any"""

        if self.backend is None:
            return None
        try:
            return await self.backend.latest_stream(chat_id)
        except Exception as e:
            logger.warning("Stream backend lookup failed", chat_id=chat_id, error=str(e))
            return None

    def _detach(self, subscribers: List[Subscription], subscription: Subscription, key: StreamKey):
        if subscription in subscribers:
            subscribers.remove(subscription)
        logger.warning("Detached slow stream subscriber", stream_id=key.stream_id)

    def _release(self, key: StreamKey, subscription: Subscription):
        session = self.sessions.get(key)
        if session is None:
            return
        if subscription in session.subscribers:
            session.subscribers.remove(subscription)
        if session.is_terminal and self.backend is None and not session.subscribers:
            self._discard(key)

    def _unwatch(self, chat_id: str, subscription: Subscription):
        watchers = self.watchers.get(chat_id, [])
        if subscription in watchers:
            watchers.remove(subscription)
        if not watchers:
            self.watchers.pop(chat_id, None)

    def _schedule_discard(self, session: StreamSession):
        if self.backend is None:
            if not session.subscribers:
                self._discard(session.key)
            return

        loop = asyncio.get_running_loop()
        loop.call_later(self.grace_period, self._discard, session.key)

    def _discard(self, key: StreamKey):
        session = self.sessions.pop(key, None)
        if session is None:
            return
        if self.latest_by_document.get(key.document_id) == key:
            del self.latest_by_document[key.document_id]
        agent_logger.log_stream_event(key.document_id, key.generation_id, "discarded")

    async def _backend_call(self, operation: str, call, key: StreamKey):
        """Run a backend write; failures are logged and never reach the producer"""

        try:
            await call
        except Exception as e:
            logger.warning(
                "Stream backend write failed",
                operation=operation,
                stream_id=key.stream_id,
                error=str(e)
            )
