from typing import Dict, Optional, Set, Tuple
import asyncio
import structlog

from solaris.application.websocket.connection_manager import ConnectionManager
from solaris.application.websocket.schema.events import StreamPartEvent
from .delta_channel import DeltaChannel, Subscription

logger = structlog.get_logger(__name__)


class StreamingHandler:
    """Relays the document stream parts of a conversation to its WebSocket client"""

    def __init__(self, channel: DeltaChannel, connection_manager: Optional[ConnectionManager] = None):
        self.channel = channel
        self.connection_manager = connection_manager or ConnectionManager()
        self.streaming_sessions: Dict[str, Tuple[Subscription, asyncio.Task]] = {}
        self.sending: Set[str] = set()

    def start(self, session_id: str) -> asyncio.Task:
        """Start relaying parts of every stream opened for ``session_id``"""

        entry = self.streaming_sessions.get(session_id)
        if entry is not None and not entry[1].done():
            return entry[1]

        subscription = self.channel.watch(session_id)
        task = asyncio.create_task(self._relay(session_id, subscription))
        self.streaming_sessions[session_id] = (subscription, task)
        return task

    async def _relay(self, session_id: str, subscription: Subscription):
        relayed = 0
        while True:
            sent = True
            try:
                async for part in subscription:
                    event = StreamPartEvent(session_id=session_id, payload=part.to_wire())
                    self.sending.add(session_id)
                    try:
                        sent = await self.connection_manager.send_event(session_id, event)
                    finally:
                        self.sending.discard(session_id)
                    if not sent:
                        break
                    relayed += 1
            finally:
                subscription.close()

            entry = self.streaming_sessions.get(session_id)
            if not sent or not subscription.detached or entry is None or entry[0] is not subscription:
                break

            # Parts of the overflowing stream are lost; later streams still reach the client
            logger.warning("Stream relay fell behind and was detached", session_id=session_id, relayed=relayed)
            subscription = self.channel.watch(session_id)
            self.streaming_sessions[session_id] = (subscription, entry[1])

        logger.debug("Stream relay ended", session_id=session_id, relayed=relayed)

    async def flush(self, session_id: str, timeout: float = 5.0):
        """Wait until every part received so far has been sent to the client"""

        if session_id not in self.streaming_sessions:
            return

        def pending() -> int:
            entry = self.streaming_sessions.get(session_id)
            if entry is None or entry[1].done():
                return 0
            return entry[0].pending + (1 if session_id in self.sending else 0)

        async def drained():
            while pending():
                await asyncio.sleep(0.01)

        try:
            await asyncio.wait_for(drained(), timeout)
        except asyncio.TimeoutError:
            logger.warning("Stream relay flush timed out", session_id=session_id, pending=pending())

    async def stop(self, session_id: str):
        """Stop relaying and wait for buffered parts to be flushed"""

        entry = self.streaming_sessions.pop(session_id, None)
        if entry is None:
            return

        subscription, task = entry
        subscription.end()
        await task
