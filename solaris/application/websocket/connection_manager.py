from typing import Dict, Optional
from fastapi import WebSocket
import asyncio
from datetime import datetime, timezone
import structlog

from .schema.events import BaseEvent, ConnectionEvent, ErrorEvent

logger = structlog.get_logger(__name__)


class ConnectionManager:
    """Manages WebSocket connections and message routing"""

    def __init__(self, idle_timeout: float = 300.0):
        self.active_connections: Dict[str, WebSocket] = {}
        self.session_metadata: Dict[str, Dict] = {}
        self.idle_timeout = idle_timeout
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket, session_id: str, user_id: str):
        """Accept a new WebSocket connection"""
        await websocket.accept()

        async with self._lock:
            now = datetime.now(timezone.utc)
            self.active_connections[session_id] = websocket
            self.session_metadata[session_id] = {
                "user_id": user_id,
                "connected_at": now,
                "last_activity": now
            }

        await self.send_event(
            session_id,
            ConnectionEvent(
                status="connected",
                session_id=session_id
            )
        )

        logger.info("WebSocket connected", session_id=session_id, user_id=user_id)

    async def disconnect(self, session_id: str):
        """Disconnect a WebSocket connection"""
        async with self._lock:
            if session_id in self.active_connections:
                ws = self.active_connections.pop(session_id)
                self.session_metadata.pop(session_id, None)

                try:
                    await ws.close()
                except Exception as e:
                    logger.debug("WebSocket already closed", session_id=session_id, error=str(e))

        logger.info("WebSocket disconnected", session_id=session_id)

    async def send_event(self, session_id: str, event: BaseEvent) -> bool:
        """Send an event to a specific session"""
        if session_id not in self.active_connections:
            logger.warning("Attempted to send to disconnected session", session_id=session_id)
            return False

        websocket = self.active_connections[session_id]

        try:
            await websocket.send_json(event.model_dump(mode="json"))

            if session_id in self.session_metadata:
                self.session_metadata[session_id]["last_activity"] = datetime.now(timezone.utc)

            return True

        except Exception as e:
            logger.error("Failed to send event", session_id=session_id, error=str(e))
            await self.disconnect(session_id)
            return False

    async def send_error(self, session_id: str, error_payload: Dict, error_code: Optional[str] = None):
        """Send an error event to a session"""
        error_event = ErrorEvent(
            payload=error_payload,
            error_code=error_code,
            session_id=session_id
        )
        await self.send_event(session_id, error_event)

    async def disconnect_stale(self) -> int:
        """Disconnect sessions idle for longer than ``idle_timeout``"""

        now = datetime.now(timezone.utc)
        stale_sessions = [
            session_id
            for session_id, metadata in list(self.session_metadata.items())
            if (now - metadata["last_activity"]).total_seconds() > self.idle_timeout
        ]

        for session_id in stale_sessions:
            logger.warning("Disconnecting stale session", session_id=session_id)
            await self.disconnect(session_id)

        return len(stale_sessions)

    async def health_check(self, interval: float = 60.0):
        """Periodic health check to clean up stale connections"""
        while True:
            try:
                await self.disconnect_stale()
            except Exception as e:
                logger.error("Health check error", error=str(e))

            await asyncio.sleep(interval)
