"""
Session-scoped external resources (browser sessions, sandboxes, ...).

Each session owns its handles; nothing is shared through module state.
Handles are acquired lazily and released when a tool asks for it or when
the session ends. Releasing twice is a no-op.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional
import asyncio
import structlog

logger = structlog.get_logger(__name__)


class ResourceHandle(ABC):
    """An external resource with an explicit lifecycle"""

    def __init__(self, name: str):
        self.name = name
        self.acquired = False
        self._lock = asyncio.Lock()

    async def acquire(self):
        async with self._lock:
            if self.acquired:
                return
            await self._open()
            self.acquired = True

    async def release(self):
        async with self._lock:
            if not self.acquired:
                return
            self.acquired = False
            try:
                await self._close()
            except Exception as e:
                logger.warning("Resource cleanup failed", resource=self.name, error=str(e))

    @property
    @abstractmethod
    def resource(self) -> Any:
        """The underlying object; only valid while acquired"""
        pass

    @abstractmethod
    async def _open(self):
        pass

    @abstractmethod
    async def _close(self):
        pass


class SessionResources:
    """The resource handles owned by one session"""

    def __init__(self, session_id: str):
        self.session_id = session_id
        self.handles: Dict[str, ResourceHandle] = {}

    async def get(self, name: str, factory: Callable[[], ResourceHandle]) -> ResourceHandle:
        """Return the named handle, creating and acquiring it on first use"""

        handle = self.handles.get(name)
        if handle is None:
            handle = self.handles[name] = factory()
        await handle.acquire()
        return handle

    def peek(self, name: str) -> Optional[ResourceHandle]:
        return self.handles.get(name)

    async def release(self, name: str):
        """Release one handle, e.g. when a tool requests close"""

        handle = self.handles.pop(name, None)
        if handle is not None:
            await handle.release()

    async def release_all(self):
        for name in list(self.handles):
            await self.release(name)
        logger.debug("Released session resources", session_id=self.session_id)
