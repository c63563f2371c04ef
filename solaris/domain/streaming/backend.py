from abc import ABC, abstractmethod
from typing import List, Optional

from .stream_parts import StreamPart


class StreamBackend(ABC):
    """Durable transport that lets streams outlive a subscriber connection.

    Keys are opaque stream ids produced by the delta channel.
    """

    @abstractmethod
    async def register(self, chat_id: str, stream_id: str) -> None:
        """Record a stream as the newest one of a conversation"""
        pass

    @abstractmethod
    async def latest_stream(self, chat_id: str) -> Optional[str]:
        """Newest stream id of a conversation that has not expired"""
        pass

    @abstractmethod
    async def append(self, stream_id: str, part: StreamPart) -> None:
        pass

    @abstractmethod
    async def read(self, stream_id: str) -> Optional[List[StreamPart]]:
        """All stored parts in emission order, or None if unknown or expired"""
        pass

    @abstractmethod
    async def set_status(self, stream_id: str, status: str) -> None:
        pass

    @abstractmethod
    async def get_status(self, stream_id: str) -> Optional[str]:
        pass

    @abstractmethod
    async def expire(self, stream_id: str, ttl: int) -> None:
        """Schedule removal of a finished stream"""
        pass
