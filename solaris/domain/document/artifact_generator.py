from typing import Callable, Optional
import re
import structlog

from solaris.domain.errors import KindMismatchError
from solaris.domain.models.chat_model import DocumentWriter
from solaris.domain.models.document import Document, DocumentKind, new_document_id
from solaris.domain.streaming.delta_channel import DeltaChannel, StreamSink
from solaris.domain.streaming.stream_parts import StreamPart, StreamPartType
from .document_store import DocumentStore
from .handlers import handler_for

logger = structlog.get_logger(__name__)

_WORD_RE = re.compile(r"\S+\s*|\s+")

# (previous version, regenerated content) -> raises when the content is unacceptable
RevisionCheck = Callable[[Document, str], None]


def word_chunks(content: str):
    """Split content into word-sized fragments that concatenate back to it"""
    return _WORD_RE.findall(content)


class ArtifactGenerator:
    """Runs document-producing generations: stream deltas, then persist.

    The persisted full content is the source of truth. It is written before
    the ``data-finish`` marker, so a consumer that saw the marker can read
    the final version from the store.
    """

    def __init__(self, store: DocumentStore, channel: DeltaChannel, writer: DocumentWriter):
        self.store = store
        self.channel = channel
        self.writer = writer

    async def create_document(
        self,
        title: str,
        kind: DocumentKind,
        owner: str,
        chat_id: Optional[str] = None,
        project_id: Optional[str] = None
    ) -> Document:
        """Generate and store a brand-new document"""

        document_id = new_document_id()
        sink = await self.channel.open(document_id, chat_id=chat_id)

        async def generate() -> Document:
            await self.announce(sink, title, kind)
            content = await handler_for(kind).on_create(self.writer, title, sink)
            return await self.store.create_version(
                id=document_id,
                title=title,
                kind=kind,
                content=content,
                owner=owner,
                project_id=project_id
            )

        return await self._run(sink, generate)

    async def update_document(
        self,
        id: str,
        description: str,
        owner: str,
        chat_id: Optional[str] = None,
        expected_kind: Optional[DocumentKind] = None,
        check: Optional[RevisionCheck] = None
    ) -> Document:
        """Regenerate a document as a new version of the same id"""

        document = await self.store.get_latest_for_owner(id, owner)
        if expected_kind is not None and document.kind != expected_kind:
            raise KindMismatchError(
                f"Document is not a {expected_kind.value}",
                {"document_id": id, "kind": document.kind.value}
            )

        sink = await self.channel.open(id, chat_id=chat_id)

        async def generate() -> Document:
            await self.announce(sink, document.title, document.kind)
            content = await handler_for(document.kind).on_update(self.writer, document, description, sink)
            if check is not None:
                check(document, content)
            return await self.store.create_version(
                id=id,
                title=document.title,
                kind=document.kind,
                content=content,
                owner=owner,
                expected_version=document.version
            )

        return await self._run(sink, generate)

    async def publish_existing(
        self,
        document_id: str,
        title: str,
        kind: DocumentKind,
        content: str,
        chat_id: Optional[str] = None,
        persist: Optional[Callable] = None
    ):
        """Replay already-known content as word-chunked deltas.

        Keeps the typing presentation for content that did not come from a
        model. ``persist`` runs before the terminal marker.
        """

        sink = await self.channel.open(document_id, chat_id=chat_id)

        async def replay():
            await self.announce(sink, title, kind)
            for chunk in word_chunks(content):
                await sink.write_delta(kind, chunk)
            if persist is not None:
                return await persist()
            return None

        return await self._run(sink, replay)

    async def announce(self, sink: StreamSink, title: str, kind: DocumentKind):
        """Artifact metadata parts that precede the deltas"""

        await sink.write(StreamPart(type=StreamPartType.ID, data=sink.document_id))
        await sink.write(StreamPart(type=StreamPartType.TITLE, data=title))
        await sink.write(StreamPart(type=StreamPartType.KIND, data=kind.value))
        await sink.write(StreamPart(type=StreamPartType.CLEAR))

    async def _run(self, sink: StreamSink, generate):
        finished = False
        try:
            result = await generate()
            finished = True
        finally:
            if not finished:
                logger.warning("Generation failed, aborting stream", stream_id=sink.stream_id)
                await sink.abort("generation failed")

        await sink.finish()
        return result
