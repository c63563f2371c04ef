from typing import Dict
import structlog

from solaris.domain.models.chat_model import DocumentWriter
from solaris.domain.models.document import Document, DocumentKind
from solaris.domain.streaming.delta_channel import StreamSink
from .prompts import SYSTEM_PROMPTS, update_document_prompt

logger = structlog.get_logger(__name__)


class DocumentHandler:
    """Generates the content of one document kind while streaming deltas.

    Both hooks write ``data-<kind>Delta`` fragments to the sink and return the
    full content; persisting it is the caller's job.
    """

    def __init__(self, kind: DocumentKind):
        self.kind = kind

    async def on_create(self, writer: DocumentWriter, title: str, sink: StreamSink) -> str:
        """Generate a new document from its title"""

        return await self._generate(writer, SYSTEM_PROMPTS[self.kind], title, sink)

    async def on_update(self, writer: DocumentWriter, document: Document, description: str, sink: StreamSink) -> str:
        """Regenerate a document from its prior content and a change description"""

        system = update_document_prompt(document.content, self.kind)
        return await self._generate(writer, system, description, sink)

    async def _generate(self, writer: DocumentWriter, system: str, prompt: str, sink: StreamSink) -> str:
        draft = []
        async for text in writer.stream(system, prompt):
            if not text:
                continue
            draft.append(text)
            await sink.write_delta(self.kind, text)

        content = "".join(draft)
        logger.debug("Generated document content", kind=self.kind.value, chars=len(content))
        return content


HANDLERS: Dict[DocumentKind, DocumentHandler] = {kind: DocumentHandler(kind) for kind in DocumentKind}


def handler_for(kind: DocumentKind) -> DocumentHandler:
    return HANDLERS[DocumentKind(kind)]
