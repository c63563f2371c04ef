from typing import Optional
import structlog

from solaris.application.websocket.connection_manager import ConnectionManager
from solaris.domain.context.checkpoint import HistoryCompactor
from solaris.domain.context.context_manager import ContextManager
from solaris.domain.context.memory.runtime_memory import ConversationMemory
from solaris.domain.document.artifact_generator import ArtifactGenerator
from solaris.domain.document.document_store import DocumentStore
from solaris.domain.document.repository import DocumentRepository
from solaris.domain.models.chat_model import ChatModel, DocumentWriter
from solaris.domain.orchestration.core.session_orchestrator import SessionOrchestrator
from solaris.domain.plan.plan_engine import PlanEngine
from solaris.domain.streaming.backend import StreamBackend
from solaris.domain.streaming.delta_channel import DeltaChannel
from solaris.domain.streaming.streaming_handler import StreamingHandler
from solaris.domain.tool.document_tools import build_discovery_tools, build_document_tools
from solaris.domain.tool.tool_executor import ToolExecutor
from solaris.domain.tool.tool_registry import ToolRegistry
from solaris.infrastructure.config.settings import Settings
from solaris.infrastructure.persistence.memory_repository import InMemoryDocumentRepository
from solaris.infrastructure.streaming.memory_backend import InMemoryStreamBackend

logger = structlog.get_logger(__name__)


class Container:
    """Wires the agent core from settings and the external collaborators"""

    def __init__(
        self,
        model: ChatModel,
        writer: DocumentWriter,
        settings: Optional[Settings] = None,
        repository: Optional[DocumentRepository] = None,
        stream_backend: Optional[StreamBackend] = None
    ):
        self.settings = settings or Settings()

        if stream_backend is None and self.settings.stream_durable:
            stream_backend = InMemoryStreamBackend(default_ttl=self.settings.stream_ttl_seconds)

        self.store = DocumentStore(repository or InMemoryDocumentRepository())
        self.channel = DeltaChannel(
            backend=stream_backend,
            subscriber_buffer=self.settings.stream_buffer,
            grace_period=self.settings.stream_grace_seconds,
            backend_ttl=self.settings.stream_ttl_seconds
        )
        self.artifacts = ArtifactGenerator(self.store, self.channel, writer)
        self.plans = PlanEngine(self.store, self.artifacts)

        self.context_manager = ContextManager(
            HistoryCompactor(
                threshold=self.settings.compaction_threshold,
                recent_count=self.settings.recent_messages,
                max_digest_lines=self.settings.digest_lines
            ),
            ConversationMemory(max_sessions=self.settings.max_sessions)
        )

        self.registry = ToolRegistry()
        self.registry.register_tools(build_document_tools(self.store, self.artifacts, self.plans))
        self.registry.register_tools(build_discovery_tools(self.registry))
        self.executor = ToolExecutor(self.registry, uniform_access_errors=self.settings.uniform_access_errors)

        self.orchestrator = SessionOrchestrator(
            model,
            self.context_manager,
            self.registry,
            executor=self.executor,
            max_tool_steps=self.settings.max_tool_steps
        )

        self.connection_manager = ConnectionManager()
        self.streaming_handler = StreamingHandler(self.channel, self.connection_manager)

        logger.info(
            "Container ready",
            tools=len(self.registry.tools),
            durable_streams=self.channel.durable
        )
