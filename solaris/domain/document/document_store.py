from typing import Dict, List, Optional, Iterable
import asyncio
from collections import defaultdict
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from functools import wraps
import structlog

from solaris.domain.errors import (
    AgentError, AuthorizationError, ConflictError, NotFoundError, StorageError
)
from solaris.domain.models.document import Document, DocumentKind, Suggestion, new_document_id
from solaris.infrastructure.observability.logging import agent_logger
from .repository import DocumentRepository

logger = structlog.get_logger(__name__)


def storage_operation(description: str):
    """Re-raise unexpected repository failures as a retryable StorageError"""

    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except AgentError:
                raise
            except Exception as e:
                logger.error("Storage operation failed", operation=description, error=str(e))
                raise StorageError(f"Failed to {description}") from e
        return wrapper
    return decorator


def latest_per_id(rows: Iterable[Document]) -> List[Document]:
    """Keep the first row seen per id from a newest-first sequence"""

    seen = set()
    unique = []
    for row in rows:
        if row.id in seen:
            continue
        seen.add(row.id)
        unique.append(row)
    return unique


class DocumentStore:
    """Append-only versioned document store.

    Readers always observe the latest version of an id. Writes to one id are
    serialized, and callers that read-then-write pass the version they read
    as ``expected_version`` so a concurrent writer is detected instead of
    silently overwritten.
    """

    def __init__(self, repository: DocumentRepository):
        self.repository = repository
        self._id_locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = defaultdict(int)

    @asynccontextmanager
    async def _locked(self, document_id: str):
        """Serialize mutations of one id; the lock is dropped once nobody holds or awaits it"""

        lock = self._id_locks.setdefault(document_id, asyncio.Lock())
        self._lock_users[document_id] += 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[document_id] -= 1
            if not self._lock_users[document_id]:
                del self._lock_users[document_id]
                del self._id_locks[document_id]

    @storage_operation("save document")
    async def create_version(
        self,
        title: str,
        kind: DocumentKind,
        content: str,
        owner: str,
        id: Optional[str] = None,
        project_id: Optional[str] = None,
        expected_version: Optional[int] = None
    ) -> Document:
        """Create a new version, minting an id when none is given"""

        document_id = id or new_document_id()

        async with self._locked(document_id):
            versions = await self.repository.fetch_versions(document_id)
            latest = versions[-1] if versions else None

            if latest is not None and latest.owner != owner:
                raise AuthorizationError("Forbidden", {"document_id": document_id})

            current_version = latest.version if latest else 0
            if expected_version is not None and expected_version != current_version:
                raise ConflictError(
                    "Document was modified concurrently",
                    {"document_id": document_id, "expected": expected_version, "actual": current_version}
                )

            created_at = datetime.now(timezone.utc)
            if latest is not None and created_at <= latest.created_at:
                created_at = latest.created_at + timedelta(microseconds=1)

            document = Document(
                id=document_id,
                version=current_version + 1,
                title=title,
                kind=kind,
                content=content,
                owner=owner,
                created_at=created_at,
                project_id=project_id if project_id is not None else (latest.project_id if latest else None)
            )
            stored = await self.repository.insert_version(document)

        agent_logger.log_document_version(
            document_id=stored.id,
            kind=stored.kind.value,
            version=stored.version,
            owner=owner
        )
        return stored

    @storage_operation("get document by id")
    async def get_latest(self, id: str) -> Optional[Document]:
        """Latest version of a document, or None"""

        versions = await self.repository.fetch_versions(id)
        return versions[-1] if versions else None

    async def get_latest_for_owner(self, id: str, owner: str) -> Document:
        """Latest version, enforcing ownership"""

        document = await self.get_latest(id)
        if document is None:
            raise NotFoundError("Document not found", {"document_id": id})
        if document.owner != owner:
            logger.warning("Document access denied", document_id=id, owner=owner)
            raise AuthorizationError("Forbidden", {"document_id": id})
        return document

    @storage_operation("get documents by id")
    async def list_versions(self, id: str) -> List[Document]:
        """All versions of a document ordered by creation time"""

        return await self.repository.fetch_versions(id)

    @storage_operation("delete documents by id after timestamp")
    async def delete_versions_after(self, id: str, timestamp: datetime) -> List[Document]:
        """Discard edit history newer than ``timestamp``"""

        async with self._locked(id):
            # Versions first: a failure in between leaves orphaned suggestions, which read as stale
            deleted = await self.repository.delete_versions_after(id, timestamp)
            await self.repository.delete_suggestions_after(id, timestamp)

        logger.info("Deleted document versions", document_id=id, count=len(deleted))
        return deleted

    @storage_operation("list documents")
    async def list_by_owner(
        self,
        owner: str,
        kind: Optional[DocumentKind] = None,
        limit: int = 20
    ) -> List[Document]:
        """Latest version of each document an owner has"""

        rows = await self.repository.fetch_by_owner(owner, kind)
        return latest_per_id(rows)[:limit]

    @storage_operation("search documents")
    async def search(
        self,
        owner: str,
        query: Optional[str] = None,
        kind: Optional[DocumentKind] = None,
        limit: int = 10
    ) -> List[Document]:
        """Search an owner's documents by title or content"""

        rows = latest_per_id(await self.repository.fetch_by_owner(owner, kind))

        if query:
            needle = query.lower()
            rows = [
                doc for doc in rows
                if needle in doc.title.lower() or needle in (doc.content or "").lower()
            ]

        return rows[:limit]

    @storage_operation("get documents by project id")
    async def list_by_project(
        self,
        project_id: str,
        owner: Optional[str] = None,
        limit: Optional[int] = 50
    ) -> List[Document]:
        rows = await self.repository.fetch_by_project(project_id)
        documents = latest_per_id(rows)
        if owner is not None:
            documents = [d for d in documents if d.owner == owner]
        return documents[:limit]

    @storage_operation("unlink documents from project")
    async def detach_project(self, project_id: str) -> int:
        """Unlink every document from a project that is being deleted"""

        return await self.repository.clear_project(project_id)

    @storage_operation("delete documents by owner")
    async def delete_by_owner(self, owner: str) -> int:
        """Remove every document of an owner"""

        deleted = await self.repository.delete_by_owner(owner)
        logger.info("Deleted owner documents", owner=owner, count=deleted)
        return deleted

    @storage_operation("save suggestions")
    async def save_suggestions(self, suggestions: List[Suggestion]) -> None:
        await self.repository.insert_suggestions(suggestions)

    @storage_operation("get suggestions by document id")
    async def get_suggestions(self, document_id: str, include_stale: bool = False) -> List[Suggestion]:
        """Suggestions for a document, by default only those made against its latest version"""

        suggestions = await self.repository.fetch_suggestions(document_id)
        if include_stale:
            return suggestions

        versions = await self.repository.fetch_versions(document_id)
        if not versions:
            return []
        latest = versions[-1]
        return [s for s in suggestions if not s.is_stale(latest)]
