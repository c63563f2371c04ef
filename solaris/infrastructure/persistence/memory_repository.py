from typing import Dict, List, Optional
import asyncio
from collections import defaultdict
from datetime import datetime

from solaris.domain.document.repository import DocumentRepository
from solaris.domain.models.document import Document, DocumentKind, Suggestion


class InMemoryDocumentRepository(DocumentRepository):
    """In-process document repository, one list of versions per id"""

    def __init__(self):
        self.versions: Dict[str, List[Document]] = defaultdict(list)
        self.suggestions: Dict[str, List[Suggestion]] = defaultdict(list)
        self._lock = asyncio.Lock()

    async def insert_version(self, document: Document) -> Document:
        async with self._lock:
            self.versions[document.id].append(document)
            return document

    async def fetch_versions(self, document_id: str) -> List[Document]:
        async with self._lock:
            return sorted(self.versions.get(document_id, []), key=_version_order)

    async def fetch_by_owner(self, owner: str, kind: Optional[DocumentKind] = None) -> List[Document]:
        async with self._lock:
            rows = [
                doc for docs in self.versions.values() for doc in docs
                if doc.owner == owner and (kind is None or doc.kind == kind)
            ]
        return sorted(rows, key=_version_order, reverse=True)

    async def fetch_by_project(self, project_id: str) -> List[Document]:
        async with self._lock:
            rows = [
                doc for docs in self.versions.values() for doc in docs
                if doc.project_id == project_id
            ]
        return sorted(rows, key=_version_order, reverse=True)

    async def delete_versions_after(self, document_id: str, timestamp: datetime) -> List[Document]:
        async with self._lock:
            kept, deleted = [], []
            for doc in self.versions.get(document_id, []):
                (deleted if doc.created_at > timestamp else kept).append(doc)
            if kept:
                self.versions[document_id] = kept
            else:
                self.versions.pop(document_id, None)
            return deleted

    async def clear_project(self, project_id: str) -> int:
        async with self._lock:
            touched = 0
            for document_id, docs in self.versions.items():
                updated = []
                for doc in docs:
                    if doc.project_id == project_id:
                        doc = doc.model_copy(update={"project_id": None})
                        touched += 1
                    updated.append(doc)
                self.versions[document_id] = updated
            return touched

    async def delete_by_owner(self, owner: str) -> int:
        async with self._lock:
            owned = [doc_id for doc_id, docs in self.versions.items() if docs and docs[0].owner == owner]
            deleted = 0
            for document_id in owned:
                deleted += len(self.versions.pop(document_id))
                self.suggestions.pop(document_id, None)
            for document_id in list(self.suggestions):
                self.suggestions[document_id] = [s for s in self.suggestions[document_id] if s.owner != owner]
            return deleted

    async def insert_suggestions(self, suggestions: List[Suggestion]) -> None:
        async with self._lock:
            for suggestion in suggestions:
                self.suggestions[suggestion.document_id].append(suggestion)

    async def fetch_suggestions(self, document_id: str) -> List[Suggestion]:
        async with self._lock:
            return list(self.suggestions.get(document_id, []))

    async def delete_suggestions_after(self, document_id: str, timestamp: datetime) -> int:
        async with self._lock:
            existing = self.suggestions.get(document_id, [])
            kept = [s for s in existing if s.document_created_at <= timestamp]
            self.suggestions[document_id] = kept
            return len(existing) - len(kept)


def _version_order(doc: Document):
    return (doc.created_at, doc.version)
