from abc import ABC, abstractmethod
from typing import List, Optional
from datetime import datetime

from solaris.domain.models.document import Document, DocumentKind, Suggestion


class DocumentRepository(ABC):
    """Persistence collaborator for document versions and suggestions.

    Implementations must make ``insert_version`` atomic: a version is either
    fully stored or not stored at all.
    """

    @abstractmethod
    async def insert_version(self, document: Document) -> Document:
        """Store a new version row"""
        pass

    @abstractmethod
    async def fetch_versions(self, document_id: str) -> List[Document]:
        """All versions of an id, oldest first"""
        pass

    @abstractmethod
    async def fetch_by_owner(self, owner: str, kind: Optional[DocumentKind] = None) -> List[Document]:
        """All version rows of an owner, newest first"""
        pass

    @abstractmethod
    async def fetch_by_project(self, project_id: str) -> List[Document]:
        """All version rows in a project, newest first"""
        pass

    @abstractmethod
    async def delete_versions_after(self, document_id: str, timestamp: datetime) -> List[Document]:
        """Delete versions created strictly after ``timestamp``; return them"""
        pass

    @abstractmethod
    async def clear_project(self, project_id: str) -> int:
        """Unset the project of every version in it; return rows touched"""
        pass

    @abstractmethod
    async def delete_by_owner(self, owner: str) -> int:
        """Delete every version and suggestion of an owner; return versions deleted"""
        pass

    @abstractmethod
    async def insert_suggestions(self, suggestions: List[Suggestion]) -> None:
        pass

    @abstractmethod
    async def fetch_suggestions(self, document_id: str) -> List[Suggestion]:
        pass

    @abstractmethod
    async def delete_suggestions_after(self, document_id: str, timestamp: datetime) -> int:
        """Delete suggestions whose target version is newer than ``timestamp``"""
        pass
