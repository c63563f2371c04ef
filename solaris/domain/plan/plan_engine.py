from typing import Dict, Any, List, Optional
import structlog

from solaris.domain.errors import KindMismatchError, ToolValidationError
from solaris.domain.document.artifact_generator import ArtifactGenerator
from solaris.domain.document.document_store import DocumentStore
from solaris.domain.models.document import Document, DocumentKind, new_document_id
from .plan_document import PlanDocument

logger = structlog.get_logger(__name__)


def check_plan_revision(previous: Document, content: str, description: Optional[str] = None):
    """Reject regenerated plan content that breaks the plan grammar or rules"""

    PlanDocument.parse(content).check_revision(PlanDocument.parse(previous.content), description)


class PlanEngine:
    """Creates and revises plan documents"""

    def __init__(self, store: DocumentStore, artifacts: ArtifactGenerator):
        self.store = store
        self.artifacts = artifacts

    async def create_plan(
        self,
        title: str,
        objective: str,
        steps: List[str],
        owner: str,
        chat_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """Create a new plan with every step pending"""

        if not title.strip():
            raise ToolValidationError("Plan title must not be empty")
        if not steps:
            raise ToolValidationError("A plan needs at least one step")

        plan = PlanDocument.new(title, objective, steps)
        content = plan.render()
        plan_id = new_document_id()

        async def persist() -> Document:
            return await self.store.create_version(
                id=plan_id,
                title=title,
                kind=DocumentKind.PLAN,
                content=content,
                owner=owner
            )

        document = await self.artifacts.publish_existing(
            plan_id, title, DocumentKind.PLAN, content, chat_id=chat_id, persist=persist
        )

        logger.info("Plan created", document_id=document.id, steps=len(steps))
        return {
            "id": document.id,
            "title": document.title,
            "kind": DocumentKind.PLAN.value,
            "message": f'Plan "{title}" created with {len(steps)} steps',
        }

    async def update_plan(
        self,
        id: str,
        description: str,
        owner: str,
        chat_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """Regenerate a plan from its prior content and a change description"""

        if not description.strip():
            raise ToolValidationError("Describe the change to make to the plan")

        document = await self.artifacts.update_document(
            id,
            description,
            owner,
            chat_id=chat_id,
            expected_kind=DocumentKind.PLAN,
            check=lambda previous, content: check_plan_revision(previous, content, description)
        )

        logger.info("Plan updated", document_id=id, version=document.version)
        return {
            "id": document.id,
            "title": document.title,
            "kind": DocumentKind.PLAN.value,
            "message": f'Plan "{document.title}" updated: {description}',
        }

    async def read_plan(self, id: str, owner: str) -> Dict[str, Any]:
        """Latest plan content for its owner"""

        document = await self.store.get_latest_for_owner(id, owner)
        if document.kind != DocumentKind.PLAN:
            raise KindMismatchError("Document is not a plan", {"document_id": id})

        plan = PlanDocument.parse(document.content)
        return {
            "id": document.id,
            "title": document.title,
            "kind": document.kind.value,
            "content": document.content,
            "status": plan.status.value,
            "current_step": plan.current_step,
            "created_at": document.created_at.isoformat(),
        }
