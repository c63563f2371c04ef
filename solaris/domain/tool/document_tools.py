from typing import Dict, Any, List, Optional
from pydantic import BaseModel, Field

from solaris.domain.document.artifact_generator import ArtifactGenerator
from solaris.domain.document.document_store import DocumentStore
from solaris.domain.models.document import DocumentKind
from solaris.domain.plan.plan_engine import PlanEngine
from .tool_registry import Tool, ToolContext, ToolRegistry


class CreateDocumentArgs(BaseModel):
    title: str = Field(min_length=1, description="Title or topic of the document")
    kind: DocumentKind = Field(description="Kind of document to create")
    project_id: Optional[str] = Field(None, description="Project to file the document under")


class UpdateDocumentArgs(BaseModel):
    id: str = Field(min_length=1, description="The document ID to update")
    description: str = Field(min_length=1, description="Description of the changes to make")


class DocumentIdArgs(BaseModel):
    id: str = Field(min_length=1, description="The document ID")


class ListDocumentsArgs(BaseModel):
    kind: Optional[DocumentKind] = Field(None, description="Filter by document kind")
    limit: int = Field(20, ge=1, le=100, description="Max results to return")


class SearchDocumentsArgs(BaseModel):
    query: Optional[str] = Field(None, description="Search term to match against title or content")
    kind: Optional[DocumentKind] = Field(None, description="Filter by document kind")
    limit: int = Field(10, ge=1, le=100, description="Max results to return")


class CreatePlanArgs(BaseModel):
    title: str = Field(min_length=1, description="Title of the plan")
    objective: str = Field(description="The objective/goal this plan is for")
    steps: List[str] = Field(min_length=1, description="List of planned steps to accomplish the goal")


class UpdatePlanArgs(BaseModel):
    id: str = Field(min_length=1, description="The plan document ID to update")
    description: str = Field(
        min_length=1,
        description="Description of changes (e.g. 'Mark step 3 as complete', 'Add new step: Deploy', 'Update status to completed')"
    )


class SearchToolsArgs(BaseModel):
    query: str = Field(min_length=1, description="Capability to look for")


def build_document_tools(store: DocumentStore, artifacts: ArtifactGenerator, plans: PlanEngine) -> List[Tool]:
    """Document and plan tools bound to the given services"""

    async def create_document(args: CreateDocumentArgs, context: ToolContext) -> Dict[str, Any]:
        document = await artifacts.create_document(
            args.title, args.kind, context.owner, chat_id=context.session_id, project_id=args.project_id
        )
        return {
            "id": document.id,
            "title": document.title,
            "kind": document.kind.value,
            "content": "A document was created and is now visible to the user.",
        }

    async def update_document(args: UpdateDocumentArgs, context: ToolContext) -> Dict[str, Any]:
        document = await artifacts.update_document(args.id, args.description, context.owner, chat_id=context.session_id)
        return {
            "id": document.id,
            "title": document.title,
            "kind": document.kind.value,
            "content": "The document has been updated successfully.",
        }

    async def read_document(args: DocumentIdArgs, context: ToolContext) -> Dict[str, Any]:
        document = await store.get_latest_for_owner(args.id, context.owner)
        return {
            "id": document.id,
            "title": document.title,
            "kind": document.kind.value,
            "content": document.content,
            "created_at": document.created_at.isoformat(),
        }

    async def list_documents(args: ListDocumentsArgs, context: ToolContext) -> Dict[str, Any]:
        documents = await store.list_by_owner(context.owner, kind=args.kind, limit=args.limit)
        return {"documents": [doc.summary() for doc in documents], "count": len(documents)}

    async def search_documents(args: SearchDocumentsArgs, context: ToolContext) -> Dict[str, Any]:
        documents = await store.search(context.owner, query=args.query, kind=args.kind, limit=args.limit)
        return {"documents": [doc.summary(preview_chars=200) for doc in documents], "count": len(documents)}

    async def create_plan(args: CreatePlanArgs, context: ToolContext) -> Dict[str, Any]:
        return await plans.create_plan(args.title, args.objective, args.steps, context.owner, chat_id=context.session_id)

    async def update_plan(args: UpdatePlanArgs, context: ToolContext) -> Dict[str, Any]:
        return await plans.update_plan(args.id, args.description, context.owner, chat_id=context.session_id)

    async def read_plan(args: DocumentIdArgs, context: ToolContext) -> Dict[str, Any]:
        return await plans.read_plan(args.id, context.owner)

    return [
        Tool(
            name="create_document",
            description="Create a document (text, code, sheet, presentation, webview, image) displayed as an artifact.",
            args_model=CreateDocumentArgs,
            handler=create_document,
            category="document"
        ),
        Tool(
            name="update_document",
            description="Rewrite an existing document from a description of the changes.",
            args_model=UpdateDocumentArgs,
            handler=update_document,
            category="document"
        ),
        Tool(
            name="read_document",
            description="Read the full content of a document by its ID. Returns the latest version.",
            args_model=DocumentIdArgs,
            handler=read_document,
            category="document"
        ),
        Tool(
            name="list_documents",
            description="List the user's documents with optional filtering by kind.",
            args_model=ListDocumentsArgs,
            handler=list_documents,
            category="document"
        ),
        Tool(
            name="search_documents",
            description="Search existing documents by title, content, or kind. Returns a content preview.",
            args_model=SearchDocumentsArgs,
            handler=search_documents,
            category="document"
        ),
        Tool(
            name="create_plan",
            description="Create a plan document for tracking a multi-step task. Use this first for any complex task.",
            args_model=CreatePlanArgs,
            handler=create_plan,
            category="plan"
        ),
        Tool(
            name="update_plan",
            description="Update an existing plan after completing a step: mark progress, add notes, adjust the plan.",
            args_model=UpdatePlanArgs,
            handler=update_plan,
            category="plan"
        ),
        Tool(
            name="read_plan",
            description="Read the current state of a plan document before continuing work.",
            args_model=DocumentIdArgs,
            handler=read_plan,
            category="plan"
        ),
    ]


def build_discovery_tools(registry: ToolRegistry) -> List[Tool]:
    """Tools that let the model look up other tools"""

    async def search_tools(args: SearchToolsArgs, context: ToolContext) -> Dict[str, Any]:
        matches = registry.search_tools(args.query)
        return {"tools": matches, "count": len(matches)}

    return [
        Tool(
            name="search_tools",
            description="Search for available tools by capability.",
            args_model=SearchToolsArgs,
            handler=search_tools,
            category="discovery"
        )
    ]
