from typing import Annotated, Any, AsyncIterator, Dict, List
from fastapi import APIRouter, Depends, Header, HTTPException, Request
from fastapi.responses import Response, StreamingResponse
import json
import structlog

from solaris.container import Container
from solaris.domain.errors import AuthorizationError
from solaris.domain.streaming.delta_channel import Subscription

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api")


def get_container(request: Request) -> Container:
    return request.app.state.container


async def get_user_id(x_user_id: Annotated[str, Header()] = "") -> str:
    """Caller identity, established by the upstream auth layer"""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    return x_user_id


async def _sse(subscription: Subscription) -> AsyncIterator[str]:
    try:
        async for part in subscription:
            yield f"data: {json.dumps(part.to_wire(), ensure_ascii=False)}\n\n"
    finally:
        subscription.close()


@router.get("/chat/{chat_id}/stream")
async def resume_chat_stream(
    chat_id: str,
    user_id: Annotated[str, Depends(get_user_id)],
    container: Annotated[Container, Depends(get_container)]
):
    """Resume the latest document stream of a conversation"""

    stream_id = await container.channel.get_active_stream(chat_id)
    if stream_id is None:
        return Response(status_code=204)

    subscription = await container.channel.resume(stream_id)
    if subscription is None:
        return Response(status_code=204)

    logger.info("Resuming stream", chat_id=chat_id, stream_id=stream_id, user_id=user_id)
    return StreamingResponse(
        _sse(subscription),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Stream-Id": stream_id}
    )


@router.get("/documents/{document_id}")
async def get_document(
    document_id: str,
    user_id: Annotated[str, Depends(get_user_id)],
    container: Annotated[Container, Depends(get_container)]
) -> Dict[str, Any]:
    """Latest version of a document owned by the caller"""

    document = await container.store.get_latest_for_owner(document_id, user_id)
    return document.model_dump(mode="json")


@router.get("/documents/{document_id}/versions")
async def list_document_versions(
    document_id: str,
    user_id: Annotated[str, Depends(get_user_id)],
    container: Annotated[Container, Depends(get_container)]
) -> List[Dict[str, Any]]:
    """Every version of a document owned by the caller, oldest first"""

    await container.store.get_latest_for_owner(document_id, user_id)
    versions = await container.store.list_versions(document_id)
    return [version.model_dump(mode="json") for version in versions]


@router.get("/projects/{project_id}/artifacts")
async def list_project_artifacts(
    project_id: str,
    user_id: Annotated[str, Depends(get_user_id)],
    container: Annotated[Container, Depends(get_container)]
) -> List[Dict[str, Any]]:
    """Latest version of each of the caller's documents filed under a project"""

    documents = await container.store.list_by_project(project_id, owner=user_id)
    return [document.model_dump(mode="json") for document in documents]


@router.delete("/projects/{project_id}", status_code=204)
async def delete_project(
    project_id: str,
    user_id: Annotated[str, Depends(get_user_id)],
    container: Annotated[Container, Depends(get_container)]
):
    """Unlink every document from a project; its documents themselves are kept"""

    documents = await container.store.list_by_project(project_id, limit=None)
    if any(document.owner != user_id for document in documents):
        raise AuthorizationError("Project belongs to another user", {"project_id": project_id})

    detached = await container.store.detach_project(project_id)
    logger.info("Project deleted", project_id=project_id, user_id=user_id, detached=detached)
    return Response(status_code=204)
