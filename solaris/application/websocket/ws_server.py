from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError
import structlog

from solaris.container import Container
from solaris.domain.errors import AgentError
from .schema.events import (
    UserMessage, EventType, MarkdownEvent, TurnCompleteEvent
)

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.websocket("/ws/agent/{session_id}")
async def agent_websocket(
    websocket: WebSocket,
    session_id: str,
    user_id: str = ""
):
    """Main WebSocket endpoint for agent interaction"""

    container: Container = websocket.app.state.container
    connection_manager = container.connection_manager

    if not user_id:
        await websocket.close(code=1008, reason="Missing user_id")
        return

    await connection_manager.connect(websocket, session_id, user_id)
    container.streaming_handler.start(session_id)

    try:
        while True:
            data = await websocket.receive_json()

            if data.get("type") != EventType.USER_MESSAGE.value:
                await connection_manager.send_error(
                    session_id,
                    {"message": f"Unsupported event type: {data.get('type')}"},
                    error_code="unsupported_event"
                )
                continue

            try:
                message = UserMessage(**data)
            except ValidationError as e:
                await connection_manager.send_error(
                    session_id,
                    {"message": "Invalid user message", "problems": e.errors(include_url=False)},
                    error_code="validation"
                )
                continue

            await process_user_message(container, session_id, user_id, message)

    except WebSocketDisconnect:
        logger.info("Client disconnected", session_id=session_id)
    finally:
        await container.streaming_handler.stop(session_id)
        await container.orchestrator.close_session(session_id)
        await connection_manager.disconnect(session_id)


async def process_user_message(
    container: Container,
    session_id: str,
    user_id: str,
    message: UserMessage
):
    """Run one agent turn and report its outcome to the client"""

    connection_manager = container.connection_manager
    # Restarts the relay if it ended since the last turn
    container.streaming_handler.start(session_id)

    try:
        result = await container.orchestrator.run_turn(session_id, user_id, message.content)
    except AgentError as e:
        logger.error("Agent turn failed", session_id=session_id, error=e.message, error_kind=e.kind.value)
        await connection_manager.send_error(
            session_id,
            e.to_payload(container.settings.uniform_access_errors),
            error_code=e.kind.value
        )
        return
    except Exception as e:
        logger.exception("Agent turn failed", session_id=session_id)
        await connection_manager.send_error(session_id, {"message": str(e)}, error_code="turn_failed")
        return

    await container.streaming_handler.flush(session_id)

    if result.final_message is not None and result.final_message.text:
        await connection_manager.send_event(
            session_id,
            MarkdownEvent(payload=result.final_message.text, session_id=session_id)
        )

    await connection_manager.send_event(
        session_id,
        TurnCompleteEvent(payload=result.get_summary(), session_id=session_id)
    )
