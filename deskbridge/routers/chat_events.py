from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, status
from pydantic import ValidationError

from deskbridge.logging_config import get_logger, mask_token
from deskbridge.schemas.chat import ChatEventAck, GatewayEventPayload
from deskbridge.services.config_store import ConfigStore, get_config_store
from deskbridge.services.dedup_service import is_duplicate_event
from deskbridge.services.relay_service import handle_chat_event
from deskbridge.services.session_registry import SessionRegistry, get_session_registry

logger = get_logger("chat_events")

router = APIRouter()


@router.post("/chat/events", response_model=ChatEventAck)
async def handle_chat_events(
    request: Request,
    background_tasks: BackgroundTasks,
    config_store: ConfigStore = Depends(get_config_store),
    registry: SessionRegistry = Depends(get_session_registry),
):
    """Receive gateway message events and relay them to Chatwoot in the background."""
    token = request.query_params.get("token", "").strip()
    handle = registry.lookup(token)
    if handle is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unknown session token")

    try:
        payload = GatewayEventPayload.model_validate(await request.json())
    except (ValueError, ValidationError) as e:
        logger.warning(f"Invalid gateway event from session {mask_token(token)}: {e}")
        return ChatEventAck(success=False, message="Invalid event payload")

    if not payload.is_message:
        return ChatEventAck(success=True, message="Ignored event")

    event = payload.to_chat_event()
    if await is_duplicate_event(session_owner=handle.owner_id, message_id=event.message_id):
        return ChatEventAck(success=True, message="Duplicate event")

    background_tasks.add_task(handle_chat_event, event, config_store=config_store)
    return ChatEventAck(success=True, message="Accepted")
