from fastapi import APIRouter, BackgroundTasks, Depends, Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from deskbridge.logging_config import get_logger, mask_token
from deskbridge.schemas.chatwoot import ChatwootWebhookEvent, WebhookAck
from deskbridge.services.config_store import ConfigStore, get_config_store
from deskbridge.services.dispatch_service import deliver_agent_reply
from deskbridge.services.session_registry import SessionRegistry, get_session_registry

logger = get_logger("chatwoot_webhook")

router = APIRouter()


@router.post("/chatwoot/webhook", response_model=WebhookAck)
async def handle_chatwoot_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    config_store: ConfigStore = Depends(get_config_store),
    registry: SessionRegistry = Depends(get_session_registry),
):
    """
    Relay agent replies from Chatwoot to WhatsApp.

    Anything other than a missing token is acknowledged with 200 so Chatwoot
    does not retry; delivery happens after the response.
    """
    token = request.query_params.get("token", "").strip()
    if not token:
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content=WebhookAck(success=False, message="Missing token").model_dump(),
        )

    try:
        body = await request.json()
    except ValueError:
        logger.warning("Malformed Chatwoot webhook body", extra={"context": {"session": mask_token(token)}})
        return WebhookAck(success=True, message="Ignored: malformed payload")

    try:
        event = ChatwootWebhookEvent.model_validate(body)
    except ValidationError as e:
        logger.warning(f"Unexpected Chatwoot webhook shape: {e.error_count()} errors")
        return WebhookAck(success=True, message="Ignored: unexpected payload")

    if not event.is_agent_message:
        return WebhookAck(success=True, message="Ignored event")

    handle = registry.lookup(token)
    if handle is None:
        logger.warning("No chat session for webhook token", extra={"context": {"session": mask_token(token)}})
        return WebhookAck(success=True, message="Unknown session")

    background_tasks.add_task(deliver_agent_reply, event, handle, config_store.get())
    return WebhookAck(success=True, message="Accepted")


# Path used by inboxes created before the /chatwoot prefix existed
@router.post("/webhook", response_model=WebhookAck)
async def handle_legacy_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    config_store: ConfigStore = Depends(get_config_store),
    registry: SessionRegistry = Depends(get_session_registry),
):
    return await handle_chatwoot_webhook(request, background_tasks, config_store, registry)
