from typing import Optional
from urllib.parse import quote

from deskbridge.logging_config import get_logger, mask_token
from deskbridge.schemas.integration import IntegrationConfig
from deskbridge.services.chatwoot_client import ChatwootClient, ChatwootError
from deskbridge.services.config_store import ConfigStore

logger = get_logger("inbox_service")

WEBHOOK_PATH = "/chatwoot/webhook"


def build_webhook_url(public_url: str, session_token: str) -> str:
    return f"{public_url.rstrip('/')}{WEBHOOK_PATH}?token={quote(session_token, safe='')}"


def create_inbox(
    config: IntegrationConfig,
    *,
    session_token: str,
    public_url: str,
    config_store: ConfigStore,
    chatwoot: Optional[ChatwootClient] = None,
) -> tuple[int, str]:
    """Create a Chatwoot API inbox wired to this service and store its id.

    Returns the new inbox id and the webhook URL given to Chatwoot.
    Raises ChatwootError when Chatwoot rejects the request.
    """
    webhook_url = build_webhook_url(public_url, session_token)
    owns_client = chatwoot is None
    client = chatwoot or ChatwootClient.from_config(config)
    try:
        result = client.create_api_inbox(
            name=config.inbox_name or "WhatsApp",
            webhook_url=webhook_url,
            allow_messages_after_resolved=config.reopen_on_reply,
            enable_auto_assignment=not config.pending_on_create,
        )
    finally:
        if owns_client:
            client.close()

    inbox_id = result.get("id")
    if inbox_id is None:
        raise ChatwootError("Inbox created without id")

    updated = config.model_copy(update={"inbox_id": str(inbox_id)})
    config_store.set(updated)
    logger.info(
        "Chatwoot inbox created",
        extra={"context": {"inbox_id": inbox_id, "session": mask_token(session_token)}},
    )
    return int(inbox_id), webhook_url
