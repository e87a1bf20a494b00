"""Chatwoot -> WhatsApp delivery of agent replies.

Runs after the webhook has been acknowledged, so failures are only logged:
Chatwoot is never told about them.
"""

from typing import Optional

from deskbridge.config import settings
from deskbridge.logging_config import get_logger, mask_token
from deskbridge.schemas.chat import MediaKind
from deskbridge.schemas.chatwoot import ChatwootAttachment, ChatwootWebhookEvent
from deskbridge.schemas.integration import IntegrationConfig
from deskbridge.services.chat_client import VOICE_NOTE_MIMETYPE, ChatClient, GatewayError
from deskbridge.services.identity import ChatIdentity, to_chat_identity
from deskbridge.services.media_service import MediaFetchError, fetch_media, file_name_from_url
from deskbridge.services.session_registry import SessionHandle

logger = get_logger("dispatch_service")


def compose_reply_text(content: Optional[str], sender_name: Optional[str], config: IntegrationConfig) -> str:
    """Agent text, signed with the agent's name when signing is enabled."""
    text = content or ""
    if config.sign_messages and sender_name:
        delimiter = config.signature_delimiter.replace("\\n", "\n")
        text = f"{text}{delimiter}{sender_name}"
    return text


def attachment_kind(file_type: Optional[str]) -> MediaKind:
    if file_type == "image":
        return MediaKind.IMAGE
    if file_type == "audio":
        return MediaKind.AUDIO
    return MediaKind.DOCUMENT


def send_attachment(client: ChatClient, identity: ChatIdentity, attachment: ChatwootAttachment) -> bool:
    try:
        media = fetch_media(attachment.data_url or "")
    except MediaFetchError as e:
        logger.warning(
            "Attachment download failed",
            extra={"context": {"attachment_id": attachment.id, "error": str(e)}},
        )
        return False

    kind = attachment_kind(attachment.file_type)
    mimetype = VOICE_NOTE_MIMETYPE if kind == MediaKind.AUDIO else media.mimetype
    try:
        client.send_media(
            identity,
            media.data,
            kind,
            mimetype,
            file_name=file_name_from_url(attachment.data_url or ""),
            voice_note=kind == MediaKind.AUDIO,
        )
    except GatewayError as e:
        logger.error(
            "Attachment delivery failed",
            extra={"context": {"to": str(identity), "attachment_id": attachment.id, "error": str(e)}},
        )
        return False
    return True


def deliver_agent_reply(event: ChatwootWebhookEvent, handle: SessionHandle, config: IntegrationConfig) -> bool:
    """Send an agent message from Chatwoot to the contact's WhatsApp chat."""
    try:
        reference = event.recipient_reference
        identity, ok = to_chat_identity(reference, default_domain=settings.default_chat_domain)
        if not ok or identity is None:
            logger.warning(
                "Unusable recipient in Chatwoot webhook, dropping reply",
                extra={"context": {"recipient": reference, "session": mask_token(handle.token)}},
            )
            return False

        client = handle.client
        if client is None or not client.is_connected():
            logger.warning(
                "Chat session not connected, dropping reply",
                extra={"context": {"owner_id": handle.log_owner, "to": str(identity)}},
            )
            return False

        if event.attachments:
            results = [send_attachment(client, identity, attachment) for attachment in event.attachments]
            return all(results)

        text = compose_reply_text(event.content, event.sender.name, config)
        if not text:
            return False
        try:
            client.send_text(identity, text)
        except GatewayError as e:
            logger.error(
                "Reply delivery failed",
                extra={"context": {"to": str(identity), "owner_id": handle.log_owner, "error": str(e)}},
            )
            return False

        logger.info("Agent reply delivered", extra={"context": {"to": str(identity), "owner_id": handle.log_owner}})
        return True
    except Exception as e:
        logger.error(f"Agent reply dispatch failed: {e}", exc_info=True)
        return False
