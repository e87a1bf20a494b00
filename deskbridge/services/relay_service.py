"""WhatsApp -> Chatwoot relay.

Every inbound chat message runs an independent "ensure contact, then post
message" sequence. Delivery is at-most-once: failures are logged and the
message is dropped, never retried or queued.
"""

import mimetypes
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Union

from deskbridge.config import settings
from deskbridge.logging_config import get_logger
from deskbridge.schemas.chat import ChatEvent, InboundMedia, MediaKind
from deskbridge.services.chatwoot_client import ChatwootClient, ChatwootError
from deskbridge.services.config_store import ConfigStore, get_config_store
from deskbridge.services.contact_service import resolve_or_create_contact
from deskbridge.services.identity import IdentityError, is_ignored, to_case_phone
from deskbridge.services.media_service import guess_mimetype

logger = get_logger("relay_service")


@dataclass
class TextContent:
    text: str


@dataclass
class MediaContent:
    data: bytes
    file_name: str
    caption: str = ""
    kind: MediaKind = MediaKind.DOCUMENT
    mimetype: Optional[str] = None


RelayContent = Union[TextContent, MediaContent]


def relay_inbound(
    sender_name: str,
    sender: str,
    content: RelayContent,
    *,
    chat: Optional[str] = None,
    config_store: Optional[ConfigStore] = None,
    chatwoot: Optional[ChatwootClient] = None,
) -> bool:
    """Post one inbound chat message into Chatwoot. Returns True when posted."""
    cfg = (config_store or get_config_store()).get()
    if not cfg.is_active:
        logger.debug("Chatwoot integration inactive, skipping relay")
        return False

    if is_ignored(chat, cfg.ignored_identity_patterns) or is_ignored(sender, cfg.ignored_identity_patterns):
        logger.info("Ignored identity, skipping relay", extra={"context": {"chat": chat, "sender": sender}})
        return False

    inbox_id = cfg.inbox_id_int
    if inbox_id is None:
        logger.warning("Chatwoot inbox_id is not configured, skipping relay")
        return False

    try:
        phone = to_case_phone(sender)
    except IdentityError as e:
        logger.warning(f"Cannot relay message from unusable sender: {e}")
        return False

    owns_client = chatwoot is None
    client = chatwoot or ChatwootClient.from_config(cfg)
    try:
        contact = resolve_or_create_contact(client, inbox_id=inbox_id, phone=phone, name=sender_name)
        if not contact.ok:
            logger.warning(
                "Relay aborted, no Chatwoot contact",
                extra={"context": {"phone": phone, "error": contact.error, "error_code": contact.error_code}},
            )
            return False

        status = "pending" if cfg.pending_on_create else "open"
        try:
            if isinstance(content, MediaContent):
                client.create_conversation_with_attachment(
                    inbox_id=inbox_id,
                    contact_id=contact.value,
                    content=content.caption or "",
                    file_name=content.file_name,
                    data=content.data,
                    mimetype=guess_mimetype(content.file_name, content.mimetype),
                    status=status,
                )
            else:
                client.create_conversation(
                    inbox_id=inbox_id,
                    contact_id=contact.value,
                    content=content.text,
                    status=status,
                )
        except ChatwootError as e:
            logger.error(
                "Failed to post message to Chatwoot",
                extra={"context": {"phone": phone, "status_code": e.status_code, "body": e.body}},
            )
            return False
    except Exception as e:
        logger.error(f"Unexpected relay failure for {phone}: {e}", exc_info=True)
        return False
    finally:
        if owns_client:
            client.close()

    logger.info(
        "Message relayed to Chatwoot",
        extra={"context": {"phone": phone, "contact_id": contact.value, "media": isinstance(content, MediaContent)}},
    )
    return True


def media_file_name(media: InboundMedia) -> str:
    mimetype = media.mimetype or ""
    if media.kind == MediaKind.IMAGE:
        return "image.jpg"
    if media.kind == MediaKind.AUDIO:
        if "mp4" in mimetype:
            return "audio.mp4"
        if "mpeg" in mimetype:
            return "audio.mp3"
        return "audio.ogg"
    if media.kind == MediaKind.VIDEO:
        return "video.mp4"
    if media.kind == MediaKind.STICKER:
        return "sticker.webp"
    if media.file_name:
        return media.file_name
    ext = mimetypes.guess_extension(mimetype.split(";")[0].strip()) if mimetype else None
    return f"file{ext}" if ext else "file.bin"


def build_relay_content(event: ChatEvent) -> Optional[RelayContent]:
    """Media wins over text when its bytes are present."""
    if event.media is not None and event.media.data:
        return MediaContent(
            data=event.media.data,
            file_name=media_file_name(event.media),
            caption=event.media.caption or "",
            kind=event.media.kind,
            mimetype=event.media.mimetype,
        )
    if event.text:
        return TextContent(event.text)
    return None


def is_stale(event: ChatEvent, now: Optional[datetime] = None, max_age_seconds: Optional[int] = None) -> bool:
    if event.timestamp is None:
        return False
    max_age = settings.max_event_age_seconds if max_age_seconds is None else max_age_seconds
    timestamp = event.timestamp
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    return (now - timestamp).total_seconds() > max_age


def handle_chat_event(
    event: ChatEvent,
    *,
    config_store: Optional[ConfigStore] = None,
    chatwoot: Optional[ChatwootClient] = None,
) -> bool:
    """Entry point for every decoded chat message; never raises."""
    try:
        if is_stale(event):
            logger.info(
                "Skipping stale chat event",
                extra={"context": {"message_id": event.message_id, "timestamp": event.timestamp}},
            )
            return False
        if event.is_from_me:
            return False

        content = build_relay_content(event)
        if content is None:
            if event.media_kind is not None:
                logger.warning(
                    "Media message without payload, nothing to relay",
                    extra={"context": {"message_id": event.message_id, "kind": event.media_kind.value}},
                )
            return False

        sender_name = event.push_name or event.sender.split("@", 1)[0].split(":", 1)[0]
        return relay_inbound(
            sender_name,
            event.sender,
            content,
            chat=event.chat,
            config_store=config_store,
            chatwoot=chatwoot,
        )
    except Exception as e:
        logger.error(f"Chat event handling failed: {e}", exc_info=True)
        return False
