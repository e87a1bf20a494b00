import base64
import binascii
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class MediaKind(str, Enum):
    IMAGE = "image"
    AUDIO = "audio"
    VIDEO = "video"
    DOCUMENT = "document"
    STICKER = "sticker"


# Gateway message keys, checked in this order
MEDIA_MESSAGE_KEYS = (
    ("imageMessage", MediaKind.IMAGE),
    ("audioMessage", MediaKind.AUDIO),
    ("videoMessage", MediaKind.VIDEO),
    ("documentMessage", MediaKind.DOCUMENT),
    ("stickerMessage", MediaKind.STICKER),
)


@dataclass
class InboundMedia:
    kind: MediaKind
    data: bytes
    mimetype: Optional[str] = None
    caption: Optional[str] = None
    file_name: Optional[str] = None


@dataclass
class ChatEvent:
    """A decoded message received by a chat session."""

    sender: str
    chat: str
    push_name: str = ""
    timestamp: Optional[datetime] = None
    message_id: Optional[str] = None
    is_from_me: bool = False
    text: str = ""
    media_kind: Optional[MediaKind] = None
    media: Optional[InboundMedia] = None


class GatewayMessageInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    chat: str = Field(default="", validation_alias=AliasChoices("Chat", "chat"))
    sender: str = Field(default="", validation_alias=AliasChoices("Sender", "sender"))
    push_name: str = Field(default="", validation_alias=AliasChoices("PushName", "push_name"))
    timestamp: Optional[datetime] = Field(default=None, validation_alias=AliasChoices("Timestamp", "timestamp"))
    id: Optional[str] = Field(default=None, validation_alias=AliasChoices("ID", "Id", "id"))
    is_from_me: bool = Field(default=False, validation_alias=AliasChoices("IsFromMe", "is_from_me"))


class GatewayMessageEvent(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    info: GatewayMessageInfo = Field(validation_alias=AliasChoices("Info", "info"))
    message: dict[str, Any] = Field(default_factory=dict, validation_alias=AliasChoices("Message", "message"))


class GatewayEventPayload(BaseModel):
    """Message event pushed by the WhatsApp HTTP gateway."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    type: Optional[str] = None
    event: Optional[GatewayMessageEvent] = None
    base64: Optional[str] = None
    mime_type: Optional[str] = Field(default=None, validation_alias=AliasChoices("mimeType", "mime_type"))
    file_name: Optional[str] = Field(default=None, validation_alias=AliasChoices("fileName", "file_name"))

    @property
    def is_message(self) -> bool:
        return self.event is not None and (self.type or "Message") == "Message"

    def to_chat_event(self) -> ChatEvent:
        if self.event is None:
            raise ValueError("payload carries no message event")
        info = self.event.info
        message = self.event.message or {}

        chat_event = ChatEvent(
            sender=info.sender,
            chat=info.chat or info.sender,
            push_name=info.push_name,
            timestamp=info.timestamp,
            message_id=info.id,
            is_from_me=info.is_from_me,
            text=_extract_text(message),
        )

        for key, kind in MEDIA_MESSAGE_KEYS:
            section = message.get(key)
            if not isinstance(section, dict):
                continue
            chat_event.media_kind = kind
            data = _decode_base64(self.base64)
            if data:
                chat_event.media = InboundMedia(
                    kind=kind,
                    data=data,
                    mimetype=self.mime_type or section.get("mimetype"),
                    caption=section.get("caption"),
                    file_name=self.file_name or section.get("fileName"),
                )
            break
        return chat_event


def _extract_text(message: dict[str, Any]) -> str:
    conversation = message.get("conversation")
    if isinstance(conversation, str) and conversation:
        return conversation
    extended = message.get("extendedTextMessage")
    if isinstance(extended, dict):
        return str(extended.get("text") or "")
    return ""


def _decode_base64(value: Optional[str]) -> bytes:
    if not value:
        return b""
    raw = value
    # Gateways may send a data URL instead of bare base64
    if raw.startswith("data:") and "," in raw:
        raw = raw.split(",", 1)[1]
    try:
        return base64.b64decode(raw, validate=False)
    except (binascii.Error, ValueError):
        return b""


class ChatEventAck(BaseModel):
    success: bool
    message: str
