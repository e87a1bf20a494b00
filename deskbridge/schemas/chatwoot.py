from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ChatwootAttachment(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[int] = None
    file_type: Optional[str] = None  # image, audio, video, file
    data_url: Optional[str] = None
    thumb_url: Optional[str] = None


class ChatwootSender(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: Optional[str] = None


class ChatwootContact(BaseModel):
    model_config = ConfigDict(extra="ignore")

    phone_number: Optional[str] = None


class ChatwootContactInbox(BaseModel):
    model_config = ConfigDict(extra="ignore")

    source_id: Optional[str] = None


class ChatwootConversation(BaseModel):
    model_config = ConfigDict(extra="ignore")

    contact: ChatwootContact = Field(default_factory=ChatwootContact)
    contact_inbox: ChatwootContactInbox = Field(default_factory=ChatwootContactInbox)

    @field_validator("contact", "contact_inbox", mode="before")
    @classmethod
    def null_as_empty(cls, value: object) -> object:
        return {} if value is None else value


class ChatwootWebhookEvent(BaseModel):
    """Subset of a Chatwoot webhook callback needed to relay agent replies."""

    model_config = ConfigDict(extra="ignore")

    event: Optional[str] = None
    message_type: Optional[str] = None  # incoming | outgoing
    content: Optional[str] = None
    attachments: list[ChatwootAttachment] = Field(default_factory=list)
    sender: ChatwootSender = Field(default_factory=ChatwootSender)
    conversation: ChatwootConversation = Field(default_factory=ChatwootConversation)

    # Chatwoot sends null for missing sub-objects, e.g. sender on API-authored messages
    @field_validator("sender", "conversation", mode="before")
    @classmethod
    def null_object_as_empty(cls, value: object) -> object:
        return {} if value is None else value

    @field_validator("attachments", mode="before")
    @classmethod
    def null_list_as_empty(cls, value: object) -> object:
        return [] if value is None else value

    @property
    def is_agent_message(self) -> bool:
        return self.event == "message_created" and self.message_type == "outgoing"

    @property
    def recipient_reference(self) -> Optional[str]:
        """Contact phone, falling back to the legacy contact-inbox source id."""
        phone = (self.conversation.contact.phone_number or "").strip()
        if phone:
            return phone
        source_id = (self.conversation.contact_inbox.source_id or "").strip()
        return source_id or None


class WebhookAck(BaseModel):
    success: bool
    message: str
