from deskbridge.schemas.chat import ChatEvent, GatewayEventPayload, InboundMedia, MediaKind
from deskbridge.schemas.chatwoot import ChatwootAttachment, ChatwootWebhookEvent, WebhookAck
from deskbridge.schemas.integration import IntegrationConfig, InboxSetupRequest, InboxSetupResponse

__all__ = [
    "ChatEvent",
    "ChatwootAttachment",
    "ChatwootWebhookEvent",
    "GatewayEventPayload",
    "InboundMedia",
    "InboxSetupRequest",
    "InboxSetupResponse",
    "IntegrationConfig",
    "MediaKind",
    "WebhookAck",
]
