"""Chat transport used to deliver agent replies back to WhatsApp users."""

import base64
from abc import ABC, abstractmethod
from typing import Any, Optional

import httpx

from deskbridge.logging_config import get_logger, mask_token
from deskbridge.schemas.chat import MediaKind
from deskbridge.services.identity import ChatIdentity

logger = get_logger("chat_client")

VOICE_NOTE_MIMETYPE = "audio/ogg; codecs=opus"


class GatewayError(Exception):
    """Raised when the chat transport refuses or fails a send."""


class ChatClient(ABC):
    """Abstract chat session able to send messages."""

    @abstractmethod
    def is_connected(self) -> bool:
        pass

    @abstractmethod
    def send_text(self, identity: ChatIdentity, text: str) -> None:
        pass

    @abstractmethod
    def send_media(
        self,
        identity: ChatIdentity,
        data: bytes,
        kind: MediaKind,
        mimetype: str,
        *,
        file_name: Optional[str] = None,
        caption: Optional[str] = None,
        voice_note: bool = False,
    ) -> None:
        pass


class GatewayChatClient(ChatClient):
    """Session on a WhatsApp HTTP gateway, authenticated by its session token."""

    SEND_ENDPOINTS = {
        MediaKind.IMAGE: ("image", "Image"),
        MediaKind.STICKER: ("sticker", "Sticker"),
        MediaKind.AUDIO: ("audio", "Audio"),
        MediaKind.VIDEO: ("video", "Video"),
        MediaKind.DOCUMENT: ("document", "Document"),
    }

    def __init__(
        self,
        base_url: str,
        token: str,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self._transport = transport

    def _make_request(self, method: str, path: str, data: Optional[dict] = None) -> dict[str, Any]:
        try:
            with httpx.Client(
                base_url=self.base_url,
                headers={"Token": self.token},
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                response = client.request(method, path, json=data)
        except httpx.RequestError as e:
            raise GatewayError(f"Gateway request failed: {e}") from e

        try:
            payload = response.json()
        except ValueError:
            payload = {}
        if not isinstance(payload, dict):
            payload = {}
        if response.status_code >= 400 or payload.get("success") is False:
            raise GatewayError(f"Gateway error {response.status_code}: {response.text[:200]}")
        return payload

    def is_connected(self) -> bool:
        try:
            payload = self._make_request("GET", "/session/status")
        except GatewayError as e:
            logger.warning(f"Gateway status check failed for session {mask_token(self.token)}: {e}")
            return False
        data = payload.get("data")
        if not isinstance(data, dict):
            return False
        connected = data.get("Connected", data.get("connected"))
        logged_in = data.get("LoggedIn", data.get("loggedIn", True))
        return bool(connected) and bool(logged_in)

    def send_text(self, identity: ChatIdentity, text: str) -> None:
        self._make_request("POST", "/chat/send/text", {"Phone": str(identity), "Body": text})

    def send_media(
        self,
        identity: ChatIdentity,
        data: bytes,
        kind: MediaKind,
        mimetype: str,
        *,
        file_name: Optional[str] = None,
        caption: Optional[str] = None,
        voice_note: bool = False,
    ) -> None:
        endpoint, field = self.SEND_ENDPOINTS.get(kind, self.SEND_ENDPOINTS[MediaKind.DOCUMENT])
        encoded = base64.b64encode(data).decode("ascii")
        body: dict[str, Any] = {
            "Phone": str(identity),
            field: f"data:{mimetype.split(';')[0].strip()};base64,{encoded}",
        }
        if caption and kind in {MediaKind.IMAGE, MediaKind.VIDEO, MediaKind.DOCUMENT}:
            body["Caption"] = caption
        if kind == MediaKind.DOCUMENT:
            body["FileName"] = file_name or "file"
        if kind == MediaKind.AUDIO:
            body["PTT"] = voice_note
        self._make_request("POST", f"/chat/send/{endpoint}", body)
