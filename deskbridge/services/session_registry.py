import threading
from dataclasses import dataclass
from typing import Optional

from deskbridge.config import settings
from deskbridge.logging_config import get_logger, mask_token
from deskbridge.services.chat_client import ChatClient, GatewayChatClient

logger = get_logger("session_registry")


@dataclass(frozen=True)
class SessionHandle:
    """Live chat session reachable through a webhook token."""

    token: str
    owner_id: str
    client: ChatClient

    @property
    def log_owner(self) -> str:
        """Owner id safe for logs; masked when it defaults to the token."""
        return mask_token(self.owner_id) if self.owner_id == self.token else self.owner_id


class SessionRegistry:
    def __init__(self):
        self._lock = threading.Lock()
        self._sessions: dict[str, SessionHandle] = {}

    def register(self, token: str, client: ChatClient, owner_id: Optional[str] = None) -> SessionHandle:
        if not token:
            raise ValueError("session token is required")
        handle = SessionHandle(token=token, owner_id=owner_id or token, client=client)
        with self._lock:
            self._sessions[token] = handle
        logger.info(
            "Session registered",
            extra={"context": {"session": mask_token(token), "owner_id": handle.log_owner}},
        )
        return handle

    def unregister(self, token: str) -> bool:
        with self._lock:
            removed = self._sessions.pop(token, None)
        return removed is not None

    def lookup(self, token: str) -> Optional[SessionHandle]:
        if not token:
            return None
        with self._lock:
            return self._sessions.get(token)

    def tokens(self) -> list[str]:
        with self._lock:
            return list(self._sessions)

    def connected_owners(self) -> list[str]:
        with self._lock:
            handles = list(self._sessions.values())
        return [handle.owner_id for handle in handles if handle.client.is_connected()]


def build_gateway_client(token: str) -> GatewayChatClient:
    return GatewayChatClient(settings.chat_gateway_url, token, timeout=settings.chat_gateway_timeout_seconds)


_registry: Optional[SessionRegistry] = None
_registry_lock = threading.Lock()


def get_session_registry() -> SessionRegistry:
    global _registry
    if _registry is None:
        with _registry_lock:
            if _registry is None:
                registry = SessionRegistry()
                for token in settings.session_tokens():
                    registry.register(token, build_gateway_client(token))
                _registry = registry
    return _registry


def set_session_registry(registry: Optional[SessionRegistry]) -> None:
    global _registry
    with _registry_lock:
        _registry = registry
