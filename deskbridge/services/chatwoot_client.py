"""Chatwoot API client."""

from typing import Any, Optional

import httpx

from deskbridge.logging_config import get_logger
from deskbridge.schemas.integration import IntegrationConfig

logger = get_logger("chatwoot_client")


class ChatwootError(Exception):
    """Chatwoot API error."""

    def __init__(self, message: str, status_code: int | None = None, body: str | None = None):
        self.message = message
        self.status_code = status_code
        self.body = body
        super().__init__(message)


class ChatwootClient:
    """Client for the Chatwoot application API (v1), scoped to one account."""

    def __init__(
        self,
        base_url: str,
        access_token: str,
        account_id: str | int,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.access_token = access_token
        self.account_id = str(account_id)
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.Client | None = None

    @classmethod
    def from_config(cls, config: IntegrationConfig, **kwargs) -> "ChatwootClient":
        return cls(config.base_url, config.api_token, config.account_id, **kwargs)

    def _get_client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(
                base_url=self.base_url,
                headers={"api_access_token": self.access_token},
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    def close(self) -> None:
        if self._client:
            self._client.close()
            self._client = None

    def __enter__(self) -> "ChatwootClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json_data: dict[str, Any] | None = None,
        data: dict[str, Any] | None = None,
        files: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Make API request."""
        client = self._get_client()
        url = f"/api/v1/accounts/{self.account_id}{path}"

        try:
            response = client.request(
                method=method,
                url=url,
                params=params,
                json=json_data,
                data=data,
                files=files,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            body = e.response.text[:500]
            logger.warning(f"Chatwoot API error: {e.response.status_code} - {body}")
            raise ChatwootError(
                f"API error: {e.response.status_code}",
                status_code=e.response.status_code,
                body=body,
            )
        except httpx.RequestError as e:
            logger.warning(f"Chatwoot request error: {e}")
            raise ChatwootError(f"Request failed: {e}")

        if not response.content:
            return {}
        try:
            payload = response.json()
        except ValueError:
            raise ChatwootError("Invalid JSON in response", status_code=response.status_code)
        return payload if isinstance(payload, dict) else {"payload": payload}

    # ==================== Contacts ====================

    def search_contacts(self, query: str) -> list[dict[str, Any]]:
        result = self._request("GET", "/contacts/search", params={"q": query})
        payload = result.get("payload") or []
        return payload if isinstance(payload, list) else []

    def create_contact(
        self,
        *,
        inbox_id: int,
        name: str,
        phone_number: str,
        source_id: str,
    ) -> Optional[int]:
        """Create a contact and return its id."""
        result = self._request(
            "POST",
            "/contacts",
            json_data={
                "inbox_id": inbox_id,
                "name": name,
                "phone_number": phone_number,
                "source_id": source_id,
            },
        )
        payload = result.get("payload") or {}
        contact = payload.get("contact") if isinstance(payload, dict) else None
        if isinstance(contact, dict) and contact.get("id") is not None:
            return int(contact["id"])
        return None

    # ==================== Conversations ====================

    def create_conversation(
        self,
        *,
        inbox_id: int,
        contact_id: int,
        content: str,
        status: str = "open",
    ) -> dict[str, Any]:
        return self._request(
            "POST",
            "/conversations",
            json_data={
                "inbox_id": inbox_id,
                "contact_id": contact_id,
                "status": status,
                "message": {"content": content, "message_type": "incoming"},
            },
        )

    def create_conversation_with_attachment(
        self,
        *,
        inbox_id: int,
        contact_id: int,
        content: str,
        file_name: str,
        data: bytes,
        mimetype: str,
        status: str = "open",
    ) -> dict[str, Any]:
        return self._request(
            "POST",
            "/conversations",
            data={
                "content": content,
                "message_type": "incoming",
                "inbox_id": str(inbox_id),
                "contact_id": str(contact_id),
                "status": status,
            },
            files={"attachments[]": (file_name, data, mimetype)},
        )

    # ==================== Inboxes ====================

    def create_api_inbox(
        self,
        *,
        name: str,
        webhook_url: str,
        allow_messages_after_resolved: bool,
        enable_auto_assignment: bool,
    ) -> dict[str, Any]:
        return self._request(
            "POST",
            "/inboxes",
            json_data={
                "name": name,
                "channel": {"type": "api", "webhook_url": webhook_url},
                "allow_messages_after_resolved": allow_messages_after_resolved,
                "enable_auto_assignment": enable_auto_assignment,
            },
        )
