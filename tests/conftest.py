import json
from unittest.mock import Mock

import httpx
import pytest

from deskbridge.schemas.integration import IntegrationConfig
from deskbridge.services.chat_client import ChatClient
from deskbridge.services.chatwoot_client import ChatwootClient
from deskbridge.services.config_store import ConfigStore, JsonFileConfigStorage
from deskbridge.services.session_registry import SessionRegistry


@pytest.fixture
def active_config():
    return IntegrationConfig(
        enabled=True,
        base_url="https://chatwoot.example.com",
        api_token="cw-token",
        account_id="3",
        inbox_id="7",
    )


@pytest.fixture
def config_store(tmp_path, active_config):
    store = ConfigStore(JsonFileConfigStorage(tmp_path / "chatwoot.json"))
    store.set(active_config)
    return store


class FakeChatwoot:
    """Records Chatwoot API calls and answers them from canned data."""

    def __init__(self, search_results=None, created_contact_id=501, search_status=200, create_status=200):
        self.search_results = list(search_results or [])
        self.created_contact_id = created_contact_id
        self.search_status = search_status
        self.create_status = create_status
        self.requests: list[httpx.Request] = []

    def calls(self, method: str, path_suffix: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path.endswith(path_suffix)]

    def json_body(self, request: httpx.Request) -> dict:
        return json.loads(request.content.decode("utf-8"))

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if request.method == "GET" and path.endswith("/contacts/search"):
            if self.search_status != 200:
                return httpx.Response(self.search_status, json={"error": "boom"})
            return httpx.Response(200, json={"payload": [{"id": cid} for cid in self.search_results]})
        if request.method == "POST" and path.endswith("/contacts"):
            if self.create_status != 200:
                return httpx.Response(self.create_status, json={"message": "Phone number has already been taken"})
            self.search_results.append(self.created_contact_id)
            return httpx.Response(200, json={"payload": {"contact": {"id": self.created_contact_id}}})
        if request.method == "POST" and path.endswith("/conversations"):
            return httpx.Response(200, json={"id": 9001})
        if request.method == "POST" and path.endswith("/inboxes"):
            return httpx.Response(200, json={"id": 42, "name": "WhatsApp"})
        return httpx.Response(404, json={"error": "not found"})

    def client(self, config: IntegrationConfig | None = None) -> ChatwootClient:
        return ChatwootClient(
            config.base_url if config else "https://chatwoot.example.com",
            config.api_token if config else "cw-token",
            config.account_id if config else "3",
            transport=httpx.MockTransport(self.handler),
        )


@pytest.fixture
def fake_chatwoot():
    return FakeChatwoot()


@pytest.fixture
def chat_client():
    client = Mock(spec=ChatClient)
    client.is_connected.return_value = True
    return client


@pytest.fixture
def registry(chat_client):
    registry = SessionRegistry()
    registry.register("session-token", chat_client, owner_id="user-1")
    return registry


@pytest.fixture
def agent_event_payload():
    return {
        "event": "message_created",
        "message_type": "outgoing",
        "content": "Reply",
        "sender": {"name": "Ana"},
        "conversation": {"contact": {"phone_number": "+5511999998888"}},
    }


@pytest.fixture
def make_chatwoot():
    return FakeChatwoot
