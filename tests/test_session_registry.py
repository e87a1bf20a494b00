import logging
from unittest.mock import Mock

import pytest

from deskbridge.services.chat_client import ChatClient, GatewayChatClient
from deskbridge.services.session_registry import SessionRegistry, get_session_registry, set_session_registry


def _client(connected=True):
    client = Mock(spec=ChatClient)
    client.is_connected.return_value = connected
    return client


class TestSessionRegistry:
    def test_register_and_lookup(self):
        registry = SessionRegistry()
        client = _client()

        handle = registry.register("tok", client, owner_id="user-1")

        assert registry.lookup("tok") == handle
        assert handle.owner_id == "user-1"
        assert handle.client is client

    def test_owner_defaults_to_token(self):
        registry = SessionRegistry()
        assert registry.register("tok", _client()).owner_id == "tok"

    def test_lookup_unknown_or_empty(self):
        registry = SessionRegistry()
        assert registry.lookup("missing") is None
        assert registry.lookup("") is None

    def test_register_requires_token(self):
        with pytest.raises(ValueError):
            SessionRegistry().register("", _client())

    def test_unregister(self):
        registry = SessionRegistry()
        registry.register("tok", _client())

        assert registry.unregister("tok") is True
        assert registry.unregister("tok") is False
        assert registry.tokens() == []

    def test_connected_owners(self):
        registry = SessionRegistry()
        registry.register("a", _client(True), owner_id="owner-a")
        registry.register("b", _client(False), owner_id="owner-b")

        assert registry.connected_owners() == ["owner-a"]


class TestRegistrySingleton:
    def test_built_from_settings(self, monkeypatch):
        from deskbridge.services import session_registry

        monkeypatch.setattr(session_registry.settings, "chat_session_tokens", "tok-1, tok-2")
        set_session_registry(None)
        try:
            registry = get_session_registry()
            assert registry.tokens() == ["tok-1", "tok-2"]
            assert isinstance(registry.lookup("tok-1").client, GatewayChatClient)
            assert get_session_registry() is registry
        finally:
            set_session_registry(None)


class TestRegistrationLogging:
    def test_token_never_logged_in_full(self, caplog):
        caplog.set_level(logging.INFO, logger="deskbridge.session_registry")

        SessionRegistry().register("supersecret-session-token", _client())

        record = caplog.records[-1]
        assert "supersecret-session-token" not in record.getMessage()
        assert record.context == {"session": "supe***", "owner_id": "supe***"}

    def test_explicit_owner_is_logged(self, caplog):
        caplog.set_level(logging.INFO, logger="deskbridge.session_registry")

        SessionRegistry().register("supersecret-session-token", _client(), owner_id="user-1")

        assert caplog.records[-1].context["owner_id"] == "user-1"
