from datetime import datetime, timedelta, timezone
from unittest.mock import patch

from deskbridge.schemas.chat import ChatEvent, InboundMedia, MediaKind
from deskbridge.schemas.integration import IntegrationConfig
from deskbridge.services.config_store import ConfigStore, JsonFileConfigStorage
from deskbridge.services.relay_service import (
    MediaContent,
    TextContent,
    build_relay_content,
    handle_chat_event,
    is_stale,
    media_file_name,
    relay_inbound,
)

SENDER = "5511999998888@s.whatsapp.net"


class TestRelayInbound:
    def test_new_sender_end_to_end(self, config_store, make_chatwoot):
        fake = make_chatwoot(created_contact_id=501)

        ok = relay_inbound(
            "Carlos",
            "5511999998888@s.whatsapp.net",
            TextContent("Oi"),
            config_store=config_store,
            chatwoot=fake.client(),
        )

        assert ok is True
        searches = fake.calls("GET", "/contacts/search")
        creates = fake.calls("POST", "/contacts")
        posts = fake.calls("POST", "/conversations")
        assert len(searches) == 1
        assert len(creates) == 1
        assert len(posts) == 1
        assert fake.json_body(creates[0])["source_id"] == "+5511999998888"
        assert posts[0].url.path == "/api/v1/accounts/3/conversations"
        assert fake.json_body(posts[0]) == {
            "inbox_id": 7,
            "contact_id": 501,
            "status": "open",
            "message": {"content": "Oi", "message_type": "incoming"},
        }

    def test_existing_contact_skips_create(self, config_store, make_chatwoot):
        fake = make_chatwoot(search_results=[33])

        relay_inbound("Carlos", SENDER, TextContent("Oi"), config_store=config_store, chatwoot=fake.client())

        assert fake.calls("POST", "/contacts") == []
        assert fake.json_body(fake.calls("POST", "/conversations")[0])["contact_id"] == 33

    def test_disabled_makes_no_http_calls(self, tmp_path, make_chatwoot):
        store = ConfigStore(JsonFileConfigStorage(tmp_path / "cfg.json"))
        store.set(IntegrationConfig(enabled=False, base_url="https://cw", api_token="t", inbox_id="7"))
        fake = make_chatwoot()

        with patch("deskbridge.services.relay_service.ChatwootClient.from_config") as mock_factory:
            ok = relay_inbound("Carlos", SENDER, TextContent("Oi"), config_store=store)
            ok_injected = relay_inbound(
                "Carlos", "5511999998888@s.whatsapp.net", TextContent("Oi"), config_store=store, chatwoot=fake.client()
            )

        assert ok is False
        assert ok_injected is False
        mock_factory.assert_not_called()
        assert fake.requests == []

    def test_enabled_without_token_is_treated_as_disabled(self, tmp_path, make_chatwoot):
        store = ConfigStore(JsonFileConfigStorage(tmp_path / "cfg.json"))
        store.set(IntegrationConfig(enabled=True, base_url="https://cw", api_token="", inbox_id="7"))
        fake = make_chatwoot()

        assert relay_inbound("C", SENDER, TextContent("Oi"), config_store=store, chatwoot=fake.client()) is False
        assert fake.requests == []

    def test_ignored_identity_dropped(self, config_store, active_config, make_chatwoot):
        config_store.set(active_config.model_copy(update={"ignored_identity_patterns": ["@g.us"]}))
        fake = make_chatwoot()

        ok = relay_inbound(
            "Group member",
            "5511999998888@s.whatsapp.net",
            TextContent("Oi"),
            chat="120363042@g.us",
            config_store=config_store,
            chatwoot=fake.client(),
        )

        assert ok is False
        assert fake.requests == []

    def test_contact_failure_aborts_without_post(self, config_store, make_chatwoot):
        fake = make_chatwoot(create_status=422)

        ok = relay_inbound("Carlos", SENDER, TextContent("Oi"), config_store=config_store, chatwoot=fake.client())

        assert ok is False
        assert fake.calls("POST", "/conversations") == []

    def test_pending_status_when_configured(self, config_store, active_config, make_chatwoot):
        config_store.set(active_config.model_copy(update={"pending_on_create": True}))
        fake = make_chatwoot(search_results=[1])

        relay_inbound("Carlos", SENDER, TextContent("Oi"), config_store=config_store, chatwoot=fake.client())

        assert fake.json_body(fake.calls("POST", "/conversations")[0])["status"] == "pending"

    def test_media_posted_as_multipart(self, config_store, make_chatwoot):
        fake = make_chatwoot(search_results=[33])
        content = MediaContent(data=b"\xff\xd8jpegdata", file_name="image.jpg", caption="look", kind=MediaKind.IMAGE)

        ok = relay_inbound("Carlos", SENDER, content, config_store=config_store, chatwoot=fake.client())

        assert ok is True
        request = fake.calls("POST", "/conversations")[0]
        assert request.headers["content-type"].startswith("multipart/form-data")
        body = request.content
        assert b'name="attachments[]"; filename="image.jpg"' in body
        assert b"Content-Type: image/jpeg" in body
        assert b"\xff\xd8jpegdata" in body
        assert b'name="content"\r\n\r\nlook' in body
        assert b'name="message_type"\r\n\r\nincoming' in body
        assert b'name="contact_id"\r\n\r\n33' in body
        assert b'name="inbox_id"\r\n\r\n7' in body

    def test_post_failure_is_swallowed(self, config_store, make_chatwoot):
        fake = make_chatwoot(search_results=[33])
        client = fake.client()

        with patch.object(client, "create_conversation", side_effect=RuntimeError("boom")):
            ok = relay_inbound("Carlos", SENDER, TextContent("Oi"), config_store=config_store, chatwoot=client)

        assert ok is False


def _media(kind: MediaKind, **kwargs) -> InboundMedia:
    return InboundMedia(kind=kind, data=b"x", **kwargs)


class TestMediaFileName:
    def test_defaults_per_kind(self):
        assert media_file_name(_media(MediaKind.IMAGE)) == "image.jpg"
        assert media_file_name(_media(MediaKind.VIDEO)) == "video.mp4"
        assert media_file_name(_media(MediaKind.STICKER)) == "sticker.webp"

    def test_audio_extension_from_mimetype(self):
        assert media_file_name(_media(MediaKind.AUDIO, mimetype="audio/ogg; codecs=opus")) == "audio.ogg"
        assert media_file_name(_media(MediaKind.AUDIO, mimetype="audio/mp4")) == "audio.mp4"
        assert media_file_name(_media(MediaKind.AUDIO, mimetype="audio/mpeg")) == "audio.mp3"

    def test_document_name(self):
        assert media_file_name(_media(MediaKind.DOCUMENT, file_name="nota.pdf")) == "nota.pdf"
        assert media_file_name(_media(MediaKind.DOCUMENT, mimetype="application/pdf")) == "file.pdf"
        assert media_file_name(_media(MediaKind.DOCUMENT)) == "file.bin"


def _event(**overrides) -> ChatEvent:
    values = {
        "sender": "5511999998888@s.whatsapp.net",
        "chat": "5511999998888@s.whatsapp.net",
        "push_name": "Carlos",
        "timestamp": datetime.now(timezone.utc),
        "message_id": "ABC123",
        "text": "Oi",
    }
    values.update(overrides)
    return ChatEvent(**values)


class TestHandleChatEvent:
    def test_relays_text(self, config_store, make_chatwoot):
        fake = make_chatwoot(search_results=[5])

        assert handle_chat_event(_event(), config_store=config_store, chatwoot=fake.client()) is True
        assert fake.json_body(fake.calls("POST", "/conversations")[0])["message"]["content"] == "Oi"

    def test_stale_event_skipped(self, config_store, make_chatwoot):
        fake = make_chatwoot()
        old = datetime.now(timezone.utc) - timedelta(minutes=10)

        assert handle_chat_event(_event(timestamp=old), config_store=config_store, chatwoot=fake.client()) is False
        assert fake.requests == []

    def test_own_message_skipped(self, config_store, make_chatwoot):
        fake = make_chatwoot()

        assert handle_chat_event(_event(is_from_me=True), config_store=config_store, chatwoot=fake.client()) is False
        assert fake.requests == []

    def test_name_falls_back_to_number(self, config_store, make_chatwoot):
        fake = make_chatwoot()

        handle_chat_event(
            _event(push_name="", sender="5511999998888:4@s.whatsapp.net"),
            config_store=config_store,
            chatwoot=fake.client(),
        )

        assert fake.json_body(fake.calls("POST", "/contacts")[0])["name"] == "5511999998888"

    def test_empty_message_skipped(self, config_store, make_chatwoot):
        fake = make_chatwoot()

        assert handle_chat_event(_event(text=""), config_store=config_store, chatwoot=fake.client()) is False
        assert fake.requests == []


class TestBuildRelayContent:
    def test_media_wins_over_text(self):
        media = InboundMedia(kind=MediaKind.IMAGE, data=b"img", caption="cap", mimetype="image/jpeg")
        content = build_relay_content(_event(media=media, media_kind=MediaKind.IMAGE))
        assert isinstance(content, MediaContent)
        assert content.file_name == "image.jpg"
        assert content.caption == "cap"

    def test_text_when_no_media(self):
        assert build_relay_content(_event()) == TextContent("Oi")


class TestIsStale:
    def test_naive_timestamp_treated_as_utc(self):
        now = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
        event = _event(timestamp=datetime(2024, 1, 1, 11, 59))
        assert is_stale(event, now=now, max_age_seconds=120) is False
        assert is_stale(event, now=now, max_age_seconds=30) is True

    def test_missing_timestamp_not_stale(self):
        assert is_stale(_event(timestamp=None)) is False
