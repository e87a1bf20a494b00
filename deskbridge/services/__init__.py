from deskbridge.services.config_store import ConfigStore, get_config_store
from deskbridge.services.contact_service import resolve_or_create_contact
from deskbridge.services.dispatch_service import compose_reply_text, deliver_agent_reply
from deskbridge.services.identity import ChatIdentity, to_case_phone, to_chat_identity
from deskbridge.services.relay_service import MediaContent, TextContent, handle_chat_event, relay_inbound
from deskbridge.services.session_registry import SessionHandle, SessionRegistry, get_session_registry
