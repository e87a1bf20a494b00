"""Admin API endpoints for the Chatwoot integration and chat sessions."""

from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, status
from pydantic import BaseModel

from deskbridge.config import settings
from deskbridge.schemas.integration import (
    ConfigUpdateResponse,
    InboxSetupRequest,
    InboxSetupResponse,
    IntegrationConfig,
)
from deskbridge.services.chatwoot_client import ChatwootError
from deskbridge.services.config_store import ConfigStore, get_config_store
from deskbridge.services.inbox_service import create_inbox
from deskbridge.services.session_registry import SessionRegistry, build_gateway_client, get_session_registry

router = APIRouter(prefix="/admin", tags=["admin"])


# === SCHEMAS ===


class SessionCreate(BaseModel):
    token: str
    owner_id: Optional[str] = None


class SessionInfo(BaseModel):
    token: str
    owner_id: str
    connected: bool


def require_admin_token(authorization: Optional[str] = Header(default=None, alias="Authorization")) -> None:
    expected = settings.admin_token
    if not expected:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="ADMIN_TOKEN not configured",
        )
    provided = (authorization or "").strip()
    if provided.lower().startswith("bearer "):
        provided = provided[7:].strip()
    if not provided or provided != expected:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid admin token")


# === CHATWOOT CONFIG ===


@router.get("/chatwoot/config", response_model=IntegrationConfig, dependencies=[Depends(require_admin_token)])
def get_chatwoot_config(config_store: ConfigStore = Depends(get_config_store)):
    return config_store.get()


@router.put("/chatwoot/config", response_model=ConfigUpdateResponse, dependencies=[Depends(require_admin_token)])
def set_chatwoot_config(config: IntegrationConfig, config_store: ConfigStore = Depends(get_config_store)):
    config_store.set(config)
    return ConfigUpdateResponse()


@router.post("/chatwoot/inbox", response_model=InboxSetupResponse, dependencies=[Depends(require_admin_token)])
def setup_chatwoot_inbox(request: InboxSetupRequest, config_store: ConfigStore = Depends(get_config_store)):
    if not request.session_token.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="session_token is required")
    if not request.config.base_url or not request.config.api_token or not request.config.account_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="config.base_url, config.api_token and config.account_id are required",
        )

    try:
        inbox_id, webhook_url = create_inbox(
            request.config,
            session_token=request.session_token.strip(),
            public_url=request.public_url or settings.public_base_url,
            config_store=config_store,
        )
    except ChatwootError as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Chatwoot error ({e.status_code}): {e.body or e.message}",
        )

    return InboxSetupResponse(status="success", inbox_id=inbox_id, webhook_url=webhook_url)


# === CHAT SESSIONS ===


@router.get("/sessions", response_model=list[SessionInfo], dependencies=[Depends(require_admin_token)])
def list_sessions(registry: SessionRegistry = Depends(get_session_registry)):
    sessions = []
    for token in registry.tokens():
        handle = registry.lookup(token)
        if handle is None:
            continue
        sessions.append(
            SessionInfo(token=handle.token, owner_id=handle.owner_id, connected=handle.client.is_connected())
        )
    return sessions


@router.post(
    "/sessions",
    response_model=SessionInfo,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin_token)],
)
def register_session(request: SessionCreate, registry: SessionRegistry = Depends(get_session_registry)):
    token = request.token.strip()
    if not token:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="token is required")
    handle = registry.register(token, build_gateway_client(token), owner_id=request.owner_id)
    return SessionInfo(token=handle.token, owner_id=handle.owner_id, connected=handle.client.is_connected())


@router.delete("/sessions/{token}", dependencies=[Depends(require_admin_token)])
def unregister_session(token: str, registry: SessionRegistry = Depends(get_session_registry)):
    if not registry.unregister(token):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")
    return {"status": "ok"}
