import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from deskbridge.config import settings
from deskbridge.logging_config import get_logger, setup_logging
from deskbridge.routers import admin, chat_events, chatwoot_webhook
from deskbridge.services.config_store import get_config_store
from deskbridge.services.session_registry import get_session_registry

setup_logging(settings.log_level, json_output=not settings.debug)

logger = get_logger("main")

app = FastAPI(
    title="deskbridge",
    description="Relay between WhatsApp gateway sessions and a Chatwoot inbox",
    version="0.1.0",
)

cors_env = os.environ.get("CORS_ALLOW_ORIGINS", "*")
cors_origins = [origin.strip() for origin in cors_env.split(",") if origin.strip()]
if not cors_origins:
    cors_origins = ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(chatwoot_webhook.router)
app.include_router(chat_events.router)
app.include_router(admin.router)


@app.on_event("startup")
def load_integration_state() -> None:
    if os.environ.get("PYTEST_CURRENT_TEST"):
        return
    config = get_config_store().get()
    registry = get_session_registry()
    logger.info(
        "Integration state loaded",
        extra={
            "context": {
                "chatwoot_active": config.is_active,
                "backend": settings.config_backend,
                "sessions": len(registry.tokens()),
            }
        },
    )


@app.get("/health")
async def health():
    return {"status": "ok"}
