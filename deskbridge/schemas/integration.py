from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class IntegrationConfig(BaseModel):
    """Runtime parameters of the Chatwoot integration.

    Accepts both the current field names and the keys used by older
    ``chatwoot.json`` files (``url``, ``token``, ``ignore_jids``...).
    """

    model_config = ConfigDict(populate_by_name=True)

    enabled: bool = False
    base_url: str = Field(default="", validation_alias=AliasChoices("base_url", "url"))
    api_token: str = Field(default="", validation_alias=AliasChoices("api_token", "token"))
    account_id: str = ""
    inbox_id: str = ""
    sign_messages: bool = False
    signature_delimiter: str = "\n"
    reopen_on_reply: bool = Field(
        default=False,
        validation_alias=AliasChoices("reopen_on_reply", "reopen_conversation"),
    )
    pending_on_create: bool = Field(
        default=False,
        validation_alias=AliasChoices("pending_on_create", "conversation_pending"),
    )
    ignored_identity_patterns: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("ignored_identity_patterns", "ignore_jids"),
    )

    inbox_name: str = ""
    organization: str = ""
    logo_url: str = ""

    import_contacts: bool = False
    import_messages: bool = False
    days_limit: int = 7

    @field_validator("base_url", mode="before")
    @classmethod
    def normalize_base_url(cls, value: object) -> str:
        if value is None:
            return ""
        return str(value).strip().rstrip("/")

    @field_validator("api_token", "account_id", "inbox_id", mode="before")
    @classmethod
    def strip_scalar(cls, value: object) -> str:
        if value is None:
            return ""
        return str(value).strip()

    @field_validator("signature_delimiter", mode="before")
    @classmethod
    def default_delimiter(cls, value: object) -> str:
        if value is None:
            return "\n"
        return str(value)

    @field_validator("ignored_identity_patterns", mode="before")
    @classmethod
    def normalize_patterns(cls, value: object) -> list[str]:
        if value is None:
            return []
        if isinstance(value, str):
            items = [item.strip() for item in value.split(",")]
        elif isinstance(value, (list, tuple, set)):
            items = [str(item).strip() for item in value]
        else:
            raise ValueError("ignored_identity_patterns must be a list or comma-separated string")

        normalized: list[str] = []
        seen: set[str] = set()
        for item in items:
            if not item or item in seen:
                continue
            normalized.append(item)
            seen.add(item)
        return normalized

    @property
    def is_active(self) -> bool:
        """Enabled and carrying the credentials needed to talk to Chatwoot."""
        return self.enabled and bool(self.base_url) and bool(self.api_token)

    @property
    def inbox_id_int(self) -> Optional[int]:
        try:
            return int(self.inbox_id)
        except (TypeError, ValueError):
            return None


class ConfigUpdateResponse(BaseModel):
    status: str = "ok"


class InboxSetupRequest(BaseModel):
    config: IntegrationConfig
    session_token: str = ""
    public_url: str = Field(default="", validation_alias=AliasChoices("public_url", "wuzapi_url"))


class InboxSetupResponse(BaseModel):
    status: str
    inbox_id: int
    webhook_url: str
