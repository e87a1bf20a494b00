"""Conversion between gateway chat addresses and Chatwoot phone numbers.

The gateway addresses people as ``<digits>@<domain>`` (optionally with a
``:<device>`` suffix on the user part); Chatwoot stores ``+<digits>``.
"""

import re
from dataclasses import dataclass
from typing import Iterable, Optional, Union

from deskbridge.config import settings

USER_PATTERN = re.compile(r"^\d[\d-]*$")
UUID_PATTERN = re.compile(r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$")
_WHITESPACE = re.compile(r"\s+")


class IdentityError(ValueError):
    """Raised when a value cannot be used as a chat identity or phone."""


@dataclass(frozen=True)
class ChatIdentity:
    user: str
    server: str
    device: Optional[str] = None

    def __str__(self) -> str:
        return f"{self.user}@{self.server}"

    @property
    def digits(self) -> str:
        return self.user.replace("-", "")

    @classmethod
    def parse(cls, value: str) -> "ChatIdentity":
        raw = (value or "").strip()
        if raw.count("@") != 1:
            raise IdentityError(f"Malformed chat identity: {value!r}")
        user, server = raw.split("@", 1)
        device = None
        if ":" in user:
            user, device = user.split(":", 1)
        if not user or not server:
            raise IdentityError(f"Malformed chat identity: {value!r}")
        return cls(user=user, server=server, device=device or None)


def _strip_phone(value: str) -> str:
    return _WHITESPACE.sub("", value).replace("+", "")


def to_case_phone(identity: Union[ChatIdentity, str]) -> str:
    """Bare Chatwoot phone (``+<digits>``) for a chat identity.

    Safe to apply to an already normalized phone.
    """
    raw = identity.user if isinstance(identity, ChatIdentity) else str(identity or "")
    raw = raw.split("@", 1)[0].split(":", 1)[0]
    phone = _strip_phone(raw)
    if not phone:
        raise IdentityError(f"Empty phone for identity {identity!r}")
    return f"+{phone}"


def to_chat_identity(
    value: Optional[str],
    *,
    default_domain: Optional[str] = None,
    min_digits: Optional[int] = None,
) -> tuple[Optional[ChatIdentity], bool]:
    """Parse a Chatwoot phone or source id into a deliverable chat identity.

    Returns ``(None, False)`` for empty, malformed or implausible values such as
    the UUIDs Chatwoot uses as source ids for some contacts.
    """
    domain = default_domain or settings.default_chat_domain
    minimum = settings.min_phone_digits if min_digits is None else min_digits

    cleaned = _strip_phone(value or "")
    if not cleaned or UUID_PATTERN.match(cleaned):
        return None, False

    candidate = cleaned if "@" in cleaned else f"{cleaned}@{domain}"
    try:
        identity = ChatIdentity.parse(candidate)
    except IdentityError:
        return None, False

    if not USER_PATTERN.match(identity.user):
        return None, False
    if len(identity.digits) < minimum:
        return None, False
    return identity, True


def is_ignored(identity: Union[ChatIdentity, str, None], patterns: Iterable[str]) -> bool:
    if not identity:
        return False
    value = str(identity)
    return any(pattern and pattern in value for pattern in patterns)
