from deskbridge.logging_config import get_logger
from deskbridge.services.chatwoot_client import ChatwootClient, ChatwootError
from deskbridge.services.result import Result

logger = get_logger("contact_service")


def find_contact_id(chatwoot: ChatwootClient, phone: str) -> int | None:
    """First Chatwoot contact matching the phone, or None.

    A failed search counts as no match so it never blocks delivery.
    """
    try:
        matches = chatwoot.search_contacts(phone)
    except ChatwootError as e:
        logger.warning(
            "Contact search failed, treating as no match",
            extra={"context": {"phone": phone, "status_code": e.status_code, "error": e.message}},
        )
        return None

    for match in matches:
        if isinstance(match, dict) and match.get("id") is not None:
            return int(match["id"])
    return None


def resolve_or_create_contact(
    chatwoot: ChatwootClient,
    *,
    inbox_id: int,
    phone: str,
    name: str,
) -> Result[int]:
    """Return the Chatwoot contact id for a phone, creating the contact if needed.

    Not serialized: two concurrent first messages from the same sender may both
    miss the search and create a duplicate contact.
    """
    contact_id = find_contact_id(chatwoot, phone)
    if contact_id is not None:
        return Result.success(contact_id)

    try:
        created_id = chatwoot.create_contact(
            inbox_id=inbox_id,
            name=name or phone,
            phone_number=phone,
            source_id=phone,
        )
    except ChatwootError as e:
        logger.error(
            "Contact creation failed",
            extra={"context": {"phone": phone, "status_code": e.status_code, "body": e.body}},
        )
        return Result.failure(f"Contact creation failed: {e.message}", "contact_create_failed")

    if created_id is None:
        logger.error("Contact creation returned no id", extra={"context": {"phone": phone}})
        return Result.failure("Contact creation returned no id", "contact_create_invalid")

    logger.info("Chatwoot contact created", extra={"context": {"phone": phone, "contact_id": created_id}})
    return Result.success(created_id)
