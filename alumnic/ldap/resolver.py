"""Locate the directory entry for a user identifier."""

import logging
from typing import Any, Dict, List, Tuple

from ldap3 import SUBTREE
from ldap3.utils.conv import escape_filter_chars

from ..models import DirectorySettings, UserEntry
from .connection import DirectorySession
from .errors import (
    RESULT_SIZE_LIMIT_EXCEEDED,
    RESULT_SUCCESS,
    AmbiguousMatch,
    EntryNotFound,
    classify_result,
)

logger = logging.getLogger(__name__)

# Attributes the mutator needs to decide which password attributes to write
RESOLVE_ATTRIBUTES = ["uid", "objectClass"]


def _as_values(value: Any) -> Tuple[str, ...]:
    """Normalize an ldap3 attribute value (scalar or list, str or bytes) to a tuple of str."""
    if value is None:
        return ()
    if not isinstance(value, (list, tuple)):
        value = [value]
    return tuple(v.decode("utf-8", "replace") if isinstance(v, bytes) else str(v) for v in value)


def entry_from_response(item: Dict[str, Any], uid_attribute: str, user_id: str) -> UserEntry:
    """Build a UserEntry snapshot from one ldap3 search response item."""
    attributes = {name: _as_values(value) for name, value in (item.get("attributes") or {}).items()}
    uid_values = next((v for k, v in attributes.items() if k.lower() == uid_attribute.lower()), ())
    return UserEntry(
        distinguished_name=item["dn"],
        uid=uid_values[0] if uid_values else user_id,
        attributes=attributes,
    )


def build_user_filter(user_id: str, uid_attribute: str) -> str:
    """Equality filter on the identifying attribute, with RFC 4515 escaping."""
    return f"({uid_attribute}={escape_filter_chars(user_id)})"


def resolve_user(session: DirectorySession, user_id: str, settings: DirectorySettings) -> UserEntry:
    """
    Find the single entry whose identifying attribute equals ``user_id``.

    Args:
        session: A bound session
        user_id: The account name to look up (e.g. ``joao``)
        settings: Base DN and identifying attribute

    Returns:
        The matching UserEntry; its DN is passed through as the server sent it

    Raises:
        EntryNotFound: no entry matches
        AmbiguousMatch: two or more entries match (never picks one)
        DirectoryError: the search itself failed
        DirectoryConnectionError: the transport failed mid-search
    """
    user_id = (user_id or "").strip()
    if not user_id:
        raise EntryNotFound("Empty user identifier")

    attributes: List[str] = list(RESOLVE_ATTRIBUTES)
    if settings.uid_attribute not in attributes:
        attributes.append(settings.uid_attribute)

    # Two is enough to tell "one" from "many"
    entries = session.search(
        build_user_filter(user_id, settings.uid_attribute),
        attributes,
        search_base=settings.base_dn,
        scope=SUBTREE,
        size_limit=2,
    )
    result = session.result
    code = result.get("result", RESULT_SUCCESS)

    if code == RESULT_SIZE_LIMIT_EXCEEDED or len(entries) > 1:
        logger.warning("User %r matches more than one entry under %s", user_id, settings.base_dn)
        raise AmbiguousMatch(f"User {user_id!r} matches more than one entry", matches=max(len(entries), 2))

    error = classify_result(result, "search")
    if error is not None:
        raise error

    if not entries:
        raise EntryNotFound(f"User {user_id!r} not found under {settings.base_dn}")

    entry = entry_from_response(entries[0], settings.uid_attribute, user_id)
    logger.debug("Resolved %r to %s", user_id, entry.distinguished_name)
    return entry
