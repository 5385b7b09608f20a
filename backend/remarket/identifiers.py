"""
Remarket Backend - Identifiers
================================

What:  Generation and validation of the 24-hex-character ids every entity
       carries, plus the canonical pair key used to match conversations.
How:   ObjectId layout: 4-byte big-endian seconds timestamp followed by
       8 random bytes, hex-encoded. Ids therefore sort roughly by creation
       time, which is used as a tie-breaker when timestamps collide.
Who:   Models (column defaults), gateway and services (input validation),
       request schemas (`ObjectIdStr`).
"""

import re
import secrets
import time
from typing import Annotated

from pydantic import AfterValidator

from remarket.exceptions import InvalidIdentifierError

ID_LENGTH = 24
_ID_PATTERN = re.compile(r"^[0-9a-f]{24}$")


def new_object_id() -> str:
    """Returns a fresh 24-hex id (timestamp prefix + 64 random bits)."""
    return f"{int(time.time()) & 0xFFFFFFFF:08x}{secrets.token_hex(8)}"


def is_valid_identifier(value: object) -> bool:
    return isinstance(value, str) and bool(_ID_PATTERN.match(value))


def parse_identifier(value: object, field: str = "id") -> str:
    """
    Normalizes and validates an identifier.

    Accepts upper-case hex (lower-cased on the way in) and surrounding
    whitespace. Raises InvalidIdentifierError for anything else.
    """
    if isinstance(value, str):
        candidate = value.strip().lower()
        if _ID_PATTERN.match(candidate):
            return candidate
    raise InvalidIdentifierError(value, field=field)


def _validate_object_id(value: str) -> str:
    candidate = value.strip().lower()
    if not _ID_PATTERN.match(candidate):
        # pydantic wraps ValueError into its own error list
        raise ValueError("must be a 24-character hexadecimal identifier")
    return candidate


ObjectIdStr = Annotated[str, AfterValidator(_validate_object_id)]


def canonical_pair_key(participant_a: str, participant_b: str) -> str:
    """
    Order-independent key for an unordered pair of user ids.

    `canonical_pair_key(a, b) == canonical_pair_key(b, a)`; stored under a
    UNIQUE constraint so one conversation exists per pair.
    """
    first, second = sorted((participant_a, participant_b))
    return f"{first}:{second}"
