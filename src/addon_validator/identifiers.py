from __future__ import annotations
import enum
import uuid
from typing import Optional


UUID_STRING_LENGTH = 36
# First hyphen-delimited segment of a UUID string.
ID_PREFIX_MAX_LENGTH = 8
HEX_DIGITS = frozenset("0123456789ABCDEF")


class IdentifierKind(enum.Enum):
    EXISTING = "existing"
    PREFIX = "prefix"
    INVALID = "invalid"


def is_existing_identifier(value: Optional[str]) -> bool:
    return value is not None and len(value) == UUID_STRING_LENGTH


def classify_identifier(value: str) -> IdentifierKind:
    """Tell an existing record ID apart from a prefix for a new one.

    Length decides: a full UUID string names an existing entry, anything else
    must be a short upper-case hex prefix.
    """
    if is_existing_identifier(value):
        return IdentifierKind.EXISTING
    if value and len(value) <= ID_PREFIX_MAX_LENGTH and all(c in HEX_DIGITS for c in value):
        return IdentifierKind.PREFIX
    return IdentifierKind.INVALID


def new_record_name() -> str:
    return str(uuid.uuid4()).upper()


def generate_identifier(requirement: Optional[str] = None) -> str:
    generated = new_record_name()
    if not requirement:
        return generated
    return requirement + generated[len(requirement):]
