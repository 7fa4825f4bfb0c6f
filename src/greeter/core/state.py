"""
Greeting account state model.

A record is created once, bound to an authority, and afterwards only its
message changes. Storage for it is pre-allocated at the maximum serialized
size so the slot never needs to be resized.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Dict

from greeter.core.constants import (
    IDENTITY_LENGTH,
    LENGTH_PREFIX_SIZE,
    MAX_MESSAGE_LENGTH,
    MAX_NAME_LENGTH,
    UPDATE_COUNT_MAX,
    UPDATE_COUNT_SIZE,
)
from greeter.core.program_exceptions import FieldTooLongError


@dataclass(frozen=True)
class GreetingRecord:
    """Persisted greeting data stored at a derived address."""

    authority: bytes
    name: str
    message: str
    update_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "authority": self.authority.hex(),
            "name": self.name,
            "message": self.message,
            "update_count": self.update_count,
        }


def max_space() -> int:
    """
    Maximum serialized size of a GreetingRecord.

    authority + (len prefix + name) + (len prefix + message) + update_count
    """
    return (
        IDENTITY_LENGTH
        + (LENGTH_PREFIX_SIZE + MAX_NAME_LENGTH)
        + (LENGTH_PREFIX_SIZE + MAX_MESSAGE_LENGTH)
        + UPDATE_COUNT_SIZE
    )


def check_name(name: str) -> None:
    length = len(name.encode("utf-8"))
    if length > MAX_NAME_LENGTH:
        raise FieldTooLongError("name", length, MAX_NAME_LENGTH)


def check_message(message: str) -> None:
    length = len(message.encode("utf-8"))
    if length > MAX_MESSAGE_LENGTH:
        raise FieldTooLongError("message", length, MAX_MESSAGE_LENGTH)


def apply_create(authority: bytes, name: str, message: str) -> GreetingRecord:
    """
    Build a freshly created record.

    Args:
        authority: Identity allowed to update the record
        name: Record name, fixed for the record's lifetime
        message: Initial message

    Returns:
        New record with ``update_count`` of zero

    Raises:
        FieldTooLongError: If name or message exceeds its maximum length
    """
    check_name(name)
    check_message(message)
    return GreetingRecord(authority=authority, name=name, message=message, update_count=0)


def apply_set(record: GreetingRecord, new_message: str) -> GreetingRecord:
    """
    Return ``record`` with its message replaced and its counter bumped.

    The counter saturates at the u32 maximum rather than wrapping.

    Raises:
        FieldTooLongError: If the new message exceeds its maximum length
    """
    check_message(new_message)
    return replace(
        record,
        message=new_message,
        update_count=min(record.update_count + 1, UPDATE_COUNT_MAX),
    )
