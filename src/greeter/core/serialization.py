"""
Wire codec for instructions and greeting records.

Layout is fixed and versionless:

- instructions start with a one-byte discriminant selecting the variant
- text is a u32 little-endian byte length followed by that many UTF-8 bytes
- integers are little-endian

Decoding never truncates and never checks business limits such as the
maximum name length; those belong to the state model.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass, field

from greeter.core.constants import (
    IDENTITY_LENGTH,
    TAG_CREATE_GREETING,
    TAG_SET_GREETING,
)
from greeter.core.instructions import CreateGreeting, Instruction, SetGreeting
from greeter.core.program_exceptions import (
    MalformedDataError,
    TruncatedDataError,
    UnknownVariantError,
)
from greeter.core.state import GreetingRecord

_U8 = struct.Struct("<B")
_U32 = struct.Struct("<I")


@dataclass
class Writer:
    buf: bytearray = field(default_factory=bytearray)

    def write_u8(self, v: int) -> None:
        self.buf.extend(_U8.pack(v))

    def write_u32(self, v: int) -> None:
        self.buf.extend(_U32.pack(v))

    def write_fixed(self, b: bytes, size: int) -> None:
        if len(b) != size:
            raise ValueError(f"expected {size} bytes, got {len(b)}")
        self.buf.extend(b)

    def write_string(self, s: str) -> None:
        raw = s.encode("utf-8")
        self.write_u32(len(raw))
        self.buf.extend(raw)

    def to_bytes(self) -> bytes:
        return bytes(self.buf)


@dataclass
class Reader:
    data: bytes
    offset: int = 0

    @property
    def remaining(self) -> int:
        return len(self.data) - self.offset

    def _take(self, size: int, what: str) -> bytes:
        if size > self.remaining:
            raise TruncatedDataError(
                f"{what} needs {size} bytes at offset {self.offset}, "
                f"{self.remaining} remaining",
                needed=size,
                remaining=self.remaining,
            )
        chunk = self.data[self.offset : self.offset + size]
        self.offset += size
        return bytes(chunk)

    def read_u8(self, what: str = "u8") -> int:
        return _U8.unpack(self._take(_U8.size, what))[0]

    def read_u32(self, what: str = "u32") -> int:
        return _U32.unpack(self._take(_U32.size, what))[0]

    def read_fixed(self, size: int, what: str) -> bytes:
        return self._take(size, what)

    def read_string(self, what: str) -> str:
        length = self.read_u32(f"{what} length")
        raw = self._take(length, what)
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise MalformedDataError(
                f"{what} is not valid UTF-8", details={"reason": str(exc)}
            ) from exc

    def expect_end(self) -> None:
        if self.remaining:
            raise MalformedDataError(
                f"{self.remaining} trailing bytes after instruction",
                details={"trailing": self.remaining},
            )


# ==================== Instructions ====================


def encode_instruction(instruction: Instruction) -> bytes:
    """Serialize an instruction to its wire form."""
    w = Writer()
    if isinstance(instruction, CreateGreeting):
        w.write_u8(TAG_CREATE_GREETING)
        w.write_string(instruction.name)
        w.write_string(instruction.message)
    elif isinstance(instruction, SetGreeting):
        w.write_u8(TAG_SET_GREETING)
        w.write_string(instruction.message)
    else:
        raise TypeError(f"not an instruction: {type(instruction).__name__}")
    return w.to_bytes()


def decode_instruction(data: bytes) -> Instruction:
    """
    Parse instruction bytes.

    Raises:
        MalformedDataError: Empty input, invalid UTF-8, or trailing bytes
        UnknownVariantError: Unrecognized discriminant
        TruncatedDataError: A declared length runs past the buffer
    """
    if not data:
        raise MalformedDataError("instruction data is empty")
    r = Reader(bytes(data))
    tag = r.read_u8("discriminant")
    instruction: Instruction
    if tag == TAG_CREATE_GREETING:
        name = r.read_string("name")
        message = r.read_string("message")
        instruction = CreateGreeting(name=name, message=message)
    elif tag == TAG_SET_GREETING:
        instruction = SetGreeting(message=r.read_string("message"))
    else:
        raise UnknownVariantError(tag)
    r.expect_end()
    return instruction


# ==================== Records ====================


def encode_record(record: GreetingRecord) -> bytes:
    """Serialize a record to its persisted form."""
    w = Writer()
    w.write_fixed(record.authority, IDENTITY_LENGTH)
    w.write_string(record.name)
    w.write_string(record.message)
    w.write_u32(record.update_count)
    return w.to_bytes()


def decode_record(data: bytes) -> GreetingRecord:
    """
    Parse a record from the start of an account buffer.

    Bytes after the record are the slot's zero padding and are ignored.
    """
    r = Reader(bytes(data))
    authority = r.read_fixed(IDENTITY_LENGTH, "authority")
    name = r.read_string("name")
    message = r.read_string("message")
    update_count = r.read_u32("update_count")
    return GreetingRecord(
        authority=authority, name=name, message=message, update_count=update_count
    )
