"""
=============================================================================
PACKET CODEC
=============================================================================

Every message exchanged over the socket, in either direction, is one
packet: a fixed 14-byte header followed by a variable-length payload.

=============================================================================
WIRE FORMAT
=============================================================================

All fields are little-endian, with no padding between them:

    ┌─────────────────────────────────────────────────────────────────────┐
    │  offset  field               width   meaning                        │
    │  ──────  ──────────────────  ──────  ───────────────────────────── │
    │   0      signature           32-bit  0xDEADBEEF                     │
    │   4      command_or_status   32-bit  command (req) / status (resp)  │
    │   8      data_len            32-bit  number of payload bytes        │
    │  12      checksum            16-bit  one's complement, see below    │
    │  14      payload             data_len bytes                         │
    └─────────────────────────────────────────────────────────────────────┘

A stream socket has no message boundaries, so the receiver trusts nothing
until three checks pass:

    1. SIGNATURE   the magic constant is present
    2. LENGTH      data_len + 14 == number of bytes actually received
    3. CHECKSUM    re-running the checksum over the received bytes
                   (checksum field included) yields zero

=============================================================================
THE CHECKSUM (RFC 1071)
=============================================================================

The Internet checksum: add the buffer up as 16-bit words, fold every carry
out of bit 16 back into the low bits ("end-around carry"), then invert.

    words:     0xBEEF  0xDEAD  0x8001  0x0000  ...
    sum:       0x2_1D9D                          (more than 16 bits)
    fold:      0x1D9D + 0x2 = 0x1D9F
    invert:    ~0x1D9F & 0xFFFF = 0xE260         ← stored in the header

Why does verification yield zero? One's complement addition of a value and
its complement is 0xFFFF ("negative zero"), and inverting that gives 0:

    fold(sum_without_checksum + checksum) = 0xFFFF  →  ~0xFFFF = 0x0000

An odd trailing byte is added as a word of its own (its value, unshifted).

=============================================================================
"""

import struct
from dataclasses import dataclass, replace
from typing import Optional, Union

from ..errors import (
    ChecksumMismatchError,
    InvalidSignatureError,
    LengthMismatchError,
    TruncatedPacketError,
)
from .status_codes import Command, Status, as_status


SIGNATURE = 0xDEADBEEF

# signature, command_or_status, data_len, checksum
HEADER = struct.Struct("<IIIH")
HEADER_SIZE = HEADER.size                  # 14 bytes
CHECKSUM_OFFSET = 12

_WORD = struct.Struct("<H")
_MAX_U32 = 0xFFFFFFFF


def checksum(data: Union[bytes, bytearray, memoryview], length: Optional[int] = None) -> int:
    """
    Compute the 16-bit one's complement checksum of ``data[:length]``.

    Before computing the value to store, the checksum field must be zero.
    Run over a packet with its real checksum in place, the result is 0.

    Args:
        data: Buffer to sum.
        length: Number of leading bytes to cover. Defaults to ``len(data)``.

    Returns:
        The checksum, 0..0xFFFF.
    """
    view = memoryview(data)
    if length is None:
        length = len(view)

    even = length & ~1
    total = 0
    for (word,) in _WORD.iter_unpack(view[:even]):
        total += word

    # Odd length: the last byte counts as a word on its own
    if length & 1:
        total += view[length - 1]

    while total >> 16:
        total = (total >> 16) + (total & 0xFFFF)

    return ~total & 0xFFFF


def encode(code: int, payload: bytes = b"", signature: int = SIGNATURE) -> bytes:
    """
    Build the wire bytes for one packet.

    Stamps the signature, writes the header with a zeroed checksum, then
    computes the checksum over header + payload and patches it in.

    Raises:
        ValueError: If a field does not fit its 32-bit slot.
    """
    if not 0 <= code <= _MAX_U32:
        raise ValueError(f"code out of range: {code}")
    if len(payload) > _MAX_U32:
        raise ValueError(f"payload too large: {len(payload)} bytes")

    buf = bytearray(HEADER_SIZE + len(payload))
    HEADER.pack_into(buf, 0, signature, code, len(payload), 0)
    buf[HEADER_SIZE:] = payload
    _WORD.pack_into(buf, CHECKSUM_OFFSET, checksum(buf))
    return bytes(buf)


def validate(data: Union[bytes, bytearray, memoryview], length: Optional[int] = None) -> None:
    """
    Check that ``data[:length]`` is exactly one intact packet.

    Args:
        data: Received bytes.
        length: Number of bytes observed on the wire. Defaults to ``len(data)``.

    Raises:
        TruncatedPacketError: Not even a full header was observed.
        InvalidSignatureError: Magic constant missing.
        LengthMismatchError: data_len + header size != observed length.
        ChecksumMismatchError: Checksum does not fold to zero.
    """
    if length is None:
        length = len(data)

    if length < HEADER_SIZE or len(data) < length:
        raise TruncatedPacketError(
            f"packet too short ({length} bytes, header is {HEADER_SIZE})"
        )

    signature, _, data_len, _ = HEADER.unpack_from(data)

    if signature != SIGNATURE:
        raise InvalidSignatureError(signature)

    if data_len + HEADER_SIZE != length:
        raise LengthMismatchError(data_len + HEADER_SIZE, length)

    residue = checksum(data, length)
    if residue != 0:
        raise ChecksumMismatchError(residue)


def is_valid(data: Union[bytes, bytearray, memoryview], length: Optional[int] = None) -> bool:
    """Non-raising form of :func:`validate`."""
    try:
        validate(data, length)
    except ValueError:
        return False
    return True


def decode(data: Union[bytes, bytearray, memoryview], length: Optional[int] = None) -> "Packet":
    """Validate ``data[:length]`` and unpack it into a :class:`Packet`."""
    if length is None:
        length = len(data)
    validate(data, length)
    signature, code, _, _ = HEADER.unpack_from(data)
    return Packet(
        code=code,
        payload=bytes(data[HEADER_SIZE:length]),
        signature=signature,
    )


@dataclass(frozen=True)
class Packet:
    """
    One decoded packet.

    ``code`` is the raw command_or_status field. Use :attr:`command` on a
    request and :attr:`status` on a response for the typed view.

    The checksum is not stored: it is a property of the encoding and is
    recomputed by :meth:`to_bytes` every time.
    """

    code: int
    payload: bytes = b""
    signature: int = SIGNATURE

    @classmethod
    def request(cls, command: int, payload: bytes = b"") -> "Packet":
        return cls(code=int(command), payload=bytes(payload))

    @classmethod
    def response(cls, status: int, payload: bytes = b"") -> "Packet":
        return cls(code=int(status), payload=bytes(payload))

    @classmethod
    def from_bytes(cls, data: bytes, length: Optional[int] = None) -> "Packet":
        return decode(data, length)

    @property
    def data_len(self) -> int:
        return len(self.payload)

    @property
    def command(self) -> Union[Command, int]:
        try:
            return Command(self.code)
        except ValueError:
            return self.code

    @property
    def status(self) -> Union[Status, int]:
        return as_status(self.code)

    def with_signature(self, signature: int) -> "Packet":
        """Copy of this packet carrying ``signature``."""
        return replace(self, signature=signature)

    def to_bytes(self) -> bytes:
        return encode(self.code, self.payload, self.signature)

    def __len__(self) -> int:
        """Encoded size in bytes."""
        return HEADER_SIZE + len(self.payload)
