"""
=============================================================================
WIRE PROTOCOL
=============================================================================

Packet framing and integrity checking, independent of any socket:

    packet.py        Header layout, checksum, encode / validate / decode
    status_codes.py  Command and Status enums

Nothing in here performs I/O, so every function can be tested on plain
byte strings.

=============================================================================
"""

from .packet import (
    CHECKSUM_OFFSET,
    HEADER,
    HEADER_SIZE,
    SIGNATURE,
    Packet,
    checksum,
    decode,
    encode,
    is_valid,
    validate,
)
from .status_codes import Command, Status, describe_command

__all__ = [
    # Codec
    "Packet",
    "checksum",
    "encode",
    "decode",
    "validate",
    "is_valid",
    # Layout
    "SIGNATURE",
    "HEADER",
    "HEADER_SIZE",
    "CHECKSUM_OFFSET",
    # Codes
    "Command",
    "Status",
    "describe_command",
]
