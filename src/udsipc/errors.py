"""
=============================================================================
EXCEPTION HIERARCHY
=============================================================================

Every error raised by udsipc derives from IPCError, so callers can catch
the whole family with one clause. The concrete classes also inherit from
the matching built-in so ordinary handlers keep working:

    IPCError
    ├── PacketError (ValueError)          packet-fatal: drop the packet
    │   ├── TruncatedPacketError
    │   ├── InvalidSignatureError
    │   ├── LengthMismatchError
    │   └── ChecksumMismatchError
    └── TransportError (ConnectionError)  connection-fatal: close it
        └── ConnectError                  connect retries exhausted

=============================================================================
"""


class IPCError(Exception):
    """Base class for all udsipc errors."""


class PacketError(IPCError, ValueError):
    """A received buffer is not a well-formed packet."""


class TruncatedPacketError(PacketError):
    """Fewer bytes than a packet header."""


class InvalidSignatureError(PacketError):
    """Signature field does not carry the protocol magic."""

    def __init__(self, signature: int):
        super().__init__(f"invalid signature of packet (0x{signature:08X})")
        self.signature = signature


class LengthMismatchError(PacketError):
    """Declared data length plus header size differs from the observed length."""

    def __init__(self, expected: int, observed: int):
        super().__init__(f"invalid length of packet ({expected}:{observed})")
        self.expected = expected
        self.observed = observed


class ChecksumMismatchError(PacketError):
    """Checksum over the received bytes does not fold to zero."""

    def __init__(self, residue: int):
        super().__init__(f"invalid checksum of packet (residue 0x{residue:04X})")
        self.residue = residue


class TransportError(IPCError, ConnectionError):
    """Socket I/O failed; the connection is no longer usable."""


class ConnectError(TransportError):
    """The client could not reach the server within its attempt budget."""
