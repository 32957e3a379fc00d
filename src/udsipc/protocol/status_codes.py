"""
=============================================================================
COMMAND AND STATUS CODES
=============================================================================

The second header field is overloaded: in a request it carries a command
code, in a response it carries a status code.

    Request:   [signature][ COMMAND ][data_len][checksum][payload...]
    Response:  [signature][ STATUS  ][data_len][checksum][payload...]

Command codes start at 0x8001 so that a status value can never be mistaken
for a command when a packet is inspected in isolation (e.g. in a hex dump).

Both enums are IntEnum, so they compare equal to the raw integers found on
the wire:

    >>> Status.SUCCESS == 0
    True
    >>> Command(0x8001)
    <Command.GET_VERSION: 32769>

=============================================================================
"""

from enum import IntEnum
from typing import Union


class Command(IntEnum):
    """Request codes understood by the example handler."""

    GET_VERSION = 0x8001    # Empty request, 2-byte (major, minor) reply
    GET_MESSAGE = 0x8002    # Empty request, NUL-terminated string reply
    PUT_MESSAGE = 0x8003    # NUL-terminated string request, empty reply


class Status(IntEnum):
    """Response codes."""

    SUCCESS = 0             # Request handled
    INVALID_COMMAND = 1     # Unknown command code
    GENERIC_ERROR = 2       # Handler produced no response

    @property
    def phrase(self) -> str:
        """Human readable form, e.g. 'Invalid Command'."""
        return self.name.replace("_", " ").title()


def describe_command(code: int) -> str:
    """Name of a command code for logs, falling back to hex for unknown codes."""
    try:
        return Command(code).name
    except ValueError:
        return f"0x{code:04X}"


def as_status(code: int) -> Union[Status, int]:
    """Convert to Status when the code is known, else return it unchanged."""
    try:
        return Status(code)
    except ValueError:
        return code
