"""
=============================================================================
REQUEST HANDLER INTERFACE
=============================================================================

The server core knows nothing about commands. All application logic sits
behind one method:

    handle(request: Packet) -> Optional[Packet]

    ┌──────────────┐   request    ┌────────────────┐
    │  Connection  │ ───────────► │ RequestHandler │
    │  (core loop) │ ◄─────────── │  (your code)   │
    └──────────────┘   response   └────────────────┘
                       or None

Returning None is allowed: the connection then answers with
Status.GENERIC_ERROR and an empty payload, so every well-formed request
gets exactly one reply. The handler never touches the signature or the
checksum; the connection fills both in.

Handlers are shared by all connection threads. Any state they keep must
be safe to update from several threads at once.

=============================================================================
"""

from abc import ABC, abstractmethod
from typing import Callable, Optional, Union

from ..protocol import Packet


HandlerFunc = Callable[[Packet], Optional[Packet]]


class RequestHandler(ABC):
    """Base class for request handlers."""

    @abstractmethod
    def handle(self, request: Packet) -> Optional[Packet]:
        """
        Produce the response for ``request``.

        Args:
            request: A validated request packet. ``request.command`` is the
                     command code, ``request.payload`` its data.

        Returns:
            The response packet (its code is a status), or None to let the
            server reply with a generic error.
        """

    def __call__(self, request: Packet) -> Optional[Packet]:
        return self.handle(request)


def as_handler(handler: Union[RequestHandler, HandlerFunc]) -> HandlerFunc:
    """
    Normalize a handler object or a plain function to a callable.

    Raises:
        TypeError: If ``handler`` is neither.
    """
    if isinstance(handler, RequestHandler):
        return handler.handle
    if callable(handler):
        return handler
    raise TypeError(f"request handler must be callable, got {type(handler).__name__}")
