"""
Request handlers.

    base.py      RequestHandler interface, as_handler()
    example.py   Version query and message get/put
    logging.py   Access-log decorator for any handler
"""

from .base import HandlerFunc, RequestHandler, as_handler
from .example import ExampleHandler, decode_cstring
from .logging import LoggingHandler, RequestLog

__all__ = [
    "RequestHandler",
    "HandlerFunc",
    "as_handler",
    "ExampleHandler",
    "decode_cstring",
    "LoggingHandler",
    "RequestLog",
]
