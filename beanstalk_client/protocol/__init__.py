"""
Wire protocol module.
Contains the TCP transport, command encoder and response parser.
"""

from beanstalk_client.protocol.responses import Response, parse_line, read_body
from beanstalk_client.protocol.transport import Transport, parse_address

__all__ = [
    "Transport",
    "parse_address",
    "Response",
    "parse_line",
    "read_body",
]
