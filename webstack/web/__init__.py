"""
Web server and request pipeline components.
"""

from .server import Server
from .api import API
from .http import HTTP
from .identity import Identity, ABSENT
from .mock import mock_request
from .ranges import RangeSpec, parse_range_header, write_http_response
from .ratelimit import RateLimiter
from .types import APIResponse, Cookie, HandleOptions, HTTPResponse, Request, ServerOptions, Writer
from .websocket import WSConn

__all__ = [
    'Server',
    'API',
    'HTTP',
    'Identity',
    'ABSENT',
    'mock_request',
    'RangeSpec',
    'parse_range_header',
    'write_http_response',
    'RateLimiter',
    'APIResponse',
    'Cookie',
    'HandleOptions',
    'HTTPResponse',
    'Request',
    'ServerOptions',
    'Writer',
    'WSConn'
]
