"""
webstack
========

A small aiohttp serving toolkit: one dispatch pipeline (pre-handle hook, rate
limiting, body size guard, authentication, fault containment, access logging)
shared by JSON API, plain HTTP and websocket routes, and a byte range aware
response writer for static and dynamic content.
"""

__version__ = "1.0.0"

from webstack.core.app import WebStackApp
from webstack.core.config import Config
from webstack.core.exceptions import *
from webstack.web import (
    Server,
    ServerOptions,
    HandleOptions,
    HTTPResponse,
    APIResponse,
    Cookie,
    Identity,
    Request,
    Writer,
    WSConn,
    mock_request,
)

__all__ = [
    'WebStackApp',
    'Config',
    'Server',
    'ServerOptions',
    'HandleOptions',
    'HTTPResponse',
    'APIResponse',
    'Cookie',
    'Identity',
    'Request',
    'Writer',
    'WSConn',
    'mock_request',
    'Error',
    'validation_error',
    '__version__'
]
