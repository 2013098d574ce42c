"""
Core application components.
"""

from .app import WebStackApp
from .config import Config, get_config
from .exceptions import (
    WebStackError,
    ConfigurationError,
    ListenerError,
    WebsocketClosedError,
    Error,
    AuthError,
    AdmissionError,
    PayloadError,
    RangeError,
    HandlerFault,
    validation_error,
)

__all__ = [
    'WebStackApp',
    'Config',
    'get_config',
    'WebStackError',
    'ConfigurationError',
    'ListenerError',
    'WebsocketClosedError',
    'Error',
    'AuthError',
    'AdmissionError',
    'PayloadError',
    'RangeError',
    'HandlerFault',
    'validation_error'
]
