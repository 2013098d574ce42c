"""
Utility functions and helpers.
"""

from .networking import get_local_ip, real_remote_addr
from .logging import setup_logging, logger

__all__ = [
    'get_local_ip',
    'real_remote_addr',
    'setup_logging',
    'logger'
]
