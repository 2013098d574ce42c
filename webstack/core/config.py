"""
Configuration management for webstack.
"""

import os
import logging
from typing import Dict, Optional, Any
from .exceptions import ConfigurationError


def _parse_env_line(line: str):
    """Split a ``KEY=value`` line, stripping matching quotes from the value."""
    key, value = line.split('=', 1)
    key = key.strip()
    value = value.strip()
    if value.startswith('"') and value.endswith('"'):
        value = value[1:-1]
    elif value.startswith("'") and value.endswith("'"):
        value = value[1:-1]
    return key, value


class Config:
    """Centralized configuration management."""

    def __init__(self, env_file: str = '.env'):
        self.env_file = env_file
        self._load_environment()
        self._validate_settings()

    def _load_environment(self):
        """Load configuration from environment variables and .env file."""
        if os.path.exists(self.env_file):
            try:
                with open(self.env_file, 'r') as f:
                    for line in f:
                        line = line.strip()
                        if line and not line.startswith('#') and '=' in line:
                            key, value = _parse_env_line(line)
                            os.environ.setdefault(key, value)
            except OSError as e:
                raise ConfigurationError(f"Failed to load .env file: {e}")

    def _validate_settings(self):
        """Reject settings that can never work."""
        if not 0 <= self.local_port <= 65535:
            raise ConfigurationError(f"LOCAL_PORT out of range: {self.local_port}")
        if self.max_requests_per_second < 0:
            raise ConfigurationError("MAX_REQUESTS_PER_SECOND must not be negative")
        burst = self.rate_limit_burst
        if burst is not None and burst < 1:
            raise ConfigurationError("RATE_LIMIT_BURST must be at least 1")
        if bool(self.ssl_cert_path) != bool(self.ssl_key_path):
            import warnings
            warnings.warn("SSL_CERT_PATH and SSL_KEY_PATH must be set together; serving plain HTTP", UserWarning)

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value."""
        return os.getenv(key, default)

    def get_int(self, key: str, default: int = 0) -> int:
        """Get integer configuration value."""
        try:
            return int(self.get(key, default))
        except (ValueError, TypeError):
            return default

    def get_float(self, key: str, default: float = 0.0) -> float:
        """Get float configuration value."""
        try:
            return float(self.get(key, default))
        except (ValueError, TypeError):
            return default

    def get_bool(self, key: str, default: bool = False) -> bool:
        """Get boolean configuration value."""
        value = self.get(key, '').lower()
        if value in ('true', '1', 'yes', 'on'):
            return True
        elif value in ('false', '0', 'no', 'off'):
            return False
        return default

    # Network Configuration
    @property
    def local_host(self) -> str:
        """Bind address."""
        return self.get('LOCAL_HOST', '0.0.0.0')

    @property
    def local_port(self) -> int:
        """Listen port. 0 picks a free port."""
        return self.get_int('LOCAL_PORT', 8080)

    # SSL Configuration
    @property
    def ssl_cert_path(self) -> Optional[str]:
        """SSL certificate path."""
        return self.get('SSL_CERT_PATH')

    @property
    def ssl_key_path(self) -> Optional[str]:
        """SSL private key path."""
        return self.get('SSL_KEY_PATH')

    # Request Handling
    @property
    def max_upload_size(self) -> int:
        """Largest request body aiohttp will buffer, in bytes."""
        return self.get_int('MAX_UPLOAD_SIZE', 1024**2)

    @property
    def max_requests_per_second(self) -> int:
        """Steady per-client request rate. 0 disables rate limiting."""
        return self.get_int('MAX_REQUESTS_PER_SECOND', 0)

    @property
    def rate_limit_burst(self) -> Optional[int]:
        """Token bucket capacity. Unset means equal to the steady rate."""
        if self.get('RATE_LIMIT_BURST') in (None, ''):
            return None
        return self.get_int('RATE_LIMIT_BURST', 0)

    @property
    def rate_limit_idle_ttl(self) -> float:
        """Seconds a client may stay idle before its bucket is dropped."""
        return self.get_float('RATE_LIMIT_IDLE_TTL', 600.0)

    @property
    def ignore_range_requests(self) -> bool:
        """Serve full bodies even when a Range header is present."""
        return self.get_bool('IGNORE_RANGE_REQUESTS', False)

    @property
    def trust_proxy_headers(self) -> bool:
        """
        Take the client address from X-Real-IP / X-Forwarded-For.

        Clients can set these headers themselves, so only enable this behind a
        reverse proxy that overwrites them; otherwise rate limit keys can be
        forged at will.
        """
        return self.get_bool('TRUST_PROXY_HEADERS', False)

    # Static Content
    @property
    def static_root(self) -> Optional[str]:
        """Directory served as static content."""
        return self.get('STATIC_ROOT')

    @property
    def static_prefix(self) -> str:
        """URL prefix of the static directory."""
        return self.get('STATIC_PREFIX', '/static/')

    # Logging Configuration
    @property
    def log_level(self) -> str:
        """Logging level."""
        return self.get('LOG_LEVEL', 'INFO')

    @property
    def log_file(self) -> Optional[str]:
        """Log file path."""
        return self.get('LOG_FILE')

    @property
    def request_log_level(self) -> int:
        """Level access log records are written at."""
        name = self.get('REQUEST_LOG_LEVEL', 'INFO').upper()
        level = logging.getLevelName(name)
        if not isinstance(level, int):
            raise ConfigurationError(f"Unknown REQUEST_LOG_LEVEL: {name}")
        return level

    def setup_logging(self):
        """Setup logging configuration."""
        from ..utils.logging import setup_logging
        setup_logging(self.log_level, self.log_file)

    def get_settings_dict(self) -> Dict[str, Any]:
        """Get the effective settings as a dictionary."""
        return {
            'LOCAL_HOST': self.local_host,
            'LOCAL_PORT': self.local_port,
            'SSL_CERT_PATH': self.ssl_cert_path,
            'SSL_KEY_PATH': self.ssl_key_path,
            'MAX_UPLOAD_SIZE': self.max_upload_size,
            'MAX_REQUESTS_PER_SECOND': self.max_requests_per_second,
            'RATE_LIMIT_BURST': self.rate_limit_burst,
            'RATE_LIMIT_IDLE_TTL': self.rate_limit_idle_ttl,
            'IGNORE_RANGE_REQUESTS': self.ignore_range_requests,
            'TRUST_PROXY_HEADERS': self.trust_proxy_headers,
            'STATIC_ROOT': self.static_root,
            'STATIC_PREFIX': self.static_prefix,
            'LOG_LEVEL': self.log_level,
            'LOG_FILE': self.log_file,
            'REQUEST_LOG_LEVEL': logging.getLevelName(self.request_log_level),
        }


# Global configuration instance
_config = None

def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config()
    return _config
