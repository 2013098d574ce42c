"""
Main application orchestrator for webstack.
"""

import logging
import time
from typing import Optional
from .config import Config, get_config
from .exceptions import ListenerError, WebStackError
from ..web.server import Server
from ..web.types import HandleOptions, Request, ServerOptions

logger = logging.getLogger(__name__)


class WebStackApp:
    """Builds a Server from configuration and runs it."""

    def __init__(self, config: Optional[Config] = None, host: str = None, port: int = None,
                 static_root: str = None, static_prefix: str = None):
        self.config = config or get_config()
        self.host = host or self.config.local_host
        self.port = port if port is not None else self.config.local_port
        self.static_root = static_root or self.config.static_root
        self.static_prefix = static_prefix or self.config.static_prefix
        self.server: Optional[Server] = None
        self.started_at: Optional[float] = None

    def initialize(self):
        """Create the server and register the built-in routes."""
        self.config.setup_logging()
        logger.info("🚀 Initializing webstack...")

        self.server = Server(
            host=self.host,
            port=self.port,
            options=ServerOptions.from_config(self.config),
            ssl_cert_path=self.config.ssl_cert_path,
            ssl_key_path=self.config.ssl_key_path,
        )
        self.server.api.get('/api/health', self.health, HandleOptions(dont_log_requests=True))
        if self.static_root:
            self.server.http.static(self.static_prefix, self.static_root)

        logger.info("✅ Server initialized")
        return self.server

    async def health(self, request: Request) -> dict:
        """Report liveness and basic server information."""
        info = self.server.get_server_info()
        info['uptime'] = round(time.monotonic() - self.started_at, 3) if self.started_at else 0.0
        return info

    async def start_server(self):
        """Start the web server."""
        if not self.server:
            raise WebStackError("Application not initialized. Call initialize() first.")
        await self.server.start()
        self.started_at = time.monotonic()

    async def stop_server(self):
        """Stop the web server."""
        if self.server:
            await self.server.stop()

    def get_status(self) -> dict:
        """Get application status."""
        return {
            'initialized': self.server is not None,
            'server_running': self.server.is_running() if self.server else False,
            'static_root': self.static_root,
            'static_prefix': self.static_prefix if self.static_root else None,
            'max_requests_per_second': self.config.max_requests_per_second,
        }

    async def __aenter__(self):
        """Async context manager entry."""
        self.initialize()
        try:
            await self.start_server()
        except ListenerError:
            await self.stop_server()
            raise
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.stop_server()
