"""
HTTP server owning the aiohttp application and its route tables.
"""

import asyncio
import os
import ssl
from typing import Callable, Optional

from aiohttp import web

from ..core.exceptions import Error, ListenerError
from ..utils.logging import logger
from ..utils.networking import real_remote_addr
from .api import API
from .http import HTTP
from .pipeline import error_response, maybe_await
from .ratelimit import RateLimiter
from .types import HandleOptions, ServerOptions
from .websocket import SocketHandle, register_socket

CLEANUP_INTERVAL = 300


class Server:
    """
    An HTTP server with JSON API, plain HTTP and websocket routes.

    Routes must be registered before the server starts; aiohttp freezes the
    router at startup.
    """

    def __init__(self, host: str = '127.0.0.1', port: int = 0, options: Optional[ServerOptions] = None,
                 ssl_cert_path: str = None, ssl_key_path: str = None):
        self.host = host
        self.port = port
        self.listen_port = port
        self.options = options or ServerOptions()
        self.ssl_cert_path = ssl_cert_path
        self.ssl_key_path = ssl_key_path
        self.protocol = "http"

        # Optional overrides for the 404 and 405 error envelopes
        self.not_found_handler: Optional[Callable] = None
        self.method_not_allowed_handler: Optional[Callable] = None

        self.app = web.Application(
            client_max_size=self.options.client_max_size,
            middlewares=[self._error_middleware],
        )
        self.app.on_startup.append(self._on_startup)
        self.app.on_cleanup.append(self._on_cleanup)

        self.api = API(self)
        self.http = HTTP(self)

        self._rate_limiter: Optional[RateLimiter] = None
        self._limiter_settings = None
        self.cleanup_task = None
        self.runner = None
        self.site = None

    def add_route(self, method: str, path: str, handler):
        self.app.router.add_route(method, path, handler)

    def socket(self, path: str, handle: SocketHandle, options: Optional[HandleOptions] = None):
        """Register a websocket endpoint."""
        register_socket(self, path, handle, options)

    # ============== Rate Limiting ==============

    @property
    def rate_limiter(self) -> Optional[RateLimiter]:
        """The limiter for the current options, or None when limiting is off."""
        rate = self.options.max_requests_per_second
        if rate <= 0:
            return None
        # Options may be changed after construction, so rebuild when they differ
        settings = (rate, self.options.rate_limit_burst, self.options.rate_limit_idle_ttl)
        if self._rate_limiter is None or self._limiter_settings != settings:
            self._rate_limiter = RateLimiter(rate, burst=self.options.rate_limit_burst,
                                             idle_ttl=self.options.rate_limit_idle_ttl)
            self._limiter_settings = settings
            logger.info(f"Rate limiting to {rate} requests per second (burst {self._rate_limiter.burst})")
        return self._rate_limiter

    def is_rate_limited(self, request: web.Request) -> bool:
        limiter = self.rate_limiter
        if limiter is None:
            return False
        return not limiter.allow(real_remote_addr(request, self.options.trust_proxy_headers))

    # ============== Middleware ==============

    @web.middleware
    async def _error_middleware(self, request, handler):
        """Render router level 404 and 405 errors as error envelopes."""
        try:
            return await handler(request)
        except web.HTTPNotFound:
            if self.not_found_handler is not None:
                return await maybe_await(self.not_found_handler(request))
            return error_response(Error.not_found())
        except web.HTTPMethodNotAllowed as e:
            if self.method_not_allowed_handler is not None:
                return await maybe_await(self.method_not_allowed_handler(request))
            response = error_response(Error.method_not_allowed())
            response.headers['Allow'] = ','.join(sorted(e.allowed_methods))
            return response

    # ============== Lifecycle ==============

    async def _on_startup(self, app: web.Application):
        self.cleanup_task = asyncio.create_task(self._periodic_cleanup())

    async def _on_cleanup(self, app: web.Application):
        if self.cleanup_task:
            self.cleanup_task.cancel()
            try:
                await self.cleanup_task
            except asyncio.CancelledError:
                pass
            self.cleanup_task = None

    def _ssl_context(self) -> Optional[ssl.SSLContext]:
        if not (self.ssl_cert_path and self.ssl_key_path):
            return None
        if not (os.path.exists(self.ssl_cert_path) and os.path.exists(self.ssl_key_path)):
            logger.warning("SSL certificate or key missing, serving plain HTTP")
            return None
        context = ssl.create_default_context(ssl.Purpose.CLIENT_AUTH)
        context.load_cert_chain(self.ssl_cert_path, self.ssl_key_path)
        return context

    async def start(self):
        """Start listening."""
        try:
            logger.info("🌐 Starting web server...")
            self.runner = web.AppRunner(self.app)
            await self.runner.setup()

            ssl_context = self._ssl_context()
            if ssl_context is not None:
                self.protocol = "https"
                logger.info(f"✅ SSL enabled with certificate: {self.ssl_cert_path}")

            self.site = web.TCPSite(self.runner, self.host, self.port, ssl_context=ssl_context)
            await self.site.start()

            if self.runner.addresses:
                self.listen_port = self.runner.addresses[0][1]
            logger.info(f"✅ Listening on {self.protocol}://{self.host}:{self.listen_port}")

        except (OSError, ssl.SSLError) as e:
            logger.error(f"❌ Failed to start web server: {e}")
            await self.stop()
            raise ListenerError(f"Server startup failed: {e}")

    async def stop(self):
        """Stop the web server and cleanup resources."""
        try:
            logger.info("🛑 Stopping web server...")

            if self.site:
                await self.site.stop()
                self.site = None

            if self.runner:
                await self.runner.cleanup()
                self.runner = None

            logger.info("✅ Web server stopped successfully")

        except (OSError, RuntimeError) as e:
            logger.error(f"❌ Error stopping server: {e}")

    def is_running(self) -> bool:
        """Check if the server is running."""
        return self.site is not None

    async def _periodic_cleanup(self):
        """Drop idle rate limit buckets."""
        try:
            while True:
                await asyncio.sleep(CLEANUP_INTERVAL)
                limiter = self._rate_limiter
                if limiter is not None:
                    limiter.evict_idle()
                logger.debug("🧹 Periodic cleanup completed")
        except asyncio.CancelledError:
            logger.debug("🛑 Cleanup task cancelled")
            raise

    def get_server_info(self) -> dict:
        """Get server information."""
        limiter = self._rate_limiter
        return {
            'host': self.host,
            'port': self.listen_port,
            'protocol': self.protocol,
            'ssl_enabled': self.protocol == "https",
            'max_requests_per_second': self.options.max_requests_per_second,
            'tracked_clients': len(limiter) if limiter is not None else 0,
            'running': self.is_running(),
        }

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop()
