#!/usr/bin/env python3
"""
Command line entry point for webstack.
"""

import asyncio
import argparse
import sys
import signal
import logging

from webstack.core.app import WebStackApp
from webstack.core.config import get_config
from webstack.core.exceptions import WebStackError, ConfigurationError
from webstack.utils.networking import get_local_ip

logger = logging.getLogger(__name__)


class GracefulShutdown:
    """Handle graceful shutdown of the application."""

    def __init__(self, app: WebStackApp):
        self.app = app
        self.shutdown_event = asyncio.Event()
        self.loop = asyncio.get_running_loop()

    def signal_handler(self, signum, frame):
        """Handle shutdown signals."""
        logger.info(f"Received signal {signum}, initiating graceful shutdown...")
        self.loop.call_soon_threadsafe(self.shutdown_event.set)

    async def wait_for_shutdown(self):
        """Wait for shutdown signal."""
        await self.shutdown_event.wait()


async def serve_command(args):
    """Start the server."""
    try:
        config = get_config()
        app = WebStackApp(config, host=args.host, port=args.port,
                          static_root=args.static_root, static_prefix=args.static_prefix)

        async with app:
            shutdown_handler = GracefulShutdown(app)
            signal.signal(signal.SIGINT, shutdown_handler.signal_handler)
            signal.signal(signal.SIGTERM, shutdown_handler.signal_handler)

            info = app.server.get_server_info()
            if info['host'] in ('0.0.0.0', ''):
                info['host'] = get_local_ip() or 'localhost'
            print(f"""
🎉 webstack server started!

📡 Server Details:
   • URL: {info['protocol']}://{info['host']}:{info['port']}
   • Static: {app.static_prefix + ' -> ' + app.static_root if app.static_root else 'disabled'}
   • Rate limit: {config.max_requests_per_second or 'off'} requests/second

Press Ctrl+C to shutdown gracefully...
            """)

            await shutdown_handler.wait_for_shutdown()

    except ConfigurationError as e:
        logger.error(f"❌ Configuration error: {e}")
        sys.exit(1)
    except WebStackError as e:
        logger.error(f"❌ Application error: {e}")
        sys.exit(1)


def show_configuration():
    """Display current configuration."""
    try:
        config = get_config()

        print("⚙️ Current Configuration:")
        print("=" * 50)
        for key, value in config.get_settings_dict().items():
            print(f"  • {key}: {value if value not in (None, '') else 'Not set'}")

    except ConfigurationError as e:
        logger.error(f"❌ Configuration error: {e}")
        sys.exit(1)


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="webstack HTTP/Websocket server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s serve                              # Start the server
  %(prog)s serve --static-root ./public       # Serve a directory under /static/
  %(prog)s config                             # Show current configuration
        """
    )

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    serve_parser = subparsers.add_parser('serve', help='Start the server')
    serve_parser.add_argument('--host', help='Bind address (LOCAL_HOST)')
    serve_parser.add_argument('--port', type=int, help='Listen port (LOCAL_PORT)')
    serve_parser.add_argument('--static-root', help='Directory to serve (STATIC_ROOT)')
    serve_parser.add_argument('--static-prefix', help='URL prefix for static files (STATIC_PREFIX)')

    subparsers.add_parser('config', help='Show current configuration')

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return

    try:
        if args.command == 'serve':
            asyncio.run(serve_command(args))
        elif args.command == 'config':
            show_configuration()
    except KeyboardInterrupt:
        print("\n👋 Goodbye!")


if __name__ == "__main__":
    main()
