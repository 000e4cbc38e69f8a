"""
Main entry point for the Hytale Server Polling API

Starts the HTTP API in front of the query orchestrator:
- Nitrado Query (HTTPS/JSON, default port 5523)
- HyQuery (binary UDP, default port 5520)
"""

import asyncio
import logging
import signal

from hytale_query.config import config
from hytale_query.orchestrator import QueryOrchestrator
from hytale_query.servers.api_server import PollingAPIServer


logger = logging.getLogger(__name__)


class ServiceManager:
    """Owns the orchestrator and the API server"""

    def __init__(self, config=config):
        self.config = config
        self.orchestrator = QueryOrchestrator(self.config)
        self.api_server = None
        self.running = False
        self._stopped = asyncio.Event()

    async def start_all(self):
        """Start the API server and wait until stop_all() is called"""

        print("\n" + "=" * 70)
        print(f"🎮 {self.config.API_NAME} v{self.config.API_VERSION}")
        print("=" * 70)

        try:
            print("\n📡 Starting API Server...")
            self.api_server = PollingAPIServer(self.config, self.orchestrator)
            await self.api_server.start()
            print(f"   ✓ API Server running on port {self.config.API_PORT}")

            print()
            print("📋 Endpoints:")
            print(f"   Ping:  http://{self.config.API_HOST}:{self.config.API_PORT}/api/ping")
            print(f"   Meta:  http://{self.config.API_HOST}:{self.config.API_PORT}/api/meta")
            print()
            print("⚙️  Query defaults:")
            print(f"   Nitrado port: {self.config.DEFAULT_PORT}")
            print(f"   HyQuery port: {self.config.HYQUERY_DEFAULT_PORT}")
            print(f"   Timeout:      {self.config.TIMEOUT_SECONDS}s")
            cache = f"{self.config.CACHE_DURATION}s" if self.config.CACHE_DURATION > 0 else "disabled"
            print(f"   Cache:        {cache}")
            print()
            print("Press Ctrl+C to stop")
            print("=" * 70)
            print()

            self.running = True

            await self._stopped.wait()

        except Exception as e:
            logger.error(f"Error starting services: {e}", exc_info=True)
            await self.stop_all()
            raise

    async def stop_all(self):
        """Stop all services gracefully"""

        if not self.running:
            self._stopped.set()
            return

        print("\n🛑 Shutting down...")

        if self.api_server:
            await self.api_server.stop()

        self.orchestrator.cache.clear()

        print("✅ Stopped")

        self.running = False
        self._stopped.set()


async def main():
    """Main entry point"""

    logging.basicConfig(
        level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    manager = ServiceManager()

    # Register signal handlers for graceful shutdown
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, lambda s=sig: asyncio.create_task(manager.stop_all()))

    try:
        await manager.start_all()
    finally:
        await manager.stop_all()


def run():
    """Console script entry point"""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass


if __name__ == '__main__':
    run()
