"""
Main entry point for the chatroom server.

Loads settings, configures logging and serves the FastAPI application with
uvicorn. The commentary scheduler and the other background work are tied to
the application lifespan, so stopping the server (Ctrl+C / SIGTERM) shuts
them down cleanly.
"""

import argparse
import asyncio
import logging
from typing import Optional, Sequence

import uvicorn

from chatroom.api_server import create_api_server
from chatroom.config import AppConfig, get_settings
from chatroom.utils.logging_config import setup_logging

logger = logging.getLogger(__name__)


class ChatroomApp:
    """Main application class that runs the chat server."""

    def __init__(self, settings: AppConfig):
        self.settings = settings
        self.server: Optional[uvicorn.Server] = None

    def setup(self) -> None:
        setup_logging(
            log_level=self.settings.log_level,
            log_format=self.settings.log_format,
            log_file=self.settings.log_file,
        )
        app = create_api_server(self.settings)
        config = uvicorn.Config(
            app,
            host=self.settings.host,
            port=self.settings.port,
            log_level=self.settings.log_level.lower(),
        )
        self.server = uvicorn.Server(config)
        logger.debug("Chat server configured successfully")

    async def run(self) -> None:
        if self.server is None:
            self.setup()
        logger.info(f"Starting chat server on http://{self.settings.host}:{self.settings.port}")
        await self.server.serve()


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Chatroom server with a question-answering bot")
    parser.add_argument("--host", help="Interface to bind (overrides HOST)")
    parser.add_argument("--port", type=int, help="Port to listen on (overrides PORT)")
    parser.add_argument("--log-level", help="Logging level (overrides LOG_LEVEL)")
    parser.add_argument("--database", help="Path of the JSON message store (overrides STORAGE_DATABASE_PATH)")
    return parser.parse_args(argv)


def apply_overrides(settings: AppConfig, args: argparse.Namespace) -> AppConfig:
    """Return settings with command-line values taking precedence over the environment."""
    update = {}
    if args.host:
        update["host"] = args.host
    if args.port:
        update["port"] = args.port
    if args.log_level:
        update["log_level"] = args.log_level
    if args.database:
        update["storage"] = settings.storage.model_copy(update={"database_path": args.database})
    return settings.model_copy(update=update) if update else settings


def main(argv: Optional[Sequence[str]] = None) -> None:
    settings = apply_overrides(get_settings(), parse_args(argv))
    app = ChatroomApp(settings)
    try:
        asyncio.run(app.run())
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt, shutting down...")


if __name__ == "__main__":
    main()
