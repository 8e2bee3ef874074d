import asyncio
import logging
import signal
import sys

from pydantic import ValidationError

from chatweb.config import Config, ConfigurationError
from chatweb.logging_config import configure_logging
from chatweb.server.web_resource import WebServer

app_logger = logging.getLogger("chatweb_app")


async def main() -> int:
    """Main entry point for the application."""
    # Create a shutdown event
    shutdown_event = asyncio.Event()

    # Get the current loop
    loop = asyncio.get_running_loop()

    # Set up signal handlers
    def _signal_handler():
        app_logger.info("Shutdown signal received, initiating graceful shutdown.")
        shutdown_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _signal_handler)

    # Load configuration
    try:
        config = Config()
    except ValidationError as e:
        configure_logging()
        app_logger.error(f"Invalid configuration: {e}")
        return 1

    configure_logging(config.log_level, config.log_format)

    app_logger.info(
        "Starting application with key configurations",
        extra={
            "log_level": config.log_level,
            "default_model": config.default_model,
            "anthropic_base_url": config.anthropic_base_url,
            "deepseek_enabled": bool(config.deepseek_api_key),
            "strict_models": config.strict_models,
        },
    )

    server = WebServer(config)
    try:
        await server.start()
    except ConfigurationError as e:
        app_logger.error(f"Cannot start: {e}")
        return 1

    app_logger.info("Application started successfully. Running in server mode.")
    # Wait for the shutdown event
    await shutdown_event.wait()
    app_logger.info("Shutdown event received, server is stopping.")
    await server.stop()
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
