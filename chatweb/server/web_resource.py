from __future__ import annotations

from aiohttp import web

from chatweb.app import (
    handle_chat,
    handle_health_check,
    handle_index,
    handle_models,
)
from chatweb.config import Config
from chatweb.logging_config import get_loggers
from chatweb.server.completion import CompletionProxy
from chatweb.server.middleware import (
    error_handling_middleware,
    logging_and_metrics_middleware,
)
from chatweb.server.parsing import load_system_prompt
from chatweb.server.providers import ProviderRegistry

app_logger, _, _ = get_loggers()


class WebServer:
    """A wrapper for the aiohttp web server."""

    def __init__(self, config: Config):
        self.config = config
        self.port = config.port
        self.host = config.host
        self.app = web.Application(
            middlewares=[
                logging_and_metrics_middleware(),
                error_handling_middleware(),
            ]
        )
        self.runner: web.AppRunner | None = None
        self.site: web.TCPSite | None = None
        self.registry: ProviderRegistry | None = None

    def setup(self) -> web.Application:
        """
        Builds the provider registry and completion proxy and registers routes.

        Raises:
            ConfigurationError: If required provider keys are missing.
        """
        system_prompt = load_system_prompt(self.config.resolve_system_prompt_path())
        self.registry = ProviderRegistry.from_config(self.config, system_prompt)

        self.app["config"] = self.config
        self.app["registry"] = self.registry
        self.app["proxy"] = CompletionProxy(self.registry, self.config.default_model)
        self.app.on_cleanup.append(self._close_registry)

        self.app.router.add_get("/", handle_index)
        self.app.router.add_get("/_health_check", handle_health_check)
        self.app.router.add_get("/api/models", handle_models)
        self.app.router.add_post("/api/chat", handle_chat)
        app_logger.debug(
            "Routes registered",
            extra={"default_model": self.config.default_model},
        )
        return self.app

    async def _close_registry(self, app: web.Application) -> None:
        if self.registry:
            await self.registry.close()

    async def start(self):
        self.setup()
        self.runner = web.AppRunner(self.app)
        await self.runner.setup()
        self.site = web.TCPSite(self.runner, self.host, self.port)
        await self.site.start()
        app_logger.info(f"Web server started on http://{self.host}:{self.port}")

    async def stop(self):
        if self.site:
            await self.site.stop()
        if self.runner:
            await self.runner.cleanup()
