"""Application factory and context for the VibeMaster gateway API.

All runtime state lives on an ``AppContext`` attached to ``app.state`` so
tests can build isolated apps with their own gateway and configuration.

Usage:
------
    # Production (settings from environment)
    app = create_app()

    # Tests (injected gateway)
    app = create_app(gateway=CommandGateway(source=fake_source))
"""

import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from gateway import __version__
from gateway.command_gateway import CommandGateway
from gateway.config import GatewayConfig
from gateway.logging_config import configure_logging

HEALTH_MESSAGE = "VibeMaster Gateway Running"


@dataclass
class AppContext:
    """Runtime context holding all application state."""

    config: GatewayConfig = field(default_factory=GatewayConfig)
    gateway: Optional[CommandGateway] = None
    server_start_time: float = field(default_factory=time.time)
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger("gateway"))

    def __post_init__(self) -> None:
        if self.gateway is None:
            self.gateway = CommandGateway.from_config(self.config)


def create_app(
    *,
    config: Optional[GatewayConfig] = None,
    gateway: Optional[CommandGateway] = None,
    production_mode: Optional[bool] = None,
    context: Optional[AppContext] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        config: Gateway settings (default: from environment)
        gateway: Pre-built gateway, e.g. one wired to a fake source
        production_mode: Override the PRODUCTION env var
        context: Pre-configured AppContext. If None, one is created from
            ``config`` and ``gateway``.

    Returns:
        Configured FastAPI application with context attached as app.state.context
    """
    if context is None:
        context = AppContext(config=config or GatewayConfig(), gateway=gateway)
    if production_mode is not None:
        context.config.production_mode = production_mode
    context.logger = configure_logging(context.config.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        ctx = app.state.context
        ctx.logger.info(
            "Gateway ready (policy=%s, engine=%s)",
            ctx.gateway.fallback_policy.value,
            ctx.config.engine_url or " ".join(ctx.config.engine_command),
        )
        try:
            yield
        finally:
            ctx.logger.info("Shutting down gateway")
            ctx.gateway.shutdown()

    production = context.config.production_mode
    app = FastAPI(
        title="VibeMaster Gateway API",
        version=__version__,
        lifespan=lifespan,
        docs_url=None if production else "/docs",
        redoc_url=None if production else "/redoc",
    )
    app.state.context = context

    app.add_middleware(
        CORSMiddleware,
        allow_origins=context.config.allowed_origins if production else ["*"],
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    _setup_routers(app, context)
    return app


def _setup_routers(app: FastAPI, ctx: AppContext) -> None:
    """Include all API routers."""
    from gateway.routers import commands, simulation, world_state

    @app.get("/health")
    async def health():
        return JSONResponse(
            {
                "status": "ok",
                "message": HEALTH_MESSAGE,
                "version": __version__,
                "uptime_seconds": time.time() - ctx.server_start_time,
            }
        )

    app.include_router(simulation.setup_router(ctx.gateway))
    app.include_router(world_state.setup_router(ctx.gateway))
    app.include_router(commands.setup_router(ctx.gateway))

    ctx.logger.debug("API routers configured")
