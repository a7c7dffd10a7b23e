"""Command-line entry point for the VibeMaster gateway.

Modes:
- serve (default): run the HTTP API under uvicorn
- invoke: run one gateway command locally and print its result
"""

import argparse
import logging
import sys
from typing import List, Optional

import orjson

from gateway.command_gateway import COMMAND_NAMES, CommandGateway
from gateway.config import GatewayConfig
from gateway.errors import ConfigurationError
from gateway.logging_config import configure_logging

logger = logging.getLogger(__name__)

SEPARATOR_WIDTH = 60


def run_web_server(config: GatewayConfig, host: str, port: int) -> None:
    """Run the gateway HTTP API."""
    import uvicorn

    from gateway.app_factory import create_app

    config.api_port = port
    app = create_app(config=config)

    logger.info("=" * SEPARATOR_WIDTH)
    logger.info("VIBEMASTER GATEWAY")
    logger.info("=" * SEPARATOR_WIDTH)
    logger.info("GET  http://%s:%d/health", host, port)
    logger.info("GET  http://%s:%d/api/world-state", host, port)
    logger.info("POST http://%s:%d/api/simulation/start", host, port)
    logger.info("POST http://%s:%d/api/simulation/stop", host, port)
    logger.info("Press Ctrl+C to stop the server")
    logger.info("=" * SEPARATOR_WIDTH)

    uvicorn.run(app, host=host, port=port, log_level=config.log_level.lower())


def run_invoke(config: GatewayConfig, command: str, as_json: bool) -> int:
    """Run a single command and print its outcome.

    Returns:
        Process exit status: 0 on success, 1 on an error response
    """
    gateway = CommandGateway.from_config(config)
    response = gateway.invoke(command)

    if as_json:
        sys.stdout.write(orjson.dumps(response.model_dump()).decode("utf-8") + "\n")
    elif response.success:
        sys.stdout.write(f"{response.result}\n")
    else:
        sys.stderr.write(f"error: {response.error}\n")

    return 0 if response.success else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="VibeMaster simulation gateway",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run the HTTP API (default)
  python main.py

  # Serve on another port
  python main.py serve --port 3001

  # Print the current world state once
  python main.py invoke get_world_state

  # Machine-readable result
  python main.py invoke start_simulation --json
        """,
    )
    subparsers = parser.add_subparsers(dest="mode")

    serve = subparsers.add_parser("serve", help="Run the HTTP API (default)")
    serve.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    serve.add_argument(
        "--port", type=int, default=None, help="Port (default: VIBEMASTER_API_PORT or 8000)"
    )

    invoke = subparsers.add_parser("invoke", help="Run one command and print the result")
    invoke.add_argument("command", choices=COMMAND_NAMES)
    invoke.add_argument(
        "--json", action="store_true", help="Print the full response as JSON"
    )

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Parse command-line arguments and run the selected mode."""
    args = build_parser().parse_args(argv)

    try:
        config = GatewayConfig()
        configure_logging(config.log_level)

        if args.mode == "invoke":
            return run_invoke(config, args.command, args.json)

        host = getattr(args, "host", "127.0.0.1")
        port = getattr(args, "port", None)
        if port is None:
            port = config.api_port
        run_web_server(config, host, port)
    except ConfigurationError as e:
        logger.error("Invalid configuration: %s", e)
        return 2
    return 0
