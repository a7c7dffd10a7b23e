"""Generic command invocation endpoint.

Mirrors the desktop shell's invoke bridge: a parameterless command is
called by name and answers with a success string or an error string.
"""

import asyncio
import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from gateway.command_gateway import CommandGateway
from gateway.errors import GatewayError, SimulationStartRejected, UnknownCommand, WorldStateError
from gateway.models import CommandResponse

logger = logging.getLogger(__name__)


def _status_for(error: GatewayError) -> int:
    if isinstance(error, UnknownCommand):
        return 404
    if isinstance(error, SimulationStartRejected):
        return 409
    if isinstance(error, WorldStateError):
        return 502
    return 500


def setup_router(gateway: CommandGateway) -> APIRouter:
    """Setup the commands router.

    Endpoints:
        POST /api/commands/{command}
    """
    router = APIRouter(prefix="/api/commands", tags=["commands"])

    @router.post("/{command}")
    async def invoke_command(command: str):
        loop = asyncio.get_running_loop()
        try:
            result = await loop.run_in_executor(None, gateway.run_command, command)
        except GatewayError as e:
            body = CommandResponse(success=False, error=str(e))
            return JSONResponse(body.model_dump(), status_code=_status_for(e))
        return JSONResponse(CommandResponse(success=True, result=result).model_dump())

    return router
