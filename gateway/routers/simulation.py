"""Simulation lifecycle endpoints (start, stop, status)."""

import asyncio
import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from gateway.command_gateway import CommandGateway
from gateway.errors import SimulationStartRejected
from gateway.models import CommandResult

logger = logging.getLogger(__name__)


def _result_body(result: CommandResult) -> dict:
    return {
        "success": True,
        "message": result.message,
        "changed": result.changed,
        "status": result.status.value,
    }


def setup_router(gateway: CommandGateway) -> APIRouter:
    """Setup the simulation router.

    Endpoints:
        POST /api/simulation/start
        POST /api/simulation/stop
        GET  /api/simulation/status
    """
    router = APIRouter(prefix="/api/simulation", tags=["simulation"])

    @router.post("/start")
    async def start_simulation():
        """Start the simulation. Starting a running simulation is a no-op."""
        loop = asyncio.get_running_loop()
        try:
            result = await loop.run_in_executor(None, gateway.start_simulation)
        except SimulationStartRejected as e:
            return JSONResponse({"success": False, "error": str(e)}, status_code=409)
        return JSONResponse(_result_body(result))

    @router.post("/stop")
    async def stop_simulation():
        """Stop the simulation. Stopping a stopped simulation is a no-op."""
        loop = asyncio.get_running_loop()
        result = await loop.run_in_executor(None, gateway.stop_simulation)
        return JSONResponse(_result_body(result))

    @router.get("/status")
    async def simulation_status():
        return JSONResponse({"status": gateway.status.value})

    return router
