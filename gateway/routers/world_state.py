"""World-state endpoint.

The engine's payload is returned verbatim as the response body; whether it
is live or fallback data is reported in headers so the body keeps the exact
shape the front-end already parses.
"""

import asyncio
import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse, Response

from gateway.command_gateway import CommandGateway
from gateway.errors import WorldStateError

logger = logging.getLogger(__name__)

SOURCE_HEADER = "X-World-State-Source"
REASON_HEADER = "X-World-State-Reason"


def setup_router(gateway: CommandGateway) -> APIRouter:
    """Setup the world-state router.

    Endpoints:
        GET /api/world-state
    """
    router = APIRouter(prefix="/api", tags=["world-state"])

    @router.get("/world-state")
    async def get_world_state():
        loop = asyncio.get_running_loop()
        try:
            result = await loop.run_in_executor(None, gateway.get_world_state)
        except WorldStateError as e:
            return JSONResponse(
                {"error": str(e), "reason": e.reason},
                status_code=502,
                headers={REASON_HEADER: e.reason},
            )

        headers = {SOURCE_HEADER: result.source}
        if result.reason:
            headers[REASON_HEADER] = result.reason
        return Response(content=result.payload, media_type="application/json", headers=headers)

    return router
