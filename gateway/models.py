"""Data models for gateway responses and world-state validation."""

from enum import Enum
from typing import List, Literal, Optional

import orjson
from pydantic import BaseModel, ConfigDict, ValidationError

from gateway.errors import MalformedOutput


class SimulationStatus(str, Enum):
    """Lifecycle state of the simulation owned by the gateway."""

    STOPPED = "stopped"
    RUNNING = "running"


class FallbackPolicy(str, Enum):
    """How the gateway reacts when the world-state engine fails.

    FALLBACK substitutes the fixed payload (tagged as such); STRICT raises.
    """

    FALLBACK = "fallback"
    STRICT = "strict"


class NpcRecord(BaseModel):
    """A simulated character as reported by the engine.

    Only the fields the front-end always renders are declared; the engine
    may send more (wealth, emotions, goals) and they are kept.
    """

    model_config = ConfigDict(extra="allow")

    name: str
    needFood: int
    needSafety: int


class WorldState(BaseModel):
    """Snapshot of the simulated world."""

    model_config = ConfigDict(extra="allow")

    currentDay: int
    currentHour: int
    npcs: List[NpcRecord]


class CommandResult(BaseModel):
    """Outcome of a start/stop command."""

    message: str
    changed: bool
    status: SimulationStatus


class WorldStateResult(BaseModel):
    """World-state payload tagged with where it came from.

    ``payload`` is the engine's raw text for live results and the fixed
    fallback literal otherwise. ``reason`` is set only for fallbacks.
    """

    source: Literal["live", "fallback"]
    payload: str
    reason: Optional[str] = None

    @property
    def is_fallback(self) -> bool:
        return self.source == "fallback"


class CommandResponse(BaseModel):
    """Result of invoking a command by name: a success string or an error string."""

    success: bool
    result: Optional[str] = None
    error: Optional[str] = None


def parse_world_state(text: str) -> WorldState:
    """Parse and validate serialized world state.

    Raises:
        MalformedOutput: If the text is not JSON or does not match the schema.
    """
    try:
        data = orjson.loads(text)
    except orjson.JSONDecodeError as e:
        raise MalformedOutput(f"World state is not valid JSON: {e}") from e

    try:
        return WorldState.model_validate(data)
    except ValidationError as e:
        raise MalformedOutput(
            f"World state does not match schema ({e.error_count()} errors)"
        ) from e
