"""Error taxonomy for the gateway.

World-state sources raise ``WorldStateError`` subclasses. The gateway decides,
according to its fallback policy, whether to substitute the fallback payload
or let the error reach the caller.
"""

from typing import Optional


class GatewayError(Exception):
    """Base class for all gateway errors."""


class ConfigurationError(GatewayError):
    """An environment or constructor setting has an invalid value."""


class SimulationStartRejected(GatewayError):
    """The simulation engine refused to start (e.g. its process failed to launch)."""


class WorldStateError(GatewayError):
    """The world-state engine did not produce usable output.

    Attributes:
        reason: Machine-readable reason tag, reported in fallback results
            and HTTP error bodies.
    """

    reason = "world_state_error"

    def __init__(self, message: str, *, reason: Optional[str] = None):
        super().__init__(message)
        if reason is not None:
            self.reason = reason


class ProcessLaunchFailed(WorldStateError):
    reason = "process_launch_failed"


class ProcessTimedOut(WorldStateError):
    reason = "process_timed_out"


class ProcessCancelled(WorldStateError):
    reason = "process_cancelled"


class EmptyOutput(WorldStateError):
    reason = "empty_output"


class MalformedOutput(WorldStateError):
    reason = "malformed_output"


class UnknownCommand(GatewayError):
    """No command with the requested name exists."""
