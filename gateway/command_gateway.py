"""Command gateway between the front-end and the simulation engine.

The gateway exposes three parameterless commands:

- ``start_simulation`` / ``stop_simulation`` move the simulation between
  ``stopped`` and ``running``. Both are idempotent and report whether a
  transition actually happened.
- ``get_world_state`` asks the configured source for the current world and,
  under the default policy, substitutes the fixed fallback payload when the
  source has nothing usable. The result is tagged so callers can tell live
  data from fallback data.

The status lock only guards the read-check-and-set of the status; it is
never held while a process is spawned, waited on, or queried. A separate
lifecycle lock serializes launching and stopping the simulation process.
Whoever changed the status brings the process in line with the status as it
stands when that caller gets the lifecycle lock, so the last transition
always decides whether a process is running.
"""

import logging
import threading
from typing import Callable, Dict, Optional

from gateway.config import GatewayConfig
from gateway.engine_process import SimulationProcess
from gateway.errors import (
    GatewayError,
    SimulationStartRejected,
    UnknownCommand,
    WorldStateError,
)
from gateway.fallback import FALLBACK_WORLD_STATE
from gateway.models import (
    CommandResponse,
    CommandResult,
    FallbackPolicy,
    SimulationStatus,
    WorldStateResult,
)
from gateway.world_state_sources import (
    HttpWorldStateSource,
    ProcessWorldStateSource,
    WorldStateSource,
)

logger = logging.getLogger(__name__)

START_MESSAGE = "Simulation started"
STOP_MESSAGE = "Simulation stopped"
COMMAND_NAMES = ("start_simulation", "stop_simulation", "get_world_state")


def build_world_state_source(config: GatewayConfig) -> WorldStateSource:
    """Pick the world-state source described by the configuration."""
    if config.engine_url:
        return HttpWorldStateSource(
            config.engine_url,
            timeout=config.engine_timeout,
            validate=config.validate_output,
        )
    return ProcessWorldStateSource(
        config.engine_command,
        cwd=config.resolved_engine_cwd(),
        timeout=config.engine_timeout,
        validate=config.validate_output,
    )


class CommandGateway:
    """Owns the simulation status and bridges world-state requests to an engine."""

    def __init__(
        self,
        source: WorldStateSource,
        fallback_policy: FallbackPolicy = FallbackPolicy.FALLBACK,
        simulation_process: Optional[SimulationProcess] = None,
    ):
        """Initialize the gateway.

        Args:
            source: Where world state comes from
            fallback_policy: Substitute the fallback payload or raise on engine failure
            simulation_process: Optional engine process launched by start and
                terminated by stop
        """
        self.source = source
        self.fallback_policy = fallback_policy
        self.simulation_process = simulation_process
        self._status = SimulationStatus.STOPPED
        self._lock = threading.Lock()
        self._lifecycle_lock = threading.Lock()

    @classmethod
    def from_config(cls, config: GatewayConfig) -> "CommandGateway":
        simulation_process = None
        if config.simulation_command:
            simulation_process = SimulationProcess(
                config.simulation_command, cwd=config.resolved_engine_cwd()
            )
        return cls(
            source=build_world_state_source(config),
            fallback_policy=config.fallback_policy,
            simulation_process=simulation_process,
        )

    @property
    def status(self) -> SimulationStatus:
        with self._lock:
            return self._status

    def _transition(self, expected: SimulationStatus, target: SimulationStatus) -> bool:
        with self._lock:
            if self._status != expected:
                return False
            self._status = target
            return True

    def start_simulation(self) -> CommandResult:
        """Move the simulation to ``running``.

        Raises:
            SimulationStartRejected: The configured simulation process failed to launch
        """
        logger.info("Starting simulation...")
        changed = self._transition(SimulationStatus.STOPPED, SimulationStatus.RUNNING)

        if changed and self.simulation_process is not None:
            with self._lifecycle_lock:
                # A stop may have landed while this call waited for the lock
                if self.status == SimulationStatus.RUNNING:
                    try:
                        self.simulation_process.start()
                    except GatewayError as e:
                        self._transition(SimulationStatus.RUNNING, SimulationStatus.STOPPED)
                        logger.error("Simulation engine rejected start: %s", e)
                        raise SimulationStartRejected(str(e)) from e

        if not changed:
            logger.info("Simulation already running")
        return CommandResult(message=START_MESSAGE, changed=changed, status=self.status)

    def stop_simulation(self) -> CommandResult:
        """Move the simulation to ``stopped``. Stopping twice is not an error."""
        logger.info("Stopping simulation...")
        changed = self._transition(SimulationStatus.RUNNING, SimulationStatus.STOPPED)

        if changed and self.simulation_process is not None:
            with self._lifecycle_lock:
                if self.status == SimulationStatus.STOPPED:
                    self.simulation_process.stop()

        if not changed:
            logger.info("Simulation already stopped")
        return CommandResult(message=STOP_MESSAGE, changed=changed, status=self.status)

    def get_world_state(self, cancel_event: Optional[threading.Event] = None) -> WorldStateResult:
        """Fetch the current world state.

        Raises:
            WorldStateError: Only under the strict policy
        """
        try:
            payload = self.source.fetch(cancel_event=cancel_event)
        except WorldStateError as e:
            if self.fallback_policy == FallbackPolicy.STRICT:
                logger.error("World state unavailable (%s): %s", e.reason, e)
                raise
            logger.warning("Serving fallback world state (%s): %s", e.reason, e)
            return WorldStateResult(source="fallback", payload=FALLBACK_WORLD_STATE, reason=e.reason)

        return WorldStateResult(source="live", payload=payload)

    def get_world_state_text(self) -> str:
        """Bare-string form of ``get_world_state`` for callers that ignore the tag."""
        return self.get_world_state().payload

    def shutdown(self) -> None:
        """Stop any running simulation before the host exits."""
        if self.status == SimulationStatus.RUNNING:
            self.stop_simulation()

    def run_command(self, command: str) -> str:
        """Run a command by name and return its success string.

        Raises:
            UnknownCommand: No such command
            GatewayError: The command failed
        """
        handlers: Dict[str, Callable[[], str]] = {
            "start_simulation": lambda: self.start_simulation().message,
            "stop_simulation": lambda: self.stop_simulation().message,
            "get_world_state": self.get_world_state_text,
        }

        handler = handlers.get(command)
        if handler is None:
            logger.warning("Unknown command received: %s", command)
            raise UnknownCommand(f"Unknown command: {command}")
        return handler()

    def invoke(self, command: str) -> CommandResponse:
        """Dispatch a command by name, converting errors into an error string."""
        try:
            return CommandResponse(success=True, result=self.run_command(command))
        except GatewayError as e:
            return CommandResponse(success=False, error=str(e))
