"""World-state sources: adapters that ask an engine for the current world.

A source returns the engine's raw serialized text or raises a
``WorldStateError`` describing why there is nothing usable. Fallback
substitution is the gateway's decision, never the source's.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Optional, Protocol, Sequence, runtime_checkable

import httpx

from gateway.engine_process import run_engine
from gateway.errors import (
    EmptyOutput,
    MalformedOutput,
    ProcessLaunchFailed,
    ProcessTimedOut,
)
from gateway.models import parse_world_state

logger = logging.getLogger(__name__)


@runtime_checkable
class WorldStateSource(Protocol):
    """Anything that can produce serialized world state."""

    def fetch(self, cancel_event: Optional[threading.Event] = None) -> str:
        """Return raw world-state text.

        Raises:
            WorldStateError: When no usable output was produced
        """
        ...


def _check_payload(text: str, validate: bool) -> str:
    if not text.strip():
        raise EmptyOutput("Engine produced no output")
    if validate:
        parse_world_state(text)
    return text


class ProcessWorldStateSource:
    """Runs the world-state script and reads its standard output."""

    def __init__(
        self,
        command: Sequence[str],
        cwd: Path,
        timeout: float,
        validate: bool = False,
    ):
        self.command = list(command)
        self.cwd = cwd
        self.timeout = timeout
        self.validate = validate

    def fetch(self, cancel_event: Optional[threading.Event] = None) -> str:
        """Run the engine and return its standard output verbatim.

        Output that is not valid UTF-8 raises ``MalformedOutput``, so under the
        default policy it is served as the fallback world tagged
        ``malformed_output``. The desktop shell this replaces answered ``"{}"``
        as if it were live data in that case.

        Raises:
            WorldStateError: Launch failure, timeout, cancellation, empty or
                undecodable output, or (with ``validate``) a schema mismatch
        """
        output = run_engine(self.command, self.cwd, self.timeout, cancel_event=cancel_event)
        if output.returncode != 0:
            logger.warning(
                "World-state engine %r exited with status %d", self.command[0], output.returncode
            )

        try:
            text = output.stdout.decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedOutput(f"Engine output is not valid UTF-8: {e}") from e

        return _check_payload(text, self.validate)


class HttpWorldStateSource:
    """Fetches world state from an engine's HTTP endpoint (``GET /api/world-state``)."""

    def __init__(
        self,
        url: str,
        timeout: float,
        validate: bool = False,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """Initialize the source.

        Args:
            url: Full URL of the world-state endpoint
            timeout: Request timeout in seconds
            validate: Schema-check the body before returning it
            transport: Optional httpx transport (tests inject a MockTransport)
        """
        self.url = url
        self.timeout = timeout
        self.validate = validate
        self._transport = transport

    def fetch(self, cancel_event: Optional[threading.Event] = None) -> str:
        # httpx has no cooperative cancellation; the timeout bounds the wait
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.get(self.url)
        except httpx.TimeoutException as e:
            raise ProcessTimedOut(f"World-state request to {self.url} timed out") from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise ProcessLaunchFailed(f"World-state request to {self.url} failed: {e}") from e

        if response.status_code >= 400:
            raise ProcessLaunchFailed(
                f"World-state endpoint {self.url} returned HTTP {response.status_code}"
            )

        return _check_payload(response.text, self.validate)
