"""Child-process helpers for the external simulation engine.

Two kinds of processes are managed here:

- ``run_engine`` runs a short-lived command to completion (the world-state
  script) and returns its standard output, with a hard timeout and an
  optional cancellation event.
- ``SimulationProcess`` keeps a long-running simulation command alive
  between start and stop.
"""

import logging
import os
import signal
import subprocess
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from gateway.errors import ProcessCancelled, ProcessLaunchFailed, ProcessTimedOut

logger = logging.getLogger(__name__)

CANCEL_POLL_INTERVAL = 0.05  # Seconds between cancellation checks
STOP_GRACE_PERIOD = 5.0  # Seconds to wait after terminate() before kill()
KILL_DRAIN_TIMEOUT = 1.0  # Seconds to drain stdout after a kill

# Children lead their own process group so signals reach anything they spawn
_POSIX = os.name == "posix"


@dataclass
class EngineOutput:
    """Raw result of a finished engine process."""

    stdout: bytes
    returncode: int
    duration: float


def _signal_group(proc: subprocess.Popen, force: bool) -> None:
    """Terminate (or kill) the child and, on POSIX, everything in its group."""
    if not _POSIX:
        if force:
            proc.kill()
        else:
            proc.terminate()
        return
    try:
        os.killpg(proc.pid, signal.SIGKILL if force else signal.SIGTERM)
    except ProcessLookupError:
        pass


def _kill(proc: subprocess.Popen) -> None:
    _signal_group(proc, force=True)
    try:
        proc.communicate(timeout=KILL_DRAIN_TIMEOUT)
    except subprocess.TimeoutExpired:
        # A process outside the group still holds the pipe open
        proc.stdout.close()
        proc.wait()


def run_engine(
    command: Sequence[str],
    cwd: Path,
    timeout: float,
    cancel_event: Optional[threading.Event] = None,
) -> EngineOutput:
    """Run an engine command and collect its standard output.

    Standard input is closed and standard error is discarded. The exit status
    is reported but not judged; callers decide what a non-zero exit means.

    Args:
        command: Program and arguments
        cwd: Working directory for the child
        timeout: Seconds to wait before killing the child
        cancel_event: When set by another thread, the child is killed early

    Raises:
        ProcessLaunchFailed: The program could not be started
        ProcessTimedOut: The child did not exit within ``timeout``
        ProcessCancelled: ``cancel_event`` was set before the child exited
    """
    started = time.monotonic()
    try:
        proc = subprocess.Popen(
            list(command),
            cwd=str(cwd),
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL,
            start_new_session=_POSIX,
        )
    except OSError as e:
        raise ProcessLaunchFailed(f"Could not launch {command[0]!r} in {cwd}: {e}") from e

    deadline = started + timeout
    while True:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            _kill(proc)
            raise ProcessTimedOut(f"{command[0]!r} did not exit within {timeout:.1f}s")
        if cancel_event is not None and cancel_event.is_set():
            _kill(proc)
            raise ProcessCancelled(f"{command[0]!r} was cancelled")

        wait = remaining if cancel_event is None else min(remaining, CANCEL_POLL_INTERVAL)
        try:
            stdout, _ = proc.communicate(timeout=wait)
            break
        except subprocess.TimeoutExpired:
            continue

    duration = time.monotonic() - started
    logger.debug(
        "Engine %r exited with %d after %.3fs (%d bytes)",
        command[0],
        proc.returncode,
        duration,
        len(stdout),
    )
    return EngineOutput(stdout=stdout or b"", returncode=proc.returncode, duration=duration)


class SimulationProcess:
    """A long-running simulation engine started and stopped by the gateway."""

    def __init__(self, command: List[str], cwd: Path, stop_timeout: float = STOP_GRACE_PERIOD):
        self.command = list(command)
        self.cwd = cwd
        self.stop_timeout = stop_timeout
        self._proc: Optional[subprocess.Popen] = None

    @property
    def pid(self) -> Optional[int]:
        return self._proc.pid if self._proc is not None else None

    def is_alive(self) -> bool:
        return self._proc is not None and self._proc.poll() is None

    def start(self) -> None:
        """Launch the simulation in the background.

        Raises:
            ProcessLaunchFailed: The program could not be started
        """
        if self.is_alive():
            return
        try:
            self._proc = subprocess.Popen(
                self.command,
                cwd=str(self.cwd),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=_POSIX,
            )
        except OSError as e:
            self._proc = None
            raise ProcessLaunchFailed(
                f"Could not launch simulation {self.command[0]!r} in {self.cwd}: {e}"
            ) from e
        logger.info("Simulation process started (PID %d)", self._proc.pid)

    def stop(self) -> None:
        """Terminate the simulation, killing it if it ignores the request."""
        proc, self._proc = self._proc, None
        if proc is None:
            return
        if proc.poll() is None:
            _signal_group(proc, force=False)
            try:
                proc.wait(timeout=self.stop_timeout)
            except subprocess.TimeoutExpired:
                logger.warning("Simulation process %d ignored terminate, killing", proc.pid)
                _signal_group(proc, force=True)
                proc.wait()
        logger.info("Simulation process stopped (exit %s)", proc.returncode)
