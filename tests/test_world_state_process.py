"""World-state retrieval through a real engine process."""

import logging
import os
import shutil
import threading
import time
from pathlib import Path

import orjson
import pytest

from gateway.command_gateway import CommandGateway
from gateway.config import GatewayConfig
from gateway.engine_process import run_engine
from gateway.errors import EmptyOutput, ProcessCancelled, ProcessLaunchFailed, ProcessTimedOut
from gateway.fallback import FALLBACK_WORLD_STATE
from gateway.models import FallbackPolicy
from gateway.world_state_sources import ProcessWorldStateSource

from tests.fakes.fake_sources import LIVE_PAYLOAD


def make_gateway(command, cwd, timeout=10.0, policy=FallbackPolicy.FALLBACK, validate=False):
    source = ProcessWorldStateSource(command, cwd=cwd, timeout=timeout, validate=validate)
    return CommandGateway(source=source, fallback_policy=policy)


def test_missing_engine_returns_exact_fallback(missing_command, tmp_path):
    gateway = make_gateway(missing_command, tmp_path)

    result = gateway.get_world_state()

    assert result.payload == FALLBACK_WORLD_STATE
    assert result.source == "fallback"
    assert result.reason == "process_launch_failed"


def test_fallback_payload_contents(missing_command, tmp_path):
    gateway = make_gateway(missing_command, tmp_path)

    state = orjson.loads(gateway.get_world_state_text())

    assert state["currentDay"] == 1
    assert state["currentHour"] == 12
    assert [npc["name"] for npc in state["npcs"]] == ["Marcus", "Sarah", "Emma"]
    assert state["npcs"][1] == {"name": "Sarah", "needFood": 90, "needSafety": 95}


def test_missing_working_directory_falls_back(engine_script, tmp_path):
    command = engine_script(f"print({LIVE_PAYLOAD!r})")
    gateway = make_gateway(command, tmp_path / "does-not-exist")

    result = gateway.get_world_state()

    assert result.is_fallback
    assert result.reason == "process_launch_failed"


def test_live_output_is_returned_verbatim(engine_script, tmp_path):
    command = engine_script(
        f"""
        import sys
        sys.stdout.write({LIVE_PAYLOAD!r})
        """
    )
    gateway = make_gateway(command, tmp_path)

    result = gateway.get_world_state()

    assert result.source == "live"
    assert result.reason is None
    assert result.payload == LIVE_PAYLOAD


def test_non_json_output_passes_through_untouched(engine_script, tmp_path):
    command = engine_script(
        """
        import sys
        sys.stdout.write("  not json at all\\n")
        """
    )
    gateway = make_gateway(command, tmp_path)

    assert gateway.get_world_state_text() == "  not json at all\n"


def test_silent_engine_returns_fallback(engine_script, tmp_path):
    command = engine_script("pass\n")
    gateway = make_gateway(command, tmp_path)

    result = gateway.get_world_state()

    assert result.payload == FALLBACK_WORLD_STATE
    assert result.reason == "empty_output"


def test_whitespace_only_output_returns_fallback(engine_script, tmp_path):
    command = engine_script(
        """
        import sys
        sys.stdout.write("  \\n\\t \\r\\n")
        """
    )
    gateway = make_gateway(command, tmp_path)

    assert gateway.get_world_state_text() == FALLBACK_WORLD_STATE


def test_nonzero_exit_with_output_is_still_live(engine_script, tmp_path, caplog):
    command = engine_script(
        f"""
        import sys
        sys.stdout.write({LIVE_PAYLOAD!r})
        sys.exit(3)
        """
    )
    gateway = make_gateway(command, tmp_path)

    with caplog.at_level(logging.WARNING):
        result = gateway.get_world_state()

    assert result.source == "live"
    assert result.payload == LIVE_PAYLOAD
    assert "exited with status 3" in caplog.text


def test_stderr_is_not_part_of_the_payload(engine_script, tmp_path):
    command = engine_script(
        f"""
        import sys
        sys.stderr.write("Error getting world state: boom\\n")
        sys.stdout.write({LIVE_PAYLOAD!r})
        """
    )
    gateway = make_gateway(command, tmp_path)

    assert gateway.get_world_state_text() == LIVE_PAYLOAD


def test_engine_runs_in_configured_directory(engine_script, tmp_path):
    workdir = tmp_path / "engine-home"
    workdir.mkdir()
    command = engine_script(
        """
        import os, sys
        sys.stdout.write(os.getcwd())
        """
    )
    gateway = make_gateway(command, workdir)

    assert Path(gateway.get_world_state_text()).resolve() == workdir.resolve()


def test_default_engine_directory_is_parent_of_cwd(tmp_path, monkeypatch):
    shell_dir = tmp_path / "src-tauri"
    shell_dir.mkdir()
    monkeypatch.chdir(shell_dir)

    config = GatewayConfig()

    assert config.resolved_engine_cwd().resolve() == tmp_path.resolve()


def test_engine_gets_no_stdin(engine_script, tmp_path):
    command = engine_script(
        """
        import sys
        data = sys.stdin.read()
        sys.stdout.write("stdin:" + repr(data))
        """
    )
    gateway = make_gateway(command, tmp_path)

    assert gateway.get_world_state_text() == "stdin:''"


def test_hung_engine_times_out_into_fallback(engine_script, tmp_path):
    command = engine_script(
        """
        import time
        time.sleep(30)
        """
    )
    gateway = make_gateway(command, tmp_path, timeout=0.5)

    result = gateway.get_world_state()

    assert result.payload == FALLBACK_WORLD_STATE
    assert result.reason == "process_timed_out"


def test_undecodable_output_is_malformed(engine_script, tmp_path):
    command = engine_script(
        """
        import sys
        sys.stdout.buffer.write(b"\\xff\\xfe\\xfa")
        """
    )
    gateway = make_gateway(command, tmp_path)

    result = gateway.get_world_state()

    assert result.is_fallback
    assert result.reason == "malformed_output"


def test_validation_rejects_non_world_state(engine_script, tmp_path):
    command = engine_script('print(\'{"currentDay": 2}\')')
    gateway = make_gateway(command, tmp_path, validate=True)

    result = gateway.get_world_state()

    assert result.reason == "malformed_output"


def test_validation_accepts_extended_npc_records(engine_script, tmp_path):
    payload = (
        '{"currentDay":2,"currentHour":7,"npcs":[{"name":"Marcus","needFood":10,'
        '"needSafety":20,"needWealth":30,"emotionFear":5}]}'
    )
    command = engine_script(f"print({payload!r})")
    gateway = make_gateway(command, tmp_path, validate=True)

    result = gateway.get_world_state()

    assert result.source == "live"
    assert result.payload == payload + os.linesep


class TestStrictPolicy:
    def test_missing_engine_raises_launch_failure(self, missing_command, tmp_path):
        gateway = make_gateway(missing_command, tmp_path, policy=FallbackPolicy.STRICT)

        with pytest.raises(ProcessLaunchFailed):
            gateway.get_world_state()

    def test_silent_engine_raises_empty_output(self, engine_script, tmp_path):
        gateway = make_gateway(engine_script("pass\n"), tmp_path, policy=FallbackPolicy.STRICT)

        with pytest.raises(EmptyOutput) as excinfo:
            gateway.get_world_state()

        assert excinfo.value.reason == "empty_output"

    def test_live_output_is_unaffected(self, engine_script, tmp_path):
        command = engine_script(
            f"""
            import sys
            sys.stdout.write({LIVE_PAYLOAD!r})
            """
        )
        gateway = make_gateway(command, tmp_path, policy=FallbackPolicy.STRICT)

        assert gateway.get_world_state().payload == LIVE_PAYLOAD


class TestRunEngine:
    def test_timeout_raises(self, engine_script, tmp_path):
        command = engine_script("import time\ntime.sleep(30)\n")

        with pytest.raises(ProcessTimedOut):
            run_engine(command, tmp_path, timeout=0.3)

    def test_preset_cancel_event_stops_engine(self, engine_script, tmp_path):
        command = engine_script("import time\ntime.sleep(30)\n")
        cancel = threading.Event()
        cancel.set()

        with pytest.raises(ProcessCancelled):
            run_engine(command, tmp_path, timeout=10.0, cancel_event=cancel)

    def test_cancel_from_another_thread(self, engine_script, tmp_path):
        command = engine_script("import time\ntime.sleep(30)\n")
        cancel = threading.Event()
        timer = threading.Timer(0.2, cancel.set)
        timer.start()
        try:
            with pytest.raises(ProcessCancelled):
                run_engine(command, tmp_path, timeout=10.0, cancel_event=cancel)
        finally:
            timer.cancel()

    def test_reports_exit_status_and_output(self, engine_script, tmp_path):
        command = engine_script("import sys\nsys.stdout.write('hi')\nsys.exit(4)\n")

        output = run_engine(command, tmp_path, timeout=10.0)

        assert output.stdout == b"hi"
        assert output.returncode == 4
        assert output.duration >= 0.0

    def test_cancelled_request_falls_back_through_gateway(self, engine_script, tmp_path):
        command = engine_script("import time\ntime.sleep(30)\n")
        gateway = make_gateway(command, tmp_path)
        cancel = threading.Event()
        cancel.set()

        result = gateway.get_world_state(cancel_event=cancel)

        assert result.reason == "process_cancelled"

    def test_timeout_also_kills_engine_children(self, engine_script, tmp_path):
        command = engine_script(
            """
            import subprocess, sys, time
            subprocess.Popen([sys.executable, "-c", "import time; time.sleep(30)"])
            time.sleep(30)
            """
        )
        started = time.monotonic()

        with pytest.raises(ProcessTimedOut):
            run_engine(command, tmp_path, timeout=0.5)

        assert time.monotonic() - started < 5.0

    def test_cancel_also_kills_engine_children(self, engine_script, tmp_path):
        command = engine_script(
            """
            import subprocess, sys, time
            subprocess.Popen([sys.executable, "-c", "import time; time.sleep(30)"])
            time.sleep(30)
            """
        )
        cancel = threading.Event()
        timer = threading.Timer(0.3, cancel.set)
        timer.start()
        started = time.monotonic()
        try:
            with pytest.raises(ProcessCancelled):
                run_engine(command, tmp_path, timeout=10.0, cancel_event=cancel)
        finally:
            timer.cancel()

        assert time.monotonic() - started < 5.0

    @pytest.mark.skipif(shutil.which("sh") is None, reason="needs a POSIX shell")
    def test_shell_engine_with_pending_sleep_times_out_promptly(self, tmp_path):
        gateway = make_gateway(["sh", "-c", "sleep 8; echo hi"], tmp_path, timeout=0.5)
        started = time.monotonic()

        result = gateway.get_world_state()

        assert time.monotonic() - started < 5.0
        assert result.reason == "process_timed_out"
