"""Unit tests for the flash-and-monitor engine: no hardware required."""

from __future__ import annotations

import logging

import pytest

from hilbench.chips import Chip
from hilbench.config import BenchConfig
from hilbench.discovery import TestArtifact
from hilbench.engine import Deadline, Engine
from hilbench.errors import BenchError, DispatchDepthError, UnknownChipError
from hilbench.host_command import HostCommandResult
from hilbench.mocks import FakeClock, MockSerialChannel, fake_elf
from hilbench.models import RunOutcome, Status


def _artifact(name: str) -> TestArtifact:
    return TestArtifact(name=name, path=f"/elfs/{name}", image=fake_elf(name))


class _Host:
    """Records host commands; optionally reports failure."""

    def __init__(self, events=None, returncode=0):
        self.commands: list[str] = []
        self.events = events
        self.returncode = returncode

    def __call__(self, command_line: str) -> HostCommandResult:
        self.commands.append(command_line)
        if self.events is not None:
            self.events.append(("host", command_line))
        return HostCommandResult(argv=command_line.split(), returncode=self.returncode)


@pytest.fixture
def console():
    return []


@pytest.fixture
def make_engine(service, clock, console):
    def _make(config: BenchConfig = BenchConfig(), host=None):
        return Engine(
            service.registry(), config, service,
            clock=clock,
            host_runner=host or _Host(service.events),
            console=console.append,
        )
    return _make


# ---------------------------------------------------------------------------
# Deadline
# ---------------------------------------------------------------------------

class TestDeadline:
    def test_after(self):
        clock = FakeClock(100.0)
        d = Deadline.after(20, clock)
        assert d.expires_at == 120.0
        assert not d.expired()
        clock.advance(20)
        assert not d.expired()
        clock.advance(0.001)
        assert d.expired()
        assert d.remaining() == 0.0

    def test_remaining(self):
        clock = FakeClock()
        d = Deadline.after(5, clock)
        clock.advance(2)
        assert d.remaining() == pytest.approx(3.0)


# ---------------------------------------------------------------------------
# Terminal outcomes
# ---------------------------------------------------------------------------

class TestOutcomes:
    def test_passed_stops_reading(self, make_engine, service, s3_board, console):
        s3_board.scripts[fake_elf("test_a")] = ["boot", "[PASSED]", "[FAILED: late]"]
        outcome = make_engine().run(Chip.ESP32S3, _artifact("test_a"))
        assert outcome == RunOutcome.passed("[PASSED]")
        (_, channel), = service.channels
        assert channel.remaining == ["[FAILED: late]"]
        assert channel.closed
        assert console == ["test_a", "test_a => [PASSED]"]

    def test_failed_detail(self, make_engine, s3_board, console):
        s3_board.scripts[fake_elf("test_a")] = ["[FAILED: assertion X]", "[PASSED]"]
        outcome = make_engine().run(Chip.ESP32S3, _artifact("test_a"))
        assert outcome.status is Status.FAILED
        assert outcome.detail == ": assertion X"
        assert console[-1] == "test_a => [FAILED: assertion X]"

    def test_timeout(self, make_engine, clock, console):
        outcome = make_engine().run(Chip.ESP32S3, _artifact("test_silent"))
        assert outcome == RunOutcome.timeout()
        assert clock.now > 20.0
        assert console[-1] == "test_silent => TIMEOUT"

    def test_chatter_does_not_extend_deadline(self, make_engine, s3_board, clock):
        s3_board.scripts[fake_elf("test_a")] = ["tick"] * 5000
        outcome = make_engine().run(Chip.ESP32S3, _artifact("test_a"))
        assert outcome.status is Status.TIMEOUT
        assert 20.0 < clock.now < 20.05

    def test_configured_timeout(self, make_engine, clock):
        outcome = make_engine(BenchConfig(timeout=1.0)).run(Chip.ESP32S3, _artifact("test_a"))
        assert outcome.status is Status.TIMEOUT
        assert clock.now < 2.0

    def test_device_lines_logged_at_debug(self, make_engine, s3_board, caplog):
        s3_board.scripts[fake_elf("test_a")] = ["hello from device", "[PASSED]"]
        with caplog.at_level(logging.DEBUG, logger="hilbench.engine"):
            make_engine().run(Chip.ESP32S3, _artifact("test_a"))
        assert "DEVICE: hello from device" in caplog.text


# ---------------------------------------------------------------------------
# Flashing
# ---------------------------------------------------------------------------

class TestFlashing:
    def test_flash_sequence(self, make_engine, service, s3_board):
        s3_board.scripts[fake_elf("test_a")] = ["[PASSED]"]
        make_engine(BenchConfig(flash_baud=460800, console_baud=74880)).run(Chip.ESP32S3, _artifact("test_a"))
        assert service.events[:4] == [
            ("connect", "/dev/ttyACM0"),
            ("set_baud", "/dev/ttyACM0", 460800),
            ("write_image", "/dev/ttyACM0", fake_elf("test_a")),
            ("open_channel", "/dev/ttyACM0", 74880),
        ]

    def test_new_session_per_run(self, make_engine, service, s3_board):
        s3_board.scripts[fake_elf("test_a")] = ["[PASSED]"]
        s3_board.scripts[fake_elf("test_b")] = ["[PASSED]"]
        engine = make_engine()
        engine.run(Chip.ESP32S3, _artifact("test_a"))
        engine.run(Chip.ESP32S3, _artifact("test_b"))
        assert [e for e in service.events if e[0] == "connect"] == [("connect", "/dev/ttyACM0")] * 2

    def test_recursive_run_only_flashes(self, make_engine, service, c3_board, console):
        c3_board.scripts[fake_elf("helper")] = ["[FAILED: never read]"]
        outcome = make_engine().run(Chip.ESP32C3, _artifact("helper"), recursive=True, depth=1)
        assert outcome is None
        assert service.flashed() == [("/dev/ttyACM1", fake_elf("helper"))]
        assert service.channels == []
        assert service.events[-1] == ("start", "/dev/ttyACM1")
        assert console == ["  helper"]

    def test_monitored_run_does_not_restart(self, make_engine, service, s3_board):
        s3_board.scripts[fake_elf("test_a")] = ["[PASSED]"]
        make_engine().run(Chip.ESP32S3, _artifact("test_a"))
        assert ("start", "/dev/ttyACM0") not in service.events

    def test_unknown_board(self, make_engine):
        from hilbench.errors import BoardNotFoundError
        with pytest.raises(BoardNotFoundError):
            make_engine().run(Chip.ESP32H2, _artifact("test_a"))


# ---------------------------------------------------------------------------
# HOST directive
# ---------------------------------------------------------------------------

class TestHostDirective:
    def test_host_runs_before_verdict(self, make_engine, service, s3_board):
        s3_board.scripts[fake_elf("test_a")] = ["[HOST echo hi]", "working", "[PASSED]"]
        host = _Host(service.events)
        outcome = make_engine(host=host).run(Chip.ESP32S3, _artifact("test_a"))
        assert outcome.ok
        assert host.commands == ["echo hi"]

    def test_failing_host_command_does_not_change_outcome(self, make_engine, s3_board):
        s3_board.scripts[fake_elf("test_a")] = ["[HOST relay off]", "[PASSED]"]
        host = _Host(returncode=3)
        outcome = make_engine(host=host).run(Chip.ESP32S3, _artifact("test_a"))
        assert outcome.status is Status.PASSED

    def test_slow_host_command_counts_against_deadline(self, make_engine, s3_board, clock):
        s3_board.scripts[fake_elf("test_a")] = ["[HOST sleep 30]", "[PASSED]"]

        def slow_host(command_line):
            clock.advance(30)
            return HostCommandResult(argv=command_line.split(), returncode=0)

        outcome = make_engine(host=slow_host).run(Chip.ESP32S3, _artifact("test_a"))
        assert outcome.status is Status.TIMEOUT


# ---------------------------------------------------------------------------
# RUN directive
# ---------------------------------------------------------------------------

class TestRunDirective:
    @pytest.fixture
    def sources(self, write_elf):
        s3_dir = write_elf("test_a", subdir="s3").parent
        c3_dir = write_elf("test_other", subdir="c3").parent
        write_elf("test_b", subdir="c3")
        return {Chip.ESP32S3: str(s3_dir), Chip.ESP32C3: str(c3_dir)}

    def test_run_on_other_board_then_resume(self, make_engine, service, s3_board, c3_board, sources, console):
        s3_board.scripts[fake_elf("test_a")] = ["[RUN esp32c3 test_other]", "after", "[PASSED]"]
        outcome = make_engine(BenchConfig(sources=sources)).run(Chip.ESP32S3, _artifact("test_a"))

        assert outcome.status is Status.PASSED
        assert service.flashed() == [
            ("/dev/ttyACM0", fake_elf("test_a")),
            ("/dev/ttyACM1", fake_elf("test_other")),
        ]
        (device, channel), = service.channels
        assert device == "/dev/ttyACM0"
        assert channel.reads[:3] == ["[RUN esp32c3 test_other]", "after", "[PASSED]"]
        assert console == ["test_a", "  test_other", "test_a => [PASSED]"]

    def test_nested_flash_time_is_charged_to_parent(self, service, s3_board, sources, clock, console):
        service.flash_cost = 15.0
        s3_board.scripts[fake_elf("test_a")] = [
            "[RUN esp32c3 test_other]",
            "[RUN esp32c3 test_other]",
            "[PASSED]",
        ]
        engine = Engine(service.registry(), BenchConfig(sources=sources), service,
                        clock=clock, host_runner=_Host(), console=console.append)
        outcome = engine.run(Chip.ESP32S3, _artifact("test_a"))
        # own flash (15 s) precedes the loop; two nested flashes (30 s) do not
        assert outcome.status is Status.TIMEOUT
        (_, channel), = service.channels
        assert channel.remaining == ["[PASSED]"]

    def test_single_nested_flash_within_budget(self, service, s3_board, sources, clock, console):
        service.flash_cost = 15.0
        s3_board.scripts[fake_elf("test_a")] = ["[RUN esp32c3 test_other]", "[PASSED]"]
        engine = Engine(service.registry(), BenchConfig(sources=sources), service,
                        clock=clock, host_runner=_Host(), console=console.append)
        assert engine.run(Chip.ESP32S3, _artifact("test_a")).ok

    def test_nested_outcome_not_fed_back(self, make_engine, service, s3_board, c3_board, sources, console):
        c3_board.scripts[fake_elf("test_other")] = ["[FAILED: nested]"]
        s3_board.scripts[fake_elf("test_a")] = ["[RUN esp32c3 test_other]", "[PASSED]"]
        config = BenchConfig(sources=sources, monitor_nested=True)
        outcome = make_engine(config).run(Chip.ESP32S3, _artifact("test_a"))
        assert outcome.status is Status.PASSED
        assert "  test_other => [FAILED: nested]" in console
        assert [d for d, _ in service.channels] == ["/dev/ttyACM0", "/dev/ttyACM1"]

    def test_monitored_nested_run_consumes_parent_deadline(self, make_engine, s3_board, sources):
        s3_board.scripts[fake_elf("test_a")] = ["[RUN esp32c3 test_other]", "[PASSED]"]
        config = BenchConfig(sources=sources, monitor_nested=True)
        outcome = make_engine(config).run(Chip.ESP32S3, _artifact("test_a"))
        # nested board stays silent for its full 20 s; parent's 20 s are gone too
        assert outcome.status is Status.TIMEOUT

    def test_cycle_hits_depth_guard(self, make_engine, s3_board, c3_board, sources):
        s3_board.scripts[fake_elf("test_a")] = ["[RUN esp32c3 test_b]"]
        c3_board.scripts[fake_elf("test_b")] = ["[RUN esp32s3 test_a]"]
        config = BenchConfig(sources=sources, monitor_nested=True, max_depth=3)
        with pytest.raises(DispatchDepthError, match="depth 3"):
            make_engine(config).run(Chip.ESP32S3, _artifact("test_a"))

    def test_unconfigured_target_chip_is_fatal(self, make_engine, s3_board, sources):
        s3_board.scripts[fake_elf("test_a")] = ["[RUN esp32c3 test_other]"]
        config = BenchConfig(sources={Chip.ESP32S3: sources[Chip.ESP32S3]})
        with pytest.raises(BenchError, match="no test directory is configured for esp32c3"):
            make_engine(config).run(Chip.ESP32S3, _artifact("test_a"))

    def test_unknown_chip_token_is_fatal(self, make_engine, s3_board, sources):
        s3_board.scripts[fake_elf("test_a")] = ["[RUN esp8266 test_other]"]
        with pytest.raises(UnknownChipError):
            make_engine(BenchConfig(sources=sources)).run(Chip.ESP32S3, _artifact("test_a"))

    def test_missing_nested_artifact_is_skipped(self, make_engine, service, s3_board, sources, caplog):
        s3_board.scripts[fake_elf("test_a")] = ["[RUN esp32c3 test_missing]", "[PASSED]"]
        with caplog.at_level(logging.WARNING):
            outcome = make_engine(BenchConfig(sources=sources)).run(Chip.ESP32S3, _artifact("test_a"))
        assert outcome.ok
        assert "test_missing" in caplog.text
        assert len(service.flashed()) == 1


def test_monitor_with_explicit_deadline(service, clock):
    engine = Engine(service.registry(), BenchConfig(), service, clock=clock,
                    host_runner=_Host(), console=lambda _: None)
    channel = MockSerialChannel(["x", "y"], clock=clock, read_cost=1.0)
    outcome = engine.monitor(channel, deadline=Deadline.after(1.5, clock))
    assert outcome.status is Status.TIMEOUT
    assert channel.reads == ["x", "y"]
