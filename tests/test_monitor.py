"""
Tests for the container lifecycle monitor.
"""

import asyncio
import logging

import pytest

from runner_provisioner.contracts.types import TerminationEvent
from runner_provisioner.errors import EngineError, ExitCodeParseError
from runner_provisioner.service import monitor as monitor_module
from runner_provisioner.service.monitor import ExitOutcome, LifecycleMonitor, read_exit_code

from conftest import FakeSubscription

CONTAINER_ID = "3f2a9c1b7d4e8f6a0b1c2d3e4f5a6b7c8d9e0f1a2b3c4d5e6f7a8b9c0d1e2f3a"


def _event(**attributes) -> TerminationEvent:
    return TerminationEvent(container_id=CONTAINER_ID, attributes=attributes)


class TestReadExitCode:
    """Tests for reading exit codes from event attributes."""

    def test_podman_attribute(self):
        """Test containerExitCode is read first."""
        assert read_exit_code(_event(containerExitCode="3", exitCode="0")) == 3

    def test_docker_fallback(self):
        """Test exitCode is used when containerExitCode is absent."""
        assert read_exit_code(_event(exitCode="137")) == 137

    def test_empty_primary_falls_back(self):
        """Test an empty containerExitCode falls back to exitCode."""
        assert read_exit_code(_event(containerExitCode="", exitCode="0")) == 0

    @pytest.mark.parametrize(
        "attributes",
        [{}, {"containerExitCode": "", "exitCode": ""}, {"exitCode": "abc"}, {"exitCode": "1.5"}],
    )
    def test_unreadable(self, attributes):
        """Test missing or non-integer exit codes raise ExitCodeParseError."""
        with pytest.raises(ExitCodeParseError):
            read_exit_code(_event(**attributes))


class TestHandle:
    """Tests for classifying termination events."""

    @pytest.mark.asyncio
    async def test_clean_exit_removes_container(self, engine):
        """Test exit code 0 triggers removal."""
        monitor = LifecycleMonitor(engine)

        outcome = await monitor.handle(_event(exitCode="0"))

        assert outcome == ExitOutcome.EXITED_CLEAN
        assert engine.removed == [CONTAINER_ID]

    @pytest.mark.asyncio
    async def test_error_exit_keeps_container(self, engine, caplog):
        """Test a non-zero exit code is logged and the container kept."""
        monitor = LifecycleMonitor(engine)

        with caplog.at_level(logging.ERROR):
            outcome = await monitor.handle(_event(containerExitCode="137"))

        assert outcome == ExitOutcome.EXITED_ERROR
        assert engine.removed == []
        messages = [record.getMessage() for record in caplog.records if record.levelno == logging.ERROR]
        assert any("exit code 137" in message for message in messages)
        assert any("inspect the container logs" in message for message in messages)

    @pytest.mark.asyncio
    async def test_unreadable_exit_code_no_cleanup(self, engine, caplog):
        """Test an unparseable exit code is logged without cleanup."""
        monitor = LifecycleMonitor(engine)

        with caplog.at_level(logging.ERROR):
            outcome = await monitor.handle(_event(containerExitCode="", exitCode=""))

        assert outcome == ExitOutcome.EXIT_CODE_UNREADABLE
        assert engine.removed == []
        assert any("Cannot parse exit code" in record.getMessage() for record in caplog.records)

    @pytest.mark.asyncio
    async def test_outcomes_counted(self, engine):
        """Test outcomes are tallied per classification."""
        monitor = LifecycleMonitor(engine)

        await monitor.handle(_event(exitCode="0"))
        await monitor.handle(_event(exitCode="0"))
        await monitor.handle(_event(exitCode="1"))

        assert monitor.outcomes[ExitOutcome.EXITED_CLEAN] == 2
        assert monitor.outcomes[ExitOutcome.EXITED_ERROR] == 1


class TestMonitorLoop:
    """Tests for consuming the event stream."""

    @pytest.mark.asyncio
    async def test_processes_stream_events(self, engine):
        """Test events from the subscription are handled in order."""
        engine.events = [_event(exitCode="0"), _event(exitCode="2")]
        monitor = LifecycleMonitor(engine)

        await monitor.start()
        await asyncio.sleep(0.01)

        assert monitor.outcomes[ExitOutcome.EXITED_CLEAN] == 1
        assert monitor.outcomes[ExitOutcome.EXITED_ERROR] == 1
        assert monitor.running is True

        await monitor.stop()
        assert monitor.running is False
        assert engine.subscriptions[0].closed is True

    @pytest.mark.asyncio
    async def test_survives_failing_handler(self, engine):
        """Test an exception while handling one event does not stop the loop."""
        calls = []

        async def flaky_remove(container_id):
            calls.append(container_id)
            if len(calls) == 1:
                raise RuntimeError("socket hiccup")
            return True

        engine.remove_container = flaky_remove
        engine.events = [_event(exitCode="0"), _event(exitCode="0")]
        monitor = LifecycleMonitor(engine)

        await monitor.start()
        await asyncio.sleep(0.01)

        assert len(calls) == 2
        assert monitor.running is True
        await monitor.stop()

    @pytest.mark.asyncio
    async def test_subscribe_failure_is_fatal(self, engine):
        """Test start raises when the event stream cannot be opened."""
        engine.subscribe_error = EngineError("Unable to subscribe to container events")
        monitor = LifecycleMonitor(engine)

        with pytest.raises(EngineError):
            await monitor.start()
        assert monitor.running is False

    @pytest.mark.asyncio
    async def test_resubscribes_once_when_stream_ends(self, engine, monkeypatch):
        """Test a lost stream is reopened after a short delay."""
        monkeypatch.setattr(monitor_module, "RESUBSCRIBE_DELAY", 0)
        ended = FakeSubscription([_event(exitCode="0")], end_after_events=True)
        live = FakeSubscription([_event(exitCode="0")])
        subscriptions = [ended, live]

        async def subscribe():
            return subscriptions.pop(0)

        engine.subscribe_events = subscribe
        monitor = LifecycleMonitor(engine)

        await monitor.start()
        await asyncio.sleep(0.02)

        assert ended.closed is True
        assert monitor.outcomes[ExitOutcome.EXITED_CLEAN] == 2
        assert monitor.running is True
        await monitor.stop()
        assert live.closed is True

    @pytest.mark.asyncio
    async def test_resubscribes_after_unexpected_stream_error(self, engine, monkeypatch, caplog):
        """Test an unexpected exception from the stream is logged and monitoring goes on."""
        monkeypatch.setattr(monitor_module, "RESUBSCRIBE_DELAY", 0)

        class BrokenSubscription(FakeSubscription):
            async def __aiter__(self):
                raise AttributeError("'str' object has no attribute 'get'")
                yield

        broken = BrokenSubscription()
        live = FakeSubscription([_event(exitCode="0")])
        subscriptions = [broken, live]

        async def subscribe():
            return subscriptions.pop(0)

        engine.subscribe_events = subscribe
        monitor = LifecycleMonitor(engine)

        with caplog.at_level(logging.ERROR):
            await monitor.start()
            await asyncio.sleep(0.02)

        assert broken.closed is True
        assert monitor.outcomes[ExitOutcome.EXITED_CLEAN] == 1
        assert engine.removed == [CONTAINER_ID]
        assert monitor.running is True
        assert any("Container event stream failed" in record.getMessage() for record in caplog.records)
        await monitor.stop()

    @pytest.mark.asyncio
    async def test_stops_when_resubscribe_fails(self, engine, monkeypatch):
        """Test monitoring stops if the stream cannot be reopened."""
        monkeypatch.setattr(monitor_module, "RESUBSCRIBE_DELAY", 0)
        monitor = LifecycleMonitor(engine)
        calls = []

        async def subscribe():
            calls.append(1)
            if len(calls) > 1:
                raise EngineError("engine went away")
            return FakeSubscription(end_after_events=True)

        engine.subscribe_events = subscribe

        await monitor.start()
        await asyncio.sleep(0.02)

        assert len(calls) == 2
        assert monitor.running is False
        await monitor.stop()
