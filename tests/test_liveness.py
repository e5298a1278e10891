"""Tests for the connection registry and liveness monitor."""

import pytest

from newscast.liveness import ConnectionRegistry, LivenessMonitor


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class TestConnectionRegistry:
    """Tests for ConnectionRegistry."""

    def test_mark_seen(self):
        registry = ConnectionRegistry()

        assert registry.mark_seen("kiosk-1") is True
        assert registry.mark_seen("kiosk-2") is True
        assert registry.clients == ["kiosk-1", "kiosk-2"]

    def test_no_duplicates(self):
        """Test that repeated heartbeats register a client once."""
        registry = ConnectionRegistry()
        registry.mark_seen("kiosk-1")

        assert registry.mark_seen("kiosk-1") is False
        assert len(registry) == 1
        assert "kiosk-1" in registry


class TestLivenessMonitor:
    """Tests for LivenessMonitor."""

    def test_starts_offline(self):
        monitor = LivenessMonitor(35, 10, clock=FakeClock())

        assert monitor.server_connected is False
        assert monitor.deadline_seconds == 45

    def test_grace_minimum(self):
        with pytest.raises(ValueError):
            LivenessMonitor(35, 5)

    def test_traffic_makes_live(self):
        monitor = LivenessMonitor(35, 10, clock=FakeClock())

        assert monitor.record_traffic() is True
        assert monitor.server_connected is True
        assert monitor.record_traffic() is False

    def test_check_within_deadline(self):
        """Test that silence shorter than interval + grace keeps the server live."""
        clock = FakeClock()
        monitor = LivenessMonitor(35, 10, clock=clock)
        monitor.record_traffic()

        clock.advance(45)
        assert monitor.check() is False
        assert monitor.server_connected is True

    def test_check_past_deadline(self):
        clock = FakeClock()
        monitor = LivenessMonitor(35, 10, clock=clock)
        monitor.record_traffic()

        clock.advance(45.5)
        assert monitor.check() is True
        assert monitor.server_connected is False
        # Already offline: no second transition
        assert monitor.check() is False

    def test_sending_does_not_count_as_traffic(self):
        """Test that our own heartbeats do not keep the server alive."""
        clock = FakeClock()
        monitor = LivenessMonitor(35, 10, clock=clock)
        monitor.record_traffic()

        for _ in range(3):
            clock.advance(35)
            monitor.record_sent()
            monitor.check()

        assert monitor.server_connected is False
        assert monitor.last_heartbeat_sent_at == clock.now

    def test_recovers_after_offline(self):
        clock = FakeClock()
        monitor = LivenessMonitor(35, 10, clock=clock)
        monitor.record_traffic()
        clock.advance(100)
        monitor.check()

        assert monitor.record_traffic() is True
        assert monitor.server_connected is True
        assert monitor.last_traffic_at == clock.now
