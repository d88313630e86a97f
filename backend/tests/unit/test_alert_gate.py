"""Unit tests for the global alert cooldown gate (alert_gate.py)"""
import pytest

from tlsrpt_notifier.services.alert_gate import AlertGate, GateClaim, GateState


@pytest.mark.unit
class TestGateState:
    """Test Open/Cooling transitions"""

    def test_starts_from_epoch(self):
        gate = AlertGate(cooldown_seconds=60)
        assert gate.last_sent_at == 0.0
        assert gate.state(30) == GateState.COOLING
        assert gate.state(60) == GateState.OPEN

    def test_zero_cooldown_always_open(self):
        gate = AlertGate(cooldown_seconds=0, last_sent_at=100)
        assert gate.is_open(100)

    def test_reopens_after_cooldown(self):
        gate = AlertGate(cooldown_seconds=60, last_sent_at=1000)

        assert gate.state(1059.9) == GateState.COOLING
        assert gate.state(1060) == GateState.OPEN


@pytest.mark.unit
class TestClaims:
    """Test claim, commit and release"""

    def test_claim_refused_while_cooling(self):
        gate = AlertGate(cooldown_seconds=60)

        assert gate.try_claim(30) is None
        assert gate.last_sent_at == 0.0

    def test_claim_blocks_second_claim(self):
        """Check and claim are one step, so a second caller cannot pass"""
        gate = AlertGate(cooldown_seconds=60)

        first = gate.try_claim(61)
        second = gate.try_claim(62)

        assert isinstance(first, GateClaim)
        assert second is None

    def test_commit_records_send_time(self):
        gate = AlertGate(cooldown_seconds=60)
        claim = gate.try_claim(61)

        gate.commit(claim, sent_at=63)

        assert gate.last_sent_at == 63
        assert gate.state(100) == GateState.COOLING
        assert gate.state(123) == GateState.OPEN

    def test_release_restores_previous_state(self):
        gate = AlertGate(cooldown_seconds=60, last_sent_at=5)
        claim = gate.try_claim(100)

        gate.release(claim)

        assert gate.last_sent_at == 5
        assert gate.try_claim(101) is not None

    def test_superseded_release_is_ignored(self):
        gate = AlertGate(cooldown_seconds=0)
        stale = gate.try_claim(10)
        current = gate.try_claim(20)
        gate.commit(current, sent_at=21)

        gate.release(stale)

        assert gate.last_sent_at == 21
