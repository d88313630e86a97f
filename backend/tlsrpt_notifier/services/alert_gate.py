"""
Global cooldown gate for outbound alert emails.

One gate is shared by every report and every policy: after an alert is sent,
no further alert goes out until the cooldown has elapsed.

A sender claims the slot with try_claim() before doing any I/O. The check and
the claim happen without yielding to the event loop, so two reports processed
concurrently can never both pass. The claim is then committed once the message
has been handed to the mail server, or released if nothing was sent.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)


class GateState(str, Enum):
    OPEN = "open"
    COOLING = "cooling"


@dataclass(frozen=True)
class GateClaim:
    """Token returned by a successful try_claim()"""
    claimed_at: float
    previous_sent_at: float


class AlertGate:
    """Process-wide alert rate limiter"""

    def __init__(self, cooldown_seconds: float, last_sent_at: float = 0.0):
        self.cooldown_seconds = cooldown_seconds
        self._last_sent_at = last_sent_at

    @property
    def last_sent_at(self) -> float:
        return self._last_sent_at

    def is_open(self, now: float) -> bool:
        return now - self._last_sent_at >= self.cooldown_seconds

    def state(self, now: float) -> GateState:
        return GateState.OPEN if self.is_open(now) else GateState.COOLING

    def try_claim(self, now: float) -> Optional[GateClaim]:
        """Claim the send slot, or return None while cooling down"""
        if not self.is_open(now):
            return None

        claim = GateClaim(claimed_at=now, previous_sent_at=self._last_sent_at)
        self._last_sent_at = now
        return claim

    def commit(self, claim: GateClaim, sent_at: float) -> None:
        """Record a completed send"""
        if self._last_sent_at != claim.claimed_at:
            # A newer claim owns the gate
            logger.debug("Ignoring commit of a superseded alert gate claim")
            return
        self._last_sent_at = sent_at

    def release(self, claim: GateClaim) -> None:
        """Give the slot back after an attempt that sent nothing"""
        if self._last_sent_at != claim.claimed_at:
            logger.debug("Ignoring release of a superseded alert gate claim")
            return
        self._last_sent_at = claim.previous_sent_at
