"""Login-attempt gate: at most one "reopen login window" at a time.

State is advisory and in-process. A caller that gets ``False`` from
``try_acquire`` must back off and treat the current attempt as already
being handled; it is a rejection, not a queue.

Self-heals when the owner crashes or hangs: a reopening state older than
``stale_after_s`` is cleared by the next ``try_acquire``.

With ``max_failed_attempts`` set, that many failed releases in a row close
the gate until a successful release or ``force_reset``.
"""

import logging
import threading
import time
from collections.abc import Callable

from xhs_session.core.schemas import GateState

logger = logging.getLogger(__name__)

DEFAULT_COOLDOWN_S = 10.0
DEFAULT_STALE_AFTER_S = 300.0


class LoginAttemptGate:
    """Arbitrates login-window and browser-reinit attempts across callers.

    Usage::

        gate = LoginAttemptGate()
        if gate.try_acquire("batch-1"):
            ok = False
            try:
                ok = await open_window()
            finally:
                gate.release("batch-1", succeeded=ok)
    """

    def __init__(
        self,
        cooldown_s: float = DEFAULT_COOLDOWN_S,
        stale_after_s: float = DEFAULT_STALE_AFTER_S,
        clock: Callable[[], float] = time.monotonic,
        max_failed_attempts: int | None = None,
    ) -> None:
        self._cooldown_s = cooldown_s
        self._stale_after_s = stale_after_s
        self._clock = clock
        self._max_failed_attempts = max_failed_attempts
        self._lock = threading.Lock()
        self._is_reopening = False
        self._owner: str | None = None
        self._last_attempt_at: float | None = None
        self._last_reopen_at: float | None = None
        self._failed_attempts = 0

    def try_acquire(self, caller_id: str) -> bool:
        """Claim the gate for ``caller_id``. Non-blocking."""
        with self._lock:
            now = self._clock()

            if self._is_reopening and self._is_stale(now):
                logger.warning(
                    "Overriding stale login attempt by '%s' (%.0fs old) for '%s'",
                    self._owner, now - (self._last_attempt_at or now), caller_id,
                )
                self._is_reopening = False
                self._owner = None

            if self._is_reopening:
                logger.info(
                    "Login attempt already in progress by '%s'; '%s' backs off",
                    self._owner, caller_id,
                )
                return False

            if self._max_failed_attempts is not None and self._failed_attempts >= self._max_failed_attempts:
                logger.warning(
                    "Login attempts failed %d times in a row; '%s' backs off until reset",
                    self._failed_attempts, caller_id,
                )
                return False

            if self._last_attempt_at is not None and now - self._last_attempt_at < self._cooldown_s:
                logger.info(
                    "Login attempt cooldown active (%.1fs left); '%s' backs off",
                    self._cooldown_s - (now - self._last_attempt_at), caller_id,
                )
                return False

            self._is_reopening = True
            self._owner = caller_id
            self._last_attempt_at = now
            logger.debug("Gate acquired by '%s'", caller_id)
            return True

    def release(self, caller_id: str, succeeded: bool) -> None:
        """Give the gate back. Only the current owner can release it."""
        with self._lock:
            if not self._is_reopening or self._owner != caller_id:
                logger.debug(
                    "Ignoring release by '%s' (owner: '%s')", caller_id, self._owner,
                )
                return
            self._is_reopening = False
            self._owner = None
            if succeeded:
                self._last_reopen_at = self._clock()
                self._failed_attempts = 0
            else:
                self._failed_attempts += 1
            logger.debug("Gate released by '%s' (succeeded=%s)", caller_id, succeeded)

    def force_reset(self) -> None:
        """Clear all gate state unconditionally."""
        with self._lock:
            self._is_reopening = False
            self._owner = None
            self._last_attempt_at = None
            self._last_reopen_at = None
            self._failed_attempts = 0
        logger.warning("Login attempt gate force-reset")

    def state(self) -> GateState:
        with self._lock:
            return GateState(
                is_reopening=self._is_reopening,
                owner_instance_id=self._owner,
                last_attempt_at=self._last_attempt_at,
                last_reopen_at=self._last_reopen_at,
                failed_attempts=self._failed_attempts,
            )

    def _is_stale(self, now: float) -> bool:
        return self._last_attempt_at is not None and now - self._last_attempt_at > self._stale_after_s
