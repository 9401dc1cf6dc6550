"""Background renewal of the session's token lease.

Pattern: Supervised Renewal Loop
---------------------------------
Once a renewable token is obtained, a daemon thread sleeps until 80% of the
lease has elapsed, renews, and goes back to sleep with whatever lease Vault
handed back.  The thread is advisory: it never keeps the interpreter alive,
and it can be cancelled at any point without waiting for it.

State machine::

    IDLE --arm()--> ARMED --delay elapsed--> RENEWING --ok/transient--> ARMED
                                                      --403----------> IDLE
    any state --cancel()--> IDLE

Failure classification:

  - **403** means the credentials are dead.  Retrying cannot help, so the
    loop stops for good.
  - Anything else (network error, 5xx, malformed body) is logged and the
    loop sleeps again on the *previous* lease duration.

Every arming gets its own cancellation ``Event``.  A worker whose event has
been replaced or set never writes scheduler state again, so a renewal that
finishes after ``cancel()`` cannot bring the scheduler back to life.
"""

from __future__ import annotations

import enum
import logging
import math
import threading
from http import HTTPStatus
from typing import Callable

from vault_session.vault.http import HTTPError

logger = logging.getLogger(__name__)


class SchedulerState(enum.Enum):
    IDLE = "idle"
    ARMED = "armed"
    RENEWING = "renewing"


def renew_interval(lease_duration: int) -> float:
    """Seconds to wait before renewing a lease of *lease_duration* seconds.

    Keeps a buffer of one fifth of the lease (rounded up), never waits less
    than one second, and never more than the platform's longest wait.
    """
    buffer = math.ceil(lease_duration / 5)
    return min(max(lease_duration - buffer, 1), threading.TIMEOUT_MAX)


class RenewalScheduler:
    """Runs ``renew`` shortly before each lease expires.

    ``renew`` performs one renewal and returns the new lease duration in
    seconds.  It is called from the worker thread only.
    """

    def __init__(self, renew: Callable[[], int], *, name: str = "vault-lease-renewal") -> None:
        self._renew = renew
        self._name = name
        self._lock = threading.Lock()
        self._state = SchedulerState.IDLE
        self._lease_duration = 0
        self._cancel: threading.Event | None = None
        self._worker: threading.Thread | None = None

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def lease_duration(self) -> int:
        """Lease duration the next wait is based on."""
        return self._lease_duration

    @property
    def delay(self) -> float | None:
        """Seconds the worker waits between renewals, ``None`` when idle."""
        if self._state is SchedulerState.IDLE:
            return None
        return renew_interval(self._lease_duration)

    def arm(self, lease_duration: int) -> None:
        """Start renewing a lease of *lease_duration* seconds.

        Replaces any worker that is already pending.
        """
        cancel = threading.Event()
        worker = threading.Thread(
            target=self._run,
            args=(cancel, lease_duration),
            name=self._name,
            daemon=True,
        )
        with self._lock:
            if self._cancel is not None:
                self._cancel.set()
            self._cancel = cancel
            self._worker = worker
            self._lease_duration = lease_duration
            self._state = SchedulerState.ARMED
        worker.start()
        logger.debug(
            "Lease renewal armed: lease_duration=%ss, delay=%ss",
            lease_duration,
            renew_interval(lease_duration),
        )

    def cancel(self) -> None:
        """Stop renewing.  Does not wait for an in-flight renewal."""
        with self._lock:
            if self._cancel is not None:
                self._cancel.set()
                logger.debug("Lease renewal cancelled")
            self._cancel = None
            self._state = SchedulerState.IDLE

    # -- worker ---------------------------------------------------------------

    def _run(self, cancel: threading.Event, lease_duration: int) -> None:
        while not cancel.wait(renew_interval(lease_duration)):
            if not self._transition(cancel, SchedulerState.RENEWING, lease_duration):
                return
            next_lease = self._renew_once(lease_duration)
            if next_lease is None:
                self._stop(cancel)
                return
            lease_duration = next_lease
            if not self._transition(cancel, SchedulerState.ARMED, lease_duration):
                return

    def _renew_once(self, lease_duration: int) -> int | None:
        """Run one renewal.  Returns the lease to wait on, or ``None`` to stop."""
        try:
            new_lease = self._renew()
        except HTTPError as exc:
            if exc.status == HTTPStatus.FORBIDDEN:
                logger.error("Failed to renew lease, canceling renewal: %s", exc)
                return None
            logger.warning("Failed to renew lease, retrying next cycle: %s", exc)
            return lease_duration
        except Exception:
            logger.warning("Failed to renew lease, retrying next cycle", exc_info=True)
            return lease_duration

        logger.debug("Lease renewed: lease_duration=%ss", new_lease)
        return new_lease

    def _transition(
        self,
        cancel: threading.Event,
        state: SchedulerState,
        lease_duration: int,
    ) -> bool:
        with self._lock:
            if cancel is not self._cancel or cancel.is_set():
                return False
            self._state = state
            self._lease_duration = lease_duration
            return True

    def _stop(self, cancel: threading.Event) -> None:
        with self._lock:
            if cancel is self._cancel:
                self._cancel = None
                self._state = SchedulerState.IDLE
