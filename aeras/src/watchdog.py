"""
In-process acceptance watchdog.

Each PENDING ride gets a one-shot timer that fires once its acceptance
window has elapsed and times the ride out if nobody took it. Timers are
only a latency optimization: they do not survive a restart, and the
periodic sweeper (`aeras.src.sweeper`) times out whatever they miss from
the stored `expires_at` deadlines.
"""

import threading
from logging import getLogger
from typing import Callable, Dict, Optional

from sqlalchemy.orm.session import Session

from aeras.src import lifecycle
from aeras.src.constants import RIDE_TIMEOUT
from aeras.src.db import sessionMaker

logger = getLogger("Watchdog")


class RideWatchdog:
    def __init__(self, sessionFactory: Callable[[], Session], timeout: float = RIDE_TIMEOUT):
        self.sessionFactory = sessionFactory
        self.timeout = timeout
        self._timers: Dict[int, threading.Timer] = {}
        self._guard = threading.Lock()

    def arm(self, rideID: int, timeout: Optional[float] = None) -> threading.Timer:
        """Start (or restart) the acceptance timer of a ride."""
        delay = self.timeout if timeout is None else timeout
        timer = threading.Timer(delay, self.fire, args=(rideID,))
        timer.daemon = True
        with self._guard:
            previous = self._timers.pop(rideID, None)
            self._timers[rideID] = timer
        if previous:
            previous.cancel()
        timer.start()
        return timer

    def disarm(self, rideID: int) -> None:
        with self._guard:
            timer = self._timers.pop(rideID, None)
        if timer:
            timer.cancel()

    def fire(self, rideID: int) -> None:
        with self._guard:
            if self._timers.get(rideID) is threading.current_thread():
                self._timers.pop(rideID)
        session = self.sessionFactory()
        try:
            lifecycle.timeoutRide(session, rideID)
        except Exception:
            logger.exception(f"Timeout of ride {rideID} failed")
        finally:
            session.close()

    def pending(self) -> int:
        with self._guard:
            return len(self._timers)

    def shutdown(self) -> None:
        with self._guard:
            timers = list(self._timers.values())
            self._timers.clear()
        for timer in timers:
            timer.cancel()
        logger.info(f"Cancelled {len(timers)} ride timers")


rideWatchdog = RideWatchdog(sessionMaker)
