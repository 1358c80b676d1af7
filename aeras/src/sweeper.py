import time
import logging
from sqlalchemy.orm import Session

from aeras.src import lifecycle
from aeras.src.constants import RIDE_SWEEP_INTERVAL
from aeras.src.db import sessionMaker, Ride
from aeras.src.redis import mutex

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("Sweeper")


def sweepOnce(session: Session) -> int:
    """Time out every overdue PENDING ride while holding the ride table mutex."""
    with mutex(Ride.__tablename__):
        expired = lifecycle.expireStaleRides(session)
    if expired:
        logger.info(f"Timed out {expired} stale rides")
    return expired


def runSweeper(session: Session):
    while True:
        try:
            sweepOnce(session)
        except Exception:
            session.rollback()
            logger.exception("Sweeper loop failed")
        finally:
            time.sleep(RIDE_SWEEP_INTERVAL)


def main():
    try:
        with sessionMaker() as session:
            runSweeper(session)
    except Exception:
        logger.exception("sweeper.py failed")


if __name__ == "__main__":
    main()
