import logging
from sqlalchemy.orm import Session

from aeras.src import points
from aeras.src.constants import POINTS_EXPIRY_DAYS
from aeras.src.db import sessionMaker, PointsTransaction
from aeras.src.redis import mutex

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("Cleaner")


def expireOldPoints(session: Session, days: int = POINTS_EXPIRY_DAYS):
    with mutex(PointsTransaction.__tablename__):
        total, count = points.expireOlderThan(session, days)
    logger.info(f"Expired {total} points of {count} rickshaws older than {days} days")
    return total, count


def main():
    try:
        with sessionMaker() as session:
            expireOldPoints(session)
    except Exception:
        logger.exception("cleaner.py failed")


if __name__ == "__main__":
    main()
