"""
Read-only aggregates for the admin dashboard.
"""

from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import func
from sqlalchemy.orm.session import Session

from aeras.src.db import Rickshaw, Ride
from aeras.src.enums import RideStatus
from aeras.src.functions import dayBounds

TOP_DESTINATIONS = 5
TOP_RICKSHAWS = 10
DROPPED_STATUSES = [RideStatus.COMPLETED, RideStatus.PENDING_REVIEW]


def dashboardStats(session: Session, now: Optional[datetime] = None) -> dict:
    """
    Summarize the live state of the service.

    `points_today` and `rides_today` are bounded by the UTC day containing
    `now`; the first counts points awarded on rides dropped that day, the
    second counts rides requested that day.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    dayStart, dayEnd = dayBounds(now)

    activeRides = (
        session.query(func.count(Ride.id))
        .filter(Ride.status.in_([RideStatus.ACCEPTED, RideStatus.PICKUP]))
        .scalar()
    )
    onlineRickshaws = (
        session.query(func.count(Rickshaw.id))
        .filter(Rickshaw.is_online.is_(True))
        .scalar()
    )
    pendingReviews = (
        session.query(func.count(Ride.id))
        .filter(Ride.status == RideStatus.PENDING_REVIEW)
        .scalar()
    )
    pointsToday = (
        session.query(func.coalesce(func.sum(Ride.points_awarded), 0))
        .filter(Ride.dropped_on >= dayStart, Ride.dropped_on < dayEnd)
        .scalar()
    )
    ridesToday = (
        session.query(func.count(Ride.id))
        .filter(Ride.requested_on >= dayStart, Ride.requested_on < dayEnd)
        .scalar()
    )
    return {
        "active_rides": activeRides,
        "online_rickshaws": onlineRickshaws,
        "pending_reviews": pendingReviews,
        "points_today": pointsToday,
        "rides_today": ridesToday,
    }


def analytics(session: Session) -> dict:
    """Top destinations by dropped rides and top rickshaws by point balance."""
    rideCount = func.count(Ride.id).label("ride_count")
    destinations = (
        session.query(Ride.destination, rideCount)
        .filter(Ride.status.in_(DROPPED_STATUSES))
        .group_by(Ride.destination)
        .order_by(rideCount.desc(), Ride.destination.asc())
        .limit(TOP_DESTINATIONS)
        .all()
    )

    completedCount = func.count(Ride.id).label("completed_rides")
    rickshaws = (
        session.query(Rickshaw.id, Rickshaw.name, Rickshaw.points, completedCount)
        .outerjoin(
            Ride,
            (Ride.rickshaw_id == Rickshaw.id) & (Ride.status == RideStatus.COMPLETED),
        )
        .group_by(Rickshaw.id, Rickshaw.name, Rickshaw.points)
        .order_by(Rickshaw.points.desc(), Rickshaw.id.asc())
        .limit(TOP_RICKSHAWS)
        .all()
    )
    return {
        "top_destinations": [
            {"destination": destination, "ride_count": count}
            for destination, count in destinations
        ],
        "top_rickshaws": [
            {
                "id": id,
                "name": name,
                "points": points,
                "completed_rides": completed,
            }
            for id, name, points, completed in rickshaws
        ],
    }
