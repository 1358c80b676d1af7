"""
Ride lifecycle state machine.

    PENDING --accept--> ACCEPTED --pickup--> PICKUP --complete--> COMPLETED
                                                    \\-complete--> PENDING_REVIEW
    PENDING --deadline--> TIMEOUT
    ACCEPTED | PICKUP --cancel--> PENDING

Every transition is a single conditional UPDATE guarded by the expected
current status, executed inside one transaction together with the rows it
drags along (rickshaw status, points ledger, rider counters). The affected
row count decides the outcome, so no lock is ever taken: two rickshaws
accepting the same ride race on the same guarded UPDATE and exactly one of
them changes a row.
"""

from datetime import datetime, timedelta, timezone
from logging import getLogger
from typing import List, Optional, Tuple
from sqlalchemy import case, update
from sqlalchemy.orm.session import Session

from aeras.src import exceptions, geo
from aeras.src import points as ledger
from aeras.src.constants import GUEST_RIDER_ID, RIDE_TIMEOUT
from aeras.src.db import Location, Rickshaw, Ride, Rider
from aeras.src.enums import (
    AcceptResult,
    RickshawStatus,
    RideStatus,
    TransactionType,
)
from aeras.src.schemas import RideCompletion

logger = getLogger("Lifecycle")


def _now(now: Optional[datetime]) -> datetime:
    return datetime.now(timezone.utc) if now is None else now


def _guardedUpdate(session: Session, *conditions, **values) -> int:
    result = session.execute(
        update(Ride)
        .where(*conditions)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


def _setRickshawStatus(
    session: Session, rickshawID: str, status, *conditions
) -> int:
    result = session.execute(
        update(Rickshaw)
        .where(Rickshaw.id == rickshawID, *conditions)
        .values(status=status)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


def _releaseRickshaw(session: Session, rickshawID: str) -> int:
    # Back to AVAILABLE, or OFFLINE if the puller went offline mid-ride
    return _setRickshawStatus(
        session,
        rickshawID,
        case(
            (Rickshaw.is_online.is_(True), RickshawStatus.AVAILABLE),
            else_=RickshawStatus.OFFLINE,
        ),
    )


def _reload(session: Session, rideID: int) -> Ride:
    return session.get(Ride, rideID, populate_existing=True)


def requestRide(
    session: Session,
    pickupBlock: str,
    destination: str,
    riderID: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Ride:
    """
    Create a PENDING ride from a pickup block.

    The pickup block must exist in the location catalog. The destination is
    only resolved when the ride is completed. Unknown riders are created on
    the fly; a missing rider identifier falls back to the guest identity.
    The acceptance deadline is `RIDE_TIMEOUT` seconds after the request.

    Raises:
        exceptions.MissingParameter: If the pickup block or destination is empty.
        exceptions.UnknownValue: If the pickup block is not in the catalog.
    """
    if not pickupBlock:
        raise exceptions.MissingParameter(Ride.pickup_block)
    if not destination:
        raise exceptions.MissingParameter(Ride.destination)
    if not riderID:
        riderID = GUEST_RIDER_ID
    if session.get(Location, pickupBlock) is None:
        raise exceptions.UnknownValue(Ride.pickup_block)

    if session.get(Rider, riderID) is None:
        name = "Guest" if riderID == GUEST_RIDER_ID else None
        session.add(Rider(id=riderID, name=name))
        session.flush()

    requestedOn = _now(now)
    ride = Ride(
        rider_id=riderID,
        pickup_block=pickupBlock,
        destination=destination,
        requested_on=requestedOn,
        expires_at=requestedOn + timedelta(seconds=RIDE_TIMEOUT),
        status=RideStatus.PENDING,
    )
    session.add(ride)
    session.commit()
    session.refresh(ride)
    logger.info(f"Ride {ride.id} requested: {pickupBlock} -> {destination}")
    return ride


def latestRideStatus(session: Session, pickupBlock: str) -> Optional[Ride]:
    """Most recent ride requested from `pickupBlock`, or None when there is none."""
    return (
        session.query(Ride)
        .filter(Ride.pickup_block == pickupBlock)
        .order_by(Ride.requested_on.desc(), Ride.id.desc())
        .first()
    )


def listPendingFor(
    session: Session, latitude: float, longitude: float
) -> List[Tuple[Ride, Location, float]]:
    """
    List PENDING rides by proximity of their pickup block.

    Rides are fetched oldest request first and then stable-sorted by the
    distance (in meters) between the given coordinate and the pickup block,
    so rides at the same distance keep request order.

    Returns:
        List[Tuple[Ride, Location, float]]: Ride, its pickup block and the distance.
    """
    rows = (
        session.query(Ride, Location)
        .join(Location, Ride.pickup_block == Location.id)
        .filter(Ride.status == RideStatus.PENDING)
        .order_by(Ride.requested_on.asc(), Ride.id.asc())
        .all()
    )
    annotated = [
        (
            ride,
            location,
            geo.distanceMeters(
                (latitude, longitude), (location.latitude, location.longitude)
            ),
        )
        for ride, location in rows
    ]
    return sorted(annotated, key=lambda item: item[2])


def setAvailability(session: Session, rickshawID: str, isOnline: bool) -> None:
    """
    Record whether a rickshaw is online, in the caller's transaction.

    An idle rickshaw follows the flag (AVAILABLE or OFFLINE). An ON_RIDE
    rickshaw keeps its status until the ride releases it; the status is
    guarded in the UPDATE itself so a concurrent acceptance is never
    overwritten.
    """
    session.execute(
        update(Rickshaw)
        .where(Rickshaw.id == rickshawID)
        .values(is_online=isOnline)
        .execution_options(synchronize_session=False)
    )
    _setRickshawStatus(
        session,
        rickshawID,
        RickshawStatus.AVAILABLE if isOnline else RickshawStatus.OFFLINE,
        Rickshaw.status != RickshawStatus.ON_RIDE,
    )


def acceptRide(
    session: Session, rideID: int, rickshawID: str, now: Optional[datetime] = None
) -> Tuple[AcceptResult, Optional[Ride]]:
    """
    Arbitrate the acceptance of a PENDING ride.

    A ride that is missing or no longer PENDING yields `ALREADY_TAKEN`. A
    ride that was PENDING when read but is claimed by someone else before our
    guarded UPDATE runs yields `RACE_LOST`. Both are ordinary outcomes, not
    errors. On success the ride and the rickshaw are committed together.

    Returns:
        Tuple[AcceptResult, Optional[Ride]]: The outcome and, when accepted, the ride.

    Raises:
        exceptions.UnknownValue: If the rickshaw is not registered.
        exceptions.InvalidStateTransition: If the rickshaw is on a ride or offline.
    """
    ride = session.get(Ride, rideID, populate_existing=True)
    if ride is None or ride.status != RideStatus.PENDING:
        logger.info(f"Ride {rideID} already taken, {rickshawID} rejected")
        return AcceptResult.ALREADY_TAKEN, None
    if session.get(Rickshaw, rickshawID) is None:
        raise exceptions.UnknownValue(Ride.rickshaw_id)

    claimed = _guardedUpdate(
        session,
        Ride.id == rideID,
        Ride.status == RideStatus.PENDING,
        status=RideStatus.ACCEPTED,
        rickshaw_id=rickshawID,
        accepted_on=_now(now),
    )
    if claimed == 0:
        session.rollback()
        logger.info(f"Ride {rideID} race lost by {rickshawID}")
        return AcceptResult.RACE_LOST, None

    busy = _setRickshawStatus(
        session,
        rickshawID,
        RickshawStatus.ON_RIDE,
        Rickshaw.status == RickshawStatus.AVAILABLE,
    )
    if busy == 0:
        session.rollback()
        raise exceptions.InvalidStateTransition(Rickshaw.status)

    session.commit()
    logger.info(f"Ride {rideID} accepted by {rickshawID}")
    return AcceptResult.ACCEPTED, _reload(session, rideID)


def confirmPickup(
    session: Session, rideID: int, now: Optional[datetime] = None
) -> Ride:
    """
    Move an ACCEPTED ride to PICKUP.

    Raises:
        exceptions.InvalidStateTransition: If the ride is missing or not ACCEPTED.
    """
    changed = _guardedUpdate(
        session,
        Ride.id == rideID,
        Ride.status == RideStatus.ACCEPTED,
        status=RideStatus.PICKUP,
        picked_up_on=_now(now),
    )
    if changed == 0:
        session.rollback()
        raise exceptions.InvalidStateTransition(Ride.status)
    session.commit()
    logger.info(f"Ride {rideID} picked up")
    return _reload(session, rideID)


def completeRide(
    session: Session,
    rideID: int,
    latitude: float,
    longitude: float,
    now: Optional[datetime] = None,
) -> RideCompletion:
    """
    Drop a ride and score the drop against its destination block.

    Drops within `REVIEW_DISTANCE` complete the ride, farther drops park it in
    PENDING_REVIEW with no points. Earned points are credited to the rickshaw
    in the same transaction, the rickshaw is released either way (OFFLINE if
    it went offline during the ride) and the rider's ride counter is
    incremented.

    Raises:
        exceptions.InvalidIdentifier: If the ride does not exist.
        exceptions.UnknownValue: If the destination is not in the catalog.
        exceptions.InvalidStateTransition: If the ride is not in PICKUP.
    """
    row = (
        session.query(Ride, Location)
        .outerjoin(Location, Ride.destination == Location.id)
        .filter(Ride.id == rideID)
        .populate_existing()
        .first()
    )
    if row is None:
        raise exceptions.InvalidIdentifier()
    ride, destination = row
    if destination is None:
        raise exceptions.UnknownValue(Ride.destination)

    distance = geo.distanceMeters(
        (latitude, longitude), (destination.latitude, destination.longitude)
    )
    awarded = geo.scoreForDistance(distance)
    status = (
        RideStatus.PENDING_REVIEW if geo.needsReview(distance) else RideStatus.COMPLETED
    )
    rickshawID = ride.rickshaw_id

    changed = _guardedUpdate(
        session,
        Ride.id == rideID,
        Ride.status == RideStatus.PICKUP,
        Ride.rickshaw_id == rickshawID,
        status=status,
        dropped_on=_now(now),
        drop_latitude=latitude,
        drop_longitude=longitude,
        drop_distance=distance,
        points_awarded=awarded,
    )
    if changed == 0:
        session.rollback()
        raise exceptions.InvalidStateTransition(Ride.status)

    if awarded > 0:
        ledger.credit(
            session,
            rickshawID,
            awarded,
            TransactionType.EARNED,
            rideID=rideID,
            note=f"Ride completed - {distance:.1f}m from target",
        )
    _releaseRickshaw(session, rickshawID)
    session.execute(
        update(Rider)
        .where(Rider.id == ride.rider_id)
        .values(total_rides=Rider.total_rides + 1)
        .execution_options(synchronize_session=False)
    )
    session.commit()

    logger.info(
        f"Ride {rideID} dropped {distance:.2f}m from {destination.id}, "
        f"{awarded} points, status {status.name}"
    )
    if status == RideStatus.PENDING_REVIEW:
        logger.warning(f"Ride {rideID} requires admin review")
    return RideCompletion(
        ride_id=rideID,
        rickshaw_id=rickshawID,
        points=awarded,
        distance=distance,
        status=status,
    )


def cancelRide(
    session: Session,
    rideID: int,
    rickshawID: str,
    reason: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Ride:
    """
    Let the assigned rickshaw back out of an ACCEPTED or PICKUP ride.

    The ride is reopened as PENDING with its assignment cleared and a fresh
    acceptance deadline, and the rickshaw is released like on completion.

    Raises:
        exceptions.InvalidStateTransition: If the caller is not the assigned
            rickshaw or the ride is not ACCEPTED/PICKUP.
    """
    reopenedOn = _now(now)
    changed = _guardedUpdate(
        session,
        Ride.id == rideID,
        Ride.rickshaw_id == rickshawID,
        Ride.status.in_([RideStatus.ACCEPTED, RideStatus.PICKUP]),
        status=RideStatus.PENDING,
        rickshaw_id=None,
        accepted_on=None,
        picked_up_on=None,
        expires_at=reopenedOn + timedelta(seconds=RIDE_TIMEOUT),
    )
    if changed == 0:
        session.rollback()
        raise exceptions.InvalidStateTransition(Ride.status)
    _releaseRickshaw(session, rickshawID)
    session.commit()
    logger.info(f"Ride {rideID} cancelled by {rickshawID} ({reason}), reopened")
    return _reload(session, rideID)


def timeoutRide(session: Session, rideID: int, now: Optional[datetime] = None) -> bool:
    """
    Time out a single ride if it is still PENDING past its deadline.

    Safe to call at any moment: an accepted, reopened or already terminal
    ride is left untouched.

    Returns:
        bool: Whether the ride was moved to TIMEOUT.
    """
    changed = _guardedUpdate(
        session,
        Ride.id == rideID,
        Ride.status == RideStatus.PENDING,
        Ride.expires_at <= _now(now),
        status=RideStatus.TIMEOUT,
    )
    session.commit()
    if changed:
        logger.info(f"Ride {rideID} TIMEOUT")
    return changed == 1


def expireStaleRides(session: Session, now: Optional[datetime] = None) -> int:
    """
    Time out every PENDING ride past its deadline.

    Works from stored deadlines only, so rides requested before a restart
    are still timed out.

    Returns:
        int: Number of rides moved to TIMEOUT.
    """
    changed = _guardedUpdate(
        session,
        Ride.status == RideStatus.PENDING,
        Ride.expires_at <= _now(now),
        status=RideStatus.TIMEOUT,
    )
    session.commit()
    return changed
