"""
Points ledger for rickshaw rewards.

Every change of a rickshaw's cached `points` balance goes together with a new
`PointsTransaction` in the same database transaction, so that the balance
always equals the signed sum of the rickshaw's transaction log:

    points == sum(earned) - sum(spent) + sum(adjusted) - sum(expired)
"""

from datetime import datetime, timedelta, timezone
from itertools import groupby
from logging import getLogger
from typing import Optional, Tuple
from sqlalchemy import select, update
from sqlalchemy.orm.session import Session

from aeras.src import exceptions
from aeras.src.db import PointsExpiryMap, PointsTransaction, Rickshaw, Ride
from aeras.src.enums import RideStatus, TransactionType

logger = getLogger("Points")

ADDITIVE_TYPES = [TransactionType.EARNED, TransactionType.ADJUSTED]


def credit(
    session: Session,
    rickshawID: str,
    amount: int,
    type: TransactionType,
    rideID: Optional[int] = None,
    note: Optional[str] = None,
) -> PointsTransaction:
    """
    Append a transaction and move the cached balance by the same signed amount.

    EARNED and ADJUSTED entries add `amount` to the balance, SPENT and EXPIRED
    entries subtract it. Only ADJUSTED entries may carry a negative amount.
    The change is flushed but not committed; it belongs to the caller's
    transaction.

    Args:
        session (Session): Active SQLAlchemy session.
        rickshawID (str): Rickshaw whose balance changes.
        amount (int): Magnitude of the change (signed delta for ADJUSTED).
        type (TransactionType): Kind of the entry.
        rideID (Optional[int]): Ride the entry refers to, if any.
        note (Optional[str]): Free text stored with the entry.

    Returns:
        PointsTransaction: The appended entry.

    Raises:
        exceptions.InvalidValue: If a non ADJUSTED amount is negative.
        exceptions.UnknownValue: If the rickshaw does not exist.
    """
    if type not in ADDITIVE_TYPES and amount < 0:
        raise exceptions.InvalidValue(PointsTransaction.points_spent)
    if type == TransactionType.EARNED and amount < 0:
        raise exceptions.InvalidValue(PointsTransaction.points_earned)
    delta = amount if type in ADDITIVE_TYPES else -amount

    result = session.execute(
        update(Rickshaw)
        .where(Rickshaw.id == rickshawID)
        .values(points=Rickshaw.points + delta)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise exceptions.UnknownValue(PointsTransaction.rickshaw_id)

    transaction = PointsTransaction(
        rickshaw_id=rickshawID,
        ride_id=rideID,
        points_earned=max(delta, 0),
        points_spent=max(-delta, 0),
        type=type,
        note=note,
        created_on=datetime.now(timezone.utc),
    )
    session.add(transaction)
    session.flush()
    return transaction


def redeem(session: Session, rickshawID: str, amount: int, rewardType: str) -> int:
    """
    Spend points of a rickshaw on a reward.

    The debit is a single conditional update guarded by `points >= amount`,
    so concurrent redemptions can never overdraw the balance.

    Returns:
        int: The new balance.

    Raises:
        exceptions.InvalidValue: If `amount` is not positive.
        exceptions.UnknownValue: If the rickshaw does not exist.
        exceptions.InsufficientBalance: If the balance is lower than `amount`.
    """
    if amount <= 0:
        raise exceptions.InvalidValue(PointsTransaction.points_spent)
    rickshaw = session.get(Rickshaw, rickshawID)
    if rickshaw is None:
        raise exceptions.UnknownValue(PointsTransaction.rickshaw_id)

    result = session.execute(
        update(Rickshaw)
        .where(Rickshaw.id == rickshawID)
        .where(Rickshaw.points >= amount)
        .values(points=Rickshaw.points - amount)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        session.rollback()
        raise exceptions.InsufficientBalance()

    session.add(
        PointsTransaction(
            rickshaw_id=rickshawID,
            points_spent=amount,
            type=TransactionType.SPENT,
            note=f"Redeemed for {rewardType}",
            created_on=datetime.now(timezone.utc),
        )
    )
    session.commit()
    session.refresh(rickshaw)
    logger.info(f"{rickshawID} redeemed {amount} points for {rewardType}")
    return rickshaw.points


def adjustAward(session: Session, rideID: int, newPoints: int, reason: str) -> int:
    """
    Administratively correct the award of a dropped ride.

    The difference against the currently recorded award is applied to the
    rickshaw balance as an ADJUSTED entry (negative when points are taken
    back) and the ride is forced to COMPLETED.

    Returns:
        int: The applied point delta.

    Raises:
        exceptions.InvalidValue: If `newPoints` is negative.
        exceptions.InvalidIdentifier: If the ride does not exist.
        exceptions.InvalidStateTransition: If the ride has not been dropped.
    """
    if newPoints < 0:
        raise exceptions.InvalidValue(Ride.points_awarded)
    ride = session.get(Ride, rideID, populate_existing=True)
    if ride is None:
        raise exceptions.InvalidIdentifier()
    if ride.status not in [RideStatus.COMPLETED, RideStatus.PENDING_REVIEW]:
        raise exceptions.InvalidStateTransition(Ride.status)

    previousPoints = ride.points_awarded
    result = session.execute(
        update(Ride)
        .where(Ride.id == rideID)
        .where(Ride.status == ride.status)
        .where(Ride.points_awarded == previousPoints)
        .values(points_awarded=newPoints, status=RideStatus.COMPLETED)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        session.rollback()
        raise exceptions.InvalidStateTransition(Ride.status)

    delta = newPoints - previousPoints
    credit(
        session,
        ride.rickshaw_id,
        delta,
        TransactionType.ADJUSTED,
        rideID=rideID,
        note=reason,
    )
    session.commit()
    session.refresh(ride)
    logger.info(
        f"Ride {rideID} award adjusted {previousPoints} -> {newPoints} ({delta:+d})"
    )
    return delta


def expireOlderThan(
    session: Session, days: int, now: Optional[datetime] = None
) -> Tuple[int, int]:
    """
    Expire EARNED points older than `days` days.

    EARNED entries already covered by an earlier expiry are excluded through
    an existence check on `points_expiry_map`. Each affected rickshaw gets one
    EXPIRED entry for the summed amount, and every covered EARNED entry is
    mapped to it.

    Args:
        session (Session): Active SQLAlchemy session.
        days (int): Age threshold in days.
        now (Optional[datetime]): Reference time, defaults to the current UTC time.

    Returns:
        Tuple[int, int]: Total points expired and number of affected rickshaws.
    """
    if days < 0:
        raise exceptions.InvalidValue(PointsTransaction.created_on)
    if now is None:
        now = datetime.now(timezone.utc)
    cutoff = now - timedelta(days=days)

    covered = (
        select(PointsExpiryMap.id)
        .where(PointsExpiryMap.earned_id == PointsTransaction.id)
        .exists()
    )
    entries = (
        session.query(PointsTransaction)
        .filter(PointsTransaction.type == TransactionType.EARNED)
        .filter(PointsTransaction.created_on < cutoff)
        .filter(~covered)
        .order_by(PointsTransaction.rickshaw_id, PointsTransaction.id)
        .all()
    )

    totalExpired = 0
    rickshawCount = 0
    for rickshawID, group in groupby(entries, key=lambda entry: entry.rickshaw_id):
        earned = list(group)
        amount = sum(entry.points_earned for entry in earned)
        expiry = credit(
            session,
            rickshawID,
            amount,
            TransactionType.EXPIRED,
            note=f"Points older than {days} days",
        )
        session.add_all(
            [PointsExpiryMap(expiry_id=expiry.id, earned_id=entry.id) for entry in earned]
        )
        totalExpired += amount
        rickshawCount += 1

    session.commit()
    logger.info(f"Expired {totalExpired} points from {rickshawCount} rickshaws")
    return totalExpired, rickshawCount
