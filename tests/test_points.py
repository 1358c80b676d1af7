from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func

from aeras.src import exceptions, lifecycle, points
from aeras.src.db import PointsExpiryMap, PointsTransaction, Rickshaw, Ride
from aeras.src.enums import RideStatus, TransactionType

PAHARTOLI = (22.4725, 91.9845)


def balance(session, rickshawID):
    return session.get(Rickshaw, rickshawID, populate_existing=True).points


def ledgerSum(session, rickshawID):
    return (
        session.query(
            func.sum(PointsTransaction.points_earned - PointsTransaction.points_spent)
        )
        .filter(PointsTransaction.rickshaw_id == rickshawID)
        .scalar()
        or 0
    )


def assertBalanced(session, *rickshawIDs):
    for rickshawID in rickshawIDs:
        assert balance(session, rickshawID) == ledgerSum(session, rickshawID)


def droppedRide(session, rickshawID, drop=PAHARTOLI):
    ride = lifecycle.requestRide(session, "CUET_CAMPUS", "PAHARTOLI")
    lifecycle.acceptRide(session, ride.id, rickshawID)
    lifecycle.confirmPickup(session, ride.id)
    lifecycle.completeRide(session, ride.id, *drop)
    return ride


def test_credit_moves_balance_with_log(session, rickshaws):
    points.credit(session, "R1", 7, TransactionType.EARNED)
    points.credit(session, "R1", 3, TransactionType.ADJUSTED)
    points.credit(session, "R1", -4, TransactionType.ADJUSTED)
    points.credit(session, "R1", 2, TransactionType.SPENT)
    session.commit()

    assert balance(session, "R1") == 4
    assertBalanced(session, "R1")


def test_credit_rejects_negative_earned(session, rickshaws):
    with pytest.raises(exceptions.InvalidValue):
        points.credit(session, "R1", -1, TransactionType.EARNED)
    with pytest.raises(exceptions.InvalidValue):
        points.credit(session, "R1", -1, TransactionType.SPENT)


def test_credit_unknown_rickshaw(session):
    with pytest.raises(exceptions.UnknownValue):
        points.credit(session, "GHOST", 5, TransactionType.EARNED)


def test_redeem(session, rickshaws):
    droppedRide(session, "R1")

    assert points.redeem(session, "R1", 6, "Tea") == 4

    spent = (
        session.query(PointsTransaction)
        .filter(PointsTransaction.type == TransactionType.SPENT)
        .one()
    )
    assert spent.points_spent == 6
    assert spent.note == "Redeemed for Tea"
    assertBalanced(session, "R1")


def test_redeem_insufficient_balance(session, rickshaws):
    droppedRide(session, "R1")

    with pytest.raises(exceptions.InsufficientBalance):
        points.redeem(session, "R1", 11, "Lunch")

    assert balance(session, "R1") == 10
    assert (
        session.query(PointsTransaction)
        .filter(PointsTransaction.type == TransactionType.SPENT)
        .count()
        == 0
    )


def test_redeem_whole_balance(session, rickshaws):
    droppedRide(session, "R1")

    assert points.redeem(session, "R1", 10, "Lunch") == 0
    with pytest.raises(exceptions.InsufficientBalance):
        points.redeem(session, "R1", 1, "Tea")


def test_redeem_validation(session, rickshaws):
    with pytest.raises(exceptions.InvalidValue):
        points.redeem(session, "R1", 0, "Tea")
    with pytest.raises(exceptions.UnknownValue):
        points.redeem(session, "GHOST", 1, "Tea")


def test_adjust_review_ride(session, rickshaws):
    ride = droppedRide(session, "R1", drop=(22.47385, 91.9845))

    assert points.adjustAward(session, ride.id, 7, "GPS drift") == 7

    stored = session.get(Ride, ride.id, populate_existing=True)
    assert stored.status == RideStatus.COMPLETED
    assert stored.points_awarded == 7
    adjusted = (
        session.query(PointsTransaction)
        .filter(PointsTransaction.type == TransactionType.ADJUSTED)
        .one()
    )
    assert adjusted.points_earned == 7
    assert adjusted.note == "GPS drift"
    assert balance(session, "R1") == 7
    assertBalanced(session, "R1")


def test_adjust_down(session, rickshaws):
    ride = droppedRide(session, "R1")

    assert points.adjustAward(session, ride.id, 6, "Wrong block") == -4

    adjusted = (
        session.query(PointsTransaction)
        .filter(PointsTransaction.type == TransactionType.ADJUSTED)
        .one()
    )
    assert adjusted.points_spent == 4
    assert balance(session, "R1") == 6
    assertBalanced(session, "R1")


def test_adjust_requires_dropped_ride(session, rickshaws):
    ride = lifecycle.requestRide(session, "CUET_CAMPUS", "PAHARTOLI")

    with pytest.raises(exceptions.InvalidStateTransition):
        points.adjustAward(session, ride.id, 5, "Early")
    with pytest.raises(exceptions.InvalidIdentifier):
        points.adjustAward(session, 999, 5, "Missing")
    with pytest.raises(exceptions.InvalidValue):
        points.adjustAward(session, ride.id, -1, "Negative")


def test_expire_old_points_once(session, rickshaws):
    droppedRide(session, "R1")
    droppedRide(session, "R1")
    droppedRide(session, "R2")
    points.redeem(session, "R1", 5, "Tea")
    later = datetime.now(timezone.utc) + timedelta(days=181)

    assert points.expireOlderThan(session, 180, now=later) == (30, 2)

    assert balance(session, "R1") == -5
    assert balance(session, "R2") == 0
    expired = (
        session.query(PointsTransaction)
        .filter(PointsTransaction.type == TransactionType.EXPIRED)
        .order_by(PointsTransaction.rickshaw_id)
        .all()
    )
    assert [(e.rickshaw_id, e.points_spent) for e in expired] == [("R1", 20), ("R2", 10)]
    assert expired[0].note == "Points older than 180 days"
    assert session.query(PointsExpiryMap).count() == 3
    assertBalanced(session, "R1", "R2")

    # Already covered entries are never expired again
    assert points.expireOlderThan(session, 180, now=later) == (0, 0)
    assert balance(session, "R1") == -5


def test_expire_picks_up_newly_aged_entries(session, rickshaws):
    droppedRide(session, "R1")
    later = datetime.now(timezone.utc) + timedelta(days=181)
    points.expireOlderThan(session, 180, now=later)

    droppedRide(session, "R1")
    assert points.expireOlderThan(session, 180, now=later) == (10, 1)
    assert balance(session, "R1") == 0
    assertBalanced(session, "R1")


def test_expire_keeps_recent_points(session, rickshaws):
    droppedRide(session, "R1")

    assert points.expireOlderThan(session, 180) == (0, 0)
    assert balance(session, "R1") == 10
