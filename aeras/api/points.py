from datetime import datetime
from enum import IntEnum
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, Form
from sqlalchemy.orm.session import Session
from pydantic import BaseModel, Field

from aeras.src.db import PointsTransaction, sessionMaker
from aeras.src import exceptions, getters
from aeras.src import points as ledger
from aeras.src.constants import POINTS_EXPIRY_DAYS
from aeras.src.enums import OrderIn, TransactionType
from aeras.src.loggers import logEvent
from aeras.src.functions import enumStr, makeExceptionResponses
from aeras.src.urls import (
    URL_POINTS,
    URL_POINTS_ADJUST,
    URL_POINTS_EXPIRE,
    URL_POINTS_REDEEM,
)

route_rickshaw = APIRouter()
route_admin = APIRouter()


## Output Schema
class TransactionSchema(BaseModel):
    id: int
    rickshaw_id: str
    ride_id: Optional[int]
    points_earned: int
    points_spent: int
    type: int
    note: Optional[str]
    created_on: datetime


class RedeemSchema(BaseModel):
    rickshaw_id: str
    points_spent: int
    reward_type: str
    balance: int


class AdjustSchema(BaseModel):
    ride_id: int
    points: int
    point_difference: int


class ExpireSchema(BaseModel):
    days: int
    expired: int
    rickshaws: int


## Input Forms
class RedeemForm(BaseModel):
    rickshaw_id: str = Field(Form(max_length=32))
    points: int = Field(Form(gt=0))
    reward_type: str = Field(Form(min_length=1, max_length=64))


class AdjustForm(BaseModel):
    ride_id: int = Field(Form())
    points: int = Field(Form(ge=0))
    reason: str = Field(Form(max_length=256, default="Admin adjustment"))


class ExpireForm(BaseModel):
    days: int = Field(Form(ge=0, default=POINTS_EXPIRY_DAYS))


## Query Parameters
class OrderBy(IntEnum):
    id = 1
    created_on = 2


class QueryParams(BaseModel):
    rickshaw_id: str | None = Field(Query(default=None))
    ride_id: int | None = Field(Query(default=None))
    # id based
    id: int | None = Field(Query(default=None))
    id_ge: int | None = Field(Query(default=None))
    id_le: int | None = Field(Query(default=None))
    id_list: List[int] | None = Field(Query(default=None))
    # type based
    type: TransactionType | None = Field(
        Query(default=None, description=enumStr(TransactionType))
    )
    type_list: List[TransactionType] | None = Field(
        Query(default=None, description=enumStr(TransactionType))
    )
    # created_on based
    created_on_ge: datetime | None = Field(Query(default=None))
    created_on_le: datetime | None = Field(Query(default=None))
    # Ordering
    order_by: OrderBy = Field(Query(default=OrderBy.id, description=enumStr(OrderBy)))
    order_in: OrderIn = Field(Query(default=OrderIn.DESC, description=enumStr(OrderIn)))
    # Pagination
    offset: int = Field(Query(default=0, ge=0))
    limit: int = Field(Query(default=20, gt=0, le=100))


## Function
def searchTransaction(
    session: Session, qParam: QueryParams
) -> List[PointsTransaction]:
    query = session.query(PointsTransaction)

    # Filters
    if qParam.rickshaw_id is not None:
        query = query.filter(PointsTransaction.rickshaw_id == qParam.rickshaw_id)
    if qParam.ride_id is not None:
        query = query.filter(PointsTransaction.ride_id == qParam.ride_id)
    # id based
    if qParam.id is not None:
        query = query.filter(PointsTransaction.id == qParam.id)
    if qParam.id_ge is not None:
        query = query.filter(PointsTransaction.id >= qParam.id_ge)
    if qParam.id_le is not None:
        query = query.filter(PointsTransaction.id <= qParam.id_le)
    if qParam.id_list is not None:
        query = query.filter(PointsTransaction.id.in_(qParam.id_list))
    # type based
    if qParam.type is not None:
        query = query.filter(PointsTransaction.type == qParam.type)
    if qParam.type_list is not None:
        query = query.filter(PointsTransaction.type.in_(qParam.type_list))
    # created_on based
    if qParam.created_on_ge is not None:
        query = query.filter(PointsTransaction.created_on >= qParam.created_on_ge)
    if qParam.created_on_le is not None:
        query = query.filter(PointsTransaction.created_on <= qParam.created_on_le)

    # Ordering
    orderingAttribute = getattr(PointsTransaction, OrderBy(qParam.order_by).name)
    if qParam.order_in == OrderIn.ASC:
        query = query.order_by(orderingAttribute.asc())
    else:
        query = query.order_by(orderingAttribute.desc())

    # Pagination
    query = query.offset(qParam.offset).limit(qParam.limit)
    return query.all()


## API endpoints [Rickshaw]
@route_rickshaw.post(
    URL_POINTS_REDEEM,
    tags=["Points"],
    response_model=RedeemSchema,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidValue,
            exceptions.UnknownValue,
            exceptions.InsufficientBalance,
        ]
    ),
    description="""
    Spend points on a reward.
    The redemption fails without touching the balance when the balance is lower than the requested points.
    """,
)
async def redeem_points(
    fParam: RedeemForm = Depends(),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        balance = ledger.redeem(
            session, fParam.rickshaw_id, fParam.points, fParam.reward_type
        )

        redeemData = {
            "rickshaw_id": fParam.rickshaw_id,
            "points_spent": fParam.points,
            "reward_type": fParam.reward_type,
            "balance": balance,
        }
        logEvent(request_info, redeemData, rickshawID=fParam.rickshaw_id)
        return redeemData
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


## API endpoints [Admin]
@route_admin.get(
    URL_POINTS,
    tags=["Points"],
    response_model=List[TransactionSchema],
    description="""
    Fetch the points transaction log with filtering, sorting, and pagination.
    """,
)
async def fetch_transaction(qParam: QueryParams = Depends()):
    try:
        session = sessionMaker()
        return searchTransaction(session, qParam)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_admin.post(
    URL_POINTS_ADJUST,
    tags=["Points"],
    response_model=AdjustSchema,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidValue,
            exceptions.InvalidIdentifier,
            exceptions.InvalidStateTransition,
        ]
    ),
    description="""
    Override the points awarded for a dropped ride, typically after reviewing a PENDING_REVIEW ride.
    The difference to the recorded award is applied to the rickshaw balance as an ADJUSTED transaction and the ride is marked COMPLETED.
    """,
)
async def adjust_points(
    fParam: AdjustForm = Depends(),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        delta = ledger.adjustAward(session, fParam.ride_id, fParam.points, fParam.reason)

        adjustData = {
            "ride_id": fParam.ride_id,
            "points": fParam.points,
            "point_difference": delta,
        }
        logEvent(request_info, adjustData | {"reason": fParam.reason})
        return adjustData
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_admin.post(
    URL_POINTS_EXPIRE,
    tags=["Points"],
    response_model=ExpireSchema,
    responses=makeExceptionResponses([exceptions.InvalidValue]),
    description="""
    Expire EARNED points older than the given number of days (180 by default).
    Earned points are expired at most once; repeated runs only pick up newly aged entries.
    """,
)
async def expire_points(
    fParam: ExpireForm = Depends(),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        expired, rickshaws = ledger.expireOlderThan(session, fParam.days)

        expireData = {"days": fParam.days, "expired": expired, "rickshaws": rickshaws}
        logEvent(request_info, expireData)
        return expireData
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
