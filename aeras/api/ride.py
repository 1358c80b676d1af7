from datetime import datetime
from enum import IntEnum
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status, Form
from sqlalchemy.orm.session import Session
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field

from aeras.src.db import Location, Rickshaw, Ride, sessionMaker
from aeras.src import exceptions, getters, lifecycle
from aeras.src.enums import AcceptResult, OrderIn, RideStatus
from aeras.src.loggers import logEvent
from aeras.src.functions import enumStr, makeExceptionResponses
from aeras.src.schemas import RideCompletion
from aeras.src.urls import (
    URL_RIDE,
    URL_RIDE_ACCEPT,
    URL_RIDE_CANCEL,
    URL_RIDE_COMPLETE,
    URL_RIDE_PENDING,
    URL_RIDE_PICKUP,
    URL_RIDE_STATUS,
)
from aeras.src.watchdog import rideWatchdog

route_rider = APIRouter()
route_rickshaw = APIRouter()
route_admin = APIRouter()

IDLE_STATUS = "IDLE"
ACCEPT_MESSAGES = {
    AcceptResult.ACCEPTED: "Ride accepted",
    AcceptResult.ALREADY_TAKEN: "Ride already taken by another puller",
    AcceptResult.RACE_LOST: "Race condition",
}


## Output Schema
class RideSchema(BaseModel):
    id: int
    rider_id: str
    rickshaw_id: Optional[str]
    pickup_block: str
    destination: str
    status: int
    requested_on: datetime
    accepted_on: Optional[datetime]
    picked_up_on: Optional[datetime]
    dropped_on: Optional[datetime]
    expires_at: datetime
    drop_latitude: Optional[float]
    drop_longitude: Optional[float]
    drop_distance: Optional[float]
    points_awarded: int
    updated_on: Optional[datetime]
    created_on: Optional[datetime]


class RideStatusSchema(BaseModel):
    status: str
    ride_id: Optional[int] = None
    rickshaw_id: Optional[str] = None


class PendingRideSchema(RideSchema):
    pickup_name: str
    pickup_latitude: float
    pickup_longitude: float
    distance: float


class AcceptSchema(BaseModel):
    success: bool
    result: int
    message: str
    ride: Optional[RideSchema] = None


class CompletionSchema(RideCompletion):
    pass


## Input Forms
class RequestForm(BaseModel):
    pickup_block: str = Field(Form(max_length=32))
    destination: str = Field(Form(max_length=32))
    rider_id: str | None = Field(Form(max_length=32, default=None))


class AcceptForm(BaseModel):
    id: int = Field(Form())
    rickshaw_id: str = Field(Form(max_length=32))


class PickupForm(BaseModel):
    id: int = Field(Form())


class CompleteForm(BaseModel):
    id: int = Field(Form())
    latitude: float = Field(Form(ge=-90, le=90))
    longitude: float = Field(Form(ge=-180, le=180))


class CancelForm(BaseModel):
    id: int = Field(Form())
    rickshaw_id: str = Field(Form(max_length=32))
    reason: str | None = Field(Form(max_length=256, default=None))


## Query Parameters
class StatusQueryParams(BaseModel):
    pickup_block: str = Field(Query(max_length=32))


class PendingQueryParams(BaseModel):
    rickshaw_id: str = Field(Query(max_length=32))


class OrderBy(IntEnum):
    id = 1
    requested_on = 2
    dropped_on = 3
    drop_distance = 4
    points_awarded = 5
    updated_on = 6


class QueryParams(BaseModel):
    rider_id: str | None = Field(Query(default=None))
    rickshaw_id: str | None = Field(Query(default=None))
    pickup_block: str | None = Field(Query(default=None))
    destination: str | None = Field(Query(default=None))
    # id based
    id: int | None = Field(Query(default=None))
    id_ge: int | None = Field(Query(default=None))
    id_le: int | None = Field(Query(default=None))
    id_list: List[int] | None = Field(Query(default=None))
    # status based
    status: RideStatus | None = Field(
        Query(default=None, description=enumStr(RideStatus))
    )
    status_list: List[RideStatus] | None = Field(
        Query(default=None, description=enumStr(RideStatus))
    )
    # drop_distance based
    drop_distance_ge: float | None = Field(Query(default=None))
    drop_distance_le: float | None = Field(Query(default=None))
    # requested_on based
    requested_on_ge: datetime | None = Field(Query(default=None))
    requested_on_le: datetime | None = Field(Query(default=None))
    # dropped_on based
    dropped_on_ge: datetime | None = Field(Query(default=None))
    dropped_on_le: datetime | None = Field(Query(default=None))
    # Ordering
    order_by: OrderBy = Field(Query(default=OrderBy.id, description=enumStr(OrderBy)))
    order_in: OrderIn = Field(Query(default=OrderIn.DESC, description=enumStr(OrderIn)))
    # Pagination
    offset: int = Field(Query(default=0, ge=0))
    limit: int = Field(Query(default=20, gt=0, le=100))


## Function
def searchRide(session: Session, qParam: QueryParams) -> List[Ride]:
    query = session.query(Ride)

    # Filters
    if qParam.rider_id is not None:
        query = query.filter(Ride.rider_id == qParam.rider_id)
    if qParam.rickshaw_id is not None:
        query = query.filter(Ride.rickshaw_id == qParam.rickshaw_id)
    if qParam.pickup_block is not None:
        query = query.filter(Ride.pickup_block == qParam.pickup_block)
    if qParam.destination is not None:
        query = query.filter(Ride.destination == qParam.destination)
    # id based
    if qParam.id is not None:
        query = query.filter(Ride.id == qParam.id)
    if qParam.id_ge is not None:
        query = query.filter(Ride.id >= qParam.id_ge)
    if qParam.id_le is not None:
        query = query.filter(Ride.id <= qParam.id_le)
    if qParam.id_list is not None:
        query = query.filter(Ride.id.in_(qParam.id_list))
    # status based
    if qParam.status is not None:
        query = query.filter(Ride.status == qParam.status)
    if qParam.status_list is not None:
        query = query.filter(Ride.status.in_(qParam.status_list))
    # drop_distance based
    if qParam.drop_distance_ge is not None:
        query = query.filter(Ride.drop_distance >= qParam.drop_distance_ge)
    if qParam.drop_distance_le is not None:
        query = query.filter(Ride.drop_distance <= qParam.drop_distance_le)
    # requested_on based
    if qParam.requested_on_ge is not None:
        query = query.filter(Ride.requested_on >= qParam.requested_on_ge)
    if qParam.requested_on_le is not None:
        query = query.filter(Ride.requested_on <= qParam.requested_on_le)
    # dropped_on based
    if qParam.dropped_on_ge is not None:
        query = query.filter(Ride.dropped_on >= qParam.dropped_on_ge)
    if qParam.dropped_on_le is not None:
        query = query.filter(Ride.dropped_on <= qParam.dropped_on_le)

    # Ordering
    orderingAttribute = getattr(Ride, OrderBy(qParam.order_by).name)
    if qParam.order_in == OrderIn.ASC:
        query = query.order_by(orderingAttribute.asc())
    else:
        query = query.order_by(orderingAttribute.desc())

    # Pagination
    query = query.offset(qParam.offset).limit(qParam.limit)
    return query.all()


def pendingRideData(ride: Ride, location: Location, distance: float) -> dict:
    rideData = jsonable_encoder(ride)
    rideData["pickup_name"] = location.name
    rideData["pickup_latitude"] = location.latitude
    rideData["pickup_longitude"] = location.longitude
    rideData["distance"] = round(distance, 2)
    return rideData


## API endpoints [Rider]
@route_rider.post(
    URL_RIDE,
    tags=["Ride"],
    response_model=RideSchema,
    status_code=status.HTTP_201_CREATED,
    responses=makeExceptionResponses(
        [exceptions.MissingParameter, exceptions.UnknownValue]
    ),
    description="""
    Request a ride from a pickup block to a destination block.
    The ride is created in the PENDING state and times out if no rickshaw accepts it within the acceptance window.
    The destination is validated only when the ride is completed.
    """,
)
async def request_ride(
    fParam: RequestForm = Depends(),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        ride = lifecycle.requestRide(
            session, fParam.pickup_block, fParam.destination, fParam.rider_id
        )
        rideWatchdog.arm(ride.id)

        rideData = jsonable_encoder(ride)
        logEvent(request_info, rideData, riderID=ride.rider_id)
        return rideData
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_rider.get(
    URL_RIDE_STATUS,
    tags=["Ride"],
    response_model=RideStatusSchema,
    description="""
    Get the status of the latest ride requested from a pickup block.
    Returns `IDLE` when no ride was ever requested from the block.
    """,
)
async def fetch_ride_status(qParam: StatusQueryParams = Depends()):
    try:
        session = sessionMaker()
        ride = lifecycle.latestRideStatus(session, qParam.pickup_block)
        if ride is None:
            return {"status": IDLE_STATUS}
        return {
            "status": RideStatus(ride.status).name,
            "ride_id": ride.id,
            "rickshaw_id": ride.rickshaw_id,
        }
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


## API endpoints [Rickshaw]
@route_rickshaw.get(
    URL_RIDE_PENDING,
    tags=["Ride"],
    response_model=List[PendingRideSchema],
    description="""
    List all PENDING rides sorted by the distance (in meters) between the rickshaw and the pickup block.
    Rides at the same distance are ordered by request time.
    An unknown rickshaw gets an empty list.
    """,
)
async def fetch_pending_ride(qParam: PendingQueryParams = Depends()):
    try:
        session = sessionMaker()
        rickshaw = session.get(Rickshaw, qParam.rickshaw_id)
        if rickshaw is None:
            return []

        pending = lifecycle.listPendingFor(
            session, rickshaw.latitude, rickshaw.longitude
        )
        return [
            pendingRideData(ride, location, distance)
            for ride, location, distance in pending
        ]
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_rickshaw.post(
    URL_RIDE_ACCEPT,
    tags=["Ride"],
    response_model=AcceptSchema,
    responses=makeExceptionResponses(
        [exceptions.UnknownValue, exceptions.InvalidStateTransition]
    ),
    description="""
    Accept a PENDING ride. At most one acceptance succeeds per ride.
    Losing the ride to another rickshaw is not an error: the response carries `success` false and the reason, so the rickshaw can poll again.
    On success the rickshaw is marked ON_RIDE. A rickshaw that is OFFLINE or already on a ride cannot accept.
    """,
)
async def accept_ride(
    fParam: AcceptForm = Depends(),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        result, ride = lifecycle.acceptRide(session, fParam.id, fParam.rickshaw_id)
        if result != AcceptResult.ACCEPTED:
            return {
                "success": False,
                "result": result,
                "message": ACCEPT_MESSAGES[result],
            }

        rideWatchdog.disarm(ride.id)
        rideData = jsonable_encoder(ride)
        logEvent(request_info, rideData, rickshawID=fParam.rickshaw_id)
        return {
            "success": True,
            "result": result,
            "message": ACCEPT_MESSAGES[result],
            "ride": rideData,
        }
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_rickshaw.post(
    URL_RIDE_PICKUP,
    tags=["Ride"],
    response_model=RideSchema,
    responses=makeExceptionResponses([exceptions.InvalidStateTransition]),
    description="""
    Confirm that the rider has been picked up.
    Only an ACCEPTED ride can be moved to PICKUP.
    """,
)
async def confirm_pickup(
    fParam: PickupForm = Depends(),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        ride = lifecycle.confirmPickup(session, fParam.id)

        rideData = jsonable_encoder(ride)
        logEvent(request_info, rideData, rickshawID=ride.rickshaw_id)
        return rideData
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_rickshaw.post(
    URL_RIDE_COMPLETE,
    tags=["Ride"],
    response_model=CompletionSchema,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidIdentifier,
            exceptions.UnknownValue,
            exceptions.InvalidStateTransition,
        ]
    ),
    description="""
    Drop the rider and verify the drop coordinate against the destination block.
    Drops within 100 meters complete the ride and earn up to 10 points, farther drops are parked for admin review with no points.
    The rickshaw becomes AVAILABLE in both cases.
    """,
)
async def complete_ride(
    fParam: CompleteForm = Depends(),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        completion = lifecycle.completeRide(
            session, fParam.id, fParam.latitude, fParam.longitude
        )

        completionData = jsonable_encoder(completion)
        logEvent(request_info, completionData, rickshawID=completion.rickshaw_id)
        return completionData
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_rickshaw.post(
    URL_RIDE_CANCEL,
    tags=["Ride"],
    response_model=RideSchema,
    responses=makeExceptionResponses([exceptions.InvalidStateTransition]),
    description="""
    Back out of an ACCEPTED or PICKUP ride.
    Only the assigned rickshaw can cancel. The ride is reopened as PENDING with a fresh acceptance window and offered to other rickshaws again.
    """,
)
async def cancel_ride(
    fParam: CancelForm = Depends(),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        ride = lifecycle.cancelRide(
            session, fParam.id, fParam.rickshaw_id, fParam.reason
        )
        rideWatchdog.arm(ride.id)

        rideData = jsonable_encoder(ride)
        rideData["reason"] = fParam.reason
        logEvent(request_info, rideData, rickshawID=fParam.rickshaw_id)
        return rideData
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


## API endpoints [Admin]
@route_admin.get(
    URL_RIDE,
    tags=["Ride"],
    response_model=List[RideSchema],
    description="""
    Fetch rides with filtering, sorting, and pagination.
    Use `status=6` to list the rides waiting for admin review.
    """,
)
async def fetch_ride(qParam: QueryParams = Depends()):
    try:
        session = sessionMaker()
        return searchRide(session, qParam)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
