from datetime import datetime
from enum import IntEnum
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status, Form
from sqlalchemy.orm.session import Session
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field

from aeras.src.db import Rickshaw, sessionMaker
from aeras.src import exceptions, getters, lifecycle
from aeras.src.enums import OrderIn, RickshawStatus
from aeras.src.loggers import logEvent
from aeras.src.functions import enumStr, makeExceptionResponses, updateIfChanged
from aeras.src.urls import URL_RICKSHAW, URL_RICKSHAW_ACCOUNT, URL_RICKSHAW_LOCATION

route_rickshaw = APIRouter()
route_admin = APIRouter()


## Output Schema
class RickshawSchema(BaseModel):
    id: str
    name: str
    phone_number: Optional[str]
    latitude: float
    longitude: float
    is_online: bool
    points: int
    status: int
    updated_on: Optional[datetime]
    created_on: Optional[datetime]


## Input Forms
class RegisterForm(BaseModel):
    id: str = Field(Form(min_length=1, max_length=32))
    name: str = Field(Form(min_length=1, max_length=64))
    phone_number: str | None = Field(Form(max_length=32, default=None))
    latitude: float | None = Field(Form(ge=-90, le=90, default=None))
    longitude: float | None = Field(Form(ge=-180, le=180, default=None))
    is_online: bool = Field(Form(default=True))


class LocationForm(BaseModel):
    id: str = Field(Form(max_length=32))
    latitude: float = Field(Form(ge=-90, le=90))
    longitude: float = Field(Form(ge=-180, le=180))


## Query Parameters
class OrderBy(IntEnum):
    id = 1
    points = 2
    updated_on = 3
    created_on = 4


class QueryParams(BaseModel):
    name: str | None = Field(Query(default=None))
    phone_number: str | None = Field(Query(default=None))
    # id based
    id: str | None = Field(Query(default=None))
    id_list: List[str] | None = Field(Query(default=None))
    # status based
    is_online: bool | None = Field(Query(default=None))
    status: RickshawStatus | None = Field(
        Query(default=None, description=enumStr(RickshawStatus))
    )
    status_list: List[RickshawStatus] | None = Field(
        Query(default=None, description=enumStr(RickshawStatus))
    )
    # points based
    points_ge: int | None = Field(Query(default=None))
    points_le: int | None = Field(Query(default=None))
    # updated_on based
    updated_on_ge: datetime | None = Field(Query(default=None))
    updated_on_le: datetime | None = Field(Query(default=None))
    # Ordering
    order_by: OrderBy = Field(Query(default=OrderBy.id, description=enumStr(OrderBy)))
    order_in: OrderIn = Field(Query(default=OrderIn.ASC, description=enumStr(OrderIn)))
    # Pagination
    offset: int = Field(Query(default=0, ge=0))
    limit: int = Field(Query(default=20, gt=0, le=100))


## Function
def searchRickshaw(session: Session, qParam: QueryParams) -> List[Rickshaw]:
    query = session.query(Rickshaw)

    # Filters
    if qParam.name is not None:
        query = query.filter(Rickshaw.name.ilike(f"%{qParam.name}%"))
    if qParam.phone_number is not None:
        query = query.filter(Rickshaw.phone_number.ilike(f"%{qParam.phone_number}%"))
    # id based
    if qParam.id is not None:
        query = query.filter(Rickshaw.id == qParam.id)
    if qParam.id_list is not None:
        query = query.filter(Rickshaw.id.in_(qParam.id_list))
    # status based
    if qParam.is_online is not None:
        query = query.filter(Rickshaw.is_online == qParam.is_online)
    if qParam.status is not None:
        query = query.filter(Rickshaw.status == qParam.status)
    if qParam.status_list is not None:
        query = query.filter(Rickshaw.status.in_(qParam.status_list))
    # points based
    if qParam.points_ge is not None:
        query = query.filter(Rickshaw.points >= qParam.points_ge)
    if qParam.points_le is not None:
        query = query.filter(Rickshaw.points <= qParam.points_le)
    # updated_on based
    if qParam.updated_on_ge is not None:
        query = query.filter(Rickshaw.updated_on >= qParam.updated_on_ge)
    if qParam.updated_on_le is not None:
        query = query.filter(Rickshaw.updated_on <= qParam.updated_on_le)

    # Ordering
    orderingAttribute = getattr(Rickshaw, OrderBy(qParam.order_by).name)
    if qParam.order_in == OrderIn.ASC:
        query = query.order_by(orderingAttribute.asc())
    else:
        query = query.order_by(orderingAttribute.desc())

    # Pagination
    query = query.offset(qParam.offset).limit(qParam.limit)
    return query.all()


## API endpoints [Rickshaw]
@route_rickshaw.post(
    URL_RICKSHAW_ACCOUNT,
    tags=["Account"],
    response_model=RickshawSchema,
    status_code=status.HTTP_201_CREATED,
    description="""
    Register a rickshaw or update its details.
    The rickshaw identifier is chosen by the device. Registering an existing identifier updates the name, contact and coordinate in place; the point balance is never touched.
    Setting `is_online` to false takes an idle rickshaw OFFLINE.
    """,
)
async def register_rickshaw(
    fParam: RegisterForm = Depends(),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        rickshaw = session.get(Rickshaw, fParam.id)
        if rickshaw is None:
            rickshaw = Rickshaw(
                id=fParam.id,
                name=fParam.name,
                phone_number=fParam.phone_number,
                latitude=fParam.latitude or 0,
                longitude=fParam.longitude or 0,
                is_online=fParam.is_online,
                points=0,
                status=(
                    RickshawStatus.AVAILABLE
                    if fParam.is_online
                    else RickshawStatus.OFFLINE
                ),
            )
            session.add(rickshaw)
        else:
            updateIfChanged(
                rickshaw,
                fParam,
                [
                    Rickshaw.name.key,
                    Rickshaw.phone_number.key,
                    Rickshaw.latitude.key,
                    Rickshaw.longitude.key,
                ],
            )
            lifecycle.setAvailability(session, fParam.id, fParam.is_online)
        session.commit()
        session.refresh(rickshaw)

        rickshawData = jsonable_encoder(rickshaw)
        logEvent(request_info, rickshawData, rickshawID=rickshaw.id)
        return rickshawData
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_rickshaw.patch(
    URL_RICKSHAW_LOCATION,
    tags=["Account"],
    response_model=RickshawSchema,
    responses=makeExceptionResponses([exceptions.InvalidIdentifier]),
    description="""
    Report the current coordinate of a rickshaw.
    Pending rides are sorted by the distance from the last reported coordinate.
    """,
)
async def update_rickshaw_location(fParam: LocationForm = Depends()):
    try:
        session = sessionMaker()
        rickshaw = session.get(Rickshaw, fParam.id)
        if rickshaw is None:
            raise exceptions.InvalidIdentifier()

        rickshaw.latitude = fParam.latitude
        rickshaw.longitude = fParam.longitude
        session.commit()
        session.refresh(rickshaw)
        return rickshaw
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


## API endpoints [Admin]
@route_admin.get(
    URL_RICKSHAW,
    tags=["Rickshaw"],
    response_model=List[RickshawSchema],
    description="""
    Fetch rickshaws with filtering by status, availability and balance, with sorting and pagination.
    """,
)
async def fetch_rickshaw(qParam: QueryParams = Depends()):
    try:
        session = sessionMaker()
        return searchRickshaw(session, qParam)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
