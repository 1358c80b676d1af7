from datetime import datetime
from enum import IntEnum
from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm.session import Session
from pydantic import BaseModel, Field

from aeras.src.db import Location, sessionMaker
from aeras.src import exceptions
from aeras.src.enums import OrderIn
from aeras.src.functions import enumStr
from aeras.src.urls import URL_LOCATION

route_rider = APIRouter()
route_rickshaw = APIRouter()
route_admin = APIRouter()


## Output Schema
class LocationSchema(BaseModel):
    id: str
    name: str
    latitude: float
    longitude: float
    created_on: Optional[datetime]


## Query Parameters
class OrderBy(IntEnum):
    id = 1
    name = 2


class QueryParams(BaseModel):
    name: str | None = Field(Query(default=None))
    id_list: List[str] | None = Field(Query(default=None))
    # Ordering
    order_by: OrderBy = Field(Query(default=OrderBy.id, description=enumStr(OrderBy)))
    order_in: OrderIn = Field(Query(default=OrderIn.ASC, description=enumStr(OrderIn)))


## Function
def searchLocation(session: Session, qParam: QueryParams) -> List[Location]:
    query = session.query(Location)

    # Filters
    if qParam.name is not None:
        query = query.filter(Location.name.ilike(f"%{qParam.name}%"))
    if qParam.id_list is not None:
        query = query.filter(Location.id.in_(qParam.id_list))

    # Ordering
    orderingAttribute = getattr(Location, OrderBy(qParam.order_by).name)
    if qParam.order_in == OrderIn.ASC:
        query = query.order_by(orderingAttribute.asc())
    else:
        query = query.order_by(orderingAttribute.desc())
    return query.all()


## API endpoints [Rider]
@route_rider.get(
    URL_LOCATION,
    tags=["Location"],
    response_model=List[LocationSchema],
    description="""
    List the named blocks a ride can be requested from or to.
    """,
)
async def fetch_location(qParam: QueryParams = Depends()):
    try:
        session = sessionMaker()
        return searchLocation(session, qParam)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


## API endpoints [Rickshaw]
@route_rickshaw.get(
    URL_LOCATION,
    tags=["Location"],
    response_model=List[LocationSchema],
    description="""
    List the named blocks with their coordinates, used to navigate to pickups and drops.
    """,
)
async def fetch_location(qParam: QueryParams = Depends()):
    try:
        session = sessionMaker()
        return searchLocation(session, qParam)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


## API endpoints [Admin]
@route_admin.get(
    URL_LOCATION,
    tags=["Location"],
    response_model=List[LocationSchema],
    description="""
    List the seeded location catalog.
    The catalog is reference data and cannot be modified through the API.
    """,
)
async def fetch_location(qParam: QueryParams = Depends()):
    try:
        session = sessionMaker()
        return searchLocation(session, qParam)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
