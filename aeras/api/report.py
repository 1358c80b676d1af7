from typing import List
from fastapi import APIRouter
from pydantic import BaseModel

from aeras.src.db import sessionMaker
from aeras.src import exceptions, reports
from aeras.src.urls import URL_ANALYTICS, URL_STATS

route_admin = APIRouter()


## Output Schema
class StatsSchema(BaseModel):
    active_rides: int
    online_rickshaws: int
    pending_reviews: int
    points_today: int
    rides_today: int


class DestinationSchema(BaseModel):
    destination: str
    ride_count: int


class RickshawRankSchema(BaseModel):
    id: str
    name: str
    points: int
    completed_rides: int


class AnalyticsSchema(BaseModel):
    top_destinations: List[DestinationSchema]
    top_rickshaws: List[RickshawRankSchema]


## API endpoints [Admin]
@route_admin.get(
    URL_STATS,
    tags=["Report"],
    response_model=StatsSchema,
    description="""
    Dashboard counters: rides in progress, online rickshaws, rides waiting for review, and today's (UTC) awarded points and requested rides.
    """,
)
async def fetch_stats():
    try:
        session = sessionMaker()
        return reports.dashboardStats(session)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_admin.get(
    URL_ANALYTICS,
    tags=["Report"],
    response_model=AnalyticsSchema,
    description="""
    The five most frequent destinations of dropped rides and the ten rickshaws with the highest balance.
    """,
)
async def fetch_analytics():
    try:
        session = sessionMaker()
        return reports.analytics(session)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
