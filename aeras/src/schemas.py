from typing import Optional
from pydantic import BaseModel


class RequestInfo(BaseModel):
    method: str
    path: str
    app_id: int


class HealthStatus(BaseModel):
    status: str
    version: str


class ErrorResponse(BaseModel):
    detail: str


class RideCompletion(BaseModel):
    ride_id: int
    rickshaw_id: Optional[str]
    points: int
    distance: float
    status: int
