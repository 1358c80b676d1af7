from fastapi import FastAPI
from aeras.api import (
    location,
    ride,
    rickshaw,
    points,
    report,
)
from aeras.src.enums import AppID


# ------------------------------------------------------
# Create separate FastAPI apps for each client
# ------------------------------------------------------
app_rider = FastAPI(title="Rider APP")
app_rickshaw = FastAPI(title="Rickshaw APP")
app_admin = FastAPI(title="Admin APP")

# Tag each app with its AppID
app_rider.state.id = AppID.RIDER
app_rickshaw.state.id = AppID.RICKSHAW
app_admin.state.id = AppID.ADMIN


# ------------------------------------------------------
# Rider routers
# ------------------------------------------------------
app_rider.include_router(ride.route_rider)
app_rider.include_router(location.route_rider)


# ------------------------------------------------------
# Rickshaw routers
# ------------------------------------------------------
app_rickshaw.include_router(rickshaw.route_rickshaw)
app_rickshaw.include_router(ride.route_rickshaw)
app_rickshaw.include_router(points.route_rickshaw)
app_rickshaw.include_router(location.route_rickshaw)


# ------------------------------------------------------
# Admin routers
# ------------------------------------------------------
app_admin.include_router(report.route_admin)
app_admin.include_router(ride.route_admin)
app_admin.include_router(rickshaw.route_admin)
app_admin.include_router(points.route_admin)
app_admin.include_router(location.route_admin)
