from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from aeras.src import schemas
from aeras.src.constants import API_TITLE, API_VERSION
from aeras.src.watchdog import rideWatchdog
from aeras.api.controller import app_rider, app_rickshaw, app_admin


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    rideWatchdog.shutdown()


app = FastAPI(title=API_TITLE, version=API_VERSION, lifespan=lifespan)

origins = ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.mount("/rider", app_rider, "Rider API")
app.mount("/rickshaw", app_rickshaw, "Rickshaw API")
app.mount("/admin", app_admin, "Admin API")


# Health check endpoint
@app.get("/health", tags=["Health Check"], response_model=schemas.HealthStatus)
async def health_check():
    return {"status": "OK", "version": API_VERSION}
