"""
Application configuration and constants for AERAS Core Server.

This module centralizes environment-based configuration, ride lifecycle
timings, reward policy constants and the seeded location catalog.

Configuration values can be overridden via environment variables.
"""

from os import environ
from zoneinfo import ZoneInfo


# ---------------------------------------------------------------------------
# Application metadata
# ---------------------------------------------------------------------------
API_TITLE = "AERAS Core Server"
API_VERSION = "1.0.0"


# ---------------------------------------------------------------------------
# PostgreSQL configuration
# ---------------------------------------------------------------------------
PSQL_DB_DRIVER = environ.get("PSQL_DB_DRIVER", "postgresql")
PSQL_DB_USERNAME = environ.get("PSQL_DB_USERNAME", "postgres")
PSQL_DB_PORT = environ.get("PSQL_DB_PORT", "5432")
PSQL_DB_PASSWORD = environ.get("PSQL_DB_PASSWORD", "password")
PSQL_DB_HOST = environ.get("PSQL_DB_HOST", "localhost")
PSQL_DB_NAME = environ.get("PSQL_DB_NAME", "postgres")


# ---------------------------------------------------------------------------
# OpenObserve configuration
# ---------------------------------------------------------------------------
OPENOBSERVE_PROTOCOL = environ.get("OPENOBSERVE_PROTOCOL", "http")
OPENOBSERVE_HOST = environ.get("OPENOBSERVE_HOST", "localhost")
OPENOBSERVE_PORT = environ.get("OPENOBSERVE_PORT", "5080")
OPENOBSERVE_USERNAME = environ.get("OPENOBSERVE_USERNAME", "admin@aeras.com")
OPENOBSERVE_PASSWORD = environ.get("OPENOBSERVE_PASSWORD", "password")
OPENOBSERVE_ORG = environ.get("OPENOBSERVE_ORG", "aeras")
OPENOBSERVE_STREAM = environ.get("OPENOBSERVE_STREAM", "aeras-core-server")


# ---------------------------------------------------------------------------
# Redis configuration
# ---------------------------------------------------------------------------
REDIS_HOST = environ.get("REDIS_HOST", "localhost")
REDIS_PORT = environ.get("REDIS_PORT", "6379")
REDIS_PASSWORD = environ.get("REDIS_PASSWORD", "password")


# ---------------------------------------------------------------------------
# Ride lifecycle timings
# ---------------------------------------------------------------------------
RIDE_TIMEOUT = int(environ.get("RIDE_TIMEOUT", 60))  # Acceptance window (in seconds)
RIDE_SWEEP_INTERVAL = int(environ.get("RIDE_SWEEP_INTERVAL", 10))  # (in seconds)
GUEST_RIDER_ID = "GUEST"


# ---------------------------------------------------------------------------
# Reward policy
# ---------------------------------------------------------------------------
EARTH_RADIUS = 6371000  # Spherical earth radius (in meters)
MAX_POINTS = 10  # Reward for an exact drop
MIN_PARTIAL_POINTS = 8  # Floor of the linear decay band
PARTIAL_DISTANCE = 50  # Upper bound of the linear decay band (in meters)
REDUCED_POINTS = 5  # Flat reward of the reduced band
REVIEW_DISTANCE = 100  # Drops beyond this go to admin review (in meters)
POINTS_EXPIRY_DAYS = int(environ.get("POINTS_EXPIRY_DAYS", 180))


# ---------------------------------------------------------------------------
# Location catalog (block id, name, latitude, longitude)
# ---------------------------------------------------------------------------
LOCATIONS = [
    ("CUET_CAMPUS", "CUET Campus", 22.4633, 91.9714),
    ("PAHARTOLI", "Pahartoli", 22.4725, 91.9845),
    ("NOAPARA", "Noapara", 22.4580, 91.9920),
    ("RAOJAN", "Raojan", 22.4520, 91.9650),
]


# ---------------------------------------------------------------------------
# Timezone constants
# ---------------------------------------------------------------------------
TMZ_PRIMARY = ZoneInfo("UTC")


# ---------------------------------------------------------------------------
# Redis mutex lock constants
# ---------------------------------------------------------------------------
MUTEX_LOCK_TIMEOUT = 10  # Lock timeout (in seconds)
MUTEX_LOCK_MAX_WAIT_TIME = 60  # Max blocking wait time (in seconds)
