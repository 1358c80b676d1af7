"""
API Endpoint URL Constants

This module defines the URL paths used throughout the application
for accessing rides, rickshaws, points and the location catalog.

These URLs are relative paths and are prefixed by the mount point of the
rider, rickshaw or admin application.
"""

# -------------------------------
# Location catalog
# -------------------------------
URL_LOCATION = "/location"

# -------------------------------
# Ride
# -------------------------------
URL_RIDE = "/ride"
URL_RIDE_STATUS = "/ride/status"
URL_RIDE_PENDING = "/ride/pending"
URL_RIDE_ACCEPT = "/ride/accept"
URL_RIDE_PICKUP = "/ride/pickup"
URL_RIDE_COMPLETE = "/ride/complete"
URL_RIDE_CANCEL = "/ride/cancel"

# -------------------------------
# Rickshaw
# -------------------------------
URL_RICKSHAW = "/rickshaw"
URL_RICKSHAW_ACCOUNT = "/account"
URL_RICKSHAW_LOCATION = "/account/location"

# -------------------------------
# Points
# -------------------------------
URL_POINTS = "/points"
URL_POINTS_REDEEM = "/points/redeem"
URL_POINTS_ADJUST = "/points/adjust"
URL_POINTS_EXPIRE = "/points/expire"

# -------------------------------
# Reports
# -------------------------------
URL_STATS = "/stats"
URL_ANALYTICS = "/analytics"
