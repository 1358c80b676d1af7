from sqlalchemy import (
    TEXT,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    create_engine,
    func,
)
from sqlalchemy.ext.declarative import declarative_base
from sqlalchemy.orm import sessionmaker

from aeras.src.constants import (
    PSQL_DB_DRIVER,
    PSQL_DB_HOST,
    PSQL_DB_PASSWORD,
    PSQL_DB_NAME,
    PSQL_DB_PORT,
    PSQL_DB_USERNAME,
)
from aeras.src.enums import RickshawStatus, RideStatus, TransactionType


def enumCheck(column: str, enumClass) -> str:
    """Build a CHECK expression restricting `column` to the values of `enumClass`."""
    values = ", ".join(str(member.value) for member in enumClass)
    return f"{column} IN ({values})"


# Global DBMS variables
dbURL = f"{PSQL_DB_DRIVER}://{PSQL_DB_USERNAME}:{PSQL_DB_PASSWORD}@{PSQL_DB_HOST}:{PSQL_DB_PORT}/{PSQL_DB_NAME}"
engine = create_engine(url=dbURL, echo=False)
sessionMaker = sessionmaker(bind=engine, expire_on_commit=False)
ORMbase = declarative_base()


# ----------------------------------- General DB Models ---------------------------------------#
class Rider(ORMbase):
    """
    Represents a rider who requests rides from a pickup block.

    Riders are created implicitly on their first ride request. A shared
    guest identity (`GUEST`) is used when the rider does not identify.
    Riders are never deleted; personal details may later be redacted by an
    external anonymization job.

    Columns:
        id (String(32)):
            Primary key. Identifier supplied by the rider client.

        name (TEXT):
            Display name of the rider.

        phone_number (TEXT):
            Optional contact number of the rider.

        privilege (Boolean):
            Whether the rider has privileged access to the service.
            Defaults to true.

        total_rides (Integer):
            Lifetime count of rides of this rider that reached drop-off.

        updated_on (DateTime):
            Timestamp automatically updated whenever the rider is modified.

        created_on (DateTime):
            Timestamp indicating when the rider was first seen.
    """

    __tablename__ = "rider"

    id = Column(String(32), primary_key=True)
    name = Column(TEXT)
    phone_number = Column(TEXT)
    privilege = Column(Boolean, nullable=False, default=True)
    total_rides = Column(Integer, nullable=False, default=0)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class Rickshaw(ORMbase):
    """
    Represents a rickshaw (driver unit) registered by the driver-side device.

    The record is upserted on registration, moved by location updates and
    switched between AVAILABLE and ON_RIDE by the ride lifecycle.
    The `points` column is a materialized view of the points transaction log
    and is only ever changed together with a new `PointsTransaction`.

    Columns:
        id (String(32)):
            Primary key. Identifier supplied by the rickshaw device.

        name (TEXT):
            Name of the rickshaw puller operating the unit.

        phone_number (TEXT):
            Optional contact number of the puller.

        latitude (Float):
            Last known latitude (WGS84).

        longitude (Float):
            Last known longitude (WGS84).

        is_online (Boolean):
            Whether the rickshaw is currently online.

        points (Integer):
            Cached point balance. Must equal the signed sum of the
            rickshaw's points transactions.

        status (Integer):
            Mapped from the `RickshawStatus` enum.
            Defaults to `RickshawStatus.AVAILABLE`.

        updated_on (DateTime):
            Timestamp of the last modification (location updates included).

        created_on (DateTime):
            Timestamp of the first registration.
    """

    __tablename__ = "rickshaw"
    __table_args__ = (
        CheckConstraint(enumCheck("status", RickshawStatus), name="rickshaw_status"),
        Index("idx_rickshaw_status", "status", "is_online"),
    )

    id = Column(String(32), primary_key=True)
    name = Column(TEXT, nullable=False)
    phone_number = Column(TEXT)
    latitude = Column(Float, nullable=False, default=0)
    longitude = Column(Float, nullable=False, default=0)
    is_online = Column(Boolean, nullable=False, default=True)
    points = Column(Integer, nullable=False, default=0)
    status = Column(Integer, nullable=False, default=RickshawStatus.AVAILABLE)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class Location(ORMbase):
    """
    Represents a named block used as a pickup point or destination.

    The catalog is immutable reference data seeded once during setup.

    Columns:
        id (String(32)):
            Primary key. Block identifier (e.g. `CUET_CAMPUS`).

        name (TEXT):
            Human readable name of the block.

        latitude (Float):
            Latitude of the block (WGS84).

        longitude (Float):
            Longitude of the block (WGS84).

        created_on (DateTime):
            Timestamp indicating when the block was seeded.
    """

    __tablename__ = "location"

    id = Column(String(32), primary_key=True)
    name = Column(TEXT, nullable=False)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    # Metadata
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class Ride(ORMbase):
    """
    Represents a single ride from request through a terminal state.

    Rides are mutated only by the ride lifecycle and are never deleted.
    A rickshaw is assigned exactly while the ride is ACCEPTED, PICKUP,
    COMPLETED or PENDING_REVIEW; this is enforced by a check constraint.

    Columns:
        id (Integer):
            Primary key. Monotonic ride identifier.

        rider_id (String(32)):
            Foreign key referencing `rider.id`.

        rickshaw_id (String(32)):
            Foreign key referencing `rickshaw.id`. Null until accepted and
            cleared again when the rickshaw cancels.

        pickup_block (String(32)):
            Foreign key referencing `location.id`.

        destination (String(32)):
            Destination block identifier. Resolved against the location
            catalog only when the ride is completed.

        requested_on (DateTime):
            Timestamp of the ride request.

        accepted_on (DateTime):
            Timestamp of the winning acceptance.

        picked_up_on (DateTime):
            Timestamp of the pickup confirmation.

        dropped_on (DateTime):
            Timestamp of the drop.

        expires_at (DateTime):
            Deadline after which a still PENDING ride times out.
            Renewed when a rickshaw cancels and the ride is reopened.

        status (Integer):
            Mapped from the `RideStatus` enum. Defaults to `RideStatus.PENDING`.

        drop_latitude (Float):
            Latitude reported at the drop.

        drop_longitude (Float):
            Longitude reported at the drop.

        drop_distance (Float):
            Distance in meters between the drop and the destination block.

        points_awarded (Integer):
            Points credited for this ride. Defaults to 0.

        updated_on (DateTime):
            Timestamp automatically updated whenever the ride is modified.

        created_on (DateTime):
            Timestamp indicating when the record was created.
    """

    __tablename__ = "ride"
    __table_args__ = (
        CheckConstraint(enumCheck("status", RideStatus), name="ride_status"),
        CheckConstraint(
            "(rickshaw_id IS NOT NULL) = ("
            + enumCheck(
                "status",
                [
                    RideStatus.ACCEPTED,
                    RideStatus.PICKUP,
                    RideStatus.COMPLETED,
                    RideStatus.PENDING_REVIEW,
                ],
            )
            + ")",
            name="ride_rickshaw_assignment",
        ),
        CheckConstraint("points_awarded >= 0", name="ride_points_awarded"),
        Index("idx_ride_status", "status"),
        Index("idx_ride_requested_on", "requested_on"),
    )

    id = Column(Integer, primary_key=True)
    rider_id = Column(String(32), ForeignKey("rider.id"), nullable=False)
    rickshaw_id = Column(String(32), ForeignKey("rickshaw.id"), index=True)
    pickup_block = Column(String(32), ForeignKey("location.id"), nullable=False)
    destination = Column(String(32), nullable=False)
    # Lifecycle timestamps
    requested_on = Column(DateTime(timezone=True), nullable=False)
    accepted_on = Column(DateTime(timezone=True))
    picked_up_on = Column(DateTime(timezone=True))
    dropped_on = Column(DateTime(timezone=True))
    expires_at = Column(DateTime(timezone=True), nullable=False)
    status = Column(Integer, nullable=False, default=RideStatus.PENDING)
    # Drop verification
    drop_latitude = Column(Float)
    drop_longitude = Column(Float)
    drop_distance = Column(Float)
    points_awarded = Column(Integer, nullable=False, default=0)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class PointsTransaction(ORMbase):
    """
    Represents one entry of the append-only points log of a rickshaw.

    The signed contribution of an entry to the balance is
    `points_earned - points_spent`. EARNED entries and positive adjustments
    use `points_earned`; SPENT, EXPIRED and negative adjustments use
    `points_spent`. Entries are never updated or deleted.

    Columns:
        id (Integer):
            Primary key. Unique identifier for the entry.

        rickshaw_id (String(32)):
            Foreign key referencing `rickshaw.id`.

        ride_id (Integer):
            Optional foreign key referencing `ride.id`.

        points_earned (Integer):
            Points added to the balance. Never negative.

        points_spent (Integer):
            Points removed from the balance. Never negative.

        type (Integer):
            Mapped from the `TransactionType` enum.

        note (TEXT):
            Free text describing the entry.

        created_on (DateTime):
            Timestamp of the entry.
    """

    __tablename__ = "points_transaction"
    __table_args__ = (
        CheckConstraint(enumCheck("type", TransactionType), name="points_type"),
        CheckConstraint("points_earned >= 0", name="points_earned_positive"),
        CheckConstraint("points_spent >= 0", name="points_spent_positive"),
        Index("idx_points_rickshaw_type", "rickshaw_id", "type"),
    )

    id = Column(Integer, primary_key=True)
    rickshaw_id = Column(String(32), ForeignKey("rickshaw.id"), nullable=False)
    ride_id = Column(Integer, ForeignKey("ride.id"))
    points_earned = Column(Integer, nullable=False, default=0)
    points_spent = Column(Integer, nullable=False, default=0)
    type = Column(Integer, nullable=False)
    note = Column(TEXT)
    # Metadata
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class PointsExpiryMap(ORMbase):
    """
    Represents the coverage of an EARNED entry by an EXPIRED entry.

    Each EARNED entry can be covered at most once, which keeps expiry runs
    idempotent while leaving the transaction log itself append-only.

    Columns:
        id (Integer):
            Primary key. Unique identifier for this mapping record.

        expiry_id (Integer):
            Foreign key referencing the EXPIRED `points_transaction.id`.

        earned_id (Integer):
            Foreign key referencing the covered EARNED `points_transaction.id`.
            Must be unique.

        created_on (DateTime):
            Timestamp indicating when this mapping was created.
    """

    __tablename__ = "points_expiry_map"

    id = Column(Integer, primary_key=True)
    expiry_id = Column(Integer, ForeignKey("points_transaction.id"), nullable=False)
    earned_id = Column(
        Integer, ForeignKey("points_transaction.id"), nullable=False, unique=True
    )
    # Metadata
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())
