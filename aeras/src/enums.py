from enum import IntEnum


class AppID(IntEnum):
    RIDER = 1
    RICKSHAW = 2
    ADMIN = 3


class OrderIn(IntEnum):
    ASC = 1
    DESC = 2


class RickshawStatus(IntEnum):
    AVAILABLE = 1
    ON_RIDE = 2
    OFFLINE = 3


class RideStatus(IntEnum):
    PENDING = 1
    ACCEPTED = 2
    PICKUP = 3
    COMPLETED = 4
    TIMEOUT = 5
    PENDING_REVIEW = 6
    CANCELLED = 7


class TransactionType(IntEnum):
    EARNED = 1
    SPENT = 2
    ADJUSTED = 3
    EXPIRED = 4


class AcceptResult(IntEnum):
    ACCEPTED = 1
    ALREADY_TAKEN = 2
    RACE_LOST = 3
