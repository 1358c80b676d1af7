import pytest
from pydantic import BaseModel, ValidationError
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy.exc import IntegrityError, OperationalError

from aeras.src import exceptions
from aeras.src.db import Ride
from aeras.src.functions import makeExceptionResponses


class Sample(BaseModel):
    value: int


def test_api_exception_passes_through():
    with pytest.raises(exceptions.InvalidStateTransition) as raised:
        exceptions.handle(exceptions.InvalidStateTransition(Ride.status))
    assert raised.value.detail == "The status cannot be set to the provided value"
    assert raised.value.headers == {"X-Error": "InvalidStateTransition"}


def test_validation_error():
    with pytest.raises(ValidationError) as invalid:
        Sample(value="many")
    with pytest.raises(exceptions.PydanticError):
        exceptions.handle(invalid.value)


def test_storage_failure_is_opaque():
    failure = OperationalError("UPDATE ride", {}, Exception("disk I/O error"))
    with pytest.raises(exceptions.StorageError) as raised:
        exceptions.handle(failure)
    assert raised.value.status_code == 503
    assert "disk" not in raised.value.detail


def test_integrity_error_without_diagnostics():
    failure = IntegrityError("INSERT INTO ride", {}, Exception("CHECK constraint failed"))
    with pytest.raises(exceptions.StorageError):
        exceptions.handle(failure)


def test_redis_error():
    with pytest.raises(exceptions.RedisDBError):
        exceptions.handle(RedisConnectionError("connection refused"))


def test_unexpected_error_is_reraised():
    with pytest.raises(KeyError):
        exceptions.handle(KeyError("ride"))


def test_exception_responses_grouped_by_status():
    responses = makeExceptionResponses(
        [
            exceptions.InvalidIdentifier,
            exceptions.UnknownValue,
            exceptions.InsufficientBalance,
        ]
    )
    assert sorted(responses) == [404, 406]
    assert set(responses[404]["content"]["application/json"]["examples"]) == {
        "InvalidIdentifier",
        "UnknownValue",
    }
