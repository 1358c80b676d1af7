from datetime import datetime, time, timedelta
from typing import List, Dict, Tuple

from aeras.src import schemas
from aeras.src.constants import TMZ_PRIMARY
from aeras.src.exceptions import APIException


def makeExceptionResponses(exceptions: List[APIException]) -> Dict[int, dict]:
    """
    Generate OpenAPI response documentation by fusing multiple APIException instances.

    Args:
        exceptions (List[APIException]): List of exception classes or instances.

    Returns:
        Dict[int, dict]: A dictionary of OpenAPI response specs grouped by status code.
    """
    responses = {}

    for exception in exceptions:
        status_code = exception.status_code
        example_key = (
            exception.__name__
            if isinstance(exception, type)
            else type(exception).__name__
        )
        example_value = {
            "summary": str(exception.headers),
            "value": {"detail": exception.detail},
        }

        if status_code not in responses:
            responses[status_code] = {
                "model": schemas.ErrorResponse,
                "content": {
                    "application/json": {"examples": {example_key: example_value}}
                },
            }
        else:
            responses[status_code]["content"]["application/json"]["examples"][
                example_key
            ] = example_value

    return responses


def enumStr(enumClass) -> str:
    """
    Convert an Enum class into a comma-separated string of its members.

    Each enum member is formatted as "<NAME>: <VALUE>".

    Example:
        >>> enumStr(RickshawStatus)
        'AVAILABLE: 1, ON_RIDE: 2, OFFLINE: 3'
    """
    return ", ".join(f"{x.name}: {x.value}" for x in enumClass)


def updateIfChanged(targetObj, sourceObj, fields: List[str]) -> None:
    """
    Update attributes on a target object from a source object
    only if the values differ and the new value is not None.

    Designed for use with SQLAlchemy models, where `fields` are typically
    provided as `Model.field.key`.

    Example:
        >>> updateIfChanged(
        ...     rickshaw,
        ...     fParam,
        ...     [Rickshaw.name.key, Rickshaw.phone_number.key],
        ... )
        # rickshaw will be updated where values differ; unchanged fields are skipped silently
    """
    for field in fields:
        new_value = getattr(sourceObj, field, None)
        if new_value is not None:
            old_value = getattr(targetObj, field)
            if old_value != new_value:
                setattr(targetObj, field, new_value)


def dayBounds(moment: datetime) -> Tuple[datetime, datetime]:
    """
    Return the `[start, end)` bounds of the UTC day containing `moment`.

    Example:
        >>> dayBounds(datetime(2025, 1, 2, 15, 30, tzinfo=TMZ_PRIMARY))
        (datetime(2025, 1, 2, 0, 0, tzinfo=UTC), datetime(2025, 1, 3, 0, 0, tzinfo=UTC))
    """
    start = datetime.combine(moment.astimezone(TMZ_PRIMARY).date(), time(), TMZ_PRIMARY)
    return start, start + timedelta(days=1)
