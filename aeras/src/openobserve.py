import base64, json
from logging import getLogger
from typing import Optional
from requests import RequestException, Response, Session

from aeras.src.constants import (
    OPENOBSERVE_HOST,
    OPENOBSERVE_ORG,
    OPENOBSERVE_PASSWORD,
    OPENOBSERVE_PORT,
    OPENOBSERVE_PROTOCOL,
    OPENOBSERVE_STREAM,
    OPENOBSERVE_USERNAME,
)

OPENOBSERVE_TIMEOUT = 5  # (in seconds)

# Basic Auth credentials for the ingestion API
credentials = base64.b64encode(
    bytes(OPENOBSERVE_USERNAME + ":" + OPENOBSERVE_PASSWORD, "utf-8")
).decode("utf-8")

# Shared HTTP session, keeps the ingestion connection alive between events
httpSession = Session()
httpSession.headers.update(
    {"Content-type": "application/json", "Authorization": "Basic " + credentials}
)

openobserve_host = f"{OPENOBSERVE_PROTOCOL}://{OPENOBSERVE_HOST}:{OPENOBSERVE_PORT}"
openobserve_url = f"{openobserve_host}/api/{OPENOBSERVE_ORG}/{OPENOBSERVE_STREAM}/_json"


def logEvent(eventData: dict) -> Optional[Response]:
    """
    Send an audit event to the configured OpenObserve stream.

    The ride has already been committed when an event is sent, so an
    unreachable OpenObserve instance is reported on the server log instead
    of failing the request.

    Args:
        eventData (dict): A dictionary representing the event to be sent.
            Example:
                {
                    "_method": "POST",
                    "_path": "/rickshaw/ride/accept",
                    "_app_id": 2,
                    "_rickshaw_id": "R001"
                }

    Returns:
        requests.Response | None: The OpenObserve response, or None if the
        event could not be delivered.
    """
    try:
        return httpSession.post(
            openobserve_url,
            data=json.dumps(eventData, default=str),
            timeout=OPENOBSERVE_TIMEOUT,
        )
    except RequestException as e:
        getLogger("uvicorn.error").warning(f"OpenObserve event dropped: {e}")
        return None
