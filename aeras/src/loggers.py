from typing import Optional

from aeras.src import openobserve
from aeras.src.schemas import RequestInfo


def logEvent(
    requestInfo: RequestInfo,
    data: dict,
    rickshawID: Optional[str] = None,
    riderID: Optional[str] = None,
) -> None:
    """
    Log an audit event to OpenObserve with request and actor context.

    Args:
        requestInfo (RequestInfo): Metadata about the current request.
        data (dict): Event-specific details, usually the encoded ride or transaction.
        rickshawID (Optional[str]): Rickshaw acting in the request, if any.
        riderID (Optional[str]): Rider acting in the request, if any.

    Notes:
        - Automatically attaches `_app_id`, `_method` and `_path`.
        - `_rickshaw_id` / `_rider_id` are attached only when provided.
    """
    logDetails = {
        "_method": requestInfo.method,
        "_path": requestInfo.path,
        "_app_id": requestInfo.app_id,
    }
    if rickshawID is not None:
        logDetails["_rickshaw_id"] = rickshawID
    if riderID is not None:
        logDetails["_rider_id"] = riderID

    logDetails.update(data)
    openobserve.logEvent(logDetails)
