from fastapi import status

from aeras.api import rickshaw as rickshawAPI
from aeras.src import lifecycle
from aeras.src.db import sessionMaker
from aeras.src.enums import AppID, RickshawStatus, RideStatus, TransactionType
from aeras.src.functions import updateIfChanged

PAHARTOLI = {"latitude": 22.4725, "longitude": 91.9845}


def register(client, rickshawID, **fields):
    data = {"id": rickshawID, "name": f"Puller {rickshawID}", "latitude": 22.4633, "longitude": 91.9714}
    data.update(fields)
    response = client.post("/rickshaw/account", data=data)
    assert response.status_code == status.HTTP_201_CREATED
    return response.json()


def requestRide(client, pickup="CUET_CAMPUS", destination="PAHARTOLI"):
    response = client.post(
        "/rider/ride", data={"pickup_block": pickup, "destination": destination}
    )
    assert response.status_code == status.HTTP_201_CREATED
    return response.json()


def test_health(client):
    response = client.get("/health")
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["status"] == "OK"


def test_location_catalog(client):
    response = client.get("/rider/location")
    assert response.status_code == status.HTTP_200_OK
    assert [location["id"] for location in response.json()] == [
        "CUET_CAMPUS",
        "NOAPARA",
        "PAHARTOLI",
        "RAOJAN",
    ]
    assert len(client.get("/admin/location").json()) == 4
    assert client.get("/rickshaw/location", params={"name": "pahar"}).json()[0]["id"] == "PAHARTOLI"


def test_request_ride(client, armed, events):
    ride = requestRide(client)

    assert ride["status"] == RideStatus.PENDING
    assert ride["rider_id"] == "GUEST"
    assert armed == [ride["id"]]
    assert events[-1]["_rider_id"] == "GUEST"
    assert events[-1]["_app_id"] == AppID.RIDER


def test_request_ride_unknown_pickup(client):
    response = client.post(
        "/rider/ride", data={"pickup_block": "NOWHERE", "destination": "PAHARTOLI"}
    )
    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.headers["X-Error"] == "UnknownValue"


def test_request_ride_missing_destination(client):
    response = client.post("/rider/ride", data={"pickup_block": "CUET_CAMPUS"})
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_ride_status(client):
    assert client.get("/rider/ride/status", params={"pickup_block": "RAOJAN"}).json() == {
        "status": "IDLE",
        "ride_id": None,
        "rickshaw_id": None,
    }

    ride = requestRide(client, pickup="RAOJAN")
    response = client.get("/rider/ride/status", params={"pickup_block": "RAOJAN"})
    assert response.json() == {"status": "PENDING", "ride_id": ride["id"], "rickshaw_id": None}


def test_register_is_upsert(client):
    created = register(client, "R1", phone_number="+8801711111111")
    assert created["status"] == RickshawStatus.AVAILABLE
    assert created["is_online"] is True
    assert created["points"] == 0

    updated = register(client, "R1", name="New name", is_online="false")
    assert updated["name"] == "New name"
    assert updated["phone_number"] == "+8801711111111"
    assert updated["status"] == RickshawStatus.OFFLINE

    online = register(client, "R1")
    assert online["status"] == RickshawStatus.AVAILABLE
    assert len(client.get("/admin/rickshaw").json()) == 1


def test_register_offline_during_accept(client, monkeypatch):
    register(client, "R1")
    ride = requestRide(client)

    def acceptMeanwhile(*args, **kwargs):
        updateIfChanged(*args, **kwargs)
        rival = sessionMaker()
        try:
            lifecycle.acceptRide(rival, ride["id"], "R1")
        finally:
            rival.close()

    monkeypatch.setattr(rickshawAPI, "updateIfChanged", acceptMeanwhile)
    registered = register(client, "R1", is_online="false")

    assert registered["status"] == RickshawStatus.ON_RIDE
    assert registered["is_online"] is False
    stored = client.get("/admin/ride", params={"id": ride["id"]}).json()[0]
    assert stored["status"] == RideStatus.ACCEPTED
    assert stored["rickshaw_id"] == "R1"


def test_offline_rickshaw_cannot_accept(client):
    register(client, "R1", is_online="false")
    ride = requestRide(client)

    response = client.post("/rickshaw/ride/accept", data={"id": ride["id"], "rickshaw_id": "R1"})

    assert response.status_code == status.HTTP_406_NOT_ACCEPTABLE
    assert response.headers["X-Error"] == "InvalidStateTransition"


def test_update_location(client):
    register(client, "R1")

    response = client.patch("/rickshaw/account/location", data={"id": "R1", **PAHARTOLI})
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["latitude"] == PAHARTOLI["latitude"]

    response = client.patch("/rickshaw/account/location", data={"id": "GHOST", **PAHARTOLI})
    assert response.status_code == status.HTTP_404_NOT_FOUND

    response = client.patch("/rickshaw/account/location", data={"id": "R1"})
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_pending_rides(client):
    register(client, "R1", **PAHARTOLI)
    far = requestRide(client, pickup="CUET_CAMPUS")
    near = requestRide(client, pickup="PAHARTOLI", destination="NOAPARA")

    pending = client.get("/rickshaw/ride/pending", params={"rickshaw_id": "R1"}).json()

    assert [ride["id"] for ride in pending] == [near["id"], far["id"]]
    assert pending[0]["distance"] == 0
    assert pending[0]["pickup_name"] == "Pahartoli"
    assert pending[1]["distance"] > 1000


def test_pending_rides_unknown_rickshaw(client):
    requestRide(client)
    response = client.get("/rickshaw/ride/pending", params={"rickshaw_id": "GHOST"})
    assert response.status_code == status.HTTP_200_OK
    assert response.json() == []


def test_full_ride(client, events):
    register(client, "R1")
    register(client, "R2")
    ride = requestRide(client)

    accepted = client.post("/rickshaw/ride/accept", data={"id": ride["id"], "rickshaw_id": "R1"})
    assert accepted.status_code == status.HTTP_200_OK
    assert accepted.json()["success"] is True
    assert accepted.json()["ride"]["rickshaw_id"] == "R1"
    assert events[-1]["_rickshaw_id"] == "R1"

    taken = client.post("/rickshaw/ride/accept", data={"id": ride["id"], "rickshaw_id": "R2"})
    assert taken.status_code == status.HTTP_200_OK
    assert taken.json() == {
        "success": False,
        "result": 2,
        "message": "Ride already taken by another puller",
        "ride": None,
    }

    status_ = client.get("/rider/ride/status", params={"pickup_block": "CUET_CAMPUS"})
    assert status_.json()["status"] == "ACCEPTED"
    assert status_.json()["rickshaw_id"] == "R1"

    pickedUp = client.post("/rickshaw/ride/pickup", data={"id": ride["id"]})
    assert pickedUp.json()["status"] == RideStatus.PICKUP

    completed = client.post("/rickshaw/ride/complete", data={"id": ride["id"], **PAHARTOLI})
    assert completed.status_code == status.HTTP_200_OK
    assert completed.json() == {
        "ride_id": ride["id"],
        "rickshaw_id": "R1",
        "points": 10,
        "distance": 0.0,
        "status": RideStatus.COMPLETED,
    }

    rickshaw = client.get("/admin/rickshaw", params={"id": "R1"}).json()[0]
    assert rickshaw["points"] == 10
    assert rickshaw["status"] == RickshawStatus.AVAILABLE

    transactions = client.get("/admin/points", params={"rickshaw_id": "R1"}).json()
    assert [t["type"] for t in transactions] == [TransactionType.EARNED]

    stats = client.get("/admin/stats").json()
    assert stats == {
        "active_rides": 0,
        "online_rickshaws": 2,
        "pending_reviews": 0,
        "points_today": 10,
        "rides_today": 1,
    }

    analytics = client.get("/admin/analytics").json()
    assert analytics["top_destinations"] == [{"destination": "PAHARTOLI", "ride_count": 1}]
    assert analytics["top_rickshaws"][0] == {
        "id": "R1",
        "name": "Puller R1",
        "points": 10,
        "completed_rides": 1,
    }


def test_pickup_of_pending_ride(client):
    ride = requestRide(client)

    response = client.post("/rickshaw/ride/pickup", data={"id": ride["id"]})
    assert response.status_code == status.HTTP_406_NOT_ACCEPTABLE
    assert response.headers["X-Error"] == "InvalidStateTransition"


def test_complete_missing_ride(client):
    response = client.post("/rickshaw/ride/complete", data={"id": 999, **PAHARTOLI})
    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.headers["X-Error"] == "InvalidIdentifier"


def test_complete_rejects_invalid_coordinate(client):
    response = client.post(
        "/rickshaw/ride/complete", data={"id": 1, "latitude": 91, "longitude": 0}
    )
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_review_and_adjust(client):
    register(client, "R1")
    ride = requestRide(client)
    client.post("/rickshaw/ride/accept", data={"id": ride["id"], "rickshaw_id": "R1"})
    client.post("/rickshaw/ride/pickup", data={"id": ride["id"]})

    completed = client.post(
        "/rickshaw/ride/complete",
        data={"id": ride["id"], "latitude": 22.47385, "longitude": 91.9845},
    ).json()
    assert completed["status"] == RideStatus.PENDING_REVIEW
    assert completed["points"] == 0

    reviews = client.get("/admin/ride", params={"status": RideStatus.PENDING_REVIEW}).json()
    assert [r["id"] for r in reviews] == [ride["id"]]
    assert client.get("/admin/stats").json()["pending_reviews"] == 1

    adjusted = client.post(
        "/admin/points/adjust", data={"ride_id": ride["id"], "points": 8, "reason": "GPS drift"}
    )
    assert adjusted.status_code == status.HTTP_200_OK
    assert adjusted.json() == {"ride_id": ride["id"], "points": 8, "point_difference": 8}
    assert client.get("/admin/ride", params={"id": ride["id"]}).json()[0]["status"] == RideStatus.COMPLETED
    assert client.get("/admin/rickshaw", params={"id": "R1"}).json()[0]["points"] == 8


def test_adjust_pending_ride(client):
    ride = requestRide(client)

    response = client.post("/admin/points/adjust", data={"ride_id": ride["id"], "points": 5})
    assert response.status_code == status.HTTP_406_NOT_ACCEPTABLE


def test_cancel_reopens_ride(client, armed):
    register(client, "R1")
    register(client, "R2", **PAHARTOLI)
    ride = requestRide(client)
    client.post("/rickshaw/ride/accept", data={"id": ride["id"], "rickshaw_id": "R1"})

    rejected = client.post("/rickshaw/ride/cancel", data={"id": ride["id"], "rickshaw_id": "R2"})
    assert rejected.status_code == status.HTTP_406_NOT_ACCEPTABLE

    cancelled = client.post(
        "/rickshaw/ride/cancel",
        data={"id": ride["id"], "rickshaw_id": "R1", "reason": "Flat tyre"},
    )
    assert cancelled.status_code == status.HTTP_200_OK
    assert cancelled.json()["status"] == RideStatus.PENDING
    assert cancelled.json()["rickshaw_id"] is None
    assert armed == [ride["id"], ride["id"]]

    pending = client.get("/rickshaw/ride/pending", params={"rickshaw_id": "R2"}).json()
    assert [r["id"] for r in pending] == [ride["id"]]

    accepted = client.post("/rickshaw/ride/accept", data={"id": ride["id"], "rickshaw_id": "R2"})
    assert accepted.json()["success"] is True


def test_redeem(client):
    register(client, "R1")
    ride = requestRide(client)
    client.post("/rickshaw/ride/accept", data={"id": ride["id"], "rickshaw_id": "R1"})
    client.post("/rickshaw/ride/pickup", data={"id": ride["id"]})
    client.post("/rickshaw/ride/complete", data={"id": ride["id"], **PAHARTOLI})

    redeemed = client.post(
        "/rickshaw/points/redeem",
        data={"rickshaw_id": "R1", "points": 4, "reward_type": "Tea"},
    )
    assert redeemed.status_code == status.HTTP_200_OK
    assert redeemed.json()["balance"] == 6

    insufficient = client.post(
        "/rickshaw/points/redeem",
        data={"rickshaw_id": "R1", "points": 7, "reward_type": "Lunch"},
    )
    assert insufficient.status_code == status.HTTP_406_NOT_ACCEPTABLE
    assert insufficient.headers["X-Error"] == "InsufficientBalance"

    unknown = client.post(
        "/rickshaw/points/redeem",
        data={"rickshaw_id": "GHOST", "points": 1, "reward_type": "Tea"},
    )
    assert unknown.status_code == status.HTTP_404_NOT_FOUND

    spent = client.get(
        "/admin/points", params={"rickshaw_id": "R1", "type": TransactionType.SPENT}
    ).json()
    assert [t["points_spent"] for t in spent] == [4]


def test_expire_points(client):
    register(client, "R1")
    ride = requestRide(client)
    client.post("/rickshaw/ride/accept", data={"id": ride["id"], "rickshaw_id": "R1"})
    client.post("/rickshaw/ride/pickup", data={"id": ride["id"]})
    client.post("/rickshaw/ride/complete", data={"id": ride["id"], **PAHARTOLI})

    kept = client.post("/admin/points/expire", data={"days": 180})
    assert kept.json() == {"days": 180, "expired": 0, "rickshaws": 0}

    expired = client.post("/admin/points/expire", data={"days": 0})
    assert expired.json() == {"days": 0, "expired": 10, "rickshaws": 1}
    assert client.get("/admin/rickshaw", params={"id": "R1"}).json()[0]["points"] == 0
