import argparse
from http import HTTPStatus
from requests import get, patch, post

from aeras.src.constants import GUEST_RIDER_ID, LOCATIONS
from aeras.src.db import Location, Rider, sessionMaker, engine, ORMbase
from aeras.src.urls import (
    URL_POINTS_REDEEM,
    URL_RICKSHAW_ACCOUNT,
    URL_RICKSHAW_LOCATION,
    URL_RIDE,
    URL_RIDE_ACCEPT,
    URL_RIDE_COMPLETE,
    URL_RIDE_PENDING,
    URL_RIDE_PICKUP,
    URL_RIDE_STATUS,
)


# ----------------------------------- Project Setup -------------------------------------------#
def removeTables():
    ORMbase.metadata.drop_all(engine)
    print("* All tables deleted")


def createTables():
    ORMbase.metadata.create_all(engine)
    print("* All tables created")


def initDB():
    session = sessionMaker()
    for blockID, name, latitude, longitude in LOCATIONS:
        session.merge(
            Location(id=blockID, name=name, latitude=latitude, longitude=longitude)
        )
    print(f"* Seeded {len(LOCATIONS)} locations")

    session.merge(Rider(id=GUEST_RIDER_ID, name="Guest"))
    print("* Created guest rider")
    session.commit()
    session.close()


def POST(URL: str, status_code: int = HTTPStatus.OK, **kwargs):
    response = post(URL, **kwargs)
    assert response.status_code == status_code, response.text
    return response


def testDB():
    # Base URL
    BASE_URL = "http://127.0.0.1:8080"
    RIDER_URL = BASE_URL + "/rider"
    RICKSHAW_URL = BASE_URL + "/rickshaw"
    pickup = LOCATIONS[0]
    destination = LOCATIONS[1]

    # Register rickshaws near the pickup block
    for rickshawID, name in [("RICK001", "Test puller 1"), ("RICK002", "Test puller 2")]:
        POST(
            RICKSHAW_URL + URL_RICKSHAW_ACCOUNT,
            data={
                "id": rickshawID,
                "name": name,
                "phone_number": "+8801700000000",
                "latitude": pickup[2],
                "longitude": pickup[3],
            },
            status_code=HTTPStatus.CREATED,
        )
    print("* Registered rickshaws")

    response = patch(
        RICKSHAW_URL + URL_RICKSHAW_LOCATION,
        data={"id": "RICK002", "latitude": pickup[2] + 0.001, "longitude": pickup[3]},
    )
    assert response.status_code == HTTPStatus.OK, response.text
    print("* Moved RICK002")

    # Request a ride
    ride = POST(
        RIDER_URL + URL_RIDE,
        data={"pickup_block": pickup[0], "destination": destination[0]},
        status_code=HTTPStatus.CREATED,
    ).json()
    print(f"* Requested ride {ride['id']}")

    pending = get(RICKSHAW_URL + URL_RIDE_PENDING, params={"rickshaw_id": "RICK002"})
    print(f"* RICK002 sees {len(pending.json())} pending rides")

    # Both rickshaws try to accept, only the first one wins
    for rickshawID in ["RICK001", "RICK002"]:
        accepted = POST(
            RICKSHAW_URL + URL_RIDE_ACCEPT,
            data={"id": ride["id"], "rickshaw_id": rickshawID},
        ).json()
        print(f"* {rickshawID} accept: {accepted['message']}")

    POST(RICKSHAW_URL + URL_RIDE_PICKUP, data={"id": ride["id"]})
    print("* Confirmed pickup")

    completion = POST(
        RICKSHAW_URL + URL_RIDE_COMPLETE,
        data={"id": ride["id"], "latitude": destination[2], "longitude": destination[3]},
    ).json()
    print(f"* Completed ride with {completion['points']} points")

    status = get(RIDER_URL + URL_RIDE_STATUS, params={"pickup_block": pickup[0]})
    print(f"* Ride status at {pickup[0]}: {status.json()['status']}")

    redeemed = POST(
        RICKSHAW_URL + URL_POINTS_REDEEM,
        data={"rickshaw_id": "RICK001", "points": 5, "reward_type": "Tea"},
    ).json()
    print(f"* RICK001 redeemed 5 points, balance {redeemed['balance']}")


# Setup database
if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    # remove tables
    parser.add_argument("-rm", action="store_true", help="remove tables")
    parser.add_argument("-cr", action="store_true", help="create tables")
    parser.add_argument("-init", action="store_true", help="initialize DB")
    parser.add_argument("-test", action="store_true", help="add test data")
    args = parser.parse_args()

    if args.cr:
        createTables()
    if args.init:
        initDB()
    if args.test:
        testDB()
    if args.rm:
        removeTables()
