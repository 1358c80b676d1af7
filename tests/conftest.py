import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine

from aeras.setup import initDB
from aeras.src import openobserve
from aeras.src.db import ORMbase, Rickshaw, sessionMaker
from aeras.src.watchdog import rideWatchdog


@pytest.fixture(autouse=True)
def database(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'aeras.db'}",
        connect_args={"check_same_thread": False},
    )
    ORMbase.metadata.create_all(engine)
    sessionMaker.configure(bind=engine)
    initDB()
    yield engine
    engine.dispose()


@pytest.fixture(autouse=True)
def events(monkeypatch):
    sent = []
    monkeypatch.setattr(openobserve, "logEvent", sent.append)
    return sent


@pytest.fixture(autouse=True)
def armed(monkeypatch):
    rideIDs = []
    monkeypatch.setattr(rideWatchdog, "arm", lambda rideID, timeout=None: rideIDs.append(rideID))
    return rideIDs


@pytest.fixture
def session(database):
    session = sessionMaker()
    yield session
    session.close()


@pytest.fixture
def rickshaws(session):
    """Two rickshaws, R1 at CUET Campus and R2 at Pahartoli."""
    session.add_all(
        [
            Rickshaw(id="R1", name="Karim", latitude=22.4633, longitude=91.9714),
            Rickshaw(id="R2", name="Rahim", latitude=22.4725, longitude=91.9845),
        ]
    )
    session.commit()
    return ["R1", "R2"]


@pytest.fixture
def client():
    from aeras.main import app

    with TestClient(app) as client:
        yield client
