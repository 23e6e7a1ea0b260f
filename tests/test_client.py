import os
import sys
import pytest
import requests
from fastapi.testclient import TestClient

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from client import ApiError, CoachClient
from errors import LoadError, NotFound, PersistenceError
from rest_api import CoachAPI
from session_clock import SessionClock
from workout_engine import ProgressionStateMachine
from workout_schema import SetDraft
from workout_store import RemoteWorkoutStore


class OfflineSession(requests.Session):
    def request(self, *args, **kwargs):
        raise requests.ConnectionError("network unreachable")


def make_client(tmp_path):
    api = CoachAPI(
        db_path=str(tmp_path / "coach.db"), yaml_path=str(tmp_path / "settings.yaml")
    )
    return api, CoachClient("http://testserver", session=TestClient(api.app))


def test_client_creates_training(tmp_path):
    api, client = make_client(tmp_path)
    assert client.health()["status"] == "ok"
    sid = client.create_student("Eva Rocha", "eva@example.com", "p1")
    tid = client.create_training(sid, "Full body")
    client.add_exercise(tid, "Pull-up", 3, "6")
    client.add_exercise(tid, "Push-up", 3, "15", position=0)
    snapshot = client.active_training(sid)
    assert [e["name"] for e in snapshot["exercises"]] == ["Push-up", "Pull-up"]
    assert api.trainings.fetch_detail(tid)[1] == sid


def test_client_raises_api_error(tmp_path):
    _, client = make_client(tmp_path)
    client.create_student("Eva Rocha", "eva@example.com")
    with pytest.raises(ApiError) as exc:
        client.create_student("Eva Rocha", "eva@example.com")
    assert exc.value.status_code == 400
    assert exc.value.detail == "student exists"
    with pytest.raises(ApiError) as exc:
        client.active_training("missing")
    assert exc.value.status_code == 404


@pytest.mark.asyncio
async def test_remote_store_runs_a_workout(tmp_path):
    api, client = make_client(tmp_path)
    sid = client.create_student("Eva Rocha", "eva@example.com")
    tid = client.create_training(sid, "Full body")
    pull = client.add_exercise(tid, "Pull-up", 2, "6")
    store = RemoteWorkoutStore(client)

    with pytest.raises(NotFound):
        await ProgressionStateMachine.load(store, "missing")

    async with await ProgressionStateMachine.load(
        store, sid, clock=SessionClock(interval=3600)
    ) as workout:
        session_id = await workout.start()
        await workout.confirm_set(pull, SetDraft(reps=6, load=10))
        await workout.confirm_set(pull, SetDraft(reps=5, load=10))
        for _ in range(180):
            workout.clock.tick()
        session = await workout.finish("grip gave out")

    detail = api.sessions.fetch_detail(session_id)
    assert detail["finished"]
    assert detail["duration_minutes"] == 3 == session.duration_minutes
    assert detail["notes"] == "grip gave out"
    assert api.sets.count_for_exercise(session_id, pull) == 2
    assert client.session_history(sid)[0]["id"] == session_id


@pytest.mark.asyncio
async def test_remote_store_rejected_set_is_persistence_error(tmp_path):
    _, client = make_client(tmp_path)
    sid = client.create_student("Eva Rocha", "eva@example.com")
    tid = client.create_training(sid, "Full body")
    pull = client.add_exercise(tid, "Pull-up", 2, "6")
    store = RemoteWorkoutStore(client)
    workout = await ProgressionStateMachine.load(
        store, sid, clock=SessionClock(interval=3600)
    )
    session_id = await workout.start()
    client.add_set(session_id, pull, 1, 6, 0)
    with pytest.raises(PersistenceError):
        await workout.confirm_set(pull, SetDraft(reps=6))
    assert workout.ledger.logged_count(pull) == 0
    await workout.aclose()


@pytest.mark.asyncio
async def test_unreachable_api():
    client = CoachClient("http://coach.invalid", session=OfflineSession())
    store = RemoteWorkoutStore(client)
    with pytest.raises(LoadError):
        await ProgressionStateMachine.load(store, "s1")


def test_api_token_header():
    client = CoachClient(api_token="secret-token")
    assert client.session.headers["apikey"] == "secret-token"
    assert "apikey" not in CoachClient().session.headers
