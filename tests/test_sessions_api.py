from conftest import PHONE, make_config, make_evaluation
from app.db import SessionLocal
from app import crud
from engine.models import PastSession


def past_session_payload(session_id, date, overall=7):
    session = PastSession(id=session_id, date=date, config=make_config(), evaluation=make_evaluation(overall))
    return session.model_dump(mode="json", by_alias=True)


def test_requires_credential(client):
    assert client.get("/api/sessions").status_code == 401
    assert client.post("/api/sessions", json=past_session_payload("s1", "2026-01-01T10:00:00Z")).status_code == 401


def test_new_user_has_no_sessions(auth_client):
    response = auth_client.get("/api/sessions")
    assert response.status_code == 200
    assert response.json() == []


def test_saved_sessions_are_listed_newest_first(auth_client):
    for session_id, date in [("older", "2026-01-01T10:00:00Z"),
                             ("newest", "2026-03-01T10:00:00Z"),
                             ("middle", "2026-02-01T10:00:00Z")]:
        response = auth_client.post("/api/sessions", json=past_session_payload(session_id, date))
        assert response.status_code == 200
        assert response.json() == {"success": True}

    sessions = auth_client.get("/api/sessions").json()

    assert [s["id"] for s in sessions] == ["newest", "middle", "older"]
    assert sessions[0]["config"]["timePressure"] is True
    assert sessions[0]["evaluation"]["overallScore"] == 7
    assert sessions[0]["evaluation"]["improvementVectors"] == ["Quantify tradeoffs"]


def test_duplicate_session_id_is_rejected(auth_client):
    payload = past_session_payload("dup", "2026-01-01T10:00:00Z")
    assert auth_client.post("/api/sessions", json=payload).status_code == 200

    response = auth_client.post("/api/sessions", json=past_session_payload("dup", "2026-05-01T10:00:00Z", overall=2))

    assert response.status_code == 409
    sessions = auth_client.get("/api/sessions").json()
    assert len(sessions) == 1
    assert sessions[0]["evaluation"]["overallScore"] == 7


def test_sessions_are_scoped_to_owner(auth_client):
    with SessionLocal() as db:
        crud.append_session(db, "+15550100999", PastSession(
            id="someone-else", date="2026-01-01T10:00:00Z",
            config=make_config(), evaluation=make_evaluation(),
        ))
    auth_client.post("/api/sessions", json=past_session_payload("mine", "2026-01-02T10:00:00Z"))

    ids = [s["id"] for s in auth_client.get("/api/sessions").json()]

    assert ids == ["mine"]


def test_invalid_payload_is_rejected(auth_client):
    payload = past_session_payload("bad", "2026-01-01T10:00:00Z")
    payload["evaluation"]["overallScore"] = 42
    assert auth_client.post("/api/sessions", json=payload).status_code == 422


def test_crud_round_trip_keeps_utc_dates():
    with SessionLocal() as db:
        crud.append_session(db, PHONE, PastSession(
            id="s1", date="2026-01-01T12:00:00+02:00",
            config=make_config(), evaluation=make_evaluation(),
        ))
        [session] = crud.list_sessions(db, PHONE)
    assert session.date.isoformat() == "2026-01-01T10:00:00+00:00"
