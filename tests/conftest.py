import os

# Settings are read at import time, so the environment has to be ready first
os.environ["JWT_SECRET"] = "test-secret-not-for-production"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["OPENAI_API_KEY"] = ""
os.environ["ENFORCE_HARD_CAP"] = "false"

import fakeredis
import pytest
from fastapi.testclient import TestClient

from app.db import Base, engine, get_redis
from app.dependencies import get_orchestrator
from app.main import app
from engine.errors import OrchestratorError
from engine.models import EvaluationResult, CompetencyScore, SimulationConfig
from engine.orchestrator import Orchestrator

PHONE = "+447700900077"


class ScriptedOrchestrator(Orchestrator):
    """Test double: replies in order, or raises when a reply is an exception."""

    def __init__(self, replies=None, evaluation=None, theme_valid=True):
        self.replies = list(replies or [])
        self.evaluation = evaluation if evaluation is not None else make_evaluation()
        self.theme_valid = theme_valid
        self.turn_calls = []
        self.evaluate_calls = []
        self.turn_counter = 0

    def continue_turn(self, system_instruction, history, message):
        self.turn_calls.append({"system": system_instruction, "history": list(history), "message": message})
        if self.replies:
            reply = self.replies.pop(0)
        else:
            self.turn_counter += 1
            reply = f"Stakeholder reply {self.turn_counter}"
        if isinstance(reply, Exception):
            raise reply
        return reply

    def evaluate(self, transcript):
        self.evaluate_calls.append(transcript)
        if isinstance(self.evaluation, Exception):
            raise self.evaluation
        return self.evaluation

    def validate_theme(self, theme):
        return self.theme_valid


def make_evaluation(overall=7):
    return EvaluationResult(
        overall_score=overall,
        summary="Handled pushback well.",
        improvement_vectors=["Quantify tradeoffs"],
        scores=[
            CompetencyScore(competency="Problem Framing", score=8, feedback="Clear framing."),
            CompetencyScore(competency="Risk Assessment", score=6, feedback="Missed a dependency."),
        ],
    )


def make_config(mode="quick_rep", time_pressure=True, theme="AI-Heavy", difficulty="Intermediate"):
    return SimulationConfig(mode=mode, difficulty=difficulty, theme=theme, time_pressure=time_pressure)


@pytest.fixture
def orchestrator():
    return ScriptedOrchestrator()


@pytest.fixture
def fake_redis():
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture(autouse=True)
def reset_database():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(fake_redis, orchestrator):
    app.dependency_overrides[get_redis] = lambda: fake_redis
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    # Credential cookie is Secure, so talk to the app over https
    with TestClient(app, base_url="https://testserver") as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def auth_client(client):
    response = client.post("/api/auth/phone", json={"phone": PHONE})
    assert response.status_code == 200
    return client
