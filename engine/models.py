# engine/models.py

from enum import Enum
from datetime import datetime
from typing import List

from pydantic import BaseModel, ConfigDict, Field


class AppMode(str, Enum):
    QUICK_REP = "quick_rep"
    MEETING_ROOM = "meeting_room"
    END_TO_END = "end_to_end"


class Difficulty(str, Enum):
    BEGINNER = "Beginner"
    INTERMEDIATE = "Intermediate"
    ADVANCED = "Advanced"
    EXPERT = "Expert"


class MessageRole(str, Enum):
    USER = "user"
    MODEL = "model"
    SYSTEM = "system"


THEME_PRESETS = [
    "AI-Heavy",
    "Design Thinking-Heavy",
    "Execution-Heavy",
    "Data/Metrics-Heavy",
    "Strategy-Heavy",
    "General Everyday Scenario",
]

MODE_LABELS = {
    AppMode.QUICK_REP: "The Quick Rep (Single Scenario)",
    AppMode.MEETING_ROOM: "The Meeting Room (Stakeholder Debate)",
    AppMode.END_TO_END: "Full Product Lifecycle (End-to-End Mode)",
}


class SimulationConfig(BaseModel):
    # Frozen: a config never changes once a session is running
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    mode: AppMode
    difficulty: Difficulty
    theme: str = Field(..., min_length=1, max_length=200)
    time_pressure: bool = Field(default=False, alias="timePressure")


class Message(BaseModel):
    role: MessageRole
    content: str
    timestamp: int # epoch milliseconds, what the browser client expects


class CompetencyScore(BaseModel):
    competency: str
    score: float = Field(..., ge=1, le=10)
    feedback: str


class EvaluationResult(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    overall_score: float = Field(..., ge=1, le=10, alias="overallScore")
    scores: List[CompetencyScore] = Field(default_factory=list)
    summary: str
    improvement_vectors: List[str] = Field(default_factory=list, alias="improvementVectors")


class PastSession(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., min_length=1, max_length=255)
    date: datetime
    config: SimulationConfig
    evaluation: EvaluationResult
