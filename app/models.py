from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional
from sqlalchemy import Column, String, DateTime, JSON, Index, func
from .db import Base

from engine.models import SimulationConfig, Message, MessageRole, EvaluationResult
from engine.segments import Segment, SegmentKind, parse_segments
from engine.session import SimulationSession


class SessionRecord(Base):
    __tablename__ = "sessions"

    id = Column(String(255), primary_key=True)
    user_id = Column(String(255), nullable=False)
    date = Column(DateTime(timezone=True), nullable=False)
    config = Column(JSON, nullable=False)
    evaluation = Column(JSON, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index('idx_sessions_user_date', 'user_id', 'date'),
    )

    def __repr__(self):
        return f"<SessionRecord(id='{self.id}', user_id='{self.user_id}')>"


# --- Auth ---

class PhoneLoginRequest(BaseModel):
    phone: Optional[str] = None


class CurrentUser(BaseModel):
    id: str
    phone: str


class SuccessResponse(BaseModel):
    success: bool = True


# --- Simulation ---

class SubmitMessageRequest(BaseModel):
    text: str = ""


class TickRequest(BaseModel):
    seconds: int = Field(default=1, ge=1, le=600)


class ThemeValidationRequest(BaseModel):
    theme: str = Field(..., max_length=200)


class ThemeValidationResponse(BaseModel):
    valid: bool


class ThemePresetsResponse(BaseModel):
    presets: List[str]


class MessageView(BaseModel):
    role: MessageRole
    content: str
    timestamp: int
    segments: List[Segment]

    @classmethod
    def from_message(cls, message: Message) -> "MessageView":
        if message.role == MessageRole.USER:
            segments = [Segment(kind=SegmentKind.NARRATIVE, text=message.content)]
        else:
            segments = parse_segments(message.content)
        return cls(role=message.role, content=message.content, timestamp=message.timestamp, segments=segments)


class SimulationView(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    config: SimulationConfig
    phase: str
    transcript: List[MessageView]
    turn_count: int = Field(alias="turnCount")
    max_turns: int = Field(alias="maxTurns")
    time_left: Optional[int] = Field(default=None, alias="timeLeft")
    timer_active: bool = Field(alias="timerActive")
    near_turn_limit: bool = Field(alias="nearTurnLimit")
    turn_cap_reached: bool = Field(alias="turnCapReached")
    cancel_pending: bool = Field(alias="cancelPending")
    evaluation: Optional[EvaluationResult] = None

    @classmethod
    def from_session(cls, sim: SimulationSession) -> "SimulationView":
        return cls(
            id=sim.simulation_id,
            config=sim.config,
            phase=sim.phase.value,
            transcript=[MessageView.from_message(m) for m in sim.transcript],
            turn_count=sim.turn_count,
            max_turns=sim.max_turns,
            time_left=sim.time_left if sim.config.time_pressure else None,
            timer_active=sim.timer_active,
            near_turn_limit=sim.near_turn_limit,
            turn_cap_reached=sim.turn_cap_reached,
            cancel_pending=sim.cancel_pending,
            evaluation=sim.evaluation,
        )


class FinishResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    evaluation: EvaluationResult
    saved: bool
    session_id: Optional[str] = Field(default=None, alias="sessionId")


class AbortResponse(BaseModel):
    status: str = "aborted"
