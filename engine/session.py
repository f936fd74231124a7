# engine/session.py

import time
import uuid
import traceback
from enum import Enum
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from .errors import InvalidTransition, TurnLimitReached, EvaluationFailed
from .models import (
    AppMode, SimulationConfig, Message, MessageRole, EvaluationResult, PastSession,
)
from .orchestrator import Orchestrator
from .prompts import (
    BOOTSTRAP_INSTRUCTION, TIME_EXPIRED_NOTICE, TIME_EXPIRED_INSTRUCTION,
    INIT_ERROR_MESSAGE, TURN_ERROR_MESSAGE, build_system_instruction,
)

TURN_SECONDS = 120

MAX_TURNS = {
    AppMode.QUICK_REP: 3,
    AppMode.MEETING_ROOM: 7,
    AppMode.END_TO_END: 15,
}


class Phase(str, Enum):
    INITIALIZING = "initializing"
    AWAITING_USER = "awaiting_user"
    AWAITING_MODEL = "awaiting_model"
    FINISHED = "finished"
    ABORTED = "aborted"


def max_turns_for(mode: AppMode) -> int:
    return MAX_TURNS[AppMode(mode)]


class SimulationSession:
    """
    Turn/timer state machine for one roleplay session.

    The orchestrator is passed into each operation rather than held, so a session
    can be rebuilt from its serialized state between requests.
    """

    def __init__(self, config: SimulationConfig, simulation_id: Optional[str] = None,
                 owner_id: Optional[str] = None, enforce_hard_cap: bool = False,
                 turn_seconds: int = TURN_SECONDS, clock: Callable[[], float] = time.time):
        self.simulation_id = simulation_id or uuid.uuid4().hex
        self.owner_id = owner_id
        self.config = config
        self.enforce_hard_cap = enforce_hard_cap
        self.turn_seconds = turn_seconds
        self.clock = clock

        self.phase = Phase.INITIALIZING
        self.transcript: List[Message] = []
        self.history: List[Dict[str, str]] = [] # model-facing exchanges only
        self.turn_count = 0
        self.time_left = turn_seconds
        self.cancel_pending = False
        self.evaluation: Optional[EvaluationResult] = None
        self.past_session_id: Optional[str] = None
        self.saved = False

    # --- Derived values ---

    @property
    def max_turns(self) -> int:
        return max_turns_for(self.config.mode)

    @property
    def system_instruction(self) -> str:
        return build_system_instruction(self.config)

    @property
    def is_processing(self) -> bool:
        return self.phase == Phase.AWAITING_MODEL

    @property
    def near_turn_limit(self) -> bool:
        return self.turn_count >= self.max_turns - 1

    @property
    def turn_cap_reached(self) -> bool:
        return self.turn_count > self.max_turns

    @property
    def input_blocked(self) -> bool:
        return self.enforce_hard_cap and self.turn_cap_reached

    @property
    def timer_active(self) -> bool:
        return (self.config.time_pressure
                and self.phase == Phase.AWAITING_USER
                and self.turn_count > 0 # scenario never started if the opening turn failed
                and not self.input_blocked)

    # --- Internals ---

    def _append(self, role: MessageRole, content: str):
        self.transcript.append(Message(role=role, content=content, timestamp=int(self.clock() * 1000)))

    def _require_phase(self, *phases: Phase):
        if self.phase not in phases:
            allowed = ", ".join(p.value for p in phases)
            raise InvalidTransition(f"Operation requires phase {allowed}; session is {self.phase.value}")

    def _require_no_pending_cancel(self):
        if self.cancel_pending:
            raise InvalidTransition("Cancellation is awaiting confirmation")

    def _advance_turn(self, orchestrator: Orchestrator, model_input: str):
        """Sends one message to the model and always lands back in AWAITING_USER."""
        self.phase = Phase.AWAITING_MODEL
        try:
            reply = orchestrator.continue_turn(self.system_instruction, list(self.history), model_input)
        except Exception as e: # every model failure degrades the same way
            print(f"[Sim={self.simulation_id[-8:]}] ERROR: Turn failed: {e}")
            self._append(MessageRole.SYSTEM, TURN_ERROR_MESSAGE)
        else:
            self.history.append({"role": "user", "content": model_input})
            self.history.append({"role": "assistant", "content": reply})
            self._append(MessageRole.MODEL, reply)
            self.turn_count += 1
        finally:
            self.time_left = self.turn_seconds
            self.phase = Phase.AWAITING_USER

    # --- Operations ---

    def initialize(self, orchestrator: Orchestrator):
        self._require_phase(Phase.INITIALIZING)
        self.phase = Phase.AWAITING_MODEL
        try:
            reply = orchestrator.continue_turn(self.system_instruction, [], BOOTSTRAP_INSTRUCTION)
        except Exception as e:
            print(f"[Sim={self.simulation_id[-8:]}] ERROR: Failed to initialize scenario: {e}")
            self.transcript = []
            self._append(MessageRole.SYSTEM, INIT_ERROR_MESSAGE)
        else:
            self.history = [
                {"role": "user", "content": BOOTSTRAP_INSTRUCTION},
                {"role": "assistant", "content": reply},
            ]
            self.transcript = []
            self._append(MessageRole.MODEL, reply)
            self.turn_count = 1
        finally:
            self.time_left = self.turn_seconds
            self.phase = Phase.AWAITING_USER

    def submit(self, orchestrator: Orchestrator, text: str) -> bool:
        """Sends a user turn. Returns False (and changes nothing) for blank text."""
        if text is None or not text.strip():
            return False
        self._require_phase(Phase.AWAITING_USER)
        self._require_no_pending_cancel()
        if self.input_blocked:
            raise TurnLimitReached(f"Turn limit of {self.max_turns} reached")

        self._append(MessageRole.USER, text)
        self._advance_turn(orchestrator, text)
        return True

    def tick(self, orchestrator: Orchestrator, seconds: int = 1) -> bool:
        """Advances the countdown. Returns True if the turn expired on this tick."""
        if not self.timer_active or seconds <= 0:
            return False
        self.time_left = max(0, self.time_left - seconds)
        if self.time_left > 0:
            return False
        self.expire_turn(orchestrator)
        return True

    def expire_turn(self, orchestrator: Orchestrator):
        if not self.timer_active:
            raise InvalidTransition("Turn timer is not running")
        self._append(MessageRole.SYSTEM, TIME_EXPIRED_NOTICE)
        self._advance_turn(orchestrator, TIME_EXPIRED_INSTRUCTION)

    def render_transcript(self) -> str:
        return "\n\n".join(f"[{m.role.value.upper()}]: {m.content}" for m in self.transcript)

    def finish(self, orchestrator: Orchestrator,
               persist: Optional[Callable[[PastSession], None]] = None) -> EvaluationResult:
        """
        Evaluates the transcript and hands the resulting PastSession to persist.
        A failing evaluation raises EvaluationFailed and leaves the session as it was.
        A failing persist is logged and ignored; the evaluation is still returned.
        """
        self._require_phase(Phase.AWAITING_USER)
        self._require_no_pending_cancel()
        log_prefix = f"[Sim={self.simulation_id[-8:]}]"

        self.phase = Phase.AWAITING_MODEL
        try:
            evaluation = orchestrator.evaluate(self.render_transcript())
        except Exception as e:
            self.phase = Phase.AWAITING_USER
            print(f"{log_prefix} ERROR: Evaluation failed: {e}")
            raise EvaluationFailed("Failed to evaluate session") from e

        self.evaluation = evaluation
        self.phase = Phase.FINISHED
        past_session = PastSession(
            id=str(uuid.uuid4()),
            date=datetime.fromtimestamp(self.clock(), tz=timezone.utc),
            config=self.config,
            evaluation=evaluation,
        )
        self.past_session_id = past_session.id

        if persist is not None:
            try:
                persist(past_session)
                self.saved = True
            except Exception as e:
                print(f"{log_prefix} ERROR: Failed to save session {past_session.id}: {type(e).__name__} - {e}")
                print(traceback.format_exc())
        return evaluation

    def request_cancel(self):
        self._require_phase(Phase.AWAITING_USER)
        self.cancel_pending = True

    def dismiss_cancel(self):
        if not self.cancel_pending:
            raise InvalidTransition("No cancellation to dismiss")
        self.cancel_pending = False

    def confirm_cancel(self):
        if not self.cancel_pending:
            raise InvalidTransition("Cancellation must be requested before it is confirmed")
        self._require_phase(Phase.AWAITING_USER)
        self.cancel_pending = False
        self.phase = Phase.ABORTED
        self.transcript = []
        self.history = []

    # --- Serialization ---

    def to_state(self) -> dict:
        return {
            "simulation_id": self.simulation_id,
            "owner_user_id": self.owner_id,
            "config": self.config.model_dump(mode="json", by_alias=True),
            "enforce_hard_cap": self.enforce_hard_cap,
            "turn_seconds": self.turn_seconds,
            "phase": self.phase.value,
            "transcript": [m.model_dump(mode="json") for m in self.transcript],
            "history": list(self.history),
            "turn_count": self.turn_count,
            "time_left": self.time_left,
            "cancel_pending": self.cancel_pending,
            "evaluation": self.evaluation.model_dump(mode="json", by_alias=True) if self.evaluation else None,
            "past_session_id": self.past_session_id,
            "saved": self.saved,
        }

    @classmethod
    def from_state(cls, state: dict, clock: Callable[[], float] = time.time) -> "SimulationSession":
        session = cls(
            SimulationConfig.model_validate(state["config"]),
            simulation_id=state["simulation_id"],
            owner_id=state.get("owner_user_id"),
            enforce_hard_cap=state.get("enforce_hard_cap", False),
            turn_seconds=state.get("turn_seconds", TURN_SECONDS),
            clock=clock,
        )
        session.phase = Phase(state.get("phase", Phase.INITIALIZING.value))
        session.transcript = [Message.model_validate(m) for m in state.get("transcript", [])]
        session.history = list(state.get("history", []))
        session.turn_count = state.get("turn_count", 0)
        session.time_left = state.get("time_left", session.turn_seconds)
        session.cancel_pending = state.get("cancel_pending", False)
        if state.get("evaluation"):
            session.evaluation = EvaluationResult.model_validate(state["evaluation"])
        session.past_session_id = state.get("past_session_id")
        session.saved = state.get("saved", False)
        return session
