# app/sim_api.py

import traceback
from contextlib import contextmanager
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from redis import Redis

# --- Project Imports ---
from . import crud, models
from .config import settings
from .db import get_db, get_redis
from .dependencies import get_current_user, get_orchestrator
from engine.errors import InvalidTransition, EvaluationFailed, SessionBusy
from engine.models import SimulationConfig, THEME_PRESETS
from engine.orchestrator import Orchestrator
from engine.session import SimulationSession
from engine.state_store import (
    StateStoreError, load_simulation_state, save_simulation_state,
    delete_simulation_state, simulation_lock,
)


# --- Router Setup ---
router = APIRouter()


# --- Helpers ---

@contextmanager
def _translate_errors(log_prefix: str):
    """Maps engine and state store failures onto HTTP errors."""
    try:
        yield
    except SessionBusy:
        print(f"{log_prefix} - Rejected: simulation is busy.")
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Simulation is busy")
    except InvalidTransition as e:
        print(f"{log_prefix} - Rejected: {e}")
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except StateStoreError as e:
        print(f"{log_prefix} - ERROR: {e}")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Simulation service unavailable")


def _load_owned_simulation(redis_conn: Redis, simulation_id: str, user: models.CurrentUser,
                           log_prefix: str) -> SimulationSession:
    state = load_simulation_state(redis_conn, simulation_id)
    if state is None:
        print(f"{log_prefix} - ERROR: Simulation not found.")
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Simulation not found")
    if str(state.get("owner_user_id")) != str(user.id):
        print(f"{log_prefix} - ERROR: Access verification failed.")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You do not have access to this simulation.")
    return SimulationSession.from_state(state)


def _save(redis_conn: Redis, sim: SimulationSession):
    save_simulation_state(redis_conn, sim.simulation_id, sim.to_state(), settings.SIM_STATE_TTL_SECONDS)


# --- API Endpoints ---

@router.get("/themes", response_model=models.ThemePresetsResponse)
def list_theme_presets(current_user: models.CurrentUser = Depends(get_current_user)):
    return models.ThemePresetsResponse(presets=THEME_PRESETS)


@router.post("/themes/validate", response_model=models.ThemeValidationResponse)
def validate_custom_theme(
    theme_request: models.ThemeValidationRequest,
    current_user: models.CurrentUser = Depends(get_current_user),
    orchestrator: Orchestrator = Depends(get_orchestrator),
):
    theme = theme_request.theme.strip()
    if not theme:
        return models.ThemeValidationResponse(valid=False)
    valid = orchestrator.validate_theme(theme)
    print(f"API Theme [User={current_user.id}]: '{theme[:50]}' -> valid={valid}")
    return models.ThemeValidationResponse(valid=valid)


@router.post("/start", response_model=models.SimulationView, status_code=status.HTTP_201_CREATED)
def start_simulation(
    sim_config: SimulationConfig,
    current_user: models.CurrentUser = Depends(get_current_user),
    redis_conn: Redis = Depends(get_redis),
    orchestrator: Orchestrator = Depends(get_orchestrator),
):
    """
    Starts a new simulation for the authenticated user and runs the opening turn.
    An orchestrator failure still returns a usable session with an inline error message.
    """
    sim = SimulationSession(
        sim_config,
        owner_id=current_user.id,
        enforce_hard_cap=settings.ENFORCE_HARD_CAP,
        turn_seconds=settings.TURN_SECONDS,
    )
    log_prefix = f"API Start [User={current_user.id}]: Sim={sim.simulation_id[-8:]}"
    print(f"{log_prefix} - Request: Mode={sim_config.mode.value}, Difficulty={sim_config.difficulty.value}, "
          f"Theme={sim_config.theme[:50]}, TimePressure={sim_config.time_pressure}")

    with _translate_errors(log_prefix):
        with simulation_lock(redis_conn, sim.simulation_id, settings.SIM_LOCK_TIMEOUT_SECONDS):
            sim.initialize(orchestrator)
            _save(redis_conn, sim)
    return models.SimulationView.from_session(sim)


@router.get("/{simulation_id}", response_model=models.SimulationView)
def get_simulation(
    simulation_id: str,
    current_user: models.CurrentUser = Depends(get_current_user),
    redis_conn: Redis = Depends(get_redis),
):
    log_prefix = f"API Get [User={current_user.id}]: Sim={simulation_id[-8:]}"
    with _translate_errors(log_prefix):
        sim = _load_owned_simulation(redis_conn, simulation_id, current_user, log_prefix)
    return models.SimulationView.from_session(sim)


@router.post("/{simulation_id}/messages", response_model=models.SimulationView)
def submit_message(
    simulation_id: str,
    message_request: models.SubmitMessageRequest,
    current_user: models.CurrentUser = Depends(get_current_user),
    redis_conn: Redis = Depends(get_redis),
    orchestrator: Orchestrator = Depends(get_orchestrator),
):
    log_prefix = f"API Message [User={current_user.id}]: Sim={simulation_id[-8:]}"
    with _translate_errors(log_prefix):
        with simulation_lock(redis_conn, simulation_id, settings.SIM_LOCK_TIMEOUT_SECONDS):
            sim = _load_owned_simulation(redis_conn, simulation_id, current_user, log_prefix)
            if sim.submit(orchestrator, message_request.text):
                print(f"{log_prefix} - Turn {sim.turn_count}/{sim.max_turns} processed.")
                _save(redis_conn, sim)
    return models.SimulationView.from_session(sim)


@router.post("/{simulation_id}/tick", response_model=models.SimulationView)
def tick_timer(
    simulation_id: str,
    tick_request: models.TickRequest,
    current_user: models.CurrentUser = Depends(get_current_user),
    redis_conn: Redis = Depends(get_redis),
    orchestrator: Orchestrator = Depends(get_orchestrator),
):
    log_prefix = f"API Tick [User={current_user.id}]: Sim={simulation_id[-8:]}"
    with _translate_errors(log_prefix):
        with simulation_lock(redis_conn, simulation_id, settings.SIM_LOCK_TIMEOUT_SECONDS):
            sim = _load_owned_simulation(redis_conn, simulation_id, current_user, log_prefix)
            if not sim.timer_active:
                return models.SimulationView.from_session(sim)
            if sim.tick(orchestrator, tick_request.seconds):
                print(f"{log_prefix} - Turn timer expired.")
            _save(redis_conn, sim)
    return models.SimulationView.from_session(sim)


@router.post("/{simulation_id}/finish", response_model=models.FinishResponse)
def finish_simulation(
    simulation_id: str,
    current_user: models.CurrentUser = Depends(get_current_user),
    redis_conn: Redis = Depends(get_redis),
    orchestrator: Orchestrator = Depends(get_orchestrator),
    db_session: Session = Depends(get_db),
):
    """
    Evaluates the session and records it in the user's history.
    If saving the history fails the evaluation is still returned, with saved=false.
    """
    log_prefix = f"API Finish [User={current_user.id}]: Sim={simulation_id[-8:]}"

    def persist(past_session):
        crud.append_session(db_session, current_user.id, past_session)

    with _translate_errors(log_prefix):
        with simulation_lock(redis_conn, simulation_id, settings.SIM_LOCK_TIMEOUT_SECONDS):
            sim = _load_owned_simulation(redis_conn, simulation_id, current_user, log_prefix)
            try:
                evaluation = sim.finish(orchestrator, persist=persist)
            except EvaluationFailed:
                raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Failed to evaluate session")
            print(f"{log_prefix} - Evaluated: overall={evaluation.overall_score}, saved={sim.saved}")
            try:
                _save(redis_conn, sim)
            except StateStoreError:
                # The stored state still reads awaiting_user; drop it so finish cannot run twice
                print(f"{log_prefix} - WARNING: Could not store finished state, discarding live state.")
                print(traceback.format_exc())
                try:
                    delete_simulation_state(redis_conn, simulation_id)
                except StateStoreError:
                    print(f"{log_prefix} - ERROR: Could not discard live state after finish.")
    return models.FinishResponse(evaluation=evaluation, saved=sim.saved, session_id=sim.past_session_id)


@router.post("/{simulation_id}/cancel", response_model=models.SimulationView)
def request_cancel(
    simulation_id: str,
    current_user: models.CurrentUser = Depends(get_current_user),
    redis_conn: Redis = Depends(get_redis),
):
    log_prefix = f"API Cancel [User={current_user.id}]: Sim={simulation_id[-8:]}"
    with _translate_errors(log_prefix):
        with simulation_lock(redis_conn, simulation_id, settings.SIM_LOCK_TIMEOUT_SECONDS):
            sim = _load_owned_simulation(redis_conn, simulation_id, current_user, log_prefix)
            sim.request_cancel()
            _save(redis_conn, sim)
    return models.SimulationView.from_session(sim)


@router.post("/{simulation_id}/cancel/dismiss", response_model=models.SimulationView)
def dismiss_cancel(
    simulation_id: str,
    current_user: models.CurrentUser = Depends(get_current_user),
    redis_conn: Redis = Depends(get_redis),
):
    log_prefix = f"API Cancel Dismiss [User={current_user.id}]: Sim={simulation_id[-8:]}"
    with _translate_errors(log_prefix):
        with simulation_lock(redis_conn, simulation_id, settings.SIM_LOCK_TIMEOUT_SECONDS):
            sim = _load_owned_simulation(redis_conn, simulation_id, current_user, log_prefix)
            sim.dismiss_cancel()
            _save(redis_conn, sim)
    return models.SimulationView.from_session(sim)


@router.post("/{simulation_id}/cancel/confirm", response_model=models.AbortResponse)
def confirm_cancel(
    simulation_id: str,
    current_user: models.CurrentUser = Depends(get_current_user),
    redis_conn: Redis = Depends(get_redis),
):
    log_prefix = f"API Cancel Confirm [User={current_user.id}]: Sim={simulation_id[-8:]}"
    with _translate_errors(log_prefix):
        with simulation_lock(redis_conn, simulation_id, settings.SIM_LOCK_TIMEOUT_SECONDS):
            sim = _load_owned_simulation(redis_conn, simulation_id, current_user, log_prefix)
            sim.confirm_cancel()
            delete_simulation_state(redis_conn, simulation_id)
    print(f"{log_prefix} - Simulation aborted, transcript discarded.")
    return models.AbortResponse()
