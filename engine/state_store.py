# engine/state_store.py

import json
import uuid
import traceback
from contextlib import contextmanager
from typing import Dict, Any, Optional

import redis
from redis import Redis

from .errors import SessionBusy

DEFAULT_STATE_EXPIRY_SECONDS = 6 * 60 * 60
DEFAULT_LOCK_TIMEOUT_SECONDS = 180


def _state_key(simulation_id: str) -> str:
    return f"sim_state:{simulation_id}"


def _lock_key(simulation_id: str) -> str:
    return f"sim_lock:{simulation_id}"


class StateStoreError(Exception):
    """The live simulation state could not be read or written."""


def load_simulation_state(redis_conn: Redis, simulation_id: str) -> Optional[Dict[str, Any]]:
    """
    Loads the simulation state dictionary from Redis.
    Returns None if no state exists; raises StateStoreError if Redis or the stored JSON is unusable.
    """
    log_prefix = f"[State Store Load Sim={simulation_id[-8:]}]"
    try:
        state_json = redis_conn.get(_state_key(simulation_id))
    except redis.exceptions.RedisError as e:
        print(f"{log_prefix} - ERROR: Redis failed during load: {e}")
        raise StateStoreError("Simulation state unavailable") from e

    if not state_json:
        return None

    if isinstance(state_json, bytes):
        state_json = state_json.decode("utf-8")
    try:
        return json.loads(state_json)
    except json.JSONDecodeError as e:
        print(f"{log_prefix} - ERROR: Failed decoding JSON state: {e}")
        raise StateStoreError("Simulation state is corrupt") from e


def save_simulation_state(redis_conn: Redis, simulation_id: str, state_dict: Dict[str, Any],
                          expiry_seconds: Optional[int] = DEFAULT_STATE_EXPIRY_SECONDS):
    """Serializes and stores the state dictionary. Raises StateStoreError on failure."""
    log_prefix = f"[State Store Save Sim={simulation_id[-8:]}]"
    # default=str for anything datetime-like that slipped through
    state_json = json.dumps(state_dict, default=str)
    try:
        if expiry_seconds:
            redis_conn.setex(_state_key(simulation_id), max(60, expiry_seconds), state_json)
        else:
            redis_conn.set(_state_key(simulation_id), state_json)
    except redis.exceptions.RedisError as e:
        print(f"{log_prefix} - ERROR: Redis failed during save: {e}")
        raise StateStoreError("Simulation state unavailable") from e


def delete_simulation_state(redis_conn: Redis, simulation_id: str):
    log_prefix = f"[State Store Delete Sim={simulation_id[-8:]}]"
    try:
        redis_conn.delete(_state_key(simulation_id))
    except redis.exceptions.RedisError as e:
        print(f"{log_prefix} - ERROR: Redis failed during delete: {e}")
        raise StateStoreError("Simulation state unavailable") from e


@contextmanager
def simulation_lock(redis_conn: Redis, simulation_id: str, timeout_seconds: int = DEFAULT_LOCK_TIMEOUT_SECONDS):
    """
    Holds the per-simulation processing lock for the duration of the block.
    Raises SessionBusy if another request already holds it.
    """
    key = _lock_key(simulation_id)
    token = uuid.uuid4().hex
    try:
        acquired = redis_conn.set(key, token, nx=True, ex=timeout_seconds)
    except redis.exceptions.RedisError as e:
        print(f"[State Store Lock Sim={simulation_id[-8:]}] - ERROR: Redis failed acquiring lock: {e}")
        raise StateStoreError("Simulation state unavailable") from e
    if not acquired:
        raise SessionBusy("Simulation is busy")
    try:
        yield
    finally:
        try:
            current = redis_conn.get(key)
            if isinstance(current, bytes):
                current = current.decode("utf-8")
            # Only release our own lock; it may have expired and been taken by someone else
            if current == token:
                redis_conn.delete(key)
        except Exception as e:
            print(f"[State Store Lock Sim={simulation_id[-8:]}] - Error releasing lock: {e}")
            print(traceback.format_exc())
