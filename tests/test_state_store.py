from unittest.mock import MagicMock

import pytest
import redis

from engine.errors import SessionBusy
from engine.state_store import (
    StateStoreError, load_simulation_state, save_simulation_state,
    delete_simulation_state, simulation_lock,
)


def test_save_then_load(fake_redis):
    save_simulation_state(fake_redis, "sim-1", {"turn_count": 2, "phase": "awaiting_user"})

    assert load_simulation_state(fake_redis, "sim-1") == {"turn_count": 2, "phase": "awaiting_user"}
    assert 0 < fake_redis.ttl("sim_state:sim-1") <= 6 * 60 * 60


def test_expiry_has_a_floor(fake_redis):
    save_simulation_state(fake_redis, "sim-1", {}, expiry_seconds=5)
    assert fake_redis.ttl("sim_state:sim-1") > 5


def test_missing_state_is_none(fake_redis):
    assert load_simulation_state(fake_redis, "nope") is None


def test_delete(fake_redis):
    save_simulation_state(fake_redis, "sim-1", {"a": 1})
    delete_simulation_state(fake_redis, "sim-1")
    assert load_simulation_state(fake_redis, "sim-1") is None


def test_corrupt_state_raises(fake_redis):
    fake_redis.set("sim_state:sim-1", "{broken")
    with pytest.raises(StateStoreError):
        load_simulation_state(fake_redis, "sim-1")


def test_redis_outage_raises():
    broken = MagicMock()
    broken.get.side_effect = redis.exceptions.ConnectionError("refused")
    broken.setex.side_effect = redis.exceptions.ConnectionError("refused")
    with pytest.raises(StateStoreError):
        load_simulation_state(broken, "sim-1")
    with pytest.raises(StateStoreError):
        save_simulation_state(broken, "sim-1", {})


def test_lock_is_exclusive_and_released(fake_redis):
    with simulation_lock(fake_redis, "sim-1"):
        assert fake_redis.exists("sim_lock:sim-1")
        with pytest.raises(SessionBusy):
            with simulation_lock(fake_redis, "sim-1"):
                pass
    assert not fake_redis.exists("sim_lock:sim-1")


def test_lock_released_when_block_raises(fake_redis):
    with pytest.raises(ValueError):
        with simulation_lock(fake_redis, "sim-1"):
            raise ValueError("handler failed")
    assert not fake_redis.exists("sim_lock:sim-1")


def test_lock_leaves_foreign_holder_alone(fake_redis):
    with simulation_lock(fake_redis, "sim-1"):
        # Our lock expired and another request took it over
        fake_redis.set("sim_lock:sim-1", "someone-else")
    assert fake_redis.get("sim_lock:sim-1") == "someone-else"
