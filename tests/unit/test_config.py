import pytest
from pydantic import ValidationError

from ui_resilience.utils.config import Settings
from ui_resilience.utils.timing import driver_timeout


@pytest.mark.parametrize("key", ["DEFAULT_TIMEOUT_MS", "PROBE_TIMEOUT_MS", "STRATEGY_PROBE_TIMEOUT_MS"])
def test_zero_timeouts_are_rejected(key):
    with pytest.raises(ValidationError):
        Settings(_env_file=None, **{key: 0})


def test_healing_chain_is_uncapped_by_default():
    assert Settings(_env_file=None).MAX_HEALING_ATTEMPTS == 0


def test_driver_timeout_never_zero():
    assert driver_timeout(0) == 1
    assert driver_timeout(-5) == 1
    assert driver_timeout(2500) == 2500
