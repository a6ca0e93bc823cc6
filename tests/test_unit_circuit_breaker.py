from datetime import datetime, timedelta, timezone
from creator_rewards.utils.circuit_breaker import BreakerState, CircuitBreaker


class FakeClock:
    def __init__(self):
        self.now = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


def _tripped(clock: FakeClock) -> CircuitBreaker:
    cb = CircuitBreaker(failure_threshold=3, cooldown_seconds=60, probe_budget=2, clock=clock)
    for _ in range(3):
        cb.record_failure("tiktok", "timeout")
    return cb


def test_defaults_come_from_config():
    cb = CircuitBreaker()
    assert cb.failure_threshold == 5
    assert cb.cooldown == timedelta(seconds=300)
    assert cb.probe_budget == 3


def test_trips_after_consecutive_failures():
    clock = FakeClock()
    cb = CircuitBreaker(failure_threshold=3, cooldown_seconds=60, probe_budget=2, clock=clock)
    cb.record_failure("tiktok")
    cb.record_failure("tiktok")
    assert cb.allow_call("tiktok") == (True, None)
    cb.record_failure("tiktok", "HTTP 503")

    health = cb.health("tiktok")
    assert health.state == BreakerState.OPEN
    assert health.opened_at == clock.now
    assert health.last_error == "HTTP 503"
    assert cb.allow_call("tiktok") == (False, "circuit_open")
    assert health.skipped_calls == 1


def test_success_resets_failure_streak():
    cb = CircuitBreaker(failure_threshold=3, clock=FakeClock())
    cb.record_failure("tiktok")
    cb.record_failure("tiktok")
    cb.record_success("tiktok")
    cb.record_failure("tiktok")
    assert cb.health("tiktok").state == BreakerState.CLOSED
    assert cb.health("tiktok").consecutive_failures == 1


def test_cooldown_then_successful_trial_call_closes():
    clock = FakeClock()
    cb = _tripped(clock)
    clock.advance(59)
    assert cb.allow_call("tiktok")[0] is False
    clock.advance(1)
    assert cb.allow_call("tiktok") == (True, None)
    assert cb.health("tiktok").state == BreakerState.HALF_OPEN

    cb.record_success("tiktok")
    health = cb.health("tiktok")
    assert health.state == BreakerState.CLOSED
    assert health.consecutive_failures == 0
    assert health.opened_at is None


def test_half_open_failure_reopens():
    clock = FakeClock()
    cb = _tripped(clock)
    clock.advance(60)
    assert cb.allow_call("tiktok")[0] is True
    cb.record_failure("tiktok")
    assert cb.health("tiktok").state == BreakerState.OPEN
    assert cb.health("tiktok").opened_at == clock.now
    assert cb.allow_call("tiktok") == (False, "circuit_open")


def test_half_open_probe_budget():
    clock = FakeClock()
    cb = _tripped(clock)
    clock.advance(60)
    results = [cb.allow_call("tiktok") for _ in range(3)]
    assert [r[0] for r in results] == [True, True, False]
    assert results[-1][1] == "half_open_probe_exhausted"


def test_feeds_are_independent():
    cb = _tripped(FakeClock())
    assert cb.allow_call("tiktok")[0] is False
    assert cb.allow_call("other") == (True, None)


def test_snapshot_and_reset():
    cb = _tripped(FakeClock())
    cb.allow_call("tiktok")
    snap = cb.snapshot()
    assert snap["tiktok"]["state"] == "OPEN"
    assert snap["tiktok"]["failures"] == 3
    assert snap["tiktok"]["skipped_calls"] == 1
    assert snap["tiktok"]["last_error"] == "timeout"
    cb.reset()
    assert cb.snapshot() == {}
