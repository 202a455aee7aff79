from services.retry import RetryPolicy, policy_from_settings
from settings import Settings


def test_delays_are_bounded_exponential():
    policy = RetryPolicy(max_attempts=5, base_delay_s=0.1, max_delay_s=0.3, rand=lambda: 1.0)
    assert list(policy.delays()) == [0.1, 0.2, 0.3, 0.3]


def test_jitter_scales_delay():
    policy = RetryPolicy(max_attempts=3, base_delay_s=0.1, max_delay_s=1.0, rand=lambda: 0.5)
    assert list(policy.delays()) == [0.05, 0.1]


def test_single_attempt_never_sleeps():
    assert list(RetryPolicy(max_attempts=1).delays()) == []


def test_pause_skips_zero_delay():
    slept = []
    policy = RetryPolicy(sleep=slept.append)
    policy.pause(0)
    policy.pause(0.25)
    assert slept == [0.25]


def test_policy_from_settings():
    s = Settings(TRANSITION_MAX_ATTEMPTS=4, TRANSITION_BACKOFF_BASE_MS=20, TRANSITION_BACKOFF_MAX_MS=400)
    policy = policy_from_settings(s)
    assert policy.max_attempts == 4
    assert policy.base_delay_s == 0.02
    assert policy.max_delay_s == 0.4
