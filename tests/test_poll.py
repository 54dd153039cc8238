import pytest

from vpcctl.poll import Poller, PollTimeout


def test_returns_on_first_success():
    sleeps = []
    poller = Poller(interval=5, max_attempts=3, sleep=sleeps.append)

    assert poller.until(lambda: True) == 1
    assert sleeps == []


def test_retries_at_fixed_interval():
    sleeps = []
    answers = iter([False, False, True])
    poller = Poller(interval=5, max_attempts=10, sleep=sleeps.append)

    assert poller.until(lambda: next(answers)) == 3
    assert sleeps == [5, 5]


def test_times_out_after_max_attempts():
    sleeps = []
    calls = []
    poller = Poller(interval=1, max_attempts=4, sleep=sleeps.append)

    def check():
        calls.append(1)
        return False

    with pytest.raises(PollTimeout) as exc_info:
        poller.until(check, "thing")

    assert len(calls) == 4
    assert len(sleeps) == 3  # no sleep after the last check
    assert exc_info.value.attempts == 4
    assert "thing" in str(exc_info.value)


def test_check_exceptions_propagate():
    poller = Poller(interval=0, max_attempts=3, sleep=lambda s: None)

    def check():
        raise RuntimeError("provider down")

    with pytest.raises(RuntimeError, match="provider down"):
        poller.until(check)


def test_rejects_zero_attempts():
    with pytest.raises(ValueError):
        Poller(max_attempts=0)
