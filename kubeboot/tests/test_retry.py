import pytest

from kubeboot.modules.kubeadm.errors import RetryExhaustedError
from kubeboot.modules.kubeadm.retry import retry_after


def no_sleep(seconds):
    pass


def test_returns_first_success():
    calls = []

    def action():
        calls.append(1)
        if len(calls) < 3:
            raise RuntimeError("not yet")
        return "done"

    assert retry_after(5, action, 0.5, sleep=no_sleep) == "done"
    assert len(calls) == 3


def test_gives_up_after_attempts():
    calls = []
    sleeps = []

    def action():
        calls.append(1)
        raise RuntimeError("never")

    with pytest.raises(RetryExhaustedError) as exc_info:
        retry_after(4, action, 0.25, sleep=sleeps.append)

    assert len(calls) == 4
    assert sleeps == [0.25, 0.25, 0.25]
    assert exc_info.value.attempts == 4
    assert isinstance(exc_info.value.__cause__, RuntimeError)


def test_is_success_predicate():
    results = iter([False, False, True])
    assert retry_after(3, lambda: next(results), 1, is_success=bool, sleep=no_sleep) is True


def test_is_success_never_met():
    with pytest.raises(RetryExhaustedError, match="check did not succeed"):
        retry_after(2, lambda: False, 1, is_success=bool, sleep=no_sleep)
