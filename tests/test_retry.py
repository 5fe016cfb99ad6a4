from __future__ import annotations

import pytest

from todosync import retry

FIRST_SUCCESS_ATTEMPT = 2  # transient once then success


def test_is_transient_tokens():
    assert retry.is_transient('Rate Limit exceeded')
    assert retry.is_transient('secondary rate limit triggered')
    assert retry.is_transient('ABUSE DETECTION mechanism')
    assert not retry.is_transient('some other error')


def test_run_with_retries_transient_then_success():
    attempts: list[int] = []

    def fn():
        attempts.append(1)
        if len(attempts) < FIRST_SUCCESS_ATTEMPT:
            raise RuntimeError('rate limit exceeded temporarily')
        return 'ok'

    assert retry.run_with_retries(fn, cfg=retry.RetryConfig(attempts=3, base_sleep=0.01)) == 'ok'
    assert len(attempts) == FIRST_SUCCESS_ATTEMPT


def test_run_with_retries_non_transient():
    attempts: list[int] = []

    def fn():
        attempts.append(1)
        raise RuntimeError('validation failed')

    with pytest.raises(RuntimeError):
        retry.run_with_retries(fn, cfg=retry.RetryConfig(attempts=3))
    assert len(attempts) == 1


def test_default_config_calls_once():
    attempts: list[int] = []

    def fn():
        attempts.append(1)
        raise RuntimeError('rate limit')

    with pytest.raises(RuntimeError):
        retry.run_with_retries(fn)
    assert len(attempts) == 1


def test_custom_should_retry_predicate():
    attempts: list[int] = []

    def fn():
        attempts.append(1)
        if len(attempts) < 3:
            raise KeyError('flaky')
        return 3

    result = retry.run_with_retries(
        fn,
        cfg=retry.RetryConfig(attempts=3),
        should_retry=lambda exc: isinstance(exc, KeyError),
    )
    assert result == 3


def test_explicit_backoff_and_cap(monkeypatch):
    assert retry._extract_explicit_backoff('Retry-After: 12') == 12.0
    assert retry._extract_explicit_backoff('please wait 30 seconds') == 30.0
    assert retry._extract_explicit_backoff('nothing here') is None
    monkeypatch.setenv('TODOSYNC_RETRY_MAX_SLEEP', '2')
    assert retry._compute_sleep(1, retry.RetryConfig(), 'Retry-After: 12') == 2.0
    monkeypatch.setenv('TODOSYNC_RETRY_MAX_SLEEP', 'bogus')
    assert retry._compute_sleep(1, retry.RetryConfig(), 'Retry-After: 12') == 12.0
