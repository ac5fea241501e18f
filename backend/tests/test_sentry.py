import logging

import sentry_sdk

from pingpong.exceptions import RatingReplayFailed
from pingpong.utils import sentry


def test_parse_sample_rate(monkeypatch, caplog):
    monkeypatch.delenv("SENTRY_TRACES_SAMPLE_RATE", raising=False)
    assert sentry.parse_sample_rate("SENTRY_TRACES_SAMPLE_RATE", 0.1) == 0.1

    monkeypatch.setenv("SENTRY_TRACES_SAMPLE_RATE", "0.2")
    assert sentry.parse_sample_rate("SENTRY_TRACES_SAMPLE_RATE") == 0.2

    with caplog.at_level(logging.WARNING):
        monkeypatch.setenv("SENTRY_TRACES_SAMPLE_RATE", "abc")
        assert sentry.parse_sample_rate("SENTRY_TRACES_SAMPLE_RATE") == 0.0
        monkeypatch.setenv("SENTRY_TRACES_SAMPLE_RATE", "1.5")
        assert sentry.parse_sample_rate("SENTRY_TRACES_SAMPLE_RATE") == 0.0

    assert "not a valid float" in caplog.text
    assert "must be within [0, 1]" in caplog.text


def test_init_sentry_without_dsn_is_skipped(monkeypatch, caplog):
    monkeypatch.delenv("SENTRY_DSN", raising=False)
    with caplog.at_level(logging.INFO, logger="pingpong.utils.sentry"):
        assert sentry.init_sentry() is False
    assert "SENTRY_DSN not provided" in caplog.text


def test_report_replay_failure_captures_exception(monkeypatch):
    captured = []
    monkeypatch.setattr(sentry_sdk, "capture_exception", captured.append)

    exc = RatingReplayFailed("match m1 references unknown player ghost")
    sentry.report_replay_failure(exc, "elo-k32-v1")

    assert captured == [exc]
