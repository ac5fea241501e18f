import logging

from pingpong import config


def test_canon_prefix():
    assert config._canon_prefix(None) == "/api"
    assert config._canon_prefix("v1/") == "/v1"
    assert config._canon_prefix("/") == "/"


def test_positive_int_defaults(monkeypatch, caplog):
    monkeypatch.delenv("MAX_SETS_PER_MATCH", raising=False)
    assert config._positive_int("MAX_SETS_PER_MATCH", 7) == 7

    monkeypatch.setenv("MAX_SETS_PER_MATCH", "9")
    assert config._positive_int("MAX_SETS_PER_MATCH", 7) == 9

    with caplog.at_level(logging.WARNING):
        monkeypatch.setenv("MAX_SETS_PER_MATCH", "lots")
        assert config._positive_int("MAX_SETS_PER_MATCH", 7) == 7
        monkeypatch.setenv("MAX_SETS_PER_MATCH", "0")
        assert config._positive_int("MAX_SETS_PER_MATCH", 7) == 7

    assert "not a valid integer" in caplog.text
    assert "must be positive" in caplog.text
