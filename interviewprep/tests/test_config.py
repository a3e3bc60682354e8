import json
import logging

import pytest

from interviewprep.core.config import Settings, validate_config
from interviewprep.core.logging import JsonFormatter, latency_bucket_ms, request_id_ctx_var


def test_validate_config_warns_when_not_strict(caplog):
    cfg = Settings(DATABASE_URL=None)
    with caplog.at_level(logging.WARNING, logger="interviewprep"):
        assert validate_config(strict=False, settings_obj=cfg) is True
    assert "DATABASE_URL" in caplog.text


def test_validate_config_raises_when_strict():
    with pytest.raises(RuntimeError, match="DATABASE_URL"):
        validate_config(strict=True, settings_obj=Settings(DATABASE_URL=None))
    with pytest.raises(RuntimeError, match="RETRY_MAX_RETRIES"):
        validate_config(strict=True, settings_obj=Settings(DATABASE_URL="sqlite://", RETRY_MAX_RETRIES=0))


def test_settings_read_environment(monkeypatch):
    monkeypatch.setenv("FREE_TIER_DAILY_LIMIT", "5")
    monkeypatch.setenv("RETRY_INITIAL_DELAY", "0.1")
    cfg = Settings()
    assert cfg.FREE_TIER_DAILY_LIMIT == 5
    assert cfg.RETRY_INITIAL_DELAY == 0.1


def test_json_formatter_includes_request_id_and_extra():
    token = request_id_ctx_var.set("rid-json")
    try:
        record = logging.LogRecord("interviewprep", logging.INFO, __file__, 1, "quota.blocked", None, None)
        record.user_id = 3
        record.request_id = request_id_ctx_var.get()
        payload = json.loads(JsonFormatter().format(record))
    finally:
        request_id_ctx_var.reset(token)

    assert payload["message"] == "quota.blocked"
    assert payload["request_id"] == "rid-json"
    assert payload["user_id"] == 3


def test_latency_buckets():
    assert latency_bucket_ms(None) == "unknown"
    assert latency_bucket_ms(5) == "<10ms"
    assert latency_bucket_ms(250) == "100-500ms"
    assert latency_bucket_ms(5000) == ">=1000ms"
