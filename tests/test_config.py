import logging

import pytest

from demobot.config import TRACE, ConfigurationError, JsonFormatter, Settings, parse_flags


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    for name in ("TELEGRAM_API_ID", "TELEGRAM_API_HASH", "TELEGRAM_PHONE", "SIMULATE_TYPING",
                 "RECONNECT_MAX_ATTEMPTS", "STORE_FILE"):
        monkeypatch.setenv(name, "unset")
        monkeypatch.delenv(name)
    return monkeypatch


def test_flags_are_presence_checks():
    assert parse_flags([]) == {"use_store": True, "do_reply": False, "use_pairing_code": False}
    assert parse_flags(["--no-store", "--do-reply", "--use-pairing-code"]) == {
        "use_store": False,
        "do_reply": True,
        "use_pairing_code": True,
    }


def test_settings_from_env(clean_env):
    clean_env.setenv("TELEGRAM_API_ID", "123")
    clean_env.setenv("TELEGRAM_API_HASH", "abc")
    clean_env.setenv("SIMULATE_TYPING", "yes")
    clean_env.setenv("RECONNECT_MAX_ATTEMPTS", "4")

    settings = Settings.from_env(["--do-reply"])

    assert settings.api_id == 123
    assert settings.do_reply is True
    assert settings.use_store is True
    assert settings.simulate_typing is True
    assert settings.reconnect_max_attempts == 4
    assert settings.store_flush_interval == 10.0
    assert settings.store_file == "tg_store_multi.json"


def test_missing_api_credentials(clean_env):
    with pytest.raises(ConfigurationError):
        Settings.from_env([])


def test_non_numeric_api_id(clean_env):
    clean_env.setenv("TELEGRAM_API_ID", "not-a-number")
    clean_env.setenv("TELEGRAM_API_HASH", "abc")

    with pytest.raises(ConfigurationError):
        Settings.from_env([])


def test_dotenv_file_is_loaded(clean_env, tmp_path):
    (tmp_path / ".env").write_text("TELEGRAM_API_ID=77\nTELEGRAM_API_HASH=fromfile\n")

    settings = Settings.from_env([])

    assert settings.api_id == 77
    assert settings.api_hash == "fromfile"


def test_json_formatter_emits_trace_records():
    record = logging.LogRecord("demobot.test", TRACE, __file__, 1, "raw %s", ("update",), None)

    line = JsonFormatter().format(record)

    assert '"levelname": "TRACE"' in line
    assert '"msg": "raw update"' in line
