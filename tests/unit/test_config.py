import logging

import pytest

from app.config import AppConfig, load_config, setup_logging, validate_config
from app.domain.exceptions import ConfigurationError


def test_defaults(monkeypatch):
    for var in ("MOTORCTL_LISTEN_PORT", "MOTORCTL_DEBOUNCE_WINDOW_MS", "MOTORCTL_RANDOM_SEED"):
        monkeypatch.delenv(var, raising=False)

    config = AppConfig()

    assert config.listen_port == 9090
    assert config.telemetry_interval_s == pytest.approx(0.2)
    assert config.command_poll_interval_s == pytest.approx(0.1)
    assert config.debounce_window_s == pytest.approx(0.2)
    assert (config.pid_kp, config.pid_ki, config.pid_kd) == (0.5, 0.1, 0.05)
    assert config.random_seed is None


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("MOTORCTL_LISTEN_PORT", "9191")
    monkeypatch.setenv("MOTORCTL_HTTP_ENABLED", "yes")
    monkeypatch.setenv("MOTORCTL_PID_KP", "1.5")
    monkeypatch.setenv("MOTORCTL_RANDOM_SEED", "42")

    config = AppConfig()

    assert config.listen_port == 9191
    assert config.http_enabled is True
    assert config.pid_kp == 1.5
    assert config.random_seed == 42


def test_bad_integer_env_raises(monkeypatch):
    monkeypatch.setenv("MOTORCTL_LISTEN_PORT", "ninety")

    with pytest.raises(ConfigurationError):
        AppConfig()


def test_load_config_ignores_none_and_rejects_unknown():
    config = load_config(listen_port=1234, database_path=None)
    assert config.listen_port == 1234

    with pytest.raises(ConfigurationError):
        load_config(not_a_setting=1)


@pytest.mark.parametrize(
    "field, value",
    [("telemetry_interval_ms", 0), ("command_poll_interval_ms", -1), ("listen_port", 70000)],
)
def test_validate_config_hard_errors(field, value):
    config = AppConfig()
    setattr(config, field, value)

    with pytest.raises(ConfigurationError):
        validate_config(config)


def test_validate_config_warns_on_short_debounce():
    config = AppConfig()
    config.debounce_window_ms = 10
    config.command_poll_interval_ms = 100

    assert any("Debounce window" in w for w in validate_config(config))


def test_setup_logging_does_not_duplicate_handlers(tmp_path):
    root = logging.getLogger()
    before = list(root.handlers)
    log_file = str(tmp_path / "logs" / "motorctl.log")
    try:
        setup_logging(log_file=log_file)
        setup_logging(log_file=log_file)

        names = [getattr(h, "name", "") for h in root.handlers]
        assert names.count("motorctl_console") == 1
        assert names.count("motorctl_file") == 1
        assert (tmp_path / "logs").is_dir()
    finally:
        for handler in list(root.handlers):
            if handler not in before:
                root.removeHandler(handler)
                handler.close()
