"""
Configuration for the motor controller
======================================
Runtime settings for the simulation loop, command arbitration, the TCP ingress
listener and the optional HTTP status API. Every value can be overridden from
the environment (``MOTORCTL_*``) and most from the ``motorctl`` command line.
Sets up the logging configuration as well.
"""

import os
from contextlib import suppress
from dataclasses import dataclass, field

from app.domain.exceptions import ConfigurationError


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.lower() in {"1", "true", "t", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(f"Environment variable {name} must be an integer.") from None


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        raise ConfigurationError(f"Environment variable {name} must be a number.") from None


def _env_optional_int(name: str) -> int | None:
    value = os.getenv(name)
    if value is None or value == "":
        return None
    return _env_int(name, 0)


@dataclass
class AppConfig:
    """Runtime configuration loaded from environment variables."""

    environment: str = field(default_factory=lambda: os.getenv("MOTORCTL_ENV", "development"))
    database_path: str = field(default_factory=lambda: os.getenv("MOTORCTL_DATABASE_PATH", "database/motor.db"))

    # Loop periods
    telemetry_interval_ms: int = field(default_factory=lambda: _env_int("MOTORCTL_TELEMETRY_INTERVAL_MS", 200))
    command_poll_interval_ms: int = field(
        default_factory=lambda: _env_int("MOTORCTL_COMMAND_POLL_INTERVAL_MS", 100)
    )
    debounce_window_ms: int = field(default_factory=lambda: _env_int("MOTORCTL_DEBOUNCE_WINDOW_MS", 200))

    # PID gains
    pid_kp: float = field(default_factory=lambda: _env_float("MOTORCTL_PID_KP", 0.5))
    pid_ki: float = field(default_factory=lambda: _env_float("MOTORCTL_PID_KI", 0.1))
    pid_kd: float = field(default_factory=lambda: _env_float("MOTORCTL_PID_KD", 0.05))

    # Simulation noise; None draws from the OS entropy pool
    random_seed: int | None = field(default_factory=lambda: _env_optional_int("MOTORCTL_RANDOM_SEED"))

    # TCP ingress
    listen_host: str = field(default_factory=lambda: os.getenv("MOTORCTL_LISTEN_HOST", "0.0.0.0"))
    listen_port: int = field(default_factory=lambda: _env_int("MOTORCTL_LISTEN_PORT", 9090))
    listen_backlog: int = field(default_factory=lambda: _env_int("MOTORCTL_LISTEN_BACKLOG", 5))

    # HTTP status API
    http_enabled: bool = field(default_factory=lambda: _env_bool("MOTORCTL_HTTP_ENABLED", False))
    http_host: str = field(default_factory=lambda: os.getenv("MOTORCTL_HTTP_HOST", "127.0.0.1"))
    http_port: int = field(default_factory=lambda: _env_int("MOTORCTL_HTTP_PORT", 8000))

    DEBUG: bool = field(default_factory=lambda: _env_bool("MOTORCTL_DEBUG", False))
    log_level: str = field(default_factory=lambda: os.getenv("MOTORCTL_LOG_LEVEL", "INFO"))
    log_file: str = field(default_factory=lambda: os.getenv("MOTORCTL_LOG_FILE", "logs/motorctl.log"))
    log_telemetry: bool = field(default_factory=lambda: _env_bool("MOTORCTL_LOG_TELEMETRY", True))

    @property
    def telemetry_interval_s(self) -> float:
        return self.telemetry_interval_ms / 1000.0

    @property
    def command_poll_interval_s(self) -> float:
        return self.command_poll_interval_ms / 1000.0

    @property
    def debounce_window_s(self) -> float:
        return self.debounce_window_ms / 1000.0

    def as_flask_config(self) -> dict:
        return {
            "DEBUG": self.DEBUG,
            "MOTORCTL_ENV": self.environment,
        }


# ==================== CONFIGURATION VALIDATION ====================


def validate_config(config: AppConfig) -> list[str]:
    """
    Validate runtime configuration and return a list of warnings.

    Hard errors (non-positive periods, out-of-range ports) raise
    :class:`ConfigurationError`; soft problems are returned so the caller can
    log them and keep going.
    """
    for name in ("telemetry_interval_ms", "command_poll_interval_ms"):
        if getattr(config, name) <= 0:
            raise ConfigurationError(f"{name} must be positive", detail={name: getattr(config, name)})
    if config.debounce_window_ms < 0:
        raise ConfigurationError("debounce_window_ms must not be negative")
    for name in ("listen_port", "http_port"):
        port = getattr(config, name)
        if not 0 <= port <= 65535:
            raise ConfigurationError(f"{name} out of range", detail={name: port})

    warnings = []

    if config.debounce_window_ms < config.command_poll_interval_ms:
        warnings.append(
            f"Debounce window ({config.debounce_window_ms}ms) is shorter than the command poll interval "
            f"({config.command_poll_interval_ms}ms); every poll may apply a command."
        )

    if config.telemetry_interval_ms < 50:
        warnings.append(
            f"Telemetry interval ({config.telemetry_interval_ms}ms) is very short. "
            "Every tick writes a telemetry row. Recommended: 100ms+"
        )

    if config.http_enabled and config.http_port == config.listen_port and config.http_host == config.listen_host:
        warnings.append("HTTP API and TCP ingress share the same host:port; one of them will fail to bind.")

    return warnings


def setup_logging(debug: bool = False, *, level: str | None = None, log_file: str | None = "logs/motorctl.log") -> None:
    """Setup logging configuration."""
    import logging
    import sys
    from logging.handlers import RotatingFileHandler

    if debug:
        log_level = logging.DEBUG
    elif level:
        log_level = logging.getLevelName(level.upper())
        if not isinstance(log_level, int):
            log_level = logging.INFO
    else:
        log_level = logging.INFO

    root = logging.getLogger()
    root.setLevel(log_level)

    # Avoid adding duplicates when setup_logging is called more than once
    has_console = any(getattr(h, "name", "") == "motorctl_console" for h in root.handlers)
    has_file = any(getattr(h, "name", "") == "motorctl_file" for h in root.handlers)
    added_handler = False

    stream = sys.stdout
    with suppress(AttributeError, ValueError):
        stream.reconfigure(encoding="utf-8", errors="replace")
    formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    if not has_console:
        console_handler = logging.StreamHandler(stream=stream)
        console_handler.name = "motorctl_console"
        console_handler.setLevel(log_level)
        console_handler.setFormatter(formatter)
        root.addHandler(console_handler)
        added_handler = True

    if not has_file and log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.name = "motorctl_file"
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)
        added_handler = True

    for handler in root.handlers:
        if getattr(handler, "name", "") in {"motorctl_console", "motorctl_file"}:
            handler.setLevel(log_level)

    if added_handler:
        root.info(f"Logging initialized at level: {logging.getLevelName(log_level)}")

    # werkzeug logs every request line; the status API is polled frequently
    if _env_bool("MOTORCTL_SILENCE_WERKZEUG", True):
        logging.getLogger("werkzeug").setLevel(logging.WARNING)


def load_config(**overrides) -> AppConfig:
    """Helper for callers to load and validate configuration.

    Keyword overrides replace environment-derived values; ``None`` values are
    ignored so argparse defaults can be passed straight through.
    """
    import logging

    logger = logging.getLogger("config_loader")
    config = AppConfig()
    for key, value in overrides.items():
        if value is None:
            continue
        if not hasattr(config, key):
            raise ConfigurationError(f"Unknown configuration option: {key}")
        setattr(config, key, value)

    for warning in validate_config(config):
        logger.warning(warning)

    return config
