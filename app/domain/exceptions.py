"""Centralized exception hierarchy for the motor controller.

All domain and service exceptions inherit from :class:`MotorControlError` so
that callers can catch a single base class when they need a broad safety net,
yet still match on specific subclasses where narrower handling is appropriate.

The status API (see ``app/utils/http.safe_route``) maps these to HTTP status
codes through ``http_status``.

Hierarchy
---------
::

    MotorControlError (base, maps to 500)
    ├── ValidationError          (400, bad input from caller)
    ├── NotFoundError            (404, entity does not exist)
    ├── RepositoryError          (500, command log / telemetry store)
    ├── ConfigurationError       (500, missing / invalid config)
    └── IngressError             (503, listening socket failure)
"""

from __future__ import annotations


class MotorControlError(Exception):
    """Base exception for all motor controller errors.

    Parameters
    ----------
    message:
        Human-readable description (logged server-side, **not** leaked to
        the HTTP client unless the exception class opts in).
    detail:
        Optional machine-readable context dict attached to the error for
        structured logging.
    """

    http_status: int = 500

    def __init__(self, message: str = "", *, detail: dict | None = None) -> None:
        super().__init__(message)
        self.detail = detail or {}


# ── Client errors (4xx) ──────────────────────────────────────────────


class ValidationError(MotorControlError):
    """Caller supplied invalid or incomplete input (HTTP 400)."""

    http_status: int = 400


class NotFoundError(MotorControlError):
    """Requested entity does not exist (HTTP 404)."""

    http_status: int = 404


# ── Server errors (5xx) ──────────────────────────────────────────────


class RepositoryError(MotorControlError):
    """Command log or telemetry store failure (HTTP 500).

    Raised for transient store errors; control loops log it and retry on
    their next tick.
    """

    http_status: int = 500


class ConfigurationError(MotorControlError):
    """Missing or invalid application configuration (HTTP 500)."""

    http_status: int = 500


class IngressError(MotorControlError):
    """The TCP ingress listener could not bind or accept (HTTP 503)."""

    http_status: int = 503
