"""
Command Domain Objects
======================
A remote setpoint request as persisted in the command log, plus the parser
for the one-line TCP ingress format ``<client_id> <percent_change>``.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Mapping

from app.utils.time import coerce_datetime

DEFAULT_CLIENT_ID = "tcp_client"
PROCESSED_BY_CONTROLLER = "controller"
MAX_CLIENT_ID_LENGTH = 127

# Leading decimal number of a token; trailing characters are ignored
_NUMBER_PREFIX = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


class IssuedVia(str, Enum):
    """Channel a command was submitted through."""

    NETWORK = "network"
    HTTP = "http"
    LOCAL = "local"


@dataclass(frozen=True)
class Command:
    """One row of the command log."""

    id: int
    client_id: str
    percent_change: float
    issued_via: str
    submitted_at: datetime
    processed: bool = False
    processed_at: datetime | None = None
    processed_by: str | None = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Command":
        submitted_at = coerce_datetime(row["submitted_at"])
        if submitted_at is None:
            raise ValueError(f"command {row['id']} has an unreadable submitted_at: {row['submitted_at']!r}")
        return cls(
            id=int(row["id"]),
            client_id=str(row["client_id"]),
            percent_change=float(row["percent_change"]),
            issued_via=str(row["issued_via"]),
            submitted_at=submitted_at,
            processed=bool(row["processed"]),
            processed_at=coerce_datetime(row["processed_at"]),
            processed_by=row["processed_by"],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "client_id": self.client_id,
            "percent_change": self.percent_change,
            "issued_via": self.issued_via,
            "submitted_at": self.submitted_at.isoformat(),
            "processed": self.processed,
            "processed_at": self.processed_at.isoformat() if self.processed_at else None,
            "processed_by": self.processed_by,
        }


@dataclass(frozen=True)
class IngressRequest:
    """A parsed ingress line."""

    client_id: str
    percent_change: float


def parse_percent(token: str) -> float:
    """Read the leading number of ``token`` (``"10%"`` -> 10.0, ``"5,5"`` -> 5.0).

    A token with no leading number, or one that overflows to infinity, reads
    as 0.0.
    """
    match = _NUMBER_PREFIX.match(token)
    if match is None:
        return 0.0
    value = float(match.group(0))
    return value if math.isfinite(value) else 0.0


def parse_request_line(line: str) -> IngressRequest | None:
    """
    Parse ``<client_id> <percent_change>``.

    The client id is the first whitespace-separated token (truncated to
    127 characters). The percentage is the leading number of the second
    token; when it is missing or has no leading digits it reads as 0.0 and the
    request still succeeds on the client id alone. Returns ``None`` when the
    line holds no token at all.
    """
    tokens = line.split()
    if not tokens:
        return None

    client_id = tokens[0][:MAX_CLIENT_ID_LENGTH] or DEFAULT_CLIENT_ID
    percent = parse_percent(tokens[1]) if len(tokens) > 1 else 0.0
    return IngressRequest(client_id=client_id, percent_change=percent)
