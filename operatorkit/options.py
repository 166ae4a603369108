"""Controller manager options read from the environment."""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from datetime import timedelta

_INT_RE = re.compile(r"[+-]?[0-9]+")
_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1

_log = logging.getLogger(__name__)


@dataclass
class ManagerOptions:
    """Leader-election timings for a controller manager; ``None`` means unset."""

    lease_duration: timedelta | None = None
    renew_deadline: timedelta | None = None
    retry_period: timedelta | None = None


def get_env_in_duration(env_name: str) -> timedelta:
    """Read a whole number of seconds from ``env_name``.

    An unset or empty variable yields a zero duration; a value that is not a
    64-bit integer raises ``ValueError``.
    """
    value = os.environ.get(env_name, "")
    if not value:
        return timedelta(0)
    if not _INT_RE.fullmatch(value):
        raise ValueError(f"unable to parse provided '{env_name}', err: 'invalid syntax: {value!r}'")
    seconds = int(value)
    if not _INT64_MIN <= seconds <= _INT64_MAX:
        raise ValueError(f"unable to parse provided '{env_name}', err: 'value out of range: {value!r}'")
    return timedelta(seconds=seconds)


def set_manager_options(
    options: ManagerOptions,
    logger: logging.Logger | None = None,
) -> ManagerOptions:
    """Fill ``options`` from LEASE_DURATION, RENEW_DEADLINE and RETRY_PERIOD.

    Only non-zero values are applied. Returns the updated options.
    """
    log = logger if logger is not None else _log
    settings = (
        ("LEASE_DURATION", "lease_duration", "lease duration"),
        ("RENEW_DEADLINE", "renew_deadline", "renew deadline"),
        ("RETRY_PERIOD", "retry_period", "retry period"),
    )
    for env_name, attribute, description in settings:
        duration = get_env_in_duration(env_name)
        if duration:
            log.info(
                "manager configured with %s seconds=%d",
                description,
                int(duration.total_seconds()),
            )
            setattr(options, attribute, duration)
    return options