"""Liveness and readiness probe construction."""

from __future__ import annotations

from dataclasses import dataclass

SCHEME_HTTP = "HTTP"
SCHEME_HTTPS = "HTTPS"


class InvalidPortError(ValueError):
    """Raised when a port lies outside 1..65535."""


@dataclass(frozen=True)
class ProbeConfig:
    """Settings shared by liveness and readiness probes."""

    liveness_path: str = ""
    readiness_path: str = ""
    initial_delay_seconds: int = 0
    timeout_seconds: int = 0
    period_seconds: int = 0


@dataclass(frozen=True)
class Probe:
    """An HTTP GET probe."""

    path: str
    port: int
    scheme: str
    initial_delay_seconds: int = 0
    timeout_seconds: int = 0
    period_seconds: int = 0


def set_probes(
    port: int,
    disable_non_tls_listeners: bool,
    config: ProbeConfig,
) -> tuple[Probe, Probe]:
    """Return ``(liveness, readiness)`` probes for ``port``.

    HTTPS is used when non-TLS listeners are disabled, HTTP otherwise.
    """
    if port < 1 or port > 65535:
        raise InvalidPortError(f"invalid port: {port}")

    scheme = SCHEME_HTTPS if disable_non_tls_listeners else SCHEME_HTTP

    def make(path: str) -> Probe:
        return Probe(
            path=path,
            port=port,
            scheme=scheme,
            initial_delay_seconds=config.initial_delay_seconds,
            timeout_seconds=config.timeout_seconds,
            period_seconds=config.period_seconds,
        )

    return make(config.liveness_path), make(config.readiness_path)