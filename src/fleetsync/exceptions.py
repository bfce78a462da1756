"""Custom exception hierarchy for fleetsync."""

from __future__ import annotations

from enum import StrEnum


class FleetSyncError(Exception):
    """Base exception for all fleetsync errors."""


class ConfigError(FleetSyncError):
    """Invalid or missing configuration."""


class TransportError(FleetSyncError):
    """HTTP-level failure (network, timeout, non-200, invalid JSON)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        url: str = "",
        timeout: bool = False,
    ) -> None:
        self.status_code = status_code
        self.url = url
        self.timeout = timeout
        super().__init__(message)


# ------------------------------------------------------------------
# Upstream (tracking provider) errors
# ------------------------------------------------------------------


class UpstreamError(FleetSyncError):
    """Failure talking to a tracking provider."""

    def __init__(self, message: str, *, source: str = "") -> None:
        self.source = source
        super().__init__(message)


class UpstreamAuthError(UpstreamError):
    """Provider rejected the credentials or the token."""


class UpstreamTransientError(UpstreamError):
    """Network failure, timeout or rate limit on the provider side."""


# ------------------------------------------------------------------
# Destination (ERP) errors
# ------------------------------------------------------------------


class DestinationError(FleetSyncError):
    """ERP returned an application-level error."""

    def __init__(
        self,
        message: str,
        *,
        status: str = "",
        service: str = "",
    ) -> None:
        self.status = status
        self.service = service
        super().__init__(message)


class DestinationAuthError(DestinationError):
    """Login rejected or session unusable on the current endpoint."""


class DestinationSessionExpiredError(DestinationAuthError):
    """Session id rejected by the ERP (``status=3``, "Não autorizado.").

    The destination gateway catches this once to re-login and retry the
    request; a second occurrence propagates to the job.
    """


class DestinationTransientError(DestinationError):
    """Network failure or timeout against the ERP endpoint."""


# ------------------------------------------------------------------
# Record-level errors (handled inline by the mapper)
# ------------------------------------------------------------------


class RecordValidationError(FleetSyncError):
    """A position record has an unparseable timestamp or missing field."""


class UnmappedRecordError(FleetSyncError):
    """No destination identity exists for a position record."""


class ErrorKind(StrEnum):
    UPSTREAM_AUTH = "upstream_auth"
    UPSTREAM_TRANSIENT = "upstream_transient"
    DESTINATION_AUTH = "destination_auth"
    DESTINATION_TRANSIENT = "destination_transient"
    OTHER = "other"


def classify_error(exc: BaseException) -> ErrorKind:
    """Map an exception raised during a cycle to its :class:`ErrorKind`."""
    if isinstance(exc, UpstreamAuthError):
        return ErrorKind.UPSTREAM_AUTH
    if isinstance(exc, UpstreamError):
        return ErrorKind.UPSTREAM_TRANSIENT
    if isinstance(exc, DestinationAuthError):
        return ErrorKind.DESTINATION_AUTH
    if isinstance(exc, DestinationTransientError):
        return ErrorKind.DESTINATION_TRANSIENT
    return ErrorKind.OTHER
