"""Session credential state and single-flight login management."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable

from pydantic import BaseModel, ConfigDict, Field

from fleetsync._redact import mask_token

_logger = logging.getLogger(__name__)


class Credential(BaseModel):
    """Authentication credential for one external system.

    Parameters
    ----------
    token : str
        Opaque token or session id.
    issued_at : float
        Monotonic timestamp (``time.monotonic()``) of the login that
        produced the credential.
    ttl : float or None
        Fixed time-to-live in seconds. ``None`` means the credential only
        becomes invalid when the server rejects it.
    endpoint : str or None
        Base URL the credential was issued by, when it is endpoint bound.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        str_strip_whitespace=True,
    )

    token: str
    issued_at: float = Field(default_factory=time.monotonic)
    ttl: float | None = None
    endpoint: str | None = None

    def is_expired_at(self, now: float) -> bool:
        if self.ttl is None:
            return False
        return (now - self.issued_at) >= self.ttl

    @property
    def is_expired(self) -> bool:
        """Whether the credential has exceeded its TTL."""
        return self.is_expired_at(time.monotonic())

    @property
    def age(self) -> float:
        """Seconds since the credential was issued."""
        return time.monotonic() - self.issued_at


LoginCallable = Callable[[], Awaitable[Credential]]


class SessionManager:
    """Acquire, cache and invalidate the credential of one external system.

    :meth:`ensure` is idempotent: a valid credential is returned without
    calling ``login``. Concurrent callers that find no credential share a
    single in-flight login; its result (or its exception) is delivered to
    every waiter. Login failures are propagated unchanged so the caller can
    classify them.

    Usage::

        sessions = SessionManager("sankhya", login=_login)
        credential = await sessions.ensure()
    """

    def __init__(
        self,
        name: str,
        login: LoginCallable,
        *,
        ttl: float | None = None,
        clock: Callable[[], float] = time.monotonic,
        on_login: Callable[[Credential], None] | None = None,
    ) -> None:
        self._name = name
        self._login = login
        self._ttl = ttl
        self._clock = clock
        self._on_login = on_login
        self._credential: Credential | None = None
        self._inflight: asyncio.Task[Credential] | None = None
        self._login_count = 0

    @property
    def name(self) -> str:
        return self._name

    @property
    def credential(self) -> Credential | None:
        """The stored credential, without expiry checks."""
        return self._credential

    @property
    def login_count(self) -> int:
        """Number of successful logins performed by this manager."""
        return self._login_count

    @property
    def has_valid_credential(self) -> bool:
        credential = self._credential
        return credential is not None and not credential.is_expired_at(self._clock())

    def invalidate(self, reason: str = "", *, credential: Credential | None = None) -> None:
        """Discard the stored credential; the next :meth:`ensure` logs in again.

        When *credential* is given, the stored credential is only discarded
        if it is that same object, so a caller holding a stale credential
        cannot drop one renewed concurrently.
        """
        if credential is not None and self._credential is not credential:
            return
        if self._credential is not None:
            _logger.info("[%s] Discarding credential%s", self._name, f" ({reason})" if reason else "")
        self._credential = None

    async def ensure(self) -> Credential:
        """Return a usable credential, logging in when none is held."""
        credential = self._credential
        if credential is not None and credential.is_expired_at(self._clock()):
            _logger.info("[%s] Credential expired after %.0fs; renewing", self._name, self._clock() - credential.issued_at)
            self._credential = None
            credential = None
        if credential is not None:
            return credential

        task = self._inflight
        if task is None:
            _logger.info("[%s] No credential held; logging in", self._name)
            task = asyncio.get_running_loop().create_task(self._perform_login())
            task.add_done_callback(_consume_task_exception)
            self._inflight = task
        else:
            _logger.debug("[%s] Waiting for login already in progress", self._name)
        return await asyncio.shield(task)

    async def _perform_login(self) -> Credential:
        try:
            issued = await self._login()
            credential = issued.model_copy(update={"issued_at": self._clock(), "ttl": self._ttl})
            self._credential = credential
            self._login_count += 1
            _logger.info("[%s] Login succeeded (token %s)", self._name, mask_token(credential.token))
            if self._on_login is not None:
                self._on_login(credential)
            return credential
        finally:
            self._inflight = None


def _consume_task_exception(task: asyncio.Task[Credential]) -> None:
    # Waiters receive the exception through the shield.
    if not task.cancelled():
        task.exception()
