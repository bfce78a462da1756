"""Primary/contingency endpoint selection for the destination."""

from __future__ import annotations

import logging
from enum import StrEnum

_logger = logging.getLogger(__name__)


class EndpointRole(StrEnum):
    PRIMARY = "primary"
    CONTINGENCY = "contingency"


class EndpointFailover:
    """Track the active destination endpoint and apply the swap policy.

    * Transient failures on the primary are counted; reaching ``threshold``
      switches to the contingency endpoint and resets the counter.
    * Transient failures on the contingency keep it active.
    * An authentication failure on the contingency reverts to the primary.
    * An authentication failure on the primary changes nothing.
    * A successful login or write on the primary resets the counter.

    Without a contingency URL the controller stays on the primary forever.
    A ``threshold`` of 1 or less swaps on the first transient failure.
    """

    def __init__(self, primary: str, contingency: str | None = None, *, threshold: int = 2) -> None:
        self._urls = {EndpointRole.PRIMARY: primary, EndpointRole.CONTINGENCY: contingency}
        self._threshold = max(1, threshold)
        self._role = EndpointRole.PRIMARY
        self._failures = 0

    @property
    def role(self) -> EndpointRole:
        return self._role

    @property
    def active_url(self) -> str:
        url = self._urls[self._role]
        assert url is not None  # noqa: S101
        return url

    @property
    def failure_count(self) -> int:
        return self._failures

    @property
    def threshold(self) -> int:
        return self._threshold

    @property
    def has_contingency(self) -> bool:
        return bool(self._urls[EndpointRole.CONTINGENCY])

    def _switch(self, role: EndpointRole) -> None:
        _logger.warning("Switching destination endpoint %s -> %s (%s)", self._role, role, self._urls[role])
        self._role = role
        self._failures = 0

    def record_transient_failure(self) -> bool:
        """Count a network failure; return True when the endpoint changed."""
        if self._role is EndpointRole.CONTINGENCY:
            _logger.info("Transient failure on contingency endpoint; staying")
            return False
        if not self.has_contingency:
            return False
        self._failures += 1
        _logger.info("Transient failure on primary endpoint (%d/%d)", self._failures, self._threshold)
        if self._failures >= self._threshold:
            self._switch(EndpointRole.CONTINGENCY)
            return True
        return False

    def record_auth_failure(self) -> bool:
        """Apply an authentication rejection; return True when the endpoint changed."""
        if self._role is EndpointRole.CONTINGENCY:
            self._switch(EndpointRole.PRIMARY)
            return True
        return False

    def record_login_success(self) -> None:
        if self._role is EndpointRole.PRIMARY:
            self._failures = 0

    def record_success(self) -> None:
        if self._role is EndpointRole.PRIMARY:
            self._failures = 0
