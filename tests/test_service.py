from __future__ import annotations

import pytest
from conftest import FakeSankhya, make_config

from fleetsync.config import AtualcargoConfig, SitraxConfig
from fleetsync.exceptions import (
    ConfigError,
    DestinationAuthError,
    DestinationError,
    DestinationSessionExpiredError,
    DestinationTransientError,
    ErrorKind,
    UpstreamAuthError,
    UpstreamError,
    UpstreamTransientError,
    classify_error,
)
from fleetsync.service import FleetSyncService


def _full_config():
    return make_config(
        atualcargo=AtualcargoConfig(url="https://api.atualcargo.example", api_key="k", username="u", password="p"),
        sitrax=SitraxConfig(url="https://sitrax.example/ws", login="ops", interval=120.0),
        error_delay=30.0,
    )


def test_build_creates_one_job_per_provider_sharing_the_gateway() -> None:
    service = FleetSyncService(_full_config())

    service.build(FakeSankhya())

    assert [job.name for job in service.jobs] == ["Atualcargo", "Sitrax"]
    assert service.jobs[0].sessions is not None
    assert service.jobs[1].sessions is None
    assert [loop.job for loop in service.loops] == service.jobs
    assert service.context.destination.failover.has_contingency


def test_build_without_providers_is_a_config_error() -> None:
    service = FleetSyncService(make_config())

    with pytest.raises(ConfigError):
        service.build(FakeSankhya())


@pytest.mark.asyncio
async def test_service_lifecycle_closes_owned_session() -> None:
    async with FleetSyncService(_full_config()) as service:
        assert len(service.jobs) == 2
        http_session = service._http_session
        assert http_session is not None

    assert http_session.closed


def test_classify_error() -> None:
    assert classify_error(UpstreamAuthError("x")) is ErrorKind.UPSTREAM_AUTH
    assert classify_error(UpstreamTransientError("x")) is ErrorKind.UPSTREAM_TRANSIENT
    assert classify_error(UpstreamError("x")) is ErrorKind.UPSTREAM_TRANSIENT
    assert classify_error(DestinationSessionExpiredError("x")) is ErrorKind.DESTINATION_AUTH
    assert classify_error(DestinationAuthError("x")) is ErrorKind.DESTINATION_AUTH
    assert classify_error(DestinationTransientError("x")) is ErrorKind.DESTINATION_TRANSIENT
    assert classify_error(DestinationError("x")) is ErrorKind.OTHER
    assert classify_error(ValueError("x")) is ErrorKind.OTHER
