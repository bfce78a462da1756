from __future__ import annotations

import asyncio

import pytest
from conftest import CONTINGENCY, PRIMARY, TZ, FakeLoginSource, FakeSankhya, FakeSource, make_config, tag, vehicle

from fleetsync.context import SyncContext
from fleetsync.exceptions import ErrorKind, UpstreamAuthError, UpstreamTransientError
from fleetsync.models.status import JobState
from fleetsync.state.failover import EndpointRole
from fleetsync.state.status import StatusBoard
from fleetsync.sync.destination import DestinationGateway
from fleetsync.sync.job import LoginSource, SyncJob


@pytest.mark.asyncio
async def test_new_vehicle_position_is_committed(context: SyncContext, sankhya: FakeSankhya) -> None:
    sankhya.vehicles = {"ABC1234": 101}
    source = FakeLoginSource()
    source.batches = [[vehicle("ABC1234", "2025-11-03 11:38:12", ignition=True)]]
    job = SyncJob(source, context)

    outcome = await job.run_cycle()

    assert outcome.success
    assert outcome.committed == 1
    rows = sankhya.saved_rows("AD_LOCATCAR")
    assert rows[0]["foreignKey"] == {"CODVEICULO": "101"}
    assert rows[0]["values"]["9"] == "S"
    assert rows[0]["values"]["3"] == "03/11/2025 11:38:12"
    assert job.cache.is_empty
    assert context.status.get("Atualcargo").state is JobState.IDLE


@pytest.mark.asyncio
async def test_older_position_is_ignored_and_batch_discarded(context: SyncContext, sankhya: FakeSankhya) -> None:
    sankhya.vehicles = {"ABC1234": 101}
    sankhya.history["AD_LOCATCAR"] = {101: "03112025 12:00:00"}
    source = FakeLoginSource()
    source.batches = [[vehicle("ABC1234", "2025-11-03 11:38:12", ignition=True)]]
    job = SyncJob(source, context)

    outcome = await job.run_cycle()

    assert outcome.success
    assert outcome.committed == 0
    assert sankhya.saved == []
    assert job.cache.is_empty


@pytest.mark.asyncio
async def test_unregistered_tag_is_dropped(context: SyncContext, sankhya: FakeSankhya) -> None:
    sankhya.tags = {("2", "1111"): 9}
    source = FakeLoginSource()
    source.batches = [[tag("ISCA3969", "2025-11-03 11:38:12")]]
    job = SyncJob(source, context)

    outcome = await job.run_cycle()

    assert outcome.success
    assert outcome.committed == 0
    assert sankhya.saved_rows("AD_LOCATISC") == []


@pytest.mark.asyncio
async def test_session_rejected_on_write_keeps_cache_and_endpoint(context: SyncContext, sankhya: FakeSankhya) -> None:
    sankhya.vehicles = {"ABC1234": 101}
    sankhya.script["DatasetSP.save"] = ["unauthorized", "unauthorized"]
    source = FakeLoginSource()
    source.batches = [[vehicle("ABC1234", "2025-11-03 11:38:12", ignition=True)]]
    job = SyncJob(source, context)

    failed = await job.run_cycle()

    assert not failed.success
    assert failed.error_kind is ErrorKind.DESTINATION_AUTH
    assert job.cache.size == 1
    assert context.destination.failover.role is EndpointRole.PRIMARY
    assert context.destination.failover.failure_count == 0
    assert context.status.get("atualcargo").state is JobState.ERROR

    retried = await job.run_cycle()

    assert retried.success
    assert retried.from_cache
    assert source.fetch_calls == 1
    assert sankhya.logins[-1] == PRIMARY
    assert len(sankhya.saved_rows("AD_LOCATCAR")) == 1


@pytest.mark.asyncio
async def test_third_attempt_targets_contingency_with_same_batch(context: SyncContext, sankhya: FakeSankhya) -> None:
    sankhya.vehicles = {"ABC1234": 101}
    sankhya.down.add(PRIMARY)
    source = FakeLoginSource()
    batch = [vehicle("ABC1234", "2025-11-03 11:38:12")]
    source.batches = [batch]
    job = SyncJob(source, context)

    first = await job.run_cycle()
    second = await job.run_cycle()

    assert first.error_kind is ErrorKind.DESTINATION_TRANSIENT
    assert second.error_kind is ErrorKind.DESTINATION_TRANSIENT
    assert job.cache.get() == tuple(batch)
    assert context.destination.failover.role is EndpointRole.CONTINGENCY

    third = await job.run_cycle()

    assert third.success
    assert source.fetch_calls == 1
    assert sankhya.logins == [CONTINGENCY]
    assert {base for base, service in sankhya.calls if service == "DatasetSP.save"} == {CONTINGENCY}


@pytest.mark.asyncio
async def test_provider_auth_error_forces_relogin_and_discards_data(context: SyncContext, sankhya: FakeSankhya) -> None:
    source = FakeLoginSource()
    source.batches = [UpstreamAuthError("token rejected", source="Atualcargo"), []]
    job = SyncJob(source, context)

    failed = await job.run_cycle()
    assert failed.error_kind is ErrorKind.UPSTREAM_AUTH
    assert job.cache.is_empty
    assert job.sessions is not None and job.sessions.credential is None

    await job.run_cycle()
    assert source.login_calls == 2
    assert sankhya.calls == []


@pytest.mark.asyncio
async def test_provider_transient_error_keeps_token(context: SyncContext) -> None:
    source = FakeLoginSource()
    source.batches = [UpstreamTransientError("HTTP 429", source="Atualcargo"), []]
    job = SyncJob(source, context)

    failed = await job.run_cycle()
    ok = await job.run_cycle()

    assert failed.error_kind is ErrorKind.UPSTREAM_TRANSIENT
    assert ok.success and ok.message == "No positions received"
    assert source.login_calls == 1


@pytest.mark.asyncio
async def test_provider_login_failure_is_classified(context: SyncContext) -> None:
    source = FakeLoginSource()
    source.login_error = UpstreamAuthError("invalid api key", source="Atualcargo")
    job = SyncJob(source, context)

    outcome = await job.run_cycle()

    assert outcome.error_kind is ErrorKind.UPSTREAM_AUTH
    assert source.fetch_calls == 0


@pytest.mark.asyncio
async def test_erp_application_error_keeps_cache_without_failover(context: SyncContext, sankhya: FakeSankhya) -> None:
    sankhya.vehicles = {"ABC1234": 101}
    sankhya.script["DbExplorerSP.executeQuery"] = ["error"]
    source = FakeLoginSource()
    source.batches = [[vehicle("ABC1234", "2025-11-03 11:38:12")]]
    job = SyncJob(source, context)

    outcome = await job.run_cycle()

    assert outcome.error_kind is ErrorKind.OTHER
    assert job.cache.size == 1
    assert context.destination.failover.failure_count == 0


@pytest.mark.asyncio
async def test_wait_after_fresh_login_only(sankhya: FakeSankhya) -> None:
    config = make_config(wait_after_login=5.0)
    context = SyncContext(config=config, destination=DestinationGateway(config.destination, sankhya, TZ))
    slept: list[float] = []

    async def _sleep(seconds: float) -> None:
        slept.append(seconds)

    source = FakeLoginSource()
    source.batches = [[], []]
    job = SyncJob(source, context, sleep=_sleep)

    await job.run_cycle()
    await job.run_cycle()

    assert slept == [5.0]


@pytest.mark.asyncio
async def test_stateless_source_fetches_without_login(context: SyncContext, sankhya: FakeSankhya) -> None:
    sankhya.tags = {("3", "3969"): 55}
    source = FakeSource()
    source.batches = [[tag("ISCA3969", "2025-11-03 11:38:12")]]
    job = SyncJob(source, context)

    outcome = await job.run_cycle()

    assert outcome.committed == 1
    assert job.sessions is None
    assert source.credentials_seen == [None]
    assert not isinstance(source, LoginSource)


@pytest.mark.asyncio
async def test_jobs_share_one_erp_login(sankhya: FakeSankhya) -> None:
    config = make_config()
    context = SyncContext(
        config=config,
        destination=DestinationGateway(config.destination, sankhya, TZ),
        status=StatusBoard(),
    )
    sankhya.vehicles = {"ABC1234": 101}
    sankhya.tags = {("3", "3969"): 55}
    atualcargo = FakeLoginSource()
    atualcargo.batches = [[vehicle("ABC1234", "2025-11-03 11:38:12")]]
    sitrax = FakeSource()
    sitrax.batches = [[tag("ISCA3969", "2025-11-03 11:38:12")]]

    outcomes = await asyncio.gather(SyncJob(atualcargo, context).run_cycle(), SyncJob(sitrax, context).run_cycle())

    assert all(outcome.success for outcome in outcomes)
    assert sankhya.logins == [PRIMARY]
    assert set(context.status.snapshot()) == {"atualcargo", "sitrax"}
