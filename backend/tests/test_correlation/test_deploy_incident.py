from datetime import datetime, timedelta, timezone

import pytest

from pulse.correlation.deploy_incident import on_deploy, on_incident_resolved
from pulse.events.models import DeploymentRecord, IncidentEvent

DEPLOYED_AT = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)


def deploy(streams: dict, deployed_at=DEPLOYED_AT, environment="production", sha="abc123") -> DeploymentRecord:
    return DeploymentRecord(
        tech_stream_id=streams["tech_stream_id"],
        repo_id=streams["repo_id"],
        environment=environment,
        status="success",
        commit_sha=sha,
        deployed_at=deployed_at,
        caused_incident=False,
    )


def incident(streams: dict, occurred_at: datetime, incident_id="INC-1", event_type="alarm_triggered") -> IncidentEvent:
    return IncidentEvent(
        event_type=event_type,
        incident_id=incident_id,
        service_name="payments-api",
        tech_stream_id=streams["tech_stream_id"],
        occurred_at=occurred_at,
    )


@pytest.mark.asyncio
async def test_incident_exactly_at_window_end_is_linked(db, streams):
    record = deploy(streams)
    db.add_all([record, incident(streams, DEPLOYED_AT + timedelta(minutes=60))])
    await db.flush()

    linked = await on_deploy(db, record)

    assert linked is not None
    assert record.caused_incident is True
    assert record.incident_id == "INC-1"


@pytest.mark.asyncio
async def test_incident_one_minute_past_window_is_not_linked(db, streams):
    record = deploy(streams)
    db.add_all([record, incident(streams, DEPLOYED_AT + timedelta(minutes=61))])
    await db.flush()

    assert await on_deploy(db, record) is None
    assert record.caused_incident is False
    assert record.incident_id is None


@pytest.mark.asyncio
async def test_incident_before_deploy_is_not_linked(db, streams):
    record = deploy(streams)
    db.add_all([record, incident(streams, DEPLOYED_AT - timedelta(minutes=1))])
    await db.flush()

    assert await on_deploy(db, record) is None


@pytest.mark.asyncio
async def test_first_incident_in_window_wins(db, streams):
    record = deploy(streams)
    db.add_all(
        [
            record,
            incident(streams, DEPLOYED_AT + timedelta(minutes=40), incident_id="INC-LATE"),
            incident(streams, DEPLOYED_AT + timedelta(minutes=5), incident_id="INC-EARLY"),
        ]
    )
    await db.flush()

    await on_deploy(db, record)

    assert record.incident_id == "INC-EARLY"


@pytest.mark.asyncio
async def test_non_production_deploys_are_never_linked(db, streams):
    record = deploy(streams, environment="staging")
    db.add_all([record, incident(streams, DEPLOYED_AT + timedelta(minutes=1))])
    await db.flush()

    assert await on_deploy(db, record) is None


@pytest.mark.asyncio
async def test_resolution_links_latest_production_deploy_both_ways(db, streams):
    older = deploy(streams, deployed_at=DEPLOYED_AT - timedelta(minutes=30), sha="old")
    newer = deploy(streams, deployed_at=DEPLOYED_AT, sha="new")
    staging = deploy(streams, deployed_at=DEPLOYED_AT + timedelta(minutes=10), environment="staging", sha="stg")
    resolved = incident(streams, DEPLOYED_AT + timedelta(minutes=20), event_type="alarm_resolved")
    db.add_all([older, newer, staging, resolved])
    await db.flush()

    linked = await on_incident_resolved(db, resolved)

    assert linked.id == newer.id
    assert newer.caused_incident is True
    assert resolved.related_deploy_id == newer.id
    assert older.caused_incident is False

    # Re-running writes the same link
    again = await on_incident_resolved(db, resolved)
    assert again.id == newer.id


@pytest.mark.asyncio
async def test_resolution_window_lower_bound_is_inclusive(db, streams):
    record = deploy(streams)
    resolved = incident(streams, DEPLOYED_AT + timedelta(minutes=60), event_type="incident_resolved")
    db.add_all([record, resolved])
    await db.flush()

    assert (await on_incident_resolved(db, resolved)).id == record.id

    late = incident(streams, DEPLOYED_AT + timedelta(minutes=61), incident_id="INC-2", event_type="incident_resolved")
    db.add(late)
    await db.flush()

    assert await on_incident_resolved(db, late) is None
