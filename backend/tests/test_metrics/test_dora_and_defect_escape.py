from datetime import datetime, timedelta, timezone

import pytest

from pulse.events.models import DefectEvent, DeploymentRecord, IncidentEvent
from pulse.metrics.service import defect_escape_rate, dora_metrics

NOW = datetime(2024, 5, 15, 12, 0, tzinfo=timezone.utc)


def deploy(streams: dict, days_ago: int, lead_time_hrs=None, caused_incident=False, environment="production"):
    return DeploymentRecord(
        tech_stream_id=streams["tech_stream_id"],
        environment=environment,
        status="success",
        lead_time_hrs=lead_time_hrs,
        caused_incident=caused_incident,
        deployed_at=NOW - timedelta(days=days_ago),
    )


def incident(streams: dict, incident_id: str, days_ago: int, time_to_restore_min=None):
    return IncidentEvent(
        event_type="resolved" if time_to_restore_min is not None else "alarm_triggered",
        incident_id=incident_id,
        service_name="payments-api",
        tech_stream_id=streams["tech_stream_id"],
        time_to_restore_min=time_to_restore_min,
        occurred_at=NOW - timedelta(days=days_ago),
    )


def defect(ticket_id: str, found: str, days_ago: int, introduced: str | None = None, stream_id=None):
    return DefectEvent(
        ticket_id=ticket_id,
        event_type="logged",
        found_in_stage=found,
        introduced_in_stage=introduced,
        delivery_stream_id=stream_id,
        event_timestamp=NOW - timedelta(days=days_ago),
    )


@pytest.mark.asyncio
async def test_dora_metrics_over_production_deploys_in_window(db, streams):
    db.add_all(
        [
            deploy(streams, 1, lead_time_hrs=2.0),
            deploy(streams, 5, lead_time_hrs=4.0, caused_incident=True),
            deploy(streams, 10, lead_time_hrs=6.0),
            deploy(streams, 20),
            deploy(streams, 3, lead_time_hrs=100.0, environment="staging"),
            deploy(streams, 40, lead_time_hrs=100.0, caused_incident=True),
            incident(streams, "INC-1", 2, time_to_restore_min=30),
            incident(streams, "INC-2", 6, time_to_restore_min=60),
            incident(streams, "INC-3", 9, time_to_restore_min=120),
            incident(streams, "INC-4", 1),
            incident(streams, "INC-5", 45, time_to_restore_min=999),
        ]
    )
    await db.commit()

    result = await dora_metrics(db, streams["tech_stream_id"], window_days=28, now=NOW)

    assert result.deployment_count == 4
    assert result.deployment_frequency_per_week == pytest.approx(1.0)
    assert result.change_failure_rate_pct == pytest.approx(25.0)
    assert result.time_to_restore_median_min == pytest.approx(60.0)
    assert result.time_to_restore_mean_min == pytest.approx(70.0)
    assert result.lead_time_p50_hrs == pytest.approx(4.0)
    assert result.lead_time_p85_hrs == pytest.approx(5.4)


@pytest.mark.asyncio
async def test_dora_metrics_without_deploys(db, streams):
    result = await dora_metrics(db, streams["tech_stream_id"], now=NOW)

    assert result.deployment_count == 0
    assert result.deployment_frequency_per_week == 0.0
    assert result.change_failure_rate_pct == 0.0
    assert result.time_to_restore_median_min == 0.0
    assert result.time_to_restore_mean_min == 0.0
    assert result.lead_time_p50_hrs is None
    assert result.lead_time_p85_hrs is None


@pytest.mark.asyncio
async def test_defect_escape_rate_uses_latest_event_per_ticket(db, streams):
    payments = streams["delivery_stream_id"]
    db.add_all(
        [
            defect("PAY-1", "qa", 5, introduced="ba", stream_id=payments),
            defect("PAY-1", "uat", 2, introduced="ba", stream_id=payments),
            defect("PAY-2", "production", 3, introduced="dev", stream_id=payments),
            defect("PAY-3", "qa", 4, introduced="dev", stream_id=payments),
            defect("PAY-4", "dev", 1, stream_id=payments),
            defect("OPS-1", "production", 1),
            defect("PAY-5", "production", 40, introduced="dev", stream_id=payments),
        ]
    )
    await db.commit()

    scoped = await defect_escape_rate(db, payments, now=NOW)

    assert scoped.count == 4
    assert scoped.escape_rate_pct == pytest.approx(50.0)
    assert scoped.unattributed_count == 1
    assert scoped.unattributed_pct == pytest.approx(25.0)
    assert {(p.introduced_in, p.found_in, p.count) for p in scoped.stage_pair_matrix} == {
        ("ba", "uat", 1),
        ("dev", "production", 1),
        ("dev", "qa", 1),
    }

    everything = await defect_escape_rate(db, now=NOW)
    assert everything.count == 5
    assert everything.escape_rate_pct == pytest.approx(60.0)
    assert everything.unattributed_count == 2


@pytest.mark.asyncio
async def test_defect_escape_rate_empty(db, streams):
    result = await defect_escape_rate(db, streams["delivery_stream_id"], now=NOW)

    assert result.count == 0
    assert result.escape_rate_pct == 0.0
    assert result.stage_pair_matrix == []
