import hashlib
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select

from pulse.events.models import CicdEvent, DeploymentRecord, IncidentEvent, PrEvent
from pulse.metrics.models import PrCycle
from pulse.models.base import as_utc
from pulse.normalizers.common import extract_ticket_id, parse_timestamp
from pulse.normalizers.github import normalize_github
from pulse.normalizers.jira import normalize_jira

T0 = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)


def iso(moment: datetime) -> str:
    return moment.strftime("%Y-%m-%dT%H:%M:%SZ")


def envelope(install_id=1001, full_name="acme/payments-api", **body) -> dict:
    org, name = full_name.split("/")
    return {
        "installation": {"id": install_id},
        "repository": {"full_name": full_name, "name": name, "owner": {"login": org}},
        **body,
    }


def pull_request(number=7, moment=T0, merged=False, **extra) -> dict:
    return {
        "number": number,
        "title": "Refund flow",
        "body": "Implements the refund endpoint",
        "user": {"login": "alice"},
        "head": {"ref": "feature/PAY-12-refunds"},
        "base": {"ref": "main"},
        "created_at": iso(T0),
        "updated_at": iso(moment),
        "merged": merged,
        "additions": 120,
        "deletions": 30,
        "changed_files": 6,
        **extra,
    }


def review(state: str, login: str, moment: datetime, number=7) -> dict:
    return envelope(
        action="submitted",
        review={"state": state, "user": {"login": login}, "submitted_at": iso(moment)},
        pull_request=pull_request(number),
    )


async def count(db, model) -> int:
    return (await db.execute(select(func.count()).select_from(model))).scalar_one()


def test_extract_ticket_id_searches_in_order():
    assert extract_ticket_id("feature/PAY-12-refunds", "X-1 title") == "PAY-12"
    assert extract_ticket_id(None, "", "Fixes AB2-99 properly") == "AB2-99"
    assert extract_ticket_id("no ticket here", None) is None


def test_parse_timestamp_accepts_iso_and_epoch_ms():
    assert parse_timestamp("2024-05-01T09:00:00Z") == T0
    assert parse_timestamp(int(T0.timestamp() * 1000)) == T0
    assert parse_timestamp("2024-05-01T11:00:00+02:00") == T0


@pytest.mark.asyncio
async def test_pull_request_opened_is_normalized_once(db, streams):
    payload = envelope(action="opened", pull_request=pull_request())

    assert await normalize_github(db, payload, "pull_request") is True
    assert await normalize_github(db, payload, "pull_request") is False

    (event,) = (await db.execute(select(PrEvent))).scalars().all()
    assert event.event_type == "opened"
    assert event.repo_id == streams["repo_id"]
    assert event.tech_stream_id == streams["tech_stream_id"]
    assert event.linked_ticket_id == "PAY-12"
    assert event.author_hash == hashlib.sha256(b"alice").hexdigest()
    assert event.github_org == "acme"
    assert event.lines_added == 120


@pytest.mark.asyncio
async def test_unknown_installation_is_a_no_op(db, streams):
    payload = envelope(install_id=9999, action="opened", pull_request=pull_request())

    assert await normalize_github(db, payload, "pull_request") is False
    assert await count(db, PrEvent) == 0


@pytest.mark.asyncio
async def test_unknown_event_type_is_ignored(db, streams):
    assert await normalize_github(db, envelope(action="created"), "issue_comment") is False
    assert await normalize_github(db, envelope(action="synchronize", pull_request=pull_request()), "pull_request") is False


@pytest.mark.asyncio
async def test_merge_computes_pr_cycle(db, streams):
    await normalize_github(db, envelope(action="opened", pull_request=pull_request()), "pull_request")
    await normalize_github(db, review("commented", "bob", T0 + timedelta(hours=2)), "pull_request_review")
    await normalize_github(db, review("changes_requested", "bob", T0 + timedelta(hours=2, minutes=30)), "pull_request_review")
    await normalize_github(db, review("approved", "carol", T0 + timedelta(hours=3)), "pull_request_review")
    await normalize_github(
        db,
        envelope(action="closed", pull_request=pull_request(moment=T0 + timedelta(hours=5), merged=True)),
        "pull_request",
    )

    cycle = (await db.execute(select(PrCycle))).scalar_one()
    assert cycle.pr_number == 7
    assert cycle.time_to_first_review_hrs == pytest.approx(2.0)
    assert cycle.time_to_merge_hrs == pytest.approx(5.0)
    assert as_utc(cycle.approved_at) == T0 + timedelta(hours=3)
    assert cycle.review_rounds == 1
    assert cycle.reviewer_count == 2
    assert cycle.lines_changed == 150
    assert cycle.files_changed == 6
    assert cycle.linked_ticket_id == "PAY-12"


@pytest.mark.asyncio
async def test_review_delivered_after_merge_refreshes_pr_cycle(db, streams):
    await normalize_github(db, envelope(action="opened", pull_request=pull_request()), "pull_request")
    await normalize_github(
        db,
        envelope(action="closed", pull_request=pull_request(moment=T0 + timedelta(hours=5), merged=True)),
        "pull_request",
    )
    cycle = (await db.execute(select(PrCycle))).scalar_one()
    assert cycle.review_rounds is None
    assert cycle.time_to_first_review_hrs is None

    await normalize_github(db, review("commented", "bob", T0 + timedelta(hours=1)), "pull_request_review")

    cycle = (await db.execute(select(PrCycle))).scalar_one()
    assert cycle.review_rounds == 1
    assert cycle.time_to_first_review_hrs == pytest.approx(1.0)
    assert cycle.reviewer_count == 1


@pytest.mark.asyncio
async def test_opened_delivered_after_merge_creates_pr_cycle(db, streams):
    await normalize_github(
        db,
        envelope(action="closed", pull_request=pull_request(moment=T0 + timedelta(hours=4), merged=True)),
        "pull_request",
    )
    assert await count(db, PrCycle) == 0

    await normalize_github(db, envelope(action="opened", pull_request=pull_request()), "pull_request")

    cycle = (await db.execute(select(PrCycle))).scalar_one()
    assert cycle.time_to_merge_hrs == pytest.approx(4.0)


@pytest.mark.asyncio
async def test_review_before_merge_writes_no_cycle(db, streams):
    await normalize_github(db, envelope(action="opened", pull_request=pull_request()), "pull_request")
    await normalize_github(db, review("approved", "carol", T0 + timedelta(hours=1)), "pull_request_review")

    assert await count(db, PrCycle) == 0


@pytest.mark.asyncio
async def test_pull_request_takes_delivery_stream_from_linked_ticket(db, streams):
    await normalize_jira(
        db,
        {
            "webhookEvent": "jira:issue_created",
            "timestamp": int((T0 - timedelta(days=1)).timestamp() * 1000),
            "issue": {"key": "PAY-12", "fields": {"customfield_delivery_stream": "payments"}},
        },
    )

    await normalize_github(db, envelope(action="opened", pull_request=pull_request()), "pull_request")
    await normalize_github(
        db,
        envelope(action="closed", pull_request=pull_request(moment=T0 + timedelta(hours=2), merged=True)),
        "pull_request",
    )

    events = (await db.execute(select(PrEvent))).scalars().all()
    assert {e.delivery_stream_id for e in events} == {streams["delivery_stream_id"]}
    cycle = (await db.execute(select(PrCycle))).scalar_one()
    assert cycle.linked_ticket_id == "PAY-12"
    assert cycle.delivery_stream_id == streams["delivery_stream_id"]


@pytest.mark.asyncio
async def test_closed_without_opened_event_has_no_cycle(db, streams):
    await normalize_github(
        db,
        envelope(action="closed", pull_request=pull_request(moment=T0 + timedelta(hours=1))),
        "pull_request",
    )

    (event,) = (await db.execute(select(PrEvent))).scalars().all()
    assert event.event_type == "closed"
    assert await count(db, PrCycle) == 0


@pytest.mark.asyncio
async def test_workflow_run_completed_becomes_build_event(db, streams):
    payload = envelope(
        action="completed",
        workflow_run={
            "id": 555,
            "workflow_id": 12,
            "conclusion": "success",
            "head_sha": "abc123",
            "updated_at": iso(T0),
        },
    )

    assert await normalize_github(db, payload, "workflow_run") is True
    assert await normalize_github(db, payload, "workflow_run") is False

    (event,) = (await db.execute(select(CicdEvent))).scalars().all()
    assert event.event_type == "build_completed"
    assert event.pipeline_run_id == "555"
    assert event.status == "success"


@pytest.mark.asyncio
async def test_production_deployment_status_creates_record_and_links_incident(db, streams):
    db.add(
        IncidentEvent(
            event_type="alarm_triggered",
            incident_id="INC-1",
            service_name="payments-api",
            tech_stream_id=streams["tech_stream_id"],
            occurred_at=T0 + timedelta(minutes=20),
        )
    )
    await db.flush()

    payload = envelope(
        action="created",
        deployment={"id": 9001, "sha": "abc123", "environment": "production"},
        deployment_status={"id": 1, "state": "success", "environment": "production", "created_at": iso(T0)},
    )

    assert await normalize_github(db, payload, "deployment_status") is True
    await normalize_github(db, payload, "deployment_status")

    (record,) = (await db.execute(select(DeploymentRecord))).scalars().all()
    assert record.environment == "production"
    assert record.commit_sha == "abc123"
    assert record.repo_id == streams["repo_id"]
    assert record.caused_incident is True
    assert record.incident_id == "INC-1"
    assert await count(db, CicdEvent) == 1


@pytest.mark.asyncio
async def test_staging_deployment_status_creates_no_record(db, streams):
    payload = envelope(
        action="created",
        deployment={"id": 9002, "sha": "def456", "environment": "staging"},
        deployment_status={"id": 2, "state": "success", "environment": "staging", "created_at": iso(T0)},
    )

    await normalize_github(db, payload, "deployment_status")

    assert await count(db, DeploymentRecord) == 0
    (event,) = (await db.execute(select(CicdEvent))).scalars().all()
    assert event.event_type == "deploy_completed"
    assert event.environment == "staging"
