from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from pulse.events.models import DefectEvent, WorkItemEvent
from pulse.metrics.models import WorkItemCycle
from pulse.models.base import as_utc
from pulse.normalizers.common import MalformedEvent
from pulse.normalizers.jira import classify_changelog, normalize_jira, severity_for_priority

T0 = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)


def epoch_ms(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


def jira_payload(
    ticket_id: str,
    moment: datetime,
    webhook_event: str = "jira:issue_updated",
    items: list[dict] | None = None,
    **fields,
) -> dict:
    payload = {
        "webhookEvent": webhook_event,
        "timestamp": epoch_ms(moment),
        "issue": {
            "key": ticket_id,
            "fields": {
                "issuetype": {"name": fields.pop("issuetype", "Story")},
                "priority": {"name": fields.pop("priority", "Medium")},
                "customfield_delivery_stream": "payments",
                **fields,
            },
        },
    }
    if items is not None:
        payload["changelog"] = {"items": items}
    return payload


def status_change(from_status: str | None, to_status: str) -> dict:
    return {"field": "status", "fromString": from_status, "toString": to_status}


async def events_for(db, ticket_id: str) -> list[WorkItemEvent]:
    result = await db.execute(
        select(WorkItemEvent).where(WorkItemEvent.ticket_id == ticket_id).order_by(WorkItemEvent.event_timestamp)
    )
    return list(result.scalars().all())


def test_classify_changelog_maps_each_item_type():
    items = [
        status_change("In Progress", "Done"),
        {"field": "resolution", "fromString": None, "toString": "Done"},
        {"field": "assignee", "toString": "someone"},
    ]

    found = [event_type for event_type, _ in classify_changelog("jira:issue_updated", {"items": items})]

    assert found == ["transitioned", "completed"]


def test_classify_changelog_flag_set_and_cleared():
    blocked = classify_changelog(
        "jira:issue_updated", {"items": [{"field": "Flagged", "fromString": None, "toString": "Impediment"}]}
    )
    cleared = classify_changelog(
        "jira:issue_updated", {"items": [{"field": "Flagged", "fromString": "Impediment", "toString": ""}]}
    )

    assert [t for t, _ in blocked] == ["blocked"]
    assert [t for t, _ in cleared] == ["unblocked"]


def test_classify_changelog_ignores_unknown_events():
    assert classify_changelog("jira:issue_deleted", None) == []
    assert classify_changelog("jira:issue_updated", None) == []
    assert classify_changelog("jira:issue_created", None) == [("created", None)]


def test_severity_for_priority():
    assert severity_for_priority("High") == "high"
    assert severity_for_priority("Blocker") is None
    assert severity_for_priority(None) is None


@pytest.mark.asyncio
async def test_created_event_is_written_once(db, streams):
    payload = jira_payload("PAY-1", T0, webhook_event="jira:issue_created", story_points=3)

    assert await normalize_jira(db, payload) == 1
    assert await normalize_jira(db, payload) == 0

    events = await events_for(db, "PAY-1")
    assert len(events) == 1
    assert events[0].event_type == "created"
    assert events[0].story_points == 3
    assert events[0].delivery_stream_id == streams["delivery_stream_id"]
    assert as_utc(events[0].event_timestamp) == T0


@pytest.mark.asyncio
async def test_transition_resolves_stages(db, streams):
    await normalize_jira(db, jira_payload("PAY-2", T0, items=[status_change("In Progress", "In Review")]))

    (event,) = await events_for(db, "PAY-2")
    assert event.event_type == "transitioned"
    assert event.from_status == "In Progress"
    assert event.to_status == "In Review"
    assert event.from_stage == "dev"
    assert event.to_stage == "code_review"


@pytest.mark.asyncio
async def test_unmapped_status_is_stored_with_null_stage(db, streams):
    await normalize_jira(db, jira_payload("PAY-3", T0, items=[status_change("In Progress", "Waiting on Vendor")]))

    (event,) = await events_for(db, "PAY-3")
    assert event.to_status == "Waiting on Vendor"
    assert event.to_stage is None
    assert event.from_stage == "dev"


@pytest.mark.asyncio
async def test_blocked_event_names_the_blocking_tech_stream(db, streams):
    payload = jira_payload(
        "PAY-4",
        T0,
        items=[{"field": "Flagged", "fromString": None, "toString": "Impediment"}],
        customfield_blocking_tech_stream="platform",
        customfield_blocked_reason="Waiting for the new ledger API",
    )

    await normalize_jira(db, payload)
    await normalize_jira(
        db,
        jira_payload("PAY-4", T0 + timedelta(hours=4), items=[{"field": "Flagged", "fromString": "Impediment"}]),
    )

    blocked, unblocked = await events_for(db, "PAY-4")
    assert blocked.event_type == "blocked"
    assert blocked.blocking_tech_stream_id == streams["tech_stream_id"]
    assert blocked.blocked_reason == "Waiting for the new ledger API"
    assert unblocked.event_type == "unblocked"


@pytest.mark.asyncio
async def test_bug_creation_logs_a_defect(db, streams):
    payload = jira_payload(
        "PAY-5",
        T0,
        webhook_event="jira:issue_created",
        issuetype="Bug",
        priority="High",
        customfield_found_in_stage="uat",
    )

    await normalize_jira(db, payload)
    await normalize_jira(db, payload)

    defects = list((await db.execute(select(DefectEvent))).scalars().all())
    assert len(defects) == 1
    assert defects[0].ticket_id == "PAY-5"
    assert defects[0].severity == "high"
    assert defects[0].found_in_stage == "uat"


@pytest.mark.asyncio
async def test_completion_computes_work_item_cycle(db, streams):
    await normalize_jira(db, jira_payload("PAY-6", T0, webhook_event="jira:issue_created"))
    await normalize_jira(db, jira_payload("PAY-6", T0 + timedelta(days=1), items=[status_change("Backlog", "In Progress")]))
    await normalize_jira(db, jira_payload("PAY-6", T0 + timedelta(days=3), items=[status_change("In Progress", "In Review")]))
    await normalize_jira(db, jira_payload("PAY-6", T0 + timedelta(days=4), items=[status_change("In Review", "QA")]))
    await normalize_jira(
        db,
        jira_payload(
            "PAY-6",
            T0 + timedelta(days=5),
            items=[status_change("QA", "Done"), {"field": "resolution", "fromString": None, "toString": "Done"}],
        ),
    )

    cycle = (await db.execute(select(WorkItemCycle).where(WorkItemCycle.ticket_id == "PAY-6"))).scalar_one()
    assert cycle.lead_time_days == pytest.approx(5.0)
    assert cycle.cycle_time_days == pytest.approx(4.0)
    assert cycle.active_time_days == pytest.approx(3.0)
    assert cycle.wait_time_days == pytest.approx(1.0)
    assert cycle.flow_efficiency_pct == pytest.approx(75.0)
    assert cycle.stage_durations["dev"] == pytest.approx(2.0)
    assert cycle.stage_durations["code_review"] == pytest.approx(1.0)
    assert as_utc(cycle.first_in_progress) == T0 + timedelta(days=1)
    assert cycle.delivery_stream_id == streams["delivery_stream_id"]


@pytest.mark.asyncio
async def test_transition_delivered_after_completion_refreshes_cycle(db, streams):
    await normalize_jira(db, jira_payload("PAY-9", T0, webhook_event="jira:issue_created"))
    await normalize_jira(
        db,
        jira_payload(
            "PAY-9",
            T0 + timedelta(days=4),
            items=[status_change("In Progress", "Done"), {"field": "resolution", "fromString": None, "toString": "Done"}],
        ),
    )
    cycle = (await db.execute(select(WorkItemCycle).where(WorkItemCycle.ticket_id == "PAY-9"))).scalar_one()
    assert cycle.cycle_time_days == pytest.approx(0.0)
    assert cycle.first_in_progress is None

    await normalize_jira(db, jira_payload("PAY-9", T0 + timedelta(days=1), items=[status_change("Backlog", "In Progress")]))

    cycle = (await db.execute(select(WorkItemCycle).where(WorkItemCycle.ticket_id == "PAY-9"))).scalar_one()
    assert cycle.cycle_time_days == pytest.approx(3.0)
    assert cycle.active_time_days == pytest.approx(3.0)
    assert as_utc(cycle.first_in_progress) == T0 + timedelta(days=1)


@pytest.mark.asyncio
async def test_events_before_completion_write_no_cycle(db, streams):
    await normalize_jira(db, jira_payload("PAY-10", T0, webhook_event="jira:issue_created"))
    await normalize_jira(db, jira_payload("PAY-10", T0 + timedelta(days=1), items=[status_change("Backlog", "In Progress")]))

    assert (await db.execute(select(WorkItemCycle))).scalars().all() == []


@pytest.mark.asyncio
async def test_ignored_webhook_writes_nothing(db, streams):
    payload = jira_payload("PAY-7", T0, items=[{"field": "assignee", "toString": "someone"}])

    assert await normalize_jira(db, payload) == 0
    assert await events_for(db, "PAY-7") == []


@pytest.mark.asyncio
async def test_missing_issue_key_is_malformed(db, streams):
    payload = jira_payload("PAY-8", T0, webhook_event="jira:issue_created")
    payload["issue"].pop("key")

    with pytest.raises(MalformedEvent):
        await normalize_jira(db, payload)
