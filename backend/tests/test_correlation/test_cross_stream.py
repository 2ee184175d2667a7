from datetime import datetime, timedelta, timezone

import numpy as np
import pytest
from sqlalchemy import select

from pulse.correlation.models import CrossStreamCorrelation
from pulse.correlation.service import (
    DEFAULT_THRESHOLDS,
    classify_severity,
    compute_for_tech_stream,
    load_thresholds,
    materialize_correlations,
)
from pulse.events.models import WorkItemEvent
from pulse.platform_settings.schemas import SeverityThreshold
from pulse.platform_settings.service import SEVERITY_THRESHOLDS_KEY, put_setting
from pulse.streams.models import DeliveryStream, TechStream

NOW = datetime(2024, 5, 15, 12, 0, tzinfo=timezone.utc)
RULES = DEFAULT_THRESHOLDS.rules


def blocked(ticket_id: str, delivery_stream_id, tech_stream_id, days_ago: int = 1) -> WorkItemEvent:
    return WorkItemEvent(
        ticket_id=ticket_id,
        event_type="blocked",
        delivery_stream_id=delivery_stream_id,
        blocking_tech_stream_id=tech_stream_id,
        event_timestamp=NOW - timedelta(days=days_ago),
    )


@pytest.mark.parametrize(
    ("impacted", "confidence", "expected"),
    [
        (3, 50, "critical"),
        (1, 90, "low"),
        (0, 10, "none"),
        (3, 60, "high"),
        (2, 65, "high"),
        (2, 80, "medium"),
        (1, 60, "medium"),
        (4, None, "critical"),
    ],
)
def test_classify_severity_with_default_rules(impacted, confidence, expected):
    assert classify_severity(impacted, confidence, RULES) == expected


def test_classify_severity_first_match_wins():
    rules = [
        SeverityThreshold(min_streams=1, max_confidence=None, severity="medium"),
        SeverityThreshold(min_streams=1, max_confidence=50, severity="critical"),
    ]
    assert classify_severity(5, 10, rules) == "medium"


def test_classify_severity_falls_back_to_low():
    rules = [SeverityThreshold(min_streams=5, max_confidence=None, severity="critical")]
    assert classify_severity(2, 10, rules) == "low"


@pytest.mark.asyncio
async def test_compute_for_tech_stream_counts_blocks_and_impacted_streams(db, streams):
    lending = DeliveryStream(name="lending")
    db.add(lending)
    await db.flush()
    tech_stream_id = streams["tech_stream_id"]
    db.add_all(
        [
            blocked("PAY-1", streams["delivery_stream_id"], tech_stream_id),
            blocked("PAY-2", streams["delivery_stream_id"], tech_stream_id, days_ago=3),
            blocked("LEND-1", lending.id, tech_stream_id),
            blocked("LEND-2", lending.id, tech_stream_id, days_ago=20),
            blocked("PAY-3", streams["delivery_stream_id"], None),
        ]
    )
    await db.commit()

    result = await compute_for_tech_stream(db, tech_stream_id, RULES, NOW, rng=np.random.default_rng(1))

    assert result.block_count_14d == 3
    assert set(result.impacted_delivery_stream_ids) == {streams["delivery_stream_id"], lending.id}
    # Neither stream has an active sprint, so both report zero confidence
    assert result.avg_confidence_pct == 0
    assert result.severity == "high"


@pytest.mark.asyncio
async def test_compute_for_tech_stream_without_blocks(db, streams):
    result = await compute_for_tech_stream(db, streams["tech_stream_id"], RULES, NOW)

    assert result.severity == "none"
    assert result.block_count_14d == 0
    assert result.avg_confidence_pct is None


@pytest.mark.asyncio
async def test_materialize_correlations_upserts_per_tech_stream(db, streams):
    db.add(TechStream(name="data"))
    db.add(blocked("PAY-1", streams["delivery_stream_id"], streams["tech_stream_id"]))
    await db.commit()

    assert await materialize_correlations(db, NOW) == {"written": 2, "failed": 0}
    assert await materialize_correlations(db, NOW + timedelta(hours=1)) == {"written": 2, "failed": 0}

    rows = list((await db.execute(select(CrossStreamCorrelation))).scalars().all())
    assert len(rows) == 2
    by_stream = {row.tech_stream_id: row for row in rows}
    platform = by_stream[streams["tech_stream_id"]]
    assert platform.severity == "medium"
    assert platform.block_count_14d == 1
    assert platform.impacted_delivery_streams == [str(streams["delivery_stream_id"])]


@pytest.mark.asyncio
async def test_materialize_correlations_uses_stored_thresholds(db, streams):
    await put_setting(
        db,
        SEVERITY_THRESHOLDS_KEY,
        {"version": 1, "rules": [{"min_streams": 1, "max_confidence": None, "severity": "critical"}]},
    )
    db.add(blocked("PAY-1", streams["delivery_stream_id"], streams["tech_stream_id"]))
    await db.commit()

    assert [rule.severity for rule in await load_thresholds(db)] == ["critical"]

    await materialize_correlations(db, NOW)

    row = (
        await db.execute(
            select(CrossStreamCorrelation).where(CrossStreamCorrelation.tech_stream_id == streams["tech_stream_id"])
        )
    ).scalar_one()
    assert row.severity == "critical"


@pytest.mark.asyncio
async def test_load_thresholds_defaults_when_unset(db):
    assert await load_thresholds(db) == RULES
