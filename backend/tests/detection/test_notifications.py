"""
通知の作成と24時間抑制のテスト
"""
from unittest.mock import patch

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from app.models.notification import ChangeType, Notification
from app.schemas.detection import DetectedChange
from app.services.errors import NotificationPersistError
from app.services.notifications import (
    NotificationEmitter,
    extract_dimension_from_title,
    filter_suppressed,
    generate_notification_title,
    get_suppressed_keys,
)
from tests.conftest import DAY, NOW, seed_account


def _change(change_type: ChangeType, dimension: str) -> DetectedChange:
    return DetectedChange(type=change_type, dimension=dimension, explanation="why")


class TestTitles:

    @pytest.mark.parametrize(
        "change_type, dimension, expected",
        [
            (ChangeType.PERSONALITY_DRIFT, "thoughtLeader", "Personality Drift: thoughtLeader"),
            (ChangeType.ACTIVITY_ANOMALY, "tweets_per_day_spike", "Activity Anomaly: tweets_per_day_spike"),
            (ChangeType.NOTABLE_FOLLOWER_GAINED, "@bigname", "Notable New Follower: @bigname"),
            (ChangeType.FOLLOWER_DROP, "count", "Follower Loss: count"),
        ],
    )
    def test_title_format(self, change_type, dimension, expected):
        assert generate_notification_title(change_type, dimension) == expected

    def test_dimension_roundtrip_with_separator_inside(self):
        title = generate_notification_title(ChangeType.TOPIC_EMERGENCE, "AI: Agents")
        assert title == "New Topic: AI: Agents"
        assert extract_dimension_from_title(title) == "AI: Agents"

    def test_title_without_separator(self):
        assert extract_dimension_from_title("Untitled") == "Untitled"


class TestFilterSuppressed:

    def test_drops_matching_keys(self):
        changes = [
            _change(ChangeType.TOPIC_EMERGENCE, "Go"),
            _change(ChangeType.TOPIC_ABANDONMENT, "Go"),
        ]
        kept, dropped = filter_suppressed(changes, {"topic_emergence:Go"})

        assert [c.type for c in kept] == [ChangeType.TOPIC_ABANDONMENT]
        assert dropped == 1


class TestSuppressionWindow:

    @pytest.mark.asyncio
    async def test_window_boundary(self, db_session):
        account = await seed_account(db_session)
        db_session.add_all(
            [
                Notification(
                    account_id=account.id,
                    title="Personality Drift: formal",
                    explanation="x",
                    change_type="personality_drift",
                    created_at=NOW - DAY,
                ),
                Notification(
                    account_id=account.id,
                    title="New Topic: Go",
                    explanation="x",
                    change_type="topic_emergence",
                    created_at=NOW - DAY - 1,
                ),
            ]
        )
        await db_session.commit()

        keys = await get_suppressed_keys(db_session, account.id, now=NOW)
        assert keys == {"personality_drift:formal"}

    @pytest.mark.asyncio
    async def test_scoped_to_account(self, db_session):
        alice = await seed_account(db_session, "alice")
        bob = await seed_account(db_session, "bob")
        await NotificationEmitter(db_session).emit(
            alice.id, [_change(ChangeType.FOLLOWER_SPIKE, "count")], now=NOW
        )

        assert await get_suppressed_keys(db_session, bob.id, now=NOW) == set()
        assert await get_suppressed_keys(db_session, alice.id, now=NOW) == {"follower_spike:count"}


class TestEmitter:

    @pytest.mark.asyncio
    async def test_emit_preserves_order(self, db_session):
        account = await seed_account(db_session)
        changes = [
            _change(ChangeType.FOLLOWER_SPIKE, "count"),
            _change(ChangeType.NEW_MUTUAL_CONNECTION, "@friend"),
        ]

        ids = await NotificationEmitter(db_session).emit(account.id, changes, now=NOW)

        assert len(ids) == 2
        rows = {
            row.id: row
            for row in (await db_session.execute(select(Notification))).scalars().all()
        }
        assert rows[ids[0]].title == "Follower Surge: count"
        assert rows[ids[1]].title == "New Mutual Connection: @friend"
        assert rows[ids[1]].change_type == "new_mutual_connection"
        assert rows[ids[0]].created_at == NOW

    @pytest.mark.asyncio
    async def test_emit_nothing(self, db_session):
        account = await seed_account(db_session)
        assert await NotificationEmitter(db_session).emit(account.id, [], now=NOW) == []

    @pytest.mark.asyncio
    async def test_persist_failure_rolls_back(self, db_session):
        account = await seed_account(db_session)
        emitter = NotificationEmitter(db_session)

        with patch.object(db_session, "flush", side_effect=SQLAlchemyError("disk full")):
            with pytest.raises(NotificationPersistError):
                await emitter.emit(
                    account.id, [_change(ChangeType.FOLLOWER_SPIKE, "count")], now=NOW
                )

        result = await db_session.execute(select(func.count()).select_from(Notification))
        assert result.scalar_one() == 0
