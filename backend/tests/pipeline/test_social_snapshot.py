"""
ソーシャルスナップショットパイプラインの結合テスト
"""
import pytest

from app.models.notification import ChangeType
from app.schemas.social import SocialConnectionData
from app.services.errors import AccountNotFoundError
from app.services.pipeline import LoggingJobContext, run_social_snapshot
from tests.conftest import DAY, NOW, seed_account


def _users(prefix: str, count: int):
    return [
        SocialConnectionData(user_id=f"{prefix}{i}", username=f"{prefix}{i}", follower_count=50)
        for i in range(count)
    ]


class TestSocialSnapshotPipeline:

    @pytest.mark.asyncio
    async def test_first_snapshot_is_baseline(self, db_session):
        account = await seed_account(db_session)
        context = LoggingJobContext("social_snapshot", account.id)

        result = await run_social_snapshot(
            db_session, account.id, _users("f", 3), _users("r", 10), context=context, now=NOW
        )

        assert result.status == "completed"
        assert result.snapshot.follower_count == 10
        assert result.detection.is_baseline is True
        assert context.stage("notifying").status == "skipped"
        assert context.stage("completing").summary == {"snapshotId": result.snapshot.snapshot_id}
        assert context.stage("processing").summary["followersAdded"] == 10

    @pytest.mark.asyncio
    async def test_follower_spike_is_notified(self, db_session):
        account = await seed_account(db_session)
        await run_social_snapshot(
            db_session, account.id, _users("f", 3), _users("r", 10), now=NOW
        )

        context = LoggingJobContext("social_snapshot", account.id)
        result = await run_social_snapshot(
            db_session,
            account.id,
            _users("f", 3),
            _users("r", 10) + _users("new", 5),
            context=context,
            now=NOW + DAY,
        )

        assert [c.type for c in result.detection.changes] == [ChangeType.FOLLOWER_SPIKE]
        assert len(result.detection.notification_ids) == 1
        assert context.stage("notifying").summary == {"notificationCount": 1}

    @pytest.mark.asyncio
    async def test_cancellation(self, db_session):
        account = await seed_account(db_session)
        context = LoggingJobContext("social_snapshot", account.id)
        context.cancel()

        result = await run_social_snapshot(
            db_session, account.id, [], _users("r", 2), context=context, now=NOW
        )

        assert result.status == "cancelled"
        assert result.detection is None
        assert context.stage("detecting") is None

    @pytest.mark.asyncio
    async def test_unknown_account(self, db_session):
        with pytest.raises(AccountNotFoundError):
            await run_social_snapshot(db_session, "missing", [], [], now=NOW)
