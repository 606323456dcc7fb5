"""
TRENDX - Profile Celery Tasks
analysis キューで実行されるプロファイル更新・ソーシャルスナップショット

同一アカウントの実行は直列である必要があるため、analysis キューのワーカーは
concurrency=1 で起動する。
"""
import asyncio
import concurrent.futures
from typing import Any, Dict, List

from app.core.config import get_settings
from app.core.llm import ProviderRegistry
from app.core.logger import get_traced_logger
from app.core.trace_context import pipeline_run
from app.db.base import async_session_maker, engine
from app.schemas.social import SocialConnectionData
from app.services.errors import AccountNotFoundError, EmbeddingError
from app.services.pipeline.profile_update import run_profile_update
from app.services.pipeline.social_snapshot import run_social_snapshot
from app.services.profile.profile_store import ProfileStore
from app.workers.celery_app import celery_app

logger = get_traced_logger("ProfileTasks")


def run_async(coro):
    """非同期関数を同期的に実行"""
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    # 既存のイベントループがある場合は別スレッドの新しいループで実行
    with concurrent.futures.ThreadPoolExecutor() as executor:
        future = executor.submit(asyncio.run, coro)
        return future.result()


@celery_app.task(bind=True, max_retries=3)
def update_profile_task(self, account_id: str) -> Dict[str, Any]:
    """
    プロファイル更新パイプラインを1回実行する

    Embedding の失敗は一時的なものとみなしてリトライする。
    """
    async def _update():
        # フォークしたプロセスで接続プールを引き継がない
        await engine.dispose()

        with pipeline_run(account_id) as trace_id:
            providers = ProviderRegistry(get_settings()).resolve()
            await providers.initialize()

            async with async_session_maker() as session:
                try:
                    result = await run_profile_update(session, providers, account_id)
                except AccountNotFoundError as e:
                    logger.error("Account not found")
                    return {"status": "error", "message": str(e), "trace_id": trace_id}

        detection = result.detection
        return {
            "status": result.status,
            "account_id": account_id,
            "trace_id": trace_id,
            "tweets_processed": result.tweets_processed,
            "personality_evaluated": result.personality_evaluated,
            "is_baseline": detection.is_baseline if detection else None,
            "notification_ids": detection.notification_ids if detection else [],
        }

    try:
        return run_async(_update())
    except EmbeddingError as exc:
        logger.warning(
            "Embedding failed, retrying",
            metadata={"account_id": account_id, "error": str(exc)},
        )
        raise self.retry(exc=exc, countdown=60)


@celery_app.task(bind=True, max_retries=2)
def social_snapshot_task(
    self,
    account_id: str,
    following: List[Dict[str, Any]],
    followers: List[Dict[str, Any]],
) -> Dict[str, Any]:
    """
    取得済みのフォロー/フォロワー一覧からスナップショットを記録し、シグナルを検出する

    following / followers は SocialConnectionData の JSON 表現のリスト。
    """
    async def _snapshot():
        await engine.dispose()

        following_users = [SocialConnectionData.model_validate(u) for u in following]
        follower_users = [SocialConnectionData.model_validate(u) for u in followers]

        with pipeline_run(account_id) as trace_id:
            async with async_session_maker() as session:
                try:
                    result = await run_social_snapshot(
                        session, account_id, following_users, follower_users
                    )
                except AccountNotFoundError as e:
                    logger.error("Account not found")
                    return {"status": "error", "message": str(e), "trace_id": trace_id}

        detection = result.detection
        return {
            "status": result.status,
            "account_id": account_id,
            "trace_id": trace_id,
            "snapshot_id": result.snapshot.snapshot_id if result.snapshot else None,
            "is_baseline": detection.is_baseline if detection else None,
            "notification_ids": detection.notification_ids if detection else [],
        }

    return run_async(_snapshot())


@celery_app.task
def update_all_profiles_task() -> Dict[str, Any]:
    """監視中の全アカウントについて update_profile_task を投入する（Celery Beat から呼ばれる）"""
    async def _list_accounts() -> List[str]:
        await engine.dispose()
        async with async_session_maker() as session:
            return await ProfileStore(session).list_active_account_ids()

    account_ids = run_async(_list_accounts())
    for account_id in account_ids:
        update_profile_task.delay(account_id)

    logger.info("Dispatched profile updates", metadata={"account_count": len(account_ids)})
    return {"status": "success", "dispatched": len(account_ids)}
