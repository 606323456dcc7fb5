"""
TRENDX - Job Context
パイプラインとジョブ実行側の接点

パイプラインはステージの開始・完了・スキップ・失敗をこのインターフェース経由で通知し、
ステージの合間に check_cancellation() で中断要求を確認する。
"""
import time
from typing import Any, Dict, List, Optional, Protocol

from app.core.logger import get_traced_logger
from app.schemas.pipeline import StageSummary


class JobContext(Protocol):
    """ジョブ実行側が実装するステージ記録インターフェース"""

    async def set_stage(self, stage: str, message: str) -> None: ...

    async def complete_stage(self, stage: str, summary: Optional[Dict[str, Any]] = None) -> None: ...

    async def skip_stage(self, stage: str, reason: str) -> None: ...

    async def fail_stage(self, stage: str, error: str) -> None: ...

    async def check_cancellation(self) -> bool: ...


class LoggingJobContext:
    """
    ステージ遷移を構造化ログに出力し、StageSummary として保持する既定実装

    cancel() を呼ぶと次のチェックポイントで中断される。
    """

    def __init__(self, job_type: str, account_id: str):
        self.job_type = job_type
        self.account_id = account_id
        self.stages: List[StageSummary] = []
        self._cancelled = False
        self._started: Dict[str, float] = {}
        self._logger = get_traced_logger(job_type)

    def _meta(self, **extra: Any) -> Dict[str, Any]:
        return {"account_id": self.account_id, **extra}

    def _record(self, entry: StageSummary) -> None:
        for i, existing in enumerate(self.stages):
            if existing.stage == entry.stage:
                self.stages[i] = entry
                return
        self.stages.append(entry)

    def _duration(self, stage: str) -> Optional[float]:
        started = self._started.pop(stage, None)
        if started is None:
            return None
        return round((time.monotonic() - started) * 1000, 1)

    def cancel(self) -> None:
        self._cancelled = True

    def stage(self, name: str) -> Optional[StageSummary]:
        for entry in self.stages:
            if entry.stage == name:
                return entry
        return None

    async def set_stage(self, stage: str, message: str) -> None:
        self._started[stage] = time.monotonic()
        self._record(StageSummary(stage=stage, status="running", message=message))
        self._logger.info(f"{stage} started", metadata=self._meta(message=message))

    async def complete_stage(self, stage: str, summary: Optional[Dict[str, Any]] = None) -> None:
        duration_ms = self._duration(stage)
        self._record(
            StageSummary(
                stage=stage,
                status="completed",
                summary=summary or {},
                duration_ms=duration_ms,
            )
        )
        self._logger.info(
            f"{stage} completed",
            metadata=self._meta(summary=summary or {}, duration_ms=duration_ms),
        )

    async def skip_stage(self, stage: str, reason: str) -> None:
        self._started.pop(stage, None)
        self._record(StageSummary(stage=stage, status="skipped", message=reason))
        self._logger.info(f"{stage} skipped", metadata=self._meta(reason=reason))

    async def fail_stage(self, stage: str, error: str) -> None:
        duration_ms = self._duration(stage)
        self._record(
            StageSummary(stage=stage, status="failed", error=error, duration_ms=duration_ms)
        )
        self._logger.error(f"{stage} failed", metadata=self._meta(error=error))

    async def check_cancellation(self) -> bool:
        if self._cancelled:
            self._logger.warning("cancellation requested", metadata=self._meta())
        return self._cancelled
