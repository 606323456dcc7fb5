"""
TRENDX - Run Trace Context
contextvars を使用したパイプライン実行スコープの管理

Celery タスク1回分に trace_id と対象 account_id を割り当て、ログから
1アカウント分の処理フローを追跡可能にする。
"""
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional

NO_TRACE = "no-trace"

_trace_id_var: ContextVar[str] = ContextVar("trace_id", default=NO_TRACE)
_account_id_var: ContextVar[Optional[str]] = ContextVar("account_id", default=None)


def get_trace_id() -> str:
    return _trace_id_var.get()


def get_account_id() -> Optional[str]:
    """実行中のパイプラインが対象としているアカウント（無ければ None）"""
    return _account_id_var.get()


def _new_trace_id() -> str:
    return uuid.uuid4().hex[:12]


@contextmanager
def pipeline_run(account_id: Optional[str] = None) -> Iterator[str]:
    """
    1回のパイプライン実行スコープ

    新しい trace_id を払い出し、ブロックを抜けると実行前の値に戻す。

    使い方:
        with pipeline_run(account_id) as trace_id:
            await run_profile_update(...)
    """
    trace_token = _trace_id_var.set(_new_trace_id())
    account_token = _account_id_var.set(account_id)
    try:
        yield _trace_id_var.get()
    finally:
        _account_id_var.reset(account_token)
        _trace_id_var.reset(trace_token)
