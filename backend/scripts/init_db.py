#!/usr/bin/env python3
"""
データベース初期化スクリプト
全テーブルを作成し、必要なら監視対象アカウントを登録します。

使用方法:
    # プロジェクトルートから実行
    python backend/scripts/init_db.py

    # 監視対象アカウントを登録する場合
    python backend/scripts/init_db.py --handle @example --handle another
"""
import argparse
import asyncio
import os
import sys

# プロジェクトルートから実行されることを想定し、backendディレクトリをパスに追加
SCRIPT_DIR = os.path.dirname(os.path.abspath(__file__))
BACKEND_DIR = os.path.dirname(SCRIPT_DIR)

sys.path.insert(0, BACKEND_DIR)

from sqlalchemy import select  # noqa: E402

import app.models  # noqa: E402,F401  全モデルを metadata に登録
from app.db.base import async_session_maker, create_tables  # noqa: E402
from app.models.account import Account  # noqa: E402


async def init_db(handles: list) -> None:
    await create_tables()
    print("Tables created")

    if not handles:
        return

    async with async_session_maker() as session:
        for raw in handles:
            handle = raw.lstrip("@").lower()
            existing = await session.execute(select(Account).where(Account.handle == handle))
            if existing.scalar_one_or_none():
                print(f"Account @{handle} already exists")
                continue
            session.add(Account(handle=handle))
            print(f"Registered @{handle}")
        await session.commit()


def main():
    parser = argparse.ArgumentParser(description="Create tables and register monitored accounts")
    parser.add_argument(
        "--handle",
        action="append",
        default=[],
        help="監視対象のハンドル（複数指定可）",
    )
    args = parser.parse_args()
    asyncio.run(init_db(args.handle))


if __name__ == "__main__":
    main()
