"""
TRENDX - Tweet Text Preparation
埋め込み・プロンプトに渡す前のテキスト整形
"""
import re
from typing import Any, Dict, Optional

_URL_PATTERN = re.compile(r"https?://\S+")


def strip_urls(text: str) -> str:
    """URLを除去して前後の空白を落とす"""
    return _URL_PATTERN.sub("", text).strip()


def extract_quoted_text(raw_json: Optional[Dict[str, Any]]) -> Optional[str]:
    """
    生レスポンスから引用元ツイートの本文を取り出す

    quoted_status.text → quotedTweet.text の順に探す。
    """
    if not raw_json:
        return None
    for key in ("quoted_status", "quotedTweet"):
        quoted = raw_json.get(key)
        if isinstance(quoted, dict) and quoted.get("text"):
            return str(quoted["text"])
    return None


def enrich_for_embedding(text: str, is_quote_tweet: bool, raw_json: Optional[Dict[str, Any]]) -> str:
    """
    埋め込み用テキストを作る。引用ツイートには引用元の本文を付け足す

    URLだけのツイートは空文字になり、呼び出し側で分類対象から除外される。
    """
    base = strip_urls(text)
    quoted = extract_quoted_text(raw_json) if is_quote_tweet else None
    if quoted:
        return f'{base}\n[Quoting: "{strip_urls(quoted)}"]'
    return base
