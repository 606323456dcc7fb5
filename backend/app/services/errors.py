"""
TRENDX - Engine Errors
エンジンが送出する例外

致命的（呼び出し元のステージを失敗させる）ものだけを例外として扱う。
抑制・閾値未満・ドリフトバッファ未満などはエラーではない。
"""


class ProfileEngineError(Exception):
    """エンジン例外の基底クラス"""


class AccountNotFoundError(ProfileEngineError):
    def __init__(self, account_id: str):
        super().__init__(f"Account not found: {account_id}")
        self.account_id = account_id


class ProfileNotFoundError(ProfileEngineError):
    def __init__(self, account_id: str):
        super().__init__(f"Profile not found for account: {account_id}")
        self.account_id = account_id


class DimensionMismatchError(ProfileEngineError, ValueError):
    """トピック重心と埋め込みの次元数が一致しない"""

    def __init__(self, expected: int, actual: int):
        super().__init__(f"Embedding dimension mismatch: expected {expected}, got {actual}")
        self.expected = expected
        self.actual = actual


class PersonalityResponseError(ProfileEngineError, ValueError):
    """性格評価のLLMレスポンスがJSONとして不正、またはスキーマ違反"""


class NoTweetsError(ProfileEngineError):
    """評価対象のツイートが1件もない"""


class EmbeddingError(ProfileEngineError):
    """Embeddingプロバイダーが結果を返さなかった"""


class NotificationPersistError(ProfileEngineError):
    """通知の一括保存に失敗した"""
