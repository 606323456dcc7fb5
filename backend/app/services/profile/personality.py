"""
TRENDX - Personality Evaluator
直近ツイートから性格スコア（7次元）・価値観タグ・要約を評価する

- 評価の頻度: 未評価なら処理済みツイートが1件以上で評価、以後は処理済み件数が50の倍数のとき
- サンプリング: 最新200件を取得し、60件を超える場合は時間減衰重みの大きい順に60件（決定的）
- 初回評価の結果をベースラインとして保存し、以後は変更しない
"""
import logging
from typing import List, Optional

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.llm import Providers, extract_json_from_text
from app.db.base import unix_now
from app.models.profile_activity_log import ProfileActionType
from app.schemas.profile import Personality, StoredTweet
from app.services.analysis.temporal_weighting import calculate_temporal_weight
from app.services.analysis.text import extract_quoted_text
from app.services.errors import NoTweetsError, PersonalityResponseError
from app.services.profile.activity_log import log_profile_activity
from app.services.profile.profile_store import ProfileStore
from app.services.token_tracker import record_chat_usage

logger = logging.getLogger(__name__)

PERSONALITY_EVAL_THRESHOLD = 50
MAX_TWEETS_FOR_EVAL = 200
MAX_PROMPT_TWEETS = 60


PERSONALITY_SYSTEM_PROMPT = """\
You are a personality analyst. Given a collection of tweets from a single account, evaluate their online personality across fixed dimensions.

Return a JSON object with this exact structure:
{
  "scores": {
    "formal": <0-100>,
    "technical": <0-100>,
    "provocative": <0-100>,
    "thoughtLeader": <0-100>,
    "commentator": <0-100>,
    "curator": <0-100>,
    "promoter": <0-100>
  },
  "values": ["value1", "value2", ...],
  "summary": "1-2 sentence personality summary"
}

Dimension definitions:
- formal: How formal/professional vs casual/colloquial is the writing style (100=very formal)
- technical: How technical/specialized vs general-audience the content is (100=highly technical)
- provocative: How provocative/contrarian vs measured/diplomatic the tone is (100=very provocative)
- thoughtLeader: How much original insight/analysis vs reporting others' work (100=pure original thought)
- commentator: How much they react to/comment on events vs share original content (100=pure commentator)
- curator: How much they share/recommend others' content vs create their own (100=pure curator)
- promoter: How much they promote products/projects/themselves (100=constant self-promotion)

For "values": Extract up to 5 short tags (2-4 words each) representing values/principles this person holds. Be concise. Examples: "open-source advocacy", "privacy maximalism", "startup hustle", "decentralization", "data-driven investing".

For "summary": Write 1-2 sentences capturing this person's online personality and communication style. Be specific and evidence-based.

IMPORTANT: Return ONLY the JSON object, no markdown fences, no explanations.\
"""


def should_re_evaluate(total_tweets_processed: int, last_eval_at: Optional[int]) -> bool:
    """
    性格を再評価すべきかどうか

    1バッチで件数が50の倍数をまたいだ場合（48 → 53 など）は評価されない。
    """
    if last_eval_at is None:
        return total_tweets_processed > 0
    return total_tweets_processed % PERSONALITY_EVAL_THRESHOLD == 0


def sample_with_recency_weighting(
    tweets: List[StoredTweet],
    max_count: int,
    reference_timestamp: int,
) -> List[StoredTweet]:
    """時間減衰重みの降順で上位 max_count 件を選ぶ（同率は入力順）"""
    if len(tweets) <= max_count:
        return tweets
    ranked = sorted(
        tweets,
        key=lambda t: calculate_temporal_weight(t.tweet_created_at, reference_timestamp),
        reverse=True,
    )
    return ranked[:max_count]


def format_tweet_for_prompt(tweet: StoredTweet) -> str:
    """引用ツイートには引用元の本文を付ける"""
    quoted = extract_quoted_text(tweet.raw_json) if tweet.is_quote_tweet else None
    if quoted:
        return f'{tweet.text}\n  [Quoting: "{quoted}"]'
    return tweet.text


def parse_personality_response(content: str) -> Personality:
    """
    LLMレスポンスを Personality に変換する

    コードフェンスや前置きは extract_json_from_text で取り除く。JSONとして読めない場合や
    スコアが 0-100 の範囲外、values が5件を超える場合は PersonalityResponseError を送出する。
    """
    parsed = extract_json_from_text(content)
    if parsed is None:
        raise PersonalityResponseError(
            f"Failed to parse personality response as JSON: {content.strip()[:200]}"
        )

    try:
        return Personality.model_validate(parsed)
    except ValidationError as e:
        raise PersonalityResponseError(f"Personality response failed validation: {e}") from e


class PersonalityEvaluator:
    """性格評価サービス"""

    def __init__(self, session: AsyncSession, providers: Providers):
        self.session = session
        self.store = ProfileStore(session)
        self._providers = providers

    async def evaluate(self, account_id: str, now: Optional[int] = None) -> Personality:
        """
        アカウントの性格を評価し、プロファイルを更新する

        Returns:
            Personality: 新しい評価結果

        Raises:
            NoTweetsError: ツイートが1件もない
            PersonalityResponseError: LLMレスポンスが不正
        """
        now = now if now is not None else unix_now()

        tweets = await self.store.fetch_recent_tweets(account_id, MAX_TWEETS_FOR_EVAL)
        if not tweets:
            raise NoTweetsError(
                f"No tweets found for account {account_id}. Cannot evaluate personality."
            )

        sampled = sample_with_recency_weighting(tweets, MAX_PROMPT_TWEETS, now)
        tweets_block = "\n\n".join(
            f"{i + 1}. {format_tweet_for_prompt(t)}" for i, t in enumerate(sampled)
        )
        user_prompt = (
            f"Analyze these {len(sampled)} tweets from a single account "
            f"(recent tweets weighted more heavily in selection):\n\n{tweets_block}"
        )

        # 失敗時は SAVEPOINT まで戻し、呼び出し元のセッションの他のオブジェクトは失効させない
        async with self.session.begin_nested():
            provider = self._providers.chat
            response = await provider.generate_text(
                messages=[
                    {"role": "system", "content": PERSONALITY_SYSTEM_PROMPT},
                    {"role": "user", "content": user_prompt},
                ],
            )
            record_chat_usage(self.session, "personality", provider, response)

            personality = parse_personality_response(response.content)

            profile = await self.store.get_or_create_profile(account_id)
            is_first = profile.personality_baseline is None

            updates = {"personality": personality, "last_personality_eval_at": now}
            if is_first:
                updates["personality_baseline"] = personality
            await self.store.update_profile(account_id, now=now, **updates)

            log_profile_activity(
                self.session,
                account_id,
                ProfileActionType.PERSONALITY_EVALUATED,
                (
                    f"Initial personality baseline established from {len(sampled)} tweets"
                    if is_first
                    else f"Personality re-evaluated from {len(sampled)} tweets"
                ),
                {
                    "tweetsAnalyzed": len(sampled),
                    "isBaseline": is_first,
                    "scores": personality.scores.as_dimensions(),
                    "tokensUsed": response.total_tokens,
                },
            )
        await self.session.commit()
        return personality
