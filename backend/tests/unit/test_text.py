"""
ツイート本文整形の単体テスト
"""
from app.services.analysis.text import enrich_for_embedding, extract_quoted_text, strip_urls


class TestStripUrls:

    def test_removes_urls(self):
        assert strip_urls("read this https://t.co/abc123") == "read this"

    def test_url_only_becomes_empty(self):
        assert strip_urls("https://t.co/abc http://example.com/x") == ""

    def test_keeps_plain_text(self):
        assert strip_urls("  no links here ") == "no links here"


class TestEnrichForEmbedding:

    def test_plain_tweet(self):
        assert enrich_for_embedding("hello https://t.co/x", False, None) == "hello"

    def test_quote_tweet_appends_quoted_text(self):
        raw = {"quoted_status": {"text": "original take https://t.co/q"}}
        enriched = enrich_for_embedding("so true", True, raw)
        assert enriched == 'so true\n[Quoting: "original take"]'

    def test_quoted_tweet_alternate_key(self):
        raw = {"quotedTweet": {"text": "another source"}}
        assert extract_quoted_text(raw) == "another source"

    def test_non_quote_ignores_raw_json(self):
        raw = {"quoted_status": {"text": "ignored"}}
        assert enrich_for_embedding("mine", False, raw) == "mine"

    def test_missing_quoted_text(self):
        assert extract_quoted_text({"quoted_status": {}}) is None
        assert extract_quoted_text(None) is None
