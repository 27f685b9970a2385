"""
Tests for URL normalization, classification and canonicalization.
"""

from unittest.mock import patch

import pytest


class TestNormalizeUrl:
    def test_drops_fragment_and_keeps_query(self):
        from deep_dive.utils.urls import normalize_url

        assert normalize_url(" https://avlin.studio/work?ref=ig#top ") == "https://avlin.studio/work?ref=ig"

    @pytest.mark.parametrize(
        "raw",
        [
            None,
            "",
            "avlin.studio",
            "ftp://avlin.studio/",
            "https://",
            "https://avlin studio.com/",
            "https://duckduckgo.com/l/?uddg=https%3A%2F%2Fx.com%2Favlin",
        ],
    )
    def test_rejects_unusable_urls(self, raw):
        from deep_dive.utils.urls import normalize_url

        assert normalize_url(raw) is None


class TestClassify:
    @pytest.mark.parametrize(
        "url,expected",
        [
            ("https://x.com/avlinfilms", "x"),
            ("https://twitter.com/avlinfilms", "x"),
            ("https://mobile.twitter.com/avlinfilms", "x"),
            ("https://www.linkedin.com/in/shanalnielsen", "linkedin"),
            ("https://youtu.be/abc123", "youtube"),
            ("https://m.youtube.com/@avlinfilms", "youtube"),
            ("https://www.instagram.com/avlin", "instagram"),
            ("https://www.tiktok.com/@avlin", "tiktok"),
            ("https://old.reddit.com/u/avlin", "reddit"),
            ("https://www.facebook.com/shana", "other"),
            ("https://fb.com/shana", "other"),
            ("https://avlin.studio/work", "website"),
            ("https://linktr.ee/avlin", "website"),
        ],
    )
    def test_platform_hosts(self, url, expected):
        from deep_dive.utils.urls import classify

        assert classify(url) == expected

    def test_search_result_pages_are_rejected(self):
        from deep_dive.utils.urls import classify

        assert classify("https://www.google.com/search?q=avery+lin") is None
        assert classify("https://duckduckgo.com/?q=avery") is None

    def test_unparseable_url_is_none(self):
        from deep_dive.utils.urls import classify

        assert classify("not a url") is None


class TestCanonicalize:
    @pytest.mark.parametrize(
        "url,profile_type,expected",
        [
            ("https://twitter.com/avlinfilms/status/1", "x", "https://x.com/avlinfilms"),
            ("https://x.com/@avlinfilms?s=20", "x", "https://x.com/avlinfilms"),
            (
                "https://uk.linkedin.com/in/shanalnielsen/details/experience",
                "linkedin",
                "https://www.linkedin.com/in/shanalnielsen",
            ),
            (
                "https://www.linkedin.com/company/sequencer-media/",
                "linkedin",
                "https://www.linkedin.com/company/sequencer-media",
            ),
            ("https://www.youtube.com/@avlinfilms/videos", "youtube", "https://www.youtube.com/@avlinfilms"),
            (
                "https://www.youtube.com/channel/UC1234abcd",
                "youtube",
                "https://www.youtube.com/channel/UC1234abcd",
            ),
            ("https://www.youtube.com/avlinfilms", "youtube", "https://www.youtube.com/@avlinfilms"),
            ("https://instagram.com/avlin/reels/", "instagram", "https://www.instagram.com/avlin"),
            ("https://www.tiktok.com/avlin/video/1", "tiktok", "https://www.tiktok.com/@avlin"),
            ("https://old.reddit.com/u/avlin/comments", "reddit", "https://www.reddit.com/user/avlin"),
            ("https://avlin.studio/work?ref=ig", "website", "https://avlin.studio/"),
            ("https://linktr.ee/@avlin?utm=1", "website", "https://linktr.ee/avlin"),
        ],
    )
    def test_canonical_forms(self, url, profile_type, expected):
        from deep_dive.utils.urls import canonicalize

        assert canonicalize(url, profile_type) == expected

    @pytest.mark.parametrize(
        "url",
        [
            "https://x.com/avlinfilms",
            "https://www.linkedin.com/in/shanalnielsen",
            "https://www.youtube.com/@avlinfilms",
            "https://www.youtube.com/channel/UC1234abcd",
            "https://www.instagram.com/avlin",
            "https://www.tiktok.com/@avlin",
            "https://www.reddit.com/user/avlin",
            "https://avlin.studio/",
            "https://linktr.ee/avlin",
        ],
    )
    def test_canonical_urls_are_fixed_points(self, url):
        from deep_dive.utils.urls import canonicalize, classify

        profile_type = classify(url)
        assert canonicalize(url, profile_type) == url

    @pytest.mark.parametrize(
        "url,profile_type",
        [
            ("https://www.youtube.com/watch?v=abc", "youtube"),
            ("https://www.youtube.com/feed/subscriptions", "youtube"),
            ("https://www.youtube.com/@watch", "youtube"),
            ("https://www.youtube.com/channel/videos", "youtube"),
            ("https://www.instagram.com/about", "instagram"),
            ("https://x.com/home", "x"),
            ("https://x.com/", "x"),
            ("https://www.linkedin.com/feed/", "linkedin"),
            ("https://www.linkedin.com/in/", "linkedin"),
            ("https://www.reddit.com/search", "reddit"),
        ],
    )
    def test_generic_or_incomplete_paths_are_rejected(self, url, profile_type):
        from deep_dive.utils.urls import canonicalize

        assert canonicalize(url, profile_type) is None

    def test_blocklisted_website_hosts_are_rejected(self):
        from deep_dive.utils.urls import canonicalize

        assert canonicalize("https://www.soundersfc.com", "website") is None
        assert canonicalize("https://m.facebook.com/shana", "website") is None

    def test_aggregator_without_slug_is_rejected(self):
        from deep_dive.utils.urls import canonicalize

        assert canonicalize("https://linktr.ee/", "website") is None


class TestHandles:
    @pytest.mark.parametrize(
        "url,profile_type,expected",
        [
            ("https://x.com/avlinfilms", "x", "avlinfilms"),
            ("https://www.tiktok.com/@avlin", "tiktok", "avlin"),
            ("https://www.reddit.com/user/avlin", "reddit", "avlin"),
            ("https://www.linkedin.com/in/shanalnielsen", "linkedin", "shanalnielsen"),
            ("https://www.youtube.com/@avlinfilms", "youtube", "avlinfilms"),
            ("https://www.youtube.com/c/AveryLin", "youtube", "AveryLin"),
            ("https://avlin.studio/", "website", None),
        ],
    )
    def test_extract_handle(self, url, profile_type, expected):
        from deep_dive.utils.urls import extract_handle

        assert extract_handle(url, profile_type) == expected

    @pytest.mark.parametrize(
        "handle,platform,expected",
        [
            ("@avlinfilms", "YouTube", "https://www.youtube.com/@avlinfilms"),
            ("avlinfilms", "X (Twitter)", "https://x.com/avlinfilms"),
            ("shanalnielsen", "LinkedIn", "https://www.linkedin.com/in/shanalnielsen"),
            ("@avlin", "TikTok", "https://www.tiktok.com/@avlin"),
            ("avlin", "Reddit", "https://www.reddit.com/user/avlin"),
            ("avlin.studio", "Newsletter", "https://avlin.studio"),
            ("avlin", "Newsletter", None),
            ("https://x.com/avlin", "Instagram", "https://x.com/avlin"),
            ("  ", "X", None),
        ],
    )
    def test_handle_url(self, handle, platform, expected):
        from deep_dive.utils.urls import handle_url

        assert handle_url(handle, platform) == expected

    def test_handle_url_does_not_treat_words_containing_x_as_x(self):
        from deep_dive.utils.urls import handle_url

        assert handle_url("avlin", "Xing") is None
        assert handle_url("avlin", "Substack") is None

    def test_seed_website(self):
        from deep_dive.utils.urls import seed_website

        assert seed_website("manual-example.test") == "https://manual-example.test"
        assert seed_website("http://manual-example.test/") == "http://manual-example.test/"
        assert seed_website("   ") is None

    def test_link_aggregator_and_same_host(self):
        from deep_dive.utils.urls import is_link_aggregator, same_host

        assert is_link_aggregator("https://www.linktr.ee/avlin")
        assert is_link_aggregator("https://avlin.beacons.ai/")
        assert not is_link_aggregator("https://avlin.studio/")
        assert same_host("https://avlin.studio/a", "https://AVLIN.studio/b")
        assert not same_host("https://avlin.studio/", "https://www.avlin.studio/")
        assert not same_host("", "")


class TestUrlExpander:
    @pytest.mark.asyncio
    async def test_non_shortener_is_returned_without_network(self):
        from deep_dive.utils.urls import UrlExpander

        with patch("aiohttp.ClientSession.head") as head:
            result = await UrlExpander().expand("https://avlin.studio/")

        assert result == "https://avlin.studio/"
        head.assert_not_called()

    @pytest.mark.asyncio
    async def test_follows_redirects_up_to_limit(self, mock_aiohttp_response):
        from deep_dive.utils.urls import UrlExpander

        hop = mock_aiohttp_response(status=301)
        hop.headers = {"Location": "https://x.com/avlinfilms#bio"}
        final = mock_aiohttp_response(status=200)
        final.headers = {}

        with patch("aiohttp.ClientSession.head", side_effect=[hop, final]):
            result = await UrlExpander().expand("https://t.co/abc")

        assert result == "https://x.com/avlinfilms"

    @pytest.mark.asyncio
    async def test_network_failure_falls_back_to_input(self):
        import aiohttp

        from deep_dive.utils.urls import UrlExpander

        with patch("aiohttp.ClientSession.head", side_effect=aiohttp.ClientError("boom")):
            result = await UrlExpander().expand("https://bit.ly/xyz")

        assert result == "https://bit.ly/xyz"

    @pytest.mark.asyncio
    async def test_redirect_limit_is_respected(self, mock_aiohttp_response):
        from deep_dive.utils.urls import UrlExpander

        hops = []
        for index in range(5):
            hop = mock_aiohttp_response(status=302)
            hop.headers = {"Location": f"https://bit.ly/hop{index}"}
            hops.append(hop)
        with patch("aiohttp.ClientSession.head", side_effect=hops) as head:
            result = await UrlExpander(redirect_limit=3).expand("https://bit.ly/start")

        assert head.call_count == 3
        assert result == "https://bit.ly/hop2"
