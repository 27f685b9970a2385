"""
Tests for candidate seeding and link discovery.
"""

import pytest


def _accept(confidence: float = 0.95):
    return {"decision": "accept", "confidence": confidence, "reason": "stub"}


@pytest.fixture
def make_discovery(stub_completion):
    def _make(response=None, store=None, limits=None):
        from deep_dive.ai.identity_validator import IdentityValidator
        from deep_dive.engine.discovery import ProfileDiscovery
        from deep_dive.utils.identity_tokens import IdentityClueExtractor

        completion = stub_completion(response)
        validator = IdentityValidator(completion, IdentityClueExtractor(store), limits)
        return ProfileDiscovery(validator, store, limits)
    return _make


class TestRelevantDiscoveredLink:
    @pytest.mark.parametrize(
        "base,candidate,expected",
        [
            ("https://avlin.studio/", "https://x.com/avlin", True),
            ("https://avlin.studio/", "https://linktr.ee/avlin", True),
            ("https://linktr.ee/avlin", "https://unrelated.test/", True),
            ("https://avlin.studio/", "https://avlin.studio/contact", True),
            ("https://avlin.studio/", "https://unrelated.test/", False),
            ("https://avlin.studio/", "https://www.facebook.com/avlin", False),
            ("https://avlin.studio/", "https://www.google.com/search?q=avlin", False),
        ],
    )
    def test_relevance(self, base, candidate, expected):
        from deep_dive.engine.discovery import relevant_discovered_link

        assert relevant_discovered_link(base, candidate) is expected


class TestSeed:
    @pytest.mark.asyncio
    async def test_lead_website_seed_accepted_without_llm(self, make_lead, run_context, make_discovery):
        discovery = make_discovery(None)
        lead = make_lead(website="manual-example.test")
        run = run_context(lead)

        candidates = await discovery.seed(lead, [], run)

        assert candidates.urls("website") == ["https://manual-example.test/"]
        assert run.identity_for("website", "https://manual-example.test/")["strategy"] == "user_seed"

    @pytest.mark.asyncio
    async def test_handle_seed_and_search_results(self, make_lead, run_context, make_discovery):
        from deep_dive.database.models import SearchResult

        discovery = make_discovery(None)
        lead = make_lead("Avery Lin", handle="@avlinfilms", platform="YouTube")
        run = run_context(lead)
        results = [
            SearchResult(title="Avery Lin", url="https://www.youtube.com/@avlinfilms/videos", snippet="AI short film"),
            SearchResult(title="Avery Lin", url="https://www.youtube.com/@averylin_unrelated", snippet=""),
            SearchResult(title="Avery Lin on X", url="https://x.com/averylin", snippet="Avery Lin films"),
        ]

        candidates = await discovery.seed(lead, results, run)

        assert candidates.urls("youtube") == ["https://www.youtube.com/@avlinfilms"]
        # not the lead's platform: name in handle and context is enough, but the fallback only trusts seeds
        assert candidates.urls("x") == []
        assert run.identity_for("youtube", "https://www.youtube.com/@avlinfilms")["strategy"] == "fallback"

    @pytest.mark.asyncio
    async def test_store_history_is_seeded_for_saved_leads(self, make_lead, run_context, make_discovery, memory_store):
        from deep_dive.database.models import Communication, Signal, SocialProfile

        lead = await memory_store.save_lead(make_lead("Avery Lin", handle=None, platform=None))
        await memory_store.save_social_profile(
            SocialProfile(lead_id=lead.id, profile_type="x", url="https://x.com/averylin", source="manual")
        )
        await memory_store.save_social_profile(
            SocialProfile(lead_id=lead.id, profile_type="x", url="https://x.com/old_engine_row")
        )
        await memory_store.add_signal(Signal(lead_id=lead.id, url="https://www.instagram.com/averylin"))
        await memory_store.add_communication(
            Communication(lead_id=lead.id, link="https://www.tiktok.com/@averylin")
        )
        discovery = make_discovery(_accept(), store=memory_store)
        run = run_context(lead)

        candidates = await discovery.seed(lead, [], run)

        assert candidates.urls("x") == ["https://x.com/averylin"]
        assert candidates.urls("instagram") == ["https://www.instagram.com/averylin"]
        assert candidates.urls("tiktok") == ["https://www.tiktok.com/@averylin"]

    @pytest.mark.asyncio
    async def test_unsaved_lead_skips_store(self, make_lead, run_context, make_discovery, memory_store):
        from unittest.mock import AsyncMock

        memory_store.list_social_profiles = AsyncMock(return_value=[])
        discovery = make_discovery(_accept(), store=memory_store)
        lead = make_lead()

        await discovery.seed(lead, [], run_context(lead))

        memory_store.list_social_profiles.assert_not_called()

    def test_website_seed_source(self, make_lead):
        from deep_dive.core.constants import CandidateSource
        from deep_dive.engine.discovery import ProfileDiscovery

        assert ProfileDiscovery.website_seed_source(make_lead(website="a.test")) == CandidateSource.LEAD_WEBSITE_SEED
        assert ProfileDiscovery.website_seed_source(make_lead(website="  ")) == CandidateSource.EXISTING_PROFILE_SEED


class TestAppend:
    @pytest.mark.asyncio
    async def test_bad_urls_are_dropped(self, make_lead, run_context, make_discovery):
        from deep_dive.core.constants import CandidateSource

        discovery = make_discovery(_accept())
        lead = make_lead()
        run = run_context(lead)
        candidates = discovery.new_candidate_map()

        for raw in [None, "", "javascript:void(0)", "https://www.google.com/search?q=x", "https://www.facebook.com/a"]:
            assert not await discovery.append(
                candidates, raw, lead=lead, source=CandidateSource.SEARCH_RESULT, run=run
            )
        assert len(candidates) == 0

    @pytest.mark.asyncio
    async def test_short_links_are_expanded_before_classification(self, make_lead, run_context, make_discovery):
        from unittest.mock import AsyncMock, patch

        from deep_dive.core.constants import CandidateSource

        discovery = make_discovery(_accept())
        lead = make_lead("Avery Lin", handle=None, platform=None)
        run = run_context(lead)
        candidates = discovery.new_candidate_map()

        with patch.object(discovery.expander, "expand", AsyncMock(return_value="https://x.com/averylin/status/9")):
            added = await discovery.append(
                candidates, "https://t.co/abc", lead=lead, source=CandidateSource.SEARCH_RESULT, run=run
            )

        assert added
        assert candidates.urls("x") == ["https://x.com/averylin"]


class TestExpand:
    @pytest.mark.asyncio
    async def test_links_from_dossiers_are_validated(self, make_lead, run_context, make_discovery):
        from deep_dive.database.models import Dossier

        discovery = make_discovery(_accept())
        lead = make_lead("Avery Lin", handle=None, platform=None)
        run = run_context(lead)
        candidates = discovery.new_candidate_map()
        dossier = Dossier(
            profile_type="website",
            url="https://avlin.studio/",
            title="Avery Lin Studio",
            links=[
                "https://x.com/averylin",
                "https://avlin.studio/contact",
                "https://unrelated.test/",
            ],
        )

        added = await discovery.expand(lead, candidates, [dossier], run)

        assert added is True
        assert candidates.urls("x") == ["https://x.com/averylin"]
        assert candidates.urls("website") == ["https://avlin.studio/"]
        assert run.identity_for("x", "https://x.com/averylin")["strategy"] == "llm"

    @pytest.mark.asyncio
    async def test_link_hub_pages_use_hub_source(self, make_lead, run_context, make_discovery):
        from unittest.mock import AsyncMock

        from deep_dive.core.constants import CandidateSource
        from deep_dive.database.models import Dossier

        discovery = make_discovery(_accept())
        discovery.append = AsyncMock(return_value=False)
        lead = make_lead()
        run = run_context(lead)
        dossier = Dossier(profile_type="website", url="https://linktr.ee/avlin", links=["https://avlin.studio/"])

        added = await discovery.expand(lead, discovery.new_candidate_map(), [dossier], run)

        assert added is False
        assert discovery.append.call_args.kwargs["source"] == CandidateSource.LINK_HUB_DISCOVERY
        assert discovery.append.call_args.kwargs["base_url"] == "https://linktr.ee/avlin"
