"""
Tests for the deep dive outreach summarizer.
"""

import pytest


@pytest.fixture
def dossier():
    def _make(url: str = "https://avlin.studio/", **fields):
        from deep_dive.database.models import Dossier

        return Dossier(profile_type=fields.pop("profile_type", "website"), url=url, **fields)
    return _make


@pytest.fixture
def youtube_candidates():
    from deep_dive.engine.candidates import CandidateMap

    candidates = CandidateMap()
    candidates.try_insert("youtube", "https://www.youtube.com/@avlinfilms", "search_result")
    candidates.try_insert("website", "https://avlin.studio/", "search_result")
    return candidates


class TestEvidenceLines:
    def test_dossier_lines(self, dossier):
        from deep_dive.ai.summarizer import evidence_lines

        lines = evidence_lines(
            [
                dossier(
                    title="Avery Lin Studio",
                    description="AI short films",
                    recent_posts=["Premiere tonight", "Behind the scenes", "Old post"],
                    about_text="a" * 400,
                )
            ],
            [],
        )

        assert len(lines) == 1
        assert lines[0].startswith("1. [website] https://avlin.studio/ | Avery Lin Studio | AI short films")
        assert "Recent posts: Premiere tonight || Behind the scenes |" in lines[0]
        assert "Old post" not in lines[0]
        assert lines[0].endswith("a" * 257 + "...")

    def test_search_results_used_when_nothing_scraped(self):
        from deep_dive.ai.summarizer import evidence_lines
        from deep_dive.database.models import SearchResult

        results = [
            SearchResult(title=f"Hit {i}", url=f"https://example.test/{i}", snippet="snip") for i in range(12)
        ]

        lines = evidence_lines([], results)

        assert len(lines) == 10
        assert lines[0] == "1. Hit 0 | https://example.test/0 | snip"

    def test_capped_at_ten_dossiers(self, dossier):
        from deep_dive.ai.summarizer import evidence_lines

        lines = evidence_lines([dossier(f"https://site{i}.test/") for i in range(15)], [])

        assert len(lines) == 10


class TestFallbackSummary:
    def test_names_found_profile_types(self, youtube_candidates):
        from deep_dive.ai.summarizer import fallback_summary

        summary = fallback_summary(youtube_candidates)

        assert summary.summary == "Found profile signals across: youtube, website."
        assert summary.confidence == 0.35
        assert summary.highlights == ["Found youtube profile.", "Found website profile."]

    def test_nothing_found(self):
        from deep_dive.ai.summarizer import fallback_summary
        from deep_dive.engine.candidates import CandidateMap

        summary = fallback_summary(CandidateMap())

        assert summary.summary == "No reliable profiles found."
        assert summary.highlights == []


class TestSummarizer:
    @pytest.mark.asyncio
    async def test_no_evidence_skips_llm(self, make_lead, stub_completion, youtube_candidates):
        from deep_dive.ai.summarizer import Summarizer

        completion = stub_completion({"summary": "unused"})

        summary = await Summarizer(completion).summarize(make_lead(), [], [], youtube_candidates)

        assert completion.calls == []
        assert summary.summary == "Found profile signals across: youtube, website."

    @pytest.mark.asyncio
    async def test_llm_summary_with_missing_fields_backfilled(
        self, make_lead, stub_completion, dossier, youtube_candidates
    ):
        from deep_dive.ai.summarizer import Summarizer

        completion = stub_completion(
            {
                "summary": "  Avery makes AI short films. ",
                "outreach_angle": "",
                "next_step": "Reply to the premiere post.",
                "confidence": 80,
                "highlights": ["Premiere", "", None, *[f"h{i}" for i in range(10)]],
            }
        )

        summary = await Summarizer(completion).summarize(
            make_lead("Avery Lin"), [], [dossier(title="Avery Lin Studio")], youtube_candidates
        )

        assert summary.summary == "Avery makes AI short films."
        assert summary.outreach_angle == "Reference one concrete piece of their recent public work."
        assert summary.next_step == "Reply to the premiere post."
        assert summary.confidence == pytest.approx(0.8)
        assert summary.highlights[0] == "Premiere"
        assert len(summary.highlights) == 6
        _, prompt, _ = completion.calls[0]
        assert "1. [website] https://avlin.studio/ | Avery Lin Studio" in prompt

    @pytest.mark.asyncio
    async def test_llm_failure_uses_fallback(self, make_lead, stub_completion, dossier, youtube_candidates):
        from deep_dive.ai.summarizer import Summarizer

        summary = await Summarizer(stub_completion(None)).summarize(
            make_lead(), [], [dossier()], youtube_candidates
        )

        assert summary.confidence == 0.35
        assert summary.next_step == "Send one short message with a single CTA."

    @pytest.mark.asyncio
    async def test_empty_highlights_fall_back(self, make_lead, stub_completion, dossier, youtube_candidates):
        from deep_dive.ai.summarizer import Summarizer

        completion = stub_completion(
            {"summary": "s", "outreach_angle": "o", "next_step": "n", "confidence": 0.5, "highlights": []}
        )

        summary = await Summarizer(completion).summarize(make_lead(), [], [dossier()], youtube_candidates)

        assert summary.highlights == ["Found youtube profile.", "Found website profile."]
