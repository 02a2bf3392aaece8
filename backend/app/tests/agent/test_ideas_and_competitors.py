import unittest
from unittest.mock import AsyncMock, MagicMock, patch

from sqlmodel import Session

from app import crud
from app.agent.artifacts import CompetitorFeature, CompetitorProfile, GeneratedIdea, IdeaBatch
from app.agent.competitors import analyze_competitor, crawl_competitor_site, website_domain
from app.agent.ideas import generate_ideas
from app.agent.llm_client import TokenUsage
from app.agent.rag import KNOWLEDGE_COMPETITOR, KNOWLEDGE_FEATURE
from app.core.errors import AppError
from app.models import (
    Competitor,
    CompetitorAnalysisStatus,
    CompetitorCreate,
    CompetitorFeaturesStatus,
    IdeaStatus,
)
from app.tests.helpers import make_agent, make_engine, make_user


def _llm_agent(result=None, error: Exception | None = None, step_name: str = "step"):
    agent = MagicMock()
    agent.run = AsyncMock(return_value=result, side_effect=error)
    agent.collect_usage = MagicMock(return_value=TokenUsage(prompt_tokens=12, completion_tokens=8))
    agent.model_name = "test-model"
    agent.step_name = step_name
    return agent


def _billing():
    billing = MagicMock()
    billing.ingest_llm_usage = AsyncMock()
    billing.ingest_web_search_usage = AsyncMock()
    return billing


class GenerateIdeasTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.engine = make_engine()
        self.session = Session(self.engine)
        self.agent = make_agent(self.session, make_user(self.session))

    def tearDown(self):
        self.session.close()

    async def test_ideas_are_persisted_with_confidence_and_sources(self):
        batch = IdeaBatch(
            ideas=[
                GeneratedIdea(
                    title="Ship weekly changelogs",
                    description="Why cadence matters. How to start.",
                    tags=["release"],
                    confidence_score=77,
                    confidence_rationale="Fits the Friday release habit.",
                )
            ]
        )
        search_client = MagicMock()
        search_client.search = AsyncMock(
            return_value=[{"title": "A", "url": "https://a.example", "content": "Changelog tips"}]
        )
        rag = MagicMock()
        rag.query_context.return_value = "Relevant Brand Knowledge:\n\nWe ship on Fridays."
        ideas_agent = _llm_agent(batch, step_name="ideas")
        billing = _billing()

        ideas = await generate_ideas(
            self.session,
            self.agent,
            ["changelog", "release notes"],
            ideas_agent=ideas_agent,
            search_client=search_client,
            billing=billing,
            rag=rag,
        )

        self.assertEqual(len(ideas), 1)
        idea = ideas[0]
        self.assertEqual(idea.status, IdeaStatus.pending)
        self.assertEqual(idea.content["title"], "Ship weekly changelogs")
        self.assertEqual(idea.confidence, {"score": "77", "rationale": "Fits the Friday release habit."})
        self.assertEqual(idea.meta["sources"], ["https://a.example"])
        search_client.search.assert_awaited_once_with("changelog release notes")
        ideas_input = ideas_agent.run.await_args.args[0]
        self.assertIn("We ship on Fridays.", ideas_input.brand_context)
        billing.ingest_web_search_usage.assert_awaited_once()
        billing.ingest_llm_usage.assert_awaited_once()

        stored, count = crud.list_ideas(session=self.session, agent_ids=[self.agent.id])
        self.assertEqual(count, 1)

    async def test_agent_failure_becomes_app_error(self):
        search_client = MagicMock()
        search_client.search = AsyncMock(return_value=[])
        rag = MagicMock()
        rag.query_context.return_value = ""

        with self.assertRaises(AppError) as ctx:
            await generate_ideas(
                self.session,
                self.agent,
                ["changelog"],
                ideas_agent=_llm_agent(error=ValueError("IdeasAgent failed to produce any ideas.")),
                search_client=search_client,
                billing=_billing(),
                rag=rag,
            )

        self.assertEqual(ctx.exception.message, "Failed to generate ideas")


class CompetitorAnalysisTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.engine = make_engine()
        self.session = Session(self.engine)
        self.user = make_user(self.session)
        self.competitor = crud.create_competitor(
            session=self.session,
            competitor_in=CompetitorCreate(website_url="https://www.rival.example"),
            user=self.user,
        )
        self.search_client = MagicMock()
        self.search_client.extract = AsyncMock(
            return_value=[{"title": "Rival", "url": "https://www.rival.example", "content": "Changelog widget"}]
        )
        self.search_client.search = AsyncMock(
            return_value=[
                {"title": "Rival", "url": "https://www.rival.example", "content": "Duplicate landing page"},
                {"title": "Pricing", "url": "https://www.rival.example/pricing", "content": "Email digests"},
            ]
        )
        self.rag = MagicMock()
        self.rag.add_knowledge_chunks.return_value = 1

    def tearDown(self):
        self.session.close()

    def test_website_domain(self):
        self.assertEqual(website_domain("https://www.Rival.example/pricing"), "rival.example")
        self.assertEqual(website_domain("rival.example"), "rival.example")

    async def test_crawl_merges_extract_and_search_pages(self):
        pages = await crawl_competitor_site("https://www.rival.example", self.search_client)

        self.assertEqual(
            [page["url"] for page in pages.pages],
            ["https://www.rival.example", "https://www.rival.example/pricing"],
        )
        self.assertEqual(
            self.search_client.search.await_args.kwargs["include_domains"], ["rival.example"]
        )

    async def test_analysis_stores_features_and_indexes_knowledge(self):
        profile = CompetitorProfile(
            name="Rival",
            summary="Release notes SaaS for startups.",
            features=[CompetitorFeature(name="Changelog widget", description="Embeddable widget.")],
        )
        analyst = _llm_agent(profile, step_name="competitor_analysis")
        billing = _billing()

        with patch("app.agent.competitors.emit_competitor_features_status_changed") as emit:
            competitor = await analyze_competitor(
                self.session,
                self.competitor.id,
                analyst=analyst,
                search_client=self.search_client,
                billing=billing,
                rag=self.rag,
            )

        self.assertEqual(competitor.name, "Rival")
        self.assertEqual(competitor.summary, "Release notes SaaS for startups.")
        self.assertEqual(competitor.features[0]["name"], "Changelog widget")
        self.assertEqual(competitor.features_status, CompetitorFeaturesStatus.completed)
        self.assertEqual(competitor.analysis_status, CompetitorAnalysisStatus.completed)

        self.rag.delete_knowledge.assert_called_once_with(str(self.competitor.id))
        knowledge_types = {call.kwargs["knowledge_type"] for call in self.rag.add_knowledge_chunks.call_args_list}
        self.assertEqual(knowledge_types, {KNOWLEDGE_COMPETITOR, KNOWLEDGE_FEATURE})
        billing.ingest_web_search_usage.assert_awaited_once()
        billing.ingest_llm_usage.assert_awaited_once()
        statuses = [call.kwargs["status"] for call in emit.call_args_list]
        self.assertEqual(statuses, ["crawling", "analyzing", "completed"])

    async def test_analysis_failure_marks_both_statuses_failed(self):
        analyst = _llm_agent(error=ValueError("No pages could be fetched"))

        with patch("app.agent.competitors.emit_competitor_features_status_changed"):
            with self.assertRaises(AppError):
                await analyze_competitor(
                    self.session,
                    self.competitor.id,
                    analyst=analyst,
                    search_client=self.search_client,
                    billing=_billing(),
                    rag=self.rag,
                )

        competitor = self.session.get(Competitor, self.competitor.id)
        self.session.refresh(competitor)
        self.assertEqual(competitor.features_status, CompetitorFeaturesStatus.failed)
        self.assertEqual(competitor.analysis_status, CompetitorAnalysisStatus.failed)
