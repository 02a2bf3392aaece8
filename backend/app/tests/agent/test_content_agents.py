import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from app.agent.artifacts import (
    CompetitorPages,
    ContentBrief,
    ContentDraft,
    ContentStrategy,
    EditedContent,
    EditingInput,
    IdeasInput,
    ResearchFindings,
    ReviewInput,
    WritingInput,
)
from app.agent.competitor_agent import CompetitorAnalystAgent
from app.agent.distiller_agent import DistillerAgent
from app.agent.editor_agent import EditorAgent
from app.agent.ideas_agent import IdeasAgent
from app.agent.reader_agent import ReaderAgent
from app.agent.researcher_agent import ResearcherAgent
from app.agent.strategist_agent import StrategistAgent
from app.agent.writer_agent import WriterAgent
from app.persona import PersonaConfig


def _persona(language: str = "en") -> PersonaConfig:
    return PersonaConfig.model_validate(
        {
            "metadata": {"name": "Ana", "description": "Growth marketer."},
            "language": {"primary": language},
            "brand": {"integration_style": "flexible_guideline", "blacklist_words": ["synergy"]},
        }
    )


def _brief(layout: str = "article", language: str = "en") -> ContentBrief:
    return ContentBrief(
        description="How small teams can ship weekly changelogs",
        layout=layout,
        persona=_persona(language),
        brand_context="Relevant Brand Knowledge:\n\nWe ship every Friday.",
    )


def _llm_returning(*contents: str):
    responses = []
    for content in contents:
        mock_message = MagicMock()
        mock_message.content = content
        mock_choice = MagicMock()
        mock_choice.message = mock_message
        mock_response = MagicMock()
        mock_response.choices = [mock_choice]
        responses.append(mock_response)

    mock_completions = MagicMock()
    mock_completions.create = AsyncMock(side_effect=responses)
    mock_client_instance = AsyncMock()
    mock_client_instance.chat = MagicMock()
    mock_client_instance.chat.completions = mock_completions
    return mock_client_instance, mock_completions


def _messages(mock_completions, call_index: int = -1) -> list[dict]:
    return mock_completions.create.call_args_list[call_index].kwargs["messages"]


@pytest.mark.asyncio
async def test_writer_agent_builds_persona_and_layout_prompt():
    mock_client, mock_completions = _llm_returning("# Weekly Changelogs\n\nShip small, ship often.")
    with patch("app.agent.llm_client.AsyncOpenAI", return_value=mock_client):
        agent = WriterAgent()
        draft = await agent.run(
            WritingInput(
                brief=_brief(language="pt"),
                research=ResearchFindings(
                    search_intent="Learn a changelog routine",
                    content_gaps=["No templates"],
                    sources=["https://example.com/changelogs"],
                ),
                strategy=ContentStrategy(
                    brand_insights="We ship on Fridays",
                    brand_positioning="The calm release tool",
                    key_messages=["Consistency beats size"],
                ),
            )
        )

    assert isinstance(draft, ContentDraft)
    assert draft.writing.startswith("# Weekly Changelogs")
    system_prompt, user_prompt = (m["content"] for m in _messages(mock_completions))
    assert "You are **Ana**." in system_prompt
    assert "português" in system_prompt
    assert "We ship every Friday." in user_prompt
    assert "The calm release tool" in user_prompt
    assert "https://example.com/changelogs" in user_prompt
    assert mock_completions.create.call_args.kwargs["temperature"] == 0.7


@pytest.mark.asyncio
async def test_editor_agent_keeps_blacklist_in_prompt():
    mock_client, mock_completions = _llm_returning("# Title\n\nPolished.")
    with patch("app.agent.llm_client.AsyncOpenAI", return_value=mock_client):
        edited = await EditorAgent().run(
            EditingInput(brief=_brief(layout="tutorial"), draft=ContentDraft(writing="# Title\n\nRough."))
        )

    assert edited == EditedContent(editor="# Title\n\nPolished.")
    system_prompt, user_prompt = (m["content"] for m in _messages(mock_completions))
    assert '"synergy"' in system_prompt
    assert user_prompt.endswith("# Title\n\nRough.")


@pytest.mark.asyncio
async def test_reader_agent_returns_rating():
    mock_client, _ = _llm_returning(json.dumps({"rating": 82, "reason_of_the_rating": "**Clear** and useful."}))
    with patch("app.agent.llm_client.AsyncOpenAI", return_value=mock_client):
        review = await ReaderAgent().run(
            ReviewInput(brief=_brief(), content=EditedContent(editor="# T\n\nBody"))
        )

    assert review.rating == 82
    assert "Clear" in review.reason_of_the_rating


@pytest.mark.asyncio
async def test_strategist_agent_returns_strategy():
    payload = {
        "brand_insights": "Friday releases",
        "brand_positioning": "Calm shipping",
        "content_angles": ["Rituals"],
        "key_messages": ["Small is fine"],
        "unique_differentiators": ["Automatic notes"],
    }
    mock_client, mock_completions = _llm_returning(json.dumps(payload))
    with patch("app.agent.llm_client.AsyncOpenAI", return_value=mock_client):
        strategy = await StrategistAgent().run(_brief())

    assert strategy.content_angles == ["Rituals"]
    assert "weekly changelogs" in _messages(mock_completions)[1]["content"]


@pytest.mark.asyncio
async def test_researcher_agent_keeps_only_known_sources():
    search_client = MagicMock()
    search_client.search = AsyncMock(
        return_value=[
            {"title": "A", "url": "https://a.example", "content": "Changelog tips"},
            {"title": "B", "url": "https://b.example", "content": "Release notes"},
        ]
    )
    payload = {
        "search_intent": "Routine",
        "sources": ["https://a.example", "https://made-up.example"],
    }
    mock_client, mock_completions = _llm_returning(json.dumps(payload))
    with patch("app.agent.llm_client.AsyncOpenAI", return_value=mock_client):
        agent = ResearcherAgent(search_client=search_client)
        findings = await agent.run(_brief())

    assert findings.sources == ["https://a.example"]
    assert agent.searches_performed == 1
    assert "Web Search Results" in _messages(mock_completions)[1]["content"]


@pytest.mark.asyncio
async def test_researcher_agent_falls_back_to_search_urls():
    search_client = MagicMock()
    search_client.search = AsyncMock(return_value=[{"title": "A", "url": "https://a.example", "content": ""}])
    mock_client, _ = _llm_returning(json.dumps({"search_intent": "Routine", "sources": []}))
    with patch("app.agent.llm_client.AsyncOpenAI", return_value=mock_client):
        findings = await ResearcherAgent(search_client=search_client).run(_brief())

    assert findings.sources == ["https://a.example"]


def test_researcher_search_query_is_bounded():
    brief = _brief()
    brief.description = "word " * 200
    assert len(ResearcherAgent.build_search_query(brief)) <= 380


@pytest.mark.asyncio
async def test_ideas_agent_dedupes_titles():
    idea = {
        "title": "Ship weekly",
        "description": "Why cadence matters. How to start.",
        "tags": ["release"],
        "confidence_score": 80,
        "confidence_rationale": "Matches the brand.",
    }
    duplicate = {**idea, "title": "  ship WEEKLY "}
    mock_client, _ = _llm_returning(json.dumps({"ideas": [idea, duplicate]}))
    with patch("app.agent.llm_client.AsyncOpenAI", return_value=mock_client):
        batch = await IdeasAgent().run(IdeasInput(persona=_persona(), keywords=["changelog"]))

    assert [item.title for item in batch.ideas] == ["Ship weekly"]


@pytest.mark.asyncio
async def test_ideas_agent_raises_without_ideas():
    mock_client, _ = _llm_returning(json.dumps({"ideas": []}))
    with patch("app.agent.llm_client.AsyncOpenAI", return_value=mock_client):
        with pytest.raises(ValueError):
            await IdeasAgent().run(IdeasInput(persona=_persona(), keywords=["changelog"]))


@pytest.mark.asyncio
async def test_distiller_skips_short_text_without_calling_llm():
    mock_client, mock_completions = _llm_returning()
    with patch("app.agent.llm_client.AsyncOpenAI", return_value=mock_client):
        result = await DistillerAgent(source="notes.md").run("too short")

    assert result.points == []
    mock_completions.create.assert_not_called()


@pytest.mark.asyncio
async def test_distiller_filters_short_points_and_sets_source():
    long_point = "Acme ships release notes every Friday afternoon for all paid customers."
    payload = {
        "points": [
            {"content": long_point, "summary": "Friday releases", "category": "product_spec"},
            {"content": "Too short.", "summary": "x"},
        ]
    }
    mock_client, _ = _llm_returning(json.dumps(payload))
    with patch("app.agent.llm_client.AsyncOpenAI", return_value=mock_client):
        result = await DistillerAgent(source="notes.md").run("A" * 60 + " document body")

    assert [point.content for point in result.points] == [long_point]
    assert result.points[0].source == "notes.md"


@pytest.mark.asyncio
async def test_competitor_agent_requires_pages():
    with patch("app.agent.llm_client.AsyncOpenAI"):
        with pytest.raises(ValueError):
            await CompetitorAnalystAgent().run(CompetitorPages(website_url="https://rival.example"))


@pytest.mark.asyncio
async def test_competitor_agent_dedupes_features():
    payload = {
        "name": "Rival",
        "summary": "Release notes SaaS.",
        "features": [
            {"name": "Changelog widget", "description": "Embeddable widget."},
            {"name": "changelog widget", "description": "Duplicate."},
            {"name": "Email digests", "description": "Weekly emails.", "category": "notifications"},
        ],
    }
    mock_client, _ = _llm_returning(json.dumps(payload))
    with patch("app.agent.llm_client.AsyncOpenAI", return_value=mock_client):
        profile = await CompetitorAnalystAgent().run(
            CompetitorPages(
                website_url="https://rival.example",
                pages=[{"url": "https://rival.example", "content": "Changelog widget and email digests"}],
            )
        )

    assert [feature.name for feature in profile.features] == ["Changelog widget", "Email digests"]
