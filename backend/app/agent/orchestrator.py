import asyncio
import json
import logging
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from sqlmodel import Session

from app import crud
from app.agent.artifacts import (
    ContentBrief,
    ContentDraft,
    ContentReview,
    ContentStrategy,
    EditedContent,
    EditingInput,
    ResearchFindings,
    ReviewInput,
    SeoMetadata,
    WritingInput,
)
from app.agent.base import BaseAgent
from app.agent.editor_agent import EditorAgent
from app.agent.rag import KNOWLEDGE_BRAND, KNOWLEDGE_COMPETITOR, format_knowledge_context, get_rag_manager
from app.agent.reader_agent import ReaderAgent
from app.agent.researcher_agent import ResearcherAgent
from app.agent.strategist_agent import StrategistAgent
from app.agent.writer_agent import WriterAgent
from app.core.errors import AppError, propagate_error
from app.events import emit_content_status_changed
from app.integrations.billing import EVENT_GENERATED_CONTENT, BillingService
from app.models import Agent, Content, ContentRequest, ContentStatus
from app.utils.markdown import extract_title_from_markdown, remove_title_from_markdown
from app.utils.text import (
    calculate_content_stats,
    create_description_from_text,
    create_slug,
    get_keywords_from_text,
)

logger = logging.getLogger(__name__)

SEO_KEYWORD_MIN_LENGTH = 8
SEO_DESCRIPTION_MAX_LENGTH = 180
MAX_COMPETITORS_IN_CONTEXT = 5

# Steps inside a tuple run concurrently; tuples run in order.
PIPELINES: dict[str, list[tuple[str, ...]]] = {
    "article": [("research", "strategy"), ("write",), ("edit",), ("review", "seo")],
    "tutorial": [("research",), ("write",), ("edit",), ("review", "seo")],
    "changelog": [("write",), ("edit",), ("review", "seo")],
}

STEP_MESSAGES: dict[str, tuple[str, str, str]] = {
    "research": ("Researching for your {layout}...", "{Layout} research completed", "Failed to research {layout}"),
    "strategy": ("Planning the strategy for your {layout}...", "{Layout} strategy completed", "Failed to plan {layout} strategy"),
    "write": ("Writing your {layout}...", "{Layout} draft completed", "Failed to write {layout}"),
    "edit": ("Editing your {layout}...", "{Layout} editing completed", "Failed to edit {layout}"),
    "review": ("Reviewing your {layout}...", "{Layout} review completed", "Failed to review {layout}"),
    "seo": ("Optimizing your {layout} for search...", "{Layout} SEO completed", "Failed to optimize {layout} for search"),
}

SAVE_SUCCESS_MESSAGE = "Content generation completed and saved as draft"
SAVE_FAILURE_MESSAGE = "Failed to save your new content on the database"


def step_message(step: str, phase: int, layout: str) -> str:
    return STEP_MESSAGES[step][phase].format(layout=layout, Layout=layout.capitalize())


@dataclass
class PipelineAgents:
    strategist: BaseAgent = field(default_factory=StrategistAgent)
    researcher: BaseAgent = field(default_factory=ResearcherAgent)
    writer: BaseAgent = field(default_factory=WriterAgent)
    editor: BaseAgent = field(default_factory=EditorAgent)
    reader: BaseAgent = field(default_factory=ReaderAgent)


def compute_seo_metadata(edited: EditedContent) -> SeoMetadata:
    body = remove_title_from_markdown(edited.editor)
    return SeoMetadata(
        keywords=get_keywords_from_text(body, min_length=SEO_KEYWORD_MIN_LENGTH),
        description=create_description_from_text(body, max_length=SEO_DESCRIPTION_MAX_LENGTH),
    )


def _rollback_session_safely(session: Session) -> None:
    try:
        session.rollback()
    except Exception as exc:
        logger.warning("Session rollback failed: %s", exc)


def _update_content_status_safely(
    session: Session, content_id: uuid.UUID, status: ContentStatus, *, layout: str, message: str
) -> None:
    try:
        crud.update_content_status(session=session, content_id=content_id, status=status)
    except Exception as exc:
        logger.warning("Failed to update content %s to %s: %s", content_id, status.value, exc)
    emit_content_status_changed(
        content_id=content_id, status=status.value, message=message, layout=layout
    )


def _retrieve_brand_context(agent: Agent, query: str) -> str:
    try:
        return get_rag_manager().query_context(str(agent.id), query, knowledge_type=KNOWLEDGE_BRAND)
    except Exception as exc:
        logger.warning("Brand knowledge lookup failed for agent %s: %s", agent.id, exc)
        return ""


def _retrieve_competitor_context(session: Session, user_id: uuid.UUID, query: str) -> str:
    try:
        competitors = crud.list_competitors(session=session, user_id=user_id, limit=MAX_COMPETITORS_IN_CONTEXT)
        rag = get_rag_manager()
        snippets: list[dict[str, Any]] = []
        for competitor in competitors:
            snippets.extend(
                rag.query_snippets(
                    external_id=str(competitor.id),
                    query=query,
                    knowledge_type=KNOWLEDGE_COMPETITOR,
                    n_results=3,
                )
            )
    except Exception as exc:
        logger.warning("Competitor knowledge lookup failed for user %s: %s", user_id, exc)
        return ""
    return format_knowledge_context(snippets, heading="Competitor Knowledge")


class ContentPipeline:
    """Runs one content request through its layout's steps and saves the draft."""

    def __init__(
        self,
        session: Session,
        content: Content,
        agent: Agent,
        *,
        agents: PipelineAgents | None = None,
        billing: BillingService | None = None,
    ):
        self.session = session
        self.content = content
        self.agent = agent
        self.agents = agents or PipelineAgents()
        self.billing = billing or BillingService(session)
        self.request = ContentRequest.model_validate(content.request)
        self.layout = self.request.layout
        self.results: dict[str, Any] = {}
        self.brief = ContentBrief(
            description=self.request.description,
            layout=self.layout,
            persona=agent.persona,
        )

    @property
    def steps(self) -> list[tuple[str, ...]]:
        return PIPELINES[self.layout]

    def load_context(self) -> None:
        self.brief.brand_context = _retrieve_brand_context(self.agent, self.request.description)
        if self.layout == "article":
            self.brief.competitor_context = _retrieve_competitor_context(
                self.session, self.content.user_id, self.request.description
            )

    def _step_runner(self, step: str) -> Callable[[], Awaitable[Any]]:
        runners: dict[str, Callable[[], Awaitable[Any]]] = {
            "research": lambda: self.agents.researcher.run(self.brief),
            "strategy": lambda: self.agents.strategist.run(self.brief),
            "write": lambda: self.agents.writer.run(
                WritingInput(
                    brief=self.brief,
                    research=self.results.get("research"),
                    strategy=self.results.get("strategy"),
                )
            ),
            "edit": lambda: self.agents.editor.run(
                EditingInput(brief=self.brief, draft=self.results["write"])
            ),
            "review": lambda: self.agents.reader.run(
                ReviewInput(brief=self.brief, content=self.results["edit"])
            ),
            "seo": self._run_seo,
        }
        return runners[step]

    async def _run_seo(self) -> SeoMetadata:
        return compute_seo_metadata(self.results["edit"])

    def _agent_for(self, step: str) -> BaseAgent | None:
        return {
            "research": self.agents.researcher,
            "strategy": self.agents.strategist,
            "write": self.agents.writer,
            "edit": self.agents.editor,
            "review": self.agents.reader,
        }.get(step)

    async def _ingest_usage(self, step: str) -> None:
        step_agent = self._agent_for(step)
        if step_agent is None:
            return
        usage = step_agent.collect_usage()
        try:
            if usage.total_tokens:
                await self.billing.ingest_llm_usage(
                    user_id=self.content.user_id,
                    model_name=step_agent.model_name,
                    prompt_tokens=usage.prompt_tokens,
                    completion_tokens=usage.completion_tokens,
                    step=step,
                )
            searches = getattr(step_agent, "searches_performed", 0)
            if step == "research" and searches:
                step_agent.searches_performed = 0
                for _ in range(searches):
                    await self.billing.ingest_web_search_usage(user_id=self.content.user_id)
        except AppError as exc:
            logger.warning("Usage ingestion failed for %s step of content %s: %s", step, self.content.id, exc)

    def _fail(self, step: str, error: BaseException) -> AppError:
        message = step_message(step, 2, self.layout)
        logger.error("%s for content %s: %s", message, self.content.id, error)
        _update_content_status_safely(
            self.session, self.content.id, ContentStatus.failed, layout=self.layout, message=message
        )
        if isinstance(error, AppError):
            return error
        return AppError.internal(message, cause=str(error))

    async def run_group(self, group: tuple[str, ...]) -> list[tuple[str, Any]]:
        for step in group:
            _update_content_status_safely(
                self.session,
                self.content.id,
                ContentStatus.pending,
                layout=self.layout,
                message=step_message(step, 0, self.layout),
            )

        outcomes = await asyncio.gather(
            *(self._step_runner(step)() for step in group), return_exceptions=True
        )

        completed: list[tuple[str, Any]] = []
        for step, outcome in zip(group, outcomes):
            if isinstance(outcome, BaseException):
                raise self._fail(step, outcome) from outcome
            self.results[step] = outcome
            await self._ingest_usage(step)
            emit_content_status_changed(
                content_id=self.content.id,
                status=ContentStatus.pending.value,
                message=step_message(step, 1, self.layout),
                layout=self.layout,
            )
            completed.append((step, outcome))
        return completed

    async def save(self) -> Content:
        edited: EditedContent = self.results["edit"]
        review: ContentReview | None = self.results.get("review")
        seo: SeoMetadata = self.results.get("seo") or compute_seo_metadata(edited)
        research: ResearchFindings | None = self.results.get("research")

        try:
            title = extract_title_from_markdown(edited.editor)
            body = remove_title_from_markdown(edited.editor).lstrip("\n")
            stats = calculate_content_stats(body)
            if review is not None:
                stats["quality_score"] = str(review.rating)
                stats["reason_of_the_rating"] = review.reason_of_the_rating
            meta = {
                "title": title,
                "slug": create_slug(title) if title else None,
                "description": seo.description,
                "keywords": seo.keywords,
                "sources": list(research.sources) if research else [],
            }
            content = crud.update_content_fields(
                session=self.session,
                content_id=self.content.id,
                body=body,
                meta=meta,
                stats=stats,
                status=ContentStatus.draft,
            )
            crud.touch_agent_last_generated(session=self.session, agent_id=self.agent.id)
        except Exception as exc:
            logger.error("Saving content %s failed: %s", self.content.id, exc, exc_info=True)
            _rollback_session_safely(self.session)
            _update_content_status_safely(
                self.session,
                self.content.id,
                ContentStatus.failed,
                layout=self.layout,
                message=SAVE_FAILURE_MESSAGE,
            )
            propagate_error(exc)
            raise AppError.internal(SAVE_FAILURE_MESSAGE, cause=str(exc)) from exc

        await self.billing.record_event(
            user_id=self.content.user_id,
            event=EVENT_GENERATED_CONTENT,
            meta={"content_id": str(self.content.id), "layout": self.layout},
        )
        emit_content_status_changed(
            content_id=self.content.id,
            status=ContentStatus.draft.value,
            message=SAVE_SUCCESS_MESSAGE,
            layout=self.layout,
        )
        return content


def _artifact_payload(artifact: Any) -> Any:
    if isinstance(artifact, (ContentStrategy, ResearchFindings, ContentReview, SeoMetadata)):
        return artifact.model_dump()
    if isinstance(artifact, ContentDraft):
        return {"words": len(artifact.writing.split())}
    if isinstance(artifact, EditedContent):
        return {"words": len(artifact.editor.split())}
    return None


async def run_content_generation(
    session: Session,
    content_id: uuid.UUID,
    *,
    agents: PipelineAgents | None = None,
    billing: BillingService | None = None,
):
    """
    Generator that runs a content request through its pipeline, saves the draft,
    and yields SSE-ready JSON events for each step.
    """
    yield json.dumps({"status": "starting", "message": "Initializing content generation..."})

    try:
        content = crud.get_content(session=session, content_id=content_id)
        agent = crud.get_agent(session=session, agent_id=content.agent_id)
        pipeline = ContentPipeline(session, content, agent, agents=agents, billing=billing)
        pipeline.load_context()

        for group in pipeline.steps:
            for step in group:
                yield json.dumps({"status": step, "message": step_message(step, 0, pipeline.layout)})
            for step, artifact in await pipeline.run_group(group):
                yield json.dumps({
                    "status": f"{step}_done",
                    "message": step_message(step, 1, pipeline.layout),
                    "artifact": _artifact_payload(artifact),
                })

        saved = await pipeline.save()
        yield json.dumps({
            "status": "completed",
            "message": SAVE_SUCCESS_MESSAGE,
            "content_id": str(saved.id),
            "meta": saved.meta,
            "stats": saved.stats,
        })

    except Exception as e:
        logger.error("Content generation error for %s: %s", content_id, e, exc_info=True)
        _rollback_session_safely(session)
        payload: dict[str, Any] = {"status": "error", "message": str(e)}
        if isinstance(e, AppError):
            payload["message"] = e.message
            payload["status_code"] = e.status_code
        yield json.dumps(payload)


async def generate_content(
    session: Session,
    content_id: uuid.UUID,
    *,
    agents: PipelineAgents | None = None,
    billing: BillingService | None = None,
) -> dict[str, Any]:
    """Drain the pipeline; raise if it ended in an error so job retries can kick in."""
    last_event: dict[str, Any] = {}
    async for raw_event in run_content_generation(session, content_id, agents=agents, billing=billing):
        last_event = json.loads(raw_event)
    if last_event.get("status") == "error":
        raise AppError(
            last_event.get("message") or "Content generation failed",
            last_event.get("status_code") or 500,
        )
    return last_event
