import logging

from sqlmodel import Session

from app import crud
from app.agent.artifacts import IdeasInput
from app.agent.ideas_agent import IdeasAgent
from app.agent.rag import KNOWLEDGE_BRAND, RAGManager, get_rag_manager
from app.core.errors import AppError, propagate_error
from app.integrations.billing import BillingService
from app.integrations.tavily import TavilyClient, format_search_results, get_tavily_client
from app.models import Agent, Idea, IdeaStatus

logger = logging.getLogger(__name__)


async def generate_ideas(
    session: Session,
    agent: Agent,
    keywords: list[str],
    *,
    ideas_agent: IdeasAgent | None = None,
    search_client: TavilyClient | None = None,
    billing: BillingService | None = None,
    rag: RAGManager | None = None,
) -> list[Idea]:
    """Propose blog post ideas for an agent and persist them as pending ideas."""
    ideas_agent = ideas_agent or IdeasAgent()
    search_client = search_client or get_tavily_client()
    billing = billing or BillingService(session)
    query = " ".join(keyword.strip() for keyword in keywords if keyword.strip())

    brand_context = ""
    try:
        brand_context = (rag or get_rag_manager()).query_context(
            str(agent.id), query, knowledge_type=KNOWLEDGE_BRAND
        )
    except Exception as exc:
        logger.warning("Brand knowledge lookup failed for agent %s: %s", agent.id, exc)

    results = await search_client.search(query)
    if results:
        await billing.ingest_web_search_usage(user_id=agent.user_id)
    sources = [item["url"] for item in results]

    try:
        batch = await ideas_agent.run(
            IdeasInput(
                persona=agent.persona,
                keywords=keywords,
                brand_context=brand_context,
                search_context=format_search_results(results),
            )
        )
    except Exception as e:
        logger.error("Idea generation failed for agent %s: %s", agent.id, e, exc_info=True)
        propagate_error(e)
        raise AppError.internal("Failed to generate ideas", cause=str(e)) from e

    usage = ideas_agent.collect_usage()
    if usage.total_tokens:
        await billing.ingest_llm_usage(
            user_id=agent.user_id,
            model_name=ideas_agent.model_name,
            prompt_tokens=usage.prompt_tokens,
            completion_tokens=usage.completion_tokens,
            step=ideas_agent.step_name,
        )

    ideas = [
        Idea(
            agent_id=agent.id,
            content={"title": idea.title, "description": idea.description},
            confidence={"score": str(idea.confidence_score), "rationale": idea.confidence_rationale},
            status=IdeaStatus.pending,
            meta={"tags": idea.tags, "sources": sources},
        )
        for idea in batch.ideas
    ]
    return crud.create_ideas(session=session, ideas=ideas)
