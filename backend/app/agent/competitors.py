import logging
import math
import uuid
from urllib.parse import urlparse

from sqlmodel import Session

from app import crud
from app.agent.artifacts import CompetitorPages
from app.agent.competitor_agent import CompetitorAnalystAgent
from app.agent.rag import KNOWLEDGE_COMPETITOR, KNOWLEDGE_FEATURE, RAGManager, get_rag_manager
from app.core.errors import AppError, propagate_error
from app.events import emit_competitor_features_status_changed
from app.integrations.billing import BillingService
from app.integrations.tavily import TavilyClient, get_tavily_client
from app.models import Competitor, CompetitorAnalysisStatus, CompetitorFeaturesStatus
from app.text_chunking import chunk_text

logger = logging.getLogger(__name__)

MAX_CRAWL_PAGES = 8


def website_domain(website_url: str) -> str:
    parsed = urlparse(website_url if "://" in website_url else f"https://{website_url}")
    return (parsed.netloc or parsed.path).lower().removeprefix("www.")


async def crawl_competitor_site(website_url: str, search_client: TavilyClient) -> CompetitorPages:
    """Fetch the landing page plus the most relevant pages of the competitor's domain."""
    pages = await search_client.extract([website_url])
    domain = website_domain(website_url)
    if domain:
        results = await search_client.search(
            f"{domain} features pricing product",
            max_results=MAX_CRAWL_PAGES,
            include_domains=[domain],
        )
        known = {page["url"] for page in pages}
        pages.extend(item for item in results if item["url"] not in known)
    return CompetitorPages(website_url=website_url, pages=pages[:MAX_CRAWL_PAGES])


def _set_status(
    session: Session,
    competitor_id: uuid.UUID,
    *,
    features_status: CompetitorFeaturesStatus | None = None,
    analysis_status: CompetitorAnalysisStatus | None = None,
    message: str,
) -> None:
    try:
        crud.update_competitor_status(
            session=session,
            competitor_id=competitor_id,
            features_status=features_status,
            analysis_status=analysis_status,
        )
    except Exception as exc:
        logger.warning("Failed to update status of competitor %s: %s", competitor_id, exc)
    status = features_status or analysis_status
    emit_competitor_features_status_changed(
        competitor_id=competitor_id, status=status.value if status else "", message=message
    )


def index_competitor_knowledge(competitor: Competitor, pages: CompetitorPages, rag: RAGManager) -> int:
    external_id = str(competitor.id)
    rag.delete_knowledge(external_id)

    stored = 0
    if competitor.summary:
        stored += rag.add_knowledge_chunks(
            external_id=external_id,
            knowledge_type=KNOWLEDGE_COMPETITOR,
            source_id="summary",
            chunks=[competitor.summary],
            source=competitor.website_url,
        )
    for page in pages.pages:
        stored += rag.add_knowledge_chunks(
            external_id=external_id,
            knowledge_type=KNOWLEDGE_COMPETITOR,
            source_id=page["url"],
            chunks=chunk_text(page.get("content", "")),
            source=page["url"],
        )
    if competitor.features:
        stored += rag.add_knowledge_chunks(
            external_id=external_id,
            knowledge_type=KNOWLEDGE_FEATURE,
            source_id="features",
            chunks=[f"{feature['name']}: {feature['description']}" for feature in competitor.features],
            metadatas=[{"category": feature.get("category", "general")} for feature in competitor.features],
            source=competitor.website_url,
        )
    return stored


async def analyze_competitor(
    session: Session,
    competitor_id: uuid.UUID,
    *,
    analyst: CompetitorAnalystAgent | None = None,
    search_client: TavilyClient | None = None,
    billing: BillingService | None = None,
    rag: RAGManager | None = None,
) -> Competitor:
    """Crawl a competitor's site, extract its features and index it as competitor knowledge."""
    analyst = analyst or CompetitorAnalystAgent()
    search_client = search_client or get_tavily_client()
    billing = billing or BillingService(session)

    try:
        competitor = crud.get_competitor(session=session, competitor_id=competitor_id)
        _set_status(
            session,
            competitor_id,
            features_status=CompetitorFeaturesStatus.crawling,
            analysis_status=CompetitorAnalysisStatus.analyzing,
            message=f"Crawling {competitor.website_url}...",
        )
        pages = await crawl_competitor_site(competitor.website_url, search_client)
        if pages.pages:
            await billing.ingest_web_search_usage(user_id=competitor.user_id, method="crawl")

        _set_status(
            session,
            competitor_id,
            features_status=CompetitorFeaturesStatus.analyzing,
            message="Extracting competitor features...",
        )
        profile = await analyst.run(pages)
        usage = analyst.collect_usage()
        if usage.total_tokens:
            await billing.ingest_llm_usage(
                user_id=competitor.user_id,
                model_name=analyst.model_name,
                prompt_tokens=usage.prompt_tokens,
                completion_tokens=usage.completion_tokens,
                step=analyst.step_name,
            )

        competitor = crud.update_competitor_fields(
            session=session,
            competitor_id=competitor_id,
            name=competitor.name or profile.name,
            summary=profile.summary,
            features=[feature.model_dump() for feature in profile.features],
            features_status=CompetitorFeaturesStatus.completed,
            analysis_status=CompetitorAnalysisStatus.chunking,
        )
        emit_competitor_features_status_changed(
            competitor_id=competitor_id,
            status=CompetitorFeaturesStatus.completed.value,
            message=f"Found {len(profile.features)} feature(s)",
        )

        stored = index_competitor_knowledge(competitor, pages, rag or get_rag_manager())
        logger.info("Indexed %s knowledge chunk(s) for competitor %s", stored, competitor_id)
    except Exception as e:
        logger.error("Competitor analysis failed for %s: %s", competitor_id, e, exc_info=True)
        _set_status(
            session,
            competitor_id,
            features_status=CompetitorFeaturesStatus.failed,
            analysis_status=CompetitorAnalysisStatus.failed,
            message="Failed to analyze competitor",
        )
        propagate_error(e)
        raise AppError.internal("Failed to analyze competitor", cause=str(e)) from e

    return crud.update_competitor_status(
        session=session,
        competitor_id=competitor_id,
        analysis_status=CompetitorAnalysisStatus.completed,
    )


def paginate_features(
    features: list[dict],
    *,
    page: int = 1,
    limit: int = 12,
    sort_by: str = "name",
    sort_order: str = "asc",
    category: str | None = None,
) -> dict:
    """Filter, sort and page the features stored on a competitor."""
    selected = [
        feature
        for feature in features
        if category is None or feature.get("category", "general") == category
    ]
    selected.sort(
        key=lambda feature: str(feature.get(sort_by) or "").lower(),
        reverse=sort_order == "desc",
    )
    total = len(selected)
    start = (page - 1) * limit
    return {
        "features": selected[start:start + limit],
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": math.ceil(total / limit),
    }


def search_competitor_knowledge(
    competitor_id: uuid.UUID,
    query: str,
    *,
    features_only: bool = False,
    limit: int = 10,
    rag: RAGManager | None = None,
) -> list[dict]:
    rag = rag or get_rag_manager()
    return rag.query_snippets(
        external_id=str(competitor_id),
        query=query,
        knowledge_type=KNOWLEDGE_FEATURE if features_only else None,
        n_results=limit,
    )
