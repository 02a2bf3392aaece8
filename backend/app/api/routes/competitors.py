import uuid
from typing import Any, Literal

from fastapi import APIRouter, Query
from sqlmodel import Session
from sse_starlette.sse import EventSourceResponse

from app import crud
from app.agent.competitors import analyze_competitor, paginate_features, search_competitor_knowledge
from app.agent.rag import get_rag_manager
from app.api.deps import CurrentUser, SessionDep, ensure_owner, new_session
from app.events import competitor_topic, stream_topic
from app.models import (
    Competitor,
    CompetitorAnalysisStatus,
    CompetitorCreate,
    CompetitorFeaturesPage,
    CompetitorFeaturesStatus,
    CompetitorPublic,
    CompetitorUpdate,
    Message,
    User,
)
from app.worker import enqueue

router = APIRouter(prefix="/competitors", tags=["competitors"])


def _get_owned_competitor(session: Session, competitor_id: uuid.UUID, current_user: User) -> Competitor:
    competitor = crud.get_competitor(session=session, competitor_id=competitor_id)
    ensure_owner(competitor.user_id, current_user, "competitor")
    return competitor


async def _analyze(competitor_id: uuid.UUID) -> Competitor:
    with new_session() as session:
        return await analyze_competitor(session, competitor_id)


def _schedule_analysis(session: Session, competitor: Competitor) -> Competitor:
    competitor = crud.update_competitor_status(
        session=session,
        competitor_id=competitor.id,
        features_status=CompetitorFeaturesStatus.pending,
        analysis_status=CompetitorAnalysisStatus.pending,
    )
    competitor_id = competitor.id
    enqueue(f"competitor:{competitor_id}", lambda: _analyze(competitor_id))
    return competitor


@router.post("/", response_model=CompetitorPublic)
async def create_competitor(
    *, session: SessionDep, current_user: CurrentUser, competitor_in: CompetitorCreate
) -> Any:
    """
    Track a competitor; its website is analyzed in the background.
    """
    competitor = crud.create_competitor(session=session, competitor_in=competitor_in, user=current_user)
    return _schedule_analysis(session, competitor)


@router.get("/", response_model=list[CompetitorPublic])
def read_competitors(session: SessionDep, current_user: CurrentUser, skip: int = 0, limit: int = 100) -> Any:
    return crud.list_competitors(session=session, user_id=current_user.id, skip=skip, limit=limit)


@router.get("/{competitor_id}", response_model=CompetitorPublic)
def read_competitor(competitor_id: uuid.UUID, session: SessionDep, current_user: CurrentUser) -> Any:
    return _get_owned_competitor(session, competitor_id, current_user)


@router.patch("/{competitor_id}", response_model=CompetitorPublic)
def update_competitor(
    *,
    competitor_id: uuid.UUID,
    session: SessionDep,
    current_user: CurrentUser,
    competitor_in: CompetitorUpdate,
) -> Any:
    competitor = _get_owned_competitor(session, competitor_id, current_user)
    return crud.update_competitor(session=session, db_competitor=competitor, competitor_in=competitor_in)


@router.delete("/{competitor_id}", response_model=Message)
def delete_competitor(competitor_id: uuid.UUID, session: SessionDep, current_user: CurrentUser) -> Any:
    competitor = _get_owned_competitor(session, competitor_id, current_user)
    get_rag_manager().delete_knowledge(str(competitor.id))
    crud.delete_competitor(session=session, db_competitor=competitor)
    return Message(message="Competitor deleted successfully")


@router.post("/{competitor_id}/analyze", response_model=CompetitorPublic)
async def reanalyze_competitor(competitor_id: uuid.UUID, session: SessionDep, current_user: CurrentUser) -> Any:
    competitor = _get_owned_competitor(session, competitor_id, current_user)
    return _schedule_analysis(session, competitor)


@router.get("/{competitor_id}/events")
async def stream_competitor_events(competitor_id: uuid.UUID, session: SessionDep, current_user: CurrentUser):
    """Stream feature extraction status changes via SSE."""
    _get_owned_competitor(session, competitor_id, current_user)
    return EventSourceResponse(stream_topic(competitor_topic(competitor_id)))


@router.get("/{competitor_id}/features", response_model=CompetitorFeaturesPage)
def read_competitor_features(
    competitor_id: uuid.UUID,
    session: SessionDep,
    current_user: CurrentUser,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=12, ge=1, le=100),
    sort_by: Literal["name", "category"] = "name",
    sort_order: Literal["asc", "desc"] = "asc",
    category: str | None = None,
) -> Any:
    competitor = _get_owned_competitor(session, competitor_id, current_user)
    return paginate_features(
        competitor.features,
        page=page,
        limit=limit,
        sort_by=sort_by,
        sort_order=sort_order,
        category=category,
    )


@router.get("/{competitor_id}/search")
def search_competitor(
    competitor_id: uuid.UUID,
    session: SessionDep,
    current_user: CurrentUser,
    query: str = Query(min_length=1),
    features_only: bool = False,
    limit: int = Query(default=10, ge=1, le=50),
) -> Any:
    """
    Search what was indexed from the competitor's site and its extracted features.
    """
    competitor = _get_owned_competitor(session, competitor_id, current_user)
    return search_competitor_knowledge(
        competitor.id, query, features_only=features_only, limit=limit, rag=get_rag_manager()
    )
