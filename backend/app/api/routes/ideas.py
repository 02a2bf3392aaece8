import uuid
from typing import Any

from fastapi import APIRouter, Query
from sqlmodel import Session

from app import crud
from app.agent.ideas import generate_ideas
from app.api.deps import CurrentUser, SessionDep, ensure_owner
from app.api.routes.content import schedule_generation
from app.core.errors import NotFoundError
from app.integrations.billing import BillingService
from app.models import (
    Agent,
    BulkApproveResult,
    BulkIds,
    ContentRequest,
    Idea,
    IdeaPublic,
    IdeasGenerateRequest,
    IdeaStatus,
    IdeaStatusUpdate,
    Message,
    User,
)
from app.utils.misc import shuffle_array

router = APIRouter(prefix="/ideas", tags=["ideas"])


@router.post("/generate", response_model=list[IdeaPublic])
async def generate(*, session: SessionDep, current_user: CurrentUser, request_in: IdeasGenerateRequest) -> Any:
    """
    Propose blog post ideas for an agent from target keywords.
    """
    agent = crud.get_agent(session=session, agent_id=request_in.agent_id)
    ensure_owner(agent.user_id, current_user, "agent")
    return await generate_ideas(session, agent, request_in.keywords)


@router.get("/", response_model=list[IdeaPublic])
def read_ideas(
    session: SessionDep,
    current_user: CurrentUser,
    agent_id: uuid.UUID | None = None,
    status: IdeaStatus | None = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    shuffle: bool = False,
) -> Any:
    if agent_id is not None:
        agent = crud.get_agent(session=session, agent_id=agent_id)
        ensure_owner(agent.user_id, current_user, "agent")
        ideas, _ = crud.list_ideas(
            session=session, agent_ids=[agent_id], status=status, page=page, limit=limit
        )
    else:
        ideas, _ = crud.list_ideas(
            session=session, user_id=current_user.id, status=status, page=page, limit=limit
        )
    return shuffle_array(ideas) if shuffle else ideas


def _idea_request(idea: Idea) -> ContentRequest:
    content = idea.content or {}
    description = "\n\n".join(
        part for part in (content.get("title"), content.get("description")) if part
    )
    return ContentRequest(description=description[:5000])


@router.post("/bulk-approve", response_model=BulkApproveResult)
def bulk_approve(*, session: SessionDep, current_user: CurrentUser, ids_in: BulkIds) -> Any:
    """
    Approve pending ideas and turn each one into a content request that starts generating.
    """
    agents: dict[uuid.UUID, Agent] = {}
    approvable: list[Idea] = []
    for idea in crud.get_ideas_by_ids(session=session, idea_ids=ids_in.ids):
        if idea.agent_id not in agents:
            agents[idea.agent_id] = crud.get_agent(session=session, agent_id=idea.agent_id)
        agent = agents[idea.agent_id]
        owned = agent.user_id == current_user.id or current_user.is_superuser
        if owned and idea.status == IdeaStatus.pending:
            approvable.append(idea)

    found = {idea.id for idea in approvable}
    missing = [str(idea_id) for idea_id in dict.fromkeys(ids_in.ids) if idea_id not in found]
    if missing:
        raise NotFoundError(
            f"Ideas not found or not pending: {', '.join(missing)}", data={"ids": missing}
        )

    BillingService(session).check_content_generation(current_user)
    for idea in approvable:
        crud.update_idea_status(session=session, db_idea=idea, status=IdeaStatus.approved)
        content = crud.create_content(
            session=session,
            agent=agents[idea.agent_id],
            user_id=current_user.id,
            request=_idea_request(idea),
        )
        schedule_generation(content.id)
    return BulkApproveResult(approved_count=len(approvable))


def _get_owned_idea(session: Session, idea_id: uuid.UUID, current_user: User) -> Idea:
    idea = crud.get_idea(session=session, idea_id=idea_id)
    agent = crud.get_agent(session=session, agent_id=idea.agent_id)
    ensure_owner(agent.user_id, current_user, "idea")
    return idea


@router.patch("/{idea_id}", response_model=IdeaPublic)
def update_idea_status(
    *, idea_id: uuid.UUID, session: SessionDep, current_user: CurrentUser, status_in: IdeaStatusUpdate
) -> Any:
    """
    Approve or reject an idea.
    """
    idea = _get_owned_idea(session, idea_id, current_user)
    return crud.update_idea_status(session=session, db_idea=idea, status=status_in.status)


@router.delete("/{idea_id}", response_model=Message)
def delete_idea(idea_id: uuid.UUID, session: SessionDep, current_user: CurrentUser) -> Any:
    idea = _get_owned_idea(session, idea_id, current_user)
    crud.delete_idea(session=session, db_idea=idea)
    return Message(message="Idea deleted successfully")
