import uuid
from typing import Any

from fastapi import APIRouter, Query
from fastapi.responses import Response
from sqlmodel import Session
from sse_starlette.sse import EventSourceResponse

from app import crud
from app.agent.orchestrator import generate_content, run_content_generation
from app.api.deps import CurrentUser, SessionDep, ensure_owner, new_session
from app.content_editing import (
    analyze_content,
    approve_content,
    bulk_approve_content,
    bulk_delete_content,
    edit_content_body,
    export_content,
)
from app.events import content_topic, stream_topic
from app.integrations.billing import BillingService
from app.models import (
    BulkApproveResult,
    BulkDeleteResult,
    BulkIds,
    Content,
    ContentBodyUpdate,
    ContentCreate,
    ContentPublic,
    ContentsPublic,
    ContentStatus,
    ContentUpdate,
    ContentVersionPublic,
    Message,
    User,
)
from app.worker import enqueue

router = APIRouter(prefix="/content", tags=["content"])


def _get_owned_content(session: Session, content_id: uuid.UUID, current_user: User) -> Content:
    content = crud.get_content(session=session, content_id=content_id)
    ensure_owner(content.user_id, current_user, "content")
    return content


async def _generate(content_id: uuid.UUID) -> dict[str, Any]:
    with new_session() as session:
        return await generate_content(session, content_id)


def schedule_generation(content_id: uuid.UUID) -> None:
    enqueue(f"content:{content_id}", lambda: _generate(content_id))


async def _regenerate_stream(content_id: uuid.UUID):
    with new_session() as session:
        async for event in run_content_generation(session, content_id):
            yield event


@router.post("/", response_model=ContentPublic)
async def create_content(*, session: SessionDep, current_user: CurrentUser, content_in: ContentCreate) -> Any:
    """
    Submit a content request. Generation runs in the background; follow it on /content/{id}/events.
    """
    agent = crud.get_agent(session=session, agent_id=content_in.agent_id)
    ensure_owner(agent.user_id, current_user, "agent")
    BillingService(session).check_content_generation(current_user)

    content = crud.create_content(
        session=session, agent=agent, user_id=current_user.id, request=content_in.request
    )
    schedule_generation(content.id)
    return content


@router.post("/bulk-delete", response_model=BulkDeleteResult)
def bulk_delete(*, session: SessionDep, current_user: CurrentUser, ids_in: BulkIds) -> Any:
    """
    Delete several content items. Fails without deleting anything if any item is not yours.
    """
    deleted = bulk_delete_content(session=session, ids=ids_in.ids, user=current_user)
    return BulkDeleteResult(deleted_count=deleted)


@router.post("/bulk-approve", response_model=BulkApproveResult)
def bulk_approve(*, session: SessionDep, current_user: CurrentUser, ids_in: BulkIds) -> Any:
    """
    Approve several drafts at once.
    """
    approved = bulk_approve_content(session=session, ids=ids_in.ids, user=current_user)
    return BulkApproveResult(approved_count=len(approved))


@router.get("/", response_model=ContentsPublic)
def read_contents(
    session: SessionDep,
    current_user: CurrentUser,
    agent_ids: list[uuid.UUID] = Query(default=[]),
    status: list[ContentStatus] = Query(default=[]),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
) -> Any:
    contents, count = crud.list_contents(
        session=session,
        user_id=current_user.id,
        agent_ids=agent_ids,
        statuses=status,
        page=page,
        limit=limit,
    )
    return ContentsPublic(data=contents, count=count, page=page, limit=limit)


@router.get("/{content_id}", response_model=ContentPublic)
def read_content(content_id: uuid.UUID, session: SessionDep, current_user: CurrentUser) -> Any:
    return _get_owned_content(session, content_id, current_user)


@router.patch("/{content_id}", response_model=ContentPublic)
def update_content(
    *, content_id: uuid.UUID, session: SessionDep, current_user: CurrentUser, content_in: ContentUpdate
) -> Any:
    content = _get_owned_content(session, content_id, current_user)
    return crud.update_content(session=session, db_content=content, content_in=content_in)


@router.delete("/{content_id}", response_model=Message)
def delete_content(content_id: uuid.UUID, session: SessionDep, current_user: CurrentUser) -> Any:
    content = _get_owned_content(session, content_id, current_user)
    crud.delete_content(session=session, db_content=content)
    return Message(message="Content deleted successfully")


@router.post("/{content_id}/approve", response_model=ContentPublic)
def approve(content_id: uuid.UUID, session: SessionDep, current_user: CurrentUser) -> Any:
    content = _get_owned_content(session, content_id, current_user)
    return approve_content(session=session, db_content=content)


@router.put("/{content_id}/body", response_model=ContentPublic)
def edit_body(
    *, content_id: uuid.UUID, session: SessionDep, current_user: CurrentUser, body_in: ContentBodyUpdate
) -> Any:
    """
    Replace the body; every change is stored as a new version with its diff.
    """
    content = _get_owned_content(session, content_id, current_user)
    content, _ = edit_content_body(
        session=session, db_content=content, user_id=current_user.id, body=body_in.body
    )
    return content


@router.get("/{content_id}/versions", response_model=list[ContentVersionPublic])
def read_versions(content_id: uuid.UUID, session: SessionDep, current_user: CurrentUser) -> Any:
    _get_owned_content(session, content_id, current_user)
    return crud.list_content_versions(session=session, content_id=content_id)


@router.get("/{content_id}/versions/{version}", response_model=ContentVersionPublic)
def read_version(content_id: uuid.UUID, version: int, session: SessionDep, current_user: CurrentUser) -> Any:
    _get_owned_content(session, content_id, current_user)
    return crud.get_content_version(session=session, content_id=content_id, version=version)


@router.get("/{content_id}/analysis")
def read_analysis(content_id: uuid.UUID, session: SessionDep, current_user: CurrentUser) -> Any:
    return analyze_content(_get_owned_content(session, content_id, current_user))


@router.get("/{content_id}/export")
def export(
    content_id: uuid.UUID, session: SessionDep, current_user: CurrentUser, format: str = "md"
) -> Response:
    content = _get_owned_content(session, content_id, current_user)
    payload, media_type = export_content(content, format)
    slug = (content.meta or {}).get("slug") or str(content.id)
    return Response(
        content=payload,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{slug}.{format}"'},
    )


@router.get("/{content_id}/events")
async def stream_content_events(content_id: uuid.UUID, session: SessionDep, current_user: CurrentUser):
    """Stream status changes of a content request via SSE."""
    _get_owned_content(session, content_id, current_user)
    return EventSourceResponse(stream_topic(content_topic(content_id)))


@router.post("/{content_id}/regenerate")
async def regenerate(content_id: uuid.UUID, session: SessionDep, current_user: CurrentUser):
    """Run the generation pipeline again for an existing request and stream progress via SSE."""
    content = _get_owned_content(session, content_id, current_user)
    BillingService(session).check_content_generation(current_user)
    crud.update_content_status(session=session, content_id=content.id, status=ContentStatus.pending)
    return EventSourceResponse(_regenerate_stream(content.id))
