import uuid
from typing import Any

from fastapi import APIRouter, File, UploadFile
from sqlmodel import Session
from sse_starlette.sse import EventSourceResponse

from app import crud
from app.agent.knowledge import delete_agent_document, extract_text_from_file, process_agent_document
from app.agent.prompts.persona import generate_writing_prompt
from app.agent.rag import get_rag_manager
from app.api.deps import CurrentUser, SessionDep, ensure_owner, new_session
from app.core.config import settings
from app.core.errors import InvalidInputError, NotFoundError
from app.events import agent_topic, stream_topic
from app.integrations.billing import BillingService
from app.integrations.storage import get_storage, new_object_key
from app.models import (
    Agent,
    AgentCreate,
    AgentPublic,
    AgentsPublic,
    AgentStats,
    AgentUpdate,
    BrandKnowledgeStatus,
    ContentStatus,
    Message,
    UploadedFile,
    User,
)
from app.utils.text import count_words, format_value_for_display
from app.worker import enqueue

router = APIRouter(prefix="/agents", tags=["agents"])

AGENT_FILES_BUCKET = "agent-files"


def _get_owned_agent(session: Session, agent_id: uuid.UUID, current_user: User) -> Agent:
    agent = crud.get_agent(session=session, agent_id=agent_id)
    ensure_owner(agent.user_id, current_user, "agent")
    return agent


async def _process_upload(agent_id: uuid.UUID, file_name: str, text: str) -> int:
    with new_session() as session:
        return await process_agent_document(session, agent_id, file_name=file_name, text=text)


@router.post("/", response_model=AgentPublic)
def create_agent(*, session: SessionDep, current_user: CurrentUser, agent_in: AgentCreate) -> Any:
    BillingService(session).check_agent_slots(current_user)
    return crud.create_agent(session=session, agent_in=agent_in, user=current_user)


@router.get("/", response_model=AgentsPublic)
def read_agents(
    session: SessionDep,
    current_user: CurrentUser,
    organization: bool = False,
    skip: int = 0,
    limit: int = 100,
) -> Any:
    """
    List the user's agents, or every agent of the user's organization with ``organization=true``.
    """
    agents, count = crud.list_agents(
        session=session,
        user_id=current_user.id,
        organization_id=current_user.organization_id if organization else None,
        skip=skip,
        limit=limit,
    )
    return AgentsPublic(data=agents, count=count)


@router.get("/{agent_id}", response_model=AgentPublic)
def read_agent(agent_id: uuid.UUID, session: SessionDep, current_user: CurrentUser) -> Any:
    return _get_owned_agent(session, agent_id, current_user)


@router.patch("/{agent_id}", response_model=AgentPublic)
def update_agent(
    *, agent_id: uuid.UUID, session: SessionDep, current_user: CurrentUser, agent_in: AgentUpdate
) -> Any:
    agent = _get_owned_agent(session, agent_id, current_user)
    return crud.update_agent(session=session, db_agent=agent, agent_in=agent_in)


@router.delete("/{agent_id}", response_model=Message)
def delete_agent(agent_id: uuid.UUID, session: SessionDep, current_user: CurrentUser) -> Any:
    agent = _get_owned_agent(session, agent_id, current_user)
    storage = get_storage()
    for uploaded in agent.uploaded_files:
        storage.delete_object(AGENT_FILES_BUCKET, uploaded["file_key"])
    get_rag_manager().delete_knowledge(str(agent.id))
    crud.delete_agent(session=session, db_agent=agent)
    return Message(message="Agent deleted successfully")


@router.get("/{agent_id}/prompt")
def read_agent_prompt(agent_id: uuid.UUID, session: SessionDep, current_user: CurrentUser) -> Any:
    """
    The system prompt the writer receives for this agent, plus a readable summary of its persona.
    """
    agent = _get_owned_agent(session, agent_id, current_user)
    persona = agent.persona
    return {
        "prompt": generate_writing_prompt(persona),
        "summary": {
            "name": persona.metadata.name,
            "voice": format_value_for_display(persona.voice.communication),
            "audience": format_value_for_display(persona.audience.base),
            "formatting": format_value_for_display(persona.formatting.style),
            "language": format_value_for_display(persona.language.variant or persona.language.primary),
            "brand": format_value_for_display(persona.brand.integration_style),
            "purpose": format_value_for_display(persona.purpose),
        },
    }


@router.get("/{agent_id}/stats", response_model=AgentStats)
def read_agent_stats(agent_id: uuid.UUID, session: SessionDep, current_user: CurrentUser) -> Any:
    agent = _get_owned_agent(session, agent_id, current_user)
    contents = crud.list_agent_contents(session=session, agent_id=agent.id)
    scores = []
    for content in contents:
        try:
            scores.append(float((content.stats or {})["quality_score"]))
        except (KeyError, TypeError, ValueError):
            continue
    return AgentStats(
        avg_quality_score=sum(scores) / len(scores) if scores else None,
        total_draft=sum(1 for content in contents if content.status == ContentStatus.draft),
        total_published=sum(1 for content in contents if content.status == ContentStatus.approved),
        total_ideas=crud.count_agent_ideas(session=session, agent_id=agent.id),
        words_written=count_words(" ".join(content.body for content in contents)),
    )


@router.post("/{agent_id}/files", response_model=AgentPublic)
async def upload_agent_file(
    *,
    agent_id: uuid.UUID,
    session: SessionDep,
    current_user: CurrentUser,
    file: UploadFile = File(...),
) -> Any:
    """
    Upload a brand document. Its text is distilled into knowledge for the agent in the background.
    """
    agent = _get_owned_agent(session, agent_id, current_user)
    billing = BillingService(session)
    billing.check_agent_file_uploads(current_user, len(agent.uploaded_files))
    billing.check_knowledge_processing(current_user)

    file_name = file.filename or "upload.txt"
    if any(uploaded["file_name"] == file_name for uploaded in agent.uploaded_files):
        raise InvalidInputError(f"A file named {file_name} is already uploaded for this agent")

    content = await file.read()
    if len(content) > settings.MAX_UPLOAD_BYTES:
        raise InvalidInputError(f"File exceeds the {settings.MAX_UPLOAD_BYTES} byte upload limit")

    text = extract_text_from_file(file_name, file.content_type, content)
    if not text.strip():
        raise InvalidInputError("Could not extract any text from the document.")

    file_key = new_object_key(str(agent.id), file_name)
    file_url = get_storage().put_object(AGENT_FILES_BUCKET, file_key, content)
    uploaded = UploadedFile(
        file_name=file_name, file_url=file_url, file_key=file_key, size_bytes=len(content)
    )
    agent = crud.set_agent_uploaded_files(
        session=session,
        db_agent=agent,
        files=[*agent.uploaded_files, uploaded.model_dump(mode="json")],
    )
    agent = crud.update_agent_knowledge_status(
        session=session, agent_id=agent.id, status=BrandKnowledgeStatus.pending
    )

    enqueue(f"knowledge:{agent.id}:{file_name}", lambda: _process_upload(agent_id, file_name, text))
    return agent


@router.get("/{agent_id}/files", response_model=list[UploadedFile])
def read_agent_files(agent_id: uuid.UUID, session: SessionDep, current_user: CurrentUser) -> Any:
    return _get_owned_agent(session, agent_id, current_user).uploaded_files


@router.delete("/{agent_id}/files/{file_name}", response_model=AgentPublic)
def delete_agent_file(
    agent_id: uuid.UUID, file_name: str, session: SessionDep, current_user: CurrentUser
) -> Any:
    agent = _get_owned_agent(session, agent_id, current_user)
    removed = [uploaded for uploaded in agent.uploaded_files if uploaded["file_name"] == file_name]
    if not removed:
        raise NotFoundError(f"File {file_name} not found")
    remaining = [uploaded for uploaded in agent.uploaded_files if uploaded["file_name"] != file_name]

    get_storage().delete_object(AGENT_FILES_BUCKET, removed[0]["file_key"])
    delete_agent_document(agent.id, file_name)
    return crud.set_agent_uploaded_files(session=session, db_agent=agent, files=remaining)


@router.get("/{agent_id}/knowledge")
def query_agent_knowledge(
    agent_id: uuid.UUID, query: str, session: SessionDep, current_user: CurrentUser, limit: int = 5
) -> Any:
    """
    Search the agent's brand knowledge.
    """
    agent = _get_owned_agent(session, agent_id, current_user)
    return get_rag_manager().query_snippets(external_id=str(agent.id), query=query, n_results=limit)


@router.get("/{agent_id}/events")
async def stream_agent_events(agent_id: uuid.UUID, session: SessionDep, current_user: CurrentUser):
    """Stream knowledge status changes via SSE."""
    _get_owned_agent(session, agent_id, current_user)
    return EventSourceResponse(stream_topic(agent_topic(agent_id)))
