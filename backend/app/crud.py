import uuid
from collections.abc import Iterable
from datetime import datetime
from typing import Any, TypeVar

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, SQLModel, col, select

from app.core.errors import ConflictError, DatabaseError, NotFoundError
from app.core.security import get_password_hash, verify_password
from app.models import (
    Agent,
    AgentCreate,
    AgentUpdate,
    BrandKnowledgeStatus,
    Competitor,
    CompetitorAnalysisStatus,
    CompetitorCreate,
    CompetitorFeaturesStatus,
    CompetitorUpdate,
    Content,
    ContentRequest,
    ContentStatus,
    ContentUpdate,
    ContentVersion,
    Idea,
    IdeaStatus,
    UsageEvent,
    User,
    UserCreate,
    UserUpdateMe,
    get_datetime_utc,
)

ModelT = TypeVar("ModelT", bound=SQLModel)


def _save(session: Session, db_obj: ModelT, *, action: str) -> ModelT:
    try:
        session.add(db_obj)
        session.commit()
        session.refresh(db_obj)
    except IntegrityError as exc:
        session.rollback()
        raise ConflictError(f"Failed to {action}: conflicting record", cause=str(exc.orig)) from exc
    except SQLAlchemyError as exc:
        session.rollback()
        raise DatabaseError(f"Failed to {action}", cause=str(exc)) from exc
    return db_obj


def _delete(session: Session, db_obj: SQLModel, *, action: str) -> None:
    try:
        session.delete(db_obj)
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        raise DatabaseError(f"Failed to {action}", cause=str(exc)) from exc


def _get_or_404(session: Session, model: type[ModelT], obj_id: uuid.UUID, label: str) -> ModelT:
    try:
        db_obj = session.get(model, obj_id)
    except SQLAlchemyError as exc:
        raise DatabaseError(f"Failed to get {label}", cause=str(exc)) from exc
    if db_obj is None:
        raise NotFoundError(f"{label.capitalize()} not found")
    return db_obj


def _count(session: Session, statement: Any) -> int:
    count_statement = select(func.count()).select_from(statement.subquery())
    return int(session.exec(count_statement).one())


# Users

def create_user(*, session: Session, user_create: UserCreate) -> User:
    db_obj = User.model_validate(
        user_create, update={"hashed_password": get_password_hash(user_create.password)}
    )
    return _save(session, db_obj, action="create user")


def update_user(*, session: Session, db_user: User, user_in: UserUpdateMe) -> User:
    user_data = user_in.model_dump(exclude_unset=True)
    db_user.sqlmodel_update(user_data)
    return _save(session, db_user, action="update user")


def update_user_password(*, session: Session, db_user: User, new_password: str) -> User:
    db_user.hashed_password = get_password_hash(new_password)
    return _save(session, db_user, action="update password")


def get_user_by_email(*, session: Session, email: str) -> User | None:
    statement = select(User).where(User.email == email)
    session_user = session.exec(statement).first()
    return session_user


# Dummy hash to use for timing attack prevention when user is not found
# This is an Argon2 hash of a random password, used to ensure constant-time comparison
DUMMY_HASH = "$argon2id$v=19$m=65536,t=3,p=4$MjQyZWE1MzBjYjJlZTI0Yw$YTU4NGM5ZTZmYjE2NzZlZjY0ZWY3ZGRkY2U2OWFjNjk"


def authenticate(*, session: Session, email: str, password: str) -> User | None:
    db_user = get_user_by_email(session=session, email=email)
    if not db_user:
        verify_password(password, DUMMY_HASH)
        return None
    verified, updated_password_hash = verify_password(password, db_user.hashed_password)
    if not verified:
        return None
    if updated_password_hash:
        db_user.hashed_password = updated_password_hash
        _save(session, db_user, action="rehash password")
    return db_user


# Agents

def create_agent(*, session: Session, agent_in: AgentCreate, user: User) -> Agent:
    db_agent = Agent(
        user_id=user.id,
        organization_id=user.organization_id,
        persona_config=agent_in.persona_config.model_dump(mode="json"),
        profile_photo_url=agent_in.profile_photo_url,
    )
    return _save(session, db_agent, action="create agent")


def get_agent(*, session: Session, agent_id: uuid.UUID) -> Agent:
    return _get_or_404(session, Agent, agent_id, "agent")


def list_agents(
    *,
    session: Session,
    user_id: uuid.UUID,
    organization_id: uuid.UUID | None = None,
    skip: int = 0,
    limit: int = 100,
) -> tuple[list[Agent], int]:
    if organization_id is not None:
        statement = select(Agent).where(Agent.organization_id == organization_id)
    else:
        statement = select(Agent).where(Agent.user_id == user_id)
    count = _count(session, statement)
    agents = session.exec(
        statement.order_by(col(Agent.created_at).desc()).offset(skip).limit(limit)
    ).all()
    return list(agents), count


def count_agents(*, session: Session, user_id: uuid.UUID) -> int:
    return _count(session, select(Agent).where(Agent.user_id == user_id))


def update_agent(*, session: Session, db_agent: Agent, agent_in: AgentUpdate) -> Agent:
    if agent_in.persona_config is not None:
        db_agent.persona_config = agent_in.persona_config.model_dump(mode="json")
    if agent_in.profile_photo_url is not None:
        db_agent.profile_photo_url = agent_in.profile_photo_url
    db_agent.updated_at = get_datetime_utc()
    return _save(session, db_agent, action="update agent")


def update_agent_knowledge_status(
    *, session: Session, agent_id: uuid.UUID, status: BrandKnowledgeStatus
) -> Agent:
    db_agent = get_agent(session=session, agent_id=agent_id)
    db_agent.brand_knowledge_status = status
    return _save(session, db_agent, action="update agent knowledge status")


def set_agent_uploaded_files(*, session: Session, db_agent: Agent, files: list[dict[str, Any]]) -> Agent:
    # Reassign so the JSON column is flagged dirty.
    db_agent.uploaded_files = list(files)
    db_agent.updated_at = get_datetime_utc()
    return _save(session, db_agent, action="update agent files")


def touch_agent_last_generated(*, session: Session, agent_id: uuid.UUID) -> Agent:
    db_agent = get_agent(session=session, agent_id=agent_id)
    db_agent.last_generated_at = get_datetime_utc()
    return _save(session, db_agent, action="update agent")


def delete_agent(*, session: Session, db_agent: Agent) -> None:
    _delete(session, db_agent, action="delete agent")


# Content

def create_content(
    *, session: Session, agent: Agent, user_id: uuid.UUID, request: ContentRequest
) -> Content:
    db_content = Content(
        agent_id=agent.id,
        user_id=user_id,
        request=request.model_dump(mode="json"),
        status=ContentStatus.pending,
    )
    return _save(session, db_content, action="create content")


def get_content(*, session: Session, content_id: uuid.UUID) -> Content:
    return _get_or_404(session, Content, content_id, "content")


def list_contents(
    *,
    session: Session,
    user_id: uuid.UUID,
    agent_ids: Iterable[uuid.UUID] | None = None,
    statuses: Iterable[ContentStatus] | None = None,
    page: int = 1,
    limit: int = 10,
) -> tuple[list[Content], int]:
    statement = select(Content).where(Content.user_id == user_id)
    agent_ids = list(agent_ids or [])
    statuses = list(statuses or [])
    if agent_ids:
        statement = statement.where(col(Content.agent_id).in_(agent_ids))
    if statuses:
        statement = statement.where(col(Content.status).in_(statuses))
    count = _count(session, statement)
    contents = session.exec(
        statement.order_by(col(Content.created_at).desc())
        .offset((page - 1) * limit)
        .limit(limit)
    ).all()
    return list(contents), count


def update_content(*, session: Session, db_content: Content, content_in: ContentUpdate) -> Content:
    data = content_in.model_dump(exclude_unset=True, mode="json")
    if "meta" in data and data["meta"] is not None:
        data["meta"] = {**(db_content.meta or {}), **data["meta"]}
    db_content.sqlmodel_update(data)
    db_content.updated_at = get_datetime_utc()
    return _save(session, db_content, action="update content")


def update_content_fields(*, session: Session, content_id: uuid.UUID, **fields: Any) -> Content:
    db_content = get_content(session=session, content_id=content_id)
    for key, value in fields.items():
        setattr(db_content, key, value)
    db_content.updated_at = get_datetime_utc()
    return _save(session, db_content, action="update content")


def update_content_status(
    *, session: Session, content_id: uuid.UUID, status: ContentStatus
) -> Content:
    return update_content_fields(session=session, content_id=content_id, status=status)


def delete_content(*, session: Session, db_content: Content) -> None:
    _delete(session, db_content, action="delete content")


def get_contents_by_ids(*, session: Session, content_ids: Iterable[uuid.UUID]) -> list[Content]:
    statement = select(Content).where(col(Content.id).in_(list(content_ids)))
    return list(session.exec(statement).all())


def delete_contents(*, session: Session, contents: list[Content]) -> int:
    try:
        for db_content in contents:
            session.delete(db_content)
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        raise DatabaseError("Failed to bulk delete content", cause=str(exc)) from exc
    return len(contents)


def update_contents_status(
    *, session: Session, contents: list[Content], status: ContentStatus
) -> list[Content]:
    now = get_datetime_utc()
    try:
        for db_content in contents:
            db_content.status = status
            db_content.updated_at = now
            session.add(db_content)
        session.commit()
        for db_content in contents:
            session.refresh(db_content)
    except SQLAlchemyError as exc:
        session.rollback()
        raise DatabaseError("Failed to bulk update content", cause=str(exc)) from exc
    return contents


def list_agent_contents(*, session: Session, agent_id: uuid.UUID) -> list[Content]:
    return list(session.exec(select(Content).where(Content.agent_id == agent_id)).all())


def count_agent_ideas(*, session: Session, agent_id: uuid.UUID) -> int:
    return _count(session, select(Idea).where(Idea.agent_id == agent_id))


# Content versions

def get_next_version_number(*, session: Session, content_id: uuid.UUID) -> int:
    statement = select(func.max(ContentVersion.version)).where(ContentVersion.content_id == content_id)
    current = session.exec(statement).one()
    return int(current or 0) + 1


def create_content_version(
    *,
    session: Session,
    content_id: uuid.UUID,
    user_id: uuid.UUID,
    version: int,
    meta: dict[str, Any],
) -> ContentVersion:
    db_version = ContentVersion(content_id=content_id, user_id=user_id, version=version, meta=meta)
    return _save(session, db_version, action="create content version")


def list_content_versions(*, session: Session, content_id: uuid.UUID) -> list[ContentVersion]:
    statement = (
        select(ContentVersion)
        .where(ContentVersion.content_id == content_id)
        .order_by(col(ContentVersion.version).desc())
    )
    return list(session.exec(statement).all())


def get_content_version(*, session: Session, content_id: uuid.UUID, version: int) -> ContentVersion:
    statement = select(ContentVersion).where(
        ContentVersion.content_id == content_id, ContentVersion.version == version
    )
    db_version = session.exec(statement).first()
    if db_version is None:
        raise NotFoundError(f"Version {version} not found")
    return db_version


# Competitors

def create_competitor(*, session: Session, competitor_in: CompetitorCreate, user: User) -> Competitor:
    db_competitor = Competitor.model_validate(
        competitor_in, update={"user_id": user.id, "organization_id": user.organization_id}
    )
    return _save(session, db_competitor, action="create competitor")


def get_competitor(*, session: Session, competitor_id: uuid.UUID) -> Competitor:
    return _get_or_404(session, Competitor, competitor_id, "competitor")


def list_competitors(*, session: Session, user_id: uuid.UUID, skip: int = 0, limit: int = 100) -> list[Competitor]:
    statement = (
        select(Competitor)
        .where(Competitor.user_id == user_id)
        .order_by(col(Competitor.created_at).desc())
        .offset(skip)
        .limit(limit)
    )
    return list(session.exec(statement).all())


def update_competitor(
    *, session: Session, db_competitor: Competitor, competitor_in: CompetitorUpdate
) -> Competitor:
    db_competitor.sqlmodel_update(competitor_in.model_dump(exclude_unset=True))
    return _save(session, db_competitor, action="update competitor")


def update_competitor_fields(*, session: Session, competitor_id: uuid.UUID, **fields: Any) -> Competitor:
    db_competitor = get_competitor(session=session, competitor_id=competitor_id)
    for key, value in fields.items():
        setattr(db_competitor, key, value)
    return _save(session, db_competitor, action="update competitor")


def update_competitor_status(
    *,
    session: Session,
    competitor_id: uuid.UUID,
    features_status: CompetitorFeaturesStatus | None = None,
    analysis_status: CompetitorAnalysisStatus | None = None,
) -> Competitor:
    fields: dict[str, Any] = {}
    if features_status is not None:
        fields["features_status"] = features_status
    if analysis_status is not None:
        fields["analysis_status"] = analysis_status
    return update_competitor_fields(session=session, competitor_id=competitor_id, **fields)


def delete_competitor(*, session: Session, db_competitor: Competitor) -> None:
    _delete(session, db_competitor, action="delete competitor")


# Ideas

def create_ideas(*, session: Session, ideas: list[Idea]) -> list[Idea]:
    try:
        session.add_all(ideas)
        session.commit()
        for idea in ideas:
            session.refresh(idea)
    except SQLAlchemyError as exc:
        session.rollback()
        raise DatabaseError("Failed to create ideas", cause=str(exc)) from exc
    return ideas


def get_idea(*, session: Session, idea_id: uuid.UUID) -> Idea:
    return _get_or_404(session, Idea, idea_id, "idea")


def get_ideas_by_ids(*, session: Session, idea_ids: Iterable[uuid.UUID]) -> list[Idea]:
    statement = select(Idea).where(col(Idea.id).in_(list(idea_ids)))
    return list(session.exec(statement).all())


def list_ideas(
    *,
    session: Session,
    user_id: uuid.UUID | None = None,
    agent_ids: Iterable[uuid.UUID] | None = None,
    status: IdeaStatus | None = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[Idea], int]:
    statement = select(Idea)
    if user_id is not None:
        statement = statement.join(Agent, col(Idea.agent_id) == col(Agent.id)).where(
            Agent.user_id == user_id
        )
    if agent_ids is not None:
        agent_ids = list(agent_ids)
        if not agent_ids:
            return [], 0
        statement = statement.where(col(Idea.agent_id).in_(agent_ids))
    if status is not None:
        statement = statement.where(Idea.status == status)
    count = _count(session, statement)
    ideas = session.exec(
        statement.order_by(col(Idea.created_at).desc()).offset((page - 1) * limit).limit(limit)
    ).all()
    return list(ideas), count


def update_idea_status(*, session: Session, db_idea: Idea, status: IdeaStatus) -> Idea:
    db_idea.status = status
    return _save(session, db_idea, action="update idea")


def delete_idea(*, session: Session, db_idea: Idea) -> None:
    _delete(session, db_idea, action="delete idea")


# Usage ledger

def create_usage_event(*, session: Session, usage_event: UsageEvent) -> UsageEvent:
    return _save(session, usage_event, action="record usage")


def count_usage_events_since(
    *, session: Session, user_id: uuid.UUID, event: str, since: datetime
) -> int:
    statement = select(UsageEvent).where(
        UsageEvent.user_id == user_id,
        UsageEvent.event == event,
        col(UsageEvent.created_at) >= since,
    )
    return _count(session, statement)
