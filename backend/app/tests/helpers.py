"""Shared builders for tests that need a database."""
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from app import crud
from app.models import Agent, AgentCreate, Content, ContentRequest, User
from app.persona import PersonaConfig


def make_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    return engine


def make_user(session: Session, email: str = "writer@example.com", plan: str = "free") -> User:
    user = User(email=email, hashed_password="not-a-real-hash", plan=plan)
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def make_persona(**overrides) -> PersonaConfig:
    data = {
        "metadata": {"name": "Ana", "description": "Growth marketer for developer tools."},
        "language": {"primary": "en"},
    }
    data.update(overrides)
    return PersonaConfig.model_validate(data)


def make_agent(session: Session, user: User) -> Agent:
    return crud.create_agent(
        session=session, agent_in=AgentCreate(persona_config=make_persona()), user=user
    )


def make_content(session: Session, agent: Agent, layout: str = "article", body: str = "") -> Content:
    content = crud.create_content(
        session=session,
        agent=agent,
        user_id=agent.user_id,
        request=ContentRequest(description="How small teams ship weekly changelogs", layout=layout),
    )
    if body:
        content = crud.update_content_fields(session=session, content_id=content.id, body=body)
    return content
