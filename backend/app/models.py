import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal

from pydantic import EmailStr
from sqlalchemy import JSON, DateTime, UniqueConstraint
from sqlmodel import Field, SQLModel

from app.core.config import settings
from app.persona import PersonaConfig


def get_datetime_utc() -> datetime:
    return datetime.now(timezone.utc)


# Shared properties
class UserBase(SQLModel):
    email: EmailStr = Field(unique=True, index=True, max_length=255)
    is_active: bool = True
    is_superuser: bool = False
    full_name: str | None = Field(default=None, max_length=255)


# Properties to receive via API on creation
class UserCreate(UserBase):
    password: str = Field(min_length=8, max_length=128)


class UserRegister(SQLModel):
    email: EmailStr = Field(max_length=255)
    password: str = Field(min_length=8, max_length=128)
    full_name: str | None = Field(default=None, max_length=255)


class UserUpdateMe(SQLModel):
    full_name: str | None = Field(default=None, max_length=255)
    email: EmailStr | None = Field(default=None, max_length=255)


class UpdatePassword(SQLModel):
    current_password: str = Field(min_length=8, max_length=128)
    new_password: str = Field(min_length=8, max_length=128)


# Database model, database table inferred from class name
class User(UserBase, table=True):
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    hashed_password: str
    plan: str = Field(default_factory=lambda: settings.DEFAULT_PLAN, max_length=20)
    organization_id: uuid.UUID | None = Field(default=None, index=True)
    created_at: datetime | None = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),  # type: ignore
    )


# Properties to return via API, id is always required
class UserPublic(UserBase):
    id: uuid.UUID
    plan: str
    organization_id: uuid.UUID | None = None
    created_at: datetime | None = None


# Generic message
class Message(SQLModel):
    message: str


class BulkIds(SQLModel):
    ids: list[uuid.UUID] = Field(min_length=1, max_length=100)


# JSON payload containing access token
class Token(SQLModel):
    access_token: str
    token_type: str = "bearer"


# Contents of JWT token
class TokenPayload(SQLModel):
    sub: str | None = None


class UploadedFile(SQLModel):
    file_name: str
    file_url: str
    file_key: str
    uploaded_at: datetime = Field(default_factory=get_datetime_utc)
    size_bytes: int | None = None


class BrandKnowledgeStatus(str, Enum):
    pending = "pending"
    crawling = "crawling"
    analyzing = "analyzing"
    chunking = "chunking"
    completed = "completed"
    failed = "failed"


# Agents

class AgentCreate(SQLModel):
    persona_config: PersonaConfig
    profile_photo_url: str | None = None


class AgentUpdate(SQLModel):
    persona_config: PersonaConfig | None = None
    profile_photo_url: str | None = None


class Agent(SQLModel, table=True):
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: uuid.UUID = Field(foreign_key="user.id", nullable=False, ondelete="CASCADE", index=True)
    organization_id: uuid.UUID | None = Field(default=None, index=True)
    persona_config: dict = Field(default_factory=dict, sa_type=JSON)
    uploaded_files: list = Field(default_factory=list, sa_type=JSON)
    profile_photo_url: str | None = None
    brand_knowledge_status: BrandKnowledgeStatus = Field(default=BrandKnowledgeStatus.pending)
    last_generated_at: datetime | None = Field(default=None, sa_type=DateTime(timezone=True))  # type: ignore
    created_at: datetime | None = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),  # type: ignore
    )
    updated_at: datetime | None = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),  # type: ignore
    )

    @property
    def persona(self) -> PersonaConfig:
        return PersonaConfig.model_validate(self.persona_config)


class AgentPublic(SQLModel):
    id: uuid.UUID
    user_id: uuid.UUID
    organization_id: uuid.UUID | None = None
    persona_config: PersonaConfig
    uploaded_files: list[UploadedFile] = []
    profile_photo_url: str | None = None
    brand_knowledge_status: BrandKnowledgeStatus
    last_generated_at: datetime | None = None
    created_at: datetime | None = None


class AgentsPublic(SQLModel):
    data: list[AgentPublic]
    count: int


class AgentStats(SQLModel):
    avg_quality_score: float | None = None
    total_draft: int
    total_published: int
    total_ideas: int
    words_written: int


# Content

ContentLayout = Literal["article", "changelog", "tutorial"]


class ContentStatus(str, Enum):
    pending = "pending"
    draft = "draft"
    approved = "approved"
    failed = "failed"


class ShareStatus(str, Enum):
    private = "private"
    shared = "shared"


class ContentRequest(SQLModel):
    description: str = Field(min_length=1, max_length=5000)
    layout: ContentLayout = "article"


class ContentMeta(SQLModel):
    title: str | None = None
    description: str | None = None
    keywords: list[str] = Field(default_factory=list)
    slug: str | None = None
    sources: list[str] = Field(default_factory=list)


class ContentStats(SQLModel):
    """Counters are strings so the shape survives JSON round-trips unchanged."""
    words_count: str | None = None
    read_time_minutes: str | None = None
    quality_score: str | None = None
    reason_of_the_rating: str | None = None


class ContentCreate(SQLModel):
    agent_id: uuid.UUID
    request: ContentRequest


class ContentUpdate(SQLModel):
    meta: ContentMeta | None = None
    share_status: ShareStatus | None = None
    image_url: str | None = None


class ContentBodyUpdate(SQLModel):
    body: str = Field(min_length=1)


class Content(SQLModel, table=True):
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    agent_id: uuid.UUID = Field(foreign_key="agent.id", nullable=False, ondelete="CASCADE", index=True)
    user_id: uuid.UUID = Field(foreign_key="user.id", nullable=False, ondelete="CASCADE", index=True)
    body: str = ""
    image_url: str | None = None
    status: ContentStatus = Field(default=ContentStatus.pending, index=True)
    share_status: ShareStatus = Field(default=ShareStatus.private)
    meta: dict = Field(default_factory=dict, sa_type=JSON)
    request: dict = Field(default_factory=dict, sa_type=JSON)
    stats: dict = Field(default_factory=dict, sa_type=JSON)
    current_version: int | None = None
    created_at: datetime | None = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),  # type: ignore
    )
    updated_at: datetime | None = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),  # type: ignore
    )


class ContentPublic(SQLModel):
    id: uuid.UUID
    agent_id: uuid.UUID
    user_id: uuid.UUID
    body: str
    image_url: str | None = None
    status: ContentStatus
    share_status: ShareStatus
    meta: ContentMeta
    request: ContentRequest
    stats: ContentStats
    current_version: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ContentsPublic(SQLModel):
    data: list[ContentPublic]
    count: int
    page: int
    limit: int


class BulkDeleteResult(SQLModel):
    deleted_count: int


class BulkApproveResult(SQLModel):
    approved_count: int


class ContentVersion(SQLModel, table=True):
    __table_args__ = (UniqueConstraint("content_id", "version", name="uq_content_version"),)

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    content_id: uuid.UUID = Field(foreign_key="content.id", nullable=False, ondelete="CASCADE", index=True)
    user_id: uuid.UUID = Field(foreign_key="user.id", nullable=False, ondelete="CASCADE")
    version: int
    meta: dict = Field(default_factory=dict, sa_type=JSON)  # diff, line_diff, changed_fields
    created_at: datetime | None = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),  # type: ignore
    )


class ContentVersionPublic(SQLModel):
    id: uuid.UUID
    content_id: uuid.UUID
    user_id: uuid.UUID
    version: int
    meta: dict[str, Any]
    created_at: datetime | None = None


# Competitors

class CompetitorFeaturesStatus(str, Enum):
    pending = "pending"
    crawling = "crawling"
    analyzing = "analyzing"
    completed = "completed"
    failed = "failed"


class CompetitorAnalysisStatus(str, Enum):
    pending = "pending"
    analyzing = "analyzing"
    chunking = "chunking"
    completed = "completed"
    failed = "failed"


class CompetitorCreate(SQLModel):
    website_url: str = Field(min_length=4, max_length=2048)
    name: str | None = Field(default=None, max_length=255)
    description: str | None = None


class CompetitorUpdate(SQLModel):
    website_url: str | None = Field(default=None, min_length=4, max_length=2048)
    name: str | None = Field(default=None, max_length=255)
    description: str | None = None
    logo_photo: str | None = None


class Competitor(SQLModel, table=True):
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: uuid.UUID = Field(foreign_key="user.id", nullable=False, ondelete="CASCADE", index=True)
    organization_id: uuid.UUID | None = Field(default=None, index=True)
    website_url: str = Field(max_length=2048)
    name: str | None = Field(default=None, max_length=255)
    description: str | None = None
    summary: str | None = None
    logo_photo: str | None = None
    features: list = Field(default_factory=list, sa_type=JSON)
    uploaded_files: list = Field(default_factory=list, sa_type=JSON)
    features_status: CompetitorFeaturesStatus = Field(default=CompetitorFeaturesStatus.pending)
    analysis_status: CompetitorAnalysisStatus = Field(default=CompetitorAnalysisStatus.pending)
    created_at: datetime | None = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),  # type: ignore
    )


class CompetitorPublic(SQLModel):
    id: uuid.UUID
    user_id: uuid.UUID
    organization_id: uuid.UUID | None = None
    website_url: str
    name: str | None = None
    description: str | None = None
    summary: str | None = None
    logo_photo: str | None = None
    features: list[dict[str, Any]] = []
    features_status: CompetitorFeaturesStatus
    analysis_status: CompetitorAnalysisStatus
    created_at: datetime | None = None


class CompetitorFeaturesPage(SQLModel):
    features: list[dict[str, Any]]
    total: int
    page: int
    limit: int
    total_pages: int


# Ideas

class IdeaStatus(str, Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class IdeaContent(SQLModel):
    title: str
    description: str


class IdeaConfidence(SQLModel):
    score: str  # "0".."100"
    rationale: str


class IdeaMeta(SQLModel):
    tags: list[str] = Field(default_factory=list)
    sources: list[str] = Field(default_factory=list)


class IdeasGenerateRequest(SQLModel):
    agent_id: uuid.UUID
    keywords: list[str] = Field(min_length=1, max_length=10)


class IdeaStatusUpdate(SQLModel):
    status: IdeaStatus


class Idea(SQLModel, table=True):
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    agent_id: uuid.UUID = Field(foreign_key="agent.id", nullable=False, ondelete="CASCADE", index=True)
    content: dict = Field(default_factory=dict, sa_type=JSON)
    confidence: dict = Field(default_factory=dict, sa_type=JSON)
    status: IdeaStatus = Field(default=IdeaStatus.pending)
    meta: dict = Field(default_factory=dict, sa_type=JSON)
    created_at: datetime | None = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),  # type: ignore
    )


class IdeaPublic(SQLModel):
    id: uuid.UUID
    agent_id: uuid.UUID
    content: IdeaContent
    confidence: IdeaConfidence
    status: IdeaStatus
    meta: IdeaMeta
    created_at: datetime | None = None


# Usage ledger

class UsageEvent(SQLModel, table=True):
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: uuid.UUID = Field(foreign_key="user.id", nullable=False, ondelete="CASCADE", index=True)
    event: str = Field(max_length=64, index=True)  # generated_content, knowledge_chunk_processing, credit
    usage_type: str | None = Field(default=None, max_length=32)
    model: str | None = Field(default=None, max_length=128)
    prompt_tokens: int = 0
    completion_tokens: int = 0
    cost: float = 0.0
    meta: dict = Field(default_factory=dict, sa_type=JSON)
    created_at: datetime | None = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),  # type: ignore
        index=True,
    )


class UsageSummary(SQLModel):
    plan: str
    fixed: dict[str, dict[str, int]]
    monthly: dict[str, dict[str, int]]
