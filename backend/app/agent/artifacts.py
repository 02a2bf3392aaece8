from typing import Literal

from pydantic import BaseModel, Field

from app.persona import PersonaConfig


class ContentBrief(BaseModel):
    """Everything the content pipeline knows about a request before writing starts."""
    description: str
    layout: Literal["article", "changelog", "tutorial"] = "article"
    persona: PersonaConfig
    brand_context: str = ""
    competitor_context: str = ""

    def to_prompt(self) -> str:
        sections = [
            f"Content Request ({self.layout}):\n{self.description}",
        ]
        if self.brand_context:
            sections.append(self.brand_context)
        if self.competitor_context:
            sections.append(self.competitor_context)
        return "\n\n".join(sections)


class ContentStrategy(BaseModel):
    """Artifact produced by the Strategist Agent."""
    brand_insights: str = Field(description="Brand knowledge relevant to this request")
    brand_positioning: str = Field(description="How the piece should position the brand")
    competitor_insights: str = Field(default="", description="What competitors say on this topic and where they are weak")
    content_angles: list[str] = Field(default_factory=list, description="Distinct angles the piece could take, best first")
    key_messages: list[str] = Field(default_factory=list, description="Messages every reader should leave with")
    unique_differentiators: list[str] = Field(default_factory=list, description="Claims only this brand can credibly make")


class ResearchFindings(BaseModel):
    """Artifact produced by the Researcher Agent."""
    search_intent: str = Field(description="What a reader searching for this topic actually wants")
    competitor_analysis: str = Field(default="", description="How the top search results cover the topic")
    content_gaps: list[str] = Field(default_factory=list, description="What those results miss")
    strategic_recommendations: list[str] = Field(default_factory=list, description="Concrete guidance for the writer")
    sources: list[str] = Field(default_factory=list, description="Supporting URLs taken from the search results")


class WritingInput(BaseModel):
    brief: ContentBrief
    research: ResearchFindings | None = None
    strategy: ContentStrategy | None = None


class ContentDraft(BaseModel):
    """Artifact produced by the Writer Agent."""
    writing: str = Field(description="The complete Markdown draft, starting with a single H1 title")


class EditingInput(BaseModel):
    brief: ContentBrief
    draft: ContentDraft


class EditedContent(BaseModel):
    """Artifact produced by the Editor Agent."""
    editor: str = Field(description="The complete edited Markdown, starting with a single H1 title")


class ReviewInput(BaseModel):
    brief: ContentBrief
    content: EditedContent


class ContentReview(BaseModel):
    """Artifact produced by the Reader Agent."""
    rating: int = Field(ge=0, le=100, description="Quality score from 0 to 100")
    reason_of_the_rating: str = Field(description="Markdown explanation of the score")


class SeoMetadata(BaseModel):
    keywords: list[str] = Field(default_factory=list)
    description: str = ""


class GeneratedIdea(BaseModel):
    title: str = Field(description="Compelling blog post title")
    description: str = Field(description="Two sentence description of the post")
    tags: list[str] = Field(default_factory=list, description="Short topical tags")
    confidence_score: int = Field(ge=0, le=100, description="Confidence from 0 to 100 that the idea fits the brand")
    confidence_rationale: str = Field(description="Why the idea fits, referencing brand context or sources")


class IdeasInput(BaseModel):
    persona: PersonaConfig
    keywords: list[str]
    brand_context: str = ""
    search_context: str = ""


class IdeaBatch(BaseModel):
    """Artifact produced by the Ideas Agent."""
    ideas: list[GeneratedIdea] = Field(description="Distinct blog post ideas")


KnowledgeCategory = Literal[
    "brand_guideline", "product_spec", "market_insight", "technical_instruction", "custom"
]


class KnowledgePoint(BaseModel):
    content: str = Field(description="Standalone statement with pronouns resolved")
    summary: str = Field(description="One sentence summary")
    category: KnowledgeCategory = "custom"
    keywords: list[str] = Field(default_factory=list)
    source: str = ""
    confidence: float = Field(default=0.8, ge=0, le=1)


class KnowledgePoints(BaseModel):
    """Artifact produced by the Distiller Agent."""
    points: list[KnowledgePoint] = Field(description="Atomic knowledge points extracted from the chunk")


class CompetitorFeature(BaseModel):
    name: str
    description: str
    category: str = "general"


class CompetitorPages(BaseModel):
    website_url: str
    pages: list[dict[str, str]] = Field(default_factory=list)


class CompetitorProfile(BaseModel):
    """Artifact produced by the Competitor Analyst Agent."""
    name: str = Field(description="Competitor product or company name")
    summary: str = Field(description="What they sell and to whom")
    features: list[CompetitorFeature] = Field(default_factory=list)
