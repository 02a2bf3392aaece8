from typing import Literal

from pydantic import BaseModel, Field

CommunicationStyle = Literal["first_person", "third_person"]
AudienceBase = Literal["general_public", "professionals", "beginners", "customers"]
FormattingStyle = Literal["structured", "narrative", "list_based"]
ListStyle = Literal["bullets", "numbered"]
PrimaryLanguage = Literal["en", "pt", "es"]
LanguageVariant = Literal["en-US", "en-GB", "pt-BR", "pt-PT", "es-ES", "es-MX"]
BrandIntegrationStyle = Literal[
    "strict_guideline", "flexible_guideline", "reference_only", "creative_blend"
]
Purpose = Literal["blog_post", "linkedin_post", "twitter_thread", "email_newsletter"]


class PersonaMetadata(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    description: str = Field(default="", max_length=2000)


class PersonaVoice(BaseModel):
    communication: CommunicationStyle = "first_person"


class PersonaAudience(BaseModel):
    base: AudienceBase = "general_public"


class PersonaFormatting(BaseModel):
    style: FormattingStyle = "structured"
    list_style: ListStyle | None = None


class PersonaLanguage(BaseModel):
    primary: PrimaryLanguage = "en"
    variant: LanguageVariant | None = None


class PersonaBrand(BaseModel):
    integration_style: BrandIntegrationStyle = "flexible_guideline"
    blacklist_words: list[str] = Field(default_factory=list)


class PersonaConfig(BaseModel):
    """How an agent writes: who it is, who it talks to and in which language."""

    metadata: PersonaMetadata
    voice: PersonaVoice = Field(default_factory=PersonaVoice)
    audience: PersonaAudience = Field(default_factory=PersonaAudience)
    formatting: PersonaFormatting = Field(default_factory=PersonaFormatting)
    language: PersonaLanguage = Field(default_factory=PersonaLanguage)
    brand: PersonaBrand = Field(default_factory=PersonaBrand)
    purpose: Purpose = "blog_post"
