from app.agent.artifacts import CompetitorPages, CompetitorProfile
from app.agent.base import BaseAgent
from app.agent.prompts.content import COMPETITOR_FEATURES_SYSTEM_PROMPT
from app.core.config import settings

MAX_PAGE_CHARS = 6000


class CompetitorAnalystAgent(BaseAgent[CompetitorPages, CompetitorProfile]):
    """Summarises a competitor's website into a profile with its advertised features."""

    step_name = "competitor_analysis"

    def __init__(self):
        super().__init__(model_name=settings.MODEL_STRATEGIST)

    async def run(self, input_data: CompetitorPages) -> CompetitorProfile:
        if not input_data.pages:
            raise ValueError(f"No pages could be fetched for {input_data.website_url}")

        prompt = f"Competitor website: {input_data.website_url}\n"
        for page in input_data.pages:
            prompt += f"\n--- {page.get('url', '')} ---\n{page.get('content', '')[:MAX_PAGE_CHARS]}\n"

        profile = await self.llm.generate_structured(
            system_prompt=COMPETITOR_FEATURES_SYSTEM_PROMPT,
            user_prompt=prompt,
            response_schema=CompetitorProfile,
        )

        seen: set[str] = set()
        features = []
        for feature in profile.features:
            key = feature.name.strip().lower()
            if key and key not in seen:
                seen.add(key)
                features.append(feature)
        profile.features = features
        return profile
