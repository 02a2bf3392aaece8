from app.agent.artifacts import IdeaBatch, IdeasInput
from app.agent.base import BaseAgent
from app.agent.prompts.content import IDEAS_SYSTEM_PROMPT, language_output_instruction
from app.agent.prompts.persona import create_audience_section, create_metadata_section
from app.core.config import settings

MAX_IDEAS = 5


class IdeasAgent(BaseAgent[IdeasInput, IdeaBatch]):
    """
    Agent that proposes blog post ideas for a persona from keywords,
    brand knowledge and recent web sources.
    """

    step_name = "ideas"

    def __init__(self):
        super().__init__(model_name=settings.MODEL_IDEAS)

    async def run(self, input_data: IdeasInput) -> IdeaBatch:
        persona_context = "\n\n".join(
            section
            for section in (
                create_metadata_section(input_data.persona),
                create_audience_section(input_data.persona),
            )
            if section
        )
        user_prompt = f"Target keywords: {', '.join(input_data.keywords)}\n\nPropose up to {MAX_IDEAS} ideas."
        if input_data.brand_context:
            user_prompt += f"\n\n{input_data.brand_context}"
        if input_data.search_context:
            user_prompt += f"\n\nRecent Web Sources:\n\n{input_data.search_context}"

        batch = await self.llm.generate_structured(
            system_prompt=(
                f"{IDEAS_SYSTEM_PROMPT}\n\n{persona_context}\n\n"
                f"{language_output_instruction(input_data.persona.language.primary)}"
            ),
            user_prompt=user_prompt,
            response_schema=IdeaBatch,
        )

        seen_titles: set[str] = set()
        unique = []
        for idea in batch.ideas:
            key = idea.title.strip().lower()
            if not key or key in seen_titles:
                continue
            seen_titles.add(key)
            unique.append(idea)
        batch.ideas = unique[:MAX_IDEAS]
        if not batch.ideas:
            raise ValueError("IdeasAgent failed to produce any ideas.")
        return batch
