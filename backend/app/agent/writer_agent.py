from app.agent.artifacts import ContentDraft, WritingInput
from app.agent.base import BaseAgent
from app.agent.prompts.content import WRITER_SYSTEM_PROMPTS, language_output_instruction
from app.agent.prompts.persona import SECTION_SEPARATOR, generate_writing_prompt
from app.core.config import settings


class WriterAgent(BaseAgent[WritingInput, ContentDraft]):
    """
    Agent responsible for the first full draft, written in the agent's persona.
    """

    step_name = "write"

    def __init__(self):
        super().__init__(model_name=settings.MODEL_WRITER)

    @staticmethod
    def build_user_prompt(input_data: WritingInput) -> str:
        prompt = input_data.brief.to_prompt()
        if input_data.strategy is not None:
            strategy = input_data.strategy
            prompt += (
                "\n\nContent Strategy:\n"
                f"Positioning: {strategy.brand_positioning}\n"
                f"Angles: {'; '.join(strategy.content_angles)}\n"
                f"Key messages: {'; '.join(strategy.key_messages)}\n"
                f"Differentiators: {'; '.join(strategy.unique_differentiators)}"
            )
        if input_data.research is not None:
            research = input_data.research
            prompt += (
                "\n\nResearch Findings:\n"
                f"Search intent: {research.search_intent}\n"
                f"Content gaps: {'; '.join(research.content_gaps)}\n"
                f"Recommendations: {'; '.join(research.strategic_recommendations)}\n"
                f"Sources: {', '.join(research.sources)}"
            )
        return prompt

    async def run(self, input_data: WritingInput) -> ContentDraft:
        persona = input_data.brief.persona
        system_prompt = SECTION_SEPARATOR.join(
            [
                generate_writing_prompt(persona),
                WRITER_SYSTEM_PROMPTS[input_data.brief.layout].strip(),
                language_output_instruction(persona.language.primary),
            ]
        )
        text = await self.llm.generate_text(
            system_prompt=system_prompt,
            user_prompt=self.build_user_prompt(input_data),
            temperature=0.7,
        )
        return ContentDraft(writing=text)
