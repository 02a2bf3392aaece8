from app.agent.artifacts import ContentBrief, ContentStrategy
from app.agent.base import BaseAgent
from app.agent.prompts.content import STRATEGIST_SYSTEM_PROMPT, language_output_instruction
from app.core.config import settings


class StrategistAgent(BaseAgent[ContentBrief, ContentStrategy]):
    """
    Agent responsible for positioning a piece against brand and competitor knowledge.
    """

    step_name = "strategy"

    def __init__(self):
        super().__init__(model_name=settings.MODEL_STRATEGIST)

    async def run(self, input_data: ContentBrief) -> ContentStrategy:
        system_prompt = (
            f"{STRATEGIST_SYSTEM_PROMPT}\n\n"
            f"{language_output_instruction(input_data.persona.language.primary)}"
        )
        return await self.llm.generate_structured(
            system_prompt=system_prompt,
            user_prompt=input_data.to_prompt(),
            response_schema=ContentStrategy,
        )
