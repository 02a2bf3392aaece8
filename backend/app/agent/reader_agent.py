from app.agent.artifacts import ContentReview, ReviewInput
from app.agent.base import BaseAgent
from app.agent.prompts.content import READER_SYSTEM_PROMPT, language_output_instruction
from app.core.config import settings


class ReaderAgent(BaseAgent[ReviewInput, ContentReview]):
    """
    Agent that rates the edited piece against the original request.
    """

    step_name = "review"

    def __init__(self):
        super().__init__(model_name=settings.MODEL_READER)

    async def run(self, input_data: ReviewInput) -> ContentReview:
        user_prompt = (
            f"Original request ({input_data.brief.layout}):\n{input_data.brief.description}\n\n"
            f"Piece to evaluate:\n\n{input_data.content.editor}"
        )
        return await self.llm.generate_structured(
            system_prompt=(
                f"{READER_SYSTEM_PROMPT}\n\n"
                f"{language_output_instruction(input_data.brief.persona.language.primary)}"
            ),
            user_prompt=user_prompt,
            response_schema=ContentReview,
        )
