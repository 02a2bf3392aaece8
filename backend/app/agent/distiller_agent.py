from app.agent.artifacts import KnowledgePoints
from app.agent.base import BaseAgent
from app.agent.prompts.content import DISTILLATION_SYSTEM_PROMPT
from app.core.config import settings

MAX_TEXT_LENGTH = 50000
MIN_CONTENT_LENGTH = 50


class DistillerAgent(BaseAgent[str, KnowledgePoints]):
    """
    Agent that turns one document chunk into atomic knowledge points.
    """

    step_name = "distill"

    def __init__(self, source: str = ""):
        super().__init__(model_name=settings.MODEL_DISTILLER)
        self.source = source

    async def run(self, input_data: str) -> KnowledgePoints:
        text = (input_data or "").strip()[:MAX_TEXT_LENGTH]
        if len(text) < MIN_CONTENT_LENGTH:
            return KnowledgePoints(points=[])

        result = await self.llm.generate_structured(
            system_prompt=DISTILLATION_SYSTEM_PROMPT,
            user_prompt=f"Chunk to distill:\n\n{text}",
            response_schema=KnowledgePoints,
        )
        result.points = [point for point in result.points if len(point.content.strip()) >= MIN_CONTENT_LENGTH]
        for point in result.points:
            if not point.source:
                point.source = self.source
        return result
