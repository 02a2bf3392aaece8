from abc import ABC, abstractmethod
from typing import Generic, TypeVar

from pydantic import BaseModel

from app.agent.llm_client import LLMClient, TokenUsage
from app.core.config import settings

InType = TypeVar("InType", bound=BaseModel | str)
OutType = TypeVar("OutType", bound=BaseModel)

class BaseAgent(ABC, Generic[InType, OutType]):
    """Abstract base class for all agents in the pipeline."""

    step_name: str = "agent"

    def __init__(self, model_name: str | None = None):
        model_to_use = model_name or settings.MODEL_DEFAULT
        self.llm = LLMClient(model_name=model_to_use)

    @property
    def model_name(self) -> str:
        return self.llm.model_name

    def collect_usage(self) -> TokenUsage:
        """Token usage since the last collection, for billing."""
        return self.llm.reset_usage()

    @abstractmethod
    async def run(self, input_data: InType) -> OutType:
        """Run the agent on the given input to produce the output artifact."""
        pass
