import logging

from app.agent.artifacts import ContentBrief, ResearchFindings
from app.agent.base import BaseAgent
from app.agent.prompts.content import RESEARCHER_SYSTEM_PROMPT, language_output_instruction
from app.core.config import settings
from app.integrations.tavily import TavilyClient, format_search_results, get_tavily_client

logger = logging.getLogger(__name__)

SEARCH_QUERY_MAX_CHARS = 380


class ResearcherAgent(BaseAgent[ContentBrief, ResearchFindings]):
    """
    Agent that searches the web for the request topic and turns the results
    into research findings for the writer.
    """

    step_name = "research"

    def __init__(self, search_client: TavilyClient | None = None):
        super().__init__(model_name=settings.MODEL_RESEARCHER)
        self.search_client = search_client or get_tavily_client()
        self.searches_performed = 0

    @staticmethod
    def build_search_query(brief: ContentBrief) -> str:
        query = " ".join(brief.description.split())
        return query[:SEARCH_QUERY_MAX_CHARS]

    async def run(self, input_data: ContentBrief) -> ResearchFindings:
        results = await self.search_client.search(self.build_search_query(input_data))
        if results:
            self.searches_performed += 1
        else:
            logger.warning("Web search returned no results; researching from the request alone.")

        user_prompt = input_data.to_prompt()
        search_context = format_search_results(results)
        if search_context:
            user_prompt += f"\n\nWeb Search Results:\n\n{search_context}"

        findings = await self.llm.generate_structured(
            system_prompt=(
                f"{RESEARCHER_SYSTEM_PROMPT}\n\n"
                f"{language_output_instruction(input_data.persona.language.primary)}"
            ),
            user_prompt=user_prompt,
            response_schema=ResearchFindings,
        )

        # Keep only sources that actually came back from the search.
        known_urls = {item["url"] for item in results}
        findings.sources = [url for url in findings.sources if url in known_urls] or [
            item["url"] for item in results
        ]
        return findings
