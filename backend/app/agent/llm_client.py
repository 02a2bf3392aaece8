import json
import logging
import re
from dataclasses import dataclass
from typing import Any, TypeVar

from openai import AsyncOpenAI
from pydantic import BaseModel, ValidationError

from app.core.config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

_FENCED_BLOCK = re.compile(r"```[a-zA-Z0-9_-]*\s*(.*?)\s*```", re.DOTALL)
_WHOLE_FENCE = re.compile(r"^\s*```[a-zA-Z0-9_-]*\s*([\s\S]*?)\s*```\s*$")

JSON_INSTRUCTIONS = (
    "CRITICAL: You must respond in ONLY valid JSON format matching the following JSON Schema. "
    "Do not include markdown code blocks (```json) or any conversational text around the JSON."
)
JSON_RETRY_INSTRUCTIONS = (
    "RETRY INSTRUCTIONS: Your previous response was invalid or incomplete. "
    "Return ONLY a single JSON object matching the schema, with no prose or markdown fences."
)
TEXT_RETRY_INSTRUCTIONS = (
    "RETRY INSTRUCTIONS: Return only the final text with no surrounding code fences "
    "and no explanation."
)


def strip_code_fences(text: str) -> str:
    fenced = _WHOLE_FENCE.match(text or "")
    return fenced.group(1).strip() if fenced else (text or "").strip()


def _json_candidates(text: str) -> list[Any]:
    """Decoded JSON values found in a model reply: a fenced block, the whole reply, or the first embedded object."""
    text = (text or "").strip()
    values: list[Any] = []
    sources = [match.group(1) for match in _FENCED_BLOCK.finditer(text)][:1] + [text]
    decoder = json.JSONDecoder(strict=False)
    for source in sources:
        try:
            values.append(decoder.decode(source))
            continue
        except json.JSONDecodeError:
            pass
        start = source.find("{")
        if start != -1:
            try:
                values.append(decoder.raw_decode(source, start)[0])
            except json.JSONDecodeError:
                pass
    return values


def _token_count(value: Any) -> int:
    return value if isinstance(value, int) else 0


@dataclass
class TokenUsage:
    prompt_tokens: int = 0
    completion_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens

    def add(self, other: "TokenUsage") -> None:
        self.prompt_tokens += other.prompt_tokens
        self.completion_tokens += other.completion_tokens


class LLMClient:
    """Client for any OpenAI-compatible chat API that tallies token usage per agent."""

    attempts = 2

    def __init__(
        self,
        model_name: str | None = None,
        base_url: str | None = None,
        api_key: str | None = None,
    ):
        self.model_name = model_name or settings.MODEL_DEFAULT
        # Accumulated over every call, retries included.
        self.usage = TokenUsage()

        self.client = AsyncOpenAI(
            base_url=base_url or settings.LLM_BASE_URL,
            api_key=api_key or settings.LLM_API_KEY,
        )

    def reset_usage(self) -> TokenUsage:
        """Return the usage collected so far and start a new tally."""
        collected, self.usage = self.usage, TokenUsage()
        return collected

    def _record_usage(self, response: Any) -> None:
        usage = getattr(response, "usage", None)
        if usage is None:
            return
        self.usage.add(
            TokenUsage(
                prompt_tokens=_token_count(getattr(usage, "prompt_tokens", 0)),
                completion_tokens=_token_count(getattr(usage, "completion_tokens", 0)),
            )
        )

    async def _complete(self, system_prompt: str, user_prompt: str, temperature: float) -> str:
        response = await self.client.chat.completions.create(
            model=self.model_name,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            # JSON mode is not supported by every provider, so the format is enforced in the prompt.
            temperature=temperature,
        )
        self._record_usage(response)
        if not getattr(response, "choices", None):
            raise ValueError(f"Provider returned no output for model {self.model_name}")
        return response.choices[0].message.content or ""

    async def generate_structured(
        self, system_prompt: str, user_prompt: str, response_schema: type[T]
    ) -> T:
        """
        Ask for JSON matching ``response_schema`` and validate the reply.

        The schema is appended to the system prompt. An unparseable or invalid
        reply is retried once with stricter instructions, then the last error
        is raised.
        """
        base_prompt = (
            f"{system_prompt}\n\n{JSON_INSTRUCTIONS}\n\n"
            f"EXPECTED SCHEMA:\n{json.dumps(response_schema.model_json_schema())}"
        )
        for attempt in range(1, self.attempts + 1):
            prompt = base_prompt if attempt == 1 else f"{base_prompt}\n\n{JSON_RETRY_INSTRUCTIONS}"
            logger.info("Structured request to %s (attempt %s/%s)", self.model_name, attempt, self.attempts)
            text = await self._complete(prompt, user_prompt, temperature=0.2 if attempt == 1 else 0)
            try:
                return self._parse(text, response_schema)
            except ValueError as exc:
                if attempt == self.attempts:
                    logger.error("Unusable structured response from %s: %s", self.model_name, exc)
                    raise
                logger.warning("Unusable structured response from %s, retrying: %s", self.model_name, exc)
        raise RuntimeError("unreachable")

    @staticmethod
    def _parse(text: str, response_schema: type[T]) -> T:
        candidates = _json_candidates(text)
        if not candidates:
            raise ValueError("Model reply contains no JSON")
        errors: list[str] = []
        for candidate in candidates:
            try:
                return response_schema.model_validate(candidate)
            except ValidationError as exc:
                errors.append(str(exc))
        raise ValueError("Model reply does not match the schema: " + " | ".join(errors[:2]))

    async def generate_text(self, system_prompt: str, user_prompt: str, *, temperature: float = 0.2) -> str:
        """Plain text generation for long Markdown bodies. Code fences around the whole reply are removed."""
        for attempt in range(1, self.attempts + 1):
            prompt = system_prompt if attempt == 1 else f"{system_prompt}\n\n{TEXT_RETRY_INSTRUCTIONS}"
            logger.info("Text request to %s (attempt %s/%s)", self.model_name, attempt, self.attempts)
            text = strip_code_fences(await self._complete(prompt, user_prompt, temperature if attempt == 1 else 0))
            if text:
                return text
            if attempt == self.attempts:
                logger.error("Empty text response from %s", self.model_name)
                raise ValueError(f"Model {self.model_name} returned empty content")
            logger.warning("Empty text response from %s, retrying", self.model_name)
        raise RuntimeError("unreachable")
