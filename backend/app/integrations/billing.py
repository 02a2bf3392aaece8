"""
Plan limits and usage metering.

Usage is written to the local ``UsageEvent`` ledger, which is what monthly
limits are counted against, and forwarded to Polar's event ingestion API
when billing is enabled.
"""
import logging
import uuid
from datetime import datetime, timezone
from typing import Any

import httpx
from sqlmodel import Session

from app import crud
from app.core.config import settings
from app.core.errors import InvalidInputError, UsageLimitError
from app.models import UsageEvent, User

logger = logging.getLogger(__name__)

PLAN_FREE = "free"
PLAN_PRO = "pro"
PLAN_ULTRA = "ultra"

PLAN_VALUES = {PLAN_PRO: 1500, PLAN_ULTRA: 6000}

EVENT_GENERATED_CONTENT = "generated_content"
EVENT_KNOWLEDGE_CHUNK_PROCESSING = "knowledge_chunk_processing"
EVENT_CREDIT = "credit"

USAGE_DB_OPERATIONS = "db_operations"
USAGE_LLM = "llm_usage"
USAGE_RAG_OPERATIONS = "rag_operations"
USAGE_WEB_SEARCH = "web_search"

BILLING_CONFIG = {
    "llm_price_per_million_tokens": 2.5,
    "rag_usage": 0.05,
    "web_search_cost": 0.0008,
}

MODELS = {
    "deepseek-v3.1-terminus": "deepseek/deepseek-chat-v3.1-terminus",
    "gpt-5-mini": "openai/gpt-5-mini",
    "grok-4-fast": "x-ai/grok-4-fast",
}

PLAN_LIMITS: dict[str, dict[str, dict[str, int]]] = {
    PLAN_FREE: {
        "fixed": {"agent_slots": 1, "knowledge_chunk_slots": 5, "agent_file_upload_slots": 1},
        "monthly": {"generate_content": 3, "knowledge_chunk_generation": 1},
    },
    PLAN_PRO: {
        "fixed": {"agent_slots": 3, "knowledge_chunk_slots": 100, "agent_file_upload_slots": 3},
        "monthly": {"generate_content": 200, "knowledge_chunk_generation": 10},
    },
    PLAN_ULTRA: {
        "fixed": {"agent_slots": 10, "knowledge_chunk_slots": 500, "agent_file_upload_slots": 5},
        "monthly": {"generate_content": 800, "knowledge_chunk_generation": 50},
    },
}


def get_plan_based_on_value(value: float) -> str:
    if value >= PLAN_VALUES[PLAN_ULTRA]:
        return PLAN_ULTRA
    if value >= PLAN_VALUES[PLAN_PRO]:
        return PLAN_PRO
    return PLAN_FREE


def get_plan_limits(plan: str) -> dict[str, dict[str, int]]:
    limits = PLAN_LIMITS.get(plan)
    if limits is None:
        raise InvalidInputError(f"Unknown plan: {plan}")
    return limits


def _check_limit(used: int, limit: int, message: str) -> dict[str, int]:
    if used >= limit:
        raise UsageLimitError(message, data={"used": used, "limit": limit})
    return {"remaining": limit - used}


def handle_content_monthly_limit(used: int, plan: str) -> dict[str, int]:
    limit = get_plan_limits(plan)["monthly"]["generate_content"]
    return _check_limit(used, limit, f"You have exceeded your {plan} plan's content generation monthly limit.")


def handle_knowledge_processing_monthly_limit(used: int, plan: str) -> dict[str, int]:
    limit = get_plan_limits(plan)["monthly"]["knowledge_chunk_generation"]
    return _check_limit(used, limit, f"You have exceeded your {plan} plan's knowledge processing monthly limit.")


def handle_agent_slots_limit(used: int, plan: str) -> dict[str, int]:
    limit = get_plan_limits(plan)["fixed"]["agent_slots"]
    return _check_limit(used, limit, "You don't have enough agent slots available.")


def handle_knowledge_chunk_slots_limit(used: int, plan: str) -> dict[str, int]:
    limit = get_plan_limits(plan)["fixed"]["knowledge_chunk_slots"]
    return _check_limit(used, limit, "You don't have enough knowledge chunk slots available.")


def handle_agent_file_uploads_limit(used: int, plan: str) -> dict[str, int]:
    limit = get_plan_limits(plan)["fixed"]["agent_file_upload_slots"]
    return _check_limit(used, limit, "You don't have enough agent file upload slots available.")


def create_ai_usage_metadata(*, input_tokens: int, output_tokens: int, effort: str) -> dict[str, Any]:
    return {
        "credits_debited": input_tokens + output_tokens,
        "effort": effort,
        "input_tokens": input_tokens,
        "output_tokens": output_tokens,
        "usage_type": USAGE_LLM,
    }


def _cost_to_tokens(cost: float, unit_price: float) -> int:
    return round(cost / unit_price * 1_000_000)


def create_web_search_usage_metadata(*, method: str) -> dict[str, Any]:
    multiplier = 2 if method in ("crawl", "advanced") else 1
    actual_cost = BILLING_CONFIG["web_search_cost"] * multiplier
    return {
        "actual_cost": actual_cost,
        "credits_debited": _cost_to_tokens(actual_cost, BILLING_CONFIG["llm_price_per_million_tokens"]),
        "method": method,
        "usage_type": USAGE_WEB_SEARCH,
    }


def create_rag_usage_metadata(*, agent_id: str) -> dict[str, Any]:
    return {
        "agent_id": agent_id,
        "credits_debited": _cost_to_tokens(BILLING_CONFIG["rag_usage"], BILLING_CONFIG["rag_usage"]),
        "usage_type": USAGE_RAG_OPERATIONS,
    }


def llm_cost(input_tokens: int, output_tokens: int) -> float:
    return (input_tokens + output_tokens) / 1_000_000 * BILLING_CONFIG["llm_price_per_million_tokens"]


def effort_for_model(model_name: str) -> str:
    for effort, model in MODELS.items():
        if model == model_name:
            return effort
    return model_name


def month_start(now: datetime | None = None) -> datetime:
    now = now or datetime.now(timezone.utc)
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


class PolarClient:
    """Minimal Polar REST client: customer state lookup and event ingestion."""

    def __init__(
        self,
        access_token: str | None = None,
        base_url: str | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.access_token = access_token if access_token is not None else settings.POLAR_ACCESS_TOKEN
        self.base_url = (base_url or settings.POLAR_BASE_URL).rstrip("/")
        self._transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self.access_token)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers={"Authorization": f"Bearer {self.access_token}"},
            timeout=15.0,
            transport=self._transport,
        )

    async def get_customer_state(self, external_id: str) -> dict[str, Any]:
        async with self._client() as client:
            response = await client.get(f"/customers/external/{external_id}/state")
            response.raise_for_status()
            return response.json()

    async def ingest_events(self, events: list[dict[str, Any]]) -> None:
        async with self._client() as client:
            response = await client.post("/events/ingest", json={"events": events})
            response.raise_for_status()

    async def ingest_usage(self, *, external_customer_id: str, metadata: dict[str, Any], name: str = EVENT_CREDIT) -> None:
        await self.ingest_events(
            [{"name": name, "external_customer_id": external_customer_id, "metadata": metadata}]
        )


class BillingService:
    """Plan checks against the local ledger plus best-effort forwarding to Polar."""

    def __init__(self, session: Session, polar: PolarClient | None = None):
        self.session = session
        self.polar = polar or PolarClient()

    def plan_for(self, user: User) -> str:
        plan = user.plan
        get_plan_limits(plan)
        return plan

    def monthly_usage(self, user_id: uuid.UUID, event: str) -> int:
        return crud.count_usage_events_since(
            session=self.session, user_id=user_id, event=event, since=month_start()
        )

    def check_content_generation(self, user: User) -> dict[str, int]:
        used = self.monthly_usage(user.id, EVENT_GENERATED_CONTENT)
        return handle_content_monthly_limit(used, self.plan_for(user))

    def check_knowledge_processing(self, user: User) -> dict[str, int]:
        used = self.monthly_usage(user.id, EVENT_KNOWLEDGE_CHUNK_PROCESSING)
        return handle_knowledge_processing_monthly_limit(used, self.plan_for(user))

    def check_agent_slots(self, user: User) -> dict[str, int]:
        used = crud.count_agents(session=self.session, user_id=user.id)
        return handle_agent_slots_limit(used, self.plan_for(user))

    def check_agent_file_uploads(self, user: User, used: int) -> dict[str, int]:
        return handle_agent_file_uploads_limit(used, self.plan_for(user))

    def check_knowledge_chunk_slots(self, user: User, used: int) -> dict[str, int]:
        return handle_knowledge_chunk_slots_limit(used, self.plan_for(user))

    def usage_summary(self, user: User) -> dict[str, Any]:
        plan = self.plan_for(user)
        limits = get_plan_limits(plan)
        agents_used = crud.count_agents(session=self.session, user_id=user.id)
        content_used = self.monthly_usage(user.id, EVENT_GENERATED_CONTENT)
        knowledge_used = self.monthly_usage(user.id, EVENT_KNOWLEDGE_CHUNK_PROCESSING)
        return {
            "plan": plan,
            "fixed": {
                "agent_slots": {"used": agents_used, "limit": limits["fixed"]["agent_slots"]},
            },
            "monthly": {
                "generate_content": {"used": content_used, "limit": limits["monthly"]["generate_content"]},
                "knowledge_chunk_generation": {
                    "used": knowledge_used,
                    "limit": limits["monthly"]["knowledge_chunk_generation"],
                },
            },
        }

    async def record_event(self, *, user_id: uuid.UUID, event: str, meta: dict[str, Any] | None = None) -> UsageEvent:
        usage_event = crud.create_usage_event(
            session=self.session,
            usage_event=UsageEvent(user_id=user_id, event=event, meta=meta or {}),
        )
        await self._forward(str(user_id), {"event": event, **(meta or {})}, name=event)
        return usage_event

    async def ingest_llm_usage(
        self,
        *,
        user_id: uuid.UUID,
        model_name: str,
        prompt_tokens: int,
        completion_tokens: int,
        step: str | None = None,
    ) -> UsageEvent:
        metadata = create_ai_usage_metadata(
            input_tokens=prompt_tokens,
            output_tokens=completion_tokens,
            effort=effort_for_model(model_name),
        )
        usage_event = crud.create_usage_event(
            session=self.session,
            usage_event=UsageEvent(
                user_id=user_id,
                event=EVENT_CREDIT,
                usage_type=USAGE_LLM,
                model=model_name,
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                cost=llm_cost(prompt_tokens, completion_tokens),
                meta={"step": step} if step else {},
            ),
        )
        await self._forward(str(user_id), metadata)
        return usage_event

    async def ingest_web_search_usage(self, *, user_id: uuid.UUID, method: str = "search") -> UsageEvent:
        metadata = create_web_search_usage_metadata(method=method)
        usage_event = crud.create_usage_event(
            session=self.session,
            usage_event=UsageEvent(
                user_id=user_id,
                event=EVENT_CREDIT,
                usage_type=USAGE_WEB_SEARCH,
                cost=metadata["actual_cost"],
                meta={"method": method},
            ),
        )
        await self._forward(str(user_id), metadata)
        return usage_event

    async def _forward(self, external_customer_id: str, metadata: dict[str, Any], *, name: str = EVENT_CREDIT) -> None:
        if not settings.BILLING_ENABLED or not self.polar.enabled:
            return
        try:
            await self.polar.ingest_usage(
                external_customer_id=external_customer_id, metadata=metadata, name=name
            )
        except httpx.HTTPError as exc:
            # The local ledger already holds the event.
            logger.warning("Polar ingestion failed for customer %s: %s", external_customer_id, exc)
