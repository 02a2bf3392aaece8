import asyncio
import io
import logging
import uuid

import pypdf
from sqlmodel import Session

from app import crud
from app.agent.artifacts import KnowledgePoint
from app.agent.distiller_agent import DistillerAgent
from app.agent.rag import KNOWLEDGE_BRAND, RAGManager, get_rag_manager
from app.core.config import settings
from app.core.errors import AppError, InvalidInputError, propagate_error
from app.events import emit_agent_knowledge_status_changed
from app.integrations.billing import EVENT_KNOWLEDGE_CHUNK_PROCESSING, BillingService
from app.models import BrandKnowledgeStatus, User
from app.text_chunking import chunk_for_distillation

logger = logging.getLogger(__name__)

TEXT_CONTENT_TYPES = {"text/plain", "text/markdown", "text/x-markdown"}
TEXT_EXTENSIONS = (".txt", ".md", ".markdown")


def extract_text_from_file(file_name: str, content_type: str | None, content: bytes) -> str:
    """Extracts text from an uploaded PDF, plain text or Markdown file."""
    lowered = file_name.lower()
    if content_type == "application/pdf" or lowered.endswith(".pdf"):
        try:
            pdf_reader = pypdf.PdfReader(io.BytesIO(content))
            pages = [page.extract_text() or "" for page in pdf_reader.pages]
        except Exception as e:
            raise InvalidInputError(f"Failed to parse PDF {file_name}", cause=str(e)) from e
        return "\n".join(page for page in pages if page)

    if content_type in TEXT_CONTENT_TYPES or lowered.endswith(TEXT_EXTENSIONS):
        try:
            return content.decode("utf-8")
        except UnicodeDecodeError as e:
            raise InvalidInputError(f"File {file_name} is not valid UTF-8 text", cause=str(e)) from e

    raise InvalidInputError(f"Unsupported file type: {content_type or file_name}")


def _set_status(session: Session, agent_id: uuid.UUID, status: BrandKnowledgeStatus, message: str) -> None:
    try:
        crud.update_agent_knowledge_status(session=session, agent_id=agent_id, status=status)
    except Exception as exc:
        logger.warning("Failed to update knowledge status of agent %s: %s", agent_id, exc)
    emit_agent_knowledge_status_changed(agent_id=agent_id, status=status.value, message=message)


async def distill_text(text: str, source: str, *, distiller: DistillerAgent) -> list[KnowledgePoint]:
    chunks = chunk_for_distillation(
        text,
        max_length=settings.KNOWLEDGE_CHUNK_SIZE,
        overlap=settings.KNOWLEDGE_CHUNK_OVERLAP,
    )
    if not chunks:
        return []
    results = await asyncio.gather(*(distiller.run(chunk) for chunk in chunks))
    points: list[KnowledgePoint] = []
    for result in results:
        for point in result.points:
            point.source = point.source or source
            points.append(point)
    logger.info("Distilled %s point(s) from %s chunk(s) of %s", len(points), len(chunks), source)
    return points


async def process_agent_document(
    session: Session,
    agent_id: uuid.UUID,
    *,
    file_name: str,
    text: str,
    distiller: DistillerAgent | None = None,
    billing: BillingService | None = None,
    rag: RAGManager | None = None,
) -> int:
    """
    Distill an uploaded brand document into knowledge points and index them
    for the agent. Returns the number of points stored.
    """
    billing = billing or BillingService(session)
    distiller = distiller or DistillerAgent(source=file_name)

    try:
        agent = crud.get_agent(session=session, agent_id=agent_id)
        user = session.get(User, agent.user_id)
        rag = rag or get_rag_manager()
        if user is not None:
            billing.check_knowledge_chunk_slots(
                user, rag.count_chunks(str(agent_id), knowledge_type=KNOWLEDGE_BRAND)
            )

        _set_status(session, agent_id, BrandKnowledgeStatus.chunking, f"Processing {file_name}...")
        points = await distill_text(text, file_name, distiller=distiller)

        stored = rag.add_knowledge_chunks(
            external_id=str(agent_id),
            knowledge_type=KNOWLEDGE_BRAND,
            source_id=file_name,
            chunks=[point.content for point in points],
            metadatas=[
                {
                    "summary": point.summary,
                    "category": point.category,
                    "keywords": point.keywords,
                    "confidence": point.confidence,
                }
                for point in points
            ],
            source=file_name,
        )

        usage = distiller.collect_usage()
        if usage.total_tokens:
            await billing.ingest_llm_usage(
                user_id=agent.user_id,
                model_name=distiller.model_name,
                prompt_tokens=usage.prompt_tokens,
                completion_tokens=usage.completion_tokens,
                step=distiller.step_name,
            )
        await billing.record_event(
            user_id=agent.user_id,
            event=EVENT_KNOWLEDGE_CHUNK_PROCESSING,
            meta={"agent_id": str(agent_id), "file_name": file_name, "points": stored},
        )
    except Exception as e:
        logger.error("Knowledge processing failed for agent %s (%s): %s", agent_id, file_name, e, exc_info=True)
        _set_status(session, agent_id, BrandKnowledgeStatus.failed, f"Failed to process {file_name}")
        propagate_error(e)
        raise AppError.internal(f"Failed to process {file_name}", cause=str(e)) from e

    _set_status(
        session,
        agent_id,
        BrandKnowledgeStatus.completed,
        f"Stored {stored} knowledge point(s) from {file_name}",
    )
    return stored


def delete_agent_document(agent_id: uuid.UUID, file_name: str, *, rag: RAGManager | None = None) -> None:
    (rag or get_rag_manager()).delete_source(str(agent_id), file_name)
