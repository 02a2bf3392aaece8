import hashlib
import logging
from typing import Any

import chromadb
from chromadb.config import Settings
from chromadb.utils import embedding_functions

from app.core.config import settings

logger = logging.getLogger(__name__)

KNOWLEDGE_BRAND = "brand"
KNOWLEDGE_COMPETITOR = "competitor"
KNOWLEDGE_FEATURE = "feature"
KNOWLEDGE_DOCUMENT = "document"


def _metadata_filter(**conditions: str | None) -> dict[str, Any]:
    items = [{key: value} for key, value in conditions.items() if value is not None]
    if not items:
        return {}
    if len(items) == 1:
        return items[0]
    return {"$and": items}


def _chunk_id(external_id: str, source_id: str, index: int, text: str) -> str:
    digest = hashlib.md5(text.encode("utf-8")).hexdigest()[:8]
    return f"{external_id}_{source_id}_{index}_{digest}"


def format_knowledge_context(snippets: list[dict[str, Any]], heading: str = "Relevant Brand Knowledge") -> str:
    if not snippets:
        return ""
    sections = [f"{heading}:"]
    for index, snippet in enumerate(snippets, start=1):
        source = snippet.get("source") or "unknown"
        sections.extend(["", f"[Knowledge {index} | {source}]", str(snippet.get("content") or "")])
    return "\n".join(sections).strip()


class RAGManager:
    """Manages agent and competitor knowledge chunks in ChromaDB."""

    def __init__(self, persist_directory: str | None = None):
        self.persist_directory = persist_directory or settings.CHROMA_PERSIST_DIRECTORY

        if settings.EMBEDDING_MODEL and settings.LLM_API_KEY:
            self.embedding_function = embedding_functions.OpenAIEmbeddingFunction(
                api_key=settings.LLM_API_KEY,
                api_base=settings.LLM_BASE_URL,
                model_name=settings.EMBEDDING_MODEL,
            )
        else:
            self.embedding_function = embedding_functions.DefaultEmbeddingFunction()

        self.client = chromadb.PersistentClient(
            path=self.persist_directory,
            settings=Settings(allow_reset=True, anonymized_telemetry=False)
        )

        self.collection_name = "knowledge_chunks"
        self.collection = self.client.get_or_create_collection(
            name=self.collection_name,
            embedding_function=self.embedding_function,
            metadata={"hnsw:space": "cosine"},
        )

    def add_knowledge_chunks(
        self,
        *,
        external_id: str,
        knowledge_type: str,
        source_id: str,
        chunks: list[str],
        metadatas: list[dict[str, Any]] | None = None,
        source: str = "",
    ) -> int:
        """Embed and store chunks for an agent or competitor. Returns how many were stored."""
        documents: list[str] = []
        chunk_metadatas: list[dict[str, Any]] = []
        ids: list[str] = []
        for index, chunk in enumerate(chunks):
            text = (chunk or "").strip()
            if not text:
                continue
            extra = metadatas[index] if metadatas and index < len(metadatas) else {}
            metadata: dict[str, Any] = {
                "external_id": str(external_id),
                "type": knowledge_type,
                "source_id": str(source_id),
                "source": source,
                "chunk_index": index,
            }
            # Chroma metadata values must be scalars.
            for key, value in extra.items():
                if isinstance(value, list):
                    metadata[key] = ", ".join(str(item) for item in value)
                elif isinstance(value, str | int | float | bool):
                    metadata[key] = value
            documents.append(text)
            chunk_metadatas.append(metadata)
            ids.append(_chunk_id(str(external_id), str(source_id), index, text))

        if not documents:
            return 0

        try:
            self.collection.add(documents=documents, metadatas=chunk_metadatas, ids=ids)
            logger.info(
                "Added %s %s chunk(s) for %s from source %s",
                len(documents),
                knowledge_type,
                external_id,
                source_id,
            )
        except Exception as e:
            logger.error("Error adding chunks to ChromaDB: %s", e)
            raise
        return len(documents)

    def query_snippets(
        self,
        *,
        external_id: str,
        query: str,
        knowledge_type: str | None = None,
        n_results: int | None = None,
        similarity_threshold: float | None = None,
    ) -> list[dict[str, Any]]:
        """Search knowledge scoped to one agent or competitor, dropping weak matches."""
        if not query:
            return []
        threshold = (
            settings.KNOWLEDGE_SIMILARITY_THRESHOLD
            if similarity_threshold is None
            else similarity_threshold
        )

        try:
            results = self.collection.query(
                query_texts=[query],
                n_results=n_results or settings.KNOWLEDGE_QUERY_LIMIT,
                where=_metadata_filter(external_id=str(external_id), type=knowledge_type),
            )
        except Exception as e:
            logger.error("Error querying knowledge for %s: %s", external_id, e)
            return []

        documents = (results.get("documents") or [[]])[0] or []
        metadatas = (results.get("metadatas") or [[]])[0] or []
        distances = (results.get("distances") or [[]])[0] or []

        snippets: list[dict[str, Any]] = []
        for idx, document in enumerate(documents):
            metadata = metadatas[idx] if idx < len(metadatas) and isinstance(metadatas[idx], dict) else {}
            similarity = 1 - distances[idx] if idx < len(distances) else None
            if similarity is not None and similarity < threshold:
                continue
            snippets.append(
                {
                    "content": document,
                    "source": metadata.get("source") or metadata.get("source_id"),
                    "type": metadata.get("type"),
                    "similarity": similarity,
                    "metadata": metadata,
                }
            )
        return snippets

    def query_context(
        self,
        external_id: str,
        query: str,
        *,
        knowledge_type: str | None = None,
        heading: str = "Relevant Brand Knowledge",
    ) -> str:
        snippets = self.query_snippets(
            external_id=external_id, query=query, knowledge_type=knowledge_type
        )
        return format_knowledge_context(snippets, heading=heading)

    def count_chunks(self, external_id: str, knowledge_type: str | None = None) -> int:
        try:
            result = self.collection.get(
                where=_metadata_filter(external_id=str(external_id), type=knowledge_type),
                include=[],
            )
        except Exception as e:
            logger.error("Error counting knowledge for %s: %s", external_id, e)
            return 0
        return len(result.get("ids") or [])

    def delete_knowledge(self, external_id: str, knowledge_type: str | None = None):
        """Delete every chunk of an agent or competitor, optionally of one type."""
        try:
            self.collection.delete(
                where=_metadata_filter(external_id=str(external_id), type=knowledge_type)
            )
        except Exception as e:
            logger.error("Error deleting knowledge for %s: %s", external_id, e)

    def delete_source(self, external_id: str, source_id: str):
        """Delete the chunks that came from one uploaded file or crawl."""
        try:
            self.collection.delete(
                where=_metadata_filter(external_id=str(external_id), source_id=str(source_id))
            )
        except Exception as e:
            logger.error("Error deleting knowledge source %s: %s", source_id, e)

_rag_manager_instance = None

def get_rag_manager() -> RAGManager:
    """Lazily initializes the RAG manager to prevent module load freezing."""
    global _rag_manager_instance
    if _rag_manager_instance is None:
        _rag_manager_instance = RAGManager()
    return _rag_manager_instance
