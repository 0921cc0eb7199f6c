"""RAG Context Assembly

Turns retrieval results into a text block that the chat layer prepends to the
model prompt.
"""

from typing import Any, List, Optional, Sequence

import structlog

from healthchat.core.exceptions import DimensionMismatchError
from healthchat.rag.models import ScoredKnowledgeItem, SubjectCategory
from healthchat.rag.retriever import Retriever

logger = structlog.get_logger(__name__)

CONTEXT_HEADER = "以下是相关知识库内容，请参考这些内容进行回答："
MISTAKE_SEPARATOR = "；"


def mistake_summary(mistake: Any) -> str:
    """Render one common-mistake entry as text."""
    if isinstance(mistake, dict) and "mistake" in mistake:
        return str(mistake["mistake"])
    return str(mistake)


def format_context(results: Sequence[ScoredKnowledgeItem]) -> str:
    """Format retrieval results as a numbered context block.

    Returns an empty string when there are no results.
    """
    if not results:
        return ""

    blocks = [CONTEXT_HEADER]
    for position, item in enumerate(results, start=1):
        lines = [
            f"[{position}] {item.title}",
            f"描述：{item.description}",
        ]
        if item.formula:
            lines.append(f"公式：{item.formula}")
        if item.common_mistakes:
            mistakes = MISTAKE_SEPARATOR.join(mistake_summary(m) for m in item.common_mistakes)
            lines.append(f"常见错误：{mistakes}")
        blocks.append("\n".join(lines))

    return "\n\n".join(blocks)


class ContextAssembler:
    """Builds prompt context for the chat layer. Never raises."""

    def __init__(self, retriever: Retriever, top_k: int = 3):
        self.retriever = retriever
        self.top_k = top_k

    async def build_context(self, query: str, category: Optional[SubjectCategory] = None) -> str:
        """Retrieve knowledge for a query and format it.

        Args:
            query: Free-text user query
            category: Optional category restriction

        Returns:
            Context text, or an empty string when nothing relevant was found
        """
        try:
            results: List[ScoredKnowledgeItem] = await self.retriever.retrieve(
                query,
                top_k=self.top_k,
                category=category
            )
        except DimensionMismatchError as e:
            logger.error("Knowledge index vectors are inconsistent", error=str(e))
            return ""
        except Exception as e:
            logger.warning("Failed to build RAG context", error=str(e))
            return ""

        return format_context(results)
