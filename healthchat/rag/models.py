"""Knowledge Base Data Models

This module defines the data models used by the RAG layer: knowledge items
loaded from the JSON corpus, scored retrieval results, and the request and
response shapes of the knowledge API.
"""

from typing import Any, Dict, List, Optional
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class SubjectCategory(str, Enum):
    """Subject category enumeration."""
    MATH = "math"
    PHYSICS = "physics"
    CHEMISTRY = "chemistry"
    BIOLOGY = "biology"
    LOGIC = "logic"
    HEALTH = "health"


class DifficultyLevel(str, Enum):
    """Difficulty tier enumeration."""
    BASIC = "基础"
    INTERMEDIATE = "进阶"
    ADVANCED = "精通"


SUBJECT_NAMES: Dict[SubjectCategory, str] = {
    SubjectCategory.MATH: "数学",
    SubjectCategory.PHYSICS: "物理",
    SubjectCategory.CHEMISTRY: "化学",
    SubjectCategory.BIOLOGY: "生物",
    SubjectCategory.LOGIC: "逻辑",
    SubjectCategory.HEALTH: "健康咨询",
}

SUBJECT_ICONS: Dict[SubjectCategory, str] = {
    SubjectCategory.MATH: "📐",
    SubjectCategory.PHYSICS: "⚛️",
    SubjectCategory.CHEMISTRY: "🧪",
    SubjectCategory.BIOLOGY: "🧬",
    SubjectCategory.LOGIC: "🧩",
    SubjectCategory.HEALTH: "👨‍⚕️",
}

DEFAULT_TOPIC = "通用"
DEFAULT_TITLE = "未命名"


class KnowledgeItem(BaseModel):
    """A single retrievable knowledge entry.

    Auxiliary teaching material (proof steps, examples, mistakes, ...) is kept
    as loosely typed payload; only the text fields feed the embedding.
    """
    model_config = ConfigDict(extra="allow")

    id: str = Field(..., min_length=1)
    category: SubjectCategory
    subject: str = ""
    topic: str = DEFAULT_TOPIC
    title: str = DEFAULT_TITLE
    difficulty: DifficultyLevel = DifficultyLevel.BASIC

    description: str = ""
    formula: str = ""
    formula_latex: str = ""
    visualization: Optional[Any] = None

    proof_steps: List[Any] = Field(default_factory=list)
    examples: List[Any] = Field(default_factory=list)
    common_mistakes: List[Any] = Field(default_factory=list)
    socratic_questions: List[Any] = Field(default_factory=list)
    prerequisites: List[Any] = Field(default_factory=list)
    related_theorems: List[str] = Field(default_factory=list)
    teaching_tips: List[Any] = Field(default_factory=list)

    keywords: List[str] = Field(default_factory=list)
    embedding_text: str = ""


class ScoredKnowledgeItem(KnowledgeItem):
    """Knowledge item annotated with its similarity to a query."""
    relevance_score: float

    @classmethod
    def from_item(cls, item: KnowledgeItem, score: float) -> "ScoredKnowledgeItem":
        return cls(**{**item.model_dump(), "relevance_score": score})


class KnowledgeQuery(BaseModel):
    """Structured (non-semantic) knowledge listing query."""
    category: Optional[SubjectCategory] = None
    topic: Optional[str] = None
    difficulty: Optional[DifficultyLevel] = None
    search: Optional[str] = None
    limit: Optional[int] = Field(None, ge=1)


class SearchHit(BaseModel):
    """Summary of a semantic search result."""
    id: str
    title: str
    description: str
    relevance_score: float = 0.0
    category: SubjectCategory
    difficulty: DifficultyLevel


class SearchRequest(BaseModel):
    """Semantic search request."""
    query: str = Field(..., min_length=1)
    category: Optional[SubjectCategory] = None
    limit: int = Field(5, ge=1, le=50)


class ContextRequest(BaseModel):
    """RAG context assembly request."""
    query: str = Field(..., min_length=1)
    category: Optional[SubjectCategory] = None


class ContextResponse(BaseModel):
    """Assembled RAG context."""
    query: str
    context: str
    has_context: bool


class CategoryInfo(BaseModel):
    """Subject category descriptor."""
    value: SubjectCategory
    label: str
    icon: str


class IndexStats(BaseModel):
    """Index lifecycle statistics."""
    initialized: bool
    building: bool
    item_count: int
    vector_count: int
    embedding_model: str
    has_api_key: bool
