"""Knowledge Corpus Loader

Reads the JSON corpus files (one top-level array per subject, plus one for
uploaded documents) and normalizes every entry into a ``KnowledgeItem``.

Corpus entries come from heterogeneous sources, so the same concept may be
spelled two ways. ``normalize_item`` resolves each field once, in this order:

    canonical camelCase name -> legacy snake_case name -> computed default

After loading, consumers only ever see the canonical ``KnowledgeItem`` fields.
"""

from typing import Any, Dict, Iterable, List, MutableMapping, Tuple
from pathlib import Path
import json
import random
import string
import time

import structlog
from pydantic import ValidationError as PydanticValidationError

from healthchat.core.exceptions import CorpusError
from healthchat.rag.models import (
    DEFAULT_TITLE,
    DEFAULT_TOPIC,
    SUBJECT_NAMES,
    DifficultyLevel,
    KnowledgeItem,
    SubjectCategory,
)

logger = structlog.get_logger(__name__)

# (canonical field, source spellings in priority order)
FIELD_ALIASES: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("title", ("theorem", "title")),
    ("formula_latex", ("formulaLatex", "formula_latex")),
    ("proof_steps", ("proofSteps", "proof_steps")),
    ("common_mistakes", ("commonMistakes", "common_mistakes")),
    ("socratic_questions", ("socraticQuestions", "socratic_questions")),
    ("related_theorems", ("relatedTheorems", "related_theorems")),
    ("teaching_tips", ("teachingTips", "teaching_tips")),
    ("embedding_text", ("embeddingText", "embedding_text")),
)

LIST_FIELDS = (
    "proof_steps",
    "examples",
    "common_mistakes",
    "socratic_questions",
    "prerequisites",
    "related_theorems",
    "teaching_tips",
    "keywords",
)

_ID_ALPHABET = string.ascii_lowercase + string.digits


def generate_item_id() -> str:
    """Generate a best-effort unique id for an entry that has none."""
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"doc_{int(time.time() * 1000)}_{suffix}"


def _first_present(raw: Dict[str, Any], names: Iterable[str]) -> Any:
    for name in names:
        value = raw.get(name)
        if value not in (None, "", []):
            return value
    return None


def _as_text(value: Any, default: str = "") -> str:
    if value is None or value == "":
        return default
    return str(value)


def _as_list(value: Any) -> List[Any]:
    if value is None or value == "":
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def _resolve_category(value: Any, default_category: SubjectCategory) -> SubjectCategory:
    try:
        return SubjectCategory(value)
    except ValueError:
        return default_category


def _resolve_difficulty(value: Any) -> DifficultyLevel:
    try:
        return DifficultyLevel(value)
    except ValueError:
        return DifficultyLevel.BASIC


def normalize_item(
    raw: Dict[str, Any],
    default_category: SubjectCategory = SubjectCategory.MATH
) -> KnowledgeItem:
    """Turn one loosely typed corpus entry into a validated ``KnowledgeItem``.

    Args:
        raw: Entry as parsed from the corpus JSON
        default_category: Category used when the entry has none or an unknown one

    Returns:
        The normalized knowledge item

    Raises:
        pydantic.ValidationError: If the entry cannot be coerced
    """
    if not isinstance(raw, dict):
        raise TypeError(f"corpus entry must be an object, got {type(raw).__name__}")

    data: Dict[str, Any] = dict(raw)

    # Fold alternate spellings into the canonical field
    for canonical, spellings in FIELD_ALIASES:
        value = _first_present(raw, spellings)
        for spelling in spellings:
            data.pop(spelling, None)
        if value is not None:
            data[canonical] = value

    for field in LIST_FIELDS:
        data[field] = _as_list(data.get(field))
    data["keywords"] = [str(keyword) for keyword in data["keywords"]]
    data["related_theorems"] = [str(related) for related in data["related_theorems"]]

    category = _resolve_category(data.get("category"), default_category)
    data["id"] = _as_text(data.get("id")) or generate_item_id()
    data["category"] = category
    data["subject"] = _as_text(data.get("subject"), SUBJECT_NAMES[category])
    data["topic"] = _as_text(data.get("topic"), DEFAULT_TOPIC)
    data["title"] = _as_text(data.get("title"), DEFAULT_TITLE)
    data["difficulty"] = _resolve_difficulty(data.get("difficulty"))
    data["description"] = _as_text(data.get("description"))
    data["formula"] = _as_text(data.get("formula"))
    data["formula_latex"] = _as_text(data.get("formula_latex"))

    # embeddingText -> keywords joined -> description
    data["embedding_text"] = (
        _as_text(data.get("embedding_text"))
        or " ".join(data["keywords"])
        or data["description"]
    )

    return KnowledgeItem.model_validate(data)


class CorpusLoader:
    """Loads knowledge corpus files from a directory."""

    def __init__(self, corpus_dir: str, default_category: str = SubjectCategory.MATH.value):
        """Initialize the corpus loader.

        Args:
            corpus_dir: Directory holding the corpus JSON files
            default_category: Category for entries without a known one
        """
        self.corpus_dir = Path(corpus_dir)
        self.default_category = _resolve_category(default_category, SubjectCategory.MATH)

    def load_file(self, filename: str) -> List[KnowledgeItem]:
        """Load and normalize one corpus file.

        A missing file is skipped with a warning. A file that is not a JSON
        array of valid entries is skipped entirely. Never raises.

        Args:
            filename: File name relative to the corpus directory

        Returns:
            Normalized items in file order
        """
        path = self.corpus_dir / filename

        if not path.exists():
            logger.warning("Knowledge file not found", filename=filename, path=str(path))
            return []

        try:
            items = self._parse_file(path, filename)
        except CorpusError:
            return []

        logger.info("Knowledge file loaded", filename=filename, items=len(items))
        return items

    def _parse_file(self, path: Path, filename: str) -> List[KnowledgeItem]:
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise CorpusError(filename, f"unreadable JSON: {e}") from e

        if not isinstance(data, list):
            raise CorpusError(filename, f"top level must be an array, got {type(data).__name__}")

        items = []
        for position, raw in enumerate(data):
            try:
                items.append(normalize_item(raw, self.default_category))
            except (TypeError, PydanticValidationError) as e:
                raise CorpusError(
                    filename,
                    f"invalid entry at position {position}: {e}",
                    details={"filename": filename, "position": position}
                ) from e
        return items

    def load_into(
        self,
        table: MutableMapping[str, KnowledgeItem],
        filenames: Iterable[str]
    ) -> int:
        """Load several corpus files into an id-keyed table.

        Later entries overwrite earlier ones with the same id.

        Args:
            table: Destination table, mutated in place
            filenames: Corpus files in load order

        Returns:
            Number of entries read
        """
        total = 0
        for filename in filenames:
            for item in self.load_file(filename):
                if item.id in table:
                    logger.debug("Duplicate knowledge id overwritten", item_id=item.id, filename=filename)
                table[item.id] = item
                total += 1
        return total

