"""Unit tests for the corpus loader.

Tests field normalization and tolerance of missing or malformed corpus files.
"""

import re

import pytest

from healthchat.rag.loader import CorpusLoader, generate_item_id, normalize_item
from healthchat.rag.models import DifficultyLevel, SubjectCategory


def write_file(directory, filename, text):
    (directory / filename).write_text(text, encoding="utf-8")


def test_normalize_prefers_camel_case_spelling():
    """Test that camelCase fields win over snake_case ones."""
    item = normalize_item({
        "id": "k1",
        "category": "health",
        "embeddingText": "camel",
        "embedding_text": "snake",
        "commonMistakes": ["camel mistake"],
        "common_mistakes": ["snake mistake"],
    })

    assert item.embedding_text == "camel"
    assert item.common_mistakes == ["camel mistake"]


def test_normalize_falls_back_to_snake_case():
    """Test that snake_case fields are used when camelCase is absent."""
    item = normalize_item({
        "id": "k1",
        "category": "health",
        "embedding_text": "snake",
        "formula_latex": "E=mc^2",
        "related_theorems": ["k2"],
    })

    assert item.embedding_text == "snake"
    assert item.formula_latex == "E=mc^2"
    assert item.related_theorems == ["k2"]


def test_normalize_title_from_theorem():
    """Test that a theorem field supplies the title."""
    item = normalize_item({"id": "m1", "category": "math", "theorem": "Pythagorean theorem"})

    assert item.title == "Pythagorean theorem"


def test_normalize_theorem_wins_over_title():
    """Test that theorem takes precedence when both fields are present."""
    item = normalize_item({
        "id": "m1",
        "category": "math",
        "theorem": "Law of cosines",
        "title": "Triangle relation",
    })

    assert item.title == "Law of cosines"


def test_normalize_embedding_text_from_keywords():
    """Test embedding text derived from keywords."""
    item = normalize_item({"id": "k1", "keywords": ["sleep", "rest"], "description": "desc"})

    assert item.embedding_text == "sleep rest"


def test_normalize_embedding_text_from_description():
    """Test embedding text derived from the description."""
    item = normalize_item({"id": "k1", "description": "only a description"})

    assert item.embedding_text == "only a description"


def test_normalize_defaults():
    """Test defaults for a minimal entry."""
    item = normalize_item({})

    assert re.fullmatch(r"doc_\d+_[a-z0-9]{9}", item.id)
    assert item.category == SubjectCategory.MATH
    assert item.subject == "数学"
    assert item.topic == "通用"
    assert item.title == "未命名"
    assert item.difficulty == DifficultyLevel.BASIC


def test_normalize_unknown_category_and_difficulty():
    """Test unknown enum values fall back to defaults."""
    item = normalize_item(
        {"id": "k1", "category": "astrology", "difficulty": "expert"},
        default_category=SubjectCategory.HEALTH,
    )

    assert item.category == SubjectCategory.HEALTH
    assert item.subject == "健康咨询"
    assert item.difficulty == DifficultyLevel.BASIC


def test_normalize_rejects_non_object():
    """Test that a non-object entry is rejected."""
    with pytest.raises(TypeError):
        normalize_item(["not", "an", "object"])


def test_generate_item_id_is_unique():
    """Test generated ids differ."""
    assert generate_item_id() != generate_item_id()


def test_load_file(corpus_dir):
    """Test loading a well-formed corpus file."""
    loader = CorpusLoader(str(corpus_dir))
    items = loader.load_file("health.json")

    assert [item.id for item in items] == ["h1", "h2"]
    assert items[0].category == SubjectCategory.HEALTH


def test_load_missing_file(tmp_path):
    """Test that a missing file yields no items."""
    loader = CorpusLoader(str(tmp_path))

    assert loader.load_file("physics.json") == []


@pytest.mark.parametrize("content", [
    "{not json",
    '{"id": "object-not-array"}',
    '[{"id": "ok"}, "not an object"]',
])
def test_load_malformed_file(tmp_path, content):
    """Test that a malformed file is skipped entirely."""
    write_file(tmp_path, "bad.json", content)
    loader = CorpusLoader(str(tmp_path))

    assert loader.load_file("bad.json") == []


def test_load_into_skips_bad_files_and_keeps_others(corpus_dir):
    """Test a malformed file does not stop later files from loading."""
    write_file(corpus_dir, "physics.json", "{broken")
    loader = CorpusLoader(str(corpus_dir))
    table = {}

    count = loader.load_into(table, ["physics.json", "health.json", "chemistry.json", "math.json"])

    assert count == 3
    assert list(table) == ["h1", "h2", "m1"]


def test_load_into_last_write_wins(tmp_path):
    """Test that a later duplicate id overwrites an earlier one."""
    write_file(tmp_path, "health.json", '[{"id": "dup", "category": "health", "title": "first"}]')
    write_file(tmp_path, "uploaded_documents.json", '[{"id": "dup", "category": "health", "title": "second"}]')
    loader = CorpusLoader(str(tmp_path))
    table = {}

    loader.load_into(table, ["health.json", "uploaded_documents.json"])

    assert len(table) == 1
    assert table["dup"].title == "second"
