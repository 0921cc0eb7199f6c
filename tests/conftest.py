"""Test configuration for pytest.

This module sets up the Python path for tests and provides fixtures.
"""

import json
import sys
from pathlib import Path

import pytest

# Add the project root directory to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from healthchat.config.settings import EmbeddingSettings, RAGSettings, Settings
from healthchat.core.exceptions import EmbeddingTransportError
from healthchat.rag.embeddings import BaseEmbeddingProvider


class StubEmbeddingProvider(BaseEmbeddingProvider):
    """Deterministic embedding provider that records its calls.

    ``vectors`` maps a text to its vector. A text without an exact entry gets
    the vector of the first key it contains, else ``default``.
    """

    model_name = "stub-embedding"

    def __init__(self, vectors=None, default=None, fail_batches=()):
        self.vectors = dict(vectors or {})
        self.default = default or [0.0, 0.0]
        self.fail_batches = set(fail_batches)
        self.one_calls = []
        self.batch_calls = []
        self.closed = False

    def vector_for(self, text):
        if text in self.vectors:
            return list(self.vectors[text])
        for key, vector in self.vectors.items():
            if key in text:
                return list(vector)
        return list(self.default)

    async def embed_one(self, text, api_key=None):
        self.one_calls.append((text, api_key))
        return self.vector_for(text)

    async def embed_batch(self, texts, api_key=None):
        call_number = len(self.batch_calls)
        self.batch_calls.append((list(texts), api_key))
        if call_number in self.fail_batches:
            raise EmbeddingTransportError("embed_batch", "stub batch failure")
        return [self.vector_for(text) for text in texts]

    async def aclose(self):
        self.closed = True


HEALTH_ENTRIES = [
    {
        "id": "h1",
        "category": "health",
        "title": "Sleep",
        "topic": "sleep",
        "description": "sleep tips",
        "embeddingText": "sleep insomnia",
        "relatedTheorems": ["h2", "missing"],
        "commonMistakes": [{"mistake": "napping late"}, "coffee at night"],
    },
    {
        "id": "h2",
        "category": "health",
        "title": "Diet",
        "topic": "nutrition",
        "description": "diet tips",
        "embeddingText": "diet nutrition",
        "formula": "BMI = kg / m^2",
    },
]

MATH_ENTRIES = [
    {
        "id": "m1",
        "category": "math",
        "theorem": "Pythagorean theorem",
        "topic": "geometry",
        "difficulty": "进阶",
        "description": "a^2 + b^2 = c^2 for right triangles",
        "keywords": ["triangle", "geometry"],
    },
]


def write_corpus(directory, filename, entries):
    """Write a corpus file and return its path."""
    path = Path(directory) / filename
    path.write_text(json.dumps(entries, ensure_ascii=False), encoding="utf-8")
    return path


@pytest.fixture
def stub_provider_cls():
    """The stub embedding provider class."""
    return StubEmbeddingProvider


@pytest.fixture
def stub_provider():
    """Stub provider mapping sleep and diet texts to orthogonal vectors."""
    return StubEmbeddingProvider(
        vectors={
            "how to sleep better": [0.9, 0.1],
            "sleep": [1.0, 0.0],
            "diet": [0.0, 1.0],
        },
        default=[0.5, 0.5],
    )


@pytest.fixture
def corpus_dir(tmp_path):
    """Temporary corpus directory with health and math files."""
    write_corpus(tmp_path, "health.json", HEALTH_ENTRIES)
    write_corpus(tmp_path, "math.json", MATH_ENTRIES)
    return tmp_path


@pytest.fixture
def test_settings(corpus_dir):
    """Settings pointing at the temporary corpus with an API key."""
    return Settings(
        embedding=EmbeddingSettings(api_key="test-key"),
        rag=RAGSettings(
            corpus_dir=str(corpus_dir),
            corpus_files=["health.json", "math.json"],
        ),
    )
