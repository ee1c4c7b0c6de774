"""Global pytest configuration and fixtures for WeakLabel tests."""

from __future__ import annotations

import json
from collections.abc import Callable, Mapping, Sequence
from pathlib import Path

import pytest
import yaml

from weaklabel.config import Settings
from weaklabel.core.configs import PopulationConfig
from weaklabel.core.weak_supervision import FunctionLabelingFunction, VoteMatrix
from weaklabel.models import Document

VoteSpec = Mapping[tuple[int, int], Sequence[tuple[str, float]]]


@pytest.fixture
def settings(tmp_path):
    """Settings writing results under a temporary directory."""
    return Settings(results_dir=tmp_path / "results")


@pytest.fixture
def quiet_population():
    """Population config without a progress bar."""
    return PopulationConfig(show_progress=False)


@pytest.fixture
def sample_documents() -> list[Document]:
    """Ten short news-style documents, half of them tagged as breaking news."""
    texts = [
        "Breaking: officials warn the threat is growing!",
        "The council met to discuss the annual budget.",
        "Breaking: a new threat emerges near the border!",
        "Local bakery wins a regional award for its bread.",
        "Breaking: experts call the threat unprecedented",
        "Weather remains mild for the rest of the week.",
        "Breaking: markets tumble as investors panic!",
        "The library extends its opening hours in summer.",
        "Breaking: residents told the threat is over",
        "School board approves a new reading programme!",
    ]
    return [
        Document(id=f"doc_{i}", text=text, source="wire", url=f"https://example.com/{i}")
        for i, text in enumerate(texts)
    ]


@pytest.fixture
def sample_labeling_functions() -> list[FunctionLabelingFunction]:
    """Three labeling functions; the last one abstains outside breaking news."""

    def threat_words(document):
        if "threat" in document.text:
            return [("fear", 0.8)]
        return [("neutral", 0.6)]

    def exclamation(document):
        if "!" in document.text:
            return [("fear", 0.7)]
        return [("neutral", 0.5)]

    def breaking_news(document):
        if document.text.startswith("Breaking"):
            return [("fear", 0.9)]
        return []

    return [
        FunctionLabelingFunction("threat_words", threat_words),
        FunctionLabelingFunction("exclamation", exclamation),
        FunctionLabelingFunction("breaking_news", breaking_news),
    ]


@pytest.fixture
def make_matrix() -> Callable[..., VoteMatrix]:
    """
    Build a complete vote matrix from a sparse vote specification.

    Every (document, function) pair without votes is recorded as an
    abstention, so the result is ready for training.
    """

    def _make(
        labeling_functions: Sequence[str],
        n_documents: int,
        votes: VoteSpec,
    ) -> VoteMatrix:
        matrix = VoteMatrix(labeling_functions)
        matrix.ensure_document(n_documents - 1)
        for doc_index in range(n_documents):
            for lf_index in range(len(labeling_functions)):
                cast = votes.get((doc_index, lf_index), [])
                if not cast:
                    matrix.record_abstain(doc_index, lf_index)
                for label, confidence in cast:
                    matrix.record_vote(doc_index, lf_index, label, confidence)
        return matrix

    return _make


@pytest.fixture
def corpus_dir(tmp_path, sample_documents) -> Path:
    """A directory holding the sample documents as a cleaned JSONL corpus."""
    directory = tmp_path / "corpus"
    directory.mkdir()
    with open(directory / "wire_clean.jsonl", "w", encoding="utf-8") as f:
        for document in sample_documents:
            record = {
                "title": document.text[:20],
                "text": document.text,
                "url": document.url,
                "source": document.source,
                "wordCount": document.word_count,
            }
            f.write(json.dumps(record) + "\n")
    return directory


@pytest.fixture
def rules_file(tmp_path) -> Path:
    """A YAML rule file with keyword, regex and length labeling functions."""
    rules = {
        "labeling_functions": [
            {
                "name": "threat_keywords",
                "type": "keyword",
                "label": "fear",
                "keywords": ["threat", "panic", "warn"],
                "min_ratio": 0.05,
            },
            {
                "name": "exclamation",
                "type": "regex",
                "label": "sensational",
                "pattern": "!",
                "confidence": 0.6,
            },
            {
                "name": "short_item",
                "type": "length",
                "label": "brief",
                "max_words": 8,
                "confidence": 0.4,
            },
        ]
    }
    path = tmp_path / "rules.yaml"
    path.write_text(yaml.safe_dump(rules), encoding="utf-8")
    return path


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests (fast, isolated)")
    config.addinivalue_line("markers", "integration: Integration tests (slower, multiple components)")
