from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Document(BaseModel):
    """
    A cleaned document handed to the weak supervision engine.

    The engine treats documents as read-only: only the identifier, text
    and word count are used by labeling functions and output records.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str = Field(description="Opaque document identifier")
    text: str = Field(description="Cleaned document body")
    word_count: int = Field(default=0, ge=0, description="Number of words in the text")
    title: str | None = Field(default=None, description="Document title")
    url: str | None = Field(default=None, description="Source URL")
    source: str | None = Field(default=None, description="Publishing source")
    language: str | None = Field(default=None, description="Document language code")

    @model_validator(mode="before")
    @classmethod
    def _fill_word_count(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("word_count") is None:
            data = dict(data)
            data["word_count"] = len(str(data.get("text", "")).split())
        return data

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> Document:
        """
        Build a document from a cleaned-corpus JSON record.

        Records produced by the cleaning stage use camelCase keys and carry
        no identifier; the id is then derived as ``{source}_{url}``.
        """
        data = dict(record)
        if "wordCount" in data and "word_count" not in data:
            data["word_count"] = data.pop("wordCount")
        if not data.get("id"):
            data["id"] = f"{data.get('source', '')}_{data.get('url', '')}"
        return cls(**data)


class LabelVote(BaseModel):
    """A single (label, confidence) result emitted by a labeling function."""

    label: str = Field(description="Voted label")
    confidence: float = Field(description="Raw confidence reported by the function")
    rationale: str | None = Field(default=None, description="Why the function voted")


class ConflictEntry(BaseModel):
    """One side of a conflict: a label and the functions asserting it."""

    model_config = ConfigDict(frozen=True)

    label: str = Field(description="Competing label")
    functions: list[str] = Field(description="Labeling functions that voted for the label")
    confidence: float = Field(ge=0.0, le=1.0, description="Mean confidence of those votes")


class WeakLabel(BaseModel):
    """
    Probabilistic weak label for one document.

    Produced once per document after training; each record serializes to
    a single JSON line so training pipelines can consume the output
    incrementally.
    """

    model_config = ConfigDict(frozen=True)

    document_id: str = Field(description="Identifier of the labeled document")
    labels: dict[str, float] = Field(description="Final posterior, label -> probability")
    contributing_functions: list[str] = Field(
        default_factory=list, description="Labeling functions that did not abstain"
    )
    coverage: float = Field(ge=0.0, le=1.0, description="Fraction of labeling functions that voted")
    conflicts: list[ConflictEntry] = Field(
        default_factory=list, description="Competing label assertions on this document"
    )


class TrainingDiagnostics(BaseModel):
    """Summary of a label model training run."""

    state: str = Field(description="Terminal controller state")
    iterations: int = Field(description="Completed iterations")
    log_likelihood: float | None = Field(default=None, description="Final log-likelihood")
    log_likelihood_history: list[float] = Field(default_factory=list)
    stop_reason: str = Field(description="Why training stopped")
    accuracies: dict[str, float] = Field(default_factory=dict, description="Learned accuracy per function")
    class_priors: dict[str, float] = Field(default_factory=dict, description="Learned class priors")


class WeakSupervisionStats(BaseModel):
    """Corpus-level diagnostics for a weak supervision run."""

    total_documents: int
    total_labeling_functions: int
    coverage: float = Field(description="Mean per-document coverage")
    conflict_rate: float = Field(description="Fraction of documents with at least one conflict")
    label_distribution: dict[str, float] = Field(
        default_factory=dict, description="Fraction of documents whose posterior exceeds the threshold"
    )
    labeling_function_agreement: dict[str, float] = Field(default_factory=dict)
    labeling_function_failures: int = Field(0, description="Evaluations recovered as abstentions")
    malformed_votes: int = Field(0, description="Votes clamped or dropped during population")
    training: TrainingDiagnostics | None = None
