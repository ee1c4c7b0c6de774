"""Errors and recovered-failure records for weak supervision."""

from __future__ import annotations

from dataclasses import dataclass


class WeakSupervisionError(Exception):
    """Base class for weak supervision errors."""


class DegenerateCorpusError(WeakSupervisionError, ValueError):
    """Raised when there are no documents or no labeling functions to train on."""


class IncompleteVoteMatrixError(WeakSupervisionError):
    """Raised when a (document, labeling function) pair has no recorded outcome."""


class FrozenVoteMatrixError(WeakSupervisionError, RuntimeError):
    """Raised when a frozen vote matrix is written to."""


@dataclass(frozen=True)
class LabelingFunctionFailure:
    """A labeling function raised while evaluating a document.

    The pair is recorded as an abstention; this record only reports it.
    """

    function_name: str
    doc_index: int
    document_id: str
    error_type: str
    message: str

    def __str__(self) -> str:
        return (
            f"{self.function_name} failed on document {self.document_id} "
            f"(index {self.doc_index}): {self.error_type}: {self.message}"
        )


@dataclass(frozen=True)
class MalformedVote:
    """A vote that had to be clamped or dropped."""

    function_name: str
    doc_index: int
    label: str
    confidence: float
    reason: str
