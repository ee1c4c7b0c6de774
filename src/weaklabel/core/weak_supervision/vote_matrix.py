"""
Sparse vote matrix for weak supervision.

Stores, for every (document, labeling function) pair, either an explicit
abstention or one or more (label, confidence) votes. Label and labeling
function indices are append-only: once assigned they never change, and
the matrix only ever grows.
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass

import numpy as np
import pandas as pd

from .errors import FrozenVoteMatrixError

ABSTAIN = "ABSTAIN"


@dataclass(frozen=True)
class Vote:
    """A non-abstaining vote."""

    doc_index: int
    lf_index: int
    label: str
    confidence: float


@dataclass(frozen=True)
class VoteArrays:
    """Coordinate-format view of all non-abstaining votes."""

    doc_index: np.ndarray
    lf_index: np.ndarray
    label_index: np.ndarray
    confidence: np.ndarray
    n_documents: int
    n_labeling_functions: int
    n_labels: int

    @property
    def n_votes(self) -> int:
        return int(self.confidence.shape[0])


class VoteMatrix:
    """
    Sparse, growable (document x labeling function x label) vote store.

    Two access patterns are supported: all votes for one document, in
    insertion order, and the corpus-wide label and labeling function
    index spaces. Once :meth:`freeze` is called the matrix rejects writes,
    which is what the label model relies on during training.

    Example:
        >>> matrix = VoteMatrix(["fear_lf", "loaded_lf"])
        >>> matrix.record_vote(0, 0, "fear_framing", 0.8)
        >>> matrix.record_abstain(0, 1)
        >>> matrix.votes_for_document(0)
        [(0, 'fear_framing', 0.8)]
    """

    def __init__(self, labeling_functions: Iterable[str] | None = None) -> None:
        self._votes: list[dict[tuple[int, str], float]] = []
        self._abstains: list[set[int]] = []
        self._labels: list[str] = []
        self._label_lookup: dict[str, int] = {}
        self._lf_names: list[str] = []
        self._lf_lookup: dict[str, int] = {}
        self._frozen = False
        self._arrays: VoteArrays | None = None

        for name in labeling_functions or []:
            self.register_labeling_function(name)

    # ------------------------------------------------------------------
    # Index spaces
    # ------------------------------------------------------------------

    @property
    def labels(self) -> tuple[str, ...]:
        """Observed labels, in first-seen order."""
        return tuple(self._labels)

    @property
    def labeling_functions(self) -> tuple[str, ...]:
        """Labeling function names, in index order."""
        return tuple(self._lf_names)

    @property
    def n_documents(self) -> int:
        return len(self._votes)

    @property
    def n_labeling_functions(self) -> int:
        return len(self._lf_names)

    @property
    def n_labels(self) -> int:
        return len(self._labels)

    @property
    def frozen(self) -> bool:
        return self._frozen

    def register_labeling_function(self, name: str) -> int:
        """Return the index for ``name``, assigning the next one if it is new."""
        if name in self._lf_lookup:
            return self._lf_lookup[name]
        self._check_writable()
        index = len(self._lf_names)
        self._lf_names.append(name)
        self._lf_lookup[name] = index
        return index

    def labeling_function_index(self, name: str) -> int:
        return self._lf_lookup[name]

    def label_index(self, label: str) -> int:
        return self._label_lookup[label]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def record_vote(self, doc_index: int, lf_index: int, label: str, confidence: float) -> None:
        """
        Record (or overwrite) the vote of one function for one label on one document.

        Confidence is clamped to [0, 1]; NaN is stored as 0.
        """
        if not label or label == ABSTAIN:
            raise ValueError(f"Invalid vote label: {label!r}")
        self._check_writable()
        self._ensure_size(doc_index, lf_index)

        if label not in self._label_lookup:
            self._label_lookup[label] = len(self._labels)
            self._labels.append(label)

        self._abstains[doc_index].discard(lf_index)
        self._votes[doc_index][(lf_index, label)] = _clamp_confidence(confidence)
        self._arrays = None

    def record_abstain(self, doc_index: int, lf_index: int) -> None:
        """Mark an explicit abstention, replacing any votes the pair already had."""
        self._check_writable()
        self._ensure_size(doc_index, lf_index)

        doc_votes = self._votes[doc_index]
        for key in [key for key in doc_votes if key[0] == lf_index]:
            del doc_votes[key]
        self._abstains[doc_index].add(lf_index)
        self._arrays = None

    def ensure_document(self, doc_index: int) -> None:
        """Grow the document dimension so that ``doc_index`` is addressable."""
        self._check_writable()
        if doc_index < 0:
            raise IndexError(f"Negative document index: {doc_index}")
        while len(self._votes) <= doc_index:
            self._votes.append({})
            self._abstains.append(set())

    def freeze(self) -> None:
        """Reject any further writes."""
        self._frozen = True

    def _check_writable(self) -> None:
        if self._frozen:
            raise FrozenVoteMatrixError("Vote matrix is frozen; training has started")

    def _ensure_size(self, doc_index: int, lf_index: int) -> None:
        if lf_index < 0:
            raise IndexError(f"Negative labeling function index: {lf_index}")
        self.ensure_document(doc_index)
        while len(self._lf_names) <= lf_index:
            self.register_labeling_function(f"lf_{len(self._lf_names)}")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def votes_for_document(self, doc_index: int) -> list[tuple[int, str, float]]:
        """All non-abstaining votes for a document as (lf_index, label, confidence)."""
        if doc_index >= len(self._votes):
            return []
        return [
            (lf_index, label, confidence)
            for (lf_index, label), confidence in self._votes[doc_index].items()
        ]

    def voters_for_document(self, doc_index: int) -> list[int]:
        """Indices of functions that voted on a document, in first-vote order."""
        return list(dict.fromkeys(lf_index for lf_index, _, _ in self.votes_for_document(doc_index)))

    def abstained(self, doc_index: int, lf_index: int) -> bool:
        if doc_index >= len(self._abstains):
            return False
        return lf_index in self._abstains[doc_index]

    def has_outcome(self, doc_index: int, lf_index: int) -> bool:
        if doc_index >= len(self._votes):
            return False
        if lf_index in self._abstains[doc_index]:
            return True
        return any(key[0] == lf_index for key in self._votes[doc_index])

    def missing_outcomes(self) -> list[tuple[int, int]]:
        """(doc_index, lf_index) pairs with neither a vote nor an abstention."""
        missing = []
        for doc_index in range(self.n_documents):
            voted = {key[0] for key in self._votes[doc_index]}
            seen = voted | self._abstains[doc_index]
            missing.extend(
                (doc_index, lf_index)
                for lf_index in range(self.n_labeling_functions)
                if lf_index not in seen
            )
        return missing

    def is_complete(self) -> bool:
        return not self.missing_outcomes()

    def iter_votes(self) -> Iterable[Vote]:
        for doc_index, doc_votes in enumerate(self._votes):
            for (lf_index, label), confidence in doc_votes.items():
                yield Vote(doc_index, lf_index, label, confidence)

    def to_arrays(self) -> VoteArrays:
        """
        Coordinate arrays over all non-abstaining votes.

        The result is cached until the next write, so repeated E-steps on a
        frozen matrix share one conversion.
        """
        if self._arrays is not None:
            return self._arrays

        votes = list(self.iter_votes())
        self._arrays = VoteArrays(
            doc_index=np.array([v.doc_index for v in votes], dtype=np.intp),
            lf_index=np.array([v.lf_index for v in votes], dtype=np.intp),
            label_index=np.array([self._label_lookup[v.label] for v in votes], dtype=np.intp),
            confidence=np.array([v.confidence for v in votes], dtype=float),
            n_documents=self.n_documents,
            n_labeling_functions=self.n_labeling_functions,
            n_labels=self.n_labels,
        )
        return self._arrays

    def to_dataframe(self) -> pd.DataFrame:
        """Long-format frame of every recorded outcome, abstentions included."""
        rows = []
        for doc_index in range(self.n_documents):
            for lf_index, label, confidence in self.votes_for_document(doc_index):
                rows.append({
                    "doc_index": doc_index,
                    "labeling_function": self._lf_names[lf_index],
                    "label": label,
                    "confidence": confidence,
                })
            for lf_index in sorted(self._abstains[doc_index]):
                rows.append({
                    "doc_index": doc_index,
                    "labeling_function": self._lf_names[lf_index],
                    "label": ABSTAIN,
                    "confidence": 0.0,
                })
        return pd.DataFrame(rows, columns=["doc_index", "labeling_function", "label", "confidence"])

    def __repr__(self) -> str:
        return (
            f"VoteMatrix(documents={self.n_documents}, "
            f"labeling_functions={self.n_labeling_functions}, labels={self.n_labels})"
        )


def _clamp_confidence(confidence: float) -> float:
    confidence = float(confidence)
    if math.isnan(confidence):
        return 0.0
    return min(1.0, max(0.0, confidence))
