"""
Conflict, coverage and agreement diagnostics over a vote matrix.

These statistics only read the matrix (and, for the per-function
summary, the learned parameters); they never influence training.
"""

from __future__ import annotations

from collections.abc import Mapping
from itertools import combinations

import numpy as np
import pandas as pd

from ...models import ConflictEntry
from .label_model import ModelParameters
from .vote_matrix import VoteMatrix

SUMMARY_COLUMNS = [
    "labeling_function",
    "labels",
    "coverage",
    "overlaps",
    "conflicts",
    "votes",
    "mean_confidence",
    "failures",
    "learned_accuracy",
]


class VoteAnalyzer:
    """
    Per-document and corpus-level vote statistics.

    Example:
        >>> analyzer = VoteAnalyzer(matrix)
        >>> analyzer.coverage(0)
        0.6
        >>> analyzer.pairwise_agreement()
        {('lf_a', 'lf_b'): 0.75}
    """

    def __init__(self, matrix: VoteMatrix) -> None:
        self.matrix = matrix

    # Per-document -----------------------------------------------------

    def coverage(self, doc_index: int) -> float:
        """Fraction of labeling functions that voted on the document."""
        n_functions = self.matrix.n_labeling_functions
        if n_functions == 0:
            return 0.0
        return len(self.matrix.voters_for_document(doc_index)) / n_functions

    def contributing_functions(self, doc_index: int) -> list[str]:
        """Names of functions that did not abstain, in registration order."""
        names = self.matrix.labeling_functions
        return [names[i] for i in sorted(self.matrix.voters_for_document(doc_index))]

    def conflicts(self, doc_index: int) -> list[ConflictEntry]:
        """
        One entry per voted label when a document received more than one label.

        Agreement on a single label, however many functions vote for it,
        is not a conflict.
        """
        names = self.matrix.labeling_functions
        groups: dict[str, list[tuple[int, float]]] = {}
        for lf_index, label, confidence in self.matrix.votes_for_document(doc_index):
            groups.setdefault(label, []).append((lf_index, confidence))

        if len(groups) < 2:
            return []
        return [
            ConflictEntry(
                label=label,
                functions=[names[lf_index] for lf_index, _ in group],
                confidence=float(np.mean([confidence for _, confidence in group])),
            )
            for label, group in groups.items()
        ]

    # Corpus-level -----------------------------------------------------

    def corpus_coverage(self) -> float:
        if self.matrix.n_documents == 0:
            return 0.0
        return float(np.mean([self.coverage(d) for d in range(self.matrix.n_documents)]))

    def conflict_rate(self) -> float:
        if self.matrix.n_documents == 0:
            return 0.0
        conflicted = sum(1 for d in range(self.matrix.n_documents) if self.conflicts(d))
        return conflicted / self.matrix.n_documents

    def pairwise_agreement(self) -> dict[tuple[str, str], float]:
        """
        Agreement rate for every pair of functions that co-voted on some document.

        Two functions agree on a document when their voted label sets
        share at least one label. Pairs that never voted on the same
        document are omitted.
        """
        names = self.matrix.labeling_functions
        voted_labels = self._labels_by_function()

        agreement: dict[tuple[str, str], float] = {}
        for first, second in combinations(range(len(names)), 2):
            shared_docs = voted_labels[first].keys() & voted_labels[second].keys()
            if not shared_docs:
                continue
            agreed = sum(
                1 for doc in shared_docs if voted_labels[first][doc] & voted_labels[second][doc]
            )
            agreement[(names[first], names[second])] = agreed / len(shared_docs)
        return agreement

    def label_distribution(
        self,
        posteriors: np.ndarray,
        threshold: float = 0.5,
    ) -> dict[str, float]:
        """Fraction of documents whose posterior for each label exceeds ``threshold``."""
        if posteriors.shape[0] == 0:
            return {}
        fractions = (posteriors > threshold).mean(axis=0)
        return {
            label: float(fraction)
            for label, fraction in zip(self.matrix.labels, fractions)
            if fraction > 0
        }

    def labeling_function_summary(
        self,
        parameters: ModelParameters | None = None,
        failure_counts: Mapping[str, int] | None = None,
    ) -> pd.DataFrame:
        """
        Per-function diagnostics table.

        Columns: labels voted, coverage, overlaps (fraction of documents
        where the function voted alongside another function), conflicts
        (fraction of documents where it voted and the document has a
        conflict), vote count, mean confidence, failures and learned
        accuracy when ``parameters`` is given.
        """
        matrix = self.matrix
        names = matrix.labeling_functions
        n_docs = max(matrix.n_documents, 1)
        failure_counts = failure_counts or {}

        voted_labels = self._labels_by_function()
        confidences: list[list[float]] = [[] for _ in names]
        voters_per_doc = [set(matrix.voters_for_document(d)) for d in range(matrix.n_documents)]
        conflicted_docs = {d for d in range(matrix.n_documents) if self.conflicts(d)}

        for doc_index in range(matrix.n_documents):
            for lf_index, _, confidence in matrix.votes_for_document(doc_index):
                confidences[lf_index].append(confidence)

        rows = []
        for lf_index, name in enumerate(names):
            docs = voted_labels[lf_index]
            labels = sorted({label for doc_labels in docs.values() for label in doc_labels})
            rows.append({
                "labeling_function": name,
                "labels": labels,
                "coverage": len(docs) / n_docs,
                "overlaps": sum(1 for d in docs if len(voters_per_doc[d]) > 1) / n_docs,
                "conflicts": sum(1 for d in docs if d in conflicted_docs) / n_docs,
                "votes": len(confidences[lf_index]),
                "mean_confidence": (
                    float(np.mean(confidences[lf_index])) if confidences[lf_index] else np.nan
                ),
                "failures": int(failure_counts.get(name, 0)),
                "learned_accuracy": (
                    float(parameters.accuracies[lf_index]) if parameters is not None else np.nan
                ),
            })

        return pd.DataFrame(rows, columns=SUMMARY_COLUMNS).set_index("labeling_function")

    def _labels_by_function(self) -> list[dict[int, set[str]]]:
        """For each function, the label set it voted on each document."""
        by_function: list[dict[int, set[str]]] = [{} for _ in self.matrix.labeling_functions]
        for doc_index in range(self.matrix.n_documents):
            for lf_index, label, _ in self.matrix.votes_for_document(doc_index):
                by_function[lf_index].setdefault(doc_index, set()).add(label)
        return by_function
