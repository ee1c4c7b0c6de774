"""
Population pass: apply labeling functions to a corpus.

Every (document, labeling function) pair ends the pass with a recorded
outcome. Votes are written to the matrix, and evaluations that raise or
return nothing usable become explicit abstentions. Failures are reported
back to the caller instead of aborting the pass.
"""

from __future__ import annotations

import math
from collections import Counter
from collections.abc import Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field

from loguru import logger

from ...models import Document, LabelVote
from ..base import BatchProcessor
from ..configs import PopulationConfig
from .errors import DegenerateCorpusError, LabelingFunctionFailure, MalformedVote
from .labeling_functions import LabelingFunction, LabelingFunctionRegistry
from .vote_matrix import ABSTAIN, VoteMatrix


@dataclass
class EvaluationOutcome:
    """Result of evaluating one labeling function on one document."""

    lf_index: int
    votes: list[tuple[str, float]] = field(default_factory=list)
    failure: LabelingFunctionFailure | None = None
    malformed: list[MalformedVote] = field(default_factory=list)

    @property
    def abstained(self) -> bool:
        return not self.votes


@dataclass
class PopulationReport:
    """Recovered problems collected during a population pass."""

    n_documents: int = 0
    n_labeling_functions: int = 0
    failures: list[LabelingFunctionFailure] = field(default_factory=list)
    malformed_votes: list[MalformedVote] = field(default_factory=list)

    def failure_counts(self) -> dict[str, int]:
        """Number of failed evaluations per labeling function."""
        return dict(Counter(failure.function_name for failure in self.failures))

    def to_dict(self) -> dict:
        return {
            "n_documents": self.n_documents,
            "n_labeling_functions": self.n_labeling_functions,
            "failures": len(self.failures),
            "malformed_votes": len(self.malformed_votes),
            "failure_counts": self.failure_counts(),
        }


class LabelingFunctionAdapter:
    """
    Evaluates one labeling function and translates its result into matrix writes.

    Exceptions raised by the function are caught and turned into an
    abstention plus a :class:`LabelingFunctionFailure`. Votes with an
    empty label or a non-numeric confidence are dropped, and confidences
    outside [0, 1] are clamped; both are reported as malformed.
    """

    def __init__(self, lf: LabelingFunction, lf_index: int) -> None:
        self.lf = lf
        self.lf_index = lf_index

    def evaluate(self, document: Document, doc_index: int) -> EvaluationOutcome:
        outcome = EvaluationOutcome(lf_index=self.lf_index)
        try:
            raw_votes = list(self.lf.evaluate(document) or [])
        except Exception as e:
            outcome.failure = LabelingFunctionFailure(
                function_name=self.lf.name,
                doc_index=doc_index,
                document_id=document.id,
                error_type=type(e).__name__,
                message=str(e),
            )
            return outcome

        for raw_vote in raw_votes:
            vote = self._normalize(raw_vote, doc_index, outcome.malformed)
            if vote is not None:
                outcome.votes.append(vote)
        return outcome

    def record(self, matrix: VoteMatrix, doc_index: int, outcome: EvaluationOutcome) -> None:
        if outcome.abstained:
            matrix.record_abstain(doc_index, self.lf_index)
            return
        for label, confidence in outcome.votes:
            matrix.record_vote(doc_index, self.lf_index, label, confidence)

    def apply(self, document: Document, doc_index: int, matrix: VoteMatrix) -> EvaluationOutcome:
        """Evaluate and record in one step."""
        outcome = self.evaluate(document, doc_index)
        self.record(matrix, doc_index, outcome)
        return outcome

    def _normalize(
        self,
        raw_vote: object,
        doc_index: int,
        malformed: list[MalformedVote],
    ) -> tuple[str, float] | None:
        try:
            if isinstance(raw_vote, LabelVote):
                label, confidence = raw_vote.label, raw_vote.confidence
            else:
                label, confidence = raw_vote  # type: ignore[misc]
        except (TypeError, ValueError):
            malformed.append(self._malformed(doc_index, "", math.nan, f"unreadable vote {raw_vote!r}"))
            return None

        if not isinstance(label, str) or not label.strip():
            malformed.append(self._malformed(doc_index, str(label or ""), math.nan, "empty or non-string label"))
            return None
        if label == ABSTAIN:
            return None

        try:
            value = float(confidence)
        except (TypeError, ValueError):
            malformed.append(self._malformed(doc_index, label, math.nan, "non-numeric confidence"))
            return None
        if math.isnan(value):
            malformed.append(self._malformed(doc_index, label, value, "NaN confidence"))
            return None
        if value < 0.0 or value > 1.0:
            malformed.append(self._malformed(doc_index, label, value, "confidence clamped to [0, 1]"))
            value = min(1.0, max(0.0, value))
        return label, value

    def _malformed(self, doc_index: int, label: str, confidence: float, reason: str) -> MalformedVote:
        return MalformedVote(
            function_name=self.lf.name,
            doc_index=doc_index,
            label=label,
            confidence=confidence,
            reason=reason,
        )


class VoteMatrixBuilder(BatchProcessor):
    """
    Runs the population pass over a corpus.

    Each document is evaluated by exactly one worker against every
    labeling function. Matrix writes happen on the calling thread in
    document order, so the resulting matrix does not depend on
    ``max_workers``.

    Example:
        >>> builder = VoteMatrixBuilder(registry, PopulationConfig(max_workers=4))
        >>> matrix, report = builder.build(documents)
    """

    def __init__(
        self,
        labeling_functions: LabelingFunctionRegistry | Iterable[LabelingFunction],
        config: PopulationConfig | None = None,
    ) -> None:
        if isinstance(labeling_functions, LabelingFunctionRegistry):
            self.registry = labeling_functions
        else:
            self.registry = LabelingFunctionRegistry(labeling_functions)
        self.config = config or PopulationConfig()
        self.adapters = [
            LabelingFunctionAdapter(lf, lf_index) for lf_index, lf in enumerate(self.registry)
        ]

    def build(self, documents: Sequence[Document]) -> tuple[VoteMatrix, PopulationReport]:
        """
        Apply every labeling function to every document.

        Raises:
            DegenerateCorpusError: If there are no documents or no labeling functions.
        """
        if not documents:
            raise DegenerateCorpusError("Cannot build a vote matrix from zero documents")
        if not self.adapters:
            raise DegenerateCorpusError("Cannot build a vote matrix without labeling functions")

        matrix = VoteMatrix(self.registry.names)
        matrix.ensure_document(len(documents) - 1)
        report = PopulationReport(n_documents=len(documents), n_labeling_functions=len(self.adapters))

        logger.info(
            f"Applying {len(self.adapters)} labeling functions to {len(documents)} documents"
        )

        indexed = list(enumerate(documents))
        executor = (
            ThreadPoolExecutor(max_workers=self.config.max_workers)
            if self.config.max_workers > 1
            else None
        )
        try:
            def process_batch(batch: Sequence[tuple[int, Document]]) -> list[list[EvaluationOutcome]]:
                if executor is not None:
                    outcomes = list(executor.map(lambda item: self._evaluate_document(*item), batch))
                else:
                    outcomes = [self._evaluate_document(doc_index, doc) for doc_index, doc in batch]
                for (doc_index, _), doc_outcomes in zip(batch, outcomes):
                    self._record(matrix, doc_index, doc_outcomes, report)
                return outcomes

            self.process_in_batches(
                indexed,
                batch_size=self.config.batch_size,
                process_func=process_batch,
                desc="Applying labeling functions",
                show_progress=self.config.show_progress,
            )
        finally:
            if executor is not None:
                executor.shutdown(wait=True)

        logger.info(
            f"Population pass complete: {len(report.failures)} failures, "
            f"{len(report.malformed_votes)} malformed votes, {matrix.n_labels} labels observed"
        )
        return matrix, report

    def _evaluate_document(self, doc_index: int, document: Document) -> list[EvaluationOutcome]:
        return [adapter.evaluate(document, doc_index) for adapter in self.adapters]

    def _record(
        self,
        matrix: VoteMatrix,
        doc_index: int,
        outcomes: list[EvaluationOutcome],
        report: PopulationReport,
    ) -> None:
        for adapter, outcome in zip(self.adapters, outcomes):
            adapter.record(matrix, doc_index, outcome)
            if outcome.failure is not None:
                logger.warning(f"Labeling function error, recorded as abstention: {outcome.failure}")
                report.failures.append(outcome.failure)
            for bad in outcome.malformed:
                logger.warning(
                    f"Malformed vote from {bad.function_name} on document {doc_index}: "
                    f"{bad.reason} (label={bad.label!r}, confidence={bad.confidence})"
                )
                report.malformed_votes.append(bad)


def apply_labeling_functions(
    documents: Sequence[Document],
    labeling_functions: LabelingFunctionRegistry | Iterable[LabelingFunction],
    config: PopulationConfig | None = None,
) -> tuple[VoteMatrix, PopulationReport]:
    """Build a vote matrix for ``documents``; see :class:`VoteMatrixBuilder`."""
    return VoteMatrixBuilder(labeling_functions, config).build(documents)
