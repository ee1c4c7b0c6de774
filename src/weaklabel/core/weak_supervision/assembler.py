"""Assemble weak label records and corpus statistics from a trained model."""

from __future__ import annotations

from collections.abc import Iterator, Sequence

from ...models import Document, TrainingDiagnostics, WeakLabel, WeakSupervisionStats
from ..configs import OutputConfig
from .analysis import VoteAnalyzer
from .population import PopulationReport
from .trainer import TrainingResult
from .vote_matrix import VoteMatrix


class OutputAssembler:
    """
    Builds one :class:`WeakLabel` per document.

    Label distributions come straight from the training result's final
    posteriors; nothing is re-estimated here, so the records always match
    the parameters reported alongside them.
    """

    def __init__(
        self,
        documents: Sequence[Document],
        matrix: VoteMatrix,
        training: TrainingResult,
        config: OutputConfig | None = None,
        population_report: PopulationReport | None = None,
    ) -> None:
        if len(documents) != matrix.n_documents:
            raise ValueError(
                f"Got {len(documents)} documents for a matrix of {matrix.n_documents}"
            )
        if training.posteriors.shape[0] != matrix.n_documents:
            raise ValueError("Training posteriors do not cover every document in the matrix")
        self.documents = documents
        self.matrix = matrix
        self.training = training
        self.config = config or OutputConfig()
        self.population_report = population_report
        self.analyzer = VoteAnalyzer(matrix)

    def iter_records(self) -> Iterator[WeakLabel]:
        """Yield records in document order."""
        labels = self.training.parameters.labels
        for doc_index, document in enumerate(self.documents):
            row = self.training.posteriors[doc_index]
            yield WeakLabel(
                document_id=document.id,
                labels={label: float(p) for label, p in zip(labels, row)},
                contributing_functions=self.analyzer.contributing_functions(doc_index),
                coverage=self.analyzer.coverage(doc_index),
                conflicts=self.analyzer.conflicts(doc_index),
            )

    def assemble(self) -> list[WeakLabel]:
        return list(self.iter_records())

    def statistics(self) -> WeakSupervisionStats:
        """Corpus-level diagnostics for the run."""
        agreement = {
            self.config.agreement_key_format.format(first=first, second=second): score
            for (first, second), score in self.analyzer.pairwise_agreement().items()
        }
        report = self.population_report
        return WeakSupervisionStats(
            total_documents=self.matrix.n_documents,
            total_labeling_functions=self.matrix.n_labeling_functions,
            coverage=self.analyzer.corpus_coverage(),
            conflict_rate=self.analyzer.conflict_rate(),
            label_distribution=self.analyzer.label_distribution(
                self.training.posteriors, self.config.distribution_threshold
            ),
            labeling_function_agreement=agreement,
            labeling_function_failures=len(report.failures) if report else 0,
            malformed_votes=len(report.malformed_votes) if report else 0,
            training=TrainingDiagnostics(**self.training.to_dict()),
        )
