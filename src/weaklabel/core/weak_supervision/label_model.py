"""
Generative label model for weak supervision.

The model keeps one class prior per label and one accuracy scalar per
labeling function, and alternates two closed-form steps:

- E-step: each document's posterior starts from the class priors and
  accumulates ``confidence * accuracy`` for every vote, then is normalized
  over the label set. This is a weighted-voting approximation of a
  Bayesian label model, not an exact inversion of a joint likelihood
  over votes and per-class confusion matrices.
- M-step: priors become the mean posterior mass per label, and each
  function's accuracy becomes its confidence-weighted agreement with the
  posteriors, smoothed by ``regularization`` and clamped to
  [MIN_ACCURACY, MAX_ACCURACY].

The log-likelihood reported here is ``sum(p * log p)`` over all
posteriors, an entropy-based fit proxy. It is only meaningful as a
convergence signal within one corpus.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np
from loguru import logger

from ..configs import MAX_ACCURACY, MIN_ACCURACY, LabelModelConfig
from .vote_matrix import VoteMatrix


@dataclass
class ModelParameters:
    """Class priors and labeling function accuracies, indexed like the vote matrix."""

    labels: tuple[str, ...]
    labeling_functions: tuple[str, ...]
    class_priors: np.ndarray
    accuracies: np.ndarray

    @classmethod
    def initial(
        cls,
        labels: Sequence[str],
        labeling_functions: Sequence[str],
        initial_accuracy: float = 0.7,
    ) -> ModelParameters:
        """Uniform priors and a fixed starting accuracy."""
        n_labels = len(labels)
        priors = np.full(n_labels, 1.0 / n_labels) if n_labels else np.zeros(0)
        return cls(
            labels=tuple(labels),
            labeling_functions=tuple(labeling_functions),
            class_priors=priors,
            accuracies=np.full(len(labeling_functions), float(initial_accuracy)),
        )

    def copy(self) -> ModelParameters:
        return ModelParameters(
            labels=self.labels,
            labeling_functions=self.labeling_functions,
            class_priors=self.class_priors.copy(),
            accuracies=self.accuracies.copy(),
        )

    def class_priors_dict(self) -> dict[str, float]:
        return {label: float(p) for label, p in zip(self.labels, self.class_priors)}

    def accuracies_dict(self) -> dict[str, float]:
        return {name: float(a) for name, a in zip(self.labeling_functions, self.accuracies)}


class GenerativeLabelModel:
    """
    Weighted-voting label model with per-function accuracy weights.

    All three operations read the vote matrix without modifying it;
    :meth:`update_parameters` is the only method that mutates state.

    Example:
        >>> model = GenerativeLabelModel.from_matrix(matrix)
        >>> posteriors = model.estimate_posteriors(matrix)
        >>> model.update_parameters(matrix, posteriors, regularization=0.01)
        >>> model.compute_log_likelihood(matrix)
    """

    def __init__(
        self,
        labels: Sequence[str],
        labeling_functions: Sequence[str],
        initial_accuracy: float = 0.7,
    ) -> None:
        self.parameters = ModelParameters.initial(labels, labeling_functions, initial_accuracy)

    @classmethod
    def from_matrix(
        cls, matrix: VoteMatrix, config: LabelModelConfig | None = None
    ) -> GenerativeLabelModel:
        config = config or LabelModelConfig()
        return cls(matrix.labels, matrix.labeling_functions, config.initial_accuracy)

    @property
    def labels(self) -> tuple[str, ...]:
        return self.parameters.labels

    @property
    def labeling_functions(self) -> tuple[str, ...]:
        return self.parameters.labeling_functions

    def estimate_posteriors(self, matrix: VoteMatrix) -> np.ndarray:
        """
        E-step: posterior label distribution for every document.

        Returns:
            Array of shape (n_documents, n_labels). Rows of documents
            without evidence equal the class priors.
        """
        self.check_matrix(matrix)
        votes = matrix.to_arrays()
        n_documents, n_labels = votes.n_documents, votes.n_labels

        posteriors = np.tile(self.parameters.class_priors, (n_documents, 1))
        if votes.n_votes == 0 or n_labels == 0:
            return posteriors

        weights = votes.confidence * self.parameters.accuracies[votes.lf_index]
        evidence = np.zeros((n_documents, n_labels))
        np.add.at(evidence, (votes.doc_index, votes.label_index), weights)

        has_evidence = evidence.sum(axis=1) > 0
        if has_evidence.any():
            updated = posteriors[has_evidence] + evidence[has_evidence]
            updated /= updated.sum(axis=1, keepdims=True)
            posteriors[has_evidence] = np.clip(updated, 0.0, 1.0)
        return posteriors

    def update_parameters(
        self,
        matrix: VoteMatrix,
        posteriors: np.ndarray,
        regularization: float,
    ) -> None:
        """
        M-step: refit class priors and labeling function accuracies in place.

        Functions whose votes carry no confidence mass keep their current
        accuracy.
        """
        if regularization < 0:
            raise ValueError(f"regularization must be >= 0, got {regularization}")
        self.check_matrix(matrix)
        votes = matrix.to_arrays()
        if posteriors.shape != (votes.n_documents, votes.n_labels):
            raise ValueError(
                f"Posterior shape {posteriors.shape} does not match "
                f"({votes.n_documents}, {votes.n_labels})"
            )

        if votes.n_documents and votes.n_labels:
            priors = posteriors.mean(axis=0)
            total_mass = priors.sum()
            if total_mass > 0:
                self.parameters.class_priors = priors / total_mass

        n_functions = votes.n_labeling_functions
        voted_mass = posteriors[votes.doc_index, votes.label_index] * votes.confidence
        correct = np.bincount(votes.lf_index, weights=voted_mass, minlength=n_functions)
        total = np.bincount(votes.lf_index, weights=votes.confidence, minlength=n_functions)

        active = total > 0
        if active.any():
            accuracy = (correct[active] + regularization) / (total[active] + 2 * regularization)
            self.parameters.accuracies[active] = np.clip(accuracy, MIN_ACCURACY, MAX_ACCURACY)

        logger.debug(
            f"M-step updated {int(active.sum())}/{n_functions} accuracies; "
            f"priors={np.round(self.parameters.class_priors, 4).tolist()}"
        )

    def compute_log_likelihood(
        self,
        matrix: VoteMatrix,
        posteriors: np.ndarray | None = None,
    ) -> float:
        """
        Entropy-based fit proxy: sum of ``p * log(p)`` over all posteriors.

        Pass ``posteriors`` when they were already estimated with the
        current parameters to avoid a second E-step.
        """
        if posteriors is None:
            posteriors = self.estimate_posteriors(matrix)
        positive = posteriors > 0
        return float(np.sum(posteriors[positive] * np.log(posteriors[positive])))

    def check_matrix(self, matrix: VoteMatrix) -> None:
        """Raise ``ValueError`` unless the matrix has the model's labels and functions."""
        if (
            matrix.labels != self.parameters.labels
            or matrix.labeling_functions != self.parameters.labeling_functions
        ):
            raise ValueError(
                "Vote matrix labels or labeling functions differ from the model's; "
                "build the model from the populated matrix"
            )
