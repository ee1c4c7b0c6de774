"""
Convergence controller for label model training.

Drives E/M iterations until the log-likelihood change drops below the
configured threshold (CONVERGED) or the iteration budget runs out
(EXHAUSTED). Stopping is only ever decided at iteration boundaries, so
the parameters and posteriors handed back are always a consistent pair.
"""

from __future__ import annotations

import math
import time
from dataclasses import dataclass, field
from enum import Enum

import numpy as np
from loguru import logger

from ..configs import LabelModelConfig
from .errors import DegenerateCorpusError, IncompleteVoteMatrixError
from .label_model import GenerativeLabelModel, ModelParameters
from .vote_matrix import VoteMatrix


class TrainingState(str, Enum):
    RUNNING = "running"
    CONVERGED = "converged"
    EXHAUSTED = "exhausted"


@dataclass
class TrainingResult:
    """Outcome of a training run."""

    state: TrainingState
    iterations: int
    parameters: ModelParameters
    posteriors: np.ndarray
    log_likelihood: float
    log_likelihood_history: list[float] = field(default_factory=list)
    stop_reason: str = ""

    @property
    def converged(self) -> bool:
        return self.state is TrainingState.CONVERGED

    def to_dict(self) -> dict:
        """Convert to a JSON-friendly dictionary."""
        return {
            "state": self.state.value,
            "iterations": self.iterations,
            "log_likelihood": self.log_likelihood,
            "log_likelihood_history": list(self.log_likelihood_history),
            "stop_reason": self.stop_reason,
            "accuracies": self.parameters.accuracies_dict(),
            "class_priors": self.parameters.class_priors_dict(),
        }


class ConvergenceController:
    """
    Runs the label model to convergence or to its iteration budget.

    Each iteration performs an E-step, an M-step with the fresh
    posteriors, and a log-likelihood evaluation. Training converges when
    ``log_likelihood - previous < convergence_threshold``. A decrease also
    satisfies that test; the weighted-voting E-step does not guarantee a
    monotonic likelihood, and the rule is kept as is.

    The posteriors from the log-likelihood evaluation are produced by the
    post-M-step parameters. They are returned as the final posteriors and
    reused as the next iteration's E-step, which yields the same values
    because the E-step is a pure function of parameters and matrix.

    Example:
        >>> controller = ConvergenceController(LabelModelConfig(max_iterations=50))
        >>> result = controller.train(matrix)
        >>> result.state
        <TrainingState.CONVERGED: 'converged'>
    """

    def __init__(
        self,
        config: LabelModelConfig | None = None,
        model: GenerativeLabelModel | None = None,
    ) -> None:
        self.config = config or LabelModelConfig()
        self.model = model
        self.state = TrainingState.RUNNING
        self.iteration = 0
        self.previous_log_likelihood = -math.inf
        self._cancelled = False

    def cancel(self) -> None:
        """Request a stop; honoured at the next iteration boundary."""
        self._cancelled = True

    def train(self, matrix: VoteMatrix) -> TrainingResult:
        """
        Train the label model on a fully populated vote matrix.

        The matrix is frozen before the first E-step.

        Raises:
            DegenerateCorpusError: If the matrix has no documents or no labeling functions.
            IncompleteVoteMatrixError: If some (document, function) pair has no outcome.
            ValueError: If a supplied model was built for different labels or functions.
        """
        if matrix.n_documents == 0:
            raise DegenerateCorpusError("Cannot train a label model on zero documents")
        if matrix.n_labeling_functions == 0:
            raise DegenerateCorpusError("Cannot train a label model without labeling functions")
        missing = matrix.missing_outcomes()
        if missing:
            raise IncompleteVoteMatrixError(
                f"{len(missing)} (document, labeling function) pairs have no outcome, "
                f"first: {missing[0]}"
            )

        if self.model is None:
            self.model = GenerativeLabelModel.from_matrix(matrix, self.config)
        else:
            self.model.check_matrix(matrix)
        matrix.freeze()

        # a cancel request is used up by the run it stops
        try:
            return self._run(matrix, self.model)
        finally:
            self._cancelled = False

    def _run(self, matrix: VoteMatrix, model: GenerativeLabelModel) -> TrainingResult:
        self.state = TrainingState.RUNNING
        self.iteration = 0
        self.previous_log_likelihood = -math.inf
        history: list[float] = []
        stop_reason = ""
        started = time.monotonic()

        logger.info(
            f"Training label model on {matrix.n_documents} documents, "
            f"{matrix.n_labeling_functions} labeling functions, {matrix.n_labels} labels"
        )

        posteriors = model.estimate_posteriors(matrix)
        log_likelihood = model.compute_log_likelihood(matrix, posteriors)

        while self.state is TrainingState.RUNNING:
            if self._cancelled:
                self.state, stop_reason = TrainingState.EXHAUSTED, "cancelled"
                break
            timeout = self.config.timeout_seconds
            if timeout is not None and time.monotonic() - started >= timeout:
                self.state, stop_reason = TrainingState.EXHAUSTED, "timeout"
                break

            model.update_parameters(matrix, posteriors, self.config.regularization)
            posteriors = model.estimate_posteriors(matrix)
            log_likelihood = model.compute_log_likelihood(matrix, posteriors)
            self.iteration += 1
            history.append(log_likelihood)

            improvement = log_likelihood - self.previous_log_likelihood
            if self.iteration == 1 or self.iteration % self.config.log_every == 0:
                logger.debug(
                    f"Iteration {self.iteration}: log-likelihood = {log_likelihood:.4f}, "
                    f"improvement = {improvement:.6f}"
                )
            self.previous_log_likelihood = log_likelihood

            if improvement < self.config.convergence_threshold:
                self.state, stop_reason = TrainingState.CONVERGED, "threshold"
            elif self.iteration >= self.config.max_iterations:
                self.state, stop_reason = TrainingState.EXHAUSTED, "max_iterations"

        if self.state is TrainingState.CONVERGED:
            logger.info(f"Label model converged after {self.iteration} iterations")
        else:
            logger.info(
                f"Label model stopped without converging after {self.iteration} "
                f"iterations ({stop_reason})"
            )

        return TrainingResult(
            state=self.state,
            iterations=self.iteration,
            parameters=model.parameters.copy(),
            posteriors=posteriors,
            log_likelihood=log_likelihood,
            log_likelihood_history=history,
            stop_reason=stop_reason,
        )
