"""Tests for ConvergenceController."""

from __future__ import annotations

import itertools

import numpy as np
import pytest

from weaklabel.core.configs import LabelModelConfig
from weaklabel.core.weak_supervision import (
    ConvergenceController,
    DegenerateCorpusError,
    GenerativeLabelModel,
    IncompleteVoteMatrixError,
    TrainingState,
    VoteMatrix,
)
from weaklabel.core.weak_supervision import trainer as trainer_module


@pytest.fixture
def reliable_matrix(make_matrix):
    """
    Twenty documents with a known label.

    ``reliable`` always votes the true label; ``noisy`` is wrong on every
    third document; ``sparse`` only votes on the first five documents.
    """
    truth = ["positive" if i % 2 == 0 else "negative" for i in range(20)]
    votes = {}
    for doc_index, label in enumerate(truth):
        other = "negative" if label == "positive" else "positive"
        votes[(doc_index, 0)] = [(label, 0.9)]
        votes[(doc_index, 1)] = [(other if doc_index % 3 == 0 else label, 0.5)]
        if doc_index < 5:
            votes[(doc_index, 2)] = [(label, 0.6)]
    return make_matrix(["reliable", "noisy", "sparse"], 20, votes)


@pytest.mark.unit
class TestConvergenceController:
    """Test suite for ConvergenceController."""

    def test_converges_and_trusts_reliable_function(self, reliable_matrix):
        config = LabelModelConfig(max_iterations=50, convergence_threshold=0.01)
        result = ConvergenceController(config).train(reliable_matrix)

        assert result.state is TrainingState.CONVERGED
        assert result.converged
        assert result.stop_reason == "threshold"
        assert result.iterations <= 50
        accuracies = result.parameters.accuracies_dict()
        assert accuracies["reliable"] > 0.5
        assert accuracies["reliable"] > accuracies["noisy"]

    def test_exhausted_after_max_iterations(self, reliable_matrix):
        config = LabelModelConfig(max_iterations=1, convergence_threshold=1e-12)
        result = ConvergenceController(config).train(reliable_matrix)

        assert result.state is TrainingState.EXHAUSTED
        assert not result.converged
        assert result.stop_reason == "max_iterations"
        assert result.iterations == 1

    def test_convergence_checked_before_exhaustion(self, reliable_matrix):
        """Test that meeting the threshold on the last allowed iteration counts as converged."""
        config = LabelModelConfig(max_iterations=2, convergence_threshold=1e6)
        result = ConvergenceController(config).train(reliable_matrix)

        assert result.state is TrainingState.CONVERGED
        assert result.iterations == 2

    def test_first_iteration_never_converges(self, reliable_matrix):
        config = LabelModelConfig(max_iterations=5, convergence_threshold=1e6)
        result = ConvergenceController(config).train(reliable_matrix)
        assert result.iterations == 2

    def test_history_matches_iterations(self, reliable_matrix):
        result = ConvergenceController(LabelModelConfig(max_iterations=30)).train(reliable_matrix)
        assert len(result.log_likelihood_history) == result.iterations
        assert result.log_likelihood == result.log_likelihood_history[-1]

    def test_final_posteriors_match_parameters(self, reliable_matrix):
        """Test that returned posteriors are what the returned parameters produce."""
        result = ConvergenceController(LabelModelConfig(max_iterations=10)).train(reliable_matrix)

        model = GenerativeLabelModel.from_matrix(reliable_matrix)
        model.parameters = result.parameters.copy()
        np.testing.assert_allclose(model.estimate_posteriors(reliable_matrix), result.posteriors)
        np.testing.assert_allclose(result.posteriors.sum(axis=1), 1.0)

    def test_matrix_frozen_by_training(self, reliable_matrix):
        ConvergenceController().train(reliable_matrix)
        assert reliable_matrix.frozen

    def test_cancel_before_first_iteration(self, reliable_matrix):
        controller = ConvergenceController(LabelModelConfig(max_iterations=50))
        controller.cancel()
        result = controller.train(reliable_matrix)

        assert result.state is TrainingState.EXHAUSTED
        assert result.stop_reason == "cancelled"
        assert result.iterations == 0
        np.testing.assert_allclose(result.posteriors.sum(axis=1), 1.0)

    def test_timeout(self, reliable_matrix, monkeypatch):
        clock = itertools.count(start=0.0, step=100.0)
        monkeypatch.setattr(trainer_module.time, "monotonic", lambda: next(clock))

        config = LabelModelConfig(max_iterations=50, timeout_seconds=10)
        result = ConvergenceController(config).train(reliable_matrix)

        assert result.state is TrainingState.EXHAUSTED
        assert result.stop_reason == "timeout"
        assert result.iterations == 0

    def test_uses_supplied_model(self, reliable_matrix):
        model = GenerativeLabelModel.from_matrix(reliable_matrix, LabelModelConfig(initial_accuracy=0.5))
        controller = ConvergenceController(LabelModelConfig(max_iterations=3), model=model)
        controller.train(reliable_matrix)
        assert controller.model is model

    def test_cancel_applies_to_one_run_only(self, reliable_matrix):
        """Test that a cancelled controller trains normally on its next run."""
        controller = ConvergenceController(LabelModelConfig(max_iterations=50))
        controller.cancel()
        cancelled = controller.train(reliable_matrix)
        rerun = controller.train(reliable_matrix)

        assert cancelled.stop_reason == "cancelled"
        assert rerun.stop_reason in {"threshold", "max_iterations"}
        assert rerun.iterations >= 1

    def test_mismatched_model_leaves_matrix_writable(self, reliable_matrix, make_matrix):
        other = make_matrix(["lf_x"], 2, {(0, 0): [("positive", 0.5)]})
        controller = ConvergenceController(model=GenerativeLabelModel.from_matrix(reliable_matrix))

        with pytest.raises(ValueError, match="differ"):
            controller.train(other)
        assert not other.frozen

    def test_empty_matrix_rejected(self):
        with pytest.raises(DegenerateCorpusError):
            ConvergenceController().train(VoteMatrix(["lf_a"]))

    def test_no_functions_rejected(self):
        matrix = VoteMatrix()
        matrix.ensure_document(2)
        with pytest.raises(DegenerateCorpusError):
            ConvergenceController().train(matrix)

    def test_incomplete_matrix_rejected(self):
        matrix = VoteMatrix(["lf_a", "lf_b"])
        matrix.record_vote(0, 0, "A", 0.5)
        with pytest.raises(IncompleteVoteMatrixError, match="1 \\(document, labeling function\\)"):
            ConvergenceController().train(matrix)
        assert not matrix.frozen

    def test_to_dict(self, reliable_matrix):
        result = ConvergenceController(LabelModelConfig(max_iterations=5)).train(reliable_matrix)
        data = result.to_dict()

        assert data["state"] in {"converged", "exhausted"}
        assert data["iterations"] == result.iterations
        assert set(data["accuracies"]) == {"reliable", "noisy", "sparse"}
        assert sum(data["class_priors"].values()) == pytest.approx(1.0)
