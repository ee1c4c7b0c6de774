"""Tests for GenerativeLabelModel."""

from __future__ import annotations

import numpy as np
import pytest

from weaklabel.core.configs import MAX_ACCURACY, MIN_ACCURACY, LabelModelConfig
from weaklabel.core.weak_supervision import GenerativeLabelModel, ModelParameters, VoteMatrix


@pytest.fixture
def two_label_matrix(make_matrix):
    """Doc 0 has conflicting votes, doc 1 has none, doc 2 has agreement."""
    return make_matrix(
        ["lf_a", "lf_b", "lf_silent"],
        3,
        {
            (0, 0): [("A", 0.8)],
            (0, 1): [("B", 0.6)],
            (2, 0): [("A", 1.0)],
            (2, 1): [("A", 1.0)],
        },
    )


@pytest.mark.unit
class TestModelParameters:
    """Test suite for ModelParameters."""

    def test_initial(self):
        params = ModelParameters.initial(["A", "B", "C", "D"], ["lf_a"], initial_accuracy=0.6)
        np.testing.assert_allclose(params.class_priors, [0.25] * 4)
        np.testing.assert_allclose(params.accuracies, [0.6])
        assert params.class_priors_dict() == {"A": 0.25, "B": 0.25, "C": 0.25, "D": 0.25}
        assert params.accuracies_dict() == {"lf_a": 0.6}

    def test_copy_is_independent(self):
        params = ModelParameters.initial(["A"], ["lf_a"])
        clone = params.copy()
        clone.accuracies[0] = 0.2
        assert params.accuracies[0] == pytest.approx(0.7)


@pytest.mark.unit
class TestGenerativeLabelModel:
    """Test suite for GenerativeLabelModel."""

    def test_from_matrix(self, two_label_matrix):
        model = GenerativeLabelModel.from_matrix(two_label_matrix, LabelModelConfig(initial_accuracy=0.8))
        assert model.labels == ("A", "B")
        assert model.labeling_functions == ("lf_a", "lf_b", "lf_silent")
        np.testing.assert_allclose(model.parameters.accuracies, [0.8, 0.8, 0.8])

    def test_estimate_posteriors_values(self, two_label_matrix):
        """Test the weighted-voting E-step on a conflicting document."""
        model = GenerativeLabelModel.from_matrix(two_label_matrix)
        posteriors = model.estimate_posteriors(two_label_matrix)

        # priors 0.5 each, evidence A = 0.8 * 0.7, B = 0.6 * 0.7
        expected = np.array([0.5 + 0.56, 0.5 + 0.42]) / 1.98
        np.testing.assert_allclose(posteriors[0], expected)
        assert posteriors[0, 0] > posteriors[0, 1]

    def test_no_evidence_returns_priors(self, two_label_matrix):
        """Test that a document where every function abstained gets the priors."""
        model = GenerativeLabelModel.from_matrix(two_label_matrix)
        model.parameters.class_priors = np.array([0.3, 0.7])
        posteriors = model.estimate_posteriors(two_label_matrix)
        np.testing.assert_allclose(posteriors[1], [0.3, 0.7])

    def test_zero_confidence_votes_count_as_no_evidence(self, make_matrix):
        matrix = make_matrix(["lf_a"], 2, {(0, 0): [("A", 0.0)], (1, 0): [("B", 0.5)]})
        model = GenerativeLabelModel.from_matrix(matrix)
        posteriors = model.estimate_posteriors(matrix)
        np.testing.assert_allclose(posteriors[0], model.parameters.class_priors)

    def test_posterior_rows_sum_to_one(self, two_label_matrix):
        model = GenerativeLabelModel.from_matrix(two_label_matrix)
        posteriors = model.estimate_posteriors(two_label_matrix)
        np.testing.assert_allclose(posteriors.sum(axis=1), 1.0)
        assert ((posteriors >= 0) & (posteriors <= 1)).all()

    def test_estimate_posteriors_is_pure(self, two_label_matrix):
        """Test that repeated E-steps agree and leave the matrix untouched."""
        model = GenerativeLabelModel.from_matrix(two_label_matrix)
        before = two_label_matrix.to_dataframe()

        first = model.estimate_posteriors(two_label_matrix)
        second = model.estimate_posteriors(two_label_matrix)

        np.testing.assert_array_equal(first, second)
        assert two_label_matrix.to_dataframe().equals(before)

    def test_matrix_without_labels(self, make_matrix):
        matrix = make_matrix(["lf_a"], 2, {})
        model = GenerativeLabelModel.from_matrix(matrix)
        posteriors = model.estimate_posteriors(matrix)
        assert posteriors.shape == (2, 0)
        assert model.compute_log_likelihood(matrix, posteriors) == 0.0

    def test_update_priors_are_mean_posterior(self, two_label_matrix):
        model = GenerativeLabelModel.from_matrix(two_label_matrix)
        posteriors = np.array([[0.6, 0.4], [0.5, 0.5], [1.0, 0.0]])
        model.update_parameters(two_label_matrix, posteriors, regularization=0.0)
        np.testing.assert_allclose(model.parameters.class_priors, [0.7, 0.3])

    def test_update_accuracy_formula(self, two_label_matrix):
        model = GenerativeLabelModel.from_matrix(two_label_matrix)
        posteriors = np.array([[0.6, 0.4], [0.5, 0.5], [0.8, 0.2]])
        model.update_parameters(two_label_matrix, posteriors, regularization=0.1)

        # lf_a: A on doc 0 (0.8) and doc 2 (1.0)
        expected_a = (0.6 * 0.8 + 0.8 * 1.0 + 0.1) / (1.8 + 0.2)
        # lf_b: B on doc 0 (0.6) and A on doc 2 (1.0)
        expected_b = (0.4 * 0.6 + 0.8 * 1.0 + 0.1) / (1.6 + 0.2)
        np.testing.assert_allclose(model.parameters.accuracies[:2], [expected_a, expected_b])

    def test_update_accuracy_bounds(self, make_matrix):
        """Test that accuracies are clamped to the configured range."""
        matrix = make_matrix(
            ["always_right", "always_wrong"],
            2,
            {
                (0, 0): [("A", 1.0)],
                (1, 0): [("A", 1.0)],
                (0, 1): [("B", 1.0)],
                (1, 1): [("B", 1.0)],
            },
        )
        model = GenerativeLabelModel.from_matrix(matrix)
        posteriors = np.array([[1.0, 0.0], [1.0, 0.0]])
        model.update_parameters(matrix, posteriors, regularization=0.01)

        assert model.parameters.accuracies[0] == pytest.approx(MAX_ACCURACY)
        assert model.parameters.accuracies[1] == pytest.approx(MIN_ACCURACY)

    def test_silent_function_keeps_accuracy(self, two_label_matrix):
        model = GenerativeLabelModel.from_matrix(two_label_matrix)
        posteriors = model.estimate_posteriors(two_label_matrix)
        model.update_parameters(two_label_matrix, posteriors, regularization=0.01)
        assert model.parameters.accuracies[2] == pytest.approx(0.7)

    def test_negative_regularization_rejected(self, two_label_matrix):
        model = GenerativeLabelModel.from_matrix(two_label_matrix)
        posteriors = model.estimate_posteriors(two_label_matrix)
        with pytest.raises(ValueError, match="regularization"):
            model.update_parameters(two_label_matrix, posteriors, regularization=-0.1)

    def test_posterior_shape_mismatch_rejected(self, two_label_matrix):
        model = GenerativeLabelModel.from_matrix(two_label_matrix)
        with pytest.raises(ValueError, match="Posterior shape"):
            model.update_parameters(two_label_matrix, np.zeros((2, 2)), regularization=0.01)

    def test_foreign_matrix_rejected(self, two_label_matrix):
        model = GenerativeLabelModel.from_matrix(two_label_matrix)
        other = VoteMatrix(["lf_x"])
        other.record_vote(0, 0, "A", 0.5)
        with pytest.raises(ValueError, match="differ"):
            model.estimate_posteriors(other)

    def test_check_matrix(self, two_label_matrix, make_matrix):
        model = GenerativeLabelModel.from_matrix(two_label_matrix)
        model.check_matrix(two_label_matrix)
        with pytest.raises(ValueError, match="differ"):
            model.check_matrix(make_matrix(["lf_a", "lf_b"], 1, {(0, 0): [("A", 0.5)]}))

    def test_log_likelihood(self, two_label_matrix):
        model = GenerativeLabelModel.from_matrix(two_label_matrix)
        posteriors = np.array([[1.0, 0.0], [0.5, 0.5], [0.25, 0.75]])
        expected = 0.5 * np.log(0.5) * 2 + 0.25 * np.log(0.25) + 0.75 * np.log(0.75)
        assert model.compute_log_likelihood(two_label_matrix, posteriors) == pytest.approx(expected)

    def test_log_likelihood_defaults_to_current_posteriors(self, two_label_matrix):
        model = GenerativeLabelModel.from_matrix(two_label_matrix)
        posteriors = model.estimate_posteriors(two_label_matrix)
        assert model.compute_log_likelihood(two_label_matrix) == pytest.approx(
            model.compute_log_likelihood(two_label_matrix, posteriors)
        )
        assert model.compute_log_likelihood(two_label_matrix) <= 0.0
