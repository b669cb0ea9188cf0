"""Tests for the decision forest models: decisions, predictions, trees, and the forest."""

from __future__ import annotations

import math

import polars as pl
import pytest
from polars.testing import assert_frame_equal
from pydantic import ValidationError
from pytest_check import check

from pmmlforest.forest.models import (
    CategoricalDecision,
    CategoricalPrediction,
    DecisionForest,
    DecisionNode,
    DecisionTree,
    NumericDecision,
    NumericPrediction,
    TerminalNode,
)
from pmmlforest.schema import InputSchema


def _leaf(value: float = 0.0, count: int = 1) -> TerminalNode:
    return TerminalNode(prediction=NumericPrediction(value=value, count=count))


def _stump(threshold: float = 1.0) -> DecisionTree:
    decision = NumericDecision(feature_index=0, threshold=threshold, default_to_positive=False)
    return DecisionTree(root=DecisionNode(decision=decision, negative_child=_leaf(0.0), positive_child=_leaf(1.0)))


class TestDecisions:
    """Tests for NumericDecision and CategoricalDecision."""

    def test_numeric_decision_is_inclusive(self) -> None:
        """Values equal to the threshold should route positive."""
        # Arrange
        decision = NumericDecision(feature_index=2, threshold=3.5, default_to_positive=True)

        # Act / Assert
        with check:
            assert decision.is_positive(3.5)
        with check:
            assert decision.is_positive(10.0)
        with check:
            assert not decision.is_positive(math.nextafter(3.5, -math.inf))

    def test_numeric_decision_str(self) -> None:
        """The string form should show the canonical >= rule."""
        # Arrange
        decision = NumericDecision(feature_index=2, threshold=3.5, default_to_positive=False)

        # Act / Assert
        assert str(decision) == "feature[2] >= 3.5"

    def test_negative_feature_index_rejected(self) -> None:
        """Feature indexes are positions and cannot be negative."""
        # Arrange / Act / Assert
        with pytest.raises(ValidationError):
            NumericDecision(feature_index=-1, threshold=0.0, default_to_positive=False)

    def test_categorical_decision_active_codes(self) -> None:
        """Active codes should list the set bits."""
        # Arrange
        decision = CategoricalDecision(
            feature_index=1,
            active_categories=(False, True, True, False),
            default_to_positive=False,
        )

        # Act / Assert
        with check:
            assert decision.active_codes == frozenset({1, 2})
        with check:
            assert decision.cardinality == 4
        with check:
            assert decision.is_positive(2)
        with check:
            assert not decision.is_positive(3)
        with check:
            assert str(decision) == "feature[1] in {1, 2}"

    @pytest.mark.parametrize("code", [-1, 3])
    def test_categorical_decision_rejects_out_of_range_code(self, code: int) -> None:
        """Codes outside the feature's domain should be rejected rather than wrapped.

        Args:
            code (int): A code outside `0..cardinality-1`.
        """
        # Arrange
        decision = CategoricalDecision(
            feature_index=0,
            active_categories=(True, False, True),
            default_to_positive=False,
        )

        # Act / Assert
        with pytest.raises(ValueError, match="out of range"):
            decision.is_positive(code)

    def test_empty_bit_vector_rejected(self) -> None:
        """A categorical decision needs at least one category."""
        # Arrange / Act / Assert
        with pytest.raises(ValidationError):
            CategoricalDecision(feature_index=0, active_categories=(), default_to_positive=False)

    def test_decision_node_selects_variant_from_kind(self) -> None:
        """Validating a mapping should pick the decision class from its kind."""
        # Arrange
        raw = {
            "decision": {
                "kind": "categorical",
                "feature_index": 0,
                "active_categories": [1, 0],
                "default_to_positive": 0,
            },
            "negative_child": {"kind": "terminal", "prediction": {"kind": "numeric", "value": 0, "count": 1}},
            "positive_child": {"kind": "terminal", "prediction": {"kind": "categorical", "counts": [1, 2]}},
        }

        # Act
        node = DecisionNode.model_validate(raw)

        # Assert
        with check:
            assert isinstance(node.decision, CategoricalDecision)
        with check:
            assert node.decision.active_categories == (True, False)
        with check:
            assert isinstance(node.positive_child.prediction, CategoricalPrediction)


class TestPredictions:
    """Tests for NumericPrediction and CategoricalPrediction."""

    def test_categorical_prediction_totals(self) -> None:
        """The total should sum the per-category counts."""
        # Arrange
        prediction = CategoricalPrediction(counts=(3, 7, 7, 0))

        # Act / Assert
        assert prediction.total_count == 17

    def test_negative_counts_rejected(self) -> None:
        """Record counts are non-negative integers."""
        # Arrange / Act / Assert
        with pytest.raises(ValidationError):
            CategoricalPrediction(counts=(1, -1))

    def test_negative_numeric_count_rejected(self) -> None:
        """Numeric leaves cannot have negative record counts."""
        # Arrange / Act / Assert
        with pytest.raises(ValidationError):
            NumericPrediction(value=1.0, count=-3)

    def test_predictions_are_frozen(self) -> None:
        """Predictions cannot be modified after construction."""
        # Arrange
        prediction = NumericPrediction(value=1.0, count=3)

        # Act / Assert
        with pytest.raises(ValidationError):
            prediction.value = 2.0  # type: ignore[misc]


class TestDecisionTree:
    """Tests for traversal helpers on DecisionTree."""

    def test_single_leaf_tree(self) -> None:
        """A lone leaf has one node, one leaf, and depth zero."""
        # Arrange
        tree = DecisionTree(root=_leaf())

        # Act / Assert
        with check:
            assert tree.node_count == 1
        with check:
            assert tree.leaf_count == 1
        with check:
            assert tree.depth == 0

    def test_iter_nodes_visits_negative_before_positive(self) -> None:
        """Pre-order traversal should visit the root, then the negative subtree."""
        # Arrange
        tree = _stump()

        # Act
        nodes = list(tree.iter_nodes())

        # Assert
        with check:
            assert nodes[0] is tree.root
        with check:
            assert nodes[1].prediction.value == 0.0
        with check:
            assert nodes[2].prediction.value == 1.0

    def test_unbalanced_depth(self) -> None:
        """Depth should follow the longest path."""
        # Arrange
        inner = _stump(2.0).root
        decision = NumericDecision(feature_index=0, threshold=1.0, default_to_positive=False)
        tree = DecisionTree(root=DecisionNode(decision=decision, negative_child=_leaf(), positive_child=inner))

        # Act / Assert
        with check:
            assert tree.depth == 2
        with check:
            assert tree.node_count == 5


class TestDecisionForest:
    """Tests for forest invariants and reporting."""

    def test_weights_must_match_trees(self) -> None:
        """There must be exactly one weight per tree."""
        # Arrange / Act / Assert
        with pytest.raises(ValidationError, match="weights length"):
            DecisionForest(trees=(_stump(),), weights=(1.0, 2.0), feature_importances=(0.0,))

    @pytest.mark.parametrize("weight", [-1.0, math.inf, math.nan])
    def test_weights_must_be_finite_and_non_negative(self, weight: float) -> None:
        """Negative or non-finite weights are rejected.

        Args:
            weight (float): An invalid weight.
        """
        # Arrange / Act / Assert
        with pytest.raises(ValidationError):
            DecisionForest(trees=(_stump(),), weights=(weight,), feature_importances=(0.0,))

    def test_forest_needs_a_tree(self) -> None:
        """An empty forest is not a model."""
        # Arrange / Act / Assert
        with pytest.raises(ValidationError):
            DecisionForest(trees=(), weights=(), feature_importances=())

    def test_feature_importance_frame_sorted_descending(self) -> None:
        """Importances should be tabulated with the most important feature first."""
        # Arrange
        schema = InputSchema(feature_names=("a", "b", "c", "label"), target_feature_index=3, is_classification=True)
        forest = DecisionForest(trees=(_stump(),), weights=(1.0,), feature_importances=(0.2, 0.0, 0.8, 0.0))

        # Act
        frame = forest.feature_importance_frame(schema)

        # Assert
        expected = pl.DataFrame(
            {"feature": ["c", "a", "b", "label"], "importance": [0.8, 0.2, 0.0, 0.0]},
            schema={"feature": pl.String, "importance": pl.Float64},
        )
        assert_frame_equal(frame, expected)

    def test_feature_importance_frame_rejects_mismatched_schema(self) -> None:
        """The schema must have one feature per importance."""
        # Arrange
        schema = InputSchema(feature_names=("a", "label"), target_feature_index=1, is_classification=False)
        forest = DecisionForest(trees=(_stump(),), weights=(1.0,), feature_importances=(0.2, 0.0, 0.8))

        # Act / Assert
        with pytest.raises(ValueError, match="importances"):
            forest.feature_importance_frame(schema)

    def test_forest_round_trips_through_json(self) -> None:
        """A forest should serialize and validate back to an equal forest."""
        # Arrange
        forest = DecisionForest(trees=(_stump(), _stump(4.0)), weights=(1.0, 0.5), feature_importances=(1.0,))

        # Act
        restored = DecisionForest.model_validate_json(forest.model_dump_json())

        # Assert
        assert restored == forest
