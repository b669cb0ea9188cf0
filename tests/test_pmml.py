"""Tests for the raw PMML object-graph models."""

from __future__ import annotations

from typing import Any

import pytest
from pydantic import ValidationError
from pytest_check import check

from pmmlforest.pmml import (
    CompoundPredicate,
    MiningModel,
    Node,
    PMMLDocument,
    SimplePredicate,
    SimpleSetPredicate,
    TreeModel,
    TruePredicate,
    UnsupportedModel,
    Value,
)


class TestAliases:
    """Tests for PMML attribute names and snake-case names."""

    def test_pmml_attribute_names_accepted(self) -> None:
        """Camel-case PMML names should populate snake-case fields."""
        # Arrange
        raw = {
            "id": "1",
            "defaultChild": "2",
            "recordCount": 12.5,
            "predicate": {"kind": "True"},
            "scoreDistributions": [{"value": "yes", "recordCount": 12.5}],
        }

        # Act
        node = Node.model_validate(raw)

        # Assert
        with check:
            assert node.default_child == "2"
        with check:
            assert node.record_count == 12.5
        with check:
            assert node.score_distributions[0].record_count == 12.5

    def test_snake_case_names_accepted(self) -> None:
        """Field names should be accepted as well as aliases."""
        # Arrange / Act
        node = Node(id="1", default_child="2", predicate=TruePredicate())

        # Assert
        assert node.default_child == "2"

    def test_value_property_alias(self) -> None:
        """The PMML `property` attribute should map to `value_property`."""
        # Arrange / Act
        value = Value.model_validate({"value": "?", "property": "missing"})

        # Assert
        with check:
            assert value.value_property == "missing"
        with check:
            assert Value(value="a").value_property == "valid", "Values default to valid"

    def test_numbers_coerced_to_text(self) -> None:
        """Scores and predicate constants given as numbers should be kept as text."""
        # Arrange / Act
        node = Node.model_validate({
            "score": 3,
            "predicate": {"kind": "SimplePredicate", "field": "x", "operator": "greaterThan", "value": 2.5},
        })

        # Assert
        with check:
            assert node.score == "3"
        with check:
            assert isinstance(node.predicate, SimplePredicate)
        with check:
            assert node.predicate.value == "2.5"


class TestPredicates:
    """Tests for predicate discrimination."""

    def test_predicate_selected_by_kind(self) -> None:
        """Each predicate mapping should become the class its kind names."""
        # Arrange
        raw = {
            "kind": "CompoundPredicate",
            "booleanOperator": "or",
            "predicates": [
                {"kind": "True"},
                {"kind": "False"},
                {
                    "kind": "SimpleSetPredicate",
                    "field": "color",
                    "booleanOperator": "isIn",
                    "array": {"type": "string", "n": 2, "value": 'A "B C"'},
                },
            ],
        }

        # Act
        predicate = CompoundPredicate.model_validate(raw)

        # Assert
        kinds = [type(child).__name__ for child in predicate.predicates]
        with check:
            assert kinds == ["TruePredicate", "FalsePredicate", "SimpleSetPredicate"]
        set_predicate = predicate.predicates[2]
        with check:
            assert isinstance(set_predicate, SimpleSetPredicate)
        with check:
            assert set_predicate.array.array_type == "string"
        with check:
            assert set_predicate.array.n == 2

    def test_unknown_predicate_kind_rejected(self) -> None:
        """A predicate kind outside PMML's vocabulary is a validation error."""
        # Arrange / Act / Assert
        with pytest.raises(ValidationError):
            Node.model_validate({"predicate": {"kind": "Surrogate"}})


class TestModels:
    """Tests for model discrimination and the document root."""

    def test_tree_and_mining_models_discriminated(self) -> None:
        """Supported model types should validate into their own classes."""
        # Arrange
        tree = {"modelType": "TreeModel", "functionName": "regression", "node": {"predicate": {"kind": "True"}}}
        raw = {
            "models": [
                tree,
                {
                    "modelType": "MiningModel",
                    "functionName": "regression",
                    "segmentation": {
                        "multipleModelMethod": "weightedAverage",
                        "segments": [{"id": "1", "weight": 0.5, "predicate": {"kind": "True"}, "model": tree}],
                    },
                },
            ]
        }

        # Act
        document = PMMLDocument.model_validate(raw)

        # Assert
        with check:
            assert isinstance(document.models[0], TreeModel)
        with check:
            assert isinstance(document.models[1], MiningModel)
        with check:
            assert isinstance(document.models[1].segmentation.segments[0].model, TreeModel)

    def test_other_model_types_kept_as_unsupported(self) -> None:
        """Unknown model types should be kept so the reader can reject them by name."""
        # Arrange
        raw = {
            "models": [
                {"modelType": "RegressionModel", "functionName": "regression", "regressionTables": [{"intercept": 1}]}
            ]
        }

        # Act
        document = PMMLDocument.model_validate(raw)

        # Assert
        model = document.models[0]
        with check:
            assert isinstance(model, UnsupportedModel)
        with check:
            assert model.model_type == "RegressionModel"

    def test_built_models_accepted_in_document(self) -> None:
        """Already constructed models should pass through the document unchanged."""
        # Arrange
        tree = TreeModel(function_name="classification", node=Node(predicate=TruePredicate()))

        # Act
        document = PMMLDocument(models=[tree])

        # Assert
        assert document.models[0] == tree

    def test_elements_are_frozen(self) -> None:
        """Raw elements cannot be modified after validation."""
        # Arrange
        node = Node(predicate=TruePredicate())

        # Act / Assert
        with pytest.raises(ValidationError):
            node.score = "1"  # type: ignore[misc]


class TestDeepNesting:
    """Tests for validating deeply nested node mappings."""

    def test_deep_node_mapping_validates_every_level(self) -> None:
        """Nesting deeper than pydantic's recursion guard should still validate into nodes."""
        # Arrange
        depth = 300
        raw: dict[str, Any] = {"predicate": {"kind": "True"}, "score": "0"}
        for level in range(depth):
            predicate = {"kind": "SimplePredicate", "field": "x", "operator": "greaterThan", "value": level}
            positive = {"predicate": predicate}
            raw = {"id": str(level), "predicate": {"kind": "True"}, "nodes": [raw, positive]}

        # Act
        node = Node.model_validate(raw)

        # Assert
        levels = 0
        all_nodes = True
        while node.nodes:
            all_nodes = all_nodes and all(isinstance(child, Node) for child in node.nodes)
            node = node.nodes[0]
            levels += 1
        with check:
            assert all_nodes, "Every child should be a validated Node"
        with check:
            assert levels == depth
        with check:
            assert node.score == "0"

    def test_source_mapping_is_not_modified(self) -> None:
        """Validation should leave the caller's nested mappings untouched."""
        # Arrange
        leaf = {"predicate": {"kind": "True"}, "score": "1"}
        inner = {"predicate": {"kind": "True"}, "nodes": [leaf, {**leaf, "id": "b"}]}
        raw = {"predicate": {"kind": "True"}, "nodes": [inner, {**leaf, "id": "a"}]}

        # Act
        Node.model_validate(raw)

        # Assert
        with check:
            assert raw["nodes"][0] is inner
        with check:
            assert inner["nodes"][0] is leaf
