"""Decision forest sub-package: models, node translation, and document reading."""

from __future__ import annotations

from pmmlforest.forest.models import (
    CategoricalDecision,
    CategoricalPrediction,
    Decision,
    DecisionForest,
    DecisionNode,
    DecisionTree,
    NumericDecision,
    NumericPrediction,
    Prediction,
    TerminalNode,
    TreeNode,
)
from pmmlforest.forest.reader import (
    assemble_feature_importances,
    build_forest,
    extract_model,
    extract_trees,
    read_forest,
    read_pmml,
)
from pmmlforest.forest.translation import translate_node

__all__ = [
    "CategoricalDecision",
    "CategoricalPrediction",
    "Decision",
    "DecisionForest",
    "DecisionNode",
    "DecisionTree",
    "NumericDecision",
    "NumericPrediction",
    "Prediction",
    "TerminalNode",
    "TreeNode",
    "assemble_feature_importances",
    "build_forest",
    "extract_model",
    "extract_trees",
    "read_forest",
    "read_pmml",
    "translate_node",
]
