"""Reading a decision forest from a parsed PMML document.

`read_forest` validates the document's top-level shape (a single TreeModel, or
a MiningModel whose segments are all TreeModels), translates every tree, and
assembles feature importances from the mining schema. The first failure
aborts the load: either a complete `DecisionForest` is returned or a
`ForestLoadError` is raised.
"""

from __future__ import annotations

import math
from typing import Final

from loguru import logger

from pmmlforest.exceptions import (
    ForestInvariantError,
    ForestLoadError,
    ReferenceResolutionError,
    StructuralViolationError,
)
from pmmlforest.forest.models import DecisionForest, DecisionTree
from pmmlforest.forest.translation import translate_node
from pmmlforest.pmml import MiningField, MiningModel, Model, PMMLDocument, TreeModel, TruePredicate
from pmmlforest.schema import CategoricalValueEncodings, EncodingProvider, InputSchema

# ---------------------------------------------------------------------------
# Module-level constants
# ---------------------------------------------------------------------------

CLASSIFICATION: Final[str] = "classification"
REGRESSION: Final[str] = "regression"

WEIGHTED_AVERAGE: Final[str] = "weightedAverage"
WEIGHTED_MAJORITY_VOTE: Final[str] = "weightedMajorityVote"
SUPPORTED_MULTIPLE_MODEL_METHODS: Final[frozenset[str]] = frozenset({WEIGHTED_AVERAGE, WEIGHTED_MAJORITY_VOTE})

_SINGLE_TREE_WEIGHT: Final[float] = 1.0


# ---------------------------------------------------------------------------
# Public interface
# ---------------------------------------------------------------------------


def read_pmml(
    document: PMMLDocument,
    schema: InputSchema,
    *,
    max_depth: int | None = None,
) -> tuple[DecisionForest, CategoricalValueEncodings]:
    """Build category encodings from the document and read its forest.

    Args:
        document (PMMLDocument): The parsed PMML document.
        schema (InputSchema): Feature names, target, and task kind.
        max_depth (int | None): Maximum tree depth; `None` for no limit.

    Returns:
        tuple[DecisionForest, CategoricalValueEncodings]: The forest and the
            encodings it was translated with.

    Raises:
        ForestLoadError: If the document is rejected.
    """
    encodings = CategoricalValueEncodings.from_data_dictionary(document.data_dictionary, schema)
    return read_forest(document, schema, encodings, max_depth=max_depth), encodings


def read_forest(
    document: PMMLDocument,
    schema: InputSchema,
    encodings: EncodingProvider,
    *,
    max_depth: int | None = None,
) -> DecisionForest:
    """Read the decision forest described by a PMML document.

    Args:
        document (PMMLDocument): The parsed PMML document.
        schema (InputSchema): Feature names, target, and task kind; must
            match the model's mining schema field for field.
        encodings (EncodingProvider): Category encodings built from the same
            document's data dictionary.
        max_depth (int | None): Maximum tree depth; `None` for no limit.

    Returns:
        DecisionForest: The immutable forest.

    Raises:
        StructuralViolationError: If the document's shape is unsupported.
        ReferenceResolutionError: If a feature, category or mining field does
            not resolve against the schema.
        ModelFormatError: If numeric text is unparsable.
    """
    try:
        model = extract_model(document, schema)
        trees, weights = extract_trees(model, encodings, schema, max_depth=max_depth)
        feature_importances = assemble_feature_importances(model.mining_schema.mining_fields, schema)
    except ForestLoadError as error:
        logger.warning(
            "PMML document rejected",
            error_type=type(error).__name__,
            element=error.element,
            reason=str(error),
        )
        raise

    forest = build_forest(trees, weights, feature_importances, schema)
    logger.info(
        "Decision forest loaded",
        model_type=model.model_type,
        tree_count=len(forest.trees),
        feature_count=len(forest.feature_importances),
    )
    return forest


def extract_model(document: PMMLDocument, schema: InputSchema) -> TreeModel | MiningModel:
    """Return the document's only model after checking its type and function.

    Args:
        document (PMMLDocument): The parsed PMML document.
        schema (InputSchema): Feature names, target, and task kind.

    Returns:
        TreeModel | MiningModel: The top-level model.

    Raises:
        StructuralViolationError: If the document does not hold exactly one
            model, the model is neither a TreeModel nor a MiningModel, or its
            function does not match the schema.
    """
    if len(document.models) != 1:
        raise StructuralViolationError(
            f"Expected exactly one model, found {len(document.models)}",
            element="PMML",
        )
    model = document.models[0]
    _check_function_name(model, schema)
    if not isinstance(model, TreeModel | MiningModel):
        raise StructuralViolationError(f"Unsupported model type {model.model_type!r}", element=model.model_type)
    return model


def extract_trees(
    model: TreeModel | MiningModel,
    encodings: EncodingProvider,
    schema: InputSchema,
    *,
    max_depth: int | None = None,
) -> tuple[list[DecisionTree], list[float]]:
    """Translate every tree of a model and collect the tree weights.

    A TreeModel yields one tree with weight 1.0. A MiningModel yields one tree
    per segment, weighted by the segment's declared weight.

    Args:
        model (TreeModel | MiningModel): The top-level model.
        encodings (EncodingProvider): Category encodings of the schema's features.
        schema (InputSchema): Feature names, target, and task kind.
        max_depth (int | None): Maximum tree depth; `None` for no limit.

    Returns:
        tuple[list[DecisionTree], list[float]]: Parallel trees and weights, in
            document order.

    Raises:
        StructuralViolationError: If the ensemble method, segment list,
            a segment predicate, weight, or sub-model is unsupported.
    """
    if isinstance(model, TreeModel):
        root = translate_node(model.node, encodings, schema, max_depth=max_depth)
        tree = DecisionTree(root=root)
        logger.debug("Tree translated", tree_index=0, node_count=tree.node_count)
        return [tree], [_SINGLE_TREE_WEIGHT]

    segmentation = model.segmentation
    if segmentation.multiple_model_method not in SUPPORTED_MULTIPLE_MODEL_METHODS:
        raise StructuralViolationError(
            f"Unsupported multipleModelMethod {segmentation.multiple_model_method!r}; "
            f"expected one of {sorted(SUPPORTED_MULTIPLE_MODEL_METHODS)}",
            element="Segmentation@multipleModelMethod",
        )
    if not segmentation.segments:
        raise StructuralViolationError("Segmentation has no segments", element="Segmentation")

    trees: list[DecisionTree] = []
    weights: list[float] = []
    for tree_index, segment in enumerate(segmentation.segments):
        if not isinstance(segment.predicate, TruePredicate):
            raise StructuralViolationError(
                f"Segment {segment.id!r} has a {segment.predicate.kind!r} predicate; only True is supported",
                element="Segment",
            )
        weights.append(_segment_weight(segment.weight, segment.id))
        if not isinstance(segment.model, TreeModel):
            raise StructuralViolationError(
                f"Segment {segment.id!r} holds a {segment.model.model_type!r}; only TreeModel is supported",
                element="Segment",
            )
        root = translate_node(segment.model.node, encodings, schema, max_depth=max_depth)
        tree = DecisionTree(root=root)
        logger.debug("Tree translated", tree_index=tree_index, segment_id=segment.id, node_count=tree.node_count)
        trees.append(tree)
    return trees, weights


def assemble_feature_importances(mining_fields: list[MiningField], schema: InputSchema) -> list[float]:
    """Build the per-feature importance vector from the model's mining fields.

    Mining fields must list exactly the schema's features, in schema order.

    Args:
        mining_fields (list[MiningField]): The model's mining fields, in order.
        schema (InputSchema): Feature names, target, and task kind.

    Returns:
        list[float]: One importance per schema feature; 0.0 where none is declared.

    Raises:
        StructuralViolationError: If the number of mining fields differs from
            the number of schema features.
        ReferenceResolutionError: If a mining field's name differs from the
            schema feature at the same position.
    """
    if len(mining_fields) != len(schema.feature_names):
        raise StructuralViolationError(
            f"MiningSchema has {len(mining_fields)} fields but the schema has {len(schema.feature_names)} features",
            element="MiningSchema",
        )
    importances = [0.0] * len(schema.feature_names)
    for index, (mining_field, feature_name) in enumerate(zip(mining_fields, schema.feature_names, strict=True)):
        if mining_field.name != feature_name:
            raise ReferenceResolutionError(
                f"MiningField {index} is '{mining_field.name}' but schema feature {index} is '{feature_name}'",
                reference=mining_field.name,
                available=[feature_name],
                element="MiningField@name",
            )
        if mining_field.importance is not None:
            importances[index] = mining_field.importance
    return importances


def build_forest(
    trees: list[DecisionTree],
    weights: list[float],
    feature_importances: list[float],
    schema: InputSchema,
) -> DecisionForest:
    """Assemble a forest from already validated parts.

    Args:
        trees (list[DecisionTree]): Member trees.
        weights (list[float]): One weight per tree.
        feature_importances (list[float]): One importance per schema feature.
        schema (InputSchema): The schema the parts were read against.

    Returns:
        DecisionForest: The immutable forest.

    Raises:
        ForestInvariantError: If the parts have inconsistent lengths.
    """
    if len(trees) != len(weights):
        raise ForestInvariantError(f"{len(trees)} trees but {len(weights)} weights")
    if len(feature_importances) != len(schema.feature_names):
        raise ForestInvariantError(
            f"{len(feature_importances)} importances but {len(schema.feature_names)} schema features"
        )
    return DecisionForest(
        trees=tuple(trees),
        weights=tuple(weights),
        feature_importances=tuple(feature_importances),
    )


# ---------------------------------------------------------------------------
# Private helpers
# ---------------------------------------------------------------------------


def _check_function_name(model: Model, schema: InputSchema) -> None:
    """Check that the model's function matches the schema's task kind.

    Args:
        model (Model): The top-level model.
        schema (InputSchema): Feature names, target, and task kind.

    Raises:
        StructuralViolationError: If the function is not classification or
            regression, or disagrees with `schema.is_classification`.
    """
    expected = CLASSIFICATION if schema.is_classification else REGRESSION
    if model.function_name != expected:
        raise StructuralViolationError(
            f"Model functionName is {model.function_name!r} but the schema expects {expected!r}",
            element=f"{model.model_type}@functionName",
        )


def _segment_weight(weight: float | None, segment_id: str | None) -> float:
    """Validate a segment's declared weight.

    Args:
        weight (float | None): The declared weight.
        segment_id (str | None): Segment id reported on failure.

    Returns:
        float: The weight, unchanged.

    Raises:
        StructuralViolationError: If the weight is missing, negative, or not finite.
    """
    if weight is None:
        raise StructuralViolationError(f"Segment {segment_id!r} declares no weight", element="Segment@weight")
    if not math.isfinite(weight) or weight < 0.0:
        raise StructuralViolationError(
            f"Segment {segment_id!r} weight must be finite and non-negative, got {weight}",
            element="Segment@weight",
        )
    return weight
