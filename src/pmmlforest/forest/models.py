"""Frozen pydantic models for the decision forest: decisions, predictions, nodes, trees."""

from __future__ import annotations

import math
from collections.abc import Iterator
from typing import TYPE_CHECKING, Annotated, Literal

import polars as pl
from pydantic import BaseModel, ConfigDict, Field, NonNegativeInt, field_validator, model_validator

if TYPE_CHECKING:
    from pmmlforest.schema import InputSchema


class _FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True)


# ---------------------------------------------------------------------------
# Decisions
# ---------------------------------------------------------------------------


class NumericDecision(_FrozenModel):
    """Routes a record to the positive child when its feature value is at least `threshold`.

    Strict comparisons from the document are canonicalized before the decision
    is built, so every numeric decision means `value >= threshold`.

    Attributes:
        kind (Literal["numeric"]): Discriminator field; always `"numeric"`.
        feature_index (int): Index of the tested feature in the schema.
        threshold (float): Inclusive lower bound of the positive branch.
        default_to_positive (bool): Whether a missing value takes the positive branch.

    Examples:
        >>> decision = NumericDecision(feature_index=0, threshold=5.0, default_to_positive=False)
        >>> decision.is_positive(5.0)
        True
        >>> decision.is_positive(4.9)
        False
    """

    kind: Literal["numeric"] = "numeric"
    feature_index: int = Field(ge=0, description="Index of the tested feature in the schema.")
    threshold: float = Field(description="Inclusive lower bound of the positive branch.")
    default_to_positive: bool = Field(description="Whether a missing value takes the positive branch.")

    def is_positive(self, value: float) -> bool:
        """Return whether `value` routes to the positive child.

        Args:
            value (float): The feature value.

        Returns:
            bool: `value >= threshold`.
        """
        return value >= self.threshold

    def __str__(self) -> str:
        """Return a human-readable representation of this decision.

        Returns:
            str: The decision as `"feature[<index>] >= <threshold>"`.
        """
        return f"feature[{self.feature_index}] >= {self.threshold!r}"


class CategoricalDecision(_FrozenModel):
    """Routes a record to the positive child when its category is active.

    Attributes:
        kind (Literal["categorical"]): Discriminator field; always `"categorical"`.
        feature_index (int): Index of the tested feature in the schema.
        active_categories (tuple[bool, ...]): One flag per encoded category of
            the feature, indexed by category code.
        default_to_positive (bool): Whether a missing value takes the positive branch.

    Examples:
        >>> decision = CategoricalDecision(
        ...     feature_index=1,
        ...     active_categories=(True, False, True),
        ...     default_to_positive=False,
        ... )
        >>> sorted(decision.active_codes)
        [0, 2]
        >>> decision.is_positive(1)
        False
    """

    kind: Literal["categorical"] = "categorical"
    feature_index: int = Field(ge=0, description="Index of the tested feature in the schema.")
    active_categories: tuple[bool, ...] = Field(
        min_length=1,
        description="One flag per encoded category, indexed by category code.",
    )
    default_to_positive: bool = Field(description="Whether a missing value takes the positive branch.")

    @property
    def cardinality(self) -> int:
        """Number of categories of the tested feature."""
        return len(self.active_categories)

    @property
    def active_codes(self) -> frozenset[int]:
        """Codes of the categories that route to the positive child."""
        return frozenset(code for code, active in enumerate(self.active_categories) if active)

    def is_positive(self, code: int) -> bool:
        """Return whether the category with `code` routes to the positive child.

        Args:
            code (int): Encoded category of the feature value.

        Returns:
            bool: Whether the category's bit is set.

        Raises:
            ValueError: If `code` is outside the feature's category range.
        """
        if not 0 <= code < self.cardinality:
            raise ValueError(f"Category code {code} out of range for cardinality {self.cardinality}")
        return self.active_categories[code]

    def __str__(self) -> str:
        """Return a human-readable representation of this decision.

        Returns:
            str: The decision as `"feature[<index>] in {<codes>}"`.
        """
        codes = ", ".join(str(code) for code in sorted(self.active_codes))
        return f"feature[{self.feature_index}] in {{{codes}}}"


# Use this alias wherever either decision kind is accepted; match on `kind` to branch.
Decision = Annotated[NumericDecision | CategoricalDecision, Field(discriminator="kind")]


# ---------------------------------------------------------------------------
# Predictions
# ---------------------------------------------------------------------------


class NumericPrediction(_FrozenModel):
    """A regression leaf: the predicted value and its supporting record count.

    Attributes:
        kind (Literal["numeric"]): Discriminator field; always `"numeric"`.
        value (float): Predicted value.
        count (int): Number of training records behind the prediction.
    """

    kind: Literal["numeric"] = "numeric"
    value: float = Field(description="Predicted value.")
    count: NonNegativeInt = Field(description="Number of training records behind the prediction.")


class CategoricalPrediction(_FrozenModel):
    """A classification leaf: record counts per target category.

    Attributes:
        kind (Literal["categorical"]): Discriminator field; always `"categorical"`.
        counts (tuple[int, ...]): One count per encoded target category, in code order.

    Examples:
        >>> prediction = CategoricalPrediction(counts=(3, 7, 0))
        >>> prediction.total_count
        10
    """

    kind: Literal["categorical"] = "categorical"
    counts: tuple[NonNegativeInt, ...] = Field(
        min_length=1,
        description="One record count per encoded target category, in code order.",
    )

    @property
    def total_count(self) -> int:
        """Total number of records across all categories."""
        return sum(self.counts)


Prediction = Annotated[NumericPrediction | CategoricalPrediction, Field(discriminator="kind")]


# ---------------------------------------------------------------------------
# Tree structure
# ---------------------------------------------------------------------------


class TerminalNode(_FrozenModel):
    """A leaf holding a prediction."""

    kind: Literal["terminal"] = "terminal"
    prediction: Prediction


class DecisionNode(_FrozenModel):
    """An internal node owning exactly two subtrees.

    Attributes:
        kind (Literal["decision"]): Discriminator field; always `"decision"`.
        decision (Decision): The rule choosing between the children.
        negative_child (TreeNode): Subtree taken when the decision does not hold.
        positive_child (TreeNode): Subtree taken when the decision holds.
    """

    kind: Literal["decision"] = "decision"
    decision: Decision
    negative_child: TreeNode
    positive_child: TreeNode


TreeNode = Annotated[TerminalNode | DecisionNode, Field(discriminator="kind")]

DecisionNode.model_rebuild()


class DecisionTree(_FrozenModel):
    """A binary decision tree.

    Traversal helpers use an explicit stack, so arbitrarily deep trees never
    exhaust the interpreter's recursion limit.

    Attributes:
        root (TreeNode): The root node.
    """

    root: TreeNode

    def iter_nodes(self) -> Iterator[TreeNode]:
        """Yield every node in depth-first order, negative child before positive.

        Yields:
            TreeNode: Each node of the tree, starting with the root.
        """
        stack: list[TreeNode] = [self.root]
        while stack:
            node = stack.pop()
            yield node
            if isinstance(node, DecisionNode):
                stack.append(node.positive_child)
                stack.append(node.negative_child)

    @property
    def node_count(self) -> int:
        """Total number of nodes in the tree."""
        return sum(1 for _ in self.iter_nodes())

    @property
    def leaf_count(self) -> int:
        """Number of terminal nodes in the tree."""
        return sum(1 for node in self.iter_nodes() if isinstance(node, TerminalNode))

    @property
    def depth(self) -> int:
        """Number of decisions on the longest root-to-leaf path."""
        deepest = 0
        stack: list[tuple[TreeNode, int]] = [(self.root, 0)]
        while stack:
            node, depth = stack.pop()
            deepest = max(deepest, depth)
            if isinstance(node, DecisionNode):
                stack.append((node.negative_child, depth + 1))
                stack.append((node.positive_child, depth + 1))
        return deepest


class DecisionForest(_FrozenModel):
    """An immutable weighted ensemble of decision trees.

    A forest is built once per load and never modified; it can be shared by
    reference across any number of concurrent readers.

    Attributes:
        trees (tuple[DecisionTree, ...]): Member trees, in document order.
        weights (tuple[float, ...]): One non-negative weight per tree.
        feature_importances (tuple[float, ...]): One importance per schema
            feature, aligned with `InputSchema.feature_names`.
    """

    trees: tuple[DecisionTree, ...] = Field(
        min_length=1,
        description="Member trees, in document order.",
    )
    weights: tuple[float, ...] = Field(
        description="One non-negative weight per tree.",
    )
    feature_importances: tuple[float, ...] = Field(
        description="One importance per schema feature, aligned with the schema's feature names.",
    )

    @field_validator("weights", mode="after")
    @classmethod
    def _validate_weights_finite_non_negative(cls, value: tuple[float, ...]) -> tuple[float, ...]:
        """Validate that every weight is finite and non-negative.

        Args:
            value (tuple[float, ...]): The weights to validate.

        Returns:
            tuple[float, ...]: The validated weights, unchanged.

        Raises:
            ValueError: If any weight is negative, infinite or NaN.
        """
        bad_weights = [weight for weight in value if not (math.isfinite(weight) and weight >= 0.0)]
        if bad_weights:
            raise ValueError(f"weights must be finite and non-negative, got {bad_weights}")
        return value

    @model_validator(mode="after")
    def _validate_weights_match_trees(self) -> DecisionForest:
        """Validate that there is exactly one weight per tree.

        Returns:
            DecisionForest: The validated model instance.

        Raises:
            ValueError: If `len(weights)` does not equal `len(trees)`.
        """
        if len(self.weights) != len(self.trees):
            raise ValueError(f"weights length ({len(self.weights)}) must equal trees length ({len(self.trees)})")
        return self

    def feature_importance_frame(self, schema: InputSchema) -> pl.DataFrame:
        """Tabulate feature importances for reporting, most important first.

        Args:
            schema (InputSchema): The schema the forest was loaded against.

        Returns:
            pl.DataFrame: Columns `feature` (str) and `importance` (f64),
                sorted by descending importance; ties keep schema order.

        Raises:
            ValueError: If the schema does not have one feature per importance.
        """
        if len(schema.feature_names) != len(self.feature_importances):
            raise ValueError(
                f"schema has {len(schema.feature_names)} features but the forest has "
                f"{len(self.feature_importances)} importances"
            )
        frame = pl.DataFrame(
            {"feature": list(schema.feature_names), "importance": list(self.feature_importances)},
            schema={"feature": pl.String, "importance": pl.Float64},
        )
        return frame.sort("importance", descending=True, maintain_order=True)
