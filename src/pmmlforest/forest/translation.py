"""Translation of raw PMML tree nodes into decision-forest nodes.

Translation walks the raw tree with an explicit stack instead of recursion,
so document depth is limited by memory rather than by the interpreter's
recursion limit. Pass `max_depth` to reject deeper trees outright. Nodes are
visited depth-first, negative child before positive, so the first error found
is the same one a recursive walk would report.
"""

from __future__ import annotations

import math
import re
from collections.abc import Mapping
from typing import Final, NamedTuple

from pmmlforest.exceptions import ModelFormatError, ReferenceResolutionError, StructuralViolationError
from pmmlforest.forest.models import (
    CategoricalDecision,
    CategoricalPrediction,
    Decision,
    DecisionNode,
    NumericDecision,
    NumericPrediction,
    Prediction,
    TerminalNode,
    TreeNode,
)
from pmmlforest.pmml import Array, Node, SimplePredicate, SimpleSetPredicate, TruePredicate
from pmmlforest.schema import EncodingProvider, InputSchema

# ---------------------------------------------------------------------------
# Module-level constants
# ---------------------------------------------------------------------------

GREATER_OR_EQUAL: Final[str] = "greaterOrEqual"
GREATER_THAN: Final[str] = "greaterThan"
SUPPORTED_RELATIONAL_OPERATORS: Final[frozenset[str]] = frozenset({GREATER_OR_EQUAL, GREATER_THAN})

IS_IN: Final[str] = "isIn"
IS_NOT_IN: Final[str] = "isNotIn"
SUPPORTED_SET_OPERATORS: Final[frozenset[str]] = frozenset({IS_IN, IS_NOT_IN})

# XML Schema / Java double lexical forms; rejects Python-only spellings such as "1_000".
_DECIMAL_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"^[+-]?(?:(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?|INF|Infinity|NaN)$",
    re.ASCII,
)

# A double-quoted token (only `\"` is unescaped inside it) or a bare run of non-space characters.
_ARRAY_TOKEN_PATTERN: Final[re.Pattern[str]] = re.compile(r'(?<!\S)"((?:[^"\\]|\\.)*)"(?!\S)|(?<!\S)([^\s"]+)(?!\S)')


class _PendingDecision(NamedTuple):
    """Marker for a decision node whose two subtrees are still being translated.

    Attributes:
        decision (Decision): The resolved decision of the node.
    """

    decision: Decision


# ---------------------------------------------------------------------------
# Public interface
# ---------------------------------------------------------------------------


def translate_node(
    root: Node,
    encodings: EncodingProvider,
    schema: InputSchema,
    *,
    max_depth: int | None = None,
) -> TreeNode:
    """Translate a raw tree node and all of its descendants.

    Args:
        root (Node): Raw root node of the (sub)tree.
        encodings (EncodingProvider): Category encodings of the schema's features.
        schema (InputSchema): Feature names, target, and task kind.
        max_depth (int | None): Maximum number of decisions on any root-to-leaf
            path; `None` for no limit.

    Returns:
        TreeNode: The translated tree.

    Raises:
        ValueError: If `max_depth` is negative.
        StructuralViolationError: If a node is not binary, its children are not
            one default and one predicated branch, a predicate or operator is
            unsupported, or the tree is deeper than `max_depth`.
        ReferenceResolutionError: If a feature or category cannot be resolved.
        ModelFormatError: If a score, threshold or record count is unparsable.
    """
    if max_depth is not None and max_depth < 0:
        raise ValueError(f"max_depth must be non-negative, got {max_depth}")

    built: list[TreeNode] = []
    pending: list[tuple[Node, int] | _PendingDecision] = [(root, 0)]
    while pending:
        item = pending.pop()
        if isinstance(item, _PendingDecision):
            positive_child = built.pop()
            negative_child = built.pop()
            built.append(
                DecisionNode(decision=item.decision, negative_child=negative_child, positive_child=positive_child)
            )
            continue

        node, depth = item
        if not node.nodes:
            built.append(TerminalNode(prediction=translate_prediction(node, encodings, schema)))
            continue

        negative, positive = _split_children(node)
        if max_depth is not None and depth >= max_depth:
            raise StructuralViolationError(f"Tree is deeper than max_depth={max_depth}", element="Node")
        decision = translate_decision(node, positive, encodings, schema)
        pending.append(_PendingDecision(decision))
        pending.append((positive, depth + 1))
        pending.append((negative, depth + 1))

    return built.pop()


def translate_prediction(node: Node, encodings: EncodingProvider, schema: InputSchema) -> Prediction:
    """Build the prediction of a terminal node.

    Nodes carrying score distributions become categorical predictions over the
    target's full category domain; all other leaves become numeric predictions.

    Args:
        node (Node): A raw node without children.
        encodings (EncodingProvider): Category encodings of the schema's features.
        schema (InputSchema): Feature names, target, and task kind.

    Returns:
        Prediction: The leaf's prediction.

    Raises:
        ReferenceResolutionError: If a distribution names an unknown target category.
        StructuralViolationError: If a distribution names a category twice.
        ModelFormatError: If the score or a record count is unparsable.
    """
    if node.score_distributions:
        target_encoding = encodings.encoding_of(schema.target_feature_index)
        _check_dense_encoding(target_encoding, schema.target_feature)
        counts = [0] * len(target_encoding)
        seen: set[str] = set()
        for distribution in node.score_distributions:
            if distribution.value in seen:
                raise StructuralViolationError(
                    f"Category '{distribution.value}' appears twice in the score distribution of node {node.id!r}",
                    element="ScoreDistribution",
                )
            seen.add(distribution.value)
            code = _resolve_category(distribution.value, target_encoding, schema.target_feature, "ScoreDistribution")
            counts[code] = round_record_count(distribution.record_count, element="ScoreDistribution@recordCount")
        return CategoricalPrediction(counts=tuple(counts))

    return NumericPrediction(
        value=parse_decimal(node.score, element="Node@score"),
        count=round_record_count(node.record_count, element="Node@recordCount"),
    )


def translate_decision(
    node: Node,
    positive: Node,
    encodings: EncodingProvider,
    schema: InputSchema,
) -> Decision:
    """Build the decision of an internal node from its positive child's predicate.

    Args:
        node (Node): The raw internal node.
        positive (Node): The child whose predicate is not trivially true.
        encodings (EncodingProvider): Category encodings of the schema's features.
        schema (InputSchema): Feature names, target, and task kind.

    Returns:
        Decision: A `NumericDecision` for relational predicates or a
            `CategoricalDecision` for set predicates.

    Raises:
        StructuralViolationError: If the predicate or its operator is unsupported,
            or the declared default child is not one of the node's children.
        ReferenceResolutionError: If the field or a category cannot be resolved.
        ModelFormatError: If the threshold is unparsable.
    """
    if node.default_child is not None and node.default_child not in {child.id for child in node.nodes}:
        raise StructuralViolationError(
            f"defaultChild {node.default_child!r} of node {node.id!r} is not one of its children",
            element="Node@defaultChild",
        )
    default_to_positive = positive.id is not None and positive.id == node.default_child

    predicate = positive.predicate
    if isinstance(predicate, SimplePredicate):
        return _numeric_decision(predicate, default_to_positive, schema)
    if isinstance(predicate, SimpleSetPredicate):
        return _categorical_decision(predicate, default_to_positive, encodings, schema)
    raise StructuralViolationError(f"Unsupported predicate {predicate.kind!r} on node {positive.id!r}", element="Node")


# ---------------------------------------------------------------------------
# Public helpers -- Text and count parsing
# ---------------------------------------------------------------------------


def parse_decimal(text: str | None, *, element: str) -> float:
    """Parse decimal text from the document.

    Args:
        text (str | None): The text to parse; surrounding whitespace is ignored.
        element (str): PMML element or attribute reported on failure.

    Returns:
        float: The parsed value. Infinities are allowed; NaN is not.

    Raises:
        ModelFormatError: If `text` is missing, not a decimal number, or NaN.

    Examples:
        >>> parse_decimal(" 12.5 ", element="Node@score")
        12.5
        >>> parse_decimal("-INF", element="Node@score")
        -inf
    """
    if text is None:
        raise ModelFormatError(f"Missing numeric value for {element}", element=element)
    stripped = text.strip()
    if not _DECIMAL_PATTERN.match(stripped):
        raise ModelFormatError(f"Cannot parse {text!r} as a number for {element}", text=text, element=element)
    value = float(stripped)
    if math.isnan(value):
        raise ModelFormatError(f"NaN is not a valid value for {element}", text=text, element=element)
    return value


def round_record_count(record_count: float | None, *, element: str) -> int:
    """Round a possibly fractional record count to the nearest integer, halves up.

    Args:
        record_count (float | None): The declared record count.
        element (str): PMML element or attribute reported on failure.

    Returns:
        int: The rounded count.

    Raises:
        ModelFormatError: If the count is missing, negative, or not finite.

    Examples:
        >>> round_record_count(9.6, element="Node@recordCount")
        10
        >>> round_record_count(2.5, element="Node@recordCount")
        3
    """
    if record_count is None:
        raise ModelFormatError(f"Missing record count for {element}", element=element)
    if not math.isfinite(record_count) or record_count < 0:
        raise ModelFormatError(
            f"Record count must be finite and non-negative for {element}, got {record_count}",
            text=str(record_count),
            element=element,
        )
    whole = math.floor(record_count)
    return whole + 1 if record_count - whole >= 0.5 else whole


def parse_array_tokens(array: Array) -> list[str]:
    """Split a PMML array into its tokens.

    Tokens are separated by whitespace; a token containing whitespace is
    wrapped in double quotes, with embedded quotes escaped as `\\"`. Outside
    quotes a backslash is an ordinary character.

    Args:
        array (Array): The raw array.

    Returns:
        list[str]: The tokens, in document order.

    Raises:
        ModelFormatError: If a quote is unterminated or stray, or the token
            count differs from the array's declared `n`.

    Examples:
        >>> parse_array_tokens(Array(value='A "New York" C'))
        ['A', 'New York', 'C']
    """
    text = array.value
    tokens: list[str] = []
    position = 0
    for match in _ARRAY_TOKEN_PATTERN.finditer(text):
        if text[position : match.start()].strip():
            break
        quoted, bare = match.groups()
        tokens.append(bare if quoted is None else quoted.replace('\\"', '"'))
        position = match.end()
    if text[position:].strip():
        raise ModelFormatError(
            f"Cannot parse array: unterminated or misplaced quote near {text[position:].strip()[:20]!r}",
            text=text,
            element="Array",
        )
    if array.n is not None and array.n != len(tokens):
        raise ModelFormatError(
            f"Array declares n={array.n} but holds {len(tokens)} values",
            text=text,
            element="Array@n",
        )
    return tokens


# ---------------------------------------------------------------------------
# Private helpers
# ---------------------------------------------------------------------------


def _split_children(node: Node) -> tuple[Node, Node]:
    """Return the `(negative, positive)` children of a raw internal node.

    Args:
        node (Node): A raw node with at least one child.

    Returns:
        tuple[Node, Node]: The child with the trivially-true predicate, then
            the child with the real predicate.

    Raises:
        StructuralViolationError: If the node does not have exactly two
            children, or not exactly one of them has a `True` predicate.
    """
    if len(node.nodes) != 2:
        raise StructuralViolationError(
            f"Binary trees only: node {node.id!r} has {len(node.nodes)} children",
            element="Node",
        )
    first, second = node.nodes
    first_is_default = isinstance(first.predicate, TruePredicate)
    second_is_default = isinstance(second.predicate, TruePredicate)
    if first_is_default == second_is_default:
        raise StructuralViolationError(
            f"Exactly one child of node {node.id!r} must have a True predicate, "
            f"found {int(first_is_default) + int(second_is_default)}",
            element="Node",
        )
    return (first, second) if first_is_default else (second, first)


def _numeric_decision(predicate: SimplePredicate, default_to_positive: bool, schema: InputSchema) -> NumericDecision:
    """Build a `value >= threshold` decision from a relational predicate.

    Args:
        predicate (SimplePredicate): The positive child's predicate.
        default_to_positive (bool): Whether missing values take the positive branch.
        schema (InputSchema): Feature names, target, and task kind.

    Returns:
        NumericDecision: The canonical decision.

    Raises:
        StructuralViolationError: If the operator is not greaterOrEqual or greaterThan.
        ReferenceResolutionError: If the field is not a schema feature.
        ModelFormatError: If the threshold is unparsable.
    """
    if predicate.operator not in SUPPORTED_RELATIONAL_OPERATORS:
        raise StructuralViolationError(
            f"Unsupported operator {predicate.operator!r}; expected one of {sorted(SUPPORTED_RELATIONAL_OPERATORS)}",
            element="SimplePredicate@operator",
        )
    threshold = parse_decimal(predicate.value, element="SimplePredicate@value")
    if predicate.operator == GREATER_THAN:
        # "> t" is ">= the next double above t"
        threshold = math.nextafter(threshold, math.inf)
    return NumericDecision(
        feature_index=schema.feature_index(predicate.field, element="SimplePredicate@field"),
        threshold=threshold,
        default_to_positive=default_to_positive,
    )


def _categorical_decision(
    predicate: SimpleSetPredicate,
    default_to_positive: bool,
    encodings: EncodingProvider,
    schema: InputSchema,
) -> CategoricalDecision:
    """Build an active-category decision from a set-membership predicate.

    Args:
        predicate (SimpleSetPredicate): The positive child's predicate.
        default_to_positive (bool): Whether missing values take the positive branch.
        encodings (EncodingProvider): Category encodings of the schema's features.
        schema (InputSchema): Feature names, target, and task kind.

    Returns:
        CategoricalDecision: Decision whose active categories are the listed
            ones (`isIn`) or all but the listed ones (`isNotIn`).

    Raises:
        StructuralViolationError: If the operator is not isIn or isNotIn.
        ReferenceResolutionError: If the field or a listed category is unknown.
        ModelFormatError: If the array text is malformed.
    """
    if predicate.boolean_operator not in SUPPORTED_SET_OPERATORS:
        raise StructuralViolationError(
            f"Unsupported operator {predicate.boolean_operator!r}; expected one of {sorted(SUPPORTED_SET_OPERATORS)}",
            element="SimpleSetPredicate@booleanOperator",
        )
    feature_index = schema.feature_index(predicate.field, element="SimpleSetPredicate@field")
    encoding = encodings.encoding_of(feature_index)
    _check_dense_encoding(encoding, predicate.field)

    listed_value = predicate.boolean_operator == IS_IN
    active = [not listed_value] * len(encoding)
    for token in parse_array_tokens(predicate.array):
        active[_resolve_category(token, encoding, predicate.field, "SimpleSetPredicate/Array")] = listed_value
    return CategoricalDecision(
        feature_index=feature_index,
        active_categories=tuple(active),
        default_to_positive=default_to_positive,
    )


def _resolve_category(category: str, encoding: Mapping[str, int], feature_name: str, element: str) -> int:
    """Look up the code of a category.

    Args:
        category (str): Category text from the document.
        encoding (Mapping[str, int]): The feature's category-to-code map.
        feature_name (str): Feature name reported on failure.
        element (str): PMML element reported on failure.

    Returns:
        int: The category's code.

    Raises:
        ReferenceResolutionError: If the category is not in the map.
    """
    try:
        return encoding[category]
    except KeyError:
        raise ReferenceResolutionError(
            f"Unknown category {category!r} for feature '{feature_name}'",
            reference=category,
            available=list(encoding),
            element=element,
        ) from None


def _check_dense_encoding(encoding: Mapping[str, int], feature_name: str) -> None:
    """Reject empty encodings and encodings whose codes are not exactly `0..len-1`."""
    codes = sorted(encoding.values())
    if not codes or codes != list(range(len(codes))):
        raise ReferenceResolutionError(
            f"Category codes of feature '{feature_name}' are not a dense, non-empty range",
            reference=feature_name,
            element="DataField",
        )
