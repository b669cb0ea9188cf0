"""Pydantic models of the raw PMML object graph consumed by the forest reader.

These models describe the subset of PMML 4.x that tree and tree-ensemble
documents use. They are the contract with the upstream document parser: any
producer of a nested mapping that uses PMML's own attribute and element names
(``functionName``, ``recordCount``, ``defaultChild``, ...) can be validated
into a ``PMMLDocument`` with ``PMMLDocument.model_validate``. Snake-case field
names are accepted as well.

The models are deliberately loose. Operators, combination methods and function
names stay plain strings, and unsupported model types are retained as
``UnsupportedModel``; rejecting them is the reader's job, so that every
rejection surfaces as a ``ForestLoadError`` rather than a validation error.

Nested ``Node`` mappings are validated leaves first by an explicit stack, so a
document tree can be far deeper than pydantic's own nesting limit.
"""

from __future__ import annotations

from typing import Annotated, Any, Final, Literal

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag, model_validator
from pydantic.alias_generators import to_camel


class PMMLElement(BaseModel):
    """Common configuration for raw PMML elements."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        coerce_numbers_to_str=True,
        frozen=True,
    )


# ---------------------------------------------------------------------------
# Data dictionary and mining schema
# ---------------------------------------------------------------------------


class Value(PMMLElement):
    """One declared value of a data field.

    Attributes:
        value (str): The category text.
        value_property (str): `"valid"`, `"invalid"` or `"missing"`.
    """

    value: str
    value_property: str = Field(default="valid", alias="property")


class DataField(PMMLElement):
    """A field declared in the data dictionary.

    Attributes:
        name (str): Field name.
        optype (str): `"categorical"`, `"ordinal"` or `"continuous"`.
        data_type (str): PMML data type, e.g. `"string"` or `"double"`.
        values (list[Value]): Declared category domain, in declaration order.
    """

    name: str
    optype: str
    data_type: str = "string"
    values: list[Value] = Field(default_factory=list)


class DataDictionary(PMMLElement):
    """The document-level list of field declarations."""

    data_fields: list[DataField] = Field(default_factory=list)


class MiningField(PMMLElement):
    """A model input or target, with its optional importance.

    Attributes:
        name (str): Field name; must match the schema feature at the same position.
        usage_type (str): `"active"`, `"predicted"`, `"target"`, ...
        importance (float | None): Relative importance of the field, if declared.
    """

    name: str
    usage_type: str = "active"
    importance: float | None = None


class MiningSchema(PMMLElement):
    """Ordered list of the mining fields a model uses."""

    mining_fields: list[MiningField] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Predicates
# ---------------------------------------------------------------------------


class TruePredicate(PMMLElement):
    """The trivial predicate that always holds."""

    kind: Literal["True"] = "True"


class FalsePredicate(PMMLElement):
    """The predicate that never holds."""

    kind: Literal["False"] = "False"


class SimplePredicate(PMMLElement):
    """A relational comparison of one field against a constant.

    Attributes:
        field (str): Field name.
        operator (str): PMML operator name, e.g. `"greaterThan"`.
        value (str | None): Comparison constant as text.
    """

    kind: Literal["SimplePredicate"] = "SimplePredicate"
    field: str
    operator: str
    value: str | None = None


class Array(PMMLElement):
    """A whitespace-delimited PMML array; tokens may be double-quoted.

    Attributes:
        array_type (str): `"string"`, `"int"` or `"real"`.
        n (int | None): Declared number of tokens.
        value (str): The raw array text.
    """

    array_type: str = Field(default="string", alias="type")
    n: int | None = None
    value: str = ""


class SimpleSetPredicate(PMMLElement):
    """A set-membership test of one field against an array of values.

    Attributes:
        field (str): Field name.
        boolean_operator (str): `"isIn"` or `"isNotIn"`.
        array (Array): The listed values.
    """

    kind: Literal["SimpleSetPredicate"] = "SimpleSetPredicate"
    field: str
    boolean_operator: str
    array: Array


class CompoundPredicate(PMMLElement):
    """A boolean combination of nested predicates."""

    kind: Literal["CompoundPredicate"] = "CompoundPredicate"
    boolean_operator: str
    predicates: list[Predicate] = Field(default_factory=list)


Predicate = Annotated[
    TruePredicate | FalsePredicate | SimplePredicate | SimpleSetPredicate | CompoundPredicate,
    Field(discriminator="kind"),
]


# ---------------------------------------------------------------------------
# Tree nodes
# ---------------------------------------------------------------------------


class ScoreDistribution(PMMLElement):
    """Record count observed for one target category at a node.

    Attributes:
        value (str): Target category.
        record_count (float): Number of training records, possibly fractional.
        probability (float | None): Optional declared probability.
    """

    value: str
    record_count: float
    probability: float | None = None


class Node(PMMLElement):
    """A raw tree node.

    Attributes:
        id (str | None): Node identifier, referenced by a parent's `default_child`.
        score (str | None): Scalar score text for numeric leaves.
        record_count (float | None): Training records reaching the node.
        default_child (str | None): Id of the child followed on missing values.
        predicate (Predicate): Gating predicate for entering this node.
        nodes (list[Node]): Child nodes, in document order.
        score_distributions (list[ScoreDistribution]): Per-category counts for
            categorical leaves.
    """

    id: str | None = None
    score: str | None = None
    record_count: float | None = None
    default_child: str | None = None
    predicate: Predicate
    nodes: list[Node] = Field(default_factory=list)
    score_distributions: list[ScoreDistribution] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _build_children_bottom_up(cls, data: Any) -> Any:
        """Validate nested child mappings deepest first, without recursion.

        pydantic validates nested models recursively and rejects nesting a few
        hundred levels deep, so every descendant mapping is validated on its
        own, leaves first, and handed to its parent as a built `Node`.

        Args:
            data (Any): The raw input of this node.

        Returns:
            Any: `data`, with child mappings replaced by validated nodes.
        """
        if not _has_child_mappings(data):
            return data

        built: dict[int, Node] = {}
        stack: list[tuple[dict[str, Any], bool]] = [(data, False)]
        while stack:
            raw, children_done = stack.pop()
            children = raw["nodes"]
            if not children_done:
                stack.append((raw, True))
                stack.extend((child, False) for child in children if _has_child_mappings(child))
                continue
            resolved = [built.get(id(child), child) for child in children]
            if raw is data:
                return {**raw, "nodes": resolved}
            built[id(raw)] = cls.model_validate({**raw, "nodes": resolved})
        return data


def _has_child_mappings(data: Any) -> bool:
    """Return whether a raw node mapping still holds unvalidated child mappings."""
    if not isinstance(data, dict):
        return False
    children = data.get("nodes")
    return isinstance(children, list) and any(isinstance(child, dict) for child in children)


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------

SUPPORTED_MODEL_TYPES: Final[frozenset[str]] = frozenset({"TreeModel", "MiningModel"})
_UNSUPPORTED_TAG: Final[str] = "unsupported"


class TreeModel(PMMLElement):
    """A single decision tree model.

    Attributes:
        model_type (Literal["TreeModel"]): Discriminator field.
        model_name (str | None): Optional model name.
        function_name (str): `"classification"` or `"regression"`.
        mining_schema (MiningSchema): The model's inputs and target.
        node (Node): Root node of the tree.
    """

    model_type: Literal["TreeModel"] = "TreeModel"
    model_name: str | None = None
    function_name: str
    mining_schema: MiningSchema = Field(default_factory=MiningSchema)
    node: Node


class Segment(PMMLElement):
    """One member of an ensemble.

    Attributes:
        id (str | None): Segment identifier.
        weight (float | None): Declared weight; the reader requires it.
        predicate (Predicate): Gating predicate selecting records for this segment.
        model (Model): The segment's sub-model.
    """

    id: str | None = None
    weight: float | None = None
    predicate: Predicate
    model: Model


class Segmentation(PMMLElement):
    """The ensemble members and the rule combining their outputs."""

    multiple_model_method: str
    segments: list[Segment] = Field(default_factory=list)


class MiningModel(PMMLElement):
    """An ensemble wrapper around segment sub-models.

    Attributes:
        model_type (Literal["MiningModel"]): Discriminator field.
        model_name (str | None): Optional model name.
        function_name (str): `"classification"` or `"regression"`.
        mining_schema (MiningSchema): The model's inputs and target.
        segmentation (Segmentation): The ensemble members.
    """

    model_type: Literal["MiningModel"] = "MiningModel"
    model_name: str | None = None
    function_name: str
    mining_schema: MiningSchema = Field(default_factory=MiningSchema)
    segmentation: Segmentation


class UnsupportedModel(PMMLElement):
    """Any other PMML model element, kept only so it can be rejected by name."""

    model_config = ConfigDict(extra="allow")

    model_type: str
    model_name: str | None = None
    function_name: str | None = None
    mining_schema: MiningSchema = Field(default_factory=MiningSchema)


def _model_tag(value: Any) -> str:
    """Select the model class for a raw model mapping or instance.

    Args:
        value (Any): A mapping being validated, or an already-built model.

    Returns:
        str: The union tag: the model type when supported, else `"unsupported"`.
    """
    if isinstance(value, dict):
        model_type = value.get("modelType", value.get("model_type"))
    else:
        model_type = getattr(value, "model_type", None)
    return model_type if model_type in SUPPORTED_MODEL_TYPES else _UNSUPPORTED_TAG


Model = Annotated[
    Annotated[TreeModel, Tag("TreeModel")]
    | Annotated[MiningModel, Tag("MiningModel")]
    | Annotated[UnsupportedModel, Tag(_UNSUPPORTED_TAG)],
    Discriminator(_model_tag),
]


class PMMLDocument(PMMLElement):
    """A parsed PMML document.

    Attributes:
        version (str | None): Declared PMML version.
        data_dictionary (DataDictionary): Field declarations and category domains.
        models (list[Model]): Top-level models, in document order.

    Examples:
        >>> document = PMMLDocument.model_validate({
        ...     "dataDictionary": {"dataFields": [{"name": "x", "optype": "continuous"}]},
        ...     "models": [
        ...         {
        ...             "modelType": "TreeModel",
        ...             "functionName": "regression",
        ...             "node": {"predicate": {"kind": "True"}, "score": "1.5", "recordCount": 4},
        ...         }
        ...     ],
        ... })
        >>> document.models[0].node.score
        '1.5'
    """

    version: str | None = None
    data_dictionary: DataDictionary = Field(default_factory=DataDictionary)
    models: list[Model] = Field(default_factory=list)


CompoundPredicate.model_rebuild()
Node.model_rebuild()
Segment.model_rebuild()
Segmentation.model_rebuild()
MiningModel.model_rebuild()
PMMLDocument.model_rebuild()
