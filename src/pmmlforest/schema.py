"""Input schema and categorical value encodings consulted while reading a forest."""

from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType
from typing import Final, Protocol

from pydantic import BaseModel, ConfigDict, Field, model_validator

from pmmlforest.exceptions import ReferenceResolutionError
from pmmlforest.pmml import DataDictionary

_CATEGORICAL_OPTYPES: Final[frozenset[str]] = frozenset({"categorical", "ordinal"})
_VALID_VALUE_PROPERTY: Final[str] = "valid"


class InputSchema(BaseModel):
    """Ordered feature names, the target, and the kind of prediction task.

    Attributes:
        feature_names (tuple[str, ...]): Feature names in mining-schema order.
            This order is authoritative for feature-index resolution.
        target_feature_index (int): Index of the target in `feature_names`.
        is_classification (bool): True for classification, False for regression.

    Examples:
        >>> schema = InputSchema(
        ...     feature_names=("age", "color", "label"),
        ...     target_feature_index=2,
        ...     is_classification=True,
        ... )
        >>> schema.feature_index("color")
        1
        >>> schema.target_feature
        'label'
    """

    model_config = ConfigDict(frozen=True)

    feature_names: tuple[str, ...] = Field(
        min_length=1,
        description="Feature names in mining-schema order.",
    )
    target_feature_index: int = Field(
        ge=0,
        description="Index of the target feature in feature_names.",
    )
    is_classification: bool = Field(
        description="True when the model predicts a category, False when it predicts a number.",
    )

    @model_validator(mode="after")
    def _validate_names_and_target(self) -> InputSchema:
        """Validate that feature names are unique and the target index is in range.

        Returns:
            InputSchema: The validated model instance.

        Raises:
            ValueError: If names repeat or the target index is out of range.
        """
        seen: set[str] = set()
        duplicates: list[str] = []
        for name in self.feature_names:
            if name in seen:
                duplicates.append(name)
            seen.add(name)
        if duplicates:
            raise ValueError(f"feature_names must be unique, duplicated: {sorted(set(duplicates))}")
        if self.target_feature_index >= len(self.feature_names):
            raise ValueError(
                f"target_feature_index {self.target_feature_index} out of range for {len(self.feature_names)} features"
            )
        return self

    @property
    def target_feature(self) -> str:
        """Name of the target feature."""
        return self.feature_names[self.target_feature_index]

    def feature_index(self, name: str, *, element: str | None = None) -> int:
        """Resolve a feature name to its index.

        Args:
            name (str): Feature name to resolve.
            element (str | None): PMML element reported if resolution fails.

        Returns:
            int: Position of `name` in `feature_names`.

        Raises:
            ReferenceResolutionError: If `name` is not a schema feature.
        """
        try:
            return self.feature_names.index(name)
        except ValueError:
            raise ReferenceResolutionError(
                f"Feature '{name}' is not in the schema",
                reference=name,
                available=list(self.feature_names),
                element=element,
            ) from None


class EncodingProvider(Protocol):
    """Supplies the category-to-code map of a categorical feature."""

    def encoding_of(self, feature_index: int) -> Mapping[str, int]:
        """Return the complete category-to-code map for a feature.

        Args:
            feature_index (int): Index of the feature in the schema.

        Returns:
            Mapping[str, int]: Every declared category mapped to a dense code.
        """
        ...


class CategoricalValueEncodings:
    """Category encodings for every categorical feature of a schema.

    Each map is a bijection from category text onto the dense codes
    `0..cardinality-1`; insertion order is code order.

    Examples:
        >>> encodings = CategoricalValueEncodings({1: {"red": 0, "green": 1}})
        >>> encodings.encoding_of(1)["green"]
        1
        >>> encodings.cardinality_of(1)
        2
    """

    def __init__(self, encodings: Mapping[int, Mapping[str, int]]) -> None:
        """Initialize CategoricalValueEncodings.

        Args:
            encodings (Mapping[int, Mapping[str, int]]): Feature index to
                category-to-code map.

        Raises:
            ReferenceResolutionError: If a map's codes are not exactly
                `0..len(map)-1`.
        """
        frozen: dict[int, MappingProxyType[str, int]] = {}
        for feature_index, encoding in encodings.items():
            if sorted(encoding.values()) != list(range(len(encoding))):
                raise ReferenceResolutionError(
                    f"Encoding for feature {feature_index} is not a dense code range",
                    reference=str(feature_index),
                    available=list(encoding),
                )
            ordered = dict(sorted(encoding.items(), key=lambda item: item[1]))
            frozen[feature_index] = MappingProxyType(ordered)
        self._encodings = MappingProxyType(frozen)

    @classmethod
    def from_data_dictionary(cls, data_dictionary: DataDictionary, schema: InputSchema) -> CategoricalValueEncodings:
        """Build encodings from the categorical fields of a data dictionary.

        Valid values are coded in declaration order. Fields that are not
        schema features are skipped.

        Args:
            data_dictionary (DataDictionary): The document's data dictionary.
            schema (InputSchema): The schema whose feature indexes key the result.

        Returns:
            CategoricalValueEncodings: Encodings for every categorical schema feature.
        """
        encodings: dict[int, dict[str, int]] = {}
        for data_field in data_dictionary.data_fields:
            if data_field.optype not in _CATEGORICAL_OPTYPES or data_field.name not in schema.feature_names:
                continue
            categories = [value.value for value in data_field.values if value.value_property == _VALID_VALUE_PROPERTY]
            encodings[schema.feature_index(data_field.name)] = {
                category: code for code, category in enumerate(dict.fromkeys(categories))
            }
        return cls(encodings)

    @property
    def feature_indexes(self) -> list[int]:
        """Indexes of the features that have an encoding, ascending."""
        return sorted(self._encodings)

    def encoding_of(self, feature_index: int) -> Mapping[str, int]:
        """Return the category-to-code map for a feature.

        Args:
            feature_index (int): Index of the feature in the schema.

        Returns:
            Mapping[str, int]: Read-only category-to-code map.

        Raises:
            ReferenceResolutionError: If the feature has no categorical encoding.
        """
        try:
            return self._encodings[feature_index]
        except KeyError:
            raise ReferenceResolutionError(
                f"Feature {feature_index} has no categorical encoding",
                reference=str(feature_index),
                available=[str(index) for index in self.feature_indexes],
            ) from None

    def cardinality_of(self, feature_index: int) -> int:
        """Return the number of categories declared for a feature.

        Args:
            feature_index (int): Index of the feature in the schema.

        Returns:
            int: Size of the feature's category domain.
        """
        return len(self.encoding_of(feature_index))

    def __repr__(self) -> str:
        """Return detailed representation for debugging.

        Returns:
            str: The feature indexes and their category lists.
        """
        summary = {index: list(encoding) for index, encoding in self._encodings.items()}
        return f"{self.__class__.__name__}({summary!r})"
