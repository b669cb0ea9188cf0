"""pmmlforest: Load PMML tree models and tree ensembles as immutable decision forests."""

from loguru import logger

from pmmlforest.exceptions import (
    ForestInvariantError,
    ForestLoadError,
    ModelFormatError,
    ReferenceResolutionError,
    StructuralViolationError,
)
from pmmlforest.forest import DecisionForest, read_forest, read_pmml
from pmmlforest.logging import PACKAGE_NAME, enable_logging
from pmmlforest.pmml import PMMLDocument
from pmmlforest.schema import CategoricalValueEncodings, EncodingProvider, InputSchema

logger.disable(PACKAGE_NAME)  # noqa: RUF067 - Disable logging for the pmmlforest package by default

__all__ = [
    "CategoricalValueEncodings",
    "DecisionForest",
    "EncodingProvider",
    "ForestInvariantError",
    "ForestLoadError",
    "InputSchema",
    "ModelFormatError",
    "PMMLDocument",
    "ReferenceResolutionError",
    "StructuralViolationError",
    "enable_logging",
    "read_forest",
    "read_pmml",
]
