"""Custom exceptions raised while loading a decision forest from a PMML document.

Input failures (subclass ForestLoadError, itself a ValueError):
- StructuralViolationError: The document shape is not one this loader supports
  (model count, function kind, ensemble method, segment predicates, tree arity,
  predicate operators).
- ReferenceResolutionError: A feature name, category token, or mining field
  could not be resolved against the schema or its categorical encodings.
- ModelFormatError: Numeric text (scores, thresholds, record counts) could not
  be parsed or is out of range.

Internal failures:
- ForestInvariantError: The forest builder received inconsistent parts. This
  indicates a defect in the loader, not a bad document.

Every ForestLoadError is permanent for the document that caused it: a load
either completes or raises, and no partial forest is ever returned.
"""

from __future__ import annotations


class ForestLoadError(ValueError):
    """Base exception for all document-level load failures.

    Catch this to handle any rejection of a PMML document.

    Attributes:
        element (str | None): PMML element or attribute where the failure was
            detected, e.g. `"Segmentation@multipleModelMethod"`.
    """

    element: str | None

    def __init__(self, message: str, *, element: str | None = None) -> None:
        """Initialize ForestLoadError.

        Args:
            message (str): Description of the failure.
            element (str | None): PMML element or attribute involved.
        """
        super().__init__(message)
        self.element = element

    def __repr__(self) -> str:
        """Return detailed representation for debugging.

        Returns:
            str: Detailed string representation including message and element.
        """
        return f"{self.__class__.__name__}(message={str(self)!r}, element={self.element!r})"


class StructuralViolationError(ForestLoadError):
    """Raised when the document's structure is not a supported tree or tree ensemble.

    Examples:
        >>> err = StructuralViolationError("binary trees only", element="Node")
        >>> err.element
        'Node'
    """


class ReferenceResolutionError(ForestLoadError):
    """Raised when a name in the document cannot be resolved.

    Attributes:
        reference (str): The name or token that failed to resolve.
        available (list[str]): Names that would have resolved, when known.

    Examples:
        >>> err = ReferenceResolutionError(
        ...     "Unknown category 'D' for feature 'color'",
        ...     reference="D",
        ...     available=["A", "B", "C"],
        ... )
        >>> err.reference
        'D'
    """

    reference: str
    available: list[str]

    def __init__(
        self,
        message: str,
        *,
        reference: str,
        available: list[str] | None = None,
        element: str | None = None,
    ) -> None:
        """Initialize ReferenceResolutionError.

        Args:
            message (str): Description of the failure.
            reference (str): The name or token that failed to resolve.
            available (list[str] | None): Names that would have resolved.
            element (str | None): PMML element or attribute involved.
        """
        super().__init__(message, element=element)
        self.reference = reference
        self.available = available or []

    def __repr__(self) -> str:
        """Return detailed representation for debugging.

        Returns:
            str: Detailed string representation including the unresolved reference.
        """
        return (
            f"{self.__class__.__name__}("
            f"message={str(self)!r}, element={self.element!r}, "
            f"reference={self.reference!r}, available={self.available!r})"
        )


class ModelFormatError(ForestLoadError):
    """Raised when numeric text in the document is unparsable or out of range.

    Attributes:
        text (str | None): The offending text, or None when a required value
            was missing entirely.
    """

    text: str | None

    def __init__(self, message: str, *, text: str | None = None, element: str | None = None) -> None:
        """Initialize ModelFormatError.

        Args:
            message (str): Description of the failure.
            text (str | None): The offending text.
            element (str | None): PMML element or attribute involved.
        """
        super().__init__(message, element=element)
        self.text = text

    def __repr__(self) -> str:
        """Return detailed representation for debugging.

        Returns:
            str: Detailed string representation including the offending text.
        """
        return f"{self.__class__.__name__}(message={str(self)!r}, element={self.element!r}, text={self.text!r})"


class ForestInvariantError(RuntimeError):
    """Raised when a forest is assembled from inconsistent parts.

    Never caused by document content: extraction validates everything the
    builder relies on, so this signals a loader defect.
    """
