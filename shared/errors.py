"""Typed errors raised by the schema bridge.

Inference on an empty sample is not an error and has no exception here.
"""

from typing import Any


class SchemaBridgeError(Exception):
    """Base class for every expected failure of the schema bridge."""


class UnsupportedQuery(SchemaBridgeError):
    """A query breaches a restriction of the target store.

    Attributes:
        restriction (str): Short identifier of the breached store restriction.
        expression (str): Human readable rendering of the offending sub-expression.
    """

    def __init__(self, restriction: str, expression: str, message: str) -> None:
        super().__init__(f"{message} [restriction={restriction}, expression={expression}]")
        self.restriction = restriction
        self.expression = expression


class RuleConfigurationError(SchemaBridgeError):
    """A validation rule is declared in a way the engine cannot evaluate."""


class UnknownCustomRule(RuleConfigurationError):
    """A custom rule references a predicate id nobody registered."""

    def __init__(self, predicate_id: str, field: str) -> None:
        super().__init__(f"Custom rule '{predicate_id}' on field '{field}' has no registered predicate.")
        self.predicate_id = predicate_id
        self.field = field


class UnknownCollectionSchema(SchemaBridgeError):
    """No schema is registered for the requested collection."""

    def __init__(self, collection: str) -> None:
        super().__init__(f"Collection '{collection}' has no schema definition.")
        self.collection = collection


class SchemaImportMalformed(SchemaBridgeError):
    """A persisted schema or data export could not be parsed.

    Attributes:
        path (str): Dotted path of the offending element ("" for the document root).
    """

    def __init__(self, path: str, message: str) -> None:
        location = path or "<root>"
        super().__init__(f"Malformed schema at '{location}': {message}")
        self.path = path


class DocumentValidationError(SchemaBridgeError):
    """A document failed validation. Carries every violation found."""

    def __init__(self, collection: str, violations: list[Any]) -> None:
        lines = "; ".join(f"{v.field}: {v.message}" for v in violations)
        super().__init__(f"Document for '{collection}' has {len(violations)} violation(s): {lines}")
        self.collection = collection
        self.violations = violations


class StoreRequestError(SchemaBridgeError):
    """The document store answered a request with a non-success status."""

    def __init__(self, url: str, status_code: int, detail: str = "") -> None:
        super().__init__(f"Request to {url} failed with status {status_code}: {detail}")
        self.url = url
        self.status_code = status_code
        self.detail = detail
