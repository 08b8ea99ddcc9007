"""Pydantic model for validation findings."""

from pydantic import BaseModel


class Violation(BaseModel):
    """
    A single broken constraint of a document.

    Attributes:
        field (str): Name of the offending field.
        rule_kind (str): Kind of the rule that failed ("required", "type", "range", "length", "format", "regex", "custom").
        message (str): Human readable correction hint.
    """

    field: str
    rule_kind: str
    message: str
