"""Pydantic model for collection data exports."""

from typing import Any

from pydantic import BaseModel, Field


class DataExport(BaseModel):
    """
    Envelope of an exported collection.

    Attributes:
        collection (str): Source collection name.
        exported_at (str): RFC 3339 timestamp of the export.
        count (int): Number of exported documents.
        data (list[dict]): Documents as plain JSON objects.
    """

    collection: str
    exported_at: str
    count: int = Field(ge=0)
    data: list[dict[str, Any]] = Field(default_factory=list)
