from typing import Any, Literal

from pydantic import BaseModel, Field, model_validator

from shared.models.rules import PathRule
from shared.models.schema import CollectionSchema


class InferRequest(BaseModel):
    collection: str = Field(min_length=1)
    documents: list[dict[str, Any]] = []
    total: int | None = Field(default=None, ge=0)


class ValidateRequest(BaseModel):
    """Validate a document against an inline schema or a loaded collection schema."""
    document: dict[str, Any]
    collection: str | None = None
    collection_schema: CollectionSchema | None = None

    @model_validator(mode="after")
    def _schema_source(self) -> "ValidateRequest":
        if self.collection is None and self.collection_schema is None:
            raise ValueError("Either 'collection' or 'collection_schema' must be given.")
        return self


class RulesRenderRequest(BaseModel):
    rules: list[PathRule] = []
    preset: Literal["common"] | None = None
