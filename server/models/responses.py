from typing import Any

from pydantic import BaseModel

from shared.models.schema import CollectionSchema, FieldObservation
from shared.models.validation import Violation


class InferResponse(BaseModel):
    collection: str
    total: int
    observations: list[FieldObservation]
    collection_schema: CollectionSchema


class ValidateResponse(BaseModel):
    collection: str
    valid: bool
    violations: list[Violation]


class QueryCompileResponse(BaseModel):
    collection: str
    structured_query: dict[str, Any]


class RulesRenderResponse(BaseModel):
    rules: str
