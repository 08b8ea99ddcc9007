"""Generic stored document model, independent of the store backend."""

from datetime import datetime

from pydantic import BaseModel, Field

from shared.models.value import MapValue


class StoreDocument(BaseModel):
    """
    A single document as returned by a store client.
    """
    engine: str
    id: str
    name: str | None = None
    fields: MapValue = Field(default_factory=MapValue)
    create_time: datetime | None = None
    update_time: datetime | None = None


class StoreDocumentsListResponse(BaseModel):
    """
    One page of a collection listing.
    """
    engine: str
    documents: list[StoreDocument] = []
    nextPageToken: str | None = None
