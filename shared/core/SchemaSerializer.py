"""JSON persistence of schema documents and collection data exports.

Schema files look like::

    {"version": "1.0.0", "collections": {"users": {"name": "users", "fields": [...], ...}}}

Default values are written in the store's wire encoding; plain JSON
defaults are accepted on import. Older files that spell range and length
bounds as separate rule types are upgraded on the fly.
"""

import json
import os
from datetime import datetime
from typing import Any, Sequence

import pytz
from pydantic import ValidationError

from shared.errors import SchemaImportMalformed
from shared.models.export import DataExport
from shared.models.schema import SchemaDocument
from shared.models.value import MapValue, document_from_python


def export_schema(doc: SchemaDocument) -> dict:
    """Plain JSON-compatible mapping of a schema document."""
    return doc.model_dump(mode="json")


def dumps_schema(doc: SchemaDocument) -> str:
    """Pretty-printed JSON text of a schema document."""
    return json.dumps(export_schema(doc), indent=2, ensure_ascii=False)


def import_schema(source: str | bytes | dict) -> SchemaDocument:
    """Parse a schema document from JSON text or an already decoded mapping.

    Args:
        source (str | bytes | dict): JSON text, UTF-8 bytes or a decoded mapping.

    Returns:
        SchemaDocument: The parsed document.

    Raises:
        SchemaImportMalformed: If the JSON cannot be decoded or does not describe a schema document.
    """
    raw = _decode(source)
    if not isinstance(raw, dict):
        raise SchemaImportMalformed("", f"expected a JSON object, got {type(raw).__name__}")
    try:
        return SchemaDocument.model_validate(raw)
    except ValidationError as e:
        raise _malformed(e) from e


def build_data_export(collection: str, documents: Sequence[MapValue | dict], exported_at: datetime | None = None) -> DataExport:
    """Wrap documents of a collection in an export envelope.

    Args:
        collection (str): Source collection name.
        documents (Sequence[MapValue | dict]): Exported documents.
        exported_at (datetime | None): Export time. Defaults to now in the TIMEZONE zone.

    Returns:
        DataExport: The envelope; documents are stored as plain JSON objects.
    """
    if exported_at is None:
        exported_at = datetime.now(pytz.timezone(os.getenv("TIMEZONE", "UTC")))
    elif exported_at.tzinfo is None:
        exported_at = pytz.UTC.localize(exported_at)

    data = [document_from_python(doc).to_json() for doc in documents]
    return DataExport(collection=collection, exported_at=exported_at.isoformat(), count=len(data), data=data)


def dumps_data_export(export: DataExport) -> str:
    return json.dumps(export.model_dump(mode="json"), indent=2, ensure_ascii=False)


def parse_data_export(source: str | bytes | dict) -> DataExport:
    """Parse an export envelope.

    Raises:
        SchemaImportMalformed: If the text is not a valid export envelope.
    """
    raw = _decode(source)
    try:
        return DataExport.model_validate(raw)
    except ValidationError as e:
        raise _malformed(e) from e


##########################################
############### HELPERS ##################
##########################################

def _decode(source: str | bytes | dict) -> Any:
    if isinstance(source, dict):
        return source
    try:
        return json.loads(source)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise SchemaImportMalformed("", f"invalid JSON: {e}") from e


def _malformed(error: ValidationError) -> SchemaImportMalformed:
    first = error.errors()[0]
    parts = [str(part) for part in first.get("loc", ())]
    # checks spanning a whole model name the offending member in their context
    inner = (first.get("ctx") or {}).get("path")
    if inner:
        parts.append(inner)
    path = ".".join(parts)
    return SchemaImportMalformed(path, first.get("msg", str(error)))
