"""Tests for schema persistence and data exports."""

import json
from datetime import datetime, timezone

import pytest

from shared.core.SchemaSerializer import (
    build_data_export,
    dumps_schema,
    export_schema,
    import_schema,
    parse_data_export,
)
from shared.errors import SchemaImportMalformed
from shared.models.schema import CollectionSchema, FormatRule, IndexOrder, LengthRule, RangeRule, SchemaDocument
from shared.models.value import StringValue, TimestampValue


@pytest.fixture
def document(users_schema) -> SchemaDocument:
    doc = SchemaDocument(version="2.3.0")
    doc.define_collection(users_schema)
    return doc


class TestRoundTrip:
    """Export followed by import gives back an equal document."""

    def test_round_trip(self, document):
        assert import_schema(dumps_schema(document)) == document

    def test_round_trip_every_declaration_kind(self):
        orders = CollectionSchema.model_validate({
            "name": "orders",
            "description": "Customer orders",
            "fields": [
                {"name": "code", "field_type": "string", "required": True, "description": "Order code"},
                {"name": "total", "field_type": "double", "default_value": 0.0},
                {"name": "items", "field_type": "array", "default_value": ["sku-1", 2]},
                {"name": "shipping", "field_type": "map", "default_value": {"city": "Oslo", "express": False}},
                {"name": "owner", "field_type": "reference"},
                {"name": "extra", "field_type": "mixed"},
            ],
            "indexes": [
                {"fields": [{"field_path": "code"}], "unique": True},
                {"fields": [{"field_path": "owner", "order": "ascending"}, {"field_path": "total", "order": "descending"}]},
            ],
            "validation_rules": [
                {"rule_type": "regex", "field": "code", "pattern": "^[A-Z]{3}-\\d+$"},
                {"rule_type": "length", "field": "code", "min": 5, "max": 12},
                {"rule_type": "type", "field": "total", "expected_type": "double"},
                {"rule_type": "custom", "field": "items", "predicate_id": "non_empty", "description": "Needs items"},
                {"rule_type": "required", "field": "coupon"},
            ],
        })
        doc = SchemaDocument(version="0.9")
        doc.define_collection(orders)

        restored = import_schema(dumps_schema(doc))
        assert restored == doc
        assert restored.collections["orders"].fields[3].default_value.to_python() == {"city": "Oslo", "express": False}

    def test_default_values_use_wire_encoding(self, document):
        exported = export_schema(document)
        role = exported["collections"]["users"]["fields"][2]
        assert role["default_value"] == {"stringValue": "member"}

    def test_version_is_carried_verbatim(self, document):
        assert json.loads(dumps_schema(document))["version"] == "2.3.0"

    def test_timestamp_default_round_trip(self):
        at = datetime(2024, 1, 1, 12, 30, tzinfo=timezone.utc)
        doc = import_schema({
            "version": "1",
            "collections": {"events": {"fields": [{"name": "at", "field_type": "timestamp", "default_value": at.isoformat()}]}},
        })
        # a plain string default stays a string
        assert doc.collections["events"].fields[0].default_value == StringValue(value=at.isoformat())

        doc.collections["events"].fields[0].default_value = TimestampValue(value=at)
        assert import_schema(dumps_schema(doc)) == doc


class TestImport:
    """Parsing of stored schema files."""

    def test_collection_name_taken_from_key(self):
        doc = import_schema('{"version": "1", "collections": {"posts": {"fields": []}}}')
        assert doc.collections["posts"].name == "posts"

    def test_legacy_rule_spellings(self):
        doc = import_schema({
            "collections": {
                "users": {
                    "fields": [{"name": "age", "field_type": "integer"}, {"name": "email", "field_type": "string"}],
                    "validation_rules": [
                        {"rule_type": "min", "field": "age", "value": 18},
                        {"rule_type": "max_length", "field": "email", "value": 64},
                        {"rule_type": "email", "field": "email"},
                    ],
                    "indexes": [{"fields": [{"field_path": "age", "order": "desc"}]}],
                }
            }
        })
        users = doc.collections["users"]
        assert users.validation_rules[0] == RangeRule(field="age", min=18)
        assert users.validation_rules[1] == LengthRule(field="email", max=64)
        assert isinstance(users.validation_rules[2], FormatRule)
        assert users.indexes[0].fields[0].order == IndexOrder.DESCENDING

    def test_malformed_field_type_names_path(self):
        raw = {"collections": {"users": {"fields": [
            {"name": "ok", "field_type": "string"},
            {"name": "bad", "field_type": "color"},
        ]}}}
        with pytest.raises(SchemaImportMalformed) as exc_info:
            import_schema(raw)
        assert exc_info.value.path == "collections.users.fields.1.field_type"

    def test_invalid_json(self):
        with pytest.raises(SchemaImportMalformed) as exc_info:
            import_schema("{not json")
        assert exc_info.value.path == ""

    def test_non_object_root(self):
        with pytest.raises(SchemaImportMalformed):
            import_schema("[1, 2]")

    def test_key_name_mismatch(self):
        with pytest.raises(SchemaImportMalformed) as exc_info:
            import_schema({"collections": {"a": {"name": "b"}}})
        assert exc_info.value.path == "collections.a.name"

    def test_duplicate_field_name_path(self):
        raw = {"collections": {"a": {"fields": [
            {"name": "x", "field_type": "string"},
            {"name": "x", "field_type": "integer"},
        ]}}}
        with pytest.raises(SchemaImportMalformed) as exc_info:
            import_schema(raw)
        assert exc_info.value.path == "collections.a.fields.1.name"


class TestDataExport:
    """Collection export envelopes."""

    def test_build_and_parse(self):
        at = datetime(2024, 3, 1, tzinfo=timezone.utc)
        export = build_data_export("users", [{"name": "Ada", "joined": at}], exported_at=at)
        assert export.count == 1
        assert export.exported_at == "2024-03-01T00:00:00+00:00"
        assert export.data == [{"name": "Ada", "joined": "2024-03-01T00:00:00Z"}]
        assert parse_data_export(export.model_dump_json()) == export

    def test_default_export_time_is_aware(self):
        export = build_data_export("users", [])
        assert datetime.fromisoformat(export.exported_at).tzinfo is not None

    def test_malformed_envelope(self):
        with pytest.raises(SchemaImportMalformed) as exc_info:
            parse_data_export('{"collection": "users", "exported_at": "x", "count": -1}')
        assert exc_info.value.path == "count"
