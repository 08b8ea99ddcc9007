"""Shared fixtures for the schema bridge tests."""

import logging

import pytest

from shared.helper.HelperConfig import HelperConfig
from shared.logging.logging_setup import ColorLogger
from shared.models.schema import CollectionSchema, FieldSchema, FieldType

_ENV_KEYS = [
    "INFERENCE_REQUIRED_THRESHOLD",
    "INFERENCE_MAX_SAMPLE_VALUES",
    "STORE_ENGINES",
    "STORE_TIMEOUT",
    "STORE_FIRESTORE_PROJECT_ID",
    "STORE_FIRESTORE_API_KEY",
    "STORE_FIRESTORE_ID_TOKEN",
    "STORE_FIRESTORE_DATABASE",
    "SCHEMA_COLLECTIONS",
    "SCHEMA_SAMPLE_SIZE",
    "SCHEMA_OUTPUT_PATH",
    "RULES_OUTPUT_PATH",
    "BACKUP_DIR",
    "SCHEMA_PUBLISH",
    "APP_API_KEY",
    "TIMEZONE",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Every test starts without any schema bridge environment settings."""
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def helper_config() -> HelperConfig:
    return HelperConfig(logger=ColorLogger(logging.getLogger("schema_bridge.tests")))


@pytest.fixture
def firestore_env(monkeypatch):
    monkeypatch.setenv("STORE_ENGINES", "[firestore]")
    monkeypatch.setenv("STORE_FIRESTORE_PROJECT_ID", "demo-project")
    monkeypatch.setenv("STORE_FIRESTORE_API_KEY", "secret-key")


@pytest.fixture
def users_schema() -> CollectionSchema:
    return CollectionSchema.model_validate({
        "name": "users",
        "fields": [
            {"name": "email", "field_type": "string", "required": True},
            {"name": "age", "field_type": "integer"},
            {"name": "role", "field_type": "string", "default_value": "member"},
        ],
        "validation_rules": [
            {"rule_type": "format", "field": "email", "format": "email"},
            {"rule_type": "range", "field": "age", "min": 18, "max": 120},
        ],
    })


@pytest.fixture
def simple_schema() -> CollectionSchema:
    return CollectionSchema(
        name="notes",
        fields=[FieldSchema(name="title", field_type=FieldType.STRING, required=True)],
    )
