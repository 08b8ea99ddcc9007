"""Pydantic models for declared collection schemas.

Hierarchy:
  SchemaDocument     : persisted root: opaque version + collections by name.
  CollectionSchema   : fields, index declarations and validation rules.
  FieldSchema        : one declared field.
  IndexSpec          : index declaration (never created remotely).
  ValidationRule     : discriminated union over the rule kinds (``rule_type``).
  FieldObservation   : transient result of schema inference, never persisted.
"""

import re
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator, model_validator
from pydantic_core import PydanticCustomError

from shared.models.value import Value, ValueTag, coerce_value


class FieldType(str, Enum):
    STRING = "string"
    INTEGER = "integer"
    DOUBLE = "double"
    BOOLEAN = "boolean"
    TIMESTAMP = "timestamp"
    ARRAY = "array"
    MAP = "map"
    NULL = "null"
    REFERENCE = "reference"
    MIXED = "mixed"


class IndexOrder(str, Enum):
    ASCENDING = "ascending"
    DESCENDING = "descending"


class FormatKind(str, Enum):
    EMAIL = "email"
    URL = "url"


##########################################
################ FIELDS ##################
##########################################

class FieldSchema(BaseModel):
    """
    A declared field of a collection.

    Attributes:
        name (str): Field name, unique within the collection.
        field_type (FieldType): Expected type of the field's value.
        required (bool): Whether the field must be present.
        default_value (Value | None): Value assumed when the field is absent.
        description (str | None): Free text documentation.
    """

    name: str = Field(min_length=1)
    field_type: FieldType
    required: bool = False
    default_value: Value | None = None
    description: str | None = None

    @field_validator("default_value", mode="before")
    @classmethod
    def _coerce_default(cls, value: Any) -> Any:
        if value is None:
            return None
        return coerce_value(value)

    @field_serializer("default_value")
    def _serialize_default(self, value: Any) -> dict | None:
        return value.to_wire() if value is not None else None


##########################################
################ INDEXES #################
##########################################

class IndexField(BaseModel):
    field_path: str = Field(min_length=1)
    order: IndexOrder = IndexOrder.ASCENDING

    @field_validator("order", mode="before")
    @classmethod
    def _short_order(cls, value: Any) -> Any:
        # "asc"/"desc" is the spelling of older schema files
        if isinstance(value, str):
            return {"asc": "ascending", "desc": "descending"}.get(value.lower(), value.lower())
        return value


class IndexSpec(BaseModel):
    fields: list[IndexField] = Field(min_length=1)
    unique: bool = False
    description: str | None = None


##########################################
############ VALIDATION RULES ############
##########################################

class _RuleBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    field: str = Field(min_length=1)
    description: str | None = None


class RequiredRule(_RuleBase):
    rule_type: Literal["required"] = "required"


class TypeCheckRule(_RuleBase):
    rule_type: Literal["type"] = "type"
    expected_type: FieldType


class RangeRule(_RuleBase):
    rule_type: Literal["range"] = "range"
    min: float | None = None
    max: float | None = None

    @model_validator(mode="after")
    def _check_bounds(self) -> "RangeRule":
        if self.min is None and self.max is None:
            raise ValueError("A range rule needs at least one of 'min' or 'max'.")
        if self.min is not None and self.max is not None and self.min > self.max:
            raise ValueError(f"Range min {self.min} is greater than max {self.max}.")
        return self


class LengthRule(_RuleBase):
    rule_type: Literal["length"] = "length"
    min: int | None = Field(default=None, ge=0)
    max: int | None = Field(default=None, ge=0)

    @model_validator(mode="after")
    def _check_bounds(self) -> "LengthRule":
        if self.min is None and self.max is None:
            raise ValueError("A length rule needs at least one of 'min' or 'max'.")
        if self.min is not None and self.max is not None and self.min > self.max:
            raise ValueError(f"Length min {self.min} is greater than max {self.max}.")
        return self


class FormatRule(_RuleBase):
    rule_type: Literal["format"] = "format"
    format: FormatKind


class RegexRule(_RuleBase):
    rule_type: Literal["regex"] = "regex"
    pattern: str

    @field_validator("pattern")
    @classmethod
    def _compiles(cls, pattern: str) -> str:
        try:
            re.compile(pattern)
        except re.error as e:
            raise ValueError(f"Invalid regular expression {pattern!r}: {e}")
        return pattern


class CustomRule(_RuleBase):
    rule_type: Literal["custom"] = "custom"
    predicate_id: str = Field(min_length=1)


ValidationRule = Annotated[
    Union[RequiredRule, TypeCheckRule, RangeRule, LengthRule, FormatRule, RegexRule, CustomRule],
    Field(discriminator="rule_type"),
]

# older schema files spell bounds as separate rule types with a "value"
_LEGACY_RULE_TYPES: dict[str, tuple[str, str | None]] = {
    "min": ("range", "min"),
    "max": ("range", "max"),
    "min_length": ("length", "min"),
    "max_length": ("length", "max"),
    "regex": ("regex", "pattern"),
    "custom": ("custom", "predicate_id"),
}


def upgrade_legacy_rule(raw: Any) -> Any:
    """Rewrite a legacy rule mapping into the current shape.

    Args:
        raw (Any): A raw rule mapping as read from JSON.

    Returns:
        Any: The rewritten mapping, or ``raw`` unchanged if it is not legacy.
    """
    if not isinstance(raw, dict) or "value" not in raw and raw.get("rule_type") not in ("email", "url"):
        return raw
    rule = dict(raw)
    rule_type = rule.get("rule_type")
    if rule_type in ("email", "url"):
        rule.pop("value", None)
        rule["format"] = rule_type
        rule["rule_type"] = "format"
        return rule
    if rule_type in _LEGACY_RULE_TYPES:
        new_type, target = _LEGACY_RULE_TYPES[rule_type]
        rule["rule_type"] = new_type
        rule[target] = rule.pop("value")
    return rule


##########################################
############### COLLECTIONS ##############
##########################################

class CollectionSchema(BaseModel):
    """
    Declared schema of one collection.

    Fields are ordered and unique by name. Rules attach to a field by name;
    several rules per field are allowed and run in declaration order.
    """

    name: str = Field(min_length=1)
    description: str | None = None
    fields: list[FieldSchema] = Field(default_factory=list)
    indexes: list[IndexSpec] = Field(default_factory=list)
    validation_rules: list[ValidationRule] = Field(default_factory=list)

    @field_validator("validation_rules", mode="before")
    @classmethod
    def _upgrade_rules(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [upgrade_legacy_rule(item) for item in value]
        return value

    @model_validator(mode="after")
    def _unique_field_names(self) -> "CollectionSchema":
        seen: set[str] = set()
        for position, field in enumerate(self.fields):
            if field.name in seen:
                raise PydanticCustomError(
                    "duplicate_field",
                    "Duplicate field name '{name}' in collection '{collection}'.",
                    {"name": field.name, "collection": self.name, "path": f"fields.{position}.name"},
                )
            seen.add(field.name)
        return self

    def get_field(self, name: str) -> FieldSchema | None:
        for field in self.fields:
            if field.name == name:
                return field
        return None

    def rules_for(self, name: str) -> list[ValidationRule]:
        return [rule for rule in self.validation_rules if rule.field == name]


class SchemaDocument(BaseModel):
    """
    Persisted schema root.

    The version is an opaque string carried alongside the collections and
    never interpreted.
    """

    version: str = "1.0.0"
    collections: dict[str, CollectionSchema] = Field(default_factory=dict)

    @field_validator("collections", mode="before")
    @classmethod
    def _fill_names(cls, value: Any) -> Any:
        if not isinstance(value, dict):
            return value
        filled = {}
        for key, collection in value.items():
            if isinstance(collection, dict) and "name" not in collection:
                collection = {**collection, "name": key}
            filled[key] = collection
        return filled

    @field_validator("collections")
    @classmethod
    def _keys_match_names(cls, value: dict[str, CollectionSchema]) -> dict[str, CollectionSchema]:
        for key, collection in value.items():
            if key != collection.name:
                raise PydanticCustomError(
                    "collection_key_mismatch",
                    "Collection key '{key}' does not match its name '{name}'.",
                    {"key": key, "name": collection.name, "path": f"{key}.name"},
                )
        return value

    def define_collection(self, collection: CollectionSchema) -> None:
        """Register or replace a collection schema (explicit redefinition)."""
        self.collections[collection.name] = collection


##########################################
############### INFERENCE ################
##########################################

class FieldObservation(BaseModel):
    """
    What inference saw of one field across a sample.

    Attributes:
        name (str): Field name.
        field_type (FieldType): Observed type, or MIXED if more than one tag was seen.
        mixed_types (list[ValueTag]): Sorted distinct tags; empty unless mixed.
        occurrence_count (int): Number of sampled documents carrying the field.
        total_documents (int): Size N of the sample.
        sample_values (list[Value]): Distinct sample values in insertion order.
        required (bool): Classification against the required threshold.
    """

    name: str
    field_type: FieldType
    mixed_types: list[ValueTag] = Field(default_factory=list)
    occurrence_count: int = Field(ge=0)
    total_documents: int = Field(ge=0)
    sample_values: list[Value] = Field(default_factory=list)
    required: bool = False

    @property
    def is_mixed(self) -> bool:
        return self.field_type == FieldType.MIXED

    @property
    def frequency(self) -> float:
        if not self.total_documents:
            return 0.0
        return self.occurrence_count / self.total_documents

    @property
    def type_label(self) -> str:
        if self.is_mixed:
            return f"Mixed({', '.join(tag.value for tag in self.mixed_types)})"
        return self.field_type.value
