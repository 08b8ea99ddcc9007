"""Validation of documents against declared collection schemas."""

import logging
import re
from typing import Any, Callable, Mapping
from urllib.parse import urlparse

from shared.errors import DocumentValidationError, UnknownCollectionSchema, UnknownCustomRule
from shared.helper.HelperConfig import HelperConfig
from shared.models.schema import (
    CollectionSchema,
    CustomRule,
    FieldType,
    FormatKind,
    FormatRule,
    LengthRule,
    RangeRule,
    RegexRule,
    RequiredRule,
    TypeCheckRule,
)
from shared.models.validation import Violation
from shared.models.value import (
    BaseValue,
    DoubleValue,
    IntegerValue,
    MapValue,
    NullValue,
    StringValue,
    ValueTag,
    document_from_python,
)

CustomPredicate = Callable[[BaseValue, MapValue], bool]

_EMAIL = re.compile(r"[^@\s]+@[^@\s]+\.[^@\s]+")
_URL_SCHEMES = ("http", "https", "ftp", "ftps")

# declared type -> accepted value tags
_ACCEPTED_TAGS: dict[FieldType, frozenset[ValueTag]] = {
    FieldType.STRING: frozenset({ValueTag.STRING}),
    FieldType.INTEGER: frozenset({ValueTag.INTEGER}),
    FieldType.DOUBLE: frozenset({ValueTag.DOUBLE, ValueTag.INTEGER}),
    FieldType.BOOLEAN: frozenset({ValueTag.BOOLEAN}),
    FieldType.TIMESTAMP: frozenset({ValueTag.TIMESTAMP}),
    FieldType.ARRAY: frozenset({ValueTag.ARRAY}),
    FieldType.MAP: frozenset({ValueTag.MAP}),
    FieldType.NULL: frozenset({ValueTag.NULL}),
    FieldType.REFERENCE: frozenset({ValueTag.STRING}),
    FieldType.MIXED: frozenset(ValueTag),
}


class ValidationEngine:
    """Evaluates every rule of a collection schema against a document.

    Evaluation is never fail-fast: all violations of a document are collected
    and returned together, field by field in declaration order.
    """

    def __init__(self, custom_predicates: Mapping[str, CustomPredicate] | None = None, helper_config: HelperConfig | None = None) -> None:
        self.logging = helper_config.get_logger() if helper_config else logging.getLogger(__name__)
        self.custom_predicates: dict[str, CustomPredicate] = dict(custom_predicates or {})

    def register_predicate(self, predicate_id: str, predicate: CustomPredicate) -> None:
        """Register (or replace) a custom predicate under an id."""
        self.custom_predicates[predicate_id] = predicate

    ##########################################
    ################ CORE ####################
    ##########################################

    def evaluate(self, schema: CollectionSchema, document: MapValue | dict) -> list[Violation]:
        """Validate a document against a collection schema.

        Args:
            schema (CollectionSchema): The declared schema.
            document (MapValue | dict): The document to check.

        Returns:
            list[Violation]: Every violation found; empty if the document is valid.

        Raises:
            UnknownCustomRule: If a custom rule references an unregistered predicate.
        """
        self._check_custom_rules(schema)
        doc = document_from_python(document)

        violations: list[Violation] = []
        for name in self._field_order(schema):
            violations.extend(self._evaluate_field(schema, name, doc))

        if violations:
            self.logging.debug("Document for '%s' has %d violation(s).", schema.name, len(violations))
        return violations

    def ensure_valid(self, schema: CollectionSchema, document: MapValue | dict) -> MapValue:
        """Validate and return the document, or raise with every violation.

        Raises:
            DocumentValidationError: If at least one violation is found.
        """
        doc = document_from_python(document)
        violations = self.evaluate(schema, doc)
        if violations:
            raise DocumentValidationError(schema.name, violations)
        return doc

    def evaluate_in(self, schemas: Mapping[str, CollectionSchema], collection: str, document: MapValue | dict) -> list[Violation]:
        """Validate a document against the schema registered for a collection.

        Raises:
            UnknownCollectionSchema: If no schema is registered under that name.
        """
        schema = schemas.get(collection)
        if schema is None:
            raise UnknownCollectionSchema(collection)
        return self.evaluate(schema, document)

    def apply_defaults(self, schema: CollectionSchema, document: MapValue | dict) -> MapValue:
        """Return a copy of the document with absent fields set to their declared defaults."""
        doc = document_from_python(document)
        fields = dict(doc.fields)
        for field in schema.fields:
            if field.name not in fields and field.default_value is not None:
                fields[field.name] = field.default_value
        return MapValue(fields=fields)

    ##########################################
    ############### HELPERS ##################
    ##########################################

    def _check_custom_rules(self, schema: CollectionSchema) -> None:
        for rule in schema.validation_rules:
            if isinstance(rule, CustomRule) and rule.predicate_id not in self.custom_predicates:
                raise UnknownCustomRule(rule.predicate_id, rule.field)

    def _field_order(self, schema: CollectionSchema) -> list[str]:
        names = [field.name for field in schema.fields]
        for rule in schema.validation_rules:
            if rule.field not in names:
                names.append(rule.field)
        return names

    def _evaluate_field(self, schema: CollectionSchema, name: str, doc: MapValue) -> list[Violation]:
        field = schema.get_field(name)
        rules = schema.rules_for(name)
        required = (field is not None and field.required) or any(isinstance(rule, RequiredRule) for rule in rules)

        if not doc.has(name):
            if required and (field is None or field.default_value is None):
                return [Violation(field=name, rule_kind="required", message=f"Field '{name}' is required.")]
            return []

        value = doc.get(name)
        if isinstance(value, NullValue) and not required:
            return []

        violations: list[Violation] = []
        if field is not None:
            violation = self._check_type(name, value, field.field_type)
            if violation:
                violations.append(violation)

        for rule in rules:
            violation = self._apply_rule(rule, name, value, doc)
            if violation:
                violations.append(violation)
        return violations

    def _apply_rule(self, rule: Any, name: str, value: BaseValue, doc: MapValue) -> Violation | None:
        if isinstance(rule, RequiredRule):
            # presence already established
            return None
        if isinstance(rule, TypeCheckRule):
            return self._check_type(name, value, rule.expected_type)
        if isinstance(rule, RangeRule):
            return self._check_range(name, value, rule)
        if isinstance(rule, LengthRule):
            return self._check_length(name, value, rule)
        if isinstance(rule, FormatRule):
            return self._check_format(name, value, rule)
        if isinstance(rule, RegexRule):
            return self._check_regex(name, value, rule)
        if isinstance(rule, CustomRule):
            return self._check_custom(name, value, doc, rule)
        raise ValueError(f"Unsupported rule type: {type(rule).__name__}")

    def _check_type(self, name: str, value: BaseValue, expected: FieldType) -> Violation | None:
        if value.kind in _ACCEPTED_TAGS[expected]:
            return None
        return Violation(
            field=name,
            rule_kind="type",
            message=f"Field '{name}' must be of type {expected.value}, got {value.kind.value}.",
        )

    def _check_range(self, name: str, value: BaseValue, rule: RangeRule) -> Violation | None:
        if not isinstance(value, (IntegerValue, DoubleValue)):
            return Violation(field=name, rule_kind="range", message=f"Field '{name}' must be a number to check its range.")
        number = value.value
        if rule.min is not None and number < rule.min:
            return Violation(field=name, rule_kind="range", message=rule.description or f"Field '{name}' must be at least {_fmt(rule.min)}.")
        if rule.max is not None and number > rule.max:
            return Violation(field=name, rule_kind="range", message=rule.description or f"Field '{name}' must be at most {_fmt(rule.max)}.")
        return None

    def _check_length(self, name: str, value: BaseValue, rule: LengthRule) -> Violation | None:
        if not isinstance(value, StringValue):
            return Violation(field=name, rule_kind="length", message=f"Field '{name}' must be a string to check its length.")
        length = len(value.value)
        if rule.min is not None and length < rule.min:
            return Violation(field=name, rule_kind="length", message=rule.description or f"Field '{name}' must be at least {rule.min} characters long.")
        if rule.max is not None and length > rule.max:
            return Violation(field=name, rule_kind="length", message=rule.description or f"Field '{name}' must be at most {rule.max} characters long.")
        return None

    def _check_format(self, name: str, value: BaseValue, rule: FormatRule) -> Violation | None:
        if isinstance(value, StringValue):
            ok = is_email(value.value) if rule.format == FormatKind.EMAIL else is_url(value.value)
            if ok:
                return None
        return Violation(field=name, rule_kind="format", message=rule.description or f"Field '{name}' must be a valid {rule.format.value}.")

    def _check_regex(self, name: str, value: BaseValue, rule: RegexRule) -> Violation | None:
        if not isinstance(value, StringValue):
            return Violation(field=name, rule_kind="type", message=f"Field '{name}' must be a string to match a pattern.")
        if re.search(rule.pattern, value.value):
            return None
        return Violation(field=name, rule_kind="regex", message=rule.description or f"Field '{name}' does not match pattern {rule.pattern!r}.")

    def _check_custom(self, name: str, value: BaseValue, doc: MapValue, rule: CustomRule) -> Violation | None:
        predicate = self.custom_predicates[rule.predicate_id]
        if predicate(value, doc):
            return None
        return Violation(field=name, rule_kind="custom", message=rule.description or f"Field '{name}' failed check '{rule.predicate_id}'.")


def is_email(text: str) -> bool:
    return _EMAIL.fullmatch(text) is not None


def is_url(text: str) -> bool:
    if any(ch.isspace() for ch in text):
        return False
    parsed = urlparse(text)
    return parsed.scheme.lower() in _URL_SCHEMES and bool(parsed.netloc)


def _fmt(bound: float) -> str:
    return str(int(bound)) if float(bound).is_integer() else str(bound)
