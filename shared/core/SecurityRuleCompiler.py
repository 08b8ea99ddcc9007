"""Renders RuleSets into the store's security rules language."""

import json
import logging
import math
import re
from datetime import datetime, timedelta

import pytz

from shared.helper.HelperConfig import HelperConfig
from shared.models.rules import (
    AndRule,
    Constant,
    FieldEquals,
    HasRole,
    IsAuthenticated,
    IsOwner,
    Not,
    OrRule,
    PathRule,
    RuleSet,
)
from shared.models.value import (
    ArrayValue,
    BaseValue,
    BooleanValue,
    DoubleValue,
    IntegerValue,
    MapValue,
    NullValue,
    StringValue,
    TimestampValue,
)

HEADER = "rules_version = '2';\nservice cloud.firestore {\n  match /databases/{database}/documents {\n"
FOOTER = "  }\n}\n"

DEFAULT_DENY = (
    HEADER
    + "    match /{document=**} {\n"
    + "      allow read, write: if false;\n"
    + "    }\n"
    + FOOTER
)

EPOCH = datetime(1970, 1, 1, tzinfo=pytz.UTC)
_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class SecurityRuleCompiler:
    """Deterministic text rendering of security rules.

    Path rules are rendered in declaration order; equal RuleSets always
    produce byte-identical output.
    """

    def __init__(self, helper_config: HelperConfig | None = None) -> None:
        self.logging = helper_config.get_logger() if helper_config else logging.getLogger(__name__)

    def render(self, ruleset: RuleSet | None) -> str:
        """Render a rule set, or the default-deny template if it is empty.

        Args:
            ruleset (RuleSet | None): The rules to render.

        Returns:
            str: The complete rules file.
        """
        if ruleset is None or not ruleset.rules:
            self.logging.debug("Empty rule set, rendering default-deny template.")
            return DEFAULT_DENY

        blocks = [self._render_path_rule(rule) for rule in ruleset.rules]
        return HEADER + "".join(blocks) + FOOTER

    def _render_path_rule(self, rule: PathRule) -> str:
        lines = [f"    match {rule.path_pattern} {{\n"]
        if rule.read is None and rule.write is None:
            lines.append("      allow read, write: if false;\n")
        if rule.read is not None:
            lines.append(f"      allow read: if {self.render_expr(rule.read, rule)};\n")
        if rule.write is not None:
            lines.append(f"      allow write: if {self.render_expr(rule.write, rule)};\n")
        lines.append("    }\n")
        return "".join(lines)

    def render_expr(self, expr, path_rule: PathRule | None = None) -> str:
        """Render one condition. ``path_rule`` supplies the path captures for IsOwner."""
        if isinstance(expr, IsAuthenticated):
            return "request.auth != null"
        if isinstance(expr, IsOwner):
            captures = path_rule.captures if path_rule is not None else []
            owner = expr.field_path if expr.field_path in captures else resource_field(expr.field_path)
            return f"request.auth.uid == {owner}"
        if isinstance(expr, HasRole):
            return f"request.auth.token.role == {quote(expr.role)}"
        if isinstance(expr, FieldEquals):
            return f"{resource_field(expr.field_path)} == {literal(expr.value)}"
        if isinstance(expr, Constant):
            return "true" if expr.value else "false"
        if isinstance(expr, Not):
            return f"!({self.render_expr(expr.expr, path_rule)})"
        if isinstance(expr, AndRule):
            return "(" + " && ".join(self.render_expr(e, path_rule) for e in expr.exprs) + ")"
        if isinstance(expr, OrRule):
            return "(" + " || ".join(self.render_expr(e, path_rule) for e in expr.exprs) + ")"
        raise ValueError(f"Unsupported rule expression: {type(expr).__name__}")


def resource_field(field_path: str) -> str:
    """``resource.data`` accessor for a dotted field path."""
    accessor = "resource.data"
    for segment in field_path.split("."):
        if _IDENTIFIER.match(segment):
            accessor += f".{segment}"
        else:
            accessor += f"[{quote(segment)}]"
    return accessor


def quote(text: str) -> str:
    escaped = text.replace("\\", "\\\\").replace("'", "\\'").replace("\n", "\\n")
    return f"'{escaped}'"


def literal(value: BaseValue) -> str:
    """Rules-language literal for a tagged value."""
    if isinstance(value, StringValue):
        return quote(value.value)
    if isinstance(value, BooleanValue):
        return "true" if value.value else "false"
    if isinstance(value, IntegerValue):
        return str(value.value)
    if isinstance(value, DoubleValue):
        if not math.isfinite(value.value):
            raise ValueError(f"Rules have no literal for the double {value.value}.")
        return json.dumps(value.value)
    if isinstance(value, NullValue):
        return "null"
    if isinstance(value, TimestampValue):
        millis = (value.value - EPOCH) // timedelta(milliseconds=1)
        return f"timestamp.value({millis})"
    if isinstance(value, ArrayValue):
        return "[" + ", ".join(literal(item) for item in value.values) + "]"
    if isinstance(value, MapValue):
        return "{" + ", ".join(f"{quote(name)}: {literal(item)}" for name, item in value.fields.items()) + "}"
    raise ValueError(f"Unsupported literal value: {type(value).__name__}")
