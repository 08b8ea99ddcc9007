"""Tests for security rule rendering."""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from shared.core.SecurityRuleCompiler import DEFAULT_DENY, SecurityRuleCompiler
from shared.models.rules import (
    PathRule,
    RuleSet,
    all_of,
    any_of,
    common_rules,
    field_equals,
    has_role,
    is_authenticated,
    is_owner,
    not_,
)


@pytest.fixture
def compiler() -> SecurityRuleCompiler:
    return SecurityRuleCompiler()


def test_owner_rule_on_path_capture(compiler):
    ruleset = RuleSet(rules=(PathRule(path_pattern="/users/{userId}", read=is_owner("userId")),))
    assert compiler.render(ruleset) == (
        "rules_version = '2';\n"
        "service cloud.firestore {\n"
        "  match /databases/{database}/documents {\n"
        "    match /users/{userId} {\n"
        "      allow read: if request.auth.uid == userId;\n"
        "    }\n"
        "  }\n"
        "}\n"
    )


def test_single_authenticated_read_clause(compiler):
    text = compiler.render(RuleSet(rules=(PathRule(path_pattern="/users/{id}", read=is_authenticated()),)))
    assert text.count("allow ") == 1
    assert text.count("allow read: if request.auth != null;") == 1
    assert "    match /users/{id} {\n      allow read: if request.auth != null;\n    }\n" in text


@pytest.mark.parametrize("ruleset", [None, RuleSet()])
def test_empty_ruleset_is_default_deny(compiler, ruleset):
    text = compiler.render(ruleset)
    assert text == DEFAULT_DENY
    assert "match /{document=**}" in text
    assert "allow read, write: if false;" in text


def test_path_rule_without_conditions_denies(compiler):
    text = compiler.render(RuleSet(rules=(PathRule(path_pattern="/locked/{id}"),)))
    assert "    match /locked/{id} {\n      allow read, write: if false;\n    }\n" in text


class TestExpressions:
    """Rendering of individual conditions."""

    def test_owner_field_without_capture(self, compiler):
        rule = PathRule(path_pattern="/posts/{postId}")
        assert compiler.render_expr(is_owner("authorId"), rule) == "request.auth.uid == resource.data.authorId"

    def test_non_identifier_segment(self, compiler):
        assert compiler.render_expr(field_equals("meta.owner-id", "x")) == "resource.data.meta['owner-id'] == 'x'"

    def test_role_and_composition(self, compiler):
        expr = all_of(is_authenticated(), any_of(has_role("admin"), not_(field_equals("locked", True))))
        assert compiler.render_expr(expr) == (
            "(request.auth != null && (request.auth.token.role == 'admin' || !(resource.data.locked == true)))"
        )

    def test_literals(self, compiler):
        assert compiler.render_expr(field_equals("n", 3)) == "resource.data.n == 3"
        assert compiler.render_expr(field_equals("f", 1.5)) == "resource.data.f == 1.5"
        assert compiler.render_expr(field_equals("x", None)) == "resource.data.x == null"
        assert compiler.render_expr(field_equals("s", "it's")) == "resource.data.s == 'it\\'s'"
        assert compiler.render_expr(field_equals("l", ["a", 1])) == "resource.data.l == ['a', 1]"
        at = datetime(2024, 1, 1, tzinfo=timezone.utc)
        assert compiler.render_expr(field_equals("at", at)) == "resource.data.at == timestamp.value(1704067200000)"

    @pytest.mark.parametrize("number", [float("nan"), float("inf"), float("-inf")])
    def test_non_finite_double_has_no_literal(self, compiler, number):
        with pytest.raises(ValueError):
            compiler.render_expr(field_equals("score", number))


def test_common_rules_render_in_order(compiler):
    text = compiler.render(common_rules())
    assert text.index("/users/{userId}") < text.index("/public/{document=**}") < text.index("/admin/{document=**}")
    assert "allow write: if request.auth.uid == userId;" in text
    assert "allow read: if true;" in text


def test_rendering_is_deterministic(compiler):
    assert compiler.render(common_rules()) == compiler.render(common_rules())


@pytest.mark.parametrize("pattern", ["users/{id}", "/", "/a b"])
def test_invalid_path_pattern(pattern):
    with pytest.raises(ValidationError):
        PathRule(path_pattern=pattern)
