"""Tests for query composition and compilation."""

import pytest
from pydantic import ValidationError

from shared.core.QueryCompiler import (
    RESTRICTION_ARRAY_CONTAINS,
    RESTRICTION_INEQUALITY_ORDER,
    RESTRICTION_OR_RANGE,
    QueryCompiler,
)
from shared.errors import UnsupportedQuery
from shared.models.query import (
    AndFilter,
    OrderBy,
    QuerySpec,
    and_,
    array_contains,
    array_contains_any,
    eq,
    gt,
    in_,
    is_not_null,
    is_null,
    lt,
    ne,
    or_,
)


@pytest.fixture
def compiler() -> QueryCompiler:
    return QueryCompiler()


class TestComposition:
    """Filter helpers."""

    def test_and_flattens_one_level(self):
        a, b, c = eq("a", 1), eq("b", 2), eq("c", 3)
        assert and_(and_(a, b), c) == and_(a, b, c)

    def test_mixed_nesting_is_preserved(self):
        a, b, c = eq("a", 1), eq("b", 2), eq("c", 3)
        expr = and_(or_(a, b), c)
        assert expr.filters[0] == or_(a, b)

    def test_empty_operands_rejected(self):
        with pytest.raises(ValueError):
            and_()
        with pytest.raises(ValueError):
            or_([])

    def test_list_operator_needs_values(self):
        with pytest.raises(ValidationError):
            in_("status", [])
        with pytest.raises(ValidationError):
            in_("status", "active")

    def test_describe(self):
        assert gt("age", 18).describe() == "age > 18"
        assert and_(eq("a", "x"), is_null("b")).describe() == '(a == "x" AND b == null)'


class TestCompile:
    """Wire output."""

    def test_single_comparison(self, compiler):
        spec = QuerySpec(collection="users", filter=gt("age", 18), order_by=(OrderBy(field_path="age"),), limit=10)
        assert compiler.compile(spec).to_wire() == {
            "from": [{"collectionId": "users"}],
            "where": {"fieldFilter": {"field": {"fieldPath": "age"}, "op": "GREATER_THAN", "value": {"integerValue": "18"}}},
            "orderBy": [{"field": {"fieldPath": "age"}, "direction": "ASCENDING"}],
            "limit": 10,
        }

    def test_no_filter(self, compiler):
        spec = QuerySpec(collection="users", all_descendants=True, offset=5)
        assert compiler.compile(spec).to_wire() == {
            "from": [{"collectionId": "users", "allDescendants": True}],
            "offset": 5,
        }

    def test_composite_filter(self, compiler):
        spec = QuerySpec(collection="users", filter=and_(eq("status", "active"), in_("tier", ["a", "b"])))
        where = compiler.compile(spec).to_wire()["where"]
        assert where["compositeFilter"]["op"] == "AND"
        assert [f["fieldFilter"]["op"] for f in where["compositeFilter"]["filters"]] == ["EQUAL", "IN"]
        assert where["compositeFilter"]["filters"][1]["fieldFilter"]["value"] == {
            "arrayValue": {"values": [{"stringValue": "a"}, {"stringValue": "b"}]}
        }

    def test_null_operators(self, compiler):
        spec = QuerySpec(collection="c", filter=or_(is_null("a"), is_not_null("b")))
        filters = compiler.compile(spec).to_wire()["where"]["compositeFilter"]["filters"]
        assert filters[0]["fieldFilter"]["op"] == "EQUAL"
        assert filters[0]["fieldFilter"]["value"] == {"nullValue": None}
        assert filters[1]["fieldFilter"]["op"] == "NOT_EQUAL"

    def test_nested_same_kind_compiles_identically(self, compiler):
        a, b, c = eq("a", 1), eq("b", 2), eq("c", 3)
        nested = AndFilter(filters=(AndFilter(filters=(a, b)), c))
        flat = and_(a, b, c)
        assert compiler.compile(QuerySpec(collection="x", filter=nested)) == compiler.compile(QuerySpec(collection="x", filter=flat))

    def test_deterministic(self, compiler):
        spec = QuerySpec(collection="x", filter=and_(eq("a", 1), ne("b", 2)))
        assert compiler.compile(spec).to_wire() == compiler.compile(spec).to_wire()


class TestRestrictions:
    """Store restrictions are enforced before any request."""

    def test_two_array_contains(self, compiler):
        spec = QuerySpec(collection="c", filter=and_(array_contains("tags", "a"), array_contains_any("cats", ["x"])))
        with pytest.raises(UnsupportedQuery) as exc_info:
            compiler.compile(spec)
        assert exc_info.value.restriction == RESTRICTION_ARRAY_CONTAINS
        assert exc_info.value.expression == 'cats array-contains-any ["x"]'

    def test_range_inside_or(self, compiler):
        spec = QuerySpec(collection="c", filter=or_(gt("age", 18), eq("vip", True)))
        with pytest.raises(UnsupportedQuery) as exc_info:
            compiler.compile(spec)
        assert exc_info.value.restriction == RESTRICTION_OR_RANGE
        assert exc_info.value.expression == "age > 18"

    def test_single_operand_or_compiles_as_its_operand(self, compiler):
        wire = compiler.compile(QuerySpec(collection="c", filter=or_(gt("age", 18)))).to_wire()
        assert "compositeFilter" not in wire["where"]
        assert wire["where"]["fieldFilter"]["op"] == "GREATER_THAN"

    def test_range_nested_under_and_inside_or_is_allowed(self, compiler):
        spec = QuerySpec(collection="c", filter=or_(and_(gt("age", 18), eq("a", 1)), eq("vip", True)))
        compiler.compile(spec)

    def test_inequality_must_lead_order_by(self, compiler):
        spec = QuerySpec(collection="c", filter=lt("age", 30), order_by=(OrderBy(field_path="name"),))
        with pytest.raises(UnsupportedQuery) as exc_info:
            compiler.compile(spec)
        assert exc_info.value.restriction == RESTRICTION_INEQUALITY_ORDER

    def test_inequality_leading_order_by_is_allowed(self, compiler):
        spec = QuerySpec(
            collection="c",
            filter=lt("age", 30),
            order_by=(OrderBy(field_path="age", descending=True), OrderBy(field_path="name")),
        )
        wire = compiler.compile(spec).to_wire()
        assert wire["orderBy"][0]["direction"] == "DESCENDING"


def test_negative_limit_rejected():
    with pytest.raises(ValidationError):
        QuerySpec(collection="c", limit=-1)
