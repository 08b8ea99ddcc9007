"""Compiles QuerySpecs into the store's structured query shape.

The compiler checks a query against the store's restrictions before any
request is made, so an unsupported query fails locally with the offending
sub-expression named in the error.
"""

import logging

from shared.errors import UnsupportedQuery
from shared.helper.HelperConfig import HelperConfig
from shared.models.query import (
    ARRAY_OPERATORS,
    INEQUALITY_OPERATORS,
    RANGE_OPERATORS,
    AndFilter,
    CollectionSelector,
    Comparison,
    FieldReference,
    FilterOperator,
    Order,
    OrFilter,
    QuerySpec,
    StructuredQuery,
)
from shared.models.value import NullValue

RESTRICTION_ARRAY_CONTAINS = "single_array_contains"
RESTRICTION_OR_RANGE = "no_range_in_or"
RESTRICTION_INEQUALITY_ORDER = "inequality_first_order_by"

_WIRE_OPERATORS: dict[FilterOperator, str] = {
    FilterOperator.EQ: "EQUAL",
    FilterOperator.NE: "NOT_EQUAL",
    FilterOperator.LT: "LESS_THAN",
    FilterOperator.LTE: "LESS_THAN_OR_EQUAL",
    FilterOperator.GT: "GREATER_THAN",
    FilterOperator.GTE: "GREATER_THAN_OR_EQUAL",
    FilterOperator.IN: "IN",
    FilterOperator.NOT_IN: "NOT_IN",
    FilterOperator.ARRAY_CONTAINS: "ARRAY_CONTAINS",
    FilterOperator.ARRAY_CONTAINS_ANY: "ARRAY_CONTAINS_ANY",
    FilterOperator.IS_NULL: "EQUAL",
    FilterOperator.IS_NOT_NULL: "NOT_EQUAL",
}


class QueryCompiler:
    """Validates and serializes queries. Stateless apart from its logger."""

    def __init__(self, helper_config: HelperConfig | None = None) -> None:
        self.logging = helper_config.get_logger() if helper_config else logging.getLogger(__name__)

    def compile(self, spec: QuerySpec) -> StructuredQuery:
        """Compile a query into a structured query.

        Args:
            spec (QuerySpec): The query as written by the caller.

        Returns:
            StructuredQuery: The wire model; call ``to_wire()`` for the request body.

        Raises:
            UnsupportedQuery: If the query breaches a store restriction.
        """
        expr = normalize(spec.filter) if spec.filter is not None else None
        if expr is not None:
            self.validate(expr, spec)

        query = StructuredQuery(
            from_=[CollectionSelector(
                collection_id=spec.collection,
                all_descendants=True if spec.all_descendants else None,
            )],
            where=self._compile_filter(expr) if expr is not None else None,
            order_by=[
                Order(field=FieldReference(field_path=order.field_path), direction="DESCENDING" if order.descending else "ASCENDING")
                for order in spec.order_by
            ] or None,
            limit=spec.limit,
            offset=spec.offset,
        )
        self.logging.debug("Compiled query on '%s': %s", spec.collection, expr.describe() if expr is not None else "<all>")
        return query

    ##########################################
    ############# RESTRICTIONS ###############
    ##########################################

    def validate(self, expr: Comparison | AndFilter | OrFilter, spec: QuerySpec) -> None:
        comparisons = list(_comparisons(expr))

        array_filters = [c for c in comparisons if c.op in ARRAY_OPERATORS]
        if len(array_filters) > 1:
            raise UnsupportedQuery(
                RESTRICTION_ARRAY_CONTAINS,
                array_filters[1].describe(),
                "Only one array-contains or array-contains-any filter is allowed per query.",
            )

        for combinator in _combinators(expr):
            if not isinstance(combinator, OrFilter):
                continue
            for child in combinator.filters:
                if isinstance(child, Comparison) and child.op in RANGE_OPERATORS:
                    raise UnsupportedQuery(
                        RESTRICTION_OR_RANGE,
                        child.describe(),
                        "Range filters cannot be direct operands of an OR.",
                    )

        inequalities = [c for c in comparisons if c.op in INEQUALITY_OPERATORS]
        if inequalities and spec.order_by:
            inequality_fields = {c.field_path for c in inequalities}
            first = spec.order_by[0].field_path
            if first not in inequality_fields:
                raise UnsupportedQuery(
                    RESTRICTION_INEQUALITY_ORDER,
                    inequalities[0].describe(),
                    f"The first order-by field must be an inequality field, got '{first}'.",
                )

    ##########################################
    ################# WIRE ###################
    ##########################################

    def _compile_filter(self, expr: Comparison | AndFilter | OrFilter) -> dict:
        if isinstance(expr, Comparison):
            return self._compile_comparison(expr)
        return {
            "compositeFilter": {
                "op": "AND" if isinstance(expr, AndFilter) else "OR",
                "filters": [self._compile_filter(child) for child in expr.filters],
            }
        }

    def _compile_comparison(self, comparison: Comparison) -> dict:
        value = NullValue() if comparison.value is None else comparison.value
        return {
            "fieldFilter": {
                "field": {"fieldPath": comparison.field_path},
                "op": _WIRE_OPERATORS[comparison.op],
                "value": value.to_wire(),
            }
        }


def normalize(expr: Comparison | AndFilter | OrFilter) -> Comparison | AndFilter | OrFilter:
    """Splice same-kind nested combinators at every depth and unwrap single-operand ones.

    A combinator with one operand means the operand itself, so ``or_(gt("age", 18))``
    is checked and compiled as the plain range filter.
    """
    if isinstance(expr, Comparison):
        return expr
    kind = type(expr)
    flat: list = []
    for child in expr.filters:
        child = normalize(child)
        if isinstance(child, kind):
            flat.extend(child.filters)
        else:
            flat.append(child)
    if len(flat) == 1:
        return flat[0]
    return kind(filters=tuple(flat))


def _comparisons(expr):
    if isinstance(expr, Comparison):
        yield expr
        return
    for child in expr.filters:
        yield from _comparisons(child)


def _combinators(expr):
    if isinstance(expr, Comparison):
        return
    yield expr
    for child in expr.filters:
        yield from _combinators(child)
