"""Query expression models and their composition helpers.

Hierarchy:
  FilterExpr        : discriminated union (``kind``) of Comparison, AndFilter, OrFilter.
  QuerySpec         : collection + filter + ordering + paging, as written by callers.
  StructuredQuery   : the store's wire shape produced by the query compiler.

Expressions are immutable once built. ``and_``/``or_`` flatten nested
combinators of the same kind one level and keep everything else as written.
"""

from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from shared.models.value import ArrayValue, Value, coerce_value


class FilterOperator(str, Enum):
    EQ = "eq"
    NE = "ne"
    LT = "lt"
    LTE = "lte"
    GT = "gt"
    GTE = "gte"
    IN = "in"
    NOT_IN = "not_in"
    ARRAY_CONTAINS = "array_contains"
    ARRAY_CONTAINS_ANY = "array_contains_any"
    IS_NULL = "is_null"
    IS_NOT_NULL = "is_not_null"


RANGE_OPERATORS = frozenset({FilterOperator.LT, FilterOperator.LTE, FilterOperator.GT, FilterOperator.GTE})
INEQUALITY_OPERATORS = RANGE_OPERATORS | {FilterOperator.NE, FilterOperator.NOT_IN, FilterOperator.IS_NOT_NULL}
ARRAY_OPERATORS = frozenset({FilterOperator.ARRAY_CONTAINS, FilterOperator.ARRAY_CONTAINS_ANY})
LIST_OPERATORS = frozenset({FilterOperator.IN, FilterOperator.NOT_IN, FilterOperator.ARRAY_CONTAINS_ANY})
UNARY_OPERATORS = frozenset({FilterOperator.IS_NULL, FilterOperator.IS_NOT_NULL})

_SYMBOLS: dict[FilterOperator, str] = {
    FilterOperator.EQ: "==",
    FilterOperator.NE: "!=",
    FilterOperator.LT: "<",
    FilterOperator.LTE: "<=",
    FilterOperator.GT: ">",
    FilterOperator.GTE: ">=",
    FilterOperator.IN: "in",
    FilterOperator.NOT_IN: "not-in",
    FilterOperator.ARRAY_CONTAINS: "array-contains",
    FilterOperator.ARRAY_CONTAINS_ANY: "array-contains-any",
    FilterOperator.IS_NULL: "== null",
    FilterOperator.IS_NOT_NULL: "!= null",
}


##########################################
############## EXPRESSIONS ###############
##########################################

class Comparison(BaseModel):
    """A single ``field_path <op> value`` predicate."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["comparison"] = "comparison"
    field_path: str = Field(min_length=1)
    op: FilterOperator
    value: Value | None = None

    @field_validator("value", mode="before")
    @classmethod
    def _coerce(cls, value: Any) -> Any:
        if value is None:
            return None
        return coerce_value(value)

    @model_validator(mode="after")
    def _check_operand(self) -> "Comparison":
        if self.op in UNARY_OPERATORS:
            if self.value is not None:
                raise ValueError(f"Operator '{self.op.value}' takes no value.")
            return self
        if self.value is None:
            raise ValueError(f"Operator '{self.op.value}' on '{self.field_path}' needs a value.")
        if self.op in LIST_OPERATORS:
            if not isinstance(self.value, ArrayValue) or not self.value.values:
                raise ValueError(f"Operator '{self.op.value}' on '{self.field_path}' needs a non-empty array value.")
        return self

    def describe(self) -> str:
        symbol = _SYMBOLS[self.op]
        if self.op in UNARY_OPERATORS:
            return f"{self.field_path} {symbol}"
        return f"{self.field_path} {symbol} {self.value.describe()}"


class AndFilter(BaseModel):
    """Conjunction of filters, in declaration order."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["and"] = "and"
    filters: tuple["FilterExpr", ...] = Field(min_length=1)

    def describe(self) -> str:
        return "(" + " AND ".join(f.describe() for f in self.filters) + ")"


class OrFilter(BaseModel):
    """Disjunction of filters, in declaration order."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["or"] = "or"
    filters: tuple["FilterExpr", ...] = Field(min_length=1)

    def describe(self) -> str:
        return "(" + " OR ".join(f.describe() for f in self.filters) + ")"


FilterExpr = Annotated[Union[Comparison, AndFilter, OrFilter], Field(discriminator="kind")]

AndFilter.model_rebuild()
OrFilter.model_rebuild()


##########################################
############## COMPOSITION ###############
##########################################

def where(field_path: str, op: FilterOperator | str, value: Any = None) -> Comparison:
    """Build a comparison. ``value`` may be a tagged value or plain Python data."""
    return Comparison(field_path=field_path, op=FilterOperator(op), value=value)


def eq(field_path: str, value: Any) -> Comparison:
    return where(field_path, FilterOperator.EQ, value)


def ne(field_path: str, value: Any) -> Comparison:
    return where(field_path, FilterOperator.NE, value)


def lt(field_path: str, value: Any) -> Comparison:
    return where(field_path, FilterOperator.LT, value)


def lte(field_path: str, value: Any) -> Comparison:
    return where(field_path, FilterOperator.LTE, value)


def gt(field_path: str, value: Any) -> Comparison:
    return where(field_path, FilterOperator.GT, value)


def gte(field_path: str, value: Any) -> Comparison:
    return where(field_path, FilterOperator.GTE, value)


def in_(field_path: str, values: Any) -> Comparison:
    return where(field_path, FilterOperator.IN, values)


def not_in(field_path: str, values: Any) -> Comparison:
    return where(field_path, FilterOperator.NOT_IN, values)


def array_contains(field_path: str, value: Any) -> Comparison:
    return where(field_path, FilterOperator.ARRAY_CONTAINS, value)


def array_contains_any(field_path: str, values: Any) -> Comparison:
    return where(field_path, FilterOperator.ARRAY_CONTAINS_ANY, values)


def is_null(field_path: str) -> Comparison:
    return where(field_path, FilterOperator.IS_NULL)


def is_not_null(field_path: str) -> Comparison:
    return where(field_path, FilterOperator.IS_NOT_NULL)


def and_(*filters: Any) -> AndFilter:
    """Combine filters with AND. Nested AND operands are spliced in place."""
    return AndFilter(filters=_flatten(AndFilter, filters))


def or_(*filters: Any) -> OrFilter:
    """Combine filters with OR. Nested OR operands are spliced in place.

    A single operand is kept as written here; compilation treats it as the
    operand alone, so a lone range filter under an OR is accepted.
    """
    return OrFilter(filters=_flatten(OrFilter, filters))


def _flatten(combinator: type, filters: tuple) -> tuple:
    # a single list/tuple argument is accepted as the operand sequence
    if len(filters) == 1 and isinstance(filters[0], (list, tuple)):
        filters = tuple(filters[0])
    if not filters:
        raise ValueError(f"{combinator.__name__} needs at least one operand.")
    flat: list = []
    for expr in filters:
        if isinstance(expr, combinator):
            flat.extend(expr.filters)
        else:
            flat.append(expr)
    return tuple(flat)


##########################################
################ QUERIES #################
##########################################

class OrderBy(BaseModel):
    model_config = ConfigDict(frozen=True)

    field_path: str = Field(min_length=1)
    descending: bool = False


class QuerySpec(BaseModel):
    """
    A query as written by callers.

    Attributes:
        collection (str): Collection id to query.
        filter (FilterExpr | None): Optional filter tree.
        order_by (list[OrderBy]): Sort keys in priority order.
        limit (int | None): Maximum number of results; None means unbounded.
        offset (int | None): Number of results to skip.
        all_descendants (bool): Query every collection with this id (collection group).
    """

    model_config = ConfigDict(frozen=True)

    collection: str = Field(min_length=1)
    filter: FilterExpr | None = None
    order_by: tuple[OrderBy, ...] = ()
    limit: int | None = Field(default=None, ge=0)
    offset: int | None = Field(default=None, ge=0)
    all_descendants: bool = False


##########################################
################# WIRE ###################
##########################################

class _WireModel(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)


class FieldReference(_WireModel):
    field_path: str = Field(alias="fieldPath")


class CollectionSelector(_WireModel):
    collection_id: str = Field(alias="collectionId")
    all_descendants: bool | None = Field(default=None, alias="allDescendants")


class Order(_WireModel):
    field: FieldReference
    direction: Literal["ASCENDING", "DESCENDING"]


class StructuredQuery(_WireModel):
    """The store's structured query body."""

    from_: list[CollectionSelector] = Field(alias="from")
    where: dict[str, Any] | None = None
    order_by: list[Order] | None = Field(default=None, alias="orderBy")
    limit: int | None = None
    offset: int | None = None

    def to_wire(self) -> dict:
        body = self.model_dump(by_alias=True, exclude_none=True)
        if self.where is not None:
            # null comparison values must survive exclude_none
            body["where"] = self.where
        return body
