"""Security rule expression models.

A RuleSet is an ordered list of PathRules. Each PathRule scopes an optional
read and an optional write condition to a path pattern such as
``/users/{userId}``. Conditions are immutable RuleExpr trees.
"""

import re
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from shared.models.value import Value, coerce_value

_CAPTURE = re.compile(r"\{([A-Za-z_][A-Za-z0-9_]*)(?:=\*\*)?\}")


class _ExprBase(BaseModel):
    model_config = ConfigDict(frozen=True)


class IsAuthenticated(_ExprBase):
    kind: Literal["is_authenticated"] = "is_authenticated"


class IsOwner(_ExprBase):
    kind: Literal["is_owner"] = "is_owner"
    field_path: str = Field(min_length=1)


class HasRole(_ExprBase):
    kind: Literal["has_role"] = "has_role"
    role: str = Field(min_length=1)


class FieldEquals(_ExprBase):
    kind: Literal["field_equals"] = "field_equals"
    field_path: str = Field(min_length=1)
    value: Value

    @field_validator("value", mode="before")
    @classmethod
    def _coerce(cls, value: Any) -> Any:
        return coerce_value(value)


class Constant(_ExprBase):
    kind: Literal["constant"] = "constant"
    value: bool


class Not(_ExprBase):
    kind: Literal["not"] = "not"
    expr: "RuleExpr"


class AndRule(_ExprBase):
    kind: Literal["and"] = "and"
    exprs: tuple["RuleExpr", ...] = Field(min_length=1)


class OrRule(_ExprBase):
    kind: Literal["or"] = "or"
    exprs: tuple["RuleExpr", ...] = Field(min_length=1)


RuleExpr = Annotated[
    Union[IsAuthenticated, IsOwner, HasRole, FieldEquals, Constant, Not, AndRule, OrRule],
    Field(discriminator="kind"),
]

Not.model_rebuild()
AndRule.model_rebuild()
OrRule.model_rebuild()


class PathRule(BaseModel):
    """
    Conditions scoped to one path pattern.

    Attributes:
        path_pattern (str): Document path pattern, e.g. "/users/{userId}" or "/public/{document=**}".
        read (RuleExpr | None): Condition for read access; None grants nothing.
        write (RuleExpr | None): Condition for write access; None grants nothing.
    """

    model_config = ConfigDict(frozen=True)

    path_pattern: str
    read: RuleExpr | None = None
    write: RuleExpr | None = None

    @field_validator("path_pattern")
    @classmethod
    def _check_pattern(cls, value: str) -> str:
        if not value.startswith("/") or len(value) < 2:
            raise ValueError(f"Path pattern must start with '/' and name a segment, got {value!r}.")
        if any(ch.isspace() for ch in value):
            raise ValueError(f"Path pattern must not contain whitespace, got {value!r}.")
        return value

    @property
    def captures(self) -> list[str]:
        """Names of the path variables declared by the pattern, in order."""
        return _CAPTURE.findall(self.path_pattern)


class RuleSet(BaseModel):
    model_config = ConfigDict(frozen=True)

    rules: tuple[PathRule, ...] = ()


##########################################
############## COMPOSITION ###############
##########################################

def is_authenticated() -> IsAuthenticated:
    return IsAuthenticated()


def is_owner(field_path: str) -> IsOwner:
    return IsOwner(field_path=field_path)


def has_role(role: str) -> HasRole:
    return HasRole(role=role)


def field_equals(field_path: str, value: Any) -> FieldEquals:
    return FieldEquals(field_path=field_path, value=value)


def not_(expr: Any) -> Not:
    return Not(expr=expr)


def all_of(*exprs: Any) -> AndRule:
    """AND over the operands. Nested AND operands are spliced in place."""
    return AndRule(exprs=_flatten(AndRule, exprs))


def any_of(*exprs: Any) -> OrRule:
    """OR over the operands. Nested OR operands are spliced in place."""
    return OrRule(exprs=_flatten(OrRule, exprs))


def allow_all() -> Constant:
    return Constant(value=True)


def deny_all() -> Constant:
    return Constant(value=False)


def _flatten(combinator: type, exprs: tuple) -> tuple:
    if len(exprs) == 1 and isinstance(exprs[0], (list, tuple)):
        exprs = tuple(exprs[0])
    if not exprs:
        raise ValueError(f"{combinator.__name__} needs at least one operand.")
    flat: list = []
    for expr in exprs:
        if isinstance(expr, combinator):
            flat.extend(expr.exprs)
        else:
            flat.append(expr)
    return tuple(flat)


def common_rules() -> RuleSet:
    """A starter rule set: self-owned user profiles, public content and an admin area."""
    return RuleSet(rules=(
        PathRule(path_pattern="/users/{userId}", read=is_authenticated(), write=is_owner("userId")),
        PathRule(path_pattern="/public/{document=**}", read=allow_all(), write=has_role("admin")),
        PathRule(path_pattern="/admin/{document=**}", read=has_role("admin"), write=has_role("admin")),
    ))
