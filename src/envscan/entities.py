"""Pattern entities and the comparator that evaluates them."""

import re
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Protocol


class EntityError(ValueError):
    """Raised for a pattern entity that cannot be evaluated."""


class Operation(Enum):
    """Comparison operations a pattern entity may carry."""

    EQUALS = "equals"
    NOT_EQUAL = "not equal"
    CASE_INSENSITIVE_EQUALS = "case insensitive equals"
    CASE_INSENSITIVE_NOT_EQUAL = "case insensitive not equal"
    GREATER_THAN = "greater than"
    LESS_THAN = "less than"
    GREATER_THAN_OR_EQUAL = "greater than or equal"
    LESS_THAN_OR_EQUAL = "less than or equal"
    PATTERN_MATCH = "pattern match"


_ORDERING = {
    Operation.GREATER_THAN: lambda a, b: a > b,
    Operation.LESS_THAN: lambda a, b: a < b,
    Operation.GREATER_THAN_OR_EQUAL: lambda a, b: a >= b,
    Operation.LESS_THAN_OR_EQUAL: lambda a, b: a <= b,
}

_STRING_ONLY = (
    Operation.CASE_INSENSITIVE_EQUALS,
    Operation.CASE_INSENSITIVE_NOT_EQUAL,
    Operation.PATTERN_MATCH,
)


@dataclass(slots=True, frozen=True)
class PatternEntity:
    """
    Immutable predicate description: a value plus the operation to apply.

    Validated on construction so a bad pattern fails before any process is read.
    """

    value: int | str
    operation: Operation = Operation.EQUALS
    _regex: re.Pattern | None = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if isinstance(self.value, bool) or not isinstance(self.value, (int, str)):
            raise EntityError(f"unsupported entity value: {self.value!r}")
        if self.operation in _ORDERING and not isinstance(self.value, int):
            raise EntityError(f"'{self.operation.value}' needs an integer value")
        if self.operation in _STRING_ONLY and not isinstance(self.value, str):
            raise EntityError(f"'{self.operation.value}' needs a string value")
        if self.operation is Operation.PATTERN_MATCH:
            try:
                object.__setattr__(self, "_regex", re.compile(self.value))
            except re.error as exc:
                raise EntityError(f"invalid pattern {self.value!r}: {exc}") from exc

    @property
    def regex(self) -> re.Pattern | None:
        return self._regex

    def with_value(self, value: int | str) -> "PatternEntity":
        """Return a copy of this entity with its value replaced."""
        return replace(self, value=value)


class EntityMatcher(Protocol):
    """Capability that decides whether a candidate satisfies an entity."""

    def matches(self, entity: PatternEntity, candidate: int | str) -> bool: ...


class EntityComparator:
    """Default matcher for integer pids and string variable names."""

    def matches(self, entity: PatternEntity, candidate: int | str) -> bool:
        op = entity.operation
        value = entity.value

        if op is Operation.EQUALS:
            return candidate == value
        if op is Operation.NOT_EQUAL:
            return candidate != value

        if op in _ORDERING:
            if not isinstance(candidate, int):
                raise EntityError(f"cannot order non-integer candidate {candidate!r}")
            return _ORDERING[op](candidate, value)

        if not isinstance(candidate, str):
            raise EntityError(f"'{op.value}' cannot be applied to {candidate!r}")
        if op is Operation.PATTERN_MATCH:
            return entity.regex.search(candidate) is not None
        if op is Operation.CASE_INSENSITIVE_EQUALS:
            return candidate.casefold() == value.casefold()
        if op is Operation.CASE_INSENSITIVE_NOT_EQUAL:
            return candidate.casefold() != value.casefold()

        raise EntityError(f"unsupported operation: {op}")
