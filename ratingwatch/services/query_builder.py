"""
Listing query builder for rating-change records.

Turns the optional, independent query-string facets of ``GET /stocks`` into a
``QueryPlan``: an ordered list of typed predicates, an allow-listed ordering
and a page window. The plan compiles to a single SQLAlchemy ``Select`` in
which every caller-supplied value is a bound parameter.

Predicate order is fixed so that plans (and their parameter lists) are
deterministic:

    1. search       one OR across the six text columns (6 parameters)
    2. IN filters   action, brokerage, rating_from, rating_to
    3. target_from  >= min, <= max
    4. target_to    >= min, <= max
    5. time         >= date_from, <= date_to, compared on (time, time_nanos)
                    (3 parameters each)

Malformed numbers and timestamps drop their filter instead of failing the
request. An unknown sort field is the one input that is rejected.

Usage:
    spec = FilterSpec.from_query_params(request.query_params)
    plan = build_query_plan(spec)
    records = await rating_changes_repo.list_rating_changes(plan)
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from sqlalchemy import Select, and_, or_, select
from sqlalchemy.sql.elements import ColumnElement

from ratingwatch.core.data_helpers import (
    parse_timestamp,
    safe_decimal,
    safe_int,
    split_timestamp,
)
from ratingwatch.core.exceptions import BadRequestError
from ratingwatch.database.orm import RatingChange


DEFAULT_LIMIT = 100
DEFAULT_OFFSET = 0
DEFAULT_SORT = "ticker"

SEARCH_FIELDS: tuple[str, ...] = (
    "ticker",
    "company",
    "brokerage",
    "action",
    "rating_from",
    "rating_to",
)
SET_FILTER_FIELDS: tuple[str, ...] = ("action", "brokerage", "rating_from", "rating_to")

SORTABLE_FIELDS: frozenset[str] = frozenset(
    {
        "ticker",
        "company",
        "brokerage",
        "action",
        "rating_from",
        "rating_to",
        "target_from",
        "target_to",
        "time",
        "current_price",
    }
)

# Columns that refine a sort key, ordered in the same direction
SORT_SUBKEYS: dict[str, tuple[str, ...]] = {"time": ("time_nanos",)}

_LIKE_ESCAPE = "\\"


class SortOrder(str, Enum):
    ASC = "ASC"
    DESC = "DESC"


class PredicateKind(str, Enum):
    SEARCH = "search"  # case-insensitive substring on any of the fields
    IN = "in"
    GTE = "gte"
    LTE = "lte"


@dataclass(frozen=True)
class Predicate:
    """One condition of a listing query.

    ``fields`` are always module constants, never request input; ``values``
    are the only caller-controlled part and are emitted as bound parameters.
    """

    kind: PredicateKind
    fields: tuple[str, ...]
    values: tuple[Any, ...]

    @property
    def is_compound_bound(self) -> bool:
        """A bound over a (major, minor) column pair such as (time, time_nanos)."""
        return self.kind in (PredicateKind.GTE, PredicateKind.LTE) and len(self.fields) == 2

    @property
    def params(self) -> tuple[Any, ...]:
        """Parameter values in the order the SQL placeholders appear."""
        if self.kind is PredicateKind.SEARCH:
            return self.values * len(self.fields)
        if self.is_compound_bound:
            major, minor = self.values
            return (major, major, minor)
        return self.values

    def to_expression(self) -> ColumnElement[bool]:
        columns = [getattr(RatingChange, name) for name in self.fields]
        if self.kind is PredicateKind.SEARCH:
            (pattern,) = self.values
            return or_(*(col.ilike(pattern, escape=_LIKE_ESCAPE) for col in columns))
        if self.is_compound_bound:
            return self._compound_expression(columns)
        (column,) = columns
        if self.kind is PredicateKind.IN:
            return column.in_(list(self.values))
        (bound,) = self.values
        if self.kind is PredicateKind.GTE:
            return column >= bound
        return column <= bound

    def _compound_expression(self, columns: list[Any]) -> ColumnElement[bool]:
        # (major, minor) compared lexicographically against (bound, sub_bound)
        major, minor = columns
        bound, sub_bound = self.values
        if self.kind is PredicateKind.GTE:
            return or_(major > bound, and_(major == bound, minor >= sub_bound))
        return or_(major < bound, and_(major == bound, minor <= sub_bound))


@dataclass(frozen=True)
class FilterSpec:
    """Listing constraints parsed from one request. Every facet is optional."""

    search: str | None = None
    action: tuple[str, ...] = ()
    brokerage: tuple[str, ...] = ()
    rating_from: tuple[str, ...] = ()
    rating_to: tuple[str, ...] = ()
    min_target_from: Decimal | None = None
    max_target_from: Decimal | None = None
    min_target_to: Decimal | None = None
    max_target_to: Decimal | None = None
    date_from: tuple[datetime, int] | None = None  # (time, time_nanos)
    date_to: tuple[datetime, int] | None = None
    sort: str = DEFAULT_SORT
    order: SortOrder = SortOrder.ASC
    limit: int = DEFAULT_LIMIT
    offset: int = DEFAULT_OFFSET

    def __post_init__(self) -> None:
        if self.sort not in SORTABLE_FIELDS:
            raise BadRequestError(
                message=f"Invalid sort field: {self.sort!r}",
                details={"allowed": sorted(SORTABLE_FIELDS)},
            )

    @classmethod
    def from_query_params(cls, params: Mapping[str, str]) -> FilterSpec:
        """Build a spec from raw query-string values.

        Raises:
            BadRequestError: ``sort`` names a field outside ``SORTABLE_FIELDS``.
        """
        limit = safe_int(params.get("limit"))
        offset = safe_int(params.get("offset"))

        return cls(
            search=params.get("search") or None,
            action=split_param(params.get("action")),
            brokerage=split_param(params.get("brokerage")),
            rating_from=split_param(params.get("rating_from")),
            rating_to=split_param(params.get("rating_to")),
            min_target_from=safe_decimal(params.get("min_target_from")),
            max_target_from=safe_decimal(params.get("max_target_from")),
            min_target_to=safe_decimal(params.get("min_target_to")),
            max_target_to=safe_decimal(params.get("max_target_to")),
            date_from=_parse_bound(params.get("date_from")),
            date_to=_parse_bound(params.get("date_to")),
            sort=params.get("sort") or DEFAULT_SORT,
            order=parse_order(params.get("order")),
            limit=limit if limit is not None and limit > 0 else DEFAULT_LIMIT,
            offset=offset if offset is not None and offset >= 0 else DEFAULT_OFFSET,
        )


@dataclass(frozen=True)
class QueryPlan:
    """Everything needed to run one listing query."""

    predicates: tuple[Predicate, ...] = field(default_factory=tuple)
    sort: str = DEFAULT_SORT
    order: SortOrder = SortOrder.ASC
    limit: int = DEFAULT_LIMIT
    offset: int = DEFAULT_OFFSET

    @property
    def params(self) -> list[Any]:
        """Positional parameters in predicate-emission order, then limit and offset."""
        values: list[Any] = []
        for predicate in self.predicates:
            values.extend(predicate.params)
        values.extend([self.limit, self.offset])
        return values

    def to_select(self) -> Select[tuple[RatingChange]]:
        sort_names = (self.sort,) + SORT_SUBKEYS.get(self.sort, ())
        columns = [getattr(RatingChange, name) for name in sort_names]
        if self.order is SortOrder.DESC:
            ordering = [col.desc() for col in columns]
        else:
            ordering = [col.asc() for col in columns]
        stmt = select(RatingChange)
        if self.predicates:
            stmt = stmt.where(*(p.to_expression() for p in self.predicates))
        return (
            stmt.order_by(*ordering, RatingChange.id.asc())
            .limit(self.limit)
            .offset(self.offset)
        )


def split_param(value: str | None) -> tuple[str, ...]:
    """Split a comma-separated facet, trimming segments and dropping empty ones."""
    if not value:
        return ()
    return tuple(part.strip() for part in value.split(",") if part.strip())


def parse_order(value: str | None) -> SortOrder:
    """``DESC`` in any case selects descending order; anything else is ascending."""
    if value is not None and value.upper() == SortOrder.DESC.value:
        return SortOrder.DESC
    return SortOrder.ASC


def like_pattern(term: str) -> str:
    """Wrap a search term for substring ILIKE, escaping LIKE metacharacters."""
    escaped = (
        term.replace(_LIKE_ESCAPE, _LIKE_ESCAPE * 2)
        .replace("%", _LIKE_ESCAPE + "%")
        .replace("_", _LIKE_ESCAPE + "_")
    )
    return f"%{escaped}%"


def _parse_bound(value: str | None) -> tuple[datetime, int] | None:
    ts = parse_timestamp(value)
    return split_timestamp(ts) if ts is not None else None


def _bound_values(bound: Any) -> tuple[Any, ...]:
    return tuple(bound) if isinstance(bound, tuple) else (bound,)


def build_predicates(spec: FilterSpec) -> list[Predicate]:
    """Emit one predicate per present facet, in the fixed clause order."""
    predicates: list[Predicate] = []

    if spec.search:
        predicates.append(
            Predicate(PredicateKind.SEARCH, SEARCH_FIELDS, (like_pattern(spec.search),))
        )

    for name in SET_FILTER_FIELDS:
        values = getattr(spec, name)
        if values:
            predicates.append(Predicate(PredicateKind.IN, (name,), tuple(values)))

    ranges = (
        (("target_from",), spec.min_target_from, spec.max_target_from),
        (("target_to",), spec.min_target_to, spec.max_target_to),
        (("time", "time_nanos"), spec.date_from, spec.date_to),
    )
    for fields, lower, upper in ranges:
        if lower is not None:
            predicates.append(Predicate(PredicateKind.GTE, fields, _bound_values(lower)))
        if upper is not None:
            predicates.append(Predicate(PredicateKind.LTE, fields, _bound_values(upper)))

    return predicates


def build_query_plan(spec: FilterSpec) -> QueryPlan:
    """Compose the predicates, ordering and page window for a spec."""
    return QueryPlan(
        predicates=tuple(build_predicates(spec)),
        sort=spec.sort,
        order=spec.order,
        limit=spec.limit,
        offset=spec.offset,
    )
