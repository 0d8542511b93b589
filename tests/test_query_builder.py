"""Tests for the listing query builder."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.dialects import postgresql
from sqlalchemy.orm import Session

from ratingwatch.core.exceptions import BadRequestError
from ratingwatch.database.orm import Base, RatingChange
from ratingwatch.services.query_builder import (
    DEFAULT_LIMIT,
    DEFAULT_OFFSET,
    FilterSpec,
    PredicateKind,
    SORTABLE_FIELDS,
    SortOrder,
    build_predicates,
    build_query_plan,
    like_pattern,
    parse_order,
    split_param,
)


def _compile(plan) -> str:
    return str(plan.to_select().compile(dialect=postgresql.dialect()))


class TestFromQueryParams:
    """Tests for FilterSpec.from_query_params."""

    def test_empty_params_use_defaults(self):
        spec = FilterSpec.from_query_params({})
        assert spec.sort == "ticker"
        assert spec.order is SortOrder.ASC
        assert spec.limit == DEFAULT_LIMIT == 100
        assert spec.offset == DEFAULT_OFFSET == 0
        assert build_predicates(spec) == []

    def test_order_desc_any_case(self):
        assert FilterSpec.from_query_params({"order": "desc"}).order is SortOrder.DESC
        assert FilterSpec.from_query_params({"order": "DeSc"}).order is SortOrder.DESC

    def test_unknown_order_is_ascending(self):
        assert FilterSpec.from_query_params({"order": "sideways"}).order is SortOrder.ASC

    @pytest.mark.parametrize("raw", ["0", "-5", "abc", "10.5", ""])
    def test_invalid_limit_falls_back(self, raw):
        assert FilterSpec.from_query_params({"limit": raw}).limit == 100

    @pytest.mark.parametrize("raw", ["99999999999999999999", "9223372036854775808", "1_000"])
    def test_out_of_range_paging_falls_back(self, raw):
        spec = FilterSpec.from_query_params({"limit": raw, "offset": raw})
        assert (spec.limit, spec.offset) == (100, 0)

    def test_largest_int64_limit_is_kept(self):
        assert FilterSpec.from_query_params({"limit": "9223372036854775807"}).limit == 2**63 - 1

    @pytest.mark.parametrize(
        "raw", ["2025-01-13 00:30:05+00:00", "Jan 13 2025 10:00 UTC", "2025-01-13"]
    )
    def test_non_rfc3339_dates_are_dropped(self, raw):
        assert FilterSpec.from_query_params({"date_from": raw}).date_from is None

    @pytest.mark.parametrize("raw", ["-1", "x", "1.5"])
    def test_invalid_offset_falls_back(self, raw):
        assert FilterSpec.from_query_params({"offset": raw}).offset == 0

    def test_valid_paging(self):
        spec = FilterSpec.from_query_params({"limit": "25", "offset": "50"})
        assert (spec.limit, spec.offset) == (25, 50)

    def test_offset_zero_is_kept(self):
        assert FilterSpec.from_query_params({"offset": "0"}).offset == 0

    def test_malformed_bounds_are_dropped(self):
        spec = FilterSpec.from_query_params(
            {
                "min_target_from": "abc",
                "max_target_to": "NaN",
                "date_from": "yesterday",
                "date_to": "2025-01-01T00:00:00",
            }
        )
        assert spec.min_target_from is None
        assert spec.max_target_to is None
        assert spec.date_from is None
        assert spec.date_to is None
        assert build_predicates(spec) == []

    def test_unknown_sort_is_rejected(self):
        with pytest.raises(BadRequestError) as exc_info:
            FilterSpec.from_query_params({"sort": "ticker; DROP TABLE rating_changes"})
        assert exc_info.value.status_code == 400
        assert exc_info.value.details["allowed"] == sorted(SORTABLE_FIELDS)

    def test_empty_sort_uses_default(self):
        assert FilterSpec.from_query_params({"sort": ""}).sort == "ticker"


class TestHelpers:
    def test_split_param_trims_and_drops_empty(self):
        assert split_param(" Buy , ,Sell,") == ("Buy", "Sell")
        assert split_param("") == ()
        assert split_param(None) == ()

    def test_parse_order(self):
        assert parse_order(None) is SortOrder.ASC
        assert parse_order("DESC") is SortOrder.DESC

    def test_like_pattern_escapes_wildcards(self):
        assert like_pattern("apple") == "%apple%"
        assert like_pattern("50%_off") == "%50\\%\\_off%"
        assert like_pattern("a\\b") == "%a\\\\b%"


class TestBuildPredicates:
    def test_clause_order_and_params(self):
        spec = FilterSpec.from_query_params(
            {
                "search": "apple",
                "action": "upgraded by,downgraded by",
                "rating_to": "Buy",
                "min_target_from": "10",
                "max_target_to": "50.5",
                "date_from": "2025-01-01T00:00:00Z",
                "date_to": "2025-02-01T00:00:00Z",
                "limit": "10",
                "offset": "20",
            }
        )
        plan = build_query_plan(spec)

        kinds = [(p.kind, p.fields) for p in plan.predicates]
        assert kinds[0][0] is PredicateKind.SEARCH
        assert len(kinds[0][1]) == 6
        assert kinds[1:] == [
            (PredicateKind.IN, ("action",)),
            (PredicateKind.IN, ("rating_to",)),
            (PredicateKind.GTE, ("target_from",)),
            (PredicateKind.LTE, ("target_to",)),
            (PredicateKind.GTE, ("time", "time_nanos")),
            (PredicateKind.LTE, ("time", "time_nanos")),
        ]

        params = plan.params
        assert params[:6] == ["%apple%"] * 6
        assert params[6:9] == ["upgraded by", "downgraded by", "Buy"]
        assert params[9:11] == [Decimal("10"), Decimal("50.5")]
        jan = datetime(2025, 1, 1, tzinfo=timezone.utc)
        feb = datetime(2025, 2, 1, tzinfo=timezone.utc)
        assert params[11:14] == [jan, jan, 0]
        assert params[14:17] == [feb, feb, 0]
        assert params[-2:] == [10, 20]

    def test_offset_timestamp_is_normalized_to_utc(self):
        spec = FilterSpec.from_query_params({"date_from": "2025-01-01T02:00:00+02:00"})
        assert spec.date_from == (datetime(2025, 1, 1, tzinfo=timezone.utc), 0)

    def test_date_bound_keeps_nanoseconds(self):
        spec = FilterSpec.from_query_params({"date_to": "2025-01-13T00:30:05.813548100Z"})
        moment = datetime(2025, 1, 13, 0, 30, 5, 813548, tzinfo=timezone.utc)
        assert spec.date_to == (moment, 100)
        (predicate,) = build_predicates(spec)
        assert predicate.params == (moment, moment, 100)

    def test_brokerage_and_rating_from_sets(self):
        spec = FilterSpec.from_query_params(
            {"brokerage": "Goldman Sachs", "rating_from": "Hold,Sell"}
        )
        predicates = build_predicates(spec)
        assert [p.fields for p in predicates] == [("brokerage",), ("rating_from",)]
        assert predicates[1].values == ("Hold", "Sell")


class TestToSelect:
    def test_values_are_bound_not_inlined(self):
        hostile = "x'; DROP TABLE rating_changes; --"
        spec = FilterSpec.from_query_params({"search": hostile, "brokerage": hostile})
        sql = _compile(build_query_plan(spec))
        assert "DROP TABLE" not in sql
        assert "ILIKE" in sql.upper()

    def test_order_by_has_id_tie_break(self):
        spec = FilterSpec.from_query_params({"sort": "time", "order": "DESC"})
        sql = _compile(build_query_plan(spec))
        order_by = sql.split("ORDER BY", 1)[1]
        assert "time DESC, rating_changes.time_nanos DESC, rating_changes.id ASC" in order_by

    def test_no_where_without_predicates(self):
        sql = _compile(build_query_plan(FilterSpec()))
        assert "WHERE" not in sql
        assert "LIMIT" in sql
        assert "OFFSET" in sql


class TestTimeOrderingAgainstStore:
    """Runs plans against an in-memory SQLite copy of the table."""

    MOMENT = datetime(2025, 1, 13, 0, 30, 5, 813548, tzinfo=timezone.utc)

    @pytest.fixture
    def session(self):
        engine = create_engine("sqlite://")
        Base.metadata.create_all(engine)
        earlier = self.MOMENT - timedelta(microseconds=1)
        rows = [
            (1, self.MOMENT, 892),
            (2, self.MOMENT, 50),
            (3, earlier, 999),
            (4, self.MOMENT, 10),
        ]
        with Session(engine) as session:
            session.add_all(
                RatingChange(id=id_, ticker=f"T{id_}", time=time, time_nanos=nanos)
                for id_, time, nanos in rows
            )
            session.commit()
            yield session
        engine.dispose()

    def _ids(self, session, params) -> list[int]:
        plan = build_query_plan(FilterSpec.from_query_params(params))
        return [r.id for r in session.execute(plan.to_select()).scalars()]

    def test_upper_bound_inside_a_microsecond(self, session):
        ids = self._ids(session, {"date_to": "2025-01-13T00:30:05.813548100Z"})
        assert sorted(ids) == [2, 3, 4]

    def test_lower_bound_inside_a_microsecond(self, session):
        ids = self._ids(session, {"date_from": "2025-01-13T00:30:05.813548100Z"})
        assert ids == [1]

    def test_sort_by_time_uses_nanoseconds(self, session):
        assert self._ids(session, {"sort": "time"}) == [3, 4, 2, 1]
        assert self._ids(session, {"sort": "time", "order": "DESC"}) == [1, 2, 4, 3]
