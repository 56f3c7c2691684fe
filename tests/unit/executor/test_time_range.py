# tests/unit/executor/test_time_range.py
"""Unit tests for time range normalization."""

from datetime import date, datetime, timedelta, timezone

import pytest

from journal_rag.executor.time_range import (
    UNBOUNDED,
    TimeRange,
    coerce_time_range,
    derive_time_range_from_sql,
    parse_instant,
    resolve_time_directive,
    resolve_time_range,
)

UTC = timezone.utc
# Wednesday
NOW = datetime(2025, 8, 13, 15, 0, tzinfo=UTC)


class TestParseInstant:
    """Tests for parse_instant."""

    def test_z_suffix(self):
        assert parse_instant("2025-08-01T00:00:00Z") == datetime(2025, 8, 1, tzinfo=UTC)

    def test_offset_converted_to_utc(self):
        assert parse_instant("2025-08-01T02:00:00+02:00") == datetime(2025, 8, 1, tzinfo=UTC)

    def test_naive_taken_as_utc(self):
        result = parse_instant(datetime(2025, 8, 1, 12, 0))
        assert result == datetime(2025, 8, 1, 12, 0, tzinfo=UTC)
        assert result.tzinfo is not None

    def test_date_is_start_of_day(self):
        assert parse_instant(date(2025, 8, 1)) == datetime(2025, 8, 1, tzinfo=UTC)

    def test_date_string(self):
        assert parse_instant("2025-08-01") == datetime(2025, 8, 1, tzinfo=UTC)

    @pytest.mark.parametrize("value", ["last week", "", "   ", None, 42, "2025-13-45"])
    def test_unparsable_is_none(self, value):
        assert parse_instant(value) is None

    @pytest.mark.parametrize(
        "value",
        ["2025-08-01 00:00:00+00", "2025-08-01 00:00:00+0000", "2025-08-01T00:00:00z"],
    )
    def test_postgres_style_instants(self, value):
        assert parse_instant(value) == datetime(2025, 8, 1, tzinfo=UTC)

    def test_postgres_style_offset_converted(self):
        assert parse_instant("2025-08-01 05:30:00+05:30") == datetime(2025, 8, 1, tzinfo=UTC)


class TestResolveTimeDirective:
    """Tests for shorthand directives (ISO weeks, UTC anchored)."""

    @pytest.mark.parametrize(
        "directive",
        ["last calendar week", "last week", "previous week", "lastWeek", "last_week", "Last-Week"],
    )
    def test_last_week_is_previous_monday_to_sunday(self, directive):
        result = resolve_time_directive(directive, NOW)
        assert result.start == datetime(2025, 8, 4, tzinfo=UTC)
        assert result.end == datetime(2025, 8, 10, 23, 59, 59, 999999, tzinfo=UTC)
        assert result.timezone == "UTC"

    def test_last_week_on_a_monday(self):
        monday = datetime(2025, 8, 11, 0, 30, tzinfo=UTC)
        result = resolve_time_directive("last week", monday)
        assert result.start == datetime(2025, 8, 4, tzinfo=UTC)
        assert result.end.date() == date(2025, 8, 10)

    def test_this_week_ends_now(self):
        result = resolve_time_directive("this week", NOW)
        assert result.start == datetime(2025, 8, 11, tzinfo=UTC)
        assert result.end == NOW

    def test_today_and_yesterday(self):
        today = resolve_time_directive("today", NOW)
        assert today.start == datetime(2025, 8, 13, tzinfo=UTC)
        assert today.end == NOW

        yesterday = resolve_time_directive("yesterday", NOW)
        assert yesterday.start == datetime(2025, 8, 12, tzinfo=UTC)
        assert yesterday.end == datetime(2025, 8, 12, 23, 59, 59, 999999, tzinfo=UTC)

    def test_last_month(self):
        result = resolve_time_directive("last month", datetime(2025, 3, 15, tzinfo=UTC))
        assert result.start == datetime(2025, 2, 1, tzinfo=UTC)
        assert result.end.date() == date(2025, 2, 28)

    def test_last_month_across_year_boundary(self):
        result = resolve_time_directive("last month", datetime(2025, 1, 10, tzinfo=UTC))
        assert result.start == datetime(2024, 12, 1, tzinfo=UTC)
        assert result.end.date() == date(2024, 12, 31)

    def test_last_month_in_leap_year(self):
        result = resolve_time_directive("previous month", datetime(2024, 3, 31, 8, 0, tzinfo=UTC))
        assert result.start == datetime(2024, 2, 1, tzinfo=UTC)
        assert result.end == datetime(2024, 2, 29, 23, 59, 59, 999999, tzinfo=UTC)

    def test_this_month_and_years(self):
        assert resolve_time_directive("this month", NOW).start == datetime(2025, 8, 1, tzinfo=UTC)
        assert resolve_time_directive("this year", NOW).start == datetime(2025, 1, 1, tzinfo=UTC)
        last_year = resolve_time_directive("last year", NOW)
        assert last_year.start == datetime(2024, 1, 1, tzinfo=UTC)
        assert last_year.end.date() == date(2024, 12, 31)

    def test_last_n_days(self):
        result = resolve_time_directive("last 7 days", NOW)
        assert result.start == NOW - timedelta(days=7)
        assert result.end == NOW

    def test_unknown_directive(self):
        assert resolve_time_directive("when I was on holiday", NOW) is None


class TestCoerceTimeRange:
    """Tests for coerce_time_range."""

    def test_mapping_with_camel_case_keys(self):
        result = coerce_time_range({"startDate": "2025-08-01T00:00:00Z", "endDate": "2025-08-31", "timezone": "Europe/Paris"})
        assert result.start == datetime(2025, 8, 1, tzinfo=UTC)
        assert result.end == datetime(2025, 8, 31, tzinfo=UTC)
        assert result.timezone == "Europe/Paris"

    def test_unparsable_bound_becomes_open(self):
        result = coerce_time_range({"start": "sometime last week", "end": "2025-08-31T00:00:00Z"})
        assert result.start is None
        assert result.end == datetime(2025, 8, 31, tzinfo=UTC)

    def test_directive_string(self):
        result = coerce_time_range("last calendar week", now=NOW)
        assert result.start == datetime(2025, 8, 4, tzinfo=UTC)

    def test_unknown_directive_is_none(self):
        assert coerce_time_range("someday", now=NOW) is None

    def test_passthrough_and_none(self):
        tr = TimeRange(start=NOW)
        assert coerce_time_range(tr) is tr
        assert coerce_time_range(None) is None

    def test_unsupported_type(self):
        assert coerce_time_range(12345) is None


class TestDeriveTimeRangeFromSql:
    """Tests for ranges inferred from creation-time comparisons."""

    def test_lower_bound_only(self):
        sql = "SELECT * FROM entries WHERE user_id = auth.uid() AND created_at >= '2025-08-01T00:00:00Z'"
        result = derive_time_range_from_sql(sql)
        assert result.start == datetime(2025, 8, 1, tzinfo=UTC)
        assert result.end is None

    def test_between_with_casts(self):
        sql = (
            "SELECT * FROM entries WHERE user_id = auth.uid() "
            "AND created_at BETWEEN '2025-08-01'::timestamptz AND '2025-08-07T23:59:59Z'::timestamptz"
        )
        result = derive_time_range_from_sql(sql)
        assert result.start == datetime(2025, 8, 1, tzinfo=UTC)
        assert result.end == datetime(2025, 8, 7, 23, 59, 59, tzinfo=UTC)

    def test_postgres_style_literals(self):
        sql = (
            "SELECT * FROM entries WHERE user_id = auth.uid() "
            "AND created_at >= '2025-08-01 00:00:00+00' AND created_at <= '2025-08-31 23:59:59+00'"
        )
        result = derive_time_range_from_sql(sql)
        assert result.start == datetime(2025, 8, 1, tzinfo=UTC)
        assert result.end == datetime(2025, 8, 31, 23, 59, 59, tzinfo=UTC)

    def test_qualified_and_quoted_column(self):
        sql = (
            'SELECT * FROM "Journal Entries" e WHERE e.user_id = auth.uid() '
            "AND e.\"created_at\" >= '2025-08-01' AND e.created_at <= '2025-08-15'"
        )
        result = derive_time_range_from_sql(sql)
        assert result.start == datetime(2025, 8, 1, tzinfo=UTC)
        assert result.end == datetime(2025, 8, 15, tzinfo=UTC)

    def test_unparsable_literal_ignored(self):
        sql = "SELECT * FROM entries WHERE user_id = auth.uid() AND created_at >= 'not a date'"
        assert derive_time_range_from_sql(sql) is None

    def test_other_column_ignored(self):
        sql = "SELECT * FROM entries WHERE user_id = auth.uid() AND updated_created_at >= '2025-08-01'"
        assert derive_time_range_from_sql(sql) is None

    def test_no_sql(self):
        assert derive_time_range_from_sql(None) is None
        assert derive_time_range_from_sql("") is None


class TestResolveTimeRange:
    """Tests for precedence: step > SQL-derived > plan > unbounded."""

    SQL = "SELECT * FROM entries WHERE user_id = auth.uid() AND created_at >= '2025-07-01T00:00:00Z'"

    def test_step_range_wins(self):
        step = TimeRange(start=datetime(2025, 8, 1, tzinfo=UTC))
        plan = TimeRange(start=datetime(2025, 6, 1, tzinfo=UTC))
        assert resolve_time_range(step, self.SQL, plan) is step

    def test_sql_range_beats_plan(self):
        plan = TimeRange(start=datetime(2025, 6, 1, tzinfo=UTC))
        result = resolve_time_range(None, self.SQL, plan)
        assert result.start == datetime(2025, 7, 1, tzinfo=UTC)

    def test_empty_step_range_counts_as_absent(self):
        plan = TimeRange(end=datetime(2025, 6, 1, tzinfo=UTC))
        assert resolve_time_range(TimeRange(), None, plan) is plan

    def test_unbounded_when_nothing_present(self):
        result = resolve_time_range(None, "SELECT 1", None)
        assert result == UNBOUNDED
        assert not result.is_bounded
