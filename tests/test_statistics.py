"""Tests for SLA statistics aggregation."""

from datetime import timedelta

from casewatch.sla.domain import SlaStatisticsCalculator, date_range_for_period

from conftest import T0, make_record


def _resolved(case_id, hours, store_id="store-1", store_name="Acme Outlet", response_hours=None):
    record = make_record(case_id, store_id=store_id, store_name=store_name)
    if response_hours is not None:
        at = T0 + timedelta(hours=response_hours)
        record.record_first_response(at, now=at)
    at = T0 + timedelta(hours=hours)
    record.record_resolution(at, now=at)
    return record


def test_ten_cases_seven_resolved_within_sla_is_seventy_percent():
    records = [_resolved(f"ok-{i}", hours=10, response_hours=2) for i in range(7)]
    records += [_resolved(f"late-{i}", hours=100) for i in range(3)]

    stats = SlaStatisticsCalculator.dashboard(records, T0, T0 + timedelta(days=1))

    assert stats.total_cases == 10
    assert stats.cases_resolved_within_sla == 7
    assert stats.sla_compliance_percentage == 70.0
    assert stats.total_resolution_breaches == 3
    assert stats.first_response_compliance_percentage == 70.0


def test_empty_range_yields_zeroes():
    stats = SlaStatisticsCalculator.dashboard([], T0, T0)

    assert stats.total_cases == 0
    assert stats.sla_compliance_percentage == 0
    assert stats.average_response_time_hours == 0


def test_open_and_currently_breached_counts():
    open_ok = make_record("open-ok")
    open_breached = make_record("open-breached", first_response_breached=True)
    resolved_breached = _resolved("closed", hours=100)

    stats = SlaStatisticsCalculator.dashboard([open_ok, open_breached, resolved_breached], T0, T0)

    assert stats.open_cases == 2
    assert stats.currently_breached_cases == 1
    assert stats.total_first_response_breaches == 2


def test_averages_are_rounded_to_two_decimals():
    a = _resolved("a", hours=10, response_hours=1)
    b = _resolved("b", hours=11, response_hours=2)
    c = _resolved("c", hours=11, response_hours=2)

    stats = SlaStatisticsCalculator.dashboard([a, b, c], T0, T0)

    assert stats.average_response_time_hours == 1.67
    assert stats.average_resolution_time_hours == 10.67


def test_seller_statistics_ordered_by_case_count_then_name():
    records = [
        make_record("z1", store_id="s-z", store_name="Zeta"),
        make_record("b1", store_id="s-b", store_name="Beta"),
        make_record("a1", store_id="s-a", store_name="Alpha"),
        make_record("z2", store_id="s-z", store_name="Zeta"),
    ]

    stats = SlaStatisticsCalculator.by_store(records)

    assert [s.store_name for s in stats] == ["Zeta", "Alpha", "Beta"]
    assert stats[0].total_cases == 2


def test_store_statistics_only_counts_that_store():
    records = [
        _resolved("a", hours=5, store_id="s-1", response_hours=1),
        _resolved("b", hours=100, store_id="s-2"),
    ]

    stats = SlaStatisticsCalculator.for_store("s-1", records)

    assert stats.total_cases == 1
    assert stats.sla_compliance_percentage == 100.0


def test_date_range_for_period():
    start, end = date_range_for_period("7d", T0)
    assert end - start == timedelta(days=7)

    start, end = date_range_for_period("bogus", T0)
    assert end - start == timedelta(days=30)

    start, end = date_range_for_period(None, T0)
    assert end == T0 and end - start == timedelta(days=30)
