"""
Tests for SlaTrackingService against an in-memory SQLite database.
"""

from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from casewatch.config import ErrorCode, SlaStatus
from casewatch.sla.application import SlaTrackingService

from conftest import T0, make_record


async def _open_case(service, case_id="case-1", created_at=T0, store_id="store-1", **kwargs):
    result = await service.create_tracking_record(
        case_id=case_id,
        case_number=f"CASE-{case_id}",
        case_type=kwargs.pop("case_type", "Return"),
        store_id=store_id,
        store_name=kwargs.pop("store_name", "Acme Outlet"),
        case_created_at=created_at,
        **kwargs,
    )
    assert result.succeeded, result.error
    return result.value


# ========== Creation ==========

@pytest.mark.asyncio
async def test_create_tracking_record_freezes_deadlines(service, global_configuration):
    record = await _open_case(service)

    assert record.id is not None
    assert record.configuration_id == global_configuration.id
    assert record.first_response_deadline == T0 + timedelta(hours=24)
    assert record.resolution_deadline == T0 + timedelta(hours=72)
    assert not record.first_response_breached and not record.resolution_breached
    assert record.first_responded_at is None and record.resolved_at is None


@pytest.mark.asyncio
async def test_create_duplicate_is_rejected(service, global_configuration):
    await _open_case(service)

    result = await service.create_tracking_record(
        case_id="case-1", case_number="CASE-1", case_type="Return",
        store_id="store-1", store_name="Acme Outlet", case_created_at=T0,
    )

    assert not result.succeeded
    assert result.error_code == ErrorCode.DUPLICATE_TRACKING_RECORD


@pytest.mark.asyncio
async def test_create_without_configuration_fails(service):
    result = await service.create_tracking_record(
        case_id="case-1", case_number="CASE-1", case_type="Return",
        store_id="store-1", store_name="Acme Outlet", case_created_at=T0,
    )

    assert result.error_code == ErrorCode.NO_APPLICABLE_CONFIGURATION


@pytest.mark.asyncio
async def test_create_with_missing_identifiers_fails_validation(service, global_configuration):
    result = await service.create_tracking_record(
        case_id=" ", case_number="CASE-1", case_type="Return",
        store_id="", store_name="Acme Outlet", case_created_at=T0,
    )

    assert result.error_code == ErrorCode.VALIDATION_ERROR
    assert "case_id is required" in result.error.details["errors"]
    assert "store_id is required" in result.error.details["errors"]


@pytest.mark.asyncio
async def test_create_with_unknown_case_type_fails_validation(service, global_configuration):
    result = await service.create_tracking_record(
        case_id="case-1", case_number="CASE-1", case_type="Refund",
        store_id="store-1", store_name="Acme Outlet", case_created_at=T0,
    )

    assert result.error_code == ErrorCode.VALIDATION_ERROR
    assert (await service.get_tracking_record("case-1")).error_code == ErrorCode.RECORD_NOT_FOUND


@pytest.mark.asyncio
async def test_deleted_configuration_keeps_frozen_deadlines(service, global_configuration):
    await _open_case(service)

    deleted = await service.delete_sla_configuration(global_configuration.id)
    record = (await service.get_tracking_record("case-1")).value

    assert deleted.succeeded
    assert record.first_response_deadline == T0 + timedelta(hours=24)


# ========== Events ==========

@pytest.mark.asyncio
async def test_unknown_case_is_not_found(service):
    result = await service.record_first_response("missing", T0)

    assert result.error_code == ErrorCode.RECORD_NOT_FOUND


@pytest.mark.asyncio
async def test_first_response_is_idempotent(service, global_configuration):
    await _open_case(service)

    first = await service.record_first_response("case-1", T0 + timedelta(hours=3))
    second = await service.record_first_response("case-1", T0 + timedelta(hours=9))

    assert first.succeeded and second.succeeded
    assert second.value.first_responded_at == T0 + timedelta(hours=3)
    assert second.value.version == first.value.version


@pytest.mark.asyncio
async def test_event_before_case_creation_fails_validation(service, global_configuration):
    await _open_case(service)

    result = await service.record_resolution("case-1", T0 - timedelta(hours=1))

    assert result.error_code == ErrorCode.VALIDATION_ERROR


@pytest.mark.asyncio
async def test_late_response_is_flagged_when_recorded(service, global_configuration):
    await _open_case(service)

    result = await service.record_first_response("case-1", T0 + timedelta(hours=30))

    assert result.value.first_response_breached
    assert result.value.status == SlaStatus.FIRST_RESPONSE_BREACHED


@pytest.mark.asyncio
async def test_resolution_makes_record_terminal(service, global_configuration):
    await _open_case(service)

    result = await service.record_resolution("case-1", T0 + timedelta(hours=40))
    again = await service.record_resolution("case-1", T0 + timedelta(hours=50))

    assert result.value.is_terminal
    assert again.value.resolved_at == T0 + timedelta(hours=40)
    assert not again.value.resolution_breached


# ========== Breach Sweep ==========

@pytest.mark.asyncio
async def test_sweep_flags_missing_first_response(service, global_configuration):
    await _open_case(service)

    result = await service.check_and_update_breaches(T0 + timedelta(hours=25))
    record = (await service.get_tracking_record("case-1")).value

    assert result.value == 1
    assert record.first_response_breached
    assert not record.resolution_breached
    assert record.last_breach_check_at == T0 + timedelta(hours=25)


@pytest.mark.asyncio
async def test_sweep_ignores_timely_response(service, global_configuration):
    await _open_case(service)
    await service.record_first_response("case-1", T0 + timedelta(hours=10))

    result = await service.check_and_update_breaches(T0 + timedelta(hours=25))
    record = (await service.get_tracking_record("case-1")).value

    assert result.value == 0
    assert not record.first_response_breached


@pytest.mark.asyncio
async def test_sweep_is_idempotent_for_same_instant(service, global_configuration):
    for i in range(3):
        await _open_case(service, case_id=f"case-{i}")

    now = T0 + timedelta(hours=25)
    first = await service.check_and_update_breaches(now)
    second = await service.check_and_update_breaches(now)

    assert first.value == 3
    assert second.value == 0


@pytest.mark.asyncio
async def test_sweep_raises_resolution_flag_later(service, global_configuration):
    await _open_case(service)

    await service.check_and_update_breaches(T0 + timedelta(hours=25))
    later = await service.check_and_update_breaches(T0 + timedelta(hours=73))
    record = (await service.get_tracking_record("case-1")).value

    assert later.value == 1
    assert record.first_response_breached and record.resolution_breached


@pytest.mark.asyncio
async def test_sweep_never_touches_resolved_records(service, global_configuration):
    await _open_case(service)
    resolved = (await service.record_resolution("case-1", T0 + timedelta(hours=5))).value

    result = await service.check_and_update_breaches(T0 + timedelta(days=30))
    record = (await service.get_tracking_record("case-1")).value

    assert result.value == 0
    assert record.version == resolved.version
    assert not record.is_breached


@pytest.mark.asyncio
async def test_sweep_walks_every_batch(service, global_configuration):
    # batch_size is 2 in the fixture
    for i in range(5):
        await _open_case(service, case_id=f"case-{i}")

    result = await service.check_and_update_breaches(T0 + timedelta(hours=25))
    breached = (await service.get_breached_cases()).value

    assert result.value == 5
    assert len(breached) == 5


@pytest.mark.asyncio
async def test_sweep_without_due_records_returns_zero(service, global_configuration):
    await _open_case(service)

    result = await service.check_and_update_breaches(T0 + timedelta(hours=1))

    assert result.succeeded and result.value == 0


# ========== Queries ==========

@pytest.mark.asyncio
async def test_breached_cases_newest_first(service, global_configuration):
    await _open_case(service, case_id="older", created_at=T0)
    await _open_case(service, case_id="newer", created_at=T0 + timedelta(hours=1))
    await _open_case(service, case_id="resolved", created_at=T0)
    await service.record_resolution("resolved", T0 + timedelta(hours=100))

    await service.check_and_update_breaches(T0 + timedelta(hours=30))
    breached = (await service.get_breached_cases()).value

    assert [r.case_id for r in breached] == ["newer", "older"]


@pytest.mark.asyncio
async def test_dashboard_statistics_range_is_inclusive(service, global_configuration):
    await _open_case(service, case_id="at-start", created_at=T0)
    await _open_case(service, case_id="at-end", created_at=T0 + timedelta(days=1))
    await _open_case(service, case_id="outside", created_at=T0 + timedelta(days=2))

    stats = (await service.get_dashboard_statistics(T0, T0 + timedelta(days=1))).value

    assert stats.total_cases == 2


@pytest.mark.asyncio
async def test_statistics_reject_inverted_range(service):
    result = await service.get_dashboard_statistics(T0 + timedelta(days=1), T0)

    assert result.error_code == ErrorCode.VALIDATION_ERROR


@pytest.mark.asyncio
async def test_seller_and_store_statistics(service, global_configuration):
    await _open_case(service, case_id="a1", store_id="s-a", store_name="Alpha")
    await _open_case(service, case_id="b1", store_id="s-b", store_name="Beta")
    await _open_case(service, case_id="b2", store_id="s-b", store_name="Beta")
    await service.record_first_response("b1", T0 + timedelta(hours=1))
    await service.record_resolution("b1", T0 + timedelta(hours=2))

    sellers = (await service.get_seller_statistics(T0, T0 + timedelta(days=1))).value
    beta = (await service.get_store_statistics("s-b", T0, T0 + timedelta(days=1))).value

    assert [s.store_id for s in sellers] == ["s-b", "s-a"]
    assert beta.total_cases == 2
    assert beta.sla_compliance_percentage == 50.0


# ========== Concurrency ==========

def _repository_mocks(records):
    tracking = AsyncMock()
    tracking.get_by_case_id.side_effect = lambda case_id: records.pop(0)
    configuration = AsyncMock()
    return tracking, configuration


@pytest.mark.asyncio
async def test_event_gives_up_after_repeated_conflicts():
    records = [make_record() for _ in range(3)]
    tracking, configuration = _repository_mocks(records)
    tracking.update_if_version.return_value = False
    service = SlaTrackingService(tracking, configuration, batch_size=10, max_update_retries=3)

    result = await service.record_first_response("case-1", T0 + timedelta(hours=1))

    assert result.error_code == ErrorCode.CONCURRENCY_CONFLICT
    assert tracking.update_if_version.await_count == 3
    tracking.commit.assert_not_awaited()


@pytest.mark.asyncio
async def test_event_retries_after_one_conflict():
    records = [make_record(), make_record()]
    tracking, configuration = _repository_mocks(records)
    tracking.update_if_version.side_effect = [False, True]
    service = SlaTrackingService(tracking, configuration, batch_size=10, max_update_retries=3)

    result = await service.record_first_response("case-1", T0 + timedelta(hours=1))

    assert result.succeeded
    assert result.value.first_responded_at == T0 + timedelta(hours=1)
    tracking.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_sweep_does_not_double_count_record_flagged_concurrently():
    candidate = make_record()
    already_flagged = make_record(first_response_breached=True, version=2)
    tracking = AsyncMock()
    tracking.list_breach_candidates.return_value = [candidate]
    tracking.update_if_version.return_value = False
    tracking.get_by_case_id.return_value = already_flagged
    service = SlaTrackingService(tracking, AsyncMock(), batch_size=10, max_update_retries=3)

    result = await service.check_and_update_breaches(T0 + timedelta(hours=25))

    assert result.value == 0
    assert tracking.update_if_version.await_count == 1


@pytest.mark.asyncio
async def test_sweep_does_not_flag_record_responded_concurrently():
    candidate = make_record()
    responded = make_record(first_responded_at=T0 + timedelta(hours=2), version=2)
    tracking = AsyncMock()
    tracking.list_breach_candidates.return_value = [candidate]
    tracking.update_if_version.return_value = False
    tracking.get_by_case_id.return_value = responded
    service = SlaTrackingService(tracking, AsyncMock(), batch_size=10, max_update_retries=3)

    result = await service.check_and_update_breaches(T0 + timedelta(hours=25))

    assert result.value == 0
    assert not responded.first_response_breached


def test_missing_repository_is_a_programming_error():
    with pytest.raises(ValueError):
        SlaTrackingService(None, AsyncMock())
