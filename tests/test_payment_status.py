"""Tests for obligation status transitions and payment statistics."""
from datetime import date, datetime

import pytest
import pytest_asyncio

from billing_api.core.exceptions import NoPropertyError, NotFoundError, ValidationError
from billing_api.models.obligation import ObligationStatus
from billing_api.repositories.obligation_repo import ObligationRepository
from billing_api.repositories.tenant_repo import TenantRepository
from billing_api.services.obligation_generator import ObligationGenerator
from billing_api.services.payment_status_service import PaymentStatusService, is_allowed
from billing_api.utils.calendar import MonthKey


@pytest_asyncio.fixture
async def obligations(test_db, linked_tenant, sample_property):
    """Jan..Apr 2025 pending obligations at 500.00."""
    result = await ObligationGenerator(test_db).generate_backfill(
        linked_tenant.id, sample_property.id, today=date(2025, 4, 10)
    )
    return result.created


def test_transition_table():
    assert is_allowed(ObligationStatus.PENDING, ObligationStatus.PAID)
    assert is_allowed(ObligationStatus.PENDING, ObligationStatus.OVERDUE)
    assert is_allowed(ObligationStatus.OVERDUE, ObligationStatus.PAID)
    assert is_allowed(ObligationStatus.PAID, ObligationStatus.PENDING)
    assert not is_allowed(ObligationStatus.PAID, ObligationStatus.OVERDUE)
    assert not is_allowed(ObligationStatus.OVERDUE, ObligationStatus.PENDING)


@pytest.mark.asyncio
class TestUpdateStatus:
    async def test_mark_paid_with_date(self, test_db, obligations):
        service = PaymentStatusService(test_db)

        updated = await service.update_status(
            str(obligations[1].id), status=ObligationStatus.PAID, payment_date=date(2025, 2, 15)
        )

        assert updated.status == ObligationStatus.PAID
        assert updated.payment_date == datetime(2025, 2, 15)
        assert updated.amount_cents == 50000

    async def test_mark_paid_defaults_to_today(self, test_db, obligations):
        updated = await PaymentStatusService(test_db).update_status(
            str(obligations[0].id), status=ObligationStatus.PAID
        )

        today = date.today()
        assert updated.payment_date == datetime(today.year, today.month, today.day)

    async def test_paid_back_to_pending_clears_date(self, test_db, obligations):
        service = PaymentStatusService(test_db)
        oid = str(obligations[0].id)
        await service.update_status(oid, status=ObligationStatus.PAID, payment_date=date(2025, 1, 20))

        updated = await service.update_status(oid, status=ObligationStatus.PENDING)

        assert updated.status == ObligationStatus.PENDING
        assert updated.payment_date is None

    async def test_overdue_then_paid(self, test_db, obligations):
        service = PaymentStatusService(test_db)
        oid = str(obligations[0].id)

        overdue = await service.update_status(oid, status=ObligationStatus.OVERDUE)
        paid = await service.update_status(oid, status=ObligationStatus.PAID, payment_date=date(2025, 3, 2))

        assert overdue.status == ObligationStatus.OVERDUE
        assert overdue.payment_date is None
        assert paid.status == ObligationStatus.PAID
        assert paid.payment_date == datetime(2025, 3, 2)

    async def test_disallowed_transition_keeps_status_but_applies_notes(self, test_db, obligations):
        service = PaymentStatusService(test_db)
        oid = str(obligations[0].id)
        await service.update_status(oid, status=ObligationStatus.PAID, payment_date=date(2025, 1, 20))

        updated = await service.update_status(oid, status=ObligationStatus.OVERDUE, notes="late bank transfer")

        assert updated.status == ObligationStatus.PAID
        assert updated.payment_date == datetime(2025, 1, 20)
        assert updated.notes == "late bank transfer"

    async def test_notes_only(self, test_db, obligations):
        updated = await PaymentStatusService(test_db).update_status(str(obligations[2].id), notes="called tenant")

        assert updated.status == ObligationStatus.PENDING
        assert updated.notes == "called tenant"

    async def test_unknown_obligation(self, test_db):
        service = PaymentStatusService(test_db)

        with pytest.raises(NotFoundError):
            await service.update_status("507f1f77bcf86cd799439011", status=ObligationStatus.PAID)
        with pytest.raises(NotFoundError):
            await service.update_status("garbage", status=ObligationStatus.PAID)


@pytest.mark.asyncio
class TestBulkAndCorrections:
    async def test_bulk_update_reports_missing_ids(self, test_db, obligations):
        ids = [str(o.id) for o in obligations[:2]] + ["507f1f77bcf86cd799439011"]

        result = await PaymentStatusService(test_db).bulk_update_status(
            ids, ObligationStatus.PAID, payment_date=date(2025, 4, 1)
        )

        assert [str(o.id) for o in result.updated] == ids[:2]
        assert all(o.status == ObligationStatus.PAID for o in result.updated)
        assert result.missing == ["507f1f77bcf86cd799439011"]

    async def test_update_payment_date_on_paid(self, test_db, obligations):
        service = PaymentStatusService(test_db)
        oid = str(obligations[0].id)
        await service.update_status(oid, status=ObligationStatus.PAID, payment_date=date(2025, 1, 20))

        updated = await service.update_payment_date(oid, date(2025, 1, 18))

        assert updated.payment_date == datetime(2025, 1, 18)
        assert updated.status == ObligationStatus.PAID

    async def test_update_payment_date_requires_paid(self, test_db, obligations):
        with pytest.raises(ValidationError):
            await PaymentStatusService(test_db).update_payment_date(str(obligations[0].id), date(2025, 1, 18))


@pytest.mark.asyncio
class TestOverdueAndStatistics:
    async def test_mark_overdue_before_previous_month(self, test_db, obligations):
        service = PaymentStatusService(test_db)
        await service.update_status(str(obligations[0].id), status=ObligationStatus.PAID, payment_date=date(2025, 1, 5))

        count = await service.mark_overdue(today=date(2025, 4, 10))

        # January is paid, February is the only pending month before March
        assert count == 1
        repo = ObligationRepository(test_db)
        statuses = [(await repo.get(str(o.id))).status for o in obligations]
        assert statuses == ["paid", "overdue", "pending", "pending"]

    async def test_payment_statistics(self, test_db, obligations, sample_property):
        service = PaymentStatusService(test_db)
        await service.update_status(str(obligations[0].id), status=ObligationStatus.PAID, payment_date=date(2025, 1, 5))
        await service.update_status(str(obligations[1].id), status=ObligationStatus.OVERDUE)

        totals = await service.payment_statistics([str(sample_property.id)], 2025)

        assert totals["paid"] == {"count": 1, "amount_cents": 50000}
        assert totals["overdue"] == {"count": 1, "amount_cents": 50000}
        assert totals["pending"] == {"count": 2, "amount_cents": 100000}

    async def test_payment_statistics_empty_year(self, test_db, obligations):
        totals = await PaymentStatusService(test_db).payment_statistics(year=2024)

        assert totals == {
            "pending": {"count": 0, "amount_cents": 0},
            "paid": {"count": 0, "amount_cents": 0},
            "overdue": {"count": 0, "amount_cents": 0},
        }


@pytest.mark.asyncio
class TestPropertyLedger:
    async def test_lists_every_tenant_newest_month_first(self, test_db, obligations, sample_property):
        tenants = TenantRepository(test_db)
        bob = await tenants.create_tenant(name="Bob", monthly_rate_cents=30000)
        await tenants.link_property(bob.id, sample_property.id, linked_at=datetime(2025, 3, 2))
        await ObligationGenerator(test_db).generate_backfill(bob.id, sample_property.id, today=date(2025, 4, 10))

        ledger = await PaymentStatusService(test_db).list_property_obligations(str(sample_property.id))

        assert len(ledger) == 6
        months = [o.month for o in ledger]
        assert months == sorted(months, reverse=True)
        assert {o.tenant_id for o in ledger if o.month == MonthKey(2025, 3)} == {obligations[0].tenant_id, bob.id}

    async def test_year_and_month_filter(self, test_db, obligations, sample_property):
        service = PaymentStatusService(test_db)

        february = await service.list_property_obligations(sample_property.id, year=2025, month=2)
        last_year = await service.list_property_obligations(sample_property.id, year=2024)

        assert [o.id for o in february] == [obligations[1].id]
        assert last_year == []

    async def test_status_filter(self, test_db, obligations, sample_property):
        service = PaymentStatusService(test_db)
        await service.update_status(str(obligations[2].id), status=ObligationStatus.PAID, payment_date=date(2025, 3, 3))

        paid = await service.list_property_obligations(sample_property.id, status=ObligationStatus.PAID)

        assert [o.id for o in paid] == [obligations[2].id]

    async def test_month_without_year_rejected(self, test_db, sample_property):
        with pytest.raises(ValidationError):
            await PaymentStatusService(test_db).list_property_obligations(sample_property.id, month=2)

    async def test_unknown_property(self, test_db):
        with pytest.raises(NoPropertyError):
            await PaymentStatusService(test_db).list_property_obligations("507f1f77bcf86cd799439011")
