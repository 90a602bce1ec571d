"""Unit tests for CommissionAggregator: pure functions over in-memory entries."""
import csv
import io
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from commissions.aggregator import CommissionAggregator
from schemas import EXPORT_HEADER, AffiliateRef, CommissionEntry

ADA = AffiliateRef(
    id=uuid.UUID("00000000-0000-0000-0000-0000000000a1"),
    external_id=42,
    name="Ada Lovelace",
    status="active",
    upfront_rate=Decimal("10"),
)
BOB = AffiliateRef(
    id=uuid.UUID("00000000-0000-0000-0000-0000000000b2"),
    external_id=43,
    name="Bob Babbage",
    status="inactive",
    upfront_rate=Decimal("15"),
)


def _entry(
    affiliate=ADA,
    amount="19.99",
    order_total="199.9",
    status="paid",
    created_at=datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc),
    payment_date=datetime(2026, 3, 20, 9, 30, tzinfo=timezone.utc),
    customer_name="Grace Hopper",
):
    return CommissionEntry(
        affiliate_id=affiliate.id if affiliate else uuid.uuid4(),
        affiliate=affiliate,
        commission_type="upfront",
        customer_name=customer_name,
        customer_email="grace@example.com",
        product_name="Fiber 1G",
        order_total=Decimal(order_total),
        commission_amount=Decimal(amount),
        commission_rate=Decimal("10"),
        status=status,
        payment_date=payment_date,
        created_at=created_at,
    )


@pytest.fixture
def aggregator():
    return CommissionAggregator()


class TestStats:
    def test_totals_by_status(self, aggregator):
        entries = [
            _entry(amount="10", status="paid", order_total="100"),
            _entry(amount="20", status="pending", order_total="200"),
            _entry(amount="30", status="approved", order_total="300"),
            _entry(amount="5", status="cancelled", order_total="50"),
        ]

        stats = aggregator.stats(entries, [ADA, BOB])

        assert stats.total_commissions == Decimal("65")
        assert stats.paid_commissions == Decimal("10")
        assert stats.pending_commissions == Decimal("20")
        assert stats.approved_commissions == Decimal("30")
        assert stats.total_revenue == Decimal("650")
        assert stats.active_affiliates == 1
        assert stats.avg_commission_rate == Decimal("12.50")

    def test_empty_input_is_all_zero(self, aggregator):
        stats = aggregator.stats([], [])
        assert stats.total_commissions == 0
        assert stats.active_affiliates == 0
        assert stats.avg_commission_rate == 0
        assert stats.monthly_growth == 0

    def test_affiliates_default_to_those_on_entries(self, aggregator):
        entries = [_entry(affiliate=ADA), _entry(affiliate=ADA), _entry(affiliate=BOB)]

        stats = aggregator.stats(entries)

        assert stats.active_affiliates == 1
        assert stats.avg_commission_rate == Decimal("12.50")

    def test_monthly_growth(self, aggregator):
        entries = [
            _entry(amount="100", created_at=datetime(2026, 2, 3, tzinfo=timezone.utc)),
            _entry(amount="150", created_at=datetime(2026, 3, 4, tzinfo=timezone.utc)),
            _entry(amount="999", created_at=datetime(2026, 1, 4, tzinfo=timezone.utc)),
        ]

        stats = aggregator.stats(entries, [ADA], as_of=datetime(2026, 3, 15, tzinfo=timezone.utc))

        assert stats.monthly_growth == Decimal("50.00")

    def test_monthly_growth_across_year_boundary(self, aggregator):
        entries = [
            _entry(amount="200", created_at=datetime(2025, 12, 30, tzinfo=timezone.utc)),
            _entry(amount="100", created_at=datetime(2026, 1, 2, tzinfo=timezone.utc)),
        ]
        stats = aggregator.stats(entries, [ADA], as_of=datetime(2026, 1, 20, tzinfo=timezone.utc))
        assert stats.monthly_growth == Decimal("-50.00")

    def test_monthly_growth_without_prior_month_is_zero(self, aggregator):
        entries = [_entry(amount="100", created_at=datetime(2026, 3, 4, tzinfo=timezone.utc))]
        stats = aggregator.stats(entries, [ADA], as_of=datetime(2026, 3, 15, tzinfo=timezone.utc))
        assert stats.monthly_growth == 0


class TestPerformance:
    def test_groups_by_affiliate_in_first_seen_order(self, aggregator):
        entries = [
            _entry(affiliate=BOB, amount="5", order_total="50"),
            _entry(affiliate=ADA, amount="10", order_total="100"),
            _entry(affiliate=BOB, amount="7", order_total="70"),
        ]

        performance = aggregator.performance(entries)

        assert [p.affiliate_id for p in performance] == [BOB.id, ADA.id]
        assert performance[0].total_sales == Decimal("120")
        assert performance[0].total_commissions == Decimal("12")
        assert performance[0].entry_count == 2


class TestExport:
    def test_row_format(self, aggregator):
        [row] = aggregator.export_rows([_entry()])
        assert row == [
            "2026-03-10", "Ada Lovelace", "42", "Grace Hopper", "grace@example.com",
            "Fiber 1G", "upfront", "199.90", "19.99", "10.00%", "paid", "2026-03-20",
        ]

    def test_missing_affiliate_and_unpaid(self, aggregator):
        [row] = aggregator.export_rows([_entry(affiliate=None, status="pending", payment_date=None)])
        assert row[1:3] == ["Unknown", "N/A"]
        assert row[-1] == "Not paid"

    def test_dates_are_utc(self, aggregator):
        """02:00 at +05:00 on March 1st is still February 28th in UTC."""
        plus_five = timezone(timedelta(hours=5))
        [row] = aggregator.export_rows(
            [_entry(created_at=datetime(2026, 3, 1, 2, 0, tzinfo=plus_five))]
        )
        assert row[0] == "2026-02-28"

    def test_naive_datetimes_are_treated_as_utc(self, aggregator):
        [row] = aggregator.export_rows([_entry(created_at=datetime(2026, 3, 1, 23, 59))])
        assert row[0] == "2026-03-01"

    def test_csv_header_and_crlf(self, aggregator):
        text = aggregator.export_csv([_entry()])
        lines = text.split("\r\n")
        assert lines[0] == ",".join(EXPORT_HEADER)
        assert lines[1] == (
            "2026-03-10,Ada Lovelace,42,Grace Hopper,grace@example.com,Fiber 1G,"
            "upfront,199.90,19.99,10.00%,paid,2026-03-20"
        )
        assert lines[2] == ""
        assert text.endswith("\r\n")

    def test_csv_escapes_commas_and_quotes(self, aggregator):
        text = aggregator.export_csv([_entry(customer_name='Hopper, Grace "Amazing"')])

        assert '"Hopper, Grace ""Amazing"""' in text
        parsed = list(csv.reader(io.StringIO(text)))
        assert parsed[1][3] == 'Hopper, Grace "Amazing"'

    def test_export_is_deterministic(self, aggregator):
        entries = [_entry(), _entry(affiliate=BOB, status="pending", payment_date=None)]
        copies = [entry.model_copy(deep=True) for entry in entries]

        assert aggregator.export_csv(entries) == aggregator.export_csv(copies)

    def test_empty_export_is_just_the_header(self, aggregator):
        assert aggregator.export_csv([]) == ",".join(EXPORT_HEADER) + "\r\n"
