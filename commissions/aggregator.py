"""Read-only commission rollups and the CSV export contract.

Everything here is a pure function of its inputs: no I/O, no clock, no
locale. Identical input sequences produce identical (byte-for-byte) output.
"""
import csv
import io
import logging
from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional, Sequence, Union
from uuid import UUID

from dateutil.relativedelta import relativedelta

from schemas import (
    EXPORT_HEADER,
    Affiliate,
    AffiliatePerformance,
    AffiliateRef,
    CommissionEntry,
    CommissionStats,
)

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
CENTS = Decimal("0.01")

UNKNOWN_AFFILIATE_NAME = "Unknown"
UNKNOWN_AFFILIATE_ID = "N/A"
NOT_PAID = "Not paid"

AffiliateLike = Union[Affiliate, AffiliateRef]


def _sum(values: Iterable[Decimal]) -> Decimal:
    return sum(values, ZERO)


def _money(value: Decimal) -> str:
    return str(Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP))


def _utc_date(value: Union[datetime, date, None]) -> Optional[date]:
    """Calendar date in UTC. Naive datetimes are taken to already be UTC."""
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    return value


class CommissionAggregator:
    """Statistical rollups over commission entries.

    Usage:
        aggregator = CommissionAggregator()
        stats = aggregator.stats(entries, affiliates)
        csv_text = aggregator.export_csv(entries)
    """

    def stats(
        self,
        entries: Sequence[CommissionEntry],
        affiliates: Optional[Sequence[AffiliateLike]] = None,
        *,
        as_of: Optional[datetime] = None,
    ) -> CommissionStats:
        """Dashboard totals.

        affiliates defaults to the distinct affiliates embedded in entries.
        monthly_growth compares commission earned in as_of's calendar month
        with the month before; it is 0 without as_of or a prior-month base.
        """
        if affiliates is None:
            affiliates = list(
                {e.affiliate.id: e.affiliate for e in entries if e.affiliate is not None}.values()
            )

        def by_status(status: str) -> Decimal:
            return _sum(e.commission_amount for e in entries if e.status == status)

        avg_rate = (
            _sum(a.upfront_rate for a in affiliates) / len(affiliates) if affiliates else ZERO
        )
        return CommissionStats(
            total_commissions=_sum(e.commission_amount for e in entries),
            paid_commissions=by_status("paid"),
            pending_commissions=by_status("pending"),
            approved_commissions=by_status("approved"),
            total_revenue=_sum(e.order_total for e in entries),
            active_affiliates=sum(1 for a in affiliates if a.status == "active"),
            avg_commission_rate=avg_rate.quantize(CENTS, rounding=ROUND_HALF_UP),
            monthly_growth=self._monthly_growth(entries, as_of),
        )

    def _monthly_growth(
        self, entries: Sequence[CommissionEntry], as_of: Optional[datetime]
    ) -> Decimal:
        if as_of is None:
            return ZERO
        this_month = _utc_date(as_of).replace(day=1)
        last_month = this_month - relativedelta(months=1)

        current = previous = ZERO
        for entry in entries:
            created = _utc_date(entry.created_at)
            if created is None:
                continue
            month = created.replace(day=1)
            if month == this_month:
                current += entry.commission_amount
            elif month == last_month:
                previous += entry.commission_amount

        if previous == ZERO:
            return ZERO
        growth = (current - previous) / previous * 100
        return growth.quantize(CENTS, rounding=ROUND_HALF_UP)

    def performance(self, entries: Sequence[CommissionEntry]) -> list[AffiliatePerformance]:
        """Per-affiliate sales and commission totals, in first-seen order."""
        totals: dict[UUID, AffiliatePerformance] = {}
        for entry in entries:
            current = totals.get(entry.affiliate_id)
            if current is None:
                totals[entry.affiliate_id] = AffiliatePerformance(
                    affiliate_id=entry.affiliate_id,
                    total_sales=entry.order_total,
                    total_commissions=entry.commission_amount,
                    entry_count=1,
                )
            else:
                current.total_sales += entry.order_total
                current.total_commissions += entry.commission_amount
                current.entry_count += 1
        return list(totals.values())

    def export_rows(self, entries: Sequence[CommissionEntry]) -> list[list[str]]:
        """One row per entry, columns in EXPORT_HEADER order."""
        rows = []
        for entry in entries:
            affiliate = entry.affiliate
            created = _utc_date(entry.created_at)
            paid = _utc_date(entry.payment_date)
            external_id = affiliate.external_id if affiliate is not None else None
            rows.append([
                created.isoformat() if created else "",
                affiliate.name if affiliate is not None else UNKNOWN_AFFILIATE_NAME,
                str(external_id) if external_id is not None else UNKNOWN_AFFILIATE_ID,
                entry.customer_name or "",
                entry.customer_email or "",
                entry.product_name or "",
                entry.commission_type,
                _money(entry.order_total),
                _money(entry.commission_amount),
                f"{_money(entry.commission_rate)}%",
                entry.status,
                paid.isoformat() if paid else NOT_PAID,
            ])
        return rows

    def export_csv(self, entries: Sequence[CommissionEntry]) -> str:
        """Header plus export_rows as RFC 4180 CSV (CRLF line endings)."""
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\r\n", quoting=csv.QUOTE_MINIMAL)
        writer.writerow(EXPORT_HEADER)
        writer.writerows(self.export_rows(entries))
        logger.debug("Exported %d commission entries", len(entries))
        return buffer.getvalue()
