"""Commission administration CLI.

Entry point for operators working against the commission store directly.
Reads DATABASE_URL from the environment (or .env).

Usage:
  # List active rate templates
  python admin.py templates

  # Show an affiliate's rate history
  python admin.py history --affiliate-id 6f1c...

  # Set explicit rates
  python admin.py set-rates --affiliate-id 6f1c... --upfront 12.5 --residual 4 \
      --reason "annual review"

  # Promote to a tier (adopts the tier template's rates)
  python admin.py promote --affiliate-id 6f1c... --tier gold

  # Apply one patch to many affiliates
  python admin.py bulk --affiliate-id 6f1c... --affiliate-id 9a02... \
      --tier silver --reason "Q3 restructure"

  # Dashboard totals and CSV export
  python admin.py stats
  python admin.py export --status paid --start 2026-01-01 --end 2026-03-31 > paid.csv
"""
import argparse
import asyncio
import json
import logging
import sys
import uuid
from typing import Any

from dateutil import parser as date_parser

import settings
from commissions import (
    AffiliateRateLedger,
    BulkRateOperator,
    CommissionDashboard,
    CommissionError,
    DashboardCache,
)
from db.connection import dispose_engine
from schemas import ExportFilters, RatesPatch, TemplatePatch, TierPatch

logger = logging.getLogger(__name__)


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, default=str))


async def run_templates() -> None:
    ledger = AffiliateRateLedger()
    templates = await ledger.catalog.list_active()
    _print_json([t.model_dump(mode="json") for t in templates])


async def run_history(affiliate_id: uuid.UUID) -> None:
    ledger = AffiliateRateLedger()
    history = await ledger.get_history(affiliate_id)
    _print_json([h.model_dump(mode="json") for h in history])


async def run_set_rates(
    affiliate_id: uuid.UUID, upfront: str, residual: str, reason: str, changed_by: str | None
) -> None:
    ledger = AffiliateRateLedger()
    affiliate = await ledger.set_rates(affiliate_id, upfront, residual, reason, changed_by=changed_by)
    _print_json(affiliate.model_dump(mode="json"))


async def run_promote(affiliate_id: uuid.UUID, tier: str, changed_by: str | None) -> None:
    ledger = AffiliateRateLedger()
    affiliate = await ledger.promote_to_tier(affiliate_id, tier, changed_by=changed_by)
    _print_json(affiliate.model_dump(mode="json"))


async def run_bulk(affiliate_ids: list[uuid.UUID], patch, changed_by: str | None) -> int:
    operator = BulkRateOperator(AffiliateRateLedger())
    result = await operator.apply(affiliate_ids, patch, changed_by=changed_by)
    _print_json(result.model_dump(mode="json"))
    return 1 if result.failed else 0


async def run_stats() -> None:
    async with DashboardCache() as cache:
        stats = await CommissionDashboard(cache=cache).stats()
    _print_json(stats.model_dump(mode="json"))


async def run_export(filters: ExportFilters) -> None:
    async with DashboardCache() as cache:
        csv_text = await CommissionDashboard(cache=cache).export_csv(filters)
    sys.stdout.write(csv_text)


def _build_patch(args: argparse.Namespace):
    if args.template_id:
        return TemplatePatch(template_id=args.template_id, reason=args.reason)
    if args.tier:
        return TierPatch(tier=args.tier, reason=args.reason)
    if args.upfront is None or args.residual is None:
        raise SystemExit("bulk: give --tier, --template-id, or both --upfront and --residual")
    return RatesPatch(upfront_rate=args.upfront, residual_rate=args.residual, reason=args.reason)


def _build_filters(args: argparse.Namespace) -> ExportFilters:
    return ExportFilters(
        start_date=date_parser.parse(args.start) if args.start else None,
        end_date=date_parser.parse(args.end) if args.end else None,
        affiliate_id=args.affiliate_id,
        status=args.status,
    )


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Affiliate commission administration")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("templates", help="List active rate templates")

    history = sub.add_parser("history", help="Show an affiliate's rate history")
    history.add_argument("--affiliate-id", type=uuid.UUID, required=True)

    set_rates = sub.add_parser("set-rates", help="Set an affiliate's rates")
    set_rates.add_argument("--affiliate-id", type=uuid.UUID, required=True)
    set_rates.add_argument("--upfront", required=True, help="Upfront rate in percent (0-100)")
    set_rates.add_argument("--residual", required=True, help="Residual rate in percent (0-100)")
    set_rates.add_argument("--reason", required=True)
    set_rates.add_argument("--changed-by", default=None)

    promote = sub.add_parser("promote", help="Promote an affiliate to a tier")
    promote.add_argument("--affiliate-id", type=uuid.UUID, required=True)
    promote.add_argument("--tier", required=True)
    promote.add_argument("--changed-by", default=None)

    bulk = sub.add_parser("bulk", help="Apply one rate patch to many affiliates")
    bulk.add_argument(
        "--affiliate-id", type=uuid.UUID, action="append", required=True, dest="affiliate_ids",
        help="Repeat for each affiliate",
    )
    bulk.add_argument("--upfront", default=None)
    bulk.add_argument("--residual", default=None)
    bulk.add_argument("--tier", default=None)
    bulk.add_argument("--template-id", type=uuid.UUID, default=None)
    bulk.add_argument("--reason", required=True)
    bulk.add_argument("--changed-by", default=None)

    sub.add_parser("stats", help="Print dashboard commission totals")

    export = sub.add_parser("export", help="Export commission entries as CSV")
    export.add_argument("--start", default=None, help="Inclusive start date (ISO 8601)")
    export.add_argument("--end", default=None, help="Inclusive end date (ISO 8601)")
    export.add_argument("--affiliate-id", type=uuid.UUID, default=None)
    export.add_argument("--status", default=None, choices=["pending", "approved", "paid", "cancelled"])

    return parser


async def _dispatch(args: argparse.Namespace) -> int:
    try:
        if args.command == "templates":
            await run_templates()
        elif args.command == "history":
            await run_history(args.affiliate_id)
        elif args.command == "set-rates":
            await run_set_rates(args.affiliate_id, args.upfront, args.residual, args.reason, args.changed_by)
        elif args.command == "promote":
            await run_promote(args.affiliate_id, args.tier, args.changed_by)
        elif args.command == "bulk":
            return await run_bulk(args.affiliate_ids, _build_patch(args), args.changed_by)
        elif args.command == "stats":
            await run_stats()
        elif args.command == "export":
            await run_export(_build_filters(args))
        return 0
    finally:
        await dispose_engine()


def main(argv: list[str] | None = None) -> int:
    parser = _build_arg_parser()
    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return 1

    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    try:
        return asyncio.run(_dispatch(args))
    except CommissionError as e:
        logger.error("%s failed: %s", args.command, e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
