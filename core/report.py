# =============================================================================
# core/report.py - Report aggregation and summary
# =============================================================================

from datetime import datetime, timezone
from typing import Iterable, Optional

from core.models import InventoryReport, InventoryRow, InventorySummary

SUMMARY_TEMPLATE = ("Summary: {with_key} of {total} devices have BitLocker recovery keys in AD. "
                    "({without_key} without)")


def row_sort_key(row: InventoryRow):
    # DNs are unique per report, so the ordinal DN comparison settles every tie
    return row.computer_name.casefold(), row.distinguished_name


def aggregate(rows: Iterable[InventoryRow], generated_at: Optional[datetime] = None) -> InventoryReport:
    """Sort rows and compute key escrow totals"""
    rows = sorted(rows, key=row_sort_key)

    seen = set()
    for row in rows:
        if row.distinguished_name in seen:
            raise ValueError(f"Duplicate endpoint in report: {row.distinguished_name}")
        seen.add(row.distinguished_name)

    with_key = sum(1 for row in rows if row.has_recovery_key)
    summary = InventorySummary(
        with_key=with_key,
        without_key=len(rows) - with_key,
        failed_lookups=sum(1 for row in rows if row.lookup_failed)
    )
    return InventoryReport(
        rows=tuple(rows),
        summary=summary,
        generated_at=generated_at or datetime.now(timezone.utc)
    )


def format_summary(summary: InventorySummary) -> str:
    return SUMMARY_TEMPLATE.format(
        with_key=summary.with_key,
        total=summary.total,
        without_key=summary.without_key
    )
