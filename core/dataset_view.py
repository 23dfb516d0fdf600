# =============================================================================
# core/dataset_view.py - Filterable view over an inventory report
# =============================================================================

from typing import List

from core.models import InventoryReport, InventoryRow


def row_matches(row: InventoryRow, query: str) -> bool:
    """Case-insensitive substring match on name, OS and DN"""
    if not query:
        return True
    needle = query.casefold()
    return any(needle in (value or "").casefold()
               for value in (row.computer_name, row.operating_system, row.distinguished_name))


class FilterableDatasetView:
    """Search-box style filter over a report; holds a reference, never a copy"""

    def __init__(self, report: InventoryReport, query: str = ""):
        self._report = report
        self._query = query or ""

    @property
    def report(self) -> InventoryReport:
        return self._report

    @report.setter
    def report(self, report: InventoryReport) -> None:
        # Only swap in fully aggregated reports
        self._report = report

    @property
    def query(self) -> str:
        return self._query

    def set_filter(self, query: str) -> None:
        self._query = query or ""

    def visible_rows(self) -> List[InventoryRow]:
        return [row for row in self._report.rows if row_matches(row, self._query)]
