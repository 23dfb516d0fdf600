import pytest

from core.models import EscrowLookupStatus, InventoryRow, InventorySummary
from core.report import aggregate, format_summary
from conftest import make_row, utc


def test_sort_case_insensitive_with_dn_tie_break():
    rows = [
        make_row("b-pc", dn="CN=b-pc,OU=Workstations,DC=contoso,DC=com"),
        make_row("A-pc", dn="CN=A-pc,OU=Workstations,DC=contoso,DC=com"),
        make_row("a-pc", dn="CN=a-pc,OU=Workstations,DC=contoso,DC=com"),
    ]
    report = aggregate(rows)
    assert [row.computer_name for row in report.rows] == ["A-pc", "a-pc", "b-pc"]


def test_sort_is_independent_of_input_order():
    rows = [make_row(name) for name in ["delta", "Alpha", "charlie", "Bravo"]]
    first = aggregate(rows)
    second = aggregate(list(reversed(rows)))
    assert first.rows == second.rows


def test_summary_counts():
    rows = [make_row("a", 2), make_row("b", 0), make_row("c", 1),
            make_row("d", 0, status=EscrowLookupStatus.QUERY_FAILED)]
    summary = aggregate(rows).summary
    assert summary.total == 4
    assert summary.with_key == 2
    assert summary.without_key == 2
    assert summary.failed_lookups == 1
    assert summary.total == summary.with_key + summary.without_key


def test_empty_report_is_valid():
    report = aggregate([])
    assert len(report) == 0
    assert report.summary.total == 0
    assert report.summary.coverage_rate == 0.0


def test_duplicate_distinguished_name_rejected():
    with pytest.raises(ValueError):
        aggregate([make_row("a"), make_row("a")])


def test_generated_at_passed_through(now):
    assert aggregate([], generated_at=now).generated_at == now


def test_summary_line():
    summary = InventorySummary(with_key=42, without_key=8)
    assert format_summary(summary) == \
        "Summary: 42 of 50 devices have BitLocker recovery keys in AD. (8 without)"


# ── Row invariants ──

def test_row_rejects_count_flag_mismatch():
    with pytest.raises(ValueError):
        InventoryRow("pc", "Windows 11", None, True, 0, utc(2024, 1, 1), "CN=pc")


def test_row_rejects_date_without_key():
    with pytest.raises(ValueError):
        InventoryRow("pc", "Windows 11", None, False, 0, utc(2024, 1, 1), "CN=pc")


def test_row_rejects_key_without_date():
    with pytest.raises(ValueError):
        InventoryRow("pc", "Windows 11", None, True, 1, None, "CN=pc")
