"""Turn a settlement summary into a plain-text report."""

from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Sequence

from meal_ledger.models.period import ReportingPeriod
from meal_ledger.models.report import MemberStatus, SettlementSummary


REPORT_TITLE = "Bachelor House Settlement Report"

TABLE_HEADERS = ["#", "Name", "Join", "Meals", "Paid", "Bills", "Due", "Advance", "Status"]
RIGHT_ALIGNED = {0, 3, 4, 5, 6, 7}


def _whole(amount: Decimal) -> str:
    """Amounts are shown in whole currency units, with thousands separators."""
    return f"{amount.quantize(Decimal('1'), rounding=ROUND_HALF_UP):,}"


def format_money(amount: Decimal, currency_symbol: str = "") -> str:
    """Whole-unit amount with the currency symbol, as shown in the UI and the report."""
    return f"{currency_symbol}{_whole(amount)}"


def _column_widths(headers: Sequence[str], rows: Sequence[Sequence[str]]) -> list[int]:
    widths = [len(h) for h in headers]
    for row in rows:
        for idx, cell in enumerate(row):
            widths[idx] = max(widths[idx], len(cell))
    return widths


def _format_table(headers: Sequence[str], rows: Sequence[Sequence[str]]) -> str:
    widths = _column_widths(headers, rows)

    def format_row(row: Sequence[str]) -> str:
        return " | ".join(
            cell.rjust(widths[idx]) if idx in RIGHT_ALIGNED else cell.ljust(widths[idx])
            for idx, cell in enumerate(row)
        )

    header_line = format_row(headers)
    separator = "-+-".join("-" * w for w in widths)
    body = "\n".join(format_row(row) for row in rows)
    return "\n".join([header_line, separator, body]) if body else "\n".join(
        [header_line, separator]
    )


def format_settlement_report(
    summary: SettlementSummary,
    currency_symbol: str = "",
    generated_on: Optional[date] = None,
    title: str = REPORT_TITLE,
) -> str:
    generated_on = generated_on or date.today()

    header_lines = [
        title,
        summary.period.label,
        f"Generated: {generated_on:%Y-%m-%d}",
        "",
        f"Total Expense:  {format_money(summary.total_expense, currency_symbol)}",
        f"Total Deposits: {format_money(summary.total_deposits, currency_symbol)}",
        f"Total Due:      {format_money(summary.total_due, currency_symbol)}",
        f"Total Meals:    {summary.total_meals}",
        "",
        f"Total Members: {summary.member_count} persons",
        f"Meal Rate: {summary.meal_rate.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)} per meal",
        f"Total Bills: {summary.bill_count} bills recorded",
        f"Total Payments: {summary.payment_count} payments received",
        "",
        "Member Settlement Details",
    ]

    table_rows = []
    for idx, row in enumerate(summary.rows, start=1):
        advance = row.advance_payment
        table_rows.append([
            str(idx),
            row.name,
            f"{row.join_date:%b %d}" if row.join_date else "-",
            str(row.monthly_meals),
            _whole(row.total_paid),
            _whole(row.total_bills),
            _whole(row.total_due) if row.total_due > 0 else "0",
            _whole(advance) if advance > 0 else "0",
            "Pending" if row.status == MemberStatus.DUE else "Paid",
        ])

    footer_lines = [
        "",
        "Bachelor House Meal Manager - Automated Settlement Report",
        "Please verify all amounts and contact house manager for any discrepancies",
        "This is a system-generated report",
    ]

    return "\n".join(header_lines + [_format_table(TABLE_HEADERS, table_rows)] + footer_lines)


def report_filename(period: ReportingPeriod) -> str:
    return f"Settlement_Report_{period.label.replace(' ', '_')}.txt"
