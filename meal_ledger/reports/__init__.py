"""Report formatting package."""

from meal_ledger.reports.formatter import (
    format_money,
    format_settlement_report,
    report_filename,
)

__all__ = ["format_money", "format_settlement_report", "report_filename"]
