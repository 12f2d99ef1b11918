"""
Settlement Report Models

Output shapes of the settlement engine. These are plain values:
the engine builds them, the formatter and the UI only read them.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from meal_ledger.models.period import ReportingPeriod


class MemberStatus(str, Enum):
    """Settlement status. Strictly binary - there is no partial state."""
    DUE = "due"
    PAID = "paid"


class SettlementRow(BaseModel):
    """One member's line in the settlement report."""
    model_config = ConfigDict(frozen=True)

    member_id: str
    name: str
    join_date: Optional[date] = None
    total_paid: Decimal = Field(..., ge=0)
    total_bills: Decimal = Field(..., ge=0)
    total_due: Decimal = Field(..., ge=0)
    monthly_meals: int = Field(..., ge=0)

    @property
    def advance_payment(self) -> Decimal:
        """
        Credit carried forward: payments minus bill share.

        Positive means credit; zero or negative means no credit.
        """
        return self.total_paid - self.total_bills

    @property
    def status(self) -> MemberStatus:
        return MemberStatus.DUE if self.total_due > 0 else MemberStatus.PAID


class SettlementSummary(BaseModel):
    """Aggregate totals plus the per-member rows for one reporting period."""
    model_config = ConfigDict(frozen=True)

    period: ReportingPeriod
    total_expense: Decimal
    total_deposits: Decimal
    total_due: Decimal
    total_meals: int
    meal_rate: Decimal
    member_count: int
    bill_count: int
    payment_count: int
    rows: list[SettlementRow] = Field(default_factory=list)
