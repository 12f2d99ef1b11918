"""
Settlement Engine

DESIGN DECISION: Bills are allocated by meal consumption.
    meal_rate  = total bill amount / total meals of the house
    bill share = meal_rate * member's meals

Everything here is a pure function of a HouseSnapshot and a
ReportingPeriod. Nothing reads globals, nothing touches storage,
nothing mutates its inputs - calling the same method twice gives
the same answer.

A member's bill share depends on the whole house (the denominator is
the house-wide meal total), so MemberLedger is always built with the
full snapshot rather than just the member's own records.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from meal_ledger.models.period import ReportingPeriod
from meal_ledger.models.records import (
    Bill,
    LedgerRecord,
    MealEntry,
    Member,
    Payment,
    RecordType,
)
from meal_ledger.models.report import (
    MemberStatus,
    SettlementRow,
    SettlementSummary,
)
from meal_ledger.settlement.meal_book import MealBook
from meal_ledger.settlement.time_filter import filter_by_month


ZERO = Decimal("0")


@dataclass(frozen=True)
class HouseSnapshot:
    """
    Everything the engine reads, frozen for one computation pass.

    Rebuilt wholesale from the store's record list on every change.
    """
    members: tuple[Member, ...] = ()
    bills: tuple[Bill, ...] = ()
    payments: tuple[Payment, ...] = ()
    meals: MealBook = field(default_factory=MealBook)

    @classmethod
    def from_records(cls, records: Iterable[LedgerRecord]) -> "HouseSnapshot":
        members, bills, payments, meals = [], [], [], []
        for record in records:
            if record.type == RecordType.MEMBER:
                members.append(record)
            elif record.type == RecordType.BILL:
                bills.append(record)
            elif record.type == RecordType.PAYMENT:
                payments.append(record)
            elif record.type == RecordType.MEAL_ENTRY:
                meals.append(record)
        return cls(
            members=tuple(members),
            bills=tuple(bills),
            payments=tuple(payments),
            meals=MealBook(meals),
        )

    def for_month(self, period: Optional[ReportingPeriod]) -> "HouseSnapshot":
        """
        Narrow bills, payments and meals to one month.

        Members are never filtered. With no period, returns self.
        """
        if period is None:
            return self
        return HouseSnapshot(
            members=self.members,
            bills=tuple(filter_by_month(self.bills, period)),
            payments=tuple(filter_by_month(self.payments, period)),
            meals=self.meals.for_period(period),
        )

    def find_member(self, member_id: str) -> Optional[Member]:
        for member in self.members:
            if member.id == member_id:
                return member
        return None

    def orphaned_records(self) -> list[LedgerRecord]:
        """Payments and meal entries whose member no longer exists."""
        known = {member.id for member in self.members}
        orphans: list[LedgerRecord] = [
            payment for payment in self.payments if payment.member_id not in known
        ]
        orphans.extend(entry for entry in self.meals if entry.member_id not in known)
        return orphans


# =============================================================================
# MEAL-RATE ALLOCATION
# =============================================================================

def total_bill_amount(bills: Iterable[Bill]) -> Decimal:
    return sum((bill.amount for bill in bills), ZERO)


def house_meal_total(
    members: Iterable[Member],
    meals: MealBook,
    period: ReportingPeriod,
) -> int:
    """
    Total meals of all current members in ``period``.

    Entries of deleted members are not counted.
    """
    return sum(meals.monthly_total(member.id, period) for member in members)


def meal_rate(
    bills: Sequence[Bill],
    members: Sequence[Member],
    meals: MealBook,
    period: ReportingPeriod,
) -> Decimal:
    """Per-meal cost. Zero when nobody ate, so nothing divides by zero."""
    total_meals = house_meal_total(members, meals, period)
    if total_meals == 0:
        return ZERO
    return total_bill_amount(bills) / Decimal(total_meals)


# =============================================================================
# MEMBER METRICS
# =============================================================================

class MemberLedger:
    """
    One member's figures, computed against the whole house.

    Every call recomputes from the snapshot - there is no cache to go stale.
    """

    def __init__(
        self,
        member: Member,
        house: HouseSnapshot,
        period: ReportingPeriod,
    ):
        self.member = member
        self._house = house
        self._period = period

    def meal_count_for_date(self, day: date) -> int:
        return self._house.meals.count_for(self.member.id, day)

    def monthly_meal_total(self) -> int:
        return self._house.meals.monthly_total(self.member.id, self._period)

    def total_paid(self) -> Decimal:
        return sum(
            (p.amount for p in self._house.payments if p.member_id == self.member.id),
            ZERO,
        )

    def total_bills(self) -> Decimal:
        """
        Bill share = meal rate * own meals.

        The house meal total is re-derived on each call.
        """
        rate = meal_rate(
            self._house.bills,
            self._house.members,
            self._house.meals,
            self._period,
        )
        return rate * self.monthly_meal_total()

    def total_due(self) -> Decimal:
        """Never negative - overpayment shows up as advance, not as negative due."""
        return max(ZERO, self.total_bills() - self.total_paid())

    def advance_payment(self) -> Decimal:
        return max(ZERO, self.total_paid() - self.total_bills())

    def status(self) -> MemberStatus:
        return MemberStatus.DUE if self.total_due() > 0 else MemberStatus.PAID

    def to_row(self) -> SettlementRow:
        return SettlementRow(
            member_id=self.member.id,
            name=self.member.name,
            join_date=self.member.join_date,
            total_paid=self.total_paid(),
            total_bills=self.total_bills(),
            total_due=self.total_due(),
            monthly_meals=self.monthly_meal_total(),
        )


# =============================================================================
# AGGREGATE REPORT
# =============================================================================

class SettlementEngine:
    """
    House-wide settlement for one reporting period.

    The snapshot decides which bills and payments count; narrow it
    with HouseSnapshot.for_month() first for a month-scoped view.
    The period decides which meals count.
    """

    def __init__(self, house: HouseSnapshot, period: ReportingPeriod):
        self._house = house
        self._period = period

    @property
    def house(self) -> HouseSnapshot:
        return self._house

    @property
    def period(self) -> ReportingPeriod:
        return self._period

    def member_ledger(self, member: Member) -> MemberLedger:
        return MemberLedger(member, self._house, self._period)

    def member_ledgers(self) -> list[MemberLedger]:
        return [self.member_ledger(member) for member in self._house.members]

    def meal_rate(self) -> Decimal:
        return meal_rate(
            self._house.bills,
            self._house.members,
            self._house.meals,
            self._period,
        )

    def total_meals(self) -> int:
        return house_meal_total(self._house.members, self._house.meals, self._period)

    def total_expense(self) -> Decimal:
        return total_bill_amount(self._house.bills)

    def total_deposits(self) -> Decimal:
        return sum((ledger.total_paid() for ledger in self.member_ledgers()), ZERO)

    def total_due(self) -> Decimal:
        return sum((ledger.total_due() for ledger in self.member_ledgers()), ZERO)

    def settlement_report(self) -> list[SettlementRow]:
        return [ledger.to_row() for ledger in self.member_ledgers()]

    def summary(self) -> SettlementSummary:
        return SettlementSummary(
            period=self._period,
            total_expense=self.total_expense(),
            total_deposits=self.total_deposits(),
            total_due=self.total_due(),
            total_meals=self.total_meals(),
            meal_rate=self.meal_rate(),
            member_count=len(self._house.members),
            bill_count=len(self._house.bills),
            payment_count=len(self._house.payments),
            rows=self.settlement_report(),
        )
