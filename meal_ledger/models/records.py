"""
Core Record Models for House Meal Ledger

These models define the schemas of the four record kinds kept in the
record store: members, bills, payments and meal entries.
They are designed to:
1. Be immutable once created (updates go through model_copy + store.update)
2. Load leniently from storage - missing fields become zero/empty defaults
3. Serialize to the same flat JSON shape they were loaded from

DESIGN DECISION: Dates are parsed leniently. A record whose date cannot be
parsed still loads (with the date set to None) and is simply excluded from
any month-filtered view, rather than breaking the whole ledger.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Literal, Mapping, Optional, Union
from uuid import uuid4

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    TypeAdapter,
)

from meal_ledger.models.period import parse_record_date


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class RecordType(str, Enum):
    """Discriminator stored in every record's ``type`` field."""
    MEMBER = "member"
    BILL = "bill"
    PAYMENT = "payment"
    MEAL_ENTRY = "meal_entry"


class BillCategory(str, Enum):
    """
    Supported bill categories.

    DESIGN DECISION: Using explicit categories rather than free text ensures
    consistent categorization in reports.
    """
    MARKET = "market"
    ELECTRICITY = "electricity"
    GAS = "gas"
    INTERNET = "internet"
    RENT = "rent"
    GARBAGE = "garbage"
    FRIDGE = "fridge"
    OTHER = "other"


class SplitType(str, Enum):
    """
    How a bill is meant to be split.

    NOTE: Recorded for every bill but not consulted by the settlement
    engine - all bills are allocated by meal share.
    """
    EQUAL = "equal"
    CUSTOM = "custom"
    WEIGHT = "weight"


# =============================================================================
# FIELD TYPES - lenient loading
# =============================================================================

def _default_if_missing(default: Any) -> BeforeValidator:
    """Replace None / empty string with a default before type validation."""
    def convert(value: Any) -> Any:
        if value is None or value == "":
            return default
        return value
    return BeforeValidator(convert)


def _as_identifier(value: Any) -> Any:
    """Stored identifiers may come back as numbers (e.g. from a sheet)."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(int(value)) if float(value).is_integer() else str(value)
    return value


def _new_identifier() -> str:
    return uuid4().hex


Identifier = Annotated[str, BeforeValidator(_as_identifier)]
Money = Annotated[Decimal, _default_if_missing(Decimal("0")), Field(ge=0)]
MealCount = Annotated[int, _default_if_missing(0), Field(ge=0)]
Text = Annotated[str, _default_if_missing("")]
LenientDate = Annotated[Optional[date], BeforeValidator(parse_record_date)]


# =============================================================================
# RECORD MODELS
# =============================================================================

class _RecordBase(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        str_strip_whitespace=True,
        extra="ignore",
    )

    id: Identifier = Field(
        default_factory=_new_identifier,
        min_length=1,
        description="Stable record identifier"
    )

    @property
    def record_date(self) -> Optional[date]:
        """The date used by month filters."""
        return None

    def to_storage_dict(self) -> dict[str, Any]:
        """Flat JSON-safe dict, using the stored field names."""
        return self.model_dump(mode="json", by_alias=True)


class Member(_RecordBase):
    """
    A member of the house.

    Created and deleted explicitly; never expires.
    """
    type: Literal["member"] = "member"

    name: Text = Field(
        default="",
        max_length=100,
        description="Display name"
    )
    phone: Text = Field(
        default="",
        max_length=30,
        description="Mobile number (optional)"
    )
    join_date: LenientDate = Field(
        default=None,
        description="Date the member joined the house"
    )

    @property
    def record_date(self) -> Optional[date]:
        return self.join_date


class Bill(_RecordBase):
    """
    A house bill.

    Every bill is shared by all members in proportion to their meals.
    ``split_type`` and ``participants`` are kept for the record only.
    """
    type: Literal["bill"] = "bill"

    title: Text = Field(
        default="",
        max_length=200,
        description="What the bill is for"
    )
    bill_type: BillCategory = Field(
        default=BillCategory.OTHER,
        description="Bill category"
    )
    amount: Money = Field(
        default=Decimal("0"),
        description="Bill amount"
    )
    bill_date: LenientDate = Field(
        default=None,
        alias="date",
        description="Date of the bill"
    )
    split_type: SplitType = Field(
        default=SplitType.EQUAL,
        description="Intended split strategy (not used by settlement)"
    )
    participants: Text = Field(
        default="all",
        description="Who shares the bill - currently always all members"
    )

    @property
    def record_date(self) -> Optional[date]:
        return self.bill_date


class Payment(_RecordBase):
    """A deposit made by one member into the house fund."""
    type: Literal["payment"] = "payment"

    member_id: Identifier = Field(
        default="",
        description="ID of the paying member"
    )
    amount: Money = Field(
        default=Decimal("0"),
        description="Amount paid"
    )
    payment_date: LenientDate = Field(
        default=None,
        alias="date",
        description="Date of the payment"
    )
    payment_method: Text = Field(
        default="",
        max_length=50,
        description="Cash, bank transfer, mobile wallet..."
    )
    note: Text = Field(
        default="",
        max_length=500,
        description="Optional note"
    )

    @property
    def record_date(self) -> Optional[date]:
        return self.payment_date


class MealEntry(_RecordBase):
    """
    Number of meals one member ate on one day.

    At most one entry exists per (member_id, meal_date); see MealBook.
    """
    type: Literal["meal_entry"] = "meal_entry"

    member_id: Identifier = Field(
        default="",
        description="ID of the member"
    )
    meal_date: LenientDate = Field(
        default=None,
        description="Day the meals were eaten"
    )
    meal_count: MealCount = Field(
        default=0,
        description="Number of meals"
    )

    @property
    def record_date(self) -> Optional[date]:
        return self.meal_date


LedgerRecord = Union[Member, Bill, Payment, MealEntry]

_RECORD_ADAPTER: TypeAdapter = TypeAdapter(
    Annotated[LedgerRecord, Field(discriminator="type")]
)


def parse_record(raw: Mapping[str, Any]) -> LedgerRecord:
    """
    Build a typed record from a stored dict.

    Raises:
        pydantic.ValidationError: If the type is unknown or a value is invalid
    """
    return _RECORD_ADAPTER.validate_python(dict(raw))


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'suspicious_value')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested fix if available"
    )


class ValidationResult(BaseModel):
    """Result of validating one user submission."""

    validated_at: datetime = Field(
        default_factory=datetime.utcnow
    )
    record_type: RecordType
    issues: list[ValidationIssue] = Field(
        default_factory=list,
        description="All validation issues found"
    )

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def is_valid(self) -> bool:
        return not self.has_errors

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def warnings(self) -> list[str]:
        return [issue.message for issue in self.issues if issue.severity == "warning"]


class ActionOutcome(BaseModel):
    """
    What happened when the user asked the ledger to change something.

    Expected failures (validation, persistence) come back here
    instead of being raised.
    """

    ok: bool
    message: str
    record_id: Optional[str] = None
    issues: list[ValidationIssue] = Field(default_factory=list)
