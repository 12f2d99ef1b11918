"""
Audit Models for House Meal Ledger

Every change to the ledger is logged for audit purposes.
This provides:
1. A history of who was added, billed and paid
2. Debugging information when a settlement looks wrong
3. Ability to reconstruct how the ledger got to its current state

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every ledger mutation has its own event type.
    """
    # Members
    MEMBER_ADDED = "member_added"
    MEMBER_DELETED = "member_deleted"

    # Bills
    BILL_ADDED = "bill_added"
    BILL_DELETED = "bill_deleted"

    # Payments
    PAYMENT_ADDED = "payment_added"
    PAYMENT_DELETED = "payment_deleted"

    # Meals
    MEAL_COUNT_SET = "meal_count_set"
    MEAL_ENTRY_REMOVED = "meal_entry_removed"

    # Input layer
    VALIDATION_FAILED = "validation_failed"
    RECORD_LIMIT_REACHED = "record_limit_reached"

    # Persistence
    SAVE_FAILED = "save_failed"
    STORAGE_FALLBACK = "storage_fallback"

    # Reports
    REPORT_GENERATED = "report_generated"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every ledger mutation creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what record is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Record type (e.g., 'member', 'bill', 'meal_entry')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the record this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one form submission)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         correlation_id, description, details_json, error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            self.entity_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.record_added("bill", bill_id, "Rent", correlation_id)
        event = AuditEventBuilder.save_failed("payment", "disk full", correlation_id)
    """

    _ADDED = {
        "member": AuditEventType.MEMBER_ADDED,
        "bill": AuditEventType.BILL_ADDED,
        "payment": AuditEventType.PAYMENT_ADDED,
    }
    _DELETED = {
        "member": AuditEventType.MEMBER_DELETED,
        "bill": AuditEventType.BILL_DELETED,
        "payment": AuditEventType.PAYMENT_DELETED,
        "meal_entry": AuditEventType.MEAL_ENTRY_REMOVED,
    }

    @staticmethod
    def record_added(
        record_type: str,
        record_id: str,
        label: str,
        correlation_id: Optional[UUID] = None,
        details: Optional[dict] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventBuilder._ADDED[record_type],
            entity_type=record_type,
            entity_id=record_id,
            correlation_id=correlation_id,
            description=f"{record_type.capitalize()} added: {label}",
            details=details or {},
            is_user_action=True,
        )

    @staticmethod
    def record_deleted(
        record_type: str,
        record_id: str,
        label: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventBuilder._DELETED[record_type],
            entity_type=record_type,
            entity_id=record_id,
            correlation_id=correlation_id,
            description=f"{record_type.replace('_', ' ').capitalize()} deleted: {label}",
            is_user_action=True,
        )

    @staticmethod
    def meal_count_set(
        entry_id: str,
        member_id: str,
        meal_date: str,
        count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MEAL_COUNT_SET,
            entity_type="meal_entry",
            entity_id=entry_id,
            correlation_id=correlation_id,
            description=f"Meal count set to {count} for {meal_date}",
            details={
                "member_id": member_id,
                "meal_date": meal_date,
                "meal_count": count,
            },
            is_user_action=True,
        )

    @staticmethod
    def validation_failed(
        record_type: str,
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type=record_type,
            correlation_id=correlation_id,
            description=f"{record_type.capitalize()} rejected with {len(issues)} issues",
            details={
                "issues": issues,
            },
            is_user_action=True,
        )

    @staticmethod
    def record_limit_reached(
        limit: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_LIMIT_REACHED,
            severity=AuditSeverity.WARNING,
            correlation_id=correlation_id,
            description=f"Record limit of {limit} reached",
            details={
                "limit": limit,
            },
        )

    @staticmethod
    def save_failed(
        record_type: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SAVE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type=record_type,
            correlation_id=correlation_id,
            description=f"Failed to save {record_type.replace('_', ' ')}",
            error_message=error_message,
        )

    @staticmethod
    def storage_fallback(
        configured: str,
        fallback: str,
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_FALLBACK,
            severity=AuditSeverity.WARNING,
            description=f"Storage backend {configured} unavailable, using {fallback}",
            error_message=error_message,
            details={
                "configured": configured,
                "fallback": fallback,
            },
        )

    @staticmethod
    def report_generated(
        period_key: str,
        member_count: int,
        total_expense: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REPORT_GENERATED,
            entity_type="report",
            correlation_id=correlation_id,
            description=f"Settlement report generated for {period_key}",
            details={
                "period": period_key,
                "member_count": member_count,
                "total_expense": total_expense,
            },
            is_user_action=True,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
