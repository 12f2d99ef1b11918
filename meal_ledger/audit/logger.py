"""
Audit Logger

DESIGN DECISION: Every change to the ledger is logged.
This provides:
1. Complete traceability of who added, paid and deleted what
2. Debugging capability when a settlement looks wrong
3. A history housemates can check in the shared sheet

The audit logger:
- Is async to match the storage interface
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from meal_ledger.models.audit import AuditEvent, AuditEventBuilder
from meal_ledger.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage, when one is configured (Google Sheets)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("meal_ledger.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_record_added(
        self,
        record_type: str,
        record_id: str,
        label: str,
        correlation_id: Optional[UUID] = None,
        details: Optional[dict] = None,
    ) -> None:
        """Log a member, bill or payment being added."""
        await self.log(AuditEventBuilder.record_added(
            record_type=record_type,
            record_id=record_id,
            label=label,
            correlation_id=correlation_id,
            details=details,
        ))

    async def log_record_deleted(
        self,
        record_type: str,
        record_id: str,
        label: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a record being deleted."""
        await self.log(AuditEventBuilder.record_deleted(
            record_type=record_type,
            record_id=record_id,
            label=label,
            correlation_id=correlation_id,
        ))

    async def log_meal_count_set(
        self,
        entry_id: str,
        member_id: str,
        meal_date: str,
        count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.meal_count_set(
            entry_id=entry_id,
            member_id=member_id,
            meal_date=meal_date,
            count=count,
            correlation_id=correlation_id,
        ))

    async def log_validation_failed(
        self,
        record_type: str,
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a rejected submission."""
        await self.log(AuditEventBuilder.validation_failed(
            record_type=record_type,
            issues=issues,
            correlation_id=correlation_id,
        ))

    async def log_record_limit_reached(
        self,
        limit: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.record_limit_reached(
            limit=limit,
            correlation_id=correlation_id,
        ))

    async def log_save_failed(
        self,
        record_type: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a persistence failure."""
        await self.log(AuditEventBuilder.save_failed(
            record_type=record_type,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_storage_fallback(
        self,
        configured: str,
        fallback: str,
        error_message: str,
    ) -> None:
        await self.log(AuditEventBuilder.storage_fallback(
            configured=configured,
            fallback=fallback,
            error_message=error_message,
        ))

    async def log_report_generated(
        self,
        period_key: str,
        member_count: int,
        total_expense: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.report_generated(
            period_key=period_key,
            member_count=member_count,
            total_expense=total_expense,
            correlation_id=correlation_id,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., a form submission).
    Pass it through all subsequent operations.
    """
    return uuid4()
