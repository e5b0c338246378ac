"""
Database models
"""
from orgflow.models.department import Department
from orgflow.models.user import User, Role
from orgflow.models.audit_log import AuditLog
from orgflow.models.leave import (
    LeaveRequest,
    LedgerEntry,
    LedgerImmutableError,
    LeaveType,
    LeaveStatus,
    LeaveDecision,
    TERMINAL_LEAVE_STATUSES,
)
from orgflow.models.ticket import (
    Ticket,
    TicketSeverity,
    TicketStatus,
    TicketAction,
    SeverityImmutableError,
    TERMINAL_TICKET_STATUSES,
)

__all__ = [
    "Department",
    "User",
    "Role",
    "AuditLog",
    "LeaveRequest",
    "LedgerEntry",
    "LedgerImmutableError",
    "LeaveType",
    "LeaveStatus",
    "LeaveDecision",
    "TERMINAL_LEAVE_STATUSES",
    "Ticket",
    "TicketSeverity",
    "TicketStatus",
    "TicketAction",
    "SeverityImmutableError",
    "TERMINAL_TICKET_STATUSES",
]
