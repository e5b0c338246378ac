"""
Leave models
"""
from sqlalchemy import (
    Column,
    Integer,
    Date,
    DateTime,
    ForeignKey,
    String,
    Text,
    Enum as SQLEnum,
    Index,
    CheckConstraint,
    event,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import text
import enum
from orgflow.db.base import Base


class LeaveType(str, enum.Enum):
    ANNUAL = "ANNUAL"
    SICK = "SICK"
    OTHERS = "OTHERS"


class LeaveStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class LeaveDecision(str, enum.Enum):
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


TERMINAL_LEAVE_STATUSES = frozenset({LeaveStatus.APPROVED, LeaveStatus.REJECTED})


class LeaveRequest(Base):
    __tablename__ = "leave_requests"

    id = Column(Integer, primary_key=True, index=True)
    requester_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    # Null exactly when the request is terminal
    current_approver_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    leave_type = Column(SQLEnum(LeaveType), nullable=False, default=LeaveType.OTHERS)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    reason = Column(Text, nullable=False, default="")
    status = Column(SQLEnum(LeaveStatus), nullable=False, default=LeaveStatus.PENDING, index=True)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP"), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=text("CURRENT_TIMESTAMP"),
        nullable=False,
    )

    requester = relationship("User", foreign_keys=[requester_id])
    current_approver = relationship("User", foreign_keys=[current_approver_id])
    approval_history = relationship(
        "LedgerEntry",
        back_populates="leave_request",
        order_by="LedgerEntry.id",
        passive_deletes="all",
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("ix_leave_requests_approver_status", "current_approver_id", "status"),
        CheckConstraint("start_date <= end_date", name="check_leave_start_le_end"),
        CheckConstraint(
            "(status = 'PENDING' AND current_approver_id IS NOT NULL) "
            "OR (status <> 'PENDING' AND current_approver_id IS NULL)",
            name="check_leave_pending_has_approver",
        ),
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_LEAVE_STATUSES


class LedgerEntry(Base):
    """One immutable decision recorded against a leave request."""
    __tablename__ = "leave_ledger_entries"

    id = Column(Integer, primary_key=True, index=True)
    leave_request_id = Column(Integer, ForeignKey("leave_requests.id"), nullable=False, index=True)
    actor_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    actor_name = Column(String, nullable=False)
    actor_role = Column(String, nullable=False)
    decision = Column(SQLEnum(LeaveDecision), nullable=False)
    note = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)

    leave_request = relationship("LeaveRequest", back_populates="approval_history")
    actor = relationship("User", foreign_keys=[actor_id])

    @property
    def summary(self) -> str:
        verb = "Approved" if self.decision == LeaveDecision.APPROVED else "Rejected"
        return f"{verb} by {self.actor_name} ({self.actor_role})"


class LedgerImmutableError(RuntimeError):
    pass


@event.listens_for(LedgerEntry, "before_update")
def _reject_ledger_update(mapper, connection, target):
    raise LedgerImmutableError(f"Ledger entry {target.id} is append-only")


@event.listens_for(LedgerEntry, "before_delete")
def _reject_ledger_delete(mapper, connection, target):
    raise LedgerImmutableError(f"Ledger entry {target.id} is append-only")
