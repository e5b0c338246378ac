"""
Disciplinary ticket model
"""
from sqlalchemy import Column, Integer, DateTime, ForeignKey, String, Text, Boolean, Enum as SQLEnum
from sqlalchemy.orm import relationship, validates
from sqlalchemy.sql import func
import enum
from orgflow.db.base import Base


class TicketSeverity(int, enum.Enum):
    """Ordered severity; the value is the conduct-score penalty."""
    LOW = 1
    MEDIUM = 5
    HIGH = 10
    CRITICAL = 20


class TicketStatus(str, enum.Enum):
    OPEN = "OPEN"
    RESOLVED = "RESOLVED"
    CONTESTED = "CONTESTED"  # target disputed it
    VOIDED = "VOIDED"        # cancelled by a super-authority


class TicketAction(str, enum.Enum):
    ACKNOWLEDGE = "ACKNOWLEDGE"  # target accepts fault
    RESOLVE = "RESOLVE"          # super-authority upholds
    CONTEST = "CONTEST"
    VOID = "VOID"


TERMINAL_TICKET_STATUSES = frozenset({TicketStatus.RESOLVED, TicketStatus.VOIDED})


class SeverityImmutableError(ValueError):
    pass


class Ticket(Base):
    __tablename__ = "tickets"

    id = Column(Integer, primary_key=True, index=True)
    # Recorded even for anonymous reports; never exposed when is_anonymous
    issuer_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    target_user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)
    severity = Column(SQLEnum(TicketSeverity), nullable=False, default=TicketSeverity.LOW)
    status = Column(SQLEnum(TicketStatus), nullable=False, default=TicketStatus.OPEN, index=True)
    is_anonymous = Column(Boolean, nullable=False, default=False)
    contest_note = Column(Text, nullable=True)
    resolved_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    resolved_at = Column(DateTime(timezone=True), nullable=True)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), onupdate=func.current_timestamp(), nullable=False)

    issuer = relationship("User", foreign_keys=[issuer_id])
    target = relationship("User", foreign_keys=[target_user_id])
    resolved_by = relationship("User", foreign_keys=[resolved_by_id])

    __mapper_args__ = {"version_id_col": version}

    @validates("severity")
    def _freeze_severity(self, key, value):
        current = self.severity
        if current is not None and value != current:
            raise SeverityImmutableError("Ticket severity cannot change after creation")
        return value

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_TICKET_STATUSES

    @property
    def penalty(self) -> int:
        return TicketSeverity(self.severity).value
