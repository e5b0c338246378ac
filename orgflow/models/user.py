"""
User model

Identity is owned by the identity service. The workflow engine reads role,
department and reporting line, and mutates only leave_balance and
conduct_score.
"""
from sqlalchemy import Column, Integer, String, Boolean, DateTime, Float, ForeignKey, JSON, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum
from orgflow.db.base import Base


class Role(str, enum.Enum):
    CEO = "CEO"                                    # top-executive
    MD = "MD"                                      # managing-director
    ADMIN = "ADMIN"
    HR = "HR"
    DEPARTMENT_HEAD = "DEPARTMENT_HEAD"
    ASST_DEPARTMENT_HEAD = "ASST_DEPARTMENT_HEAD"
    GENERAL_STAFF = "GENERAL_STAFF"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, nullable=False, index=True)
    role = Column(String, nullable=False, default=Role.GENERAL_STAFF.value, index=True)
    department_id = Column(Integer, ForeignKey("departments.id"), nullable=True, index=True)
    reports_to_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    # Custom permission strings unioned with the role defaults at check time
    permissions = Column(JSON, nullable=False, default=list)
    leave_balance = Column(Integer, nullable=False, default=20)
    conduct_score = Column(Float, nullable=False, default=100.0)
    active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), onupdate=func.current_timestamp(), nullable=False)

    # Relationships
    department = relationship("Department", foreign_keys=[department_id], back_populates="members")
    reports_to = relationship("User", remote_side=[id], backref="direct_reports")

    __table_args__ = (
        CheckConstraint("leave_balance >= 0", name="check_users_leave_balance_non_negative"),
        CheckConstraint("conduct_score >= 0", name="check_users_conduct_score_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<User id={self.id} role={self.role}>"
