"""
Leave schemas
"""
from datetime import date, datetime
from typing import Optional, List
from pydantic import BaseModel, Field, field_serializer
from pydantic import ConfigDict
from orgflow.utils.datetime_utils import iso_utc
from orgflow.models.leave import LeaveType, LeaveStatus, LeaveDecision


class LeaveSubmitRequest(BaseModel):
    """Schema for submitting leave; dates are checked by the workflow so bad input gets a 400"""
    type: Optional[str] = Field(None, description="ANNUAL, SICK or OTHERS")
    reason: Optional[str] = Field(None, description="Reason for leave")
    start_date: Optional[str] = Field(None, description="First day of leave (YYYY-MM-DD)")
    end_date: Optional[str] = Field(None, description="Last day of leave (YYYY-MM-DD)")


class LeaveRespondRequest(BaseModel):
    """Schema for an approver's decision"""
    status: str = Field(..., description="APPROVED or REJECTED")
    remarks: Optional[str] = Field(None, description="Optional remarks recorded on the ledger")


class LedgerEntryOut(BaseModel):
    id: int
    actor_id: int
    actor_name: str
    actor_role: str
    decision: LeaveDecision
    note: Optional[str] = None
    summary: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("created_at", when_used="always")
    @classmethod
    def _ser_datetime(cls, dt: Optional[datetime]) -> Optional[str]:
        return iso_utc(dt)


class LeaveOut(BaseModel):
    """Schema for leave output"""
    id: int
    requester_id: int
    current_approver_id: Optional[int] = Field(None, description="Null once the request is final")
    leave_type: LeaveType
    start_date: date
    end_date: date
    reason: Optional[str] = None
    status: LeaveStatus
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("created_at", "updated_at", when_used="always")
    @classmethod
    def _ser_datetime(cls, dt: Optional[datetime]) -> Optional[str]:
        return iso_utc(dt)


class LeaveDetailOut(LeaveOut):
    """Leave request with its approval history, oldest decision first"""
    approval_history: List[LedgerEntryOut] = Field(default_factory=list)


class LeaveListResponse(BaseModel):
    items: List[LeaveOut]
    total: int


class LedgerListResponse(BaseModel):
    items: List[LedgerEntryOut]
    total: int
